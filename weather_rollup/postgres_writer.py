"""
PostgreSQL access for raw readings and summary tables.
"""
import logging
from contextlib import contextmanager
from decimal import Decimal
from typing import Dict, Iterator, Optional

import psycopg2

from .config import RollupConfig
from .models import METRICS, Reading, Window, WindowKind
from .schema import INDEXES, TABLES


logger = logging.getLogger(__name__)


def _stat_columns(with_extremes: bool) -> tuple:
    prefixes = ("avg", "min", "max") if with_extremes else ("avg",)
    return tuple(f"{p}_{metric}" for metric in METRICS for p in prefixes)


class PostgresWriter:
    """Writes raw readings and upserts summary records."""

    # Mapping from window kind to summary table name
    TABLE_MAP = {
        WindowKind.HOUR: "weather_hourly",
        WindowKind.DAY: "weather_daily",
        WindowKind.WEEK: "weather_weekly",
        WindowKind.MONTH: "weather_monthly",
    }

    # Statistic columns each summary table accepts
    STAT_COLUMNS = {
        WindowKind.HOUR: _stat_columns(with_extremes=False),
        WindowKind.DAY: _stat_columns(with_extremes=True),
        WindowKind.WEEK: _stat_columns(with_extremes=True),
        WindowKind.MONTH: _stat_columns(with_extremes=True),
    }

    # Maintained outside this service; never part of an upsert
    PROTECTED_COLUMNS = frozenset({"sea_temperature"})

    def __init__(self, config: RollupConfig):
        """
        Initialize writer.

        Args:
            config: Configuration object
        """
        self.config = config

    @contextmanager
    def connection(self) -> Iterator["psycopg2.extensions.connection"]:
        """
        Open a connection for one operation.

        The transaction commits when the block exits cleanly and rolls back
        on error; the connection is closed either way.
        """
        conn = psycopg2.connect(
            self.config.postgres_url,
            connect_timeout=self.config.postgres_connect_timeout,
        )
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def ensure_schema(self):
        """Create the reading and summary tables if they don't exist."""
        with self.connection() as conn:
            with conn.cursor() as cur:
                for statement in TABLES + INDEXES:
                    cur.execute(statement)
        logger.info(f"Ensured schema ({len(TABLES)} tables)")

    def insert_reading(self, reading: Reading) -> int:
        """
        Append a reading to the ``weather`` table.

        Args:
            reading: Reading with metrics already rounded

        Returns:
            Database id of the new row
        """
        with self.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO weather (measured_at, temperature, pressure, humidity)
                    VALUES (%s, %s, %s, %s)
                    RETURNING id
                    """,
                    (
                        reading.measured_at,
                        reading.temperature,
                        reading.pressure,
                        reading.humidity,
                    ),
                )
                reading_id = cur.fetchone()[0]

        logger.info(f"Inserted reading {reading_id} measured at {reading.measured_at}")
        return reading_id

    def build_upsert(
        self,
        window: Window,
        statistics: Dict[str, Decimal],
        samples_count: int,
    ) -> tuple:
        """
        Build the upsert statement for a window's summary record.

        Args:
            window: Window the statistics were computed over
            statistics: Rounded statistics keyed by column name
            samples_count: Number of readings in the window

        Returns:
            Tuple of (sql, params)
        """
        table_name = self.TABLE_MAP.get(window.kind)
        if not table_name:
            raise ValueError(f"Unknown window kind: {window.kind}")

        protected = self.PROTECTED_COLUMNS.intersection(statistics)
        if protected:
            raise ValueError(f"Refusing to write protected columns: {sorted(protected)}")

        unknown = set(statistics) - set(self.STAT_COLUMNS[window.kind])
        if unknown:
            raise ValueError(f"Unknown columns for {table_name}: {sorted(unknown)}")

        key = window.natural_key()
        values = dict(key)
        if window.kind is WindowKind.WEEK:
            values["week_start"] = window.start_date
            values["week_end"] = window.end_date
        values.update(statistics)
        values["samples_count"] = samples_count

        columns = list(values)
        updates = [f"{col} = EXCLUDED.{col}" for col in columns if col not in key]
        updates.append("updated_at = CURRENT_TIMESTAMP")

        sql = f"""
            INSERT INTO {table_name} ({", ".join(columns)})
            VALUES ({", ".join(["%s"] * len(columns))})
            ON CONFLICT ({", ".join(key)}) DO UPDATE SET
                {", ".join(updates)}
        """
        return sql, tuple(values.values())

    def upsert_summary(
        self,
        window: Window,
        statistics: Dict[str, Decimal],
        samples_count: int,
        conn: Optional["psycopg2.extensions.connection"] = None,
    ):
        """
        Insert or overwrite the summary record for a window.

        Args:
            window: Window the statistics were computed over
            statistics: Rounded statistics keyed by column name
            samples_count: Number of readings in the window
            conn: Open connection to reuse; a new one is opened if omitted
        """
        sql, params = self.build_upsert(window, statistics, samples_count)

        if conn is None:
            with self.connection() as own_conn:
                self._execute(own_conn, sql, params)
        else:
            self._execute(conn, sql, params)

        logger.info(
            f"Upserted {self.TABLE_MAP[window.kind]} for {window.describe()} "
            f"({samples_count} samples)"
        )

    @staticmethod
    def _execute(conn, sql: str, params: tuple):
        with conn.cursor() as cur:
            cur.execute(sql, params)

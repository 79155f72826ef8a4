"""
Windowed statistics over raw readings, written to summary tables.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Optional

import psycopg2
from psycopg2.extras import RealDictCursor

from .models import (
    OperationResult,
    OperationStatus,
    Window,
    WindowKind,
    round_metric,
)
from .postgres_writer import PostgresWriter
from .windows import window_for


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Granularity:
    """How one window kind is queried."""

    operation: str
    date_filter: str
    params: Callable[[Window], tuple]


GRANULARITIES: Dict[WindowKind, Granularity] = {
    WindowKind.HOUR: Granularity(
        operation="hourly_aggregation",
        date_filter="measured_at::date = %s AND EXTRACT(HOUR FROM measured_at) = %s",
        params=lambda w: (w.start_date, w.hour),
    ),
    WindowKind.DAY: Granularity(
        operation="daily_aggregation",
        date_filter="measured_at::date = %s",
        params=lambda w: (w.start_date,),
    ),
    WindowKind.WEEK: Granularity(
        operation="weekly_aggregation",
        date_filter="measured_at::date BETWEEN %s AND %s",
        params=lambda w: (w.start_date, w.end_date),
    ),
    WindowKind.MONTH: Granularity(
        operation="monthly_aggregation",
        date_filter="measured_at::date BETWEEN %s AND %s",
        params=lambda w: (w.start_date, w.end_date),
    ),
}


class WindowAggregator:
    """Aggregates raw readings into hourly, daily, weekly and monthly summaries."""

    def __init__(self, writer: PostgresWriter):
        """
        Initialize aggregator.

        Args:
            writer: Writer providing connections and summary upserts
        """
        self.writer = writer

    def build_query(self, window: Window) -> tuple:
        """
        Build the statistics query for a window.

        Returns:
            Tuple of (sql, params)
        """
        granularity = GRANULARITIES[window.kind]
        select_list = [
            f"{column.split('_', 1)[0].upper()}({column.split('_', 1)[1]}) AS {column}"
            for column in PostgresWriter.STAT_COLUMNS[window.kind]
        ]
        sql = f"""
            SELECT
                {", ".join(select_list)},
                COUNT(*) AS samples_count
            FROM weather
            WHERE {granularity.date_filter}
            HAVING COUNT(*) > 0
        """
        return sql, granularity.params(window)

    def compute_statistics(self, conn, window: Window) -> Optional[dict]:
        """
        Run the statistics query on an open connection.

        Returns:
            Row keyed by column name, or None when the window has no readings
        """
        sql, params = self.build_query(window)
        with conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(sql, params)
            row = cur.fetchone()
        return dict(row) if row else None

    def aggregate(self, window: Window) -> OperationResult:
        """
        Compute and upsert the summary record for a window.

        Windows without readings are a no-op: nothing is written and any
        existing record is left as it is. Database errors are returned as a
        failed result rather than raised.

        Args:
            window: Window to aggregate

        Returns:
            Result with the written statistics, or the failure context
        """
        operation = GRANULARITIES[window.kind].operation

        try:
            with self.writer.connection() as conn:
                row = self.compute_statistics(conn, window)
                if row is None:
                    logger.info(f"No samples found for {window.describe()}, skipping")
                    return OperationResult(operation, OperationStatus.NOOP, window=window)

                samples_count = int(row.pop("samples_count"))
                statistics = {
                    column: round_metric(row[column])
                    for column in PostgresWriter.STAT_COLUMNS[window.kind]
                }
                self.writer.upsert_summary(window, statistics, samples_count, conn=conn)

        except psycopg2.Error as e:
            logger.error(
                f"{operation} failed for {window.describe()}: {e}",
                exc_info=True,
            )
            return OperationResult(
                operation,
                OperationStatus.FAILED,
                window=window,
                error=str(e).strip() or e.__class__.__name__,
            )

        return OperationResult(
            operation,
            OperationStatus.SUCCESS,
            window=window,
            samples_count=samples_count,
            statistics=statistics,
        )

    def aggregate_kind(
        self, kind: WindowKind, reference: Optional[datetime] = None
    ) -> OperationResult:
        """Aggregate the window of ``kind`` relative to ``reference`` (default: now)."""
        return self.aggregate(window_for(kind, reference or datetime.now()))

    def aggregate_current_hour(self, reference: Optional[datetime] = None) -> OperationResult:
        return self.aggregate_kind(WindowKind.HOUR, reference)

    def aggregate_previous_day(self, reference: Optional[datetime] = None) -> OperationResult:
        return self.aggregate_kind(WindowKind.DAY, reference)

    def aggregate_previous_week(self, reference: Optional[datetime] = None) -> OperationResult:
        return self.aggregate_kind(WindowKind.WEEK, reference)

    def aggregate_previous_month(self, reference: Optional[datetime] = None) -> OperationResult:
        return self.aggregate_kind(WindowKind.MONTH, reference)

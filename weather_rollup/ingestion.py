"""Ingestion of the single-reading weather file."""
import json
import logging
from pathlib import Path
from typing import Optional, Union

import psycopg2
from pydantic import ValidationError

from .aggregator import GRANULARITIES, WindowAggregator
from .config import RollupConfig
from .models import (
    IngestionResult,
    OperationResult,
    OperationStatus,
    Reading,
    WeatherPayload,
    WindowKind,
)
from .postgres_writer import PostgresWriter
from .windows import hour_window

logger = logging.getLogger(__name__)


class IngestionError(Exception):
    """The reading file could not be read or decoded."""


class ReadingIngestor:
    """Reads the latest reading, stores it and refreshes its hourly summary."""

    OPERATION = "ingestion"

    def __init__(
        self,
        config: RollupConfig,
        writer: PostgresWriter,
        aggregator: WindowAggregator,
    ):
        """Initialize ingestor.

        Args:
            config: Service configuration
            writer: Writer for the raw reading table
            aggregator: Aggregator used for the hourly cascade
        """
        self.config = config
        self.writer = writer
        self.aggregator = aggregator

    def load_reading(self, path: Optional[Union[str, Path]] = None) -> Reading:
        """Read and decode the reading file.

        Args:
            path: File to read (defaults to the configured path)

        Returns:
            Reading with local timestamp and rounded metrics

        Raises:
            IngestionError: If the file is unreadable or malformed
        """
        path = Path(path or self.config.json_file_path)

        try:
            raw = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise IngestionError(f"Failed to read {path}: {e}") from e

        try:
            payload = WeatherPayload.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as e:
            raise IngestionError(f"Failed to parse {path}: {e}") from e

        try:
            return Reading.from_payload(payload)
        except (OverflowError, OSError, ValueError) as e:
            raise IngestionError(f"Invalid timestamp {payload.timestamp}: {e}") from e

    def ingest(self, path: Optional[Union[str, Path]] = None) -> IngestionResult:
        """Run one ingestion cycle.

        The reading is inserted first; the hourly summary for the hour the
        reading falls in is then recomputed. A failed hourly step is kept as
        a warning on an otherwise successful result.

        Args:
            path: File to read (defaults to the configured path)

        Returns:
            Ingestion result carrying the hourly aggregation result
        """
        try:
            reading = self.load_reading(path)
        except IngestionError as e:
            logger.error(str(e))
            return IngestionResult(self.OPERATION, OperationStatus.FAILED, error=str(e))

        try:
            reading.id = self.writer.insert_reading(reading)
        except psycopg2.Error as e:
            logger.error(f"Failed to insert reading: {e}", exc_info=True)
            return IngestionResult(
                self.OPERATION,
                OperationStatus.FAILED,
                reading=reading,
                error=f"Failed to insert reading: {str(e).strip()}",
            )

        window = hour_window(reading.measured_at)
        logger.info(f"Calculating hourly averages for {window.describe()}...")
        try:
            hourly = self.aggregator.aggregate(window)
        except Exception as e:
            # The reading is already stored; the hour is recomputed next cycle
            logger.error(f"Unexpected error in hourly aggregation: {e}", exc_info=True)
            hourly = OperationResult(
                GRANULARITIES[WindowKind.HOUR].operation,
                OperationStatus.FAILED,
                window=window,
                error=str(e) or e.__class__.__name__,
            )

        result = IngestionResult(
            self.OPERATION,
            OperationStatus.SUCCESS,
            window=window,
            samples_count=1,
            reading=reading,
            hourly=hourly,
        )
        if not hourly.ok:
            warning = f"Failed to update hourly averages for {window.describe()}: {hourly.error}"
            logger.warning(warning)
            result.warnings.append(warning)

        return result

"""
Scheduling and CLI for the weather rollup service.

This module wires the pipeline together:
1. Ingest the latest reading on a short interval and refresh its hourly summary
2. Summarise yesterday every night
3. Summarise last ISO week every Monday
4. Summarise last month on the first of every month

Each job catches its own failures so that one bad firing never stops the
scheduler or the other jobs.
"""
import argparse
import logging
import sys
from datetime import datetime
from typing import Optional

from apscheduler.schedulers.base import BaseScheduler
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger
from pydantic import ValidationError

from .aggregator import GRANULARITIES, WindowAggregator
from .config import RollupConfig
from .ingestion import ReadingIngestor
from .models import (
    IngestionResult,
    OperationResult,
    OperationStatus,
    WindowKind,
)
from .postgres_writer import PostgresWriter


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)


class RollupOrchestrator:
    """Runs ingestion and roll-up jobs on their schedules."""

    # Scheduled roll-ups: job id (also the schedule key) -> window kind
    ROLLUP_JOBS = {
        "daily": WindowKind.DAY,
        "weekly": WindowKind.WEEK,
        "monthly": WindowKind.MONTH,
    }

    LABELS = {
        WindowKind.HOUR: "hourly",
        WindowKind.DAY: "daily",
        WindowKind.WEEK: "weekly",
        WindowKind.MONTH: "monthly",
    }

    def __init__(self, config: RollupConfig):
        """
        Initialize orchestrator.

        Args:
            config: Configuration object
        """
        self.config = config
        self.writer = PostgresWriter(config)
        self.aggregator = WindowAggregator(self.writer)
        self.ingestor = ReadingIngestor(config, self.writer, self.aggregator)
        self.scheduler: Optional[BaseScheduler] = None

    def run_ingestion(self) -> IngestionResult:
        """Ingest the latest reading; never raises."""
        logger.info("Starting scheduled weather data processing...")
        try:
            result = self.ingestor.ingest()
        except Exception as e:
            logger.error(f"Unexpected error processing weather data: {e}", exc_info=True)
            return IngestionResult(
                ReadingIngestor.OPERATION, OperationStatus.FAILED, error=str(e)
            )

        if result.ok:
            logger.info(f"Weather data processed successfully (id {result.reading_id})")
        else:
            logger.error(f"Error processing weather data: {result.error}")
        return result

    def run_aggregation(
        self, kind: WindowKind, reference: Optional[datetime] = None
    ) -> OperationResult:
        """Aggregate the window of ``kind`` relative to ``reference``; never raises."""
        label = self.LABELS[kind]
        logger.info(f"Starting {label} statistics calculation...")
        try:
            result = self.aggregator.aggregate_kind(kind, reference)
        except Exception as e:
            logger.error(
                f"Unexpected error calculating {label} statistics: {e}",
                exc_info=True,
            )
            return OperationResult(
                GRANULARITIES[kind].operation, OperationStatus.FAILED, error=str(e)
            )

        if result.status is OperationStatus.SUCCESS:
            logger.info(f"{label.capitalize()} statistics calculated successfully")
        elif result.status is OperationStatus.NOOP:
            logger.info(f"No {label} statistics to calculate")
        else:
            logger.error(f"Error calculating {label} statistics: {result.error}")
        return result

    def build_scheduler(self, scheduler: Optional[BaseScheduler] = None) -> BaseScheduler:
        """
        Register the ingestion and roll-up jobs.

        Args:
            scheduler: Scheduler to register on (default: a new BlockingScheduler)

        Returns:
            The scheduler, not yet started
        """
        scheduler = scheduler or BlockingScheduler()
        schedules = self.config.schedules

        scheduler.add_job(
            self.run_ingestion,
            trigger=CronTrigger.from_crontab(schedules["ingest"]),
            id="ingest",
            name=f"Weather data processing ({schedules['ingest']})",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )

        for job_id, kind in self.ROLLUP_JOBS.items():
            scheduler.add_job(
                self.run_aggregation,
                trigger=CronTrigger.from_crontab(schedules[job_id]),
                args=[kind],
                id=job_id,
                name=f"{self.LABELS[kind].capitalize()} statistics ({schedules[job_id]})",
                max_instances=1,
                coalesce=True,
                replace_existing=True,
            )

        if self.config.run_on_startup:
            # No trigger: runs once as soon as the scheduler starts
            scheduler.add_job(
                self.run_ingestion,
                id="ingest_startup",
                name="Initial weather data processing",
                replace_existing=True,
            )

        self.scheduler = scheduler
        return scheduler

    def run_forever(self):
        """Start the blocking scheduler until interrupted."""
        scheduler = self.build_scheduler()
        for job_id, expression in self.config.schedules.items():
            logger.info(f"Scheduled {job_id}: {expression}")
        logger.info("Scheduler started.")
        try:
            scheduler.start()
        except (KeyboardInterrupt, SystemExit):
            logger.info("Scheduler stopped.")


def print_summary(result: OperationResult):
    """Print a human-readable summary of one operation."""
    title = "INGESTION SUMMARY" if isinstance(result, IngestionResult) else "AGGREGATION SUMMARY"
    print("\n" + "=" * 60)
    print(title)
    print("=" * 60)
    print(f"Operation:         {result.operation}")
    print(f"Status:            {result.status.value}")
    if result.window is not None:
        print(f"Window:            {result.window.describe()}")
    if isinstance(result, IngestionResult):
        print(f"Reading ID:        {result.reading_id if result.reading_id is not None else 'N/A'}")
        if result.hourly is not None:
            print(f"Hourly Status:     {result.hourly.status.value}")
    else:
        print(f"Samples:           {result.samples_count}")
        for column, value in result.statistics.items():
            print(f"  {column:<17}{value}")
    for warning in result.warnings:
        print(f"Warning:           {warning}")
    if result.error:
        print(f"Error:             {result.error}")
    print("=" * 60 + "\n")


def main(argv=None):
    """CLI entry point for the rollup service."""
    parser = argparse.ArgumentParser(
        description="Weather reading ingestion and summary roll-ups",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run all schedules in the foreground
  weather-rollup run

  # Ingest the current reading once
  weather-rollup ingest

  # Recompute last week's summary
  weather-rollup aggregate week
        """
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("run", help="Start the scheduler")
    subparsers.add_parser("ingest", help="Ingest the reading file once")
    aggregate_parser = subparsers.add_parser(
        "aggregate", help="Recompute one summary window relative to now"
    )
    aggregate_parser.add_argument(
        "kind",
        choices=[kind.value for kind in WindowKind],
        help="Granularity to aggregate (hour: current hour, others: previous period)"
    )
    subparsers.add_parser("init-db", help="Create tables if they don't exist")

    args = parser.parse_args(argv)

    try:
        config = RollupConfig()
    except ValidationError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    logging.getLogger().setLevel(config.log_level.upper())
    logger.info(
        f"Loaded configuration - DB: {config.postgres_user}@{config.postgres_host}:"
        f"{config.postgres_port}/{config.postgres_db}"
    )

    orchestrator = RollupOrchestrator(config)

    if args.command == "run":
        orchestrator.run_forever()
        return

    if args.command == "init-db":
        try:
            orchestrator.writer.ensure_schema()
        except Exception as e:
            logger.error(f"Schema creation failed: {e}", exc_info=True)
            sys.exit(1)
        return

    if args.command == "ingest":
        result = orchestrator.run_ingestion()
    else:
        result = orchestrator.run_aggregation(WindowKind(args.kind))

    print_summary(result)
    sys.exit(0 if result.ok else 1)


if __name__ == "__main__":
    main()

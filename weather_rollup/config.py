"""
Configuration management for the weather rollup service.
"""
from urllib.parse import quote_plus

from pydantic import field_validator
from pydantic_settings import BaseSettings


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class RollupConfig(BaseSettings):
    """Configuration for ingestion, aggregation and scheduling."""

    # Input file with the latest reading
    json_file_path: str = "weather.json"

    # PostgreSQL configuration
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "weather"
    postgres_user: str
    postgres_password: str
    postgres_connect_timeout: int = 10

    # Schedules (crontab, local time)
    ingest_schedule: str = "*/5 * * * *"
    daily_schedule: str = "5 0 * * *"
    weekly_schedule: str = "10 0 * * 1"
    monthly_schedule: str = "15 0 1 * *"
    run_on_startup: bool = True

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_prefix = ""

    @field_validator(
        "ingest_schedule", "daily_schedule", "weekly_schedule", "monthly_schedule"
    )
    @classmethod
    def _check_crontab(cls, value: str) -> str:
        if len(value.split()) != 5:
            raise ValueError(f"Expected a 5-field crontab expression, got {value!r}")
        return value

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(
                f"Unknown log level {value!r}, expected one of {', '.join(LOG_LEVELS)}"
            )
        return level

    @property
    def postgres_url(self) -> str:
        """PostgreSQL connection URL for psycopg2."""
        return (
            f"postgresql://{quote_plus(self.postgres_user)}:{quote_plus(self.postgres_password)}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def schedules(self) -> dict:
        """Crontab expression per scheduled job."""
        return {
            "ingest": self.ingest_schedule,
            "daily": self.daily_schedule,
            "weekly": self.weekly_schedule,
            "monthly": self.monthly_schedule,
        }

"""Readings, windows and operation results shared across the service."""
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, StrictFloat, StrictInt


METRICS = ("temperature", "pressure", "humidity")

_ONE_DECIMAL = Decimal("0.1")


def round_metric(value: Union[Decimal, float, int]) -> Decimal:
    """
    Round a metric to one decimal place, halves away from zero.

    Floats go through their shortest repr so that 10.05 rounds to 10.1
    rather than to the binary neighbour 10.0499999...
    """
    if not isinstance(value, Decimal):
        value = Decimal(repr(value)) if isinstance(value, float) else Decimal(value)
    return value.quantize(_ONE_DECIMAL, rounding=ROUND_HALF_UP)


class WeatherPayload(BaseModel):
    """Decoded contents of the reading file."""

    timestamp: StrictInt
    temperature: StrictFloat
    pressure: StrictFloat
    humidity: StrictFloat


@dataclass
class Reading:
    """A raw measurement as stored in the ``weather`` table."""

    measured_at: datetime
    temperature: Decimal
    pressure: Decimal
    humidity: Decimal
    id: Optional[int] = None

    @classmethod
    def from_payload(cls, payload: WeatherPayload) -> "Reading":
        """Convert a decoded payload to a local timestamp and rounded metrics."""
        return cls(
            measured_at=datetime.fromtimestamp(payload.timestamp),
            temperature=round_metric(payload.temperature),
            pressure=round_metric(payload.pressure),
            humidity=round_metric(payload.humidity),
        )


class WindowKind(Enum):
    """Summary granularity."""
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


@dataclass(frozen=True)
class Window:
    """
    A span of readings summarised into one record.

    ``start_date`` and ``end_date`` are inclusive calendar dates. Hour
    windows additionally carry the hour of day.
    """

    kind: WindowKind
    start_date: date
    end_date: date
    hour: Optional[int] = None

    @property
    def year(self) -> int:
        """ISO year for week windows, calendar year otherwise."""
        if self.kind is WindowKind.WEEK:
            return self.start_date.isocalendar()[0]
        return self.start_date.year

    @property
    def week(self) -> int:
        return self.start_date.isocalendar()[1]

    @property
    def month(self) -> int:
        return self.start_date.month

    def natural_key(self) -> Dict[str, Any]:
        """Column values identifying this window's summary record."""
        if self.kind is WindowKind.HOUR:
            return {"date": self.start_date, "hour": self.hour}
        if self.kind is WindowKind.DAY:
            return {"date": self.start_date}
        if self.kind is WindowKind.WEEK:
            return {"year": self.year, "week": self.week}
        return {"year": self.year, "month": self.month}

    def describe(self) -> str:
        if self.kind is WindowKind.HOUR:
            return f"{self.start_date.isoformat()} hour {self.hour}"
        if self.kind is WindowKind.DAY:
            return self.start_date.isoformat()
        if self.kind is WindowKind.WEEK:
            return (
                f"week {self.week}/{self.year} "
                f"({self.start_date.isoformat()}..{self.end_date.isoformat()})"
            )
        return f"{self.year}-{self.month:02d}"


class OperationStatus(Enum):
    """Outcome of an ingestion or aggregation run."""
    SUCCESS = "success"
    NOOP = "noop"
    FAILED = "failed"


@dataclass
class OperationResult:
    """Outcome of a single operation, with enough context to report it."""

    operation: str
    status: OperationStatus
    window: Optional[Window] = None
    samples_count: int = 0
    statistics: Dict[str, Decimal] = field(default_factory=dict)
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status is not OperationStatus.FAILED

    def context(self) -> Dict[str, Any]:
        """Flat description for logs and CLI output."""
        ctx: Dict[str, Any] = {
            "operation": self.operation,
            "status": self.status.value,
            "samples_count": self.samples_count,
        }
        if self.window is not None:
            ctx["window_kind"] = self.window.kind.value
            ctx.update(
                {k: str(v) for k, v in self.window.natural_key().items()}
            )
        if self.error:
            ctx["error"] = self.error
        if self.warnings:
            ctx["warnings"] = list(self.warnings)
        return ctx


@dataclass
class IngestionResult(OperationResult):
    """Outcome of an ingestion cycle including its hourly cascade."""

    reading: Optional[Reading] = None
    hourly: Optional[OperationResult] = None

    @property
    def reading_id(self) -> Optional[int]:
        return self.reading.id if self.reading else None

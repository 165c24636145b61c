"""Data models for the rate series and refresh state."""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum


@dataclass(frozen=True)
class CurrencyPair:
    """Base/quote currency pair, e.g. USD/KRW (KRW per 1 USD)."""

    base: str = "USD"
    quote: str = "KRW"

    def __post_init__(self) -> None:
        object.__setattr__(self, "base", self.base.upper())
        object.__setattr__(self, "quote", self.quote.upper())

    def __str__(self) -> str:
        return f"{self.base}/{self.quote}"


@dataclass(frozen=True)
class DatedRate:
    """Single observed rate from the upstream feed."""

    date: date
    rate: float

    def __post_init__(self) -> None:
        if not self.rate > 0:
            raise ValueError(f"rate must be positive, got {self.rate!r}")


# Sparse upstream payload: date -> rate, missing dates mean "no quote"
SparseSeries = dict[date, float]


@dataclass(frozen=True)
class NormalizedPoint:
    """One calendar day of the dense series."""

    date: date
    rate: float  # rounded to 2 decimal places
    weekday: int  # 0=Sunday .. 6=Saturday

    @property
    def label(self) -> str:
        """Short M/D label used on the chart axis."""
        return f"{self.date.month}/{self.date.day}"

    @property
    def is_sunday(self) -> bool:
        return self.weekday == 0


DenseSeries = tuple[NormalizedPoint, ...]


class RefreshStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class RefreshState:
    """Immutable snapshot published by the refresh scheduler."""

    series: DenseSeries = ()
    current_rate: float | None = None
    last_updated: datetime | None = None
    status: RefreshStatus = RefreshStatus.IDLE
    error: str | None = None
    sequence: int = 0

    @property
    def has_data(self) -> bool:
        return len(self.series) > 0


@dataclass(frozen=True)
class AdvantageScore:
    """How favourable buying the base currency is right now (0-100)."""

    score: int
    reason: str


@dataclass(frozen=True)
class NotificationPreferences:
    """Stored notification settings. Delivery is not implemented."""

    email: str = ""
    notify_at_9am: bool = False
    notify_at_6pm: bool = False

"""Data model for laundry state, forecasts, risk analysis and alert dedup."""

from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from enum import Enum, IntEnum
from typing import Optional

from laundry_watchdog.errors import InvalidTransition
from laundry_watchdog.helpers import as_utc, clamp_probability

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class LaundryStatus(Enum):
    NOT_HANGING = "NOT_HANGING"
    HANGING = "HANGING"
    BROUGHT_IN = "BROUGHT_IN"

    def can_transition_to(self, target: "LaundryStatus") -> bool:
        """
        Allowed edges:
          NOT_HANGING -> HANGING, HANGING -> BROUGHT_IN, BROUGHT_IN -> HANGING,
          any -> NOT_HANGING (reset), and re-entering the same status.
        """
        if target is self or target is LaundryStatus.NOT_HANGING:
            return True
        if target is LaundryStatus.HANGING:
            return self in (LaundryStatus.NOT_HANGING, LaundryStatus.BROUGHT_IN)
        return self is LaundryStatus.HANGING  # target is BROUGHT_IN


class RiskLevel(IntEnum):
    NONE = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3


@dataclass(frozen=True)
class ForecastSample:
    """One hourly forecast point; offset 0 is the current hour."""

    offset_hours: int
    temperature: int
    precipitation_probability: int

    def __post_init__(self):
        object.__setattr__(self, "offset_hours", max(0, int(self.offset_hours)))
        object.__setattr__(self, "temperature", int(round(self.temperature)))
        object.__setattr__(
            self, "precipitation_probability", clamp_probability(self.precipitation_probability)
        )


@dataclass(frozen=True)
class RainRiskAnalysis:
    risk_level: RiskLevel
    max_probability_next_4h: int
    estimated_rain_onset: Optional[datetime]
    recommended_action: str


@dataclass(frozen=True)
class AlertLedger:
    """Last emitted alert, used only for cooldown/dedup."""

    last_alert_probability: int = 0
    last_alert_time: datetime = EPOCH

    def seconds_since_alert(self, now: datetime) -> float:
        return (as_utc(now) - as_utc(self.last_alert_time)).total_seconds()


@dataclass(frozen=True)
class AlertDecision:
    emit: bool
    new_ledger: AlertLedger
    minutes_until_rain: Optional[int] = None
    recovered: bool = False


@dataclass(frozen=True)
class LaundryState:
    status: LaundryStatus = LaundryStatus.NOT_HANGING
    changed_at: datetime = EPOCH
    hang_time: Optional[datetime] = None

    @property
    def is_hanging(self) -> bool:
        return self.status is LaundryStatus.HANGING

    def transition(self, status: LaundryStatus, now: datetime) -> "LaundryState":
        """
        Return the state after moving to `status` at `now`.

        Re-entering the current status returns self unchanged.

        Raises:
            InvalidTransition: if the edge is not allowed
        """
        if not self.status.can_transition_to(status):
            raise InvalidTransition(self.status, status)
        if status is self.status:
            return self
        hang_time = self.hang_time
        if status is LaundryStatus.HANGING:
            hang_time = now
        elif status is LaundryStatus.NOT_HANGING:
            hang_time = None
        return replace(self, status=status, changed_at=now, hang_time=hang_time)

    def hanging_duration(self, now: datetime) -> Optional[timedelta]:
        if not self.is_hanging or self.hang_time is None:
            return None
        return as_utc(now) - as_utc(self.hang_time)


@dataclass(frozen=True)
class HistoryEntry:
    """One line of the laundry/alert history log."""

    time: datetime
    event: str
    status: LaundryStatus
    probability: Optional[int] = None
    risk_level: Optional[RiskLevel] = None
    minutes_until_rain: Optional[int] = None


class CheckMode(Enum):
    PERIODIC = "periodic"
    SNOOZE = "snooze"


class CycleStatus(Enum):
    """What the scheduling layer should do with a finished cycle."""

    SUCCESS = "success"
    RETRY = "retry"
    FAILURE = "failure"
    CANCELLED = "cancelled"


class CycleOutcome(Enum):
    SKIPPED = "skipped"
    EMIT = "emit"
    SUPPRESS = "suppress"
    RECOVERED = "recovered"

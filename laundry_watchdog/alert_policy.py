"""Alert emission and dedup decisions for a hanging load of laundry."""

from datetime import datetime

from laundry_watchdog.helpers import whole_minutes_between
from laundry_watchdog.models import AlertDecision, AlertLedger, LaundryStatus, RainRiskAnalysis

DEFAULT_COOLDOWN_SECONDS = 30 * 60
FALLBACK_MINUTES_UNTIL_RAIN = 30


def minutes_until_rain(
    analysis: RainRiskAnalysis, now: datetime, fallback: int = FALLBACK_MINUTES_UNTIL_RAIN
) -> int:
    if analysis.estimated_rain_onset is None:
        return fallback
    return whole_minutes_between(now, analysis.estimated_rain_onset)


def decide(
    laundry_status: LaundryStatus,
    analysis: RainRiskAnalysis,
    ledger: AlertLedger,
    now: datetime,
    cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
    threshold: int = 30,
    fallback_minutes: int = FALLBACK_MINUTES_UNTIL_RAIN,
) -> AlertDecision:
    """
    Decide whether a rain alert goes out now.

    No alert unless laundry is HANGING, the 4h peak exceeds `threshold`, and
    the previous alert is at least `cooldown_seconds` old. The returned ledger
    only differs from `ledger` when emit is True.
    """
    quiet = AlertDecision(emit=False, new_ledger=ledger)

    if laundry_status is not LaundryStatus.HANGING:
        return quiet
    if analysis.max_probability_next_4h <= threshold:
        return quiet
    if ledger.seconds_since_alert(now) < cooldown_seconds:
        return quiet

    return AlertDecision(
        emit=True,
        new_ledger=AlertLedger(
            last_alert_probability=analysis.max_probability_next_4h,
            last_alert_time=now,
        ),
        minutes_until_rain=minutes_until_rain(analysis, now, fallback_minutes),
    )


def decide_snooze(
    laundry_status: LaundryStatus,
    analysis: RainRiskAnalysis,
    ledger: AlertLedger,
    now: datetime,
    threshold: int = 30,
    fallback_minutes: int = FALLBACK_MINUTES_UNTIL_RAIN,
) -> AlertDecision:
    """
    Re-check after a snooze: no cooldown, and a `recovered` outcome when the
    rain concern has gone away while the laundry is still out.
    """
    if (
        laundry_status is LaundryStatus.HANGING
        and analysis.max_probability_next_4h <= threshold
    ):
        return AlertDecision(emit=False, new_ledger=ledger, recovered=True)
    return decide(
        laundry_status,
        analysis,
        ledger,
        now,
        cooldown_seconds=0,
        threshold=threshold,
        fallback_minutes=fallback_minutes,
    )


def describe_decision(decision: AlertDecision) -> str:
    if decision.recovered:
        return "RECOVERED"
    return "EMIT" if decision.emit else "SUPPRESS"

"""Rain risk analysis over a short-term hourly precipitation forecast."""

from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from laundry_watchdog.models import ForecastSample, RainRiskAnalysis, RiskLevel

# Window size (samples) -> probability that must be exceeded, checked in this order.
RISK_RULES = (
    (1, 70, RiskLevel.HIGH),
    (2, 50, RiskLevel.MEDIUM),
    (4, 30, RiskLevel.LOW),
)

RECOMMENDED_ACTIONS: Dict[RiskLevel, str] = {
    RiskLevel.HIGH: "bring in immediately",
    RiskLevel.MEDIUM: "bring in within 1-2 hours",
    RiskLevel.LOW: "monitor conditions",
    RiskLevel.NONE: "no rain expected",
}


def _ordered(forecast: Iterable[ForecastSample]) -> List[ForecastSample]:
    return sorted(forecast, key=lambda s: s.offset_hours)


def max_probability(forecast: List[ForecastSample], hours: int) -> int:
    """Highest probability among the first `hours` samples (0 for an empty window)."""
    window = forecast[:hours]
    return max((s.precipitation_probability for s in window), default=0)


def classify_risk(forecast: List[ForecastSample]) -> RiskLevel:
    for hours, limit, level in RISK_RULES:
        if max_probability(forecast, hours) > limit:
            return level
    return RiskLevel.NONE


def estimate_rain_onset(
    forecast: List[ForecastSample], threshold: int, now: datetime
) -> Optional[datetime]:
    """
    Earliest time whose probability exceeds `threshold`, as now + offset_hours.

    Returns:
        datetime or None when no sample exceeds the threshold
    """
    for sample in forecast:
        if sample.precipitation_probability > threshold:
            return now + timedelta(hours=sample.offset_hours)
    return None


def analyze(forecast: Iterable[ForecastSample], threshold: int, now: datetime) -> RainRiskAnalysis:
    """
    Analyze the rain risk of a forecast.

    The risk level uses fixed constants (1h > 70 HIGH, 2h > 50 MEDIUM, 4h > 30 LOW);
    `threshold` only drives the onset search. No clock is read here, `now` anchors
    the onset timestamp.

    Args:
        forecast: hourly samples, offset 0 = now
        threshold (int): alert threshold, 0..100
        now (datetime): reference time for offsets

    Returns:
        RainRiskAnalysis
    """
    samples = _ordered(forecast)
    level = classify_risk(samples)
    return RainRiskAnalysis(
        risk_level=level,
        max_probability_next_4h=max_probability(samples, 4),
        estimated_rain_onset=estimate_rain_onset(samples, threshold, now),
        recommended_action=RECOMMENDED_ACTIONS[level],
    )

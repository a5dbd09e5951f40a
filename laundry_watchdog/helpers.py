from datetime import datetime, timezone


def as_utc(value: datetime) -> datetime:
    """
    Aware UTC copy of a timestamp. Naive values are taken to be UTC already.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def clamp_probability(value) -> int:
    """
    Normalize a precipitation probability:
    - None counts as 0
    - Round to the nearest integer
    - Clamp into 0..100
    """
    if value is None:
        return 0
    return max(0, min(100, int(round(float(value)))))


def describe_conditions(probability: int) -> str:
    """
    Short sky label for a probability: "rain" above 70, "cloudy" above 30, else "clear".
    """
    p = clamp_probability(probability)
    if p > 70:
        return "rain"
    if p > 30:
        return "cloudy"
    return "clear"


def whole_minutes_between(start: datetime, end: datetime) -> int:
    """
    Minutes from start to end, floored, never negative.
    """
    seconds = (as_utc(end) - as_utc(start)).total_seconds()
    return max(0, int(seconds // 60))

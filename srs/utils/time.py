from datetime import datetime, timedelta

from django.utils import timezone

from ..exceptions import InvalidInput


def ensure_aware(value: datetime, field="timestamp") -> datetime:
    if not isinstance(value, datetime):
        raise InvalidInput(f"{field} must be a datetime, got {value!r}")
    if timezone.is_naive(value):
        raise InvalidInput(f"{field} must carry a timezone")
    return value


def monotonic_now(clock_value: datetime, last_reviewed_at) -> datetime:
    """Never move a card's review time backwards when the host clock steps back."""
    if last_reviewed_at is not None and clock_value < last_reviewed_at:
        return last_reviewed_at
    return clock_value


def day_start(value: datetime) -> datetime:
    local = timezone.localtime(value)
    return local.replace(hour=0, minute=0, second=0, microsecond=0)


def consecutive_days(days, today) -> int:
    """Length of the run of consecutive dates ending today or yesterday."""
    seen = set(days)
    if today in seen:
        cursor = today
    elif today - timedelta(days=1) in seen:
        cursor = today - timedelta(days=1)
    else:
        return 0

    streak = 0
    while cursor in seen:
        streak += 1
        cursor -= timedelta(days=1)
    return streak

import math
from datetime import timedelta

from ..config import DEFAULT_PARAMS, EASE_PRECISION
from .enums import Quality
from .state import CardSchedule


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def next_interval(repetitions: int, previous_interval: int, ease_factor: float, params=DEFAULT_PARAMS) -> int:
    """Interval in days after a passing review that brought the streak to ``repetitions``."""
    if repetitions == 1:
        interval = params.first_interval_days
    elif repetitions == 2:
        interval = params.second_interval_days
    else:
        interval = _round_half_up(previous_interval * ease_factor)
    return max(1, min(interval, params.max_interval_days))


def next_ease(ease_factor: float, quality: int, params=DEFAULT_PARAMS) -> float:
    if quality < params.pass_threshold:
        ease = ease_factor - params.fail_ease_penalty
    else:
        ease = ease_factor + params.pass_ease_bonus_per_step * (quality - params.pass_threshold)
    return round(max(params.min_ease_factor, ease), EASE_PRECISION)


def compute_next(state: CardSchedule, quality: int, now, params=DEFAULT_PARAMS) -> CardSchedule:
    # quality is validated by the review service
    if quality < params.pass_threshold:
        repetitions = 0
        interval = max(1, params.relearn_interval_days)
    else:
        repetitions = state.repetitions + 1
        # growth uses the ease factor held before this review
        interval = next_interval(repetitions, state.interval_days, state.ease_factor, params)

    return state.evolve(
        repetitions=repetitions,
        interval_days=interval,
        ease_factor=next_ease(state.ease_factor, quality, params),
        last_reviewed_at=now,
        next_review_at=now + timedelta(days=interval),
        version=state.version + 1,
    )


def preview(state: CardSchedule, now, params=DEFAULT_PARAMS) -> dict:
    """Outcome of every quality level, keyed by Quality; nothing is persisted."""
    return {q: compute_next(state, q, now, params) for q in Quality}

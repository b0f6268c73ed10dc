"""
Import of cards scheduled by the old offline client.

The offline client kept a ``level`` per card and pushed it up one rung of a
fixed day ladder on every correct answer (back to 0 on a miss), with no ease
factor. SM-2 is the authoritative algorithm; the ladder is only read here so
that cards studied offline keep their progress when they are first synced.
"""
from datetime import timedelta

from ..config import DEFAULT_PARAMS, LEGACY_LADDER_DAYS
from ..exceptions import InvalidInput
from .state import CardSchedule


def schedule_from_legacy(card_id, owner_id, level, next_review, now, params=DEFAULT_PARAMS) -> CardSchedule:
    if isinstance(level, bool) or not isinstance(level, int) or not 0 <= level < len(LEGACY_LADDER_DAYS):
        raise InvalidInput(f"legacy level must be 0-{len(LEGACY_LADDER_DAYS) - 1}, got {level!r}")

    interval = LEGACY_LADDER_DAYS[level]
    if level == 0:
        return CardSchedule.initial(card_id, owner_id, now, params.default_ease_factor)

    due = next_review or now
    # keep nextReviewAt derivable from lastReviewedAt + interval
    return CardSchedule(
        card_id=card_id,
        owner_id=owner_id,
        repetitions=level,
        ease_factor=params.default_ease_factor,
        interval_days=interval,
        last_reviewed_at=due - timedelta(days=interval),
        next_review_at=due,
    )

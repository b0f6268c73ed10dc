from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional
from uuid import UUID

from ..config import DEFAULT_EASE_FACTOR


@dataclass(frozen=True)
class CardSchedule:
    """
    Scheduling record for one reviewable card.

    ``next_review_at`` is always ``last_reviewed_at + interval_days`` or, for a
    card that was never reviewed, the moment it became reviewable.
    ``version`` advances by one on every accepted review and is what the store
    compares on conditional writes.
    """

    card_id: UUID
    owner_id: UUID
    next_review_at: datetime
    repetitions: int = 0
    ease_factor: float = DEFAULT_EASE_FACTOR
    interval_days: int = 0
    last_reviewed_at: Optional[datetime] = None
    version: int = 0
    orphaned_at: Optional[datetime] = None

    @classmethod
    def initial(cls, card_id, owner_id, now, ease_factor=DEFAULT_EASE_FACTOR):
        return cls(card_id=card_id, owner_id=owner_id, next_review_at=now, ease_factor=ease_factor)

    @property
    def is_new(self) -> bool:
        return self.last_reviewed_at is None

    @property
    def is_orphaned(self) -> bool:
        return self.orphaned_at is not None

    def is_due(self, as_of: datetime) -> bool:
        return self.next_review_at <= as_of

    def evolve(self, **changes) -> "CardSchedule":
        return replace(self, **changes)


@dataclass(frozen=True)
class ReviewEvent:
    """Immutable audit row written once per accepted review."""

    card_id: UUID
    owner_id: UUID
    quality: int
    idempotency_key: str
    reviewed_at: datetime
    resulting_repetitions: int
    resulting_interval_days: int
    resulting_ease_factor: float
    resulting_version: int
    next_review_at: datetime

    @classmethod
    def for_transition(cls, schedule: CardSchedule, quality: int, idempotency_key: str) -> "ReviewEvent":
        return cls(
            card_id=schedule.card_id,
            owner_id=schedule.owner_id,
            quality=int(quality),
            idempotency_key=idempotency_key,
            reviewed_at=schedule.last_reviewed_at,
            resulting_repetitions=schedule.repetitions,
            resulting_interval_days=schedule.interval_days,
            resulting_ease_factor=schedule.ease_factor,
            resulting_version=schedule.version,
            next_review_at=schedule.next_review_at,
        )

    def as_schedule(self) -> CardSchedule:
        """The schedule exactly as it stood right after this review."""
        return CardSchedule(
            card_id=self.card_id,
            owner_id=self.owner_id,
            next_review_at=self.next_review_at,
            repetitions=self.resulting_repetitions,
            ease_factor=self.resulting_ease_factor,
            interval_days=self.resulting_interval_days,
            last_reviewed_at=self.reviewed_at,
            version=self.resulting_version,
        )


@dataclass(frozen=True)
class ReviewOutcome:
    schedule: CardSchedule
    quality: int
    replayed: bool = False

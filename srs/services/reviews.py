from itertools import islice
from uuid import UUID

import structlog
from django.utils import timezone

from ..config import SchedulerParams
from ..domain.enums import Quality
from ..domain.logic import compute_next, preview as preview_outcomes
from ..domain.state import CardSchedule, ReviewEvent, ReviewOutcome
from ..exceptions import Conflict, DuplicateReview, InvalidInput, NotFound
from ..utils.time import ensure_aware, monotonic_now

logger = structlog.get_logger()

MAX_IDEMPOTENCY_KEY_LENGTH = 64


def parse_card_id(value, field="card_id") -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        raise InvalidInput(f"{field} must be a UUID, got {value!r}") from None


def _check_idempotency_key(key) -> str:
    if not isinstance(key, str) or not key or len(key) > MAX_IDEMPOTENCY_KEY_LENGTH:
        raise InvalidInput(f"idempotency_key must be a non-empty string of at most {MAX_IDEMPOTENCY_KEY_LENGTH} chars")
    return key


class ReviewService:
    """
    Accepts review submissions and answers schedule queries.

    Every accepted review is a read-compute-write cycle against the injected
    store: the write is conditional on the version that was read, and a lost
    race is retried from a fresh read up to ``params.max_write_attempts``
    times. Idempotency keys make client retries safe: a key that already has
    a review event returns the schedule recorded with that event.
    """

    def __init__(self, store, params=None, clock=None):
        self.store = store
        self.params = params or SchedulerParams.from_settings()
        self.clock = clock or timezone.now

    def submit_review(self, card_id, quality, idempotency_key, owner_id=None) -> ReviewOutcome:
        quality = Quality.coerce(quality)
        idempotency_key = _check_idempotency_key(idempotency_key)
        card_id = parse_card_id(card_id)
        if owner_id is not None:
            owner_id = parse_card_id(owner_id, field="owner_id")

        log = logger.bind(card_id=str(card_id), idempotency_key=idempotency_key)
        log.info("review_received", quality=int(quality))

        for attempt in range(1, self.params.max_write_attempts + 1):
            replay = self._replayed(card_id, owner_id, idempotency_key, log)
            if replay is not None:
                return replay

            current = self._load_or_create(card_id, owner_id)
            now = monotonic_now(self.clock(), current.last_reviewed_at)
            updated = compute_next(current, quality, now, self.params)
            event = ReviewEvent.for_transition(updated, quality, idempotency_key)

            try:
                self.store.commit_review(updated, current.version, event)
            except Conflict:
                log.info("review_conflict", attempt=attempt, read_version=current.version)
                continue
            except DuplicateReview:
                # a concurrent request with the same key committed first
                continue

            log.info(
                "review_scheduled",
                attempt=attempt,
                repetitions=updated.repetitions,
                interval_days=updated.interval_days,
                ease_factor=updated.ease_factor,
                version=updated.version,
                next_review_utc=updated.next_review_at.isoformat(),
            )
            return ReviewOutcome(schedule=updated, quality=quality, replayed=False)

        replay = self._replayed(card_id, owner_id, idempotency_key, log)
        if replay is not None:
            return replay
        log.warning("review_conflict_exhausted", attempts=self.params.max_write_attempts)
        raise Conflict(f"card {card_id} is being reviewed concurrently; retry the request")

    def get_due_cards(self, owner_id, as_of=None, limit=None):
        """
        Lazily yield ids of cards due at ``as_of`` (oldest-overdue first).

        Each call reads a fresh snapshot; nothing is locked, so a concurrent
        review may move a card in or out of the next call's results.
        """
        owner_id = parse_card_id(owner_id, field="owner_id")
        as_of = ensure_aware(as_of, field="as_of") if as_of is not None else self.clock()
        if limit is not None and (isinstance(limit, bool) or not isinstance(limit, int) or limit < 1):
            raise InvalidInput(f"limit must be a positive integer, got {limit!r}")

        due = (schedule.card_id for schedule in self.store.iter_due(owner_id, as_of))
        return islice(due, limit) if limit is not None else due

    def peek_schedule(self, card_id) -> CardSchedule:
        card_id = parse_card_id(card_id)
        schedule = self.store.get(card_id)
        if schedule is None:
            raise NotFound(f"no schedule for card {card_id}")
        return schedule

    def review_history(self, card_id):
        schedule = self.peek_schedule(card_id)
        return self.store.events(schedule.card_id)

    def preview(self, card_id):
        """What each quality level would schedule if the card were reviewed now."""
        schedule = self.peek_schedule(card_id)
        now = monotonic_now(self.clock(), schedule.last_reviewed_at)
        return preview_outcomes(schedule, now, self.params)

    def _replayed(self, card_id, owner_id, idempotency_key, log):
        existing = self.store.find_event(card_id, idempotency_key)
        if existing is None:
            return None
        if owner_id is not None and existing.owner_id != owner_id:
            raise NotFound(f"no schedule for card {card_id}")
        log.info(
            "idempotent_reuse",
            version=existing.resulting_version,
            next_review_utc=existing.next_review_at.isoformat(),
        )
        return ReviewOutcome(schedule=existing.as_schedule(), quality=Quality(existing.quality), replayed=True)

    def _load_or_create(self, card_id, owner_id) -> CardSchedule:
        schedule = self.store.get(card_id)
        if schedule is None:
            if owner_id is None:
                raise NotFound(f"no schedule for card {card_id}")
            initial = CardSchedule.initial(card_id, owner_id, self.clock(), self.params.default_ease_factor)
            schedule, _ = self.store.ensure(initial)
        if owner_id is not None and schedule.owner_id != owner_id:
            raise NotFound(f"no schedule for card {card_id}")
        if schedule.is_orphaned:
            raise NotFound(f"card {card_id} was deleted")
        return schedule

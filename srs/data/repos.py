"""
Schedule state stores.

A store keeps one ``CardSchedule`` per card plus the append-only review log.
Writes are conditional on the version read by the caller: ``commit_review``
updates the schedule only if its stored version still equals
``expected_version`` and appends the review event in the same unit of work,
so a caller observes either both changes or neither.
"""
import abc
import threading
from functools import wraps

from django.db import DatabaseError, IntegrityError, transaction

from ..domain.state import CardSchedule, ReviewEvent
from ..exceptions import Conflict, DuplicateReview, StorageUnavailable
from .models import ReviewLog, ScheduleEntry


class ScheduleStore(abc.ABC):
    @abc.abstractmethod
    def get(self, card_id):
        """Return the CardSchedule for ``card_id`` or None."""

    @abc.abstractmethod
    def ensure(self, schedule):
        """Insert ``schedule`` unless the card already has one; returns (stored, created)."""

    @abc.abstractmethod
    def find_event(self, card_id, idempotency_key):
        """Return the ReviewEvent recorded under ``idempotency_key`` or None."""

    @abc.abstractmethod
    def commit_review(self, schedule, expected_version, event):
        """Conditionally write ``schedule`` and append ``event`` atomically."""

    @abc.abstractmethod
    def iter_due(self, owner_id, as_of):
        """Yield live schedules with next_review_at <= as_of, oldest first, ties by card_id."""

    @abc.abstractmethod
    def events(self, card_id):
        """Review events for one card, oldest first."""

    @abc.abstractmethod
    def mark_orphaned(self, card_id, when):
        """Flag the schedule as belonging to deleted content; returns False if unknown."""

    @abc.abstractmethod
    def schedules_for(self, owner_id):
        """Yield every live schedule owned by ``owner_id``."""

    @abc.abstractmethod
    def events_for(self, owner_id, since=None):
        """Yield review events of ``owner_id``, optionally from ``since`` on."""


def _to_schedule(row) -> CardSchedule:
    return CardSchedule(
        card_id=row.card_id,
        owner_id=row.owner_id,
        repetitions=row.repetitions,
        ease_factor=row.ease_factor,
        interval_days=row.interval_days,
        next_review_at=row.next_review_at,
        last_reviewed_at=row.last_reviewed_at,
        version=row.version,
        orphaned_at=row.orphaned_at,
    )


def _to_event(row) -> ReviewEvent:
    return ReviewEvent(
        card_id=row.card_id,
        owner_id=row.owner_id,
        quality=row.quality,
        idempotency_key=row.idempotency_key,
        reviewed_at=row.reviewed_at,
        resulting_repetitions=row.resulting_repetitions,
        resulting_interval_days=row.resulting_interval_days,
        resulting_ease_factor=row.resulting_ease_factor,
        resulting_version=row.resulting_version,
        next_review_at=row.next_review_at,
    )


def _storage_errors(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except DatabaseError as exc:
            raise StorageUnavailable(f"schedule store failure: {exc}") from exc
    return wrapper


class DjangoScheduleStore(ScheduleStore):
    """Store backed by the Django ORM (``ScheduleEntry`` / ``ReviewLog``)."""

    @_storage_errors
    def get(self, card_id):
        row = ScheduleEntry.objects.filter(card_id=card_id).first()
        return _to_schedule(row) if row else None

    @_storage_errors
    def ensure(self, schedule):
        row, created = ScheduleEntry.objects.get_or_create(
            card_id=schedule.card_id,
            defaults={
                "owner_id": schedule.owner_id,
                "repetitions": schedule.repetitions,
                "ease_factor": schedule.ease_factor,
                "interval_days": schedule.interval_days,
                "next_review_at": schedule.next_review_at,
                "last_reviewed_at": schedule.last_reviewed_at,
                "version": schedule.version,
            },
        )
        return _to_schedule(row), created

    @_storage_errors
    def find_event(self, card_id, idempotency_key):
        row = ReviewLog.objects.filter(card_id=card_id, idempotency_key=idempotency_key).first()
        return _to_event(row) if row else None

    @_storage_errors
    def commit_review(self, schedule, expected_version, event):
        with transaction.atomic():
            updated = (ScheduleEntry.objects
                       .filter(card_id=schedule.card_id, version=expected_version)
                       .update(
                           repetitions=schedule.repetitions,
                           ease_factor=schedule.ease_factor,
                           interval_days=schedule.interval_days,
                           next_review_at=schedule.next_review_at,
                           last_reviewed_at=schedule.last_reviewed_at,
                           version=schedule.version,
                       ))
            if updated == 0:
                raise Conflict(f"schedule for card {schedule.card_id} moved past version {expected_version}")
            try:
                # Savepoint so the duplicate check does not poison the outer block
                with transaction.atomic():
                    ReviewLog.objects.create(
                        owner_id=event.owner_id,
                        card_id=event.card_id,
                        quality=event.quality,
                        idempotency_key=event.idempotency_key,
                        reviewed_at=event.reviewed_at,
                        next_review_at=event.next_review_at,
                        resulting_repetitions=event.resulting_repetitions,
                        resulting_interval_days=event.resulting_interval_days,
                        resulting_ease_factor=event.resulting_ease_factor,
                        resulting_version=event.resulting_version,
                    )
            except IntegrityError:
                # Raising here rolls back the schedule update as well
                raise DuplicateReview(f"idempotency key {event.idempotency_key!r} already used") from None

    def iter_due(self, owner_id, as_of):
        try:
            qs = (ScheduleEntry.objects
                  .filter(owner_id=owner_id, next_review_at__lte=as_of, orphaned_at__isnull=True)
                  .order_by("next_review_at", "card_id"))
            for row in qs.iterator():
                yield _to_schedule(row)
        except DatabaseError as exc:
            raise StorageUnavailable(f"schedule store failure: {exc}") from exc

    @_storage_errors
    def events(self, card_id):
        rows = ReviewLog.objects.filter(card_id=card_id).order_by("reviewed_at", "id")
        return [_to_event(r) for r in rows]

    @_storage_errors
    def mark_orphaned(self, card_id, when):
        updated = ScheduleEntry.objects.filter(card_id=card_id, orphaned_at__isnull=True).update(orphaned_at=when)
        return updated > 0 or ScheduleEntry.objects.filter(card_id=card_id).exists()

    def schedules_for(self, owner_id):
        try:
            qs = ScheduleEntry.objects.filter(owner_id=owner_id, orphaned_at__isnull=True).order_by("card_id")
            for row in qs.iterator():
                yield _to_schedule(row)
        except DatabaseError as exc:
            raise StorageUnavailable(f"schedule store failure: {exc}") from exc

    def events_for(self, owner_id, since=None):
        try:
            qs = ReviewLog.objects.filter(owner_id=owner_id)
            if since is not None:
                qs = qs.filter(reviewed_at__gte=since)
            for row in qs.order_by("reviewed_at", "id").iterator():
                yield _to_event(row)
        except DatabaseError as exc:
            raise StorageUnavailable(f"schedule store failure: {exc}") from exc


class InMemoryScheduleStore(ScheduleStore):
    """Process-local store with the same contract; used offline and in tests."""

    def __init__(self):
        self._lock = threading.Lock()
        self._schedules = {}
        self._events = []
        self._keys = {}

    def get(self, card_id):
        with self._lock:
            return self._schedules.get(card_id)

    def ensure(self, schedule):
        with self._lock:
            existing = self._schedules.get(schedule.card_id)
            if existing is not None:
                return existing, False
            self._schedules[schedule.card_id] = schedule
            return schedule, True

    def find_event(self, card_id, idempotency_key):
        with self._lock:
            return self._keys.get((card_id, idempotency_key))

    def commit_review(self, schedule, expected_version, event):
        with self._lock:
            current = self._schedules.get(schedule.card_id)
            if current is None or current.version != expected_version:
                raise Conflict(f"schedule for card {schedule.card_id} moved past version {expected_version}")
            key = (event.card_id, event.idempotency_key)
            if key in self._keys:
                raise DuplicateReview(f"idempotency key {event.idempotency_key!r} already used")
            self._schedules[schedule.card_id] = schedule.evolve(orphaned_at=current.orphaned_at)
            self._keys[key] = event
            self._events.append(event)

    def iter_due(self, owner_id, as_of):
        with self._lock:
            due = [s for s in self._schedules.values()
                   if s.owner_id == owner_id and not s.is_orphaned and s.is_due(as_of)]
        due.sort(key=lambda s: (s.next_review_at, s.card_id))
        yield from due

    def events(self, card_id):
        with self._lock:
            return [e for e in self._events if e.card_id == card_id]

    def mark_orphaned(self, card_id, when):
        with self._lock:
            current = self._schedules.get(card_id)
            if current is None:
                return False
            if not current.is_orphaned:
                self._schedules[card_id] = current.evolve(orphaned_at=when)
            return True

    def schedules_for(self, owner_id):
        with self._lock:
            owned = [s for s in self._schedules.values() if s.owner_id == owner_id and not s.is_orphaned]
        owned.sort(key=lambda s: s.card_id)
        yield from owned

    def events_for(self, owner_id, since=None):
        with self._lock:
            events = [e for e in self._events
                      if e.owner_id == owner_id and (since is None or e.reviewed_at >= since)]
        yield from events

import logging
import threading
import uuid
from datetime import datetime, timedelta, timezone as dt_tz

import pytest

from srs.config import SchedulerParams
from srs.data.repos import InMemoryScheduleStore
from srs.domain.enums import Quality
from srs.exceptions import Conflict, DuplicateReview, InvalidInput, NotFound, StorageUnavailable
from srs.services.cards import CardFeed
from srs.services.reviews import ReviewService

logger = logging.getLogger(__name__)

NOW = datetime(2026, 3, 1, 9, 30, tzinfo=dt_tz.utc)


class Clock:
    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class RacingStore(InMemoryScheduleStore):
    """Runs ``before_commit`` once, just before the next conditional write."""

    def __init__(self):
        super().__init__()
        self.before_commit = None
        self.conflicts = 0

    def commit_review(self, schedule, expected_version, event):
        hook, self.before_commit = self.before_commit, None
        if hook:
            hook()
        try:
            super().commit_review(schedule, expected_version, event)
        except Conflict:
            self.conflicts += 1
            raise


class AlwaysConflictStore(InMemoryScheduleStore):
    def __init__(self):
        super().__init__()
        self.attempts = 0

    def commit_review(self, schedule, expected_version, event):
        self.attempts += 1
        raise Conflict("simulated")


class DuplicateKeyStore(RacingStore):
    """Reports the unique-key violation a database raises when the other write landed first."""

    def commit_review(self, schedule, expected_version, event):
        hook, self.before_commit = self.before_commit, None
        if hook:
            hook()
            raise DuplicateReview(f"idempotency key {event.idempotency_key!r} already used")
        super().commit_review(schedule, expected_version, event)


class UnavailableStore(InMemoryScheduleStore):
    def __init__(self):
        super().__init__()
        self.attempts = 0

    def commit_review(self, schedule, expected_version, event):
        self.attempts += 1
        raise StorageUnavailable("database is locked")


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def store():
    return InMemoryScheduleStore()


@pytest.fixture
def service(store, clock):
    return ReviewService(store, params=SchedulerParams(), clock=clock)


@pytest.fixture
def owner():
    return uuid.uuid4()


def test_first_review_creates_schedule(service, store, owner):
    card_id = uuid.uuid4()
    outcome = service.submit_review(card_id, Quality.PASS, "k1", owner_id=owner)

    assert outcome.replayed is False
    assert outcome.schedule.repetitions == 1
    assert outcome.schedule.interval_days == 1
    assert outcome.schedule.next_review_at == NOW + timedelta(days=1)
    assert service.peek_schedule(card_id) == outcome.schedule
    assert len(store.events(card_id)) == 1


def test_same_key_is_applied_once(service, store, owner, clock):
    """A retried submission returns the first result and writes no second event."""
    card_id = uuid.uuid4()
    first = service.submit_review(card_id, 5, "same-key", owner_id=owner)
    clock.advance(hours=2)
    second = service.submit_review(card_id, 5, "same-key", owner_id=owner)

    assert second.replayed is True
    assert second.schedule == first.schedule
    assert len(store.events(card_id)) == 1
    assert service.peek_schedule(card_id).version == 1
    logger.info("✓ Passed: idempotent replay")


def test_replay_returns_snapshot_not_current_state(service, owner, clock):
    card_id = uuid.uuid4()
    first = service.submit_review(card_id, Quality.PASS, "a", owner_id=owner)
    clock.advance(days=1)
    service.submit_review(card_id, Quality.PASS, "b", owner_id=owner)

    replay = service.submit_review(card_id, Quality.PASS, "a", owner_id=owner)
    assert replay.schedule == first.schedule
    assert service.peek_schedule(card_id).version == 2


@pytest.mark.parametrize("quality", [-1, 6, "4", 3.5, None, False])
def test_invalid_quality_rejected_before_store(quality, owner):
    store = AlwaysConflictStore()
    service = ReviewService(store, params=SchedulerParams(), clock=Clock())
    card_id = uuid.uuid4()

    with pytest.raises(InvalidInput):
        service.submit_review(card_id, quality, "k", owner_id=owner)
    assert store.get(card_id) is None
    assert store.attempts == 0


@pytest.mark.parametrize("key", ["", None, "x" * 65])
def test_invalid_idempotency_key(service, owner, key):
    with pytest.raises(InvalidInput):
        service.submit_review(uuid.uuid4(), Quality.PASS, key, owner_id=owner)


def test_invalid_card_id(service, owner):
    with pytest.raises(InvalidInput):
        service.submit_review("not-a-uuid", Quality.PASS, "k", owner_id=owner)


def test_unknown_card_without_owner_is_not_found(service):
    with pytest.raises(NotFound):
        service.submit_review(uuid.uuid4(), Quality.PASS, "k")


def test_registered_card_can_be_reviewed_without_owner(store, service, clock, owner):
    card_id = uuid.uuid4()
    CardFeed(store, params=SchedulerParams(), clock=clock).card_created(owner, card_id)
    outcome = service.submit_review(card_id, Quality.PASS, "k")
    assert outcome.schedule.owner_id == owner


def test_other_owner_cannot_review(service, owner):
    card_id = uuid.uuid4()
    service.submit_review(card_id, Quality.PASS, "k1", owner_id=owner)
    with pytest.raises(NotFound):
        service.submit_review(card_id, Quality.PASS, "k2", owner_id=uuid.uuid4())
    with pytest.raises(NotFound):
        service.submit_review(card_id, Quality.PASS, "k1", owner_id=uuid.uuid4())


def test_orphaned_card_rejects_reviews(store, service, clock, owner):
    card_id = uuid.uuid4()
    service.submit_review(card_id, Quality.PASS, "k1", owner_id=owner)
    CardFeed(store, params=SchedulerParams(), clock=clock).card_deleted(card_id)

    with pytest.raises(NotFound):
        service.submit_review(card_id, Quality.PASS, "k2", owner_id=owner)
    # history survives deletion of the content
    assert len(service.review_history(card_id)) == 1


def test_peek_unknown_card(service):
    with pytest.raises(NotFound):
        service.peek_schedule(uuid.uuid4())


def test_fail_after_streak(service, owner, clock):
    card_id = uuid.uuid4()
    for i in range(5):
        service.submit_review(card_id, Quality.PERFECT, f"p{i}", owner_id=owner)
        clock.advance(days=30)
    before = service.peek_schedule(card_id)
    outcome = service.submit_review(card_id, Quality.BLACKOUT, "fail", owner_id=owner)

    assert outcome.schedule.repetitions == 0
    assert outcome.schedule.interval_days == 1
    assert outcome.schedule.ease_factor == pytest.approx(before.ease_factor - 0.2)


def test_clock_stepping_back_keeps_review_time(service, owner, clock):
    card_id = uuid.uuid4()
    first = service.submit_review(card_id, Quality.PASS, "a", owner_id=owner)
    clock.advance(hours=-5)
    second = service.submit_review(card_id, Quality.PASS, "b", owner_id=owner)

    assert second.schedule.last_reviewed_at == first.schedule.last_reviewed_at
    assert second.schedule.next_review_at == first.schedule.last_reviewed_at + timedelta(days=6)


def test_concurrent_race_is_retried(owner):
    """Two submissions race on one card; the loser retries on the winner's state."""
    clock = Clock()
    store = RacingStore()
    service = ReviewService(store, params=SchedulerParams(), clock=clock)
    card_id = uuid.uuid4()

    winner = {}
    store.before_commit = lambda: winner.update(
        outcome=service.submit_review(card_id, Quality.PASS, "key-b", owner_id=owner)
    )
    loser = service.submit_review(card_id, Quality.PASS, "key-a", owner_id=owner)

    assert store.conflicts == 1
    assert winner["outcome"].schedule.version == 1
    assert winner["outcome"].schedule.repetitions == 1
    assert loser.schedule.version == 2
    assert loser.schedule.repetitions == 2
    assert loser.schedule.interval_days == 6

    events = store.events(card_id)
    assert [e.idempotency_key for e in events] == ["key-b", "key-a"]
    assert service.peek_schedule(card_id) == loser.schedule
    logger.info("✓ Passed: conflict retried, two events, final version %s", loser.schedule.version)


def test_conflict_surfaces_after_bounded_retries(owner):
    store = AlwaysConflictStore()
    service = ReviewService(store, params=SchedulerParams(max_write_attempts=3), clock=Clock())
    card_id = uuid.uuid4()

    with pytest.raises(Conflict) as excinfo:
        service.submit_review(card_id, Quality.PASS, "k", owner_id=owner)
    assert excinfo.value.retryable
    assert store.attempts == 3
    assert store.get(card_id).version == 0
    assert store.events(card_id) == []


def test_parallel_submissions_all_apply(owner):
    store = InMemoryScheduleStore()
    service = ReviewService(store, params=SchedulerParams(max_write_attempts=100), clock=Clock())
    card_id = uuid.uuid4()
    service.submit_review(card_id, Quality.PASS, "seed", owner_id=owner)

    workers = 8
    barrier = threading.Barrier(workers)
    errors = []

    def review(i):
        barrier.wait()
        try:
            service.submit_review(card_id, Quality.GOOD, f"t{i}", owner_id=owner)
        except Exception as e:  # collected for the assertion below
            errors.append(e)

    threads = [threading.Thread(target=review, args=(i,)) for i in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    final = service.peek_schedule(card_id)
    assert final.version == workers + 1
    assert len(store.events(card_id)) == workers + 1
    assert sorted(e.resulting_version for e in store.events(card_id)) == list(range(1, workers + 2))


def test_due_cards_ordering_and_membership(service, store, owner, clock):
    """Oldest-overdue first, ties broken by card id, only cards with next_review_at <= as_of."""
    feed = CardFeed(store, params=SchedulerParams(), clock=clock)
    tied = sorted(uuid.uuid4() for _ in range(3))
    for card_id in reversed(tied):
        feed.card_created(owner, card_id)

    clock.advance(hours=1)
    reviewed = uuid.uuid4()
    service.submit_review(reviewed, Quality.PASS, "r", owner_id=owner)  # due NOW+1h+1d

    other_owner_card = uuid.uuid4()
    feed.card_created(uuid.uuid4(), other_owner_card)

    assert list(service.get_due_cards(owner, NOW)) == tied
    assert list(service.get_due_cards(owner, NOW + timedelta(days=2))) == tied + [reviewed]
    assert list(service.get_due_cards(owner, NOW - timedelta(seconds=1))) == []
    assert list(service.get_due_cards(owner, NOW, limit=2)) == tied[:2]


def test_due_cards_matches_schedules(service, store, owner, clock):
    for i in range(10):
        service.submit_review(uuid.uuid4(), Quality(i % 6), f"k{i}", owner_id=owner)
        clock.advance(hours=7)

    as_of = NOW + timedelta(days=1, hours=12)
    due = set(service.get_due_cards(owner, as_of))
    expected = {s.card_id for s in store.schedules_for(owner) if s.next_review_at <= as_of}
    assert due == expected


def test_due_cards_is_lazy(service, owner):
    iterator = service.get_due_cards(owner, NOW)
    assert iter(iterator) is iterator


def test_due_cards_excludes_orphaned(service, store, owner, clock):
    card_id = uuid.uuid4()
    feed = CardFeed(store, params=SchedulerParams(), clock=clock)
    feed.card_created(owner, card_id)
    feed.card_deleted(card_id)
    assert list(service.get_due_cards(owner, NOW + timedelta(days=1))) == []


def test_due_cards_rejects_naive_timestamp(service, owner):
    with pytest.raises(InvalidInput):
        service.get_due_cards(owner, datetime(2026, 3, 1))


@pytest.mark.parametrize("limit", [0, -3, True])
def test_due_cards_rejects_bad_limit(service, owner, limit):
    with pytest.raises(InvalidInput):
        service.get_due_cards(owner, NOW, limit=limit)


def test_preview_does_not_write(service, store, owner):
    card_id = uuid.uuid4()
    service.submit_review(card_id, Quality.PASS, "k", owner_id=owner)
    outcomes = service.preview(card_id)

    assert outcomes[Quality.FAIL].interval_days == 1
    assert outcomes[Quality.PASS].interval_days == 6
    assert service.peek_schedule(card_id).version == 1
    assert len(store.events(card_id)) == 1


def test_same_key_race_replays_winner(owner):
    """Two submissions with one key race; the loser returns the winner's result."""
    store = RacingStore()
    service = ReviewService(store, params=SchedulerParams(), clock=Clock())
    card_id = uuid.uuid4()

    winner = {}
    store.before_commit = lambda: winner.update(
        outcome=service.submit_review(card_id, Quality.FAIL, "shared", owner_id=owner)
    )
    loser = service.submit_review(card_id, Quality.PERFECT, "shared", owner_id=owner)

    assert winner["outcome"].replayed is False
    assert loser.replayed is True
    assert loser.schedule == winner["outcome"].schedule
    assert loser.quality == Quality.FAIL
    assert len(store.events(card_id)) == 1
    assert service.peek_schedule(card_id).version == 1


def test_storage_failure_propagates_without_retry(owner):
    store = UnavailableStore()
    service = ReviewService(store, params=SchedulerParams(max_write_attempts=3), clock=Clock())
    card_id = uuid.uuid4()

    with pytest.raises(StorageUnavailable):
        service.submit_review(card_id, Quality.PASS, "k", owner_id=owner)
    assert store.attempts == 1
    assert store.events(card_id) == []
    assert store.get(card_id).version == 0


def test_replay_reports_recorded_quality(service, owner):
    card_id = uuid.uuid4()
    service.submit_review(card_id, Quality.BLACKOUT, "k", owner_id=owner)
    replay = service.submit_review(card_id, Quality.PERFECT, "k", owner_id=owner)

    assert replay.replayed is True
    assert replay.quality == Quality.BLACKOUT
    assert replay.schedule.repetitions == 0


def test_duplicate_key_on_write_falls_back_to_replay(owner):
    store = DuplicateKeyStore()
    service = ReviewService(store, params=SchedulerParams(), clock=Clock())
    card_id = uuid.uuid4()

    winner = {}
    store.before_commit = lambda: winner.update(
        outcome=service.submit_review(card_id, Quality.GOOD, "shared", owner_id=owner)
    )
    loser = service.submit_review(card_id, Quality.GOOD, "shared", owner_id=owner)

    assert loser.replayed is True
    assert loser.schedule == winner["outcome"].schedule
    assert len(store.events(card_id)) == 1

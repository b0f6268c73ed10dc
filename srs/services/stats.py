from dataclasses import dataclass

from django.utils import timezone

from ..config import SchedulerParams
from ..utils.time import consecutive_days, day_start, ensure_aware
from .reviews import parse_card_id


@dataclass(frozen=True)
class StudyStats:
    total_cards: int
    due_now: int
    reviewed_today: int
    average_ease_factor: float
    mastered_cards: int
    streak_days: int


@dataclass(frozen=True)
class DeckProgress:
    total: int
    new: int
    learning: int
    reviewing: int
    mastered: int


class StudyStatsService:
    def __init__(self, store, params=None, clock=None):
        self.store = store
        self.params = params or SchedulerParams.from_settings()
        self.clock = clock or timezone.now

    def study_stats(self, owner_id, as_of=None) -> StudyStats:
        owner_id = parse_card_id(owner_id, field="owner_id")
        as_of = ensure_aware(as_of, field="as_of") if as_of is not None else self.clock()
        schedules = list(self.store.schedules_for(owner_id))

        total = len(schedules)
        if total:
            average = round(sum(s.ease_factor for s in schedules) / total, 2)
        else:
            average = self.params.default_ease_factor

        today = day_start(as_of)
        review_days = set()
        reviewed_today = 0
        for event in self.store.events_for(owner_id):
            if event.reviewed_at > as_of:
                continue
            review_days.add(timezone.localtime(event.reviewed_at).date())
            if event.reviewed_at >= today:
                reviewed_today += 1

        return StudyStats(
            total_cards=total,
            due_now=sum(1 for s in schedules if s.is_due(as_of)),
            reviewed_today=reviewed_today,
            average_ease_factor=average,
            mastered_cards=sum(1 for s in schedules if s.interval_days >= self.params.mastered_interval_days),
            streak_days=consecutive_days(review_days, today.date()),
        )

    def progress(self, owner_id) -> DeckProgress:
        owner_id = parse_card_id(owner_id, field="owner_id")
        mastered_at = self.params.mastered_interval_days
        counts = {"new": 0, "learning": 0, "reviewing": 0, "mastered": 0}
        for s in self.store.schedules_for(owner_id):
            if s.interval_days >= mastered_at:
                counts["mastered"] += 1
            elif s.repetitions == 0:
                counts["new"] += 1
            elif s.repetitions < 3:
                counts["learning"] += 1
            else:
                counts["reviewing"] += 1
        return DeckProgress(total=sum(counts.values()), **counts)

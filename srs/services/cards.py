import structlog
from django.utils import timezone

from ..config import SchedulerParams
from ..domain.legacy import schedule_from_legacy
from ..domain.state import CardSchedule
from ..exceptions import NotFound
from ..utils.time import ensure_aware
from .reviews import parse_card_id

logger = structlog.get_logger()


class CardFeed:
    """Applies card created/deleted events coming from the card-content side."""

    def __init__(self, store, params=None, clock=None):
        self.store = store
        self.params = params or SchedulerParams.from_settings()
        self.clock = clock or timezone.now

    def card_created(self, owner_id, card_id, legacy=None):
        owner_id = parse_card_id(owner_id, field="owner_id")
        card_id = parse_card_id(card_id)
        now = self.clock()

        if legacy:
            next_review = legacy.get("next_review")
            if next_review is not None:
                next_review = ensure_aware(next_review, field="next_review")
            schedule = schedule_from_legacy(card_id, owner_id, legacy.get("level", 0), next_review, now, self.params)
        else:
            schedule = CardSchedule.initial(card_id, owner_id, now, self.params.default_ease_factor)

        stored, created = self.store.ensure(schedule)
        logger.info(
            "card_registered" if created else "card_already_registered",
            card_id=str(card_id),
            owner_id=str(owner_id),
            legacy=bool(legacy),
        )
        return stored, created

    def card_deleted(self, card_id):
        card_id = parse_card_id(card_id)
        if not self.store.mark_orphaned(card_id, self.clock()):
            raise NotFound(f"no schedule for card {card_id}")
        logger.info("card_orphaned", card_id=str(card_id))

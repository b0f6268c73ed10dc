from django.utils import timezone
from rest_framework import status, views
from rest_framework.response import Response
import structlog

from ..data.repos import DjangoScheduleStore
from ..domain.enums import QUALITY_LABELS, Quality
from ..services.cards import CardFeed
from ..services.reviews import ReviewService
from ..services.stats import StudyStatsService
from .serializers import (
    CardCreatedSerializer,
    DeckProgressSerializer,
    DueQuerySerializer,
    ReviewEventSerializer,
    ReviewInSerializer,
    ScheduleSerializer,
    StudyStatsSerializer,
)

logger = structlog.get_logger()


class SchedulerView(views.APIView):
    store_class = DjangoScheduleStore

    def review_service(self):
        return ReviewService(self.store_class())


class ReviewView(SchedulerView):
    def post(self, request):
        s = ReviewInSerializer(data=request.data)
        s.is_valid(raise_exception=True)

        user_id = s.validated_data["user_id"]
        card_id = s.validated_data["card_id"]
        quality = s.validated_data["quality"]
        idem = s.validated_data["idempotency_key"]

        outcome = self.review_service().submit_review(card_id, quality, idem, owner_id=user_id)
        schedule = outcome.schedule
        status_code = status.HTTP_200_OK if outcome.replayed else status.HTTP_201_CREATED

        logger.info(
            "review_api_response",
            user_id=str(user_id),
            card_id=str(card_id),
            quality=quality,
            idempotent=outcome.replayed,
            interval_days=schedule.interval_days,
            next_review_utc=schedule.next_review_at.isoformat(),
            status=status_code,
        )

        return Response(
            {
                **ScheduleSerializer(schedule).data,
                "quality_label": QUALITY_LABELS[Quality(outcome.quality)],
                "idempotent": outcome.replayed,
            },
            status=status_code,
        )


class DueCardsView(SchedulerView):
    def get(self, request, user_id):
        qs = DueQuerySerializer(data=request.query_params)
        qs.is_valid(raise_exception=True)
        until = qs.validated_data.get("until") or timezone.now()
        limit = qs.validated_data.get("limit")

        results = [str(card_id) for card_id in self.review_service().get_due_cards(user_id, until, limit=limit)]

        logger.info(
            "due_cards_api_response",
            user_id=str(user_id),
            until_utc=until.isoformat(),
            card_count=len(results),
        )

        return Response(
            {
                "user_id": str(user_id),
                "until_utc": until.isoformat(),
                "card_ids": results,
            }
        )


class CardScheduleView(SchedulerView):
    def get(self, request, card_id):
        schedule = self.review_service().peek_schedule(card_id)
        return Response(ScheduleSerializer(schedule).data)


class CardHistoryView(SchedulerView):
    def get(self, request, card_id):
        events = self.review_service().review_history(card_id)
        return Response({"card_id": str(card_id), "reviews": ReviewEventSerializer(events, many=True).data})


class CardPreviewView(SchedulerView):
    def get(self, request, card_id):
        outcomes = self.review_service().preview(card_id)
        return Response(
            {
                "card_id": str(card_id),
                "outcomes": [
                    {
                        "quality": int(q),
                        "quality_label": QUALITY_LABELS[q],
                        "interval_days": s.interval_days,
                        "ease_factor": s.ease_factor,
                        "next_review_at": s.next_review_at.isoformat(),
                    }
                    for q, s in outcomes.items()
                ],
            }
        )


class CardsView(SchedulerView):
    def post(self, request):
        s = CardCreatedSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        legacy = None
        if "legacy_level" in data:
            legacy = {"level": data["legacy_level"], "next_review": data.get("legacy_next_review")}

        schedule, created = CardFeed(self.store_class()).card_created(data["user_id"], data["card_id"], legacy=legacy)
        return Response(
            ScheduleSerializer(schedule).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )


class CardDetailView(SchedulerView):
    def delete(self, request, card_id):
        CardFeed(self.store_class()).card_deleted(card_id)
        return Response(status=status.HTTP_204_NO_CONTENT)


class StudyStatsView(SchedulerView):
    def get(self, request, user_id):
        stats = StudyStatsService(self.store_class()).study_stats(user_id)
        return Response(StudyStatsSerializer(stats).data)


class ProgressView(SchedulerView):
    def get(self, request, user_id):
        progress = StudyStatsService(self.store_class()).progress(user_id)
        return Response(DeckProgressSerializer(progress).data)

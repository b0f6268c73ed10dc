from rest_framework import serializers

from ..domain.enums import QUALITY_LABELS, Quality
from ..services.reviews import MAX_IDEMPOTENCY_KEY_LENGTH


class ReviewInSerializer(serializers.Serializer):
    user_id = serializers.UUIDField()
    card_id = serializers.UUIDField()
    # range is enforced by Quality.coerce so the error carries the scheduler's code
    quality = serializers.IntegerField()
    idempotency_key = serializers.CharField(max_length=MAX_IDEMPOTENCY_KEY_LENGTH)


class DueQuerySerializer(serializers.Serializer):
    until = serializers.DateTimeField(required=False)  # ISO-8601
    limit = serializers.IntegerField(required=False, min_value=1, max_value=500)


class CardCreatedSerializer(serializers.Serializer):
    user_id = serializers.UUIDField()
    card_id = serializers.UUIDField()
    legacy_level = serializers.IntegerField(required=False, min_value=0)
    legacy_next_review = serializers.DateTimeField(required=False)


class ScheduleSerializer(serializers.Serializer):
    card_id = serializers.UUIDField()
    owner_id = serializers.UUIDField()
    repetitions = serializers.IntegerField()
    ease_factor = serializers.FloatField()
    interval_days = serializers.IntegerField()
    next_review_at = serializers.DateTimeField()
    last_reviewed_at = serializers.DateTimeField(allow_null=True)
    version = serializers.IntegerField()


class ReviewEventSerializer(serializers.Serializer):
    quality = serializers.IntegerField()
    quality_label = serializers.SerializerMethodField()
    idempotency_key = serializers.CharField()
    reviewed_at = serializers.DateTimeField()
    resulting_interval_days = serializers.IntegerField()
    resulting_ease_factor = serializers.FloatField()
    next_review_at = serializers.DateTimeField()

    def get_quality_label(self, event):
        return QUALITY_LABELS[Quality(event.quality)]


class StudyStatsSerializer(serializers.Serializer):
    total_cards = serializers.IntegerField()
    due_now = serializers.IntegerField()
    reviewed_today = serializers.IntegerField()
    average_ease_factor = serializers.FloatField()
    mastered_cards = serializers.IntegerField()
    streak_days = serializers.IntegerField()


class DeckProgressSerializer(serializers.Serializer):
    total = serializers.IntegerField()
    new = serializers.IntegerField()
    learning = serializers.IntegerField()
    reviewing = serializers.IntegerField()
    mastered = serializers.IntegerField()

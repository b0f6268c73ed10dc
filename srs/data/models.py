from django.db import models
from django.utils import timezone

from ..config import DEFAULT_EASE_FACTOR


class ScheduleEntry(models.Model):
    owner_id = models.UUIDField()
    card_id = models.UUIDField(unique=True)
    repetitions = models.PositiveIntegerField(default=0)
    ease_factor = models.FloatField(default=DEFAULT_EASE_FACTOR)
    interval_days = models.PositiveIntegerField(default=0)
    next_review_at = models.DateTimeField(default=timezone.now)  # UTC
    last_reviewed_at = models.DateTimeField(null=True, blank=True)
    version = models.PositiveBigIntegerField(default=0)
    orphaned_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        indexes = [
            models.Index(fields=["owner_id", "next_review_at", "card_id"], name="srs_sched_owner_due_idx"),
        ]


class ReviewLog(models.Model):
    owner_id = models.UUIDField()
    card_id = models.UUIDField()
    quality = models.SmallIntegerField()
    idempotency_key = models.CharField(max_length=64)
    reviewed_at = models.DateTimeField()
    next_review_at = models.DateTimeField()
    resulting_repetitions = models.PositiveIntegerField()
    resulting_interval_days = models.PositiveIntegerField()
    resulting_ease_factor = models.FloatField()
    resulting_version = models.PositiveBigIntegerField()
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        unique_together = (("card_id", "idempotency_key"),)
        indexes = [
            models.Index(fields=["card_id", "reviewed_at"], name="srs_log_card_time_idx"),
            models.Index(fields=["owner_id", "reviewed_at"], name="srs_log_owner_time_idx"),
        ]

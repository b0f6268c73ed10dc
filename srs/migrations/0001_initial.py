import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="ScheduleEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("owner_id", models.UUIDField()),
                ("card_id", models.UUIDField(unique=True)),
                ("repetitions", models.PositiveIntegerField(default=0)),
                ("ease_factor", models.FloatField(default=2.5)),
                ("interval_days", models.PositiveIntegerField(default=0)),
                ("next_review_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("last_reviewed_at", models.DateTimeField(blank=True, null=True)),
                ("version", models.PositiveBigIntegerField(default=0)),
                ("orphaned_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={
                "indexes": [
                    models.Index(fields=["owner_id", "next_review_at", "card_id"], name="srs_sched_owner_due_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ReviewLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("owner_id", models.UUIDField()),
                ("card_id", models.UUIDField()),
                ("quality", models.SmallIntegerField()),
                ("idempotency_key", models.CharField(max_length=64)),
                ("reviewed_at", models.DateTimeField()),
                ("next_review_at", models.DateTimeField()),
                ("resulting_repetitions", models.PositiveIntegerField()),
                ("resulting_interval_days", models.PositiveIntegerField()),
                ("resulting_ease_factor", models.FloatField()),
                ("resulting_version", models.PositiveBigIntegerField()),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={
                "indexes": [
                    models.Index(fields=["card_id", "reviewed_at"], name="srs_log_card_time_idx"),
                    models.Index(fields=["owner_id", "reviewed_at"], name="srs_log_owner_time_idx"),
                ],
                "unique_together": {("card_id", "idempotency_key")},
            },
        ),
    ]

import json

from django.core.management.base import BaseCommand, CommandError
from django.utils.dateparse import parse_datetime

from ...data.repos import DjangoScheduleStore
from ...exceptions import InvalidInput, NotFound
from ...services.cards import CardFeed


class Command(BaseCommand):
    help = "Apply a card-identity feed (JSON list of created/deleted events) to the schedule store"

    def add_arguments(self, parser):
        parser.add_argument("--file", required=True, help="JSON file with the feed events")

    def handle(self, *args, **options):
        file_name = options["file"]
        try:
            with open(file_name) as json_file:
                events = json.load(json_file)
        except (OSError, ValueError) as e:
            raise CommandError(f"Cannot read feed {file_name}: {e}")
        if not isinstance(events, list):
            raise CommandError("Feed must be a JSON list of events")

        feed = CardFeed(DjangoScheduleStore())
        created = orphaned = skipped = 0

        for i, event in enumerate(events):
            kind = event.get("event") if isinstance(event, dict) else None
            try:
                if kind == "created":
                    _, was_created = feed.card_created(event.get("user_id"), event.get("card_id"),
                                                       legacy=self._legacy(event))
                    created += int(was_created)
                    skipped += int(not was_created)
                elif kind == "deleted":
                    feed.card_deleted(event.get("card_id"))
                    orphaned += 1
                else:
                    raise InvalidInput(f"unknown event type {kind!r}")
            except (InvalidInput, NotFound) as e:
                skipped += 1
                self.stdout.write(self.style.WARNING(f"event {i}: skipped ({e.detail})"))

        self.stdout.write(
            self.style.SUCCESS(f"Feed applied: {created} created, {orphaned} orphaned, {skipped} skipped")
        )

    @staticmethod
    def _legacy(event):
        legacy = event.get("legacy")
        if not legacy:
            return None
        if not isinstance(legacy, dict):
            raise InvalidInput(f"legacy must be an object, got {legacy!r}")
        next_review = legacy.get("next_review")
        if next_review is not None and not isinstance(next_review, str):
            raise InvalidInput(f"legacy next_review must be an ISO-8601 string, got {next_review!r}")
        if next_review:
            parsed = parse_datetime(next_review)
            if parsed is None:
                raise InvalidInput(f"bad legacy next_review {next_review!r}")
            next_review = parsed
        return {"level": legacy.get("level", 0), "next_review": next_review}

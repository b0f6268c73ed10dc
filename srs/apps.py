from django.apps import AppConfig


class SrsConfig(AppConfig):
    name = "srs"
    verbose_name = "Spaced repetition scheduler"
    default_auto_field = "django.db.models.BigAutoField"

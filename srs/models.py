from .data.models import ReviewLog, ScheduleEntry  # noqa: F401

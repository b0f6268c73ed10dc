from dataclasses import dataclass, fields

MIN_EASE_FACTOR = 1.3
DEFAULT_EASE_FACTOR = 2.5
FAIL_EASE_PENALTY = 0.2
PASS_EASE_BONUS_PER_STEP = 0.05  # per quality level above the pass threshold
PASS_THRESHOLD = 3
FIRST_INTERVAL_DAYS = 1
SECOND_INTERVAL_DAYS = 6
RELEARN_INTERVAL_DAYS = 1
MAX_INTERVAL_DAYS = 36500
MASTERED_INTERVAL_DAYS = 21
MAX_WRITE_ATTEMPTS = 3
EASE_PRECISION = 4

# Offline ladder used by the old client-side scheduler, indexed by level.
LEGACY_LADDER_DAYS = (0, 1, 3, 7, 14, 30, 60)


@dataclass(frozen=True)
class SchedulerParams:
    min_ease_factor: float = MIN_EASE_FACTOR
    default_ease_factor: float = DEFAULT_EASE_FACTOR
    fail_ease_penalty: float = FAIL_EASE_PENALTY
    pass_ease_bonus_per_step: float = PASS_EASE_BONUS_PER_STEP
    pass_threshold: int = PASS_THRESHOLD
    first_interval_days: int = FIRST_INTERVAL_DAYS
    second_interval_days: int = SECOND_INTERVAL_DAYS
    relearn_interval_days: int = RELEARN_INTERVAL_DAYS
    max_interval_days: int = MAX_INTERVAL_DAYS
    mastered_interval_days: int = MASTERED_INTERVAL_DAYS
    max_write_attempts: int = MAX_WRITE_ATTEMPTS

    @classmethod
    def from_settings(cls):
        """Build params from ``settings.SRS_SCHEDULER``, ignoring unknown keys."""
        from django.conf import settings

        overrides = getattr(settings, "SRS_SCHEDULER", None) or {}
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in overrides.items() if k in known})


DEFAULT_PARAMS = SchedulerParams()

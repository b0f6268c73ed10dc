from enum import IntEnum

from ..exceptions import InvalidInput


class Quality(IntEnum):
    BLACKOUT = 0        # no recall at all
    WRONG = 1
    WRONG_FAMILIAR = 2  # wrong, but the answer felt familiar
    HARD = 3
    GOOD = 4
    PERFECT = 5

    # binary form used by the study UI
    FAIL = 0
    PASS = 4

    @classmethod
    def coerce(cls, value) -> "Quality":
        """Validate an untrusted quality signal; raises InvalidInput."""
        # bool is an int subclass; True must not sneak in as WRONG
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidInput(f"quality must be an integer 0-5, got {value!r}")
        try:
            return cls(value)
        except ValueError:
            raise InvalidInput(f"quality must be an integer 0-5, got {value!r}") from None


QUALITY_LABELS = {
    Quality.BLACKOUT: "blackout",
    Quality.WRONG: "wrong",
    Quality.WRONG_FAMILIAR: "wrong_familiar",
    Quality.HARD: "hard",
    Quality.GOOD: "good",
    Quality.PERFECT: "perfect",
}

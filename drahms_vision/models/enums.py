"""
Enumerations for the identification system.

These enums provide type safety and clear documentation of valid values.
"""

from enum import Enum
from typing import Optional


class Category(str, Enum):
    """Domain class used to select a provider subset."""
    BIRDS = "birds"
    INSECTS = "insects"
    PLANTS = "plants"
    ASTRONOMY = "astronomy"
    ANIMALS = "animals"
    GENERAL = "general"

    @classmethod
    def from_hint(cls, hint: Optional[str]) -> Optional["Category"]:
        """
        Resolve a request-time category hint.

        Returns None for "auto", empty or unknown hints; callers fall back
        to GENERAL in that case.
        """
        if not hint:
            return None
        try:
            return cls(hint.strip().lower())
        except ValueError:
            return None


class ProviderOutcome(str, Enum):
    """Tagged outcome of a single provider call."""
    SUCCESS = "success"
    TIMEOUT = "timeout"
    ERROR = "error"


class UnidentifiedReason(str, Enum):
    """Why an aggregation ended without a label."""
    BELOW_THRESHOLD = "below_threshold"
    NO_SUCCESSFUL_PROVIDERS = "no_successful_providers"
    NO_PROVIDERS_AVAILABLE = "no_providers_available"


class Season(str, Enum):
    SPRING = "spring"
    SUMMER = "summer"
    AUTUMN = "autumn"
    WINTER = "winter"


class TimeOfDay(str, Enum):
    MORNING = "morning"      # 05:00 - 11:59
    AFTERNOON = "afternoon"  # 12:00 - 16:59
    EVENING = "evening"      # 17:00 - 19:59
    NIGHT = "night"          # 20:00 - 04:59


class MoonPhase(str, Enum):
    NEW = "new"
    WAXING_CRESCENT = "waxing_crescent"
    FIRST_QUARTER = "first_quarter"
    WAXING_GIBBOUS = "waxing_gibbous"
    FULL = "full"
    WANING_GIBBOUS = "waning_gibbous"
    LAST_QUARTER = "last_quarter"
    WANING_CRESCENT = "waning_crescent"


class ConfidenceLevel(str, Enum):
    """Human-readable confidence levels for dashboard display."""
    VERY_HIGH = "very_high"      # >= 0.85
    HIGH = "high"                # >= 0.65
    MODERATE = "moderate"        # >= 0.45
    LOW = "low"                  # >= 0.25
    VERY_LOW = "very_low"        # < 0.25

    @classmethod
    def from_score(cls, score: float) -> "ConfidenceLevel":
        """Convert a numeric confidence score to a level."""
        if score >= 0.85:
            return cls.VERY_HIGH
        elif score >= 0.65:
            return cls.HIGH
        elif score >= 0.45:
            return cls.MODERATE
        elif score >= 0.25:
            return cls.LOW
        else:
            return cls.VERY_LOW

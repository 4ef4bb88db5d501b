"""Entry eligibility rules: participant/duration limits and age categories."""

import logging
from dataclasses import dataclass
from decimal import Decimal

from competitions.domain.errors import InvalidInputError
from competitions.domain.models import PerformanceType

logger = logging.getLogger(__name__)

MIN_DURATION_MINUTES = Decimal("0.5")


@dataclass(frozen=True)
class PerformanceLimits:
    min_participants: int
    max_participants: int
    max_minutes: Decimal


PERFORMANCE_LIMITS: dict[PerformanceType, PerformanceLimits] = {
    PerformanceType.SOLO: PerformanceLimits(1, 1, Decimal("2")),
    PerformanceType.DUET: PerformanceLimits(2, 2, Decimal("3")),
    PerformanceType.TRIO: PerformanceLimits(3, 3, Decimal("3")),
    PerformanceType.GROUP: PerformanceLimits(4, 30, Decimal("3.5")),
}

# (min age, max age) inclusive; None means unbounded.
AGE_CATEGORIES: dict[str, tuple[int | None, int | None]] = {
    "All Ages": (None, None),
    "All": (None, None),
    "4 & Under": (None, 4),
    "6 & Under": (None, 6),
    "7-9": (7, 9),
    "10-12": (10, 12),
    "13-14": (13, 14),
    "15-17": (15, 17),
    "18-24": (18, 24),
    "25-39": (25, 39),
    "40+": (40, 59),
    "60+": (60, None),
}


def _format_minutes(minutes: Decimal) -> str:
    whole = int(minutes)
    seconds = int((minutes - whole) * 60)
    return f"{whole}:{seconds:02d}"


def check_performance_limits(performance_type: PerformanceType, participant_count: int, duration: Decimal) -> None:
    """Raise InvalidInputError when the entry breaks participant or duration limits."""
    limits = PERFORMANCE_LIMITS[performance_type]
    if not limits.min_participants <= participant_count <= limits.max_participants:
        if limits.min_participants == limits.max_participants:
            allowed = str(limits.min_participants)
        else:
            allowed = f"{limits.min_participants}-{limits.max_participants}"
        raise InvalidInputError(f"{performance_type.value} requires {allowed} participant(s)")

    if 0 < duration < MIN_DURATION_MINUTES:
        raise InvalidInputError(
            "Performance duration cannot be less than 30 seconds (0.5 minutes). "
            f"Your estimated duration is {duration} minutes."
        )
    if duration > limits.max_minutes:
        raise InvalidInputError(
            f"{performance_type.value} performances cannot exceed {_format_minutes(limits.max_minutes)} minutes. "
            f"Your estimated duration is {duration} minutes."
        )


def is_age_eligible(age: int | None, age_category: str) -> bool:
    """Unknown categories and unknown ages are allowed, for backward compatibility."""
    if age is None:
        return True
    try:
        low, high = AGE_CATEGORIES[age_category]
    except KeyError:
        logger.warning("Unknown age category: %s", age_category)
        return True
    if low is not None and age < low:
        return False
    return high is None or age <= high

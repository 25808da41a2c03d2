"""PostgreSQL-backed enum types for all ORM models.

Each StrEnum maps 1:1 to a PostgreSQL CREATE TYPE ... AS ENUM where it is
stored in a column; the rest are embedded in JSONB payloads and shared with
the pydantic schemas.
"""

from enum import StrEnum

# ── Measurement enums ───────────────────────────────────────────────────────


class MeasurementTypeEnum(StrEnum):
    """Why a growth sample was taken."""

    routine = "routine"
    transfer = "transfer"
    grading = "grading"
    harvest = "harvest"
    health_check = "health_check"
    spot_check = "spot_check"


class MeasurementMethodEnum(StrEnum):
    """How the individual weights were obtained."""

    manual_scale = "manual_scale"
    automated_scale = "automated_scale"
    image_analysis = "image_analysis"
    sonar = "sonar"
    estimated = "estimated"


class GrowthPerformanceEnum(StrEnum):
    """Five-level rating shared by growth, FCR and the batch performance index."""

    excellent = "excellent"
    good = "good"
    average = "average"
    below_average = "below_average"
    poor = "poor"


class FeedingStatusEnum(StrEnum):
    """Gut state of the animals at sampling time."""

    fed = "fed"
    fasted_12h = "fasted_12h"
    fasted_24h = "fasted_24h"
    unknown = "unknown"


# ── Derived-analysis enums (JSONB only) ─────────────────────────────────────


class FCRTrendEnum(StrEnum):
    """Direction of period FCR over recent measurements (falling FCR improves)."""

    improving = "improving"
    stable = "stable"
    declining = "declining"


class ActionPriorityEnum(StrEnum):
    high = "high"
    medium = "medium"
    low = "low"


class ActionTypeEnum(StrEnum):
    feeding = "feeding"
    health = "health"
    environment = "environment"
    grading = "grading"
    other = "other"


class CVTrendEnum(StrEnum):
    """Size-uniformity trend: a falling CV means a more uniform population."""

    improving = "improving"
    stable = "stable"
    worsening = "worsening"


class GrowthDirectionEnum(StrEnum):
    accelerating = "accelerating"
    steady = "steady"
    decelerating = "decelerating"

"""ORM model registry. Importing this package registers every table on ``Base.metadata``.

``alembic/env.py`` imports ``Base`` from here rather than from ``base.py`` so
that autogenerate sees the batch, feeding and growth tables.
"""

from app.models.base import (
    Base,
    LedgerEntryMixin,
    TenantMixin,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
)
from app.models.batch import Batch, Species
from app.models.feeding import FeedingRecord
from app.models.growth import GrowthMeasurementRecord

__all__ = [
    "Base",
    "Batch",
    "FeedingRecord",
    "GrowthMeasurementRecord",
    "LedgerEntryMixin",
    "Species",
    "TenantMixin",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
]

"""Feeding ledger ORM model.

Append-only: one row per feeding event. The growth services only ever sum
``actual_amount_kg`` over a date range.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TenantMixin, LedgerEntryMixin


class FeedingRecord(Base, LedgerEntryMixin, TenantMixin):
    """Feed delivered to a batch at one feeding."""

    __tablename__ = "feeding_records"
    __table_args__ = (
        Index("ix_feeding_records_batch_date", "tenant_id", "batch_id", "feeding_date"),
    )

    batch_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("batches.id", ondelete="CASCADE"),
        nullable=False,
    )
    feeding_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    planned_amount_kg: Mapped[float | None] = mapped_column(Float, nullable=True)
    actual_amount_kg: Mapped[float] = mapped_column(Float, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<FeedingRecord id={self.id} batch={self.batch_id} "
            f"date={self.feeding_date} kg={self.actual_amount_kg}>"
        )

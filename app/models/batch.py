"""Species and Batch ORM models: the batch registry's backing tables.

The growth services only read these rows, with one exception: applying a
measured sample writes the batch's current average weight, biomass and
last-measured timestamp.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer, String, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TenantMixin, TimestampMixin, UUIDPrimaryKeyMixin

# ═══════════════════════════════════════════════════════════════════════════
# Species
# ═══════════════════════════════════════════════════════════════════════════


class Species(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Farmed species reference: growth and feed-conversion targets."""

    __tablename__ = "species"

    code: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    daily_growth_g: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=0.0,
        server_default=text("0"),
    )
    target_fcr: Mapped[float | None] = mapped_column(Float, nullable=True)
    avg_harvest_weight_g: Mapped[float | None] = mapped_column(Float, nullable=True)

    def __repr__(self) -> str:
        return f"<Species id={self.id} code={self.code!r}>"


# ═══════════════════════════════════════════════════════════════════════════
# Batch
# ═══════════════════════════════════════════════════════════════════════════


class Batch(Base, UUIDPrimaryKeyMixin, TimestampMixin, TenantMixin):
    """A cohort of animals stocked together and grown to harvest."""

    __tablename__ = "batches"
    __table_args__ = (Index("ix_batches_tenant_stocked", "tenant_id", "stocked_at"),)

    species_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("species.id", ondelete="RESTRICT"),
        nullable=False,
    )
    batch_code: Mapped[str] = mapped_column(String(64), nullable=False)
    initial_count: Mapped[int] = mapped_column(Integer, nullable=False)
    initial_avg_weight_g: Mapped[float] = mapped_column(Float, nullable=False)
    current_count: Mapped[int] = mapped_column(Integer, nullable=False)
    current_avg_weight_g: Mapped[float] = mapped_column(Float, nullable=False)
    current_biomass_kg: Mapped[float | None] = mapped_column(Float, nullable=True)
    total_mortality: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )
    stocked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expected_harvest_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_measured_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    species: Mapped[Species] = relationship(lazy="selectin")

    def __repr__(self) -> str:
        return f"<Batch id={self.id} code={self.batch_code!r} tenant={self.tenant_id}>"

"""GrowthMeasurementRecord ORM model: append-only growth sample history.

The embedded analyses (statistics, growth comparison, FCR analysis,
suggested actions) are stored as JSONB exactly as the pydantic schemas in
``app.schemas.growth`` dump them.  ``estimated_biomass_kg`` is denormalised
into a column because FCR queries order and aggregate on it.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, Float, ForeignKey, Index, Integer, Text, text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TenantMixin, TimestampMixin, UUIDPrimaryKeyMixin
from app.models.enums import (
    GrowthPerformanceEnum,
    MeasurementMethodEnum,
    MeasurementTypeEnum,
)


class GrowthMeasurementRecord(Base, UUIDPrimaryKeyMixin, TimestampMixin, TenantMixin):
    """One sampling event of a batch and everything derived from it."""

    __tablename__ = "growth_measurements"
    __table_args__ = (
        Index("ix_growth_measurements_batch_date", "tenant_id", "batch_id", "measurement_date"),
        Index("ix_growth_measurements_batch_type", "batch_id", "measurement_type"),
    )

    batch_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("batches.id", ondelete="CASCADE"),
        nullable=False,
    )
    tank_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    pond_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    measurement_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    measurement_type: Mapped[MeasurementTypeEnum] = mapped_column(
        Enum(
            MeasurementTypeEnum,
            name="measurement_type",
            create_constraint=False,
            native_enum=True,
        ),
        nullable=False,
        default=MeasurementTypeEnum.routine,
    )
    measurement_method: Mapped[MeasurementMethodEnum] = mapped_column(
        Enum(
            MeasurementMethodEnum,
            name="measurement_method",
            create_constraint=False,
            native_enum=True,
        ),
        nullable=False,
        default=MeasurementMethodEnum.manual_scale,
    )

    # ── Sample ───────────────────────────────────────────────────────────
    sample_size: Mapped[int] = mapped_column(Integer, nullable=False)
    population_size: Mapped[int] = mapped_column(Integer, nullable=False)
    sample_percent: Mapped[float] = mapped_column(Float, nullable=False)
    individual_measurements: Mapped[list] = mapped_column(JSONB, nullable=False)
    statistics: Mapped[dict] = mapped_column(JSONB, nullable=False)

    # ── Quick-access aggregates ──────────────────────────────────────────
    average_weight: Mapped[float] = mapped_column(Float, nullable=False)
    average_length: Mapped[float | None] = mapped_column(Float, nullable=True)
    weight_cv: Mapped[float] = mapped_column(Float, nullable=False)
    condition_factor: Mapped[float | None] = mapped_column(Float, nullable=True)
    estimated_biomass_kg: Mapped[float] = mapped_column(Float, nullable=False)
    previous_biomass_kg: Mapped[float | None] = mapped_column(Float, nullable=True)
    biomass_gain_kg: Mapped[float | None] = mapped_column(Float, nullable=True)

    # ── Derived analyses ─────────────────────────────────────────────────
    growth_comparison: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    performance: Mapped[GrowthPerformanceEnum | None] = mapped_column(
        Enum(
            GrowthPerformanceEnum,
            name="growth_performance",
            create_constraint=False,
            native_enum=True,
        ),
        nullable=True,
    )
    fcr_analysis: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    suggested_actions: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    conditions: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    # ── Verification & processing ────────────────────────────────────────
    is_verified: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    verified_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    measured_by: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    update_batch_weight: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=text("true")
    )
    is_processed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )

    def __repr__(self) -> str:
        return (
            f"<GrowthMeasurementRecord id={self.id} batch={self.batch_id} "
            f"date={self.measurement_date}>"
        )

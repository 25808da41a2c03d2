"""growth_schema

Revision ID: 3c9e1f7a2b54
Revises:
Create Date: 2026-10-18 00:00:00.000000

Creates the species / batch registry, the feeding ledger and the growth
measurement history, plus the 3 PostgreSQL enum types used by
growth_measurements.  Expects the uuid-ossp extension to be enabled.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "3c9e1f7a2b54"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

# ── Enum type names (PostgreSQL CREATE TYPE) ────────────────────────────────
ENUM_MEASUREMENT_TYPE = postgresql.ENUM(
    "routine",
    "transfer",
    "grading",
    "harvest",
    "health_check",
    "spot_check",
    name="measurement_type",
    create_type=False,
)
ENUM_MEASUREMENT_METHOD = postgresql.ENUM(
    "manual_scale",
    "automated_scale",
    "image_analysis",
    "sonar",
    "estimated",
    name="measurement_method",
    create_type=False,
)
ENUM_GROWTH_PERFORMANCE = postgresql.ENUM(
    "excellent",
    "good",
    "average",
    "below_average",
    "poor",
    name="growth_performance",
    create_type=False,
)


def _uuid_pk() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        server_default=sa.text("uuid_generate_v4()"),
        nullable=False,
    )


def _audit_columns() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    # ── 1. Create enum types ────────────────────────────────────────────
    ENUM_MEASUREMENT_TYPE.create(op.get_bind(), checkfirst=True)
    ENUM_MEASUREMENT_METHOD.create(op.get_bind(), checkfirst=True)
    ENUM_GROWTH_PERFORMANCE.create(op.get_bind(), checkfirst=True)

    # ── 2. Batch registry ───────────────────────────────────────────────

    # species
    op.create_table(
        "species",
        _uuid_pk(),
        sa.Column("code", sa.String(100), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column(
            "daily_growth_g",
            sa.Float(),
            server_default=sa.text("0"),
            nullable=False,
        ),
        sa.Column("target_fcr", sa.Float(), nullable=True),
        sa.Column("avg_harvest_weight_g", sa.Float(), nullable=True),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code"),
    )

    # batches
    op.create_table(
        "batches",
        _uuid_pk(),
        sa.Column("tenant_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("species_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("batch_code", sa.String(64), nullable=False),
        sa.Column("initial_count", sa.Integer(), nullable=False),
        sa.Column("initial_avg_weight_g", sa.Float(), nullable=False),
        sa.Column("current_count", sa.Integer(), nullable=False),
        sa.Column("current_avg_weight_g", sa.Float(), nullable=False),
        sa.Column("current_biomass_kg", sa.Float(), nullable=True),
        sa.Column(
            "total_mortality",
            sa.Integer(),
            server_default=sa.text("0"),
            nullable=False,
        ),
        sa.Column("stocked_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expected_harvest_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_measured_at", sa.DateTime(timezone=True), nullable=True),
        *_audit_columns(),
        sa.ForeignKeyConstraint(["species_id"], ["species.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_batches_tenant_id", "batches", ["tenant_id"])
    op.create_index("ix_batches_tenant_stocked", "batches", ["tenant_id", "stocked_at"])

    # ── 3. Feeding ledger ───────────────────────────────────────────────
    op.create_table(
        "feeding_records",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column(
            "recorded_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("tenant_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("batch_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("feeding_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("planned_amount_kg", sa.Float(), nullable=True),
        sa.Column("actual_amount_kg", sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(["batch_id"], ["batches.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_feeding_records_tenant_id", "feeding_records", ["tenant_id"])
    op.create_index(
        "ix_feeding_records_batch_date",
        "feeding_records",
        ["tenant_id", "batch_id", "feeding_date"],
    )

    # ── 4. Growth measurement history ───────────────────────────────────
    op.create_table(
        "growth_measurements",
        _uuid_pk(),
        sa.Column("tenant_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("batch_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("tank_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("pond_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("measurement_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("measurement_type", ENUM_MEASUREMENT_TYPE, nullable=False),
        sa.Column("measurement_method", ENUM_MEASUREMENT_METHOD, nullable=False),
        sa.Column("sample_size", sa.Integer(), nullable=False),
        sa.Column("population_size", sa.Integer(), nullable=False),
        sa.Column("sample_percent", sa.Float(), nullable=False),
        sa.Column("individual_measurements", postgresql.JSONB(), nullable=False),
        sa.Column("statistics", postgresql.JSONB(), nullable=False),
        sa.Column("average_weight", sa.Float(), nullable=False),
        sa.Column("average_length", sa.Float(), nullable=True),
        sa.Column("weight_cv", sa.Float(), nullable=False),
        sa.Column("condition_factor", sa.Float(), nullable=True),
        sa.Column("estimated_biomass_kg", sa.Float(), nullable=False),
        sa.Column("previous_biomass_kg", sa.Float(), nullable=True),
        sa.Column("biomass_gain_kg", sa.Float(), nullable=True),
        sa.Column("growth_comparison", postgresql.JSONB(), nullable=True),
        sa.Column("performance", ENUM_GROWTH_PERFORMANCE, nullable=True),
        sa.Column("fcr_analysis", postgresql.JSONB(), nullable=True),
        sa.Column("suggested_actions", postgresql.JSONB(), nullable=True),
        sa.Column("conditions", postgresql.JSONB(), nullable=True),
        sa.Column(
            "is_verified",
            sa.Boolean(),
            server_default=sa.text("false"),
            nullable=False,
        ),
        sa.Column("verified_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("measured_by", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "update_batch_weight",
            sa.Boolean(),
            server_default=sa.text("true"),
            nullable=False,
        ),
        sa.Column(
            "is_processed",
            sa.Boolean(),
            server_default=sa.text("false"),
            nullable=False,
        ),
        *_audit_columns(),
        sa.ForeignKeyConstraint(["batch_id"], ["batches.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_growth_measurements_tenant_id", "growth_measurements", ["tenant_id"])
    op.create_index(
        "ix_growth_measurements_batch_date",
        "growth_measurements",
        ["tenant_id", "batch_id", "measurement_date"],
    )
    op.create_index(
        "ix_growth_measurements_batch_type",
        "growth_measurements",
        ["batch_id", "measurement_type"],
    )


def downgrade() -> None:
    # ── Drop tables in reverse dependency order ─────────────────────────
    op.drop_table("growth_measurements")
    op.drop_table("feeding_records")
    op.drop_table("batches")
    op.drop_table("species")

    # ── Drop enum types ─────────────────────────────────────────────────
    ENUM_GROWTH_PERFORMANCE.drop(op.get_bind(), checkfirst=True)
    ENUM_MEASUREMENT_METHOD.drop(op.get_bind(), checkfirst=True)
    ENUM_MEASUREMENT_TYPE.drop(op.get_bind(), checkfirst=True)

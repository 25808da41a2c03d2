"""Growth measurement history: append-only, ordered by measurement date."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import NotFoundError
from app.models.growth import GrowthMeasurementRecord
from app.schemas.growth import GrowthMeasurement

_JSON_FIELDS = (
	"individual_measurements",
	"statistics",
	"growth_comparison",
	"fcr_analysis",
	"suggested_actions",
	"conditions",
)

_SCALAR_FIELDS = (
	"tenant_id",
	"batch_id",
	"tank_id",
	"pond_id",
	"measurement_date",
	"measurement_type",
	"measurement_method",
	"sample_size",
	"population_size",
	"average_weight",
	"average_length",
	"weight_cv",
	"condition_factor",
	"previous_biomass_kg",
	"performance",
	"is_verified",
	"verified_by",
	"verified_at",
	"measured_by",
	"notes",
	"update_batch_weight",
	"is_processed",
)


class MeasurementStore(Protocol):
	async def list_measurements(
		self,
		batch_id: uuid.UUID,
		tenant_id: uuid.UUID,
		start: datetime | None = None,
		end: datetime | None = None,
	) -> list[GrowthMeasurement]:
		"""Measurements with ``start <= date <= end``, oldest first."""
		...

	async def recent_measurements(
		self,
		batch_id: uuid.UUID,
		tenant_id: uuid.UUID,
		limit: int,
	) -> list[GrowthMeasurement]:
		"""The ``limit`` most recent measurements, oldest first."""
		...

	async def latest_measurement(
		self,
		batch_id: uuid.UUID,
		tenant_id: uuid.UUID,
		as_of: datetime | None = None,
		strictly_before: bool = False,
	) -> GrowthMeasurement | None: ...

	async def get_measurement(self, measurement_id: uuid.UUID, tenant_id: uuid.UUID) -> GrowthMeasurement: ...

	async def add(self, measurement: GrowthMeasurement) -> GrowthMeasurement: ...

	async def update(self, measurement: GrowthMeasurement) -> GrowthMeasurement: ...


class SqlMeasurementStore:
	def __init__(self, db: AsyncSession):
		self.db = db

	async def list_measurements(
		self,
		batch_id: uuid.UUID,
		tenant_id: uuid.UUID,
		start: datetime | None = None,
		end: datetime | None = None,
	) -> list[GrowthMeasurement]:
		stmt = self._batch_query(batch_id, tenant_id)
		if start is not None:
			stmt = stmt.where(GrowthMeasurementRecord.measurement_date >= start)
		if end is not None:
			stmt = stmt.where(GrowthMeasurementRecord.measurement_date <= end)
		rows = await self.db.execute(stmt.order_by(GrowthMeasurementRecord.measurement_date.asc()))
		return [self.to_model(row) for row in rows.scalars().all()]

	async def recent_measurements(
		self,
		batch_id: uuid.UUID,
		tenant_id: uuid.UUID,
		limit: int,
	) -> list[GrowthMeasurement]:
		stmt = (
			self._batch_query(batch_id, tenant_id)
			.order_by(GrowthMeasurementRecord.measurement_date.desc())
			.limit(limit)
		)
		rows = await self.db.execute(stmt)
		return [self.to_model(row) for row in reversed(rows.scalars().all())]

	async def latest_measurement(
		self,
		batch_id: uuid.UUID,
		tenant_id: uuid.UUID,
		as_of: datetime | None = None,
		strictly_before: bool = False,
	) -> GrowthMeasurement | None:
		stmt = self._batch_query(batch_id, tenant_id)
		if as_of is not None:
			column = GrowthMeasurementRecord.measurement_date
			stmt = stmt.where(column < as_of if strictly_before else column <= as_of)
		stmt = stmt.order_by(GrowthMeasurementRecord.measurement_date.desc()).limit(1)
		row = await self.db.execute(stmt)
		record = row.scalar_one_or_none()
		return self.to_model(record) if record is not None else None

	async def get_measurement(self, measurement_id: uuid.UUID, tenant_id: uuid.UUID) -> GrowthMeasurement:
		return self.to_model(await self._require_record(measurement_id, tenant_id))

	async def add(self, measurement: GrowthMeasurement) -> GrowthMeasurement:
		record = GrowthMeasurementRecord(id=measurement.id, **self.to_columns(measurement))
		self.db.add(record)
		await self.db.flush()
		await self.db.refresh(record)
		return self.to_model(record)

	async def update(self, measurement: GrowthMeasurement) -> GrowthMeasurement:
		record = await self._require_record(measurement.id, measurement.tenant_id)
		for key, value in self.to_columns(measurement).items():
			setattr(record, key, value)
		await self.db.flush()
		return self.to_model(record)

	async def _require_record(self, measurement_id: uuid.UUID, tenant_id: uuid.UUID) -> GrowthMeasurementRecord:
		stmt = select(GrowthMeasurementRecord).where(
			GrowthMeasurementRecord.id == measurement_id,
			GrowthMeasurementRecord.tenant_id == tenant_id,
		)
		row = await self.db.execute(stmt)
		record = row.scalar_one_or_none()
		if record is None:
			raise NotFoundError(f"Growth measurement {measurement_id} not found")
		return record

	@staticmethod
	def _batch_query(batch_id: uuid.UUID, tenant_id: uuid.UUID) -> Any:
		return select(GrowthMeasurementRecord).where(
			GrowthMeasurementRecord.tenant_id == tenant_id,
			GrowthMeasurementRecord.batch_id == batch_id,
		)

	@staticmethod
	def to_columns(measurement: GrowthMeasurement) -> dict[str, Any]:
		payload = measurement.model_dump(mode="json")
		columns: dict[str, Any] = {key: getattr(measurement, key) for key in _SCALAR_FIELDS}
		columns.update({key: payload[key] for key in _JSON_FIELDS})
		columns["sample_percent"] = measurement.sample_percent
		columns["estimated_biomass_kg"] = measurement.estimated_biomass_kg
		columns["biomass_gain_kg"] = measurement.biomass_gain_kg
		return columns

	@staticmethod
	def to_model(record: GrowthMeasurementRecord) -> GrowthMeasurement:
		payload: dict[str, Any] = {key: getattr(record, key) for key in (*_SCALAR_FIELDS, *_JSON_FIELDS)}
		payload["id"] = record.id
		payload["created_at"] = record.created_at
		return GrowthMeasurement.model_validate(payload)

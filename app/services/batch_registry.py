"""Batch registry collaborator: read access to batches plus the weight write-back."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import NotFoundError
from app.models.batch import Batch
from app.schemas.batch import BatchProfile, SpeciesTargets


class BatchRegistry(Protocol):
	async def load_batch(self, batch_id: uuid.UUID, tenant_id: uuid.UUID) -> BatchProfile: ...

	async def apply_measured_weight(
		self,
		batch_id: uuid.UUID,
		tenant_id: uuid.UUID,
		avg_weight_g: float,
		biomass_kg: float,
		measured_at: datetime,
	) -> None: ...


class SqlBatchRegistry:
	"""Batch registry backed by the ``batches`` / ``species`` tables."""

	def __init__(self, db: AsyncSession):
		self.db = db

	async def load_batch(self, batch_id: uuid.UUID, tenant_id: uuid.UUID) -> BatchProfile:
		return self.to_profile(await self._require_batch(batch_id, tenant_id))

	async def apply_measured_weight(
		self,
		batch_id: uuid.UUID,
		tenant_id: uuid.UUID,
		avg_weight_g: float,
		biomass_kg: float,
		measured_at: datetime,
	) -> None:
		# a failed write-back rolls back to the savepoint, not the whole request
		async with self.db.begin_nested():
			batch = await self._require_batch(batch_id, tenant_id)
			batch.current_avg_weight_g = avg_weight_g
			batch.current_biomass_kg = biomass_kg
			batch.last_measured_at = measured_at
			await self.db.flush()

	async def _require_batch(self, batch_id: uuid.UUID, tenant_id: uuid.UUID) -> Batch:
		stmt = select(Batch).where(Batch.id == batch_id, Batch.tenant_id == tenant_id)
		row = await self.db.execute(stmt)
		batch = row.scalar_one_or_none()
		if batch is None:
			raise NotFoundError(f"Batch {batch_id} not found")
		return batch

	@staticmethod
	def to_profile(batch: Batch) -> BatchProfile:
		species = batch.species
		return BatchProfile(
			id=batch.id,
			tenant_id=batch.tenant_id,
			batch_code=batch.batch_code,
			initial_count=batch.initial_count,
			initial_avg_weight_g=batch.initial_avg_weight_g,
			current_avg_weight_g=batch.current_avg_weight_g,
			current_count=batch.current_count,
			total_mortality=batch.total_mortality,
			species=SpeciesTargets(
				species_code=species.code,
				name=species.name,
				daily_growth_g=species.daily_growth_g,
				target_fcr=species.target_fcr,
				avg_harvest_weight_g=species.avg_harvest_weight_g,
			),
			stocked_at=batch.stocked_at,
			expected_harvest_date=batch.expected_harvest_date,
			last_measured_at=batch.last_measured_at,
		)

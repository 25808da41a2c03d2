"""Shared pytest fixtures: async test client, in-memory collaborators, fake redis."""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from app.config import Settings
from app.database import get_db
from app.errors import NotFoundError
from app.main import app
from app.schemas.batch import BatchProfile, SpeciesTargets
from app.schemas.growth import (
	ConfidenceInterval,
	DispersionSummary,
	FCRAnalysis,
	GrowthMeasurement,
	IndividualObservation,
	StatisticalSummary,
)

STOCKED_AT = datetime(2026, 1, 1, tzinfo=UTC)


class FakeAsyncSession:
	def __init__(self) -> None:
		self.commit = AsyncMock()
		self.rollback = AsyncMock()
		self.close = AsyncMock()
		self.execute = AsyncMock()
		self.flush = AsyncMock()


class FakeRedis:
	def __init__(self) -> None:
		self.store: dict[str, str] = {}
		self.get = AsyncMock(side_effect=self._get)
		self.setex = AsyncMock(side_effect=self._setex)

	async def _get(self, key: str) -> str | None:
		return self.store.get(key)

	async def _setex(self, key: str, _ttl: int, value: str) -> bool:
		self.store[key] = value
		return True


class InMemoryBatchRegistry:
	def __init__(self, *batches: BatchProfile) -> None:
		self.batches = {(batch.tenant_id, batch.id): batch for batch in batches}
		self.applied: list[dict[str, Any]] = []
		self.fail_apply = False

	async def load_batch(self, batch_id: uuid.UUID, tenant_id: uuid.UUID) -> BatchProfile:
		batch = self.batches.get((tenant_id, batch_id))
		if batch is None:
			raise NotFoundError(f"Batch {batch_id} not found")
		return batch

	async def apply_measured_weight(
		self,
		batch_id: uuid.UUID,
		tenant_id: uuid.UUID,
		avg_weight_g: float,
		biomass_kg: float,
		measured_at: datetime,
	) -> None:
		if self.fail_apply:
			raise RuntimeError("batch registry unavailable")
		batch = await self.load_batch(batch_id, tenant_id)
		self.batches[(tenant_id, batch_id)] = batch.model_copy(
			update={"current_avg_weight_g": avg_weight_g, "last_measured_at": measured_at}
		)
		self.applied.append(
			{"batch_id": batch_id, "avg_weight_g": avg_weight_g, "biomass_kg": biomass_kg, "measured_at": measured_at}
		)


class InMemoryFeedingLedger:
	def __init__(self) -> None:
		self.entries: list[tuple[uuid.UUID, uuid.UUID, datetime, float]] = []

	def add(self, batch: BatchProfile, feeding_date: datetime, amount_kg: float) -> None:
		self.entries.append((batch.tenant_id, batch.id, feeding_date, amount_kg))

	async def sum_feed(
		self,
		batch_id: uuid.UUID,
		tenant_id: uuid.UUID,
		start: datetime | None = None,
		end: datetime | None = None,
	) -> float:
		return sum(
			amount
			for entry_tenant, entry_batch, feeding_date, amount in self.entries
			if entry_tenant == tenant_id
			and entry_batch == batch_id
			and (start is None or feeding_date >= start)
			and (end is None or feeding_date <= end)
		)


class InMemoryMeasurementStore:
	def __init__(self) -> None:
		self.items: dict[uuid.UUID, GrowthMeasurement] = {}

	def _for_batch(self, batch_id: uuid.UUID, tenant_id: uuid.UUID) -> list[GrowthMeasurement]:
		rows = [m for m in self.items.values() if m.batch_id == batch_id and m.tenant_id == tenant_id]
		return sorted(rows, key=lambda m: m.measurement_date)

	async def list_measurements(
		self,
		batch_id: uuid.UUID,
		tenant_id: uuid.UUID,
		start: datetime | None = None,
		end: datetime | None = None,
	) -> list[GrowthMeasurement]:
		return [
			m
			for m in self._for_batch(batch_id, tenant_id)
			if (start is None or m.measurement_date >= start) and (end is None or m.measurement_date <= end)
		]

	async def recent_measurements(self, batch_id: uuid.UUID, tenant_id: uuid.UUID, limit: int) -> list[GrowthMeasurement]:
		return self._for_batch(batch_id, tenant_id)[-limit:]

	async def latest_measurement(
		self,
		batch_id: uuid.UUID,
		tenant_id: uuid.UUID,
		as_of: datetime | None = None,
		strictly_before: bool = False,
	) -> GrowthMeasurement | None:
		rows = self._for_batch(batch_id, tenant_id)
		if as_of is not None:
			rows = [
				m for m in rows
				if (m.measurement_date < as_of if strictly_before else m.measurement_date <= as_of)
			]
		return rows[-1] if rows else None

	async def get_measurement(self, measurement_id: uuid.UUID, tenant_id: uuid.UUID) -> GrowthMeasurement:
		measurement = self.items.get(measurement_id)
		if measurement is None or measurement.tenant_id != tenant_id:
			raise NotFoundError(f"Growth measurement {measurement_id} not found")
		return measurement

	async def add(self, measurement: GrowthMeasurement) -> GrowthMeasurement:
		stored = measurement.model_copy(update={"created_at": measurement.created_at or datetime.now(UTC)})
		self.items[stored.id] = stored
		return stored

	async def update(self, measurement: GrowthMeasurement) -> GrowthMeasurement:
		await self.get_measurement(measurement.id, measurement.tenant_id)
		self.items[measurement.id] = measurement
		return measurement


@pytest.fixture
def settings() -> Settings:
	return Settings(growth_analysis_cache_ttl_seconds=900, default_target_fcr=1.5)


@pytest.fixture
def tenant_id() -> uuid.UUID:
	return uuid.UUID("11111111-1111-1111-1111-111111111111")


@pytest.fixture
def batch_factory(tenant_id: uuid.UUID) -> Callable[..., BatchProfile]:
	def build(**overrides: Any) -> BatchProfile:
		species = overrides.pop("species", None) or SpeciesTargets(
			species_code="sea_bass",
			name="European sea bass",
			daily_growth_g=1.0,
			target_fcr=1.5,
			avg_harvest_weight_g=400.0,
		)
		values: dict[str, Any] = {
			"id": uuid.uuid4(),
			"tenant_id": tenant_id,
			"batch_code": "SB-2026-01",
			"initial_count": 10_000,
			"initial_avg_weight_g": 20.0,
			"current_avg_weight_g": 20.0,
			"current_count": 10_000,
			"total_mortality": 0,
			"species": species,
			"stocked_at": STOCKED_AT,
		}
		values.update(overrides)
		return BatchProfile(**values)

	return build


@pytest.fixture
def measurement_factory() -> Callable[..., GrowthMeasurement]:
	"""Stored measurement with a flat weight summary; FCR fields only when given."""

	def build(
		batch: BatchProfile,
		day: int,
		average_weight: float,
		population_size: int = 10_000,
		weight_cv: float = 10.0,
		period_fcr: float | None = None,
		cumulative_fcr: float = 0.0,
	) -> GrowthMeasurement:
		weight = DispersionSummary(
			min=average_weight,
			max=average_weight,
			mean=average_weight,
			median=average_weight,
			std_dev=average_weight * weight_cv / 100,
			cv=weight_cv,
			confidence_interval=ConfidenceInterval(lower=average_weight, upper=average_weight),
		)
		fcr_analysis = None
		if period_fcr is not None:
			fcr_analysis = FCRAnalysis(period_fcr=period_fcr, cumulative_fcr=cumulative_fcr)
		return GrowthMeasurement(
			tenant_id=batch.tenant_id,
			batch_id=batch.id,
			measurement_date=STOCKED_AT + timedelta(days=day),
			sample_size=3,
			population_size=population_size,
			individual_measurements=[
				IndividualObservation(sample_number=n, weight_g=average_weight) for n in (1, 2, 3)
			],
			statistics=StatisticalSummary(weight=weight),
			average_weight=average_weight,
			weight_cv=weight_cv,
			fcr_analysis=fcr_analysis,
			measured_by=uuid.uuid4(),
		)

	return build


@pytest.fixture
def batch_registry() -> InMemoryBatchRegistry:
	return InMemoryBatchRegistry()


@pytest.fixture
def feeding_ledger() -> InMemoryFeedingLedger:
	return InMemoryFeedingLedger()


@pytest.fixture
def measurement_store() -> InMemoryMeasurementStore:
	return InMemoryMeasurementStore()


@pytest.fixture
def fake_redis() -> FakeRedis:
	"""Dict-backed fake redis with async get/setex mocks."""
	return FakeRedis()


@pytest.fixture
def fake_db_session() -> FakeAsyncSession:
	"""A lightweight async-session stub for dependency overrides in API tests."""
	return FakeAsyncSession()


@pytest.fixture
async def client(fake_db_session: FakeAsyncSession) -> AsyncGenerator[AsyncClient, None]:
	"""HTTPX async client with lifespan disabled and DB dependency mocked."""

	async def override_get_db() -> AsyncGenerator[Any, None]:
		yield fake_db_session

	app.dependency_overrides[get_db] = override_get_db
	original_lifespan = app.router.lifespan_context

	@asynccontextmanager
	async def noop_lifespan(_: Any) -> AsyncGenerator[None, None]:
		yield

	app.router.lifespan_context = noop_lifespan

	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://test") as test_client:
		yield test_client

	app.router.lifespan_context = original_lifespan
	app.dependency_overrides.clear()

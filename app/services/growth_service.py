"""Growth sample recording, verification and batch write-back.

``record_sample`` runs the derived-value pipeline over frozen snapshots:
statistics, growth comparison, performance rating, FCR analysis and
suggested actions each produce a new ``GrowthMeasurement`` via
``model_copy``. The sample is persisted once the pipeline has finished.

Callers must serialize ``record_sample`` and ``apply_to_batch`` per batch
(see ``app.services.batch_locks``): both read the latest measurement or the
batch and then write, and nothing here guards against an interleaving
writer.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings, get_settings
from app.engine.actions import suggest_actions
from app.engine.growth import compare_growth, days_between, rate_growth_performance
from app.engine.statistics import TQuantile, calculate_statistics, get_t_quantile
from app.errors import ValidationError
from app.schemas.batch import BatchProfile
from app.schemas.growth import GrowthMeasurement, RecordGrowthSampleRequest
from app.services.batch_registry import BatchRegistry, SqlBatchRegistry
from app.services.fcr_service import FCRCalculator
from app.services.feeding_ledger import FeedingLedger, SqlFeedingLedger
from app.services.measurement_store import MeasurementStore, SqlMeasurementStore

logger = structlog.get_logger("aquagrowth.growth")

MIN_QUALITY_RATING = 1
MAX_QUALITY_RATING = 5
DEFAULT_HISTORY_LIMIT = 50


class GrowthMeasurementService:
	def __init__(
		self,
		db: AsyncSession | None,
		batches: BatchRegistry | None = None,
		ledger: FeedingLedger | None = None,
		measurements: MeasurementStore | None = None,
		settings: Settings | None = None,
		quantile: TQuantile | None = None,
	):
		self.db = db
		self.settings = settings or get_settings()
		self.batches = batches or SqlBatchRegistry(db)
		self.ledger = ledger or SqlFeedingLedger(db)
		self.measurements = measurements or SqlMeasurementStore(db)
		self.quantile = quantile or get_t_quantile(self.settings.t_quantile_strategy)
		self.fcr = FCRCalculator(
			db,
			batches=self.batches,
			ledger=self.ledger,
			measurements=self.measurements,
			settings=self.settings,
		)

	async def record_sample(
		self,
		tenant_id: uuid.UUID,
		batch_id: uuid.UUID,
		payload: RecordGrowthSampleRequest,
	) -> GrowthMeasurement:
		sample = calculate_statistics(payload.individual_measurements, self.quantile)
		batch = await self.batches.load_batch(batch_id, tenant_id)

		measurement = GrowthMeasurement(
			tenant_id=tenant_id,
			batch_id=batch_id,
			tank_id=payload.tank_id,
			pond_id=payload.pond_id,
			measurement_date=payload.measurement_date,
			measurement_type=payload.measurement_type,
			measurement_method=payload.measurement_method,
			sample_size=len(payload.individual_measurements),
			population_size=payload.population_size,
			individual_measurements=payload.individual_measurements,
			statistics=sample.summary,
			average_weight=sample.average_weight,
			average_length=sample.average_length,
			weight_cv=sample.weight_cv,
			condition_factor=sample.condition_factor,
			conditions=payload.conditions,
			measured_by=payload.measured_by,
			notes=payload.notes,
			update_batch_weight=payload.update_batch_weight,
		)

		previous = await self.measurements.latest_measurement(
			batch_id, tenant_id, as_of=payload.measurement_date, strictly_before=True
		)
		measurement = self._with_comparison(batch, previous, measurement)

		fcr_analysis = await self.fcr.analyze_sample(batch, previous, measurement)
		measurement = measurement.model_copy(
			update={
				"fcr_analysis": fcr_analysis,
				"suggested_actions": suggest_actions(
					measurement.weight_cv,
					measurement.growth_comparison,
					fcr_analysis,
					measurement.condition_factor,
				),
			}
		)

		saved = await self.measurements.add(measurement)
		logger.info(
			"growth_sample_recorded",
			measurement_id=str(saved.id),
			batch_id=str(batch_id),
			tenant_id=str(tenant_id),
			average_weight=round(saved.average_weight, 3),
			weight_cv=round(saved.weight_cv, 2),
			performance=saved.performance,
		)

		if payload.update_batch_weight:
			saved = await self._write_back(saved)
		return saved

	async def verify_measurement(
		self,
		tenant_id: uuid.UUID,
		measurement_id: uuid.UUID,
		user_id: uuid.UUID,
		notes: str | None = None,
		quality_rating: int | None = None,
	) -> GrowthMeasurement:
		if quality_rating is not None and not MIN_QUALITY_RATING <= quality_rating <= MAX_QUALITY_RATING:
			raise ValidationError(
				f"quality_rating must be between {MIN_QUALITY_RATING} and {MAX_QUALITY_RATING}"
			)

		measurement = await self.measurements.get_measurement(measurement_id, tenant_id)
		combined_notes = measurement.notes
		if notes:
			verification_note = f"[verification] {notes}"
			combined_notes = f"{measurement.notes}\n{verification_note}" if measurement.notes else verification_note

		verified = measurement.model_copy(
			update={
				"is_verified": True,
				"verified_by": user_id,
				"verified_at": datetime.now(UTC),
				"notes": combined_notes,
			}
		)
		saved = await self.measurements.update(verified)
		logger.info(
			"growth_measurement_verified",
			measurement_id=str(measurement_id),
			tenant_id=str(tenant_id),
			quality_rating=quality_rating,
		)
		return saved

	async def apply_to_batch(
		self,
		tenant_id: uuid.UUID,
		batch_id: uuid.UUID,
		measurement_id: uuid.UUID,
		user_id: uuid.UUID,
	) -> GrowthMeasurement:
		measurement = await self.measurements.get_measurement(measurement_id, tenant_id)
		if measurement.batch_id != batch_id:
			raise ValidationError(f"Measurement {measurement_id} does not belong to batch {batch_id}")

		await self.batches.apply_measured_weight(
			batch_id,
			tenant_id,
			measurement.average_weight,
			measurement.estimated_biomass_kg,
			measurement.measurement_date,
		)
		saved = await self.measurements.update(measurement.model_copy(update={"is_processed": True}))
		logger.info(
			"growth_measurement_applied",
			measurement_id=str(measurement_id),
			batch_id=str(batch_id),
			tenant_id=str(tenant_id),
			applied_by=str(user_id),
		)
		return saved

	async def get_measurement(self, tenant_id: uuid.UUID, measurement_id: uuid.UUID) -> GrowthMeasurement:
		return await self.measurements.get_measurement(measurement_id, tenant_id)

	async def latest_measurement(self, tenant_id: uuid.UUID, batch_id: uuid.UUID) -> GrowthMeasurement | None:
		return await self.measurements.latest_measurement(batch_id, tenant_id)

	async def batch_history(
		self,
		tenant_id: uuid.UUID,
		batch_id: uuid.UUID,
		limit: int = DEFAULT_HISTORY_LIMIT,
	) -> list[GrowthMeasurement]:
		return await self.measurements.recent_measurements(batch_id, tenant_id, limit)

	def _with_comparison(
		self,
		batch: BatchProfile,
		previous: GrowthMeasurement | None,
		measurement: GrowthMeasurement,
	) -> GrowthMeasurement:
		if previous is None:
			return measurement

		daily_target = batch.species.daily_growth_g
		target_weight: float | None = None
		if daily_target > 0 and batch.initial_avg_weight_g > 0:
			days_stocked = max(days_between(batch.stocked_at, measurement.measurement_date), 0)
			target_weight = batch.initial_avg_weight_g + days_stocked * daily_target

		comparison = compare_growth(previous, measurement, daily_target, target_weight)
		if comparison is None:
			return measurement
		return measurement.model_copy(
			update={
				"previous_biomass_kg": previous.estimated_biomass_kg,
				"growth_comparison": comparison,
				"performance": rate_growth_performance(comparison.variance_percent),
			}
		)

	async def _write_back(self, measurement: GrowthMeasurement) -> GrowthMeasurement:
		try:
			await self.batches.apply_measured_weight(
				measurement.batch_id,
				measurement.tenant_id,
				measurement.average_weight,
				measurement.estimated_biomass_kg,
				measurement.measurement_date,
			)
		except Exception as exc:
			logger.warning(
				"batch_write_back_failed",
				measurement_id=str(measurement.id),
				batch_id=str(measurement.batch_id),
				tenant_id=str(measurement.tenant_id),
				error=str(exc),
			)
			return measurement
		return await self.measurements.update(measurement.model_copy(update={"is_processed": True}))

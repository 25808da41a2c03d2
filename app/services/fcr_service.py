"""Feed conversion ratio service over the feeding ledger and measurement history."""

from __future__ import annotations

import uuid
from datetime import datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings, get_settings
from app.engine import fcr as fcr_math
from app.models.enums import FCRTrendEnum
from app.schemas.batch import BatchProfile
from app.schemas.fcr import (
	BatchFCRSummary,
	CumulativeFCR,
	FCRAnomalyReport,
	FCRCalculationResult,
	FCRComparison,
	FCRTrendAnalysis,
)
from app.schemas.growth import FCRAnalysis, GrowthMeasurement
from app.services.batch_registry import BatchRegistry, SqlBatchRegistry
from app.services.feeding_ledger import FeedingLedger, SqlFeedingLedger
from app.services.measurement_store import MeasurementStore, SqlMeasurementStore

logger = structlog.get_logger("aquagrowth.fcr")


class FCRCalculator:
	def __init__(
		self,
		db: AsyncSession | None,
		batches: BatchRegistry | None = None,
		ledger: FeedingLedger | None = None,
		measurements: MeasurementStore | None = None,
		settings: Settings | None = None,
	):
		self.db = db
		self.batches = batches or SqlBatchRegistry(db)
		self.ledger = ledger or SqlFeedingLedger(db)
		self.measurements = measurements or SqlMeasurementStore(db)
		self.settings = settings or get_settings()

	async def calculate_period_fcr(
		self,
		batch_id: uuid.UUID,
		tenant_id: uuid.UUID,
		start: datetime,
		end: datetime,
		target_fcr: float | None = None,
	) -> FCRCalculationResult:
		measurements = await self.measurements.list_measurements(batch_id, tenant_id, start, end)
		if len(measurements) < 2:
			return self._invalid_result(fcr_math.INSUFFICIENT_MEASUREMENTS)

		total_feed = await self.ledger.sum_feed(batch_id, tenant_id, start, end)
		growth_kg = measurements[-1].estimated_biomass_kg - measurements[0].estimated_biomass_kg
		if growth_kg <= 0:
			return self._invalid_result(fcr_math.NON_POSITIVE_GROWTH)

		period = fcr_math.period_fcr(total_feed, growth_kg)

		batch = await self.batches.load_batch(batch_id, tenant_id)
		cumulative = await self._cumulative_for(batch, end)
		trend = await self.analyze_fcr_trend(batch_id, tenant_id)
		target = self.resolve_target_fcr(batch, target_fcr)

		warnings: list[str] = []
		if fcr_math.is_abnormal_fcr(period):
			warnings.append(fcr_math.abnormal_fcr_warning(period))
			logger.warning(
				"abnormal_period_fcr",
				batch_id=str(batch_id),
				tenant_id=str(tenant_id),
				period_fcr=round(period, 3),
			)

		analysis = FCRAnalysis(
			period_feed_given=total_feed,
			period_growth=growth_kg,
			period_fcr=period,
			cumulative_feed_given=cumulative.total_feed_kg,
			cumulative_growth=cumulative.total_growth_kg,
			cumulative_fcr=cumulative.fcr,
			target_fcr=target,
			fcr_variance=fcr_math.fcr_variance(cumulative.fcr, target),
			fcr_trend=trend.trend,
		)
		return FCRCalculationResult(
			period_fcr=period,
			cumulative_fcr=cumulative.fcr,
			analysis=analysis,
			is_valid=True,
			warnings=warnings,
		)

	async def calculate_cumulative_fcr(
		self,
		batch_id: uuid.UUID,
		tenant_id: uuid.UUID,
		end: datetime | None = None,
	) -> CumulativeFCR:
		batch = await self.batches.load_batch(batch_id, tenant_id)
		return await self._cumulative_for(batch, end)

	async def analyze_fcr_trend(self, batch_id: uuid.UUID, tenant_id: uuid.UUID) -> FCRTrendAnalysis:
		recent = await self.measurements.recent_measurements(batch_id, tenant_id, fcr_math.TREND_WINDOW)
		return fcr_math.fit_fcr_trend(self._period_fcrs(recent), self._fallback_forecast(recent))

	async def compare_fcr(
		self,
		batch_id: uuid.UUID,
		tenant_id: uuid.UUID,
		species_code: str | None = None,
	) -> FCRComparison:
		batch = await self.batches.load_batch(batch_id, tenant_id)
		cumulative = await self._cumulative_for(batch, None)
		target = self.resolve_target_fcr(batch)
		industry = fcr_math.industry_average_fcr(species_code or batch.species.species_code)
		variance_from_target = fcr_math.fcr_variance(cumulative.fcr, target)

		return FCRComparison(
			current_fcr=cumulative.fcr,
			target_fcr=target,
			industry_avg_fcr=industry,
			variance_from_target=variance_from_target,
			variance_from_industry=fcr_math.fcr_variance(cumulative.fcr, industry),
			performance=fcr_math.rate_fcr_performance(variance_from_target),
		)

	async def detect_fcr_anomalies(self, batch_id: uuid.UUID, tenant_id: uuid.UUID) -> FCRAnomalyReport:
		comparison = await self.compare_fcr(batch_id, tenant_id)
		trend = await self.analyze_fcr_trend(batch_id, tenant_id)
		anomalies = fcr_math.fcr_anomalies(comparison.current_fcr, comparison.variance_from_target, trend)
		if anomalies:
			logger.info(
				"fcr_anomalies_detected",
				batch_id=str(batch_id),
				tenant_id=str(tenant_id),
				count=len(anomalies),
			)
		return FCRAnomalyReport(has_anomaly=bool(anomalies), anomalies=anomalies)

	async def get_batch_fcr_summary(self, batch_id: uuid.UUID, tenant_id: uuid.UUID) -> BatchFCRSummary:
		batch = await self.batches.load_batch(batch_id, tenant_id)
		history = await self.measurements.list_measurements(batch_id, tenant_id)
		cumulative = await self._cumulative_for(batch, None)
		trend = await self.analyze_fcr_trend(batch_id, tenant_id)
		comparison = await self.compare_fcr(batch_id, tenant_id)

		period_fcrs = self._period_fcrs(history)
		current_biomass = history[-1].estimated_biomass_kg if history else batch.start_biomass_kg

		return BatchFCRSummary(
			batch_id=batch.id,
			batch_code=batch.batch_code,
			species_name=batch.species.name,
			total_feed_given_kg=cumulative.total_feed_kg,
			total_growth_kg=cumulative.total_growth_kg,
			start_biomass_kg=batch.start_biomass_kg,
			current_biomass_kg=current_biomass,
			current_fcr=cumulative.fcr,
			best_fcr=min(period_fcrs) if period_fcrs else 0.0,
			worst_fcr=max(period_fcrs) if period_fcrs else 0.0,
			avg_fcr=sum(period_fcrs) / len(period_fcrs) if period_fcrs else 0.0,
			target_fcr=comparison.target_fcr,
			trend=trend.trend,
			measurement_count=len(history),
			performance=comparison.performance,
			recommendations=trend.recommendations,
		)

	async def analyze_sample(
		self,
		batch: BatchProfile,
		previous: GrowthMeasurement | None,
		current: GrowthMeasurement,
	) -> FCRAnalysis | None:
		"""FCR analysis of a new sample against the one before it.

		Returns ``None`` (and logs why) for the first sample of a batch or when
		biomass did not grow since the previous sample.
		"""
		log = logger.bind(batch_id=str(batch.id), tenant_id=str(batch.tenant_id))
		if previous is None:
			log.info("sample_fcr_skipped", reason="no_previous_measurement")
			return None

		growth_kg = current.estimated_biomass_kg - previous.estimated_biomass_kg
		if growth_kg <= 0:
			log.warning("sample_fcr_skipped", reason="non_positive_growth", growth_kg=round(growth_kg, 3))
			return None

		period_feed = await self.ledger.sum_feed(
			batch.id, batch.tenant_id, previous.measurement_date, current.measurement_date
		)
		period = fcr_math.period_fcr(period_feed, growth_kg)
		if fcr_math.is_abnormal_fcr(period):
			log.warning("abnormal_period_fcr", period_fcr=round(period, 3))

		cumulative_feed = await self.ledger.sum_feed(batch.id, batch.tenant_id, end=current.measurement_date)
		cumulative, cumulative_growth = fcr_math.cumulative_fcr(
			cumulative_feed, batch.start_biomass_kg, current.estimated_biomass_kg
		)

		recent = await self.measurements.recent_measurements(
			batch.id, batch.tenant_id, fcr_math.TREND_WINDOW - 1
		)
		trend = fcr_math.fit_fcr_trend([*self._period_fcrs(recent), period], cumulative)
		target = self.resolve_target_fcr(batch)

		return FCRAnalysis(
			period_feed_given=period_feed,
			period_growth=growth_kg,
			period_fcr=period,
			cumulative_feed_given=cumulative_feed,
			cumulative_growth=cumulative_growth,
			cumulative_fcr=cumulative,
			target_fcr=target,
			fcr_variance=fcr_math.fcr_variance(cumulative, target),
			fcr_trend=trend.trend,
		)

	def resolve_target_fcr(self, batch: BatchProfile, explicit: float | None = None) -> float:
		if explicit:
			return explicit
		if batch.species.target_fcr:
			return batch.species.target_fcr
		return self.settings.default_target_fcr

	async def _cumulative_for(self, batch: BatchProfile, end: datetime | None) -> CumulativeFCR:
		total_feed = await self.ledger.sum_feed(batch.id, batch.tenant_id, end=end)
		latest = await self.measurements.latest_measurement(batch.id, batch.tenant_id, as_of=end)
		current_biomass = latest.estimated_biomass_kg if latest is not None else batch.start_biomass_kg
		fcr, growth = fcr_math.cumulative_fcr(total_feed, batch.start_biomass_kg, current_biomass)
		return CumulativeFCR(fcr=fcr, total_feed_kg=total_feed, total_growth_kg=growth)

	def _invalid_result(self, warning: str) -> FCRCalculationResult:
		return FCRCalculationResult(
			period_fcr=0.0,
			cumulative_fcr=0.0,
			analysis=FCRAnalysis(target_fcr=self.settings.default_target_fcr, fcr_trend=FCRTrendEnum.stable),
			is_valid=False,
			warnings=[warning],
		)

	@staticmethod
	def _period_fcrs(measurements: list[GrowthMeasurement]) -> list[float]:
		return [
			m.fcr_analysis.period_fcr
			for m in measurements
			if m.fcr_analysis is not None and m.fcr_analysis.period_fcr > 0
		]

	@staticmethod
	def _fallback_forecast(measurements: list[GrowthMeasurement]) -> float:
		if len(measurements) < fcr_math.MIN_TREND_POINTS:
			return 0.0
		latest = measurements[-1].fcr_analysis
		return latest.cumulative_fcr if latest is not None else 0.0

"""Batch-level growth analysis report with a read-through redis cache.

The report is recomputed from the batch registry, the full measurement
history and the feeding ledger, then cached for
``growth_analysis_cache_ttl_seconds``. The cache only affects latency:
read errors count as a miss and write errors are logged and dropped.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Sequence
from datetime import UTC, datetime, timedelta

import structlog
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings, get_settings
from app.engine import fcr as fcr_math
from app.engine.growth import (
	average_daily_growth,
	days_between,
	days_to_target_weight,
	performance_index,
	project_weight,
	rate_performance_index,
	specific_growth_rate,
	variance_percent,
)
from app.models.enums import (
	ActionPriorityEnum,
	ActionTypeEnum,
	CVTrendEnum,
	FCRTrendEnum,
	GrowthDirectionEnum,
)
from app.schemas.analytics import (
	GrowthAnalysisResult,
	GrowthMeasurementSummary,
	GrowthMetrics,
	GrowthProjection,
	GrowthRecommendation,
	GrowthTrend,
)
from app.schemas.batch import BatchProfile
from app.schemas.fcr import CumulativeFCR, FCRTrendAnalysis
from app.schemas.growth import GrowthMeasurement
from app.services.batch_registry import BatchRegistry, SqlBatchRegistry
from app.services.fcr_service import FCRCalculator
from app.services.feeding_ledger import FeedingLedger, SqlFeedingLedger
from app.services.measurement_store import MeasurementStore, SqlMeasurementStore

logger = structlog.get_logger("aquagrowth.analysis")

PROJECTION_DAYS = 30
SHORT_WINDOW_DAYS = 7
LONG_WINDOW_DAYS = 30
ACCELERATION_TOLERANCE = 0.05
CV_TREND_GROUP = 3
CV_TREND_TOLERANCE = 2.0

UNDERGROWTH_ALERT_PCT = -10.0
SEVERE_UNDERGROWTH_PCT = -20.0
FCR_ALERT_PCT = 10.0
SEVERE_FCR_PCT = 25.0
GRADING_CV = 25.0

_PRIORITY_RANK = {ActionPriorityEnum.high: 0, ActionPriorityEnum.medium: 1, ActionPriorityEnum.low: 2}


def growth_analysis_cache_key(tenant_id: uuid.UUID, batch_id: uuid.UUID) -> str:
	return f"tenant:{tenant_id}:batch:{batch_id}:analysis:growth"


class GrowthAnalysisService:
	def __init__(
		self,
		db: AsyncSession | None,
		redis_client: Redis | None = None,
		batches: BatchRegistry | None = None,
		ledger: FeedingLedger | None = None,
		measurements: MeasurementStore | None = None,
		settings: Settings | None = None,
		clock: Callable[[], datetime] | None = None,
	):
		self.db = db
		self.redis_client = redis_client
		self.settings = settings or get_settings()
		self.batches = batches or SqlBatchRegistry(db)
		self.ledger = ledger or SqlFeedingLedger(db)
		self.measurements = measurements or SqlMeasurementStore(db)
		self.clock = clock or (lambda: datetime.now(UTC))
		self.fcr = FCRCalculator(
			db,
			batches=self.batches,
			ledger=self.ledger,
			measurements=self.measurements,
			settings=self.settings,
		)

	async def get_analysis(self, batch_id: uuid.UUID, tenant_id: uuid.UUID) -> GrowthAnalysisResult:
		cache_key = growth_analysis_cache_key(tenant_id, batch_id)

		cached = await self._cache_get(cache_key)
		if cached is not None:
			return cached

		result = await self._compute(batch_id, tenant_id)
		await self._cache_set(cache_key, result)
		return result

	async def _compute(self, batch_id: uuid.UUID, tenant_id: uuid.UUID) -> GrowthAnalysisResult:
		batch = await self.batches.load_batch(batch_id, tenant_id)
		history = await self.measurements.list_measurements(batch_id, tenant_id)
		cumulative = await self.fcr.calculate_cumulative_fcr(batch_id, tenant_id)
		fcr_trend = await self.fcr.analyze_fcr_trend(batch_id, tenant_id)

		analysis_date = self.clock()
		days_in_production = max(days_between(batch.stocked_at, analysis_date), 0)
		latest = history[-1] if history else None
		current_weight = latest.average_weight if latest is not None else batch.current_avg_weight_g
		current_biomass = current_weight * batch.current_count / 1000

		metrics, index = self._current_metrics(batch, latest, cumulative, days_in_production, current_weight)
		trend = self._trend(history, fcr_trend)

		result = GrowthAnalysisResult(
			batch_id=batch.id,
			batch_code=batch.batch_code,
			species_name=batch.species.name,
			analysis_date=analysis_date,
			days_in_production=days_in_production,
			weight_gain_g=current_weight - batch.initial_avg_weight_g,
			biomass_gain_kg=current_biomass - batch.start_biomass_kg,
			performance_index=index,
			current_metrics=metrics,
			trend=trend,
			projection=self._projection(batch, latest, metrics, cumulative, analysis_date),
			recommendations=self._recommendations(metrics, trend),
			measurement_history=[self._summary(m) for m in history],
		)
		logger.info(
			"growth_analysis_computed",
			batch_id=str(batch_id),
			tenant_id=str(tenant_id),
			measurements=len(history),
			performance_index=round(index, 1),
		)
		return result

	def _current_metrics(
		self,
		batch: BatchProfile,
		latest: GrowthMeasurement | None,
		cumulative: CumulativeFCR,
		days_in_production: int,
		current_weight: float,
	) -> tuple[GrowthMetrics, float]:
		theoretical = batch.initial_avg_weight_g + days_in_production * batch.species.daily_growth_g
		growth_variance = variance_percent(current_weight, theoretical)
		target_fcr = self.fcr.resolve_target_fcr(batch)
		fcr_variance = fcr_math.fcr_variance(cumulative.fcr, target_fcr) if cumulative.fcr > 0 else 0.0
		weight_cv = latest.weight_cv if latest is not None else 0.0
		index = performance_index(growth_variance, fcr_variance, weight_cv, batch.survival_rate)

		metrics = GrowthMetrics(
			current_avg_weight_g=current_weight,
			theoretical_weight_g=theoretical,
			weight_variance_percent=growth_variance,
			current_biomass_kg=current_weight * batch.current_count / 1000,
			current_quantity=batch.current_count,
			survival_rate=batch.survival_rate,
			mortality_rate=batch.mortality_rate,
			current_fcr=cumulative.fcr,
			target_fcr=target_fcr,
			fcr_variance_percent=fcr_variance,
			daily_growth_rate_g=average_daily_growth(batch.initial_avg_weight_g, current_weight, days_in_production),
			specific_growth_rate=specific_growth_rate(batch.initial_avg_weight_g, current_weight, days_in_production),
			weight_cv=weight_cv,
			performance_rating=rate_performance_index(index),
		)
		return metrics, index

	def _trend(self, history: Sequence[GrowthMeasurement], fcr_trend: FCRTrendAnalysis) -> GrowthTrend:
		adg_short = _adg_over(history, SHORT_WINDOW_DAYS)
		adg_long = _adg_over(history, LONG_WINDOW_DAYS)
		acceleration = adg_short - adg_long
		if acceleration > ACCELERATION_TOLERANCE:
			direction = GrowthDirectionEnum.accelerating
		elif acceleration < -ACCELERATION_TOLERANCE:
			direction = GrowthDirectionEnum.decelerating
		else:
			direction = GrowthDirectionEnum.steady

		cv_change = _cv_change(history)
		if cv_change > CV_TREND_TOLERANCE:
			cv_trend = CVTrendEnum.worsening
		elif cv_change < -CV_TREND_TOLERANCE:
			cv_trend = CVTrendEnum.improving
		else:
			cv_trend = CVTrendEnum.stable

		return GrowthTrend(
			direction=direction,
			avg_daily_growth_last_7_days=adg_short,
			avg_daily_growth_last_30_days=adg_long,
			growth_acceleration=acceleration,
			fcr_trend=fcr_trend.trend,
			fcr_change_last_7_days=_fcr_change(history, SHORT_WINDOW_DAYS),
			cv_trend=cv_trend,
			cv_change=cv_change,
		)

	def _projection(
		self,
		batch: BatchProfile,
		latest: GrowthMeasurement | None,
		metrics: GrowthMetrics,
		cumulative: CumulativeFCR,
		analysis_date: datetime,
	) -> GrowthProjection:
		sgr = metrics.specific_growth_rate
		if latest is not None and latest.growth_comparison is not None:
			sgr = latest.growth_comparison.specific_growth_rate

		weight = metrics.current_avg_weight_g
		projected_weight = project_weight(weight, sgr, PROJECTION_DAYS)
		harvest_weight = batch.species.avg_harvest_weight_g or 0.0

		days_to_harvest = 0
		harvest_date = batch.expected_harvest_date
		if harvest_weight > 0:
			days_to_harvest = days_to_target_weight(weight, harvest_weight, sgr)
			if days_to_harvest > 0:
				harvest_date = analysis_date + timedelta(days=days_to_harvest)

		final_weight = max(harvest_weight, weight)
		final_biomass = final_weight * batch.current_count / 1000
		feed_fcr = cumulative.fcr if cumulative.fcr > 0 else metrics.target_fcr
		remaining_feed = max(final_biomass - metrics.current_biomass_kg, 0.0) * feed_fcr
		projected_total_feed = cumulative.total_feed_kg + remaining_feed
		final_growth = final_biomass - batch.start_biomass_kg

		return GrowthProjection(
			projected_weight_in_30_days=projected_weight,
			projected_biomass_in_30_days=projected_weight * batch.current_count / 1000,
			estimated_harvest_date=harvest_date,
			harvest_target_weight_g=harvest_weight,
			days_to_harvest=days_to_harvest,
			projected_total_feed_kg=projected_total_feed,
			projected_final_fcr=projected_total_feed / final_growth if final_growth > 0 else 0.0,
		)

	@staticmethod
	def _recommendations(metrics: GrowthMetrics, trend: GrowthTrend) -> list[GrowthRecommendation]:
		items: list[GrowthRecommendation] = []

		growth_variance = metrics.weight_variance_percent
		if growth_variance < UNDERGROWTH_ALERT_PCT:
			items.append(
				GrowthRecommendation(
					priority=ActionPriorityEnum.high if growth_variance < SEVERE_UNDERGROWTH_PCT else ActionPriorityEnum.medium,
					type=ActionTypeEnum.feeding,
					description="Growth is behind the species curve",
					reason=f"Average weight is {abs(growth_variance):.1f}% below the theoretical weight",
					action_required="Review ration size and feeding frequency",
				)
			)

		if metrics.fcr_variance_percent > FCR_ALERT_PCT:
			items.append(
				GrowthRecommendation(
					priority=ActionPriorityEnum.high if metrics.fcr_variance_percent > SEVERE_FCR_PCT else ActionPriorityEnum.medium,
					type=ActionTypeEnum.feeding,
					description="Feed conversion is above target",
					reason=f"Cumulative FCR {metrics.current_fcr:.2f} is {metrics.fcr_variance_percent:.1f}% above target {metrics.target_fcr:.2f}",
					action_required="Check feed quality, waste and ration size",
				)
			)

		if trend.fcr_trend == FCRTrendEnum.declining:
			items.append(
				GrowthRecommendation(
					priority=ActionPriorityEnum.high,
					type=ActionTypeEnum.health,
					description="FCR is deteriorating",
					reason="Period FCR has been rising over recent measurements",
					action_required="Check water quality and run a health check",
				)
			)

		if metrics.weight_cv > GRADING_CV:
			items.append(
				GrowthRecommendation(
					priority=ActionPriorityEnum.medium,
					type=ActionTypeEnum.grading,
					description="Size variation is high",
					reason=f"Weight CV is {metrics.weight_cv:.1f}%",
					action_required="Grade the batch",
				)
			)

		if trend.cv_trend == CVTrendEnum.worsening:
			items.append(
				GrowthRecommendation(
					priority=ActionPriorityEnum.low,
					type=ActionTypeEnum.grading,
					description="Size uniformity is getting worse",
					reason=f"Mean CV rose by {trend.cv_change:.1f} points",
				)
			)

		if not items:
			items.append(
				GrowthRecommendation(
					priority=ActionPriorityEnum.low,
					type=ActionTypeEnum.other,
					description="Batch is on track",
					reason="Growth, FCR and uniformity are within targets",
				)
			)

		items.sort(key=lambda item: _PRIORITY_RANK[item.priority])
		return items

	@staticmethod
	def _summary(measurement: GrowthMeasurement) -> GrowthMeasurementSummary:
		comparison = measurement.growth_comparison
		fcr_analysis = measurement.fcr_analysis
		return GrowthMeasurementSummary(
			id=measurement.id,
			measurement_date=measurement.measurement_date,
			average_weight=measurement.average_weight,
			weight_cv=measurement.weight_cv,
			sample_size=measurement.sample_size,
			estimated_biomass_kg=measurement.estimated_biomass_kg,
			daily_growth_rate=comparison.daily_growth_rate if comparison is not None else None,
			period_fcr=fcr_analysis.period_fcr if fcr_analysis is not None else None,
			performance=measurement.performance,
		)

	async def _cache_get(self, key: str) -> GrowthAnalysisResult | None:
		if self.redis_client is None:
			return None
		try:
			payload = await self.redis_client.get(key)
			if payload is None:
				return None
			return GrowthAnalysisResult.model_validate_json(payload).model_copy(update={"cached": True})
		except Exception as exc:
			logger.warning("analysis_cache_read_failed", key=key, error=str(exc))
			return None

	async def _cache_set(self, key: str, result: GrowthAnalysisResult) -> None:
		if self.redis_client is None:
			return
		try:
			await self.redis_client.setex(
				key,
				self.settings.growth_analysis_cache_ttl_seconds,
				result.model_dump_json(),
			)
		except Exception as exc:
			logger.warning("analysis_cache_write_failed", key=key, error=str(exc))


def _adg_over(history: Sequence[GrowthMeasurement], window_days: int) -> float:
	"""ADG between the latest measurement and the oldest one within ``window_days`` of it."""
	if len(history) < 2:
		return 0.0
	latest = history[-1]
	cutoff = latest.measurement_date - timedelta(days=window_days)
	base = next(m for m in history if m.measurement_date >= cutoff)
	if base is latest:
		return 0.0
	days = days_between(base.measurement_date, latest.measurement_date)
	return average_daily_growth(base.average_weight, latest.average_weight, days)


def _cv_change(history: Sequence[GrowthMeasurement]) -> float:
	"""Mean CV of the latest measurements minus mean CV of the earliest ones."""
	if len(history) < 2:
		return 0.0
	earliest = history[:CV_TREND_GROUP]
	recent = history[-CV_TREND_GROUP:]
	return sum(m.weight_cv for m in recent) / len(recent) - sum(m.weight_cv for m in earliest) / len(earliest)


def _fcr_change(history: Sequence[GrowthMeasurement], window_days: int) -> float:
	analysed = [
		(m.measurement_date, m.fcr_analysis.cumulative_fcr)
		for m in history
		if m.fcr_analysis is not None and m.fcr_analysis.cumulative_fcr > 0
	]
	if len(analysed) < 2:
		return 0.0
	latest_date, latest_fcr = analysed[-1]
	cutoff = latest_date - timedelta(days=window_days)
	earlier = [fcr for measured_at, fcr in analysed[:-1] if measured_at <= cutoff]
	reference_fcr = earlier[-1] if earlier else analysed[0][1]
	return latest_fcr - reference_fcr

from __future__ import annotations

import math
import uuid
from datetime import timedelta

import pytest

from app.engine import fcr as fcr_math
from app.errors import NotFoundError
from app.models.enums import FCRTrendEnum, GrowthPerformanceEnum
from app.schemas.batch import SpeciesTargets
from app.services.fcr_service import FCRCalculator
from tests.conftest import STOCKED_AT


@pytest.fixture
def calculator(batch_registry, feeding_ledger, measurement_store, settings) -> FCRCalculator:
	return FCRCalculator(
		None,
		batches=batch_registry,
		ledger=feeding_ledger,
		measurements=measurement_store,
		settings=settings,
	)


@pytest.fixture
def batch(batch_factory, batch_registry):
	profile = batch_factory()
	batch_registry.batches[(profile.tenant_id, profile.id)] = profile
	return profile


def _day(day: int):
	return STOCKED_AT + timedelta(days=day)


async def _seed_period(batch, measurement_store, measurement_factory, feeding_ledger, feed_kg: float, end_weight: float) -> None:
	# 10 000 fish: 100 g -> 1000 kg, 110 g -> 1100 kg
	for measurement in (
		measurement_factory(batch, 10, 100.0),
		measurement_factory(batch, 20, end_weight),
	):
		await measurement_store.add(measurement)
	feeding_ledger.add(batch, _day(15), feed_kg)


# ── Pure FCR math ───────────────────────────────────────────────────────────


def test_period_fcr_rejects_non_positive_growth() -> None:
	with pytest.raises(ValueError, match="non-positive growth"):
		fcr_math.period_fcr(100.0, 0.0)
	with pytest.raises(ValueError, match="non-positive growth"):
		fcr_math.period_fcr(100.0, -5.0)


def test_cumulative_fcr_degrades_to_zero_without_growth() -> None:
	# period_fcr raises for the same input
	assert fcr_math.cumulative_fcr(100.0, 500.0, 500.0) == (0.0, 0.0)
	assert fcr_math.cumulative_fcr(100.0, 500.0, 450.0) == (0.0, -50.0)
	assert fcr_math.cumulative_fcr(150.0, 1000.0, 1100.0) == pytest.approx((1.5, 100.0))


def test_improving_trend_from_falling_fcr() -> None:
	trend = fcr_math.fit_fcr_trend([1.8, 1.6, 1.4, 1.2])

	assert trend.trend == FCRTrendEnum.improving
	assert trend.slope == pytest.approx(-0.2)
	assert trend.slope < 0
	assert trend.correlation == pytest.approx(1.0)
	assert trend.forecast_7_days == fcr_math.FORECAST_FLOOR
	assert trend.recommendations == ["Maintain the current feeding strategy"]


def test_declining_trend_adds_urgent_recommendation_last() -> None:
	trend = fcr_math.fit_fcr_trend([1.2, 1.3, 1.4, 1.5])

	assert trend.trend == FCRTrendEnum.declining
	assert trend.forecast_7_days == pytest.approx(1.5 + 0.1 * 7)
	assert trend.recommendations[:3] == [
		"Review the feeding programme",
		"Check water quality parameters",
		"Assess fish health",
	]
	assert trend.recommendations[-1].startswith("URGENT")


def test_slow_decline_has_no_urgent_recommendation() -> None:
	trend = fcr_math.fit_fcr_trend([1.40, 1.42, 1.44, 1.46])
	assert trend.trend == FCRTrendEnum.declining
	assert not any(item.startswith("URGENT") for item in trend.recommendations)


def test_constant_fcr_is_stable_with_zero_correlation() -> None:
	trend = fcr_math.fit_fcr_trend([1.5, 1.5, 1.5])

	assert trend.trend == FCRTrendEnum.stable
	assert trend.slope == 0
	assert trend.correlation == 0
	assert trend.recommendations == ["Performance stable - maintain the current protocol"]


def test_stable_high_fcr_recommends_feed_review() -> None:
	trend = fcr_math.fit_fcr_trend([2.0, 2.0, 2.0])
	assert trend.recommendations == ["Evaluate feed quality to optimise FCR"]


def test_improving_but_high_fcr_keeps_pushing() -> None:
	trend = fcr_math.fit_fcr_trend([3.0, 2.8, 2.6])
	assert trend.recommendations == [
		"Maintain the current feeding strategy",
		"FCR is still high - room for further improvement",
	]


def test_too_few_points_is_stable_with_not_enough_data() -> None:
	trend = fcr_math.fit_fcr_trend([1.4, 1.5], fallback_forecast=1.3)

	assert trend.trend == FCRTrendEnum.stable
	assert trend.slope == 0
	assert trend.forecast_7_days == 1.3
	assert trend.recommendations == [fcr_math.NOT_ENOUGH_TREND_DATA]


@pytest.mark.parametrize(
	("variance", "expected"),
	[
		(-10.0, GrowthPerformanceEnum.excellent),
		(-0.1, GrowthPerformanceEnum.good),
		(0.0, GrowthPerformanceEnum.good),
		(10.0, GrowthPerformanceEnum.average),
		(20.0, GrowthPerformanceEnum.below_average),
		(20.1, GrowthPerformanceEnum.poor),
	],
)
def test_fcr_performance_bands(variance: float, expected: GrowthPerformanceEnum) -> None:
	assert fcr_math.rate_fcr_performance(variance) == expected


def test_industry_average_falls_back_to_default() -> None:
	assert fcr_math.industry_average_fcr("rainbow_trout") == 1.1
	assert fcr_math.industry_average_fcr("unknown_species") == 1.5
	assert fcr_math.industry_average_fcr(None) == 1.5


def test_anomalies_thresholds() -> None:
	stable = fcr_math.fit_fcr_trend([1.5, 1.5, 1.5])
	rising = fcr_math.fit_fcr_trend([1.0, 1.1, 1.2, 1.3])

	assert fcr_math.fcr_anomalies(1.5, 0.0, stable) == []
	assert fcr_math.fcr_anomalies(3.5, 10.0, stable)[0].startswith("Critical")
	assert fcr_math.fcr_anomalies(0.6, -10.0, stable)[0].startswith("Warning: FCR suspiciously low")
	assert fcr_math.fcr_anomalies(0.0, 0.0, stable) == []
	assert fcr_math.fcr_anomalies(2.0, 33.3, stable)[0].startswith("Significant deviation")
	assert fcr_math.fcr_anomalies(1.5, 0.0, rising)[-1].startswith("Warning: FCR deteriorating quickly")


# ── Period FCR ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_period_fcr_for_hundred_kg_growth(calculator, batch, measurement_store, measurement_factory, feeding_ledger) -> None:
	await _seed_period(batch, measurement_store, measurement_factory, feeding_ledger, feed_kg=150.0, end_weight=110.0)

	result = await calculator.calculate_period_fcr(batch.id, batch.tenant_id, _day(10), _day(20))

	assert result.is_valid is True
	assert result.warnings == []
	assert result.period_fcr == pytest.approx(1.5)
	assert result.analysis.period_feed_given == 150.0
	assert result.analysis.period_growth == pytest.approx(100.0)
	assert result.analysis.target_fcr == 1.5


@pytest.mark.asyncio
async def test_abnormal_period_fcr_is_still_valid(calculator, batch, measurement_store, measurement_factory, feeding_ledger) -> None:
	await _seed_period(batch, measurement_store, measurement_factory, feeding_ledger, feed_kg=500.0, end_weight=110.0)

	result = await calculator.calculate_period_fcr(batch.id, batch.tenant_id, _day(10), _day(20))

	assert result.period_fcr == pytest.approx(5.0)
	assert result.is_valid is True
	assert len(result.warnings) == 1
	assert "abnormal FCR" in result.warnings[0]


@pytest.mark.asyncio
async def test_zero_growth_period_is_invalid(calculator, batch, measurement_store, measurement_factory, feeding_ledger) -> None:
	await _seed_period(batch, measurement_store, measurement_factory, feeding_ledger, feed_kg=150.0, end_weight=100.0)

	result = await calculator.calculate_period_fcr(batch.id, batch.tenant_id, _day(10), _day(20))

	assert result.is_valid is False
	assert any("non-positive growth" in warning for warning in result.warnings)
	assert result.period_fcr == 0
	assert math.isfinite(result.period_fcr)
	assert math.isfinite(result.cumulative_fcr)
	assert result.analysis.period_fcr == 0


@pytest.mark.asyncio
async def test_period_needs_two_measurements(calculator, batch, measurement_store, measurement_factory) -> None:
	await measurement_store.add(measurement_factory(batch, 10, 100.0))

	result = await calculator.calculate_period_fcr(batch.id, batch.tenant_id, _day(0), _day(30))

	assert result.is_valid is False
	assert any("insufficient measurements" in warning for warning in result.warnings)
	assert result.analysis.period_feed_given == 0
	assert result.analysis.cumulative_fcr == 0


@pytest.mark.asyncio
async def test_period_fcr_honours_explicit_target(calculator, batch, measurement_store, measurement_factory, feeding_ledger) -> None:
	await _seed_period(batch, measurement_store, measurement_factory, feeding_ledger, feed_kg=150.0, end_weight=110.0)

	result = await calculator.calculate_period_fcr(batch.id, batch.tenant_id, _day(10), _day(20), target_fcr=1.2)

	assert result.analysis.target_fcr == 1.2
	expected = (result.analysis.cumulative_fcr - 1.2) / 1.2 * 100
	assert result.analysis.fcr_variance == pytest.approx(expected)


@pytest.mark.asyncio
async def test_constant_feed_rate_gives_constant_period_fcr(calculator, batch, measurement_store, measurement_factory, feeding_ledger) -> None:
	# biomass 1000 -> 1100 -> 1200 -> 1300 kg, 15 kg/day of feed
	for day, weight in ((0, 100.0), (10, 110.0), (20, 120.0), (30, 130.0)):
		await measurement_store.add(measurement_factory(batch, day, weight))
	for day in range(1, 31):
		feeding_ledger.add(batch, _day(day) - timedelta(hours=12), 15.0)

	periods = [(0, 10), (10, 20), (20, 30)]
	results = [
		await calculator.calculate_period_fcr(batch.id, batch.tenant_id, _day(start), _day(end))
		for start, end in periods
	]

	assert [r.period_fcr for r in results] == pytest.approx([1.5, 1.5, 1.5])


# ── Cumulative / trend / comparison ─────────────────────────────────────────


@pytest.mark.asyncio
async def test_cumulative_fcr_from_stocking(calculator, batch, measurement_store, measurement_factory, feeding_ledger) -> None:
	# start biomass 10 000 * 20 g = 200 kg
	await measurement_store.add(measurement_factory(batch, 30, 50.0))
	feeding_ledger.add(batch, _day(5), 250.0)
	feeding_ledger.add(batch, _day(25), 200.0)

	result = await calculator.calculate_cumulative_fcr(batch.id, batch.tenant_id)

	assert result.total_feed_kg == 450.0
	assert result.total_growth_kg == pytest.approx(300.0)
	assert result.fcr == pytest.approx(1.5)


@pytest.mark.asyncio
async def test_cumulative_fcr_honours_end_date(calculator, batch, measurement_store, measurement_factory, feeding_ledger) -> None:
	await measurement_store.add(measurement_factory(batch, 10, 40.0))
	await measurement_store.add(measurement_factory(batch, 30, 50.0))
	feeding_ledger.add(batch, _day(5), 300.0)
	feeding_ledger.add(batch, _day(25), 200.0)

	result = await calculator.calculate_cumulative_fcr(batch.id, batch.tenant_id, _day(10))

	assert result.total_feed_kg == 300.0
	assert result.total_growth_kg == pytest.approx(200.0)
	assert result.fcr == pytest.approx(1.5)


@pytest.mark.asyncio
async def test_cumulative_fcr_without_measurements_is_zero(calculator, batch, feeding_ledger) -> None:
	feeding_ledger.add(batch, _day(5), 100.0)

	result = await calculator.calculate_cumulative_fcr(batch.id, batch.tenant_id)

	assert result.fcr == 0
	assert result.total_growth_kg == 0
	assert result.total_feed_kg == 100.0


@pytest.mark.asyncio
async def test_cumulative_fcr_is_repeatable(calculator, batch, measurement_store, measurement_factory, feeding_ledger) -> None:
	await measurement_store.add(measurement_factory(batch, 30, 50.0))
	feeding_ledger.add(batch, _day(5), 420.0)

	first = await calculator.calculate_cumulative_fcr(batch.id, batch.tenant_id)
	second = await calculator.calculate_cumulative_fcr(batch.id, batch.tenant_id)

	assert first == second


@pytest.mark.asyncio
async def test_cumulative_fcr_unknown_batch_raises(calculator) -> None:
	with pytest.raises(NotFoundError):
		await calculator.calculate_cumulative_fcr(uuid.uuid4(), uuid.uuid4())


@pytest.mark.asyncio
async def test_trend_uses_recorded_period_fcrs(calculator, batch, measurement_store, measurement_factory) -> None:
	for day, value in ((10, 1.8), (20, 1.6), (30, 1.4), (40, 1.2)):
		await measurement_store.add(measurement_factory(batch, day, 50.0 + day, period_fcr=value, cumulative_fcr=1.5))

	trend = await calculator.analyze_fcr_trend(batch.id, batch.tenant_id)

	assert trend.trend == FCRTrendEnum.improving
	assert trend.slope == pytest.approx(-0.2)


@pytest.mark.asyncio
async def test_trend_skips_measurements_without_fcr(calculator, batch, measurement_store, measurement_factory) -> None:
	await measurement_store.add(measurement_factory(batch, 5, 30.0))
	await measurement_store.add(measurement_factory(batch, 10, 40.0, period_fcr=1.4, cumulative_fcr=1.3))
	await measurement_store.add(measurement_factory(batch, 20, 50.0, period_fcr=1.5, cumulative_fcr=1.35))

	trend = await calculator.analyze_fcr_trend(batch.id, batch.tenant_id)

	assert trend.trend == FCRTrendEnum.stable
	assert trend.recommendations == [fcr_math.NOT_ENOUGH_TREND_DATA]
	assert trend.forecast_7_days == 1.35


@pytest.mark.asyncio
async def test_compare_fcr_against_target_and_industry(calculator, batch, measurement_store, measurement_factory, feeding_ledger) -> None:
	await measurement_store.add(measurement_factory(batch, 30, 50.0))
	feeding_ledger.add(batch, _day(5), 510.0)

	comparison = await calculator.compare_fcr(batch.id, batch.tenant_id)

	assert comparison.current_fcr == pytest.approx(1.7)
	assert comparison.target_fcr == 1.5
	assert comparison.industry_avg_fcr == 1.8
	assert comparison.variance_from_target == pytest.approx(13.33, abs=0.01)
	assert comparison.variance_from_industry == pytest.approx(-5.56, abs=0.01)
	assert comparison.performance == GrowthPerformanceEnum.below_average


@pytest.mark.asyncio
async def test_target_falls_back_to_settings(calculator, batch_factory, batch_registry, settings) -> None:
	profile = batch_factory(species=SpeciesTargets(species_code="tilapia", name="Tilapia", daily_growth_g=2.0))
	batch_registry.batches[(profile.tenant_id, profile.id)] = profile

	comparison = await calculator.compare_fcr(profile.id, profile.tenant_id)

	assert comparison.target_fcr == settings.default_target_fcr
	assert comparison.industry_avg_fcr == 1.6


@pytest.mark.asyncio
async def test_detect_anomalies_flags_high_fcr(calculator, batch, measurement_store, measurement_factory, feeding_ledger) -> None:
	await measurement_store.add(measurement_factory(batch, 30, 50.0))
	feeding_ledger.add(batch, _day(5), 1050.0)

	report = await calculator.detect_fcr_anomalies(batch.id, batch.tenant_id)

	assert report.has_anomaly is True
	assert report.anomalies[0].startswith("Critical")
	assert any(item.startswith("Significant deviation") for item in report.anomalies)


@pytest.mark.asyncio
async def test_batch_summary(calculator, batch, measurement_store, measurement_factory, feeding_ledger) -> None:
	for day, value in ((10, 1.6), (20, 1.4), (30, 1.5)):
		await measurement_store.add(measurement_factory(batch, day, 30.0 + day, period_fcr=value, cumulative_fcr=1.5))
	feeding_ledger.add(batch, _day(5), 600.0)

	summary = await calculator.get_batch_fcr_summary(batch.id, batch.tenant_id)

	assert summary.batch_code == batch.batch_code
	assert summary.species_name == "European sea bass"
	assert summary.measurement_count == 3
	assert summary.best_fcr == 1.4
	assert summary.worst_fcr == 1.6
	assert summary.avg_fcr == pytest.approx(1.5)
	assert summary.start_biomass_kg == pytest.approx(200.0)
	assert summary.current_biomass_kg == pytest.approx(600.0)
	assert summary.current_fcr == pytest.approx(1.5)
	assert summary.total_feed_given_kg == 600.0

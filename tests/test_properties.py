"""
Property-based tests for the growth statistics, FCR and performance maths.

These cover bounds that must hold for any valid sample rather than
hand-picked scenarios.
"""

from __future__ import annotations

import math

import hypothesis.strategies as st
from hypothesis import given, settings

from app.engine import fcr as fcr_math
from app.engine.growth import days_to_target_weight, performance_index, project_weight
from app.engine.statistics import TabulatedTQuantile, calculate_statistics
from app.models.enums import FCRTrendEnum
from app.schemas.growth import IndividualObservation

weights = st.floats(min_value=0.1, max_value=10_000.0, allow_nan=False, allow_infinity=False)
percentages = st.floats(min_value=-500.0, max_value=500.0, allow_nan=False, allow_infinity=False)
fcr_values = st.floats(min_value=0.1, max_value=10.0, allow_nan=False, allow_infinity=False)


def _tolerance(value: float) -> float:
	return 1e-9 * max(1.0, abs(value))


@given(sample=st.lists(weights, min_size=3, max_size=60))
@settings(max_examples=100)
def test_prop_weight_summary_bounds(sample: list[float]) -> None:
	observations = [
		IndividualObservation(sample_number=index + 1, weight_g=weight) for index, weight in enumerate(sample)
	]
	summary = calculate_statistics(observations, TabulatedTQuantile()).summary.weight

	assert summary.min - _tolerance(summary.min) <= summary.mean <= summary.max + _tolerance(summary.max)
	assert summary.min <= summary.median <= summary.max
	assert summary.std_dev >= 0
	assert math.isclose(summary.cv, summary.std_dev / summary.mean * 100, rel_tol=1e-9, abs_tol=1e-12)
	assert summary.confidence_interval.lower <= summary.mean + _tolerance(summary.mean)
	assert summary.confidence_interval.upper >= summary.mean - _tolerance(summary.mean)


@given(
	feed=st.floats(min_value=0.0, max_value=1e6, allow_nan=False, allow_infinity=False),
	growth=st.floats(min_value=1e-3, max_value=1e6, allow_nan=False, allow_infinity=False),
)
def test_prop_period_fcr_is_finite_for_positive_growth(feed: float, growth: float) -> None:
	value = fcr_math.period_fcr(feed, growth)
	assert math.isfinite(value)
	assert value >= 0


@given(
	feed=st.floats(min_value=0.0, max_value=1e6, allow_nan=False, allow_infinity=False),
	start=st.floats(min_value=0.0, max_value=1e6, allow_nan=False, allow_infinity=False),
	loss=st.floats(min_value=0.0, max_value=1e6, allow_nan=False, allow_infinity=False),
)
def test_prop_cumulative_fcr_is_zero_without_growth(feed: float, start: float, loss: float) -> None:
	fcr, growth = fcr_math.cumulative_fcr(feed, start, start - loss)
	assert growth <= 0
	assert fcr == 0


@given(growth=percentages, fcr=percentages, cv=st.floats(min_value=0.0, max_value=200.0), survival=st.floats(min_value=0.0, max_value=100.0))
def test_prop_performance_index_is_bounded(growth: float, fcr: float, cv: float, survival: float) -> None:
	assert 0.0 <= performance_index(growth, fcr, cv, survival) <= 100.0


@given(values=st.lists(fcr_values, min_size=3, max_size=10))
def test_prop_trend_forecast_respects_floor(values: list[float]) -> None:
	trend = fcr_math.fit_fcr_trend(values)

	assert trend.forecast_7_days >= fcr_math.FORECAST_FLOOR
	assert 0.0 <= trend.correlation <= 1.0 + 1e-9
	if trend.trend == FCRTrendEnum.improving:
		assert trend.slope < 0
	elif trend.trend == FCRTrendEnum.declining:
		assert trend.slope > 0
	assert trend.recommendations


@given(
	weight=st.floats(min_value=1.0, max_value=5_000.0),
	sgr=st.floats(min_value=0.01, max_value=5.0),
	days=st.integers(min_value=0, max_value=365),
)
def test_prop_projection_never_shrinks_with_positive_sgr(weight: float, sgr: float, days: int) -> None:
	assert project_weight(weight, sgr, days) >= weight


@given(
	current=st.floats(min_value=1.0, max_value=5_000.0),
	target=st.floats(min_value=1.0, max_value=5_000.0),
	sgr=st.floats(min_value=0.01, max_value=5.0),
)
def test_prop_days_to_target_reaches_target(current: float, target: float, sgr: float) -> None:
	days = days_to_target_weight(current, target, sgr)

	assert days >= 0
	if target <= current:
		assert days == 0
	else:
		assert project_weight(current, sgr, days) >= target * (1 - 1e-9)

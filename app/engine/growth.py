"""
Growth comparison between consecutive measurements.

Given the previous and current sample of a batch and the species' target
daily gain, computes the theoretical weight the batch should have reached,
the variance against it, Average Daily Growth (ADG, g/day) and Specific
Growth Rate (SGR, %/day, from the log-weight difference).

The performance rating is asymmetric: ``excellent`` needs the variance to be
above +10%, so over-performance is never rated ``poor``; ``poor`` is only
reached below -20%.

Also holds the batch-level helpers used by the analysis report: the SGR
exponential projection, days to a target weight and the 0-100 performance
index.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Protocol

from app.models.enums import GrowthPerformanceEnum
from app.schemas.growth import GrowthComparison

SECONDS_PER_DAY = 86_400

# Performance index penalties
MAX_GROWTH_PENALTY = 30.0
MAX_FCR_PENALTY = 25.0
MAX_CV_PENALTY = 20.0
CV_PENALTY_THRESHOLD = 15.0
CV_PENALTY_FACTOR = 2.0
SURVIVAL_ADJUSTMENT = 5.0
HIGH_SURVIVAL_RATE = 95.0
LOW_SURVIVAL_RATE = 80.0


class WeighedSample(Protocol):
	"""Anything with a date and an average weight (a measurement or a snapshot)."""

	@property
	def measurement_date(self) -> datetime: ...

	@property
	def average_weight(self) -> float: ...


def days_between(start: datetime, end: datetime) -> int:
	"""Whole days from ``start`` to ``end``, rounded up."""
	return math.ceil((end - start).total_seconds() / SECONDS_PER_DAY)


def average_daily_growth(initial_weight: float, final_weight: float, days: int) -> float:
	if days <= 0:
		return 0.0
	return (final_weight - initial_weight) / days


def specific_growth_rate(initial_weight: float, final_weight: float, days: int) -> float:
	if days <= 0 or initial_weight <= 0 or final_weight <= 0:
		return 0.0
	return (math.log(final_weight) - math.log(initial_weight)) / days * 100


def variance_percent(actual: float, expected: float) -> float:
	if expected <= 0:
		return 0.0
	return (actual - expected) / expected * 100


def compare_growth(
	previous: WeighedSample | None,
	current: WeighedSample,
	daily_growth_target: float,
	target_weight: float | None = None,
) -> GrowthComparison | None:
	"""Compare ``current`` against the weight expected from ``previous``.

	Returns ``None`` for the first sample of a batch. ``target_weight`` is the
	stocking-curve weight for the current date, when the caller knows it.
	"""
	if previous is None:
		return None

	days = days_between(previous.measurement_date, current.measurement_date)
	theoretical = previous.average_weight + days * daily_growth_target
	variance = current.average_weight - theoretical

	target_variance: float | None = None
	if target_weight is not None:
		target_variance = variance_percent(current.average_weight, target_weight)

	return GrowthComparison(
		theoretical_weight=theoretical,
		actual_weight=current.average_weight,
		variance=variance,
		variance_percent=variance_percent(current.average_weight, theoretical),
		previous_measurement_id=getattr(previous, "id", None),
		days_since_previous=days,
		daily_growth_rate=average_daily_growth(previous.average_weight, current.average_weight, days),
		specific_growth_rate=specific_growth_rate(previous.average_weight, current.average_weight, days),
		target_weight=target_weight,
		target_variance=target_variance,
	)


def rate_growth_performance(variance_pct: float) -> GrowthPerformanceEnum:
	magnitude = abs(variance_pct)
	if variance_pct > 10:
		return GrowthPerformanceEnum.excellent
	if magnitude <= 5:
		return GrowthPerformanceEnum.good
	if magnitude <= 10:
		return GrowthPerformanceEnum.average
	if magnitude <= 20:
		return GrowthPerformanceEnum.below_average
	return GrowthPerformanceEnum.poor


def rate_performance_index(index: float) -> GrowthPerformanceEnum:
	"""Bucket a 0–100 performance index into the five-level scale."""
	if index >= 90:
		return GrowthPerformanceEnum.excellent
	if index >= 75:
		return GrowthPerformanceEnum.good
	if index >= 60:
		return GrowthPerformanceEnum.average
	if index >= 45:
		return GrowthPerformanceEnum.below_average
	return GrowthPerformanceEnum.poor


def project_weight(weight: float, sgr: float, days: int) -> float:
	"""Exponential projection ``W * e^(SGR * t / 100)``."""
	if weight <= 0 or days <= 0:
		return weight
	return weight * math.exp(sgr * days / 100)


def days_to_target_weight(current_weight: float, target_weight: float, sgr: float) -> int:
	"""Days until ``target_weight`` at a constant SGR; 0 when reached or not growing."""
	if sgr <= 0 or current_weight <= 0 or current_weight >= target_weight:
		return 0
	return math.ceil(math.log(target_weight / current_weight) / (sgr / 100))


def performance_index(
	growth_variance_pct: float,
	fcr_variance_pct: float,
	weight_cv: float,
	survival_rate: float,
) -> float:
	"""Overall 0-100 score: 100 minus growth, FCR and uniformity penalties, +/-5 for survival.

	Only under-growth and FCR above target are penalised.
	"""
	index = 100.0
	if growth_variance_pct < 0:
		index -= min(MAX_GROWTH_PENALTY, abs(growth_variance_pct))
	if fcr_variance_pct > 0:
		index -= min(MAX_FCR_PENALTY, fcr_variance_pct)
	if weight_cv > CV_PENALTY_THRESHOLD:
		index -= min(MAX_CV_PENALTY, (weight_cv - CV_PENALTY_THRESHOLD) * CV_PENALTY_FACTOR)

	if survival_rate > HIGH_SURVIVAL_RATE:
		index += SURVIVAL_ADJUSTMENT
	elif survival_rate < LOW_SURVIVAL_RATE:
		index -= SURVIVAL_ADJUSTMENT

	return max(0.0, min(100.0, index))

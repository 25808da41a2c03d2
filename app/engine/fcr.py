"""
Feed Conversion Ratio arithmetic, trend regression and alerting thresholds.

FCR = feed delivered (kg) / biomass gained (kg); lower is better.

Two deliberately different failure modes:

- ``period_fcr`` raises on growth <= 0. A period calculation is an explicit
  user action and must surface the problem instead of reporting a number.
- ``cumulative_fcr`` degrades to 0 on growth <= 0. Zero is the "not yet
  meaningful" sentinel dashboards aggregate over.

Trend analysis fits an ordinary least-squares line through the recent period
FCR values (x = chronological index). A falling FCR is an improving trend.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from scipy import stats

from app.models.enums import FCRTrendEnum, GrowthPerformanceEnum
from app.schemas.fcr import FCRTrendAnalysis

# Period FCR outside this band is reported but flagged for data checks
ABNORMAL_FCR_LOW = 0.5
ABNORMAL_FCR_HIGH = 5.0

# Cumulative FCR anomaly thresholds
CRITICAL_FCR = 3.0
SUSPICIOUS_FCR = 0.7
TARGET_DEVIATION_ALERT_PCT = 30.0
RAPID_DECLINE_SLOPE = 0.05

# Trend regression
TREND_WINDOW = 10
MIN_TREND_POINTS = 3
TREND_SLOPE_TOLERANCE = 0.01
URGENT_DECLINE_SLOPE = 0.03
FORECAST_HORIZON_DAYS = 7
FORECAST_FLOOR = 0.5

# Recommendation levels
HIGH_FCR_WHILE_IMPROVING = 2.0
HIGH_FCR_WHILE_STABLE = 1.8

DEFAULT_TARGET_FCR = 1.5

INDUSTRY_AVERAGE_FCR: dict[str, float] = {
	"atlantic_salmon": 1.2,
	"rainbow_trout": 1.1,
	"sea_bass": 1.8,
	"sea_bream": 2.0,
	"tilapia": 1.6,
	"catfish": 1.5,
	"shrimp": 1.8,
	"default": 1.5,
}

INSUFFICIENT_MEASUREMENTS = "insufficient measurements: at least 2 growth measurements are required in the period"
NON_POSITIVE_GROWTH = "non-positive growth: biomass did not increase over the period"
NOT_ENOUGH_TREND_DATA = "Not enough data - more measurements required"


def abnormal_fcr_warning(fcr: float) -> str:
	return f"abnormal FCR value {fcr:.2f} - check feeding and sampling data"


def period_fcr(feed_kg: float, growth_kg: float) -> float:
	if growth_kg <= 0:
		raise ValueError(NON_POSITIVE_GROWTH)
	return feed_kg / growth_kg


def is_abnormal_fcr(fcr: float) -> bool:
	"""Outside ``[ABNORMAL_FCR_LOW, ABNORMAL_FCR_HIGH)``; the upper bound itself is flagged."""
	return fcr < ABNORMAL_FCR_LOW or fcr >= ABNORMAL_FCR_HIGH


def cumulative_fcr(feed_kg: float, start_biomass_kg: float, current_biomass_kg: float) -> tuple[float, float]:
	"""Return ``(fcr, growth_kg)``; fcr is 0 until the batch has gained biomass."""
	growth = current_biomass_kg - start_biomass_kg
	fcr = feed_kg / growth if growth > 0 else 0.0
	return fcr, growth


def fcr_variance(fcr: float, target_fcr: float) -> float:
	if target_fcr <= 0:
		return 0.0
	return (fcr - target_fcr) / target_fcr * 100


def industry_average_fcr(species_code: str | None) -> float:
	return INDUSTRY_AVERAGE_FCR.get(species_code or "default", INDUSTRY_AVERAGE_FCR["default"])


def linear_regression(values: Sequence[float]) -> tuple[float, float]:
	"""OLS over ``(index, value)`` points; returns ``(slope, r_squared)``.

	R² is 0 when the values are constant (total sum of squares is zero).
	"""
	x = list(range(len(values)))
	result = stats.linregress(x, list(values))
	slope = 0.0 if math.isnan(result.slope) else float(result.slope)
	r_value = 0.0 if math.isnan(result.rvalue) else float(result.rvalue)
	return slope, r_value**2


def classify_trend(slope: float) -> FCRTrendEnum:
	if slope < -TREND_SLOPE_TOLERANCE:
		return FCRTrendEnum.improving
	if slope > TREND_SLOPE_TOLERANCE:
		return FCRTrendEnum.declining
	return FCRTrendEnum.stable


def trend_recommendations(trend: FCRTrendEnum, slope: float, current_fcr: float) -> list[str]:
	recommendations: list[str] = []

	if trend == FCRTrendEnum.declining:
		recommendations.append("Review the feeding programme")
		recommendations.append("Check water quality parameters")
		recommendations.append("Assess fish health")
		if slope > URGENT_DECLINE_SLOPE:
			recommendations.append("URGENT: rapid FCR increase - detailed investigation required")
	elif trend == FCRTrendEnum.improving:
		recommendations.append("Maintain the current feeding strategy")
		if current_fcr > HIGH_FCR_WHILE_IMPROVING:
			recommendations.append("FCR is still high - room for further improvement")
	elif current_fcr > HIGH_FCR_WHILE_STABLE:
		recommendations.append("Evaluate feed quality to optimise FCR")
	else:
		recommendations.append("Performance stable - maintain the current protocol")

	return recommendations


def fit_fcr_trend(period_fcrs: Sequence[float], fallback_forecast: float = 0.0) -> FCRTrendAnalysis:
	"""Trend of chronologically ordered period FCR values.

	Fewer than three values yields a ``stable`` result with a "not enough
	data" recommendation and ``fallback_forecast`` as the forecast.
	"""
	if len(period_fcrs) < MIN_TREND_POINTS:
		return FCRTrendAnalysis(
			trend=FCRTrendEnum.stable,
			slope=0.0,
			correlation=0.0,
			forecast_7_days=fallback_forecast,
			recommendations=[NOT_ENOUGH_TREND_DATA],
		)

	slope, r_squared = linear_regression(period_fcrs)
	trend = classify_trend(slope)
	last_fcr = period_fcrs[-1]
	forecast = max(FORECAST_FLOOR, last_fcr + slope * FORECAST_HORIZON_DAYS)

	return FCRTrendAnalysis(
		trend=trend,
		slope=slope,
		correlation=r_squared,
		forecast_7_days=forecast,
		recommendations=trend_recommendations(trend, slope, last_fcr),
	)


def rate_fcr_performance(variance_from_target: float) -> GrowthPerformanceEnum:
	if variance_from_target <= -10:
		return GrowthPerformanceEnum.excellent
	if variance_from_target <= 0:
		return GrowthPerformanceEnum.good
	if variance_from_target <= 10:
		return GrowthPerformanceEnum.average
	if variance_from_target <= 20:
		return GrowthPerformanceEnum.below_average
	return GrowthPerformanceEnum.poor


def fcr_anomalies(
	cumulative: float,
	variance_from_target: float,
	trend: FCRTrendAnalysis,
) -> list[str]:
	anomalies: list[str] = []

	if cumulative > CRITICAL_FCR:
		anomalies.append(
			f"Critical: FCR very high ({cumulative:.2f}) - possible feeding or sampling error"
		)

	if 0 < cumulative < SUSPICIOUS_FCR:
		anomalies.append(f"Warning: FCR suspiciously low ({cumulative:.2f}) - verify data accuracy")

	if abs(variance_from_target) > TARGET_DEVIATION_ALERT_PCT:
		anomalies.append(f"Significant deviation: FCR differs from target by {variance_from_target:.1f}%")

	if trend.trend == FCRTrendEnum.declining and trend.slope > RAPID_DECLINE_SLOPE:
		anomalies.append(
			f"Warning: FCR deteriorating quickly (+{trend.slope * 100:.2f}% per measurement)"
		)

	return anomalies

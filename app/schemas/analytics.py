"""Pydantic schemas for the batch-level growth analysis report."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from app.models.enums import (
	ActionPriorityEnum,
	ActionTypeEnum,
	CVTrendEnum,
	FCRTrendEnum,
	GrowthDirectionEnum,
	GrowthPerformanceEnum,
)


class GrowthMetrics(BaseModel):
	current_avg_weight_g: float
	theoretical_weight_g: float
	weight_variance_percent: float
	current_biomass_kg: float
	current_quantity: int
	survival_rate: float
	mortality_rate: float
	current_fcr: float
	target_fcr: float
	fcr_variance_percent: float
	daily_growth_rate_g: float
	specific_growth_rate: float
	weight_cv: float
	performance_rating: GrowthPerformanceEnum


class GrowthTrend(BaseModel):
	direction: GrowthDirectionEnum
	avg_daily_growth_last_7_days: float
	avg_daily_growth_last_30_days: float
	growth_acceleration: float
	fcr_trend: FCRTrendEnum
	fcr_change_last_7_days: float
	cv_trend: CVTrendEnum
	cv_change: float


class GrowthProjection(BaseModel):
	projected_weight_in_30_days: float
	projected_biomass_in_30_days: float
	estimated_harvest_date: datetime | None = None
	harvest_target_weight_g: float
	days_to_harvest: int
	projected_total_feed_kg: float
	projected_final_fcr: float


class GrowthRecommendation(BaseModel):
	priority: ActionPriorityEnum
	type: ActionTypeEnum
	description: str
	reason: str
	action_required: str | None = None


class GrowthMeasurementSummary(BaseModel):
	id: uuid.UUID
	measurement_date: datetime
	average_weight: float
	weight_cv: float
	sample_size: int
	estimated_biomass_kg: float
	daily_growth_rate: float | None = None
	period_fcr: float | None = None
	performance: GrowthPerformanceEnum | None = None


class GrowthAnalysisResult(BaseModel):
	batch_id: uuid.UUID
	batch_code: str
	species_name: str
	analysis_date: datetime
	days_in_production: int
	weight_gain_g: float
	biomass_gain_kg: float
	performance_index: float
	current_metrics: GrowthMetrics
	trend: GrowthTrend
	projection: GrowthProjection
	recommendations: list[GrowthRecommendation] = Field(default_factory=list)
	measurement_history: list[GrowthMeasurementSummary] = Field(default_factory=list)
	cached: bool = False

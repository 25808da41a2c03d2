"""Pydantic schemas for feed conversion ratio results."""

from __future__ import annotations

import uuid

from pydantic import BaseModel, Field

from app.models.enums import FCRTrendEnum, GrowthPerformanceEnum
from app.schemas.growth import FCRAnalysis


class FCRCalculationResult(BaseModel):
	period_fcr: float
	cumulative_fcr: float
	analysis: FCRAnalysis
	is_valid: bool
	warnings: list[str] = Field(default_factory=list)


class CumulativeFCR(BaseModel):
	fcr: float
	total_feed_kg: float
	total_growth_kg: float


class FCRTrendAnalysis(BaseModel):
	trend: FCRTrendEnum
	slope: float
	correlation: float
	forecast_7_days: float
	recommendations: list[str] = Field(default_factory=list)


class FCRComparison(BaseModel):
	current_fcr: float
	target_fcr: float
	industry_avg_fcr: float
	variance_from_target: float
	variance_from_industry: float
	performance: GrowthPerformanceEnum


class FCRAnomalyReport(BaseModel):
	has_anomaly: bool
	anomalies: list[str] = Field(default_factory=list)


class BatchFCRSummary(BaseModel):
	batch_id: uuid.UUID
	batch_code: str
	species_name: str
	total_feed_given_kg: float
	total_growth_kg: float
	start_biomass_kg: float
	current_biomass_kg: float
	current_fcr: float
	best_fcr: float
	worst_fcr: float
	avg_fcr: float
	target_fcr: float
	trend: FCRTrendEnum
	measurement_count: int
	performance: GrowthPerformanceEnum
	recommendations: list[str] = Field(default_factory=list)

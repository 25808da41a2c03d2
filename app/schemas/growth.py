"""Pydantic schemas for growth samples and their derived analyses.

Everything derived from a sample is frozen: the record pipeline builds a new
``GrowthMeasurement`` per stage with ``model_copy(update=...)`` and never
mutates one in place.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from app.models.enums import (
	ActionPriorityEnum,
	ActionTypeEnum,
	FCRTrendEnum,
	FeedingStatusEnum,
	GrowthPerformanceEnum,
	MeasurementMethodEnum,
	MeasurementTypeEnum,
)

_FROZEN = ConfigDict(frozen=True)


def as_utc(value: datetime) -> datetime:
	"""Offset-less timestamps are taken as UTC; stored dates are always tz-aware."""
	if value.tzinfo is None:
		return value.replace(tzinfo=UTC)
	return value


class IndividualObservation(BaseModel):
	model_config = _FROZEN

	sample_number: int = Field(gt=0)
	weight_g: float = Field(gt=0)
	length_cm: float | None = Field(default=None, gt=0)
	width_cm: float | None = Field(default=None, gt=0)
	notes: str | None = None


class ConfidenceInterval(BaseModel):
	model_config = _FROZEN

	lower: float
	upper: float


class DispersionSummary(BaseModel):
	model_config = _FROZEN

	min: float
	max: float
	mean: float
	median: float
	std_dev: float
	cv: float
	confidence_interval: ConfidenceInterval


class ConditionFactorSummary(BaseModel):
	model_config = _FROZEN

	mean: float
	std_dev: float


class StatisticalSummary(BaseModel):
	model_config = _FROZEN

	weight: DispersionSummary
	length: DispersionSummary | None = None
	condition_factor: ConditionFactorSummary | None = None


class SampleStatistics(BaseModel):
	"""Output of the statistics engine: the summary plus its quick-access values."""

	model_config = _FROZEN

	summary: StatisticalSummary
	average_weight: float
	average_length: float | None = None
	weight_cv: float
	condition_factor: float | None = None


class GrowthComparison(BaseModel):
	model_config = _FROZEN

	theoretical_weight: float
	actual_weight: float
	variance: float
	variance_percent: float
	previous_measurement_id: uuid.UUID | None = None
	days_since_previous: int = 0
	daily_growth_rate: float = 0.0
	specific_growth_rate: float = 0.0
	target_weight: float | None = None
	target_variance: float | None = None


class FCRAnalysis(BaseModel):
	model_config = _FROZEN

	period_feed_given: float = 0.0
	period_growth: float = 0.0
	period_fcr: float = 0.0
	cumulative_feed_given: float = 0.0
	cumulative_growth: float = 0.0
	cumulative_fcr: float = 0.0
	target_fcr: float = 1.5
	fcr_variance: float = 0.0
	fcr_trend: FCRTrendEnum = FCRTrendEnum.stable


class SuggestedAction(BaseModel):
	model_config = _FROZEN

	type: ActionTypeEnum
	description: str
	reason: str


class SuggestedActions(BaseModel):
	model_config = _FROZEN

	priority: ActionPriorityEnum
	actions: list[SuggestedAction] = Field(default_factory=list)


class MeasurementConditions(BaseModel):
	model_config = _FROZEN

	water_temp_c: float | None = None
	dissolved_oxygen_mg_l: float | None = None
	feeding_status: FeedingStatusEnum = FeedingStatusEnum.unknown
	time_of_day: str | None = None
	weather: str | None = None


class GrowthMeasurement(BaseModel):
	"""Aggregate root of one sampling event."""

	model_config = _FROZEN

	id: uuid.UUID = Field(default_factory=uuid.uuid4)
	tenant_id: uuid.UUID
	batch_id: uuid.UUID
	tank_id: uuid.UUID | None = None
	pond_id: uuid.UUID | None = None
	measurement_date: datetime
	measurement_type: MeasurementTypeEnum = MeasurementTypeEnum.routine
	measurement_method: MeasurementMethodEnum = MeasurementMethodEnum.manual_scale
	sample_size: int = Field(ge=3)
	population_size: int = Field(gt=0)
	individual_measurements: list[IndividualObservation]
	statistics: StatisticalSummary
	average_weight: float
	average_length: float | None = None
	weight_cv: float
	condition_factor: float | None = None
	previous_biomass_kg: float | None = None
	growth_comparison: GrowthComparison | None = None
	performance: GrowthPerformanceEnum | None = None
	fcr_analysis: FCRAnalysis | None = None
	suggested_actions: SuggestedActions | None = None
	conditions: MeasurementConditions | None = None
	is_verified: bool = False
	verified_by: uuid.UUID | None = None
	verified_at: datetime | None = None
	measured_by: uuid.UUID
	notes: str | None = None
	update_batch_weight: bool = True
	is_processed: bool = False
	created_at: datetime | None = None

	@computed_field  # type: ignore[prop-decorator]
	@property
	def sample_percent(self) -> float:
		return self.sample_size / self.population_size * 100

	@computed_field  # type: ignore[prop-decorator]
	@property
	def estimated_biomass_kg(self) -> float:
		return self.average_weight * self.population_size / 1000

	@computed_field  # type: ignore[prop-decorator]
	@property
	def biomass_gain_kg(self) -> float | None:
		if self.previous_biomass_kg is None:
			return None
		return self.estimated_biomass_kg - self.previous_biomass_kg

	@property
	def weight_range(self) -> float:
		return self.statistics.weight.max - self.statistics.weight.min

	def is_uniform_growth(self, threshold: float = 20) -> bool:
		return self.weight_cv <= threshold

	def needs_grading(self, cv_threshold: float = 25) -> bool:
		return self.weight_cv > cv_threshold

	def is_on_target(self, tolerance: float = 10) -> bool:
		if self.growth_comparison is None:
			return True
		return abs(self.growth_comparison.variance_percent) <= tolerance

	def is_fcr_on_target(self, tolerance: float = 10) -> bool:
		if self.fcr_analysis is None:
			return True
		return abs(self.fcr_analysis.fcr_variance) <= tolerance


# ── Requests ────────────────────────────────────────────────────────────────


class RecordGrowthSampleRequest(BaseModel):
	tank_id: uuid.UUID | None = None
	pond_id: uuid.UUID | None = None
	measurement_date: datetime
	measurement_type: MeasurementTypeEnum = MeasurementTypeEnum.routine
	measurement_method: MeasurementMethodEnum = MeasurementMethodEnum.manual_scale
	population_size: int = Field(gt=0)
	individual_measurements: list[IndividualObservation]
	conditions: MeasurementConditions | None = None
	measured_by: uuid.UUID
	notes: str | None = None
	update_batch_weight: bool = True

	@field_validator("measurement_date")
	@classmethod
	def _measurement_date_utc(cls, value: datetime) -> datetime:
		return as_utc(value)


class VerifyMeasurementRequest(BaseModel):
	user_id: uuid.UUID
	notes: str | None = None
	quality_rating: int | None = None


class ApplyMeasurementRequest(BaseModel):
	user_id: uuid.UUID

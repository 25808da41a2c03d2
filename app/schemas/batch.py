"""Read model of a production batch as exposed by the batch registry."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, computed_field


class SpeciesTargets(BaseModel):
	model_config = ConfigDict(frozen=True)

	species_code: str = "default"
	name: str = ""
	daily_growth_g: float = Field(default=0.0, ge=0)
	target_fcr: float | None = Field(default=None, gt=0)
	avg_harvest_weight_g: float | None = Field(default=None, gt=0)


class BatchProfile(BaseModel):
	model_config = ConfigDict(frozen=True)

	id: uuid.UUID
	tenant_id: uuid.UUID
	batch_code: str
	initial_count: int = Field(ge=0)
	initial_avg_weight_g: float = Field(ge=0)
	current_avg_weight_g: float = Field(ge=0)
	current_count: int = Field(ge=0)
	total_mortality: int = Field(default=0, ge=0)
	species: SpeciesTargets = Field(default_factory=SpeciesTargets)
	stocked_at: datetime
	expected_harvest_date: datetime | None = None
	last_measured_at: datetime | None = None

	@computed_field  # type: ignore[prop-decorator]
	@property
	def start_biomass_kg(self) -> float:
		return self.initial_count * self.initial_avg_weight_g / 1000

	@computed_field  # type: ignore[prop-decorator]
	@property
	def survival_rate(self) -> float:
		if self.initial_count <= 0:
			return 100.0
		return (self.initial_count - self.total_mortality) / self.initial_count * 100

	@computed_field  # type: ignore[prop-decorator]
	@property
	def mortality_rate(self) -> float:
		if self.initial_count <= 0:
			return 0.0
		return self.total_mortality / self.initial_count * 100

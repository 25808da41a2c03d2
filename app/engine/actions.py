"""Per-sample suggested actions from uniformity, growth variance, FCR and condition."""

from __future__ import annotations

from app.models.enums import ActionPriorityEnum, ActionTypeEnum, FCRTrendEnum
from app.schemas.growth import FCRAnalysis, GrowthComparison, SuggestedAction, SuggestedActions

GRADING_CV_THRESHOLD = 25.0
UNDERGROWTH_PCT = -15.0
SEVERE_UNDERGROWTH_PCT = -20.0
FCR_OVER_TARGET_PCT = 15.0
LOW_CONDITION_FACTOR = 0.8

_RANK = {ActionPriorityEnum.low: 0, ActionPriorityEnum.medium: 1, ActionPriorityEnum.high: 2}


def _raise_to(current: ActionPriorityEnum, floor: ActionPriorityEnum) -> ActionPriorityEnum:
	return current if _RANK[current] >= _RANK[floor] else floor


def suggest_actions(
	weight_cv: float,
	comparison: GrowthComparison | None,
	fcr_analysis: FCRAnalysis | None,
	condition_factor: float | None,
) -> SuggestedActions | None:
	actions: list[SuggestedAction] = []
	priority = ActionPriorityEnum.low

	if weight_cv > GRADING_CV_THRESHOLD:
		actions.append(
			SuggestedAction(
				type=ActionTypeEnum.grading,
				description="Grade the batch",
				reason=f"Weight CV is high: {weight_cv:.1f}%",
			)
		)
		priority = _raise_to(priority, ActionPriorityEnum.medium)

	if comparison is not None and comparison.variance_percent < UNDERGROWTH_PCT:
		actions.append(
			SuggestedAction(
				type=ActionTypeEnum.feeding,
				description="Review the feeding programme",
				reason=f"Growth is {abs(comparison.variance_percent):.1f}% below target",
			)
		)
		if comparison.variance_percent < SEVERE_UNDERGROWTH_PCT:
			priority = ActionPriorityEnum.high
		else:
			priority = _raise_to(priority, ActionPriorityEnum.medium)

	if fcr_analysis is not None and fcr_analysis.fcr_variance > FCR_OVER_TARGET_PCT:
		actions.append(
			SuggestedAction(
				type=ActionTypeEnum.feeding,
				description="Check feed quality and ration size",
				reason=f"FCR is {fcr_analysis.fcr_variance:.1f}% above target",
			)
		)
		priority = _raise_to(priority, ActionPriorityEnum.medium)

	if fcr_analysis is not None and fcr_analysis.fcr_trend == FCRTrendEnum.declining:
		actions.append(
			SuggestedAction(
				type=ActionTypeEnum.health,
				description="Run a health check",
				reason="FCR trend is deteriorating",
			)
		)
		priority = ActionPriorityEnum.high

	if condition_factor is not None and condition_factor < LOW_CONDITION_FACTOR:
		actions.append(
			SuggestedAction(
				type=ActionTypeEnum.health,
				description="Low body condition, run a health check",
				reason=f"Condition factor: {condition_factor:.2f}",
			)
		)
		priority = ActionPriorityEnum.high

	if not actions:
		return None
	return SuggestedActions(priority=priority, actions=actions)

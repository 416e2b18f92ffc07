"""Adaptation triggers and results.

Triggers are a closed set of tagged variants discriminated by ``kind``.
AdaptationEngine dispatches over them exhaustively, so adding a variant
here without a matching branch fails type checking (``assert_never``).
"""

from datetime import date
from typing import Annotated, Literal

from pydantic import BaseModel, Field

from adaptive_training.plans.types import (
    AdaptationTrigger,
    InjuryStatus,
    InjuryType,
    IntensityDirection,
    MovementPattern,
    ScheduleAvailability,
)


class MissedWorkoutsTrigger(BaseModel):
    kind: Literal[AdaptationTrigger.MISSED_WORKOUTS] = AdaptationTrigger.MISSED_WORKOUTS
    workout_ids: list[str]


class InjuryTrigger(BaseModel):
    """Injury report. ``status=Resolved`` lifts the matching restriction."""

    kind: Literal[AdaptationTrigger.INJURY] = AdaptationTrigger.INJURY
    body_part: str
    movement_restrictions: list[MovementPattern] = Field(default_factory=list)
    injury_type: InjuryType = InjuryType.ACUTE
    status: InjuryStatus = InjuryStatus.ACTIVE


class ScheduleChangeTrigger(BaseModel):
    kind: Literal[AdaptationTrigger.SCHEDULE_CHANGE] = AdaptationTrigger.SCHEDULE_CHANGE
    new_availability: ScheduleAvailability


class TimelineChangeTrigger(BaseModel):
    kind: Literal[AdaptationTrigger.TIMELINE_CHANGE] = AdaptationTrigger.TIMELINE_CHANGE
    new_target_date: date


class UserRequestTrigger(BaseModel):
    kind: Literal[AdaptationTrigger.USER_REQUEST] = AdaptationTrigger.USER_REQUEST
    direction: IntensityDirection
    reason: str | None = None


class PerceivedDifficultyTrigger(BaseModel):
    kind: Literal[AdaptationTrigger.PERCEIVED_DIFFICULTY] = AdaptationTrigger.PERCEIVED_DIFFICULTY
    direction: IntensityDirection
    feedback: str | None = None


Trigger = Annotated[
    MissedWorkoutsTrigger
    | InjuryTrigger
    | ScheduleChangeTrigger
    | TimelineChangeTrigger
    | UserRequestTrigger
    | PerceivedDifficultyTrigger,
    Field(discriminator="kind"),
]


class AdaptationResult(BaseModel):
    """Outcome of a successful adaptation call.

    Attributes:
        success: Always True; failures raise typed errors instead
        adaptation_id: Id of the PlanAdaptation record written with the change
        plan_id: Adapted plan
        plan_version: Plan version after the change
        warnings: Non-blocking policy warnings raised while adapting
    """

    success: bool
    adaptation_id: str
    plan_id: str
    plan_version: int
    warnings: list[str] = Field(default_factory=list)

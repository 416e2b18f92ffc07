"""Event-driven plan adaptation."""

from adaptive_training.plans.adapt.engine import AdaptationEngine
from adaptive_training.plans.adapt.types import (
    AdaptationResult,
    InjuryTrigger,
    MissedWorkoutsTrigger,
    PerceivedDifficultyTrigger,
    ScheduleChangeTrigger,
    TimelineChangeTrigger,
    Trigger,
    UserRequestTrigger,
)

__all__ = [
    "AdaptationEngine",
    "AdaptationResult",
    "InjuryTrigger",
    "MissedWorkoutsTrigger",
    "PerceivedDifficultyTrigger",
    "ScheduleChangeTrigger",
    "TimelineChangeTrigger",
    "Trigger",
    "UserRequestTrigger",
]

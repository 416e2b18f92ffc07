"""Plans module - periodized training plans and their adaptation.

This module provides:
- Canonical plan, week and workout types
- Structural and status-transition validators
- Plan generation (``plans.generate``)
- Event-driven adaptation (``plans.adapt``)
- Progress statistics (``plans.progress``)
"""

from adaptive_training.plans.errors import (
    ConflictError,
    ExternalServiceError,
    InfeasibleAdaptationError,
    InfeasiblePlanError,
    InvalidStatusTransitionError,
    NotFoundError,
    PlanEngineError,
    ValidationError,
)
from adaptive_training.plans.types import (
    AdaptationTrigger,
    AdaptationType,
    CompletionStatus,
    Discipline,
    IntensityDirection,
    IntensityLevel,
    PlanAdaptation,
    ScheduleAvailability,
    TrainingPhase,
    TrainingPlan,
    TrainingWeek,
    UserProfile,
    Workout,
)

__all__ = [
    "AdaptationTrigger",
    "AdaptationType",
    "CompletionStatus",
    "ConflictError",
    "Discipline",
    "ExternalServiceError",
    "InfeasibleAdaptationError",
    "InfeasiblePlanError",
    "IntensityDirection",
    "IntensityLevel",
    "InvalidStatusTransitionError",
    "NotFoundError",
    "PlanAdaptation",
    "PlanEngineError",
    "ScheduleAvailability",
    "TrainingPhase",
    "TrainingPlan",
    "TrainingWeek",
    "UserProfile",
    "ValidationError",
    "Workout",
]

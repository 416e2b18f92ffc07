"""Canonical domain types for training plans.

This module defines the plan aggregate and everything that flows into it:
- Taxonomies are string enums so they serialize unchanged to JSON and the DB
- IntensityLevel is an ordered scale (use ``intensity_rank`` to compare)
- A TrainingPlan owns its weeks, a week owns its workouts
- PlanAdaptation is append-only and never mutated after creation

Models are plain pydantic v2 models. Structural invariants that span more
than one field (contiguous weeks, workout dates inside weeks) live in
``adaptive_training.plans.validators``.
"""

from datetime import date, datetime
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator


# -----------------------------
# Taxonomies
# -----------------------------
class Discipline(StrEnum):
    HYROX = "HYROX"
    RUNNING = "Running"
    STRENGTH = "Strength"
    HYBRID = "Hybrid"


class FitnessLevel(StrEnum):
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"


class GoalType(StrEnum):
    HYROX_RACE = "HyroxRace"
    RUNNING_DISTANCE = "RunningDistance"
    STRENGTH_MILESTONE = "StrengthMilestone"
    GENERAL_FITNESS = "GeneralFitness"


class GoalStatus(StrEnum):
    ACTIVE = "Active"
    COMPLETED = "Completed"
    ABANDONED = "Abandoned"


class InjuryType(StrEnum):
    ACUTE = "Acute"
    CHRONIC = "Chronic"


class InjuryStatus(StrEnum):
    ACTIVE = "Active"
    IMPROVING = "Improving"
    RESOLVED = "Resolved"


class MovementPattern(StrEnum):
    PUSH = "Push"
    PULL = "Pull"
    SQUAT = "Squat"
    HINGE = "Hinge"
    CARRY = "Carry"
    CORE = "Core"
    CARDIO = "Cardio"


class IntensityLevel(StrEnum):
    """Ordered intensity scale, lowest first."""

    LOW = "Low"
    MODERATE = "Moderate"
    HIGH = "High"
    MAXIMUM = "Maximum"


class IntensityDirection(StrEnum):
    HARDER = "Harder"
    EASIER = "Easier"


class CompletionStatus(StrEnum):
    NOT_STARTED = "NotStarted"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    SKIPPED = "Skipped"
    MISSED = "Missed"


class PlanStatus(StrEnum):
    ACTIVE = "Active"
    COMPLETED = "Completed"
    ABANDONED = "Abandoned"
    PAUSED = "Paused"


class TrainingPhase(StrEnum):
    FOUNDATION = "Foundation"
    BUILD = "Build"
    INTENSITY = "Intensity"
    PEAK = "Peak"
    TAPER = "Taper"
    RECOVERY = "Recovery"


class SessionType(StrEnum):
    EASY_RUN = "EasyRun"
    INTERVALS = "Intervals"
    TEMPO = "Tempo"
    LONG_RUN = "LongRun"
    RECOVERY = "Recovery"
    FULL_BODY = "FullBody"
    UPPER_LOWER = "UpperLower"
    PUSH_PULL_LEGS = "PushPullLegs"
    RACE_SIMULATION = "RaceSimulation"
    STATION_PRACTICE = "StationPractice"
    TRANSITION_DRILLS = "TransitionDrills"
    HYBRID_CONDITIONING = "HybridConditioning"
    MOBILITY = "Mobility"


class AdaptationTrigger(StrEnum):
    MISSED_WORKOUTS = "MissedWorkouts"
    USER_REQUEST = "UserRequest"
    INJURY = "Injury"
    SCHEDULE_CHANGE = "ScheduleChange"
    TIMELINE_CHANGE = "TimelineChange"
    PERCEIVED_DIFFICULTY = "PerceivedDifficulty"


class AdaptationType(StrEnum):
    INTENSITY = "Intensity"
    SCHEDULE = "Schedule"
    TIMELINE = "Timeline"
    INJURY = "Injury"
    RECOVERY = "Recovery"


PHASE_SEQUENCE: tuple[TrainingPhase, ...] = (
    TrainingPhase.FOUNDATION,
    TrainingPhase.BUILD,
    TrainingPhase.INTENSITY,
    TrainingPhase.PEAK,
    TrainingPhase.TAPER,
    TrainingPhase.RECOVERY,
)

INTENSITY_SCALE: tuple[IntensityLevel, ...] = tuple(IntensityLevel)

# Monday == 0, matching date.weekday()
WEEKDAYS: tuple[str, ...] = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


def intensity_rank(level: IntensityLevel) -> int:
    """Position of a level on the intensity scale (Low == 0)."""
    return INTENSITY_SCALE.index(level)


# -----------------------------
# Profile (input only)
# -----------------------------
class ScheduleAvailability(BaseModel):
    """Weekly availability with per-day flags and session bounds.

    Use ``validate_schedule_availability`` before trusting an instance;
    construction alone does not enforce the min/max bounds so that invalid
    input can be reported as a ValidationError instead of a pydantic error.
    """

    monday: bool = False
    tuesday: bool = False
    wednesday: bool = False
    thursday: bool = False
    friday: bool = False
    saturday: bool = False
    sunday: bool = False
    minimum_sessions_per_week: int = 1
    maximum_sessions_per_week: int = 1

    @classmethod
    def from_weekdays(cls, weekdays: list[int], *, minimum: int, maximum: int) -> "ScheduleAvailability":
        """Build availability from weekday indices (Monday == 0)."""
        flags = {WEEKDAYS[day]: True for day in weekdays}
        return cls(**flags, minimum_sessions_per_week=minimum, maximum_sessions_per_week=maximum)

    def available_weekdays(self) -> list[int]:
        """Weekday indices that are selected, Monday first."""
        return [index for index, name in enumerate(WEEKDAYS) if getattr(self, name)]

    def available_day_count(self) -> int:
        return len(self.available_weekdays())


class TrainingGoal(BaseModel):
    goal_type: GoalType
    description: str = ""
    target_date: date | None = None
    priority: int = 1
    status: GoalStatus = GoalStatus.ACTIVE

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, value: int) -> int:
        """Priority 1 is the most important goal."""
        if value < 1:
            raise ValueError(f"Goal priority must be >= 1, got {value}")
        return value


class InjuryLimitation(BaseModel):
    """An injury or limitation reported by the user."""

    body_part: str
    injury_type: InjuryType = InjuryType.ACUTE
    status: InjuryStatus = InjuryStatus.ACTIVE
    movement_restrictions: list[MovementPattern] = Field(default_factory=list)
    reported_date: date | None = None

    def is_open(self) -> bool:
        return self.status in {InjuryStatus.ACTIVE, InjuryStatus.IMPROVING}


class UserProfile(BaseModel):
    user_id: str
    name: str = ""
    hyrox_level: FitnessLevel = FitnessLevel.BEGINNER
    running_level: FitnessLevel = FitnessLevel.BEGINNER
    strength_level: FitnessLevel = FitnessLevel.BEGINNER
    schedule: ScheduleAvailability
    goals: list[TrainingGoal] = Field(default_factory=list)
    injuries: list[InjuryLimitation] = Field(default_factory=list)

    def active_goals(self) -> list[TrainingGoal]:
        """Active goals ordered by priority (most important first)."""
        return sorted((g for g in self.goals if g.status == GoalStatus.ACTIVE), key=lambda g: g.priority)

    def open_injuries(self) -> list[InjuryLimitation]:
        return [injury for injury in self.injuries if injury.is_open()]


# -----------------------------
# Plan aggregate
# -----------------------------
class Workout(BaseModel):
    id: str
    name: str
    description: str = ""
    discipline: Discipline
    session_type: SessionType
    day_of_week: int
    scheduled_date: date
    intensity: IntensityLevel
    estimated_duration_min: int
    is_key_workout: bool = False
    status: CompletionStatus = CompletionStatus.NOT_STARTED
    completed_at: datetime | None = None

    @field_validator("day_of_week")
    @classmethod
    def validate_day_of_week(cls, value: int) -> int:
        if not 0 <= value <= 6:
            raise ValueError(f"day_of_week must be 0-6 (Monday == 0), got {value}")
        return value

    def is_future(self, today: date) -> bool:
        """NotStarted and scheduled today or later."""
        return self.status == CompletionStatus.NOT_STARTED and self.scheduled_date >= today


class TrainingWeek(BaseModel):
    id: str
    week_number: int
    phase: TrainingPhase
    intensity: IntensityLevel
    focus_area: str = ""
    start_date: date
    end_date: date
    workouts: list[Workout] = Field(default_factory=list)

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def total_duration_min(self) -> int:
        return sum(w.estimated_duration_min for w in self.workouts)


class InjuryRestriction(BaseModel):
    """Plan-level restriction kept in force until the injury is resolved."""

    body_part: str
    patterns: list[MovementPattern] = Field(default_factory=list)
    disciplines: list[Discipline] = Field(default_factory=list)
    ceiling: IntensityLevel = IntensityLevel.MODERATE


class TrainingPlan(BaseModel):
    id: str
    user_id: str
    name: str
    status: PlanStatus = PlanStatus.ACTIVE
    total_weeks: int
    current_week: int = 1
    start_date: date
    end_date: date
    training_days_per_week: int
    seed: int = 0
    restrictions: list[InjuryRestriction] = Field(default_factory=list)
    version: int = 1
    weeks: list[TrainingWeek] = Field(default_factory=list)

    def all_workouts(self) -> list[Workout]:
        return [workout for week in self.weeks for workout in week.workouts]

    def find_workout(self, workout_id: str) -> tuple[TrainingWeek, Workout] | None:
        for week in self.weeks:
            for workout in week.workouts:
                if workout.id == workout_id:
                    return week, workout
        return None

    def week_pointer_for(self, today: date) -> int:
        """1-based current week pointer clamped to the plan range."""
        if today < self.start_date:
            return 1
        index = (today - self.start_date).days // 7 + 1
        return min(index, self.total_weeks)


class PlanAdaptation(BaseModel):
    """Append-only audit record of a single adaptation."""

    id: str
    plan_id: str
    trigger: AdaptationTrigger
    adaptation_type: AdaptationType
    applied_at: datetime
    description: str

"""Session catalog: which sessions exist per discipline and phase.

Each session type carries a base duration, an intensity offset relative to
its week, and the movement patterns it loads. Injury handling uses the
patterns to decide which sessions to substitute.
"""

from adaptive_training.plans.intensity import shift_intensity
from adaptive_training.plans.types import (
    Discipline,
    IntensityDirection,
    IntensityLevel,
    MovementPattern,
    SessionType,
    TrainingPhase,
)

P = MovementPattern

SESSION_ROTATION: dict[Discipline, dict[TrainingPhase, list[SessionType]]] = {
    Discipline.RUNNING: {
        TrainingPhase.FOUNDATION: [SessionType.EASY_RUN, SessionType.LONG_RUN],
        TrainingPhase.BUILD: [SessionType.LONG_RUN, SessionType.TEMPO, SessionType.EASY_RUN],
        TrainingPhase.INTENSITY: [SessionType.INTERVALS, SessionType.TEMPO, SessionType.EASY_RUN],
        TrainingPhase.PEAK: [SessionType.INTERVALS, SessionType.LONG_RUN, SessionType.TEMPO],
        TrainingPhase.TAPER: [SessionType.EASY_RUN, SessionType.TEMPO],
        TrainingPhase.RECOVERY: [SessionType.RECOVERY, SessionType.EASY_RUN],
    },
    Discipline.STRENGTH: {
        TrainingPhase.FOUNDATION: [SessionType.FULL_BODY],
        TrainingPhase.BUILD: [SessionType.UPPER_LOWER, SessionType.FULL_BODY],
        TrainingPhase.INTENSITY: [SessionType.UPPER_LOWER, SessionType.PUSH_PULL_LEGS],
        TrainingPhase.PEAK: [SessionType.PUSH_PULL_LEGS, SessionType.UPPER_LOWER],
        TrainingPhase.TAPER: [SessionType.FULL_BODY],
        TrainingPhase.RECOVERY: [SessionType.FULL_BODY, SessionType.MOBILITY],
    },
    Discipline.HYROX: {
        TrainingPhase.FOUNDATION: [SessionType.STATION_PRACTICE, SessionType.HYBRID_CONDITIONING],
        TrainingPhase.BUILD: [SessionType.TRANSITION_DRILLS, SessionType.STATION_PRACTICE, SessionType.HYBRID_CONDITIONING],
        TrainingPhase.INTENSITY: [SessionType.HYBRID_CONDITIONING, SessionType.TRANSITION_DRILLS, SessionType.STATION_PRACTICE],
        TrainingPhase.PEAK: [SessionType.RACE_SIMULATION, SessionType.TRANSITION_DRILLS],
        TrainingPhase.TAPER: [SessionType.STATION_PRACTICE, SessionType.HYBRID_CONDITIONING],
        TrainingPhase.RECOVERY: [SessionType.RECOVERY],
    },
    Discipline.HYBRID: {
        TrainingPhase.FOUNDATION: [SessionType.FULL_BODY, SessionType.EASY_RUN, SessionType.HYBRID_CONDITIONING],
        TrainingPhase.BUILD: [SessionType.HYBRID_CONDITIONING, SessionType.UPPER_LOWER, SessionType.LONG_RUN],
        TrainingPhase.INTENSITY: [SessionType.INTERVALS, SessionType.HYBRID_CONDITIONING, SessionType.UPPER_LOWER],
        TrainingPhase.PEAK: [SessionType.HYBRID_CONDITIONING, SessionType.INTERVALS, SessionType.PUSH_PULL_LEGS],
        TrainingPhase.TAPER: [SessionType.EASY_RUN, SessionType.FULL_BODY],
        TrainingPhase.RECOVERY: [SessionType.RECOVERY, SessionType.MOBILITY],
    },
}

DELOAD_SESSIONS: dict[Discipline, SessionType] = {
    Discipline.RUNNING: SessionType.RECOVERY,
    Discipline.STRENGTH: SessionType.FULL_BODY,
    Discipline.HYROX: SessionType.RECOVERY,
    Discipline.HYBRID: SessionType.FULL_BODY,
}

SESSION_DURATIONS_MIN: dict[SessionType, int] = {
    SessionType.EASY_RUN: 30,
    SessionType.LONG_RUN: 60,
    SessionType.INTERVALS: 45,
    SessionType.TEMPO: 40,
    SessionType.RECOVERY: 30,
    SessionType.FULL_BODY: 60,
    SessionType.UPPER_LOWER: 45,
    SessionType.PUSH_PULL_LEGS: 45,
    SessionType.RACE_SIMULATION: 90,
    SessionType.STATION_PRACTICE: 45,
    SessionType.TRANSITION_DRILLS: 45,
    SessionType.HYBRID_CONDITIONING: 50,
    SessionType.MOBILITY: 30,
}
DEFAULT_DURATION_MIN = 45
HIGH_INTENSITY_DURATION_FACTOR = 1.2

# Relative to the week's intensity
SESSION_INTENSITY_OFFSET: dict[SessionType, int] = {
    SessionType.INTERVALS: 1,
    SessionType.RACE_SIMULATION: 1,
    SessionType.EASY_RUN: -1,
    SessionType.RECOVERY: -3,
    SessionType.MOBILITY: -3,
}

SESSION_PATTERNS: dict[SessionType, frozenset[MovementPattern]] = {
    SessionType.EASY_RUN: frozenset({P.CARDIO}),
    SessionType.LONG_RUN: frozenset({P.CARDIO}),
    SessionType.INTERVALS: frozenset({P.CARDIO}),
    SessionType.TEMPO: frozenset({P.CARDIO}),
    SessionType.RECOVERY: frozenset({P.CARDIO}),
    SessionType.FULL_BODY: frozenset({P.SQUAT, P.HINGE, P.PUSH, P.PULL, P.CORE}),
    SessionType.UPPER_LOWER: frozenset({P.PUSH, P.PULL, P.SQUAT, P.HINGE}),
    SessionType.PUSH_PULL_LEGS: frozenset({P.PUSH, P.PULL, P.SQUAT}),
    SessionType.RACE_SIMULATION: frozenset({P.CARDIO, P.CARRY, P.SQUAT, P.PUSH, P.PULL}),
    SessionType.STATION_PRACTICE: frozenset({P.CARRY, P.PUSH, P.PULL, P.SQUAT}),
    SessionType.TRANSITION_DRILLS: frozenset({P.CARDIO, P.SQUAT}),
    SessionType.HYBRID_CONDITIONING: frozenset({P.CARDIO, P.CORE, P.CARRY}),
    SessionType.MOBILITY: frozenset({P.CORE}),
}

# Tried in order when a session touches a restricted pattern
SUBSTITUTES: dict[Discipline, list[SessionType]] = {
    Discipline.RUNNING: [SessionType.RECOVERY, SessionType.EASY_RUN, SessionType.MOBILITY],
    Discipline.STRENGTH: [SessionType.PUSH_PULL_LEGS, SessionType.UPPER_LOWER, SessionType.MOBILITY],
    Discipline.HYROX: [SessionType.HYBRID_CONDITIONING, SessionType.TRANSITION_DRILLS, SessionType.MOBILITY],
    Discipline.HYBRID: [SessionType.HYBRID_CONDITIONING, SessionType.EASY_RUN, SessionType.MOBILITY],
}

FOCUS_AREAS: dict[TrainingPhase, str] = {
    TrainingPhase.FOUNDATION: "Aerobic base, movement quality and technique",
    TrainingPhase.BUILD: "Progressive volume and strength endurance",
    TrainingPhase.INTENSITY: "Threshold work and higher-intensity intervals",
    TrainingPhase.PEAK: "Race-specific sessions at peak intensity",
    TrainingPhase.TAPER: "Reduced volume, sharpening and freshness",
    TrainingPhase.RECOVERY: "Active recovery and mobility",
}
DELOAD_FOCUS_AREA = "Deload: reduced volume and intensity for adaptation"


def session_type_for(discipline: Discipline, phase: TrainingPhase, slot: int, *, deload: bool = False) -> SessionType:
    """Pick the session type for the ``slot``-th session of a discipline in a week."""
    if deload:
        return DELOAD_SESSIONS[discipline]
    rotation = SESSION_ROTATION[discipline][phase]
    return rotation[slot % len(rotation)]


def session_intensity(session_type: SessionType, week_intensity: IntensityLevel) -> IntensityLevel:
    offset = SESSION_INTENSITY_OFFSET.get(session_type, 0)
    if offset == 0:
        return week_intensity
    direction = IntensityDirection.HARDER if offset > 0 else IntensityDirection.EASIER
    return shift_intensity(week_intensity, direction, abs(offset))


def session_duration(session_type: SessionType, intensity: IntensityLevel) -> int:
    """Estimated minutes for a session; high-intensity sessions run longer."""
    base = SESSION_DURATIONS_MIN.get(session_type, DEFAULT_DURATION_MIN)
    if intensity in {IntensityLevel.HIGH, IntensityLevel.MAXIMUM}:
        return round(base * HIGH_INTENSITY_DURATION_FACTOR)
    return base


def workout_name(discipline: Discipline, session_type: SessionType, phase: TrainingPhase) -> str:
    return f"{discipline} - {session_type} ({phase})"

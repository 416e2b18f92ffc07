"""Injury restrictions applied to workouts.

A restriction names movement patterns to avoid and an intensity ceiling for
the disciplines it affects. Applying it to a workout either leaves the
workout alone, substitutes a session that avoids the patterns, or reports
that no safe session exists so the caller removes the workout.
"""

from adaptive_training.plans.intensity import cap_intensity, ceiling_for
from adaptive_training.plans.sessions import SESSION_PATTERNS, SUBSTITUTES, session_duration, workout_name
from adaptive_training.plans.types import (
    Discipline,
    InjuryLimitation,
    InjuryRestriction,
    IntensityLevel,
    MovementPattern,
    SessionType,
    TrainingPhase,
    Workout,
)

INJURY_NOTE = "[Adapted for injury - exercises may be modified or substituted]"

P = MovementPattern

BODY_PART_PATTERNS: dict[str, frozenset[MovementPattern]] = {
    "knee": frozenset({P.SQUAT, P.CARDIO}),
    "ankle": frozenset({P.CARDIO, P.SQUAT}),
    "foot": frozenset({P.CARDIO}),
    "shin": frozenset({P.CARDIO}),
    "calf": frozenset({P.CARDIO}),
    "achilles": frozenset({P.CARDIO}),
    "hamstring": frozenset({P.HINGE, P.CARDIO}),
    "hip": frozenset({P.HINGE, P.SQUAT}),
    "back": frozenset({P.HINGE, P.CARRY}),
    "shoulder": frozenset({P.PUSH, P.PULL}),
    "elbow": frozenset({P.PUSH, P.PULL}),
    "wrist": frozenset({P.PUSH, P.CARRY}),
    "neck": frozenset({P.CARRY, P.PULL}),
}


def normalize_body_part(body_part: str) -> str:
    return body_part.strip().lower()


def patterns_for_injury(body_part: str, movement_restrictions: list[MovementPattern]) -> frozenset[MovementPattern]:
    """Explicit restrictions plus the patterns implied by the body part.

    Body parts are matched by substring so "left knee" maps like "knee".
    """
    normalized = normalize_body_part(body_part)
    patterns = set(movement_restrictions)
    for part, implied in BODY_PART_PATTERNS.items():
        if part in normalized:
            patterns |= implied
    return frozenset(patterns)


def touches(session_type: SessionType, patterns: frozenset[MovementPattern] | set[MovementPattern]) -> bool:
    return bool(SESSION_PATTERNS.get(session_type, frozenset()) & patterns)


def find_substitute(discipline: Discipline, patterns: frozenset[MovementPattern]) -> SessionType | None:
    """First substitute for the discipline that avoids all restricted patterns."""
    for candidate in SUBSTITUTES[discipline]:
        if not touches(candidate, patterns):
            return candidate
    return None


def restriction_from_injury(
    injury: InjuryLimitation,
    disciplines: list[Discipline],
    ceiling: IntensityLevel,
) -> InjuryRestriction:
    return InjuryRestriction(
        body_part=normalize_body_part(injury.body_part),
        patterns=sorted(patterns_for_injury(injury.body_part, injury.movement_restrictions)),
        disciplines=disciplines,
        ceiling=ceiling,
    )


def apply_restrictions(
    workout: Workout,
    restrictions: list[InjuryRestriction],
    phase: TrainingPhase,
) -> tuple[Workout | None, bool]:
    """Apply restrictions to a single workout.

    Args:
        workout: Workout to adapt (updated in place when substituted)
        restrictions: Active plan restrictions
        phase: Phase of the workout's week, used for the workout name

    Returns:
        Tuple of (workout or None when it must be removed, whether anything changed)
    """
    if not restrictions:
        return workout, False

    patterns: frozenset[MovementPattern] = frozenset().union(*(frozenset(r.patterns) for r in restrictions))
    changed = False

    if touches(workout.session_type, patterns):
        substitute = find_substitute(workout.discipline, patterns)
        if substitute is None:
            return None, True
        workout.session_type = substitute
        workout.name = workout_name(workout.discipline, substitute, phase)
        workout.estimated_duration_min = session_duration(substitute, workout.intensity)
        changed = True

    ceiling = ceiling_for(workout.discipline, restrictions)
    if ceiling is not None:
        capped = cap_intensity(workout.intensity, ceiling)
        if capped != workout.intensity:
            workout.intensity = capped
            workout.estimated_duration_min = session_duration(workout.session_type, capped)
            changed = True

    if changed and not workout.description.startswith(INJURY_NOTE):
        workout.description = f"{INJURY_NOTE} {workout.description}".strip()
    return workout, changed

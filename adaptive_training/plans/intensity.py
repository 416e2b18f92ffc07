"""Intensity scale arithmetic.

All shifts are clamped to the scale (Low..Maximum) and, when given, to an
injury ceiling. Shifting past an extreme is a no-op, never an error.
"""

from adaptive_training.plans.types import (
    INTENSITY_SCALE,
    Discipline,
    InjuryRestriction,
    IntensityDirection,
    IntensityLevel,
    intensity_rank,
)


def shift_intensity(
    level: IntensityLevel,
    direction: IntensityDirection,
    steps: int = 1,
    *,
    ceiling: IntensityLevel | None = None,
) -> IntensityLevel:
    """Shift a level by ``steps`` in ``direction``, clamped to the scale and ceiling."""
    delta = steps if direction == IntensityDirection.HARDER else -steps
    index = max(0, min(len(INTENSITY_SCALE) - 1, intensity_rank(level) + delta))
    shifted = INTENSITY_SCALE[index]
    if ceiling is not None:
        shifted = cap_intensity(shifted, ceiling)
    return shifted


def cap_intensity(level: IntensityLevel, ceiling: IntensityLevel) -> IntensityLevel:
    if intensity_rank(level) > intensity_rank(ceiling):
        return ceiling
    return level


def ceiling_for(discipline: Discipline, restrictions: list[InjuryRestriction]) -> IntensityLevel | None:
    """Lowest ceiling among restrictions covering the discipline, or None."""
    ceilings = [r.ceiling for r in restrictions if discipline in r.disciplines]
    if not ceilings:
        return None
    return min(ceilings, key=intensity_rank)


def direction_from_feedback(feedback: str) -> IntensityDirection:
    """Map perceived-difficulty feedback to a direction.

    Feedback mentioning "easy" asks for harder training; anything else
    (too hard, exhausted, struggling) asks for easier training.
    """
    if "easy" in feedback.lower():
        return IntensityDirection.HARDER
    return IntensityDirection.EASIER

"""Periodization: phase lengths, week intensities and proportional splits.

Phase lengths are computed in two passes:
1. Every phase gets its configured minimum
2. The remaining weeks are split by the configured ratios using the
   largest-remainder method (ties go to the earlier phase)

Reserving the minimums first flattens the ratios for short plans: with the
default ratios a 12-week plan gets two weeks in every phase.

The same proportional split is reused to rescale remaining phases when a
goal's timeline moves.
"""

import math

from adaptive_training.config.settings import EngineConfig
from adaptive_training.plans.errors import InfeasiblePlanError
from adaptive_training.plans.types import PHASE_SEQUENCE, IntensityLevel, TrainingPhase

PHASE_INTENSITY: dict[TrainingPhase, IntensityLevel] = {
    TrainingPhase.FOUNDATION: IntensityLevel.LOW,
    TrainingPhase.BUILD: IntensityLevel.MODERATE,
    TrainingPhase.INTENSITY: IntensityLevel.HIGH,
    TrainingPhase.PEAK: IntensityLevel.HIGH,
    TrainingPhase.TAPER: IntensityLevel.LOW,
    TrainingPhase.RECOVERY: IntensityLevel.LOW,
}

LOW_VOLUME_PHASES = frozenset({TrainingPhase.TAPER, TrainingPhase.RECOVERY})


def distribute_proportionally(weights: list[float], total: int) -> list[int]:
    """Split ``total`` into integer shares proportional to ``weights``.

    Uses the largest-remainder method; ties are broken by position so the
    result is deterministic.
    """
    if total <= 0 or not weights:
        return [0] * len(weights)
    weight_sum = sum(weights)
    raw = [total * w / weight_sum for w in weights]
    shares = [math.floor(value) for value in raw]
    leftover = total - sum(shares)
    by_remainder = sorted(range(len(weights)), key=lambda i: (-(raw[i] - shares[i]), i))
    for index in by_remainder[:leftover]:
        shares[index] += 1
    return shares


def allocate_phase_lengths(total_weeks: int, config: EngineConfig) -> list[tuple[TrainingPhase, int]]:
    """Assign a length to every phase for a plan of ``total_weeks`` weeks.

    Args:
        total_weeks: Requested plan length
        config: Engine configuration (phase ratios and minimums)

    Returns:
        Ordered (phase, weeks) pairs summing to total_weeks

    Raises:
        InfeasiblePlanError: If total_weeks is below the sum of phase minimums
    """
    minimum_total = config.minimum_total_weeks()
    if total_weeks < minimum_total:
        raise InfeasiblePlanError(total_weeks, minimum_total)

    extra = distribute_proportionally(list(config.phase_ratios), total_weeks - minimum_total)
    return [
        (phase, minimum + bonus)
        for phase, minimum, bonus in zip(PHASE_SEQUENCE, config.phase_minimums, extra, strict=True)
    ]


def expand_phases(lengths: list[tuple[TrainingPhase, int]]) -> list[TrainingPhase]:
    """One phase entry per week, in order."""
    return [phase for phase, weeks in lengths for _ in range(weeks)]


def count_phases(phases: list[TrainingPhase]) -> list[tuple[TrainingPhase, int]]:
    """Collapse per-week phases into ordered (phase, weeks) pairs."""
    counts: list[tuple[TrainingPhase, int]] = []
    for phase in phases:
        if counts and counts[-1][0] == phase:
            counts[-1] = (phase, counts[-1][1] + 1)
        else:
            counts.append((phase, 1))
    return counts


def phase_minimum(phase: TrainingPhase, config: EngineConfig) -> int:
    return config.phase_minimums[PHASE_SEQUENCE.index(phase)]


def is_deload_week(week_number: int, total_weeks: int, phase: TrainingPhase, config: EngineConfig) -> bool:
    """Every Nth week is a deload week, except the final week and low-volume phases."""
    if config.deload_every_weeks <= 0 or phase in LOW_VOLUME_PHASES:
        return False
    return week_number % config.deload_every_weeks == 0 and week_number != total_weeks


def week_intensity(phase: TrainingPhase, *, deload: bool) -> IntensityLevel:
    if deload:
        return IntensityLevel.LOW
    return PHASE_INTENSITY[phase]


def sessions_for_week(phase: TrainingPhase, minimum: int, maximum: int, *, deload: bool) -> int:
    """Sessions in a week, always within [minimum, maximum]."""
    if deload or phase in LOW_VOLUME_PHASES:
        return minimum
    if phase == TrainingPhase.FOUNDATION:
        return (minimum + maximum + 1) // 2
    return maximum

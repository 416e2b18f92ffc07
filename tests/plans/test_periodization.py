"""Tests for phase allocation, deload weeks and proportional splits."""

import pytest

from adaptive_training.config.settings import EngineConfig
from adaptive_training.plans.errors import InfeasiblePlanError
from adaptive_training.plans.generate.periodization import (
    allocate_phase_lengths,
    count_phases,
    distribute_proportionally,
    expand_phases,
    is_deload_week,
    sessions_for_week,
    week_intensity,
)
from adaptive_training.plans.types import PHASE_SEQUENCE, IntensityLevel, TrainingPhase


def test_allocate_phase_lengths_eight_weeks():
    """Leftover weeks after the minimums go to the largest remainders, earlier phase first on ties."""
    lengths = allocate_phase_lengths(8, EngineConfig())

    assert [phase for phase, _ in lengths] == list(PHASE_SEQUENCE)
    assert [weeks for _, weeks in lengths] == [2, 2, 1, 1, 1, 1]


def test_allocate_phase_lengths_twelve_weeks():
    """Twelve weeks come out even: six extra weeks leave larger remainders on the short phases."""
    lengths = allocate_phase_lengths(12, EngineConfig())

    assert [weeks for _, weeks in lengths] == [2, 2, 2, 2, 2, 2]
    assert sum(weeks for _, weeks in lengths) == 12


@pytest.mark.parametrize("total_weeks", [6, 9, 16, 27, 52])
def test_allocate_phase_lengths_sums_to_total_and_respects_minimums(total_weeks):
    """Every allocation sums to the requested length and keeps each phase minimum."""
    config = EngineConfig()
    lengths = allocate_phase_lengths(total_weeks, config)

    assert sum(weeks for _, weeks in lengths) == total_weeks
    assert all(weeks >= minimum for (_, weeks), minimum in zip(lengths, config.phase_minimums))


def test_allocate_phase_lengths_below_minimums_is_infeasible():
    """Fewer weeks than the sum of minimums raises InfeasiblePlanError."""
    with pytest.raises(InfeasiblePlanError) as exc_info:
        allocate_phase_lengths(5, EngineConfig())

    assert exc_info.value.minimum_weeks == 6
    assert exc_info.value.total_weeks == 5


def test_custom_phase_ratios_change_the_split():
    """Configured ratios drive the split of extra weeks."""
    config = EngineConfig(phase_ratios=(0.5, 0.1, 0.1, 0.1, 0.1, 0.1))
    lengths = dict(allocate_phase_lengths(10, config))

    assert lengths[TrainingPhase.FOUNDATION] == 3


def test_phase_ratios_must_cover_every_phase():
    """A ratio tuple of the wrong length is rejected by the config."""
    with pytest.raises(ValueError):
        EngineConfig(phase_ratios=(0.5, 0.5))


def test_distribute_proportionally_is_deterministic_on_ties():
    """Equal remainders favour the earlier position."""
    assert distribute_proportionally([1.0, 1.0, 1.0], 2) == [1, 1, 0]
    assert distribute_proportionally([1.0, 2.0], 0) == [0, 0]


def test_expand_and_count_phases_are_inverse():
    """Per-week phases collapse back to the same (phase, weeks) pairs."""
    lengths = [(TrainingPhase.FOUNDATION, 2), (TrainingPhase.BUILD, 3), (TrainingPhase.TAPER, 1)]

    assert count_phases(expand_phases(lengths)) == lengths


def test_deload_weeks():
    """Every fourth week deloads, except the final week and low-volume phases."""
    config = EngineConfig()

    assert is_deload_week(4, 12, TrainingPhase.BUILD, config)
    assert not is_deload_week(3, 12, TrainingPhase.BUILD, config)
    assert not is_deload_week(8, 8, TrainingPhase.PEAK, config)
    assert not is_deload_week(8, 12, TrainingPhase.TAPER, config)


def test_week_intensity_and_session_counts():
    """Deload weeks drop to Low intensity and the minimum session count."""
    assert week_intensity(TrainingPhase.PEAK, deload=False) == IntensityLevel.HIGH
    assert week_intensity(TrainingPhase.PEAK, deload=True) == IntensityLevel.LOW

    assert sessions_for_week(TrainingPhase.BUILD, 2, 4, deload=False) == 4
    assert sessions_for_week(TrainingPhase.BUILD, 2, 4, deload=True) == 2
    assert sessions_for_week(TrainingPhase.FOUNDATION, 2, 4, deload=False) == 3
    assert sessions_for_week(TrainingPhase.TAPER, 2, 4, deload=False) == 2

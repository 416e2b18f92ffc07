"""Tests for progress statistics, streaks and the miss-threshold check."""

from datetime import date, timedelta
from itertools import count

import pytest

from adaptive_training.config.settings import EngineConfig
from adaptive_training.plans.progress.tracker import (
    calculate_completion_stats,
    calculate_streaks,
    check_missed_threshold,
    completion_percentage,
    next_milestone,
)
from adaptive_training.plans.types import CompletionStatus, Discipline, IntensityLevel, SessionType, Workout

TODAY = date(2025, 3, 12)
_ids = count(1)


def _workout(day: date, status: CompletionStatus = CompletionStatus.COMPLETED) -> Workout:
    return Workout(
        id=f"w-{next(_ids)}",
        name="HYROX - StationPractice (Build)",
        discipline=Discipline.HYROX,
        session_type=SessionType.STATION_PRACTICE,
        day_of_week=day.weekday(),
        scheduled_date=day,
        intensity=IntensityLevel.MODERATE,
        estimated_duration_min=45,
        status=status,
    )


def _days_back(*offsets: int) -> list[date]:
    return [TODAY - timedelta(days=offset) for offset in offsets]


def test_completion_percentage():
    """Percentage is completed over scheduled, rounded to two decimals."""
    workouts = [_workout(TODAY), _workout(TODAY, CompletionStatus.MISSED), _workout(TODAY, CompletionStatus.SKIPPED)]

    assert completion_percentage(workouts) == 33.33
    assert completion_percentage([]) == 0.0


def test_daily_streak_including_today():
    """Three consecutive days ending today form a streak of three."""
    workouts = [_workout(day) for day in _days_back(0, 1, 2)]

    streaks = calculate_streaks(workouts, TODAY, EngineConfig())

    assert streaks.current_daily_streak == 3
    assert streaks.longest_daily_streak == 3
    assert streaks.next_milestone == 7
    assert streaks.days_until_next_milestone == 4


def test_daily_streak_survives_until_today_is_over():
    """A streak ending yesterday is still current; the longest run is kept."""
    workouts = [_workout(day) for day in _days_back(1, 9, 10, 11, 12, 13)]

    streaks = calculate_streaks(workouts, TODAY, EngineConfig())

    assert streaks.current_daily_streak == 1
    assert streaks.longest_daily_streak == 5


def test_broken_daily_streak():
    """A gap of two days resets the current streak."""
    workouts = [_workout(day) for day in _days_back(2, 3)]

    assert calculate_streaks(workouts, TODAY, EngineConfig()).current_daily_streak == 0


def test_missed_workouts_do_not_count_towards_streaks():
    """Only Completed workouts build streaks."""
    workouts = [_workout(day, CompletionStatus.MISSED) for day in _days_back(0, 1)]

    streaks = calculate_streaks(workouts, TODAY, EngineConfig())

    assert streaks.current_daily_streak == 0
    assert streaks.longest_daily_streak == 0


def test_weekly_streak():
    """Weeks with at least three completions chain; the current week may still be in progress."""
    # Two full previous weeks (Mon-Wed), current week has one workout so far
    previous_weeks = [TODAY - timedelta(days=d) for d in (7, 8, 9, 14, 15, 16)]
    workouts = [_workout(day) for day in previous_weeks] + [_workout(TODAY)]

    streaks = calculate_streaks(workouts, TODAY, EngineConfig())

    assert streaks.current_weekly_streak == 2
    assert streaks.longest_weekly_streak == 2


def test_weekly_streak_threshold_is_configurable():
    """Lowering the per-week minimum lets the current week count."""
    workouts = [_workout(TODAY - timedelta(days=d)) for d in (0, 7, 14)]

    streaks = calculate_streaks(workouts, TODAY, EngineConfig(weekly_streak_min_workouts=1))

    assert streaks.current_weekly_streak == 3


@pytest.mark.parametrize(
    ("streak", "expected"),
    [(0, 7), (7, 14), (29, 30), (364, 365), (365, 465), (400, 465), (465, 565)],
)
def test_next_milestone(streak, expected):
    """Milestones follow the fixed ladder, then every 100 days."""
    assert next_milestone(streak) == expected


def test_completion_stats():
    """Weekly and monthly figures only count workouts scheduled up to today."""
    workouts = [
        _workout(date(2025, 3, 10)),
        _workout(date(2025, 3, 11), CompletionStatus.MISSED),
        _workout(date(2025, 3, 3)),
        _workout(date(2025, 2, 26)),
        _workout(date(2025, 3, 14), CompletionStatus.NOT_STARTED),
    ]

    stats = calculate_completion_stats(workouts, TODAY)

    assert stats.total_scheduled == 4
    assert stats.total_completed == 3
    assert stats.completion_percentage == 75.0
    assert stats.completed_this_week == 1
    assert stats.weekly_completion_percentage == 50.0
    assert stats.completed_this_month == 2
    assert stats.monthly_completion_percentage == 66.67
    assert stats.average_weekly_completion_rate == 83.33
    assert stats.first_workout_date == date(2025, 2, 26)
    assert stats.last_workout_date == date(2025, 3, 10)


def test_completion_stats_empty_history():
    """No history gives zeroed stats."""
    stats = calculate_completion_stats([], TODAY)

    assert stats.total_scheduled == 0
    assert stats.first_workout_date is None


def test_missed_threshold_counts_overdue_and_missed():
    """Overdue NotStarted and Missed workouts in the window both count."""
    workouts = [
        _workout(TODAY - timedelta(days=1), CompletionStatus.NOT_STARTED),
        _workout(TODAY - timedelta(days=3), CompletionStatus.MISSED),
        _workout(TODAY - timedelta(days=10), CompletionStatus.NOT_STARTED),
        _workout(TODAY, CompletionStatus.NOT_STARTED),
    ]

    result = check_missed_threshold(workouts, TODAY, EngineConfig())

    assert result.triggered
    assert result.missed_count == 2
    assert result.overdue_workout_ids == [workouts[0].id]


def test_missed_threshold_ignores_already_adapted_misses():
    """Misses already marked Missed still count but never trigger on their own."""
    workouts = [
        _workout(TODAY - timedelta(days=2), CompletionStatus.MISSED),
        _workout(TODAY - timedelta(days=1), CompletionStatus.MISSED),
    ]

    result = check_missed_threshold(workouts, TODAY, EngineConfig(miss_threshold=1))

    assert result.missed_count == 2
    assert result.overdue_workout_ids == []
    assert not result.triggered


def test_missed_threshold_new_overdue_after_adapted_misses():
    """A fresh overdue workout on top of adapted misses triggers with only the fresh id."""
    workouts = [
        _workout(TODAY - timedelta(days=3), CompletionStatus.MISSED),
        _workout(TODAY - timedelta(days=1), CompletionStatus.NOT_STARTED),
    ]

    result = check_missed_threshold(workouts, TODAY, EngineConfig())

    assert result.triggered
    assert result.overdue_workout_ids == [workouts[1].id]


def test_missed_threshold_is_configuration():
    """A higher threshold suppresses the trigger."""
    workouts = [_workout(TODAY - timedelta(days=d), CompletionStatus.NOT_STARTED) for d in (1, 2)]

    result = check_missed_threshold(workouts, TODAY, EngineConfig(miss_threshold=3))

    assert not result.triggered
    assert result.threshold == 3

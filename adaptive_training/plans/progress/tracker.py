"""Progress tracking over workout history.

Pure functions: every result is derived from the workouts passed in and
the ``today`` argument. Nothing here reads storage or mutates workouts.

Rules:
- Completion percentage = completed / scheduled, rounded to 2 decimals
- A daily streak counts consecutive days with at least one completed workout,
  ending today or yesterday
- A weekly streak counts consecutive Monday-based weeks with at least
  ``weekly_streak_min_workouts`` completions; the current week only breaks
  the streak once it is over
- A miss is a Missed workout or a NotStarted workout dated before today
"""

from datetime import date, timedelta

from pydantic import BaseModel, Field

from adaptive_training.config.settings import EngineConfig
from adaptive_training.plans.types import CompletionStatus, Workout

STREAK_MILESTONES: tuple[int, ...] = (7, 14, 30, 60, 90, 180, 365)
MILESTONE_INCREMENT_AFTER_LAST = 100


class StreakInfo(BaseModel):
    current_daily_streak: int = 0
    longest_daily_streak: int = 0
    current_weekly_streak: int = 0
    longest_weekly_streak: int = 0
    next_milestone: int = STREAK_MILESTONES[0]
    days_until_next_milestone: int = STREAK_MILESTONES[0]


class CompletionStats(BaseModel):
    total_scheduled: int = 0
    total_completed: int = 0
    completion_percentage: float = 0.0
    completed_this_week: int = 0
    completed_this_month: int = 0
    weekly_completion_percentage: float = 0.0
    monthly_completion_percentage: float = 0.0
    average_weekly_completion_rate: float = 0.0
    first_workout_date: date | None = None
    last_workout_date: date | None = None


class ProgressReport(BaseModel):
    stats: CompletionStats
    streaks: StreakInfo


class MissThresholdResult(BaseModel):
    """Outcome of the miss-threshold check.

    Attributes:
        triggered: Whether misses reached the threshold and at least one of
            them is still an unadapted overdue workout
        missed_count: Misses in the trailing window
        threshold: Configured threshold
        overdue_workout_ids: NotStarted workouts dated before today, to be
            passed to the MissedWorkouts adaptation
    """

    triggered: bool
    missed_count: int
    threshold: int
    overdue_workout_ids: list[str] = Field(default_factory=list)


def completion_percentage(workouts: list[Workout]) -> float:
    if not workouts:
        return 0.0
    completed = sum(1 for w in workouts if w.status == CompletionStatus.COMPLETED)
    return round(completed / len(workouts) * 100, 2)


def week_start(day: date) -> date:
    """Monday of the week containing ``day``."""
    return day - timedelta(days=day.weekday())


def _completed_dates(workouts: list[Workout]) -> list[date]:
    return sorted({w.scheduled_date for w in workouts if w.status == CompletionStatus.COMPLETED})


def daily_streaks(workouts: list[Workout], today: date) -> tuple[int, int]:
    """Current and longest daily streak."""
    days = _completed_dates(workouts)
    if not days:
        return 0, 0

    longest = run = 1
    for previous, current in zip(days, days[1:]):
        run = run + 1 if (current - previous).days == 1 else 1
        longest = max(longest, run)

    current_streak = 0
    day_set = set(days)
    cursor = today if today in day_set else today - timedelta(days=1)
    while cursor in day_set:
        current_streak += 1
        cursor -= timedelta(days=1)
    return current_streak, longest


def weekly_streaks(workouts: list[Workout], today: date, minimum_per_week: int) -> tuple[int, int]:
    """Current and longest weekly streak."""
    per_week: dict[date, int] = {}
    for day in (w.scheduled_date for w in workouts if w.status == CompletionStatus.COMPLETED):
        monday = week_start(day)
        per_week[monday] = per_week.get(monday, 0) + 1
    qualifying = sorted(monday for monday, count in per_week.items() if count >= minimum_per_week)
    if not qualifying:
        return 0, 0

    longest = run = 1
    for previous, current in zip(qualifying, qualifying[1:]):
        run = run + 1 if (current - previous).days == 7 else 1
        longest = max(longest, run)

    qualifying_set = set(qualifying)
    cursor = week_start(today)
    if cursor not in qualifying_set:
        cursor -= timedelta(days=7)
    current_streak = 0
    while cursor in qualifying_set:
        current_streak += 1
        cursor -= timedelta(days=7)
    return current_streak, longest


def next_milestone(streak: int) -> int:
    """Next streak milestone strictly above ``streak``."""
    for milestone in STREAK_MILESTONES:
        if streak < milestone:
            return milestone
    last = STREAK_MILESTONES[-1]
    steps = (streak - last) // MILESTONE_INCREMENT_AFTER_LAST + 1
    return last + steps * MILESTONE_INCREMENT_AFTER_LAST


def calculate_streaks(workouts: list[Workout], today: date, config: EngineConfig) -> StreakInfo:
    current_daily, longest_daily = daily_streaks(workouts, today)
    current_weekly, longest_weekly = weekly_streaks(workouts, today, config.weekly_streak_min_workouts)
    milestone = next_milestone(current_daily)
    return StreakInfo(
        current_daily_streak=current_daily,
        longest_daily_streak=longest_daily,
        current_weekly_streak=current_weekly,
        longest_weekly_streak=longest_weekly,
        next_milestone=milestone,
        days_until_next_milestone=milestone - current_daily,
    )


def calculate_completion_stats(workouts: list[Workout], today: date) -> CompletionStats:
    """Completion statistics for workouts scheduled up to and including today."""
    scheduled = [w for w in workouts if w.scheduled_date <= today]
    if not scheduled:
        return CompletionStats()

    monday = week_start(today)
    month_start = today.replace(day=1)
    this_week = [w for w in scheduled if w.scheduled_date >= monday]
    this_month = [w for w in scheduled if w.scheduled_date >= month_start]

    per_week: dict[date, list[Workout]] = {}
    for workout in scheduled:
        per_week.setdefault(week_start(workout.scheduled_date), []).append(workout)
    weekly_rates = [completion_percentage(group) for group in per_week.values()]

    completed = [w for w in scheduled if w.status == CompletionStatus.COMPLETED]
    return CompletionStats(
        total_scheduled=len(scheduled),
        total_completed=len(completed),
        completion_percentage=completion_percentage(scheduled),
        completed_this_week=sum(1 for w in this_week if w.status == CompletionStatus.COMPLETED),
        completed_this_month=sum(1 for w in this_month if w.status == CompletionStatus.COMPLETED),
        weekly_completion_percentage=completion_percentage(this_week),
        monthly_completion_percentage=completion_percentage(this_month),
        average_weekly_completion_rate=round(sum(weekly_rates) / len(weekly_rates), 2),
        first_workout_date=min(w.scheduled_date for w in scheduled),
        last_workout_date=max(w.scheduled_date for w in completed) if completed else None,
    )


def build_progress_report(workouts: list[Workout], today: date, config: EngineConfig) -> ProgressReport:
    return ProgressReport(
        stats=calculate_completion_stats(workouts, today),
        streaks=calculate_streaks(workouts, today, config),
    )


def check_missed_threshold(workouts: list[Workout], today: date, config: EngineConfig) -> MissThresholdResult:
    """Check whether recent misses warrant a MissedWorkouts adaptation.

    Args:
        workouts: Workout history
        today: Current date
        config: Supplies miss_threshold and miss_window_days

    Returns:
        MissThresholdResult; ``triggered`` is True when the number of misses
        in the trailing window reaches the configured threshold and some of
        them are overdue workouts not yet marked Missed. Misses that were
        already adapted still count, but never re-trigger on their own.
    """
    window_start = today - timedelta(days=config.miss_window_days)
    recent = [w for w in workouts if window_start <= w.scheduled_date < today]
    overdue = [w for w in recent if w.status == CompletionStatus.NOT_STARTED]
    missed = [w for w in recent if w.status == CompletionStatus.MISSED]
    count = len(overdue) + len(missed)
    return MissThresholdResult(
        triggered=count >= config.miss_threshold and bool(overdue),
        missed_count=count,
        threshold=config.miss_threshold,
        overdue_workout_ids=[w.id for w in sorted(overdue, key=lambda w: w.scheduled_date)],
    )

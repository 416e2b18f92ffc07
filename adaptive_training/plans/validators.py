"""Validators for plan structure, schedules and workout status changes.

Rules:
- Schedule availability needs >= 1 selected day and 1 <= min <= max <= selected days
- Weeks are numbered 1..N without gaps and cover contiguous 7-day ranges
- Every workout is scheduled inside its parent week
- Workout status follows the completion state machine; undo is the only way back from Completed
"""

from datetime import date, datetime, timedelta, timezone

from adaptive_training.plans.errors import InvalidStatusTransitionError, ValidationError
from adaptive_training.plans.types import CompletionStatus, ScheduleAvailability, TrainingPlan, Workout

ALLOWED_TRANSITIONS: dict[CompletionStatus, frozenset[CompletionStatus]] = {
    CompletionStatus.NOT_STARTED: frozenset({
        CompletionStatus.IN_PROGRESS,
        CompletionStatus.SKIPPED,
        CompletionStatus.MISSED,
    }),
    CompletionStatus.IN_PROGRESS: frozenset({CompletionStatus.COMPLETED}),
    CompletionStatus.COMPLETED: frozenset(),
    CompletionStatus.SKIPPED: frozenset(),
    CompletionStatus.MISSED: frozenset(),
}


def validate_schedule_availability(schedule: ScheduleAvailability) -> None:
    """Validate weekly availability bounds.

    Args:
        schedule: Availability to validate

    Raises:
        ValidationError: If no day is selected or the min/max bounds are inconsistent
    """
    day_count = schedule.available_day_count()
    minimum = schedule.minimum_sessions_per_week
    maximum = schedule.maximum_sessions_per_week

    if day_count == 0:
        raise ValidationError("At least one training day must be selected", field="schedule")
    if minimum < 1:
        raise ValidationError(f"Minimum sessions per week must be >= 1, got {minimum}", field="minimum_sessions_per_week")
    if minimum > maximum:
        raise ValidationError(
            f"Minimum sessions per week ({minimum}) cannot exceed maximum ({maximum})",
            field="minimum_sessions_per_week",
        )
    if maximum > day_count:
        raise ValidationError(
            f"Maximum sessions per week ({maximum}) cannot exceed selected days ({day_count})",
            field="maximum_sessions_per_week",
        )


def validate_plan_structure(plan: TrainingPlan) -> None:
    """Validate week numbering, date contiguity and workout placement.

    Args:
        plan: Plan to validate

    Raises:
        ValidationError: If any structural invariant is violated
    """
    if len(plan.weeks) != plan.total_weeks:
        raise ValidationError(f"Plan has {len(plan.weeks)} weeks but total_weeks={plan.total_weeks}", field="weeks")

    expected_start = plan.start_date
    for index, week in enumerate(plan.weeks, start=1):
        if week.week_number != index:
            raise ValidationError(f"Week numbers must be 1..N without gaps, found {week.week_number} at position {index}")
        if week.start_date != expected_start:
            raise ValidationError(f"Week {week.week_number} starts {week.start_date}, expected {expected_start}")
        if week.end_date != week.start_date + timedelta(days=6):
            raise ValidationError(f"Week {week.week_number} must span 7 days, ends {week.end_date}")
        for workout in week.workouts:
            if not week.contains(workout.scheduled_date):
                raise ValidationError(
                    f"Workout {workout.id} on {workout.scheduled_date} is outside week {week.week_number} "
                    f"({week.start_date}..{week.end_date})"
                )
            if workout.scheduled_date.weekday() != workout.day_of_week:
                raise ValidationError(f"Workout {workout.id} day_of_week does not match its scheduled date")
        expected_start = week.end_date + timedelta(days=1)

    if plan.weeks and plan.end_date != plan.weeks[-1].end_date:
        raise ValidationError(f"Plan end date {plan.end_date} does not match last week end {plan.weeks[-1].end_date}")


def transition_status(workout: Workout, target: CompletionStatus, *, today: date | None = None) -> None:
    """Move a workout to a new completion status.

    Args:
        workout: Workout to update in place
        target: Requested status
        today: Current date, required to reject completing future workouts

    Raises:
        InvalidStatusTransitionError: If the state machine does not allow the change
        ValidationError: If a future-dated workout is completed
    """
    if target not in ALLOWED_TRANSITIONS[workout.status]:
        raise InvalidStatusTransitionError(workout.id, workout.status, target)
    if target == CompletionStatus.COMPLETED:
        if today is not None and workout.scheduled_date > today:
            raise ValidationError(f"Cannot complete future workout {workout.id} scheduled {workout.scheduled_date}")
        workout.completed_at = datetime.now(timezone.utc)
    workout.status = target


def undo_completion(workout: Workout) -> None:
    """Revert a Completed workout to NotStarted.

    Raises:
        InvalidStatusTransitionError: If the workout is not Completed
    """
    if workout.status != CompletionStatus.COMPLETED:
        raise InvalidStatusTransitionError(workout.id, workout.status, CompletionStatus.NOT_STARTED)
    workout.status = CompletionStatus.NOT_STARTED
    workout.completed_at = None

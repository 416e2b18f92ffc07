"""Per-trigger adaptation policies.

Each policy mutates a freshly loaded plan in place and records what it did
on the AdaptationRecordBuilder. Policies validate everything they need
before the first mutation where they can; the engine discards the plan and
rolls back the transaction on any error anyway.

"Future" workouts are NotStarted workouts dated today or later. Completed,
Missed and Skipped workouts are history and are never rewritten here.
"""

import math
import random
from collections.abc import Callable
from datetime import date, timedelta

from adaptive_training.config.settings import EngineConfig
from adaptive_training.plans.adapt.builder import AdaptationRecordBuilder
from adaptive_training.plans.adapt.types import InjuryTrigger, MissedWorkoutsTrigger, ScheduleChangeTrigger, TimelineChangeTrigger
from adaptive_training.plans.errors import InfeasibleAdaptationError, InvalidStatusTransitionError, NotFoundError, ValidationError
from adaptive_training.plans.generate.disciplines import allocate_disciplines, discipline_priorities
from adaptive_training.plans.generate.generator import PlanGenerator, date_for_weekday, select_training_days
from adaptive_training.plans.generate.periodization import (
    count_phases,
    distribute_proportionally,
    expand_phases,
    is_deload_week,
    phase_minimum,
)
from adaptive_training.plans.intensity import ceiling_for, shift_intensity
from adaptive_training.plans.restrictions import apply_restrictions, normalize_body_part, patterns_for_injury, touches
from adaptive_training.plans.sessions import session_duration
from adaptive_training.plans.types import (
    CompletionStatus,
    Discipline,
    InjuryRestriction,
    InjuryStatus,
    IntensityDirection,
    TrainingPlan,
    TrainingWeek,
    UserProfile,
    Workout,
    intensity_rank,
)
from adaptive_training.plans.validators import ALLOWED_TRANSITIONS, transition_status, validate_schedule_availability

REENTRY_NOTE = "[Re-entry workout - intensity reduced for safe return to training]"


class PolicyContext:
    """Everything a policy needs besides the plan and the trigger."""

    def __init__(
        self,
        *,
        config: EngineConfig,
        today: date,
        generator: PlanGenerator,
        builder: AdaptationRecordBuilder,
        load_profile: Callable[[], UserProfile],
    ) -> None:
        self.config = config
        self.today = today
        self.generator = generator
        self.builder = builder
        self.load_profile = load_profile


def future_workouts(plan: TrainingPlan, today: date) -> list[tuple[TrainingWeek, Workout]]:
    """Future workouts with their weeks, in date order."""
    pairs = [(week, workout) for week in plan.weeks for workout in week.workouts if workout.is_future(today)]
    return sorted(pairs, key=lambda pair: pair[1].scheduled_date)


# -----------------------------
# MissedWorkouts
# -----------------------------
def apply_missed_workouts(plan: TrainingPlan, trigger: MissedWorkoutsTrigger, ctx: PolicyContext) -> None:
    """Mark workouts Missed and ease back in over a rolling re-entry window.

    Rules:
    - Unknown ids raise NotFoundError
    - Completed (or any non-NotStarted, non-Missed) workouts raise
      InvalidStatusTransitionError before anything is changed
    - Already-Missed workouts are left as they are
    - Future workouts in the window get a reduction that tapers linearly by
      date from ``intensity_step`` levels today to zero at the end of the
      window (rounded to whole levels); only those with a non-zero
      reduction are marked as re-entry workouts
    """
    config, builder = ctx.config, ctx.builder
    if not trigger.workout_ids:
        raise ValidationError("workout_ids must not be empty", field="workout_ids")

    located: list[tuple[TrainingWeek, Workout]] = []
    for workout_id in dict.fromkeys(trigger.workout_ids):
        found = plan.find_workout(workout_id)
        if found is None:
            raise NotFoundError("Workout", workout_id)
        located.append(found)

    for _, workout in located:
        if workout.status != CompletionStatus.MISSED and CompletionStatus.MISSED not in ALLOWED_TRANSITIONS[workout.status]:
            raise InvalidStatusTransitionError(workout.id, workout.status, CompletionStatus.MISSED)

    newly_missed = 0
    for week, workout in located:
        if workout.status == CompletionStatus.MISSED:
            continue
        old_status = workout.status
        transition_status(workout, CompletionStatus.MISSED)
        builder.add_change(week=week, workout_id=workout.id, field="status", old=old_status, new=workout.status)
        newly_missed += 1

    missed_count = len(located)
    if missed_count >= config.missed_extended_threshold:
        reentry_weeks = config.missed_reentry_weeks_extended
    else:
        reentry_weeks = config.missed_reentry_weeks
    if missed_count >= config.missed_warning_count:
        builder.add_warning(
            f"{missed_count} workouts missed; consider regenerating the plan if the break was longer than planned"
        )

    window_days = 7 * reentry_weeks
    window_end = ctx.today + timedelta(days=window_days)
    window = [(week, w) for week, w in future_workouts(plan, ctx.today) if w.scheduled_date < window_end]
    eased = reduced = 0
    for week, workout in window:
        days_left = window_days - (workout.scheduled_date - ctx.today).days
        steps = round(config.intensity_step * days_left / window_days)
        if steps <= 0:
            continue
        eased += 1
        new_intensity = shift_intensity(workout.intensity, IntensityDirection.EASIER, steps)
        if new_intensity != workout.intensity:
            builder.add_change(week=week, workout_id=workout.id, field="intensity", old=workout.intensity, new=new_intensity)
            workout.intensity = new_intensity
            workout.estimated_duration_min = session_duration(workout.session_type, new_intensity)
            reduced += 1
        if not workout.description.startswith(REENTRY_NOTE):
            workout.description = f"{REENTRY_NOTE} {workout.description}".strip()
            builder.touch_week(week)

    builder.set_summary(
        f"Marked {newly_missed} workout(s) as missed; eased {eased} upcoming workout(s) "
        f"({reduced} with lower intensity) over a {reentry_weeks}-week re-entry window"
    )


# -----------------------------
# Injury
# -----------------------------
def apply_injury(plan: TrainingPlan, trigger: InjuryTrigger, ctx: PolicyContext) -> None:
    """Substitute or remove future sessions that load the injured area.

    A Resolved status lifts the restriction for the body part instead. No
    workouts are rewritten on resolution; later adaptations and regenerated
    weeks simply stop applying the ceiling.
    """
    builder = ctx.builder
    body_part = normalize_body_part(trigger.body_part)
    if not body_part:
        raise ValidationError("body_part must not be empty", field="body_part")

    if trigger.status == InjuryStatus.RESOLVED:
        remaining = [r for r in plan.restrictions if r.body_part != body_part]
        if len(remaining) == len(plan.restrictions):
            builder.set_summary(f"No active restriction for {body_part}; nothing to lift")
            return
        plan.restrictions = remaining
        builder.set_summary(f"Injury to {body_part} resolved; intensity ceiling and movement restrictions lifted")
        return

    patterns = patterns_for_injury(trigger.body_part, trigger.movement_restrictions)
    if not patterns:
        raise ValidationError(
            f"No movement patterns known for body part '{trigger.body_part}'; provide movement_restrictions",
            field="movement_restrictions",
        )

    upcoming = future_workouts(plan, ctx.today)
    disciplines: list[Discipline] = []
    for _, workout in upcoming:
        if touches(workout.session_type, patterns) and workout.discipline not in disciplines:
            disciplines.append(workout.discipline)

    existing = next((r for r in plan.restrictions if r.body_part == body_part), None)
    if existing is not None:
        patterns = patterns | frozenset(existing.patterns)
        disciplines = list(dict.fromkeys(existing.disciplines + disciplines))
    restriction = InjuryRestriction(
        body_part=body_part,
        patterns=sorted(patterns),
        disciplines=disciplines,
        ceiling=ctx.config.injury_intensity_ceiling,
    )
    plan.restrictions = [r for r in plan.restrictions if r.body_part != body_part] + [restriction]

    substituted = removed = 0
    for week in plan.weeks:
        kept: list[Workout] = []
        for workout in week.workouts:
            if not workout.is_future(ctx.today):
                kept.append(workout)
                continue
            old_type, old_intensity = workout.session_type, workout.intensity
            adapted, changed = apply_restrictions(workout, [restriction], week.phase)
            if adapted is None:
                builder.add_change(week=week, workout_id=workout.id, field="removed", old=old_type, new=None)
                removed += 1
                continue
            kept.append(adapted)
            if changed:
                if adapted.session_type != old_type:
                    builder.add_change(week=week, workout_id=workout.id, field="session_type", old=old_type, new=adapted.session_type)
                    substituted += 1
                if adapted.intensity != old_intensity:
                    builder.add_change(week=week, workout_id=workout.id, field="intensity", old=old_intensity, new=adapted.intensity)
                builder.touch_week(week)
        if len(kept) != len(week.workouts):
            week.workouts = kept
            if not kept:
                builder.add_warning(f"Week {week.week_number} has no safe sessions left")

    ceiling_note = f"capped at {restriction.ceiling} for {', '.join(disciplines)}" if disciplines else "no discipline affected"
    builder.set_summary(
        f"Injury to {body_part}: substituted {substituted} and removed {removed} upcoming session(s); intensity {ceiling_note}"
    )


# -----------------------------
# ScheduleChange
# -----------------------------
def apply_schedule_change(plan: TrainingPlan, trigger: ScheduleChangeTrigger, ctx: PolicyContext) -> None:
    """Redistribute future workouts over the new available days.

    Rules:
    - Weeks starting after today keep their session count, clamped to the
      new [min, max]; dropped sessions are non-key first, added sessions are
      built with the generator's discipline and session rules
    - The in-progress week only moves its future sessions to available days
      that remain in it (never more than the new maximum in total)
    - Past and recorded workouts stay where they are
    """
    availability = trigger.new_availability
    validate_schedule_availability(availability)
    builder, today = ctx.builder, ctx.today
    minimum = availability.minimum_sessions_per_week
    maximum = availability.maximum_sessions_per_week
    available = availability.available_weekdays()

    profile = ctx.load_profile()
    if availability.available_day_count() < profile.schedule.available_day_count():
        builder.add_warning(
            f"Training days reduced from {profile.schedule.available_day_count()} to {availability.available_day_count()} per week"
        )
    profile = profile.model_copy(update={"schedule": availability})
    priorities = discipline_priorities(profile)

    moved = added = dropped = 0
    for week in plan.weeks:
        if week.end_date < today:
            continue
        fixed = [w for w in week.workouts if not w.is_future(today)]
        movable = [w for w in week.workouts if w.is_future(today)]
        taken = {w.scheduled_date for w in fixed}
        first_open = max(week.start_date, today)
        open_days = [
            day for day in available
            if date_for_weekday(week.start_date, day) >= first_open
            and date_for_weekday(week.start_date, day) not in taken
        ]

        if week.start_date >= today:
            target_total = max(minimum, min(maximum, len(week.workouts)))
            target = max(0, target_total - len(fixed))
        else:
            target = min(len(movable), max(0, maximum - len(fixed)))
        target = min(target, len(open_days))

        ordered = sorted(movable, key=lambda w: (not w.is_key_workout, w.scheduled_date))
        kept = ordered[:target]
        for workout in ordered[target:]:
            builder.add_change(week=week, workout_id=workout.id, field="removed", old=workout.scheduled_date.isoformat(), new=None)
            dropped += 1

        if len(kept) < target:
            rng = random.Random(f"{plan.id}:{plan.seed}:{plan.version}:{week.week_number}:schedule")
            for workout in _extra_workouts(week, kept + fixed, target - len(kept), priorities, plan, ctx, rng):
                kept.append(workout)
                builder.add_change(week=week, workout_id=workout.id, field="added", old=None, new=workout.session_type)
                added += 1

        chosen_days = select_training_days(open_days, len(kept))
        kept.sort(key=lambda w: w.scheduled_date)
        for workout, day in zip(kept, chosen_days, strict=True):
            new_date = date_for_weekday(week.start_date, day)
            if new_date != workout.scheduled_date:
                builder.add_change(
                    week=week,
                    workout_id=workout.id,
                    field="scheduled_date",
                    old=workout.scheduled_date.isoformat(),
                    new=new_date.isoformat(),
                )
                workout.scheduled_date = new_date
                workout.day_of_week = day
                moved += 1

        week.workouts = sorted(fixed + kept, key=lambda w: w.scheduled_date)

    plan.training_days_per_week = max(minimum, min(maximum, plan.training_days_per_week))
    builder.set_summary(
        f"Schedule changed to {availability.available_day_count()} day(s) ({minimum}-{maximum} sessions/week): "
        f"moved {moved}, added {added}, removed {dropped} workout(s)"
    )


def _extra_workouts(
    week: TrainingWeek,
    existing: list[Workout],
    count: int,
    priorities: list[tuple[Discipline, int]],
    plan: TrainingPlan,
    ctx: PolicyContext,
    rng: random.Random,
) -> list[Workout]:
    """Build ``count`` additional sessions for a week, filling discipline deficits first.

    New sessions get a placeholder date (the week start); the caller assigns days.
    """
    target_counts = allocate_disciplines(priorities, len(existing) + count)
    current: dict[Discipline, int] = {}
    for workout in existing:
        current[workout.discipline] = current.get(workout.discipline, 0) + 1

    deload = is_deload_week(week.week_number, plan.total_weeks, week.phase, ctx.config)
    extras: list[Workout] = []
    for _ in range(count):
        deficits = [d for d, _ in priorities if current.get(d, 0) < target_counts.get(d, 0)]
        discipline = deficits[0] if deficits else priorities[0][0]
        slot = current.get(discipline, 0)
        current[discipline] = slot + 1
        workout = ctx.generator.build_workout(
            discipline=discipline,
            phase=week.phase,
            week_intensity=week.intensity,
            deload=deload,
            slot=slot,
            scheduled_date=week.start_date,
            rng=rng,
        )
        adapted, _ = apply_restrictions(workout, plan.restrictions, week.phase)
        if adapted is not None:
            extras.append(adapted)
    return extras


# -----------------------------
# TimelineChange
# -----------------------------
def apply_timeline_change(plan: TrainingPlan, trigger: TimelineChangeTrigger, ctx: PolicyContext) -> None:
    """Rescale the weeks after the current one to end on the new target date.

    Remaining phase lengths are scaled proportionally (largest remainder).
    The plan is rejected as infeasible before any change if a phase would
    end up shorter than its minimum, if the target date falls inside the
    current week, or if a remaining week already has recorded workouts.
    """
    config, builder, today = ctx.config, ctx.builder, ctx.today
    elapsed = [w for w in plan.weeks if w.start_date <= today]
    remaining = [w for w in plan.weeks if w.start_date > today]
    if not remaining:
        raise InfeasibleAdaptationError(plan.id, "no remaining weeks to rescale")

    first_start = remaining[0].start_date
    if trigger.new_target_date < first_start:
        raise InfeasibleAdaptationError(
            plan.id, f"target date {trigger.new_target_date} falls before the next week starting {first_start}"
        )
    for week in remaining:
        if any(w.status != CompletionStatus.NOT_STARTED for w in week.workouts):
            raise InfeasibleAdaptationError(plan.id, f"week {week.week_number} already has recorded workouts")

    new_count = math.ceil(((trigger.new_target_date - first_start).days + 1) / 7)
    new_total = len(elapsed) + new_count
    if new_total > config.max_plan_weeks:
        raise InfeasibleAdaptationError(plan.id, f"plan would last {new_total} weeks, maximum is {config.max_plan_weeks}")

    remaining_phases = count_phases([w.phase for w in remaining])
    new_lengths = distribute_proportionally([float(weeks) for _, weeks in remaining_phases], new_count)
    for (phase, _), new_length in zip(remaining_phases, new_lengths, strict=True):
        total = sum(1 for w in elapsed if w.phase == phase) + new_length
        minimum = phase_minimum(phase, config)
        if total < minimum:
            raise InfeasibleAdaptationError(
                plan.id, f"{phase} phase would shrink to {total} week(s), minimum is {minimum}"
            )

    if new_count < len(remaining):
        builder.add_warning(f"Timeline compressed from {len(remaining)} to {new_count} remaining week(s)")

    profile = ctx.load_profile()
    rng = random.Random(f"{plan.id}:{plan.seed}:{plan.version}:timeline")
    new_weeks = ctx.generator.build_weeks(
        profile,
        phases=expand_phases([(phase, length) for (phase, _), length in zip(remaining_phases, new_lengths, strict=True)]),
        first_week_number=len(elapsed) + 1,
        first_start_date=first_start,
        total_weeks=new_total,
        rng=rng,
        restrictions=plan.restrictions,
    )

    for week in remaining:
        builder.drop_week(week)
    old_total, old_end = plan.total_weeks, plan.end_date
    plan.weeks = elapsed + new_weeks
    plan.total_weeks = new_total
    plan.end_date = new_weeks[-1].end_date
    for week in new_weeks:
        builder.touch_week(week)

    builder.set_summary(
        f"Timeline changed: {old_total} -> {new_total} weeks, end date {old_end} -> {plan.end_date}; "
        f"remaining phases {', '.join(f'{p}:{n}' for (p, _), n in zip(remaining_phases, new_lengths, strict=True))}"
    )


# -----------------------------
# UserRequest / PerceivedDifficulty
# -----------------------------
def apply_intensity_shift(plan: TrainingPlan, direction: IntensityDirection, ctx: PolicyContext) -> None:
    """Shift future workouts in the rolling window by ``intensity_step`` levels.

    Clamped at the scale ends and at injury ceilings; a shift that changes
    nothing is a successful no-op.
    """
    config, builder, today = ctx.config, ctx.builder, ctx.today
    if config.intensity_step > 2:
        builder.add_warning(f"Intensity step of {config.intensity_step} levels is a large jump")

    window_end = today + timedelta(days=config.intensity_window_days)
    window = [(week, w) for week, w in future_workouts(plan, today) if w.scheduled_date < window_end]
    shifted = 0
    for week, workout in window:
        ceiling = ceiling_for(workout.discipline, plan.restrictions)
        new_intensity = shift_intensity(workout.intensity, direction, config.intensity_step, ceiling=ceiling)
        if direction == IntensityDirection.HARDER and intensity_rank(new_intensity) < intensity_rank(workout.intensity):
            continue
        if new_intensity == workout.intensity:
            continue
        builder.add_change(week=week, workout_id=workout.id, field="intensity", old=workout.intensity, new=new_intensity)
        workout.intensity = new_intensity
        workout.estimated_duration_min = session_duration(workout.session_type, new_intensity)
        shifted += 1

    if shifted:
        builder.set_summary(
            f"Made {shifted} workout(s) in the next {config.intensity_window_days} days "
            f"{'harder' if direction == IntensityDirection.HARDER else 'easier'} by {config.intensity_step} level(s)"
        )
    else:
        limit = "highest" if direction == IntensityDirection.HARDER else "lowest"
        builder.set_summary(f"No change: upcoming workouts are already at the {limit} allowed intensity")

"""PlanGenerator - builds a periodized TrainingPlan from a user profile.

Flow:
1. Validate schedule availability and the requested duration
2. Allocate phase lengths (Foundation → Build → Intensity → Peak → Taper → Recovery)
3. For every week: pick the session count, the training days and the
   discipline rotation, then build workouts and flag key workouts
4. Apply restrictions from the profile's open injuries
5. Validate plan coherence

Generation is deterministic for identical (profile, total_weeks, seed,
start_date): every random choice, ids included, comes from a seeded RNG.
"""

import math
import random
import uuid
from collections.abc import Callable
from datetime import date, timedelta

from loguru import logger

from adaptive_training.config.settings import EngineConfig
from adaptive_training.plans.errors import ValidationError
from adaptive_training.plans.generate.disciplines import allocate_disciplines, discipline_priorities, rotate_disciplines
from adaptive_training.plans.generate.periodization import (
    LOW_VOLUME_PHASES,
    allocate_phase_lengths,
    expand_phases,
    is_deload_week,
    sessions_for_week,
    week_intensity,
)
from adaptive_training.plans.restrictions import apply_restrictions, patterns_for_injury, restriction_from_injury, touches
from adaptive_training.plans.sessions import (
    DELOAD_FOCUS_AREA,
    FOCUS_AREAS,
    SESSION_ROTATION,
    session_duration,
    session_intensity,
    session_type_for,
    workout_name,
)
from adaptive_training.plans.types import (
    Discipline,
    GoalType,
    InjuryRestriction,
    IntensityLevel,
    PlanStatus,
    TrainingPhase,
    TrainingPlan,
    TrainingWeek,
    UserProfile,
    Workout,
    intensity_rank,
)
from adaptive_training.plans.validators import validate_plan_structure, validate_schedule_availability

VOLUME_DROP_WARNING_RATIO = 0.5


def new_id(rng: random.Random) -> str:
    """Deterministic UUID4 drawn from the given RNG."""
    return str(uuid.UUID(int=rng.getrandbits(128), version=4))


def next_monday(today: date) -> date:
    """Monday on or after ``today``."""
    return today + timedelta(days=(7 - today.weekday()) % 7)


def date_for_weekday(week_start: date, weekday: int) -> date:
    """Date of ``weekday`` (Monday == 0) within the 7 days starting at week_start."""
    return week_start + timedelta(days=(weekday - week_start.weekday()) % 7)


def select_training_days(available: list[int], count: int) -> list[int]:
    """Pick ``count`` weekdays spread evenly across the available ones."""
    if count <= 0:
        return []
    if count >= len(available):
        return list(available)
    step = len(available) / count
    return [available[int(i * step)] for i in range(count)]


class PlanGenerator:
    """Builds periodized plans.

    Usage:
        generator = PlanGenerator(EngineConfig())
        plan = generator.generate(profile, total_weeks=12, seed=7)
    """

    def __init__(self, config: EngineConfig, *, today: Callable[[], date] = date.today) -> None:
        self.config = config
        self.today = today

    # -----------------------------
    # Public API
    # -----------------------------
    def generate(
        self,
        profile: UserProfile,
        total_weeks: int,
        *,
        seed: int | None = None,
        start_date: date | None = None,
    ) -> TrainingPlan:
        """Generate a full plan.

        Args:
            profile: User profile with schedule, goals and injuries
            total_weeks: Requested plan length in weeks
            seed: Optional deterministic seed (random when omitted)
            start_date: First day of week 1 (defaults to the next Monday)

        Returns:
            Fully populated TrainingPlan (status Active, version 1)

        Raises:
            ValidationError: If the schedule or duration is invalid
            InfeasiblePlanError: If total_weeks is below the sum of phase minimums
        """
        validate_schedule_availability(profile.schedule)
        lengths = allocate_phase_lengths(total_weeks, self.config)
        self._validate_week_bounds(total_weeks)

        if seed is None:
            seed = random.SystemRandom().randrange(1, 2**31)
        start = start_date or next_monday(self.today())
        rng = random.Random(f"{profile.user_id}:{seed}")
        plan_id = new_id(rng)
        restrictions = self.restrictions_for_profile(profile)

        weeks = self.build_weeks(
            profile,
            phases=expand_phases(lengths),
            first_week_number=1,
            first_start_date=start,
            total_weeks=total_weeks,
            rng=rng,
            restrictions=restrictions,
        )
        plan = TrainingPlan(
            id=plan_id,
            user_id=profile.user_id,
            name=plan_name(profile, start),
            status=PlanStatus.ACTIVE,
            total_weeks=total_weeks,
            current_week=1,
            start_date=start,
            end_date=weeks[-1].end_date,
            training_days_per_week=profile.schedule.maximum_sessions_per_week,
            seed=seed,
            restrictions=restrictions,
            version=1,
            weeks=weeks,
        )
        self.validate_coherence(plan)

        logger.info(
            "Generated training plan",
            plan_id=plan.id,
            user_id=profile.user_id,
            total_weeks=total_weeks,
            phases=[f"{phase}:{weeks}" for phase, weeks in lengths],
            workouts=len(plan.all_workouts()),
        )
        return plan

    def determine_plan_duration(self, profile: UserProfile) -> int:
        """Plan length in weeks derived from the primary goal's target date.

        Falls back to the configured default when no active goal has a
        target date. The result is clamped to the configured bounds.
        """
        goals = [goal for goal in profile.active_goals() if goal.target_date is not None]
        if not goals:
            return self.config.default_plan_weeks

        start = next_monday(self.today())
        days = (goals[0].target_date - start).days + 1
        weeks = math.ceil(days / 7)
        lower = max(self.config.min_plan_weeks, self.config.minimum_total_weeks())
        return max(lower, min(self.config.max_plan_weeks, weeks))

    def restrictions_for_profile(self, profile: UserProfile) -> list[InjuryRestriction]:
        """Restrictions for every open injury on the profile."""
        disciplines = [discipline for discipline, _ in discipline_priorities(profile)]
        restrictions = []
        for injury in profile.open_injuries():
            patterns = patterns_for_injury(injury.body_part, injury.movement_restrictions)
            affected = [d for d in disciplines if _discipline_touches(d, patterns)]
            restrictions.append(restriction_from_injury(injury, affected, self.config.injury_intensity_ceiling))
        return restrictions

    def build_weeks(
        self,
        profile: UserProfile,
        *,
        phases: list[TrainingPhase],
        first_week_number: int,
        first_start_date: date,
        total_weeks: int,
        rng: random.Random,
        restrictions: list[InjuryRestriction],
    ) -> list[TrainingWeek]:
        """Build consecutive weeks, one per entry in ``phases``."""
        weeks = []
        for offset, phase in enumerate(phases):
            week_number = first_week_number + offset
            deload = is_deload_week(week_number, total_weeks, phase, self.config)
            weeks.append(
                self.build_week(
                    profile,
                    week_number=week_number,
                    phase=phase,
                    week_start=first_start_date + timedelta(days=7 * offset),
                    deload=deload,
                    rng=rng,
                    restrictions=restrictions,
                )
            )
        return weeks

    def build_week(
        self,
        profile: UserProfile,
        *,
        week_number: int,
        phase: TrainingPhase,
        week_start: date,
        deload: bool,
        rng: random.Random,
        restrictions: list[InjuryRestriction],
    ) -> TrainingWeek:
        schedule = profile.schedule
        intensity = week_intensity(phase, deload=deload)
        count = sessions_for_week(
            phase,
            schedule.minimum_sessions_per_week,
            schedule.maximum_sessions_per_week,
            deload=deload,
        )
        days = select_training_days(schedule.available_weekdays(), count)
        counts = allocate_disciplines(discipline_priorities(profile), count)
        disciplines = rotate_disciplines(counts, week_number)

        workouts: list[Workout] = []
        slots: dict[Discipline, int] = {}
        for day, discipline in zip(days, disciplines, strict=True):
            slot = slots.get(discipline, 0)
            slots[discipline] = slot + 1
            workout = self.build_workout(
                discipline=discipline,
                phase=phase,
                week_intensity=intensity,
                deload=deload,
                slot=slot,
                scheduled_date=date_for_weekday(week_start, day),
                rng=rng,
            )
            adapted, _ = apply_restrictions(workout, restrictions, phase)
            if adapted is not None:
                workouts.append(adapted)

        workouts.sort(key=lambda w: w.scheduled_date)
        mark_key_workouts(workouts, phase, rng)

        return TrainingWeek(
            id=new_id(rng),
            week_number=week_number,
            phase=phase,
            intensity=intensity,
            focus_area=DELOAD_FOCUS_AREA if deload else FOCUS_AREAS[phase],
            start_date=week_start,
            end_date=week_start + timedelta(days=6),
            workouts=workouts,
        )

    def build_workout(
        self,
        *,
        discipline: Discipline,
        phase: TrainingPhase,
        week_intensity: IntensityLevel,
        deload: bool,
        slot: int,
        scheduled_date: date,
        rng: random.Random,
    ) -> Workout:
        session_type = session_type_for(discipline, phase, slot, deload=deload)
        intensity = session_intensity(session_type, week_intensity)
        return Workout(
            id=new_id(rng),
            name=workout_name(discipline, session_type, phase),
            description=DELOAD_FOCUS_AREA if deload else FOCUS_AREAS[phase],
            discipline=discipline,
            session_type=session_type,
            day_of_week=scheduled_date.weekday(),
            scheduled_date=scheduled_date,
            intensity=intensity,
            estimated_duration_min=session_duration(session_type, intensity),
        )

    def validate_coherence(self, plan: TrainingPlan) -> None:
        """Validate structure and flag suspicious volume changes.

        Raises:
            ValidationError: If the structure is broken or a week is empty
                without an injury restriction explaining it
        """
        validate_plan_structure(plan)

        previous: TrainingWeek | None = None
        for week in plan.weeks:
            if not week.workouts:
                if not plan.restrictions:
                    raise ValidationError(f"Week {week.week_number} has no workouts")
                logger.warning("Week left empty by injury restrictions", plan_id=plan.id, week=week.week_number)
            if previous is not None and previous.total_duration_min() > 0 and week.phase not in LOW_VOLUME_PHASES:
                ratio = week.total_duration_min() / previous.total_duration_min()
                if ratio < 1 - VOLUME_DROP_WARNING_RATIO:
                    logger.warning(
                        f"Week {week.week_number} volume drops {round((1 - ratio) * 100)}% from week {previous.week_number}",
                        plan_id=plan.id,
                    )
            previous = week

    # -----------------------------
    # Helpers
    # -----------------------------
    def _validate_week_bounds(self, total_weeks: int) -> None:
        if not self.config.min_plan_weeks <= total_weeks <= self.config.max_plan_weeks:
            raise ValidationError(
                f"total_weeks must be between {self.config.min_plan_weeks} and {self.config.max_plan_weeks}, got {total_weeks}",
                field="total_weeks",
            )


def plan_name(profile: UserProfile, start: date) -> str:
    goals = profile.active_goals()
    goal_type = goals[0].goal_type if goals else GoalType.GENERAL_FITNESS
    return f"{goal_type} Plan - {start:%b %Y}"


def mark_key_workouts(workouts: list[Workout], phase: TrainingPhase, rng: random.Random) -> None:
    """Flag one key workout per week.

    Intensity and Peak weeks: the highest-intensity, longest session.
    Build weeks: the longest session. Other phases: the first session.
    The RNG only breaks ties between equal candidates.
    """
    if not workouts:
        return
    if phase in {TrainingPhase.INTENSITY, TrainingPhase.PEAK}:
        def score(w: Workout) -> tuple[int, int]:
            return intensity_rank(w.intensity), w.estimated_duration_min
    elif phase == TrainingPhase.BUILD:
        def score(w: Workout) -> tuple[int, int]:
            return 0, w.estimated_duration_min
    else:
        workouts[0].is_key_workout = True
        return

    best = max(score(w) for w in workouts)
    candidates = [w for w in workouts if score(w) == best]
    rng.choice(candidates).is_key_workout = True


def _discipline_touches(discipline: Discipline, patterns: frozenset) -> bool:
    return any(
        touches(session_type, patterns)
        for rotation in SESSION_ROTATION[discipline].values()
        for session_type in rotation
    )

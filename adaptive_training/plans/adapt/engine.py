"""AdaptationEngine - applies triggers to a user's active plan.

Flow for every trigger:
1. Resolve the user's Active plan
2. Acquire the per-plan lock (a second caller on the same plan blocks)
3. In one unit of work: reload the plan, run the trigger's policy, bump the
   plan version (optimistic check), save touched weeks, write exactly one
   PlanAdaptation record
4. On ConflictError retry once with a fresh plan, then surface the conflict

Any error inside the unit of work rolls back every partial write, so a
reader never sees workouts changed without their adaptation record.
"""

import threading
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import assert_never

from loguru import logger

from adaptive_training.config.settings import EngineConfig
from adaptive_training.plans.adapt.builder import AdaptationRecordBuilder
from adaptive_training.plans.adapt.policies import (
    PolicyContext,
    apply_injury,
    apply_intensity_shift,
    apply_missed_workouts,
    apply_schedule_change,
    apply_timeline_change,
)
from adaptive_training.plans.adapt.types import (
    AdaptationResult,
    InjuryTrigger,
    MissedWorkoutsTrigger,
    PerceivedDifficultyTrigger,
    ScheduleChangeTrigger,
    TimelineChangeTrigger,
    Trigger,
    UserRequestTrigger,
)
from adaptive_training.plans.errors import ConflictError, NotFoundError
from adaptive_training.plans.generate.generator import PlanGenerator
from adaptive_training.plans.ports import UnitOfWork, UnitOfWorkFactory
from adaptive_training.plans.types import AdaptationTrigger, AdaptationType, PlanStatus, TrainingPlan
from adaptive_training.plans.validators import validate_plan_structure

ADAPTATION_TYPES: dict[AdaptationTrigger, AdaptationType] = {
    AdaptationTrigger.MISSED_WORKOUTS: AdaptationType.RECOVERY,
    AdaptationTrigger.INJURY: AdaptationType.INJURY,
    AdaptationTrigger.SCHEDULE_CHANGE: AdaptationType.SCHEDULE,
    AdaptationTrigger.TIMELINE_CHANGE: AdaptationType.TIMELINE,
    AdaptationTrigger.USER_REQUEST: AdaptationType.INTENSITY,
    AdaptationTrigger.PERCEIVED_DIFFICULTY: AdaptationType.INTENSITY,
}


class AdaptationEngine:
    """Applies adaptation triggers atomically, one at a time per plan.

    Args:
        uow_factory: Callable returning a fresh UnitOfWork
        config: Engine configuration
        generator: Plan generator used when weeks must be rebuilt
        today: Clock returning the current date
        now: Clock returning the current UTC timestamp
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        config: EngineConfig,
        *,
        generator: PlanGenerator | None = None,
        today: Callable[[], date] = date.today,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.uow_factory = uow_factory
        self.config = config
        self.generator = generator or PlanGenerator(config, today=today)
        self.today = today
        self.now = now
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def adapt(self, user_id: str, trigger: Trigger) -> AdaptationResult:
        """Apply a trigger to the user's Active plan.

        Args:
            user_id: Owner of the plan
            trigger: One of the trigger variants

        Returns:
            AdaptationResult with the id of the PlanAdaptation record

        Raises:
            NotFoundError: If the user has no Active plan, or a referenced workout is absent
            ValidationError: If the trigger carries malformed input
            InfeasibleAdaptationError: If the change cannot be applied
            ConflictError: If the plan kept changing concurrently after one retry
        """
        plan_id = self._resolve_active_plan_id(user_id)
        logger.info("Adapting plan", plan_id=plan_id, user_id=user_id, trigger=trigger.kind)

        with self._plan_lock(plan_id):
            for attempt in range(self.config.conflict_retries + 1):
                try:
                    return self._apply_once(plan_id, trigger)
                except ConflictError as e:
                    if attempt < self.config.conflict_retries:
                        logger.warning(
                            "Plan version conflict: {error}. Retrying...", error=str(e), plan_id=plan_id, attempt=attempt + 1
                        )
                        continue
                    logger.error("Plan version conflict persisted after retry", plan_id=plan_id, trigger=trigger.kind)
                    raise
        raise AssertionError("unreachable")

    def _apply_once(self, plan_id: str, trigger: Trigger) -> AdaptationResult:
        today = self.today()
        with self.uow_factory() as uow:
            plan = uow.plans.get_plan_with_details(plan_id)
            if plan.status != PlanStatus.ACTIVE:
                raise NotFoundError("Active plan", plan_id, f"Plan {plan_id} is {plan.status}, not Active")
            expected_version = plan.version

            builder = AdaptationRecordBuilder(
                plan_id=plan.id,
                trigger=trigger.kind,
                adaptation_type=ADAPTATION_TYPES[trigger.kind],
                applied_at=self.now(),
            )
            self._check_frequency(uow, plan, builder)

            ctx = PolicyContext(
                config=self.config,
                today=today,
                generator=self.generator,
                builder=builder,
                load_profile=lambda: uow.profiles.get_profile(plan.user_id),
            )
            self._dispatch(plan, trigger, ctx)

            plan.current_week = plan.week_pointer_for(today)
            validate_plan_structure(plan)

            new_version = uow.plans.update_plan(plan, expected_version)
            for week_id in builder.dropped_week_ids:
                uow.plans.delete_week(week_id)
            for week in builder.touched_weeks(plan):
                uow.plans.save_week(plan.id, week)
            record = builder.finalize(str(uuid.uuid4()))
            uow.adaptations.create_adaptation(record)

        for warning in builder.warnings:
            logger.warning("{warning}", warning=warning, plan_id=plan.id, trigger=trigger.kind)
        logger.info(
            "Adaptation applied",
            plan_id=plan.id,
            adaptation_id=record.id,
            trigger=trigger.kind,
            adaptation_type=record.adaptation_type,
            changes=len(builder.changes),
            version=new_version,
        )
        return AdaptationResult(
            success=True,
            adaptation_id=record.id,
            plan_id=plan.id,
            plan_version=new_version,
            warnings=builder.warnings,
        )

    def _dispatch(self, plan: TrainingPlan, trigger: Trigger, ctx: PolicyContext) -> None:
        match trigger:
            case MissedWorkoutsTrigger():
                apply_missed_workouts(plan, trigger, ctx)
            case InjuryTrigger():
                apply_injury(plan, trigger, ctx)
            case ScheduleChangeTrigger():
                apply_schedule_change(plan, trigger, ctx)
            case TimelineChangeTrigger():
                apply_timeline_change(plan, trigger, ctx)
            case UserRequestTrigger() | PerceivedDifficultyTrigger():
                apply_intensity_shift(plan, trigger.direction, ctx)
            case _:
                assert_never(trigger)

    def _check_frequency(self, uow: UnitOfWork, plan: TrainingPlan, builder: AdaptationRecordBuilder) -> None:
        """Warn (never block) when adaptations come closer together than configured."""
        if self.config.min_days_between_adaptations <= 0:
            return
        history = uow.adaptations.list_adaptations(plan.id)
        if not history:
            return
        days_since = (builder.applied_at - history[-1].applied_at).days
        if days_since < self.config.min_days_between_adaptations:
            builder.add_warning(
                f"Plan was already adapted {days_since} day(s) ago; frequent changes make progress hard to judge"
            )

    def _resolve_active_plan_id(self, user_id: str) -> str:
        with self.uow_factory() as uow:
            plan = uow.plans.get_active_plan(user_id)
        if plan is None:
            raise NotFoundError("Active plan", user_id, f"No active plan for user {user_id}")
        return plan.id

    @contextmanager
    def _plan_lock(self, plan_id: str) -> Iterator[None]:
        with self._locks_guard:
            lock = self._locks.setdefault(plan_id, threading.Lock())
        with lock:
            yield

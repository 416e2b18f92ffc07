"""TrainingPlanService - the public API of the adaptive training engine.

Wires PlanGenerator, AdaptationEngine, the progress functions and the
IntentClassifier to the storage ports. Every mutating call runs inside one
UnitOfWork; an exception anywhere rolls back every partial write.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date, datetime, timezone
from functools import partial

from loguru import logger

from adaptive_training.coach.classifier import IntentClassifier
from adaptive_training.coach.intents import ChatMessage, IntentClassification
from adaptive_training.coach.llm_client import OpenAICompletionService
from adaptive_training.config.settings import EngineConfig, Settings, settings
from adaptive_training.core.logger import setup_logger
from adaptive_training.db.gateway import SqlUnitOfWork
from adaptive_training.db.session import get_engine, get_session_factory, init_db, make_engine, make_session_factory
from adaptive_training.plans.adapt.engine import AdaptationEngine
from adaptive_training.plans.adapt.types import (
    AdaptationResult,
    InjuryTrigger,
    MissedWorkoutsTrigger,
    PerceivedDifficultyTrigger,
    ScheduleChangeTrigger,
    TimelineChangeTrigger,
    UserRequestTrigger,
)
from adaptive_training.plans.errors import NotFoundError, ValidationError
from adaptive_training.plans.generate.generator import PlanGenerator
from adaptive_training.plans.intensity import direction_from_feedback
from adaptive_training.plans.ports import UnitOfWork, UnitOfWorkFactory
from adaptive_training.plans.progress.tracker import MissThresholdResult, ProgressReport, build_progress_report
from adaptive_training.plans.progress.tracker import check_missed_threshold as check_misses
from adaptive_training.plans.types import (
    CompletionStatus,
    InjuryLimitation,
    IntensityDirection,
    PlanStatus,
    ScheduleAvailability,
    TrainingPlan,
    UserProfile,
    Workout,
)
from adaptive_training.plans.validators import transition_status, undo_completion


class TrainingPlanService:
    """Facade over plan generation, adaptation, progress and coach chat.

    Args:
        uow_factory: Callable returning a fresh UnitOfWork
        config: Engine configuration
        classifier: Intent classifier for coach chat
        today: Clock returning the current date
        now: Clock returning the current UTC timestamp
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        config: EngineConfig,
        classifier: IntentClassifier,
        *,
        today: Callable[[], date] = date.today,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.uow_factory = uow_factory
        self.config = config
        self.classifier = classifier
        self.today = today
        self.generator = PlanGenerator(config, today=today)
        self.engine = AdaptationEngine(uow_factory, config, generator=self.generator, today=today, now=now)

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> TrainingPlanService:
        """Build a service wired to the configured database and completion service.

        Without explicit settings the process-wide settings and the shared
        lazily created engine are used.
        """
        if config is None:
            config = settings
            engine = get_engine()
            session_factory = get_session_factory()
        else:
            engine = make_engine(config.database_url)
            session_factory = make_session_factory(engine)
        setup_logger(config.log_level, config.log_file)
        init_db(engine)

        llm_config = config.llm_config()
        completion_service = OpenAICompletionService(llm_config) if llm_config.enabled else None
        classifier = IntentClassifier(completion_service, llm_config)
        return cls(partial(SqlUnitOfWork, session_factory), config.engine_config(), classifier)

    # -----------------------------
    # Generation
    # -----------------------------
    def generate_initial_plan(
        self,
        profile: UserProfile,
        total_weeks: int | None = None,
        *,
        seed: int | None = None,
        start_date: date | None = None,
    ) -> TrainingPlan:
        """Generate and store the user's first plan.

        The profile is saved alongside the plan. ``total_weeks`` defaults to
        the length derived from the primary goal's target date.

        Raises:
            ValidationError: If the profile or duration is invalid, or the user
                already has an Active plan
            ConflictError: If another plan for the user was stored concurrently
        """
        weeks = total_weeks if total_weeks is not None else self.generator.determine_plan_duration(profile)
        with self.uow_factory() as uow:
            if uow.plans.get_active_plan(profile.user_id) is not None:
                raise ValidationError(
                    f"User {profile.user_id} already has an active plan; use regenerate_plan instead",
                    field="user_id",
                )
            plan = self.generator.generate(profile, weeks, seed=seed, start_date=start_date)
            uow.profiles.save_profile(profile)
            uow.plans.add_plan(plan)
        return plan

    def regenerate_plan(
        self,
        user_id: str,
        total_weeks: int | None = None,
        *,
        seed: int | None = None,
        start_date: date | None = None,
    ) -> TrainingPlan:
        """Abandon the Active plan (if any) and generate a new one from the stored profile."""
        with self.uow_factory() as uow:
            profile = uow.profiles.get_profile(user_id)
            weeks = total_weeks if total_weeks is not None else self.generator.determine_plan_duration(profile)
            plan = self.generator.generate(profile, weeks, seed=seed, start_date=start_date)

            previous = uow.plans.get_active_plan(user_id)
            if previous is not None:
                previous.status = PlanStatus.ABANDONED
                uow.plans.update_plan(previous, previous.version)
                logger.info("Abandoned plan for regeneration", plan_id=previous.id, user_id=user_id)
            uow.plans.add_plan(plan)
        return plan

    # -----------------------------
    # Adaptation
    # -----------------------------
    def adapt_for_missed_workouts(self, user_id: str, workout_ids: list[str]) -> AdaptationResult:
        return self.engine.adapt(user_id, MissedWorkoutsTrigger(workout_ids=workout_ids))

    def adapt_for_injury(self, user_id: str, injury: InjuryLimitation) -> AdaptationResult:
        trigger = InjuryTrigger(
            body_part=injury.body_part,
            movement_restrictions=injury.movement_restrictions,
            injury_type=injury.injury_type,
            status=injury.status,
        )
        return self.engine.adapt(user_id, trigger)

    def adapt_for_schedule_change(self, user_id: str, new_schedule: ScheduleAvailability) -> AdaptationResult:
        """Fit future weeks to a new availability.

        Only the plan changes. Persisting the new availability on the profile
        is left to the caller (``save_profile``).
        """
        return self.engine.adapt(user_id, ScheduleChangeTrigger(new_availability=new_schedule))

    def adapt_for_timeline_change(self, user_id: str, new_target_date: date) -> AdaptationResult:
        return self.engine.adapt(user_id, TimelineChangeTrigger(new_target_date=new_target_date))

    def adapt_intensity(self, user_id: str, direction: IntensityDirection, reason: str | None = None) -> AdaptationResult:
        return self.engine.adapt(user_id, UserRequestTrigger(direction=direction, reason=reason))

    def adapt_for_perceived_difficulty(
        self,
        user_id: str,
        *,
        direction: IntensityDirection | None = None,
        feedback: str | None = None,
    ) -> AdaptationResult:
        """Shift intensity from an explicit direction or free-text feedback.

        Raises:
            ValidationError: If neither direction nor feedback is given
        """
        if direction is None:
            if not feedback or not feedback.strip():
                raise ValidationError("Either direction or feedback is required", field="direction")
            direction = direction_from_feedback(feedback)
        return self.engine.adapt(user_id, PerceivedDifficultyTrigger(direction=direction, feedback=feedback))

    # -----------------------------
    # Coach chat
    # -----------------------------
    def classify_intent(self, message: str, history: list[ChatMessage] | None = None) -> IntentClassification:
        return self.classifier.classify(message, history)

    # -----------------------------
    # Progress
    # -----------------------------
    def get_progress(self, user_id: str) -> ProgressReport:
        plan = self._active_plan(user_id)
        return build_progress_report(plan.all_workouts(), self.today(), self.config)

    def check_missed_threshold(self, user_id: str) -> MissThresholdResult:
        plan = self._active_plan(user_id)
        result = check_misses(plan.all_workouts(), self.today(), self.config)
        if result.triggered:
            logger.info(
                "Missed-workout threshold reached",
                plan_id=plan.id,
                missed_count=result.missed_count,
                threshold=result.threshold,
            )
        return result

    # -----------------------------
    # Workout completion
    # -----------------------------
    def start_workout(self, user_id: str, workout_id: str) -> Workout:
        return self._update_workout(
            user_id, workout_id, lambda w: transition_status(w, CompletionStatus.IN_PROGRESS, today=self.today())
        )

    def complete_workout(self, user_id: str, workout_id: str) -> Workout:
        """Mark a workout Completed, passing through InProgress when needed.

        Raises:
            ValidationError: If the workout is scheduled after today
            InvalidStatusTransitionError: If the workout is not NotStarted or InProgress
        """

        def complete(workout: Workout) -> None:
            if workout.status == CompletionStatus.NOT_STARTED:
                transition_status(workout, CompletionStatus.IN_PROGRESS, today=self.today())
            transition_status(workout, CompletionStatus.COMPLETED, today=self.today())

        return self._update_workout(user_id, workout_id, complete)

    def skip_workout(self, user_id: str, workout_id: str) -> Workout:
        return self._update_workout(
            user_id, workout_id, lambda w: transition_status(w, CompletionStatus.SKIPPED, today=self.today())
        )

    def undo_workout_completion(self, user_id: str, workout_id: str) -> Workout:
        return self._update_workout(user_id, workout_id, undo_completion)

    def _update_workout(self, user_id: str, workout_id: str, mutate: Callable[[Workout], None]) -> Workout:
        with self.uow_factory() as uow:
            plan = self._require_active(uow, user_id)
            found = plan.find_workout(workout_id)
            if found is None:
                raise NotFoundError("Workout", workout_id)
            week, workout = found
            previous_status = workout.status
            mutate(workout)
            uow.plans.update_plan(plan, plan.version)
            uow.plans.save_week(plan.id, week)

        logger.info(
            "Workout status changed",
            plan_id=plan.id,
            workout_id=workout_id,
            previous=previous_status,
            status=workout.status,
        )
        return workout

    def _active_plan(self, user_id: str) -> TrainingPlan:
        with self.uow_factory() as uow:
            return self._require_active(uow, user_id)

    @staticmethod
    def _require_active(uow: UnitOfWork, user_id: str) -> TrainingPlan:
        plan = uow.plans.get_active_plan(user_id)
        if plan is None:
            raise NotFoundError("Active plan", user_id, f"No active plan for user {user_id}")
        return plan

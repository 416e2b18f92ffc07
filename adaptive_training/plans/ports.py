"""Storage ports for the plan engine.

One repository per aggregate root (Plan, Profile, Adaptation). The engine
only talks to these protocols; ``adaptive_training.db.gateway`` provides the
SQLAlchemy implementation.

A UnitOfWork groups the three repositories over a single transaction:
everything done inside ``with uow:`` commits together on success and is
rolled back together on any exception.
"""

from typing import Protocol, Self

from adaptive_training.plans.types import PlanAdaptation, TrainingPlan, TrainingWeek, UserProfile


class PlanRepository(Protocol):
    def get_plan_with_details(self, plan_id: str) -> TrainingPlan:
        """Load a plan with weeks and workouts.

        Raises:
            NotFoundError: If the plan does not exist
        """
        ...

    def get_active_plan(self, user_id: str) -> TrainingPlan | None:
        """Load the user's Active plan with details, or None."""
        ...

    def add_plan(self, plan: TrainingPlan) -> None: ...

    def save_week(self, plan_id: str, week: TrainingWeek) -> None:
        """Insert or replace a week and its workouts."""
        ...

    def delete_week(self, week_id: str) -> None: ...

    def update_plan(self, plan: TrainingPlan, expected_version: int) -> int:
        """Persist plan-level fields if the stored version matches.

        Returns:
            The new version

        Raises:
            ConflictError: If the stored version differs from expected_version
        """
        ...


class ProfileRepository(Protocol):
    def get_profile(self, user_id: str) -> UserProfile:
        """Raises NotFoundError if the profile does not exist."""
        ...

    def save_profile(self, profile: UserProfile) -> None: ...


class AdaptationRepository(Protocol):
    def create_adaptation(self, record: PlanAdaptation) -> None: ...

    def list_adaptations(self, plan_id: str) -> list[PlanAdaptation]:
        """Adaptations for a plan, oldest first."""
        ...


class UnitOfWork(Protocol):
    plans: PlanRepository
    profiles: ProfileRepository
    adaptations: AdaptationRepository

    def __enter__(self) -> Self: ...

    def __exit__(self, exc_type, exc, tb) -> None: ...


class UnitOfWorkFactory(Protocol):
    def __call__(self) -> UnitOfWork: ...

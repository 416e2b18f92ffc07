"""SQLAlchemy implementation of the storage ports.

Maps between ORM rows and the pydantic plan types. SQLite returns naive
datetimes even for ``DateTime(timezone=True)`` columns; every datetime read
back is normalized to UTC-aware.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timezone
from typing import Self

from loguru import logger
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from adaptive_training.db.models import (
    PlanAdaptationRow,
    TrainingPlanRow,
    TrainingWeekRow,
    UserProfileRow,
    WorkoutRow,
)
from adaptive_training.plans.errors import ConflictError, NotFoundError
from adaptive_training.plans.types import (
    InjuryLimitation,
    InjuryRestriction,
    PlanAdaptation,
    PlanStatus,
    ScheduleAvailability,
    TrainingGoal,
    TrainingPlan,
    TrainingWeek,
    UserProfile,
    Workout,
)


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _workout_row(plan_id: str, week_id: str, position: int, workout: Workout) -> WorkoutRow:
    return WorkoutRow(
        id=workout.id,
        plan_id=plan_id,
        week_id=week_id,
        position=position,
        name=workout.name,
        description=workout.description,
        discipline=workout.discipline,
        session_type=workout.session_type,
        day_of_week=workout.day_of_week,
        scheduled_date=workout.scheduled_date,
        intensity=workout.intensity,
        estimated_duration_min=workout.estimated_duration_min,
        is_key_workout=workout.is_key_workout,
        status=workout.status,
        completed_at=workout.completed_at,
    )


def _to_workout(row: WorkoutRow) -> Workout:
    return Workout(
        id=row.id,
        name=row.name,
        description=row.description,
        discipline=row.discipline,
        session_type=row.session_type,
        day_of_week=row.day_of_week,
        scheduled_date=row.scheduled_date,
        intensity=row.intensity,
        estimated_duration_min=row.estimated_duration_min,
        is_key_workout=row.is_key_workout,
        status=row.status,
        completed_at=_as_utc(row.completed_at),
    )


def _plan_values(plan: TrainingPlan) -> dict:
    return {
        "name": plan.name,
        "status": plan.status,
        "total_weeks": plan.total_weeks,
        "current_week": plan.current_week,
        "start_date": plan.start_date,
        "end_date": plan.end_date,
        "training_days_per_week": plan.training_days_per_week,
        "seed": plan.seed,
        "restrictions": [r.model_dump(mode="json") for r in plan.restrictions],
    }


class SqlPlanRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get_plan_with_details(self, plan_id: str) -> TrainingPlan:
        row = self.session.get(TrainingPlanRow, plan_id)
        if row is None:
            raise NotFoundError("Plan", plan_id)
        return self._load(row)

    def get_active_plan(self, user_id: str) -> TrainingPlan | None:
        row = self.session.execute(
            select(TrainingPlanRow)
            .where(TrainingPlanRow.user_id == user_id, TrainingPlanRow.status == PlanStatus.ACTIVE)
            .order_by(TrainingPlanRow.created_at.desc())
        ).scalars().first()
        if row is None:
            return None
        return self._load(row)

    def add_plan(self, plan: TrainingPlan) -> None:
        self.session.add(TrainingPlanRow(id=plan.id, user_id=plan.user_id, version=plan.version, **_plan_values(plan)))
        try:
            self.session.flush()
        except IntegrityError as e:
            raise ConflictError(
                plan.id, message=f"Another active plan was stored concurrently for user {plan.user_id}"
            ) from e
        for week in plan.weeks:
            self.save_week(plan.id, week)
        logger.debug("Plan added", plan_id=plan.id, weeks=len(plan.weeks))

    def save_week(self, plan_id: str, week: TrainingWeek) -> None:
        """Insert or replace a week; its workouts are upserted in list order."""
        workout_ids = [w.id for w in week.workouts]
        self.session.execute(
            delete(WorkoutRow)
            .where(WorkoutRow.week_id == week.id, WorkoutRow.id.not_in(workout_ids))
            .execution_options(synchronize_session="fetch")
        )
        self.session.merge(
            TrainingWeekRow(
                id=week.id,
                plan_id=plan_id,
                week_number=week.week_number,
                phase=week.phase,
                intensity=week.intensity,
                focus_area=week.focus_area,
                start_date=week.start_date,
                end_date=week.end_date,
            )
        )
        for position, workout in enumerate(week.workouts):
            self.session.merge(_workout_row(plan_id, week.id, position, workout))
        self.session.flush()

    def delete_week(self, week_id: str) -> None:
        self.session.execute(
            delete(WorkoutRow).where(WorkoutRow.week_id == week_id).execution_options(synchronize_session="fetch")
        )
        self.session.execute(
            delete(TrainingWeekRow).where(TrainingWeekRow.id == week_id).execution_options(synchronize_session="fetch")
        )

    def update_plan(self, plan: TrainingPlan, expected_version: int) -> int:
        new_version = expected_version + 1
        result = self.session.execute(
            update(TrainingPlanRow)
            .where(TrainingPlanRow.id == plan.id, TrainingPlanRow.version == expected_version)
            .values(**_plan_values(plan), version=new_version, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError(plan.id, expected_version)
        plan.version = new_version
        return new_version

    def _load(self, row: TrainingPlanRow) -> TrainingPlan:
        week_rows = self.session.execute(
            select(TrainingWeekRow).where(TrainingWeekRow.plan_id == row.id).order_by(TrainingWeekRow.week_number)
        ).scalars().all()
        workout_rows = self.session.execute(
            select(WorkoutRow).where(WorkoutRow.plan_id == row.id).order_by(WorkoutRow.position)
        ).scalars().all()

        by_week: dict[str, list[Workout]] = defaultdict(list)
        for workout_row in workout_rows:
            by_week[workout_row.week_id].append(_to_workout(workout_row))

        weeks = [
            TrainingWeek(
                id=week.id,
                week_number=week.week_number,
                phase=week.phase,
                intensity=week.intensity,
                focus_area=week.focus_area,
                start_date=week.start_date,
                end_date=week.end_date,
                workouts=by_week.get(week.id, []),
            )
            for week in week_rows
        ]
        return TrainingPlan(
            id=row.id,
            user_id=row.user_id,
            name=row.name,
            status=row.status,
            total_weeks=row.total_weeks,
            current_week=row.current_week,
            start_date=row.start_date,
            end_date=row.end_date,
            training_days_per_week=row.training_days_per_week,
            seed=row.seed,
            restrictions=[InjuryRestriction.model_validate(r) for r in row.restrictions or []],
            version=row.version,
            weeks=weeks,
        )


class SqlProfileRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get_profile(self, user_id: str) -> UserProfile:
        row = self.session.get(UserProfileRow, user_id)
        if row is None:
            raise NotFoundError("Profile", user_id)
        return UserProfile(
            user_id=row.user_id,
            name=row.name,
            hyrox_level=row.hyrox_level,
            running_level=row.running_level,
            strength_level=row.strength_level,
            schedule=ScheduleAvailability.model_validate(row.schedule),
            goals=[TrainingGoal.model_validate(g) for g in row.goals or []],
            injuries=[InjuryLimitation.model_validate(i) for i in row.injuries or []],
        )

    def save_profile(self, profile: UserProfile) -> None:
        self.session.merge(
            UserProfileRow(
                user_id=profile.user_id,
                name=profile.name,
                hyrox_level=profile.hyrox_level,
                running_level=profile.running_level,
                strength_level=profile.strength_level,
                schedule=profile.schedule.model_dump(mode="json"),
                goals=[g.model_dump(mode="json") for g in profile.goals],
                injuries=[i.model_dump(mode="json") for i in profile.injuries],
                updated_at=datetime.now(timezone.utc),
            )
        )
        try:
            self.session.flush()
        except IntegrityError as e:
            raise ConflictError(None, message=f"Profile {profile.user_id} was created concurrently") from e


class SqlAdaptationRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def create_adaptation(self, record: PlanAdaptation) -> None:
        self.session.add(
            PlanAdaptationRow(
                id=record.id,
                plan_id=record.plan_id,
                trigger=record.trigger,
                adaptation_type=record.adaptation_type,
                applied_at=record.applied_at,
                description=record.description,
            )
        )
        self.session.flush()

    def list_adaptations(self, plan_id: str) -> list[PlanAdaptation]:
        rows = self.session.execute(
            select(PlanAdaptationRow)
            .where(PlanAdaptationRow.plan_id == plan_id)
            .order_by(PlanAdaptationRow.applied_at, PlanAdaptationRow.id)
        ).scalars().all()
        return [
            PlanAdaptation(
                id=row.id,
                plan_id=row.plan_id,
                trigger=row.trigger,
                adaptation_type=row.adaptation_type,
                applied_at=_as_utc(row.applied_at),
                description=row.description,
            )
            for row in rows
        ]


def _is_write_conflict(error: BaseException | None) -> bool:
    """Uniqueness violations and SQLite lock contention mean another writer won."""
    if isinstance(error, IntegrityError):
        return True
    return isinstance(error, OperationalError) and "locked" in str(error).lower()


class SqlUnitOfWork:
    """One session, one transaction. Commits on clean exit, rolls back otherwise.

    Database errors caused by a concurrent writer surface as ConflictError.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self.session_factory = session_factory

    def __enter__(self) -> Self:
        self.session = self.session_factory()
        self.plans = SqlPlanRepository(self.session)
        self.profiles = SqlProfileRepository(self.session)
        self.adaptations = SqlAdaptationRepository(self.session)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if exc_type is None:
                try:
                    self.session.commit()
                except (IntegrityError, OperationalError) as e:
                    self.session.rollback()
                    if _is_write_conflict(e):
                        raise ConflictError(None, message=f"Concurrent write rejected: {e.orig}") from e
                    raise
            else:
                logger.debug(f"Rolling back unit of work after {exc_type.__name__}: {exc}")
                self.session.rollback()
                if _is_write_conflict(exc):
                    raise ConflictError(None, message=f"Concurrent write rejected: {exc.orig}") from exc
        finally:
            self.session.close()

"""Tests for the SQLAlchemy storage adapter."""

from datetime import datetime, timezone

import pytest

from adaptive_training.plans.errors import ConflictError, NotFoundError
from adaptive_training.plans.types import AdaptationTrigger, AdaptationType, PlanAdaptation


def test_update_plan_with_stale_version_conflicts(active_plan, uow_factory):
    """A conditional update against an old version raises ConflictError."""
    with uow_factory() as uow:
        plan = uow.plans.get_plan_with_details(active_plan.id)
        assert uow.plans.update_plan(plan, 1) == 2

    with uow_factory() as uow:
        plan = uow.plans.get_plan_with_details(active_plan.id)
        with pytest.raises(ConflictError) as exc_info:
            uow.plans.update_plan(plan, 1)
    assert exc_info.value.expected_version == 1


def test_unit_of_work_rolls_back_on_error(active_plan, uow_factory):
    """Writes inside a failing unit of work are discarded."""
    with pytest.raises(RuntimeError):
        with uow_factory() as uow:
            plan = uow.plans.get_plan_with_details(active_plan.id)
            plan.name = "Renamed"
            uow.plans.update_plan(plan, plan.version)
            raise RuntimeError("boom")

    with uow_factory() as uow:
        stored = uow.plans.get_plan_with_details(active_plan.id)
    assert stored.name == active_plan.name
    assert stored.version == 1


def test_adaptations_are_listed_oldest_first_with_utc_times(active_plan, uow_factory):
    """Timestamps come back timezone-aware and ordered by applied_at."""
    later = PlanAdaptation(
        id="a-2",
        plan_id=active_plan.id,
        trigger=AdaptationTrigger.USER_REQUEST,
        adaptation_type=AdaptationType.INTENSITY,
        applied_at=datetime(2025, 3, 12, 10, 0, tzinfo=timezone.utc),
        description="later",
    )
    earlier = later.model_copy(update={"id": "a-1", "applied_at": datetime(2025, 3, 11, 10, 0, tzinfo=timezone.utc)})
    with uow_factory() as uow:
        uow.adaptations.create_adaptation(later)
        uow.adaptations.create_adaptation(earlier)

    with uow_factory() as uow:
        records = uow.adaptations.list_adaptations(active_plan.id)
    assert [r.id for r in records] == ["a-1", "a-2"]
    assert records[0].applied_at == earlier.applied_at
    assert records[0].applied_at.tzinfo is not None


def test_delete_week_removes_its_workouts(active_plan, uow_factory):
    """Deleting a week removes the week and its workouts."""
    last = active_plan.weeks[-1]
    with uow_factory() as uow:
        uow.plans.delete_week(last.id)

    with uow_factory() as uow:
        plan = uow.plans.get_plan_with_details(active_plan.id)
    assert len(plan.weeks) == len(active_plan.weeks) - 1
    assert all(plan.find_workout(w.id) is None for w in last.workouts)


def test_missing_plan_and_profile(uow_factory):
    """Unknown ids raise NotFoundError."""
    with uow_factory() as uow:
        with pytest.raises(NotFoundError):
            uow.plans.get_plan_with_details("missing")
        with pytest.raises(NotFoundError):
            uow.profiles.get_profile("missing")
        assert uow.plans.get_active_plan("missing") is None

"""Tests for AdaptationEngine through the service facade.

The fixed clock puts today on Wednesday of week 1 of an 8-week Mon/Wed/Fri
plan, so week 1 holds one past, one current and one future workout.
"""

import threading
from datetime import date, timedelta

import pytest
from conftest import NOW, PLAN_START, TODAY

from adaptive_training.config.settings import EngineConfig
from adaptive_training.db.gateway import SqlUnitOfWork
from adaptive_training.plans.adapt.engine import AdaptationEngine
from adaptive_training.plans.adapt.types import AdaptationResult, UserRequestTrigger
from adaptive_training.plans.errors import (
    ConflictError,
    InfeasibleAdaptationError,
    InvalidStatusTransitionError,
    NotFoundError,
    ValidationError,
)
from adaptive_training.plans.restrictions import touches
from adaptive_training.plans.types import (
    PHASE_SEQUENCE,
    AdaptationTrigger,
    AdaptationType,
    CompletionStatus,
    InjuryLimitation,
    InjuryStatus,
    IntensityDirection,
    IntensityLevel,
    MovementPattern,
    ScheduleAvailability,
    TrainingPhase,
    intensity_rank,
)
from adaptive_training.service import TrainingPlanService


def _load(uow_factory, plan_id):
    with uow_factory() as uow:
        return uow.plans.get_plan_with_details(plan_id)


def _adaptations(uow_factory, plan_id):
    with uow_factory() as uow:
        return uow.adaptations.list_adaptations(plan_id)


def _plan_in_week(service, profile, week_number):
    """8-week plan whose week ``week_number`` contains today."""
    start = PLAN_START - timedelta(days=7 * (week_number - 1))
    return service.generate_initial_plan(profile, 8, seed=42, start_date=start)


# -----------------------------
# MissedWorkouts
# -----------------------------
def test_missed_workouts_scenario(service, active_plan, uow_factory):
    """Two NotStarted week-1 workouts become Missed with exactly one adaptation record."""
    monday, wednesday, friday = active_plan.weeks[0].workouts

    result = service.adapt_for_missed_workouts("user-1", [monday.id, wednesday.id])

    assert result.success
    assert result.adaptation_id
    assert result.plan_id == active_plan.id
    plan = _load(uow_factory, active_plan.id)
    statuses = {w.id: w.status for w in plan.weeks[0].workouts}
    assert statuses[monday.id] == CompletionStatus.MISSED
    assert statuses[wednesday.id] == CompletionStatus.MISSED
    assert statuses[friday.id] == CompletionStatus.NOT_STARTED

    records = _adaptations(uow_factory, active_plan.id)
    assert len(records) == 1
    assert records[0].id == result.adaptation_id
    assert records[0].trigger == AdaptationTrigger.MISSED_WORKOUTS
    assert records[0].adaptation_type == AdaptationType.RECOVERY
    assert records[0].plan_id == active_plan.id


def test_missed_workouts_ease_upcoming_sessions(service, active_plan, uow_factory):
    """Upcoming workouts in the re-entry window carry the re-entry note."""
    monday = active_plan.weeks[0].workouts[0]

    service.adapt_for_missed_workouts("user-1", [monday.id])

    plan = _load(uow_factory, active_plan.id)
    friday = plan.weeks[0].workouts[2]
    assert friday.description.startswith("[Re-entry workout")


def test_missed_workouts_lower_build_week_intensity(service, profile, uow_factory):
    """In a Build week the sessions after a miss drop one level; later sessions keep theirs."""
    plan = _plan_in_week(service, profile, 3)
    week = plan.weeks[2]
    assert week.phase == TrainingPhase.BUILD
    monday, wednesday, friday = week.workouts
    assert wednesday.intensity == IntensityLevel.MODERATE
    assert friday.intensity == IntensityLevel.MODERATE

    service.adapt_for_missed_workouts("user-1", [monday.id])

    updated = _load(uow_factory, plan.id)
    for workout_id in (wednesday.id, friday.id):
        eased = updated.find_workout(workout_id)[1]
        assert eased.intensity == IntensityLevel.LOW
        assert eased.description.startswith("[Re-entry workout")

    before = {w.id: w for w in plan.all_workouts()}
    later = [w for w in updated.all_workouts() if w.scheduled_date >= TODAY + timedelta(days=5)]
    assert later
    for workout in later:
        assert workout.intensity == before[workout.id].intensity
        assert not workout.description.startswith("[Re-entry workout")


def test_reentry_reduction_tapers_across_the_window(uow_factory, service, engine_config, profile):
    """With a two-level step the reduction shrinks with distance from today and ends at the window edge."""
    tapered = TrainingPlanService(
        uow_factory,
        engine_config.model_copy(update={"intensity_step": 2}),
        service.classifier,
        today=lambda: TODAY,
        now=lambda: NOW,
    )
    plan = _plan_in_week(tapered, profile, 5)
    intensity_week, peak_week = plan.weeks[4], plan.weeks[5]
    assert intensity_week.phase == TrainingPhase.INTENSITY
    before = {w.id: w.intensity for w in plan.all_workouts()}

    tapered.adapt_for_missed_workouts("user-1", [intensity_week.workouts[0].id])

    updated = _load(uow_factory, plan.id)
    checked = [intensity_week.workouts[1], intensity_week.workouts[2], peak_week.workouts[0], peak_week.workouts[1]]
    drops = [
        intensity_rank(before[w.id]) - intensity_rank(updated.find_workout(w.id)[1].intensity) for w in checked
    ]
    assert drops == [2, 1, 1, 0]


def test_missed_workouts_never_touch_completed(service, active_plan, uow_factory):
    """A Completed workout in the request fails the whole call and stays Completed."""
    monday, wednesday, _ = active_plan.weeks[0].workouts
    service.complete_workout("user-1", monday.id)

    with pytest.raises(InvalidStatusTransitionError):
        service.adapt_for_missed_workouts("user-1", [wednesday.id, monday.id])

    plan = _load(uow_factory, active_plan.id)
    statuses = {w.id: w.status for w in plan.weeks[0].workouts}
    assert statuses[monday.id] == CompletionStatus.COMPLETED
    assert statuses[wednesday.id] == CompletionStatus.NOT_STARTED
    assert _adaptations(uow_factory, active_plan.id) == []


def test_missed_workouts_unknown_id(service, active_plan):
    """Unknown workout ids raise NotFoundError."""
    with pytest.raises(NotFoundError):
        service.adapt_for_missed_workouts("user-1", ["does-not-exist"])


def test_missed_workouts_empty_list(service, active_plan):
    """An empty id list is malformed input."""
    with pytest.raises(ValidationError):
        service.adapt_for_missed_workouts("user-1", [])


def test_adapt_without_active_plan(service):
    """Adapting for a user without an Active plan raises NotFoundError."""
    with pytest.raises(NotFoundError):
        service.adapt_intensity("nobody", IntensityDirection.EASIER)


# -----------------------------
# Injury
# -----------------------------
def test_injury_substitutes_future_sessions(service, strength_profile, uow_factory):
    """Future sessions stop loading the shoulder; past sessions stay as they were."""
    plan = service.generate_initial_plan(strength_profile, 8, seed=4, start_date=date(2025, 3, 10))
    past = plan.weeks[0].workouts[0]

    result = service.adapt_for_injury("user-strength", InjuryLimitation(body_part="shoulder"))

    updated = _load(uow_factory, plan.id)
    restricted = frozenset({MovementPattern.PUSH, MovementPattern.PULL})
    future = [w for w in updated.all_workouts() if w.scheduled_date >= TODAY]
    assert future
    assert not any(touches(w.session_type, restricted) for w in future)
    assert updated.find_workout(past.id)[1].session_type == past.session_type
    assert [r.body_part for r in updated.restrictions] == ["shoulder"]

    records = _adaptations(uow_factory, plan.id)
    assert [r.trigger for r in records] == [AdaptationTrigger.INJURY]
    assert records[0].id == result.adaptation_id


def test_resolved_injury_lifts_restriction(service, strength_profile, uow_factory):
    """Reporting the injury as Resolved removes the plan restriction."""
    plan = service.generate_initial_plan(strength_profile, 8, seed=4, start_date=date(2025, 3, 10))
    service.adapt_for_injury("user-strength", InjuryLimitation(body_part="shoulder"))

    service.adapt_for_injury("user-strength", InjuryLimitation(body_part="Shoulder", status=InjuryStatus.RESOLVED))

    assert _load(uow_factory, plan.id).restrictions == []
    assert len(_adaptations(uow_factory, plan.id)) == 2


def test_harder_request_stays_under_injury_ceiling(service, profile, uow_factory):
    """A Harder request never lifts a restricted discipline above the injury ceiling."""
    plan = _plan_in_week(service, profile, 3)
    intervals = plan.weeks[4].workouts[0]
    assert intervals.intensity == IntensityLevel.MAXIMUM
    service.adapt_for_injury("user-1", InjuryLimitation(body_part="back"))
    capped = _load(uow_factory, plan.id)
    assert capped.find_workout(intervals.id)[1].intensity == IntensityLevel.MODERATE

    service.adapt_intensity("user-1", IntensityDirection.HARDER)

    updated = _load(uow_factory, plan.id)
    window = [w for w in updated.all_workouts() if TODAY <= w.scheduled_date < TODAY + timedelta(days=14)]
    assert window
    assert all(intensity_rank(w.intensity) <= intensity_rank(IntensityLevel.MODERATE) for w in window)
    assert updated.find_workout(intervals.id)[1].intensity == IntensityLevel.MODERATE
    assert updated.find_workout(plan.weeks[2].workouts[1].id)[1].intensity == IntensityLevel.MODERATE


def test_concurrent_injury_reports_are_serialized(service, active_plan, uow_factory):
    """Two concurrent injury reports never interleave: each success has its own version and record."""
    outcomes: list[AdaptationResult | Exception] = []
    barrier = threading.Barrier(2)

    def report(body_part: str) -> None:
        barrier.wait()
        try:
            outcomes.append(service.adapt_for_injury("user-1", InjuryLimitation(body_part=body_part)))
        except ConflictError as e:
            outcomes.append(e)

    threads = [threading.Thread(target=report, args=(part,)) for part in ("knee", "shoulder")]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert len(outcomes) == 2
    successes = [o for o in outcomes if isinstance(o, AdaptationResult)]
    assert successes
    assert sorted(r.plan_version for r in successes) == list(range(2, 2 + len(successes)))

    plan = _load(uow_factory, active_plan.id)
    assert plan.version == 1 + len(successes)
    assert len(_adaptations(uow_factory, active_plan.id)) == len(successes)
    assert len(plan.restrictions) == len(successes)


# -----------------------------
# ScheduleChange
# -----------------------------
def test_schedule_change_fits_future_weeks(service, active_plan, uow_factory):
    """Every future week ends up within the new bounds, on the new days only."""
    availability = ScheduleAvailability.from_weekdays([1, 3, 5, 6], minimum=2, maximum=3)

    service.adapt_for_schedule_change("user-1", availability)

    plan = _load(uow_factory, active_plan.id)
    future_weeks = [w for w in plan.weeks if w.start_date > TODAY]
    assert future_weeks
    for week in future_weeks:
        assert 2 <= len(week.workouts) <= 3
        assert all(w.scheduled_date.weekday() in {1, 3, 5, 6} for w in week.workouts)
        assert all(week.contains(w.scheduled_date) for w in week.workouts)

    records = _adaptations(uow_factory, active_plan.id)
    assert [r.trigger for r in records] == [AdaptationTrigger.SCHEDULE_CHANGE]


def test_schedule_change_adds_sessions_up_to_new_minimum(service, active_plan, uow_factory):
    """Raising the minimum adds generated sessions to future weeks."""
    availability = ScheduleAvailability.from_weekdays([0, 1, 2, 3, 4, 5], minimum=4, maximum=5)

    service.adapt_for_schedule_change("user-1", availability)

    plan = _load(uow_factory, active_plan.id)
    for week in (w for w in plan.weeks if w.start_date > TODAY):
        assert 4 <= len(week.workouts) <= 5


def test_schedule_change_moves_rest_of_current_week(service, active_plan, uow_factory):
    """In the in-progress week only today's and later sessions move, onto the new days left in it."""
    monday, wednesday, friday = active_plan.weeks[0].workouts
    availability = ScheduleAvailability.from_weekdays([1, 3, 5], minimum=2, maximum=3)

    service.adapt_for_schedule_change("user-1", availability)

    week = _load(uow_factory, active_plan.id).weeks[0]
    dates = {w.id: w.scheduled_date for w in week.workouts}
    assert set(dates) == {monday.id, wednesday.id, friday.id}
    assert dates[monday.id] == monday.scheduled_date
    assert dates[wednesday.id] == date(2025, 3, 13)
    assert dates[friday.id] == date(2025, 3, 15)


def test_schedule_change_rejects_invalid_availability(service, active_plan, uow_factory):
    """An inconsistent availability fails before anything changes."""
    with pytest.raises(ValidationError):
        service.adapt_for_schedule_change("user-1", ScheduleAvailability.from_weekdays([0], minimum=2, maximum=2))

    assert _load(uow_factory, active_plan.id).version == 1


# -----------------------------
# TimelineChange
# -----------------------------
def test_timeline_extension_rebuilds_remaining_weeks(service, active_plan, uow_factory):
    """Moving the target date two weeks out yields a valid 10-week plan."""
    new_target = active_plan.end_date + timedelta(days=14)

    service.adapt_for_timeline_change("user-1", new_target)

    plan = _load(uow_factory, active_plan.id)
    assert plan.total_weeks == 10
    assert [w.week_number for w in plan.weeks] == list(range(1, 11))
    assert plan.end_date == new_target
    assert plan.weeks[0].id == active_plan.weeks[0].id


def test_timeline_compression_shrinks_remaining_phases(service, active_plan, uow_factory):
    """Pulling the target date in a week keeps every phase and warns about the compression."""
    new_target = active_plan.end_date - timedelta(days=7)

    result = service.adapt_for_timeline_change("user-1", new_target)

    plan = _load(uow_factory, active_plan.id)
    assert plan.total_weeks == 7
    assert [w.week_number for w in plan.weeks] == list(range(1, 8))
    assert plan.end_date == new_target
    assert plan.weeks[0].id == active_plan.weeks[0].id
    assert [w.phase for w in plan.weeks] == list(PHASE_SEQUENCE[:1]) + list(PHASE_SEQUENCE)
    assert any("compressed" in warning for warning in result.warnings)
    records = _adaptations(uow_factory, active_plan.id)
    assert [r.trigger for r in records] == [AdaptationTrigger.TIMELINE_CHANGE]


def test_timeline_compression_below_minimums_is_infeasible(service, active_plan, uow_factory):
    """Compressing below the phase minimums raises and leaves the stored plan unchanged."""
    before = _load(uow_factory, active_plan.id)

    with pytest.raises(InfeasibleAdaptationError):
        service.adapt_for_timeline_change("user-1", date(2025, 3, 20))

    assert _load(uow_factory, active_plan.id) == before
    assert _adaptations(uow_factory, active_plan.id) == []


# -----------------------------
# UserRequest / PerceivedDifficulty
# -----------------------------
def test_intensity_shift_clamps_to_a_no_op(service, active_plan, uow_factory):
    """Once the window is at Low, another Easier request changes nothing but is still recorded."""
    service.adapt_intensity("user-1", IntensityDirection.EASIER)
    snapshot = [w.intensity for w in _load(uow_factory, active_plan.id).all_workouts()]

    result = service.adapt_intensity("user-1", IntensityDirection.EASIER)

    assert result.success
    assert [w.intensity for w in _load(uow_factory, active_plan.id).all_workouts()] == snapshot
    records = _adaptations(uow_factory, active_plan.id)
    assert len(records) == 2
    assert records[-1].description.startswith("No change")
    assert all(r.adaptation_type == AdaptationType.INTENSITY for r in records)


def test_frequent_adaptations_warn(service, active_plan):
    """A second adaptation within the configured gap succeeds with a warning."""
    service.adapt_intensity("user-1", IntensityDirection.EASIER)

    result = service.adapt_intensity("user-1", IntensityDirection.HARDER)

    assert any("already adapted" in warning for warning in result.warnings)


def test_perceived_difficulty_from_feedback(service, active_plan, uow_factory):
    """'Too easy' feedback is recorded as a PerceivedDifficulty adaptation."""
    service.adapt_for_perceived_difficulty("user-1", feedback="Honestly this week felt too easy")

    records = _adaptations(uow_factory, active_plan.id)
    assert [r.trigger for r in records] == [AdaptationTrigger.PERCEIVED_DIFFICULTY]


def test_perceived_difficulty_needs_input(service, active_plan):
    """Neither direction nor feedback is malformed input."""
    with pytest.raises(ValidationError):
        service.adapt_for_perceived_difficulty("user-1")


# -----------------------------
# Optimistic concurrency
# -----------------------------
class _FlakyPlans:
    def __init__(self, inner, failures):
        self.inner = inner
        self.failures = failures

    def __getattr__(self, name):
        return getattr(self.inner, name)

    def update_plan(self, plan, expected_version):
        if self.failures["left"] > 0:
            self.failures["left"] -= 1
            raise ConflictError(plan.id, expected_version)
        return self.inner.update_plan(plan, expected_version)


class _FlakyUnitOfWork(SqlUnitOfWork):
    def __init__(self, session_factory, failures):
        super().__init__(session_factory)
        self.failures = failures

    def __enter__(self):
        super().__enter__()
        self.plans = _FlakyPlans(self.plans, self.failures)
        return self


def _flaky_engine(session_factory, failures):
    return AdaptationEngine(
        lambda: _FlakyUnitOfWork(session_factory, failures),
        EngineConfig(),
        today=lambda: TODAY,
        now=lambda: NOW,
    )


def test_conflict_is_retried_once(session_factory, active_plan, uow_factory):
    """A single version conflict is retried and the adaptation succeeds."""
    failures = {"left": 1}
    engine = _flaky_engine(session_factory, failures)

    result = engine.adapt("user-1", UserRequestTrigger(direction=IntensityDirection.EASIER))

    assert result.success
    assert failures["left"] == 0
    assert len(_adaptations(uow_factory, active_plan.id)) == 1


def test_repeated_conflict_is_surfaced(session_factory, active_plan, uow_factory):
    """A conflict on the retry too surfaces ConflictError and writes nothing."""
    engine = _flaky_engine(session_factory, {"left": 2})

    with pytest.raises(ConflictError):
        engine.adapt("user-1", UserRequestTrigger(direction=IntensityDirection.EASIER))

    assert _load(uow_factory, active_plan.id).version == 1
    assert _adaptations(uow_factory, active_plan.id) == []

"""Root conftest for all tests.

Shared fixtures: a temporary-file SQLite database, unit-of-work factory,
profile builders, a fixed clock and fake completion services.
"""

import threading
from datetime import date, datetime, timezone
from functools import partial

import pytest
from sqlalchemy.orm import Session, sessionmaker

from adaptive_training.coach.classifier import IntentClassifier
from adaptive_training.coach.intents import ChatMessage
from adaptive_training.coach.llm_client import CompletionResult
from adaptive_training.config.settings import EngineConfig, LLMConfig
from adaptive_training.db.gateway import SqlUnitOfWork
from adaptive_training.db.session import init_db, make_engine, make_session_factory
from adaptive_training.plans.types import (
    FitnessLevel,
    GoalType,
    ScheduleAvailability,
    TrainingGoal,
    UserProfile,
)
from adaptive_training.service import TrainingPlanService

# Wednesday; plans in tests start on the Monday of this week
TODAY = date(2025, 3, 12)
PLAN_START = date(2025, 3, 10)
NOW = datetime(2025, 3, 12, 9, 0, tzinfo=timezone.utc)


def make_profile(
    user_id: str = "user-1",
    *,
    weekdays: tuple[int, ...] = (0, 2, 4),
    minimum: int = 2,
    maximum: int = 3,
    goals: list[TrainingGoal] | None = None,
) -> UserProfile:
    """Profile with the given training days (Monday == 0)."""
    return UserProfile(
        user_id=user_id,
        name="Test Athlete",
        hyrox_level=FitnessLevel.INTERMEDIATE,
        running_level=FitnessLevel.INTERMEDIATE,
        strength_level=FitnessLevel.BEGINNER,
        schedule=ScheduleAvailability.from_weekdays(list(weekdays), minimum=minimum, maximum=maximum),
        goals=goals or [],
    )


class FakeCompletionService:
    """Returns scripted responses in order; an Exception entry is raised instead."""

    def __init__(self, responses: list[str | Exception]):
        self.responses = list(responses)
        self.calls: list[tuple[str, str, list[ChatMessage]]] = []

    def complete(self, system_prompt: str, user_message: str, history: list[ChatMessage]) -> CompletionResult:
        self.calls.append((system_prompt, user_message, history))
        response = self.responses.pop(0) if self.responses else TimeoutError("no scripted response left")
        if isinstance(response, Exception):
            raise response
        return CompletionResult(text=response, prompt_tokens=120, completion_tokens=30)


class BlockingCompletionService:
    """Blocks until released, to exercise the per-attempt timeout."""

    def __init__(self):
        self.release = threading.Event()
        self.calls = 0

    def complete(self, system_prompt: str, user_message: str, history: list[ChatMessage]) -> CompletionResult:
        self.calls += 1
        self.release.wait(timeout=5)
        return CompletionResult(text='{"intent": "GeneralQuestion", "slots": {}, "reply": "late"}')


class RecordingSleep:
    """Fake sleep that records delays and advances a fake clock."""

    def __init__(self):
        self.delays: list[float] = []
        self.now = 0.0

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        self.now += seconds

    def clock(self) -> float:
        return self.now


@pytest.fixture
def engine_config() -> EngineConfig:
    return EngineConfig()


@pytest.fixture
def llm_config() -> LLMConfig:
    return LLMConfig(enabled=True, max_retries=3, backoff_base_seconds=1.0, timeout_seconds=5.0, history_limit=4)


@pytest.fixture
def fake_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def session_factory(tmp_path) -> sessionmaker[Session]:
    """Session factory bound to a fresh SQLite file."""
    engine = make_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def uow_factory(session_factory):
    return partial(SqlUnitOfWork, session_factory)


@pytest.fixture
def service(uow_factory, engine_config, llm_config) -> TrainingPlanService:
    """Service with a fixed clock and the completion service disabled."""
    classifier = IntentClassifier(None, llm_config.model_copy(update={"enabled": False}))
    return TrainingPlanService(uow_factory, engine_config, classifier, today=lambda: TODAY, now=lambda: NOW)


@pytest.fixture
def profile() -> UserProfile:
    return make_profile()


@pytest.fixture
def strength_profile() -> UserProfile:
    return make_profile(
        "user-strength",
        goals=[TrainingGoal(goal_type=GoalType.STRENGTH_MILESTONE, description="Deadlift 200kg", priority=1)],
    )


@pytest.fixture
def active_plan(service, profile):
    """8-week plan on Mon/Wed/Fri starting the Monday of the current week."""
    return service.generate_initial_plan(profile, 8, seed=42, start_date=PLAN_START)

"""Shared test fixtures for the momentum test suite."""

import threading
import pytest
import fakeredis
from datetime import datetime, timedelta, timezone

from momentum.config.stages import SpecialRequirement
from momentum.engine.progression import StageProgressionEngine
from momentum.models.task import ContentSource, Goal, StageContent, Task, TaskStatus
from momentum.services.journey_store import JourneyStore
from momentum.services.requirements import RequirementRegistry


# ── Redis ────────────────────────────────────────────────────────────────

@pytest.fixture
def r():
    """Fresh fakeredis instance per test (decode_responses=True like production)."""
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def store(r):
    return JourneyStore(r)


# ── Time Freezing ───────────────────────────────────────────────────────

class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def frozen_now():
    """Default: 2026-02-15T12:00:00Z (noon UTC on a Sunday)."""
    return datetime(2026, 2, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(frozen_now):
    return FakeClock(frozen_now)


# ── Requirement Checkers ────────────────────────────────────────────────

@pytest.fixture
def requirement_flags():
    """Per-requirement answers for the registry; flip entries inside a test."""
    return {req: True for req in SpecialRequirement}


@pytest.fixture
def registry(requirement_flags):
    return RequirementRegistry({
        req: (lambda user_id, req=req: requirement_flags[req])
        for req in SpecialRequirement
    })


# ── Content Generators ──────────────────────────────────────────────────

class StubGenerator:
    """Returns a well-formed payload sized to the requested stage."""

    def __init__(self):
        self.calls = []

    def generate_stage_goals(self, stage, user_profile, adaptation_context):
        self.calls.append((stage.id, dict(adaptation_context)))
        count = adaptation_context.get("goal_count", stage.goal_count)
        return {
            "goals": [
                {
                    "title": f"Generated goal {i + 1}",
                    "tasks": [
                        {"name": f"Generated task {i + 1}.{j + 1}", "estimatedMinutes": 20}
                        for j in range(stage.tasks_per_goal)
                    ],
                }
                for i in range(count)
            ]
        }


class HangingGenerator:
    """Blocks until released, simulating an unresponsive service."""

    def __init__(self):
        self.release = threading.Event()

    def generate_stage_goals(self, stage, user_profile, adaptation_context):
        self.release.wait(5)
        return {"goals": []}


class FailingGenerator:
    def __init__(self, exc):
        self.exc = exc

    def generate_stage_goals(self, stage, user_profile, adaptation_context):
        raise self.exc


@pytest.fixture
def stub_generator():
    return StubGenerator()


@pytest.fixture
def hanging_generator():
    gen = HangingGenerator()
    yield gen
    gen.release.set()


@pytest.fixture
def failing_generator():
    """Factory: ``failing_generator(exc)`` raises ``exc`` on every call."""
    return FailingGenerator


# ── Engine ──────────────────────────────────────────────────────────────

@pytest.fixture
def make_engine(store, registry, clock):
    """Factory for a progression engine wired to fakeredis and the fake clock."""

    def _factory(**overrides):
        kwargs = {
            "store": store,
            "content_generator": None,
            "requirements": registry,
            "clock": clock,
            "generation_timeout": 1.0,
        }
        kwargs.update(overrides)
        return StageProgressionEngine(**kwargs)

    return _factory


@pytest.fixture
def engine(make_engine):
    return make_engine()


# ── Content Factories ───────────────────────────────────────────────────

@pytest.fixture
def make_content():
    """Factory for StageContent with ``goals`` x ``tasks`` pending tasks.

    Usage:
        content = make_content(goals=3, tasks=3, statuses=["completed"] * 4)
    """

    def _factory(stage=1, goals=3, tasks=3, statuses=None, scheduled_date="2026-02-15",
                 description="Do the thing. Then write about it afterwards."):
        statuses = list(statuses or [])
        built = []
        n = 0
        for i in range(1, goals + 1):
            goal_id = f"stage{stage}_goal_{i}"
            goal_tasks = []
            for j in range(1, tasks + 1):
                status = statuses[n] if n < len(statuses) else TaskStatus.PENDING
                goal_tasks.append(Task(
                    id=f"{goal_id}_task_{j}",
                    title=f"Task {i}.{j}",
                    description=description,
                    status=status,
                    scheduled_date=scheduled_date,
                ))
                n += 1
            built.append(Goal(id=goal_id, title=f"Goal {i}", tasks=goal_tasks))
        return StageContent(stage=stage, goals=built, source=ContentSource.FALLBACK)

    return _factory

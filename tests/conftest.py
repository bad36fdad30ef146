from __future__ import annotations

import pytest

from breezeflow.engine import ExecutionEngine
from breezeflow.persistence import InMemoryExecutionStore
from fakes import FakeClock, RecordingDispatcher, ScriptedAI, fast_config


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryExecutionStore:
    return InMemoryExecutionStore()


@pytest.fixture
def ai() -> ScriptedAI:
    return ScriptedAI()


@pytest.fixture
def actions() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def engine(store, ai, actions, clock) -> ExecutionEngine:
    return ExecutionEngine(
        store=store,
        ai=ai,
        actions=actions,
        config=fast_config(),
        clock=clock,
        worker_id="worker-a",
    )

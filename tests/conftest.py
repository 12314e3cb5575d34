"""Shared fixtures for the background-agents test suite."""

from __future__ import annotations

from typing import Any

import pytest

from background_agents.agents.base import AgentContext
from background_agents.agents.registry import AgentRegistry
from background_agents.agents.sources import StaticTypeSource
from background_agents.core.clock import SimClock
from background_agents.core.config import RetryConfig
from background_agents.storage.config_store import InMemoryConfigStore


# ---------------------------------------------------------------------------
# Agent bodies
# ---------------------------------------------------------------------------

class RecordingBody:
    """Counts runs and lifecycle hook calls."""

    def __init__(self, ctx: AgentContext | None = None) -> None:
        self.ctx = ctx
        self.runs = 0
        self.started = 0
        self.stopped = 0

    async def on_start(self) -> None:
        self.started += 1

    async def on_stop(self) -> None:
        self.stopped += 1

    async def run(self) -> None:
        self.runs += 1

    def get_status(self) -> dict[str, Any]:
        return {"runs_seen": self.runs}


class FailingBody:
    """Raises on every run."""

    def __init__(self, ctx: AgentContext | None = None) -> None:
        self.ctx = ctx
        self.attempts = 0

    async def run(self) -> None:
        self.attempts += 1
        raise RuntimeError("boom")


# ---------------------------------------------------------------------------
# Registry fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def sim_clock() -> SimClock:
    return SimClock()


@pytest.fixture
def memory_store() -> InMemoryConfigStore:
    return InMemoryConfigStore()


@pytest.fixture
def static_source() -> StaticTypeSource:
    """Two well-formed agent types: ``recorder`` and ``failing``."""
    source = StaticTypeSource()
    source.register(
        "recorder",
        RecordingBody,
        {"description": "Records runs", "category": "testing"},
    )
    source.register("failing", FailingBody, {"category": "chaos"})
    return source


@pytest.fixture
def registry(
    static_source: StaticTypeSource, memory_store: InMemoryConfigStore
) -> AgentRegistry:
    return AgentRegistry(
        [static_source],
        memory_store,
        retry=RetryConfig(max_attempts=2, base_delay=0.0),
    )

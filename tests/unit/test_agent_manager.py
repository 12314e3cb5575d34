"""Tests for AgentManager orchestration."""

from __future__ import annotations

import logging

import pytest

from background_agents.agents.manager import AgentManager
from background_agents.agents.registry import AgentRegistry
from background_agents.agents.sources import StaticTypeSource
from background_agents.core.enums import AgentState
from background_agents.core.errors import AgentExecutionError, AgentNotFoundError
from background_agents.storage.config_store import InMemoryConfigStore


# ---------------------------------------------------------------------------
# Test helpers
# ---------------------------------------------------------------------------


class QuietBody:
    def __init__(self, ctx) -> None:
        self.ctx = ctx
        self.runs = 0

    async def run(self) -> None:
        self.runs += 1


class BoomBody(QuietBody):
    async def run(self) -> None:
        self.runs += 1
        raise RuntimeError("boom")


class StopFailsBody(QuietBody):
    async def on_stop(self) -> None:
        raise RuntimeError("cannot stop")


def _bad_factory(ctx):
    raise RuntimeError("factory exploded")


async def _manager(*entries, store=None) -> AgentManager:
    source = StaticTypeSource()
    for name, factory, *meta in entries:
        source.register(name, factory, meta[0] if meta else None)
    manager = AgentManager(AgentRegistry([source], store or InMemoryConfigStore()))
    await manager.initialize()
    return manager


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


class TestLoadAgents:
    @pytest.mark.asyncio
    async def test_initialize_marks_running(self):
        manager = await _manager(("a", QuietBody))
        assert manager.is_running
        assert [d.name for d in manager.get_available_agents()] == ["a"]

    @pytest.mark.asyncio
    async def test_loads_and_starts_enabled_agents(self):
        store = InMemoryConfigStore({"b": {"enabled": False}})
        manager = await _manager(("a", QuietBody), ("b", QuietBody), store=store)

        await manager.load_agents()

        assert list(manager.agents) == ["a"]
        assert manager.agents["a"].state == AgentState.RUNNING
        assert manager.agents["a"].body.runs == 1
        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_one_failure_does_not_block_others(self, caplog):
        manager = await _manager(
            ("a", QuietBody), ("bad", _bad_factory), ("c", QuietBody)
        )

        with caplog.at_level(logging.ERROR):
            await manager.load_agents()

        assert list(manager.agents) == ["a", "c"]
        assert "Failed to load agent bad" in caplog.text
        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_load_twice_does_not_duplicate(self):
        manager = await _manager(("a", QuietBody, {"schedule": "*/5 * * * *"}))
        await manager.load_agents()
        first = manager.agents["a"]

        await manager.load_agents()

        assert manager.agents["a"] is first
        await manager.shutdown()


# ---------------------------------------------------------------------------
# Per-agent operations
# ---------------------------------------------------------------------------


class TestAgentOperations:
    @pytest.mark.asyncio
    async def test_stop_and_start_agent(self):
        manager = await _manager(("a", QuietBody, {"schedule": "*/5 * * * *"}))
        await manager.load_agents()

        await manager.stop_agent("a")
        assert manager.agents["a"].state == AgentState.STOPPED

        await manager.start_agent("a")
        assert manager.agents["a"].state == AgentState.RUNNING
        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_unknown_start_stop_are_noops(self, caplog):
        manager = await _manager(("a", QuietBody))
        with caplog.at_level(logging.WARNING):
            await manager.start_agent("ghost")
            await manager.stop_agent("ghost")
        assert caplog.text.count("unknown agent ghost") == 2

    @pytest.mark.asyncio
    async def test_run_agent_now(self):
        manager = await _manager(("a", QuietBody, {"schedule": "*/5 * * * *"}))
        await manager.load_agents()

        await manager.run_agent_now("a")

        assert manager.agents["a"].body.runs == 1
        assert manager.get_agent_status("a")["run_count"] == 1
        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_run_agent_now_propagates_body_error(self):
        manager = await _manager(("boom", BoomBody, {"schedule": "*/5 * * * *"}))
        await manager.load_agents()

        with pytest.raises(AgentExecutionError, match="boom") as exc_info:
            await manager.run_agent_now("boom")

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert exc_info.value.agent_id == "boom"
        assert manager.get_agent_status("boom")["error_count"] == 1
        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_run_agent_now_unknown(self):
        manager = await _manager(("a", QuietBody))
        with pytest.raises(AgentNotFoundError):
            await manager.run_agent_now("ghost")


# ---------------------------------------------------------------------------
# Configuration delegation
# ---------------------------------------------------------------------------


class TestConfiguration:
    @pytest.mark.asyncio
    async def test_disable_does_not_restart_running_instance(self):
        store = InMemoryConfigStore()
        manager = await _manager(("a", QuietBody, {"schedule": "*/5 * * * *"}), store=store)
        await manager.load_agents()
        instance = manager.agents["a"]

        await manager.disable_agent("a")

        assert manager.agents["a"] is instance
        assert instance.state == AgentState.RUNNING
        assert (await store.load())["a"] == {"enabled": False}
        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_enable_and_update(self):
        store = InMemoryConfigStore()
        manager = await _manager(("a", QuietBody), store=store)

        await manager.enable_agent("a")
        await manager.update_agent_config("a", {"threshold": 3})
        await manager.update_agent_schedule("a", "0 * * * *")

        assert (await store.load())["a"] == {
            "enabled": True,
            "threshold": 3,
            "schedule": "0 * * * *",
        }
        assert manager.get_agent_info("a").persisted_config["threshold"] == 3
        assert manager.get_agent_registry_status()["a"]["status"] == "configured"

    @pytest.mark.asyncio
    async def test_update_unknown_agent_raises(self):
        manager = await _manager(("a", QuietBody))
        with pytest.raises(AgentNotFoundError):
            await manager.update_agent_config("ghost", {"x": 1})


# ---------------------------------------------------------------------------
# Shutdown & status
# ---------------------------------------------------------------------------


class TestShutdown:
    @pytest.mark.asyncio
    async def test_shutdown_clears_everything(self):
        manager = await _manager(
            ("a", QuietBody, {"schedule": "*/5 * * * *"}), ("b", QuietBody)
        )
        await manager.load_agents()
        instances = list(manager.agents.values())

        await manager.shutdown()

        assert manager.get_all_agent_statuses() == {}
        assert not manager.is_running
        assert all(i.state == AgentState.STOPPED for i in instances)
        assert not instances[0].has_trigger

    @pytest.mark.asyncio
    async def test_shutdown_twice(self):
        manager = await _manager(("a", QuietBody))
        await manager.load_agents()
        await manager.shutdown()
        await manager.shutdown()  # Should not raise
        assert manager.get_all_agent_statuses() == {}

    @pytest.mark.asyncio
    async def test_stop_failure_does_not_block_others(self, caplog):
        manager = await _manager(("bad", StopFailsBody), ("good", QuietBody))
        await manager.load_agents()
        good = manager.agents["good"]

        with caplog.at_level(logging.ERROR):
            await manager.shutdown()

        assert good.state == AgentState.STOPPED
        assert "Error stopping agent bad" in caplog.text
        assert manager.agents == {}

    @pytest.mark.asyncio
    async def test_statuses(self):
        manager = await _manager(("a", QuietBody), ("b", BoomBody))
        await manager.load_agents()

        statuses = manager.get_all_agent_statuses()
        assert set(statuses) == {"a", "b"}
        assert statuses["a"]["run_count"] == 1
        assert statuses["b"]["error_count"] == 1
        assert manager.get_agent_status("ghost") is None
        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_health_check_all(self):
        manager = await _manager(("a", QuietBody), ("b", BoomBody))
        await manager.load_agents()
        await manager.stop_agent("b")

        reports = manager.health_check_all()

        assert reports["a"].healthy
        assert not reports["b"].healthy
        assert not manager.all_healthy()
        await manager.shutdown()

"""Tests for structured logging setup and application wiring."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import pytest
import structlog

from background_agents.agents.base import AgentInstance
from background_agents.agents.sources import EntryPointTypeSource, PackageTypeSource, StaticTypeSource
from background_agents.core.config import DiscoveryConfig, Settings, StoreConfig
from background_agents.main import build_manager, build_sources, run
from background_agents.observability.logger import (
    agent_logger,
    get_trace_id,
    new_trace_id,
    setup_logging,
)
from background_agents.storage.config_store import JsonFileConfigStore


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    structlog.reset_defaults()


class TestTraceId:
    def test_new_trace_id_becomes_current(self):
        tid = new_trace_id()
        assert get_trace_id() == tid
        assert new_trace_id() != tid

    @pytest.mark.asyncio
    async def test_each_execution_gets_its_own_trace(self):
        seen: list[str | None] = []

        class Body:
            async def run(self):
                seen.append(get_trace_id())

        agent = AgentInstance(agent_id="t-1", type_name="t", body=Body())
        await agent.run_now()
        await agent.run_now()

        assert len(set(seen)) == 2
        assert None not in seen


class TestSetupLogging:
    def test_json_output_includes_agent_fields(self, caplog):
        setup_logging(level="DEBUG", format="json")

        tid = new_trace_id()
        with caplog.at_level(logging.INFO):
            agent_logger("api-monitor-1", "api-monitor").info("poll complete", endpoints=3)

        entry = json.loads(caplog.records[-1].getMessage())
        assert entry["event"] == "poll complete"
        assert entry["agent_id"] == "api-monitor-1"
        assert entry["agent_type"] == "api-monitor"
        assert entry["endpoints"] == 3
        assert entry["trace_id"] == tid

    def test_console_format(self):
        setup_logging(level="WARNING", format="console")
        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)


class TestBuildSources:
    def test_packages_then_entry_points(self):
        settings = Settings(discovery=DiscoveryConfig(packages=["acme.a", "acme.b"]))
        sources = build_sources(settings)
        assert [type(s) for s in sources] == [
            PackageTypeSource,
            PackageTypeSource,
            EntryPointTypeSource,
        ]
        assert sources[1].label == "package:acme.b"

    def test_entry_points_disabled(self):
        settings = Settings(discovery=DiscoveryConfig(use_entry_points=False))
        assert build_sources(settings) == []


class TestBuildManager:
    @pytest.mark.asyncio
    async def test_uses_json_store_and_retry_settings(self, tmp_path: Path):
        settings = Settings(
            store=StoreConfig(path=str(tmp_path / "agents.json")),
            retry={"max_attempts": 5, "base_delay": 0.5},
        )

        class Body:
            def __init__(self, ctx):
                self.ctx = ctx

            async def run(self):
                pass

        source = StaticTypeSource()
        source.register("pinger", Body, {"schedule": 60})
        manager = build_manager(settings, sources=[source])

        assert isinstance(manager.registry.store, JsonFileConfigStore)
        await manager.initialize()
        await manager.enable_agent("pinger")
        assert json.loads((tmp_path / "agents.json").read_text()) == {
            "pinger": {"enabled": True}
        }

        instance = manager.registry.create_instance("pinger")
        assert instance.body.ctx.max_attempts == 5
        assert instance.body.ctx.base_delay == 0.5


class TestRun:
    @pytest.mark.asyncio
    async def test_run_until_stop_event(self, tmp_path: Path):
        stop = asyncio.Event()
        stop.set()

        await run(
            overrides={
                "store": {"path": str(tmp_path / "agents.json")},
                "discovery": {"use_entry_points": False},
                "observability": {"log_format": "json"},
            },
            stop_event=stop,
        )

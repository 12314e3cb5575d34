"""Agent manager: top-level orchestration of running agent instances.

The manager is the single source of truth for what is currently running.
It:

1. Initializes the ``AgentRegistry`` (discovery + configuration)
2. Creates and starts an instance for every enabled agent type
3. Routes start/stop/run-now requests to individual instances
4. Stops everything on shutdown

Batch operations (``load_agents``, ``shutdown``) isolate failures per
agent. Operations addressed to one named agent raise typed errors.
"""

from __future__ import annotations

import logging
from typing import Any

from background_agents.agents.base import AgentInstance
from background_agents.agents.registry import AgentRegistry
from background_agents.core.errors import AgentExecutionError, AgentNotFoundError
from background_agents.core.models import AgentHealthReport, AgentTypeDescriptor

logger = logging.getLogger(__name__)


class AgentManager:
    """Owns the live agent instances.

    Usage::

        manager = AgentManager(registry)
        await manager.initialize()
        await manager.load_agents()
        # ... agents run on their schedules ...
        await manager.shutdown()
    """

    def __init__(self, registry: AgentRegistry) -> None:
        self._registry = registry
        self._agents: dict[str, AgentInstance] = {}
        self._running = False

    @property
    def registry(self) -> AgentRegistry:
        return self._registry

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def agents(self) -> dict[str, AgentInstance]:
        """All tracked instances (read-only view)."""
        return dict(self._agents)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        logger.info("Initializing agent manager...")
        await self._registry.initialize()
        self._running = True

    async def load_agents(self) -> None:
        """Create and start an instance of every enabled agent type."""
        logger.info("Loading agents...")
        for descriptor in self._registry.get_enabled_agents():
            if descriptor.name in self._agents:
                logger.warning("Agent %s is already loaded", descriptor.name)
                continue
            try:
                agent = self._registry.create_instance(descriptor.name)
                self._agents[descriptor.name] = agent
                await agent.start()
                logger.info("Loaded and started agent: %s", descriptor.name)
            except Exception:
                logger.exception("Failed to load agent %s", descriptor.name)

    async def start_agent(self, agent_id: str) -> None:
        agent = self._agents.get(agent_id)
        if agent is None:
            logger.warning("Cannot start unknown agent %s", agent_id)
            return
        await agent.start()
        logger.info("Started agent: %s", agent_id)

    async def stop_agent(self, agent_id: str) -> None:
        agent = self._agents.get(agent_id)
        if agent is None:
            logger.warning("Cannot stop unknown agent %s", agent_id)
            return
        await agent.stop()
        logger.info("Stopped agent: %s", agent_id)

    async def run_agent_now(self, agent_id: str) -> None:
        """Execute an agent immediately, outside its schedule.

        Raises ``AgentNotFoundError`` for unknown ids and
        ``AgentExecutionError`` (chained to the body's exception) when the
        run fails.
        """
        agent = self._agents.get(agent_id)
        if agent is None:
            raise AgentNotFoundError(agent_id)

        logger.info("Running agent %s immediately...", agent_id)
        try:
            await agent.run_now()
        except Exception as exc:
            raise AgentExecutionError(agent_id, str(exc)) from exc
        logger.info("Agent %s executed successfully", agent_id)

    async def shutdown(self) -> None:
        """Stop every instance, then forget them. Safe to call twice."""
        logger.info("Shutting down %d agents...", len(self._agents))
        for agent_id, agent in list(self._agents.items()):
            if not agent.is_running:
                continue
            try:
                await agent.stop()
                logger.info("Stopped agent: %s", agent_id)
            except Exception:
                logger.exception("Error stopping agent %s", agent_id)

        self._agents.clear()
        self._running = False

    # ------------------------------------------------------------------
    # Configuration (takes effect on the next explicit start)
    # ------------------------------------------------------------------

    async def enable_agent(self, name: str) -> None:
        await self._registry.enable_agent(name)
        logger.info("Enabled agent: %s", name)

    async def disable_agent(self, name: str) -> None:
        await self._registry.disable_agent(name)
        logger.info("Disabled agent: %s", name)

    async def update_agent_config(self, name: str, config: dict[str, Any]) -> None:
        await self._registry.update_configuration(name, config)
        logger.info("Updated configuration for agent: %s", name)

    async def update_agent_schedule(self, name: str, schedule: str | float | None) -> None:
        await self._registry.update_agent_schedule(name, schedule)
        logger.info("Updated schedule for agent: %s", name)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def get_agent_status(self, agent_id: str) -> dict[str, Any] | None:
        agent = self._agents.get(agent_id)
        return agent.get_status() if agent is not None else None

    def get_all_agent_statuses(self) -> dict[str, dict[str, Any]]:
        return {
            agent_id: agent.get_status()
            for agent_id, agent in self._agents.items()
        }

    def health_check_all(self) -> dict[str, AgentHealthReport]:
        """Run health checks on all tracked instances."""
        results: dict[str, AgentHealthReport] = {}
        for agent_id, agent in self._agents.items():
            try:
                results[agent_id] = agent.health_check()
            except Exception as exc:
                results[agent_id] = AgentHealthReport(
                    healthy=False,
                    message=f"Health check failed: {exc}",
                )
        return results

    def all_healthy(self) -> bool:
        """Return True if all agents report healthy."""
        return all(r.healthy for r in self.health_check_all().values())

    # ------------------------------------------------------------------
    # Registry views
    # ------------------------------------------------------------------

    def get_available_agents(self) -> list[AgentTypeDescriptor]:
        return self._registry.get_all_agents()

    def get_agent_info(self, name: str) -> AgentTypeDescriptor | None:
        return self._registry.get_agent(name)

    def get_agent_registry_status(self) -> dict[str, dict[str, Any]]:
        return self._registry.get_all_statuses()

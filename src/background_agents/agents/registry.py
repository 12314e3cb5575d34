"""Agent registry: catalog of agent types and their persisted configuration.

The AgentRegistry discovers agent types from pluggable sources, attaches
the configuration saved in the configuration store, and builds
``AgentInstance`` objects on demand.

Discovery is total and isolated: every pass rebuilds the catalog from
scratch, and a type that fails to resolve is logged and skipped without
affecting the others. If two candidates resolve to the same name, the
later one replaces the earlier one (a warning is logged).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from background_agents.agents.base import AgentContext, AgentInstance
from background_agents.core.clock import IClock, WallClock
from background_agents.core.config import RetryConfig
from background_agents.core.errors import AgentNotFoundError, ConfigurationError
from background_agents.core.ids import instance_id as make_instance_id
from background_agents.core.interfaces import IAgentTypeSource, IConfigStore
from background_agents.core.models import AgentTypeDescriptor, DescriptorStatusReport
from background_agents.observability.logger import agent_logger

logger = logging.getLogger(__name__)

# Persisted keys that steer the engine rather than the agent body
_BOOKKEEPING_KEYS = frozenset({"enabled"})


class AgentRegistry:
    """Discovers agent types and manages their configuration.

    Usage::

        registry = AgentRegistry([PackageTypeSource("my_agents")], store)
        await registry.initialize()
        instance = registry.create_instance("api-monitor", {"timeout": 5})
        await registry.disable_agent("api-monitor")
    """

    def __init__(
        self,
        sources: Iterable[IAgentTypeSource],
        store: IConfigStore,
        *,
        retry: RetryConfig | None = None,
        clock: IClock | None = None,
    ) -> None:
        self._sources = list(sources)
        self._store = store
        self._retry = retry or RetryConfig()
        self._clock = clock or WallClock()
        self._agents: dict[str, AgentTypeDescriptor] = {}

    @property
    def store(self) -> IConfigStore:
        return self._store

    # ------------------------------------------------------------------
    # Discovery & configuration loading
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        logger.info("Initializing agent registry...")
        self.discover()
        await self.load_configuration()
        logger.info("Discovered %d agents", len(self._agents))

    def discover(self) -> dict[str, AgentTypeDescriptor]:
        """Rebuild the catalog from every source."""
        catalog: dict[str, AgentTypeDescriptor] = {}

        for source in self._sources:
            try:
                candidates = list(source.candidates())
            except Exception:
                logger.exception("Failed to enumerate agent source %s", source.label)
                continue

            for candidate in candidates:
                try:
                    definition = source.resolve(candidate)
                except Exception:
                    logger.exception(
                        "Failed to load agent %s from %s", candidate, source.label
                    )
                    continue

                if definition.name in catalog:
                    logger.warning(
                        "Agent type %s redefined by %s; keeping the later definition",
                        definition.name,
                        source.label,
                    )
                catalog[definition.name] = AgentTypeDescriptor(
                    name=definition.name,
                    factory=definition.factory,
                    metadata=definition.metadata,
                    source=source.label,
                )
                logger.debug("Discovered agent: %s", definition.name)

        self._agents = catalog
        return dict(catalog)

    async def load_configuration(self) -> None:
        """Attach persisted configuration to matching catalog entries."""
        try:
            configs = await self._store.load()
        except ConfigurationError:
            logger.exception("Failed to load agent configurations")
            configs = {}

        for name, config in configs.items():
            descriptor = self._agents.get(name)
            if descriptor is not None:
                descriptor.attach_config(config)

    # ------------------------------------------------------------------
    # Catalog queries
    # ------------------------------------------------------------------

    def get_agent(self, name: str) -> AgentTypeDescriptor | None:
        return self._agents.get(name)

    def get_all_agents(self) -> list[AgentTypeDescriptor]:
        return list(self._agents.values())

    def get_agents_by_category(self, category: str) -> list[AgentTypeDescriptor]:
        return [
            d for d in self._agents.values() if d.metadata.category == category
        ]

    def get_enabled_agents(self) -> list[AgentTypeDescriptor]:
        """Descriptors not explicitly disabled in config or metadata."""
        return [d for d in self._agents.values() if d.enabled]

    # ------------------------------------------------------------------
    # Instantiation
    # ------------------------------------------------------------------

    def merged_config(
        self, name: str, override_config: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Schema defaults, overlaid by persisted config, overlaid by overrides."""
        descriptor = self._require(name)
        merged = {
            **descriptor.metadata.defaults(),
            **(descriptor.persisted_config or {}),
            **(override_config or {}),
        }
        for key in _BOOKKEEPING_KEYS:
            merged.pop(key, None)
        return merged

    def create_instance(
        self,
        name: str,
        override_config: dict[str, Any] | None = None,
        *,
        instance_id: str | None = None,
    ) -> AgentInstance:
        """Build a new, not yet started instance of agent type *name*.

        Raises ``AgentNotFoundError`` for unknown names and
        ``ConfigurationError`` for missing required options or an invalid
        schedule.
        """
        descriptor = self._require(name)
        config = self.merged_config(name, override_config)

        missing = descriptor.metadata.missing_required(config)
        if missing:
            raise ConfigurationError(
                f"Agent {name} is missing required options: {', '.join(missing)}"
            )

        agent_id = instance_id or make_instance_id(name, self._clock)
        schedule = config.get("schedule", descriptor.metadata.schedule)
        ctx = AgentContext(
            agent_id=agent_id,
            type_name=name,
            config=config,
            logger=agent_logger(agent_id, name),
            max_attempts=self._retry.max_attempts,
            base_delay=self._retry.base_delay,
            metadata=descriptor.metadata.model_dump(),
        )
        body = descriptor.factory(ctx)
        return AgentInstance(
            agent_id=agent_id,
            type_name=name,
            body=body,
            config=config,
            schedule=schedule,
            clock=self._clock,
        )

    # ------------------------------------------------------------------
    # Configuration updates
    # ------------------------------------------------------------------

    async def update_configuration(
        self, name: str, partial: dict[str, Any]
    ) -> dict[str, Any]:
        """Merge *partial* into the persisted config of *name* and save.

        The store rewrites the whole document. Returns the merged record.
        """
        descriptor = self._require(name)
        record = await self._store.update(name, dict(partial))
        descriptor.attach_config(record)
        return record

    async def enable_agent(self, name: str) -> None:
        await self.update_configuration(name, {"enabled": True})
        logger.info("Enabled agent: %s", name)

    async def disable_agent(self, name: str) -> None:
        await self.update_configuration(name, {"enabled": False})
        logger.info("Disabled agent: %s", name)

    async def update_agent_schedule(self, name: str, schedule: str | float | None) -> None:
        await self.update_configuration(name, {"schedule": schedule})
        logger.info("Updated schedule for agent %s: %s", name, schedule)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def get_status(self, name: str) -> dict[str, Any] | None:
        descriptor = self._agents.get(name)
        if descriptor is None:
            return None
        report = DescriptorStatusReport(
            name=descriptor.name,
            status=descriptor.status,
            source=descriptor.source,
            metadata=descriptor.metadata,
            config=(
                dict(descriptor.persisted_config)
                if descriptor.persisted_config is not None
                else None
            ),
            last_updated=self._clock.now(),
        )
        return report.model_dump(mode="json")

    def get_all_statuses(self) -> dict[str, dict[str, Any]]:
        return {name: self.get_status(name) for name in self._agents}

    def _require(self, name: str) -> AgentTypeDescriptor:
        descriptor = self._agents.get(name)
        if descriptor is None:
            raise AgentNotFoundError(name)
        return descriptor

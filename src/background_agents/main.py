"""Application bootstrap.

Wires settings, logging, type sources, the configuration store and the
agent manager, then keeps agents running until SIGINT/SIGTERM.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
from typing import Any

from .agents.manager import AgentManager
from .agents.registry import AgentRegistry
from .agents.sources import EntryPointTypeSource, PackageTypeSource
from .core.config import Settings, load_settings
from .core.interfaces import IAgentTypeSource
from .observability.logger import setup_logging
from .storage.config_store import JsonFileConfigStore

logger = logging.getLogger(__name__)


def build_sources(settings: Settings) -> list[IAgentTypeSource]:
    """Type sources in discovery order: packages first, then entry points."""
    discovery = settings.discovery
    sources: list[IAgentTypeSource] = [
        PackageTypeSource(package, suffix=discovery.module_suffix)
        for package in discovery.packages
    ]
    if discovery.use_entry_points:
        sources.append(EntryPointTypeSource(discovery.entry_point_group))
    return sources


def build_manager(
    settings: Settings,
    sources: list[IAgentTypeSource] | None = None,
) -> AgentManager:
    """Create a manager over the configured sources and store."""
    registry = AgentRegistry(
        sources if sources is not None else build_sources(settings),
        JsonFileConfigStore(settings.store.path),
        retry=settings.retry,
    )
    return AgentManager(registry)


async def run(
    config_path: str | None = None,
    overrides: dict[str, Any] | None = None,
    stop_event: asyncio.Event | None = None,
) -> None:
    """Main entry point. Load config, start agents, run until signalled."""

    # 1. Load settings
    settings = load_settings(config_path=config_path, overrides=overrides)

    # 2. Set up logging
    setup_logging(
        level=settings.observability.log_level,
        format=settings.observability.log_format,
    )
    logger.info(
        "Starting %s (environment=%s, store=%s)",
        settings.app_name,
        settings.environment,
        settings.store.path,
    )

    # 3. Build and start the manager
    manager = build_manager(settings)
    await manager.initialize()
    await manager.load_agents()
    logger.info("Started %d agents", len(manager.agents))

    # 4. Run until shutdown is requested
    stop_event = stop_event or asyncio.Event()

    def _signal_handler() -> None:
        logger.info("Received shutdown signal")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _signal_handler)

    try:
        await stop_event.wait()
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
        await manager.shutdown()
        logger.info("%s stopped", settings.app_name)


def main() -> None:
    """Console entry point. The config file path comes from the environment."""
    asyncio.run(run(config_path=os.environ.get("AGENTS_CONFIG_FILE")))


if __name__ == "__main__":
    main()

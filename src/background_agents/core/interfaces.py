"""Protocol interfaces for the agent runtime.

All module boundaries are defined here as Protocol classes.
Implementations can be swapped (file store / memory store, package scan /
static table) without changing callers.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Callable, Protocol, runtime_checkable

from .models import AgentTypeDefinition


# ---------------------------------------------------------------------------
# Agent body
# ---------------------------------------------------------------------------

@runtime_checkable
class IAgentBody(Protocol):
    """Business logic of one agent type.

    Only ``run`` is required. Bodies may also define any of the optional
    hooks, which the execution engine looks up by name:

    - ``async on_start()`` / ``async on_stop()``: lifecycle setup and cleanup
    - ``async handle_error(exc)``: replaces the default log-and-swallow
    - ``get_status() -> dict``: extra fields merged into the status report
    """

    async def run(self) -> None: ...


# Called with an ``AgentContext``; returns an ``IAgentBody``.
AgentFactory = Callable[[Any], IAgentBody]


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------

@runtime_checkable
class IAgentTypeSource(Protocol):
    """Enumerable supply of agent type definitions.

    Resolving one candidate may fail without affecting the others.
    """

    @property
    def label(self) -> str: ...

    def candidates(self) -> Iterable[Any]: ...

    def resolve(self, candidate: Any) -> AgentTypeDefinition: ...


# ---------------------------------------------------------------------------
# Configuration store
# ---------------------------------------------------------------------------

@runtime_checkable
class IConfigStore(Protocol):
    """Durable mapping of agent name -> persisted configuration.

    Every write replaces the whole document.
    """

    async def load(self) -> dict[str, dict[str, Any]]: ...

    async def save(self, configs: dict[str, dict[str, Any]]) -> None: ...

    async def update(
        self, name: str, partial: dict[str, Any]
    ) -> dict[str, Any]: ...

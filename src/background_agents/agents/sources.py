"""Agent type sources.

A source enumerates candidates and resolves each one into an
``AgentTypeDefinition``. Resolution failures are per candidate: the
registry logs them and moves on to the next candidate.

Three sources are provided:

- ``StaticTypeSource``: an explicit registration table
- ``PackageTypeSource``: modules named ``<name>_agent`` inside a package
- ``EntryPointTypeSource``: installed distributions advertising agent types
  under an entry point group
"""

from __future__ import annotations

import importlib
import pkgutil
from collections.abc import Iterable
from importlib.metadata import EntryPoint, entry_points
from types import ModuleType
from typing import Any, Callable

from pydantic import ValidationError

from background_agents.core.errors import DiscoveryError
from background_agents.core.models import AgentMetadata, AgentTypeDefinition


def build_definition(
    name: str,
    factory: Any,
    metadata: AgentMetadata | dict[str, Any] | None = None,
) -> AgentTypeDefinition:
    """Validate the parts of a type definition and assemble it.

    Metadata may name the agent; otherwise *name* is used. Without explicit
    metadata, a ``metadata`` attribute on the factory is used.
    """
    if not callable(factory):
        raise DiscoveryError(f"Agent type {name!r} has no callable factory")
    if metadata is None:
        metadata = getattr(factory, "metadata", None)
    try:
        if metadata is None:
            meta = AgentMetadata()
        elif isinstance(metadata, AgentMetadata):
            meta = metadata
        else:
            meta = AgentMetadata.model_validate(metadata)
    except ValidationError as exc:
        raise DiscoveryError(f"Invalid metadata for agent type {name!r}: {exc}") from exc

    resolved = meta.name or name
    if not resolved:
        raise DiscoveryError("Agent type definition has no name")
    if not meta.name:
        meta = meta.model_copy(update={"name": resolved})
    return AgentTypeDefinition(name=resolved, factory=factory, metadata=meta)


# ---------------------------------------------------------------------------
# Static registration table
# ---------------------------------------------------------------------------

class StaticTypeSource:
    """Agent types registered explicitly in code.

    Usage::

        source = StaticTypeSource()

        @source.agent("heartbeat", metadata={"category": "monitoring"})
        class Heartbeat:
            def __init__(self, ctx): ...
            async def run(self): ...
    """

    def __init__(self, label: str = "static") -> None:
        self._label = label
        self._entries: list[tuple[str, Any, Any]] = []

    @property
    def label(self) -> str:
        return self._label

    def register(
        self,
        name: str,
        factory: Any,
        metadata: AgentMetadata | dict[str, Any] | None = None,
    ) -> None:
        self._entries.append((name, factory, metadata))

    def agent(
        self,
        name: str,
        metadata: AgentMetadata | dict[str, Any] | None = None,
    ) -> Callable[[Any], Any]:
        """Decorator form of ``register``."""

        def decorator(factory: Any) -> Any:
            self.register(name, factory, metadata)
            return factory

        return decorator

    def candidates(self) -> Iterable[tuple[str, Any, Any]]:
        return list(self._entries)

    def resolve(self, candidate: tuple[str, Any, Any]) -> AgentTypeDefinition:
        name, factory, metadata = candidate
        return build_definition(name, factory, metadata)


# ---------------------------------------------------------------------------
# Package scan
# ---------------------------------------------------------------------------

class PackageTypeSource:
    """Agent types defined as modules of a Python package.

    Modules whose name ends with *suffix* are candidates. Each must expose
    a ``factory`` (or an ``Agent`` class) and may expose ``metadata``
    (dict or ``AgentMetadata``). The default agent name is the module
    stem with underscores turned into hyphens: ``api_monitor_agent``
    becomes ``api-monitor``.
    """

    def __init__(self, package: str, suffix: str = "_agent") -> None:
        self._package = package
        self._suffix = suffix

    @property
    def label(self) -> str:
        return f"package:{self._package}"

    def candidates(self) -> Iterable[str]:
        try:
            pkg = importlib.import_module(self._package)
        except ImportError as exc:
            raise DiscoveryError(f"Cannot import agent package {self._package!r}: {exc}") from exc
        path = getattr(pkg, "__path__", None)
        if path is None:
            raise DiscoveryError(f"{self._package!r} is a module, not a package")
        return sorted(
            f"{self._package}.{mod.name}"
            for mod in pkgutil.iter_modules(path)
            if mod.name.endswith(self._suffix) and not mod.ispkg
        )

    def resolve(self, candidate: str) -> AgentTypeDefinition:
        module = importlib.import_module(candidate)
        stem = candidate.rsplit(".", 1)[-1][: -len(self._suffix) or None]
        return _definition_from_module(module, stem.replace("_", "-"))


def _definition_from_module(module: ModuleType, default_name: str) -> AgentTypeDefinition:
    factory = getattr(module, "factory", None) or getattr(module, "Agent", None)
    if factory is None:
        raise DiscoveryError(
            f"Module {module.__name__} defines neither 'factory' nor 'Agent'"
        )
    return build_definition(default_name, factory, getattr(module, "metadata", None))


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

class EntryPointTypeSource:
    """Agent types advertised by installed distributions.

    In the distribution's ``pyproject.toml``::

        [project.entry-points."background_agents.agent_types"]
        api-monitor = "acme_agents.api_monitor"

    The entry point may load a module (resolved like a package module), an
    ``AgentTypeDefinition``, or a bare factory.
    """

    def __init__(self, group: str = "background_agents.agent_types") -> None:
        self._group = group

    @property
    def label(self) -> str:
        return f"entry-points:{self._group}"

    def candidates(self) -> Iterable[EntryPoint]:
        return list(entry_points(group=self._group))

    def resolve(self, candidate: EntryPoint) -> AgentTypeDefinition:
        loaded = candidate.load()
        if isinstance(loaded, AgentTypeDefinition):
            return loaded
        if isinstance(loaded, ModuleType):
            return _definition_from_module(loaded, candidate.name)
        return build_definition(candidate.name, loaded)

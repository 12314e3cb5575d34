"""Data models for agent types, catalog entries and status projections.

Declarative metadata and read-only reports are pydantic models. Mutable
runtime records (catalog descriptors) are dataclasses because they hold
factories and are edited in place by configuration updates.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from pydantic import BaseModel, Field

from .enums import AgentState, DescriptorStatus


class ConfigOption(BaseModel):
    """Declared configuration option of an agent type."""

    type: str = "string"
    default: Any = None
    required: bool = False
    description: str = ""


class AgentMetadata(BaseModel):
    """Static description of an agent type."""

    name: str = ""
    description: str = "No description available"
    version: str = "1.0.0"
    author: str = "Unknown"
    category: str = "general"
    dependencies: list[str] = Field(default_factory=list)
    configuration: dict[str, ConfigOption] = Field(default_factory=dict)
    schedule: str | float | None = None  # Default schedule expression
    enabled: bool = True

    def defaults(self) -> dict[str, Any]:
        """Declared option defaults, skipping options without one."""
        return {
            key: option.default
            for key, option in self.configuration.items()
            if option.default is not None
        }

    def missing_required(self, config: dict[str, Any]) -> list[str]:
        """Names of required options absent from *config*."""
        return [
            key
            for key, option in self.configuration.items()
            if option.required and config.get(key) is None
        ]


@dataclass(frozen=True)
class AgentTypeDefinition:
    """What a type source yields: a loadable agent type."""

    name: str
    factory: Callable[..., Any]
    metadata: AgentMetadata


@dataclass
class AgentTypeDescriptor:
    """Catalog entry for a discovered, not-yet-instantiated agent type."""

    name: str
    factory: Callable[..., Any]
    metadata: AgentMetadata
    source: str = ""
    persisted_config: dict[str, Any] | None = None
    status: DescriptorStatus = DescriptorStatus.DISCOVERED

    def attach_config(self, config: dict[str, Any]) -> None:
        self.persisted_config = dict(config)
        self.status = DescriptorStatus.CONFIGURED

    @property
    def enabled(self) -> bool:
        persisted = self.persisted_config or {}
        return persisted.get("enabled") is not False and self.metadata.enabled


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------

class AgentStatusReport(BaseModel):
    """Base status projection of one agent instance."""

    id: str
    type: str
    state: AgentState
    is_running: bool
    schedule: str | float | None = None
    last_run_at: datetime | None = None
    run_count: int = 0
    error_count: int = 0
    skipped_runs: int = 0
    last_error: str | None = None


class AgentHealthReport(BaseModel):
    """Health status report from an agent instance."""

    healthy: bool = True
    message: str = ""
    details: dict[str, Any] = Field(default_factory=dict)
    last_run_at: datetime | None = None
    error_count: int = 0


class DescriptorStatusReport(BaseModel):
    """Registry-side projection of a catalog entry and its configuration."""

    name: str
    status: DescriptorStatus
    source: str = ""
    metadata: AgentMetadata
    config: dict[str, Any] | None = None
    last_updated: datetime

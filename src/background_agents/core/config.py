"""Configuration management.

Loads from TOML config files + environment variables.
Uses pydantic-settings for validation and env var overriding.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


# ---------------------------------------------------------------------------
# Sub-configs
# ---------------------------------------------------------------------------

class StoreConfig(BaseModel):
    path: str = "config/agents.json"  # Persisted per-agent configuration


class DiscoveryConfig(BaseModel):
    packages: list[str] = Field(default_factory=list)  # Packages scanned for *_agent modules
    module_suffix: str = "_agent"
    entry_point_group: str = "background_agents.agent_types"
    use_entry_points: bool = True


class RetryConfig(BaseModel):
    max_attempts: int = 3
    base_delay: float = 1.0  # seconds, doubled per attempt


class ObservabilityConfig(BaseModel):
    log_level: str = "INFO"
    log_format: str = "console"  # "json" or "console"


# ---------------------------------------------------------------------------
# Top-level settings
# ---------------------------------------------------------------------------

class Settings(BaseSettings):
    """Top-level application settings.

    Loaded from TOML config files, overridden by environment variables.
    """

    app_name: str = "background-agents"
    environment: str = "development"

    # Sub-configs
    store: StoreConfig = Field(default_factory=StoreConfig)
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    model_config = {"env_prefix": "AGENTS_", "env_nested_delimiter": "__"}


def load_settings(
    config_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> Settings:
    """Load settings from TOML file + env vars.

    Args:
        config_path: Path to TOML config file (optional).
        overrides: Dict of overrides to apply on top.
    """
    data: dict[str, Any] = {}

    if config_path:
        path = Path(config_path)
        if path.exists():
            import tomli

            with open(path, "rb") as f:
                data = tomli.load(f)

    if overrides:
        data.update(overrides)

    return Settings(**data)

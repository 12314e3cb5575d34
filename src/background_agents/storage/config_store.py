"""Persisted per-agent configuration.

One JSON document keyed by agent name::

    {
      "api-monitor": {"enabled": true, "schedule": "*/5 * * * *", "timeout": 10},
      "file-watcher": {"enabled": false}
    }

Every update reads the whole document, merges one record and writes the
whole document back. Entries for agents that are not currently discovered
are carried through untouched.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from pathlib import Path
from typing import Any

from background_agents.core.errors import ConfigurationError
from background_agents.core.file_io import exclusive_lock, read_json, write_json_atomic

logger = logging.getLogger(__name__)


def _validate_document(data: Any, origin: str) -> dict[str, dict[str, Any]]:
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Agent configuration in {origin} must be a JSON object, "
            f"got {type(data).__name__}"
        )
    for name, record in data.items():
        if not isinstance(record, dict):
            raise ConfigurationError(
                f"Configuration for agent {name!r} in {origin} must be an object"
            )
    return data


class JsonFileConfigStore:
    """Configuration store backed by a single JSON file.

    Parameters
    ----------
    path:
        Location of the document. Parent directories are created on first
        write. A missing file reads as an empty configuration.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, dict[str, Any]]:
        try:
            data = read_json(self._path)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as exc:
            raise ConfigurationError(
                f"Cannot read agent configuration {self._path}: {exc}"
            ) from exc
        return _validate_document(data, str(self._path))

    async def load(self) -> dict[str, dict[str, Any]]:
        async with self._lock:
            return self._read()

    async def save(self, configs: dict[str, dict[str, Any]]) -> None:
        async with self._lock:
            with exclusive_lock(self._path):
                write_json_atomic(self._path, configs)
        logger.debug("Saved configuration for %d agents to %s", len(configs), self._path)

    async def update(self, name: str, partial: dict[str, Any]) -> dict[str, Any]:
        """Merge *partial* into the record for *name*; return the new record."""
        async with self._lock:
            with exclusive_lock(self._path):
                configs = self._read()
                record = {**configs.get(name, {}), **partial}
                configs[name] = record
                write_json_atomic(self._path, configs)
        logger.debug("Updated configuration for %s in %s", name, self._path)
        return dict(record)


class InMemoryConfigStore:
    """Configuration store kept in process memory."""

    def __init__(self, initial: dict[str, dict[str, Any]] | None = None) -> None:
        self._data: dict[str, dict[str, Any]] = copy.deepcopy(
            _validate_document(initial or {}, "initial data")
        )
        self._lock = asyncio.Lock()
        self.write_count = 0

    async def load(self) -> dict[str, dict[str, Any]]:
        async with self._lock:
            return copy.deepcopy(self._data)

    async def save(self, configs: dict[str, dict[str, Any]]) -> None:
        async with self._lock:
            self._data = copy.deepcopy(configs)
            self.write_count += 1

    async def update(self, name: str, partial: dict[str, Any]) -> dict[str, Any]:
        async with self._lock:
            configs = copy.deepcopy(self._data)
            record = {**configs.get(name, {}), **partial}
            configs[name] = record
            self._data = configs
            self.write_count += 1
        return copy.deepcopy(record)

"""Identifier factories.

``new_id`` names a single execution (its trace). ``instance_id`` names an
agent instance after its type and creation time on the given clock.
"""

from __future__ import annotations

import uuid

from .clock import IClock, WallClock


def new_id() -> str:
    """Generate a new UUID v4 string."""
    return str(uuid.uuid4())


def instance_id(type_name: str, clock: IClock | None = None) -> str:
    """Run identity for a new agent instance: ``<type>-<epoch ms>``."""
    clock = clock or WallClock()
    return f"{type_name}-{clock.now_ms()}"

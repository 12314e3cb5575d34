"""Enumerations used across the agent runtime."""

from enum import Enum


class AgentState(str, Enum):
    """Lifecycle state of an agent instance."""

    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class DescriptorStatus(str, Enum):
    """Catalog status of a discovered agent type."""

    DISCOVERED = "discovered"
    CONFIGURED = "configured"

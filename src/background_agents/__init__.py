"""Background agents: discovery, scheduling and lifecycle for agent tasks."""

__version__ = "1.0.0"

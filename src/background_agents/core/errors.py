"""Custom exception hierarchy for the agent runtime."""


class AgentFrameworkError(Exception):
    """Base exception for all agent runtime errors."""


# --- Catalog ---
class DiscoveryError(AgentFrameworkError):
    """An agent type definition could not be resolved."""


# --- Configuration ---
class ConfigurationError(AgentFrameworkError):
    """Invalid, unreadable or incomplete configuration."""


# --- Lookup ---
class AgentNotFoundError(AgentFrameworkError, LookupError):
    """An operation referenced an unknown agent id or type name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Agent {name} not found")


NotFoundError = AgentNotFoundError


# --- Execution ---
class AgentExecutionError(AgentFrameworkError):
    """An agent body raised during a manually triggered run."""

    def __init__(self, agent_id: str, message: str):
        self.agent_id = agent_id
        super().__init__(message)


class LifecycleMisuseError(AgentFrameworkError):
    """Start requested while running, or stop requested while not running.

    The execution engine treats misuse as a no-op and only logs a warning;
    this type is for callers that want to enforce the state machine.
    """

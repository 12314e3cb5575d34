"""Structured logging for agent executions.

structlog renders entries as JSON (production) or console text
(development) on top of stdlib logging. Each agent execution opens a new
trace, and every entry logged while it runs carries that ``trace_id``, so
the lines of one run can be grouped. Agent bodies receive a logger already
bound to their ``agent_id`` and ``agent_type``.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from typing import Any

import structlog

from background_agents.core.ids import new_id

# Trace of the execution currently running in this context
_trace_id: ContextVar[str | None] = ContextVar("trace_id", default=None)


def new_trace_id() -> str:
    """Open a trace for a new execution and return its id."""
    tid = new_id()
    _trace_id.set(tid)
    return tid


def get_trace_id() -> str | None:
    """Trace id of the current execution, if any."""
    return _trace_id.get()


def _add_trace_id(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Structlog processor: tag entries logged inside an execution."""
    tid = _trace_id.get()
    if tid is not None:
        event_dict.setdefault("trace_id", tid)
    return event_dict


def setup_logging(
    level: str = "INFO",
    format: str = "console",
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR).
        format: "json" for production, "console" for development.
    """
    renderer: Any = (
        structlog.processors.JSONRenderer()
        if format == "json"
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            _add_trace_id,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper(), logging.INFO),
    )


def agent_logger(agent_id: str, agent_type: str) -> structlog.stdlib.BoundLogger:
    """Logger scoped to one agent instance, handed to its body."""
    return structlog.get_logger(f"background_agents.agent.{agent_type}").bind(
        agent_id=agent_id, agent_type=agent_type
    )

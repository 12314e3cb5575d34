"""Agent instance: the execution engine wrapped around one agent body.

Every configured agent runs inside an ``AgentInstance``, which provides:

- Run identity (``id``, ``type_name``) and merged configuration
- Lifecycle management (``start`` / ``stop``) over the states
  ``idle -> running -> stopped -> running ...``
- A recurring trigger task for scheduled agents, or a single immediate
  run for agents without a schedule
- Error isolation: scheduled runs never propagate body failures
- Status and health reporting with run/error counters

Agent bodies only implement ``async run()``; the optional hooks
(``on_start``, ``on_stop``, ``handle_error``, ``get_status``) are looked up
by name.

Overlap policy
--------------
A scheduler firing that arrives while an execution of the same instance is
still in flight is skipped (counted in ``skipped_runs``). Manual runs wait
for the in-flight execution to finish and then run.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, TypeVar

from background_agents.agents.retry import retry as _retry
from background_agents.agents.schedule import Schedule, parse_schedule
from background_agents.core.clock import IClock, WallClock
from background_agents.core.enums import AgentState
from background_agents.core.interfaces import IAgentBody
from background_agents.core.models import AgentHealthReport, AgentStatusReport
from background_agents.observability.logger import new_trace_id

logger = logging.getLogger(__name__)

_RESOLUTION = timedelta(microseconds=1)

T = TypeVar("T")


@dataclass
class AgentContext:
    """Everything an agent body receives at construction."""

    agent_id: str
    type_name: str
    config: dict[str, Any]
    logger: Any
    max_attempts: int = 3
    base_delay: float = 1.0
    metadata: dict[str, Any] = field(default_factory=dict)

    async def retry(
        self,
        operation: Callable[[], Awaitable[T]],
        max_attempts: int | None = None,
        base_delay: float | None = None,
    ) -> T:
        """Retry *operation* with exponential backoff (settings defaults)."""
        return await _retry(
            operation,
            max_attempts=max_attempts if max_attempts is not None else self.max_attempts,
            base_delay=base_delay if base_delay is not None else self.base_delay,
        )

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class AgentInstance:
    """One running (or stopped) execution of an agent type.

    Parameters
    ----------
    agent_id:
        Unique run identity.
    type_name:
        Catalog name of the agent type (reporting only).
    body:
        Object implementing ``async run()``.
    config:
        Merged configuration the body was built with.
    schedule:
        Schedule expression or ``Schedule``. ``None`` means "run once on
        start".
    clock:
        Time source for run timestamps and trigger computation.
    """

    def __init__(
        self,
        *,
        agent_id: str,
        type_name: str,
        body: IAgentBody,
        config: dict[str, Any] | None = None,
        schedule: Any = None,
        clock: IClock | None = None,
    ) -> None:
        self._agent_id = agent_id
        self._type_name = type_name
        self._body = body
        self._config = dict(config or {})
        self._schedule: Schedule | None = parse_schedule(schedule)
        self._clock = clock or WallClock()

        self._state = AgentState.IDLE
        self._task: asyncio.Task | None = None
        self._current: asyncio.Task | None = None
        self._inflight: set[asyncio.Task] = set()
        self._exec_lock = asyncio.Lock()

        self._last_run_at: datetime | None = None
        self._run_count = 0
        self._error_count = 0
        self._skipped_runs = 0
        self._last_error: str | None = None

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @property
    def id(self) -> str:
        return self._agent_id

    @property
    def type_name(self) -> str:
        return self._type_name

    @property
    def body(self) -> IAgentBody:
        return self._body

    @property
    def config(self) -> dict[str, Any]:
        return dict(self._config)

    @property
    def schedule(self) -> Schedule | None:
        return self._schedule

    @property
    def state(self) -> AgentState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == AgentState.RUNNING

    @property
    def has_trigger(self) -> bool:
        return self._task is not None

    @property
    def last_run_at(self) -> datetime | None:
        return self._last_run_at

    @property
    def run_count(self) -> int:
        return self._run_count

    @property
    def error_count(self) -> int:
        return self._error_count

    @property
    def skipped_runs(self) -> int:
        return self._skipped_runs

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start the agent. Creates the trigger task if scheduled."""
        if self._state == AgentState.RUNNING:
            logger.warning("Agent %s is already running", self._agent_id)
            return

        logger.info("Starting agent %s", self._agent_id)
        await self._call_hook("on_start")
        self._state = AgentState.RUNNING

        if self._schedule is not None:
            self._task = asyncio.create_task(
                self._trigger_loop(self._schedule),
                name=f"agent-{self._agent_id}",
            )
        else:
            await self._run_serialized(manual=False)

    async def stop(self) -> None:
        """Stop the agent. No firing happens after this returns.

        An execution already in flight is left to finish on its own.
        """
        if self._state != AgentState.RUNNING:
            logger.warning("Agent %s is not running", self._agent_id)
            return

        logger.info("Stopping agent %s", self._agent_id)

        self._state = AgentState.STOPPED
        if self._task is not None:
            task, self._task = self._task, None
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                # Propagate only a cancellation aimed at the caller
                current = asyncio.current_task()
                if current is not None and current.cancelling():
                    raise

        await self._call_hook("on_stop")

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute(self, manual: bool = False) -> None:
        """Run the body once.

        Failures are counted and passed to the error hook. They propagate
        only for manual runs; scheduled runs swallow them so the next
        firing still happens.
        """
        new_trace_id()
        logger.debug("Executing agent %s", self._agent_id)
        self._last_run_at = self._clock.now()
        self._run_count += 1

        try:
            await self._body.run()
        except Exception as exc:
            self._error_count += 1
            self._last_error = f"{type(exc).__name__}: {exc}"
            logger.error(
                "Agent %s execution failed (errors=%d): %s",
                self._agent_id,
                self._error_count,
                exc,
                exc_info=exc,
            )
            await self._handle_error(exc)
            if manual:
                raise
            return

        logger.debug("Agent %s executed successfully", self._agent_id)

    async def run_now(self) -> None:
        """Manual run: waits for any in-flight execution, then propagates errors."""
        await self._run_serialized(manual=True)

    async def _run_serialized(self, manual: bool) -> None:
        async with self._exec_lock:
            await self.execute(manual=manual)

    async def _handle_error(self, exc: Exception) -> None:
        hook = getattr(self._body, "handle_error", None)
        if hook is None:
            return
        try:
            await hook(exc)
        except Exception:
            logger.exception("Error hook of agent %s failed", self._agent_id)

    async def _call_hook(self, name: str) -> None:
        hook = getattr(self._body, name, None)
        if hook is not None:
            await hook()

    # ------------------------------------------------------------------
    # Trigger
    # ------------------------------------------------------------------

    async def _trigger_loop(self, schedule: Schedule) -> None:
        """Sleep until each fire time and dispatch an execution."""
        previous: datetime | None = None
        while True:
            now, fire_at = self._next_fire_time(schedule, previous)
            if fire_at is None:
                logger.info("Schedule of agent %s has no further fire times", self._agent_id)
                return
            await asyncio.sleep(max((fire_at - now).total_seconds(), 0))
            previous = fire_at
            self._fire()

    def _next_fire_time(
        self, schedule: Schedule, previous: datetime | None
    ) -> tuple[datetime, datetime | None]:
        """Current clock reading and the next fire time strictly after *previous*.

        The clock may read slightly behind the event loop after a sleep, so
        the search never starts at or before the slot that already fired.
        """
        now = self._clock.now()
        search_from = now if previous is None else max(now, previous + _RESOLUTION)
        return now, schedule.next_fire_time(previous, search_from)

    def _fire(self) -> None:
        busy = (
            self._current is not None and not self._current.done()
        ) or self._exec_lock.locked()
        if busy:
            self._skipped_runs += 1
            logger.warning(
                "Agent %s still executing, skipping scheduled run (skipped=%d)",
                self._agent_id,
                self._skipped_runs,
            )
            return

        task = asyncio.create_task(
            self._run_serialized(manual=False),
            name=f"agent-{self._agent_id}-run-{self._run_count + 1}",
        )
        self._current = task
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def wait_idle(self) -> None:
        """Wait for executions already dispatched by the trigger."""
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)

    # ------------------------------------------------------------------
    # Status & health
    # ------------------------------------------------------------------

    def get_status(self) -> dict[str, Any]:
        """Base status projection, extended by the body's ``get_status``."""
        report = AgentStatusReport(
            id=self._agent_id,
            type=self._type_name,
            state=self._state,
            is_running=self.is_running,
            schedule=self._schedule.expression if self._schedule else None,
            last_run_at=self._last_run_at,
            run_count=self._run_count,
            error_count=self._error_count,
            skipped_runs=self._skipped_runs,
            last_error=self._last_error,
        )
        status = report.model_dump(mode="json")
        extra = getattr(self._body, "get_status", None)
        if extra is not None:
            status.update(extra())
        return status

    def health_check(self) -> AgentHealthReport:
        """Return current health status."""
        healthy = self.is_running
        message = ""
        if not self.is_running:
            message = "Agent is not running"
        elif self._error_count > 0:
            message = f"Last error count: {self._error_count}"
            if self._last_error:
                message += f" ({self._last_error})"

        return AgentHealthReport(
            healthy=healthy,
            message=message,
            last_run_at=self._last_run_at,
            error_count=self._error_count,
            details={
                "agent_id": self._agent_id,
                "agent_type": self._type_name,
                "state": self._state.value,
            },
        )

    def __repr__(self) -> str:
        return (
            f"AgentInstance(id={self._agent_id!r}, type={self._type_name!r}, "
            f"state={self._state.value})"
        )

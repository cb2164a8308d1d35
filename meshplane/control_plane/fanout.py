"""
Fan-out / fan-in over workload instances.

One asyncio task per queried instance. Each task has its own timeout and
writes only its own pre-allocated result slot. Collection is a join-all
bounded by a single call-wide deadline measured from ``start``; tasks still
running at the deadline are cancelled and reported as failed. If the caller
is cancelled while collecting, every outstanding task is cancelled and the
cancellation propagates without waiting on them.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable

logger = logging.getLogger("meshplane.control.fanout")

InstanceQuery = Callable[[int], Awaitable[Any]]


class AggregationPhase(str, Enum):
    INIT = "init"
    LOCATING = "locating"
    FANOUT = "fanout"
    COLLECTING = "collecting"
    DONE = "done"


LEGAL_PHASE_TRANSITIONS: dict[AggregationPhase, set[AggregationPhase]] = {
    AggregationPhase.INIT: {AggregationPhase.LOCATING},
    AggregationPhase.LOCATING: {AggregationPhase.FANOUT},
    AggregationPhase.FANOUT: {AggregationPhase.COLLECTING},
    AggregationPhase.COLLECTING: {AggregationPhase.DONE},
    AggregationPhase.DONE: set(),
}


@dataclass
class AggregationCall:
    """Tracks the phase of a single aggregate call."""
    fqn: str
    operation: str
    phase: AggregationPhase = AggregationPhase.INIT
    history: list[AggregationPhase] = field(default_factory=lambda: [AggregationPhase.INIT])

    def advance(self, next_phase: AggregationPhase) -> None:
        if next_phase not in LEGAL_PHASE_TRANSITIONS[self.phase]:
            raise RuntimeError(
                f"Illegal {self.operation} transition for {self.fqn}: "
                f"{self.phase.value} -> {next_phase.value}"
            )
        logger.debug("%s %s: %s -> %s", self.operation, self.fqn, self.phase.value, next_phase.value)
        self.phase = next_phase
        self.history.append(next_phase)


@dataclass
class SlotOutcome:
    """Result of one instance query."""
    ok: bool
    payload: Any = None
    error: str = ""
    timed_out: bool = False

    @classmethod
    def succeeded(cls, payload: Any) -> "SlotOutcome":
        return cls(ok=True, payload=payload)

    @classmethod
    def failed(cls, error: str, timed_out: bool = False) -> "SlotOutcome":
        return cls(ok=False, error=error, timed_out=timed_out)


class FanOut:
    """
    Concurrent per-instance queries joined under a call-wide deadline.

    Usage:
        fanout = FanOut(query, per_instance_timeout=2.0, deadline=5.0)
        fanout.start([0, 1, 2])
        outcomes = await fanout.collect()
    """

    def __init__(
        self,
        query: InstanceQuery,
        *,
        per_instance_timeout: float,
        deadline: float,
        label: str = "fanout",
    ) -> None:
        self.query = query
        self.per_instance_timeout = per_instance_timeout
        self.deadline = deadline
        self.label = label
        self._slots: dict[int, SlotOutcome | None] = {}
        self._tasks: dict[int, asyncio.Task[None]] = {}
        self._started_at: float | None = None

    @property
    def effective_timeout(self) -> float:
        # The stricter of the per-instance timeout and the call-wide deadline.
        return min(self.per_instance_timeout, self.deadline)

    def start(self, instance_ids: Iterable[int]) -> None:
        if self._started_at is not None:
            raise RuntimeError(f"{self.label} already started")
        loop = asyncio.get_running_loop()
        self._started_at = loop.time()
        for instance_id in instance_ids:
            self._slots[instance_id] = None
        for instance_id in self._slots:
            self._tasks[instance_id] = asyncio.create_task(
                self._run(instance_id), name=f"{self.label}-{instance_id}"
            )

    async def _run(self, instance_id: int) -> None:
        timeout = self.effective_timeout
        try:
            payload = await asyncio.wait_for(self.query(instance_id), timeout=timeout)
        except asyncio.TimeoutError:
            self._slots[instance_id] = SlotOutcome.failed(
                f"timed out after {timeout}s", timed_out=True
            )
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._slots[instance_id] = SlotOutcome.failed(str(exc) or exc.__class__.__name__)
        else:
            self._slots[instance_id] = SlotOutcome.succeeded(payload)

    async def collect(self) -> dict[int, SlotOutcome]:
        if self._started_at is None:
            raise RuntimeError(f"{self.label} not started")
        if self._tasks:
            remaining = max(0.0, self.deadline - (asyncio.get_running_loop().time() - self._started_at))
            try:
                _, pending = await asyncio.wait(self._tasks.values(), timeout=remaining)
            except asyncio.CancelledError:
                self.cancel()
                raise
            if pending:
                logger.warning(
                    "%s: %d task(s) still running at the %ss deadline; cancelling",
                    self.label,
                    len(pending),
                    self.deadline,
                )
                for task in pending:
                    task.cancel()

        outcomes: dict[int, SlotOutcome] = {}
        for instance_id, outcome in self._slots.items():
            if outcome is None:
                outcome = SlotOutcome.failed(f"call deadline of {self.deadline}s exceeded", timed_out=True)
            outcomes[instance_id] = outcome
        return outcomes

    def cancel(self) -> None:
        for task in self._tasks.values():
            if not task.done():
                task.cancel()


async def fan_out(
    instance_ids: Iterable[int],
    query: InstanceQuery,
    *,
    per_instance_timeout: float,
    deadline: float,
    label: str = "fanout",
) -> dict[int, SlotOutcome]:
    """Start one query per instance and collect every outcome."""
    fanout = FanOut(query, per_instance_timeout=per_instance_timeout, deadline=deadline, label=label)
    fanout.start(instance_ids)
    return await fanout.collect()

"""
meshplane control-plane metrics aggregation.

Same fan-out shape as status aggregation, but each reachable instance
contributes a numeric metrics payload. Counters are summed across instances,
the per-instance breakdown is kept alongside the totals, and instances that
cannot be queried contribute nothing to the sums.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from meshplane.shared.errors import MalformedPayloadError
from meshplane.workloads.models import WorkloadIdentity

from .fanout import AggregationCall, AggregationPhase, FanOut
from .instance_client import InstanceClient
from .locator import InstanceDescriptor, InstanceSetLocator

logger = logging.getLogger("meshplane.control.metrics")

COUNTER_FIELDS = (
    "receivedTotal",
    "processedSuccessfullyTotal",
    "systemExceptionsTotal",
    "userExceptionsTotal",
)
LATENCY_FIELD = "avgProcessLatency"
WINDOW_KEYS = ("oneMin", "1min")


def _number(value: Any, name: str, address: str) -> float | int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedPayloadError(address, f"{name} is not numeric: {value!r}")
    return value


def _counters(section: dict[str, Any], address: str, prefix: str = "") -> dict[str, float | int]:
    # A null counter reads as zero, the same as an absent one.
    counters: dict[str, float | int] = {}
    for name in COUNTER_FIELDS:
        value = section.get(name)
        counters[name] = 0 if value is None else _number(value, prefix + name, address)
    return counters


def _latency(section: dict[str, Any], address: str, prefix: str = "") -> float | None:
    value = section.get(LATENCY_FIELD)
    return None if value is None else float(_number(value, prefix + LATENCY_FIELD, address))


def _mean(values: list[float]) -> float | None:
    return sum(values) / len(values) if values else None


@dataclass
class MetricsSample:
    """Metrics reported by one instance."""
    counters: dict[str, float | int] = field(default_factory=dict)
    window: dict[str, float | int] = field(default_factory=dict)
    avg_process_latency: float | None = None
    window_avg_process_latency: float | None = None
    last_invocation: int | None = None
    user_metrics: dict[str, float | int] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict[str, Any], address: str = "") -> "MetricsSample":
        window_section: dict[str, Any] = {}
        for key in WINDOW_KEYS:
            if isinstance(payload.get(key), dict):
                window_section = payload[key]
                break
        user_section = payload.get("userMetrics") or {}
        if not isinstance(user_section, dict):
            raise MalformedPayloadError(address, "userMetrics is not an object")
        last_invocation = payload.get("lastInvocation")
        return cls(
            counters=_counters(payload, address),
            window=_counters(window_section, address, prefix="oneMin."),
            avg_process_latency=_latency(payload, address),
            window_avg_process_latency=_latency(window_section, address, prefix="oneMin."),
            last_invocation=None if last_invocation is None else int(_number(last_invocation, "lastInvocation", address)),
            user_metrics={
                name: _number(value, f"userMetrics.{name}", address)
                for name, value in user_section.items()
                if value is not None
            },
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.counters,
            LATENCY_FIELD: self.avg_process_latency,
            "oneMin": {**self.window, LATENCY_FIELD: self.window_avg_process_latency},
            "lastInvocation": self.last_invocation,
            "userMetrics": dict(self.user_metrics),
        }


@dataclass
class InstanceMetrics:
    instance_id: int
    sample: MetricsSample | None = None
    reason: str | None = None
    error: str | None = None

    @property
    def reachable(self) -> bool:
        return self.sample is not None

    def to_dict(self) -> dict[str, Any]:
        entry: dict[str, Any] = {"instance_id": self.instance_id, "reachable": self.reachable}
        if self.reason is not None:
            entry["reason"] = self.reason
        if self.error is not None:
            entry["error"] = self.error
        if self.sample is not None:
            entry["metrics"] = self.sample.to_dict()
        return entry


@dataclass
class WorkloadMetrics:
    identity: WorkloadIdentity
    instances: list[InstanceMetrics] = field(default_factory=list)
    totals: dict[str, float | int] = field(default_factory=dict)
    window_totals: dict[str, float | int] = field(default_factory=dict)
    user_metrics: dict[str, float | int] = field(default_factory=dict)
    avg_process_latency: float | None = None
    window_avg_process_latency: float | None = None
    last_invocation: int | None = None

    @property
    def reachable_count(self) -> int:
        return sum(1 for instance in self.instances if instance.reachable)

    @classmethod
    def merge(cls, identity: WorkloadIdentity, instances: list[InstanceMetrics]) -> "WorkloadMetrics":
        samples = [instance.sample for instance in instances if instance.sample is not None]
        user_metrics: dict[str, float | int] = {}
        for sample in samples:
            for name, value in sample.user_metrics.items():
                user_metrics[name] = user_metrics.get(name, 0) + value
        invocations = [s.last_invocation for s in samples if s.last_invocation is not None]
        return cls(
            identity=identity,
            instances=instances,
            totals={name: sum(s.counters[name] for s in samples) for name in COUNTER_FIELDS},
            window_totals={name: sum(s.window[name] for s in samples) for name in COUNTER_FIELDS},
            user_metrics=user_metrics,
            avg_process_latency=_mean(
                [s.avg_process_latency for s in samples if s.avg_process_latency is not None]
            ),
            window_avg_process_latency=_mean(
                [s.window_avg_process_latency for s in samples if s.window_avg_process_latency is not None]
            ),
            last_invocation=max(invocations) if invocations else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.identity.to_dict(),
            "num_instances": len(self.instances),
            "reachable_count": self.reachable_count,
            "totals": {
                **self.totals,
                LATENCY_FIELD: self.avg_process_latency,
                "oneMin": {**self.window_totals, LATENCY_FIELD: self.window_avg_process_latency},
                "lastInvocation": self.last_invocation,
                "userMetrics": dict(self.user_metrics),
            },
            "instances": [instance.to_dict() for instance in self.instances],
        }


class MetricsAggregator:
    """Fan-out/fan-in metrics query over a workload's instances."""

    def __init__(
        self,
        locator: InstanceSetLocator,
        client: InstanceClient,
        *,
        per_instance_timeout: float = 5.0,
        deadline: float = 10.0,
    ) -> None:
        self.locator = locator
        self.client = client
        self.per_instance_timeout = per_instance_timeout
        self.deadline = deadline

    async def aggregate_metrics(
        self,
        identity: WorkloadIdentity,
        instance_id: int | None = None,
    ) -> WorkloadMetrics:
        call = AggregationCall(identity.fqn, "metrics")
        call.advance(AggregationPhase.LOCATING)
        instance_set = await self.locator.resolve(identity)
        targets = instance_set.select(instance_id)

        call.advance(AggregationPhase.FANOUT)
        queryable = {d.instance_id: d for d in targets if d.queryable}
        fanout = FanOut(
            lambda iid: self._query(queryable[iid]),
            per_instance_timeout=self.per_instance_timeout,
            deadline=self.deadline,
            label=f"metrics-{identity.fqn}",
        )
        fanout.start(queryable)

        call.advance(AggregationPhase.COLLECTING)
        outcomes = await fanout.collect()

        entries: list[InstanceMetrics] = []
        for descriptor in targets:
            outcome = outcomes.get(descriptor.instance_id)
            if outcome is None:
                entries.append(InstanceMetrics(instance_id=descriptor.instance_id, reason=descriptor.phase.value))
            elif outcome.ok:
                entries.append(InstanceMetrics(instance_id=descriptor.instance_id, sample=outcome.payload))
            else:
                logger.warning(
                    "Metrics unavailable from instance %s of %s: %s",
                    descriptor.instance_id,
                    identity.fqn,
                    outcome.error,
                )
                entries.append(
                    InstanceMetrics(
                        instance_id=descriptor.instance_id,
                        reason="unreachable",
                        error=outcome.error,
                    )
                )

        call.advance(AggregationPhase.DONE)
        return WorkloadMetrics.merge(identity, entries)

    async def _query(self, descriptor: InstanceDescriptor) -> MetricsSample:
        if not descriptor.address:
            raise LookupError(f"no address known for instance {descriptor.instance_id}")
        payload = await self.client.get_metrics(descriptor.address, timeout=self.per_instance_timeout)
        return MetricsSample.from_payload(payload, descriptor.address)

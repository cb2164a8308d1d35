"""
meshplane control-plane status aggregation.

Asks every queryable instance of a workload for its status and merges the
answers into one entry per expected replica. Instances that are not running
and ready are reported from their phase without being contacted; instances
that fail to answer are reported as unreachable. Neither fails the call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from meshplane.workloads.models import WorkloadIdentity

from .fanout import AggregationCall, AggregationPhase, FanOut, SlotOutcome
from .instance_client import InstanceClient
from .locator import InstanceDescriptor, InstanceSetLocator

logger = logging.getLogger("meshplane.control.status")

REASON_UNREACHABLE = "unreachable"

# Keys owned by the entry itself; an instance cannot report over them.
RESERVED_KEYS = frozenset({"instance_id", "running", "reason", "error"})


@dataclass
class InstanceStatus:
    instance_id: int
    running: bool
    reason: str | None = None
    error: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        entry: dict[str, Any] = {
            key: value for key, value in self.data.items() if key not in RESERVED_KEYS
        }
        entry["instance_id"] = self.instance_id
        entry["running"] = self.running
        if self.reason is not None:
            entry["reason"] = self.reason
        if self.error is not None:
            entry["error"] = self.error
        return entry


@dataclass
class WorkloadStatus:
    identity: WorkloadIdentity
    instances: list[InstanceStatus] = field(default_factory=list)

    @property
    def num_instances(self) -> int:
        return len(self.instances)

    @property
    def running_count(self) -> int:
        return sum(1 for instance in self.instances if instance.running)

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.identity.to_dict(),
            "num_instances": self.num_instances,
            "running_count": self.running_count,
            "instances": [instance.to_dict() for instance in self.instances],
        }


def _status_from_outcome(instance_id: int, outcome: SlotOutcome) -> InstanceStatus:
    if outcome.ok:
        reported = {
            key: value for key, value in dict(outcome.payload).items() if key not in RESERVED_KEYS
        }
        return InstanceStatus(instance_id=instance_id, running=True, data=reported)
    return InstanceStatus(
        instance_id=instance_id,
        running=False,
        reason=REASON_UNREACHABLE,
        error=outcome.error,
    )


class StatusAggregator:
    """Fan-out/fan-in status query over a workload's instances."""

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

    async def aggregate_status(
        self,
        identity: WorkloadIdentity,
        instance_id: int | None = None,
    ) -> WorkloadStatus:
        """
        Collect the status of every instance (or only ``instance_id``).

        Raises:
            WorkloadNotFoundError: identity does not resolve to a reconciled spec
            InstanceNotFoundError: instance_id outside [0, replicas)
        """
        call = AggregationCall(identity.fqn, "status")
        call.advance(AggregationPhase.LOCATING)
        instance_set = await self.locator.resolve(identity)
        targets = instance_set.select(instance_id)

        call.advance(AggregationPhase.FANOUT)
        queryable = {d.instance_id: d for d in targets if d.queryable}
        fanout = FanOut(
            lambda iid: self._query(queryable[iid]),
            per_instance_timeout=self.per_instance_timeout,
            deadline=self.deadline,
            label=f"status-{identity.fqn}",
        )
        fanout.start(queryable)

        call.advance(AggregationPhase.COLLECTING)
        outcomes = await fanout.collect()

        entries: list[InstanceStatus] = []
        for descriptor in targets:
            outcome = outcomes.get(descriptor.instance_id)
            if outcome is None:
                entries.append(
                    InstanceStatus(
                        instance_id=descriptor.instance_id,
                        running=False,
                        reason=descriptor.phase.value,
                    )
                )
                continue
            if not outcome.ok:
                logger.warning(
                    "Instance %s of %s unreachable: %s", descriptor.instance_id, identity.fqn, outcome.error
                )
            entries.append(_status_from_outcome(descriptor.instance_id, outcome))

        call.advance(AggregationPhase.DONE)
        result = WorkloadStatus(identity=identity, instances=entries)
        logger.debug("Status of %s: %d/%d running", identity.fqn, result.running_count, result.num_instances)
        return result

    async def _query(self, descriptor: InstanceDescriptor) -> dict[str, Any]:
        if not descriptor.address:
            raise LookupError(f"no address known for instance {descriptor.instance_id}")
        return await self.client.get_status(descriptor.address, timeout=self.per_instance_timeout)

"""
meshplane control-plane instance locator.

Resolves the expected replica set of a workload from its reconciled spec and
overlays the orchestrator's observed per-replica phase and readiness.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from meshplane.ledger.instance_groups import InstanceGroupStore, ObservedGroup
from meshplane.ledger.resource_store import ClusterResourceStore
from meshplane.shared.errors import InstanceNotFoundError, WorkloadNotFoundError
from meshplane.workloads.cluster_spec import ClusterResourceSpec
from meshplane.workloads.models import WorkloadIdentity

logger = logging.getLogger("meshplane.control.locator")


class InstancePhase(str, Enum):
    """Coarse lifecycle phase reported by the orchestrator."""
    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value: str | None) -> "InstancePhase":
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


@dataclass
class InstanceDescriptor:
    instance_id: int
    phase: InstancePhase = InstancePhase.PENDING
    containers_ready: bool = False
    address: str | None = None

    @property
    def queryable(self) -> bool:
        return self.phase is InstancePhase.RUNNING and self.containers_ready

    def to_dict(self) -> dict[str, Any]:
        return {
            "instance_id": self.instance_id,
            "phase": self.phase.value,
            "containers_ready": self.containers_ready,
            "address": self.address,
        }


@dataclass
class InstanceSet:
    """One descriptor per expected replica index, ordered 0..replicas-1."""
    identity: WorkloadIdentity
    replicas: int
    instances: list[InstanceDescriptor] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.instances)

    def select(self, instance_id: int | None = None) -> list[InstanceDescriptor]:
        """All descriptors, or only ``instance_id``; raises InstanceNotFoundError when out of range."""
        if instance_id is None:
            return list(self.instances)
        if not 0 <= instance_id < self.replicas:
            raise InstanceNotFoundError(self.identity.fqn, instance_id, self.replicas)
        return [self.instances[instance_id]]

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.identity.to_dict(),
            "replicas": self.replicas,
            "instances": [instance.to_dict() for instance in self.instances],
        }


class InstanceSetLocator:
    """Resolves the current InstanceSet for a workload identity."""

    def __init__(
        self,
        store: ClusterResourceStore,
        instance_groups: InstanceGroupStore,
        instance_port: int = 9094,
    ) -> None:
        self.store = store
        self.instance_groups = instance_groups
        self.instance_port = instance_port

    async def resolve(self, identity: WorkloadIdentity) -> InstanceSet:
        stored = await self.store.get(identity)
        if stored is None:
            raise WorkloadNotFoundError(identity.fqn)
        spec = ClusterResourceSpec.from_dict(stored.spec, status=stored.status)
        group = await self.instance_groups.get_group(identity)

        instances = [self._describe(identity, index, group) for index in range(spec.replicas)]
        if group is not None:
            extra = sorted(index for index in group.instances if index >= spec.replicas)
            if extra:
                logger.debug("Ignoring observed instances %s of %s beyond replicas", extra, identity.fqn)
        return InstanceSet(identity=identity, replicas=spec.replicas, instances=instances)

    def _describe(
        self,
        identity: WorkloadIdentity,
        index: int,
        group: ObservedGroup | None,
    ) -> InstanceDescriptor:
        observed = group.instances.get(index) if group is not None else None
        if observed is None:
            return InstanceDescriptor(instance_id=index, address=self._default_address(identity, index, group))
        return InstanceDescriptor(
            instance_id=index,
            phase=InstancePhase.parse(observed.phase),
            containers_ready=observed.containers_ready,
            address=observed.address or self._default_address(identity, index, group),
        )

    def _default_address(
        self,
        identity: WorkloadIdentity,
        index: int,
        group: ObservedGroup | None,
    ) -> str | None:
        if group is None or not group.service_name:
            return None
        return f"{identity.name}-{index}.{group.service_name}:{self.instance_port}"

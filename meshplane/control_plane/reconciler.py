"""
meshplane control-plane reconciler.

Create-or-update of a ClusterResourceSpec against the cluster resource store.
Writes for one identity are serialized purely by the store's resource_version
check; a stale version surfaces as ConflictError and is never retried here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any

from meshplane.ledger.resource_store import ClusterResourceStore, StoredResource
from meshplane.shared.errors import ValidationError, WorkloadNotFoundError
from meshplane.workloads.cluster_spec import ClusterResourceSpec
from meshplane.workloads.models import WorkloadIdentity

logger = logging.getLogger("meshplane.control.reconciler")

LABEL_PREFIX = "meshplane.io"
MANAGED_BY_LABEL = f"{LABEL_PREFIX}/managed-by"
MANAGED_BY_VALUE = "meshplane"

ACTION_CREATED = "created"
ACTION_UPDATED = "updated"
ACTION_UNCHANGED = "unchanged"


def identity_labels(identity: WorkloadIdentity) -> dict[str, str]:
    return {
        f"{LABEL_PREFIX}/tenant": identity.tenant,
        f"{LABEL_PREFIX}/namespace": identity.namespace,
        f"{LABEL_PREFIX}/name": identity.name,
        MANAGED_BY_LABEL: MANAGED_BY_VALUE,
    }


@dataclass
class ReconcileResult:
    action: str
    identity: WorkloadIdentity
    resource_version: int
    spec: ClusterResourceSpec

    @property
    def changed(self) -> bool:
        return self.action != ACTION_UNCHANGED

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action,
            **self.identity.to_dict(),
            "resource_version": self.resource_version,
            "spec": self.spec.to_dict(),
        }


class ResourceReconciler:
    """Create-or-update of cluster resources with optimistic concurrency."""

    def __init__(self, store: ClusterResourceStore) -> None:
        self.store = store

    async def create_or_update(
        self,
        identity: WorkloadIdentity,
        desired: ClusterResourceSpec,
    ) -> ReconcileResult:
        """
        Reconcile the stored object for ``identity`` to ``desired``.

        Raises:
            ValidationError: desired spec is malformed or names another identity
            AlreadyExistsError: a concurrent create won the race
            ConflictError: the object changed between read and update
            StoreUnavailableError: the store cannot be reached
        """
        self._validate(identity, desired)
        payload = desired.to_dict()

        existing = await self.store.get(identity)
        if existing is None:
            created = await self.store.create(
                StoredResource(identity=identity, spec=payload, labels=identity_labels(identity))
            )
            logger.info("Reconciled %s: created (resource_version=%s)", identity.fqn, created.resource_version)
            return self._result(ACTION_CREATED, created)

        if existing.spec == payload:
            logger.debug("Reconciled %s: spec unchanged, no write issued", identity.fqn)
            return self._result(ACTION_UNCHANGED, existing)

        # Only the spec payload is owned here; labels, annotations, status and
        # the version token read above are carried over unchanged.
        updated = await self.store.update(replace(existing, spec=payload))
        logger.info(
            "Reconciled %s: updated (resource_version=%s)", identity.fqn, updated.resource_version
        )
        return self._result(ACTION_UPDATED, updated)

    async def get(self, identity: WorkloadIdentity) -> ClusterResourceSpec:
        stored = await self.store.get(identity)
        if stored is None:
            raise WorkloadNotFoundError(identity.fqn)
        return ClusterResourceSpec.from_dict(stored.spec, status=stored.status)

    async def delete(self, identity: WorkloadIdentity) -> None:
        if not await self.store.delete(identity):
            raise WorkloadNotFoundError(identity.fqn)
        logger.info("Deleted cluster resource %s", identity.fqn)

    async def list(self, tenant: str, namespace: str | None = None) -> list[ClusterResourceSpec]:
        return [
            ClusterResourceSpec.from_dict(stored.spec, status=stored.status)
            for stored in await self.store.list(tenant, namespace)
        ]

    @staticmethod
    def _validate(identity: WorkloadIdentity, desired: ClusterResourceSpec) -> None:
        identity.validate()
        if desired.identity != identity:
            raise ValidationError(
                f"Desired spec is for {desired.identity.fqn}, not {identity.fqn}", field="identity"
            )
        if not desired.input.topics:
            raise ValidationError("At least one input channel is required", field="inputs")
        if desired.replicas < 1:
            raise ValidationError("Replicas must be at least 1", field="replicas")

    @staticmethod
    def _result(action: str, stored: StoredResource) -> ReconcileResult:
        return ReconcileResult(
            action=action,
            identity=stored.identity,
            resource_version=stored.resource_version,
            spec=ClusterResourceSpec.from_dict(stored.spec, status=stored.status),
        )

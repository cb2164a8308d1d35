"""
meshplane control-plane operation set.

The boundary a request-handling layer calls: translate, reconcile, get,
resolve, and aggregate status/metrics. Holds no state of its own beyond the
components built from the context.
"""

from __future__ import annotations

from meshplane.workloads.cluster_spec import ClusterResourceSpec
from meshplane.workloads.models import WorkloadDefinition, WorkloadIdentity
from meshplane.workloads.translator import to_cluster_spec, to_workload_definition

from .context import ControlPlaneContext
from .locator import InstanceSet, InstanceSetLocator
from .metrics import MetricsAggregator, WorkloadMetrics
from .reconciler import ReconcileResult, ResourceReconciler
from .status import StatusAggregator, WorkloadStatus


class ControlPlane:
    """Workload control operations over an explicit context."""

    def __init__(self, context: ControlPlaneContext) -> None:
        self.context = context
        self.reconciler = ResourceReconciler(context.store)
        self.locator = InstanceSetLocator(
            context.store,
            context.instance_groups,
            instance_port=context.instance_port,
        )
        self.status = StatusAggregator(
            self.locator,
            context.instance_client,
            per_instance_timeout=context.instance_query_timeout,
            deadline=context.aggregate_deadline,
        )
        self.metrics = MetricsAggregator(
            self.locator,
            context.instance_client,
            per_instance_timeout=context.instance_query_timeout,
            deadline=context.aggregate_deadline,
        )

    # Translation
    def translate(self, definition: WorkloadDefinition) -> ClusterResourceSpec:
        return to_cluster_spec(
            definition,
            self.context.bounds,
            cluster_name=self.context.cluster_name,
            service_account=self.context.service_account,
        )

    # Writes
    async def apply(self, definition: WorkloadDefinition) -> ReconcileResult:
        """Translate and reconcile in one step (register or update a workload)."""
        desired = self.translate(definition)
        return await self.reconciler.create_or_update(definition.identity, desired)

    async def create_or_update(
        self, identity: WorkloadIdentity, desired: ClusterResourceSpec
    ) -> ReconcileResult:
        return await self.reconciler.create_or_update(identity, desired)

    async def delete(self, identity: WorkloadIdentity) -> None:
        """Delete the cluster resource and forget its observed instances."""
        await self.reconciler.delete(identity)
        await self.context.instance_groups.clear(identity)

    # Reads
    async def get(self, identity: WorkloadIdentity) -> ClusterResourceSpec:
        return await self.reconciler.get(identity)

    async def get_definition(self, identity: WorkloadIdentity) -> WorkloadDefinition:
        return to_workload_definition(await self.reconciler.get(identity))

    async def list(self, tenant: str, namespace: str | None = None) -> list[ClusterResourceSpec]:
        return await self.reconciler.list(tenant, namespace)

    async def resolve(self, identity: WorkloadIdentity) -> InstanceSet:
        return await self.locator.resolve(identity)

    async def aggregate_status(
        self, identity: WorkloadIdentity, instance_id: int | None = None
    ) -> WorkloadStatus:
        return await self.status.aggregate_status(identity, instance_id)

    async def aggregate_metrics(
        self, identity: WorkloadIdentity, instance_id: int | None = None
    ) -> WorkloadMetrics:
        return await self.metrics.aggregate_metrics(identity, instance_id)

"""
meshplane control-plane components.

Reconciles cluster resources and aggregates live status/metrics from running
instances. Instance execution and scheduling belong to the orchestrator.
"""

from .context import ControlPlaneContext
from .facade import ControlPlane
from .fanout import AggregationCall, AggregationPhase, FanOut, SlotOutcome, fan_out
from .instance_client import InstanceClient
from .locator import InstanceDescriptor, InstancePhase, InstanceSet, InstanceSetLocator
from .metrics import InstanceMetrics, MetricsAggregator, MetricsSample, WorkloadMetrics
from .reconciler import ReconcileResult, ResourceReconciler
from .status import InstanceStatus, StatusAggregator, WorkloadStatus

__all__ = [
    "AggregationCall",
    "AggregationPhase",
    "ControlPlane",
    "ControlPlaneContext",
    "FanOut",
    "InstanceClient",
    "InstanceDescriptor",
    "InstanceMetrics",
    "InstancePhase",
    "InstanceSet",
    "InstanceSetLocator",
    "InstanceStatus",
    "MetricsAggregator",
    "MetricsSample",
    "ReconcileResult",
    "ResourceReconciler",
    "SlotOutcome",
    "StatusAggregator",
    "WorkloadMetrics",
    "WorkloadStatus",
    "fan_out",
]

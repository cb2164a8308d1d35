"""
meshplane workload definitions and their cluster resource translation.
"""

from .cluster_spec import ClusterResourceSpec, InputSpec, ResourceBounds, RuntimeSpec
from .models import (
    ConsumerConfig,
    CustomRuntimeOptions,
    ProcessingGuarantee,
    Resources,
    RuntimeKind,
    SubscriptionPosition,
    WorkloadDefinition,
    WorkloadIdentity,
)
from .translator import clamp, resolve_resource, to_cluster_spec, to_workload_definition

__all__ = [
    "ClusterResourceSpec",
    "ConsumerConfig",
    "CustomRuntimeOptions",
    "InputSpec",
    "ProcessingGuarantee",
    "ResourceBounds",
    "Resources",
    "RuntimeKind",
    "RuntimeSpec",
    "SubscriptionPosition",
    "WorkloadDefinition",
    "WorkloadIdentity",
    "clamp",
    "resolve_resource",
    "to_cluster_spec",
    "to_workload_definition",
]

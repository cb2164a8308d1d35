"""
meshplane — Stream Workload Control Layer

Translates workload definitions into declarative cluster resources, reconciles
them against the cluster resource store, and reports live status and metrics
gathered from the running instances.

Main Components:
- meshplane.workloads: workload models and spec translation
- meshplane.ledger: cluster resource store and observed instance groups
- meshplane.control_plane: reconciler, locator, status/metrics aggregation
- meshplane.shared: settings, logging, errors

Usage:
    from meshplane.control_plane import ControlPlane, ControlPlaneContext

    context = await ControlPlaneContext.create()
    plane = ControlPlane(context)
    await plane.apply(definition)
    status = await plane.aggregate_status(definition.identity)
"""

__version__ = "0.4.0"

from meshplane.shared.errors import (
    AlreadyExistsError,
    ConflictError,
    InstanceNotFoundError,
    MeshPlaneError,
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
    WorkloadNotFoundError,
)
from meshplane.shared.logging import get_logger
from meshplane.workloads import (
    ClusterResourceSpec,
    ResourceBounds,
    Resources,
    WorkloadDefinition,
    WorkloadIdentity,
)

__all__ = [
    "__version__",
    "AlreadyExistsError",
    "ClusterResourceSpec",
    "ConflictError",
    "InstanceNotFoundError",
    "MeshPlaneError",
    "NotFoundError",
    "ResourceBounds",
    "Resources",
    "StoreUnavailableError",
    "ValidationError",
    "WorkloadDefinition",
    "WorkloadIdentity",
    "WorkloadNotFoundError",
    "get_logger",
]

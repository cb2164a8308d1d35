"""
meshplane ledger: persisted cluster resources and observed instance groups.
"""

from .instance_groups import InstanceGroupStore, ObservedGroup, ObservedInstance
from .resource_store import ClusterResourceStore, StoredResource
from .schema import init_db

__all__ = [
    "ClusterResourceStore",
    "InstanceGroupStore",
    "ObservedGroup",
    "ObservedInstance",
    "StoredResource",
    "init_db",
]

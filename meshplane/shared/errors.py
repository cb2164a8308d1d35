"""
meshplane — Shared Error Definitions

Exception taxonomy used across the translator, reconciler, locator and
aggregators.
"""

from __future__ import annotations


class MeshPlaneError(Exception):
    """Base exception for all meshplane errors."""
    pass


# =============================================================================
# Configuration Errors
# =============================================================================
class ConfigurationError(MeshPlaneError):
    """Raised when required configuration is missing or invalid."""
    pass


# =============================================================================
# Validation Errors
# =============================================================================
class ValidationError(MeshPlaneError):
    """Raised when a workload definition or resource spec is malformed."""
    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


# =============================================================================
# Lookup Errors
# =============================================================================
class NotFoundError(MeshPlaneError):
    """Base exception for unknown identities or instances."""
    pass


class WorkloadNotFoundError(NotFoundError):
    """Raised when no reconciled spec exists for a workload identity."""
    def __init__(self, fqn: str):
        self.fqn = fqn
        super().__init__(f"Workload not found: {fqn}")


class InstanceNotFoundError(NotFoundError):
    """Raised when an instance id filter lies outside [0, replicas)."""
    def __init__(self, fqn: str, instance_id: int, replicas: int):
        self.fqn = fqn
        self.instance_id = instance_id
        self.replicas = replicas
        super().__init__(
            f"Instance {instance_id} not found for {fqn} (replicas={replicas})"
        )


# =============================================================================
# Store Errors
# =============================================================================
class StoreError(MeshPlaneError):
    """Base exception for cluster resource store failures."""
    pass


class AlreadyExistsError(StoreError):
    """Raised when a create loses the race against a concurrent create."""
    def __init__(self, fqn: str):
        self.fqn = fqn
        super().__init__(f"Resource already exists: {fqn}")


class ConflictError(StoreError):
    """Raised when an update carries a stale concurrency token."""

    retryable = True

    def __init__(self, fqn: str, expected_version: int, actual_version: int | None = None):
        self.fqn = fqn
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Conflict updating {fqn}: resource_version {expected_version} is stale"
            + (f" (current {actual_version})" if actual_version is not None else "")
        )


class StoreUnavailableError(StoreError):
    """Raised when the store or orchestrator state cannot be reached."""
    def __init__(self, operation: str, reason: str = ""):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Store unavailable during {operation}: {reason}")


# =============================================================================
# Instance Errors
# =============================================================================
class InstanceError(MeshPlaneError):
    """Base exception for instance runtime query failures."""
    pass


class InstanceUnreachableError(InstanceError):
    """Raised when an instance's query endpoint cannot be reached."""
    def __init__(self, address: str, reason: str = ""):
        self.address = address
        self.reason = reason
        super().__init__(f"Instance at {address} unreachable: {reason}")


class MalformedPayloadError(InstanceError):
    """Raised when an instance returns a payload that cannot be interpreted."""
    def __init__(self, address: str, reason: str = ""):
        self.address = address
        self.reason = reason
        super().__init__(f"Malformed payload from {address}: {reason}")

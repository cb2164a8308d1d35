"""
meshplane Workloads — Cluster Resource Spec

The declarative document persisted in the cluster resource store and consumed
by the orchestrator. Serialized in the orchestrator's camelCase form.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from meshplane.shared.errors import ConfigurationError, ValidationError

from .models import (
    ConsumerConfig,
    ProcessingGuarantee,
    Resources,
    RuntimeKind,
    SubscriptionPosition,
    WorkloadIdentity,
)

RESOURCE_FIELDS = ("cpu", "ram", "disk")

# Resource field -> key in the limits map
LIMIT_KEYS = {
    "cpu": "cpu",
    "ram": "memory",
    "disk": "ephemeral-storage",
}


@dataclass
class ResourceBounds:
    """Inclusive per-field [min, max] bounds, plus an optional configured default."""
    min: Resources
    max: Resources
    default: Resources | None = None

    def __post_init__(self) -> None:
        for name in RESOURCE_FIELDS:
            low = getattr(self.min, name)
            high = getattr(self.max, name)
            if low is None or high is None:
                raise ConfigurationError(f"Resource bound for {name} must set both min and max")
            if low < 0 or low > high:
                raise ConfigurationError(f"Invalid {name} bounds: min={low} max={high}")


@dataclass
class RuntimeSpec:
    """Tagged runtime variant: the kind selects how the payload is read."""
    kind: RuntimeKind
    payload: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, self.kind.value: dict(self.payload)}

    @classmethod
    def from_dict(cls, data: dict | None) -> "RuntimeSpec":
        data = data or {}
        try:
            kind = RuntimeKind(data.get("kind", "java"))
        except ValueError as exc:
            raise ValidationError(f"Unknown runtime kind: {data.get('kind')}", field="runtime") from exc
        return cls(kind=kind, payload=dict(data.get(kind.value) or {}))


@dataclass
class InputSpec:
    """Input topic list plus per-topic consumer specs for topics that override defaults."""
    topics: list[str] = field(default_factory=list)
    source_specs: dict[str, ConsumerConfig] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"topics": list(self.topics)}
        if self.source_specs:
            data["sourceSpecs"] = {
                topic: conf.to_dict() for topic, conf in self.source_specs.items()
            }
        return data

    @classmethod
    def from_dict(cls, data: dict | None) -> "InputSpec":
        data = data or {}
        return cls(
            topics=list(data.get("topics") or []),
            source_specs={
                topic: ConsumerConfig.from_dict(conf)
                for topic, conf in (data.get("sourceSpecs") or {}).items()
            },
        )


@dataclass
class ClusterResourceSpec:
    """Declarative cluster resource derived from a WorkloadDefinition."""
    identity: WorkloadIdentity
    runtime: RuntimeSpec
    input: InputSpec = field(default_factory=InputSpec)
    cluster_name: str = ""
    replicas: int = 1
    max_replicas: int = 1
    service_account_name: str = ""
    output: str | None = None
    log_topic: str | None = None
    resources: dict[str, str] = field(default_factory=dict)
    class_name: str | None = None
    subscription_name: str | None = None
    subscription_position: SubscriptionPosition = SubscriptionPosition.LATEST
    processing_guarantee: ProcessingGuarantee = ProcessingGuarantee.AT_LEAST_ONCE
    retain_ordering: bool = False
    retain_key_ordering: bool = False
    cleanup_subscription: bool = False
    auto_ack: bool = True
    forward_source_message_property: bool = True
    timeout: int | None = None
    max_message_retry: int | None = None
    dead_letter_topic: str | None = None
    max_pending_async_requests: int | None = None
    func_config: dict[str, Any] = field(default_factory=dict)
    custom_runtime_options: str = ""
    # Written by the orchestrator only; never part of the spec payload.
    status: dict[str, Any] = field(default_factory=dict, compare=False)

    def to_dict(self) -> dict[str, Any]:
        """Serialize the spec payload (status excluded)."""
        doc: dict[str, Any] = {
            **self.identity.to_dict(),
            "clusterName": self.cluster_name,
            "replicas": self.replicas,
            "maxReplicas": self.max_replicas,
            "pod": {"serviceAccountName": self.service_account_name},
            "input": self.input.to_dict(),
            "resources": {"limits": dict(self.resources)},
            "runtime": self.runtime.to_dict(),
            "subscriptionPosition": self.subscription_position.value,
            "processingGuarantee": self.processing_guarantee.value,
            "retainOrdering": self.retain_ordering,
            "retainKeyOrdering": self.retain_key_ordering,
            "cleanupSubscription": self.cleanup_subscription,
            "autoAck": self.auto_ack,
            "forwardSourceMessageProperty": self.forward_source_message_property,
        }
        optional = {
            "output": {"topic": self.output} if self.output else None,
            "logTopic": self.log_topic,
            "className": self.class_name,
            "subscriptionName": self.subscription_name,
            "timeout": self.timeout,
            "maxMessageRetry": self.max_message_retry,
            "deadLetterTopic": self.dead_letter_topic,
            "maxPendingAsyncRequests": self.max_pending_async_requests,
            "funcConfig": dict(self.func_config) if self.func_config else None,
            "customRuntimeOptions": self.custom_runtime_options or None,
        }
        doc.update({key: value for key, value in optional.items() if value is not None})
        return doc

    @classmethod
    def from_dict(cls, doc: dict, status: dict | None = None) -> "ClusterResourceSpec":
        """Parse a stored spec payload, attaching the orchestrator status if given."""
        try:
            return cls(
                identity=WorkloadIdentity.from_dict(doc),
                runtime=RuntimeSpec.from_dict(doc.get("runtime")),
                input=InputSpec.from_dict(doc.get("input")),
                cluster_name=doc.get("clusterName", ""),
                replicas=int(doc.get("replicas", 1)),
                max_replicas=int(doc.get("maxReplicas", doc.get("replicas", 1))),
                service_account_name=(doc.get("pod") or {}).get("serviceAccountName", ""),
                output=(doc.get("output") or {}).get("topic"),
                log_topic=doc.get("logTopic"),
                resources=dict((doc.get("resources") or {}).get("limits") or {}),
                class_name=doc.get("className"),
                subscription_name=doc.get("subscriptionName"),
                subscription_position=SubscriptionPosition(doc.get("subscriptionPosition", "latest")),
                processing_guarantee=ProcessingGuarantee(
                    doc.get("processingGuarantee", "atleast_once")
                ),
                retain_ordering=bool(doc.get("retainOrdering", False)),
                retain_key_ordering=bool(doc.get("retainKeyOrdering", False)),
                cleanup_subscription=bool(doc.get("cleanupSubscription", False)),
                auto_ack=bool(doc.get("autoAck", True)),
                forward_source_message_property=bool(doc.get("forwardSourceMessageProperty", True)),
                timeout=doc.get("timeout"),
                max_message_retry=doc.get("maxMessageRetry"),
                dead_letter_topic=doc.get("deadLetterTopic"),
                max_pending_async_requests=doc.get("maxPendingAsyncRequests"),
                func_config=dict(doc.get("funcConfig") or {}),
                custom_runtime_options=doc.get("customRuntimeOptions") or "",
                status=dict(status or {}),
            )
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"Malformed cluster resource spec: {exc}") from exc

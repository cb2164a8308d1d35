"""
meshplane Workloads — Data Models

Caller-facing description of a stream-processing workload.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from meshplane.shared.errors import ValidationError


# =============================================================================
# Enums
# =============================================================================
class ProcessingGuarantee(str, Enum):
    """Delivery semantics requested for a workload."""
    AT_MOST_ONCE = "atmost_once"
    AT_LEAST_ONCE = "atleast_once"
    EFFECTIVELY_ONCE = "effectively_once"


class SubscriptionPosition(str, Enum):
    """Where a new subscription starts reading."""
    LATEST = "latest"
    EARLIEST = "earliest"


class RuntimeKind(str, Enum):
    """Closed set of instance runtimes."""
    JAVA = "java"
    PYTHON = "python"
    GO = "go"


# =============================================================================
# Data Classes
# =============================================================================
@dataclass(frozen=True)
class WorkloadIdentity:
    """(tenant, namespace, name) key of a workload."""
    tenant: str
    namespace: str
    name: str

    @property
    def fqn(self) -> str:
        return f"{self.tenant}/{self.namespace}/{self.name}"

    def validate(self) -> None:
        for part in ("tenant", "namespace", "name"):
            value = getattr(self, part)
            if not value or not str(value).strip():
                raise ValidationError(f"Workload {part} is required", field=part)
            if "/" in value:
                raise ValidationError(f"Workload {part} must not contain '/': {value}", field=part)

    def to_dict(self) -> dict[str, str]:
        return {"tenant": self.tenant, "namespace": self.namespace, "name": self.name}

    @classmethod
    def from_dict(cls, data: dict) -> "WorkloadIdentity":
        return cls(
            tenant=data.get("tenant", ""),
            namespace=data.get("namespace", ""),
            name=data.get("name", ""),
        )

    def __str__(self) -> str:
        return self.fqn


@dataclass
class Resources:
    """Resource request. cpu in cores, ram and disk in bytes."""
    cpu: float | None = None
    ram: int | None = None
    disk: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"cpu": self.cpu, "ram": self.ram, "disk": self.disk}

    @classmethod
    def from_dict(cls, data: dict | None) -> "Resources":
        data = data or {}
        return cls(cpu=data.get("cpu"), ram=data.get("ram"), disk=data.get("disk"))


@dataclass
class ConsumerConfig:
    """Per-input-channel consumer overrides."""
    schema_type: str | None = None
    serde_class_name: str | None = None
    regex_pattern: bool = False
    receiver_queue_size: int | None = None
    consumer_properties: dict[str, str] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return self == ConsumerConfig()

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.schema_type is not None:
            data["schemaType"] = self.schema_type
        if self.serde_class_name is not None:
            data["serdeClassName"] = self.serde_class_name
        if self.regex_pattern:
            data["isRegexPattern"] = True
        if self.receiver_queue_size is not None:
            data["receiverQueueSize"] = self.receiver_queue_size
        if self.consumer_properties:
            data["consumerProperties"] = dict(self.consumer_properties)
        return data

    @classmethod
    def from_dict(cls, data: dict | None) -> "ConsumerConfig":
        data = data or {}
        return cls(
            schema_type=data.get("schemaType"),
            serde_class_name=data.get("serdeClassName"),
            regex_pattern=bool(data.get("isRegexPattern", False)),
            receiver_queue_size=data.get("receiverQueueSize"),
            consumer_properties=dict(data.get("consumerProperties") or {}),
        )


class CustomRuntimeOptions(BaseModel):
    """
    Opaque runtime options document.

    Three camelCase keys are understood by the translator; every other key,
    including snake_case spellings of those three, is carried through untouched.
    """

    model_config = ConfigDict(extra="allow")

    cluster_name: str | None = Field(None, alias="clusterName")
    max_replicas: int | None = Field(None, alias="maxReplicas")
    service_account_name: str | None = Field(None, alias="serviceAccountName")

    @classmethod
    def from_mapping(cls, data: dict[str, Any] | None) -> "CustomRuntimeOptions":
        try:
            return cls.model_validate(dict(data or {}))
        except PydanticValidationError as exc:
            raise ValidationError(
                f"Invalid custom runtime options: {exc}", field="custom_runtime_options"
            ) from exc

    @classmethod
    def from_document(cls, document: str | None) -> "CustomRuntimeOptions":
        if not document:
            return cls()
        try:
            data = json.loads(document)
        except ValueError as exc:
            raise ValidationError(
                f"Custom runtime options are not valid JSON: {exc}",
                field="custom_runtime_options",
            ) from exc
        if not isinstance(data, dict):
            raise ValidationError(
                "Custom runtime options must be a JSON object", field="custom_runtime_options"
            )
        return cls.from_mapping(data)

    def to_mapping(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_unset=True)

    def to_document(self) -> str:
        return json.dumps(self.to_mapping(), sort_keys=True)


@dataclass
class WorkloadDefinition:
    """Logical description of a stream-processing workload, supplied per request."""
    identity: WorkloadIdentity
    artifact: str
    class_name: str | None = None
    runtime: RuntimeKind = RuntimeKind.JAVA
    inputs: dict[str, ConsumerConfig] = field(default_factory=dict)
    output: str | None = None
    log_topic: str | None = None
    resources: Resources = field(default_factory=Resources)
    parallelism: int = 1
    processing_guarantee: ProcessingGuarantee = ProcessingGuarantee.AT_LEAST_ONCE
    retain_ordering: bool = False
    retain_key_ordering: bool = False
    cleanup_subscription: bool = False
    subscription_name: str | None = None
    subscription_position: SubscriptionPosition = SubscriptionPosition.LATEST
    timeout_ms: int | None = None
    max_message_retries: int | None = None
    dead_letter_topic: str | None = None
    auto_ack: bool = True
    forward_source_message_property: bool = True
    max_pending_async_requests: int | None = None
    user_config: dict[str, Any] = field(default_factory=dict)
    custom_runtime_options: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            **self.identity.to_dict(),
            "artifact": self.artifact,
            "class_name": self.class_name,
            "runtime": self.runtime.value,
            "inputs": {topic: conf.to_dict() for topic, conf in self.inputs.items()},
            "output": self.output,
            "log_topic": self.log_topic,
            "resources": self.resources.to_dict(),
            "parallelism": self.parallelism,
            "processing_guarantee": self.processing_guarantee.value,
            "retain_ordering": self.retain_ordering,
            "retain_key_ordering": self.retain_key_ordering,
            "cleanup_subscription": self.cleanup_subscription,
            "subscription_name": self.subscription_name,
            "subscription_position": self.subscription_position.value,
            "timeout_ms": self.timeout_ms,
            "max_message_retries": self.max_message_retries,
            "dead_letter_topic": self.dead_letter_topic,
            "auto_ack": self.auto_ack,
            "forward_source_message_property": self.forward_source_message_property,
            "max_pending_async_requests": self.max_pending_async_requests,
            "user_config": dict(self.user_config),
            "custom_runtime_options": dict(self.custom_runtime_options),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "WorkloadDefinition":
        """Create from dictionary."""
        inputs = data.get("inputs") or {}
        if isinstance(inputs, (list, tuple)):
            inputs = {topic: {} for topic in inputs}
        try:
            return cls(
                identity=WorkloadIdentity.from_dict(data),
                artifact=data.get("artifact", ""),
                class_name=data.get("class_name"),
                runtime=RuntimeKind(data.get("runtime", "java")),
                inputs={topic: ConsumerConfig.from_dict(conf) for topic, conf in inputs.items()},
                output=data.get("output"),
                log_topic=data.get("log_topic"),
                resources=Resources.from_dict(data.get("resources")),
                parallelism=data.get("parallelism", 1),
                processing_guarantee=ProcessingGuarantee(
                    data.get("processing_guarantee", "atleast_once")
                ),
                retain_ordering=data.get("retain_ordering", False),
                retain_key_ordering=data.get("retain_key_ordering", False),
                cleanup_subscription=data.get("cleanup_subscription", False),
                subscription_name=data.get("subscription_name"),
                subscription_position=SubscriptionPosition(
                    data.get("subscription_position", "latest")
                ),
                timeout_ms=data.get("timeout_ms"),
                max_message_retries=data.get("max_message_retries"),
                dead_letter_topic=data.get("dead_letter_topic"),
                auto_ack=data.get("auto_ack", True),
                forward_source_message_property=data.get("forward_source_message_property", True),
                max_pending_async_requests=data.get("max_pending_async_requests"),
                user_config=dict(data.get("user_config") or {}),
                custom_runtime_options=dict(data.get("custom_runtime_options") or {}),
            )
        except ValueError as exc:
            raise ValidationError(f"Invalid workload definition: {exc}") from exc

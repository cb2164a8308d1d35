"""
Workload spec translation.

Pure, bidirectional mapping between a WorkloadDefinition and the
ClusterResourceSpec the orchestrator consumes. No I/O happens here.

Resource defaulting follows an explicit precedence table rather than nested
fallbacks:

    requested value -> configured default -> configured minimum

and the chosen value is then clamped into the inclusive [min, max] bounds of
its field.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Callable

from meshplane.shared.errors import ValidationError

from .cluster_spec import (
    LIMIT_KEYS,
    RESOURCE_FIELDS,
    ClusterResourceSpec,
    InputSpec,
    ResourceBounds,
    RuntimeSpec,
)
from .models import (
    ConsumerConfig,
    CustomRuntimeOptions,
    Resources,
    RuntimeKind,
    WorkloadDefinition,
)
from .quantity import format_bytes, format_cpu, parse_quantity

logger = logging.getLogger("meshplane.workloads.translator")

Number = float | int
ResourceLookup = Callable[[str, Resources, ResourceBounds], "Number | None"]

# Runtime kind -> (file key, location key, default file extension)
RUNTIME_PAYLOAD_KEYS: dict[RuntimeKind, tuple[str, str, str]] = {
    RuntimeKind.JAVA: ("jar", "jarLocation", ".jar"),
    RuntimeKind.PYTHON: ("py", "pyLocation", ".py"),
    RuntimeKind.GO: ("go", "goLocation", ""),
}

RESOURCE_PRECEDENCE: tuple[tuple[str, ResourceLookup], ...] = (
    ("requested", lambda name, requested, bounds: getattr(requested, name)),
    (
        "default",
        lambda name, requested, bounds: getattr(bounds.default, name) if bounds.default else None,
    ),
    ("minimum", lambda name, requested, bounds: getattr(bounds.min, name)),
)


# =============================================================================
# Resource policy
# =============================================================================
def clamp(value: Number, low: Number, high: Number) -> Number:
    """Clamp ``value`` into the inclusive range [low, high]."""
    return max(low, min(value, high))


def resolve_resource(name: str, requested: Resources, bounds: ResourceBounds) -> tuple[Number, str]:
    """
    Pick the value for one resource field.

    Returns:
        (clamped value, name of the precedence rule that supplied it)
    """
    for source, lookup in RESOURCE_PRECEDENCE:
        value = lookup(name, requested, bounds)
        if value is not None:
            return clamp(value, getattr(bounds.min, name), getattr(bounds.max, name)), source
    raise ValidationError(f"No value available for resource {name}", field=name)


def _check_resource_value(name: str, value: Any) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"Resource {name} must be numeric, got {value!r}", field=name)
    if math.isnan(value) or math.isinf(value):
        raise ValidationError(f"Resource {name} must be finite, got {value!r}", field=name)
    if value < 0:
        raise ValidationError(f"Resource {name} must not be negative, got {value!r}", field=name)


def _resource_limits(requested: Resources, bounds: ResourceBounds) -> dict[str, str]:
    limits: dict[str, str] = {}
    for name in RESOURCE_FIELDS:
        value, source = resolve_resource(name, requested, bounds)
        if source != "requested" or value != getattr(requested, name):
            logger.debug("Resource %s resolved from %s to %s", name, source, value)
        formatted = format_cpu(value) if name == "cpu" else format_bytes(value)
        limits[LIMIT_KEYS[name]] = formatted
    return limits


def _parse_limits(limits: dict[str, str]) -> Resources:
    parsed: dict[str, Number | None] = {}
    for name in RESOURCE_FIELDS:
        raw = limits.get(LIMIT_KEYS[name])
        if raw is None:
            parsed[name] = None
            continue
        try:
            number = parse_quantity(raw)
        except ValueError as exc:
            raise ValidationError(f"Invalid {name} limit: {raw!r}", field=name) from exc
        parsed[name] = number if name == "cpu" else int(round(number))
    return Resources(**parsed)


# =============================================================================
# Runtime variant
# =============================================================================
def _artifact_file_name(artifact: str, kind: RuntimeKind) -> str:
    segment = artifact.rstrip("/").rsplit("/", 1)[-1]
    segment = segment.split("@", 1)[0]
    extension = RUNTIME_PAYLOAD_KEYS[kind][2]
    if extension and "." not in segment:
        segment += extension
    return segment


def _runtime_spec(definition: WorkloadDefinition) -> RuntimeSpec:
    file_key, location_key, _ = RUNTIME_PAYLOAD_KEYS[definition.runtime]
    return RuntimeSpec(
        kind=definition.runtime,
        payload={
            file_key: _artifact_file_name(definition.artifact, definition.runtime),
            location_key: definition.artifact,
        },
    )


def _artifact_from_runtime(runtime: RuntimeSpec) -> str:
    file_key, location_key, _ = RUNTIME_PAYLOAD_KEYS[runtime.kind]
    return runtime.payload.get(location_key) or runtime.payload.get(file_key, "")


# =============================================================================
# Validation
# =============================================================================
def validate_definition(definition: WorkloadDefinition) -> CustomRuntimeOptions:
    """Reject malformed definitions. Returns the parsed custom runtime options."""
    definition.identity.validate()
    if not definition.artifact:
        raise ValidationError("Workload artifact reference is required", field="artifact")
    if not definition.inputs:
        raise ValidationError("At least one input channel is required", field="inputs")
    if any(not topic for topic in definition.inputs):
        raise ValidationError("Input channel names must not be empty", field="inputs")
    for name in RESOURCE_FIELDS:
        _check_resource_value(name, getattr(definition.resources, name))
    if isinstance(definition.parallelism, bool) or not isinstance(definition.parallelism, int):
        raise ValidationError("Parallelism must be an integer", field="parallelism")
    if definition.parallelism < 1:
        raise ValidationError("Parallelism must be at least 1", field="parallelism")

    options = CustomRuntimeOptions.from_mapping(definition.custom_runtime_options)
    if options.max_replicas is not None and options.max_replicas < definition.parallelism:
        raise ValidationError(
            f"maxReplicas ({options.max_replicas}) must not be lower than "
            f"parallelism ({definition.parallelism})",
            field="custom_runtime_options",
        )
    return options


# =============================================================================
# Forward / inverse mapping
# =============================================================================
def to_cluster_spec(
    definition: WorkloadDefinition,
    bounds: ResourceBounds,
    *,
    cluster_name: str = "",
    service_account: str = "",
) -> ClusterResourceSpec:
    """Translate a workload definition into the cluster resource spec."""
    options = validate_definition(definition)
    topics = list(definition.inputs)

    return ClusterResourceSpec(
        identity=definition.identity,
        runtime=_runtime_spec(definition),
        input=InputSpec(
            topics=topics,
            source_specs={
                topic: conf for topic, conf in definition.inputs.items() if not conf.is_empty()
            },
        ),
        cluster_name=options.cluster_name or cluster_name,
        replicas=definition.parallelism,
        max_replicas=options.max_replicas or definition.parallelism,
        service_account_name=options.service_account_name or service_account,
        output=definition.output,
        log_topic=definition.log_topic,
        resources=_resource_limits(definition.resources, bounds),
        class_name=definition.class_name,
        subscription_name=definition.subscription_name or definition.identity.fqn,
        subscription_position=definition.subscription_position,
        processing_guarantee=definition.processing_guarantee,
        retain_ordering=definition.retain_ordering,
        retain_key_ordering=definition.retain_key_ordering,
        cleanup_subscription=definition.cleanup_subscription,
        auto_ack=definition.auto_ack,
        forward_source_message_property=definition.forward_source_message_property,
        timeout=definition.timeout_ms,
        max_message_retry=definition.max_message_retries,
        dead_letter_topic=definition.dead_letter_topic,
        max_pending_async_requests=definition.max_pending_async_requests,
        func_config=dict(definition.user_config),
        custom_runtime_options=options.to_document() if options.to_mapping() else "",
    )


def to_workload_definition(spec: ClusterResourceSpec) -> WorkloadDefinition:
    """
    Translate a cluster resource spec back into a workload definition.

    Cluster name, max replicas and service account have no field of their own
    in a WorkloadDefinition; they are folded into the custom runtime options.
    """
    inputs = {topic: spec.input.source_specs.get(topic, ConsumerConfig()) for topic in spec.input.topics}
    for topic, conf in spec.input.source_specs.items():
        inputs.setdefault(topic, conf)

    options = CustomRuntimeOptions.from_document(spec.custom_runtime_options).to_mapping()
    if spec.cluster_name:
        options["clusterName"] = spec.cluster_name
    if spec.max_replicas:
        options["maxReplicas"] = spec.max_replicas
    if spec.service_account_name:
        options["serviceAccountName"] = spec.service_account_name

    return WorkloadDefinition(
        identity=spec.identity,
        artifact=_artifact_from_runtime(spec.runtime),
        class_name=spec.class_name,
        runtime=spec.runtime.kind,
        inputs=inputs,
        output=spec.output,
        log_topic=spec.log_topic,
        resources=_parse_limits(spec.resources),
        parallelism=spec.replicas,
        processing_guarantee=spec.processing_guarantee,
        retain_ordering=spec.retain_ordering,
        retain_key_ordering=spec.retain_key_ordering,
        cleanup_subscription=spec.cleanup_subscription,
        subscription_name=spec.subscription_name,
        subscription_position=spec.subscription_position,
        timeout_ms=spec.timeout,
        max_message_retries=spec.max_message_retry,
        dead_letter_topic=spec.dead_letter_topic,
        auto_ack=spec.auto_ack,
        forward_source_message_property=spec.forward_source_message_property,
        max_pending_async_requests=spec.max_pending_async_requests,
        user_config=dict(spec.func_config),
        custom_runtime_options=options,
    )

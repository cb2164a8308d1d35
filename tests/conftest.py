"""Shared fixtures for meshplane tests."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest
import pytest_asyncio

from meshplane.control_plane.locator import InstanceSetLocator
from meshplane.ledger.instance_groups import InstanceGroupStore
from meshplane.ledger.resource_store import ClusterResourceStore, StoredResource
from meshplane.ledger.schema import init_db
from meshplane.shared.errors import InstanceUnreachableError
from meshplane.workloads.cluster_spec import ClusterResourceSpec, ResourceBounds
from meshplane.workloads.models import (
    ConsumerConfig,
    Resources,
    WorkloadDefinition,
    WorkloadIdentity,
)
from meshplane.workloads.translator import to_cluster_spec

TENANT = "test-tenant"
NAMESPACE = "test-namespace"
FUNCTION = "test-function"
SERVICE_NAME = "test-function-svc"


def instance_address(index: int, port: int = 9094) -> str:
    return f"{FUNCTION}-{index}.{SERVICE_NAME}:{port}"


class StubInstanceClient:
    """
    In-process stand-in for InstanceClient.

    ``responses`` maps an address to a payload dict, an exception instance to
    raise, or a float delay after which ``{"delayed": True}`` is returned.
    """

    def __init__(self, responses: dict[str, Any] | None = None) -> None:
        self.responses = dict(responses or {})
        self.calls: list[tuple[str, str]] = []

    async def _respond(self, kind: str, address: str) -> dict[str, Any]:
        self.calls.append((kind, address))
        response = self.responses.get(address)
        if response is None:
            raise InstanceUnreachableError(address, "connection refused")
        if isinstance(response, Exception):
            raise response
        if isinstance(response, float):
            await asyncio.sleep(response)
            return {"delayed": True}
        return dict(response)

    async def get_status(self, address: str, timeout: float | None = None) -> dict[str, Any]:
        return await self._respond("status", address)

    async def get_metrics(self, address: str, timeout: float | None = None) -> dict[str, Any]:
        return await self._respond("metrics", address)


@pytest.fixture
def identity() -> WorkloadIdentity:
    return WorkloadIdentity(TENANT, NAMESPACE, FUNCTION)


@pytest.fixture
def bounds() -> ResourceBounds:
    return ResourceBounds(
        min=Resources(cpu=1.0, ram=1024, disk=1024 * 10),
        max=Resources(cpu=16.0, ram=1024 * 32, disk=1024 * 100),
    )


@pytest.fixture
def make_definition(identity):
    def _make(**overrides: Any) -> WorkloadDefinition:
        values: dict[str, Any] = {
            "identity": identity,
            "artifact": f"function://public/default/{FUNCTION}@1.0",
            "class_name": "org.example.functions.TestFunction",
            "inputs": {"test-input-topic": ConsumerConfig()},
            "output": "test-output-topic",
            "log_topic": "test-log-topic",
            "resources": Resources(cpu=2.0, ram=4096, disk=1024 * 10),
            "parallelism": 2,
            "retain_key_ordering": True,
            "subscription_name": "test-subscription",
            "timeout_ms": 1000,
            "max_message_retries": 3,
            "auto_ack": False,
            "max_pending_async_requests": 1000,
        }
        values.update(overrides)
        return WorkloadDefinition(**values)

    return _make


@pytest_asyncio.fixture
async def db():
    connection = await init_db(":memory:")
    yield connection
    await connection.close()


@pytest.fixture
def store(db) -> ClusterResourceStore:
    return ClusterResourceStore(db)


@pytest.fixture
def instance_groups(db) -> InstanceGroupStore:
    return InstanceGroupStore(db)


@pytest.fixture
def locator(store, instance_groups) -> InstanceSetLocator:
    return InstanceSetLocator(store, instance_groups, instance_port=9094)


@pytest.fixture
def stub_client() -> StubInstanceClient:
    return StubInstanceClient()


@pytest.fixture
def deploy(store, instance_groups, identity, make_definition, bounds):
    """
    Reconcile a workload with ``replicas`` replicas and record the observed
    instances as ``{index: (phase, containers_ready)}``. Passing
    ``instances=None`` leaves the orchestrator with no group for it.
    """

    async def _deploy(
        replicas: int = 3,
        instances: dict[int, tuple[str, bool]] | None = None,
        service_name: str = SERVICE_NAME,
    ) -> ClusterResourceSpec:
        spec = to_cluster_spec(make_definition(parallelism=replicas), bounds)
        await store.create(StoredResource(identity=identity, spec=spec.to_dict()))
        if instances is not None:
            await instance_groups.record_group(identity, service_name)
            for index, (phase, ready) in instances.items():
                await instance_groups.record_instance(identity, index, phase, ready)
        return spec

    return _deploy


def all_running(replicas: int) -> dict[int, tuple[str, bool]]:
    return {index: ("Running", True) for index in range(replicas)}

"""Tests for create-or-update reconciliation."""

from __future__ import annotations

from dataclasses import replace

import pytest

from meshplane.control_plane.reconciler import (
    ACTION_CREATED,
    ACTION_UNCHANGED,
    ACTION_UPDATED,
    MANAGED_BY_LABEL,
    ResourceReconciler,
)
from meshplane.shared.errors import (
    AlreadyExistsError,
    ConflictError,
    ValidationError,
    WorkloadNotFoundError,
)
from meshplane.workloads.models import WorkloadIdentity
from meshplane.workloads.translator import to_cluster_spec


@pytest.fixture
def reconciler(store) -> ResourceReconciler:
    return ResourceReconciler(store)


@pytest.mark.asyncio
async def test_create_when_absent(reconciler, store, identity, make_definition, bounds) -> None:
    spec = to_cluster_spec(make_definition(), bounds)

    result = await reconciler.create_or_update(identity, spec)

    assert result.action == ACTION_CREATED
    assert result.changed is True
    assert result.resource_version == 1
    assert result.spec == spec
    stored = await store.get(identity)
    assert stored.labels[MANAGED_BY_LABEL] == "meshplane"


@pytest.mark.asyncio
async def test_identical_spec_is_not_rewritten(reconciler, store, identity, make_definition, bounds) -> None:
    spec = to_cluster_spec(make_definition(), bounds)
    await reconciler.create_or_update(identity, spec)

    again = await reconciler.create_or_update(identity, spec)

    assert again.action == ACTION_UNCHANGED
    assert again.changed is False
    assert again.resource_version == 1
    assert (await store.get(identity)).resource_version == 1


@pytest.mark.asyncio
async def test_update_preserves_labels_annotations_and_status(
    reconciler, store, identity, make_definition, bounds
) -> None:
    await reconciler.create_or_update(identity, to_cluster_spec(make_definition(), bounds))
    stored = await store.get(identity)
    stored = await store.update(
        replace(stored, labels={**stored.labels, "owner": "ops"}, annotations={"note": "keep"})
    )
    await store.update_status(identity, {"replicas": 2})

    result = await reconciler.create_or_update(
        identity, to_cluster_spec(make_definition(parallelism=4), bounds)
    )

    assert result.action == ACTION_UPDATED
    assert result.spec.replicas == 4
    assert result.spec.status == {"replicas": 2}
    after = await store.get(identity)
    assert after.labels["owner"] == "ops"
    assert after.annotations == {"note": "keep"}
    assert after.status == {"replicas": 2}
    assert after.resource_version == stored.resource_version + 2


@pytest.mark.asyncio
async def test_concurrent_write_surfaces_conflict(
    reconciler, store, identity, make_definition, bounds
) -> None:
    await reconciler.create_or_update(identity, to_cluster_spec(make_definition(), bounds))
    original_get = store.get
    raced = []

    async def get_then_race(ident):
        current = await original_get(ident)
        if not raced:
            raced.append(True)
            # Another writer lands between this read and the update.
            await store.update(replace(current, annotations={"raced": "yes"}))
        return current

    store.get = get_then_race

    with pytest.raises(ConflictError):
        await reconciler.create_or_update(
            identity, to_cluster_spec(make_definition(parallelism=3), bounds)
        )

    store.get = original_get
    assert (await store.get(identity)).annotations == {"raced": "yes"}


@pytest.mark.asyncio
async def test_lost_create_race_raises_already_exists(
    reconciler, store, identity, make_definition, bounds
) -> None:
    spec = to_cluster_spec(make_definition(), bounds)
    await reconciler.create_or_update(identity, spec)

    async def stale_get(ident):
        return None

    store.get = stale_get
    with pytest.raises(AlreadyExistsError):
        await reconciler.create_or_update(identity, spec)


@pytest.mark.asyncio
async def test_identity_mismatch_rejected(reconciler, identity, make_definition, bounds) -> None:
    spec = to_cluster_spec(make_definition(), bounds)
    other = WorkloadIdentity(identity.tenant, identity.namespace, "other-function")

    with pytest.raises(ValidationError):
        await reconciler.create_or_update(other, spec)


@pytest.mark.asyncio
async def test_spec_without_inputs_rejected(reconciler, identity, make_definition, bounds) -> None:
    spec = to_cluster_spec(make_definition(), bounds)
    spec.input.topics = []

    with pytest.raises(ValidationError):
        await reconciler.create_or_update(identity, spec)


@pytest.mark.asyncio
async def test_get_and_delete(reconciler, identity, make_definition, bounds) -> None:
    with pytest.raises(WorkloadNotFoundError):
        await reconciler.get(identity)

    spec = to_cluster_spec(make_definition(), bounds)
    await reconciler.create_or_update(identity, spec)
    assert await reconciler.get(identity) == spec
    assert await reconciler.list(identity.tenant) == [spec]

    await reconciler.delete(identity)
    with pytest.raises(WorkloadNotFoundError):
        await reconciler.delete(identity)

"""
meshplane Ledger - Cluster resource store.

Keyed by (tenant, namespace, name). Every write bumps ``resource_version``;
``update`` only succeeds when the caller presents the version it read, so
concurrent writers are detected rather than silently overwritten.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import aiosqlite

from meshplane.shared.errors import (
    AlreadyExistsError,
    ConflictError,
    StoreUnavailableError,
    WorkloadNotFoundError,
)
from meshplane.workloads.models import WorkloadIdentity

logger = logging.getLogger("meshplane.ledger.resources")


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _json_loads_dict(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        return value
    if not value:
        return {}
    data = json.loads(value)
    return data if isinstance(data, dict) else {}


@dataclass
class StoredResource:
    """A cluster resource object as held by the store."""
    identity: WorkloadIdentity
    spec: dict[str, Any] = field(default_factory=dict)
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    status: dict[str, Any] = field(default_factory=dict)
    resource_version: int = 0
    created_at: str | None = None
    updated_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.identity.to_dict(),
            "labels": self.labels,
            "annotations": self.annotations,
            "spec": self.spec,
            "status": self.status,
            "resource_version": self.resource_version,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_row(cls, row: aiosqlite.Row) -> "StoredResource":
        return cls(
            identity=WorkloadIdentity(row["tenant"], row["namespace"], row["name"]),
            labels=_json_loads_dict(row["labels"]),
            annotations=_json_loads_dict(row["annotations"]),
            spec=_json_loads_dict(row["spec"]),
            status=_json_loads_dict(row["status"]),
            resource_version=int(row["resource_version"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


class ClusterResourceStore:
    """SQLite-backed cluster resource store with optimistic concurrency."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self.db = db

    async def get(self, identity: WorkloadIdentity) -> StoredResource | None:
        try:
            async with self.db.execute(
                """
                SELECT * FROM cluster_resources
                WHERE tenant = ? AND namespace = ? AND name = ?
                """,
                (identity.tenant, identity.namespace, identity.name),
            ) as cur:
                row = await cur.fetchone()
        except aiosqlite.Error as exc:
            raise StoreUnavailableError("get", str(exc)) from exc
        return StoredResource.from_row(row) if row else None

    async def list(self, tenant: str, namespace: str | None = None) -> list[StoredResource]:
        query = "SELECT * FROM cluster_resources WHERE tenant = ?"
        params: tuple[Any, ...] = (tenant,)
        if namespace is not None:
            query += " AND namespace = ?"
            params += (namespace,)
        query += " ORDER BY namespace, name"
        try:
            async with self.db.execute(query, params) as cur:
                rows = await cur.fetchall()
        except aiosqlite.Error as exc:
            raise StoreUnavailableError("list", str(exc)) from exc
        return [StoredResource.from_row(row) for row in rows]

    async def create(self, resource: StoredResource) -> StoredResource:
        """Insert a new object. Raises AlreadyExistsError if the key is taken."""
        now = _iso_now()
        identity = resource.identity
        try:
            await self.db.execute(
                """
                INSERT INTO cluster_resources (
                    tenant, namespace, name, labels, annotations,
                    spec, status, resource_version, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, '{}', 1, ?, ?)
                """,
                (
                    identity.tenant,
                    identity.namespace,
                    identity.name,
                    json.dumps(resource.labels),
                    json.dumps(resource.annotations),
                    json.dumps(resource.spec),
                    now,
                    now,
                ),
            )
            await self.db.commit()
        except aiosqlite.IntegrityError as exc:
            await self.db.rollback()
            raise AlreadyExistsError(identity.fqn) from exc
        except aiosqlite.Error as exc:
            raise StoreUnavailableError("create", str(exc)) from exc

        logger.info("Created cluster resource %s", identity.fqn)
        return await self._require(identity, "create")

    async def update(self, resource: StoredResource) -> StoredResource:
        """
        Replace labels, annotations and spec of an existing object.

        The object's ``resource_version`` must match the stored one; status is
        never touched here.
        """
        identity = resource.identity
        try:
            cur = await self.db.execute(
                """
                UPDATE cluster_resources
                SET labels = ?, annotations = ?, spec = ?,
                    resource_version = resource_version + 1, updated_at = ?
                WHERE tenant = ? AND namespace = ? AND name = ? AND resource_version = ?
                """,
                (
                    json.dumps(resource.labels),
                    json.dumps(resource.annotations),
                    json.dumps(resource.spec),
                    _iso_now(),
                    identity.tenant,
                    identity.namespace,
                    identity.name,
                    resource.resource_version,
                ),
            )
            await self.db.commit()
        except aiosqlite.Error as exc:
            raise StoreUnavailableError("update", str(exc)) from exc

        if cur.rowcount == 0:
            await self._raise_write_miss(identity, resource.resource_version)
        logger.info(
            "Updated cluster resource %s (resource_version %s -> %s)",
            identity.fqn,
            resource.resource_version,
            resource.resource_version + 1,
        )
        return await self._require(identity, "update")

    async def update_status(
        self,
        identity: WorkloadIdentity,
        status: dict[str, Any],
        resource_version: int | None = None,
    ) -> StoredResource:
        """Write the status sub-object. Used by the orchestrator side only."""
        query = """
            UPDATE cluster_resources
            SET status = ?, resource_version = resource_version + 1, updated_at = ?
            WHERE tenant = ? AND namespace = ? AND name = ?
        """
        params: tuple[Any, ...] = (
            json.dumps(status),
            _iso_now(),
            identity.tenant,
            identity.namespace,
            identity.name,
        )
        if resource_version is not None:
            query += " AND resource_version = ?"
            params += (resource_version,)
        try:
            cur = await self.db.execute(query, params)
            await self.db.commit()
        except aiosqlite.Error as exc:
            raise StoreUnavailableError("update_status", str(exc)) from exc

        if cur.rowcount == 0:
            await self._raise_write_miss(identity, resource_version)
        return await self._require(identity, "update_status")

    async def delete(self, identity: WorkloadIdentity) -> bool:
        try:
            cur = await self.db.execute(
                "DELETE FROM cluster_resources WHERE tenant = ? AND namespace = ? AND name = ?",
                (identity.tenant, identity.namespace, identity.name),
            )
            await self.db.commit()
        except aiosqlite.Error as exc:
            raise StoreUnavailableError("delete", str(exc)) from exc
        return cur.rowcount > 0

    async def _require(self, identity: WorkloadIdentity, operation: str) -> StoredResource:
        stored = await self.get(identity)
        if stored is None:
            raise StoreUnavailableError(operation, f"{identity.fqn} vanished after write")
        return stored

    async def _raise_write_miss(self, identity: WorkloadIdentity, expected: int | None) -> None:
        current = await self.get(identity)
        if current is None:
            raise WorkloadNotFoundError(identity.fqn)
        raise ConflictError(identity.fqn, expected or 0, current.resource_version)

"""
meshplane Ledger - Observed instance groups.

The orchestrator's view of a workload's replicas: one group record per
workload and one row per replica index it has created. meshplane only reads
this state; the record_* methods exist for the orchestrator-side sync.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

import aiosqlite

from meshplane.shared.errors import StoreUnavailableError
from meshplane.workloads.models import WorkloadIdentity


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class ObservedInstance:
    instance_index: int
    phase: str
    containers_ready: bool = False
    address: str | None = None


@dataclass
class ObservedGroup:
    identity: WorkloadIdentity
    service_name: str = ""
    instances: dict[int, ObservedInstance] = field(default_factory=dict)


class InstanceGroupStore:
    """SQLite-backed orchestrator instance-group state."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self.db = db

    async def record_group(self, identity: WorkloadIdentity, service_name: str = "") -> None:
        try:
            await self.db.execute(
                """
                INSERT INTO instance_groups (tenant, namespace, name, service_name, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT (tenant, namespace, name)
                DO UPDATE SET service_name = excluded.service_name, updated_at = excluded.updated_at
                """,
                (identity.tenant, identity.namespace, identity.name, service_name, _iso_now()),
            )
            await self.db.commit()
        except aiosqlite.Error as exc:
            raise StoreUnavailableError("record_group", str(exc)) from exc

    async def record_instance(
        self,
        identity: WorkloadIdentity,
        instance_index: int,
        phase: str,
        containers_ready: bool = False,
        address: str | None = None,
    ) -> None:
        try:
            await self.db.execute(
                """
                INSERT INTO instance_groups (tenant, namespace, name, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT (tenant, namespace, name) DO NOTHING
                """,
                (identity.tenant, identity.namespace, identity.name, _iso_now()),
            )
            await self.db.execute(
                """
                INSERT INTO instance_pods (
                    tenant, namespace, name, instance_index,
                    phase, containers_ready, address, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (tenant, namespace, name, instance_index)
                DO UPDATE SET phase = excluded.phase,
                              containers_ready = excluded.containers_ready,
                              address = excluded.address,
                              updated_at = excluded.updated_at
                """,
                (
                    identity.tenant,
                    identity.namespace,
                    identity.name,
                    int(instance_index),
                    phase,
                    1 if containers_ready else 0,
                    address,
                    _iso_now(),
                ),
            )
            await self.db.commit()
        except aiosqlite.Error as exc:
            raise StoreUnavailableError("record_instance", str(exc)) from exc

    async def get_group(self, identity: WorkloadIdentity) -> ObservedGroup | None:
        """Return the observed group, or None if the orchestrator has not created one."""
        key = (identity.tenant, identity.namespace, identity.name)
        try:
            async with self.db.execute(
                "SELECT service_name FROM instance_groups WHERE tenant = ? AND namespace = ? AND name = ?",
                key,
            ) as cur:
                group_row = await cur.fetchone()
            if group_row is None:
                return None
            async with self.db.execute(
                """
                SELECT instance_index, phase, containers_ready, address FROM instance_pods
                WHERE tenant = ? AND namespace = ? AND name = ?
                ORDER BY instance_index
                """,
                key,
            ) as cur:
                pod_rows = await cur.fetchall()
        except aiosqlite.Error as exc:
            raise StoreUnavailableError("get_group", str(exc)) from exc

        return ObservedGroup(
            identity=identity,
            service_name=group_row["service_name"] or "",
            instances={
                int(row["instance_index"]): ObservedInstance(
                    instance_index=int(row["instance_index"]),
                    phase=row["phase"],
                    containers_ready=bool(row["containers_ready"]),
                    address=row["address"],
                )
                for row in pod_rows
            },
        )

    async def clear(self, identity: WorkloadIdentity) -> None:
        key = (identity.tenant, identity.namespace, identity.name)
        try:
            await self.db.execute(
                "DELETE FROM instance_pods WHERE tenant = ? AND namespace = ? AND name = ?", key
            )
            await self.db.execute(
                "DELETE FROM instance_groups WHERE tenant = ? AND namespace = ? AND name = ?", key
            )
            await self.db.commit()
        except aiosqlite.Error as exc:
            raise StoreUnavailableError("clear", str(exc)) from exc

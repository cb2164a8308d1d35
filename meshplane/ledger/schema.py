"""
meshplane ledger schema.

Persistence:
- cluster_resources (declarative workload resources, optimistic concurrency
  through resource_version)
- instance_groups / instance_pods (orchestrator-observed replica state)
"""

from __future__ import annotations

from pathlib import Path

import aiosqlite


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS cluster_resources (
    tenant            TEXT NOT NULL,
    namespace         TEXT NOT NULL,
    name              TEXT NOT NULL,
    labels            TEXT NOT NULL DEFAULT '{}',
    annotations       TEXT NOT NULL DEFAULT '{}',
    spec              TEXT NOT NULL DEFAULT '{}',
    status            TEXT NOT NULL DEFAULT '{}',
    resource_version  INTEGER NOT NULL DEFAULT 1,
    created_at        TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at        TEXT NOT NULL DEFAULT (datetime('now')),
    PRIMARY KEY (tenant, namespace, name)
);

CREATE TABLE IF NOT EXISTS instance_groups (
    tenant            TEXT NOT NULL,
    namespace         TEXT NOT NULL,
    name              TEXT NOT NULL,
    service_name      TEXT NOT NULL DEFAULT '',
    updated_at        TEXT NOT NULL DEFAULT (datetime('now')),
    PRIMARY KEY (tenant, namespace, name)
);

CREATE TABLE IF NOT EXISTS instance_pods (
    tenant            TEXT NOT NULL,
    namespace         TEXT NOT NULL,
    name              TEXT NOT NULL,
    instance_index    INTEGER NOT NULL,
    phase             TEXT NOT NULL DEFAULT 'Pending',
    containers_ready  INTEGER NOT NULL DEFAULT 0,
    address           TEXT,
    updated_at        TEXT NOT NULL DEFAULT (datetime('now')),
    PRIMARY KEY (tenant, namespace, name, instance_index)
);

CREATE INDEX IF NOT EXISTS idx_cluster_resources_ns ON cluster_resources(tenant, namespace);
CREATE INDEX IF NOT EXISTS idx_instance_pods_group ON instance_pods(tenant, namespace, name);
"""


async def init_db(db_path: str) -> aiosqlite.Connection:
    """Open (or create) the database and ensure ledger tables exist."""
    if db_path != ":memory:":
        Path(db_path).expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)

    db = await aiosqlite.connect(db_path)
    db.row_factory = aiosqlite.Row
    await db.executescript(SCHEMA_SQL)
    await db.commit()
    return db

"""
meshplane control-plane context.

Everything an operation needs (store handles, instance query client,
resource bounds, cluster defaults and timeouts) is held in one value that is
built once at process start and passed explicitly to the components.
"""

from __future__ import annotations

from dataclasses import dataclass

import aiosqlite

from meshplane.ledger.instance_groups import InstanceGroupStore
from meshplane.ledger.resource_store import ClusterResourceStore
from meshplane.ledger.schema import init_db
from meshplane.shared import settings
from meshplane.shared.errors import ConfigurationError
from meshplane.shared.logging import ROOT_LOGGER, get_logger
from meshplane.workloads.cluster_spec import ResourceBounds
from meshplane.workloads.models import Resources
from meshplane.workloads.quantity import parse_quantity

from .instance_client import InstanceClient


def _optional_quantity(raw: str | None, name: str, integral: bool) -> float | int | None:
    if raw is None or raw == "":
        return None
    try:
        value = parse_quantity(raw)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid default {name}: {raw!r}") from exc
    return int(value) if integral else value


def resource_bounds_from_settings() -> ResourceBounds:
    """Build resource bounds from the process settings."""
    default = Resources(
        cpu=_optional_quantity(settings.DEFAULT_CPU, "cpu", integral=False),
        ram=_optional_quantity(settings.DEFAULT_RAM, "ram", integral=True),
        disk=_optional_quantity(settings.DEFAULT_DISK, "disk", integral=True),
    )
    return ResourceBounds(
        min=Resources(cpu=settings.MIN_CPU, ram=settings.MIN_RAM, disk=settings.MIN_DISK),
        max=Resources(cpu=settings.MAX_CPU, ram=settings.MAX_RAM, disk=settings.MAX_DISK),
        default=default if default != Resources() else None,
    )


@dataclass
class ControlPlaneContext:
    """Explicit dependencies and configuration shared by all operations."""
    store: ClusterResourceStore
    instance_groups: InstanceGroupStore
    instance_client: InstanceClient
    bounds: ResourceBounds
    cluster_name: str = ""
    service_account: str = ""
    instance_port: int = 9094
    instance_query_timeout: float = 5.0
    aggregate_deadline: float = 10.0
    db: aiosqlite.Connection | None = None

    @classmethod
    async def create(cls, db_path: str | None = None) -> "ControlPlaneContext":
        """
        Build the context from settings.

        Args:
            db_path: Ledger database path (defaults to MESHPLANE_DB_PATH)
        """
        logger = get_logger(ROOT_LOGGER)
        if settings.INSTANCE_QUERY_TIMEOUT <= 0 or settings.AGGREGATE_DEADLINE <= 0:
            raise ConfigurationError("Instance query timeout and aggregate deadline must be positive")

        bounds = resource_bounds_from_settings()
        db = await init_db(db_path or settings.DB_PATH)
        logger.info(
            "Control-plane context ready (db=%s, cluster=%s)",
            db_path or settings.DB_PATH,
            settings.CLUSTER_NAME or "<unset>",
        )
        return cls(
            store=ClusterResourceStore(db),
            instance_groups=InstanceGroupStore(db),
            instance_client=InstanceClient(default_timeout_seconds=settings.INSTANCE_QUERY_TIMEOUT),
            bounds=bounds,
            cluster_name=settings.CLUSTER_NAME,
            service_account=settings.SERVICE_ACCOUNT,
            instance_port=settings.INSTANCE_PORT,
            instance_query_timeout=settings.INSTANCE_QUERY_TIMEOUT,
            aggregate_deadline=settings.AGGREGATE_DEADLINE,
            db=db,
        )

    async def close(self) -> None:
        if self.db is not None:
            await self.db.close()
            self.db = None

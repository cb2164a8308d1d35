"""
meshplane — Shared Settings

Process-start configuration, read from environment variables (and a .env file
when present) with sensible defaults. Operations never read this module;
``ControlPlaneContext.create`` turns it into the explicit context value.
"""

import os
from typing import Optional

from dotenv import load_dotenv

from meshplane.shared.errors import ConfigurationError
from meshplane.workloads.quantity import parse_quantity

load_dotenv()


# =============================================================================
# Project Identity
# =============================================================================
PROJECT_NAME: str = "meshplane"
VERSION: str = "0.4.0"


# =============================================================================
# Storage
# =============================================================================
DB_PATH: str = os.environ.get("MESHPLANE_DB_PATH", "data/meshplane.db")


# =============================================================================
# Cluster Defaults
# =============================================================================
CLUSTER_NAME: str = os.environ.get("MESHPLANE_CLUSTER_NAME", "")
SERVICE_ACCOUNT: str = os.environ.get("MESHPLANE_SERVICE_ACCOUNT", "")
INSTANCE_PORT: int = int(os.environ.get("MESHPLANE_INSTANCE_PORT", "9094"))


# =============================================================================
# Timeouts
# =============================================================================
INSTANCE_QUERY_TIMEOUT: float = float(os.environ.get("MESHPLANE_INSTANCE_QUERY_TIMEOUT", "5"))
AGGREGATE_DEADLINE: float = float(os.environ.get("MESHPLANE_AGGREGATE_DEADLINE", "10"))


# =============================================================================
# Resource Bounds
# =============================================================================
# cpu in cores, ram and disk in bytes; quantity strings such as "500m" or "2Gi" are accepted
def env_quantity(name: str, default: str, integral: bool = False) -> float | int:
    raw = os.environ.get(name, default)
    try:
        value = parse_quantity(raw)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid {name}: {raw!r}") from exc
    return int(value) if integral else value


MIN_CPU: float = env_quantity("MESHPLANE_MIN_CPU", "0.1")
MIN_RAM: int = env_quantity("MESHPLANE_MIN_RAM", "128Mi", integral=True)
MIN_DISK: int = env_quantity("MESHPLANE_MIN_DISK", "1Gi", integral=True)

MAX_CPU: float = env_quantity("MESHPLANE_MAX_CPU", "16")
MAX_RAM: int = env_quantity("MESHPLANE_MAX_RAM", "32Gi", integral=True)
MAX_DISK: int = env_quantity("MESHPLANE_MAX_DISK", "100Gi", integral=True)

DEFAULT_CPU: Optional[str] = os.environ.get("MESHPLANE_DEFAULT_CPU")
DEFAULT_RAM: Optional[str] = os.environ.get("MESHPLANE_DEFAULT_RAM")
DEFAULT_DISK: Optional[str] = os.environ.get("MESHPLANE_DEFAULT_DISK")


# =============================================================================
# Logging
# =============================================================================
LOG_LEVEL: str = os.environ.get("MESHPLANE_LOG_LEVEL", "INFO")
LOG_DIR: str = os.environ.get("MESHPLANE_LOG_DIR", "logs")

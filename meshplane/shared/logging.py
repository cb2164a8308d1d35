"""
meshplane — Shared Logging Configuration

Handlers live on the ``meshplane`` root logger only. Components log through
``logging.getLogger("meshplane.<area>.<component>")`` and propagate to it.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from .settings import LOG_DIR, LOG_LEVEL


# =============================================================================
# Log Format
# =============================================================================
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

ROOT_LOGGER = "meshplane"


def _level(level: Optional[str]) -> int:
    return getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO)


# =============================================================================
# Setup
# =============================================================================
def configure_logging(
    level: Optional[str] = None,
    log_file: Optional[str] = None,
    log_dir: Optional[str] = None,
    max_bytes: int = 10_000_000,  # 10MB
    backup_count: int = 5,
) -> logging.Logger:
    """
    Attach the console handler (and optionally a rotating file) to the root logger.

    Safe to call more than once: the console handler is added only the first
    time, and a file handler only once per path.

    Args:
        level: Log level name; defaults to MESHPLANE_LOG_LEVEL
        log_file: File name to write under ``log_dir`` (no file logging if None)
        log_dir: Directory for ``log_file``; defaults to MESHPLANE_LOG_DIR

    Returns:
        The configured ``meshplane`` logger
    """
    root = logging.getLogger(ROOT_LOGGER)
    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)
    configured = any(getattr(h, "_meshplane_console", False) for h in root.handlers)
    if level is not None or not configured:
        root.setLevel(_level(level))

    if not configured:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        console_handler._meshplane_console = True
        root.addHandler(console_handler)

    if log_file:
        log_path = Path(log_dir or LOG_DIR)
        log_path.mkdir(parents=True, exist_ok=True)
        target = (log_path / log_file).resolve()
        existing = {
            Path(h.baseFilename) for h in root.handlers if isinstance(h, RotatingFileHandler)
        }
        if target not in existing:
            file_handler = RotatingFileHandler(target, maxBytes=max_bytes, backupCount=backup_count)
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)

    return root


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """Logger under the ``meshplane`` hierarchy, with the root configured."""
    configure_logging()
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)

"""
Instance runtime query client.

Each running replica serves ``GET /status`` and ``GET /metrics`` on its own
address. Calls are bounded by the caller-supplied timeout.
"""

from __future__ import annotations

import asyncio
from typing import Any

import aiohttp

from meshplane.shared.errors import InstanceUnreachableError, MalformedPayloadError


class InstanceClient:
    """HTTP client for per-instance status and metrics queries."""

    def __init__(self, scheme: str = "http", default_timeout_seconds: float = 5.0) -> None:
        self.scheme = scheme
        self.default_timeout_seconds = default_timeout_seconds

    def _url(self, address: str, path: str) -> str:
        base = address if "://" in address else f"{self.scheme}://{address}"
        return f"{base.rstrip('/')}/{path.lstrip('/')}"

    async def get_status(self, address: str, timeout: float | None = None) -> dict[str, Any]:
        return await self._get_json(address, "status", timeout)

    async def get_metrics(self, address: str, timeout: float | None = None) -> dict[str, Any]:
        return await self._get_json(address, "metrics", timeout)

    async def _get_json(self, address: str, path: str, timeout: float | None) -> dict[str, Any]:
        total = timeout or self.default_timeout_seconds
        client_timeout = aiohttp.ClientTimeout(total=total)
        try:
            async with aiohttp.ClientSession(timeout=client_timeout) as session:
                async with session.get(self._url(address, path)) as resp:
                    resp.raise_for_status()
                    data = await resp.json(content_type=None)
        except asyncio.TimeoutError as exc:
            raise InstanceUnreachableError(address, f"timed out after {total}s") from exc
        except aiohttp.ClientError as exc:
            raise InstanceUnreachableError(address, str(exc) or exc.__class__.__name__) from exc
        except ValueError as exc:
            raise MalformedPayloadError(address, f"invalid JSON: {exc}") from exc

        if not isinstance(data, dict):
            raise MalformedPayloadError(address, f"expected an object, got {type(data).__name__}")
        return data

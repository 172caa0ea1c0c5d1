"""Connectivity probes.

``HttpConnectivityProbe`` treats the backend as reachable when a HEAD request
to the base URL gets *any* HTTP response, including 4xx/5xx: the goal is to
know whether a transport works, not whether the server is healthy.
``StaticConnectivityProbe`` is for hosts that already know their link state
(e.g. from a network manager callback).
"""

from __future__ import annotations

import logging

import httpx

from src.coverage_sync.base import ConnectivityProbe

logger = logging.getLogger("coverage_sync.adapters.connectivity")


class HttpConnectivityProbe(ConnectivityProbe):
    """Reachability check by a lightweight HEAD request."""

    def __init__(
        self,
        url: str,
        timeout_seconds: float = 5.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = url
        self._timeout = timeout_seconds
        self._http_client = http_client

    async def is_online(self) -> bool:
        try:
            if self._http_client:
                await self._http_client.head(self._url, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    await client.head(self._url)
        except httpx.HTTPError as exc:
            logger.info("Connectivity probe failed for %s: %s", self._url, exc)
            return False
        return True


class StaticConnectivityProbe(ConnectivityProbe):
    """Probe whose answer is set by the host."""

    def __init__(self, online: bool = True) -> None:
        self.online = online

    async def is_online(self) -> bool:
        return self.online

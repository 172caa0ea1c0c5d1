"""API key lifecycle: cache lookup, one-shot fetch, invalidation.

The key is cached in an injected :class:`KeyValueStore` under ``api_key`` and
reused across runs until it is explicitly invalidated.  A fetch is a single
network round trip; failures are reported as ``None`` and never retried here.
"""

from __future__ import annotations

import logging
import uuid

from src.coverage_sync.base import (
    Credential,
    CredentialError,
    KeyValueStore,
    RemoteSyncClient,
)

logger = logging.getLogger("coverage_sync.credentials")

API_KEY_PREF = "api_key"
DEVICE_ID_PREF = "device_id"


def mask_credential(credential: str | None) -> str:
    """Return a log-safe form of a credential (first 4 characters only)."""
    if not credential:
        return "<none>"
    return f"{credential[:4]}…"


class CredentialManager:
    """Caches and lazily fetches the bearer credential."""

    def __init__(self, client: RemoteSyncClient, store: KeyValueStore) -> None:
        self._client = client
        self._store = store

    async def get_cached(self) -> Credential | None:
        """Local lookup only; no network I/O."""
        return await self._store.get(API_KEY_PREF)

    async def fetch(self, device_id: str) -> Credential | None:
        """Request a new key and cache it on success.

        Args:
            device_id: Stable per-install identifier.

        Returns:
            The new credential, or ``None`` on any failure.
        """
        if not device_id or not device_id.strip():
            logger.error("Device id is empty; cannot fetch API key")
            return None

        try:
            credential = await self._client.fetch_credential(device_id)
        except CredentialError as exc:
            logger.warning("API key fetch failed: %s", exc)
            return None

        await self._store.set(API_KEY_PREF, credential)
        logger.info("API key fetched and stored (%s)", mask_credential(credential))
        return credential

    async def resolve(self, device_id: str) -> Credential | None:
        """Return the cached credential, fetching one if the cache is empty."""
        cached = await self.get_cached()
        if cached is not None:
            logger.debug("API key found in cache")
            return cached
        logger.info("API key not cached; fetching from server")
        return await self.fetch(device_id)

    async def invalidate(self) -> None:
        """Forget the cached credential so the next resolve fetches a new one."""
        await self._store.delete(API_KEY_PREF)
        logger.info("Cached API key invalidated")


async def get_or_create_device_id(store: KeyValueStore, configured: str | None = None) -> str:
    """Return the stable device identity.

    An explicitly configured id wins.  Otherwise a UUID is generated on first
    use and persisted so it survives restarts.

    Args:
        store:      Preferences store.
        configured: Id supplied by the host environment, if any.

    Returns:
        The device id.
    """
    if configured:
        return configured
    existing = await store.get(DEVICE_ID_PREF)
    if existing:
        return existing
    device_id = uuid.uuid4().hex
    await store.set(DEVICE_ID_PREF, device_id)
    logger.info("Generated new device id %s", device_id)
    return device_id

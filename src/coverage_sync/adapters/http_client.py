"""HTTP implementation of the remote sync contract.

Endpoints used (relative to the configured base URL):
    POST /api/get-key    — body ``{"unique_id": <device id>}``;
                           success = 2xx JSON with an ``api_key`` string
    POST /api/send-data  — body = record fields + ``api_key``;
                           success = any 2xx

Both calls are single attempts.  Timeout policy belongs to the injected (or
per-call) ``httpx.AsyncClient``.
"""

from __future__ import annotations

import logging

import httpx

from src.coverage_sync.base import (
    Credential,
    CredentialError,
    MeasurementRecord,
    RemoteSyncClient,
    SubmissionError,
    validate_record,
)

logger = logging.getLogger("coverage_sync.adapters.http")

API_GET_KEY_PATH = "/api/get-key"
API_SEND_DATA_PATH = "/api/send-data"
API_KEY_FIELD = "api_key"


class HttpSyncClient(RemoteSyncClient):
    """Talks to the coverage backend over JSON/HTTP."""

    def __init__(
        self,
        base_url: str,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        """Initialize the client.

        Args:
            base_url:        Backend root, e.g. ``https://coverage.example.org``.
            http_client:     Optional pre-configured httpx client (for testing
                             or connection reuse).
            timeout_seconds: Timeout used when no client is injected.
        """
        self._base_url = base_url.rstrip("/")
        self._http_client = http_client
        self._timeout = timeout_seconds

    async def _post_json(self, path: str, body: dict) -> httpx.Response:
        url = f"{self._base_url}{path}"
        if self._http_client:
            return await self._http_client.post(url, json=body)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.post(url, json=body)

    async def fetch_credential(self, device_id: str) -> Credential:
        try:
            response = await self._post_json(API_GET_KEY_PATH, {"unique_id": device_id})
        except httpx.HTTPError as exc:
            raise CredentialError(f"Transport error fetching API key: {exc}") from exc

        if not response.is_success:
            logger.error(
                "Failed to get API key. Code: %s, response: %s",
                response.status_code, response.text[:200],
            )
            raise CredentialError(f"Key endpoint returned HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as exc:
            raise CredentialError(f"Key endpoint returned invalid JSON: {exc}") from exc

        api_key = data.get(API_KEY_FIELD) if isinstance(data, dict) else None
        if not isinstance(api_key, str):
            logger.error("API key not found in response: %s", response.text[:200])
            raise CredentialError("Key endpoint response has no 'api_key' field")
        return api_key

    async def submit_record(
        self, credential: Credential, record: MeasurementRecord
    ) -> None:
        try:
            validate_record(record)
        except ValueError as exc:
            raise SubmissionError(f"Record cannot be encoded: {exc}") from exc
        body = dict(record)
        body[API_KEY_FIELD] = credential
        try:
            response = await self._post_json(API_SEND_DATA_PATH, body)
        except httpx.HTTPError as exc:
            raise SubmissionError(f"Transport error sending data: {exc}") from exc

        if not response.is_success:
            logger.error(
                "Failed to send data. Code: %s, response: %s",
                response.status_code, response.text[:200],
            )
            raise SubmissionError(
                f"Send endpoint returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        logger.debug("Data sent successfully (HTTP %s)", response.status_code)

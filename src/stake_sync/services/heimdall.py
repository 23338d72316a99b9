"""Client for the Heimdall REST API."""

from __future__ import annotations

import asyncio
import logging

import httpx
from pydantic import ValidationError

from stake_sync.schemas.heimdall import ValidatorResponse
from stake_sync.services.errors import LedgerQueryError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


class HeimdallClient:
    """Reads validator state committed on Heimdall."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.base_url,
                    timeout=httpx.Timeout(self.timeout_seconds),
                    transport=self._transport,
                )
        return self._client

    async def fetch_validator(self, validator_id: int) -> ValidatorResponse:
        """Fetch and decode ``/staking/validator/{id}``.

        The body is decoded whatever the status code, because Heimdall reports
        unknown validators through the ``error`` field of the envelope.
        """
        client = await self._ensure_client()
        try:
            response = await client.get(f"/staking/validator/{int(validator_id)}")
        except httpx.HTTPError as exc:
            raise LedgerQueryError(f"Heimdall request failed: {exc}") from exc

        try:
            return ValidatorResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise LedgerQueryError(
                f"Unexpected Heimdall response ({response.status_code}) "
                f"for validator {validator_id}: {exc}"
            ) from exc

    async def fetch_validator_nonce(self, validator_id: int) -> int | None:
        """Return the validator's committed nonce, or None if Heimdall does not know it."""

        payload = await self.fetch_validator(validator_id)
        if not payload.validator_found:
            logger.debug("Heimdall has no validator %d: %s", validator_id, payload.error)
            return None
        if payload.result is None:
            raise LedgerQueryError(f"Heimdall returned no result for validator {validator_id}")
        return payload.result.nonce

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

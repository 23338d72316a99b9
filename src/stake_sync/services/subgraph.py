"""Client for the staking subgraph.

This module provides the SubgraphClient class that reads ``StakeUpdate``
events for a validator from a The Graph style GraphQL endpoint. It is the
source of truth for the nonce a validator has reached on the origin chain.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx
from pydantic import ValidationError

from stake_sync.schemas.subgraph import StakeUpdate, StakeUpdateNonce, StakeUpdatesEnvelope
from stake_sync.services.errors import LedgerQueryError, StakeUpdateNotFoundError

# Configure logger for this module
logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0
HTTP_BAD_REQUEST = 400


def latest_nonce_query(validator_id: int) -> str:
    """Return the query for the highest-nonce stake update of a validator."""
    return (
        "{\n"
        f"  stakeUpdates(first: 1, orderBy: nonce, orderDirection: desc, "
        f"where: {{validatorId: {int(validator_id)}}}) {{\n"
        "    nonce\n"
        "  }\n"
        "}\n"
    )


def stake_update_query(validator_id: int, nonce: int) -> str:
    """Return the query for the stake update with an exact (validator, nonce)."""
    return (
        "{\n"
        f"  stakeUpdates(where: {{validatorId: {int(validator_id)}, nonce: {int(nonce)}}}) {{\n"
        "    id\n"
        "    validatorId\n"
        "    totalStaked\n"
        "    block\n"
        "    nonce\n"
        "    transactionHash\n"
        "    logIndex\n"
        "  }\n"
        "}\n"
    )


class SubgraphClient:
    """HTTP client wrapper for the staking subgraph."""

    def __init__(
        self,
        url: str,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    timeout=httpx.Timeout(self.timeout_seconds),
                    transport=self._transport,
                )
        return self._client

    async def query(self, query: str) -> dict[str, Any]:
        """POST a GraphQL query and return the decoded JSON body.

        Raises:
            LedgerQueryError: On network failure, an error status, a body that
                is not a JSON object, or a non-empty GraphQL ``errors`` list.
        """
        client = await self._ensure_client()
        try:
            response = await client.post(self.url, json={"query": query})
        except httpx.HTTPError as exc:
            raise LedgerQueryError(f"Subgraph request failed: {exc}") from exc

        if response.status_code >= HTTP_BAD_REQUEST:
            raise LedgerQueryError(f"Subgraph responded with {response.status_code}")

        try:
            body = response.json()
        except ValueError as exc:
            raise LedgerQueryError(f"Subgraph returned invalid JSON: {exc}") from exc

        if not isinstance(body, dict):
            raise LedgerQueryError("Subgraph returned a non-object JSON body")

        errors = body.get("errors")
        if errors:
            raise LedgerQueryError(f"Subgraph query failed: {errors}")

        return body

    async def _stake_update_rows(self, query: str) -> list[dict[str, Any]]:
        body = await self.query(query)
        try:
            envelope = StakeUpdatesEnvelope.model_validate(body)
        except ValidationError as exc:
            raise LedgerQueryError(f"Unexpected subgraph response shape: {exc}") from exc
        return envelope.rows

    async def fetch_latest_nonce(self, validator_id: int) -> int:
        """Return the highest stake update nonce for the validator, or 0 if none exist."""

        rows = await self._stake_update_rows(latest_nonce_query(validator_id))
        if not rows:
            logger.debug("No stake updates indexed for validator %d", validator_id)
            return 0

        try:
            latest = StakeUpdateNonce.model_validate(rows[0])
            return int(latest.nonce, 10)
        except (ValidationError, ValueError) as exc:
            raise LedgerQueryError(
                f"Invalid nonce in subgraph response for validator {validator_id}: {exc}"
            ) from exc

    async def fetch_stake_update(self, validator_id: int, nonce: int) -> StakeUpdate:
        """Return the single stake update with the given validator id and nonce.

        Raises:
            StakeUpdateNotFoundError: If no stake update matches.
            LedgerQueryError: If more than one matches or the record is malformed.
        """

        rows = await self._stake_update_rows(stake_update_query(validator_id, nonce))
        if not rows:
            raise StakeUpdateNotFoundError(
                f"No stake update for validator {validator_id} with nonce {nonce}"
            )
        if len(rows) > 1:
            raise LedgerQueryError(
                f"Expected one stake update for validator {validator_id} nonce {nonce}, "
                f"got {len(rows)}"
            )

        try:
            return StakeUpdate.model_validate(rows[0])
        except ValidationError as exc:
            raise LedgerQueryError(f"Malformed stake update record: {exc}") from exc

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

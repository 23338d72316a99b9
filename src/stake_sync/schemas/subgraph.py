# src/stake_sync/schemas/subgraph.py
"""Pydantic schemas for the staking subgraph responses."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class StakeUpdate(BaseModel):
    """A single ``StakeUpdate`` event indexed from the staking contract.

    Every field keeps the textual value delivered by the subgraph. Big integers
    (``totalStaked``) are never converted so nothing is lost on the way to the
    signer.
    """

    id: str = ""
    validator_id: str = Field(..., alias="validatorId")
    total_staked: str = Field(..., alias="totalStaked")
    block: str
    nonce: str
    transaction_hash: str = Field(..., alias="transactionHash")
    log_index: str = Field(..., alias="logIndex")

    model_config = ConfigDict(frozen=True, populate_by_name=True, coerce_numbers_to_str=True)


class StakeUpdateNonce(BaseModel):
    """Projection used by the latest-nonce query."""

    nonce: str

    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)


class StakeUpdatesData(BaseModel):
    stake_updates: list[dict[str, Any]] = Field(..., alias="stakeUpdates")

    model_config = ConfigDict(populate_by_name=True)


class GraphQLError(BaseModel):
    message: str = ""

    model_config = ConfigDict(extra="allow")


class StakeUpdatesEnvelope(BaseModel):
    """Response envelope: ``{"data": {"stakeUpdates": [...]}, "errors": [...]}``."""

    data: StakeUpdatesData
    errors: list[GraphQLError] | None = None

    @property
    def rows(self) -> list[dict[str, Any]]:
        return self.data.stake_updates

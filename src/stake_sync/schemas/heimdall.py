# src/stake_sync/schemas/heimdall.py
"""Pydantic schemas for Heimdall REST responses."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ValidatorResult(BaseModel):
    """Validator record as committed on Heimdall.

    ``nonce`` is required; a record without it is malformed. The remaining
    fields are kept for log context and default to empty values when
    Heimdall omits them.
    """

    id: int = Field(default=0, alias="ID")
    start_epoch: int = Field(default=0, alias="startEpoch")
    end_epoch: int = Field(default=0, alias="endEpoch")
    nonce: int
    power: int = 0
    pub_key: str = Field(default="", alias="pubKey")
    signer: str = ""
    last_updated: str = ""
    jailed: bool = False
    accum: int = 0

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ValidatorResponse(BaseModel):
    """Envelope for ``GET /staking/validator/{id}``.

    A non-empty ``error`` means Heimdall does not know the validator.
    """

    height: str = ""
    result: ValidatorResult | None = None
    error: str = ""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    @property
    def validator_found(self) -> bool:
        return not self.error

"""Nonce comparison and event age policy.

Pure functions only; the poll loop feeds them values fetched from the
ledgers and acts on what they return.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

# Heimdall has no validator record yet; no nonce can satisfy it.
VALIDATOR_NOT_FOUND_NONCE = -1

# Stake updates younger than this may still be reorganised away.
MIN_EVENT_AGE = timedelta(minutes=10)


@dataclass(frozen=True)
class NoOp:
    """Heimdall is level with (or ahead of) the origin chain."""


@dataclass(frozen=True)
class CorrectWithNonce:
    """Heimdall lags; replay the stake update carrying ``nonce``."""

    nonce: int


Action = NoOp | CorrectWithNonce


def effective_destination_nonce(nonce: int | None) -> int:
    """Map the not-found sentinel from Heimdall to a comparable nonce."""
    return VALIDATOR_NOT_FOUND_NONCE if nonce is None else nonce


def decide(source_nonce: int, destination_nonce: int) -> Action:
    """Decide the next step for one iteration.

    Only the stake update directly after the destination nonce is ever
    targeted, however large the gap; later iterations close the rest.
    """
    if source_nonce > destination_nonce:
        return CorrectWithNonce(destination_nonce + 1)
    return NoOp()


def is_old_enough(
    block_time: datetime,
    now: datetime,
    minimum_age: timedelta = MIN_EVENT_AGE,
) -> bool:
    """Return True once ``minimum_age`` has passed since ``block_time``, boundary included."""
    return now - block_time >= minimum_age

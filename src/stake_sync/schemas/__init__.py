# src/stake_sync/schemas/__init__.py
"""Response schemas for the external data sources."""

from .heimdall import ValidatorResponse, ValidatorResult
from .subgraph import StakeUpdate, StakeUpdateNonce, StakeUpdatesEnvelope

__all__ = [
    "StakeUpdate",
    "StakeUpdateNonce",
    "StakeUpdatesEnvelope",
    "ValidatorResponse",
    "ValidatorResult",
]

"""Exception hierarchy shared by the reconciliation services."""

from __future__ import annotations


class SyncError(RuntimeError):
    """Base exception for failures inside one reconciliation iteration.

    The poll loop catches this at the iteration boundary; it never
    terminates the process once the loop is running.
    """


class LedgerQueryError(SyncError):
    """Raised when the subgraph or Heimdall cannot be queried or decoded."""


class StakeUpdateNotFoundError(LedgerQueryError):
    """Raised when the subgraph has no stake update for a (validator, nonce) pair."""


class BlockTimeError(SyncError):
    """Raised when the commit time of an origin block cannot be resolved."""


class ChainConnectionError(SyncError):
    """Raised when the origin chain RPC endpoint is unreachable at startup."""


class SubmissionError(SyncError):
    """Raised when the external signer rejects or fails to run a correction."""

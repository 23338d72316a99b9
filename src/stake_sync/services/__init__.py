# src/stake_sync/services/__init__.py
"""Reconciliation services for the stake sync agent."""

from .chain import BlockTimeResolver
from .heimdall import HeimdallClient
from .subgraph import SubgraphClient
from .submitter import CorrectionSubmitter, HeimdallCliSubmitter
from .sync_worker import IterationOutcome, NonceSyncWorker

__all__ = [
    "BlockTimeResolver",
    "CorrectionSubmitter",
    "HeimdallCliSubmitter",
    "HeimdallClient",
    "IterationOutcome",
    "NonceSyncWorker",
    "SubgraphClient",
]

"""Poll loop that keeps a validator's Heimdall nonce level with Ethereum.

This module provides the NonceSyncWorker class. Each iteration it compares
the validator's latest stake update nonce on the origin chain (through the
subgraph) with the nonce committed on Heimdall and, when Heimdall lags,
replays the next missing stake update through the external signer.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

import httpx

from stake_sync.core.settings import LoopTiming, SourceNoncePolicy
from stake_sync.core.time import utcnow
from stake_sync.services.chain import BlockTimeResolver
from stake_sync.services.errors import SyncError
from stake_sync.services.heimdall import HeimdallClient
from stake_sync.services.reconcile import (
    CorrectWithNonce,
    decide,
    effective_destination_nonce,
    is_old_enough,
)
from stake_sync.services.subgraph import SubgraphClient
from stake_sync.services.submitter import CorrectionSubmitter

# Configure logger for this module
logger = logging.getLogger(__name__)


class IterationOutcome(Enum):
    """How a single poll iteration ended."""

    IN_SYNC = "in_sync"
    SUBMITTED = "submitted"
    SKIPPED_TOO_RECENT = "skipped_too_recent"
    ERROR = "error"


@dataclass
class SyncState:
    """Mutable state carried between iterations.

    Only the source nonce survives an iteration, and only under the
    ``startup`` policy does it stay fixed. ``source_nonce_fresh`` marks a
    value just read by ``prime`` so the first iteration does not read it again.
    """

    source_nonce: int | None = None
    source_nonce_fresh: bool = False


@dataclass
class SyncStats:
    """Counters for the lifetime of the process."""

    iterations: int = 0
    outcomes: dict[IterationOutcome, int] = field(
        default_factory=lambda: {outcome: 0 for outcome in IterationOutcome}
    )

    def record(self, outcome: IterationOutcome) -> None:
        self.iterations += 1
        self.outcomes[outcome] += 1

    @property
    def corrections_submitted(self) -> int:
        return self.outcomes[IterationOutcome.SUBMITTED]

    @property
    def errors(self) -> int:
        return self.outcomes[IterationOutcome.ERROR]


class NonceSyncWorker:
    """Periodically reconciles one validator's stake nonce between Ethereum and Heimdall.

    The worker never runs two operations at once: every query and the signer
    invocation are awaited in sequence. Errors inside an iteration are logged
    and end that iteration only.
    """

    def __init__(
        self,
        validator_id: int,
        *,
        subgraph: SubgraphClient,
        heimdall: HeimdallClient,
        block_times: BlockTimeResolver,
        submitter: CorrectionSubmitter,
        chain_id: str,
        timing: LoopTiming | None = None,
        source_nonce_policy: SourceNoncePolicy = SourceNoncePolicy.EVERY_ITERATION,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the sync worker.

        Args:
            validator_id: Validator to reconcile.
            subgraph: Client for the origin chain stake update index.
            heimdall: Client for Heimdall validator state.
            block_times: Resolver for origin block commit times.
            submitter: Port used to broadcast a correction.
            chain_id: Heimdall chain id passed to the submitter.
            timing: Poll cadence and minimum event age.
            source_nonce_policy: Whether the origin nonce is refreshed each iteration.
            clock: Returns the current UTC time.
            sleep: Coroutine used to pause between iterations.
        """
        self.validator_id = validator_id
        self.subgraph = subgraph
        self.heimdall = heimdall
        self.block_times = block_times
        self.submitter = submitter
        self.chain_id = chain_id
        self.timing = timing or LoopTiming()
        self.source_nonce_policy = source_nonce_policy
        self.state = SyncState()
        self.stats = SyncStats()
        self._clock = clock
        self._sleep = sleep
        self._stopping = asyncio.Event()

    @property
    def minimum_event_age(self) -> timedelta:
        return timedelta(seconds=self.timing.min_event_age_seconds)

    async def prime(self) -> int:
        """Resolve the origin nonce before the loop starts.

        Failures propagate; the caller treats them as fatal.
        """
        nonce = await self.subgraph.fetch_latest_nonce(self.validator_id)
        self.state.source_nonce = nonce
        self.state.source_nonce_fresh = True
        logger.info("Ethereum nonce for validator %d is %d", self.validator_id, nonce)
        return nonce

    async def run_forever(self) -> None:
        """Run iterations until ``stop`` is called."""
        logger.info(
            "Starting nonce sync for validator %d (source nonce policy: %s)",
            self.validator_id,
            self.source_nonce_policy.value,
        )
        while not self._stopping.is_set():
            outcome = await self.run_once()
            if outcome is IterationOutcome.ERROR:
                await self._sleep(self.timing.error_retry_seconds)
            else:
                await self._sleep(self.timing.poll_interval_seconds)

    def stop(self) -> None:
        """Ask the loop to exit at the next iteration boundary."""
        self._stopping.set()

    async def run_once(self) -> IterationOutcome:
        """Run a single iteration without sleeping and return how it ended."""
        outcome = await self._iterate()
        self.stats.record(outcome)
        return outcome

    async def _iterate(self) -> IterationOutcome:
        operation = "getting ethereum nonce"
        try:
            if self.state.source_nonce_fresh:
                self.state.source_nonce_fresh = False
            elif self.state.source_nonce is None or (
                self.source_nonce_policy is SourceNoncePolicy.EVERY_ITERATION
            ):
                self.state.source_nonce = await self.subgraph.fetch_latest_nonce(
                    self.validator_id
                )

            operation = "getting heimdall nonce"
            heimdall_nonce = await self.heimdall.fetch_validator_nonce(self.validator_id)

            source_nonce = self.state.source_nonce
            destination_nonce = effective_destination_nonce(heimdall_nonce)
            logger.info(
                "Validator %d: ethereum nonce %d, heimdall nonce %d",
                self.validator_id,
                source_nonce,
                destination_nonce,
            )

            action = decide(source_nonce, destination_nonce)
            if not isinstance(action, CorrectWithNonce):
                return IterationOutcome.IN_SYNC

            operation = "processing stake update"
            return await self._process_stake_update(action.nonce)
        except SyncError as exc:
            self._log_failure(operation, exc)
        except (OSError, ConnectionError, TimeoutError, httpx.HTTPError, httpx.InvalidURL) as exc:
            self._log_failure(operation, exc)
        except (ValueError, TypeError, KeyError, AttributeError) as exc:
            logger.error(
                "Unexpected error %s for validator %d: %s",
                operation,
                self.validator_id,
                exc,
                exc_info=True,
            )
        return IterationOutcome.ERROR

    async def _process_stake_update(self, nonce: int) -> IterationOutcome:
        logger.info("Processing stake update for validator %d nonce %d", self.validator_id, nonce)
        record = await self.subgraph.fetch_stake_update(self.validator_id, nonce)

        block_time = await self.block_times.resolve_block_time(record.block)
        if not is_old_enough(block_time, self._clock(), self.minimum_event_age):
            logger.info(
                "Stake update nonce %s in block %s is younger than %s, skipping for now",
                record.nonce,
                record.block,
                self.minimum_event_age,
            )
            return IterationOutcome.SKIPPED_TOO_RECENT

        await self.submitter.submit(record, self.chain_id)
        logger.info(
            "Submitted stake update for validator %d nonce %s (tx %s)",
            self.validator_id,
            record.nonce,
            record.transaction_hash,
        )
        return IterationOutcome.SUBMITTED

    def _log_failure(self, operation: str, exc: Exception) -> None:
        logger.warning("Error %s for validator %d: %s", operation, self.validator_id, exc)

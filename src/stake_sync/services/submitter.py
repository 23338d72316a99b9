"""Correction submission through the external Heimdall signer.

The poll loop depends only on the ``CorrectionSubmitter`` protocol, so the
``heimdallcli`` subprocess can be replaced by a direct signing integration
without touching the loop.
"""

from __future__ import annotations

import asyncio
import logging
import shlex
from typing import Protocol

from stake_sync.schemas.subgraph import StakeUpdate
from stake_sync.services.errors import SubmissionError

logger = logging.getLogger(__name__)

DEFAULT_SIGNER_BINARY = "heimdallcli"
STDERR_TAIL_CHARS = 500


class CorrectionSubmitter(Protocol):
    """Broadcasts one stake-update correction to Heimdall."""

    async def submit(self, record: StakeUpdate, chain_id: str) -> None:
        """Submit ``record``; raise SubmissionError unless it was accepted."""
        ...


def build_stake_update_command(
    binary: str, record: StakeUpdate, chain_id: str
) -> list[str]:
    """Return the argv for ``heimdallcli tx staking stake-update``.

    Record fields are passed through exactly as the subgraph delivered them.
    """
    return [
        binary,
        "tx",
        "staking",
        "stake-update",
        "--block-number",
        record.block,
        "--id",
        record.validator_id,
        "--log-index",
        record.log_index,
        "--nonce",
        record.nonce,
        "--staked-amount",
        record.total_staked,
        "--tx-hash",
        record.transaction_hash,
        "--chain-id",
        chain_id,
    ]


class HeimdallCliSubmitter:
    """Runs ``heimdallcli`` as a subprocess; exit status 0 means accepted."""

    def __init__(
        self,
        binary: str = DEFAULT_SIGNER_BINARY,
        *,
        timeout_seconds: float | None = None,
        dry_run: bool = False,
        capture_output: bool = False,
    ) -> None:
        self.binary = binary
        self.timeout_seconds = timeout_seconds
        self.dry_run = dry_run
        self.capture_output = capture_output

    async def submit(self, record: StakeUpdate, chain_id: str) -> None:
        argv = build_stake_update_command(self.binary, record, chain_id)
        command = shlex.join(argv)

        if self.dry_run:
            logger.info("Dry run, not executing: %s", command)
            return

        logger.info("Executing: %s", command)
        stream = asyncio.subprocess.PIPE if self.capture_output else asyncio.subprocess.DEVNULL
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=stream,
            )
        except OSError as exc:
            raise SubmissionError(f"Unable to start {self.binary}: {exc}") from exc

        try:
            _, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as exc:
            process.kill()
            await process.wait()
            raise SubmissionError(
                f"{self.binary} did not finish within {self.timeout_seconds}s"
            ) from exc

        if process.returncode != 0:
            message = f"{self.binary} exited with status {process.returncode}"
            if stderr:
                tail = stderr.decode(errors="replace").strip()[-STDERR_TAIL_CHARS:]
                message = f"{message}: {tail}"
            raise SubmissionError(message)

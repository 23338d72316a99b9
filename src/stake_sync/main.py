# src/stake_sync/main.py
"""Main entry point for the stake sync agent."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence

from pydantic import ValidationError

from stake_sync import __version__
from stake_sync.core.logging import configure_logging
from stake_sync.core.settings import Settings, SourceNoncePolicy, load_settings
from stake_sync.services.chain import BlockTimeResolver
from stake_sync.services.errors import SyncError
from stake_sync.services.heimdall import HeimdallClient
from stake_sync.services.subgraph import SubgraphClient
from stake_sync.services.submitter import HeimdallCliSubmitter
from stake_sync.services.sync_worker import NonceSyncWorker

logger = logging.getLogger("stake_sync")

EXIT_FATAL = 1
EXIT_INTERRUPTED = 130


class StartupError(Exception):
    """Raised for conditions that stop the agent before the poll loop starts."""


def parse_validator_id(value: str) -> int:
    """Parse the validator id argument as a positive decimal integer."""
    text = value.strip()
    if not text.isdecimal() or int(text) <= 0:
        raise StartupError(f"Invalid validator id: {value!r}")
    return int(text)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stake-sync",
        description=(
            "Replay missing Ethereum stake updates on Heimdall for one validator."
        ),
    )
    parser.add_argument("validator_id", help="Validator id (decimal)")
    parser.add_argument("--env-file", default=None, help="Read settings from this .env file")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    parser.add_argument(
        "--source-nonce-policy",
        choices=[policy.value for policy in SourceNoncePolicy],
        default=None,
        help="Override SOURCE_NONCE_POLICY",
    )
    parser.add_argument("--once", action="store_true", help="Run one iteration and exit")
    parser.add_argument(
        "--dry-run", action="store_true", help="Log the signer command instead of running it"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def build_worker(
    validator_id: int,
    settings: Settings,
    *,
    dry_run: bool = False,
    source_nonce_policy: SourceNoncePolicy | None = None,
) -> NonceSyncWorker:
    """Wire the clients and the submitter into a worker for ``validator_id``."""
    return NonceSyncWorker(
        validator_id,
        subgraph=SubgraphClient(
            str(settings.polygon_sub_graph_url),
            timeout_seconds=settings.subgraph_timeout_seconds,
        ),
        heimdall=HeimdallClient(
            str(settings.heimdall_rest_url),
            timeout_seconds=settings.heimdall_timeout_seconds,
        ),
        block_times=BlockTimeResolver(
            str(settings.ethereum_rpc_url),
            timeout_seconds=settings.ethereum_rpc_timeout_seconds,
        ),
        submitter=HeimdallCliSubmitter(
            settings.signer_binary,
            timeout_seconds=settings.signer_timeout_seconds,
            dry_run=dry_run or settings.signer_dry_run,
            capture_output=settings.signer_capture_output,
        ),
        chain_id=settings.heimdall_chain_id,
        timing=settings.timing,
        source_nonce_policy=source_nonce_policy or settings.source_nonce_policy,
    )


async def run(worker: NonceSyncWorker, *, once: bool = False) -> None:
    """Check the origin chain, prime the source nonce and run the loop.

    Raises:
        StartupError: If the chain is unreachable or the source nonce cannot be read.
    """
    try:
        try:
            await worker.block_times.connect()
        except SyncError as exc:
            raise StartupError(str(exc)) from exc

        try:
            await worker.prime()
        except SyncError as exc:
            raise StartupError(
                f"Error getting ethereum nonce for validator {worker.validator_id}: {exc}"
            ) from exc

        if once:
            await worker.run_once()
        else:
            await worker.run_forever()
    finally:
        await worker.subgraph.close()
        await worker.heimdall.close()
        await worker.block_times.close()


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        configure_logging(args.log_level or "INFO")
        validator_id = parse_validator_id(args.validator_id)
        try:
            settings = load_settings(args.env_file)
        except ValidationError as exc:
            raise StartupError(f"Error loading settings: {exc}") from exc

        if args.log_level is None:
            configure_logging(settings.log_level)

        policy = SourceNoncePolicy(args.source_nonce_policy) if args.source_nonce_policy else None
        worker = build_worker(
            validator_id, settings, dry_run=args.dry_run, source_nonce_policy=policy
        )
        asyncio.run(run(worker, once=args.once))
    except StartupError as exc:
        logger.critical("%s", exc)
        return EXIT_FATAL
    except ValueError as exc:
        logger.critical("Invalid configuration: %s", exc)
        return EXIT_FATAL
    except KeyboardInterrupt:
        logger.info("Interrupted, exiting")
        return EXIT_INTERRUPTED
    return 0


if __name__ == "__main__":
    sys.exit(main())

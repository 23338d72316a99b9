"""Origin chain access: resolves the commit time of Ethereum blocks."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime

import aiohttp
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import Web3Exception

from stake_sync.services.errors import BlockTimeError, ChainConnectionError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


def parse_block_number(block: str) -> int:
    """Parse a base-10 block number as delivered by the subgraph."""
    text = block.strip()
    if not text.isdecimal():
        raise BlockTimeError(f"invalid block number: {block!r}")
    return int(text, 10)


class BlockTimeResolver:
    """Owns the origin chain RPC handle and answers block timestamp lookups.

    The handle is built once by the process entry point and passed to the
    poll loop; nothing else reaches for it.
    """

    def __init__(
        self,
        rpc_url: str,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        web3: AsyncWeb3 | None = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.w3 = web3 or AsyncWeb3(
            AsyncHTTPProvider(
                rpc_url,
                request_kwargs={"timeout": aiohttp.ClientTimeout(total=timeout_seconds)},
            )
        )

    async def connect(self) -> int:
        """Check the RPC endpoint answers and return the chain head.

        Raises:
            ChainConnectionError: If the endpoint cannot be reached.
        """
        if not await self.w3.is_connected():
            raise ChainConnectionError(f"Unable to connect to Ethereum RPC at {self.rpc_url}")
        try:
            head = await self.w3.eth.block_number
        except (Web3Exception, aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
            raise ChainConnectionError(f"Ethereum RPC is not answering: {exc}") from exc
        logger.info("Connected to Ethereum RPC, head block %d", head)
        return head

    async def resolve_block_time(self, block: str) -> datetime:
        """Return the UTC commit time of the block with the given base-10 number."""
        number = parse_block_number(block)
        try:
            header = await self.w3.eth.get_block(number)
        except (
            Web3Exception,
            aiohttp.ClientError,
            asyncio.TimeoutError,
            OSError,
            ValueError,
        ) as exc:
            raise BlockTimeError(f"Unable to fetch block {number}: {exc}") from exc

        timestamp = header.get("timestamp")
        if timestamp is None:
            raise BlockTimeError(f"Block {number} has no timestamp")
        return datetime.fromtimestamp(int(timestamp), UTC)

    async def close(self) -> None:
        """Release the provider's cached HTTP session."""
        await self.w3.provider.disconnect()

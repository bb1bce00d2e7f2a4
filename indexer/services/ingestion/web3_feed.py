"""
Web3 polling feed.

Polls `eth_getLogs` for the registry and token contracts of one chain,
decodes logs into feed events and emits reorg notices when a scanned
block's hash changes.
"""

import asyncio
from collections.abc import AsyncIterator
from typing import Any

from loguru import logger
from web3 import Web3
from web3.exceptions import Web3Exception

from indexer.config.abi import REGISTRY_ABI, TOKEN_ABI
from indexer.config.settings import settings
from indexer.events.identity import EventKey
from indexer.events.raw import RawEvent
from indexer.utils.addresses import mask_address
from indexer.utils.exceptions import FeedDisconnectedError

from .feeds import FeedItem, ReorgNotice

RPC_TIMEOUT = 30

# Scanned chunk boundaries kept for reorg detection
REORG_CHECKPOINTS = 128


class Web3PollingFeed:
    """
    Feed backed by a JSON-RPC node.

    Only blocks `confirmations` deep are read, so shallow reorgs never
    reach the indexer. Deeper ones are found by re-checking the hash of
    the last scanned chunk boundary before each scan. Blocking web3 calls
    run in a worker thread.
    """

    def __init__(
        self,
        w3: Web3,
        contracts: dict[str, tuple[str, list[dict]]],
        start_block: int = 0,
        confirmations: int | None = None,
        chunk_size: int | None = None,
        poll_interval: float | None = None,
    ):
        """
        Initialize feed.

        Args:
            w3: Connected Web3 instance
            contracts: Contract identifier -> (address, ABI)
            start_block: First block to scan with no cursor
            confirmations: Blocks to stay behind the head
            chunk_size: Blocks per eth_getLogs request
            poll_interval: Seconds between head polls
        """
        self.w3 = w3
        self.start_block = start_block
        self.confirmations = (
            settings.feed_confirmations if confirmations is None else confirmations
        )
        self.chunk_size = chunk_size or settings.feed_chunk_size
        self.poll_interval = poll_interval or settings.feed_poll_interval

        # address -> (contract identifier, contract object)
        self._contracts: dict[str, tuple[str, Any]] = {}
        for name, (address, abi) in contracts.items():
            contract = w3.eth.contract(
                address=Web3.to_checksum_address(address), abi=abi
            )
            self._contracts[address.lower()] = (name, contract)

        self._timestamps: dict[int, int] = {}
        # chunk end block -> block hash
        self._checkpoints: dict[int, str] = {}

    async def stream(
        self, chain_id: int, after: EventKey | None
    ) -> AsyncIterator[FeedItem]:
        next_block = after.block_number if after is not None else self.start_block
        self._checkpoints = {
            number: block_hash
            for number, block_hash in self._checkpoints.items()
            if number < next_block
        }

        while True:
            fork_block = await self._find_fork(chain_id, next_block)
            if fork_block is not None:
                logger.warning(
                    f"[Feed chain={chain_id}] Reorg detected, last valid block {fork_block}"
                )
                yield ReorgNotice(chain_id=chain_id, block_number=fork_block)
                next_block = fork_block + 1
                after = None
                continue

            try:
                head = await asyncio.to_thread(lambda: self.w3.eth.block_number)
            except (Web3Exception, OSError, ValueError) as e:
                raise FeedDisconnectedError(f"Chain {chain_id} head poll failed: {e}") from e

            safe_head = head - self.confirmations
            if next_block > safe_head:
                await asyncio.sleep(self.poll_interval)
                continue

            to_block = min(next_block + self.chunk_size - 1, safe_head)
            try:
                logs = await asyncio.to_thread(self._get_logs, next_block, to_block)
            except (Web3Exception, OSError, ValueError) as e:
                raise FeedDisconnectedError(
                    f"Chain {chain_id} getLogs {next_block}-{to_block} failed: {e}"
                ) from e

            logger.debug(
                f"[Feed chain={chain_id}] Blocks {next_block}-{to_block}: {len(logs)} log(s)"
            )

            for log in logs:
                event = await self._decode(chain_id, log)
                if event is None:
                    continue
                if after is not None and event.key.position <= after.position:
                    continue
                yield event

            await self._checkpoint(chain_id, to_block)
            next_block = to_block + 1

    async def _block(self, chain_id: int, block_number: int) -> Any:
        try:
            return await asyncio.to_thread(self.w3.eth.get_block, block_number)
        except (Web3Exception, OSError, ValueError) as e:
            raise FeedDisconnectedError(
                f"Chain {chain_id} get_block {block_number} failed: {e}"
            ) from e

    async def _checkpoint(self, chain_id: int, block_number: int) -> None:
        block = await self._block(chain_id, block_number)
        self._checkpoints[block_number] = Web3.to_hex(block["hash"])
        while len(self._checkpoints) > REORG_CHECKPOINTS:
            del self._checkpoints[min(self._checkpoints)]

    async def _find_fork(self, chain_id: int, next_block: int) -> int | None:
        """
        Compare stored chunk boundaries with the canonical chain.

        Returns:
            Highest boundary still canonical when the latest one changed,
            None when nothing changed
        """
        numbers = sorted(
            (number for number in self._checkpoints if number < next_block),
            reverse=True,
        )
        if not numbers:
            return None

        for i, number in enumerate(numbers):
            block = await self._block(chain_id, number)
            if Web3.to_hex(block["hash"]) == self._checkpoints[number]:
                if i == 0:
                    return None
                fork_block = number
                break
            del self._checkpoints[number]
        else:
            fork_block = numbers[-1] - 1

        self._timestamps = {
            n: ts for n, ts in self._timestamps.items() if n <= fork_block
        }
        return fork_block

    def _get_logs(self, from_block: int, to_block: int) -> list:
        logs = self.w3.eth.get_logs({
            "fromBlock": from_block,
            "toBlock": to_block,
            "address": [
                contract.address for _, contract in self._contracts.values()
            ],
        })
        return sorted(logs, key=lambda log: (log["blockNumber"], log["logIndex"]))

    async def _decode(self, chain_id: int, log: Any) -> RawEvent | None:
        entry = self._contracts.get(str(log["address"]).lower())
        if entry is None:
            return None
        name, contract = entry

        decoded = None
        for abi in contract.abi:
            if abi.get("type") != "event":
                continue
            try:
                decoded = contract.events[abi["name"]]().process_log(log)
                break
            except (Web3Exception, ValueError):
                continue
        if decoded is None:
            logger.debug(
                f"[Feed chain={chain_id}] Undecodable log at "
                f"{log['blockNumber']}:{log['logIndex']} from "
                f"{mask_address(str(log['address']))}"
            )
            return None

        params = {
            key: value.lower() if isinstance(value, str) and Web3.is_address(value) else value
            for key, value in decoded["args"].items()
        }
        return RawEvent(
            chain_id=chain_id,
            block_number=log["blockNumber"],
            log_index=log["logIndex"],
            block_timestamp=await self._block_timestamp(chain_id, log["blockNumber"]),
            transaction_hash=Web3.to_hex(log["transactionHash"]),
            contract=name,
            event_name=decoded["event"],
            params=params,
        )

    async def _block_timestamp(self, chain_id: int, block_number: int) -> int:
        timestamp = self._timestamps.get(block_number)
        if timestamp is None:
            block = await self._block(chain_id, block_number)
            timestamp = int(block["timestamp"])
            if len(self._timestamps) > 10_000:
                self._timestamps.clear()
            self._timestamps[block_number] = timestamp
        return timestamp


def create_web3_feed(chain_id: int, rpc_url: str | None = None) -> Web3PollingFeed:
    """
    Build a polling feed for a chain from settings.

    Raises:
        ValueError: If no RPC URL or contract address is configured
    """
    rpc_url = rpc_url or settings.get_rpc_urls().get(chain_id)
    if not rpc_url:
        raise ValueError(f"No RPC URL configured for chain {chain_id}")
    if not settings.registry_contract_address or not settings.token_contract_address:
        raise ValueError("Contract addresses are not configured")

    w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": RPC_TIMEOUT}))
    return Web3PollingFeed(
        w3,
        contracts={
            settings.registry_contract: (settings.registry_contract_address, REGISTRY_ABI),
            settings.token_contract: (settings.token_contract_address, TOKEN_ABI),
        },
    )

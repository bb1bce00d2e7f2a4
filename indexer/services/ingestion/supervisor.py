"""
Ingestion supervisor.

Starts one ChainIngestionWorker per configured chain and tracks their
tasks.
"""

import asyncio
from collections.abc import Callable, Iterable

from loguru import logger

from indexer.services.indexer import EventIndexerService
from indexer.utils.exceptions import is_fatal

from .feeds import EventFeed
from .worker import ChainIngestionWorker


class IngestionSupervisor:
    """Runs per-chain workers concurrently against one indexer."""

    def __init__(
        self,
        indexer: EventIndexerService,
        feed_factory: Callable[[int], EventFeed],
        chain_ids: Iterable[int],
    ):
        """
        Initialize supervisor.

        Args:
            indexer: Shared indexer service
            feed_factory: Builds the feed of a chain
            chain_ids: Chains to ingest
        """
        self.indexer = indexer
        self.feed_factory = feed_factory
        self.chain_ids = list(chain_ids)
        self.workers: dict[int, ChainIngestionWorker] = {}
        self._tasks: dict[int, asyncio.Task] = {}

    def start(self) -> None:
        """Spawn a worker task per chain."""
        for chain_id in self.chain_ids:
            if chain_id in self._tasks:
                continue
            worker = ChainIngestionWorker(chain_id, self.feed_factory(chain_id), self.indexer)
            self.workers[chain_id] = worker
            self._tasks[chain_id] = asyncio.create_task(
                worker.run(), name=f"ingest-chain-{chain_id}"
            )
        logger.info(f"[Supervisor] Started workers for chains {self.chain_ids}")

    async def wait(self) -> dict[int, BaseException | None]:
        """
        Wait for all workers to finish.

        Returns:
            chain_id -> exception the worker ended with (None if clean)
        """
        results = await asyncio.gather(*self._tasks.values(), return_exceptions=True)
        outcome: dict[int, BaseException | None] = {}
        for chain_id, result in zip(self._tasks, results):
            error = result if isinstance(result, BaseException) else None
            if is_fatal(error):
                logger.critical(f"[Supervisor] Chain {chain_id} halted: {error}")
            elif error is not None and not isinstance(error, asyncio.CancelledError):
                logger.error(f"[Supervisor] Chain {chain_id} failed: {error}")
            outcome[chain_id] = error
        return outcome

    async def stop(self) -> None:
        """Stop all workers and wait for them to exit."""
        for worker in self.workers.values():
            await worker.stop()
        await self.wait()
        self._tasks.clear()
        logger.info("[Supervisor] All workers stopped")

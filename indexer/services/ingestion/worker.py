"""
Chain ingestion worker.

Drives one chain's feed into the indexer: resumes from the committed
cursor, applies events strictly in arrival order, rolls back on reorg
notices and reconnects with backoff when the feed or store fails.
"""

import asyncio
from collections.abc import Mapping

from loguru import logger

from indexer.config.constants import CHAIN_NAMES
from indexer.config.settings import settings
from indexer.events.raw import RawEvent
from indexer.services.indexer import EventIndexerService
from indexer.utils.exceptions import is_fatal, is_recoverable, is_retryable

from .feeds import EventFeed, FeedItem, ReorgNotice


class ChainIngestionWorker:
    """
    Sequential consumer of one chain's feed.

    Events of a chain are applied one at a time; different chains run
    in separate workers sharing one EventIndexerService.
    """

    def __init__(
        self,
        chain_id: int,
        feed: EventFeed,
        indexer: EventIndexerService,
        reconnect_delay_base: float | None = None,
        reconnect_delay_max: float | None = None,
    ):
        self.chain_id = chain_id
        self.feed = feed
        self.indexer = indexer
        self.reconnect_delay_base = (
            settings.feed_reconnect_delay_base
            if reconnect_delay_base is None
            else reconnect_delay_base
        )
        self.reconnect_delay_max = (
            settings.feed_reconnect_delay_max
            if reconnect_delay_max is None
            else reconnect_delay_max
        )

        self.processed = 0
        self.reconnects = 0
        self._running = False
        self._processing = False
        self._task: asyncio.Task | None = None

    @property
    def tag(self) -> str:
        return f"[Worker chain={self.chain_id}]"

    @property
    def is_running(self) -> bool:
        return self._running

    async def run(self) -> None:
        """
        Consume the feed until it ends or stop() is called.

        Raises:
            ReorgBelowWatermarkError: On a reorg deeper than finality
        """
        self._running = True
        self._task = asyncio.current_task()
        attempt = 0
        logger.info(f"{self.tag} Started ({CHAIN_NAMES.get(self.chain_id, 'unknown chain')})")

        try:
            while self._running:
                cursor = await self.indexer.get_chain_cursor(self.chain_id)
                if cursor is not None:
                    logger.info(f"{self.tag} Resuming after {cursor.event_id}")

                processed_before = self.processed
                try:
                    await self._consume(cursor)
                except Exception as e:
                    if is_fatal(e):
                        logger.critical(f"{self.tag} Stopping: {e}")
                        await self._record_error(e)
                        raise
                    if not is_retryable(e):
                        raise

                    # Backoff restarts once the feed made progress
                    attempt = 1 if self.processed > processed_before else attempt + 1
                    self.reconnects += 1
                    delay = min(
                        self.reconnect_delay_base * (2 ** (attempt - 1)),
                        self.reconnect_delay_max,
                    )
                    self.indexer.diagnostics.record_reconnect(self.chain_id, e)
                    await self._record_error(e)
                    logger.warning(f"{self.tag} Retrying in {delay:.1f}s")
                    await asyncio.sleep(delay)
                    continue

                # Feed exhausted or stop requested
                break
        except asyncio.CancelledError:
            logger.info(f"{self.tag} Cancelled")
            raise
        finally:
            self._running = False
            logger.info(
                f"{self.tag} Stopped ({self.processed} processed, "
                f"{self.reconnects} reconnects)"
            )

    async def _record_error(self, error: BaseException) -> None:
        try:
            await self.indexer.record_chain_error(self.chain_id, str(error))
        except Exception as e:
            if not is_retryable(e):
                raise
            logger.warning(f"{self.tag} Could not persist error state: {e}")

    async def _consume(self, cursor) -> None:
        async for item in self.feed.stream(self.chain_id, cursor):
            self._processing = True
            try:
                await self._handle(item)
            finally:
                self._processing = False
            self.processed += 1
            if not self._running:
                return

    async def _handle(self, item: FeedItem) -> None:
        if isinstance(item, ReorgNotice):
            if item.chain_id != self.chain_id:
                logger.warning(f"{self.tag} Ignoring reorg notice for chain {item.chain_id}")
                return
            await self.indexer.rollback_to(
                item.chain_id, item.block_number, item.log_index, item.sequence
            )
            return

        try:
            if isinstance(item, RawEvent):
                await self.indexer.apply(item)
            elif isinstance(item, Mapping):
                await self.indexer.apply_payload(item)
            else:
                logger.warning(f"{self.tag} Unknown feed item {type(item).__name__}")
        except Exception as e:
            if not is_recoverable(e):
                raise
            logger.warning(f"{self.tag} Dropped event: {e}")

    async def stop(self) -> None:
        """Stop after the event being applied, if any, has committed."""
        self._running = False
        task = self._task
        if task is not None and not task.done() and not self._processing:
            task.cancel()

"""
Event feeds.

A feed yields each chain's decoded events in (block_number, log_index)
order, plus reorg notices. Delivery is at-least-once; the indexer
deduplicates by identity.
"""

import asyncio
from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass, replace
from typing import Any, Protocol, Union

from loguru import logger

from indexer.events.identity import EventKey
from indexer.events.raw import RawEvent
from indexer.utils.exceptions import FeedDisconnectedError


@dataclass(frozen=True)
class ReorgNotice:
    """
    Blocks above `block_number` on `chain_id` are no longer canonical.

    `sequence` numbers a chain's notices in increasing order. Feeds that
    redeliver their history set it so a notice is acted on only once;
    None means the notice is always applied.
    """

    chain_id: int
    block_number: int
    log_index: int | None = None
    sequence: int | None = None


FeedItem = Union[RawEvent, Mapping[str, Any], ReorgNotice]


class EventFeed(Protocol):
    """Source of one chain's ordered event stream."""

    def stream(
        self, chain_id: int, after: EventKey | None
    ) -> AsyncIterator[FeedItem]:
        """
        Yield events positioned after `after` (all events if None).

        Raises:
            FeedDisconnectedError: When the upstream connection is lost
        """
        ...


class _Disconnect:
    """Marker that makes the next reader fail once."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        self.fired = False


class QueueEventFeed:
    """
    In-memory feed.

    Keeps a per-chain log of published items. Each `stream` call replays
    the log from the requested position, then waits for new items, which
    gives redelivery on reconnect for free. Reorg notices are numbered per
    chain on publish, so replayed notices are recognised downstream.
    Used by tests and by replay tooling that pushes events programmatically.
    """

    def __init__(self) -> None:
        self._logs: dict[int, list[Any]] = {}
        self._notice_sequences: dict[int, int] = {}
        self._cond = asyncio.Condition()
        self._closed = False

    async def publish(self, item: RawEvent | ReorgNotice) -> None:
        """Append an event or reorg notice to its chain's log."""
        async with self._cond:
            if isinstance(item, ReorgNotice):
                item = self._number(item)
            self._logs.setdefault(item.chain_id, []).append(item)
            self._cond.notify_all()

    def _number(self, notice: ReorgNotice) -> ReorgNotice:
        last = self._notice_sequences.get(notice.chain_id, 0)
        if notice.sequence is None:
            notice = replace(notice, sequence=last + 1)
        self._notice_sequences[notice.chain_id] = max(last, notice.sequence)
        return notice

    async def publish_many(self, items: list[RawEvent | ReorgNotice]) -> None:
        for item in items:
            await self.publish(item)

    async def disconnect(self, chain_id: int, reason: str = "connection reset") -> None:
        """Simulate an upstream drop at the current end of the log."""
        async with self._cond:
            self._logs.setdefault(chain_id, []).append(_Disconnect(reason))
            self._cond.notify_all()

    async def close(self) -> None:
        """End all streams once they reach the end of their log."""
        async with self._cond:
            self._closed = True
            self._cond.notify_all()

    async def stream(
        self, chain_id: int, after: EventKey | None
    ) -> AsyncIterator[FeedItem]:
        position = 0
        resumed = after is None

        while True:
            async with self._cond:
                log = self._logs.setdefault(chain_id, [])
                await self._cond.wait_for(
                    lambda: position < len(log) or self._closed
                )
                if position >= len(log):
                    return
                item = log[position]
            position += 1

            if isinstance(item, _Disconnect):
                if item.fired:
                    continue
                item.fired = True
                logger.debug(f"[Feed chain={chain_id}] Disconnect: {item.reason}")
                raise FeedDisconnectedError(item.reason)

            if isinstance(item, RawEvent) and not resumed:
                if item.key.position <= after.position:
                    continue
                resumed = True

            yield item

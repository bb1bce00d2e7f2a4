"""
EventRecord repository.

Data access layer for the append-only event log.
"""

from collections.abc import AsyncIterator

from sqlalchemy import and_, delete, func, or_, select, tuple_
from sqlalchemy.ext.asyncio import AsyncSession

from indexer.config.constants import TRANSFER
from indexer.events.identity import EventKey
from indexer.events.types import ChainEvent
from indexer.models.event_record import EventRecord
from indexer.repositories.base import BaseRepository


class EventRecordRepository(BaseRepository[EventRecord]):
    """Repository for the event log."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(EventRecord, session)

    def add_event(self, event: ChainEvent) -> EventRecord:
        """
        Stage the immutable record of an applied event.

        Args:
            event: Typed event

        Returns:
            The pending EventRecord
        """
        record = EventRecord(
            id=event.event_id,
            chain_id=event.chain_id,
            block_number=event.block_number,
            log_index=event.log_index,
            transaction_hash=event.transaction_hash,
            block_timestamp=event.block_timestamp,
            contract=event.contract,
            event_name=event.event_name,
            params=event.record_params(),
        )
        self.session.add(record)
        return record

    async def list_range(
        self,
        chain_id: int,
        from_block: int | None = None,
        to_block: int | None = None,
        event_name: str | None = None,
        limit: int | None = None,
    ) -> list[EventRecord]:
        """
        List events of a chain in stream order.

        Args:
            chain_id: Chain to list
            from_block: Inclusive lower block bound
            to_block: Inclusive upper block bound
            event_name: Filter by event name
            limit: Max results

        Returns:
            EventRecords ordered by (block_number, log_index)
        """
        conditions = [EventRecord.chain_id == chain_id]
        if from_block is not None:
            conditions.append(EventRecord.block_number >= from_block)
        if to_block is not None:
            conditions.append(EventRecord.block_number <= to_block)
        if event_name:
            conditions.append(EventRecord.event_name == event_name)

        query = (
            select(EventRecord)
            .where(and_(*conditions))
            .order_by(EventRecord.block_number.asc(), EventRecord.log_index.asc())
        )
        if limit:
            query = query.limit(limit)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def list_transfers(
        self,
        address: str,
        chain_id: int | None = None,
        limit: int | None = None,
    ) -> list[EventRecord]:
        """
        List Transfer events sent or received by an address.

        Args:
            address: Lowercase address
            chain_id: Optional chain filter
            limit: Max results

        Returns:
            Transfers, newest first
        """
        conditions = [
            EventRecord.event_name == TRANSFER,
            or_(
                EventRecord.params["from"].as_string() == address,
                EventRecord.params["to"].as_string() == address,
            ),
        ]
        if chain_id is not None:
            conditions.append(EventRecord.chain_id == chain_id)

        query = (
            select(EventRecord)
            .where(and_(*conditions))
            .order_by(
                EventRecord.chain_id.asc(),
                EventRecord.block_number.desc(),
                EventRecord.log_index.desc(),
            )
        )
        if limit:
            query = query.limit(limit)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def iter_ordered(self, batch_size: int = 1000) -> AsyncIterator[EventRecord]:
        """
        Iterate over the whole log in identity order.

        Uses keyset pagination so memory stays bounded by batch_size.
        """
        last: tuple[int, int, int] | None = None
        order_cols = (
            EventRecord.chain_id,
            EventRecord.block_number,
            EventRecord.log_index,
        )
        while True:
            query = select(EventRecord).order_by(*order_cols).limit(batch_size)
            if last is not None:
                query = query.where(tuple_(*order_cols) > tuple_(*last))
            result = await self.session.execute(query)
            batch = list(result.scalars().all())
            if not batch:
                return
            for record in batch:
                yield record
            tail = batch[-1]
            last = (tail.chain_id, tail.block_number, tail.log_index)

    async def delete_after(
        self, chain_id: int, block_number: int, log_index: int | None = None
    ) -> int:
        """
        Remove events of a chain above a watermark.

        Args:
            chain_id: Chain being rolled back
            block_number: Last block to keep
            log_index: Last log index to keep within block_number
                (None keeps the whole block)

        Returns:
            Number of removed records
        """
        above = EventRecord.block_number > block_number
        if log_index is not None:
            above = or_(
                above,
                and_(
                    EventRecord.block_number == block_number,
                    EventRecord.log_index > log_index,
                ),
            )
        stmt = delete(EventRecord).where(EventRecord.chain_id == chain_id, above)
        result = await self.session.execute(stmt)
        return result.rowcount or 0

    async def get_last_key(self, chain_id: int) -> EventKey | None:
        """Key of the newest recorded event of a chain."""
        query = (
            select(EventRecord.block_number, EventRecord.log_index)
            .where(EventRecord.chain_id == chain_id)
            .order_by(EventRecord.block_number.desc(), EventRecord.log_index.desc())
            .limit(1)
        )
        row = (await self.session.execute(query)).first()
        if row is None:
            return None
        return EventKey(chain_id, row.block_number, row.log_index)

    async def count_by_event_name(self) -> dict[str, int]:
        """Number of recorded events per event name."""
        query = (
            select(EventRecord.event_name, func.count())
            .group_by(EventRecord.event_name)
        )
        result = await self.session.execute(query)
        return {name: count for name, count in result.all()}

"""
ChainSyncState repository.

Data access layer for per-chain ingestion cursors.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from indexer.events.identity import EventKey
from indexer.models.chain_sync_state import ChainSyncState
from indexer.repositories.base import BaseRepository


class ChainSyncStateRepository(BaseRepository[ChainSyncState]):
    """Repository for chain sync state."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(ChainSyncState, session)

    async def get_for_chain(
        self, chain_id: int, for_update: bool = False
    ) -> ChainSyncState | None:
        """Get sync state for a chain."""
        stmt = select(ChainSyncState).where(ChainSyncState.chain_id == chain_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_create(
        self, chain_id: int, for_update: bool = False
    ) -> ChainSyncState:
        """Get or create sync state for a chain."""
        state = await self.get_for_chain(chain_id, for_update=for_update)
        if state:
            return state

        state = ChainSyncState(
            chain_id=chain_id,
            last_block_number=-1,
            last_log_index=-1,
            last_event_id=None,
            finalized_block=-1,
            reorg_sequence=0,
            events_applied=0,
            error_count=0,
        )
        self.session.add(state)
        await self.session.flush()
        return state

    @staticmethod
    def cursor_key(state: ChainSyncState) -> EventKey | None:
        """Key of the last committed event, None if nothing applied."""
        if state.last_block_number < 0:
            return None
        return EventKey(state.chain_id, state.last_block_number, state.last_log_index)

    @staticmethod
    def advance(state: ChainSyncState, key: EventKey, finality_depth: int) -> None:
        """
        Move the cursor to a newly committed event.

        The finality watermark only ever moves forward.
        """
        state.last_block_number = key.block_number
        state.last_log_index = key.log_index
        state.last_event_id = key.event_id
        state.events_applied += 1
        state.finalized_block = max(
            state.finalized_block, key.block_number - finality_depth
        )

    @staticmethod
    def reset_cursor(state: ChainSyncState, key: EventKey | None, removed: int) -> None:
        """Rewind the cursor after a rollback."""
        if key is None:
            state.last_block_number = -1
            state.last_log_index = -1
            state.last_event_id = None
        else:
            state.last_block_number = key.block_number
            state.last_log_index = key.log_index
            state.last_event_id = key.event_id
        state.events_applied = max(0, state.events_applied - removed)

    @staticmethod
    def record_error(state: ChainSyncState, message: str) -> None:
        """Track the last ingestion error of a chain."""
        state.last_error = message[:2000]
        state.error_count += 1

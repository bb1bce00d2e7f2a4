"""
Event Indexer Queries Mixin.

Read-only access to the materialized views and the event log for the
API layer. Every read sees whole committed events only.
"""

from sqlalchemy import String, func, select, type_coerce

from indexer.config.constants import DEFAULT_EVENTS_LIMIT, MAX_EVENTS_LIMIT
from indexer.events.identity import EventKey
from indexer.models.event_record import EventRecord
from indexer.models.token_balance import TokenBalance
from indexer.repositories import (
    ChainSyncStateRepository,
    EventRecordRepository,
    TokenBalanceRepository,
    UserStatsRepository,
)
from indexer.state import TokenBalanceState, UserStatsState, balance_key
from indexer.utils.addresses import normalize_address


class QueriesMixin:
    """Mixin providing query methods over the views."""

    async def get_user_stats(self, address: str) -> UserStatsState | None:
        """
        Get statistics for a user.

        Args:
            address: User address (any case)

        Returns:
            Snapshot or None if the user was never referenced
        """
        address = normalize_address(address)
        async with self.session_maker() as session:
            row = await UserStatsRepository(session).get_by_id(address)
            return UserStatsState.from_row(row) if row else None

    async def get_token_balance(
        self,
        address: str,
        chain_id: int | None = None,
    ) -> TokenBalanceState | None:
        """
        Get the token balance of an address.

        Args:
            address: Holder address (any case)
            chain_id: Required when balances are chain-scoped

        Returns:
            Snapshot or None if the address never received or sent tokens

        Raises:
            ValueError: If chain_id is missing under chain scope
        """
        address = normalize_address(address)
        if chain_id is None and self.balance_key_scope == "chain":
            raise ValueError("chain_id is required for chain-scoped balances")

        key = balance_key(chain_id or 0, address, self.balance_key_scope)
        async with self.session_maker() as session:
            row = await TokenBalanceRepository(session).get_by_id(key.key)
            return TokenBalanceState.from_row(row) if row else None

    async def list_token_balances(
        self, chain_id: int | None = None
    ) -> list[TokenBalanceState]:
        """List all balances, optionally for one chain."""
        async with self.session_maker() as session:
            rows = await TokenBalanceRepository(session).list_balances(chain_id)
            return [TokenBalanceState.from_row(row) for row in rows]

    async def total_supply(self, chain_id: int | None = None) -> int:
        """
        Sum of all non-sentinel balances.

        Equals minted minus burned value when no credit was missed.
        """
        balances = await self.list_token_balances(chain_id)
        return sum(balance.balance for balance in balances)

    async def list_events(
        self,
        chain_id: int,
        from_block: int | None = None,
        to_block: int | None = None,
        event_name: str | None = None,
        limit: int = DEFAULT_EVENTS_LIMIT,
    ) -> list[EventRecord]:
        """
        List recorded events of a chain in stream order.

        Args:
            chain_id: Chain to list
            from_block: Inclusive lower block bound
            to_block: Inclusive upper block bound
            event_name: Filter by event name
            limit: Max results (capped)

        Returns:
            EventRecords ordered by (block_number, log_index)
        """
        limit = max(1, min(limit, MAX_EVENTS_LIMIT))
        async with self.session_maker() as session:
            return await EventRecordRepository(session).list_range(
                chain_id,
                from_block=from_block,
                to_block=to_block,
                event_name=event_name,
                limit=limit,
            )

    async def list_transfers(
        self,
        address: str,
        chain_id: int | None = None,
        limit: int = DEFAULT_EVENTS_LIMIT,
    ) -> list[EventRecord]:
        """Transfers sent or received by an address, newest first."""
        address = normalize_address(address)
        limit = max(1, min(limit, MAX_EVENTS_LIMIT))
        async with self.session_maker() as session:
            return await EventRecordRepository(session).list_transfers(
                address, chain_id=chain_id, limit=limit
            )

    async def get_chain_cursor(self, chain_id: int) -> EventKey | None:
        """Key of the last committed event of a chain."""
        async with self.session_maker() as session:
            state = await ChainSyncStateRepository(session).get_for_chain(chain_id)
            if state is None:
                return None
            return ChainSyncStateRepository.cursor_key(state)

    async def get_indexer_stats(self) -> dict:
        """
        Get statistics about the indexer.

        Returns:
            Dictionary with per-chain cursors, row counts and diagnostics
        """
        async with self.session_maker() as session:
            sync_states = await ChainSyncStateRepository(session).find_all()
            event_counts = await EventRecordRepository(session).count_by_event_name()
            users = await UserStatsRepository(session).count()
            balances = await TokenBalanceRepository(session).count()
            negative = await session.execute(
                select(func.count())
                .select_from(TokenBalance)
                .where(type_coerce(TokenBalance.balance, String).like("-%"))
            )

        return {
            "chains": {
                state.chain_id: {
                    "cursor": state.last_event_id,
                    "finalized_block": state.finalized_block,
                    "events_applied": state.events_applied,
                    "error_count": state.error_count,
                    "last_error": state.last_error,
                }
                for state in sync_states
            },
            "events": event_counts,
            "total_events": sum(event_counts.values()),
            "users": users,
            "balances": balances,
            "negative_balances": negative.scalar() or 0,
            "diagnostics": self.diagnostics.snapshot(),
        }

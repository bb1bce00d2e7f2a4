"""
TokenBalance repository.

Data access layer for per-address token balances.
"""

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from indexer.models.token_balance import TokenBalance
from indexer.repositories.base import BaseRepository
from indexer.state import TokenBalanceState


class TokenBalanceRepository(BaseRepository[TokenBalance]):
    """Repository for token balances."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(TokenBalance, session)

    async def get_states(
        self, keys: Iterable[str], for_update: bool = False
    ) -> tuple[dict[str, TokenBalanceState], dict[str, TokenBalance]]:
        """
        Load rows and their immutable snapshots.

        Returns:
            (snapshots by key, ORM rows by key)
        """
        rows = await self.get_many(keys, for_update=for_update)
        return {k: TokenBalanceState.from_row(r) for k, r in rows.items()}, rows

    def save_states(
        self,
        states: Iterable[TokenBalanceState],
        rows: dict[str, TokenBalance] | None = None,
    ) -> None:
        """
        Write snapshots back, creating rows that do not exist yet.

        Args:
            states: Next state of each touched balance
            rows: Rows loaded in this session, keyed by storage key
        """
        rows = rows or {}
        for state in states:
            row = rows.get(state.key)
            if row is None:
                self.session.add(TokenBalance(
                    id=state.key,
                    chain_id=state.chain_id,
                    address=state.address,
                    balance=state.balance,
                    last_updated=state.last_updated,
                    last_event_id=state.last_event_id,
                ))
                continue
            row.balance = state.balance
            row.last_updated = state.last_updated
            row.last_event_id = state.last_event_id

    async def list_balances(self, chain_id: int | None = None) -> list[TokenBalance]:
        """
        List balances, optionally for one chain.

        Args:
            chain_id: Chain filter (ignored rows with NULL chain_id
                are only returned when chain_id is None)

        Returns:
            Balances ordered by storage key
        """
        query = select(TokenBalance).order_by(TokenBalance.id)
        if chain_id is not None:
            query = query.where(TokenBalance.chain_id == chain_id)
        result = await self.session.execute(query)
        return list(result.scalars().all())

"""
UserStats repository.

Data access layer for per-user aggregates.
"""

from collections.abc import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from indexer.models.user_stats import UserStats
from indexer.repositories.base import BaseRepository
from indexer.state import UserStatsState


class UserStatsRepository(BaseRepository[UserStats]):
    """Repository for user statistics."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(UserStats, session)

    async def get_states(
        self, addresses: Iterable[str], for_update: bool = False
    ) -> tuple[dict[str, UserStatsState], dict[str, UserStats]]:
        """
        Load rows and their immutable snapshots.

        Returns:
            (snapshots by address, ORM rows by address)
        """
        rows = await self.get_many(addresses, for_update=for_update)
        return {a: UserStatsState.from_row(r) for a, r in rows.items()}, rows

    def save_states(
        self,
        states: Iterable[UserStatsState],
        rows: dict[str, UserStats] | None = None,
    ) -> None:
        """
        Write snapshots back, creating rows that do not exist yet.

        Args:
            states: Next state of each touched user
            rows: Rows loaded in this session, keyed by address
        """
        rows = rows or {}
        for state in states:
            row = rows.get(state.address)
            if row is None:
                self.session.add(UserStats(
                    address=state.address,
                    registered_at=state.registered_at,
                    last_active=state.last_active,
                    total_portfolio_value=state.total_portfolio_value,
                    alert_count=state.alert_count,
                    portfolio_event_id=state.portfolio_event_id,
                ))
                continue
            row.registered_at = state.registered_at
            row.last_active = state.last_active
            row.total_portfolio_value = state.total_portfolio_value
            row.alert_count = state.alert_count
            row.portfolio_event_id = state.portfolio_event_id

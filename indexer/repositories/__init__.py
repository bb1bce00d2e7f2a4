"""
Repositories.

Data access layer for the event log and materialized views.
"""

from .base import BaseRepository
from .chain_sync_state_repository import ChainSyncStateRepository
from .event_record_repository import EventRecordRepository
from .token_balance_repository import TokenBalanceRepository
from .user_stats_repository import UserStatsRepository

__all__ = [
    "BaseRepository",
    "ChainSyncStateRepository",
    "EventRecordRepository",
    "TokenBalanceRepository",
    "UserStatsRepository",
]

"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from indexer.models.base import Base
from indexer.models.chain_sync_state import ChainSyncState
from indexer.models.event_record import EventRecord
from indexer.models.token_balance import TokenBalance
from indexer.models.types import AmountType, BigIntegerAmount
from indexer.models.user_stats import UserStats

__all__ = [
    "AmountType",
    "Base",
    "BigIntegerAmount",
    "ChainSyncState",
    "EventRecord",
    "TokenBalance",
    "UserStats",
]

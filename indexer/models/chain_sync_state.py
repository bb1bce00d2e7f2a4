"""
Chain Sync State model.

Tracks the ingestion cursor of each chain.
"""

from datetime import UTC, datetime

from sqlalchemy import BigInteger, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from indexer.models.base import Base


class ChainSyncState(Base):
    """
    Tracks per-chain ingestion progress.

    Used to:
    - Enforce (block_number, log_index) order within a chain
    - Resume ingestion after restart or feed reconnect
    - Guard against reorgs below the finality watermark
    """

    __tablename__ = "chain_sync_state"

    chain_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)

    # Cursor: position of the last committed event (-1 = nothing applied)
    last_block_number: Mapped[int] = mapped_column(BigInteger, nullable=False, default=-1)
    last_log_index: Mapped[int] = mapped_column(Integer, nullable=False, default=-1)
    last_event_id: Mapped[str | None] = mapped_column(String(96), nullable=True)

    # Blocks at or below this number are final and cannot be rolled back
    finalized_block: Mapped[int] = mapped_column(BigInteger, nullable=False, default=-1)

    # Sequence of the last reorg notice handled (0 = none)
    reorg_sequence: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    # Statistics
    events_applied: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Error tracking
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<ChainSyncState chain={self.chain_id} "
            f"cursor={self.last_block_number}:{self.last_log_index}>"
        )

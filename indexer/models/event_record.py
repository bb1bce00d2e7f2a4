"""
EventRecord model.

Append-only audit log of every applied event. Rows are written once and
are only removed by reorg rollback.
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, BigInteger, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from indexer.models.base import Base


class EventRecord(Base):
    """
    Immutable copy of an applied event.

    Identity is "{chain_id}_{block_number}_{log_index}". Integer
    parameters are stored as decimal strings in `params`.
    """

    __tablename__ = "event_records"

    # Identity
    id: Mapped[str] = mapped_column(String(96), primary_key=True)
    chain_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    block_number: Mapped[int] = mapped_column(BigInteger, nullable=False)
    log_index: Mapped[int] = mapped_column(Integer, nullable=False)

    # Origin
    transaction_hash: Mapped[str] = mapped_column(String(66), nullable=False, index=True)
    block_timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)
    contract: Mapped[str] = mapped_column(String(64), nullable=False)
    event_name: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # Decoded parameters
    params: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    __table_args__ = (
        Index(
            "ix_event_records_chain_position",
            "chain_id",
            "block_number",
            "log_index",
            unique=True,
        ),
    )

    def __repr__(self) -> str:
        return f"<EventRecord {self.id} {self.event_name}>"

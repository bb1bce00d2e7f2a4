"""
TokenBalance model.

Per-address token balance folded from Transfer events.
"""

from datetime import UTC, datetime

from sqlalchemy import BigInteger, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from indexer.models.base import Base
from indexer.models.types import AmountType


class TokenBalance(Base):
    """
    Materialized token balance.

    The primary key is the storage key: "{chain_id}_{address}" under chain
    scope, or the bare address under address scope (chain_id is NULL).
    A negative balance means a credit (usually a mint) was never observed.
    """

    __tablename__ = "token_balances"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    chain_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True, index=True)
    address: Mapped[str] = mapped_column(String(42), nullable=False, index=True)

    balance: Mapped[int] = mapped_column(AmountType, nullable=False, default=0)
    last_updated: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    last_event_id: Mapped[str | None] = mapped_column(String(96), nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<TokenBalance {self.id} balance={self.balance}>"

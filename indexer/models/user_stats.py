"""
UserStats model.

Per-user aggregate folded from registry events.
"""

from datetime import UTC, datetime

from sqlalchemy import BigInteger, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from indexer.models.base import Base
from indexer.models.types import AmountType


class UserStats(Base):
    """
    Materialized statistics for a user address.

    `registered_at` stays NULL when portfolio or alert events arrive
    before the user's registration event.
    """

    __tablename__ = "user_stats"

    # Lowercase hex address
    address: Mapped[str] = mapped_column(String(42), primary_key=True)

    registered_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    last_active: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_portfolio_value: Mapped[int] = mapped_column(AmountType, nullable=False, default=0)
    alert_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Identity of the PortfolioUpdated event that set total_portfolio_value
    portfolio_event_id: Mapped[str | None] = mapped_column(String(96), nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<UserStats {self.address} alerts={self.alert_count}>"

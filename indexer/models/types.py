"""
Standard type definitions for database models.

Provides exact integer storage for on-chain amounts.
"""

from sqlalchemy import String
from sqlalchemy.types import TypeDecorator


class BigIntegerAmount(TypeDecorator):
    """
    Arbitrary-precision signed integer.

    Stored as canonical decimal text so uint256 values (and negative
    balances after a missed mint) round-trip exactly on every backend.
    Range: -10**78 < value < 10**78
    """

    impl = String(80)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"BigIntegerAmount expects int, got {type(value).__name__}")
        return str(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return int(value)


# Amount type for balances and portfolio values
AmountType = BigIntegerAmount()

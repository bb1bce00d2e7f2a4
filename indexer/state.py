"""
Materialized view state.

Immutable snapshots of aggregate rows. Reducers receive and return these;
only the service converts them to and from ORM rows.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import NamedTuple

from indexer.config.constants import BALANCE_SCOPE_ADDRESS, BALANCE_SCOPE_CHAIN
from indexer.models import TokenBalance, UserStats
from indexer.services.diagnostics import Diagnostic


class BalanceKey(NamedTuple):
    """Storage key of a TokenBalance row."""

    key: str
    chain_id: int | None
    address: str


def balance_key(chain_id: int, address: str, scope: str) -> BalanceKey:
    """
    Compute the TokenBalance key for an address.

    Under chain scope the same address on two chains has two rows;
    under address scope they share one row with chain_id NULL.
    """
    if scope == BALANCE_SCOPE_CHAIN:
        return BalanceKey(f"{chain_id}_{address}", chain_id, address)
    if scope == BALANCE_SCOPE_ADDRESS:
        return BalanceKey(address, None, address)
    raise ValueError(f"Unknown balance key scope: {scope}")


@dataclass(frozen=True)
class UserStatsState:
    address: str
    registered_at: int | None
    last_active: int
    total_portfolio_value: int
    alert_count: int
    portfolio_event_id: str | None = None

    @classmethod
    def unregistered(cls, address: str) -> "UserStatsState":
        """Row created by a non-registration event; registered_at unset."""
        return cls(
            address=address,
            registered_at=None,
            last_active=0,
            total_portfolio_value=0,
            alert_count=0,
        )

    @classmethod
    def from_row(cls, row: UserStats) -> "UserStatsState":
        return cls(
            address=row.address,
            registered_at=row.registered_at,
            last_active=row.last_active,
            total_portfolio_value=row.total_portfolio_value,
            alert_count=row.alert_count,
            portfolio_event_id=row.portfolio_event_id,
        )


@dataclass(frozen=True)
class TokenBalanceState:
    key: str
    chain_id: int | None
    address: str
    balance: int
    last_updated: int
    last_event_id: str | None = None

    @classmethod
    def empty(cls, key: BalanceKey) -> "TokenBalanceState":
        return cls(
            key=key.key,
            chain_id=key.chain_id,
            address=key.address,
            balance=0,
            last_updated=0,
        )

    @classmethod
    def from_row(cls, row: TokenBalance) -> "TokenBalanceState":
        return cls(
            key=row.id,
            chain_id=row.chain_id,
            address=row.address,
            balance=row.balance,
            last_updated=row.last_updated,
            last_event_id=row.last_event_id,
        )


@dataclass(frozen=True)
class TouchedKeys:
    """Aggregate rows an event reads and may write."""

    users: tuple[str, ...] = ()
    balances: tuple[BalanceKey, ...] = ()

    def lock_names(self) -> list[str]:
        return [f"user:{address}" for address in self.users] + [
            f"balance:{key.key}" for key in self.balances
        ]


@dataclass(frozen=True)
class ViewState:
    """Current state of the rows an event touches (absent = no row yet)."""

    user_stats: Mapping[str, UserStatsState] = field(default_factory=dict)
    balances: Mapping[str, TokenBalanceState] = field(default_factory=dict)
    balance_scope: str = BALANCE_SCOPE_CHAIN


@dataclass(frozen=True)
class Reduction:
    """Next state of the touched rows plus findings."""

    user_stats: tuple[UserStatsState, ...] = ()
    balances: tuple[TokenBalanceState, ...] = ()
    diagnostics: tuple[Diagnostic, ...] = ()

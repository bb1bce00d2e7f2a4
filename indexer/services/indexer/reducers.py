"""
Event reducers.

Pure functions `(ViewState, event) -> Reduction`. They never touch the
database; the service loads the rows named by the matching `touches_*`
function, calls the reducer and persists the result atomically.
"""

from dataclasses import replace

from indexer.events.identity import EventKey
from indexer.events.types import (
    AlertCreated,
    Approval,
    PortfolioUpdated,
    Transfer,
    UserRegistered,
)
from indexer.services.diagnostics import (
    BALANCE_UNDERFLOW,
    STALE_PORTFOLIO_UPDATE,
    Diagnostic,
)
from indexer.state import (
    Reduction,
    TokenBalanceState,
    TouchedKeys,
    UserStatsState,
    ViewState,
    balance_key,
)
from indexer.utils.addresses import is_zero_address, mask_address


# Touched keys

def touches_user(event: UserRegistered | PortfolioUpdated | AlertCreated, scope: str) -> TouchedKeys:
    return TouchedKeys(users=(event.user,))


def touches_transfer(event: Transfer, scope: str) -> TouchedKeys:
    keys = []
    for address in (event.from_address, event.to_address):
        if is_zero_address(address):
            continue
        key = balance_key(event.chain_id, address, scope)
        if key not in keys:
            keys.append(key)
    return TouchedKeys(balances=tuple(keys))


def touches_nothing(event: Approval, scope: str) -> TouchedKeys:
    return TouchedKeys()


# Reducers

def reduce_user_registered(state: ViewState, event: UserRegistered) -> Reduction:
    """
    Create the user's stats row, or refresh lastActive on re-registration.

    registered_at is the earliest registration timestamp seen for the
    user on any chain, so it does not depend on the order chains are
    folded in.
    """
    ts = event.activity_timestamp
    current = state.user_stats.get(event.user)

    if current is None:
        nxt = UserStatsState(
            address=event.user,
            registered_at=ts,
            last_active=ts,
            total_portfolio_value=0,
            alert_count=0,
        )
    else:
        registered_at = (
            ts if current.registered_at is None else min(current.registered_at, ts)
        )
        nxt = replace(
            current,
            registered_at=registered_at,
            last_active=max(current.last_active, ts),
        )

    return Reduction(user_stats=(nxt,))


def reduce_portfolio_updated(state: ViewState, event: PortfolioUpdated) -> Reduction:
    """
    Overwrite the portfolio value with the newest update by event identity.

    An update older than the one already applied (possible only across
    chains) refreshes lastActive but leaves the value untouched.
    """
    current = state.user_stats.get(event.user) or UserStatsState.unregistered(event.user)
    last_active = max(current.last_active, event.activity_timestamp)

    if (
        current.portfolio_event_id is not None
        and EventKey.parse(current.portfolio_event_id) > event.key
    ):
        nxt = replace(current, last_active=last_active)
        finding = Diagnostic(
            kind=STALE_PORTFOLIO_UPDATE,
            event_id=event.event_id,
            message=(
                f"Portfolio update {event.event_id} for {mask_address(event.user)} "
                f"is older than {current.portfolio_event_id}; value kept"
            ),
        )
        return Reduction(user_stats=(nxt,), diagnostics=(finding,))

    nxt = replace(
        current,
        total_portfolio_value=event.total_value,
        portfolio_event_id=event.event_id,
        last_active=last_active,
    )
    return Reduction(user_stats=(nxt,))


def reduce_alert_created(state: ViewState, event: AlertCreated) -> Reduction:
    current = state.user_stats.get(event.user) or UserStatsState.unregistered(event.user)
    nxt = replace(
        current,
        alert_count=current.alert_count + 1,
        last_active=max(current.last_active, event.activity_timestamp),
    )
    return Reduction(user_stats=(nxt,))


def reduce_transfer(state: ViewState, event: Transfer) -> Reduction:
    """
    Move `value` from sender to receiver.

    The zero address is a mint source / burn sink and never gets a row.
    A sender with no row is treated as zero; going below zero is applied
    as-is and reported as a balance underflow.
    """
    pending: dict[str, TokenBalanceState] = {}
    findings: list[Diagnostic] = []
    ts = event.block_timestamp

    def current_for(address: str) -> TokenBalanceState:
        key = balance_key(event.chain_id, address, state.balance_scope)
        return (
            pending.get(key.key)
            or state.balances.get(key.key)
            or TokenBalanceState.empty(key)
        )

    if not is_zero_address(event.from_address):
        sender = current_for(event.from_address)
        new_balance = sender.balance - event.value
        if new_balance < 0:
            findings.append(Diagnostic(
                kind=BALANCE_UNDERFLOW,
                event_id=event.event_id,
                message=(
                    f"Balance of {mask_address(event.from_address)} went negative "
                    f"({sender.balance} - {event.value} = {new_balance}); "
                    f"a prior credit was not observed"
                ),
                details={
                    "address": event.from_address,
                    "balance": str(new_balance),
                },
            ))
        pending[sender.key] = replace(
            sender,
            balance=new_balance,
            last_updated=max(sender.last_updated, ts),
            last_event_id=event.event_id,
        )

    if not is_zero_address(event.to_address):
        receiver = current_for(event.to_address)
        pending[receiver.key] = replace(
            receiver,
            balance=receiver.balance + event.value,
            last_updated=max(receiver.last_updated, ts),
            last_event_id=event.event_id,
        )

    return Reduction(balances=tuple(pending.values()), diagnostics=tuple(findings))


def reduce_approval(state: ViewState, event: Approval) -> Reduction:
    """Approvals are kept in the event log only."""
    return Reduction()

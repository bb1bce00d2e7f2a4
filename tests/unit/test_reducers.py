"""
Tests for event reducers.

Tests cover:
- User registration and activity timestamps
- Portfolio overwrite semantics
- Alert counting
- Token balance conservation, mint, burn and underflow
- Approval as a log-only event

Reducers are pure, so these run without a database.
"""

from indexer.services.diagnostics import BALANCE_UNDERFLOW, STALE_PORTFOLIO_UPDATE
from indexer.services.indexer.reducers import (
    reduce_approval,
    reduce_transfer,
    touches_transfer,
)
from indexer.state import UserStatsState, ViewState, balance_key


class TestUserRegistered:
    """Test reduce_user_registered."""

    def test_creates_row(self, typed, fold, alice):
        event = typed("UserRegistered", {"user": alice, "timestamp": 100})

        state, findings = fold([event])

        stats = state.user_stats[alice]
        assert stats.registered_at == 100
        assert stats.last_active == 100
        assert stats.total_portfolio_value == 0
        assert stats.alert_count == 0
        assert findings == []

    def test_reregistration_keeps_registered_at(self, typed, fold, alice):
        state, _ = fold([
            typed("UserRegistered", {"user": alice, "timestamp": 100}, block_number=1),
            typed("UserRegistered", {"user": alice, "timestamp": 200}, block_number=2),
        ])

        assert state.user_stats[alice].registered_at == 100
        assert state.user_stats[alice].last_active == 200

    def test_fills_registered_at_after_early_activity(self, typed, fold, alice):
        """A portfolio update may create the row before registration."""
        state, _ = fold([
            typed("PortfolioUpdated", {"user": alice, "totalValue": "5"}, block_number=1,
                  block_timestamp=50),
            typed("UserRegistered", {"user": alice, "timestamp": 60}, block_number=2),
        ])

        stats = state.user_stats[alice]
        assert stats.registered_at == 60
        assert stats.total_portfolio_value == 5
        assert stats.last_active == 60

    def test_last_active_never_decreases(self, typed, fold, alice):
        state, _ = fold([
            typed("UserRegistered", {"user": alice, "timestamp": 500}, block_number=1),
            typed("AlertCreated", {"user": alice, "alertType": "x", "timestamp": 100},
                  block_number=2),
        ])

        assert state.user_stats[alice].last_active == 500

    def test_registered_at_is_earliest_across_chains(self, typed, fold, alice):
        late = typed("UserRegistered", {"user": alice, "timestamp": 500}, chain_id=137,
                     block_number=1)
        early = typed("UserRegistered", {"user": alice, "timestamp": 100}, block_number=1)

        arrival, _ = fold([late, early])
        replay, _ = fold([early, late])

        assert arrival.user_stats[alice].registered_at == 100
        assert replay.user_stats[alice] == arrival.user_stats[alice]


class TestPortfolioUpdated:
    """Test reduce_portfolio_updated."""

    def test_overwrites_value(self, typed, fold, alice):
        state, _ = fold([
            typed("PortfolioUpdated", {"user": alice, "totalValue": "100"}, block_number=1),
            typed("PortfolioUpdated", {"user": alice, "totalValue": "40"}, block_number=2),
        ])

        stats = state.user_stats[alice]
        assert stats.total_portfolio_value == 40
        assert stats.portfolio_event_id == "1_2_0"

    def test_unregistered_user_gets_row(self, typed, fold, alice):
        state, _ = fold([
            typed("PortfolioUpdated", {"user": alice, "totalValue": "7"}, block_timestamp=30),
        ])

        stats = state.user_stats[alice]
        assert stats.registered_at is None
        assert stats.last_active == 30

    def test_older_update_from_other_chain_is_stale(self, typed, fold, alice):
        """An update with a lower identity never overwrites a newer one."""
        state, findings = fold([
            typed("PortfolioUpdated", {"user": alice, "totalValue": "900"}, chain_id=137,
                  block_number=10),
            typed("PortfolioUpdated", {"user": alice, "totalValue": "1"}, chain_id=1,
                  block_number=99),
        ])

        assert state.user_stats[alice].total_portfolio_value == 900
        assert [f.kind for f in findings] == [STALE_PORTFOLIO_UPDATE]


class TestAlertCreated:
    """Test reduce_alert_created."""

    def test_counts_alerts(self, typed, fold, alice):
        state, _ = fold([
            typed("UserRegistered", {"user": alice, "timestamp": 1}, block_number=1),
            *[
                typed("AlertCreated", {"user": alice, "alertType": "price", "timestamp": 10 + i},
                      block_number=2 + i)
                for i in range(3)
            ],
        ])

        assert state.user_stats[alice].alert_count == 3
        assert state.user_stats[alice].last_active == 12


class TestTransfer:
    """Test reduce_transfer."""

    def test_conserves_value(self, typed, fold, alice, bob, zero_address):
        state, findings = fold([
            typed("Transfer", {"from": zero_address, "to": alice, "value": "100"}, block_number=1),
            typed("Transfer", {"from": alice, "to": bob, "value": "30"}, block_number=2),
        ])

        assert state.balances[f"1_{alice}"].balance == 70
        assert state.balances[f"1_{bob}"].balance == 30
        assert findings == []

    def test_mint_and_burn_skip_zero_address(self, typed, fold, alice, zero_address):
        state, _ = fold([
            typed("Transfer", {"from": zero_address, "to": alice, "value": "100"}, block_number=1),
            typed("Transfer", {"from": alice, "to": zero_address, "value": "40"}, block_number=2),
        ])

        assert f"1_{zero_address}" not in state.balances
        assert sum(b.balance for b in state.balances.values()) == 60

    def test_underflow_is_applied_and_reported(self, typed, fold, alice, bob):
        state, findings = fold([
            typed("Transfer", {"from": alice, "to": bob, "value": "10"}),
        ])

        assert state.balances[f"1_{alice}"].balance == -10
        assert state.balances[f"1_{bob}"].balance == 10
        assert [f.kind for f in findings] == [BALANCE_UNDERFLOW]
        assert findings[0].details["address"] == alice

    def test_self_transfer_is_noop_on_balance(self, typed, fold, alice, zero_address):
        state, _ = fold([
            typed("Transfer", {"from": zero_address, "to": alice, "value": "5"}, block_number=1),
            typed("Transfer", {"from": alice, "to": alice, "value": "5"}, block_number=2),
        ])

        assert state.balances[f"1_{alice}"].balance == 5
        assert state.balances[f"1_{alice}"].last_event_id == "1_2_0"

    def test_chain_scope_separates_chains(self, typed, fold, alice, zero_address):
        state, _ = fold([
            typed("Transfer", {"from": zero_address, "to": alice, "value": "1"}, chain_id=1),
            typed("Transfer", {"from": zero_address, "to": alice, "value": "2"}, chain_id=137),
        ])

        assert state.balances[f"1_{alice}"].balance == 1
        assert state.balances[f"137_{alice}"].balance == 2

    def test_address_scope_merges_chains(self, typed, fold, alice, zero_address):
        state, _ = fold(
            [
                typed("Transfer", {"from": zero_address, "to": alice, "value": "1"}, chain_id=1),
                typed("Transfer", {"from": zero_address, "to": alice, "value": "2"}, chain_id=137),
            ],
            scope="address",
        )

        assert state.balances[alice].balance == 3
        assert state.balances[alice].chain_id is None

    def test_last_updated_is_block_timestamp(self, typed, empty_state, alice, zero_address):
        event = typed("Transfer", {"from": zero_address, "to": alice, "value": "1"},
                      block_timestamp=1234)

        reduction = reduce_transfer(empty_state, event)

        assert reduction.balances[0].last_updated == 1234

    def test_touched_keys(self, typed, alice, zero_address):
        mint = typed("Transfer", {"from": zero_address, "to": alice, "value": "1"})
        self_transfer = typed("Transfer", {"from": alice, "to": alice, "value": "1"})

        assert touches_transfer(mint, "chain").balances == (balance_key(1, alice, "chain"),)
        assert len(touches_transfer(self_transfer, "chain").balances) == 1


class TestApproval:
    """Approvals never touch aggregates."""

    def test_no_changes(self, typed, alice, bob):
        event = typed("Approval", {"owner": alice, "spender": bob, "value": "1"})
        state = ViewState(user_stats={alice: UserStatsState.unregistered(alice)})

        reduction = reduce_approval(state, event)

        assert reduction.user_stats == ()
        assert reduction.balances == ()

"""
Shared fixtures for unit tests.

This module provides common fixtures used across reducer tests:
- Typed event builders
- Empty and pre-populated view states
"""

import pytest

from indexer.events.types import EVENT_TYPES
from indexer.state import ViewState


@pytest.fixture
def typed(make_event):
    """
    Build a typed event from a feed event.

    Usage:
        typed("Transfer", {...}, block_number=5)
    """
    def _typed(event_name: str, params: dict, **kwargs):
        return EVENT_TYPES[event_name].parse(make_event(event_name, params, **kwargs))

    return _typed


@pytest.fixture
def empty_state():
    """View state with no rows."""
    return ViewState()


@pytest.fixture
def fold():
    """
    Apply a sequence of typed events to an in-memory view.

    Returns:
        Callable returning (ViewState, list of diagnostics)
    """
    from indexer.services.indexer.registry import build_default_registry

    registry = build_default_registry()

    def _fold(events, scope: str = "chain"):
        users, balances, findings = {}, {}, []
        for event in events:
            handler = registry.resolve(event.contract, event.event_name)
            reduction = handler.reduce(
                ViewState(user_stats=users, balances=balances, balance_scope=scope),
                event,
            )
            users.update({u.address: u for u in reduction.user_stats})
            balances.update({b.key: b for b in reduction.balances})
            findings.extend(reduction.diagnostics)
        return ViewState(user_stats=users, balances=balances, balance_scope=scope), findings

    return _fold

"""
Event model.

Raw feed envelopes, identity keys and typed event variants.
"""

from .identity import EventKey, event_id_for
from .raw import RawEvent
from .types import (
    EVENT_TYPES,
    AlertCreated,
    Approval,
    ChainEvent,
    PortfolioUpdated,
    Transfer,
    UserRegistered,
)

__all__ = [
    "EVENT_TYPES",
    "AlertCreated",
    "Approval",
    "ChainEvent",
    "EventKey",
    "PortfolioUpdated",
    "RawEvent",
    "Transfer",
    "UserRegistered",
    "event_id_for",
]

"""
Event Indexer Service.

Consumes decoded contract events and folds them into queryable
materialized views.

Key features:
- Idempotent, ordered, atomic application per event
- Handler registry keyed by (contract, event name)
- Pure reducers per event type
- Reorg rollback with full replay from the event log
"""

from .core import EventIndexerService
from .registry import Handler, HandlerRegistry, build_default_registry
from .results import ApplyResult, ApplyStatus, RollbackResult

__all__ = [
    "ApplyResult",
    "ApplyStatus",
    "EventIndexerService",
    "Handler",
    "HandlerRegistry",
    "RollbackResult",
    "build_default_registry",
]

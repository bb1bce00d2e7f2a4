"""
Indexer diagnostics.

Operational counters and structured log records for everything the
pipeline drops, rejects, retries or flags as inconsistent.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

# Diagnostic kinds
APPLIED = "applied"
DUPLICATE = "duplicate"
IGNORED = "ignored"
MALFORMED = "malformed"
OUT_OF_ORDER = "out_of_order"
BALANCE_UNDERFLOW = "balance_underflow"
STALE_PORTFOLIO_UPDATE = "stale_portfolio_update"
COMMIT_RETRY = "commit_retry"
REORG = "reorg"
DUPLICATE_REORG = "duplicate_reorg"
RECONNECT = "reconnect"


@dataclass(frozen=True)
class Diagnostic:
    """Finding produced while reducing an event."""

    kind: str
    event_id: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)


class IndexerDiagnostics:
    """
    Counters for operational visibility.

    Every record_* call bumps a counter and emits a loguru record bound
    with `diagnostic=<kind>` so log shippers can route on it.
    """

    def __init__(self) -> None:
        self.counters: Counter[str] = Counter()
        self.ignored_pairs: Counter[tuple[str, str]] = Counter()

    def _log(self, kind: str, level: str, message: str, **extra: Any) -> None:
        logger.bind(diagnostic=kind, **extra).log(level, message)

    def record_applied(self, event_id: str) -> None:
        self.counters[APPLIED] += 1

    def record_duplicate(self, event_id: str) -> None:
        self.counters[DUPLICATE] += 1
        self._log(
            DUPLICATE, "DEBUG",
            f"[Indexer] Duplicate event {event_id} skipped",
            event_id=event_id,
        )

    def record_ignored(self, contract: str, event_name: str, event_id: str) -> None:
        """Unregistered (contract, event) pair."""
        self.counters[IGNORED] += 1
        self.ignored_pairs[(contract, event_name)] += 1
        self._log(
            IGNORED, "DEBUG",
            f"[Indexer] No handler for {contract}.{event_name} ({event_id})",
            event_id=event_id,
        )

    def record_malformed(self, event_id: str | None, error: Exception) -> None:
        self.counters[MALFORMED] += 1
        self._log(
            MALFORMED, "WARNING",
            f"[Indexer] Dropped malformed event {event_id}: {error}",
            event_id=event_id,
        )

    def record_out_of_order(self, event_id: str, cursor_event_id: str | None) -> None:
        self.counters[OUT_OF_ORDER] += 1
        self._log(
            OUT_OF_ORDER, "WARNING",
            f"[Indexer] Rejected out-of-order event {event_id} "
            f"(chain cursor at {cursor_event_id})",
            event_id=event_id,
        )

    def record_commit_retry(self, event_id: str, attempt: int, error: BaseException) -> None:
        self.counters[COMMIT_RETRY] += 1
        self._log(
            COMMIT_RETRY, "WARNING",
            f"[Store] Commit of {event_id} failed (attempt {attempt}): {error}",
            event_id=event_id,
        )

    def record_duplicate_reorg(self, chain_id: int, sequence: int) -> None:
        self.counters[DUPLICATE_REORG] += 1
        self._log(
            DUPLICATE_REORG, "INFO",
            f"[Reorg] Chain {chain_id}: notice #{sequence} already handled, skipped",
            chain_id=chain_id,
        )

    def record_reorg(self, chain_id: int, block_number: int, removed: int) -> None:
        self.counters[REORG] += 1
        self._log(
            REORG, "WARNING",
            f"[Reorg] Chain {chain_id} rolled back to block {block_number}, "
            f"{removed} event(s) removed",
            chain_id=chain_id,
        )

    def record_reconnect(self, chain_id: int, error: BaseException) -> None:
        self.counters[RECONNECT] += 1
        self._log(
            RECONNECT, "WARNING",
            f"[Worker chain={chain_id}] Reconnecting after: {error}",
            chain_id=chain_id,
        )

    def record(self, diagnostic: Diagnostic) -> None:
        """Record a reducer finding."""
        self.counters[diagnostic.kind] += 1
        level = "WARNING" if diagnostic.kind == BALANCE_UNDERFLOW else "INFO"
        self._log(
            diagnostic.kind, level,
            f"[Indexer] {diagnostic.message}",
            event_id=diagnostic.event_id,
            **diagnostic.details,
        )

    def snapshot(self) -> dict[str, Any]:
        """Plain-dict view for operational tooling."""
        return {
            "counters": dict(self.counters),
            "ignored_pairs": {
                f"{contract}.{event_name}": count
                for (contract, event_name), count in self.ignored_pairs.items()
            },
        }

"""
Indexer result types.
"""

from dataclasses import dataclass
from enum import Enum

from indexer.events.identity import EventKey
from indexer.services.diagnostics import Diagnostic


class ApplyStatus(str, Enum):
    """Outcome of applying one event."""

    APPLIED = "applied"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class ApplyResult:
    event_id: str | None
    status: ApplyStatus
    diagnostics: tuple[Diagnostic, ...] = ()

    @property
    def applied(self) -> bool:
        return self.status is ApplyStatus.APPLIED


@dataclass(frozen=True)
class RollbackResult:
    """Outcome of a reorg rollback."""

    chain_id: int
    block_number: int
    log_index: int | None
    removed: int
    replayed: int
    cursor: EventKey | None
    duplicate: bool = False

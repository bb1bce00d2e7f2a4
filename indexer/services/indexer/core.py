"""
Event Indexer Core Service.

Main service class that combines all indexer functionality.
Inherits from mixins to provide apply, reorg and query methods.
"""

import asyncio
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from indexer.config.constants import BALANCE_KEY_SCOPES
from indexer.config.settings import settings
from indexer.services.diagnostics import IndexerDiagnostics
from indexer.utils.keyed_lock import KeyedLock, SharedExclusiveLock

from .apply_mixin import ApplyMixin
from .queries_mixin import QueriesMixin
from .registry import HandlerRegistry, build_default_registry
from .reorg_mixin import ReorgMixin


class EventIndexerService(ApplyMixin, ReorgMixin, QueriesMixin):
    """
    On-chain event indexer.

    Folds decoded events into UserStats and TokenBalance views with:
    - Idempotent application keyed by event identity
    - Per-chain (block_number, log_index) order enforcement
    - One transaction per event (record + aggregates + cursor)
    - Per-aggregate-key serialization across chain workers
    - Reorg rollback by full replay of the event log

    One instance is shared by all chain workers of a process.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        registry: HandlerRegistry | None = None,
        diagnostics: IndexerDiagnostics | None = None,
        balance_key_scope: str | None = None,
        finality_depth: int | None = None,
        chain_ids: Iterable[int] | None = None,
        commit_max_retries: int | None = None,
        commit_retry_delay_base: float | None = None,
    ):
        """
        Initialize indexer.

        Args:
            session_maker: Async session factory
            registry: Handler registry (default: registry + token handlers)
            diagnostics: Shared diagnostics counters
            balance_key_scope: "chain" or "address"
            finality_depth: Blocks behind the cursor treated as final
            chain_ids: Accepted chains (None accepts any chain)
            commit_max_retries: Commit attempts per event
            commit_retry_delay_base: Base backoff delay in seconds
        """
        self.session_maker = session_maker
        self.registry = registry or build_default_registry()
        self.diagnostics = diagnostics or IndexerDiagnostics()

        self.balance_key_scope = balance_key_scope or settings.balance_key_scope
        if self.balance_key_scope not in BALANCE_KEY_SCOPES:
            raise ValueError(f"Unknown balance key scope: {self.balance_key_scope}")

        self.finality_depth = (
            settings.finality_depth if finality_depth is None else finality_depth
        )
        self.chain_ids = frozenset(chain_ids) if chain_ids is not None else None

        # Commit retry settings
        self.commit_max_retries = commit_max_retries or settings.store_commit_max_retries
        self.commit_retry_delay_base = (
            settings.store_commit_retry_delay_base
            if commit_retry_delay_base is None
            else commit_retry_delay_base
        )

        # Concurrency control
        self.locks = KeyedLock()
        self.gate = SharedExclusiveLock()
        self._serial_writes = asyncio.Lock() if self._single_writer_backend() else None

    def _single_writer_backend(self) -> bool:
        """SQLite allows one writing transaction at a time."""
        bind = self.session_maker.kw.get("bind")
        return bind is not None and bind.dialect.name == "sqlite"

    @asynccontextmanager
    async def _writer(self, lock_names: list[str]) -> AsyncIterator[None]:
        """Hold the rebuild gate (shared) and the per-key locks."""
        async with self.gate.shared(), self.locks.acquire(lock_names):
            if self._serial_writes is None:
                yield
            else:
                async with self._serial_writes:
                    yield

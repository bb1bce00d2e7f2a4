"""
Event Indexer Apply Mixin.

Dedup, ordering check, dispatch and atomic commit of single events.
"""

from collections.abc import Mapping
from typing import Any

from loguru import logger
from sqlalchemy.exc import IntegrityError

from indexer.events.raw import RawEvent
from indexer.events.types import ChainEvent
from indexer.repositories import (
    ChainSyncStateRepository,
    EventRecordRepository,
    TokenBalanceRepository,
    UserStatsRepository,
)
from indexer.services.indexer.registry import Handler
from indexer.services.indexer.results import ApplyResult, ApplyStatus
from indexer.state import TouchedKeys, ViewState
from indexer.utils.db_retry import run_with_commit_retry
from indexer.utils.exceptions import (
    MalformedEventError,
    OutOfOrderEventError,
    StoreCommitError,
    UnsupportedChainError,
)


class ApplyMixin:
    """Mixin providing event application."""

    async def apply(self, raw: RawEvent) -> ApplyResult:
        """
        Apply one feed event to the materialized views.

        Duplicates, unregistered events and malformed events are not
        errors; they come back as the matching ApplyStatus.

        Args:
            raw: Decoded feed event

        Returns:
            ApplyResult with status and reducer findings

        Raises:
            UnsupportedChainError: If the chain is not configured
            OutOfOrderEventError: If the event is behind the chain cursor
            StoreCommitError: If the commit kept failing
        """
        event_id = raw.event_id

        if self.chain_ids is not None and raw.chain_id not in self.chain_ids:
            raise UnsupportedChainError(
                f"Chain {raw.chain_id} is not indexed (event {event_id})"
            )

        handler = self.registry.resolve(raw.contract, raw.event_name)
        if handler is None:
            self.diagnostics.record_ignored(raw.contract, raw.event_name, event_id)
            return ApplyResult(event_id, ApplyStatus.IGNORED)

        try:
            event = handler.event_type.parse(raw)
        except MalformedEventError as e:
            self.diagnostics.record_malformed(event_id, e)
            return ApplyResult(event_id, ApplyStatus.MALFORMED)

        touched = handler.touches(event, self.balance_key_scope)

        async with self._writer(touched.lock_names()):
            try:
                result = await run_with_commit_retry(
                    lambda: self._commit_event(handler, event, touched),
                    max_retries=self.commit_max_retries,
                    delay_base=self.commit_retry_delay_base,
                    operation_name=f"apply {event_id}",
                    on_retry=lambda attempt, error: (
                        self.diagnostics.record_commit_retry(event_id, attempt, error)
                    ),
                )
            except OutOfOrderEventError as e:
                self.diagnostics.record_out_of_order(e.event_id, e.cursor_event_id)
                raise
            except IntegrityError as e:
                # Lost a race against a redelivery of the same event
                if await self.is_applied(event_id):
                    result = ApplyResult(event_id, ApplyStatus.DUPLICATE)
                else:
                    raise StoreCommitError(f"apply {event_id} failed: {e}") from e

        if result.status is ApplyStatus.DUPLICATE:
            self.diagnostics.record_duplicate(event_id)
            return result

        self.diagnostics.record_applied(event_id)
        for finding in result.diagnostics:
            self.diagnostics.record(finding)

        logger.debug(f"[Indexer] Applied {event.event_name} {event_id}")
        return result

    async def apply_payload(self, payload: Mapping[str, Any]) -> ApplyResult:
        """
        Apply an event in the nested feed shape.

        A payload that cannot even be read as an envelope is dropped as
        malformed.
        """
        try:
            raw = RawEvent.from_feed(payload)
        except MalformedEventError as e:
            self.diagnostics.record_malformed(None, e)
            return ApplyResult(None, ApplyStatus.MALFORMED)
        return await self.apply(raw)

    async def is_applied(self, event_id: str) -> bool:
        """Check the event log for an identity."""
        async with self.session_maker() as session:
            return await EventRecordRepository(session).exists(event_id)

    async def _commit_event(
        self,
        handler: Handler,
        event: ChainEvent,
        touched: TouchedKeys,
    ) -> ApplyResult:
        """
        Dedup, order-check, reduce and persist in one transaction.

        The EventRecord, aggregate upserts and cursor advance commit
        together or not at all.
        """
        async with self.session_maker() as session:
            async with session.begin():
                records = EventRecordRepository(session)
                if await records.exists(event.event_id):
                    return ApplyResult(event.event_id, ApplyStatus.DUPLICATE)

                sync_repo = ChainSyncStateRepository(session)
                sync_state = await sync_repo.get_or_create(event.chain_id, for_update=True)
                cursor = sync_repo.cursor_key(sync_state)
                if cursor is not None and event.key.position <= cursor.position:
                    raise OutOfOrderEventError(event.event_id, cursor.event_id)

                user_repo = UserStatsRepository(session)
                balance_repo = TokenBalanceRepository(session)
                users, user_rows = await user_repo.get_states(
                    touched.users, for_update=True
                )
                balances, balance_rows = await balance_repo.get_states(
                    (key.key for key in touched.balances), for_update=True
                )

                reduction = handler.reduce(
                    ViewState(
                        user_stats=users,
                        balances=balances,
                        balance_scope=self.balance_key_scope,
                    ),
                    event,
                )

                records.add_event(event)
                user_repo.save_states(reduction.user_stats, user_rows)
                balance_repo.save_states(reduction.balances, balance_rows)
                sync_repo.advance(sync_state, event.key, self.finality_depth)

        return ApplyResult(event.event_id, ApplyStatus.APPLIED, reduction.diagnostics)

    async def record_chain_error(self, chain_id: int, message: str) -> None:
        """Persist the last ingestion error of a chain."""
        async with self._writer([f"chain:{chain_id}"]):
            async with self.session_maker() as session:
                async with session.begin():
                    sync_repo = ChainSyncStateRepository(session)
                    state = await sync_repo.get_or_create(chain_id, for_update=True)
                    sync_repo.record_error(state, message)

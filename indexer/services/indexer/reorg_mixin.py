"""
Event Indexer Reorg Mixin.

Rollback of invalidated blocks and full recomputation of the
materialized views from the event log.
"""

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from indexer.events.raw import RawEvent
from indexer.models.event_record import EventRecord
from indexer.repositories import (
    ChainSyncStateRepository,
    EventRecordRepository,
    TokenBalanceRepository,
    UserStatsRepository,
)
from indexer.services.indexer.results import RollbackResult
from indexer.state import TokenBalanceState, UserStatsState, ViewState
from indexer.utils.db_retry import run_with_commit_retry
from indexer.utils.exceptions import MalformedEventError, ReorgBelowWatermarkError


def record_to_raw(record: EventRecord) -> RawEvent:
    """Rebuild the feed envelope of a recorded event."""
    return RawEvent(
        chain_id=record.chain_id,
        block_number=record.block_number,
        log_index=record.log_index,
        block_timestamp=record.block_timestamp,
        transaction_hash=record.transaction_hash,
        contract=record.contract,
        event_name=record.event_name,
        params=record.params,
    )


class ReorgMixin:
    """Mixin providing rollback and replay."""

    async def rollback_to(
        self,
        chain_id: int,
        block_number: int,
        log_index: int | None = None,
        sequence: int | None = None,
    ) -> RollbackResult:
        """
        Invalidate a chain's events above a watermark.

        Removes the EventRecords after (block_number, log_index), then
        recomputes every aggregate by replaying the remaining log and
        rewinds the chain cursor, all in one transaction. Ingestion on
        every chain pauses for the duration.

        Args:
            chain_id: Chain that reorganized
            block_number: Last valid block
            log_index: Last valid log index in that block (None = whole block)
            sequence: Feed sequence of the reorg notice. A notice whose
                sequence is not above the last one handled for the chain
                is a redelivery and is skipped.

        Returns:
            RollbackResult

        Raises:
            ReorgBelowWatermarkError: If finalized blocks would be invalidated
        """
        async with self.gate.exclusive():
            result = await run_with_commit_retry(
                lambda: self._rollback(chain_id, block_number, log_index, sequence),
                max_retries=self.commit_max_retries,
                delay_base=self.commit_retry_delay_base,
                operation_name=f"rollback chain {chain_id} to {block_number}",
            )

        if result.duplicate:
            self.diagnostics.record_duplicate_reorg(chain_id, sequence)
            return result
        if result.removed:
            self.diagnostics.record_reorg(chain_id, block_number, result.removed)
        return result

    async def rebuild_views(self) -> int:
        """
        Recompute all aggregates from the event log.

        Returns:
            Number of events replayed
        """
        async def _rebuild() -> int:
            async with self.session_maker() as session:
                async with session.begin():
                    return await self._replay_log(session)

        async with self.gate.exclusive():
            replayed = await run_with_commit_retry(
                _rebuild,
                max_retries=self.commit_max_retries,
                delay_base=self.commit_retry_delay_base,
                operation_name="rebuild views",
            )

        logger.info(f"[Reorg] Rebuilt views from {replayed} events")
        return replayed

    async def _rollback(
        self,
        chain_id: int,
        block_number: int,
        log_index: int | None,
        sequence: int | None,
    ) -> RollbackResult:
        async with self.session_maker() as session:
            async with session.begin():
                sync_repo = ChainSyncStateRepository(session)
                sync_state = await sync_repo.get_or_create(chain_id, for_update=True)

                if sequence is not None and sequence <= sync_state.reorg_sequence:
                    return RollbackResult(
                        chain_id=chain_id,
                        block_number=block_number,
                        log_index=log_index,
                        removed=0,
                        replayed=0,
                        cursor=sync_repo.cursor_key(sync_state),
                        duplicate=True,
                    )

                if block_number < sync_state.finalized_block:
                    raise ReorgBelowWatermarkError(
                        chain_id, block_number, sync_state.finalized_block
                    )

                records = EventRecordRepository(session)
                removed = await records.delete_after(chain_id, block_number, log_index)

                replayed = 0
                if removed:
                    replayed = await self._replay_log(session)
                    last_key = await records.get_last_key(chain_id)
                    sync_repo.reset_cursor(sync_state, last_key, removed)

                if sequence is not None:
                    sync_state.reorg_sequence = sequence

                cursor = sync_repo.cursor_key(sync_state)

        logger.info(
            f"[Reorg] Chain {chain_id}: removed {removed} events above "
            f"{block_number}:{'*' if log_index is None else log_index}, "
            f"replayed {replayed}"
        )
        return RollbackResult(
            chain_id=chain_id,
            block_number=block_number,
            log_index=log_index,
            removed=removed,
            replayed=replayed,
            cursor=cursor,
        )

    async def _replay_log(self, session: AsyncSession) -> int:
        """
        Fold the whole event log into fresh aggregates.

        Replays in identity order (chain, block, log index) using the
        same reducers as live ingestion.
        """
        user_repo = UserStatsRepository(session)
        balance_repo = TokenBalanceRepository(session)
        await user_repo.delete_all()
        await balance_repo.delete_all()

        users: dict[str, UserStatsState] = {}
        balances: dict[str, TokenBalanceState] = {}
        replayed = 0

        async for record in EventRecordRepository(session).iter_ordered():
            handler = self.registry.resolve(record.contract, record.event_name)
            if handler is None:
                logger.warning(
                    f"[Reorg] No handler for recorded {record.contract}."
                    f"{record.event_name} ({record.id}), skipped"
                )
                continue
            try:
                event = handler.event_type.parse(record_to_raw(record))
            except MalformedEventError as e:
                self.diagnostics.record_malformed(record.id, e)
                continue

            reduction = handler.reduce(
                ViewState(
                    user_stats=users,
                    balances=balances,
                    balance_scope=self.balance_key_scope,
                ),
                event,
            )
            for user in reduction.user_stats:
                users[user.address] = user
            for balance in reduction.balances:
                balances[balance.key] = balance
            replayed += 1

        user_repo.save_states(users.values())
        balance_repo.save_states(balances.values())
        return replayed

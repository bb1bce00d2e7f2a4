"""
Exception handling utilities.

Defines the indexer error taxonomy and categorizes exceptions by
handling strategy.
"""

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError


class IndexerError(Exception):
    """Base exception for indexer errors."""
    pass


class MalformedEventError(IndexerError):
    """Raised when an event is missing a required field or has a wrong type."""

    def __init__(self, message: str, event_id: str | None = None):
        super().__init__(message)
        self.event_id = event_id


class OutOfOrderEventError(IndexerError):
    """Raised when an unapplied event is not ahead of its chain cursor."""

    def __init__(self, event_id: str, cursor_event_id: str | None):
        super().__init__(
            f"Event {event_id} is not after chain cursor {cursor_event_id}"
        )
        self.event_id = event_id
        self.cursor_event_id = cursor_event_id


class StoreCommitError(IndexerError):
    """Raised when an event's writes could not be committed after all retries."""
    pass


class FeedDisconnectedError(IndexerError):
    """Raised by feed adapters when the upstream connection is lost."""
    pass


class ReorgBelowWatermarkError(IndexerError):
    """Raised when a reorg would invalidate finalized blocks."""

    def __init__(self, chain_id: int, block_number: int, finalized_block: int):
        super().__init__(
            f"Reorg on chain {chain_id} to block {block_number} is below "
            f"finalized block {finalized_block}; operator intervention required"
        )
        self.chain_id = chain_id
        self.block_number = block_number
        self.finalized_block = finalized_block


class UnsupportedChainError(IndexerError):
    """Raised when an event arrives for a chain that is not configured."""
    pass


# Exception categories based on handling strategy

# Drop the event and continue the stream
RECOVERABLE = (
    MalformedEventError,
    OutOfOrderEventError,
    UnsupportedChainError,
)

# Retry with backoff (IntegrityError is a duplicate, never retried)
RETRYABLE = (
    OperationalError,
    StoreCommitError,
    FeedDisconnectedError,
)

# Stop the worker and surface to the operator
FATAL = (
    ReorgBelowWatermarkError,
)


def is_recoverable(exc: Exception) -> bool:
    """
    Check if the stream can continue past this exception.

    Args:
        exc: Exception to check

    Returns:
        True if the event can be dropped
    """
    return isinstance(exc, RECOVERABLE)


def is_retryable(exc: Exception) -> bool:
    """
    Check if exception should be retried.

    Args:
        exc: Exception to check

    Returns:
        True if exception is transient
    """
    if isinstance(exc, IntegrityError):
        return False
    return isinstance(exc, RETRYABLE) or (
        isinstance(exc, DBAPIError) and exc.connection_invalidated
    )


def is_fatal(exc: BaseException | None) -> bool:
    """
    Check if exception must stop ingestion.

    Args:
        exc: Exception to check

    Returns:
        True if operator intervention is required
    """
    return isinstance(exc, FATAL)

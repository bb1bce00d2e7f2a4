"""
Event ingestion.

Feed adapters and the per-chain workers that drive the indexer.
"""

from .feeds import EventFeed, FeedItem, QueueEventFeed, ReorgNotice
from .supervisor import IngestionSupervisor
from .worker import ChainIngestionWorker

__all__ = [
    "ChainIngestionWorker",
    "EventFeed",
    "FeedItem",
    "IngestionSupervisor",
    "QueueEventFeed",
    "ReorgNotice",
]

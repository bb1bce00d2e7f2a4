#!/usr/bin/env python3
"""
Replay tooling for the event log.

Usage:
    python scripts/replay_events.py --rebuild
    python scripts/replay_events.py --chain-id 1 --to-block 19000000
    python scripts/replay_events.py --chain-id 1 --to-block 19000000 --log-index 3
"""

import argparse
import asyncio
import sys

from loguru import logger

from indexer.config.database import create_engine, create_session_maker, init_models
from indexer.services.indexer import EventIndexerService
from indexer.utils.exceptions import ReorgBelowWatermarkError

# Configure logger for script
logger.remove()
logger.add(sys.stderr, level="INFO")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Roll back or rebuild indexed views")
    parser.add_argument("--rebuild", action="store_true", help="Recompute all views from the log")
    parser.add_argument("--chain-id", type=int, help="Chain to roll back")
    parser.add_argument("--to-block", type=int, help="Last valid block")
    parser.add_argument("--log-index", type=int, default=None, help="Last valid log index")
    args = parser.parse_args(argv)

    if not args.rebuild and (args.chain_id is None or args.to_block is None):
        parser.error("either --rebuild or both --chain-id and --to-block are required")
    return args


async def run(args: argparse.Namespace) -> int:
    engine = create_engine()
    await init_models(engine)
    indexer = EventIndexerService(create_session_maker(engine))

    try:
        if args.rebuild:
            replayed = await indexer.rebuild_views()
            logger.success(f"Rebuilt views from {replayed} events")
        else:
            result = await indexer.rollback_to(args.chain_id, args.to_block, args.log_index)
            logger.success(
                f"Chain {result.chain_id}: removed {result.removed} events, "
                f"replayed {result.replayed}, cursor now {result.cursor}"
            )
        return 0
    except ReorgBelowWatermarkError as e:
        logger.error(f"Refusing rollback: {e}")
        return 2
    finally:
        await engine.dispose()


if __name__ == "__main__":
    sys.exit(asyncio.run(run(parse_args())))

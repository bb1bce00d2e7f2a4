"""
Indexer main entry point.

Creates the schema if needed and runs one ingestion worker per
configured chain until interrupted.
"""

import asyncio
import sys

from loguru import logger

from indexer.config.database import create_engine, create_session_maker, init_models
from indexer.config.settings import settings
from indexer.logging_config import setup_logging
from indexer.services.indexer import EventIndexerService
from indexer.services.ingestion import IngestionSupervisor
from indexer.services.ingestion.web3_feed import create_web3_feed


async def main() -> None:
    """Initialize and run the indexer."""
    setup_logging()
    logger.info(f"Starting chain event indexer ({settings.environment})...")

    engine = create_engine()
    await init_models(engine)
    session_maker = create_session_maker(engine)

    chain_ids = settings.get_supported_chain_ids()
    rpc_urls = settings.get_rpc_urls()
    missing = [chain_id for chain_id in chain_ids if chain_id not in rpc_urls]
    if missing:
        logger.warning(f"No RPC URL for chains {missing}, they will not be ingested")
    chain_ids = [chain_id for chain_id in chain_ids if chain_id in rpc_urls]

    indexer = EventIndexerService(session_maker, chain_ids=settings.get_supported_chain_ids())
    supervisor = IngestionSupervisor(indexer, create_web3_feed, chain_ids)

    try:
        supervisor.start()
        outcome = await supervisor.wait()
        failed = {chain_id: error for chain_id, error in outcome.items() if error}
        if failed:
            raise RuntimeError(f"Ingestion stopped with errors: {failed}")
    finally:
        await supervisor.stop()
        await engine.dispose()
        logger.info(f"Indexer stats: {indexer.diagnostics.snapshot()}")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Indexer stopped by user (KeyboardInterrupt)")
    except Exception as e:
        logger.exception(f"Indexer crashed: {e}")
        sys.exit(1)

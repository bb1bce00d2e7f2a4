"""Pytest configuration and shared fixtures for all tests."""

import os
import sys
from pathlib import Path

# Minimal environment for settings validation
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SUPPORTED_CHAIN_IDS", "1,137,42161,10,8453")
os.environ.setdefault("BALANCE_KEY_SCOPE", "chain")
os.environ.setdefault("STORE_COMMIT_RETRY_DELAY_BASE", "0")
os.environ.setdefault("FEED_RECONNECT_DELAY_BASE", "0")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

# Add project root to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from indexer.config.constants import (  # noqa: E402
    APPROVAL,
    REGISTRY_CONTRACT,
    TOKEN_CONTRACT,
    TRANSFER,
    ZERO_ADDRESS,
)
from indexer.config.database import (  # noqa: E402
    create_engine,
    create_session_maker,
    init_models,
)
from indexer.events.raw import RawEvent  # noqa: E402
from indexer.services.indexer import EventIndexerService  # noqa: E402

ALICE = "0x" + "a1" * 20
BOB = "0x" + "b2" * 20
CAROL = "0x" + "c3" * 20


@pytest.fixture
def alice():
    return ALICE


@pytest.fixture
def bob():
    return BOB


@pytest.fixture
def carol():
    return CAROL


@pytest.fixture
def zero_address():
    return ZERO_ADDRESS


@pytest.fixture
def make_event():
    """
    Factory for feed events.

    Contract defaults to the token contract for Transfer/Approval and
    to the registry contract otherwise. Block timestamp defaults to
    1_700_000_000 + block_number.
    """
    def _make(
        event_name: str,
        params: dict,
        chain_id: int = 1,
        block_number: int = 1,
        log_index: int = 0,
        block_timestamp: int | None = None,
        contract: str | None = None,
    ) -> RawEvent:
        if contract is None:
            contract = (
                TOKEN_CONTRACT if event_name in (TRANSFER, APPROVAL) else REGISTRY_CONTRACT
            )
        return RawEvent(
            chain_id=chain_id,
            block_number=block_number,
            log_index=log_index,
            block_timestamp=(
                1_700_000_000 + block_number if block_timestamp is None else block_timestamp
            ),
            transaction_hash="0x" + f"{chain_id:04x}{block_number:030x}{log_index:030x}",
            contract=contract,
            event_name=event_name,
            params=params,
        )

    return _make


@pytest.fixture
def make_transfer(make_event):
    """Factory for Transfer events."""
    def _make(sender: str, receiver: str, value: int, **kwargs) -> RawEvent:
        return make_event(
            TRANSFER, {"from": sender, "to": receiver, "value": str(value)}, **kwargs
        )

    return _make


@pytest_asyncio.fixture
async def engine(tmp_path):
    """File-backed SQLite engine with all tables created."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'indexer.db'}", echo=False)
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return create_session_maker(engine)


@pytest.fixture
def indexer(session_maker):
    """Indexer with chain-scoped balances and no retry delay."""
    return EventIndexerService(
        session_maker,
        balance_key_scope="chain",
        finality_depth=64,
        commit_retry_delay_base=0,
    )

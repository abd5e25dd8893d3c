"""Shared pytest fixtures for FunRun tests.

This module provides fixtures for:
- Test settings with deterministic economics
- An in-memory snapshot repository that round-trips through JSON shape
- A ready LedgerEngine
- Well-formed wallet addresses

Usage:
    @pytest.mark.asyncio
    async def test_something(engine, creator_wallet):
        coin = await engine.issue_coin("Fun", "FUN", creator_wallet, initial_sol=1.0)
        assert coin.status == CoinStatus.LIVE
"""

import os
from collections.abc import Generator

import pytest

from funrun.config.settings import Settings, get_settings
from funrun.core.ledger.engine import LedgerEngine
from tests.support import MemorySnapshotRepository

# =============================================================================
# Environment Configuration
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment() -> Generator[None, None, None]:
    """Set up test environment variables.

    Loads .env file first, then sets defaults for any missing variables.
    """
    from dotenv import load_dotenv

    original_env = os.environ.copy()

    load_dotenv()

    os.environ.setdefault("FUNRUN_ENV", "test")
    os.environ.setdefault("DB_MODE", "file")
    os.environ.setdefault("SOLANA_RPC_URL", "http://127.0.0.1:8899")
    get_settings.cache_clear()

    yield

    os.environ.clear()
    os.environ.update(original_env)
    get_settings.cache_clear()


# =============================================================================
# Ledger Fixtures
# =============================================================================


@pytest.fixture
def settings() -> Settings:
    """Settings with the default economics, independent of the environment."""
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        db_mode="file",
        starting_mc=6500,
        total_supply_default=1_000_000_000,
        creator_pct=2,
        owner_max_pct=10,
        fee_pct=1,
        price_floor=1000,
        buy_impact=120,
        sell_impact=110,
    )


@pytest.fixture
def memory_repo(settings: Settings) -> MemorySnapshotRepository:
    """In-memory snapshot repository."""
    return MemorySnapshotRepository(settings)


@pytest.fixture
def engine(memory_repo: MemorySnapshotRepository, settings: Settings) -> LedgerEngine:
    """Ledger engine over the in-memory repository."""
    return LedgerEngine(memory_repo, settings)


# =============================================================================
# Utility Fixtures
# =============================================================================


@pytest.fixture
def creator_wallet() -> str:
    """Coin creator address."""
    return "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"


@pytest.fixture
def trader_wallet() -> str:
    """Trader address, distinct from the creator."""
    return "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"


@pytest.fixture
def referrer_wallet() -> str:
    """Referrer address."""
    return "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"

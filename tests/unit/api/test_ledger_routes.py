"""Tests for the ledger HTTP routes."""

import json
from collections.abc import Generator
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from funrun.api.app import create_app
from funrun.config.settings import get_settings
from funrun.core.exceptions import PersistenceError
from funrun.core.ledger.engine import LedgerEngine
from funrun.models.ledger import Store
from tests.support import MemorySnapshotRepository


@pytest.fixture
def rpc_client() -> MagicMock:
    """RPC client double reporting a fixed balance."""
    rpc = MagicMock()
    rpc.get_sol_balance = AsyncMock(return_value=1.5)
    return rpc


@pytest.fixture
def client(engine: LedgerEngine, rpc_client: MagicMock) -> Generator[TestClient, None, None]:
    """Create test client over an in-memory ledger."""
    app = create_app(engine=engine, rpc_client=rpc_client)
    with TestClient(app) as test_client:
        yield test_client


def create_live_coin(client: TestClient, creator_wallet: str) -> dict:
    response = client.post(
        "/api/coin/create",
        json={"name": "Fun", "symbol": "fun", "creatorWallet": creator_wallet, "initialSol": 1.0},
    )
    return response.json()["coin"]


class TestRoot:
    """Tests for the liveness route."""

    def test_root_reports_db_mode(self, client: TestClient) -> None:
        """
        Given: The application is running
        When: GET / is called
        Then: Returns ok with name and db mode
        """
        response = client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["ok"] is True
        assert data["dbMode"] == "file"
        assert data["ts"] > 0


class TestCoinRoutes:
    """Tests for coin creation and listing."""

    def test_create_and_list(self, client: TestClient, creator_wallet: str) -> None:
        """A created coin is returned in camelCase and listed."""
        coin = create_live_coin(client, creator_wallet)

        assert coin["symbol"] == "FUN"
        assert coin["status"] == "LIVE"
        assert coin["creatorWallet"] == creator_wallet
        assert coin["holders"] == {creator_wallet: 20_000_000}

        listed = client.get("/api/coin/list").json()
        assert listed["ok"] is True
        assert [c["id"] for c in listed["coins"]] == [coin["id"]]

    def test_invalid_symbol_is_ok_false(self, client: TestClient, creator_wallet: str) -> None:
        """Validation failures use the error envelope with HTTP 200."""
        response = client.post(
            "/api/coin/create",
            json={"name": "Fun", "symbol": "x", "creatorWallet": creator_wallet},
        )

        assert response.status_code == 200
        assert response.json()["ok"] is False
        assert "symbol" in response.json()["error"]


class TestTradeRoutes:
    """Tests for trade endpoints."""

    def test_buy_then_sell(
        self, client: TestClient, creator_wallet: str, trader_wallet: str
    ) -> None:
        """
        Given: A LIVE coin
        When: A trader buys and then sells through the fixed-side routes
        Then: Both settle and the profile reflects the position
        """
        coin = create_live_coin(client, creator_wallet)
        body = {"wallet": trader_wallet, "coinId": coin["id"], "sol": 0.05}

        bought = client.post("/api/coin/buy", json=body).json()
        assert bought["ok"] is True
        assert bought["coin"]["holders"][trader_wallet] == 7692
        assert bought["profile"]["holdings"][0]["amount"] == 7692

        sold = client.post("/api/coin/sell", json={**body, "sol": 1.0}).json()
        assert sold["ok"] is True
        assert sold["profile"]["holdings"] == []
        assert sold["profile"]["txs"][0]["side"] == "SELL"

    def test_generic_trade_route_uses_side(
        self, client: TestClient, creator_wallet: str, trader_wallet: str
    ) -> None:
        """POST /api/trade takes the side from the body."""
        coin = create_live_coin(client, creator_wallet)

        data = client.post(
            "/api/trade",
            json={"wallet": trader_wallet, "coinId": coin["id"], "side": "buy", "sol": 0.05},
        ).json()

        assert data["ok"] is True
        assert data["coin"]["mc"] == 6506

    def test_unknown_coin(self, client: TestClient, trader_wallet: str) -> None:
        """State errors use the error envelope with HTTP 200."""
        response = client.post(
            "/api/coin/buy",
            json={"wallet": trader_wallet, "coinId": "missing", "sol": 0.05},
        )

        assert response.status_code == 200
        assert response.json() == {"ok": False, "error": "Coin not found"}

    def test_malformed_body(self, client: TestClient, trader_wallet: str) -> None:
        """Unparseable fields are reported as an invalid request."""
        response = client.post(
            "/api/coin/buy",
            json={"wallet": trader_wallet, "coinId": "x", "sol": "lots"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["ok"] is False
        assert data["error"].startswith("invalid request")


class TestProfileRoutes:
    """Tests for profile, balance and referral endpoints."""

    def test_profile_created_on_read(self, client: TestClient, trader_wallet: str) -> None:
        """Reading an unknown wallet returns an empty profile."""
        data = client.get(f"/api/profile/{trader_wallet}").json()

        assert data["ok"] is True
        assert data["profile"]["wallet"] == trader_wallet
        assert data["profile"]["referralRewards"]["totalSol"] == 0

    def test_balance(self, client: TestClient, rpc_client: MagicMock, trader_wallet: str) -> None:
        """Balance is read through the RPC client."""
        data = client.get(f"/api/balance/{trader_wallet}").json()

        assert data == {"ok": True, "sol": 1.5}
        rpc_client.get_sol_balance.assert_awaited_once_with(trader_wallet)

    def test_referral_set_once(
        self, client: TestClient, trader_wallet: str, referrer_wallet: str
    ) -> None:
        """The first referral binds; the second is refused."""
        body = {"wallet": trader_wallet, "referrer": referrer_wallet}

        assert client.post("/api/referral/set", json=body).json() == {"ok": True}
        second = client.post("/api/referral/set", json=body).json()

        assert second == {"ok": False, "error": "immutable: referral already set"}
        profile = client.get(f"/api/profile/{trader_wallet}").json()["profile"]
        assert profile["referrer"] == referrer_wallet


class TestWithdrawRoutes:
    """Tests for withdrawal endpoints."""

    def test_creator_withdraw(
        self, client: TestClient, creator_wallet: str, trader_wallet: str
    ) -> None:
        """The creator route drains creator rewards."""
        coin = create_live_coin(client, creator_wallet)
        client.post(
            "/api/coin/buy",
            json={"wallet": trader_wallet, "coinId": coin["id"], "sol": 1.0},
        )

        data = client.post(
            "/api/withdraw/creator",
            json={"wallet": creator_wallet, "to": creator_wallet},
        ).json()

        assert data["ok"] is True
        assert data["kind"] == "CREATOR"
        assert data["sol"] == pytest.approx(0.004)

    @pytest.mark.parametrize("path", ["/api/withdraw", "/api/withdraw/manual"])
    def test_manual_withdraw(self, client: TestClient, trader_wallet: str, path: str) -> None:
        """Both manual routes record a zero-amount withdrawal."""
        data = client.post(path, json={"wallet": trader_wallet, "to": trader_wallet}).json()

        assert data == {"ok": True, "to": trader_wallet, "kind": "MANUAL", "sol": 0.0}

    def test_missing_destination(self, client: TestClient, trader_wallet: str) -> None:
        """A destination is required."""
        data = client.post("/api/withdraw", json={"wallet": trader_wallet}).json()
        assert data == {"ok": False, "error": "to required"}


class FailingSnapshotRepository(MemorySnapshotRepository):
    """Repository whose writes always fail."""

    async def save(self, store: Store) -> None:
        raise PersistenceError("Supabase write failed: timeout")


def test_persistence_failure_is_server_error(settings, rpc_client, trader_wallet) -> None:
    """
    Given: A backing store that rejects writes
    When: A mutating request is made
    Then: HTTP 500 with the error envelope is returned
    """
    engine = LedgerEngine(FailingSnapshotRepository(settings), settings)
    app = create_app(engine=engine, rpc_client=rpc_client)

    with TestClient(app) as test_client:
        response = test_client.get(f"/api/profile/{trader_wallet}")

    assert response.status_code == 500
    assert response.json() == {"ok": False, "error": "Supabase write failed: timeout"}


def test_lifespan_builds_file_ledger(tmp_path, monkeypatch, creator_wallet) -> None:
    """
    Given: No injected engine and file mode configured
    When: The app starts, serves a write and shuts down
    Then: The snapshot file holds the write
    """
    db_path = tmp_path / "db.json"
    monkeypatch.setenv("DB_MODE", "file")
    monkeypatch.setenv("FILE_DB_PATH", str(db_path))
    monkeypatch.setenv("FILE_FLUSH_DEBOUNCE_SECONDS", "30")
    get_settings.cache_clear()

    try:
        with TestClient(create_app()) as test_client:
            coin = create_live_coin(test_client, creator_wallet)
    finally:
        get_settings.cache_clear()

    snapshot = json.loads(db_path.read_text())
    assert [c["id"] for c in snapshot["coins"]] == [coin["id"]]

"""Unit tests for entity normalization and snapshot migration."""

import pytest

from funrun.core.ledger.normalizers import (
    default_snapshot,
    migrate_snapshot,
    normalize_coin,
    normalize_profile,
    normalize_store,
    parse_withdraw_kind,
)
from funrun.models.ledger import SCHEMA_VERSION, CoinStatus, TxSide, WithdrawKind
from tests.factories import CoinFactory, HoldingFactory, ProfileFactory


class TestNormalizeCoin:
    """Tests for normalize_coin."""

    def test_empty_record_becomes_draft(self, settings):
        """
        Given: An empty record
        When: It is normalized
        Then: A DRAFT coin with defaults and a seeded chart comes back
        """
        coin = normalize_coin({}, settings)

        assert coin.status == CoinStatus.DRAFT
        assert coin.mc == 0
        assert coin.chart == [0.0] * 5
        assert coin.total_supply == settings.total_supply_default
        assert coin.id

    def test_live_coin_mc_is_floored(self, settings):
        """LIVE market cap is never below the floor."""
        coin = normalize_coin({"status": "LIVE", "mc": 5}, settings)
        assert coin.mc == settings.price_floor

    def test_live_coin_without_mc_starts_at_starting_mc(self, settings):
        """A LIVE record with a garbage mc uses the starting mc."""
        coin = normalize_coin({"status": "live", "mc": "abc"}, settings)
        assert coin.mc == settings.starting_mc
        assert coin.ath == settings.starting_mc

    def test_ath_raised_to_mc(self, settings):
        """ath is never below mc."""
        coin = normalize_coin({"status": "LIVE", "mc": 9000, "ath": 100}, settings)
        assert coin.ath == 9000

    def test_chart_is_capped_and_cleaned(self, settings):
        """Negative and non-numeric points are dropped and the tail is kept."""
        chart = [-1, "x", None] + list(range(100))
        coin = normalize_coin({"status": "LIVE", "chart": chart}, settings)

        assert len(coin.chart) == settings.chart_max
        assert coin.chart[-1] == 99
        assert all(point >= 0 for point in coin.chart)

    def test_holders_drop_invalid_entries(self, settings):
        """Zero, negative and blank holder entries are discarded."""
        coin = normalize_coin(
            {"holders": {"a": 10, "b": 0, "c": -3, "": 4, "d": "7.9"}},
            settings,
        )
        assert coin.holders == {"a": 10, "d": 7}

    def test_holders_trimmed_to_total_supply(self, settings):
        """
        Given: A stored coin whose holders exceed its total supply
        When: It is normalized
        Then: Balances are trimmed in stored order to fit the supply
        """
        coin = normalize_coin(
            {"status": "LIVE", "totalSupply": 100, "holders": {"a": 90, "b": 90, "c": 5}},
            settings,
        )

        assert coin.holders == {"a": 90, "b": 10}
        assert coin.issued_supply() <= coin.total_supply
        assert normalize_coin(coin, settings) == coin

    @pytest.mark.asyncio
    async def test_overissued_coin_accepts_sells_after_load(
        self, engine, memory_repo, trader_wallet
    ):
        """A coin repaired on load trades normally."""
        memory_repo.snapshot["coins"] = [
            {
                "id": "c1",
                "status": "LIVE",
                "totalSupply": 1_000_000,
                "holders": {trader_wallet: 900_000, "other": 900_000},
            }
        ]

        result = await engine.execute_trade(trader_wallet, "c1", "sell", 0.01)

        assert result.coin.issued_supply() <= result.coin.total_supply
        assert memory_repo.snapshot["coins"][0]["holders"]["other"] == 100_000

    def test_owner_backfilled_from_creator(self, settings):
        """owner defaults to the creator wallet."""
        coin = normalize_coin({"creatorWallet": "abc"}, settings)
        assert coin.owner == "abc"

    def test_idempotent(self, settings):
        """Normalizing a normalized coin changes nothing."""
        once = normalize_coin(CoinFactory(holders={"w": 5}), settings)
        twice = normalize_coin(once, settings)
        assert once == twice


class TestNormalizeProfile:
    """Tests for normalize_profile."""

    def test_none_gives_empty_profile(self, settings):
        """None becomes a fully populated empty profile."""
        profile = normalize_profile(None, "wallet1", settings)

        assert profile.wallet == "wallet1"
        assert profile.holdings == []
        assert profile.txs == []
        assert profile.rewards.total_sol == 0
        assert profile.referral_rewards.by_wallet == {}

    def test_duplicate_holdings_are_merged(self, settings):
        """Two holdings for one coin merge; empty ones disappear."""
        profile = normalize_profile(
            {
                "holdings": [
                    {"coinId": "c1", "symbol": "AA", "amount": 5},
                    {"coinId": "c1", "symbol": "AA", "amount": 7},
                    {"coinId": "c2", "amount": 0},
                ]
            },
            "w",
            settings,
        )
        assert len(profile.holdings) == 1
        assert profile.holdings[0].amount == 12

    def test_unknown_tx_sides_are_dropped(self, settings):
        """Transactions with an unknown side are discarded."""
        profile = normalize_profile(
            {"txs": [{"side": "buy", "sol": 1}, {"side": "teleport"}, "junk"]},
            "w",
            settings,
        )
        assert [tx.side for tx in profile.txs] == [TxSide.BUY]

    def test_tx_history_is_capped(self, settings):
        """History keeps only the newest entries."""
        txs = [{"side": "BUY", "sol": i} for i in range(settings.profile_tx_cap + 20)]
        profile = normalize_profile({"txs": txs}, "w", settings)
        assert len(profile.txs) == settings.profile_tx_cap
        assert profile.txs[0].sol == 0

    def test_idempotent(self, settings):
        """Normalizing a normalized profile changes nothing."""
        once = normalize_profile(ProfileFactory(holdings=[HoldingFactory()]), None, settings)
        twice = normalize_profile(once, None, settings)
        assert once == twice


class TestMigration:
    """Tests for snapshot schema migration."""

    def test_unversioned_snapshot_is_migrated(self):
        """
        Given: A snapshot written before versioning
        When: It is migrated
        Then: Legacy keys and kinds are rewritten and the version is set
        """
        legacy = {
            "coins": [{"id": "c1", "creatorWallet": "w1"}],
            "profiles": {"w1": {"txs": [{"t": 123, "side": "WITHDRAW", "kind": "REF"}]}},
            "logs": [{"t": 5, "type": "trade"}],
        }

        doc = migrate_snapshot(legacy)

        assert doc["schemaVersion"] == SCHEMA_VERSION
        assert doc["coins"][0]["owner"] == "w1"
        tx = doc["profiles"]["w1"]["txs"][0]
        assert tx["timestamp"] == 123
        assert tx["kind"] == "REFERRAL"
        assert doc["logs"][0]["timestamp"] == 5
        assert "schemaVersion" not in legacy

    def test_current_snapshot_is_untouched(self):
        """A current-version snapshot passes through unchanged."""
        snapshot = default_snapshot()
        assert migrate_snapshot(snapshot) == snapshot

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("REF", WithdrawKind.REFERRAL),
            ("referral", WithdrawKind.REFERRAL),
            ("CREATOR", WithdrawKind.CREATOR),
            ("manual", WithdrawKind.MANUAL),
            ("bogus", None),
            (None, None),
        ],
    )
    def test_parse_withdraw_kind(self, raw, expected):
        """Legacy REF maps to REFERRAL; unknown kinds map to None."""
        assert parse_withdraw_kind(raw) == expected


class TestNormalizeStore:
    """Tests for normalize_store."""

    @pytest.mark.parametrize("raw", [None, [], "garbage", {}])
    def test_garbage_gives_empty_store(self, raw, settings):
        """Unusable input yields an empty store."""
        store = normalize_store(raw, settings)

        assert store.coins == []
        assert store.profiles == {}
        assert store.referrals == {}
        assert store.treasury.dev_sol == 0
        assert store.schema_version == SCHEMA_VERSION

    def test_duplicate_coin_ids_keep_first(self, settings):
        """Later coins with a repeated id are dropped."""
        store = normalize_store(
            {"coins": [{"id": "x", "name": "First"}, {"id": "x", "name": "Second"}]},
            settings,
        )
        assert [c.name for c in store.coins] == ["First"]

    def test_logs_without_type_are_dropped_and_capped(self, settings):
        """Activity log keeps typed entries up to the cap."""
        logs = [{"type": "trade", "sol": i} for i in range(settings.log_cap + 5)]
        logs.insert(0, {"sol": 1})
        store = normalize_store({"logs": logs}, settings)

        assert len(store.logs) == settings.log_cap
        assert store.logs[0].type == "trade"

    def test_round_trip_is_stable(self, settings):
        """Snapshot -> Store -> snapshot is a fixed point."""
        coin = CoinFactory(holders={"w": 10})
        snapshot = {"coins": [coin.model_dump(mode="json", by_alias=True)]}
        store = normalize_store(snapshot, settings)
        again = normalize_store(store.to_snapshot(), settings)
        assert again == store

"""Unit tests for fee splitting and the pricing rule."""

import pytest

from funrun.core.ledger.pricing import (
    FeeSplit,
    mc_after_buy,
    mc_after_sell,
    quote_tokens,
    split_fee,
    take_fee,
    tokens_per_unit,
)


class TestFees:
    """Fee extraction and distribution."""

    def test_take_fee_one_percent(self):
        """A 1% fee on 1 SOL is 0.01 SOL."""
        fee, net = take_fee(1.0, 1)
        assert fee == pytest.approx(0.01)
        assert net == pytest.approx(0.99)

    def test_trade_split_conserves_fee(self):
        """The four trade buckets add back up to the fee."""
        split = split_fee(0.0005, dev_pct=40, creator_pct=40, referral_pct=10, reserve_pct=10)

        assert split.dev == pytest.approx(0.0002)
        assert split.creator == pytest.approx(0.0002)
        assert split.referral == pytest.approx(0.00005)
        assert split.reserve == pytest.approx(0.00005)
        assert split.dev + split.creator + split.referral + split.reserve == pytest.approx(
            split.fee_sol
        )

    def test_create_split_has_no_creator_share(self):
        """Issuance fee goes to dev, referral and reserve only."""
        split = split_fee(0.01, dev_pct=70, referral_pct=20, reserve_pct=10)

        assert split.creator == 0
        assert split.dev == pytest.approx(0.007)
        assert split.referral == pytest.approx(0.002)
        assert split.reserve == pytest.approx(0.001)

    def test_as_log_keys(self):
        """Log form uses the short bucket names."""
        split = FeeSplit(fee_sol=1.0, dev=0.4, creator=0.4, referral=0.1, reserve=0.1)

        assert split.as_log() == {"dev": 0.4, "ref": 0.1, "reserve": 0.1, "creator": 0.4}
        assert "creator" not in split.as_log(include_creator=False)


class TestPricingRule:
    """Token quotes and market cap movement."""

    def test_tokens_per_unit_at_starting_mc(self):
        """1e9 supply at 6500 mc gives 153846 tokens per SOL."""
        assert tokens_per_unit(1_000_000_000, 6500, 1000) == 153846

    def test_quote_for_small_buy(self):
        """0.05 SOL at the starting mc buys 7692 tokens."""
        assert quote_tokens(0.05, 1_000_000_000, 6500, 1000) == 7692

    def test_quote_never_below_one(self):
        """Dust trades still move one token."""
        assert quote_tokens(1e-12, 1_000_000_000, 6500, 1000) == 1

    def test_tokens_per_unit_never_below_one(self):
        """A tiny supply against a huge mc still quotes one per unit."""
        assert tokens_per_unit(10, 1e12, 1000) == 1

    def test_price_floor_bounds_quote(self):
        """Market cap below the floor prices at the floor."""
        assert tokens_per_unit(1_000_000_000, 10, 1000) == 1_000_000

    def test_higher_mc_gives_fewer_tokens(self):
        """Price is monotone in market cap."""
        low = quote_tokens(1.0, 1_000_000_000, 6500, 1000)
        high = quote_tokens(1.0, 1_000_000_000, 65000, 1000)
        assert high < low

    def test_mc_after_buy(self):
        """A 0.05 SOL buy adds 6 to the market cap."""
        assert mc_after_buy(6500, 0.05, 120, 1000) == 6506

    def test_mc_after_sell_respects_floor(self):
        """Sells never push the market cap under the floor."""
        assert mc_after_sell(6500, 0.05, 110, 1000) == 6494
        assert mc_after_sell(1200, 100.0, 110, 1000) == 1000

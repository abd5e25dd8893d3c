"""Fee splitting and the simplified bonding-curve pricing rule.

The pricing rule is a discrete approximation, not an AMM integral:

    tokens_per_unit = floor(total_supply / max(mc, price_floor))
    tokens          = max(1, floor(sol * tokens_per_unit))

Higher market cap always yields fewer tokens per SOL spent.
"""

import math
from dataclasses import dataclass

from funrun.core.numeric import pct_to_frac


@dataclass(frozen=True)
class FeeSplit:
    """A fee broken down into its destination buckets (all in SOL)."""

    fee_sol: float
    dev: float = 0.0
    creator: float = 0.0
    referral: float = 0.0
    reserve: float = 0.0

    def as_log(self, include_creator: bool = True) -> dict[str, float]:
        split = {"dev": self.dev, "ref": self.referral, "reserve": self.reserve}
        if include_creator:
            split["creator"] = self.creator
        return split


def take_fee(sol: float, fee_pct: float) -> tuple[float, float]:
    """Return (fee, net) for a gross SOL amount."""
    fee = sol * pct_to_frac(fee_pct)
    return fee, max(0.0, sol - fee)


def split_fee(
    fee_sol: float,
    dev_pct: float,
    referral_pct: float,
    reserve_pct: float,
    creator_pct: float = 0.0,
) -> FeeSplit:
    """Distribute a fee by percentages that sum to 100."""
    return FeeSplit(
        fee_sol=fee_sol,
        dev=fee_sol * pct_to_frac(dev_pct),
        creator=fee_sol * pct_to_frac(creator_pct),
        referral=fee_sol * pct_to_frac(referral_pct),
        reserve=fee_sol * pct_to_frac(reserve_pct),
    )


def tokens_per_unit(total_supply: int, mc: float, price_floor: float) -> int:
    """Tokens one SOL buys at market cap mc. Never below 1."""
    return max(1, math.floor(total_supply / max(mc, price_floor)))


def quote_tokens(sol: float, total_supply: int, mc: float, price_floor: float) -> int:
    """Token quantity for a trade of sol. Never below 1."""
    return max(1, math.floor(sol * tokens_per_unit(total_supply, mc, price_floor)))


def mc_after_buy(mc: float, sol: float, impact: float, price_floor: float) -> float:
    return float(round(max(price_floor, mc + sol * impact)))


def mc_after_sell(mc: float, sol: float, impact: float, price_floor: float) -> float:
    return float(round(max(price_floor, mc - sol * impact)))

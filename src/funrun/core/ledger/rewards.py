"""Reward crediting helpers shared by issuance and trading.

Both helpers accumulate; they never replace an existing balance.
Calls with a non-positive amount or an unusable wallet are no-ops.
"""

import structlog

from funrun.core.numeric import now_ms
from funrun.core.wallet.validator import is_valid_solana_address, truncate_address
from funrun.models.ledger import Coin, Store

log = structlog.get_logger(__name__)


def credit_creator_reward(store: Store, coin: Coin, amount_sol: float) -> str | None:
    """Credit a coin's creator with a share of a trade fee.

    Returns:
        The credited creator wallet, or None if nothing was credited.
    """
    creator = coin.creator_wallet or coin.owner
    if not creator or amount_sol <= 0:
        return None

    profile = store.profile_for(creator)
    profile.rewards.total_sol += amount_sol
    profile.rewards.by_coin[coin.id] = profile.rewards.by_coin.get(coin.id, 0.0) + amount_sol
    profile.updated_at = now_ms()

    coin.creator_rewards_sol += amount_sol
    return creator


def credit_referral_reward(store: Store, trader_wallet: str, amount_sol: float) -> str | None:
    """Credit the trader's bound referrer with a share of a fee.

    The referrer must be bound through a referral edge and have a
    well-formed address.

    Returns:
        The credited referrer wallet, or None if nothing was credited.
    """
    trader_wallet = (trader_wallet or "").strip()
    if not trader_wallet or amount_sol <= 0:
        return None

    referrer = store.referrals.get(trader_wallet, "")
    if not is_valid_solana_address(referrer):
        if referrer:
            log.warning(
                "referral_reward_skipped_invalid_referrer",
                wallet=truncate_address(trader_wallet),
            )
        return None

    profile = store.profile_for(referrer)
    rewards = profile.referral_rewards
    rewards.total_sol += amount_sol
    rewards.by_wallet[trader_wallet] = rewards.by_wallet.get(trader_wallet, 0.0) + amount_sol
    profile.updated_at = now_ms()
    return referrer

"""Ledger engine: the transactional operations over the Store.

Every operation performs a full load -> mutate -> save cycle over the
single Store snapshot. The cycles are linearized through one
``asyncio.Lock`` so two requests can never compute mutations from the
same stale snapshot and overwrite each other on write-back.

Input validation and state-precondition checks run before the first
mutation; a rejected operation leaves the Store untouched and is never
saved.
"""

from __future__ import annotations

import asyncio
import math
import re
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import structlog

from funrun.config.settings import Settings, get_settings
from funrun.core.exceptions import (
    CoinNotFoundError,
    CoinNotLiveError,
    InsufficientHoldingError,
    OwnershipCapExceededError,
    ReferralAlreadySetError,
    SelfReferralError,
    SupplyExhaustedError,
    ValidationError,
)
from funrun.core.ledger.normalizers import normalize_coin, parse_withdraw_kind
from funrun.core.ledger.pricing import (
    mc_after_buy,
    mc_after_sell,
    quote_tokens,
    split_fee,
    take_fee,
)
from funrun.core.ledger.rewards import credit_creator_reward, credit_referral_reward
from funrun.core.numeric import now_ms, safe_num
from funrun.core.wallet.validator import is_valid_solana_address, truncate_address
from funrun.data.base import SnapshotRepository
from funrun.models.ledger import (
    Coin,
    CoinStatus,
    Profile,
    Store,
    TradeResult,
    TradeSide,
    Transaction,
    TxSide,
    WithdrawalResult,
    WithdrawKind,
)

log = structlog.get_logger(__name__)

SYMBOL_PATTERN = re.compile(r"^[A-Z0-9]{2,10}$")


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


class LedgerEngine:
    """Mutex-guarded service object owning all ledger mutations.

    Attributes:
        repository: Snapshot backing (file or Supabase).

    Example:
        engine = LedgerEngine(FileSnapshotRepository("db.json"))
        coin = await engine.issue_coin("Fun", "FUN", creator_wallet=w, initial_sol=1.0)
        result = await engine.execute_trade(w2, coin.id, "buy", 0.05)
    """

    def __init__(self, repository: SnapshotRepository, settings: Settings | None = None) -> None:
        self.repository = repository
        self._settings = settings or get_settings()
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[Store]:
        """Load the Store under the lock and save it if the block succeeds."""
        async with self._lock:
            store = await self.repository.load()
            yield store
            await self.repository.save(store)

    async def close(self) -> None:
        async with self._lock:
            await self.repository.close()

    # =========================================================================
    # Queries
    # =========================================================================

    async def list_coins(self) -> list[Coin]:
        """All coins, LIVE first, newest first within each status."""
        async with self._lock:
            store = await self.repository.load()
        return sorted(store.coins, key=lambda c: (not c.is_live, -c.created_at))

    async def get_profile(self, wallet: str) -> Profile:
        """Return the wallet's profile, creating it on first access.

        The referral edge is mirrored onto the profile if missing.
        """
        wallet = _text(wallet)
        if not wallet:
            raise ValidationError("wallet required")

        async with self._transaction() as store:
            profile = store.profile_for(wallet)
            if not profile.referrer and store.referrals.get(wallet):
                profile.referrer = store.referrals[wallet]
        return profile

    # =========================================================================
    # Issuance
    # =========================================================================

    async def issue_coin(
        self,
        name: str,
        symbol: str,
        creator_wallet: str,
        story: str = "",
        logo: str = "",
        initial_sol: Any = 0.0,
    ) -> Coin:
        """Create a coin, charging the creation fee when it goes LIVE.

        Raises:
            ValidationError: Missing fields, bad symbol, negative contribution.
        """
        settings = self._settings
        name = _text(name)
        symbol = _text(symbol).upper()
        creator_wallet = _text(creator_wallet)
        contribution = safe_num(initial_sol, 0.0)

        if not name or not symbol or not creator_wallet:
            raise ValidationError("name/symbol/creatorWallet required")
        if not SYMBOL_PATTERN.match(symbol):
            raise ValidationError("symbol must be 2-10 letters or digits")
        if contribution < 0:
            raise ValidationError("initialSol must be >= 0")

        status = (
            CoinStatus.LIVE
            if contribution >= settings.live_threshold_sol
            else CoinStatus.DRAFT
        )

        async with self._transaction() as store:
            fee_sol = 0.0
            if status == CoinStatus.LIVE and contribution > 0:
                fee_sol, _net = take_fee(contribution, settings.fee_pct)
                split = split_fee(
                    fee_sol,
                    dev_pct=settings.create_dev_pct,
                    referral_pct=settings.create_ref_pct,
                    reserve_pct=settings.create_reserve_pct,
                )
                store.treasury.credit(split.dev, split.reserve)
                referrer = credit_referral_reward(store, creator_wallet, split.referral)
                store.push_log(
                    {
                        "type": "create_fee",
                        "wallet": creator_wallet,
                        "feeSol": fee_sol,
                        "split": split.as_log(include_creator=False),
                        "referrer": referrer,
                        "devWallet": settings.dev_wallet,
                        "reserveWallet": settings.reserve_wallet,
                    },
                    settings.log_cap,
                )

            live = status == CoinStatus.LIVE
            start_mc = settings.starting_mc if live else 0.0
            coin = normalize_coin(
                {
                    "name": name,
                    "symbol": symbol,
                    "story": _text(story),
                    "logo": _text(logo),
                    "creatorWallet": creator_wallet,
                    "owner": creator_wallet,
                    "status": status.value,
                    "createdAt": now_ms(),
                    "mc": start_mc,
                    "ath": start_mc,
                    "volumeSol": contribution if live else 0.0,
                    "totalSupply": settings.total_supply_default,
                },
                settings,
            )

            # Issuance grant: exempt from the ownership cap applied to buys.
            creator_tokens = math.floor(coin.total_supply * settings.creator_pct / 100)
            if creator_tokens > 0:
                coin.credit_holder(creator_wallet, creator_tokens)
            store.coins.insert(0, coin)

            profile = store.profile_for(creator_wallet)
            if creator_tokens > 0:
                profile.add_tokens(coin, creator_tokens)
            profile.push_tx(
                Transaction(
                    coin_id=coin.id,
                    side=TxSide.CREATE,
                    sol=contribution,
                    tokens=creator_tokens,
                    fee_sol=fee_sol,
                ),
                settings.profile_tx_cap,
            )

            store.push_log(
                {
                    "type": "coin_create",
                    "coinId": coin.id,
                    "creatorWallet": creator_wallet,
                    "status": status.value,
                    "initialSol": contribution,
                },
                settings.log_cap,
            )

        log.info(
            "coin_issued",
            coin_id=coin.id,
            symbol=coin.symbol,
            status=coin.status.value,
            creator=truncate_address(creator_wallet),
            fee_sol=fee_sol,
        )
        return coin

    # =========================================================================
    # Trading
    # =========================================================================

    async def execute_trade(self, wallet: str, coin_id: str, side: Any, sol: Any) -> TradeResult:
        """Settle a simulated buy or sell against the pricing rule.

        Raises:
            ValidationError: Missing fields, unknown side, non-positive amount.
            CoinNotFoundError: Unknown coin id.
            CoinNotLiveError: Coin is DRAFT.
            InsufficientHoldingError: Sell with nothing held.
            OwnershipCapExceededError: Creator buy beyond the cap.
            SupplyExhaustedError: Buy with no unissued supply left.
        """
        settings = self._settings
        wallet = _text(wallet)
        coin_id = _text(coin_id)
        side_raw = _text(side.value if isinstance(side, TradeSide) else side).lower()
        amount = safe_num(sol, 0.0)

        if not wallet or not coin_id or not side_raw or amount <= 0:
            raise ValidationError("wallet/coinId/side/sol required")
        try:
            trade_side = TradeSide(side_raw)
        except ValueError as e:
            raise ValidationError("side must be buy or sell") from e

        async with self._transaction() as store:
            coin = store.find_coin(coin_id)
            if coin is None:
                raise CoinNotFoundError(coin_id)
            if not coin.is_live:
                raise CoinNotLiveError(coin_id)

            tokens = quote_tokens(amount, coin.total_supply, coin.mc, settings.price_floor)

            if trade_side == TradeSide.BUY:
                available = coin.unissued_supply()
                if available <= 0:
                    raise SupplyExhaustedError("No supply left to buy")
                tokens = min(tokens, available)
                if coin.is_owned_by(wallet):
                    resulting = coin.holders.get(wallet, 0) + tokens
                    cap = math.floor(coin.total_supply * settings.owner_max_pct / 100)
                    if resulting > cap:
                        log.info(
                            "trade_rejected_ownership_cap",
                            coin_id=coin.id,
                            wallet=truncate_address(wallet),
                            resulting=resulting,
                            cap=cap,
                        )
                        raise OwnershipCapExceededError(settings.owner_max_pct, resulting)
            else:
                held = coin.holders.get(wallet, 0)
                if held <= 0:
                    raise InsufficientHoldingError("No tokens to sell")
                tokens = min(held, tokens)

            # All checks passed; mutate.
            fee_sol, _net = take_fee(amount, settings.fee_pct)
            split = split_fee(
                fee_sol,
                dev_pct=settings.trade_dev_pct,
                creator_pct=settings.trade_creator_pct,
                referral_pct=settings.trade_ref_pct,
                reserve_pct=settings.trade_reserve_pct,
            )
            store.treasury.credit(split.dev, split.reserve)
            credit_creator_reward(store, coin, split.creator)
            referrer = credit_referral_reward(store, wallet, split.referral)

            profile = store.profile_for(wallet)
            if trade_side == TradeSide.BUY:
                coin.credit_holder(wallet, tokens)
                profile.add_tokens(coin, tokens)
                new_mc = mc_after_buy(coin.mc, amount, settings.buy_impact, settings.price_floor)
                tx_side = TxSide.BUY
            else:
                coin.debit_holder(wallet, tokens)
                profile.remove_tokens(coin.id, tokens)
                new_mc = mc_after_sell(coin.mc, amount, settings.sell_impact, settings.price_floor)
                tx_side = TxSide.SELL

            coin.record_mc(new_mc, settings.chart_max)
            coin.volume_sol += amount
            coin.last_trade_at = now_ms()

            profile.push_tx(
                Transaction(
                    coin_id=coin.id,
                    side=tx_side,
                    sol=amount,
                    tokens=tokens,
                    fee_sol=fee_sol,
                ),
                settings.profile_tx_cap,
            )
            store.push_log(
                {
                    "type": "trade",
                    "side": tx_side.value,
                    "wallet": wallet,
                    "coinId": coin.id,
                    "sol": amount,
                    "tokens": tokens,
                    "feeSol": fee_sol,
                    "split": split.as_log(),
                    "referrer": referrer,
                },
                settings.log_cap,
            )

        log.info(
            "trade_settled",
            coin_id=coin.id,
            side=tx_side.value,
            wallet=truncate_address(wallet),
            sol=amount,
            tokens=tokens,
            mc=coin.mc,
        )
        return TradeResult(coin=coin, profile=profile)

    # =========================================================================
    # Referrals
    # =========================================================================

    async def set_referral(self, wallet: str, referrer: str) -> None:
        """Bind wallet to referrer. First write wins; the edge is permanent.

        Raises:
            ValidationError: Empty or malformed addresses.
            SelfReferralError: wallet == referrer.
            ReferralAlreadySetError: wallet already has a referrer.
        """
        wallet = _text(wallet)
        referrer = _text(referrer)

        if not wallet:
            raise ValidationError("wallet required")
        if not is_valid_solana_address(wallet):
            raise ValidationError("wallet invalid")
        if not is_valid_solana_address(referrer):
            raise ValidationError("referrer invalid")
        if wallet == referrer:
            raise SelfReferralError()

        async with self._transaction() as store:
            existing = store.profiles.get(wallet)
            if store.referrals.get(wallet) or (existing is not None and existing.referrer):
                raise ReferralAlreadySetError()

            store.referrals[wallet] = referrer
            profile = store.profile_for(wallet)
            profile.referrer = referrer
            profile.updated_at = now_ms()
            store.push_log(
                {"type": "referral_set", "wallet": wallet, "referrer": referrer},
                self._settings.log_cap,
            )

        log.info(
            "referral_set",
            wallet=truncate_address(wallet),
            referrer=truncate_address(referrer),
        )

    # =========================================================================
    # Withdrawals
    # =========================================================================

    async def withdraw(
        self, wallet: str, kind: Any = WithdrawKind.MANUAL, destination: str = ""
    ) -> WithdrawalResult:
        """Zero a reward bucket and record the withdrawal.

        MANUAL requests are recorded without touching balances; the
        actual payout happens outside the ledger.

        Raises:
            ValidationError: Missing wallet/destination or unknown kind.
        """
        wallet = _text(wallet)
        destination = _text(destination)
        if not wallet:
            raise ValidationError("wallet required")
        if not destination:
            raise ValidationError("to required")

        withdraw_kind = (
            kind if isinstance(kind, WithdrawKind) else parse_withdraw_kind(kind or "MANUAL")
        )
        if withdraw_kind is None:
            raise ValidationError("kind must be CREATOR, REFERRAL or MANUAL")

        async with self._transaction() as store:
            profile = store.profile_for(wallet)

            withdrawn = 0.0
            if withdraw_kind == WithdrawKind.CREATOR:
                withdrawn = profile.rewards.total_sol
                profile.rewards.total_sol = 0.0
                profile.rewards.by_coin = {}
            elif withdraw_kind == WithdrawKind.REFERRAL:
                withdrawn = profile.referral_rewards.total_sol
                profile.referral_rewards.total_sol = 0.0
                profile.referral_rewards.by_wallet = {}

            profile.push_tx(
                Transaction(
                    side=TxSide.WITHDRAW,
                    sol=withdrawn,
                    to=destination,
                    kind=withdraw_kind,
                ),
                self._settings.profile_tx_cap,
            )
            store.push_log(
                {
                    "type": "withdraw",
                    "wallet": wallet,
                    "to": destination,
                    "kind": withdraw_kind.value,
                    "sol": withdrawn,
                },
                self._settings.log_cap,
            )

        log.info(
            "withdrawal_recorded",
            wallet=truncate_address(wallet),
            kind=withdraw_kind.value,
            sol=withdrawn,
        )
        return WithdrawalResult(to=destination, kind=withdraw_kind, sol=withdrawn)

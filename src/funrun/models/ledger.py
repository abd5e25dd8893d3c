"""Ledger entities and the Store aggregate.

Persisted keys are camelCase so snapshots stay compatible with the
JSON document the web client already reads; Python code uses the
snake_case attribute names.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from funrun.core.numeric import new_id, now_ms

SCHEMA_VERSION = 1


class CoinStatus(str, Enum):
    """Coin lifecycle status. DRAFT -> LIVE is decided once, at creation."""

    DRAFT = "DRAFT"
    LIVE = "LIVE"


class TradeSide(str, Enum):
    """Side of a trade request."""

    BUY = "buy"
    SELL = "sell"


class TxSide(str, Enum):
    """Kind of entry in a profile's transaction history."""

    CREATE = "CREATE"
    BUY = "BUY"
    SELL = "SELL"
    WITHDRAW = "WITHDRAW"


class WithdrawKind(str, Enum):
    """Reward bucket a withdrawal draws from."""

    CREATOR = "CREATOR"
    REFERRAL = "REFERRAL"
    MANUAL = "MANUAL"


class LedgerModel(BaseModel):
    """Base for persisted ledger entities."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Coin(LedgerModel):
    """A simulated tradable asset."""

    id: str = Field(default_factory=new_id)
    name: str = ""
    symbol: str = ""
    story: str = ""
    logo: str = ""
    creator_wallet: str = ""
    owner: str = ""
    created_at: int = Field(default_factory=now_ms)
    status: CoinStatus = CoinStatus.DRAFT
    mc: float = Field(default=0.0, ge=0)
    ath: float = Field(default=0.0, ge=0)
    chart: list[float] = Field(default_factory=list)
    volume_sol: float = Field(default=0.0, ge=0)
    creator_rewards_sol: float = Field(default=0.0, ge=0)
    total_supply: int = Field(default=1_000_000_000, gt=0)
    holders: dict[str, int] = Field(default_factory=dict)
    last_trade_at: int = 0

    @property
    def is_live(self) -> bool:
        return self.status == CoinStatus.LIVE

    def issued_supply(self) -> int:
        """Tokens currently held across all wallets."""
        return sum(self.holders.values())

    def unissued_supply(self) -> int:
        return max(0, self.total_supply - self.issued_supply())

    def is_owned_by(self, wallet: str) -> bool:
        return bool(wallet) and wallet in (self.creator_wallet, self.owner)

    def credit_holder(self, wallet: str, tokens: int) -> None:
        self.holders[wallet] = self.holders.get(wallet, 0) + tokens

    def debit_holder(self, wallet: str, tokens: int) -> None:
        remaining = max(0, self.holders.get(wallet, 0) - tokens)
        if remaining:
            self.holders[wallet] = remaining
        else:
            self.holders.pop(wallet, None)

    def record_mc(self, mc: float, chart_max: int) -> None:
        """Set a new market cap, raising ath and appending to the chart."""
        self.mc = mc
        self.ath = max(self.ath, mc)
        self.chart.append(mc)
        del self.chart[:-chart_max]


class Holding(LedgerModel):
    """A wallet's position in one coin."""

    coin_id: str
    symbol: str = ""
    amount: int = Field(default=0, ge=0)
    last_at: int = Field(default_factory=now_ms)


class Transaction(LedgerModel):
    """One entry of a profile's history."""

    id: str = Field(default_factory=new_id)
    timestamp: int = Field(default_factory=now_ms)
    coin_id: str = ""
    side: TxSide
    sol: float = 0.0
    tokens: int = Field(default=0, ge=0)
    fee_sol: float = Field(default=0.0, ge=0)
    to: str | None = None
    kind: WithdrawKind | None = None


class CreatorRewards(LedgerModel):
    """Creator-reward earnings, broken down per coin."""

    total_sol: float = Field(default=0.0, ge=0)
    by_coin: dict[str, float] = Field(default_factory=dict)


class ReferralRewards(LedgerModel):
    """Referral earnings, broken down per referred wallet."""

    total_sol: float = Field(default=0.0, ge=0)
    by_wallet: dict[str, float] = Field(default_factory=dict)


class Profile(LedgerModel):
    """Per-wallet bookkeeping."""

    wallet: str
    holdings: list[Holding] = Field(default_factory=list)
    txs: list[Transaction] = Field(default_factory=list)
    rewards: CreatorRewards = Field(default_factory=CreatorRewards)
    referral_rewards: ReferralRewards = Field(default_factory=ReferralRewards)
    referrer: str = ""
    updated_at: int = Field(default_factory=now_ms)

    def holding_for(self, coin_id: str) -> Holding | None:
        return next((h for h in self.holdings if h.coin_id == coin_id), None)

    def add_tokens(self, coin: Coin, tokens: int) -> Holding:
        """Credit tokens to the holding for coin, creating it at the front."""
        holding = self.holding_for(coin.id)
        if holding is None:
            holding = Holding(coin_id=coin.id, symbol=coin.symbol, amount=0)
            self.holdings.insert(0, holding)
        holding.amount += tokens
        holding.last_at = now_ms()
        return holding

    def remove_tokens(self, coin_id: str, tokens: int) -> None:
        """Debit tokens from a holding and prune it once empty."""
        holding = self.holding_for(coin_id)
        if holding is None:
            return
        holding.amount = max(0, holding.amount - tokens)
        holding.last_at = now_ms()
        self.holdings = [h for h in self.holdings if h.amount > 0]

    def push_tx(self, tx: Transaction, cap: int) -> None:
        self.txs.insert(0, tx)
        del self.txs[cap:]
        self.updated_at = now_ms()


class Treasury(LedgerModel):
    """Process-wide fee accumulators."""

    dev_sol: float = Field(default=0.0, ge=0)
    reserve_sol: float = Field(default=0.0, ge=0)
    updated_at: int = Field(default_factory=now_ms)

    def credit(self, dev_sol: float, reserve_sol: float) -> None:
        self.dev_sol += max(0.0, dev_sol)
        self.reserve_sol += max(0.0, reserve_sol)
        self.updated_at = now_ms()


class ActivityLogEntry(LedgerModel):
    """Structured audit event. Event-specific fields are kept as extras."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    timestamp: int = Field(default_factory=now_ms)
    type: str


class Store(LedgerModel):
    """The whole ledger: one snapshot per deployment."""

    schema_version: int = SCHEMA_VERSION
    coins: list[Coin] = Field(default_factory=list)
    profiles: dict[str, Profile] = Field(default_factory=dict)
    referrals: dict[str, str] = Field(default_factory=dict)
    treasury: Treasury = Field(default_factory=Treasury)
    logs: list[ActivityLogEntry] = Field(default_factory=list)

    def find_coin(self, coin_id: str) -> Coin | None:
        coin_id = (coin_id or "").strip()
        return next((c for c in self.coins if c.id == coin_id), None)

    def profile_for(self, wallet: str) -> Profile:
        """Return the profile for wallet, creating an empty one if needed."""
        profile = self.profiles.get(wallet)
        if profile is None:
            profile = Profile(wallet=wallet)
            self.profiles[wallet] = profile
        return profile

    def push_log(self, event: dict[str, Any], cap: int) -> ActivityLogEntry:
        """Prepend an activity entry, evicting the oldest beyond cap."""
        entry = ActivityLogEntry.model_validate({"timestamp": now_ms(), **event})
        self.logs.insert(0, entry)
        del self.logs[cap:]
        return entry

    def to_snapshot(self) -> dict[str, Any]:
        """Serialize to the JSON-compatible persisted document."""
        return self.model_dump(mode="json", by_alias=True)


class TradeResult(BaseModel):
    """Outcome of a settled trade."""

    coin: Coin
    profile: Profile


class WithdrawalResult(BaseModel):
    """Outcome of a withdrawal request."""

    to: str
    kind: WithdrawKind
    sol: float

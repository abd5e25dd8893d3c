"""Pydantic models for the ledger snapshot."""

from funrun.models.ledger import (
    SCHEMA_VERSION,
    ActivityLogEntry,
    Coin,
    CoinStatus,
    CreatorRewards,
    Holding,
    Profile,
    ReferralRewards,
    Store,
    TradeResult,
    TradeSide,
    Transaction,
    Treasury,
    TxSide,
    WithdrawalResult,
    WithdrawKind,
)

__all__ = [
    "SCHEMA_VERSION",
    "ActivityLogEntry",
    "Coin",
    "CoinStatus",
    "CreatorRewards",
    "Holding",
    "Profile",
    "ReferralRewards",
    "Store",
    "TradeResult",
    "TradeSide",
    "Transaction",
    "Treasury",
    "TxSide",
    "WithdrawalResult",
    "WithdrawKind",
]

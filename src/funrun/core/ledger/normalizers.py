"""Entity normalizers and snapshot schema migrations.

Every function here accepts arbitrary input (None, wrong types, records
written by an older deployment) and returns a fully populated entity
that satisfies the ledger invariants. They never raise, and they are
idempotent: normalizing a normalized entity yields an equal entity.

Snapshots carry a ``schemaVersion``. A snapshot without one is version 0,
the shape written before versioning existed. ``MIGRATIONS`` lifts a raw
document one version at a time before field normalization runs.
"""

from __future__ import annotations

import copy
from collections.abc import Callable
from enum import Enum
from typing import Any

import structlog
from pydantic import BaseModel

from funrun.config.settings import Settings, get_settings
from funrun.core.numeric import new_id, now_ms, safe_int, safe_num
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
    Transaction,
    Treasury,
    TxSide,
    WithdrawKind,
)

log = structlog.get_logger(__name__)

CHART_SEED_LENGTH = 5


def _as_dict(raw: Any) -> dict[str, Any]:
    if isinstance(raw, BaseModel):
        return raw.model_dump(mode="json", by_alias=True)
    if isinstance(raw, dict):
        return raw
    return {}


def _as_list(raw: Any) -> list[Any]:
    return raw if isinstance(raw, list) else []


def _text(value: Any) -> str:
    if value is None or isinstance(value, (dict, list)):
        return ""
    if isinstance(value, Enum):
        value = value.value
    return str(value).strip()


def _non_negative(value: Any, default: float = 0.0) -> float:
    return max(0.0, safe_num(value, default))


def _amount_map(raw: Any) -> dict[str, float]:
    return {
        key: _non_negative(value)
        for key, value in ((_text(k), v) for k, v in _as_dict(raw).items())
        if key
    }


def parse_withdraw_kind(value: Any) -> WithdrawKind | None:
    """Map a raw kind string (including the legacy ``REF``) to WithdrawKind."""
    kind = _text(value).upper()
    if kind == "REF":
        return WithdrawKind.REFERRAL
    try:
        return WithdrawKind(kind)
    except ValueError:
        return None


# =============================================================================
# Schema migrations
# =============================================================================


def _migrate_v0_to_v1(doc: dict[str, Any]) -> dict[str, Any]:
    """Rename ``t`` timestamps, the ``REF`` kind, and backfill coin owners."""
    for coin in _as_list(doc.get("coins")):
        if isinstance(coin, dict):
            coin.setdefault("owner", coin.get("creatorWallet", ""))
            coin.setdefault("creatorWallet", coin.get("owner", ""))

    for profile in _as_dict(doc.get("profiles")).values():
        if not isinstance(profile, dict):
            continue
        for tx in _as_list(profile.get("txs")):
            if not isinstance(tx, dict):
                continue
            if "timestamp" not in tx and "t" in tx:
                tx["timestamp"] = tx.pop("t")
            if _text(tx.get("kind")).upper() == "REF":
                tx["kind"] = WithdrawKind.REFERRAL.value

    for entry in _as_list(doc.get("logs")):
        if isinstance(entry, dict) and "timestamp" not in entry and "t" in entry:
            entry["timestamp"] = entry.pop("t")

    doc["schemaVersion"] = 1
    return doc


MIGRATIONS: dict[int, Callable[[dict[str, Any]], dict[str, Any]]] = {
    0: _migrate_v0_to_v1,
}


def migrate_snapshot(raw: Any) -> dict[str, Any]:
    """Bring a raw snapshot document up to the current schema version.

    The input is not modified.
    """
    doc = copy.deepcopy(_as_dict(raw))
    version = safe_int(doc.get("schemaVersion"), 0)

    if version > SCHEMA_VERSION:
        log.warning(
            "snapshot_schema_newer_than_supported",
            version=version,
            supported=SCHEMA_VERSION,
        )
        return doc

    while version < SCHEMA_VERSION:
        doc = MIGRATIONS[version](doc)
        version += 1
    return doc


# =============================================================================
# Entity normalizers
# =============================================================================


def _cap_holders(holders: dict[str, int], total_supply: int) -> dict[str, int]:
    """Trim balances in stored order so their sum never exceeds total_supply."""
    if sum(holders.values()) <= total_supply:
        return holders

    capped: dict[str, int] = {}
    remaining = total_supply
    for wallet, tokens in holders.items():
        kept = min(tokens, remaining)
        if kept > 0:
            capped[wallet] = kept
            remaining -= kept
    log.warning(
        "coin_holders_trimmed_to_supply",
        total_supply=total_supply,
        issued=sum(holders.values()),
    )
    return capped


def normalize_coin(raw: Any, settings: Settings | None = None) -> Coin:
    """Return a fully-populated Coin from a possibly partial record."""
    settings = settings or get_settings()
    data = _as_dict(raw)

    status = CoinStatus.LIVE if _text(data.get("status")).upper() == "LIVE" else CoinStatus.DRAFT
    if status == CoinStatus.LIVE:
        mc = max(settings.price_floor, safe_num(data.get("mc"), settings.starting_mc))
    else:
        mc = _non_negative(data.get("mc"))
    ath = max(mc, safe_num(data.get("ath"), mc))

    chart = [
        safe_num(point)
        for point in _as_list(data.get("chart"))
        if safe_num(point, -1.0) >= 0
    ][-settings.chart_max :]
    if not chart:
        chart = [mc] * CHART_SEED_LENGTH

    total_supply = safe_int(data.get("totalSupply"), settings.total_supply_default)
    if total_supply <= 0:
        total_supply = settings.total_supply_default

    holders: dict[str, int] = {}
    for wallet, balance in _as_dict(data.get("holders")).items():
        wallet = _text(wallet)
        tokens = max(0, safe_int(balance))
        if wallet and tokens:
            holders[wallet] = holders.get(wallet, 0) + tokens
    holders = _cap_holders(holders, total_supply)

    creator = _text(data.get("creatorWallet")) or _text(data.get("owner"))

    return Coin(
        id=_text(data.get("id")) or new_id(),
        name=_text(data.get("name")),
        symbol=_text(data.get("symbol")).upper(),
        story=_text(data.get("story")),
        logo=_text(data.get("logo")),
        creator_wallet=creator,
        owner=_text(data.get("owner")) or creator,
        created_at=safe_int(data.get("createdAt"), now_ms()),
        status=status,
        mc=mc,
        ath=ath,
        chart=chart,
        volume_sol=_non_negative(data.get("volumeSol")),
        creator_rewards_sol=_non_negative(data.get("creatorRewardsSol")),
        total_supply=total_supply,
        holders=holders,
        last_trade_at=max(0, safe_int(data.get("lastTradeAt"))),
    )


def _normalize_holdings(raw: Any) -> list[Holding]:
    merged: dict[str, Holding] = {}
    for item in _as_list(raw):
        data = _as_dict(item)
        coin_id = _text(data.get("coinId"))
        amount = max(0, safe_int(data.get("amount")))
        if not coin_id or not amount:
            continue
        last_at = safe_int(data.get("lastAt"), 0)
        existing = merged.get(coin_id)
        if existing is None:
            merged[coin_id] = Holding(
                coin_id=coin_id,
                symbol=_text(data.get("symbol")),
                amount=amount,
                last_at=last_at,
            )
        else:
            existing.amount += amount
            existing.last_at = max(existing.last_at, last_at)
    return list(merged.values())


def _normalize_tx(raw: Any) -> Transaction | None:
    data = _as_dict(raw)
    try:
        side = TxSide(_text(data.get("side")).upper())
    except ValueError:
        return None

    to = _text(data.get("to")) or None
    return Transaction(
        id=_text(data.get("id")) or new_id(),
        timestamp=safe_int(data.get("timestamp"), 0),
        coin_id=_text(data.get("coinId")),
        side=side,
        sol=safe_num(data.get("sol")),
        tokens=max(0, safe_int(data.get("tokens"))),
        fee_sol=_non_negative(data.get("feeSol")),
        to=to,
        kind=parse_withdraw_kind(data.get("kind")),
    )


def normalize_profile(
    raw: Any, wallet: str | None = None, settings: Settings | None = None
) -> Profile:
    """Return a fully-populated Profile for wallet."""
    settings = settings or get_settings()
    data = _as_dict(raw)

    txs = [tx for tx in (_normalize_tx(item) for item in _as_list(data.get("txs"))) if tx]
    rewards = _as_dict(data.get("rewards"))
    referral_rewards = _as_dict(data.get("referralRewards"))

    return Profile(
        wallet=_text(wallet) or _text(data.get("wallet")),
        holdings=_normalize_holdings(data.get("holdings")),
        txs=txs[: settings.profile_tx_cap],
        rewards=CreatorRewards(
            total_sol=_non_negative(rewards.get("totalSol")),
            by_coin=_amount_map(rewards.get("byCoin")),
        ),
        referral_rewards=ReferralRewards(
            total_sol=_non_negative(referral_rewards.get("totalSol")),
            by_wallet=_amount_map(referral_rewards.get("byWallet")),
        ),
        referrer=_text(data.get("referrer")),
        updated_at=safe_int(data.get("updatedAt"), now_ms()),
    )


def normalize_treasury(raw: Any) -> Treasury:
    data = _as_dict(raw)
    return Treasury(
        dev_sol=_non_negative(data.get("devSol")),
        reserve_sol=_non_negative(data.get("reserveSol")),
        updated_at=safe_int(data.get("updatedAt"), now_ms()),
    )


def _normalize_log(raw: Any) -> ActivityLogEntry | None:
    data = dict(_as_dict(raw))
    event_type = _text(data.pop("type", None))
    if not event_type:
        return None
    data["timestamp"] = safe_int(data.get("timestamp"), 0)
    return ActivityLogEntry.model_validate({**data, "type": event_type})


def normalize_store(raw: Any, settings: Settings | None = None) -> Store:
    """Migrate and normalize a whole snapshot into a Store."""
    settings = settings or get_settings()
    doc = migrate_snapshot(raw)

    coins: list[Coin] = []
    seen: set[str] = set()
    for item in _as_list(doc.get("coins")):
        coin = normalize_coin(item, settings)
        if coin.id in seen:
            continue
        seen.add(coin.id)
        coins.append(coin)

    profiles: dict[str, Profile] = {}
    for wallet, item in _as_dict(doc.get("profiles")).items():
        wallet = _text(wallet)
        if wallet:
            profiles[wallet] = normalize_profile(item, wallet, settings)

    referrals = {
        wallet: referrer
        for wallet, referrer in (
            (_text(k), _text(v)) for k, v in _as_dict(doc.get("referrals")).items()
        )
        if wallet and referrer
    }

    logs = [entry for entry in (_normalize_log(item) for item in _as_list(doc.get("logs"))) if entry]

    return Store(
        schema_version=SCHEMA_VERSION,
        coins=coins,
        profiles=profiles,
        referrals=referrals,
        treasury=normalize_treasury(doc.get("treasury")),
        logs=logs[: settings.log_cap],
    )


def default_snapshot() -> dict[str, Any]:
    """Snapshot document for a brand-new deployment."""
    return Store().to_snapshot()

"""Ledger routes.

One route per engine operation. Every response uses the envelope
``{"ok": true, ...payload}`` or ``{"ok": false, "error": "..."}``;
error envelopes are produced by the handlers in ``funrun.api.app``.
"""

from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from funrun.api.dependencies import EngineDep, RpcClientDep, SettingsDep
from funrun.core.numeric import now_ms
from funrun.models.ledger import Coin, Profile, WithdrawKind

router = APIRouter(tags=["ledger"])


class LedgerRequest(BaseModel):
    """Base for request bodies; accepts camelCase or snake_case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReferralRequest(LedgerRequest):
    wallet: str = ""
    referrer: str = ""


class CreateCoinRequest(LedgerRequest):
    name: str = ""
    symbol: str = ""
    story: str = ""
    logo: str = ""
    initial_sol: float = 0.0
    creator_wallet: str = ""


class TradeRequest(LedgerRequest):
    wallet: str = ""
    coin_id: str = ""
    side: str = ""
    sol: float = 0.0


class WithdrawRequest(LedgerRequest):
    wallet: str = ""
    to: str = ""
    kind: str = ""


def _coin_payload(coin: Coin) -> dict[str, Any]:
    return coin.model_dump(mode="json", by_alias=True)


def _profile_payload(profile: Profile) -> dict[str, Any]:
    return profile.model_dump(mode="json", by_alias=True)


@router.get("/")
async def root(settings: SettingsDep) -> dict[str, Any]:
    """Liveness check."""
    return {"ok": True, "name": settings.app_name, "ts": now_ms(), "dbMode": settings.db_mode}


@router.get("/api/coin/list")
async def list_coins(engine: EngineDep) -> dict[str, Any]:
    coins = await engine.list_coins()
    return {"ok": True, "coins": [_coin_payload(c) for c in coins]}


@router.get("/api/profile/{wallet}")
async def get_profile(wallet: str, engine: EngineDep) -> dict[str, Any]:
    profile = await engine.get_profile(wallet)
    return {"ok": True, "profile": _profile_payload(profile)}


@router.get("/api/balance/{wallet}")
async def get_balance(wallet: str, rpc: RpcClientDep) -> dict[str, Any]:
    wallet = wallet.strip()
    if not wallet:
        return {"ok": False, "error": "wallet required"}
    sol = await rpc.get_sol_balance(wallet)
    return {"ok": True, "sol": sol}


@router.post("/api/referral/set")
async def set_referral(body: ReferralRequest, engine: EngineDep) -> dict[str, Any]:
    await engine.set_referral(body.wallet, body.referrer)
    return {"ok": True}


@router.post("/api/coin/create")
async def create_coin(body: CreateCoinRequest, engine: EngineDep) -> dict[str, Any]:
    coin = await engine.issue_coin(
        name=body.name,
        symbol=body.symbol,
        creator_wallet=body.creator_wallet,
        story=body.story,
        logo=body.logo,
        initial_sol=body.initial_sol,
    )
    return {"ok": True, "coin": _coin_payload(coin)}


async def _trade(body: TradeRequest, engine: EngineDep, forced_side: str | None) -> dict[str, Any]:
    result = await engine.execute_trade(
        wallet=body.wallet,
        coin_id=body.coin_id,
        side=forced_side or body.side,
        sol=body.sol,
    )
    return {
        "ok": True,
        "coin": _coin_payload(result.coin),
        "profile": _profile_payload(result.profile),
    }


@router.post("/api/trade")
async def trade(body: TradeRequest, engine: EngineDep) -> dict[str, Any]:
    return await _trade(body, engine, None)


@router.post("/api/coin/buy")
async def buy(body: TradeRequest, engine: EngineDep) -> dict[str, Any]:
    return await _trade(body, engine, "buy")


@router.post("/api/coin/sell")
async def sell(body: TradeRequest, engine: EngineDep) -> dict[str, Any]:
    return await _trade(body, engine, "sell")


async def _withdraw(body: WithdrawRequest, engine: EngineDep, mode: WithdrawKind) -> dict[str, Any]:
    result = await engine.withdraw(
        wallet=body.wallet,
        kind=body.kind or mode,
        destination=body.to,
    )
    return {"ok": True, "to": result.to, "kind": result.kind.value, "sol": result.sol}


@router.post("/api/withdraw")
@router.post("/api/withdraw/manual")
async def withdraw_manual(body: WithdrawRequest, engine: EngineDep) -> dict[str, Any]:
    return await _withdraw(body, engine, WithdrawKind.MANUAL)


@router.post("/api/withdraw/creator")
async def withdraw_creator(body: WithdrawRequest, engine: EngineDep) -> dict[str, Any]:
    return await _withdraw(body, engine, WithdrawKind.CREATOR)


@router.post("/api/withdraw/referral")
async def withdraw_referral(body: WithdrawRequest, engine: EngineDep) -> dict[str, Any]:
    return await _withdraw(body, engine, WithdrawKind.REFERRAL)

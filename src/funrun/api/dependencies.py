"""FastAPI dependencies for dependency injection."""

from typing import Annotated

from fastapi import Depends, Request

from funrun.config.settings import Settings, get_settings
from funrun.core.ledger.engine import LedgerEngine
from funrun.services.solana.rpc_client import SolanaRPCClient


def get_engine(request: Request) -> LedgerEngine:
    """Get the ledger engine built during application startup."""
    engine: LedgerEngine = request.app.state.engine
    return engine


def get_rpc_client(request: Request) -> SolanaRPCClient:
    """Get the Solana RPC client built during application startup."""
    client: SolanaRPCClient = request.app.state.rpc_client
    return client


SettingsDep = Annotated[Settings, Depends(get_settings)]
EngineDep = Annotated[LedgerEngine, Depends(get_engine)]
RpcClientDep = Annotated[SolanaRPCClient, Depends(get_rpc_client)]

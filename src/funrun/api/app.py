"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from funrun.api.routes import ledger
from funrun.config.logging import configure_logging
from funrun.config.settings import get_settings
from funrun.core.exceptions import FunRunError, LedgerStateError, ValidationError
from funrun.core.ledger.engine import LedgerEngine
from funrun.data.factory import build_snapshot_repository
from funrun.data.supabase.client import close_supabase_client
from funrun.services.solana.rpc_client import SolanaRPCClient

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Builds the engine and RPC client unless they were injected, and
    flushes the snapshot on shutdown.
    """
    log.info("application_starting")
    configure_logging()
    settings = get_settings()

    owns_engine = getattr(app.state, "engine", None) is None
    if owns_engine:
        repository = await build_snapshot_repository(settings)
        app.state.engine = LedgerEngine(repository, settings)

    owns_rpc = getattr(app.state, "rpc_client", None) is None
    if owns_rpc:
        app.state.rpc_client = SolanaRPCClient(settings.solana_rpc_url)

    log.info("application_started", db_mode=settings.db_mode, fee_pct=settings.fee_pct)

    yield

    log.info("application_stopping")
    if owns_engine:
        await app.state.engine.close()
        await close_supabase_client()
    if owns_rpc:
        await app.state.rpc_client.close()
    log.info("application_stopped")


async def _ledger_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_200_OK, content={"ok": False, "error": str(exc)})


async def _request_validation_handler(_request: Request, exc: Exception) -> JSONResponse:
    errors = exc.errors() if isinstance(exc, RequestValidationError) else []
    fields = ", ".join(".".join(str(p) for p in e.get("loc", ())[1:]) for e in errors)
    message = f"invalid request: {fields}" if fields else "invalid request"
    return JSONResponse(status_code=status.HTTP_200_OK, content={"ok": False, "error": message})


async def _internal_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    log.error("request_failed", error=str(exc), error_type=type(exc).__name__)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"ok": False, "error": str(exc)},
    )


def create_app(
    engine: LedgerEngine | None = None,
    rpc_client: SolanaRPCClient | None = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        engine: Pre-built engine (tests); built from settings if None.
        rpc_client: Pre-built RPC client (tests); built from settings if None.
    """
    settings = get_settings()
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.engine = engine
    app.state.rpc_client = rpc_client

    app.add_exception_handler(ValidationError, _ledger_error_handler)
    app.add_exception_handler(LedgerStateError, _ledger_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(FunRunError, _internal_error_handler)
    app.add_exception_handler(Exception, _internal_error_handler)

    app.include_router(ledger.router)
    return app

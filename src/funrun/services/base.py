"""Resilient JSON-RPC transport.

Provides:
- CircuitState / CircuitBreaker for shedding load off a failing endpoint
- BaseRPCClient: lazy httpx client, tenacity retry, circuit breaker
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from funrun.core.exceptions import CircuitBreakerOpenError, ExternalServiceError

log = structlog.get_logger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation, requests allowed
    OPEN = "open"  # Circuit tripped, requests blocked
    HALF_OPEN = "half_open"  # Testing if service recovered


@dataclass
class CircuitBreaker:
    """Opens after consecutive failures, allows one trial call after cooldown."""

    failure_threshold: int = 5
    cooldown_seconds: int = 30
    failure_count: int = field(default=0, init=False)
    last_failure_time: datetime | None = field(default=None, init=False)
    state: CircuitState = field(default=CircuitState.CLOSED, init=False)

    def record_success(self) -> None:
        self.failure_count = 0
        self.state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = datetime.now(UTC)
        if self.state == CircuitState.HALF_OPEN or self.failure_count >= self.failure_threshold:
            if self.state != CircuitState.OPEN:
                log.warning(
                    "circuit_breaker_opened",
                    failure_count=self.failure_count,
                    threshold=self.failure_threshold,
                )
            self.state = CircuitState.OPEN

    def can_execute(self) -> bool:
        if self.state != CircuitState.OPEN:
            return True
        if self.last_failure_time is None:
            return False
        elapsed = datetime.now(UTC) - self.last_failure_time
        if elapsed > timedelta(seconds=self.cooldown_seconds):
            self.state = CircuitState.HALF_OPEN
            log.info("circuit_breaker_half_open", cooldown_elapsed=elapsed.total_seconds())
            return True
        return False

    def raise_if_open(self) -> None:
        """Raises:
        CircuitBreakerOpenError: If circuit is open and cooldown not elapsed.
        """
        if not self.can_execute():
            raise CircuitBreakerOpenError("Circuit breaker is open")


class _RetryableRPCError(Exception):
    """Transport failure worth retrying (timeouts, 429, 5xx)."""


class BaseRPCClient:
    """JSON-RPC client with retry and circuit breaker support.

    Attributes:
        base_url: RPC endpoint.
        timeout: Request timeout in seconds.
        max_retries: Attempts per call, including the first.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        max_retries: int = 3,
        circuit_breaker_threshold: int = 5,
        circuit_breaker_cooldown: int = 30,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max_retries
        self._client: httpx.AsyncClient | None = None
        self._circuit_breaker = CircuitBreaker(
            failure_threshold=circuit_breaker_threshold,
            cooldown_seconds=circuit_breaker_cooldown,
        )
        self._request_id = 0

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={"Content-Type": "application/json"},
            )
            log.debug("httpx_client_created", base_url=self.base_url)
        return self._client

    async def close(self) -> None:
        """Close the httpx client and release resources."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def call(self, method: str, params: list[Any]) -> Any:
        """Invoke a JSON-RPC method and return its ``result``.

        Raises:
            CircuitBreakerOpenError: If the circuit is open.
            ExternalServiceError: On RPC errors or exhausted retries.
        """
        self._circuit_breaker.raise_if_open()
        self._request_id += 1
        payload = {"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params}

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_retries),
                wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
                retry=retry_if_exception_type(_RetryableRPCError),
                reraise=True,
            ):
                with attempt:
                    body = await self._post(payload)
        except _RetryableRPCError as e:
            log.error("rpc_max_retries_exceeded", method=method, error=str(e))
            raise ExternalServiceError(
                service="solana-rpc",
                message=f"Max retries ({self.max_retries}) exceeded: {e}",
            ) from e

        error = body.get("error")
        if error:
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            raise ExternalServiceError(service="solana-rpc", message=message)
        return body.get("result")

    async def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        client = await self._get_client()
        try:
            response = await client.post("", json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            if 400 <= status_code < 500 and status_code != 429:
                raise ExternalServiceError(
                    service="solana-rpc", message=str(e), status_code=status_code
                ) from e
            self._circuit_breaker.record_failure()
            log.warning("rpc_server_error", method=payload["method"], status_code=status_code)
            raise _RetryableRPCError(str(e)) from e
        except httpx.RequestError as e:
            self._circuit_breaker.record_failure()
            log.warning("rpc_connection_error", method=payload["method"], error=str(e))
            raise _RetryableRPCError(str(e)) from e

        self._circuit_breaker.record_success()
        try:
            body = response.json()
        except ValueError as e:
            log.warning("rpc_invalid_json", method=payload["method"], error=str(e))
            raise ExternalServiceError(service="solana-rpc", message="Invalid JSON response") from e
        if not isinstance(body, dict):
            raise ExternalServiceError(service="solana-rpc", message="Unexpected response shape")
        return body

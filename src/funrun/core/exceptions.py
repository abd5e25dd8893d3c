"""FunRun exception hierarchy.

This module defines the base exception class and specialized exceptions
for the error categories of the ledger:

- ValidationError: malformed or missing caller input
- LedgerStateError: operation not permitted in the current entity state
- PersistenceError: snapshot backing store failed or is misconfigured
- ExternalServiceError: chain RPC and other external collaborators
"""


class FunRunError(Exception):
    """Base exception for all FunRun errors.

    All custom exceptions in FunRun should inherit from this class
    to enable consistent error handling and logging.
    """

    pass


class ValidationError(FunRunError):
    """Raised when caller input is malformed or missing.

    Validation errors are raised before any mutation and never
    reach the persistence layer.

    Example:
        raise ValidationError("symbol must be 2-10 characters")
    """

    pass


class LedgerStateError(FunRunError):
    """Raised when an operation is not permitted given current ledger state.

    Checks that raise this run before any mutation, so the
    store is untouched when it propagates.
    """

    pass


class CoinNotFoundError(LedgerStateError):
    """Raised when a coin id does not resolve to a coin."""

    def __init__(self, coin_id: str) -> None:
        self.coin_id = coin_id
        super().__init__("Coin not found")


class CoinNotLiveError(LedgerStateError):
    """Raised when trading a coin that is still in DRAFT."""

    def __init__(self, coin_id: str) -> None:
        self.coin_id = coin_id
        super().__init__("Coin not LIVE")


class InsufficientHoldingError(LedgerStateError):
    """Raised when a wallet sells a coin it does not hold."""

    pass


class OwnershipCapExceededError(LedgerStateError):
    """Raised when a creator's buy would exceed the ownership cap.

    Attributes:
        max_pct: Configured maximum share of total supply.
        resulting_tokens: Balance the buy would have produced.
    """

    def __init__(self, max_pct: float, resulting_tokens: int) -> None:
        self.max_pct = max_pct
        self.resulting_tokens = resulting_tokens
        super().__init__(f"Ownership cap exceeded: creator may hold at most {max_pct:g}% of supply")


class SupplyExhaustedError(LedgerStateError):
    """Raised when a buy finds no unissued supply left."""

    pass


class ReferralAlreadySetError(LedgerStateError):
    """Raised when a wallet already has a referrer bound."""

    def __init__(self) -> None:
        super().__init__("immutable: referral already set")


class SelfReferralError(LedgerStateError):
    """Raised when a wallet tries to refer itself."""

    def __init__(self) -> None:
        super().__init__("self referral not allowed")


class PersistenceError(FunRunError):
    """Raised when the snapshot cannot be read or written.

    The in-memory state may be correct but unsaved; callers must not
    assume durability when they see this.

    Example:
        raise PersistenceError("Supabase write failed: timeout")
    """

    pass


class DatabaseConnectionError(PersistenceError):
    """Raised when database connection fails.

    Example:
        raise DatabaseConnectionError("Supabase: Connection refused")
    """

    pass


class ConfigurationError(FunRunError):
    """Raised when configuration is invalid or missing.

    Example:
        raise ConfigurationError("Supabase not configured")
    """

    pass


class ExternalServiceError(FunRunError):
    """Raised when an external service call fails.

    Attributes:
        service: Name of the external service that failed.
        status_code: HTTP status code if available, None otherwise.

    Example:
        raise ExternalServiceError(service="solana-rpc", message="Rate limited", status_code=429)
    """

    def __init__(
        self,
        service: str,
        message: str,
        status_code: int | None = None,
    ) -> None:
        self.service = service
        self.status_code = status_code
        super().__init__(f"{service}: {message}")


class CircuitBreakerOpenError(FunRunError):
    """Raised when circuit breaker is open.

    Example:
        raise CircuitBreakerOpenError("Circuit is open for Solana RPC")
    """

    pass


class WalletConnectionError(FunRunError):
    """Raised when a wallet lookup against the chain fails.

    Attributes:
        wallet_address: The wallet address involved (if available).
    """

    def __init__(self, message: str, wallet_address: str | None = None) -> None:
        super().__init__(message)
        self.wallet_address = wallet_address

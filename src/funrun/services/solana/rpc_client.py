"""Solana RPC client for wallet balance lookups.

The ledger never settles on-chain; the only chain query is the SOL
balance shown next to a connected wallet.
"""

import structlog

from funrun.config.settings import get_settings
from funrun.core.exceptions import FunRunError, WalletConnectionError
from funrun.core.numeric import safe_num
from funrun.core.wallet.validator import is_valid_solana_address, truncate_address
from funrun.services.base import BaseRPCClient

log = structlog.get_logger(__name__)

LAMPORTS_PER_SOL = 1_000_000_000


class SolanaRPCClient(BaseRPCClient):
    """Client for Solana JSON-RPC balance queries.

    Example:
        client = SolanaRPCClient()
        sol = await client.get_sol_balance("9WzDX...")
        await client.close()
    """

    def __init__(self, rpc_url: str | None = None) -> None:
        url = rpc_url or get_settings().solana_rpc_url
        super().__init__(base_url=url, timeout=5.0)
        log.debug("solana_rpc_client_initialized", base_url=url)

    async def get_balance(self, address: str) -> float:
        """Return the wallet's balance in SOL.

        Raises:
            WalletConnectionError: If the address is malformed or the RPC call fails.
        """
        if not is_valid_solana_address(address):
            raise WalletConnectionError("Invalid Solana address format", wallet_address=address)

        try:
            result = await self.call("getBalance", [address, {"commitment": "confirmed"}])
        except FunRunError as e:
            raise WalletConnectionError(f"Balance fetch failed: {e}", wallet_address=address) from e

        raw = result.get("value") if isinstance(result, dict) else result
        lamports = safe_num(raw, -1.0)
        if lamports < 0:
            raise WalletConnectionError("Malformed balance payload", wallet_address=address)
        return int(lamports) / LAMPORTS_PER_SOL

    async def get_sol_balance(self, address: str) -> float:
        """Balance in SOL, or 0.0 when the lookup fails for any reason."""
        if not address:
            return 0.0
        try:
            return await self.get_balance(address)
        except WalletConnectionError as e:
            log.warning(
                "balance_fetch_failed_returning_zero",
                wallet_address=truncate_address(address),
                error=str(e),
            )
            return 0.0

"""Wallet address helpers."""

from funrun.core.wallet.validator import is_valid_solana_address, truncate_address

__all__ = ["is_valid_solana_address", "truncate_address"]

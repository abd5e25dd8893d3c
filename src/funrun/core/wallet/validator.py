"""Wallet address validation logic.

Local format checks only; the ledger never asks the chain whether a
wallet exists before binding referrals or crediting rewards.
"""

# Solana base58 alphabet (excludes 0, O, I, l to avoid confusion)
BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"

# Solana addresses are typically 32-44 characters
SOLANA_ADDRESS_MIN_LENGTH = 32
SOLANA_ADDRESS_MAX_LENGTH = 44


def is_valid_solana_address(address: str | None) -> bool:
    """Validate Solana address format (base58).

    Performs local validation without network calls:
    - Checks for None/empty values
    - Validates length (32-44 characters)
    - Verifies all characters are in base58 alphabet

    Args:
        address: Potential Solana wallet address to validate.

    Returns:
        True if address has valid format, False otherwise.

    Example:
        >>> is_valid_solana_address("9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM")
        True
        >>> is_valid_solana_address("invalid_0OIl")
        False
    """
    if address is None or not isinstance(address, str):
        return False

    address = address.strip()
    if not address:
        return False

    if not (SOLANA_ADDRESS_MIN_LENGTH <= len(address) <= SOLANA_ADDRESS_MAX_LENGTH):
        return False

    return all(c in BASE58_ALPHABET for c in address)


def truncate_address(address: str) -> str:
    """Truncate wallet address for logs: AbCd...xYz1.

    Example:
        >>> truncate_address("9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM")
        '9WzD...AWWM'
    """
    if len(address) > 12:
        return f"{address[:4]}...{address[-4:]}"
    return address

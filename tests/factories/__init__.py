"""Test data factories using factory_boy.

These factories generate realistic test data for FunRun ledger models.
"""

from tests.factories.ledger import (
    CoinFactory,
    HoldingFactory,
    ProfileFactory,
    generate_valid_solana_address,
)

__all__ = [
    "CoinFactory",
    "HoldingFactory",
    "ProfileFactory",
    "generate_valid_solana_address",
]

"""
State management for the ledger engine
"""

from .ledger import AccountLedger
from .nonces import NonceTable
from .registry import CollateralRegistry

__all__ = [
    "AccountLedger",
    "NonceTable",
    "CollateralRegistry",
]

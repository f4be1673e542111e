"""
Functional core: errors, fixed-point math, oracle adapter, statement codec, gate.
"""

from .errors import (
    AssetTransferFailed,
    ConcurrencyError,
    DuplicateKind,
    EngineError,
    ExternalDependencyError,
    InputError,
    InsufficientCollateral,
    InsufficientDebt,
    InvalidSignature,
    MalformedRequest,
    NegativeResultingState,
    ProofRejected,
    ProverUnavailable,
    ReentrantCall,
    RegistryFrozen,
    ReplayedRequest,
    SecurityError,
    SourceUnavailable,
    StalePrice,
    StatementOutOfRange,
    StateError,
    UnknownCollateralKind,
    ZeroAmount,
)
from .gate import ProofGate, Verifier, expected_statement
from .oracle import OracleAdapter, PriceFeed, PricePoint, is_fresh
from .statement import PublicStatement

__all__ = [
    "AssetTransferFailed",
    "ConcurrencyError",
    "DuplicateKind",
    "EngineError",
    "ExternalDependencyError",
    "InputError",
    "InsufficientCollateral",
    "InsufficientDebt",
    "InvalidSignature",
    "MalformedRequest",
    "NegativeResultingState",
    "ProofRejected",
    "ProverUnavailable",
    "ReentrantCall",
    "RegistryFrozen",
    "ReplayedRequest",
    "SecurityError",
    "SourceUnavailable",
    "StalePrice",
    "StatementOutOfRange",
    "StateError",
    "UnknownCollateralKind",
    "ZeroAmount",
    "ProofGate",
    "Verifier",
    "expected_statement",
    "OracleAdapter",
    "PriceFeed",
    "PricePoint",
    "is_fresh",
    "PublicStatement",
]

"""
Imperative shell: engine, verifier/prover backends, custody, configuration
"""

from .assets import AssetTransfer, InMemoryAssetBank
from .config import EngineConfig, load_engine_config
from .dsc_engine import DscEngine, TransitionResult, build_engine
from .proof_verifier import ProofVerifierConfig, make_proof_verifier
from .requests import SignedRequest, TransitionKind, TransitionRequest, parse_request

__all__ = [
    "AssetTransfer",
    "InMemoryAssetBank",
    "EngineConfig",
    "load_engine_config",
    "DscEngine",
    "TransitionResult",
    "build_engine",
    "ProofVerifierConfig",
    "make_proof_verifier",
    "SignedRequest",
    "TransitionKind",
    "TransitionRequest",
    "parse_request",
]

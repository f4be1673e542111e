"""
zkdsc: a proof-gated collateral/debt ledger for a USD-pegged synthetic asset.
"""

from .integration.dsc_engine import DscEngine, TransitionResult, build_engine

__all__ = ["DscEngine", "TransitionResult", "build_engine"]

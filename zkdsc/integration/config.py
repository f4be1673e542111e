"""
Engine configuration.

Configuration is a frozen dataclass tree; ``load_engine_config`` reads the same
shape from a YAML file:

    collateral_kinds: [WETH, WBTC]
    max_price_age_seconds: 10800
    liquidation_threshold: 50
    liquidation_precision: 100
    min_health_factor: 1000000000000000000
    require_owner_signatures: true
    chain_id: zkdsc-local
    proof:
      enabled: true
      verifier_cmd: [/usr/local/bin/zkdsc-verify]
      timeout_s: 10
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping, Tuple, Union

import yaml

from ..core.math import LIQUIDATION_PRECISION, LIQUIDATION_THRESHOLD, MIN_HEALTH_FACTOR
from ..core.oracle import DEFAULT_MAX_PRICE_AGE_SECONDS
from .proof_verifier import ProofVerifierConfig
from .requests import DEFAULT_CHAIN_ID


@dataclass(frozen=True)
class EngineConfig:
    # Registry order; total collateral value is folded in this order.
    collateral_kinds: Tuple[str, ...] = ()
    max_price_age_seconds: int = DEFAULT_MAX_PRICE_AGE_SECONDS

    # Solvency parameters. The engine reports them and uses them for
    # estimation; the proof is what enforces them.
    liquidation_threshold: int = LIQUIDATION_THRESHOLD
    liquidation_precision: int = LIQUIDATION_PRECISION
    min_health_factor: int = MIN_HEALTH_FACTOR

    # Owner authentication policy:
    # - If True, unsigned requests are refused and signed ones must carry the
    #   owner's next sequential nonce.
    require_owner_signatures: bool = False
    # Binds owner signatures to one deployment.
    chain_id: str = DEFAULT_CHAIN_ID

    proof_config: ProofVerifierConfig = field(default_factory=ProofVerifierConfig)

    def __post_init__(self) -> None:
        if len(set(self.collateral_kinds)) != len(self.collateral_kinds):
            raise ValueError("collateral_kinds must be unique")
        if self.max_price_age_seconds <= 0:
            raise ValueError("max_price_age_seconds must be positive")
        if not 0 < self.liquidation_threshold <= self.liquidation_precision:
            raise ValueError("liquidation_threshold must be in (0, liquidation_precision]")
        if self.min_health_factor <= 0:
            raise ValueError("min_health_factor must be positive")
        if not self.chain_id:
            raise ValueError("chain_id must be non-empty")


_INT_KEYS = ("max_price_age_seconds", "liquidation_threshold", "liquidation_precision", "min_health_factor")
_PROOF_KEYS = {f.name for f in fields(ProofVerifierConfig)} - {"verifier_cmd"}


def _require_int(value: Any, *, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"{name} must be an int")
    return value


def _parse_proof_config(obj: Any) -> ProofVerifierConfig:
    if obj is None:
        return ProofVerifierConfig()
    if not isinstance(obj, Mapping):
        raise ValueError("proof must be a mapping")
    unknown = set(obj) - _PROOF_KEYS - {"verifier_cmd"}
    if unknown:
        raise ValueError(f"unknown proof keys: {sorted(unknown)}")
    kwargs = {k: obj[k] for k in _PROOF_KEYS if k in obj}
    cmd = obj.get("verifier_cmd")
    if cmd is not None:
        if not isinstance(cmd, list) or not all(isinstance(c, str) and c for c in cmd):
            raise ValueError("proof.verifier_cmd must be a list of non-empty strings")
        kwargs["verifier_cmd"] = tuple(cmd)
    return ProofVerifierConfig(**kwargs)


def engine_config_from_dict(obj: Any) -> EngineConfig:
    if not isinstance(obj, Mapping):
        raise ValueError("engine config must be a mapping")
    known = {f.name for f in fields(EngineConfig)} - {"proof_config"} | {"proof"}
    unknown = set(obj) - known
    if unknown:
        raise ValueError(f"unknown engine config keys: {sorted(unknown)}")

    kinds = obj.get("collateral_kinds", [])
    if not isinstance(kinds, list) or not all(isinstance(k, str) and k for k in kinds):
        raise ValueError("collateral_kinds must be a list of non-empty strings")

    kwargs: dict = {"collateral_kinds": tuple(kinds), "proof_config": _parse_proof_config(obj.get("proof"))}
    for key in _INT_KEYS:
        if key in obj:
            kwargs[key] = _require_int(obj[key], name=key)
    if "require_owner_signatures" in obj:
        if not isinstance(obj["require_owner_signatures"], bool):
            raise ValueError("require_owner_signatures must be a bool")
        kwargs["require_owner_signatures"] = obj["require_owner_signatures"]
    if "chain_id" in obj:
        if not isinstance(obj["chain_id"], str):
            raise ValueError("chain_id must be a string")
        kwargs["chain_id"] = obj["chain_id"]
    return EngineConfig(**kwargs)


def load_engine_config(path: Union[str, Path]) -> EngineConfig:
    obj = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    return engine_config_from_dict(obj if obj is not None else {})

"""
Client for the off-chain proving service.

The service is a black box that takes the two statement values and returns an
opaque proof plus the public inputs it committed to. The client refuses any
proof whose public inputs differ from what was asked for: such a proof can
never pass the engine's gate, and failing here gives a clearer error.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence

from ..core.errors import ProverUnavailable, StatementOutOfRange
from ..core.statement import PublicStatement
from ..state.canonical import hex_to_bytes_allow_0x
from .subprocess_json import call_json


class Prover(Protocol):
    def prove(self, statement: PublicStatement) -> bytes:
        ...


@dataclass(frozen=True)
class ProverConfig:
    prover_cmd: Sequence[str] = ()
    timeout_s: float = 120.0
    max_stdout_bytes: int = 600_000
    max_stderr_bytes: int = 8_000


class SubprocessProver:
    """
    Protocol:
    - stdin: {"expected_debt": int, "expected_collateral_value_usd": int}
    - stdout: {"proof": "0x..", "public_inputs": ["0x<32 bytes>", "0x<32 bytes>"]}
      or {"error": str}
    """

    def __init__(self, config: ProverConfig) -> None:
        if not config.prover_cmd:
            raise ValueError("prover_cmd must be non-empty")
        if config.timeout_s <= 0:
            raise ValueError("timeout_s must be positive")
        self._config = config

    def prove(self, statement: PublicStatement) -> bytes:
        cfg = self._config
        res = call_json(
            cfg.prover_cmd,
            {
                "expected_debt": statement.expected_debt,
                "expected_collateral_value_usd": statement.expected_collateral_value_usd,
            },
            timeout_s=cfg.timeout_s,
            max_input_bytes=4_096,
            max_stdout_bytes=cfg.max_stdout_bytes,
            max_stderr_bytes=cfg.max_stderr_bytes,
        )
        if not res.ok or res.output is None:
            raise ProverUnavailable(f"prover failed: {res.error}")
        out = res.output
        if "error" in out:
            raise ProverUnavailable(f"prover refused statement: {out['error']}")

        proof_hex = out.get("proof")
        inputs = out.get("public_inputs")
        if not isinstance(proof_hex, str) or not isinstance(inputs, list):
            raise ProverUnavailable("prover output must carry 'proof' and 'public_inputs'")
        try:
            proof = hex_to_bytes_allow_0x(proof_hex, name="proof")
            attested = PublicStatement.from_hex_words(inputs)
        except (TypeError, ValueError, StatementOutOfRange) as exc:
            raise ProverUnavailable(f"malformed prover output: {exc}") from exc
        if attested != statement:
            raise ProverUnavailable(
                f"prover attested {attested.as_tuple()} but {statement.as_tuple()} was requested"
            )
        return proof

"""
Reference proof scheme: "statement digest" certificates.

This is *not* a ZK system. It stands in for the external circuit during
development and tests:
  - the prover refuses statements that fail the solvency check the circuit
    enforces (health factor >= minimum),
  - a "proof" is a domain-separated SHA-256 digest of the encoded statement,
  - the verifier recomputes the digest and re-checks solvency.

A digest proof therefore verifies only against the exact statement it was
made for, which is all the engine's gate relies on.
"""

from __future__ import annotations

import hashlib
import hmac
from typing import Optional, Sequence, Tuple

from ..core.errors import StateError, StatementOutOfRange
from ..core.math import LIQUIDATION_PRECISION, LIQUIDATION_THRESHOLD, MIN_HEALTH_FACTOR, is_solvent
from ..core.statement import PublicStatement
from ..state.canonical import domain_sep_bytes
from .proof_verifier import ProofVerifier

DIGEST_LABEL = "statement_digest"
DIGEST_VERSION = 1


class InsolventStatement(StateError):
    code = "insolvent_statement"


def statement_digest(statement: PublicStatement) -> bytes:
    return hashlib.sha256(domain_sep_bytes(DIGEST_LABEL, version=DIGEST_VERSION) + statement.to_bytes()).digest()


class DigestProver:
    """In-process prover for the digest scheme."""

    def __init__(
        self,
        *,
        threshold: int = LIQUIDATION_THRESHOLD,
        liquidation_precision: int = LIQUIDATION_PRECISION,
        min_health_factor: int = MIN_HEALTH_FACTOR,
    ) -> None:
        self._threshold = threshold
        self._liquidation_precision = liquidation_precision
        self._min_health_factor = min_health_factor

    def solvent(self, statement: PublicStatement) -> bool:
        return is_solvent(
            statement.expected_debt,
            statement.expected_collateral_value_usd,
            self._threshold,
            self._liquidation_precision,
            self._min_health_factor,
        )

    def prove(self, statement: PublicStatement) -> bytes:
        if not self.solvent(statement):
            raise InsolventStatement(f"statement {statement.as_tuple()} breaks the health factor")
        return statement_digest(statement)


class DigestVerifier(ProofVerifier):
    def __init__(self, prover: Optional[DigestProver] = None) -> None:
        self._prover = prover or DigestProver()

    def check(self, proof: bytes, public_inputs: Sequence[bytes]) -> Tuple[bool, Optional[str]]:
        try:
            statement = PublicStatement.from_words(list(public_inputs))
        except (ValueError, TypeError, StatementOutOfRange) as exc:
            return False, f"malformed public inputs: {exc}"
        if not isinstance(proof, (bytes, bytearray)):
            return False, "proof must be bytes"
        if not hmac.compare_digest(bytes(proof), statement_digest(statement)):
            return False, "digest mismatch"
        if not self._prover.solvent(statement):
            return False, "statement is insolvent"
        return True, None

"""
Proof verification gate.

Derives the public statement a candidate transition would produce and asks
the external verifier whether the caller's proof attests to exactly that
statement. Pure decision function: it reads nothing but its arguments and
writes nothing at all.
"""

from __future__ import annotations

from typing import Protocol, Sequence

from .errors import NegativeResultingState
from .statement import PublicStatement


class Verifier(Protocol):
    def verify(self, proof: bytes, public_inputs: Sequence[bytes]) -> bool:
        """True iff ``proof`` was generated for exactly ``public_inputs``. Never raises."""
        ...


def expected_statement(
    current_debt: int,
    current_collateral_usd: int,
    debt_delta: int,
    collateral_usd_delta: int,
) -> PublicStatement:
    """
    Post-transition statement. Deltas are negative for burns and redemptions.

    Raises:
        NegativeResultingState: If either resulting value would be negative
        StatementOutOfRange: If either value does not fit the proof's field
    """
    expected_debt = current_debt + debt_delta
    expected_collateral_usd = current_collateral_usd + collateral_usd_delta
    if expected_debt < 0 or expected_collateral_usd < 0:
        raise NegativeResultingState(
            f"resulting state would be negative: debt={expected_debt}, collateral_usd={expected_collateral_usd}"
        )
    return PublicStatement(expected_debt, expected_collateral_usd)


class ProofGate:
    def __init__(self, verifier: Verifier) -> None:
        self._verifier = verifier

    @property
    def verifier(self) -> Verifier:
        return self._verifier

    def check(self, statement: PublicStatement, proof: bytes) -> bool:
        if not isinstance(proof, (bytes, bytearray)):
            return False
        return self._verifier.verify(bytes(proof), statement.words()) is True

    def attempt_transition(
        self,
        current_debt: int,
        current_collateral_usd: int,
        debt_delta: int,
        collateral_usd_delta: int,
        proof: bytes,
    ) -> bool:
        statement = expected_statement(current_debt, current_collateral_usd, debt_delta, collateral_usd_delta)
        return self.check(statement, proof)

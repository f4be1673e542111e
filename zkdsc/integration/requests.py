"""
Transition request envelopes.

A request names one of the four transitions, its amounts and the caller's
proof. Requests arrive as JSON-like objects (e.g. from an RPC layer) and are
parsed strictly: unknown keys, bools-as-ints and malformed hex are rejected.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum, unique
from typing import Any, Dict, Optional

from py_ecc.bls import G2Basic

from ..core.errors import MalformedRequest
from ..state.canonical import bytes_to_hex, canonical_json_bytes, domain_sep_bytes, hex_to_bytes_allow_0x

MAX_PROOF_BYTES = 256_000


@unique
class TransitionKind(Enum):
    DEPOSIT_AND_MINT = "deposit_and_mint"
    REDEEM_AND_BURN = "redeem_and_burn"
    REDEEM_ONLY = "redeem_only"
    BURN_ONLY = "burn_only"

    @property
    def moves_collateral(self) -> bool:
        return self is not TransitionKind.BURN_ONLY

    @property
    def moves_debt(self) -> bool:
        return self is not TransitionKind.REDEEM_ONLY


@dataclass(frozen=True)
class TransitionRequest:
    """
    One transition attempt.

    ``collateral_amount`` is deposited (DEPOSIT_AND_MINT) or redeemed;
    ``debt_amount`` is minted (DEPOSIT_AND_MINT) or burned. Fields a kind does
    not use must be left unset.
    """

    kind: TransitionKind
    owner: str
    proof: bytes
    collateral_kind: Optional[str] = None
    collateral_amount: Optional[int] = None
    debt_amount: Optional[int] = None
    nonce: Optional[int] = None

    def __post_init__(self) -> None:
        if not isinstance(self.kind, TransitionKind):
            raise MalformedRequest(f"unknown transition kind: {self.kind!r}")
        if not isinstance(self.owner, str) or not self.owner:
            raise MalformedRequest("owner must be a non-empty string")
        if not isinstance(self.proof, (bytes, bytearray)):
            raise MalformedRequest("proof must be bytes")
        if self.kind.moves_collateral:
            if not isinstance(self.collateral_kind, str) or not self.collateral_kind:
                raise MalformedRequest(f"{self.kind.value} needs collateral_kind")
            # Amounts <= 0 are ZeroAmount, raised by the engine, not a parse error.
            _check_int(self.collateral_amount, name="collateral_amount")
        elif self.collateral_kind is not None or self.collateral_amount is not None:
            raise MalformedRequest(f"{self.kind.value} takes no collateral")
        if self.kind.moves_debt:
            _check_int(self.debt_amount, name="debt_amount")
        elif self.debt_amount is not None:
            raise MalformedRequest(f"{self.kind.value} takes no debt amount")
        if self.nonce is not None:
            _check_int(self.nonce, name="nonce")
            if self.nonce < 0:
                raise MalformedRequest("nonce must be non-negative")


def _check_int(value: Any, *, name: str) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise MalformedRequest(f"{name} must be an int")


_ALLOWED_KEYS = frozenset(
    {"kind", "owner", "proof", "collateral_kind", "collateral_amount", "debt_amount", "nonce"}
)


def parse_request(obj: Any) -> TransitionRequest:
    """
    Parse a request object.

    Raises:
        MalformedRequest: If the structure or any field is invalid
    """
    if not isinstance(obj, Mapping):
        raise MalformedRequest(f"request must be an object, got {type(obj).__name__}")
    unknown = set(obj.keys()) - _ALLOWED_KEYS
    if unknown:
        raise MalformedRequest(f"unknown request keys: {sorted(unknown)}")

    try:
        kind = TransitionKind(obj.get("kind"))
    except ValueError:
        raise MalformedRequest(f"unknown transition kind: {obj.get('kind')!r}") from None

    proof_hex = obj.get("proof")
    if not isinstance(proof_hex, str):
        raise MalformedRequest("proof must be a hex string")
    if len(proof_hex) > 2 + 2 * MAX_PROOF_BYTES:
        raise MalformedRequest("proof too large")
    try:
        proof = hex_to_bytes_allow_0x(proof_hex, name="proof")
    except (TypeError, ValueError) as exc:
        raise MalformedRequest(str(exc)) from exc

    return TransitionRequest(
        kind=kind,
        owner=obj.get("owner"),
        proof=proof,
        collateral_kind=obj.get("collateral_kind"),
        collateral_amount=obj.get("collateral_amount"),
        debt_amount=obj.get("debt_amount"),
        nonce=obj.get("nonce"),
    )


def request_to_dict(request: TransitionRequest, *, include_proof: bool = True) -> Dict[str, Any]:
    """Inverse of ``parse_request``; unset fields are omitted."""
    out: Dict[str, Any] = {"kind": request.kind.value, "owner": request.owner}
    if include_proof:
        out["proof"] = bytes_to_hex(request.proof)
    for name in ("collateral_kind", "collateral_amount", "debt_amount", "nonce"):
        value = getattr(request, name)
        if value is not None:
            out[name] = value
    return out


# -- owner signatures --------------------------------------------------------

PUBKEY_BYTES = 48
SIGNATURE_BYTES = 96
DEFAULT_CHAIN_ID = "zkdsc-local"


@dataclass(frozen=True)
class SignedRequest:
    request: TransitionRequest
    signature: str  # 0x-prefixed BLS12-381 G2 signature


def signing_message(request: TransitionRequest, *, chain_id: str = DEFAULT_CHAIN_ID) -> bytes:
    """
    Canonical bytes an owner signs.

    Binds the chain id (cross-deployment replay), the nonce and the proof.
    """
    payload = {
        "schema": "zkdsc_request",
        "schema_version": 1,
        "chain_id": chain_id,
        "request": request_to_dict(request),
    }
    return domain_sep_bytes("transition_request", version=1) + canonical_json_bytes(payload)


def verify_request_signature(signed: SignedRequest, *, chain_id: str = DEFAULT_CHAIN_ID) -> bool:
    """True iff ``signed.signature`` is the owner's BLS signature over the request."""
    try:
        pubkey = hex_to_bytes_allow_0x(signed.request.owner, name="owner", expected_nbytes=PUBKEY_BYTES)
        signature = hex_to_bytes_allow_0x(signed.signature, name="signature", expected_nbytes=SIGNATURE_BYTES)
    except (TypeError, ValueError):
        return False
    message = signing_message(signed.request, chain_id=chain_id)
    try:
        return bool(G2Basic.Verify(pubkey, message, signature))
    except (ValueError, TypeError, AssertionError):
        # py_ecc raises on points that do not decode
        return False

"""
Request creation and signing for account owners.

Owners are identified by their BLS12-381 public key; the engine checks the
signature before it runs the transition.
"""

from __future__ import annotations

from typing import Optional

from py_ecc.bls import G2Basic

from ..integration.requests import (
    DEFAULT_CHAIN_ID,
    SignedRequest,
    TransitionKind,
    TransitionRequest,
    signing_message,
)
from ..state.canonical import bytes_to_hex

# Order of the BLS12-381 scalar field; valid private keys are 1..CURVE_ORDER-1.
BLS_CURVE_ORDER = 0x73EDA753299D7D483339D80809A1D80553BDA402FFFE5BFEFFFFFFFF00000001


def _require_private_key(private_key: int) -> int:
    if not isinstance(private_key, int) or isinstance(private_key, bool):
        raise TypeError("private_key must be an int")
    if not 0 < private_key < BLS_CURVE_ORDER:
        raise ValueError("private_key out of range")
    return private_key


def owner_from_private_key(private_key: int) -> str:
    """Return the owner id (0x-prefixed compressed G1 public key)."""
    return bytes_to_hex(G2Basic.SkToPk(_require_private_key(private_key)))


def create_request(
    kind: TransitionKind,
    private_key: int,
    proof: bytes,
    *,
    collateral_kind: Optional[str] = None,
    collateral_amount: Optional[int] = None,
    debt_amount: Optional[int] = None,
    nonce: Optional[int] = None,
) -> TransitionRequest:
    return TransitionRequest(
        kind=kind,
        owner=owner_from_private_key(private_key),
        proof=proof,
        collateral_kind=collateral_kind,
        collateral_amount=collateral_amount,
        debt_amount=debt_amount,
        nonce=nonce,
    )


def sign_request(
    request: TransitionRequest,
    private_key: int,
    *,
    chain_id: str = DEFAULT_CHAIN_ID,
) -> SignedRequest:
    """
    Sign a request with the owner's BLS12-381 key.

    Raises:
        ValueError: If ``private_key`` does not belong to ``request.owner``
    """
    if owner_from_private_key(private_key) != request.owner.lower():
        raise ValueError("private key does not match request owner")
    signature = G2Basic.Sign(private_key, signing_message(request, chain_id=chain_id))
    return SignedRequest(request=request, signature=bytes_to_hex(signature))


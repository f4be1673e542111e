"""
Nonce table for signed-request replay protection.

Per owner we track the last accepted nonce; the next signed request must
carry exactly ``last + 1``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Mapping

from .canonical import canonical_hex_fixed_allow_0x
from .ledger import Owner

MAX_NONCE = 2**64 - 1


@dataclass
class NonceTable:
    """Mutable mapping: owner -> last_used_nonce."""

    _last: Dict[Owner, int] = field(default_factory=dict)

    def get_last(self, owner: Owner) -> int:
        return self._last.get(canonical_hex_fixed_allow_0x(owner, nbytes=48, name="owner"), 0)

    def expected_next(self, owner: Owner) -> int:
        return self.get_last(owner) + 1

    def set_last(self, owner: Owner, last_nonce: int) -> None:
        if not isinstance(last_nonce, int) or isinstance(last_nonce, bool) or last_nonce < 0:
            raise TypeError("last_nonce must be a non-negative int")
        if last_nonce > MAX_NONCE:
            raise TypeError("last_nonce must fit in u64")
        self._last[canonical_hex_fixed_allow_0x(owner, nbytes=48, name="owner")] = last_nonce

    def get_all(self) -> Mapping[Owner, int]:
        # Return a shallow copy to avoid accidental mutation during iteration.
        return dict(self._last)

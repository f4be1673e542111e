"""Public statement codec.

The statement is exactly two integers in the fixed order
``(expected_debt, expected_collateral_value_usd)``, each a 32-byte big-endian
unsigned word. The proving service encodes its public inputs the same way;
any change here invalidates every proof in circulation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

from py_ecc.bn128 import curve_order

from ..state.canonical import hex_to_bytes_fixed
from .errors import StatementOutOfRange

WORD_BYTES = 32
STATEMENT_WORDS = 2

# Public inputs are BN254 scalar field elements.
FIELD_MODULUS: int = curve_order


def encode_word(value: int) -> bytes:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError("statement values must be ints")
    if value < 0 or value >= FIELD_MODULUS:
        raise StatementOutOfRange(f"statement value outside the scalar field: {value}")
    return value.to_bytes(WORD_BYTES, "big")


def decode_word(word: bytes) -> int:
    if not isinstance(word, (bytes, bytearray)) or len(word) != WORD_BYTES:
        raise ValueError(f"statement word must be {WORD_BYTES} bytes")
    value = int.from_bytes(bytes(word), "big")
    if value >= FIELD_MODULUS:
        raise StatementOutOfRange(f"statement value outside the scalar field: {value}")
    return value


@dataclass(frozen=True)
class PublicStatement:
    """Post-transition values the proof must attest to."""

    expected_debt: int
    expected_collateral_value_usd: int

    def __post_init__(self) -> None:
        # Encoding validates range and type.
        encode_word(self.expected_debt)
        encode_word(self.expected_collateral_value_usd)

    def as_tuple(self) -> Tuple[int, int]:
        return (self.expected_debt, self.expected_collateral_value_usd)

    def words(self) -> Tuple[bytes, bytes]:
        return (encode_word(self.expected_debt), encode_word(self.expected_collateral_value_usd))

    def to_bytes(self) -> bytes:
        return b"".join(self.words())

    def hex_words(self) -> Tuple[str, str]:
        debt_word, collateral_word = self.words()
        return ("0x" + debt_word.hex(), "0x" + collateral_word.hex())

    @classmethod
    def from_words(cls, words: Sequence[bytes]) -> "PublicStatement":
        if len(words) != STATEMENT_WORDS:
            raise ValueError(f"statement must have exactly {STATEMENT_WORDS} words, got {len(words)}")
        return cls(decode_word(words[0]), decode_word(words[1]))

    @classmethod
    def from_bytes(cls, data: bytes) -> "PublicStatement":
        if len(data) != WORD_BYTES * STATEMENT_WORDS:
            raise ValueError(f"statement encoding must be {WORD_BYTES * STATEMENT_WORDS} bytes")
        return cls.from_words([data[:WORD_BYTES], data[WORD_BYTES:]])

    @classmethod
    def from_hex_words(cls, words: Sequence[str]) -> "PublicStatement":
        return cls.from_words(
            [hex_to_bytes_fixed(w, nbytes=WORD_BYTES, name=f"public_inputs[{i}]") for i, w in enumerate(words)]
        )

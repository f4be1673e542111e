"""Tests for zkdsc/core/statement.py: the bit-exact public input encoding."""

from __future__ import annotations

import pytest

from zkdsc.core.errors import StatementOutOfRange
from zkdsc.core.statement import FIELD_MODULUS, PublicStatement


def test_words_are_debt_then_collateral_big_endian() -> None:
    s = PublicStatement(1000, 20000)
    debt_word, collateral_word = s.words()
    assert debt_word == (1000).to_bytes(32, "big")
    assert collateral_word == (20000).to_bytes(32, "big")
    assert s.to_bytes() == debt_word + collateral_word
    assert len(s.to_bytes()) == 64


def test_known_vector() -> None:
    s = PublicStatement(1, 256)
    assert s.to_bytes().hex() == "00" * 31 + "01" + "00" * 30 + "0100"
    assert s.hex_words() == ("0x" + "00" * 31 + "01", "0x" + "00" * 30 + "0100")


def test_decoders_agree() -> None:
    s = PublicStatement(7, 9)
    assert PublicStatement.from_bytes(s.to_bytes()) == s
    assert PublicStatement.from_words(list(s.words())) == s
    assert PublicStatement.from_hex_words(list(s.hex_words())) == s


def test_order_matters() -> None:
    assert PublicStatement(1, 2).to_bytes() != PublicStatement(2, 1).to_bytes()


@pytest.mark.parametrize("debt,collateral", [(-1, 0), (0, -1), (FIELD_MODULUS, 0), (0, 2**256)])
def test_out_of_range_values_rejected(debt, collateral) -> None:
    with pytest.raises(StatementOutOfRange):
        PublicStatement(debt, collateral)


def test_largest_field_element_accepted() -> None:
    s = PublicStatement(FIELD_MODULUS - 1, 0)
    assert PublicStatement.from_bytes(s.to_bytes()) == s


def test_wrong_word_count_rejected() -> None:
    with pytest.raises(ValueError):
        PublicStatement.from_words([b"\x00" * 32])
    with pytest.raises(ValueError):
        PublicStatement.from_bytes(b"\x00" * 63)


def test_non_canonical_hex_rejected() -> None:
    with pytest.raises(ValueError):
        PublicStatement.from_hex_words(["0x01", "0x02"])


def test_bool_rejected() -> None:
    with pytest.raises(TypeError):
        PublicStatement(True, 1)

# [TESTER] v1

from __future__ import annotations

import pytest

import zkdsc.state.canonical as canonical
from zkdsc.state.canonical import (
    bytes_to_hex,
    canonical_hex_fixed_allow_0x,
    canonical_json_bytes,
    domain_sep_bytes,
    hex_to_bytes_allow_0x,
    hex_to_bytes_fixed,
)


def test_canonical_json_is_key_order_independent() -> None:
    a = canonical_json_bytes({"b": 1, "a": [1, {"y": 2, "x": 3}]})
    b = canonical_json_bytes({"a": [1, {"x": 3, "y": 2}], "b": 1})
    assert a == b == b'{"a":[1,{"x":3,"y":2}],"b":1}'


@pytest.mark.parametrize("value", [1.5, {"a": 0.0}, {1: "x"}, "\ud800"])
def test_canonical_json_rejects_ambiguous_values(value) -> None:
    with pytest.raises(TypeError):
        canonical_json_bytes(value)


def test_domain_sep_bytes() -> None:
    assert domain_sep_bytes("statement_digest") == b"zkdsc:statement_digest:v1\x00"
    assert domain_sep_bytes("x", version=2) == b"zkdsc:x:v2\x00"
    with pytest.raises(ValueError):
        domain_sep_bytes("a\x00b")
    with pytest.raises(ValueError):
        domain_sep_bytes("x", version=0)


def test_hex_helpers() -> None:
    assert hex_to_bytes_fixed("0x" + "ab" * 4, nbytes=4, name="w") == b"\xab" * 4
    with pytest.raises(ValueError):
        hex_to_bytes_fixed("ab" * 4, nbytes=4, name="w")
    assert hex_to_bytes_allow_0x("0x0102", name="p") == b"\x01\x02"
    assert hex_to_bytes_allow_0x("0102", name="p", expected_nbytes=2) == b"\x01\x02"
    with pytest.raises(ValueError):
        hex_to_bytes_allow_0x("0x", name="p")
    assert canonical_hex_fixed_allow_0x("0XAB", nbytes=1, name="k") == "0xab"
    assert bytes_to_hex(b"\x00\xff") == "0x00ff"


def test_module_exports_only_encoding_helpers() -> None:
    public = {name for name in vars(canonical) if not name.startswith("_") and callable(getattr(canonical, name))}
    public -= {"Any", "Optional"}
    assert public == {
        "bytes_to_hex",
        "canonical_hex_fixed_allow_0x",
        "canonical_json_bytes",
        "domain_sep_bytes",
        "hex_to_bytes_allow_0x",
        "hex_to_bytes_fixed",
    }

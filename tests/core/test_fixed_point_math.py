"""Tests for zkdsc/core/math.py."""

from __future__ import annotations

import pytest

from zkdsc.core.math import (
    MAX_UINT256,
    PRECISION,
    amount_from_usd,
    health_factor,
    is_solvent,
    normalize_price,
    usd_value,
)


class TestNormalizePrice:
    def test_eight_decimal_feed_scaled_to_eighteen(self):
        assert normalize_price(2000 * 10**8, 8) == 2000 * PRECISION

    def test_eighteen_decimal_feed_unchanged(self):
        assert normalize_price(123, 18) == 123

    def test_more_than_eighteen_decimals_truncates(self):
        assert normalize_price(2000 * 10**20 + 99, 20) == 2000 * PRECISION

    @pytest.mark.parametrize("price", [0, -1])
    def test_non_positive_price_rejected(self, price):
        with pytest.raises(ValueError):
            normalize_price(price, 8)

    def test_bool_price_rejected(self):
        with pytest.raises(ValueError):
            normalize_price(True, 8)

    def test_decimals_out_of_range(self):
        with pytest.raises(ValueError):
            normalize_price(1, 37)


def test_usd_value_truncates() -> None:
    # 3 units at $0.333... each
    price = PRECISION // 3
    assert usd_value(3, price) == 0
    assert usd_value(10 * PRECISION, price) == 10 * price


def test_usd_value_rejects_negative_amount() -> None:
    with pytest.raises(ValueError):
        usd_value(-1, PRECISION)


def test_amount_from_usd_inverse() -> None:
    price = normalize_price(2000 * 10**8, 8)
    assert amount_from_usd(20_000, price) == 10
    assert amount_from_usd(19_999, price) == 9


def test_health_factor_matches_threshold_rule() -> None:
    # $20000 collateral at 50% threshold backs 10000 debt at exactly 1.0
    assert health_factor(10_000, 20_000) == PRECISION
    assert health_factor(1_000, 20_000) == 10 * PRECISION
    assert health_factor(10_001, 20_000) < PRECISION


def test_health_factor_zero_debt_is_max() -> None:
    assert health_factor(0, 0) == MAX_UINT256
    assert is_solvent(0, 0)


def test_is_solvent_boundary() -> None:
    assert is_solvent(10_000, 20_000)
    assert not is_solvent(10_001, 20_000)

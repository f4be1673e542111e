"""Tests for zkdsc/core/oracle.py."""

from __future__ import annotations

import pytest

from zkdsc.core.errors import SourceUnavailable, StalePrice, UnknownCollateralKind
from zkdsc.core.oracle import DEFAULT_MAX_PRICE_AGE_SECONDS, OracleAdapter, PricePoint, is_fresh
from zkdsc.integration.price_feeds import ManualPriceFeed
from zkdsc.state.registry import CollateralRegistry

NOW = 1_700_000_000


class _Clock:
    def __init__(self, now: int = NOW) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


class _BrokenFeed:
    def latest(self) -> PricePoint:
        raise RuntimeError("rpc timeout")


def _adapter(price_e8: int = 2000 * 10**8, *, decimals: int = 8):
    clock = _Clock()
    feed = ManualPriceFeed(price_e8, decimals=decimals, clock=clock)
    registry = CollateralRegistry([("WETH", feed)])
    return OracleAdapter(registry, clock=clock), feed, clock


def test_is_fresh_window() -> None:
    assert is_fresh(100, 100, 10)
    assert is_fresh(90, 100, 10)
    assert not is_fresh(89, 100, 10)
    assert not is_fresh(101, 100, 10)


def test_value_in_usd_scenario_price() -> None:
    adapter, _, _ = _adapter()
    assert adapter.value_in_usd("WETH", 10) == 20_000
    assert adapter.value_in_usd("WETH", 10 * 10**18) == 20_000 * 10**18


def test_eighteen_decimal_feed() -> None:
    adapter, _, _ = _adapter(2000 * 10**18, decimals=18)
    assert adapter.value_in_usd("WETH", 3) == 6_000


def test_unknown_kind() -> None:
    adapter, _, _ = _adapter()
    with pytest.raises(UnknownCollateralKind):
        adapter.value_in_usd("DOGE", 1)


def test_stale_price() -> None:
    adapter, _, clock = _adapter()
    clock.now += DEFAULT_MAX_PRICE_AGE_SECONDS
    assert adapter.value_in_usd("WETH", 1) == 2_000
    clock.now += 1
    with pytest.raises(StalePrice):
        adapter.value_in_usd("WETH", 1)
    with pytest.raises(StalePrice):
        adapter.amount_from_usd("WETH", 2_000)


def test_future_observation_is_stale() -> None:
    adapter, feed, _ = _adapter()
    feed.update_round_data(2000 * 10**8, NOW + 60)
    with pytest.raises(StalePrice):
        adapter.latest_price("WETH")


@pytest.mark.parametrize("answer", [0, -5])
def test_non_positive_price_is_stale(answer) -> None:
    adapter, feed, _ = _adapter()
    feed.update_answer(answer)
    with pytest.raises(StalePrice):
        adapter.value_in_usd("WETH", 1)


def test_fresh_update_recovers() -> None:
    adapter, feed, clock = _adapter()
    clock.now += DEFAULT_MAX_PRICE_AGE_SECONDS + 1
    feed.update_answer(1500 * 10**8)
    assert adapter.value_in_usd("WETH", 2) == 3_000


def test_source_unavailable_passes_through() -> None:
    adapter, feed, _ = _adapter()
    feed.set_available(False)
    with pytest.raises(SourceUnavailable):
        adapter.value_in_usd("WETH", 1)


def test_feed_errors_become_source_unavailable() -> None:
    registry = CollateralRegistry([("WETH", _BrokenFeed())])
    adapter = OracleAdapter(registry, clock=_Clock())
    with pytest.raises(SourceUnavailable):
        adapter.latest_price("WETH")


def test_feed_without_answer() -> None:
    registry = CollateralRegistry([("WETH", ManualPriceFeed(clock=_Clock()))])
    with pytest.raises(SourceUnavailable):
        OracleAdapter(registry, clock=_Clock()).latest_price("WETH")


def test_amount_from_usd() -> None:
    adapter, _, _ = _adapter()
    assert adapter.amount_from_usd("WETH", 20_000) == 10
    assert adapter.amount_from_usd("WETH", 1_999) == 0


def test_max_age_must_be_positive() -> None:
    registry = CollateralRegistry([("WETH", ManualPriceFeed(1, clock=_Clock()))])
    with pytest.raises(ValueError):
        OracleAdapter(registry, max_price_age_seconds=0)



def test_unsupported_decimals_are_source_unavailable() -> None:
    adapter, _, _ = _adapter(2000 * 10**40, decimals=40)
    with pytest.raises(SourceUnavailable):
        adapter.latest_price("WETH")
    with pytest.raises(SourceUnavailable):
        adapter.value_in_usd("WETH", 1)


def test_price_rounding_to_zero_is_stale() -> None:
    # 50e-20 dollars is below the 18-digit resolution
    adapter, _, _ = _adapter(50, decimals=20)
    with pytest.raises(StalePrice):
        adapter.value_in_usd("WETH", 10**30)
    with pytest.raises(StalePrice):
        adapter.amount_from_usd("WETH", 1)


def test_high_precision_feed_within_range() -> None:
    adapter, _, _ = _adapter(2000 * 10**36, decimals=36)
    assert adapter.normalized_price("WETH") == 2000 * 10**18
    assert adapter.value_in_usd("WETH", 3) == 6_000

"""Tests for zkdsc/state/registry.py."""

from __future__ import annotations

import pytest

from zkdsc.core.errors import DuplicateKind, RegistryFrozen, UnknownCollateralKind
from zkdsc.integration.price_feeds import ManualPriceFeed
from zkdsc.state.registry import CollateralRegistry


def _feed() -> ManualPriceFeed:
    return ManualPriceFeed(1, clock=lambda: 0)


def test_registration_order_is_preserved() -> None:
    registry = CollateralRegistry([("WETH", _feed()), ("WBTC", _feed()), ("LINK", _feed())])
    assert registry.list_kinds() == ("WETH", "WBTC", "LINK")
    assert len(registry) == 3
    assert registry.frozen


def test_duplicate_kind_rejected() -> None:
    with pytest.raises(DuplicateKind) as exc_info:
        CollateralRegistry([("WETH", _feed()), ("WETH", _feed())])
    assert exc_info.value.kind == "WETH"


def test_frozen_registry_refuses_registration() -> None:
    registry = CollateralRegistry([("WETH", _feed())])
    with pytest.raises(RegistryFrozen):
        registry.register("WBTC", _feed())
    assert registry.list_kinds() == ("WETH",)


def test_unfrozen_registry_can_be_extended_then_frozen() -> None:
    registry = CollateralRegistry(freeze=False)
    registry.register("WETH", _feed())
    registry.register("WBTC", _feed())
    registry.freeze()
    assert registry.list_kinds() == ("WETH", "WBTC")
    with pytest.raises(RegistryFrozen):
        registry.register("LINK", _feed())


def test_lookup() -> None:
    feed = _feed()
    registry = CollateralRegistry([("WETH", feed)])
    assert registry.is_allowed("WETH")
    assert not registry.is_allowed("WBTC")
    assert registry.feed_for("WETH") is feed
    assert registry.require("WETH") == "WETH"
    with pytest.raises(UnknownCollateralKind):
        registry.feed_for("WBTC")
    with pytest.raises(UnknownCollateralKind):
        registry.require("WBTC")


@pytest.mark.parametrize("kind", ["", None, 7])
def test_invalid_kind(kind) -> None:
    registry = CollateralRegistry(freeze=False)
    with pytest.raises(TypeError):
        registry.register(kind, _feed())


def test_missing_feed() -> None:
    with pytest.raises(TypeError):
        CollateralRegistry([("WETH", None)])

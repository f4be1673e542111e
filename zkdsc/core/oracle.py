"""
Price oracle adapter.

The freshness decision and the USD conversion are pure functions; the adapter
is the small imperative shell that fetches a feed answer, stamps it against
the clock and applies them.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, Tuple

from ..state.registry import CollateralKind, CollateralRegistry
from .errors import SourceUnavailable, StalePrice
from .math import MAX_FEED_DECIMALS, amount_from_usd, normalize_price, usd_value

DEFAULT_MAX_PRICE_AGE_SECONDS = 3 * 60 * 60


@dataclass(frozen=True)
class PricePoint:
    """One feed answer. ``price`` is checked by the adapter, not here."""

    price: int
    decimals: int
    observed_at: int

    def __post_init__(self) -> None:
        for name in ("price", "decimals", "observed_at"):
            v = getattr(self, name)
            if not isinstance(v, int) or isinstance(v, bool):
                raise TypeError(f"{name} must be an int")
        if self.decimals < 0:
            raise ValueError(f"decimals must be non-negative: {self.decimals}")
        if self.observed_at < 0:
            raise ValueError(f"observed_at must be non-negative: {self.observed_at}")


class PriceFeed(Protocol):
    def latest(self) -> PricePoint:
        """Return the most recent answer or raise ``SourceUnavailable``."""
        ...


def is_fresh(observed_at: int, now: int, max_age_seconds: int) -> bool:
    """Return True if the observation is within the max staleness window."""
    if now < 0:
        raise ValueError(f"now must be non-negative: {now}")
    if observed_at > now:
        return False
    return (now - observed_at) <= max_age_seconds


def _system_clock() -> int:
    return int(time.time())


class OracleAdapter:
    """Converts collateral amounts to USD using the registry's feeds."""

    def __init__(
        self,
        registry: CollateralRegistry,
        *,
        clock: Optional[Callable[[], int]] = None,
        max_price_age_seconds: int = DEFAULT_MAX_PRICE_AGE_SECONDS,
    ) -> None:
        if max_price_age_seconds <= 0:
            raise ValueError(f"max_price_age_seconds must be positive: {max_price_age_seconds}")
        self._registry = registry
        self._clock = clock or _system_clock
        self._max_age = int(max_price_age_seconds)

    @property
    def registry(self) -> CollateralRegistry:
        return self._registry

    @property
    def max_price_age_seconds(self) -> int:
        return self._max_age

    def latest_price(self, kind: CollateralKind) -> PricePoint:
        """Fetch and check the current answer for ``kind``.

        Raises:
            UnknownCollateralKind: ``kind`` is not registered
            SourceUnavailable: the feed could not answer, or answered with
                unsupported decimals
            StalePrice: the answer is too old, from the future, or not
                positive once normalized
        """
        return self._fetch(kind)[0]

    def normalized_price(self, kind: CollateralKind) -> int:
        return self._fetch(kind)[1]

    def _fetch(self, kind: CollateralKind) -> Tuple[PricePoint, int]:
        feed = self._registry.feed_for(kind)
        try:
            point = feed.latest()
        except SourceUnavailable:
            raise
        except (OSError, RuntimeError, ValueError, TypeError) as exc:
            raise SourceUnavailable(f"price feed for {kind!r} failed: {exc}") from exc
        if not isinstance(point, PricePoint):
            raise SourceUnavailable(f"price feed for {kind!r} returned {type(point).__name__}")
        if point.price <= 0:
            raise StalePrice(f"non-positive price for {kind!r}: {point.price}")
        if point.decimals > MAX_FEED_DECIMALS:
            raise SourceUnavailable(f"price feed for {kind!r} reports unsupported decimals: {point.decimals}")
        normalized = normalize_price(point.price, point.decimals)
        if normalized <= 0:
            raise StalePrice(f"price for {kind!r} rounds to zero at 18 decimals: {point.price}e-{point.decimals}")
        if not is_fresh(point.observed_at, self._clock(), self._max_age):
            raise StalePrice(f"price for {kind!r} observed at {point.observed_at} is stale")
        return point, normalized

    def value_in_usd(self, kind: CollateralKind, amount: int) -> int:
        return usd_value(amount, self.normalized_price(kind))

    def amount_from_usd(self, kind: CollateralKind, usd: int) -> int:
        """Estimation helper; never used on a transition's safety path."""
        return amount_from_usd(usd, self.normalized_price(kind))

"""
Collateral registry: the accepted collateral kinds and their price feeds.

Populated once while the engine is built, then frozen. Iteration order is the
registration order and never changes; total collateral value is folded in this
order.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Tuple

from ..core.errors import DuplicateKind, RegistryFrozen, UnknownCollateralKind

if TYPE_CHECKING:  # pragma: no cover
    from ..core.oracle import PriceFeed

CollateralKind = str


class CollateralRegistry:
    """Ordered, write-once mapping CollateralKind -> PriceFeed."""

    def __init__(self, bindings: Optional[Iterable[Tuple[CollateralKind, "PriceFeed"]]] = None, *, freeze: bool = True):
        self._feeds: Dict[CollateralKind, "PriceFeed"] = {}
        self._order: List[CollateralKind] = []
        self._frozen = False
        for kind, feed in bindings or ():
            self.register(kind, feed)
        if freeze:
            self.freeze()

    def register(self, kind: CollateralKind, feed: "PriceFeed") -> None:
        """
        Bind a collateral kind to its price feed.

        Raises:
            RegistryFrozen: If the registry has already been frozen
            DuplicateKind: If ``kind`` is already registered
        """
        if self._frozen:
            raise RegistryFrozen(f"cannot register {kind!r}: registry is frozen")
        if not isinstance(kind, str) or not kind:
            raise TypeError("collateral kind must be a non-empty str")
        if feed is None:
            raise TypeError(f"collateral kind {kind!r} needs a price feed")
        if kind in self._feeds:
            raise DuplicateKind(kind)
        self._feeds[kind] = feed
        self._order.append(kind)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def is_allowed(self, kind: CollateralKind) -> bool:
        return kind in self._feeds

    def require(self, kind: CollateralKind) -> CollateralKind:
        if not self.is_allowed(kind):
            raise UnknownCollateralKind(kind)
        return kind

    def list_kinds(self) -> Tuple[CollateralKind, ...]:
        return tuple(self._order)

    def feed_for(self, kind: CollateralKind) -> "PriceFeed":
        try:
            return self._feeds[kind]
        except KeyError:
            raise UnknownCollateralKind(kind) from None

    def __len__(self) -> int:
        return len(self._order)

    def __repr__(self) -> str:
        return f"CollateralRegistry({list(self._order)!r}, frozen={self._frozen})"

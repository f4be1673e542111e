"""
In-memory price feeds.

``ManualPriceFeed`` plays the role of a mock aggregator: an operator (or a
test) pushes answers and the adapter reads them back.
"""

from __future__ import annotations

import time
from typing import Callable, Optional

from ..core.errors import SourceUnavailable
from ..core.oracle import PricePoint

DEFAULT_FEED_DECIMALS = 8


class ManualPriceFeed:
    def __init__(
        self,
        initial_answer: Optional[int] = None,
        *,
        decimals: int = DEFAULT_FEED_DECIMALS,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        if decimals < 0:
            raise ValueError(f"decimals must be non-negative: {decimals}")
        self._decimals = decimals
        self._clock = clock or (lambda: int(time.time()))
        self._point: Optional[PricePoint] = None
        self._available = True
        self.round_id = 0
        if initial_answer is not None:
            self.update_answer(initial_answer)

    @property
    def decimals(self) -> int:
        return self._decimals

    def update_answer(self, answer: int) -> None:
        """Publish ``answer`` observed now."""
        self.update_round_data(answer, self._clock())

    def update_round_data(self, answer: int, observed_at: int) -> None:
        self.round_id += 1
        self._point = PricePoint(price=answer, decimals=self._decimals, observed_at=observed_at)

    def set_available(self, available: bool) -> None:
        self._available = bool(available)

    def latest(self) -> PricePoint:
        if not self._available:
            raise SourceUnavailable("price feed is offline")
        if self._point is None:
            raise SourceUnavailable("price feed has no answer yet")
        return self._point

    def __repr__(self) -> str:
        return f"ManualPriceFeed(round={self.round_id}, point={self._point!r})"

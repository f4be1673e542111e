"""Pure fixed-point arithmetic for collateral valuation.

Every function is stateless and operates on plain Python ints. Division
truncates toward zero; all operands here are non-negative, so ``//`` is used.
The external prover must round the same way or no legitimate proof verifies.
"""

from __future__ import annotations

# Domain constants
PRECISION: int = 10**18
LIQUIDATION_THRESHOLD: int = 50  # collateral must be 200% of debt
LIQUIDATION_PRECISION: int = 100
MIN_HEALTH_FACTOR: int = PRECISION
MAX_UINT256: int = 2**256 - 1

MAX_FEED_DECIMALS: int = 36


def _require_non_negative_int(value: int, *, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")
    if value < 0:
        raise ValueError(f"{name} must be non-negative: {value}")
    return value


# -- Price normalization -----------------------------------------------------

def normalize_price(price: int, decimals: int) -> int:
    """Rescale a feed answer with ``decimals`` fractional digits to 18 digits."""
    if not isinstance(price, int) or isinstance(price, bool) or price <= 0:
        raise ValueError(f"price must be a positive int: {price!r}")
    if not isinstance(decimals, int) or isinstance(decimals, bool):
        raise TypeError("decimals must be an int")
    if decimals < 0 or decimals > MAX_FEED_DECIMALS:
        raise ValueError(f"decimals out of range: {decimals}")
    if decimals <= 18:
        return price * 10 ** (18 - decimals)
    return price // 10 ** (decimals - 18)


def usd_value(amount: int, normalized_price: int) -> int:
    """USD value (18-digit fixed point per unit of ``amount``), truncated."""
    _require_non_negative_int(amount, name="amount")
    return amount * normalized_price // PRECISION


def amount_from_usd(usd: int, normalized_price: int) -> int:
    """Inverse of ``usd_value``; truncated, so never overshoots."""
    _require_non_negative_int(usd, name="usd")
    if normalized_price <= 0:
        raise ValueError("normalized_price must be positive")
    return usd * PRECISION // normalized_price


# -- Health factor -----------------------------------------------------------

def adjusted_collateral(
    collateral_usd: int,
    threshold: int = LIQUIDATION_THRESHOLD,
    liquidation_precision: int = LIQUIDATION_PRECISION,
) -> int:
    return collateral_usd * threshold // liquidation_precision


def health_factor(
    debt: int,
    collateral_usd: int,
    threshold: int = LIQUIDATION_THRESHOLD,
    liquidation_precision: int = LIQUIDATION_PRECISION,
) -> int:
    """Health factor scaled by ``PRECISION``; ``MAX_UINT256`` for zero debt."""
    _require_non_negative_int(debt, name="debt")
    _require_non_negative_int(collateral_usd, name="collateral_usd")
    if debt == 0:
        return MAX_UINT256
    return adjusted_collateral(collateral_usd, threshold, liquidation_precision) * PRECISION // debt


def is_solvent(
    debt: int,
    collateral_usd: int,
    threshold: int = LIQUIDATION_THRESHOLD,
    liquidation_precision: int = LIQUIDATION_PRECISION,
    min_health_factor: int = MIN_HEALTH_FACTOR,
) -> bool:
    return health_factor(debt, collateral_usd, threshold, liquidation_precision) >= min_health_factor

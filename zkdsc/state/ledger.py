"""
Per-account collateral and debt tracking.

Implements AccountLedger[Owner] -> (debt, deposits[CollateralKind]).

Accounts are created lazily: an owner with zero debt and no deposits is not
stored at all, so it is indistinguishable from one that never existed.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Mapping, Optional, Tuple

from ..core.errors import InsufficientCollateral, InsufficientDebt, ZeroAmount
from .registry import CollateralKind, CollateralRegistry

# Type aliases
Owner = str  # account identity (BLS12-381 public key hex for signed requests)
Amount = int  # non-negative integer (arbitrary precision)

UsdValuer = Callable[[CollateralKind, Amount], int]


def _require_positive(amount: Amount) -> Amount:
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise TypeError(f"amount must be an int, got {type(amount).__name__}")
    if amount <= 0:
        raise ZeroAmount(f"amount must be positive: {amount}")
    return amount


class AccountLedger:
    """
    Mutable account state.

    Mutations are staged: a transition works on ``staged()``, a private copy,
    and only ``commit()`` publishes it. Readers of the live ledger never see a
    half-applied transition.
    """

    def __init__(self, registry: CollateralRegistry, valuer: Optional[UsdValuer] = None):
        self._registry = registry
        self._valuer = valuer
        self._deposits: Dict[Tuple[Owner, CollateralKind], Amount] = {}
        self._debt: Dict[Owner, Amount] = {}

    # -- reads ---------------------------------------------------------------

    def debt_of(self, owner: Owner) -> Amount:
        return self._debt.get(owner, 0)

    def deposit_of(self, owner: Owner, kind: CollateralKind) -> Amount:
        return self._deposits.get((owner, kind), 0)

    def get(self, owner: Owner) -> Tuple[Amount, Dict[CollateralKind, Amount]]:
        """Return ``(debt, deposits)``; deposits list every kind in registry order."""
        deposits = {kind: self.deposit_of(owner, kind) for kind in self._registry.list_kinds()}
        return self.debt_of(owner), deposits

    def total_collateral_usd(self, owner: Owner) -> int:
        """Fold the USD value of every non-zero deposit in registry order."""
        if self._valuer is None:
            raise RuntimeError("ledger has no USD valuer bound")
        total = 0
        for kind in self._registry.list_kinds():
            amount = self.deposit_of(owner, kind)
            if amount:
                total += self._valuer(kind, amount)
        return total

    def owners(self) -> List[Owner]:
        seen = {owner for owner, _ in self._deposits} | set(self._debt)
        return sorted(seen)

    # -- mutations -----------------------------------------------------------

    def credit_deposit(self, owner: Owner, kind: CollateralKind, amount: Amount) -> None:
        _require_positive(amount)
        self._registry.require(kind)
        self._deposits[(owner, kind)] = self.deposit_of(owner, kind) + amount

    def debit_deposit(self, owner: Owner, kind: CollateralKind, amount: Amount) -> None:
        """
        Raises:
            ZeroAmount: If amount is not positive
            InsufficientCollateral: If the deposit would go negative
        """
        _require_positive(amount)
        self._registry.require(kind)
        current = self.deposit_of(owner, kind)
        if amount > current:
            raise InsufficientCollateral(f"deposit of {kind!r} is {current}, cannot debit {amount}")
        remaining = current - amount
        if remaining == 0:
            # Remove zero balances to keep the table sparse
            self._deposits.pop((owner, kind), None)
        else:
            self._deposits[(owner, kind)] = remaining

    def increase_debt(self, owner: Owner, amount: Amount) -> None:
        _require_positive(amount)
        self._debt[owner] = self.debt_of(owner) + amount

    def decrease_debt(self, owner: Owner, amount: Amount) -> None:
        """
        Raises:
            ZeroAmount: If amount is not positive
            InsufficientDebt: If the debt would go negative
        """
        _require_positive(amount)
        current = self.debt_of(owner)
        if amount > current:
            raise InsufficientDebt(f"debt is {current}, cannot decrease by {amount}")
        if current == amount:
            self._debt.pop(owner, None)
        else:
            self._debt[owner] = current - amount

    # -- staging -------------------------------------------------------------

    def staged(self) -> "AccountLedger":
        """Independent copy to apply a transition against."""
        copy = AccountLedger(self._registry, self._valuer)
        copy._deposits = dict(self._deposits)
        copy._debt = dict(self._debt)
        return copy

    def commit(self, staged: "AccountLedger") -> None:
        """Publish a staged copy produced by ``staged()``."""
        if staged._registry is not self._registry:
            raise ValueError("staged ledger belongs to a different registry")
        if not staged.verify_non_negative():
            raise ValueError("refusing to commit a ledger with negative balances")
        self._deposits, self._debt = dict(staged._deposits), dict(staged._debt)

    # -- audit helpers -------------------------------------------------------

    def verify_non_negative(self) -> bool:
        return all(v >= 0 for v in self._deposits.values()) and all(v >= 0 for v in self._debt.values())

    def snapshot(self) -> Mapping[Owner, Mapping[str, object]]:
        """Deterministic view: owners sorted, deposits in registry order."""
        out: Dict[Owner, Mapping[str, object]] = {}
        for owner in self.owners():
            debt, deposits = self.get(owner)
            out[owner] = {"debt": debt, "deposits": {k: v for k, v in deposits.items() if v}}
        return out

    def __repr__(self) -> str:
        return f"AccountLedger({len(self.owners())} accounts)"

"""
Token custody capability.

The engine moves collateral between an owner's wallet and its own custody and
mints/burns the debt token. Every method reports success as a bool and must
leave no partial effect when it returns False.
"""

from __future__ import annotations

from typing import Callable, Dict, Optional, Protocol, Set, Tuple

from ..state.ledger import Amount, Owner
from ..state.registry import CollateralKind

DEBT_TOKEN = "DSC"

# (operation, owner, asset, amount) after a successful movement
TransferHook = Callable[[str, Owner, str, Amount], None]


class AssetTransfer(Protocol):
    def move_in(self, owner: Owner, kind: CollateralKind, amount: Amount) -> bool:
        ...

    def move_out(self, owner: Owner, kind: CollateralKind, amount: Amount) -> bool:
        ...

    def mint_debt_token(self, owner: Owner, amount: Amount) -> bool:
        ...

    def burn_debt_token(self, owner: Owner, amount: Amount) -> bool:
        """Pull ``amount`` debt tokens from ``owner`` and destroy them."""
        ...


class InMemoryAssetBank:
    """
    Reference custody: wallets, engine custody and the debt token in one place.

    ``fail_on`` names operations that should refuse (test hook); ``on_transfer``
    runs after each successful movement, the way a token callback would.
    """

    def __init__(self, *, on_transfer: Optional[TransferHook] = None) -> None:
        self._wallets: Dict[Tuple[Owner, str], Amount] = {}
        self._custody: Dict[CollateralKind, Amount] = {}
        self._debt_supply: Amount = 0
        self.on_transfer = on_transfer
        self.fail_on: Set[str] = set()

    # -- balances ------------------------------------------------------------

    def balance_of(self, owner: Owner, asset: str) -> Amount:
        return self._wallets.get((owner, asset), 0)

    def custody_of(self, kind: CollateralKind) -> Amount:
        return self._custody.get(kind, 0)

    @property
    def debt_token_supply(self) -> Amount:
        return self._debt_supply

    def fund(self, owner: Owner, kind: CollateralKind, amount: Amount) -> None:
        """Faucet: credit ``owner``'s wallet with collateral tokens."""
        if amount <= 0:
            raise ValueError(f"amount must be positive: {amount}")
        self._add(owner, kind, amount)

    def _add(self, owner: Owner, asset: str, delta: Amount) -> None:
        new_balance = self.balance_of(owner, asset) + delta
        if new_balance < 0:
            raise ValueError(f"wallet balance would go negative: {owner!r} {asset!r}")
        if new_balance == 0:
            self._wallets.pop((owner, asset), None)
        else:
            self._wallets[(owner, asset)] = new_balance

    def _move(self, owner: Owner, kind: CollateralKind, amount: Amount) -> None:
        """Custody -> wallet by ``amount`` (negative moves the other way)."""
        self._custody[kind] = self.custody_of(kind) - amount
        self._add(owner, kind, amount)

    def _supply(self, owner: Owner, delta: Amount) -> None:
        self._add(owner, DEBT_TOKEN, delta)
        self._debt_supply += delta

    def _notify(self, op: str, owner: Owner, asset: str, amount: Amount, revert: Callable[[], None]) -> None:
        if self.on_transfer is None:
            return
        try:
            self.on_transfer(op, owner, asset, amount)
        except Exception:
            revert()
            raise

    # -- AssetTransfer -------------------------------------------------------

    def move_in(self, owner: Owner, kind: CollateralKind, amount: Amount) -> bool:
        if "move_in" in self.fail_on or amount <= 0 or self.balance_of(owner, kind) < amount:
            return False
        self._move(owner, kind, -amount)
        self._notify("move_in", owner, kind, amount, lambda: self._move(owner, kind, amount))
        return True

    def move_out(self, owner: Owner, kind: CollateralKind, amount: Amount) -> bool:
        if "move_out" in self.fail_on or amount <= 0 or self.custody_of(kind) < amount:
            return False
        self._move(owner, kind, amount)
        self._notify("move_out", owner, kind, amount, lambda: self._move(owner, kind, -amount))
        return True

    def mint_debt_token(self, owner: Owner, amount: Amount) -> bool:
        if "mint_debt_token" in self.fail_on or amount <= 0:
            return False
        self._supply(owner, amount)
        self._notify("mint_debt_token", owner, DEBT_TOKEN, amount, lambda: self._supply(owner, -amount))
        return True

    def burn_debt_token(self, owner: Owner, amount: Amount) -> bool:
        if "burn_debt_token" in self.fail_on or amount <= 0 or self.balance_of(owner, DEBT_TOKEN) < amount:
            return False
        self._supply(owner, -amount)
        self._notify("burn_debt_token", owner, DEBT_TOKEN, amount, lambda: self._supply(owner, amount))
        return True

    def __repr__(self) -> str:
        return f"InMemoryAssetBank({len(self._wallets)} wallets, supply={self._debt_supply})"

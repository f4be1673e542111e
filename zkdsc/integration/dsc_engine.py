"""
Proof-gated ledger engine.

Imperative shell around the functional core:
- reads the owner's current debt and collateral value,
- derives the statement the requested transition would produce,
- asks the gate whether the caller's proof attests to exactly that statement,
- applies ledger mutations and token movements, or nothing at all.

The engine never evaluates solvency itself; that is the proof's job. It does
recompute, from live state, the two numbers the proof is about, so a proof of
fabricated numbers cannot pass.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum, unique
from typing import Callable, List, Mapping, Optional, Tuple

from ..core.errors import (
    AssetTransferFailed,
    EngineError,
    InsufficientCollateral,
    InsufficientDebt,
    InvalidSignature,
    ProofRejected,
    ReentrantCall,
    ReplayedRequest,
    ZeroAmount,
)
from ..core.gate import ProofGate, Verifier, expected_statement
from ..core.math import PRECISION, health_factor
from ..core.oracle import OracleAdapter, PriceFeed
from ..core.statement import PublicStatement
from ..state.canonical import canonical_hex_fixed_allow_0x
from ..state.ledger import AccountLedger, Amount, Owner
from ..state.nonces import NonceTable
from ..state.registry import CollateralKind, CollateralRegistry
from .assets import DEBT_TOKEN, AssetTransfer
from .config import EngineConfig
from .proof_verifier import make_proof_verifier
from .requests import PUBKEY_BYTES, SignedRequest, TransitionKind, TransitionRequest, verify_request_signature

logger = logging.getLogger(__name__)


@unique
class Event(Enum):
    COLLATERAL_DEPOSITED = "CollateralDeposited"
    COLLATERAL_REDEEMED = "CollateralRedeemed"
    DEBT_MINTED = "DebtMinted"
    DEBT_BURNED = "DebtBurned"


@dataclass(frozen=True)
class EngineEvent:
    event: Event
    owner: Owner
    asset: str
    amount: Amount


@dataclass(frozen=True)
class TransitionResult:
    ok: bool
    statement: Optional[PublicStatement] = None
    events: Tuple[EngineEvent, ...] = ()
    error: Optional[str] = None
    error_code: Optional[str] = None


@dataclass(frozen=True)
class _Plan:
    statement: PublicStatement
    collateral_usd_delta: int
    debt_delta: int


def _log_rejection(request: TransitionRequest, exc: EngineError) -> None:
    logger.warning("transition %s for %s rejected: %s", request.kind.value, request.owner, exc.code)


def _capture(fn: Callable[[], TransitionResult]) -> TransitionResult:
    try:
        return fn()
    except EngineError as exc:
        return TransitionResult(ok=False, error=str(exc), error_code=exc.code)


class _TransitionGuard:
    """
    Global mutual exclusion for one transition.

    Another thread waits its turn; the thread already inside (e.g. called back
    from a token movement) is refused with ``ReentrantCall``.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._holder: Optional[int] = None

    @property
    def held_by_current_thread(self) -> bool:
        return self._holder == threading.get_ident()

    def __enter__(self) -> "_TransitionGuard":
        if self.held_by_current_thread:
            raise ReentrantCall()
        self._lock.acquire()
        self._holder = threading.get_ident()
        return self

    def __exit__(self, *exc_info) -> None:
        self._holder = None
        self._lock.release()


class DscEngine:
    def __init__(
        self,
        registry: CollateralRegistry,
        oracle: OracleAdapter,
        verifier: Verifier,
        assets: AssetTransfer,
        config: Optional[EngineConfig] = None,
    ) -> None:
        if oracle.registry is not registry:
            raise ValueError("oracle must be bound to the same registry")
        if not registry.frozen:
            raise ValueError("registry must be frozen before the engine is built")
        self._config = config or EngineConfig(
            collateral_kinds=registry.list_kinds(),
            max_price_age_seconds=oracle.max_price_age_seconds,
        )
        if tuple(self._config.collateral_kinds) != registry.list_kinds():
            raise ValueError("config collateral_kinds must match registry order")
        self._registry = registry
        self._oracle = oracle
        self._gate = ProofGate(verifier)
        self._assets = assets
        self._ledger = AccountLedger(registry, oracle.value_in_usd)
        self._nonces = NonceTable()
        self._guard = _TransitionGuard()

    # ------------------------------------------------------------------
    # Transitions (raising)
    # ------------------------------------------------------------------

    def deposit_and_mint(
        self, owner: Owner, kind: CollateralKind, deposit_amount: Amount, mint_amount: Amount, proof: bytes
    ) -> TransitionResult:
        return self.execute_or_raise(
            TransitionRequest(
                kind=TransitionKind.DEPOSIT_AND_MINT,
                owner=owner,
                proof=proof,
                collateral_kind=kind,
                collateral_amount=deposit_amount,
                debt_amount=mint_amount,
            )
        )

    def redeem_and_burn(
        self, owner: Owner, kind: CollateralKind, redeem_amount: Amount, burn_amount: Amount, proof: bytes
    ) -> TransitionResult:
        return self.execute_or_raise(
            TransitionRequest(
                kind=TransitionKind.REDEEM_AND_BURN,
                owner=owner,
                proof=proof,
                collateral_kind=kind,
                collateral_amount=redeem_amount,
                debt_amount=burn_amount,
            )
        )

    def redeem_only(self, owner: Owner, kind: CollateralKind, redeem_amount: Amount, proof: bytes) -> TransitionResult:
        return self.execute_or_raise(
            TransitionRequest(
                kind=TransitionKind.REDEEM_ONLY,
                owner=owner,
                proof=proof,
                collateral_kind=kind,
                collateral_amount=redeem_amount,
            )
        )

    def burn_only(self, owner: Owner, burn_amount: Amount, proof: bytes) -> TransitionResult:
        return self.execute_or_raise(
            TransitionRequest(kind=TransitionKind.BURN_ONLY, owner=owner, proof=proof, debt_amount=burn_amount)
        )

    def execute_or_raise(self, request: TransitionRequest) -> TransitionResult:
        """
        Run one transition atomically.

        Raises:
            InvalidSignature: The engine requires signed requests
            EngineError: Any failure; nothing has been persisted
        """
        try:
            return self._execute(request)
        except EngineError as exc:
            _log_rejection(request, exc)
            raise

    def execute_signed_or_raise(self, signed: SignedRequest) -> TransitionResult:
        """
        Like ``execute_or_raise`` for an owner-signed request.

        Raises:
            InvalidSignature: Bad signature or owner key
            ReplayedRequest: Nonce is not the owner's next nonce
        """
        try:
            return self._execute_signed(signed)
        except EngineError as exc:
            _log_rejection(signed.request, exc)
            raise

    def _execute(self, request: TransitionRequest) -> TransitionResult:
        if self._config.require_owner_signatures:
            raise InvalidSignature("this engine only accepts signed requests")
        with self._guard:
            return self._run(request)

    def _execute_signed(self, signed: SignedRequest) -> TransitionResult:
        request = signed.request
        if request.nonce is None:
            raise InvalidSignature("signed requests must carry a nonce")
        try:
            canonical_owner = canonical_hex_fixed_allow_0x(request.owner, nbytes=PUBKEY_BYTES, name="owner")
        except (TypeError, ValueError) as exc:
            raise InvalidSignature(str(exc)) from exc
        if canonical_owner != request.owner:
            raise InvalidSignature("owner must be a lowercase 0x-prefixed public key")
        if not verify_request_signature(signed, chain_id=self._config.chain_id):
            raise InvalidSignature("owner signature does not verify")
        with self._guard:
            expected = self._nonces.expected_next(request.owner)
            if request.nonce != expected:
                raise ReplayedRequest(f"nonce {request.nonce} is not the next nonce ({expected})")
            result = self._run(request)
            self._nonces.set_last(request.owner, request.nonce)
            return result

    # ------------------------------------------------------------------
    # Transitions (result-returning)
    # ------------------------------------------------------------------

    def execute(self, request: TransitionRequest) -> TransitionResult:
        """Like ``execute_or_raise()`` but reports failure in the result."""
        return _capture(lambda: self.execute_or_raise(request))

    def execute_signed(self, signed: SignedRequest) -> TransitionResult:
        return _capture(lambda: self.execute_signed_or_raise(signed))

    # ------------------------------------------------------------------
    # Core algorithm (guard held)
    # ------------------------------------------------------------------

    def _validate_inputs(self, request: TransitionRequest) -> None:
        if request.kind.moves_collateral:
            self._registry.require(request.collateral_kind)
            if request.collateral_amount <= 0:
                raise ZeroAmount("collateral amount must be positive")
        if request.kind.moves_debt and request.debt_amount <= 0:
            raise ZeroAmount("debt amount must be positive")

    def _plan(self, request: TransitionRequest) -> _Plan:
        owner = request.owner
        current_debt = self._ledger.debt_of(owner)
        current_collateral_usd = self._ledger.total_collateral_usd(owner)

        collateral_usd_delta = 0
        debt_delta = 0
        kind = request.kind
        if kind.moves_collateral:
            value = self._oracle.value_in_usd(request.collateral_kind, request.collateral_amount)
            if kind is TransitionKind.DEPOSIT_AND_MINT:
                collateral_usd_delta = value
            else:
                deposited = self._ledger.deposit_of(owner, request.collateral_kind)
                if request.collateral_amount > deposited:
                    raise InsufficientCollateral(
                        f"cannot redeem {request.collateral_amount} of {request.collateral_kind!r}; deposited {deposited}"
                    )
                if value > current_collateral_usd:
                    raise InsufficientCollateral(
                        f"redeeming ${value} exceeds collateral value ${current_collateral_usd}"
                    )
                collateral_usd_delta = -value
        if kind.moves_debt:
            if kind is TransitionKind.DEPOSIT_AND_MINT:
                debt_delta = request.debt_amount
            else:
                if request.debt_amount > current_debt:
                    raise InsufficientDebt(f"cannot burn {request.debt_amount}; debt is {current_debt}")
                debt_delta = -request.debt_amount

        statement = expected_statement(current_debt, current_collateral_usd, debt_delta, collateral_usd_delta)
        return _Plan(statement=statement, collateral_usd_delta=collateral_usd_delta, debt_delta=debt_delta)

    def _run(self, request: TransitionRequest) -> TransitionResult:
        self._validate_inputs(request)
        plan = self._plan(request)
        if not self._gate.check(plan.statement, request.proof):
            raise ProofRejected()

        staged = self._ledger.staged()
        events: List[EngineEvent] = []
        undo: List[Tuple[str, Callable[[], bool]]] = []
        owner = request.owner
        try:
            # Collateral first, then debt.
            if request.kind.moves_collateral:
                self._apply_collateral(request, staged, events, undo)
            if request.kind.moves_debt:
                self._apply_debt(request, staged, events, undo)
        except Exception:
            self._compensate(undo)
            raise

        self._ledger.commit(staged)
        logger.info(
            "transition %s for %s applied: debt=%d collateral_usd=%d",
            request.kind.value,
            owner,
            *plan.statement.as_tuple(),
        )
        return TransitionResult(ok=True, statement=plan.statement, events=tuple(events))

    def _apply_collateral(
        self,
        request: TransitionRequest,
        staged: AccountLedger,
        events: List[EngineEvent],
        undo: List[Tuple[str, Callable[[], bool]]],
    ) -> None:
        owner, kind, amount = request.owner, request.collateral_kind, request.collateral_amount
        assets = self._assets
        if request.kind is TransitionKind.DEPOSIT_AND_MINT:
            staged.credit_deposit(owner, kind, amount)
            if not assets.move_in(owner, kind, amount):
                raise AssetTransferFailed(f"could not move {amount} {kind!r} in from {owner}")
            undo.append(("move_out", lambda: assets.move_out(owner, kind, amount)))
            events.append(EngineEvent(Event.COLLATERAL_DEPOSITED, owner, kind, amount))
        else:
            staged.debit_deposit(owner, kind, amount)
            if not assets.move_out(owner, kind, amount):
                raise AssetTransferFailed(f"could not move {amount} {kind!r} out to {owner}")
            undo.append(("move_in", lambda: assets.move_in(owner, kind, amount)))
            events.append(EngineEvent(Event.COLLATERAL_REDEEMED, owner, kind, amount))

    def _apply_debt(
        self,
        request: TransitionRequest,
        staged: AccountLedger,
        events: List[EngineEvent],
        undo: List[Tuple[str, Callable[[], bool]]],
    ) -> None:
        owner, amount = request.owner, request.debt_amount
        assets = self._assets
        if request.kind is TransitionKind.DEPOSIT_AND_MINT:
            staged.increase_debt(owner, amount)
            if not assets.mint_debt_token(owner, amount):
                raise AssetTransferFailed(f"could not mint {amount} debt tokens to {owner}")
            undo.append(("burn_debt_token", lambda: assets.burn_debt_token(owner, amount)))
            events.append(EngineEvent(Event.DEBT_MINTED, owner, DEBT_TOKEN, amount))
        else:
            staged.decrease_debt(owner, amount)
            if not assets.burn_debt_token(owner, amount):
                raise AssetTransferFailed(f"could not burn {amount} debt tokens from {owner}")
            undo.append(("mint_debt_token", lambda: assets.mint_debt_token(owner, amount)))
            events.append(EngineEvent(Event.DEBT_BURNED, owner, DEBT_TOKEN, amount))

    def _compensate(self, undo: List[Tuple[str, Callable[[], bool]]]) -> None:
        for name, fn in reversed(undo):
            try:
                ok = fn()
            except Exception:
                logger.exception("compensating %s raised; custody may need manual repair", name)
                continue
            if not ok:
                logger.error("compensating %s failed; custody may need manual repair", name)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def account_info(self, owner: Owner) -> Tuple[Amount, int]:
        """Return ``(debt, collateral_usd)``."""
        return self._ledger.debt_of(owner), self._ledger.total_collateral_usd(owner)

    def collateral_balance(self, owner: Owner, kind: CollateralKind) -> Amount:
        return self._ledger.deposit_of(owner, self._registry.require(kind))

    def total_collateral_value(self, owner: Owner) -> int:
        return self._ledger.total_collateral_usd(owner)

    def usd_value(self, kind: CollateralKind, amount: Amount) -> int:
        return self._oracle.value_in_usd(kind, amount)

    def token_amount_for_usd(self, kind: CollateralKind, usd: int) -> Amount:
        return self._oracle.amount_from_usd(kind, usd)

    def calculate_health_factor(self, debt: Amount, collateral_usd: int) -> int:
        return health_factor(
            debt, collateral_usd, self._config.liquidation_threshold, self._config.liquidation_precision
        )

    def health_factor(self, owner: Owner) -> int:
        return self.calculate_health_factor(*self.account_info(owner))

    def expected_statement(self, request: TransitionRequest) -> PublicStatement:
        """
        Statement a proof for ``request`` must attest to, given current state.

        Read-only estimate: state may change before the request is executed.
        """
        self._validate_inputs(request)
        return self._plan(request).statement

    def next_nonce(self, owner: Owner) -> int:
        return self._nonces.expected_next(owner)

    def ledger_snapshot(self) -> Mapping[Owner, Mapping[str, object]]:
        return self._ledger.snapshot()

    # ------------------------------------------------------------------
    # Configuration getters
    # ------------------------------------------------------------------

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def precision(self) -> int:
        return PRECISION

    @property
    def liquidation_threshold(self) -> int:
        return self._config.liquidation_threshold

    @property
    def liquidation_precision(self) -> int:
        return self._config.liquidation_precision

    @property
    def min_health_factor(self) -> int:
        return self._config.min_health_factor

    @property
    def max_price_age_seconds(self) -> int:
        return self._oracle.max_price_age_seconds

    @property
    def collateral_kinds(self) -> Tuple[CollateralKind, ...]:
        return self._registry.list_kinds()

    def price_feed_for(self, kind: CollateralKind) -> PriceFeed:
        return self._registry.feed_for(kind)


def build_engine(
    config: EngineConfig,
    feeds: Mapping[CollateralKind, PriceFeed],
    assets: AssetTransfer,
    *,
    verifier: Optional[Verifier] = None,
    clock: Optional[Callable[[], int]] = None,
) -> DscEngine:
    """
    Wire registry, oracle, verifier and engine from ``config``.

    Feeds are bound in ``config.collateral_kinds`` order. Without an explicit
    ``verifier`` the one described by ``config.proof_config`` is used.
    """
    missing = [k for k in config.collateral_kinds if k not in feeds]
    if missing:
        raise ValueError(f"no price feed for collateral kinds: {missing}")
    extra = sorted(set(feeds) - set(config.collateral_kinds))
    if extra:
        raise ValueError(f"price feeds for unconfigured collateral kinds: {extra}")

    registry = CollateralRegistry((kind, feeds[kind]) for kind in config.collateral_kinds)
    oracle = OracleAdapter(registry, clock=clock, max_price_age_seconds=config.max_price_age_seconds)
    if verifier is None:
        verifier = make_proof_verifier(config.proof_config)
    return DscEngine(registry, oracle, verifier, assets, config)

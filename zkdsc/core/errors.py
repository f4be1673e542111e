"""Exception types for the proof-gated ledger engine.

Every failure aborts the whole transition with no persisted change. The
category bases tell callers how to react:

- ``InputError``: fix the request and retry.
- ``StateError``: refresh the account view and retry.
- ``ExternalDependencyError``: surfaced verbatim; the caller decides on retry.
- ``SecurityError``: terminal for the proof; obtain a fresh one.
- ``ConcurrencyError``: caller bug or hostile callback.
"""

from __future__ import annotations


class EngineError(Exception):
    """Root of all engine failures. ``code`` is stable and safe to log."""

    code: str = "engine_error"


class InputError(EngineError):
    code = "input_error"


class StateError(EngineError):
    code = "state_error"


class ExternalDependencyError(EngineError):
    code = "external_dependency_error"


class SecurityError(EngineError):
    code = "security_error"


class ConcurrencyError(EngineError):
    code = "concurrency_error"


# -- input -------------------------------------------------------------------

class ZeroAmount(InputError):
    code = "zero_amount"


class UnknownCollateralKind(InputError):
    code = "unknown_collateral_kind"

    def __init__(self, kind: str) -> None:
        self.kind = kind
        super().__init__(f"collateral kind not registered: {kind!r}")


class DuplicateKind(InputError):
    code = "duplicate_kind"

    def __init__(self, kind: str) -> None:
        self.kind = kind
        super().__init__(f"collateral kind already registered: {kind!r}")


class RegistryFrozen(InputError):
    code = "registry_frozen"


class MalformedRequest(InputError):
    code = "malformed_request"


class InvalidSignature(InputError):
    code = "invalid_signature"


# -- state -------------------------------------------------------------------

class InsufficientDebt(StateError):
    code = "insufficient_debt"


class InsufficientCollateral(StateError):
    code = "insufficient_collateral"


class NegativeResultingState(StateError):
    code = "negative_resulting_state"


class StatementOutOfRange(StateError):
    code = "statement_out_of_range"


# -- external ----------------------------------------------------------------

class StalePrice(ExternalDependencyError):
    code = "stale_price"


class SourceUnavailable(ExternalDependencyError):
    code = "source_unavailable"


class AssetTransferFailed(ExternalDependencyError):
    code = "asset_transfer_failed"


class ProverUnavailable(ExternalDependencyError):
    code = "prover_unavailable"


# -- security / concurrency --------------------------------------------------

class ReplayedRequest(SecurityError):
    code = "replayed_request"


class ProofRejected(SecurityError):
    """Raised for any proof that does not verify against the derived statement.

    Deliberately carries no detail: an invalid proof and a valid proof for a
    different statement are indistinguishable to the caller.
    """

    code = "proof_rejected"

    def __init__(self) -> None:
        super().__init__("proof rejected")


class ReentrantCall(ConcurrencyError):
    code = "reentrant_call"

    def __init__(self) -> None:
        super().__init__("nested engine call while a transition is in progress")

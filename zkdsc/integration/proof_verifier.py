"""
Proof verification backends (imperative shell).

The gate only needs ``verify(proof, public_inputs) -> bool``. This module
provides the concrete verifiers without hard-coding a proving system:

- Deterministic, fail-closed verification: every error is a rejection.
- Pluggable backend: an external verifier executable speaking JSON on stdio.
- Verification only; no keys are handled here.

IMPORTANT:
- The subprocess backend uses wall-clock timeouts. Every replica that must
  agree on accept/reject has to run the same verifier build.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from ..core.statement import STATEMENT_WORDS, WORD_BYTES
from ..state.canonical import CANONICAL_ENCODING_VERSION, bytes_to_hex
from .subprocess_json import call_json

logger = logging.getLogger(__name__)

PROOF_SCHEMA = "zkdsc_proof"
PROOF_SCHEMA_VERSION = 1


@dataclass(frozen=True)
class ProofVerifierConfig:
    enabled: bool = False
    # External verifier command; receives JSON on stdin; returns JSON on stdout.
    verifier_cmd: Optional[Sequence[str]] = None
    # If False, verifier_cmd[0] must be an absolute path (fail-closed).
    allow_path_lookup: bool = False
    timeout_s: float = 10.0
    max_proof_bytes: int = 256_000  # hard cap for DoS resistance
    max_stdout_bytes: int = 32_000
    max_stderr_bytes: int = 8_000


class ProofVerifier:
    """Base class for verifiers; subclasses implement ``check``."""

    def check(self, proof: bytes, public_inputs: Sequence[bytes]) -> Tuple[bool, Optional[str]]:
        raise NotImplementedError

    def verify(self, proof: bytes, public_inputs: Sequence[bytes]) -> bool:
        ok, reason = self.check(proof, public_inputs)
        if not ok:
            logger.debug("proof verification failed: %s", reason)
        return ok


class DisabledProofVerifier(ProofVerifier):
    def check(self, proof: bytes, public_inputs: Sequence[bytes]) -> Tuple[bool, Optional[str]]:
        return False, "proof verification disabled"


class MisconfiguredProofVerifier(ProofVerifier):
    def __init__(self, reason: str) -> None:
        self._reason = str(reason)

    def check(self, proof: bytes, public_inputs: Sequence[bytes]) -> Tuple[bool, Optional[str]]:
        return False, self._reason


def _well_formed_inputs(proof: bytes, public_inputs: Sequence[bytes]) -> Optional[str]:
    if not isinstance(proof, (bytes, bytearray)) or not proof:
        return "proof must be non-empty bytes"
    if len(public_inputs) != STATEMENT_WORDS:
        return f"expected {STATEMENT_WORDS} public inputs"
    for word in public_inputs:
        if not isinstance(word, (bytes, bytearray)) or len(word) != WORD_BYTES:
            return f"public inputs must be {WORD_BYTES}-byte words"
    return None


class SubprocessProofVerifier(ProofVerifier):
    """
    Verify a proof by calling an external verifier process.

    Protocol:
    - stdin: canonical JSON object with keys:
        - schema: "zkdsc_proof", schema_version: 1
        - proof: 0x-prefixed hex
        - public_inputs: two 0x-prefixed 32-byte words (debt, collateral USD)
    - stdout: JSON object with keys:
        - ok: bool
        - error: optional str
    Any parse/timeout/subprocess error => fail-closed.
    """

    def __init__(
        self,
        *,
        cmd: Sequence[str],
        timeout_s: float,
        max_bytes: int,
        max_stdout_bytes: int,
        max_stderr_bytes: int,
    ) -> None:
        if not cmd:
            raise ValueError("cmd must be non-empty")
        if timeout_s <= 0:
            raise ValueError("timeout_s must be positive")
        if max_bytes <= 0 or max_stdout_bytes <= 0 or max_stderr_bytes <= 0:
            raise ValueError("byte limits must be positive")
        self._cmd = list(cmd)
        self._timeout_s = float(timeout_s)
        self._max_bytes = int(max_bytes)
        self._max_stdout = int(max_stdout_bytes)
        self._max_stderr = int(max_stderr_bytes)

    def check(self, proof: bytes, public_inputs: Sequence[bytes]) -> Tuple[bool, Optional[str]]:
        malformed = _well_formed_inputs(proof, public_inputs)
        if malformed is not None:
            return False, malformed
        if len(proof) > self._max_bytes:
            return False, "proof too large"

        payload = {
            "schema": PROOF_SCHEMA,
            "schema_version": PROOF_SCHEMA_VERSION,
            "canonical_encoding_version": CANONICAL_ENCODING_VERSION,
            "proof": bytes_to_hex(proof),
            "public_inputs": [bytes_to_hex(w) for w in public_inputs],
        }
        res = call_json(
            self._cmd,
            payload,
            timeout_s=self._timeout_s,
            # hex doubles the proof; leave room for the envelope
            max_input_bytes=2 * self._max_bytes + 1_024,
            max_stdout_bytes=self._max_stdout,
            max_stderr_bytes=self._max_stderr,
        )
        if not res.ok or res.output is None:
            logger.warning("proof verifier call failed: %s", res.error)
            return False, f"proof verifier error: {res.error}"

        ok = res.output.get("ok")
        if ok is True:
            return True, None
        if ok is False:
            err = res.output.get("error")
            if isinstance(err, str) and err:
                return False, err
            return False, "proof rejected"
        return False, "invalid verifier output (missing ok)"


def make_proof_verifier(config: ProofVerifierConfig) -> ProofVerifier:
    if not config.enabled:
        return DisabledProofVerifier()
    if not config.verifier_cmd:
        return MisconfiguredProofVerifier("proof verifier misconfigured (missing verifier_cmd)")
    if os.name != "posix":
        return MisconfiguredProofVerifier(f"proof verifier unsupported on platform: os.name={os.name!r}")
    cmd0 = config.verifier_cmd[0]
    if not isinstance(cmd0, str) or not cmd0:
        return MisconfiguredProofVerifier("proof verifier misconfigured (verifier_cmd[0] must be a non-empty string)")
    if not config.allow_path_lookup:
        if not os.path.isabs(cmd0):
            return MisconfiguredProofVerifier(
                "proof verifier misconfigured (verifier_cmd must be an absolute path when allow_path_lookup=False)"
            )
        if not (os.path.isfile(cmd0) and os.access(cmd0, os.X_OK)):
            return MisconfiguredProofVerifier(f"proof verifier misconfigured (verifier_cmd not executable): {cmd0}")
    return SubprocessProofVerifier(
        cmd=config.verifier_cmd,
        timeout_s=config.timeout_s,
        max_bytes=config.max_proof_bytes,
        max_stdout_bytes=config.max_stdout_bytes,
        max_stderr_bytes=config.max_stderr_bytes,
    )

#!/usr/bin/env python3
"""
Reference proof verifier: "statement digest" certificates (v1).

This is *not* a ZK system. It lets the subprocess verifier backend run end to
end without a proving toolchain installed.

Expected verifier input (stdin): canonical JSON with keys:
  - schema: "zkdsc_proof"
  - schema_version: 1
  - proof: 0x-prefixed hex
  - public_inputs: two 0x-prefixed 32-byte words (debt, collateral USD)

Output (stdout): {"ok": true} or {"ok": false, "error": "..."}
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Mapping

REPO_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(REPO_ROOT))

from zkdsc.integration.digest_proofs import DigestVerifier  # noqa: E402
from zkdsc.integration.proof_verifier import PROOF_SCHEMA, PROOF_SCHEMA_VERSION  # noqa: E402
from zkdsc.state.canonical import hex_to_bytes_allow_0x, hex_to_bytes_fixed  # noqa: E402


def _emit(obj: Mapping[str, Any]) -> None:
    sys.stdout.write(json.dumps(obj, separators=(",", ":")) + "\n")
    raise SystemExit(0)


def main() -> None:
    try:
        payload = json.loads(sys.stdin.buffer.read())
    except ValueError as exc:
        _emit({"ok": False, "error": f"invalid JSON: {exc}"})
    if not isinstance(payload, dict):
        _emit({"ok": False, "error": "payload must be an object"})
    if payload.get("schema") != PROOF_SCHEMA or payload.get("schema_version") != PROOF_SCHEMA_VERSION:
        _emit({"ok": False, "error": "unsupported schema"})

    inputs = payload.get("public_inputs")
    if not isinstance(inputs, list):
        _emit({"ok": False, "error": "public_inputs must be a list"})
    try:
        proof = hex_to_bytes_allow_0x(payload.get("proof"), name="proof")
        words = [hex_to_bytes_fixed(w, nbytes=32, name=f"public_inputs[{i}]") for i, w in enumerate(inputs)]
    except (TypeError, ValueError) as exc:
        _emit({"ok": False, "error": str(exc)})

    ok, reason = DigestVerifier().check(proof, words)
    _emit({"ok": True} if ok else {"ok": False, "error": reason})


if __name__ == "__main__":
    main()

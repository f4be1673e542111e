#!/usr/bin/env python3
"""
Reference prover for "statement digest" certificates (v1).

Input (stdin): {"expected_debt": int, "expected_collateral_value_usd": int}
Output (stdout): {"proof": "0x..", "public_inputs": ["0x..", "0x.."]}
                 or {"error": "..."} when the statement is insolvent.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(REPO_ROOT))

from zkdsc.core.errors import EngineError  # noqa: E402
from zkdsc.core.statement import PublicStatement  # noqa: E402
from zkdsc.integration.digest_proofs import DigestProver  # noqa: E402
from zkdsc.state.canonical import bytes_to_hex  # noqa: E402


def main() -> int:
    try:
        req = json.loads(sys.stdin.buffer.read())
        statement = PublicStatement(
            int(req["expected_debt"]),
            int(req["expected_collateral_value_usd"]),
        )
    except (ValueError, TypeError, KeyError, EngineError) as exc:
        sys.stderr.write(f"bad request: {exc}\n")
        return 2

    try:
        proof = DigestProver().prove(statement)
    except EngineError as exc:
        sys.stdout.write(json.dumps({"error": str(exc)}) + "\n")
        return 0

    out = {"proof": bytes_to_hex(proof), "public_inputs": list(statement.hex_words())}
    sys.stdout.write(json.dumps(out, separators=(",", ":")) + "\n")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

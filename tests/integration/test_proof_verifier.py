# [TESTER] v1

from __future__ import annotations

import json
import subprocess
import sys
import time
from pathlib import Path

from zkdsc.core.statement import PublicStatement
from zkdsc.integration.assets import InMemoryAssetBank
from zkdsc.integration.config import EngineConfig
from zkdsc.integration.digest_proofs import DigestProver, DigestVerifier, statement_digest
from zkdsc.integration.dsc_engine import build_engine
from zkdsc.integration.price_feeds import ManualPriceFeed
from zkdsc.integration.proof_verifier import (
    DisabledProofVerifier,
    MisconfiguredProofVerifier,
    ProofVerifierConfig,
    SubprocessProofVerifier,
    make_proof_verifier,
)
from zkdsc.integration.requests import TransitionKind, TransitionRequest

REPO_ROOT = Path(__file__).resolve().parents[2]
DIGEST_VERIFIER = REPO_ROOT / "tools" / "proof_verifiers" / "statement_digest_verifier.py"
DIGEST_PROVER = REPO_ROOT / "tools" / "proof_verifiers" / "statement_digest_prover.py"

STATEMENT = PublicStatement(1000, 20000)


def _subprocess_verifier(cmd, **overrides) -> SubprocessProofVerifier:
    kwargs = dict(cmd=cmd, timeout_s=10.0, max_bytes=1024, max_stdout_bytes=4096, max_stderr_bytes=1024)
    kwargs.update(overrides)
    return SubprocessProofVerifier(**kwargs)


def _python(code: str) -> list:
    return [sys.executable, "-c", code]


def test_disabled_verifier_rejects() -> None:
    verifier = make_proof_verifier(ProofVerifierConfig(enabled=False))
    assert isinstance(verifier, DisabledProofVerifier)
    assert verifier.verify(b"proof", STATEMENT.words()) is False


def test_make_proof_verifier_is_fail_closed() -> None:
    missing = make_proof_verifier(ProofVerifierConfig(enabled=True))
    assert isinstance(missing, MisconfiguredProofVerifier)

    relative = make_proof_verifier(ProofVerifierConfig(enabled=True, verifier_cmd=("python3", "-c", "pass")))
    assert isinstance(relative, MisconfiguredProofVerifier)
    ok, reason = relative.check(b"proof", STATEMENT.words())
    assert not ok
    assert "absolute path" in reason

    nonexec = make_proof_verifier(ProofVerifierConfig(enabled=True, verifier_cmd=("/nonexistent/verifier",)))
    assert isinstance(nonexec, MisconfiguredProofVerifier)

    ok_cmd = make_proof_verifier(ProofVerifierConfig(enabled=True, verifier_cmd=(sys.executable, "-c", "pass")))
    assert isinstance(ok_cmd, SubprocessProofVerifier)


def test_subprocess_verifier_accepts_ok_true() -> None:
    verifier = _subprocess_verifier(_python("import sys; sys.stdin.buffer.read(); print('{\"ok\":true}')"))
    assert verifier.verify(b"proof", STATEMENT.words()) is True


def test_subprocess_verifier_receives_statement_words() -> None:
    code = (
        "import json, sys\n"
        "req = json.loads(sys.stdin.buffer.read())\n"
        "ok = req['schema'] == 'zkdsc_proof' and req['proof'] == '0x70726f6f66' and "
        "req['public_inputs'] == ['0x' + (1000).to_bytes(32, 'big').hex(), '0x' + (20000).to_bytes(32, 'big').hex()]\n"
        "print(json.dumps({'ok': ok}))\n"
    )
    verifier = _subprocess_verifier(_python(code))
    assert verifier.verify(b"proof", STATEMENT.words()) is True
    assert verifier.verify(b"proof", PublicStatement(1000, 20001).words()) is False


def test_subprocess_verifier_fail_closed_paths() -> None:
    cases = [
        ("import sys; sys.stdin.buffer.read(); print('{\"ok\":false,\"error\":\"nope\"}')", "nope"),
        ("import sys; sys.stdin.buffer.read(); print('not json')", "invalid output"),
        ("import sys; sys.stdin.buffer.read(); print('[1]')", "not an object"),
        ("import sys; sys.stdin.buffer.read(); print('{}')", "missing ok"),
        ("import sys; sys.stdin.buffer.read(); sys.stderr.write('boom'); sys.exit(3)", "exit 3"),
    ]
    for code, expected in cases:
        ok, reason = _subprocess_verifier(_python(code)).check(b"proof", STATEMENT.words())
        assert not ok
        assert expected in reason


def test_subprocess_verifier_timeout() -> None:
    verifier = _subprocess_verifier(_python("import time; time.sleep(5)"), timeout_s=0.2)
    ok, reason = verifier.check(b"proof", STATEMENT.words())
    assert not ok
    assert "timed out" in reason


def test_subprocess_verifier_rejects_malformed_inputs_without_calling_out() -> None:
    verifier = _subprocess_verifier(["/nonexistent/verifier"])
    assert verifier.check(b"", STATEMENT.words())[1] == "proof must be non-empty bytes"
    assert verifier.check(b"p", STATEMENT.words()[:1])[1] == "expected 2 public inputs"
    assert verifier.check(b"p", [b"\x00", b"\x00"])[1] == "public inputs must be 32-byte words"
    assert verifier.check(b"p" * 2048, STATEMENT.words())[1] == "proof too large"


def test_digest_verifier_in_process() -> None:
    proof = DigestProver().prove(STATEMENT)
    verifier = DigestVerifier()
    assert verifier.verify(proof, STATEMENT.words()) is True
    assert verifier.verify(proof, PublicStatement(1000, 20001).words()) is False
    assert verifier.verify(statement_digest(PublicStatement(10001, 20000)), PublicStatement(10001, 20000).words()) is False
    assert verifier.check(proof, [b"\x00" * 32])[0] is False


def test_digest_verifier_script_end_to_end() -> None:
    cmd = (sys.executable, str(DIGEST_VERIFIER))
    verifier = make_proof_verifier(ProofVerifierConfig(enabled=True, verifier_cmd=cmd))
    proof = DigestProver().prove(STATEMENT)
    assert verifier.verify(proof, STATEMENT.words()) is True
    ok, reason = verifier.check(proof, PublicStatement(0, 0).words())
    assert not ok
    assert reason == "digest mismatch"


def test_digest_prover_script_outputs_attested_inputs() -> None:
    req = json.dumps({"expected_debt": 1000, "expected_collateral_value_usd": 20000}).encode("utf-8")
    out = subprocess.run(
        [sys.executable, str(DIGEST_PROVER)], input=req, capture_output=True, check=True, timeout=30
    )
    obj = json.loads(out.stdout)
    assert obj["public_inputs"] == list(STATEMENT.hex_words())
    assert bytes.fromhex(obj["proof"][2:]) == statement_digest(STATEMENT)

    insolvent = json.dumps({"expected_debt": 10001, "expected_collateral_value_usd": 20000}).encode("utf-8")
    out = subprocess.run(
        [sys.executable, str(DIGEST_PROVER)], input=insolvent, capture_output=True, check=True, timeout=30
    )
    assert "error" in json.loads(out.stdout)


def test_engine_with_subprocess_verifier() -> None:
    now = 1_700_000_000
    clock = lambda: now  # noqa: E731
    bank = InMemoryAssetBank()
    bank.fund("alice", "WETH", 10)
    config = EngineConfig(
        collateral_kinds=("WETH",),
        proof_config=ProofVerifierConfig(enabled=True, verifier_cmd=(sys.executable, str(DIGEST_VERIFIER))),
    )
    engine = build_engine(config, {"WETH": ManualPriceFeed(2000 * 10**8, clock=clock)}, bank, clock=clock)
    request = _deposit_request(DigestProver().prove(STATEMENT))
    result = engine.execute_or_raise(request)
    assert result.ok
    assert engine.account_info(request.owner) == STATEMENT.as_tuple()


def _deposit_request(proof: bytes) -> TransitionRequest:
    return TransitionRequest(
        kind=TransitionKind.DEPOSIT_AND_MINT,
        owner="alice",
        proof=proof,
        collateral_kind="WETH",
        collateral_amount=10,
        debt_amount=1000,
    )


def test_subprocess_verifier_kills_endless_stdout_writer() -> None:
    # Never terminates on its own: only the cap can end the call before the timeout.
    code = "import sys\nwhile True:\n    sys.stdout.buffer.write(b'x' * 65536)\n"
    verifier = _subprocess_verifier(_python(code), timeout_s=30.0, max_stdout_bytes=32_000)
    started = time.monotonic()
    ok, reason = verifier.check(b"proof", STATEMENT.words())
    assert not ok
    assert "stdout too large" in reason
    assert time.monotonic() - started < 15


def test_subprocess_verifier_kills_endless_stderr_writer() -> None:
    code = "import sys\nwhile True:\n    sys.stderr.buffer.write(b'e' * 65536)\n"
    verifier = _subprocess_verifier(_python(code), timeout_s=30.0, max_stderr_bytes=1024)
    ok, reason = verifier.check(b"proof", STATEMENT.words())
    assert not ok
    assert "stderr too large" in reason


def test_subprocess_verifier_times_out_when_child_never_reads() -> None:
    # The request is larger than a pipe buffer, so writing it would block forever.
    proof = b"\x01" * 200_000
    verifier = _subprocess_verifier(_python("import time; time.sleep(30)"), timeout_s=0.5, max_bytes=len(proof))
    ok, reason = verifier.check(proof, STATEMENT.words())
    assert not ok
    assert "timed out" in reason

"""
JSON-over-stdio calls to external executables (imperative shell).

Shared by the subprocess verifier and prover backends:
- stdin: canonical JSON bytes of the request
- stdout: one JSON object
Pipes are non-blocking and serviced with select, so the timeout also covers a
child that never reads its stdin, and the output caps are enforced while
reading: a child that writes past a cap is killed at once. The child runs in
its own process group so a kill takes everything it spawned.
"""

from __future__ import annotations

import json
import os
import select
import signal
import subprocess
import time
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence

from ..state.canonical import canonical_json_bytes

PIPE_CHUNK_BYTES = 4096


@dataclass(frozen=True)
class JsonCallResult:
    ok: bool
    output: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


def _kill_proc_group(proc: subprocess.Popen) -> None:
    # start_new_session=True makes the child its own process group leader.
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        return
    except OSError:
        try:
            proc.kill()
        except OSError:
            return


def _wait_after_kill(proc: subprocess.Popen, timeout_s: float = 0.2) -> None:
    try:
        proc.wait(timeout=timeout_s)
    except subprocess.TimeoutExpired:
        return


def _abort(proc: subprocess.Popen, error: str) -> JsonCallResult:
    _kill_proc_group(proc)
    _wait_after_kill(proc)
    return JsonCallResult(ok=False, error=error)


def call_json(
    cmd: Sequence[str],
    payload: Mapping[str, Any],
    *,
    timeout_s: float,
    max_input_bytes: int,
    max_stdout_bytes: int,
    max_stderr_bytes: int,
) -> JsonCallResult:
    """Run ``cmd`` once. Any encoding, process, timeout, cap or parse failure is a failed result."""
    try:
        request = canonical_json_bytes(dict(payload))
    except (TypeError, ValueError) as exc:
        return JsonCallResult(ok=False, error=f"invalid payload encoding: {exc}")
    if len(request) > max_input_bytes:
        return JsonCallResult(ok=False, error="payload too large")

    try:
        proc = subprocess.Popen(
            list(cmd),
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            start_new_session=True,
            close_fds=True,
            bufsize=0,
        )
    except OSError as exc:
        return JsonCallResult(ok=False, error=f"cannot start {cmd[0]!r}: {exc}")

    assert proc.stdin is not None and proc.stdout is not None and proc.stderr is not None
    try:
        for stream in (proc.stdin, proc.stdout, proc.stderr):
            try:
                os.set_blocking(stream.fileno(), False)
            except OSError as exc:
                return _abort(proc, f"non-blocking pipes unavailable: {exc}")

        stdout_buf = bytearray()
        stderr_buf = bytearray()
        stdin_view = memoryview(request)
        stdin_off = 0
        stdin_open = True
        stdout_open = True
        stderr_open = True

        deadline = time.monotonic() + timeout_s
        while stdout_open or stderr_open or stdin_open:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return _abort(proc, "timed out")

            rlist = [s for s, is_open in ((proc.stdout, stdout_open), (proc.stderr, stderr_open)) if is_open]
            wlist = [proc.stdin] if stdin_open else []
            try:
                ready_r, ready_w, _ = select.select(rlist, wlist, [], min(0.1, remaining))
            except (OSError, ValueError):
                return _abort(proc, "select error")

            for stream in ready_w:
                try:
                    n = stream.write(stdin_view[stdin_off : stdin_off + PIPE_CHUNK_BYTES])
                except BlockingIOError:
                    continue
                except BrokenPipeError:
                    return _abort(proc, "stdin broken pipe")
                stdin_off += n or 0
                if stdin_off >= len(stdin_view):
                    stdin_open = False
                    proc.stdin.close()

            for stream in ready_r:
                try:
                    chunk = stream.read(PIPE_CHUNK_BYTES)
                except BlockingIOError:
                    continue
                except OSError:
                    return _abort(proc, "stdout/stderr read error")
                if chunk is None:
                    continue
                if not chunk:
                    if stream is proc.stdout:
                        stdout_open = False
                    else:
                        stderr_open = False
                    continue
                if stream is proc.stdout:
                    stdout_buf += chunk
                    if len(stdout_buf) > max_stdout_bytes:
                        return _abort(proc, "stdout too large")
                else:
                    stderr_buf += chunk
                    if len(stderr_buf) > max_stderr_bytes:
                        return _abort(proc, "stderr too large")

        try:
            rc = proc.wait(timeout=max(deadline - time.monotonic(), 0.001))
        except subprocess.TimeoutExpired:
            return _abort(proc, "timed out")

        if rc != 0:
            err = stderr_buf.decode("utf-8", errors="replace").strip()
            return JsonCallResult(ok=False, error=f"exit {rc}: {err or 'no stderr'}")

        try:
            result = json.loads(bytes(stdout_buf))
        except ValueError as exc:
            return JsonCallResult(ok=False, error=f"invalid output: {exc}")
        if not isinstance(result, dict):
            return JsonCallResult(ok=False, error="invalid output (not an object)")
        return JsonCallResult(ok=True, output=result)
    finally:
        # Never leave the child running or as a zombie, even on an early return.
        if proc.returncode is None:
            _kill_proc_group(proc)
            _wait_after_kill(proc)
        for stream in (proc.stdin, proc.stdout, proc.stderr):
            if not stream.closed:
                stream.close()

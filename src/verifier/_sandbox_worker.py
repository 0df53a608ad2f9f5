"""Long-lived interpreter process backing `verifier.sandbox.PythonSandbox`.

The parent writes one JSON request per line on stdin and reads one JSON
response per line from stdout:

  {"id": 1, "op": "load", "name": "canonical", "source": "..."}
  {"id": 2, "op": "call", "func": "normalize_code", "args": [...]}
  {"id": 3, "op": "run", "code": "...", "timeout": 5.0}
  {"id": 4, "op": "ping"}

Responses are {"id": ..., "ok": true, "value": ...} or
{"id": ..., "ok": false, "error": "..."}. An ``ok: false`` response means
the worker itself could not serve the request (bad payload, a helper
raised, unknown op). Exceptions raised by learner code inside ``run`` are
part of a successful response: {"success": false, "error": "..."}.

Helpers loaded with ``load`` share one namespace that lives as long as the
process. Code passed to ``run`` always gets a fresh namespace.

This is not an OS-level sandbox; the parent applies resource limits and
wall-clock timeouts on top of the soft timer used here.
"""

import contextlib
import io
import json
import os
import signal
import sys
import traceback

TIMEOUT_MESSAGE = "Execution timeout - code took too long to run"

# Responses go to a private copy of fd 1; fd 1 itself is pointed at stderr so
# learner writes to sys.__stdout__ or the raw descriptor never reach the pipe.
_PROTOCOL_OUT = os.fdopen(os.dup(1), "w", encoding="utf-8")
os.dup2(2, 1)
_HELPERS = {"__name__": "sandbox_helpers"}


class _ExecutionTimeout(BaseException):
    pass


def _on_alarm(signum, frame):
    raise _ExecutionTimeout()


def _format_exception(exc):
    lines = traceback.format_exception_only(type(exc), exc)
    return lines[-1].strip() if lines else type(exc).__name__


def _load(request):
    source = request.get("source", "")
    name = request.get("name", "helper")
    exec(compile(source, f"<helper:{name}>", "exec"), _HELPERS)
    return True


def _call(request):
    func = _HELPERS.get(request.get("func", ""))
    if not callable(func):
        raise LookupError(f"helper function {request.get('func')!r} is not loaded")
    return func(*request.get("args", []))


def _run(request):
    code = request.get("code", "")
    timeout = request.get("timeout")
    namespace = {"__name__": "__main__", "__builtins__": __builtins__}
    stdout = io.StringIO()
    stderr = io.StringIO()
    use_timer = bool(timeout) and hasattr(signal, "setitimer")
    saved_stdin = sys.stdin
    error = None
    if use_timer:
        signal.signal(signal.SIGALRM, _on_alarm)
        signal.setitimer(signal.ITIMER_REAL, float(timeout))
    try:
        sys.stdin = io.StringIO("")
        with contextlib.redirect_stdout(stdout), contextlib.redirect_stderr(stderr):
            exec(compile(code, "<submission>", "exec"), namespace)
    except _ExecutionTimeout:
        error = TIMEOUT_MESSAGE
    except SystemExit as exc:
        error = f"SystemExit: {exc.code}"
    except Exception as exc:
        error = _format_exception(exc)
    finally:
        if use_timer:
            signal.setitimer(signal.ITIMER_REAL, 0)
        sys.stdin = saved_stdin
    return {"success": error is None, "output": stdout.getvalue(), "error": error}


_OPS = {
    "load": _load,
    "call": _call,
    "run": _run,
    "ping": lambda request: "pong",
}


def _respond(payload):
    _PROTOCOL_OUT.write(json.dumps(payload) + "\n")
    _PROTOCOL_OUT.flush()


def main() -> None:
    _respond({"ready": True})
    for raw in sys.stdin:
        if not raw.strip():
            continue
        request_id = None
        try:
            request = json.loads(raw)
            request_id = request.get("id")
            handler = _OPS.get(request.get("op"))
            if handler is None:
                raise ValueError(f"unknown op {request.get('op')!r}")
            value = handler(request)
            _respond({"id": request_id, "ok": True, "value": value})
        except Exception as exc:
            _respond({"id": request_id, "ok": False, "error": _format_exception(exc)})


if __name__ == "__main__":
    main()

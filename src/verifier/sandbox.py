"""Host side of the embedded Python interpreter sandbox.

`PythonSandbox` keeps one child interpreter alive for a grading session and
talks to it over the JSON-lines protocol described in `_sandbox_worker.py`.
Helper programs (the AST normalizer, the tokenizer) are compiled into the
child once per session through `SandboxHelper`; learner code runs in a
fresh namespace per request.

Faults of the sandbox itself surface as `SandboxError`. Learner failures
(exceptions, timeouts) are ordinary return values of `run`.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
import os
import sys
import weakref
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

WORKER_PATH = Path(__file__).resolve().with_name("_sandbox_worker.py")
TIMEOUT_MESSAGE = "Execution timeout - code took too long to run"

_STREAM_LIMIT = 16 * 1024 * 1024
_HARD_TIMEOUT_GRACE_S = 2.0
_CALL_TIMEOUT_S = 30.0


class SandboxError(RuntimeError):
    """The sandbox could not serve a request (not started, crashed, protocol fault)."""


def _make_posix_preexec(mem_limit_mb: int | None):
    def preexec():
        try:
            import resource

            if mem_limit_mb:
                mem_bytes = int(mem_limit_mb) * 1024 * 1024
                resource.setrlimit(resource.RLIMIT_AS, (mem_bytes, mem_bytes))
            os.setsid()
        except Exception:
            # resource limits are best effort
            return

    return preexec


class PythonSandbox:
    def __init__(
        self,
        *,
        python: str | None = None,
        startup_timeout_s: float = 15.0,
        mem_limit_mb: int | None = None,
    ) -> None:
        self.python = python or sys.executable
        self.startup_timeout_s = startup_timeout_s
        self.mem_limit_mb = mem_limit_mb
        self.session_id = 0
        self._proc: asyncio.subprocess.Process | None = None
        self._start_task: asyncio.Task | None = None
        self._ids = itertools.count(1)
        self._closed = False
        self._needs_restart = False

    async def __aenter__(self) -> "PythonSandbox":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def is_ready(self) -> bool:
        return self._proc is not None and self._proc.returncode is None

    def is_starting(self) -> bool:
        return self._start_task is not None and not self._start_task.done()

    def is_available(self) -> bool:
        """Ready, starting, or killed after a hard timeout and restarted on the next request."""
        return self.is_ready() or self.is_starting() or (self._needs_restart and not self._closed)

    async def start(self) -> None:
        if self.is_ready():
            return
        if self._start_task is None or self._start_task.done():
            self._closed = False
            self._start_task = asyncio.ensure_future(self._spawn())
        await self._start_task

    async def wait_ready(self) -> None:
        if self.is_starting():
            await self._start_task
        elif self._needs_restart and not self._closed:
            logger.info("sandbox_restart previous_session=%s", self.session_id)
            await self.start()
        if not self.is_ready():
            raise SandboxError("Sandbox not started")

    async def _spawn(self) -> None:
        kwargs: dict[str, Any] = {
            "stdin": asyncio.subprocess.PIPE,
            "stdout": asyncio.subprocess.PIPE,
            "stderr": asyncio.subprocess.DEVNULL,
            "env": {"PATH": os.environ.get("PATH", "")},
            "limit": _STREAM_LIMIT,
        }
        if os.name != "nt":
            kwargs["preexec_fn"] = _make_posix_preexec(self.mem_limit_mb)
        try:
            proc = await asyncio.create_subprocess_exec(
                self.python, "-I", "-u", str(WORKER_PATH), **kwargs
            )
        except OSError as exc:
            raise SandboxError(f"Sandbox failed to start: {exc}") from exc

        try:
            line = await asyncio.wait_for(proc.stdout.readline(), self.startup_timeout_s)
        except asyncio.TimeoutError:
            await self._kill(proc)
            raise SandboxError("Sandbox initialization timeout")
        try:
            hello = json.loads(line or b"null")
        except ValueError:
            hello = None
        if not isinstance(hello, dict) or not hello.get("ready"):
            await self._kill(proc)
            raise SandboxError("Sandbox failed to start")

        self._proc = proc
        self._needs_restart = False
        self.session_id += 1
        logger.info("sandbox_started session=%s pid=%s", self.session_id, proc.pid)

    async def _kill(self, proc: asyncio.subprocess.Process) -> None:
        if proc.returncode is None:
            try:
                proc.kill()
            except ProcessLookupError:
                pass
        await proc.wait()

    async def _request(self, payload: dict[str, Any], timeout_s: float) -> Any:
        await self.wait_ready()
        proc = self._proc
        request_id = next(self._ids)
        data = json.dumps({"id": request_id, **payload}).encode("utf-8") + b"\n"
        try:
            proc.stdin.write(data)
            await proc.stdin.drain()
            line = await asyncio.wait_for(proc.stdout.readline(), timeout_s)
        except asyncio.TimeoutError:
            await self._discard(proc)
            raise
        except (BrokenPipeError, ConnectionResetError) as exc:
            await self._discard(proc)
            raise SandboxError(f"Sandbox connection lost: {exc}") from exc
        if not line:
            await self._discard(proc)
            raise SandboxError("Sandbox process exited unexpectedly")

        try:
            response = json.loads(line)
        except ValueError as exc:
            await self._discard(proc)
            raise SandboxError("Sandbox sent a malformed response") from exc
        if not isinstance(response, dict) or response.get("id") != request_id:
            # the pipe is out of step with our requests
            await self._discard(proc)
            raise SandboxError("Sandbox response out of order")
        if not response.get("ok"):
            raise SandboxError(response.get("error") or "Sandbox request failed")
        return response.get("value")

    async def _discard(self, proc: asyncio.subprocess.Process) -> None:
        await self._kill(proc)
        if self._proc is proc:
            self._proc = None
            self._needs_restart = True

    async def load(self, name: str, source: str) -> None:
        try:
            await self._request({"op": "load", "name": name, "source": source}, _CALL_TIMEOUT_S)
        except asyncio.TimeoutError:
            raise SandboxError(f"Sandbox timed out loading helper {name}")

    async def call(self, func: str, *args: Any) -> Any:
        try:
            return await self._request({"op": "call", "func": func, "args": list(args)}, _CALL_TIMEOUT_S)
        except asyncio.TimeoutError:
            raise SandboxError(f"Sandbox timed out in {func}")

    async def run(self, code: str, timeout_s: float = 5.0) -> dict[str, Any]:
        """Execute `code` in a fresh namespace; returns {success, output, error}."""
        try:
            result = await self._request(
                {"op": "run", "code": code, "timeout": timeout_s},
                timeout_s + _HARD_TIMEOUT_GRACE_S,
            )
        except asyncio.TimeoutError:
            logger.warning("sandbox_hard_timeout session=%s timeout_s=%s", self.session_id, timeout_s)
            return {"success": False, "output": None, "error": TIMEOUT_MESSAGE}
        if not isinstance(result, dict):
            raise SandboxError("Sandbox returned an unexpected run result")
        return result

    async def ping(self) -> bool:
        try:
            return await self._request({"op": "ping"}, _CALL_TIMEOUT_S) == "pong"
        except asyncio.TimeoutError:
            raise SandboxError("Sandbox did not answer ping")

    async def close(self) -> None:
        self._closed = True
        self._needs_restart = False
        if self._start_task is not None and not self._start_task.done():
            self._start_task.cancel()
            try:
                await self._start_task
            except (asyncio.CancelledError, SandboxError):
                pass
        proc, self._proc = self._proc, None
        if proc is None:
            return
        if proc.stdin is not None and not proc.stdin.is_closing():
            proc.stdin.close()
        try:
            await asyncio.wait_for(proc.wait(), 2.0)
        except asyncio.TimeoutError:
            await self._kill(proc)
        logger.info("sandbox_closed session=%s", self.session_id)


class SandboxHelper:
    """A helper program compiled into a sandbox at most once per sandbox session."""

    def __init__(self, name: str, source: str) -> None:
        self.name = name
        self.source = source
        self._loaded_for: tuple[weakref.ref, int] | None = None

    def is_loaded(self, sandbox: Any) -> bool:
        if self._loaded_for is None:
            return False
        ref, session_id = self._loaded_for
        return ref() is sandbox and session_id == getattr(sandbox, "session_id", 0)

    async def ensure_loaded(self, sandbox: Any) -> None:
        # a pending restart bumps session_id
        await sandbox.wait_ready()
        if self.is_loaded(sandbox):
            return
        await sandbox.load(self.name, self.source)
        self._loaded_for = (weakref.ref(sandbox), getattr(sandbox, "session_id", 0))
        logger.info("sandbox_helper_loaded helper=%s session=%s", self.name, self._loaded_for[1])

    def reset(self) -> None:
        self._loaded_for = None

from __future__ import annotations

import logging
from typing import Any, Sequence

from .ast_compare import AstNormalizer
from .config import Settings, load_settings
from .runtime import LanguageRuntime
from .sandbox import PythonSandbox, SandboxError
from .token_compare import TokenComparator
from .types import AstCompareOptions, AstCompareResult, ExecutionResult, TokenCompareResult

logger = logging.getLogger(__name__)


class PythonRuntime(LanguageRuntime):
    language = "python"

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings
        self._sandbox: Any = None
        self._owns_sandbox = False
        self._normalizer = AstNormalizer()
        self._tokens = TokenComparator()

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            self._settings = load_settings()
        return self._settings

    @property
    def sandbox(self) -> Any:
        return self._sandbox

    def attach(self, handle: Any) -> None:
        if handle is self._sandbox:
            return
        self._sandbox = handle
        self._owns_sandbox = False
        # helpers compiled into a previous handle are gone
        self._normalizer.reset()
        self._tokens.reset()

    def is_ready(self) -> bool:
        sandbox = self._sandbox
        if sandbox is None:
            return False
        available = getattr(sandbox, "is_available", None)
        if callable(available):
            return bool(available())
        starting = getattr(sandbox, "is_starting", None)
        return bool(sandbox.is_ready() or (callable(starting) and starting()))

    async def initialize(self) -> None:
        if self._sandbox is None:
            settings = self.settings
            self._sandbox = PythonSandbox(
                python=settings.sandbox_python,
                startup_timeout_s=settings.sandbox_startup_timeout_s,
                mem_limit_mb=settings.sandbox_memory_mb or None,
            )
            self._owns_sandbox = True
        await self._sandbox.start()

    async def terminate(self) -> None:
        sandbox, owned = self._sandbox, self._owns_sandbox
        self._sandbox = None
        self._owns_sandbox = False
        self._normalizer.reset()
        self._tokens.reset()
        if sandbox is not None and owned:
            await sandbox.close()

    def _require_sandbox(self) -> Any:
        if self._sandbox is None:
            raise SandboxError("Sandbox not attached")
        return self._sandbox

    async def execute(self, code: str, timeout_s: float | None = None) -> ExecutionResult:
        sandbox = self._require_sandbox()
        timeout = timeout_s if timeout_s is not None else self.settings.execution_timeout_s
        result = await sandbox.run(code, timeout)
        return ExecutionResult(
            success=bool(result.get("success")),
            output=result.get("output"),
            error=result.get("error"),
        )

    async def tokenize(self, code: str) -> list[tuple[int, str]] | None:
        return await self._tokens.tokenize(self._require_sandbox(), code)

    async def compare_by_tokens(
        self,
        submission: str,
        expected: str,
        alternatives: Sequence[str] = (),
    ) -> TokenCompareResult:
        return await self._tokens.compare(self._require_sandbox(), submission, expected, alternatives)

    async def compare_by_ast(
        self,
        submission: str,
        expected: str,
        alternatives: Sequence[str] = (),
        options: AstCompareOptions | None = None,
    ) -> AstCompareResult:
        if self._sandbox is None:
            return AstCompareResult(match=False, infra_available=False, error="Sandbox not attached")
        return await self._normalizer.compare(self._sandbox, submission, expected, alternatives, options)

    def reset_normalizer(self) -> None:
        self._normalizer.reset()

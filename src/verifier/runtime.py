from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Sequence

from .types import AstCompareOptions, AstCompareResult, ExecutionResult, TokenCompareResult


class LanguageRuntime(ABC):
    """Capabilities the strategy router needs from one scripting language.

    Infrastructure faults raise `verifier.sandbox.SandboxError` (or whatever
    the runtime's sandbox raises); learner failures are result values.
    `compare_by_ast` reports infrastructure faults through
    `AstCompareResult.infra_available` instead of raising.
    """

    language: str = ""

    @abstractmethod
    def attach(self, handle: Any) -> None:
        """Inject a host-provided sandbox handle."""

    @abstractmethod
    def is_ready(self) -> bool: ...

    @abstractmethod
    async def initialize(self) -> None: ...

    @abstractmethod
    async def terminate(self) -> None: ...

    @abstractmethod
    async def execute(self, code: str, timeout_s: float | None = None) -> ExecutionResult: ...

    @abstractmethod
    async def tokenize(self, code: str) -> list[tuple[int, str]] | None: ...

    @abstractmethod
    async def compare_by_tokens(
        self,
        submission: str,
        expected: str,
        alternatives: Sequence[str] = (),
    ) -> TokenCompareResult: ...

    @abstractmethod
    async def compare_by_ast(
        self,
        submission: str,
        expected: str,
        alternatives: Sequence[str] = (),
        options: AstCompareOptions | None = None,
    ) -> AstCompareResult: ...


class RuntimeRegistry:
    def __init__(self) -> None:
        self._runtimes: dict[str, LanguageRuntime] = {}

    def register(self, language: str, runtime: LanguageRuntime) -> None:
        self._runtimes[language.strip().lower()] = runtime

    def get(self, language: str | None) -> LanguageRuntime | None:
        if not language:
            return None
        return self._runtimes.get(language.strip().lower())

    def languages(self) -> list[str]:
        return sorted(self._runtimes)

    async def terminate_all(self) -> None:
        for runtime in self._runtimes.values():
            await runtime.terminate()


_registry: RuntimeRegistry | None = None


def default_registry() -> RuntimeRegistry:
    global _registry
    if _registry is None:
        from .python_runtime import PythonRuntime

        _registry = RuntimeRegistry()
        _registry.register("python", PythonRuntime())
    return _registry


def get_runtime(language: str | None) -> LanguageRuntime | None:
    return default_registry().get(language)


def register_runtime(language: str, runtime: LanguageRuntime) -> None:
    default_registry().register(language, runtime)


def reset_runtimes() -> None:
    global _registry
    _registry = None


def supported_languages() -> list[str]:
    return default_registry().languages()

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Sequence

from .sandbox import SandboxError, SandboxHelper
from .types import AstCompareOptions, AstCompareResult

logger = logging.getLogger(__name__)

NORMALIZER_SOURCE = Path(__file__).resolve().with_name("_canonical.py").read_text(encoding="utf-8")


class AstNormalizer:
    """Owns the normalizer helper compiled into a sandbox.

    The helper is compiled at most once per sandbox session; `reset()` forces a
    recompile before the next comparison. Callers must not reset while a
    comparison is in flight.
    """

    def __init__(self) -> None:
        self._helper = SandboxHelper("canonical", NORMALIZER_SOURCE)

    def is_initialized(self, sandbox: Any) -> bool:
        return self._helper.is_loaded(sandbox)

    async def initialize(self, sandbox: Any) -> None:
        await self._helper.ensure_loaded(sandbox)

    def reset(self) -> None:
        self._helper.reset()

    async def normalize(self, sandbox: Any, code: str, options: AstCompareOptions) -> str | None:
        await self.initialize(sandbox)
        result = await sandbox.call("normalize_code", code, options.as_payload(), "auto")
        return None if result is None else str(result)

    async def compare(
        self,
        sandbox: Any,
        submission: str,
        expected: str,
        alternatives: Sequence[str] = (),
        options: AstCompareOptions | None = None,
    ) -> AstCompareResult:
        opts = options or AstCompareOptions()
        try:
            user_norm = await self.normalize(sandbox, submission, opts)
            if user_norm is None:
                # learner code does not parse
                return AstCompareResult(match=False, infra_available=True)

            expected_norm = await self.normalize(sandbox, expected, opts)
            if expected_norm is not None and user_norm == expected_norm:
                return AstCompareResult(match=True, infra_available=True)

            for alt in alternatives or ():
                alt_norm = await self.normalize(sandbox, alt, opts)
                if alt_norm is not None and user_norm == alt_norm:
                    return AstCompareResult(match=True, matched_alternative=alt, infra_available=True)
        except SandboxError as exc:
            logger.warning("ast_compare_infra_error err=%s", exc)
            return AstCompareResult(match=False, infra_available=False, error=str(exc) or "AST comparison failed")
        return AstCompareResult(match=False, infra_available=True)

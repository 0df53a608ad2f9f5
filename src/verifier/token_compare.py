from __future__ import annotations

from pathlib import Path
from typing import Any, Sequence

from .sandbox import SandboxHelper
from .types import TokenCompareResult

TOKENIZER_SOURCE = Path(__file__).resolve().with_name("_tokenizer.py").read_text(encoding="utf-8")


class TokenComparator:
    """Token-stream comparison; sandbox faults propagate as `SandboxError`."""

    def __init__(self) -> None:
        self._helper = SandboxHelper("tokenizer", TOKENIZER_SOURCE)

    def reset(self) -> None:
        self._helper.reset()

    async def tokenize(self, sandbox: Any, code: str) -> list[tuple[int, str]] | None:
        await self._helper.ensure_loaded(sandbox)
        result = await sandbox.call("tokenize_code", code)
        if result is None:
            return None
        return [(int(tok_type), str(tok_string)) for tok_type, tok_string in result]

    async def compare(
        self,
        sandbox: Any,
        submission: str,
        expected: str,
        alternatives: Sequence[str] = (),
    ) -> TokenCompareResult:
        user_tokens = await self.tokenize(sandbox, submission)
        if not user_tokens:
            return TokenCompareResult(match=False)

        expected_tokens = await self.tokenize(sandbox, expected)
        if expected_tokens is not None and user_tokens == expected_tokens:
            return TokenCompareResult(match=True)

        for alt in alternatives or ():
            alt_tokens = await self.tokenize(sandbox, alt)
            if alt_tokens is not None and user_tokens == alt_tokens:
                return TokenCompareResult(match=True, matched_alternative=alt)
        return TokenCompareResult(match=False)

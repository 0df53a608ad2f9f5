from __future__ import annotations

import re
from typing import Iterable

from .types import ConstructCheckResult

_STRING_PREFIXES = {"r", "u", "b", "f", "br", "rb", "fr", "rf"}
_FSTRING_PLACEHOLDER = 'f"{_}"'
_STRING_PLACEHOLDER = '""'

# One bracket-free character, or one nested bracket group.
_PAREN_ATOM = r"(?:[^()\[\]{}]|\([^()]*\)|\[[^\[\]]*\]|\{[^{}]*\})"
_SUBSCRIPT_ATOM = r"(?:(?!\blambda\b)(?:[^\[\]{}\n]|\[[^\[\]\n]*\]))"
# Parenthesized groups are single units, so the `for` of a generator passed
# to a call inside brackets is not read as a comprehension clause.
_COMP_ATOM = r"(?:[^()\[\]{}]|\((?:[^()]|\([^()]*\))*\)|\[[^\[\]{}]*\]|\{[^\[\]{}]*\})"

CONSTRUCT_PATTERNS: dict[str, re.Pattern[str]] = {
    "slice": re.compile(
        r"(?<=[\w)\]\"])[ \t]*\[" + _SUBSCRIPT_ATOM + r"*:" + _SUBSCRIPT_ATOM + r"*\]"
    ),
    "comprehension": re.compile(
        r"[\[{]" + _COMP_ATOM + r"+?\bfor\b" + _COMP_ATOM + r"+?\bin\b" + _COMP_ATOM + r"+?[\]}]"
    ),
    "f-string": re.compile(r"(?<![\w\"])f\"\{_\}\""),
    "ternary": re.compile(r"\S[ \t]+if\b[^\n]*?\belse\b[ \t]*[^\s:]"),
    "enumerate": re.compile(r"(?<![\w.])enumerate\s*\("),
    "zip": re.compile(r"(?<![\w.])zip\s*\("),
    "lambda": re.compile(r"\blambda\b[^:\n]*:"),
    "generator-expr": re.compile(
        r"\(" + _PAREN_ATOM + r"+?\bfor\b" + _PAREN_ATOM + r"+?\bin\b" + _PAREN_ATOM + r"+?\)"
    ),
}

_FSTRING_FIELD = re.compile(r"\{(?!\{)")


def _scan_string(code: str, start: int, quote: str) -> tuple[int, str]:
    """Return (end index, literal body) for a string starting at `start`."""
    triple = code.startswith(quote * 3, start)
    i = start + (3 if triple else 1)
    body_start = i
    n = len(code)
    while i < n:
        ch = code[i]
        if ch == "\\":
            i += 2
            continue
        if triple and code.startswith(quote * 3, i):
            return i + 3, code[body_start:i]
        if not triple and ch == quote:
            return i + 1, code[body_start:i]
        if not triple and ch == "\n":
            # unterminated literal; stop at the line break
            return i, code[body_start:i]
        i += 1
    return n, code[body_start:n]


def strip_strings_and_comments(code: str) -> str:
    """Replace string literals with neutral placeholders and drop comments.

    f-strings with at least one replacement field become ``f"{_}"`` so that
    interpolation can still be detected; every other literal becomes ``""``.
    """
    out: list[str] = []
    i = 0
    n = len(code or "")
    while i < n:
        ch = code[i]
        if ch == "#":
            end = code.find("\n", i)
            i = n if end == -1 else end
            continue
        if ch.isalpha() or ch == "_":
            j = i
            while j < n and (code[j].isalnum() or code[j] == "_"):
                j += 1
            word = code[i:j]
            if j < n and code[j] in "'\"" and word.lower() in _STRING_PREFIXES:
                end, body = _scan_string(code, j, code[j])
                is_fstring = "f" in word.lower()
                if is_fstring and _FSTRING_FIELD.search(body.replace("{{", "")):
                    out.append(_FSTRING_PLACEHOLDER)
                else:
                    out.append(_STRING_PLACEHOLDER)
                i = end
                continue
            out.append(word)
            i = j
            continue
        if ch in "'\"":
            i, _ = _scan_string(code, i, ch)
            out.append(_STRING_PLACEHOLDER)
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def check_construct(code: str, construct_type: str) -> ConstructCheckResult:
    pattern = CONSTRUCT_PATTERNS.get(construct_type)
    if pattern is None:
        return ConstructCheckResult(detected=False, construct_type=construct_type)
    cleaned = strip_strings_and_comments(code or "")
    return ConstructCheckResult(
        detected=pattern.search(cleaned) is not None,
        construct_type=construct_type,
    )


def check_any_construct(code: str, construct_types: Iterable[str]) -> ConstructCheckResult:
    for construct_type in construct_types:
        result = check_construct(code, construct_type)
        if result.detected:
            return result
    return ConstructCheckResult(detected=False, construct_type=None)

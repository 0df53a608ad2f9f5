from __future__ import annotations
import re
import unicodedata

_QUOTE_MAP = {
    "’": "'",
    "‘": "'",
    "“": "\"",
    "”": "\"",
}

# Characters around which spacing carries no meaning in a code answer.
_PUNCT_SPACING = re.compile(r"\s*([()\[\]{}:,.;=+\-*/%<>!&|^~@])\s*")

def _nfkc_normalize(s: str) -> str:
    if not s:
        return ""
    s = unicodedata.normalize("NFKC", s)
    for src, dst in _QUOTE_MAP.items():
        s = s.replace(src, dst)
    return s

def _unify_newlines(s: str) -> str:
    return s.replace("\r\n", "\n").replace("\r", "\n")

def norm_text(s: str) -> str:
    s = _nfkc_normalize(s or "")
    s = s.strip()
    s = re.sub(r"\s+", " ", s)
    return s

def norm_fill_in(s: str) -> str:
    return norm_text(s)

def norm_output(s: str) -> str:
    s = _unify_newlines(_nfkc_normalize(s or ""))
    lines = [line.rstrip() for line in s.split("\n")]
    return "\n".join(lines).strip("\n").strip()

def _norm_code_line(line: str) -> str:
    stripped = line.lstrip(" ")
    indent = len(line) - len(stripped)
    body = re.sub(r"[ ]{2,}", " ", stripped.rstrip())
    body = _PUNCT_SPACING.sub(r"\1", body)
    return " " * indent + body

def norm_code(s: str) -> str:
    s = _unify_newlines(_nfkc_normalize(s or "")).expandtabs(4)
    s = s.replace("'", "\"")
    lines = [_norm_code_line(line) for line in s.split("\n")]
    lines = [line for line in lines if line.strip()]
    if not lines:
        return ""
    margin = min(len(line) - len(line.lstrip(" ")) for line in lines)
    return "\n".join(line[margin:] for line in lines)

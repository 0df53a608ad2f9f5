"""Token stream of a Python snippet, shipped as source into the sandbox.

Comments, blank-line markers and the encoding/end markers are dropped;
indentation and statement-end tokens keep their type but lose their text so
that indentation width and line endings do not matter.
"""

import io
import tokenize

_SKIPPED = {tokenize.COMMENT, tokenize.NL, tokenize.ENCODING, tokenize.ENDMARKER}
_TEXTLESS = {tokenize.INDENT, tokenize.DEDENT, tokenize.NEWLINE}


def tokenize_code(code):
    """List of [type, string] pairs, or None when the snippet cannot be tokenized."""
    try:
        tokens = list(tokenize.generate_tokens(io.StringIO(code).readline))
    except (tokenize.TokenError, SyntaxError):
        return None
    result = []
    for tok in tokens:
        if tok.type in _SKIPPED:
            continue
        result.append([tok.type, "" if tok.type in _TEXTLESS else tok.string])
    return result

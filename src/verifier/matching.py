from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Sequence

from .normalize import norm_code, norm_fill_in, norm_output

@dataclass(frozen=True)
class MatchResult:
    is_correct: bool
    matched_alternative: str | None
    normalized_user_answer: str
    normalized_expected_answer: str

_NORMALIZERS: dict[str, Callable[[str], str]] = {
    "write": norm_code,
    "fill-in": norm_fill_in,
    "predict": norm_output,
}

def _match(
    user: str,
    expected: str,
    accepted_solutions: Sequence[str],
    normalize: Callable[[str], str],
) -> MatchResult:
    user_cmp = normalize(user)
    expected_cmp = normalize(expected)
    if user_cmp and user_cmp == expected_cmp:
        return MatchResult(True, None, user_cmp, expected_cmp)
    for alt in accepted_solutions or ():
        if alt and user_cmp and user_cmp == normalize(alt):
            return MatchResult(True, alt, user_cmp, expected_cmp)
    return MatchResult(False, None, user_cmp, expected_cmp)

def check_answer_with_alternatives(user: str, expected: str, accepted_solutions: Sequence[str] = ()) -> MatchResult:
    return _match(user, expected, accepted_solutions, norm_code)

def check_fill_in_answer(user: str, expected: str, accepted_solutions: Sequence[str] = ()) -> MatchResult:
    return _match(user, expected, accepted_solutions, norm_fill_in)

def check_predict_answer(user: str, expected: str, accepted_solutions: Sequence[str] = ()) -> MatchResult:
    return _match(user, expected, accepted_solutions, norm_output)

def match_exercise_answer(
    user: str,
    exercise_type: str,
    expected: str,
    accepted_solutions: Sequence[str] = (),
) -> MatchResult:
    # unknown exercise types are matched like written code
    normalize = _NORMALIZERS.get(exercise_type, norm_code)
    return _match(user, expected, accepted_solutions, normalize)

from __future__ import annotations

import ast
import re
import warnings
from dataclasses import dataclass
from typing import Any, Iterable

from .normalize import norm_code
from .runtime import RuntimeRegistry, default_registry
from .types import CONSTRUCT_TYPES, EXERCISE_TYPES, STRATEGIES

_SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


@dataclass(frozen=True)
class ValidationIssue:
    severity: str  # "error" | "warning"
    message: str
    slug: str | None = None
    field: str | None = None


def _iter_exercises(payload) -> Iterable[dict]:
    if isinstance(payload, dict):
        exercises = payload.get("exercises")
        if isinstance(exercises, list):
            return exercises
    if isinstance(payload, list):
        return payload
    return []


def _pick(raw: dict, *keys: str) -> Any:
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return None


def _parses_as_python(source: str) -> bool:
    with warnings.catch_warnings():
        # invalid escapes in snippets emit SyntaxWarning
        warnings.simplefilter("ignore", SyntaxWarning)
        for mode in ("exec", "eval"):
            try:
                ast.parse(source, mode=mode)
                return True
            except (SyntaxError, ValueError):
                continue
    return False


def validate_exercise(
    raw,
    *,
    default_language: str | None = None,
    registry: RuntimeRegistry | None = None,
) -> list[ValidationIssue]:
    """Configuration errors and suspicious authoring for one exercise record."""
    if not isinstance(raw, dict):
        return [ValidationIssue("error", "exercise must be an object")]

    issues: list[ValidationIssue] = []
    slug = raw.get("slug")
    slug_str = str(slug) if slug is not None else None

    def error(message: str, field: str | None = None) -> None:
        issues.append(ValidationIssue("error", message, slug_str, field))

    def warn(message: str, field: str | None = None) -> None:
        issues.append(ValidationIssue("warning", message, slug_str, field))

    if slug is not None and not _SLUG_RE.match(str(slug)):
        error("slug must be kebab-case", "slug")

    expected = _pick(raw, "expected_answer", "expectedAnswer")
    if not isinstance(expected, str) or not expected.strip():
        error("expected_answer is required", "expected_answer")
        expected = None

    exercise_type = _pick(raw, "exercise_type", "exerciseType", "type") or "write"
    if exercise_type not in EXERCISE_TYPES:
        error(f"unknown exercise_type '{exercise_type}'", "exercise_type")

    strategy = _pick(raw, "grading_strategy", "gradingStrategy")
    if strategy is not None and strategy not in STRATEGIES:
        error(f"unknown grading_strategy '{strategy}'", "grading_strategy")
        strategy = None
    by_execution = bool(_pick(raw, "verify_by_execution", "verifyByExecution"))
    effective = strategy or ("execution" if exercise_type == "predict" or by_execution else "ast")

    language = _pick(raw, "language") or default_language
    if language:
        registry = registry or default_registry()
        if registry.get(str(language)) is None:
            error(f"no runtime registered for language '{language}'", "language")

    target = _pick(raw, "target_construct", "targetConstruct")
    if target is not None:
        target_type = target.get("type") if isinstance(target, dict) else None
        if target_type not in CONSTRUCT_TYPES:
            error(f"unknown target_construct type '{target_type}'", "target_construct")

    script = _pick(raw, "verification_script", "verificationScript")
    if script and effective != "execution":
        error("verification_script requires grading_strategy 'execution'", "verification_script")
    if effective == "execution" and exercise_type == "predict" and not raw.get("code"):
        error("execution strategy on a predict exercise requires code", "code")
    if effective == "execution" and exercise_type != "predict" and not script and not by_execution:
        error("execution strategy requires verification_script or verify_by_execution", "grading_strategy")

    accepted = _pick(raw, "accepted_solutions", "acceptedSolutions")
    if accepted is not None:
        if not isinstance(accepted, list) or not all(isinstance(x, str) for x in accepted):
            error("accepted_solutions must be a list of strings", "accepted_solutions")
        elif expected is not None:
            expected_norm = norm_code(expected)
            for alt in accepted:
                if norm_code(alt) == expected_norm:
                    warn(f"accepted solution duplicates expected_answer: {alt!r}", "accepted_solutions")

    is_python = str(language or "python").strip().lower() == "python"
    if effective == "ast" and is_python and expected is not None and not _parses_as_python(expected):
        warn("expected_answer does not parse as Python; use 'token' or 'exact'", "expected_answer")

    return issues


def validate_exercises(payload, *, registry: RuntimeRegistry | None = None) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    default_language = payload.get("language") if isinstance(payload, dict) else None
    seen: set[str] = set()
    for ex in _iter_exercises(payload):
        issues.extend(validate_exercise(ex, default_language=default_language, registry=registry))
        if not isinstance(ex, dict) or ex.get("slug") is None:
            continue
        slug = str(ex["slug"])
        if slug in seen:
            issues.append(ValidationIssue("error", "duplicate slug", slug, "slug"))
        seen.add(slug)
    return issues

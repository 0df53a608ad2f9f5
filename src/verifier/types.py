from __future__ import annotations

from dataclasses import dataclass
from typing import Any

EXERCISE_TYPES = ("write", "fill-in", "predict")
STRATEGIES = ("exact", "token", "ast", "execution")
CONSTRUCT_TYPES = (
    "slice",
    "comprehension",
    "f-string",
    "ternary",
    "enumerate",
    "zip",
    "lambda",
    "generator-expr",
)

FALLBACK_INFRA_UNAVAILABLE = "infra_unavailable"


@dataclass(frozen=True)
class TargetConstruct:
    type: str
    feedback: str | None = None


@dataclass(frozen=True)
class Exercise:
    expected_answer: str
    exercise_type: str = "write"
    language: str | None = None
    grading_strategy: str | None = None
    accepted_solutions: tuple[str, ...] = ()
    code: str | None = None
    verification_script: str | None = None
    verify_by_execution: bool = False
    target_construct: TargetConstruct | None = None
    slug: str | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Exercise":
        """Build from a curriculum record; snake_case and camelCase keys are both accepted."""

        def pick(*keys: str) -> Any:
            for key in keys:
                if raw.get(key) is not None:
                    return raw[key]
            return None

        target = pick("target_construct", "targetConstruct")
        if isinstance(target, dict) and target.get("type"):
            target = TargetConstruct(type=str(target["type"]), feedback=target.get("feedback"))
        elif not isinstance(target, TargetConstruct):
            target = None

        accepted = pick("accepted_solutions", "acceptedSolutions") or []
        return cls(
            expected_answer=str(pick("expected_answer", "expectedAnswer") or ""),
            exercise_type=str(pick("exercise_type", "exerciseType", "type") or "write"),
            language=pick("language"),
            grading_strategy=pick("grading_strategy", "gradingStrategy"),
            accepted_solutions=tuple(str(x) for x in accepted),
            code=pick("code"),
            verification_script=pick("verification_script", "verificationScript"),
            verify_by_execution=bool(pick("verify_by_execution", "verifyByExecution")),
            target_construct=target,
            slug=pick("slug"),
        )


@dataclass(frozen=True)
class GradingResult:
    is_correct: bool
    strategy: str
    matched_alternative: str | None = None
    infra_available: bool = True
    fallback_used: bool = False
    fallback_reason: str | None = None
    error: str | None = None
    coaching_feedback: str | None = None


@dataclass(frozen=True)
class ConstructCheckResult:
    detected: bool
    construct_type: str | None


@dataclass(frozen=True)
class ExecutionResult:
    success: bool
    output: str | None
    error: str | None


@dataclass(frozen=True)
class TokenCompareResult:
    match: bool
    matched_alternative: str | None = None


@dataclass(frozen=True)
class AstCompareResult:
    match: bool
    matched_alternative: str | None = None
    infra_available: bool = True
    error: str | None = None


@dataclass(frozen=True)
class AstCompareOptions:
    rename_locals: bool = True
    normalize_slices: bool = True
    ignore_docstrings: bool = True

    def as_payload(self) -> dict[str, bool]:
        return {
            "renameLocals": self.rename_locals,
            "normalizeSlices": self.normalize_slices,
            "ignoreDocstrings": self.ignore_docstrings,
        }


@dataclass(frozen=True)
class StrategyOutcome:
    is_correct: bool
    infra_available: bool
    matched_alternative: str | None = None
    error: str | None = None

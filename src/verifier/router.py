from __future__ import annotations

import logging
from typing import Any

from .config import Settings, load_settings
from .constructs import check_construct
from .matching import check_predict_answer, match_exercise_answer
from .normalize import norm_output
from .runtime import LanguageRuntime, RuntimeRegistry, default_registry
from .telemetry import create_telemetry_entry, log_grading_telemetry
from .types import (
    FALLBACK_INFRA_UNAVAILABLE,
    STRATEGIES,
    AstCompareOptions,
    Exercise,
    GradingResult,
    StrategyOutcome,
)

logger = logging.getLogger(__name__)

DEFAULT_COACHING_FEEDBACK = "Great job! Consider trying the suggested approach next time."
# write answers graded by execution are expressions whose printed value is checked
WRITE_VERIFICATION_TEMPLATE = "print({answer})"


def resolve_strategy(exercise: Exercise) -> str:
    strategy = exercise.grading_strategy
    if strategy in STRATEGIES:
        return strategy
    if strategy:
        logger.error("unknown_grading_strategy slug=%s strategy=%s", exercise.slug, strategy)
    if exercise.exercise_type == "predict" or exercise.verify_by_execution:
        return "execution"
    return "ast"


def _has_execution_inputs(exercise: Exercise) -> bool:
    if exercise.exercise_type == "predict":
        return bool(exercise.code)
    return bool(exercise.verification_script) or exercise.verify_by_execution


def coaching_feedback_for(submission: str, exercise: Exercise, is_correct: bool) -> str | None:
    target = exercise.target_construct
    if not is_correct or target is None:
        return None
    if check_construct(submission, target.type).detected:
        return None
    return target.feedback or DEFAULT_COACHING_FEEDBACK


class StrategyRouter:
    """Grades one submission: pick a strategy, attempt it, fall back to exact matching
    once when its infrastructure is unavailable. Never raises to the caller."""

    def __init__(self, registry: RuntimeRegistry | None = None, settings: Settings | None = None) -> None:
        self._registry = registry
        self._settings = settings

    @property
    def registry(self) -> RuntimeRegistry:
        if self._registry is None:
            self._registry = default_registry()
        return self._registry

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            self._settings = load_settings()
        return self._settings

    async def grade(
        self,
        submission: str,
        exercise: Exercise | dict[str, Any],
        sandbox: Any = None,
        language: str | None = None,
    ) -> GradingResult:
        if isinstance(exercise, dict):
            exercise = Exercise.from_dict(exercise)
        submission = submission or ""
        language = language or exercise.language or self.settings.default_language
        strategy = resolve_strategy(exercise)

        if strategy == "execution" and not _has_execution_inputs(exercise):
            logger.error(
                "execution_strategy_misconfigured slug=%s exercise_type=%s",
                exercise.slug,
                exercise.exercise_type,
            )
            strategy = "exact"

        if strategy == "exact":
            outcome = self._grade_exact(submission, exercise)
        else:
            runtime = self.registry.get(language)
            outcome = await self._attempt(strategy, runtime, language, submission, exercise, sandbox)

        fallback_used = False
        if not outcome.infra_available:
            logger.warning(
                "strategy_unavailable strategy=%s language=%s fallback=exact err=%s",
                strategy,
                language,
                outcome.error,
            )
            exact = self._grade_exact(submission, exercise)
            outcome = StrategyOutcome(
                is_correct=exact.is_correct,
                infra_available=False,
                matched_alternative=exact.matched_alternative,
                error=outcome.error,
            )
            fallback_used = True

        result = GradingResult(
            is_correct=outcome.is_correct,
            strategy=strategy,
            matched_alternative=outcome.matched_alternative if outcome.is_correct else None,
            infra_available=outcome.infra_available,
            fallback_used=fallback_used,
            fallback_reason=FALLBACK_INFRA_UNAVAILABLE if fallback_used else None,
            error=outcome.error,
            coaching_feedback=coaching_feedback_for(submission, exercise, outcome.is_correct),
        )
        if self.settings.telemetry_enabled:
            log_grading_telemetry(
                create_telemetry_entry(
                    exercise_slug=exercise.slug,
                    strategy=strategy,
                    was_correct=result.is_correct,
                    fallback_used=result.fallback_used,
                    fallback_reason=result.fallback_reason,
                    matched_alternative=result.matched_alternative,
                    user_answer=submission,
                )
            )
        return result

    def _grade_exact(self, submission: str, exercise: Exercise) -> StrategyOutcome:
        match = match_exercise_answer(
            submission,
            exercise.exercise_type,
            exercise.expected_answer,
            exercise.accepted_solutions,
        )
        return StrategyOutcome(
            is_correct=match.is_correct,
            infra_available=True,
            matched_alternative=match.matched_alternative,
        )

    async def _attempt(
        self,
        strategy: str,
        runtime: LanguageRuntime | None,
        language: str,
        submission: str,
        exercise: Exercise,
        sandbox: Any,
    ) -> StrategyOutcome:
        if runtime is None:
            return StrategyOutcome(False, False, error=f"No runtime available for language '{language}'")
        try:
            if sandbox is not None:
                runtime.attach(sandbox)
            if not runtime.is_ready():
                return StrategyOutcome(False, False, error=f"{language} runtime is not ready")
            if strategy == "token":
                return await self._attempt_token(runtime, submission, exercise)
            if strategy == "ast":
                return await self._attempt_ast(runtime, submission, exercise)
            return await self._attempt_execution(runtime, submission, exercise)
        except Exception as exc:
            logger.warning("strategy_failed strategy=%s language=%s err=%r", strategy, language, exc)
            return StrategyOutcome(False, False, error=str(exc) or type(exc).__name__)

    async def _attempt_token(self, runtime: LanguageRuntime, submission: str, exercise: Exercise) -> StrategyOutcome:
        result = await runtime.compare_by_tokens(
            submission,
            exercise.expected_answer,
            exercise.accepted_solutions,
        )
        return StrategyOutcome(result.match, True, result.matched_alternative)

    async def _attempt_ast(self, runtime: LanguageRuntime, submission: str, exercise: Exercise) -> StrategyOutcome:
        result = await runtime.compare_by_ast(
            submission,
            exercise.expected_answer,
            exercise.accepted_solutions,
            AstCompareOptions(),
        )
        return StrategyOutcome(result.match, result.infra_available, result.matched_alternative, result.error)

    async def _attempt_execution(
        self,
        runtime: LanguageRuntime,
        submission: str,
        exercise: Exercise,
    ) -> StrategyOutcome:
        if exercise.exercise_type != "predict":
            if exercise.verification_script:
                run = await runtime.execute(f"{submission}\n\n{exercise.verification_script}")
                if run.success:
                    return StrategyOutcome(True, True)
                return StrategyOutcome(False, True, error=run.error or "Verification failed")

            run = await runtime.execute(WRITE_VERIFICATION_TEMPLATE.format(answer=submission))
            if not run.success:
                return StrategyOutcome(False, True, error=run.error)
            matched = norm_output(run.output or "") == norm_output(exercise.expected_answer)
            return StrategyOutcome(matched, True)

        run = await runtime.execute(exercise.code or "")
        predicted = norm_output(submission)
        if run.success and norm_output(run.output or "") == predicted:
            return StrategyOutcome(True, True)

        # several printed forms can be right (set or dict ordering)
        if exercise.accepted_solutions:
            alt = check_predict_answer(submission, "", exercise.accepted_solutions)
            if alt.is_correct:
                return StrategyOutcome(True, True, alt.matched_alternative)
        return StrategyOutcome(False, True, error=None if run.success else run.error)


_default_router: StrategyRouter | None = None


def default_router() -> StrategyRouter:
    global _default_router
    if _default_router is None:
        _default_router = StrategyRouter()
    return _default_router


async def grade_submission(
    submission: str,
    exercise: Exercise | dict[str, Any],
    sandbox: Any = None,
    language: str | None = None,
) -> GradingResult:
    return await default_router().grade(submission, exercise, sandbox, language)

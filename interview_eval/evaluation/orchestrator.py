"""Evaluation orchestrator: provider fallback, validation and caching.

Flow for one evaluation:
  1. Cache lookup (transcript hash + prompt strategy)
  2. Validate answers and build the prompt once, shared by all providers
  3. Primary provider: invoke → parse → completeness check
  4. On any failure: secondary provider, same sequence
  5. Nothing succeeded → AllProvidersFailedError

State machine over provider attempts:

  NOT_ATTEMPTED → ATTEMPTING_PRIMARY → SUCCEEDED
                        │
                        └──→ ATTEMPTING_SECONDARY → SUCCEEDED
                                      │
                                      └──→ ALL_FAILED

Disabled providers are skipped. Providers are always tried in order, never
raced. Gateway and parse errors never leave this module except folded into
the final AllProvidersFailedError.

Usage:
    orchestrator = EvaluationOrchestrator(config, primary, secondary, cache)
    result = await orchestrator.evaluate_interview_with_timeout(qa_history)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TypeVar

from interview_eval.cache import keys
from interview_eval.cache.store import CacheStore
from interview_eval.core.config import EvaluatorConfig
from interview_eval.core.metrics import EVALUATIONS
from interview_eval.errors import (
    AllProvidersFailedError,
    EvaluationTimeoutError,
    ParseError,
    ProviderAttempt,
    ProviderError,
)
from interview_eval.evaluation.parser import (
    combined_result_from_dict,
    parse_combined_result,
    parse_questions,
    questions_from_dict,
)
from interview_eval.evaluation.prompts import (
    PromptStrategy,
    build_question_generation_prompt,
    get_strategy,
)
from interview_eval.evaluation.types import CombinedResult, QAPair, Question
from interview_eval.gateway.providers import ProviderAdapter

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AttemptState(str, Enum):
    """States of the provider fallback chain."""

    NOT_ATTEMPTED = "not_attempted"
    ATTEMPTING_PRIMARY = "attempting_primary"
    ATTEMPTING_SECONDARY = "attempting_secondary"
    SUCCEEDED = "succeeded"
    ALL_FAILED = "all_failed"


@dataclass
class EvaluationOutcome:
    """Result of one fallback chain run, with the trace of how it got there."""

    result: CombinedResult | list[Question] | None = None
    provider: str = ""
    state: AttemptState = AttemptState.NOT_ATTEMPTED
    attempts: list[ProviderAttempt] = field(default_factory=list)
    cached: bool = False


def is_valid_result(result: CombinedResult | None, expected_questions: int | None = None) -> bool:
    """Completeness check on top of the parser's structural checks.

    questionNumber values must run 1..n in order, and n must equal
    ``expected_questions`` when given (the transcript length).
    """
    if (
        result is None
        or result.evaluation is None
        or result.evaluation.overall_score is None
        or not result.evaluation.question_analysis
        or result.training_plan is None
        or not result.training_plan.weekly_plan
    ):
        return False
    numbers = [qa.question_number for qa in result.evaluation.question_analysis]
    if numbers != list(range(1, len(numbers) + 1)):
        return False
    return expected_questions is None or len(numbers) == expected_questions


def _round_score(value: float) -> float:
    return round(min(max(value, 0.0), 10.0), 1)


def recompute_final_scores(result: CombinedResult) -> CombinedResult:
    """Replace each finalScore by the clamped mean of its three sub-scores.

    Entries missing any sub-score keep the provider's value.
    """
    for qa in result.evaluation.question_analysis:
        parts = (qa.relevance_score, qa.correctness_score, qa.depth_score)
        if any(p is None for p in parts):
            continue
        qa.final_score = _round_score(sum(parts) / 3)
    return result


class EvaluationOrchestrator:
    """Runs evaluations and question generation across the provider chain."""

    def __init__(
        self,
        config: EvaluatorConfig,
        primary: ProviderAdapter | None,
        secondary: ProviderAdapter | None,
        cache: CacheStore | None = None,
        strategy: PromptStrategy | None = None,
    ):
        self.config = config
        self.primary = primary
        self.secondary = secondary
        self.cache = cache
        self.strategy = strategy or get_strategy(config.prompt_strategy, config.evaluation_max_tokens)

    # ------------------------------------------------------------------
    # Fallback chain
    # ------------------------------------------------------------------

    async def _run_chain(
        self,
        prompt: str,
        max_tokens: int,
        parse: Callable[[str], T],
        is_complete: Callable[[T], bool],
        kind: str,
    ) -> EvaluationOutcome:
        outcome = EvaluationOutcome()
        chain = (
            (AttemptState.ATTEMPTING_PRIMARY, self.primary),
            (AttemptState.ATTEMPTING_SECONDARY, self.secondary),
        )

        for state, provider in chain:
            if provider is None:
                continue
            outcome.state = state
            attempt = ProviderAttempt(provider=provider.name)
            context = {"provider": provider.name, "kind": kind}
            outcome.attempts.append(attempt)
            logger.debug("Attempting %s with %s", kind, provider.name, extra=context)

            try:
                raw = await provider.invoke(prompt, max_tokens)
                result = parse(raw)
            except ProviderError as e:
                attempt.error = str(e)
                logger.warning("%s %s failed: %s", provider.name, kind, e, extra=context)
                continue
            except ParseError as e:
                attempt.error = f"parse: {e}"
                logger.warning("%s returned unparseable %s: %s", provider.name, kind, e, extra=context)
                continue
            except Exception as e:
                attempt.error = f"{type(e).__name__}: {e}"
                logger.exception("Unexpected error during %s %s", provider.name, kind, extra=context)
                continue

            if not is_complete(result):
                attempt.error = "incomplete result"
                logger.warning("%s returned an incomplete %s", provider.name, kind, extra=context)
                continue

            attempt.succeeded = True
            outcome.state = AttemptState.SUCCEEDED
            outcome.provider = provider.name
            outcome.result = result
            EVALUATIONS.labels(kind=kind, outcome=provider.name).inc()
            logger.info("%s %s successful", provider.name, kind, extra=context)
            return outcome

        outcome.state = AttemptState.ALL_FAILED
        EVALUATIONS.labels(kind=kind, outcome="all_failed").inc()
        if not outcome.attempts:
            logger.error("No AI provider enabled for %s", kind)
        else:
            logger.error(
                "All AI services failed for %s: %s",
                kind,
                "; ".join(f"{a.provider}: {a.error}" for a in outcome.attempts),
            )
        raise AllProvidersFailedError(outcome.attempts)

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def _parse_evaluation(self, raw: str) -> CombinedResult:
        result = parse_combined_result(raw)
        if self.config.recompute_final_scores and result.evaluation is not None:
            recompute_final_scores(result)
        return result

    async def evaluate_interview_detailed(self, qa_history: Sequence[QAPair]) -> EvaluationOutcome:
        """Evaluate without caching and return the full fallback trace."""
        logger.info("Starting AI evaluation for %d Q&A pairs (%s prompt)", len(qa_history), self.strategy.name)
        prompt = self.strategy.build(qa_history)
        return await self._run_chain(
            prompt,
            self.strategy.max_tokens,
            self._parse_evaluation,
            lambda result: is_valid_result(result, expected_questions=len(qa_history)),
            kind="evaluation",
        )

    async def evaluate_interview(self, qa_history: Sequence[QAPair]) -> CombinedResult:
        """Evaluate a transcript, serving identical transcripts from the cache."""
        if not qa_history:
            raise ValueError("qa_history must contain at least one question")

        async def compute() -> CombinedResult:
            outcome = await self.evaluate_interview_detailed(qa_history)
            return outcome.result

        ttl = self.config.evaluation_cache_ttl_seconds
        if self.cache is None or ttl <= 0:
            return await compute()

        return await self.cache.get_or_compute(
            keys.evaluation_key(qa_history, self.strategy.name),
            compute,
            ttl,
            decode=combined_result_from_dict,
        )

    async def evaluate_interview_with_timeout(
        self,
        qa_history: Sequence[QAPair],
        timeout: float | None = None,
    ) -> CombinedResult:
        """Run the evaluation as one task and wait at most ``timeout`` seconds.

        On expiry the task is abandoned, not cancelled: a provider call in
        flight may still complete server-side.
        """
        timeout = self.config.evaluation_timeout_seconds if timeout is None else timeout
        task = asyncio.ensure_future(self.evaluate_interview(qa_history))
        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout)
        except asyncio.TimeoutError as e:
            EVALUATIONS.labels(kind="evaluation", outcome="timeout").inc()
            logger.error("AI evaluation exceeded %.0fs budget", timeout)
            task.add_done_callback(_consume_result)
            raise EvaluationTimeoutError(timeout) from e

    # ------------------------------------------------------------------
    # Question generation
    # ------------------------------------------------------------------

    async def generate_questions(self, job_role: str, interview_type: str) -> list[Question]:
        """Cache-first question generation for a role / interview type pair."""

        async def compute() -> list[Question]:
            prompt = build_question_generation_prompt(job_role, interview_type)
            outcome = await self._run_chain(
                prompt,
                self.config.questions_max_tokens,
                parse_questions,
                bool,
                kind="questions",
            )
            return outcome.result

        if self.cache is None:
            return await compute()

        return await self.cache.get_or_compute(
            keys.ai_questions_key(job_role, interview_type),
            compute,
            self.config.questions_cache_ttl_seconds,
            decode=lambda data: questions_from_dict({"questions": data}),
        )

    async def clear_question_cache(self) -> int:
        """Drop every cached question set."""
        if self.cache is None:
            return 0
        return await self.cache.invalidate_pattern(keys.prefix_pattern(keys.AI_QUESTIONS_PREFIX))


def _consume_result(task: asyncio.Future) -> None:
    # Abandoned task: retrieve its outcome so asyncio does not report it as never retrieved
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.info("Abandoned evaluation finished with %s", type(exc).__name__)

"""Deterministic cache key construction."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Sequence

from interview_eval.evaluation.types import QAPair

SEPARATOR = ":"

AI_QUESTIONS_PREFIX = "ai_questions"
EVALUATION_PREFIX = "evaluation"


def _normalize(part: str) -> str:
    # Case and surrounding whitespace must not split the cache
    return " ".join((part or "").split()).lower()


def ai_questions_key(job_role: str, interview_type: str) -> str:
    return SEPARATOR.join((AI_QUESTIONS_PREFIX, _normalize(job_role), _normalize(interview_type)))


def evaluation_key(qa_history: Sequence[QAPair], strategy: str) -> str:
    """Key for a transcript evaluated under a given prompt strategy."""
    payload = json.dumps(
        [[qa.question, qa.answer] for qa in qa_history],
        ensure_ascii=False,
        separators=(",", ":"),
    )
    digest = hashlib.sha256(payload.encode("utf-8")).hexdigest()
    return SEPARATOR.join((EVALUATION_PREFIX, strategy, digest))


def prefix_pattern(prefix: str) -> str:
    """Glob pattern matching every key under ``prefix``."""
    return f"{prefix}{SEPARATOR}*"

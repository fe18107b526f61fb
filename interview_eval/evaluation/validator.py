"""Answer quality pre-screen.

Flags low-quality answers before they reach a provider:
  - empty or too short (< 20 words, multiple-choice selections exempt)
  - clipboard / keyboard UI text pasted by accident
  - generic placeholders ("yes", "I don't know", bare "Selected: B")
  - answers that echo the question

The result is advisory. It is embedded in the prompt as a quality flag and
never used to override a provider's scores.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence

from interview_eval.evaluation.types import QAPair, ValidationResult

logger = logging.getLogger(__name__)

MIN_WORDS = 20
ECHO_THRESHOLD = 0.7
MCQ_MARKER = "Selected:"

# Clipboard / keyboard chrome that ends up in answers when users paste blindly
_NOISE_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"clipboard",
        r"gboard",
        r"pin.*clip",
        r"touch.*hold",
        r"edit icon",
        r"copy.*save.*here",
        r"tap.*paste",
        r"welcome to",
        r"deleted after.*hour",
        r"use the.*icon",
    )
]

_GENERIC_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"(yes|no|maybe|ok|okay)",
        r"i (don't|dont|do not) know",
        r"(correct|wrong|right)",
    )
]

_BARE_SELECTION = re.compile(r"selected:[^\n]*", re.IGNORECASE)


def _tokens(text: str) -> set[str]:
    words = set(text.split())
    if not words and text:
        # Whitespace-only text is one opaque token
        return {text}
    return words


def jaccard_similarity(text1: str, text2: str) -> float:
    """Jaccard index of the two whitespace-separated word sets. 0.0 on an empty union."""
    set1 = _tokens(text1)
    set2 = _tokens(text2)
    union = set1 | set2
    if not union:
        return 0.0
    return len(set1 & set2) / len(union)


def validate(question: str, answer: str) -> ValidationResult:
    """Screen a single answer. First matching rule wins."""
    if answer is None or not answer.strip():
        return ValidationResult(False, "Empty answer", 0.0)

    cleaned = answer.strip()
    word_count = len(cleaned.split())
    is_selection = cleaned.startswith(MCQ_MARKER)

    if not is_selection and word_count < MIN_WORDS:
        return ValidationResult(False, f"Answer too short (< {MIN_WORDS} words)", 2.0)

    for pattern in _NOISE_PATTERNS:
        if pattern.search(cleaned):
            logger.warning("Clipboard/system text detected: %s", cleaned[:50])
            return ValidationResult(False, "Clipboard/system text detected", 0.0)

    # Only "Selected:" answers get here with fewer than MIN_WORDS words, and none of
    # them fullmatch these patterns. The rule stays in this position to keep the
    # documented rule order.
    for pattern in _GENERIC_PATTERNS:
        if pattern.fullmatch(cleaned):
            return ValidationResult(False, "Generic/placeholder answer", 1.0)

    if _BARE_SELECTION.fullmatch(cleaned):
        return ValidationResult(False, "MCQ selection without explanation", 2.0)

    similarity = jaccard_similarity((question or "").lower(), cleaned.lower())
    if similarity > ECHO_THRESHOLD:
        return ValidationResult(False, "Answer echoes question", 0.0)

    return ValidationResult(True, "Quality answer", 10.0)


def validate_transcript(qa_history: Sequence[QAPair]) -> list[ValidationResult]:
    """Validate every pair of a transcript on its full, untruncated text."""
    results = [validate(qa.question, qa.answer) for qa in qa_history]
    flagged = sum(1 for r in results if not r.is_valid)
    if flagged:
        logger.info("Answer validation flagged %d of %d answers", flagged, len(results))
    return results

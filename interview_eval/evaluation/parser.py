"""Response parser: maps provider free text into the strict result types.

Providers wrap JSON in markdown fences, add commentary around it, omit
optional fields or use the legacy "score" key. Parsing therefore goes:

  raw text → strip fences/bold → slice first '{' .. last '}' → json.loads
  → loose dict tree → field-by-field projection into dataclasses

Any structural problem raises ParseError naming the offending path.
"""

from __future__ import annotations

import json
import logging
import math
import re
from typing import Any

from interview_eval.errors import ParseError
from interview_eval.evaluation.types import (
    SCORE_BREAKDOWN_KEYS,
    CombinedResult,
    ComprehensiveEvaluation,
    ConfidenceLevel,
    FocusArea,
    ImmediateAction,
    Milestone,
    PracticeProblem,
    Question,
    QuestionAnalysis,
    Resource,
    TrainingPlan,
    WeeklyPlan,
)

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"```(?:json|JSON)?")
_BOLD = re.compile(r"\*\*")

_MISSING = object()


# ---------------------------------------------------------------------------
# Text cleaning
# ---------------------------------------------------------------------------


def clean_response_text(raw: str | None) -> str:
    """Strip markdown code fences and bold markers."""
    if raw is None or not raw.strip():
        raise ParseError("Empty response text")
    cleaned = _FENCE.sub("", raw)
    cleaned = _BOLD.sub("", cleaned)
    return cleaned.strip()


def extract_json_object(raw: str | None) -> str:
    """Return the span from the first '{' to the last '}' of the cleaned text."""
    cleaned = clean_response_text(raw)
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end <= start:
        raise ParseError("No JSON object found in response")
    return cleaned[start : end + 1]


def _load_tree(raw: str | None) -> dict[str, Any]:
    text = extract_json_object(raw)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid JSON: {e.msg} at position {e.pos}") from e
    if not isinstance(data, dict):
        raise ParseError("Top-level JSON value is not an object")
    return data


# ---------------------------------------------------------------------------
# Field projection helpers
# ---------------------------------------------------------------------------


def _obj(data: dict, key: str, path: str) -> dict[str, Any]:
    value = data.get(key)
    if not isinstance(value, dict):
        raise ParseError(f"{path}.{key} must be an object")
    return value


def _float(data: dict, key: str, path: str, default: Any = _MISSING) -> float | None:
    value = data.get(key)
    if value is None:
        if default is _MISSING:
            raise ParseError(f"{path}.{key} is required")
        return default
    if isinstance(value, bool):
        raise ParseError(f"{path}.{key} must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ParseError(f"{path}.{key} must be a number, got {value!r}") from e
    # json.loads accepts NaN, Infinity and overflowing literals like 1e999
    if not math.isfinite(number):
        raise ParseError(f"{path}.{key} must be a finite number, got {value!r}")
    return number


def _int(data: dict, key: str, path: str, default: Any = _MISSING) -> int:
    value = _float(data, key, path, default)
    if value is None:
        return default
    return int(round(value))


def _str(data: dict, key: str, default: str = "") -> str:
    value = data.get(key)
    if value is None:
        return default
    return value if isinstance(value, str) else str(value)


def _str_list(data: dict, key: str, path: str) -> list[str]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ParseError(f"{path}.{key} must be a list")
    return [item if isinstance(item, str) else str(item) for item in value if item is not None]


def _obj_list(data: dict, key: str, path: str, required: bool = False) -> list[dict[str, Any]]:
    value = data.get(key)
    if value is None:
        if required:
            raise ParseError(f"{path}.{key} is required")
        return []
    if not isinstance(value, list):
        raise ParseError(f"{path}.{key} must be a list")
    items = []
    for i, item in enumerate(value):
        if not isinstance(item, dict):
            raise ParseError(f"{path}.{key}[{i}] must be an object")
        items.append(item)
    return items


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


def _confidence(value: Any) -> ConfidenceLevel:
    if isinstance(value, str):
        for level in ConfidenceLevel:
            if level.value.lower() == value.strip().lower():
                return level
    return ConfidenceLevel.MEDIUM


def _question_analysis(data: dict, path: str) -> QuestionAnalysis:
    final = _float(data, "finalScore", path, default=None)
    if final is None:
        final = _float(data, "score", path)  # legacy key
    return QuestionAnalysis(
        question_number=_int(data, "questionNumber", path),
        relevance_score=_float(data, "relevanceScore", path, default=None),
        correctness_score=_float(data, "correctnessScore", path, default=None),
        depth_score=_float(data, "depthScore", path, default=None),
        final_score=final,
        what_you_answered=_str(data, "whatYouAnswered"),
        what_was_good=_str(data, "whatWasGood"),
        what_was_missing=_str(data, "whatWasMissing"),
        ideal_answer=_str(data, "idealAnswer"),
        reasoning=_str(data, "reasoning"),
    )


def _immediate_action(data: dict, path: str) -> ImmediateAction:
    return ImmediateAction(
        priority=_str(data, "priority"),
        action=_str(data, "action"),
        why=_str(data, "why"),
        resources=_str_list(data, "resources", path),
    )


def _evaluation(data: dict) -> ComprehensiveEvaluation:
    path = "evaluation"
    breakdown_raw = data.get("scoreBreakdown") or {}
    if not isinstance(breakdown_raw, dict):
        raise ParseError(f"{path}.scoreBreakdown must be an object")
    breakdown = {
        key: _float(breakdown_raw, key, f"{path}.scoreBreakdown")
        for key in SCORE_BREAKDOWN_KEYS
        if breakdown_raw.get(key) is not None
    }
    unknown = sorted(set(breakdown_raw) - set(SCORE_BREAKDOWN_KEYS))
    if unknown:
        logger.debug("Dropping unknown scoreBreakdown keys: %s", ", ".join(unknown))

    return ComprehensiveEvaluation(
        overall_score=_float(data, "overallScore", path, default=None),
        confidence_level=_confidence(data.get("confidenceLevel")),
        score_breakdown=breakdown,
        question_analysis=[
            _question_analysis(item, f"{path}.questionAnalysis[{i}]")
            for i, item in enumerate(_obj_list(data, "questionAnalysis", path))
        ],
        coach_feedback=_str(data, "coachFeedback"),
        top_strengths=_str_list(data, "topStrengths", path),
        critical_gaps=_str_list(data, "criticalGaps", path),
        immediate_actions=[
            _immediate_action(item, f"{path}.immediateActions[{i}]")
            for i, item in enumerate(_obj_list(data, "immediateActions", path))
        ],
    )


# ---------------------------------------------------------------------------
# Training plan
# ---------------------------------------------------------------------------


def _focus_area(data: dict, path: str) -> FocusArea:
    return FocusArea(
        area=_str(data, "area"),
        priority=_str(data, "priority"),
        current_level=_int(data, "currentLevel", path, default=0),
        target_level=_int(data, "targetLevel", path, default=0),
        estimated_hours=_int(data, "estimatedHours", path, default=0),
        key_topics=_str_list(data, "keyTopics", path),
        resources=[
            Resource(
                type=_str(r, "type"),
                title=_str(r, "title"),
                link=_str(r, "link"),
                duration=_str(r, "duration"),
            )
            for r in _obj_list(data, "resources", path)
        ],
    )


def _weekly_plan(data: dict, path: str) -> WeeklyPlan:
    return WeeklyPlan(
        week=_int(data, "week", path),
        theme=_str(data, "theme"),
        study_time=_str(data, "studyTime"),
        practice_time=_str(data, "practiceTime"),
        topics=_str_list(data, "topics", path),
        practice_problems=[
            PracticeProblem(
                problem=_str(p, "problem"),
                difficulty=_str(p, "difficulty"),
                focus_area=_str(p, "focusArea"),
            )
            for p in _obj_list(data, "practiceProblems", path)
        ],
        projects=_str_list(data, "projects", path),
        weekend_task=_str(data, "weekendTask"),
    )


def _milestone(data: dict, path: str) -> Milestone:
    return Milestone(
        week=_int(data, "week", path, default=0),
        milestone=_str(data, "milestone"),
        verification=_str(data, "verification"),
    )


def _training_plan(data: dict) -> TrainingPlan:
    path = "trainingPlan"
    return TrainingPlan(
        readiness_score=_int(data, "readinessScore", path, default=0),
        target_score=_int(data, "targetScore", path, default=0),
        time_to_target=_str(data, "timeToTarget"),
        focus_areas=[
            _focus_area(item, f"{path}.focusAreas[{i}]")
            for i, item in enumerate(_obj_list(data, "focusAreas", path, required=True))
        ],
        weekly_plan=[
            _weekly_plan(item, f"{path}.weeklyPlan[{i}]")
            for i, item in enumerate(_obj_list(data, "weeklyPlan", path, required=True))
        ],
        milestones=[
            _milestone(item, f"{path}.milestones[{i}]")
            for i, item in enumerate(_obj_list(data, "milestones", path, required=True))
        ],
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def combined_result_from_dict(data: dict[str, Any]) -> CombinedResult:
    """Project an already-decoded JSON tree into a CombinedResult."""
    missing = [key for key in ("evaluation", "trainingPlan") if key not in data]
    if missing:
        raise ParseError(f"Response missing required keys: {', '.join(missing)}")
    return CombinedResult(
        evaluation=_evaluation(_obj(data, "evaluation", "$")),
        training_plan=_training_plan(_obj(data, "trainingPlan", "$")),
    )


def parse_combined_result(raw: str | None) -> CombinedResult:
    """Parse provider text into a CombinedResult or raise ParseError."""
    result = combined_result_from_dict(_load_tree(raw))
    logger.debug(
        "Parsed evaluation: overall=%s, questions=%d, weeks=%d",
        result.evaluation.overall_score,
        len(result.evaluation.question_analysis),
        len(result.training_plan.weekly_plan),
    )
    return result


def questions_from_dict(data: dict[str, Any]) -> list[Question]:
    """Project a decoded ``{"questions": [...]}`` tree into Question objects."""
    items = _obj_list(data, "questions", "$", required=True)
    questions: list[Question] = []
    for i, item in enumerate(items):
        path = f"$.questions[{i}]"
        text = _str(item, "question") or _str(item, "text")
        if not text:
            raise ParseError(f"{path}.question is required")
        questions.append(
            Question(
                type=_str(item, "type", default="open_ended"),
                question=text,
                options=_str_list(item, "options", path),
                correct_index=_int(item, "correctIndex", path, default=-1),
            )
        )
    return questions


def parse_questions(raw: str | None) -> list[Question]:
    """Parse a question-generation reply into Question objects."""
    return questions_from_dict(_load_tree(raw))

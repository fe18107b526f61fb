"""Provider-agnostic prompt builders.

The same prompt text is sent to every provider; only the transport differs.
Two evaluation strategies share one orchestrator:
  - StrictRubricStrategy: rubric + validator quality flags + full schema
  - CompactStrategy: shorter prompt without quality flags (older contract,
    providers may answer with the legacy "score" key)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence

from interview_eval.evaluation.types import QAPair, ValidationResult
from interview_eval.evaluation.validator import validate_transcript

logger = logging.getLogger(__name__)

QUESTION_CHAR_LIMIT = 200
ANSWER_CHAR_LIMIT = 400
QUESTION_COUNT = 10

# Sent as the system / instruction part by every provider adapter
JSON_ONLY_INSTRUCTION = (
    "You are a strict JSON API. Respond with a single valid JSON object only. "
    "Do not wrap it in markdown, do not add explanations before or after it."
)


def truncate(text: str, limit: int) -> str:
    """Hard cut at ``limit`` characters, marking the cut with '...'."""
    text = text or ""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


# ---------------------------------------------------------------------------
# Fixed prompt blocks
# ---------------------------------------------------------------------------

_RUBRIC = """You are an expert technical interviewer and career coach.
Evaluate the interview transcript below question by question.

SCORING RUBRIC (apply to every question):
- relevanceScore (0-10): does the answer address what was asked?
- correctnessScore (0-10): is the content technically accurate?
- depthScore (0-10): does it show understanding beyond surface definitions?
- finalScore = round((relevanceScore + correctnessScore + depthScore) / 3, 1)
- overallScore = mean of all finalScore values, rounded to 1 decimal

RULES:
- If a question carries a QUALITY FLAG, its finalScore must not exceed the given cap.
- Empty, copied, pasted or off-topic answers score 0-2, never higher.
- Be honest and specific; do not inflate scores to be encouraging.
"""

EVALUATION_SCHEMA = """{
  "evaluation": {
    "overallScore": 0.0,
    "confidenceLevel": "Low | Medium | High",
    "scoreBreakdown": {
      "technicalKnowledge": 0.0,
      "problemSolving": 0.0,
      "communication": 0.0,
      "depthOfUnderstanding": 0.0
    },
    "questionAnalysis": [
      {
        "questionNumber": 1,
        "relevanceScore": 0.0,
        "correctnessScore": 0.0,
        "depthScore": 0.0,
        "finalScore": 0.0,
        "whatYouAnswered": "one-sentence summary of the candidate's answer",
        "whatWasGood": "specific strengths",
        "whatWasMissing": "specific gaps",
        "idealAnswer": "what a strong answer contains",
        "reasoning": "why these scores were given"
      }
    ],
    "coachFeedback": "2-3 paragraphs of direct, actionable feedback",
    "topStrengths": ["strength"],
    "criticalGaps": ["gap"],
    "immediateActions": [
      {"priority": "High", "action": "what to do", "why": "reason", "resources": ["resource"]}
    ]
  },
  "trainingPlan": {
    "readinessScore": 0,
    "targetScore": 0,
    "timeToTarget": "e.g. 4 weeks",
    "focusAreas": [
      {
        "area": "topic",
        "priority": "High | Medium | Low",
        "currentLevel": 0,
        "targetLevel": 0,
        "estimatedHours": 0,
        "keyTopics": ["subtopic"],
        "resources": [
          {"type": "video | article | course | book | practice", "title": "", "link": "", "duration": ""}
        ]
      }
    ],
    "weeklyPlan": [
      {
        "week": 1,
        "theme": "",
        "studyTime": "e.g. 6 hours",
        "practiceTime": "e.g. 4 hours",
        "topics": ["topic"],
        "practiceProblems": [{"problem": "", "difficulty": "Easy | Medium | Hard", "focusArea": ""}],
        "projects": ["mini project"],
        "weekendTask": ""
      }
    ],
    "milestones": [
      {"week": 1, "milestone": "", "verification": "how to verify it was reached"}
    ]
  }
}"""

_SCHEMA_FOOTER = """
Return ONLY this JSON structure, exactly as shown, with real values:
- questionAnalysis must contain one entry per question, in order, questionNumber starting at 1
- weeklyPlan must contain every week with week numbers starting at 1
- milestones must cover the plan; do not omit any key
"""

_COMPACT_HEADER = "You are an expert technical interviewer. Evaluate this interview:\n\n"

COMPACT_SCHEMA = """{
  "evaluation": {
    "overallScore": 7.5,
    "scoreBreakdown": {"technicalKnowledge": 0.0, "problemSolving": 0.0, "communication": 0.0, "depthOfUnderstanding": 0.0},
    "coachFeedback": "...",
    "topStrengths": ["..."],
    "criticalGaps": ["..."],
    "questionAnalysis": [
      {"questionNumber": 1, "score": 0.0, "whatYouAnswered": "...", "whatWasGood": "...", "whatWasMissing": "...", "idealAnswer": "..."}
    ]
  },
  "trainingPlan": {
    "readinessScore": 65,
    "targetScore": 80,
    "timeToTarget": "...",
    "focusAreas": [{"area": "...", "priority": "...", "currentLevel": 0, "targetLevel": 0}],
    "weeklyPlan": [{"week": 1, "theme": "...", "topics": ["..."], "practiceProblems": [{"problem": "...", "difficulty": "..."}]}],
    "milestones": [{"week": 1, "milestone": "...", "verification": "..."}]
  }
}"""


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def _format_transcript(
    qa_history: Sequence[QAPair],
    validations: Sequence[ValidationResult] | None = None,
) -> str:
    lines: list[str] = []
    for i, qa in enumerate(qa_history, start=1):
        lines.append(f"Q{i}: {truncate(qa.question, QUESTION_CHAR_LIMIT)}")
        lines.append(f"A{i}: {truncate(qa.answer, ANSWER_CHAR_LIMIT)}")
        if validations is not None and not validations[i - 1].is_valid:
            v = validations[i - 1]
            lines.append(f"[QUALITY FLAG: {v.reason}; max finalScore {v.suggested_score_cap:.1f}]")
        lines.append("")
    return "\n".join(lines)


def build_evaluation_prompt(
    qa_history: Sequence[QAPair],
    validations: Sequence[ValidationResult] | None = None,
) -> str:
    """Full rubric prompt with quality flags and the CombinedResult schema.

    Validation runs on the untruncated answers when ``validations`` is not
    supplied by the caller.
    """
    if validations is None:
        validations = validate_transcript(qa_history)
    if len(validations) != len(qa_history):
        raise ValueError("validations must align one-to-one with qa_history")

    return (
        _RUBRIC
        + f"\nINTERVIEW TRANSCRIPT ({len(qa_history)} questions):\n\n"
        + _format_transcript(qa_history, validations)
        + "\nOUTPUT SCHEMA:\n"
        + EVALUATION_SCHEMA
        + "\n"
        + _SCHEMA_FOOTER
    )


def build_compact_evaluation_prompt(qa_history: Sequence[QAPair]) -> str:
    return (
        _COMPACT_HEADER
        + _format_transcript(qa_history)
        + "\nProvide evaluation in this JSON format:\n"
        + COMPACT_SCHEMA
        + "\n"
    )


def build_question_generation_prompt(job_role: str, interview_type: str) -> str:
    return (
        f"Generate {QUESTION_COUNT} interview questions for a {job_role} position "
        f"({interview_type} interview).\n\n"
        "Return ONLY valid JSON:\n"
        "{\n"
        '  "questions": [\n'
        "    {\n"
        '      "type": "open_ended",\n'
        '      "question": "Your question here"\n'
        "    }\n"
        "  ]\n"
        "}\n\n"
        f"Return exactly {QUESTION_COUNT} items. "
        "Mix of question types: open_ended, mcq_proper, mcq_all_correct. "
        'Multiple-choice items add "options" (list of strings) and "correctIndex" (0-based).'
    )


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


class PromptStrategy(ABC):
    """Selects the prompt/schema contract used for an evaluation."""

    name: str
    max_tokens: int = 8192

    @abstractmethod
    def build(self, qa_history: Sequence[QAPair]) -> str:
        ...


class StrictRubricStrategy(PromptStrategy):
    name = "strict"

    def __init__(self, max_tokens: int = 8192):
        self.max_tokens = max_tokens

    def build(self, qa_history: Sequence[QAPair]) -> str:
        validations = validate_transcript(qa_history)
        return build_evaluation_prompt(qa_history, validations)


class CompactStrategy(PromptStrategy):
    name = "compact"

    def __init__(self, max_tokens: int = 8192):
        self.max_tokens = max_tokens

    def build(self, qa_history: Sequence[QAPair]) -> str:
        return build_compact_evaluation_prompt(qa_history)


STRATEGY_REGISTRY: dict[str, type[PromptStrategy]] = {
    StrictRubricStrategy.name: StrictRubricStrategy,
    CompactStrategy.name: CompactStrategy,
}


def get_strategy(name: str, max_tokens: int = 8192) -> PromptStrategy:
    """Factory: get the prompt strategy registered under ``name``."""
    cls = STRATEGY_REGISTRY.get(name)
    if cls is None:
        raise ValueError(f"No prompt strategy registered under: {name}")
    return cls(max_tokens=max_tokens)

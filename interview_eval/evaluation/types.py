"""Core types and DTOs for the evaluation pipeline.

Python attributes are snake_case; ``to_dict()`` emits the camelCase wire
shape that providers are instructed to return, so a serialized result can
be parsed back by ``parse_combined_result`` (and is what the cache stores).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ConfidenceLevel(str, Enum):
    """Provider-reported confidence in its own evaluation."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class QuestionType(str, Enum):
    """Question kinds requested from the question generator."""

    OPEN_ENDED = "open_ended"
    MCQ_PROPER = "mcq_proper"
    MCQ_ALL_CORRECT = "mcq_all_correct"


SCORE_BREAKDOWN_KEYS = (
    "technicalKnowledge",
    "problemSolving",
    "communication",
    "depthOfUnderstanding",
)


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class QAPair:
    """One captured question/answer pair. Position in the transcript is its number."""

    question: str
    answer: str


@dataclass(frozen=True)
class ValidationResult:
    """Advisory quality flag for a single answer. Never persisted, never raised."""

    is_valid: bool
    reason: str
    suggested_score_cap: float


# The validator's output is advisory only; the taxonomy name maps to it.
ValidationAdvisory = ValidationResult


@dataclass
class Question:
    """A generated interview question."""

    type: str = QuestionType.OPEN_ENDED.value
    question: str = ""
    options: list[str] = field(default_factory=list)
    correct_index: int = -1  # -1 when not a multiple-choice question

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type, "question": self.question}
        if self.options:
            data["options"] = list(self.options)
        if self.correct_index >= 0:
            data["correctIndex"] = self.correct_index
        return data


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


@dataclass
class QuestionAnalysis:
    """Per-question breakdown.

    final_score is the provider's own value; the prompt asks for
    round((relevance + correctness + depth) / 3, 1) but it is not recomputed
    unless the orchestrator is configured to.
    """

    question_number: int = 0  # 1-based, matches QAPair position
    relevance_score: float | None = None
    correctness_score: float | None = None
    depth_score: float | None = None
    final_score: float = 0.0
    what_you_answered: str = ""
    what_was_good: str = ""
    what_was_missing: str = ""
    ideal_answer: str = ""
    reasoning: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "questionNumber": self.question_number,
            "relevanceScore": self.relevance_score,
            "correctnessScore": self.correctness_score,
            "depthScore": self.depth_score,
            "finalScore": self.final_score,
            "whatYouAnswered": self.what_you_answered,
            "whatWasGood": self.what_was_good,
            "whatWasMissing": self.what_was_missing,
            "idealAnswer": self.ideal_answer,
            "reasoning": self.reasoning,
        }


@dataclass
class ImmediateAction:
    """Short-term action item suggested alongside the evaluation."""

    priority: str = ""
    action: str = ""
    why: str = ""
    resources: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "priority": self.priority,
            "action": self.action,
            "why": self.why,
            "resources": list(self.resources),
        }


@dataclass
class ComprehensiveEvaluation:
    overall_score: float | None = None  # 0-10
    confidence_level: ConfidenceLevel = ConfidenceLevel.MEDIUM
    score_breakdown: dict[str, float] = field(default_factory=dict)
    question_analysis: list[QuestionAnalysis] = field(default_factory=list)
    coach_feedback: str = ""
    top_strengths: list[str] = field(default_factory=list)
    critical_gaps: list[str] = field(default_factory=list)
    immediate_actions: list[ImmediateAction] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "overallScore": self.overall_score,
            "confidenceLevel": self.confidence_level.value,
            "scoreBreakdown": dict(self.score_breakdown),
            "questionAnalysis": [qa.to_dict() for qa in self.question_analysis],
            "coachFeedback": self.coach_feedback,
            "topStrengths": list(self.top_strengths),
            "criticalGaps": list(self.critical_gaps),
            "immediateActions": [a.to_dict() for a in self.immediate_actions],
        }


# ---------------------------------------------------------------------------
# Training plan
# ---------------------------------------------------------------------------


@dataclass
class Resource:
    type: str = ""  # video | article | course | book | practice
    title: str = ""
    link: str = ""
    duration: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "title": self.title, "link": self.link, "duration": self.duration}


@dataclass
class FocusArea:
    area: str = ""
    priority: str = ""  # High | Medium | Low
    current_level: int = 0
    target_level: int = 0
    estimated_hours: int = 0
    key_topics: list[str] = field(default_factory=list)
    resources: list[Resource] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "area": self.area,
            "priority": self.priority,
            "currentLevel": self.current_level,
            "targetLevel": self.target_level,
            "estimatedHours": self.estimated_hours,
            "keyTopics": list(self.key_topics),
            "resources": [r.to_dict() for r in self.resources],
        }


@dataclass
class PracticeProblem:
    problem: str = ""
    difficulty: str = ""
    focus_area: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"problem": self.problem, "difficulty": self.difficulty, "focusArea": self.focus_area}


@dataclass
class WeeklyPlan:
    week: int = 0  # expected contiguous from 1, not enforced
    theme: str = ""
    study_time: str = ""
    practice_time: str = ""
    topics: list[str] = field(default_factory=list)
    practice_problems: list[PracticeProblem] = field(default_factory=list)
    projects: list[str] = field(default_factory=list)
    weekend_task: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "week": self.week,
            "theme": self.theme,
            "studyTime": self.study_time,
            "practiceTime": self.practice_time,
            "topics": list(self.topics),
            "practiceProblems": [p.to_dict() for p in self.practice_problems],
            "projects": list(self.projects),
            "weekendTask": self.weekend_task,
        }


@dataclass
class Milestone:
    week: int = 0
    milestone: str = ""
    verification: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"week": self.week, "milestone": self.milestone, "verification": self.verification}


@dataclass
class TrainingPlan:
    readiness_score: int = 0  # 0-100
    target_score: int = 0  # 0-100
    time_to_target: str = ""
    focus_areas: list[FocusArea] = field(default_factory=list)
    weekly_plan: list[WeeklyPlan] = field(default_factory=list)
    milestones: list[Milestone] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "readinessScore": self.readiness_score,
            "targetScore": self.target_score,
            "timeToTarget": self.time_to_target,
            "focusAreas": [f.to_dict() for f in self.focus_areas],
            "weeklyPlan": [w.to_dict() for w in self.weekly_plan],
            "milestones": [m.to_dict() for m in self.milestones],
        }


# ---------------------------------------------------------------------------
# Combined result: the unit returned by the orchestrator and cached
# ---------------------------------------------------------------------------


@dataclass
class CombinedResult:
    evaluation: ComprehensiveEvaluation | None = None
    training_plan: TrainingPlan | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "evaluation": self.evaluation.to_dict() if self.evaluation else None,
            "trainingPlan": self.training_plan.to_dict() if self.training_plan else None,
        }

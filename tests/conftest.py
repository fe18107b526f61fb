import asyncio
import json
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from interview_eval.cache.store import CacheStore
from interview_eval.core.config import EvaluatorConfig
from interview_eval.evaluation.types import QAPair

HASH_MAP_QUESTION = "What is a hash map?"
HASH_MAP_ANSWER = (
    "A hash map stores key-value pairs using a hash function for O(1) average lookup, "
    "with collisions handled via chaining or open addressing."
)


def _question_analysis(number: int, score: float = 8.0) -> dict[str, Any]:
    return {
        "questionNumber": number,
        "relevanceScore": 9.0,
        "correctnessScore": 8.0,
        "depthScore": 7.0,
        "finalScore": score,
        "whatYouAnswered": "Explained hashing and collision handling.",
        "whatWasGood": "Mentioned chaining and open addressing.",
        "whatWasMissing": "No mention of load factor or resizing.",
        "idealAnswer": "Hash function, buckets, collisions, load factor, resizing.",
        "reasoning": "Accurate but not deep.",
    }


@pytest.fixture
def qa_history() -> list[QAPair]:
    return [QAPair(question=HASH_MAP_QUESTION, answer=HASH_MAP_ANSWER)]


@pytest.fixture
def make_payload():
    """Factory for a complete CombinedResult wire payload (dict)."""

    def _make(overall: float = 8.0, questions: int = 1, weeks: int = 2) -> dict[str, Any]:
        return {
            "evaluation": {
                "overallScore": overall,
                "confidenceLevel": "High",
                "scoreBreakdown": {
                    "technicalKnowledge": 8.0,
                    "problemSolving": 7.5,
                    "communication": 8.5,
                    "depthOfUnderstanding": 7.0,
                },
                "questionAnalysis": [_question_analysis(i) for i in range(1, questions + 1)],
                "coachFeedback": "Solid fundamentals. Go deeper on resizing behaviour.",
                "topStrengths": ["Clear definitions"],
                "criticalGaps": ["Load factor"],
            },
            "trainingPlan": {
                "readinessScore": 72,
                "targetScore": 85,
                "timeToTarget": "4 weeks",
                "focusAreas": [
                    {
                        "area": "Data structures",
                        "priority": "High",
                        "currentLevel": 6,
                        "targetLevel": 8,
                        "estimatedHours": 12,
                        "keyTopics": ["Hash tables", "Trees"],
                        "resources": [
                            {"type": "video", "title": "Hash tables", "link": "https://example.com/ht", "duration": "20m"}
                        ],
                    }
                ],
                "weeklyPlan": [
                    {
                        "week": w,
                        "theme": f"Week {w} theme",
                        "studyTime": "6 hours",
                        "practiceTime": "4 hours",
                        "topics": ["Hashing"],
                        "practiceProblems": [
                            {"problem": "Two Sum", "difficulty": "Easy", "focusArea": "Data structures"}
                        ],
                        "projects": ["LRU cache"],
                        "weekendTask": "Mock interview",
                    }
                    for w in range(1, weeks + 1)
                ],
                "milestones": [{"week": 2, "milestone": "Implement a hash map", "verification": "Passes tests"}],
            },
        }

    return _make


@pytest.fixture
def make_reply(make_payload):
    """Factory for provider reply text: fenced JSON wrapped in commentary."""

    def _make(payload: dict | None = None, **kwargs) -> str:
        body = json.dumps(payload if payload is not None else make_payload(**kwargs), indent=2)
        return f"Here is the evaluation you asked for:\n```json\n{body}\n```\nLet me know if you need more."

    return _make


@pytest.fixture
def config() -> EvaluatorConfig:
    return EvaluatorConfig(groq_api_key="gsk-test", gemini_api_key="gm-test")


@pytest.fixture
def redis_client() -> AsyncMock:
    """redis.asyncio client double: empty cache, successful writes."""
    client = AsyncMock()
    client.get.return_value = None
    client.set.return_value = True
    client.scan_iter = MagicMock()
    return client


@pytest.fixture
def cache(redis_client) -> CacheStore:
    return CacheStore(redis_client)


class FakeProvider:
    """Provider double: returns a fixed reply or raises, recording calls."""

    def __init__(self, name: str, reply: str | None = None, error: Exception | None = None, delay: float = 0.0):
        self.name = name
        self.reply = reply
        self.error = error
        self.delay = delay
        self.calls: list[tuple[str, int]] = []
        self.completed = False

    async def invoke(self, prompt: str, max_tokens: int) -> str:
        self.calls.append((prompt, max_tokens))
        if self.delay:
            await asyncio.sleep(self.delay)
        self.completed = True
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def fake_provider():
    return FakeProvider

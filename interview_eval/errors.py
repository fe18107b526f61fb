"""Error taxonomy of the evaluation pipeline.

Only AllProvidersFailedError and EvaluationTimeoutError ever leave the
orchestrator. ProviderError and ParseError are converted into fallback
transitions; CacheError is recovered inside the cache adapter.
"""

from __future__ import annotations

from dataclasses import dataclass


class EvaluationError(Exception):
    """Base class for all pipeline errors."""


class ProviderError(EvaluationError):
    """A single provider failed: transport, HTTP status or envelope problem."""

    def __init__(self, provider: str, message: str, status_code: int = 0, error_code: str = ""):
        super().__init__(f"[{provider}] {message}")
        self.provider = provider
        self.status_code = status_code
        self.error_code = error_code or (str(status_code) if status_code else "")


class ParseError(EvaluationError):
    """Provider text could not be mapped into the structured result."""


class CacheError(EvaluationError):
    """Key-value store failure. Never propagated past the cache adapter."""


@dataclass
class ProviderAttempt:
    """Record of one provider attempt inside a fallback chain."""

    provider: str
    error: str = ""
    succeeded: bool = False


class AllProvidersFailedError(EvaluationError):
    """Every enabled provider failed or none was enabled."""

    def __init__(self, attempts: list[ProviderAttempt] | None = None, message: str = "All AI services failed"):
        super().__init__(message)
        self.attempts = attempts or []


class EvaluationTimeoutError(EvaluationError):
    """The caller's wall-clock budget expired while waiting for the evaluation."""

    def __init__(self, timeout: float):
        super().__init__(f"Evaluation did not complete within {timeout:.0f}s")
        self.timeout = timeout

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Groq (primary, fast)
    groq_api_key: str = ""
    groq_enabled: bool = True
    groq_model: str = "llama-3.1-8b-instant"

    # Gemini (secondary, slower)
    gemini_api_key: str = ""
    gemini_enabled: bool = True
    gemini_model: str = "gemini-2.0-flash"

    # Generation
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)  # low for structured JSON output
    evaluation_max_tokens: int = 8192
    questions_max_tokens: int = 4096
    provider_timeout_seconds: float = 60.0

    # Orchestration
    evaluation_timeout_seconds: float = Field(default=60.0, gt=0)
    recompute_final_scores: bool = False
    prompt_strategy: Literal["strict", "compact"] = "strict"

    # Redis
    redis_url: str = "redis://localhost:6379/0"
    questions_cache_ttl_hours: int = 24
    evaluation_cache_ttl_minutes: int = 60  # 0 disables evaluation caching

    # App
    app_env: str = "development"

    # Logging
    log_level: str = "INFO"
    log_json: bool = False  # set True in production for structured JSON logs

    # Sentry
    sentry_dsn: str = ""  # leave empty to disable


settings = Settings()


@dataclass(frozen=True)
class EvaluatorConfig:
    """Immutable orchestrator configuration.

    Built once from Settings (or directly in tests) and handed to the
    orchestrator at construction, so the fallback chain never reads
    process-wide state.
    """

    groq_api_key: str = ""
    groq_enabled: bool = True
    groq_model: str = "llama-3.1-8b-instant"
    gemini_api_key: str = ""
    gemini_enabled: bool = True
    gemini_model: str = "gemini-2.0-flash"

    temperature: float = 0.2
    evaluation_max_tokens: int = 8192
    questions_max_tokens: int = 4096
    provider_timeout_seconds: float = 60.0

    evaluation_timeout_seconds: float = 60.0
    recompute_final_scores: bool = False
    prompt_strategy: str = "strict"

    questions_cache_ttl_seconds: int = 24 * 3600
    evaluation_cache_ttl_seconds: int = 3600

    @classmethod
    def from_settings(cls, s: Settings | None = None) -> EvaluatorConfig:
        s = s or settings
        return cls(
            groq_api_key=s.groq_api_key,
            groq_enabled=s.groq_enabled,
            groq_model=s.groq_model,
            gemini_api_key=s.gemini_api_key,
            gemini_enabled=s.gemini_enabled,
            gemini_model=s.gemini_model,
            temperature=s.temperature,
            evaluation_max_tokens=s.evaluation_max_tokens,
            questions_max_tokens=s.questions_max_tokens,
            provider_timeout_seconds=s.provider_timeout_seconds,
            evaluation_timeout_seconds=s.evaluation_timeout_seconds,
            recompute_final_scores=s.recompute_final_scores,
            prompt_strategy=s.prompt_strategy,
            questions_cache_ttl_seconds=s.questions_cache_ttl_hours * 3600,
            evaluation_cache_ttl_seconds=s.evaluation_cache_ttl_minutes * 60,
        )


def validate_settings_for_production(s: Settings | None = None) -> None:
    """Validate critical settings. Called on startup in non-test environments."""
    s = s or settings
    errors: list[str] = []

    if s.groq_enabled and not s.groq_api_key:
        errors.append("GROQ_API_KEY must be set when GROQ_ENABLED is true")
    if s.gemini_enabled and not s.gemini_api_key:
        errors.append("GEMINI_API_KEY must be set when GEMINI_ENABLED is true")
    if not (s.groq_enabled or s.gemini_enabled):
        errors.append("At least one of GROQ_ENABLED / GEMINI_ENABLED must be true")
    if s.prompt_strategy not in ("strict", "compact"):
        errors.append("PROMPT_STRATEGY must be 'strict' or 'compact'")

    if errors:
        raise SystemExit("Configuration errors:\n  - " + "\n  - ".join(errors))

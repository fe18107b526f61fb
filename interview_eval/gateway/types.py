"""Core types for the provider gateway."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ProviderName(str, Enum):
    """Supported LLM providers."""

    GROQ = "groq"  # primary: fast, OpenAI-compatible
    GEMINI = "gemini"  # secondary: slower, Google generateContent


@dataclass(frozen=True)
class ProviderConfig:
    """Connection and generation settings for one provider."""

    provider: ProviderName
    api_key: str = ""
    model: str = ""  # empty → adapter default
    enabled: bool = True
    temperature: float = 0.2  # low for deterministic structured output
    timeout_seconds: float = 60.0  # HTTP timeout for one call

    @property
    def usable(self) -> bool:
        return self.enabled and bool(self.api_key)

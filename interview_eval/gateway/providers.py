"""Provider adapters: protocol-level handling for each LLM provider.

Each adapter turns a prompt into the provider's HTTP request, sends it and
returns the raw reply text. Any failure raises ProviderError; adapters never
retry, fallback is the orchestrator's job.

Provider-specific behaviors:
  - Groq: OpenAI-compatible chat completions, Bearer auth,
    text in choices[0].message.content
  - Gemini: generateContent, API key as query param, systemInstruction,
    text in candidates[0].content.parts[*].text, SAFETY / blockReason → error
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any

import httpx

from interview_eval.core.config import EvaluatorConfig
from interview_eval.core.metrics import PROVIDER_CALLS, PROVIDER_LATENCY
from interview_eval.errors import ProviderError
from interview_eval.evaluation.prompts import JSON_ONLY_INSTRUCTION
from interview_eval.gateway.types import ProviderConfig, ProviderName

logger = logging.getLogger(__name__)


class ProviderAdapter(ABC):
    """Base class for all provider adapters."""

    provider: ProviderName
    default_model: str = ""

    def __init__(self, config: ProviderConfig):
        self.config = config
        self.model = config.model or self.default_model

    @property
    def name(self) -> str:
        return self.provider.value

    @abstractmethod
    def _build_request(self, prompt: str, max_tokens: int) -> dict[str, Any]:
        """Return httpx.post kwargs: url, json, headers, optionally params."""
        ...

    @abstractmethod
    def _extract_text(self, data: dict[str, Any]) -> str:
        """Pull the reply text out of the provider envelope or raise ProviderError."""
        ...

    async def invoke(self, prompt: str, max_tokens: int) -> str:
        """Send ``prompt`` and return the provider's raw text reply."""
        request = self._build_request(prompt, max_tokens)
        timeout = self.config.timeout_seconds
        start = time.monotonic()

        try:
            try:
                async with httpx.AsyncClient(timeout=timeout) as client:
                    resp = await client.post(**request)
            except httpx.TimeoutException as e:
                raise ProviderError(self.name, f"Timeout after {timeout}s", error_code="TIMEOUT") from e
            except httpx.HTTPError as e:
                raise ProviderError(self.name, f"Transport error: {e}", error_code="TRANSPORT") from e
            finally:
                PROVIDER_LATENCY.labels(provider=self.name).observe(time.monotonic() - start)

            if resp.status_code == 429:
                raise ProviderError(self.name, "Rate limited", status_code=429)
            if not resp.is_success:
                raise ProviderError(
                    self.name,
                    f"HTTP {resp.status_code}: {resp.text[:200]}",
                    status_code=resp.status_code,
                )
            if not resp.content:
                raise ProviderError(self.name, "Empty response body", status_code=resp.status_code)

            try:
                data = resp.json()
            except ValueError as e:
                raise ProviderError(self.name, "Response body is not JSON", status_code=resp.status_code) from e
            if not isinstance(data, dict):
                raise ProviderError(self.name, "Unexpected response envelope", status_code=resp.status_code)

            text = self._extract_text(data)
            if not text.strip():
                raise ProviderError(self.name, "Empty completion text", status_code=resp.status_code)

        except ProviderError:
            PROVIDER_CALLS.labels(provider=self.name, outcome="error").inc()
            raise

        PROVIDER_CALLS.labels(provider=self.name, outcome="success").inc()
        logger.debug(
            "%s replied in %dms (%d chars, usage=%s)",
            self.name,
            int((time.monotonic() - start) * 1000),
            len(text),
            self._usage(data),
        )
        return text

    def _usage(self, data: dict[str, Any]) -> dict[str, Any]:
        return {}


# ---------------------------------------------------------------------------
# Groq Adapter (OpenAI-compatible)
# ---------------------------------------------------------------------------


class GroqAdapter(ProviderAdapter):
    """Groq chat completions adapter."""

    provider = ProviderName.GROQ
    default_model = "llama-3.1-8b-instant"
    api_url = "https://api.groq.com/openai/v1/chat/completions"

    def _build_request(self, prompt: str, max_tokens: int) -> dict[str, Any]:
        return {
            "url": self.api_url,
            "json": {
                "model": self.model,
                "messages": [
                    {"role": "system", "content": JSON_ONLY_INSTRUCTION},
                    {"role": "user", "content": prompt},
                ],
                "temperature": self.config.temperature,
                "max_tokens": max_tokens,
            },
            "headers": {
                "Authorization": f"Bearer {self.config.api_key}",
                "Content-Type": "application/json",
            },
        }

    def _extract_text(self, data: dict[str, Any]) -> str:
        choices = data.get("choices") or []
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            raise ProviderError(self.name, "No choices in response", error_code="NO_CHOICES")
        message = choices[0].get("message") or {}
        if not isinstance(message, dict):
            raise ProviderError(self.name, "choices[0].message is not an object", error_code="BAD_ENVELOPE")
        content = message.get("content") or ""
        if not isinstance(content, str):
            raise ProviderError(self.name, "choices[0].message.content is not text", error_code="BAD_ENVELOPE")
        return content

    def _usage(self, data: dict[str, Any]) -> dict[str, Any]:
        usage = data.get("usage")
        if not isinstance(usage, dict):
            return {}
        return {
            "input": usage.get("prompt_tokens", 0),
            "output": usage.get("completion_tokens", 0),
        }


# ---------------------------------------------------------------------------
# Gemini Adapter (Google AI)
# ---------------------------------------------------------------------------


class GeminiAdapter(ProviderAdapter):
    """Google Gemini adapter with SAFETY filter detection."""

    provider = ProviderName.GEMINI
    default_model = "gemini-2.0-flash"
    api_url_template = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

    def _build_request(self, prompt: str, max_tokens: int) -> dict[str, Any]:
        return {
            "url": self.api_url_template.format(model=self.model),
            "json": {
                "contents": [{"role": "user", "parts": [{"text": prompt}]}],
                # System instruction is separate from contents in Gemini API
                "systemInstruction": {"parts": [{"text": JSON_ONLY_INSTRUCTION}]},
                "generationConfig": {
                    "temperature": self.config.temperature,
                    "maxOutputTokens": max_tokens,
                    "responseMimeType": "application/json",
                },
            },
            "params": {"key": self.config.api_key},
            "headers": {"Content-Type": "application/json"},
        }

    def _extract_text(self, data: dict[str, Any]) -> str:
        candidates = data.get("candidates") or []
        if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
            feedback = data.get("promptFeedback")
            block_reason = feedback.get("blockReason", "") if isinstance(feedback, dict) else ""
            if block_reason:
                raise ProviderError(
                    self.name, f"Prompt blocked: {block_reason}", error_code=f"BLOCKED_{block_reason}"
                )
            raise ProviderError(self.name, "No candidates in response", error_code="NO_CANDIDATES")

        candidate = candidates[0]
        if candidate.get("finishReason") == "SAFETY":
            raise ProviderError(self.name, "Safety filter triggered", error_code="SAFETY")

        content = candidate.get("content") or {}
        if not isinstance(content, dict):
            raise ProviderError(self.name, "candidates[0].content is not an object", error_code="BAD_ENVELOPE")
        parts = content.get("parts") or []
        if not isinstance(parts, list) or not all(isinstance(p, dict) for p in parts):
            raise ProviderError(self.name, "candidates[0].content.parts is malformed", error_code="BAD_ENVELOPE")
        texts = [p["text"] for p in parts if "text" in p]
        if not all(isinstance(t, str) for t in texts):
            raise ProviderError(self.name, "candidates[0].content.parts[].text is not text", error_code="BAD_ENVELOPE")
        return "".join(texts)

    def _usage(self, data: dict[str, Any]) -> dict[str, Any]:
        usage = data.get("usageMetadata")
        if not isinstance(usage, dict):
            return {}
        return {
            "input": usage.get("promptTokenCount", 0),
            "output": usage.get("candidatesTokenCount", 0),
        }


# ---------------------------------------------------------------------------
# Adapter registry
# ---------------------------------------------------------------------------

ADAPTER_REGISTRY: dict[ProviderName, type[ProviderAdapter]] = {
    ProviderName.GROQ: GroqAdapter,
    ProviderName.GEMINI: GeminiAdapter,
}


def get_adapter(config: ProviderConfig) -> ProviderAdapter:
    """Factory: get the appropriate adapter for a provider config."""
    cls = ADAPTER_REGISTRY.get(config.provider)
    if cls is None:
        raise ValueError(f"No adapter registered for provider: {config.provider}")
    return cls(config)


def provider_configs(config: EvaluatorConfig) -> tuple[ProviderConfig, ProviderConfig]:
    """Primary (Groq) and secondary (Gemini) provider configs."""
    primary = ProviderConfig(
        provider=ProviderName.GROQ,
        api_key=config.groq_api_key,
        model=config.groq_model,
        enabled=config.groq_enabled,
        temperature=config.temperature,
        timeout_seconds=config.provider_timeout_seconds,
    )
    secondary = ProviderConfig(
        provider=ProviderName.GEMINI,
        api_key=config.gemini_api_key,
        model=config.gemini_model,
        enabled=config.gemini_enabled,
        temperature=config.temperature,
        timeout_seconds=config.provider_timeout_seconds,
    )
    return primary, secondary


def build_providers(config: EvaluatorConfig) -> tuple[ProviderAdapter | None, ProviderAdapter | None]:
    """Adapters for the enabled providers; None where disabled or without a key."""
    adapters: list[ProviderAdapter | None] = []
    for pc in provider_configs(config):
        if pc.usable:
            adapters.append(get_adapter(pc))
        else:
            logger.info("Provider %s disabled or missing API key", pc.provider.value)
            adapters.append(None)
    return adapters[0], adapters[1]

"""Tests for the provider adapters (mocked HTTP)."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from interview_eval.core.config import EvaluatorConfig
from interview_eval.errors import ProviderError
from interview_eval.evaluation.prompts import JSON_ONLY_INSTRUCTION
from interview_eval.gateway.providers import (
    ADAPTER_REGISTRY,
    GeminiAdapter,
    GroqAdapter,
    build_providers,
    get_adapter,
    provider_configs,
)
from interview_eval.gateway.types import ProviderConfig, ProviderName

PATCH_TARGET = "interview_eval.gateway.providers.httpx.AsyncClient"


def _make_httpx_response(status_code: int, json_data: dict | list | None = None, text: str = "") -> httpx.Response:
    request = httpx.Request("POST", "https://example.com")
    if json_data is not None:
        return httpx.Response(status_code, json=json_data, request=request)
    return httpx.Response(status_code, text=text, request=request)


def _groq_response(text='{"ok": true}'):
    return _make_httpx_response(
        200,
        json_data={
            "choices": [{"message": {"role": "assistant", "content": text}, "finish_reason": "stop"}],
            "usage": {"prompt_tokens": 120, "completion_tokens": 40},
        },
    )


def _gemini_response(text='{"ok": true}', finish_reason="STOP"):
    return _make_httpx_response(
        200,
        json_data={
            "candidates": [
                {"content": {"parts": [{"text": text}], "role": "model"}, "finishReason": finish_reason}
            ],
            "usageMetadata": {"promptTokenCount": 120, "candidatesTokenCount": 40},
        },
    )


def _mock_client(mock_client_cls, response=None, side_effect=None) -> AsyncMock:
    mock_client = AsyncMock()
    if side_effect is not None:
        mock_client.post.side_effect = side_effect
    else:
        mock_client.post.return_value = response
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=None)
    mock_client_cls.return_value = mock_client
    return mock_client


def _groq() -> GroqAdapter:
    return GroqAdapter(ProviderConfig(provider=ProviderName.GROQ, api_key="gsk-test"))


def _gemini() -> GeminiAdapter:
    return GeminiAdapter(ProviderConfig(provider=ProviderName.GEMINI, api_key="gm-test"))


# ==========================================================================
# Groq
# ==========================================================================


class TestGroqAdapter:
    @pytest.mark.asyncio
    async def test_success(self):
        with patch(PATCH_TARGET) as mock_client_cls:
            mock_client = _mock_client(mock_client_cls, _groq_response("hello"))
            text = await _groq().invoke("Evaluate this", max_tokens=8192)

        assert text == "hello"
        mock_client_cls.assert_called_once_with(timeout=60.0)
        kwargs = mock_client.post.call_args.kwargs
        assert kwargs["url"] == GroqAdapter.api_url
        assert kwargs["headers"]["Authorization"] == "Bearer gsk-test"
        body = kwargs["json"]
        assert body["model"] == "llama-3.1-8b-instant"
        assert body["temperature"] == 0.2
        assert body["max_tokens"] == 8192
        assert body["messages"] == [
            {"role": "system", "content": JSON_ONLY_INSTRUCTION},
            {"role": "user", "content": "Evaluate this"},
        ]

    @pytest.mark.asyncio
    async def test_custom_model_and_timeout(self):
        adapter = GroqAdapter(
            ProviderConfig(provider=ProviderName.GROQ, api_key="k", model="llama-3.3-70b", timeout_seconds=15.0)
        )
        with patch(PATCH_TARGET) as mock_client_cls:
            mock_client = _mock_client(mock_client_cls, _groq_response())
            await adapter.invoke("p", max_tokens=100)

        mock_client_cls.assert_called_once_with(timeout=15.0)
        assert mock_client.post.call_args.kwargs["json"]["model"] == "llama-3.3-70b"

    @pytest.mark.asyncio
    async def test_server_error(self):
        with patch(PATCH_TARGET) as mock_client_cls:
            _mock_client(mock_client_cls, _make_httpx_response(500, text="internal error"))
            with pytest.raises(ProviderError) as exc_info:
                await _groq().invoke("p", max_tokens=100)

        assert exc_info.value.provider == "groq"
        assert exc_info.value.status_code == 500
        assert exc_info.value.error_code == "500"
        assert "internal error" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_rate_limited(self):
        with patch(PATCH_TARGET) as mock_client_cls:
            _mock_client(mock_client_cls, _make_httpx_response(429, text="rate limited"))
            with pytest.raises(ProviderError) as exc_info:
                await _groq().invoke("p", max_tokens=100)

        assert exc_info.value.error_code == "429"
        assert "Rate limited" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_timeout(self):
        with patch(PATCH_TARGET) as mock_client_cls:
            _mock_client(mock_client_cls, side_effect=httpx.TimeoutException("timeout"))
            with pytest.raises(ProviderError) as exc_info:
                await _groq().invoke("p", max_tokens=100)

        assert exc_info.value.error_code == "TIMEOUT"

    @pytest.mark.asyncio
    async def test_connection_error(self):
        with patch(PATCH_TARGET) as mock_client_cls:
            _mock_client(mock_client_cls, side_effect=httpx.ConnectError("connection refused"))
            with pytest.raises(ProviderError) as exc_info:
                await _groq().invoke("p", max_tokens=100)

        assert exc_info.value.error_code == "TRANSPORT"

    @pytest.mark.asyncio
    async def test_empty_choices(self):
        with patch(PATCH_TARGET) as mock_client_cls:
            _mock_client(mock_client_cls, _make_httpx_response(200, json_data={"choices": []}))
            with pytest.raises(ProviderError) as exc_info:
                await _groq().invoke("p", max_tokens=100)

        assert exc_info.value.error_code == "NO_CHOICES"

    @pytest.mark.asyncio
    async def test_empty_body(self):
        with patch(PATCH_TARGET) as mock_client_cls:
            _mock_client(mock_client_cls, _make_httpx_response(200, text=""))
            with pytest.raises(ProviderError, match="Empty response body"):
                await _groq().invoke("p", max_tokens=100)

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        with patch(PATCH_TARGET) as mock_client_cls:
            _mock_client(mock_client_cls, _make_httpx_response(200, text="<html>gateway</html>"))
            with pytest.raises(ProviderError, match="not JSON"):
                await _groq().invoke("p", max_tokens=100)

    @pytest.mark.asyncio
    async def test_non_object_envelope(self):
        with patch(PATCH_TARGET) as mock_client_cls:
            _mock_client(mock_client_cls, _make_httpx_response(200, json_data=["unexpected"]))
            with pytest.raises(ProviderError, match="Unexpected response envelope"):
                await _groq().invoke("p", max_tokens=100)

    @pytest.mark.asyncio
    async def test_blank_completion(self):
        with patch(PATCH_TARGET) as mock_client_cls:
            _mock_client(mock_client_cls, _groq_response("   "))
            with pytest.raises(ProviderError, match="Empty completion text"):
                await _groq().invoke("p", max_tokens=100)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "envelope",
        [
            {"choices": [{"message": "oops"}]},
            {"choices": [{"message": {"content": ["not", "text"]}}]},
            {"choices": [{"message": {"content": {"text": "hi"}}}]},
        ],
    )
    async def test_wrong_type_envelope_fields(self, envelope):
        with patch(PATCH_TARGET) as mock_client_cls:
            _mock_client(mock_client_cls, _make_httpx_response(200, json_data=envelope))
            with pytest.raises(ProviderError) as exc_info:
                await _groq().invoke("p", max_tokens=100)

        assert exc_info.value.error_code == "BAD_ENVELOPE"
        assert exc_info.value.provider == "groq"

    @pytest.mark.asyncio
    async def test_malformed_usage_ignored(self):
        response = _make_httpx_response(
            200,
            json_data={"choices": [{"message": {"content": "hello"}}], "usage": "n/a"},
        )
        with patch(PATCH_TARGET) as mock_client_cls:
            _mock_client(mock_client_cls, response)
            text = await _groq().invoke("p", max_tokens=100)

        assert text == "hello"


# ==========================================================================
# Gemini
# ==========================================================================


class TestGeminiAdapter:
    @pytest.mark.asyncio
    async def test_success(self):
        with patch(PATCH_TARGET) as mock_client_cls:
            mock_client = _mock_client(mock_client_cls, _gemini_response("hello"))
            text = await _gemini().invoke("Evaluate this", max_tokens=8192)

        assert text == "hello"
        kwargs = mock_client.post.call_args.kwargs
        assert kwargs["url"].endswith("/models/gemini-2.0-flash:generateContent")
        assert kwargs["params"] == {"key": "gm-test"}
        assert "Authorization" not in kwargs["headers"]
        body = kwargs["json"]
        assert body["contents"] == [{"role": "user", "parts": [{"text": "Evaluate this"}]}]
        assert body["systemInstruction"] == {"parts": [{"text": JSON_ONLY_INSTRUCTION}]}
        assert body["generationConfig"]["temperature"] == 0.2
        assert body["generationConfig"]["maxOutputTokens"] == 8192
        assert body["generationConfig"]["responseMimeType"] == "application/json"

    @pytest.mark.asyncio
    async def test_multiple_parts_joined(self):
        response = _make_httpx_response(
            200,
            json_data={
                "candidates": [
                    {"content": {"parts": [{"text": '{"a": '}, {"text": "1}"}]}, "finishReason": "STOP"}
                ]
            },
        )
        with patch(PATCH_TARGET) as mock_client_cls:
            _mock_client(mock_client_cls, response)
            text = await _gemini().invoke("p", max_tokens=100)

        assert text == '{"a": 1}'

    @pytest.mark.asyncio
    async def test_safety_filter(self):
        with patch(PATCH_TARGET) as mock_client_cls:
            _mock_client(mock_client_cls, _gemini_response("", finish_reason="SAFETY"))
            with pytest.raises(ProviderError) as exc_info:
                await _gemini().invoke("p", max_tokens=100)

        assert exc_info.value.error_code == "SAFETY"

    @pytest.mark.asyncio
    async def test_prompt_blocked(self):
        blocked = _make_httpx_response(
            200,
            json_data={"candidates": [], "promptFeedback": {"blockReason": "SAFETY"}},
        )
        with patch(PATCH_TARGET) as mock_client_cls:
            _mock_client(mock_client_cls, blocked)
            with pytest.raises(ProviderError) as exc_info:
                await _gemini().invoke("p", max_tokens=100)

        assert exc_info.value.error_code == "BLOCKED_SAFETY"

    @pytest.mark.asyncio
    async def test_no_candidates(self):
        with patch(PATCH_TARGET) as mock_client_cls:
            _mock_client(mock_client_cls, _make_httpx_response(200, json_data={}))
            with pytest.raises(ProviderError) as exc_info:
                await _gemini().invoke("p", max_tokens=100)

        assert exc_info.value.error_code == "NO_CANDIDATES"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "candidate",
        [
            {"content": "oops", "finishReason": "STOP"},
            {"content": {"parts": "text"}, "finishReason": "STOP"},
            {"content": {"parts": ["text"]}, "finishReason": "STOP"},
            {"content": {"parts": [{"text": 42}]}, "finishReason": "STOP"},
        ],
    )
    async def test_wrong_type_envelope_fields(self, candidate):
        with patch(PATCH_TARGET) as mock_client_cls:
            _mock_client(mock_client_cls, _make_httpx_response(200, json_data={"candidates": [candidate]}))
            with pytest.raises(ProviderError) as exc_info:
                await _gemini().invoke("p", max_tokens=100)

        assert exc_info.value.error_code == "BAD_ENVELOPE"
        assert exc_info.value.provider == "gemini"

    @pytest.mark.asyncio
    async def test_malformed_prompt_feedback(self):
        response = _make_httpx_response(200, json_data={"candidates": [], "promptFeedback": "blocked"})
        with patch(PATCH_TARGET) as mock_client_cls:
            _mock_client(mock_client_cls, response)
            with pytest.raises(ProviderError) as exc_info:
                await _gemini().invoke("p", max_tokens=100)

        assert exc_info.value.error_code == "NO_CANDIDATES"

    @pytest.mark.asyncio
    async def test_server_error(self):
        with patch(PATCH_TARGET) as mock_client_cls:
            _mock_client(mock_client_cls, _make_httpx_response(503, text="overloaded"))
            with pytest.raises(ProviderError) as exc_info:
                await _gemini().invoke("p", max_tokens=100)

        assert exc_info.value.provider == "gemini"
        assert exc_info.value.status_code == 503


# ==========================================================================
# Registry and construction
# ==========================================================================


class TestAdapterRegistry:
    def test_registry_covers_all_providers(self):
        assert set(ADAPTER_REGISTRY) == set(ProviderName)

    def test_get_adapter(self):
        adapter = get_adapter(ProviderConfig(provider=ProviderName.GEMINI, api_key="k"))
        assert isinstance(adapter, GeminiAdapter)
        assert adapter.name == "gemini"
        assert adapter.model == "gemini-2.0-flash"

    def test_provider_configs_order(self, config):
        primary, secondary = provider_configs(config)
        assert primary.provider == ProviderName.GROQ
        assert primary.api_key == "gsk-test"
        assert secondary.provider == ProviderName.GEMINI
        assert secondary.temperature == 0.2

    def test_build_providers(self, config):
        primary, secondary = build_providers(config)
        assert isinstance(primary, GroqAdapter)
        assert isinstance(secondary, GeminiAdapter)

    def test_disabled_provider_is_none(self):
        config = EvaluatorConfig(groq_api_key="k", gemini_api_key="k", groq_enabled=False)
        primary, secondary = build_providers(config)
        assert primary is None
        assert isinstance(secondary, GeminiAdapter)

    def test_missing_key_is_none(self):
        primary, secondary = build_providers(EvaluatorConfig(groq_api_key="k"))
        assert isinstance(primary, GroqAdapter)
        assert secondary is None

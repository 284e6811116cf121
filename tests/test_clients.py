"""Tests for the provider clients. No network: urlopen and the SDK are mocked."""

import asyncio
import io
import json
import urllib.error
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import anthropic
import httpx
import pytest

from mailsim.llm import (
    ClaudeClient,
    GeminiClient,
    GenerationOptions,
    GrokClient,
    OpenAIClient,
    OpenAICompatibleClient,
    OpenRouterClient,
    ProviderError,
    RateLimitError,
    create_model_router,
)


def fake_response(payload: dict) -> MagicMock:
    """urlopen() result usable as a context manager."""
    resp = MagicMock()
    resp.read.return_value = json.dumps(payload).encode("utf-8")
    resp.__enter__.return_value = resp
    resp.__exit__.return_value = False
    return resp


def http_error(code: int, body: bytes = b"error body") -> urllib.error.HTTPError:
    return urllib.error.HTTPError("https://example.test", code, "error", {}, io.BytesIO(body))


CHAT_OK = {
    "choices": [{"message": {"content": "Hello from the API"}}],
    "usage": {"prompt_tokens": 12, "completion_tokens": 5},
}


class TestOpenAICompatible:
    """Chat completions over urllib."""

    def test_parses_text_and_usage(self):
        """Content and token counts come from the response body."""
        client = OpenAICompatibleClient(api_key="k", model="m")
        with patch("urllib.request.urlopen", return_value=fake_response(CHAT_OK)):
            result = asyncio.run(client.generate("hi", GenerationOptions()))

        assert result.text == "Hello from the API"
        assert result.usage.input_tokens == 12
        assert result.usage.output_tokens == 5

    def test_payload_includes_system_and_stop(self):
        """System prompt goes first, stop sequences map to 'stop'."""
        client = OpenAICompatibleClient(api_key="k", model="m")
        with patch("urllib.request.urlopen", return_value=fake_response(CHAT_OK)) as urlopen:
            asyncio.run(client.generate(
                "hi",
                GenerationOptions(temperature=0.2, system_prompt="be brief", stop_sequences=["END"]),
            ))

        request = urlopen.call_args[0][0]
        body = json.loads(request.data)
        assert request.full_url == "https://api.openai.com/v1/chat/completions"
        assert body["messages"][0] == {"role": "system", "content": "be brief"}
        assert body["temperature"] == 0.2
        assert body["stop"] == ["END"]
        assert body["max_tokens"] == 2048

    def test_missing_usage_is_estimated(self):
        """No usage block: tokens are estimated from text length."""
        client = OpenAICompatibleClient(api_key="k", model="m")
        payload = {"choices": [{"message": {"content": "abcdefgh"}}]}
        with patch("urllib.request.urlopen", return_value=fake_response(payload)):
            result = asyncio.run(client.generate("abcd", GenerationOptions()))

        assert result.usage.input_tokens == 1
        assert result.usage.output_tokens == 2

    def test_429_is_rate_limit(self):
        """HTTP 429 raises RateLimitError."""
        client = OpenAICompatibleClient(api_key="k", model="m")
        with patch("urllib.request.urlopen", side_effect=http_error(429, b"slow down")):
            with pytest.raises(RateLimitError) as exc:
                asyncio.run(client.generate("hi", GenerationOptions()))
        assert exc.value.status_code == 429
        assert "slow down" in str(exc.value)

    def test_500_is_provider_error(self):
        """Other HTTP errors keep their status code."""
        client = OpenAICompatibleClient(api_key="k", model="m")
        with patch("urllib.request.urlopen", side_effect=http_error(500)):
            with pytest.raises(ProviderError) as exc:
                asyncio.run(client.generate("hi", GenerationOptions()))
        assert exc.value.status_code == 500
        assert not isinstance(exc.value, RateLimitError)

    def test_connection_failure(self):
        """URLError becomes a ProviderError without status."""
        client = OpenAICompatibleClient(api_key="k", model="m")
        with patch("urllib.request.urlopen", side_effect=urllib.error.URLError("refused")):
            with pytest.raises(ProviderError) as exc:
                asyncio.run(client.generate("hi", GenerationOptions()))
        assert exc.value.status_code is None

    def test_malformed_response(self):
        """A body without choices is a provider error."""
        client = OpenAICompatibleClient(api_key="k", model="m")
        with patch("urllib.request.urlopen", return_value=fake_response({"error": "?"})):
            with pytest.raises(ProviderError, match="Malformed"):
                asyncio.run(client.generate("hi", GenerationOptions()))

    def test_requires_key(self):
        """An empty key is rejected up front."""
        with pytest.raises(ValueError):
            OpenAICompatibleClient(api_key="", model="m")


class TestProviderVariants:
    """OpenAI, Grok and OpenRouter defaults."""

    def test_openai_forces_temperature(self):
        """The nano tier always sends temperature 1.0 and max_completion_tokens."""
        client = OpenAIClient(api_key="k")
        with patch("urllib.request.urlopen", return_value=fake_response(CHAT_OK)) as urlopen:
            asyncio.run(client.generate("hi", GenerationOptions(temperature=0.3)))

        body = json.loads(urlopen.call_args[0][0].data)
        assert body["temperature"] == 1.0
        assert "max_completion_tokens" in body
        assert "max_tokens" not in body

    def test_grok_endpoint(self):
        """Grok talks to api.x.ai."""
        client = GrokClient(api_key="k")
        with patch("urllib.request.urlopen", return_value=fake_response(CHAT_OK)) as urlopen:
            asyncio.run(client.generate("hi", GenerationOptions()))

        assert urlopen.call_args[0][0].full_url == "https://api.x.ai/v1/chat/completions"

    def test_openrouter_resolves_short_names(self):
        """Short names map to provider/model paths; full paths pass through."""
        assert OpenRouterClient(api_key="k").model_name == "deepseek/deepseek-chat-v3.1"
        assert OpenRouterClient(api_key="k", model="acme/custom").model_name == "acme/custom"

    def test_openrouter_attribution_headers(self):
        """Referer and title headers are sent."""
        client = OpenRouterClient(api_key="k", site_name="test-site")
        with patch("urllib.request.urlopen", return_value=fake_response(CHAT_OK)) as urlopen:
            asyncio.run(client.generate("hi", GenerationOptions()))

        request = urlopen.call_args[0][0]
        assert request.get_header("X-title") == "test-site"
        assert request.get_header("Authorization") == "Bearer k"


class TestGemini:
    """Gemini generateContent."""

    def test_parses_candidates(self):
        """Text and usage metadata are read from the first candidate."""
        payload = {
            "candidates": [{"content": {"parts": [{"text": "gemini says hi"}]}}],
            "usageMetadata": {"promptTokenCount": 7, "candidatesTokenCount": 3},
        }
        client = GeminiClient(api_key="g")
        with patch("urllib.request.urlopen", return_value=fake_response(payload)) as urlopen:
            result = asyncio.run(client.generate("hi", GenerationOptions(system_prompt="sys")))

        request = urlopen.call_args[0][0]
        body = json.loads(request.data)
        assert result.text == "gemini says hi"
        assert result.usage.input_tokens == 7
        assert "key=g" in request.full_url
        assert body["systemInstruction"] == {"parts": [{"text": "sys"}]}

    def test_429_is_rate_limit(self):
        client = GeminiClient(api_key="g")
        with patch("urllib.request.urlopen", side_effect=http_error(429)):
            with pytest.raises(RateLimitError):
                asyncio.run(client.generate("hi", GenerationOptions()))

    def test_empty_candidates_is_error(self):
        client = GeminiClient(api_key="g")
        with patch("urllib.request.urlopen", return_value=fake_response({"candidates": []})):
            with pytest.raises(ProviderError):
                asyncio.run(client.generate("hi", GenerationOptions()))


def claude_with(create: AsyncMock) -> ClaudeClient:
    sdk = MagicMock()
    sdk.messages.create = create
    return ClaudeClient(model="haiku", client=sdk)


ANTHROPIC_REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


class TestClaude:
    """Anthropic SDK wrapper."""

    def test_joins_text_blocks(self):
        """Only text blocks are kept; usage comes from the SDK."""
        response = SimpleNamespace(
            content=[
                SimpleNamespace(type="text", text="Hello "),
                SimpleNamespace(type="tool_use", text="ignored"),
                SimpleNamespace(type="text", text="there"),
            ],
            usage=SimpleNamespace(input_tokens=20, output_tokens=4),
        )
        create = AsyncMock(return_value=response)
        client = claude_with(create)

        result = asyncio.run(client.generate("hi", GenerationOptions(temperature=0.1, system_prompt="sys")))

        assert result.text == "Hello there"
        assert result.usage.output_tokens == 4
        kwargs = create.call_args.kwargs
        assert kwargs["model"] == "claude-haiku-4-5-20251001"
        assert kwargs["system"] == "sys"
        assert kwargs["temperature"] == 0.1

    def test_empty_text_is_error(self):
        response = SimpleNamespace(content=[], usage=SimpleNamespace(input_tokens=1, output_tokens=0))
        client = claude_with(AsyncMock(return_value=response))

        with pytest.raises(ProviderError):
            asyncio.run(client.generate("hi", GenerationOptions()))

    def test_sdk_rate_limit_maps(self):
        """anthropic.RateLimitError becomes our RateLimitError."""
        error = anthropic.RateLimitError(
            "rate limited",
            response=httpx.Response(429, request=ANTHROPIC_REQUEST),
            body=None,
        )
        client = claude_with(AsyncMock(side_effect=error))

        with pytest.raises(RateLimitError) as exc:
            asyncio.run(client.generate("hi", GenerationOptions()))
        assert exc.value.status_code == 429

    def test_sdk_status_error_maps(self):
        """Other API status errors keep their code."""
        error = anthropic.InternalServerError(
            "overloaded",
            response=httpx.Response(529, request=ANTHROPIC_REQUEST),
            body=None,
        )
        client = claude_with(AsyncMock(side_effect=error))

        with pytest.raises(ProviderError) as exc:
            asyncio.run(client.generate("hi", GenerationOptions()))
        assert exc.value.status_code == 529

    def test_sdk_connection_error_maps(self):
        error = anthropic.APIConnectionError(request=ANTHROPIC_REQUEST)
        client = claude_with(AsyncMock(side_effect=error))

        with pytest.raises(ProviderError):
            asyncio.run(client.generate("hi", GenerationOptions()))


class TestFactory:
    """create_model_router wiring from environment keys."""

    def test_no_keys_no_clients(self):
        router = create_model_router(env={})
        assert router.available_models() == []

    def test_keys_enable_slots(self):
        """Each key turns on its provider's slots."""
        router = create_model_router(env={
            "OPENAI_API_KEY": "o",
            "XAI_API_KEY": "x",
            "OPENROUTER_API_KEY": "r",
        })
        models = router.available_models()

        assert "gpt-4o-mini" in models
        assert "grok-fast" in models
        assert "openrouter-cheap" in models
        assert "claude-haiku" not in models
        assert "gemini-flash" not in models

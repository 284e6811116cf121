"""
Gemini API client.

Talks to the Generative Language REST endpoint directly; the key travels
as a query parameter.
"""

import asyncio
import json
import time
import urllib.error
import urllib.parse
import urllib.request

from .base import (
    GenerationOptions,
    GenerationResult,
    LLMClient,
    ProviderError,
    RateLimitError,
    UsageStats,
    estimate_tokens,
)


class GeminiClient(LLMClient):
    """
    Client for Google's Gemini API.

    Requires: GOOGLE_AI_API_KEY environment variable (or api_key)
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-3-flash-preview",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: int = 120,
    ):
        if not api_key:
            raise ValueError("Gemini API key not set")
        self.api_key = api_key
        self._model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @property
    def model_name(self) -> str:
        return self._model

    def _make_request(self, data: dict) -> dict:
        query = urllib.parse.urlencode({"key": self.api_key})
        url = f"{self.base_url}/models/{self._model}:generateContent?{query}"
        req = urllib.request.Request(
            url,
            data=json.dumps(data).encode("utf-8"),
            headers={"Content-Type": "application/json"},
            method="POST",
        )

        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                return json.loads(resp.read().decode("utf-8"))
        except urllib.error.HTTPError as e:
            error_body = e.read().decode("utf-8", errors="replace")
            message = f"Gemini API error {e.code}: {error_body}"
            if e.code == 429:
                raise RateLimitError(message, status_code=429) from e
            raise ProviderError(message, status_code=e.code) from e
        except urllib.error.URLError as e:
            raise ProviderError(f"Cannot connect to Gemini: {e}") from e

    async def generate(
        self,
        prompt: str,
        options: GenerationOptions,
    ) -> GenerationResult:
        start = time.monotonic()

        generation_config = {
            "maxOutputTokens": options.max_tokens,
            "temperature": 0.7 if options.temperature is None else options.temperature,
        }
        if options.stop_sequences:
            generation_config["stopSequences"] = options.stop_sequences

        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": generation_config,
        }
        if options.system_prompt:
            payload["systemInstruction"] = {"parts": [{"text": options.system_prompt}]}

        data = await asyncio.to_thread(self._make_request, payload)

        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError(f"Malformed Gemini response: {str(data)[:200]}") from e

        usage = data.get("usageMetadata") or {}
        return GenerationResult(
            text=text,
            usage=UsageStats(
                input_tokens=usage.get("promptTokenCount") or estimate_tokens(prompt),
                output_tokens=usage.get("candidatesTokenCount") or estimate_tokens(text),
            ),
            duration_ms=int((time.monotonic() - start) * 1000),
        )

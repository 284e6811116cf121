"""
OpenAI-compatible chat completions client.

OpenAI and xAI (Grok) both expose /chat/completions with the same
request and response shape; OpenRouter builds on this too. Requests go
through urllib in a worker thread so the event loop stays free.
"""

import asyncio
import json
import time
import urllib.error
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


class OpenAICompatibleClient(LLMClient):
    """
    Client for any OpenAI-compatible chat completions endpoint.

    Subclasses only need to set defaults and extra headers.
    """

    provider_label = "OpenAI"

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = "https://api.openai.com/v1",
        timeout: int = 120,
        fixed_temperature: float | None = None,
        token_param: str = "max_tokens",
    ):
        """
        Initialize client.

        Args:
            api_key: Bearer token for the endpoint
            model: Provider-side model name
            base_url: API root (without /chat/completions)
            timeout: Request timeout in seconds
            fixed_temperature: Force this temperature (some models accept only 1.0)
            token_param: Name of the max-token field the endpoint expects
        """
        if not api_key:
            raise ValueError(f"{self.provider_label} API key not set")
        self.api_key = api_key
        self._model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.fixed_temperature = fixed_temperature
        self.token_param = token_param

    @property
    def model_name(self) -> str:
        return self._model

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _make_request(self, endpoint: str, data: dict) -> dict:
        """Make HTTP request to the API. Blocking; run in a thread."""
        url = f"{self.base_url}/{endpoint}"
        req = urllib.request.Request(
            url,
            data=json.dumps(data).encode("utf-8"),
            headers=self._headers(),
            method="POST",
        )

        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                return json.loads(resp.read().decode("utf-8"))
        except urllib.error.HTTPError as e:
            error_body = e.read().decode("utf-8", errors="replace")
            message = f"{self.provider_label} API error {e.code}: {error_body}"
            if e.code == 429:
                raise RateLimitError(message, status_code=429) from e
            raise ProviderError(message, status_code=e.code) from e
        except urllib.error.URLError as e:
            raise ProviderError(f"Cannot connect to {self.provider_label}: {e}") from e

    def _build_payload(self, prompt: str, options: GenerationOptions) -> dict:
        messages = []
        if options.system_prompt:
            messages.append({"role": "system", "content": options.system_prompt})
        messages.append({"role": "user", "content": prompt})

        temperature = self.fixed_temperature
        if temperature is None:
            temperature = 0.7 if options.temperature is None else options.temperature

        payload = {
            "model": self._model,
            "messages": messages,
            self.token_param: options.max_tokens,
            "temperature": temperature,
        }
        if options.stop_sequences:
            payload["stop"] = options.stop_sequences
        return payload

    async def generate(
        self,
        prompt: str,
        options: GenerationOptions,
    ) -> GenerationResult:
        """Send chat completion request."""
        start = time.monotonic()
        payload = self._build_payload(prompt, options)
        data = await asyncio.to_thread(self._make_request, "chat/completions", payload)

        try:
            text = data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError(
                f"Malformed {self.provider_label} response: {str(data)[:200]}"
            ) from e

        usage = data.get("usage") or {}
        return GenerationResult(
            text=text,
            usage=UsageStats(
                input_tokens=usage.get("prompt_tokens") or estimate_tokens(prompt),
                output_tokens=usage.get("completion_tokens") or estimate_tokens(text),
            ),
            duration_ms=int((time.monotonic() - start) * 1000),
        )


class OpenAIClient(OpenAICompatibleClient):
    """OpenAI direct. The nano tier only accepts temperature 1.0."""

    provider_label = "OpenAI"

    def __init__(self, api_key: str, model: str = "gpt-4.1-nano", timeout: int = 120):
        super().__init__(
            api_key=api_key,
            model=model,
            base_url="https://api.openai.com/v1",
            timeout=timeout,
            fixed_temperature=1.0,
            token_param="max_completion_tokens",
        )


class GrokClient(OpenAICompatibleClient):
    """xAI Grok."""

    provider_label = "Grok"

    def __init__(self, api_key: str, model: str = "grok-3-fast", timeout: int = 120):
        super().__init__(
            api_key=api_key,
            model=model,
            base_url="https://api.x.ai/v1",
            timeout=timeout,
        )

"""
Claude API client.

Wraps the async Anthropic SDK in our LLMClient interface.
"""

import time

import anthropic

from .base import (
    GenerationOptions,
    GenerationResult,
    LLMClient,
    ProviderError,
    RateLimitError,
    UsageStats,
)


# Short tier names to provider model ids
CLAUDE_MODELS = {
    "opus": "claude-opus-4-5-20251101",
    "sonnet": "claude-sonnet-4-5-20250929",
    "haiku": "claude-haiku-4-5-20251001",
}


class ClaudeClient(LLMClient):
    """
    Client for Claude API via Anthropic SDK.

    Requires: ANTHROPIC_API_KEY environment variable (or api_key)
    """

    def __init__(
        self,
        model: str = "haiku",
        api_key: str | None = None,
        client: anthropic.AsyncAnthropic | None = None,
    ):
        self._model = CLAUDE_MODELS.get(model, model)
        self.client = client or anthropic.AsyncAnthropic(api_key=api_key)

    @property
    def model_name(self) -> str:
        return self._model

    async def generate(
        self,
        prompt: str,
        options: GenerationOptions,
    ) -> GenerationResult:
        """Send a single message to Claude."""
        start = time.monotonic()

        kwargs = {
            "model": self._model,
            "max_tokens": options.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": 0.7 if options.temperature is None else options.temperature,
        }
        if options.system_prompt:
            kwargs["system"] = options.system_prompt
        if options.stop_sequences:
            kwargs["stop_sequences"] = options.stop_sequences

        try:
            response = await self.client.messages.create(**kwargs)
        except anthropic.RateLimitError as e:
            raise RateLimitError(f"Claude rate limited (429): {e}", status_code=429) from e
        except anthropic.APIStatusError as e:
            raise ProviderError(
                f"Claude API error {e.status_code}: {e}",
                status_code=e.status_code,
            ) from e
        except anthropic.APIConnectionError as e:
            raise ProviderError(f"Cannot connect to Claude: {e}") from e

        text = "".join(
            block.text for block in response.content if block.type == "text"
        )
        if not text:
            raise ProviderError("No text response from Claude")

        return GenerationResult(
            text=text,
            usage=UsageStats(
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
            ),
            duration_ms=int((time.monotonic() - start) * 1000),
        )

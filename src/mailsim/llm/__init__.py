"""Generation backends and the model router for mailsim."""

import logging
import os
from typing import Mapping

from .base import (
    GenerationContext,
    GenerationOptions,
    GenerationResult,
    LLMClient,
    NoProviderAvailableError,
    ProviderError,
    RateLimitError,
    StructuredOutputError,
    UsageStats,
    estimate_tokens,
)
from .claude import ClaudeClient
from .gemini import GeminiClient
from .openai_compat import GrokClient, OpenAICompatibleClient, OpenAIClient
from .openrouter import OpenRouterClient
from .pricing import BACKOFF_BASE_MS, FALLBACK_CHAINS, MODEL_PRICING, ModelPricing
from .router import (
    CumulativeUsage,
    ModelCallLog,
    ModelRouter,
    ModelUsage,
    build_character_prompt,
    is_rate_limit_error,
)

logger = logging.getLogger(__name__)

__all__ = [
    "LLMClient",
    "GenerationContext",
    "GenerationOptions",
    "GenerationResult",
    "UsageStats",
    "estimate_tokens",
    # Errors
    "ProviderError",
    "RateLimitError",
    "NoProviderAvailableError",
    "StructuredOutputError",
    # Clients
    "ClaudeClient",
    "GeminiClient",
    "GrokClient",
    "OpenAIClient",
    "OpenAICompatibleClient",
    "OpenRouterClient",
    "MockLLMClient",
    # Router
    "ModelRouter",
    "ModelCallLog",
    "ModelUsage",
    "CumulativeUsage",
    "build_character_prompt",
    "is_rate_limit_error",
    "create_model_router",
    # Tables
    "MODEL_PRICING",
    "ModelPricing",
    "BACKOFF_BASE_MS",
    "FALLBACK_CHAINS",
    "PROVIDER_ENV_VARS",
]


# -----------------------------------------------------------------------------
# Mock Client for Testing
# -----------------------------------------------------------------------------

class MockLLMClient(LLMClient):
    """
    Mock generation client for testing.

    Allows configuring responses (or failures) without actual API calls.
    """

    def __init__(
        self,
        responses: list[str] | None = None,
        model_name: str = "mock-model",
        fail_with: BaseException | list[BaseException | None] | None = None,
        input_tokens: int | None = None,
        output_tokens: int | None = None,
    ):
        """
        Initialize mock client.

        Args:
            responses: List of responses to return in order.
                       Cycles through if more calls than responses.
            model_name: Name to report as model_name property.
            fail_with: Exception to raise on every call, or a list applied
                       per call (None entries succeed; past the end succeeds).
            input_tokens: Fixed input token count (default: estimated)
            output_tokens: Fixed output token count (default: estimated)
        """
        self._responses = responses or ["Mock response"]
        self._call_count = 0
        self._model_name = model_name
        self._fail_with = fail_with
        self._input_tokens = input_tokens
        self._output_tokens = output_tokens
        self.calls: list[dict] = []  # Record of all calls made

    @property
    def model_name(self) -> str:
        return self._model_name

    def _next_failure(self) -> BaseException | None:
        if isinstance(self._fail_with, list):
            index = len(self.calls) - 1
            return self._fail_with[index] if index < len(self._fail_with) else None
        return self._fail_with

    async def generate(
        self,
        prompt: str,
        options: GenerationOptions,
    ) -> GenerationResult:
        """Return next mock response (or raise the configured failure)."""
        self.calls.append({"prompt": prompt, "options": options})

        failure = self._next_failure()
        if failure is not None:
            raise failure

        text = self._responses[self._call_count % len(self._responses)]
        self._call_count += 1
        return GenerationResult(
            text=text,
            usage=UsageStats(
                input_tokens=self._input_tokens if self._input_tokens is not None else estimate_tokens(prompt),
                output_tokens=self._output_tokens if self._output_tokens is not None else estimate_tokens(text),
            ),
        )

    def set_responses(self, responses: list[str]) -> None:
        """Update the list of responses."""
        self._responses = responses
        self._call_count = 0

    def reset(self) -> None:
        """Reset call count and recorded calls."""
        self._call_count = 0
        self.calls.clear()


# -----------------------------------------------------------------------------
# Factory
# -----------------------------------------------------------------------------

PROVIDER_ENV_VARS = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "google": "GOOGLE_AI_API_KEY",
    "xai": "XAI_API_KEY",
    "openrouter": "OPENROUTER_API_KEY",
}


def create_model_router(
    env: Mapping[str, str] | None = None,
    openrouter_model: str = "deepseek-chat",
    **router_kwargs,
) -> ModelRouter:
    """
    Build a router with a client for every provider that has an API key.

    Args:
        env: Where to read keys from (default: os.environ)
        openrouter_model: Model behind the "openrouter-cheap" slot
        **router_kwargs: Passed through to ModelRouter

    Returns:
        ModelRouter (possibly with no clients, in which case every call
        fails and callers fall back to templates)
    """
    env = os.environ if env is None else env
    clients: dict[str, LLMClient] = {}

    anthropic_key = env.get(PROVIDER_ENV_VARS["anthropic"])
    if anthropic_key:
        for tier in ("opus", "sonnet", "haiku"):
            clients[f"claude-{tier}"] = ClaudeClient(model=tier, api_key=anthropic_key)

    openai_key = env.get(PROVIDER_ENV_VARS["openai"])
    if openai_key:
        clients["gpt-4o-mini"] = OpenAIClient(api_key=openai_key)

    google_key = env.get(PROVIDER_ENV_VARS["google"])
    if google_key:
        clients["gemini-flash"] = GeminiClient(api_key=google_key)

    xai_key = env.get(PROVIDER_ENV_VARS["xai"])
    if xai_key:
        clients["grok-fast"] = GrokClient(api_key=xai_key)

    openrouter_key = env.get(PROVIDER_ENV_VARS["openrouter"])
    if openrouter_key:
        clients["openrouter-cheap"] = OpenRouterClient(api_key=openrouter_key, model=openrouter_model)
        clients["openrouter-gpt-nano"] = OpenRouterClient(api_key=openrouter_key, model="llama-4-maverick-free")
        clients["openrouter-haiku"] = OpenRouterClient(api_key=openrouter_key, model="claude-3.5-haiku")
        clients["openrouter-flash"] = OpenRouterClient(api_key=openrouter_key, model="gemini-2.0-flash")

    if not clients:
        logger.warning(
            "No API keys configured. Set one of: "
            + ", ".join(PROVIDER_ENV_VARS.values())
        )

    return ModelRouter(clients=clients, **router_kwargs)

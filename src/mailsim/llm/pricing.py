"""
Provider tables: pricing, backoff bases, fallback chains.

Prices are USD per million tokens.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class ModelPricing:
    input_per_million: float
    output_per_million: float
    model_name: str
    provider: str

    def cost(self, input_tokens: int, output_tokens: int) -> float:
        return (
            input_tokens * self.input_per_million
            + output_tokens * self.output_per_million
        ) / 1_000_000


MODEL_PRICING: dict[str, ModelPricing] = {
    "claude-opus": ModelPricing(15.0, 75.0, "claude-opus-4-5-20251101", "Anthropic"),
    "claude-sonnet": ModelPricing(3.0, 15.0, "claude-sonnet-4-5-20250929", "Anthropic"),
    "claude-haiku": ModelPricing(0.8, 4.0, "claude-haiku-4-5-20251001", "Anthropic"),
    "gpt-4o-mini": ModelPricing(0.10, 0.40, "gpt-4.1-nano", "OpenAI"),
    "gemini-flash": ModelPricing(0.50, 3.0, "gemini-3-flash-preview", "Google"),
    "grok-fast": ModelPricing(0.20, 0.50, "grok-3-fast", "xAI"),
    "openrouter-cheap": ModelPricing(0.0015, 0.075, "deepseek/deepseek-chat-v3.1", "OpenRouter"),
    "openrouter-gpt-nano": ModelPricing(0.0, 0.0, "meta-llama/llama-4-maverick:free", "OpenRouter"),
    "openrouter-haiku": ModelPricing(1.0, 5.0, "anthropic/claude-3.5-haiku", "OpenRouter"),
    "openrouter-flash": ModelPricing(0.60, 3.50, "google/gemini-2.0-flash-exp", "OpenRouter"),
}


# Base delay before the first rate-limit retry; doubles each attempt
BACKOFF_BASE_MS: dict[str, int] = {
    "claude-opus": 5000,
    "claude-sonnet": 3000,
    "claude-haiku": 2000,
    "gpt-4o-mini": 2000,
    "gemini-flash": 1000,
    "grok-fast": 2000,
    "openrouter-cheap": 1000,
    "openrouter-gpt-nano": 1000,
    "openrouter-haiku": 1000,
    "openrouter-flash": 1000,
}
DEFAULT_BACKOFF_MS = 2000


# Ordered alternatives per provider: same tier first, then cheaper
_ECONOMY_TAIL = [
    "openrouter-gpt-nano",
    "openrouter-haiku",
    "openrouter-flash",
    "openrouter-cheap",
]

FALLBACK_CHAINS: dict[str, list[str]] = {
    "claude-opus": ["claude-sonnet", "gpt-4o-mini", "gemini-flash", "grok-fast", *_ECONOMY_TAIL],
    "claude-sonnet": ["claude-haiku", "gpt-4o-mini", "gemini-flash", "grok-fast", *_ECONOMY_TAIL],
    "claude-haiku": ["gpt-4o-mini", "gemini-flash", "grok-fast", *_ECONOMY_TAIL],
    "gpt-4o-mini": [
        "openrouter-gpt-nano", "claude-haiku", "gemini-flash", "grok-fast",
        "openrouter-haiku", "openrouter-flash", "openrouter-cheap",
    ],
    "gemini-flash": [
        "openrouter-flash", "claude-haiku", "gpt-4o-mini", "grok-fast",
        "openrouter-gpt-nano", "openrouter-haiku", "openrouter-cheap",
    ],
    "grok-fast": [
        "gpt-4o-mini", "claude-haiku", "gemini-flash",
        "openrouter-gpt-nano", "openrouter-flash", "openrouter-haiku", "openrouter-cheap",
    ],
    "openrouter-gpt-nano": [
        "gpt-4o-mini", "claude-haiku", "gemini-flash", "grok-fast",
        "openrouter-flash", "openrouter-haiku", "openrouter-cheap",
    ],
    "openrouter-haiku": [
        "claude-haiku", "gpt-4o-mini", "gemini-flash", "grok-fast",
        "openrouter-gpt-nano", "openrouter-flash", "openrouter-cheap",
    ],
    "openrouter-flash": [
        "gemini-flash", "claude-haiku", "gpt-4o-mini", "grok-fast",
        "openrouter-gpt-nano", "openrouter-haiku", "openrouter-cheap",
    ],
    "openrouter-cheap": [
        "claude-haiku", "gpt-4o-mini", "gemini-flash", "grok-fast",
        "openrouter-gpt-nano", "openrouter-flash", "openrouter-haiku",
    ],
}


def backoff_ms(model_id: str, attempt: int, table: dict[str, int] | None = None) -> int:
    """Delay before retry number `attempt` (0-based)."""
    base = (table or BACKOFF_BASE_MS).get(model_id, DEFAULT_BACKOFF_MS)
    return base * (2 ** attempt)

"""
ModelRouter - central hub for all generation calls.

Every call goes through here. The router owns one client per configured
provider and handles:
- Rate-limit retries with exponential backoff
- Fallback along a static provider chain
- Character voice binding (character -> provider + persona)
- Token and cost accounting for every attempt, successful or not
- JSON-structured output decoding
"""

import asyncio
import copy
import json
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable

from pydantic import BaseModel, ValidationError

from ..state.schema import VoiceProfile
from .base import (
    GenerationContext,
    GenerationOptions,
    GenerationResult,
    LLMClient,
    NoProviderAvailableError,
    RateLimitError,
    StructuredOutputError,
    UsageStats,
)
from .pricing import BACKOFF_BASE_MS, FALLBACK_CHAINS, MODEL_PRICING, ModelPricing, backoff_ms

logger = logging.getLogger(__name__)


CHARACTER_TEMPERATURE = 0.75
MAX_RETRIES = 3
CALL_LOG_LIMIT = 1000

RATE_LIMIT_MARKERS = ("rate limit", "rate-limit", "ratelimit", "429", "quota", "too many requests", "capacity")

FORBIDDEN_PHRASES = [
    "we've been thinking",
    "threading the needle",
    "move the needle",
    "circle back",
    "synergy",
    "leverage",
    "going forward",
]


# -----------------------------------------------------------------------------
# Accounting Records
# -----------------------------------------------------------------------------

@dataclass
class CharacterVoiceBinding:
    character_id: str
    model_id: str
    voice_profile: VoiceProfile


@dataclass
class ModelCallLog:
    """One attempt against one provider."""
    timestamp: datetime
    model_id: str
    input_tokens: int
    output_tokens: int
    estimated_cost: float
    duration_ms: int
    success: bool
    error: str | None = None
    purpose: str | None = None


@dataclass
class ModelUsage(UsageStats):
    call_count: int = 0
    failed_calls: int = 0


@dataclass
class CumulativeUsage:
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_cost: float = 0.0
    # call_count includes failed attempts
    call_count: int = 0
    failed_calls: int = 0
    by_model: dict[str, ModelUsage] = field(default_factory=dict)


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

def extract_status_code(exc: BaseException) -> int | None:
    status = getattr(exc, "status_code", None)
    if isinstance(status, int):
        return status

    resp = getattr(exc, "response", None)
    if resp is not None:
        resp_status = getattr(resp, "status_code", None)
        if isinstance(resp_status, int):
            return resp_status
    return None


def is_rate_limit_error(exc: BaseException) -> bool:
    """Rate limiting is detected by type, HTTP 429, or message content."""
    if isinstance(exc, RateLimitError):
        return True
    if extract_status_code(exc) == 429:
        return True
    message = str(exc).lower()
    return any(marker in message for marker in RATE_LIMIT_MARKERS)


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ```json / ``` wrapper if present."""
    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def _band(value: float, low: str, high: str, middle: str) -> str:
    if value < 0.3:
        return low
    if value > 0.7:
        return high
    return middle


def build_character_prompt(
    voice: VoiceProfile,
    prompt: str,
    context: GenerationContext,
) -> str:
    """Wrap a task prompt with the mandatory voice requirements."""
    rule = "=" * 79
    formality = _band(
        voice.formality,
        "CASUAL - use contractions, informal language, relaxed tone",
        "FORMAL - proper grammar, professional tone, no slang",
        "moderate formality",
    )
    verbosity = _band(
        voice.verbosity,
        "BRIEF - 2-3 sentences max, get to the point",
        "DETAILED - provide context, elaborate on points",
        "moderate length",
    )

    greeting = voice.greeting_patterns[0] if voice.greeting_patterns else "Hi"
    signoff = voice.signoff_patterns[0] if voice.signoff_patterns else "Best"

    lines = [
        "WRITE AS THIS CHARACTER:",
        "",
        rule,
        "REQUIRED VOICE (MANDATORY)",
        rule,
        f'- Greeting: "{greeting}"',
        f'- Sign-off: "{signoff}"',
        f"- Formality: {formality}",
        f"- Length: {verbosity}",
    ]
    if voice.vocabulary:
        lines.append(f"- USE these words/phrases: {', '.join(voice.vocabulary[:5])}")
    if voice.quirks:
        lines.append("MUST USE ONE OF THESE QUIRKS:")
        lines.extend(f"• {q}" for q in voice.quirks)

    if context.previous_messages:
        lines += ["", rule, "REPLYING TO:", "\n---\n".join(context.previous_messages[-2:])]

    if context.emotional_state:
        lines += ["", f"Current mood: {context.emotional_state}"]

    lines += [
        "",
        rule,
        "FORBIDDEN PATTERNS (do NOT use these generic phrases)",
        rule,
        *(f'• "{p}"' for p in FORBIDDEN_PHRASES),
        "• Generic corporate speak",
        "",
        rule,
        "YOUR TASK:",
        prompt,
        rule,
        "",
        "Write ONLY the email body. Match the voice EXACTLY. No headers or metadata.",
    ]
    return "\n".join(lines)


# -----------------------------------------------------------------------------
# Router
# -----------------------------------------------------------------------------

class ModelRouter:
    """
    Routes generation calls to provider clients.

    Failure handling:
    - Rate limits back off base(provider) * 2^attempt, up to max_retries
    - Any other error (or exhausted retries) moves down the fallback chain
    - Exhausting the chain raises NoProviderAvailableError

    Accounting never affects control flow.
    """

    def __init__(
        self,
        clients: dict[str, LLMClient] | None = None,
        pricing: dict[str, ModelPricing] | None = None,
        fallback_chains: dict[str, list[str]] | None = None,
        backoff_base_ms: dict[str, int] | None = None,
        max_retries: int = MAX_RETRIES,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        call_log_limit: int = CALL_LOG_LIMIT,
    ):
        self.clients: dict[str, LLMClient] = dict(clients or {})
        self.pricing = MODEL_PRICING if pricing is None else pricing
        self.fallback_chains = FALLBACK_CHAINS if fallback_chains is None else fallback_chains
        self.backoff_base_ms = BACKOFF_BASE_MS if backoff_base_ms is None else backoff_base_ms
        self.max_retries = max(1, max_retries)
        self._sleep = sleep
        self._call_log_limit = call_log_limit

        self._bindings: dict[str, CharacterVoiceBinding] = {}
        self._call_counts: dict[str, int] = {}
        self._call_log: deque[ModelCallLog] = deque(maxlen=call_log_limit)
        self._usage = CumulativeUsage()
        self.reset_usage_stats()

        if self.clients:
            logger.info(f"ModelRouter initialized with models: {', '.join(self.clients)}")
        else:
            logger.warning(
                "No generation providers configured; all email text will come from fallback templates"
            )

    # ----- Configuration -----

    def register_client(self, model_id: str, client: LLMClient) -> None:
        self.clients[model_id] = client
        self._call_counts.setdefault(model_id, 0)
        self._usage.by_model.setdefault(model_id, ModelUsage())

    def available_models(self) -> list[str]:
        return list(self.clients)

    def bind_character(
        self,
        character_id: str,
        model_id: str,
        voice_profile: VoiceProfile,
    ) -> None:
        """Bind a character to a specific model and persona."""
        self._bindings[character_id] = CharacterVoiceBinding(
            character_id=character_id,
            model_id=model_id,
            voice_profile=voice_profile,
        )

    def get_character_binding(self, character_id: str) -> CharacterVoiceBinding | None:
        return self._bindings.get(character_id)

    # ----- Generation -----

    async def generate(
        self,
        model_id: str,
        prompt: str,
        options: GenerationOptions | None = None,
        purpose: str | None = None,
    ) -> str:
        """Generate text with a specific model (falling back as needed)."""
        result = await self.generate_with_usage(model_id, prompt, options, purpose)
        return result.text

    async def generate_with_usage(
        self,
        model_id: str,
        prompt: str,
        options: GenerationOptions | None = None,
        purpose: str | None = None,
    ) -> GenerationResult:
        """Generate text and return the usage of the call that succeeded."""
        options = options or GenerationOptions()
        chain = self._provider_chain(model_id)

        if model_id not in self.clients:
            if chain:
                logger.warning(f"Model {model_id} not available, falling back to {chain[0]}")
            else:
                raise NoProviderAvailableError(f"Unknown model: {model_id}", model_id=model_id)

        last_error: Exception | None = None
        for index, candidate in enumerate(chain):
            try:
                return await self._call_with_retry(candidate, prompt, options, purpose)
            except Exception as e:
                last_error = e
                if index + 1 < len(chain):
                    logger.warning(
                        f"Falling back from {candidate} to {chain[index + 1]}: {e}"
                    )

        raise NoProviderAvailableError(
            f"All providers failed for {model_id}: {last_error}",
            model_id=model_id,
        ) from last_error

    async def generate_as_character(
        self,
        character_id: str,
        prompt: str,
        context: GenerationContext | None = None,
    ) -> str:
        """
        Generate text in a character's bound voice.

        Raises:
            LookupError: If the character has no voice binding
        """
        binding = self._bindings.get(character_id)
        if binding is None:
            raise LookupError(f"No voice binding for character: {character_id}")

        full_prompt = build_character_prompt(
            binding.voice_profile,
            prompt,
            context or GenerationContext(),
        )
        return await self.generate(
            binding.model_id,
            full_prompt,
            GenerationOptions(temperature=CHARACTER_TEMPERATURE),
            purpose=f"character:{character_id}",
        )

    async def generate_structured(
        self,
        model_id: str,
        prompt: str,
        options: GenerationOptions | None = None,
        schema: type[BaseModel] | None = None,
        purpose: str | None = None,
    ) -> Any:
        """
        Generate JSON and decode it.

        Args:
            model_id: Preferred provider
            prompt: Prompt describing the JSON to produce
            options: Sampling options
            schema: Optional pydantic model to validate into

        Returns:
            The decoded JSON value, or a schema instance if schema is given

        Raises:
            StructuredOutputError: If the response is not valid JSON or
                does not match the schema
        """
        structured_prompt = (
            f"{prompt}\n\n"
            "IMPORTANT: Respond with valid JSON only. No markdown, no explanation, just the JSON object."
        )
        response = await self.generate(model_id, structured_prompt, options, purpose)
        cleaned = strip_code_fences(response)

        try:
            data = json.loads(cleaned)
        except json.JSONDecodeError as e:
            raise StructuredOutputError(f"Invalid JSON from {model_id}: {e}", raw=response) from e

        if schema is None:
            return data
        try:
            return schema.model_validate(data)
        except ValidationError as e:
            raise StructuredOutputError(
                f"Response from {model_id} does not match {schema.__name__}: {e}",
                raw=response,
            ) from e

    # ----- Accounting -----

    def get_call_counts(self) -> dict[str, int]:
        """Attempts per model, including failures."""
        return dict(self._call_counts)

    def get_cumulative_usage(self) -> CumulativeUsage:
        return copy.deepcopy(self._usage)

    def get_call_log(self) -> list[ModelCallLog]:
        return list(self._call_log)

    def get_cost_summary(self) -> str:
        usage = self._usage
        lines = [
            "=== Cost Summary ===",
            f"Total Calls: {usage.call_count} ({usage.failed_calls} failed)",
            f"Total Tokens: {usage.total_input_tokens:,} in / {usage.total_output_tokens:,} out",
            f"Total Cost: ${usage.total_cost:.4f}",
            "",
            "By Model:",
        ]
        for model_id, stats in usage.by_model.items():
            if stats.call_count or stats.failed_calls:
                lines.append(
                    f"  {model_id}: {stats.call_count} calls, "
                    f"{stats.input_tokens:,}/{stats.output_tokens:,} tokens, "
                    f"${stats.estimated_cost:.4f}"
                )
        return "\n".join(lines)

    def reset_usage_stats(self) -> None:
        """Reset all usage statistics. Bindings are kept."""
        self._call_log = deque(maxlen=self._call_log_limit)
        self._usage = CumulativeUsage()
        self._call_counts = {}
        for model_id in self.clients:
            self._call_counts[model_id] = 0
            self._usage.by_model[model_id] = ModelUsage()

    # ----- Internals -----

    def _provider_chain(self, model_id: str) -> list[str]:
        """Configured providers to try, in order, each at most once."""
        chain: list[str] = []
        for candidate in [model_id, *self.fallback_chains.get(model_id, [])]:
            if candidate in self.clients and candidate not in chain:
                chain.append(candidate)
        # Last resort: anything else that is configured
        for candidate in self.clients:
            if candidate not in chain:
                chain.append(candidate)
        return chain

    async def _call_with_retry(
        self,
        model_id: str,
        prompt: str,
        options: GenerationOptions,
        purpose: str | None,
    ) -> GenerationResult:
        client = self.clients[model_id]
        last_error: Exception | None = None

        for attempt in range(self.max_retries):
            self._call_counts[model_id] = self._call_counts.get(model_id, 0) + 1
            start = time.monotonic()
            try:
                result = await client.generate(prompt, options)
            except Exception as e:
                self._record_failure(model_id, e, start, purpose)
                if not is_rate_limit_error(e):
                    raise
                last_error = e
                if attempt + 1 < self.max_retries:
                    delay = backoff_ms(model_id, attempt, self.backoff_base_ms)
                    logger.warning(
                        f"Rate limited on {model_id}, waiting {delay}ms "
                        f"(attempt {attempt + 1}/{self.max_retries})"
                    )
                    await self._sleep(delay / 1000)
                continue

            self._record_success(model_id, result, purpose)
            return result

        raise last_error

    def _record_success(
        self,
        model_id: str,
        result: GenerationResult,
        purpose: str | None,
    ) -> None:
        pricing = self.pricing.get(model_id)
        usage = result.usage
        usage.estimated_cost = (
            pricing.cost(usage.input_tokens, usage.output_tokens) if pricing else 0.0
        )

        self._call_log.append(ModelCallLog(
            timestamp=datetime.now(),
            model_id=model_id,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            estimated_cost=usage.estimated_cost,
            duration_ms=result.duration_ms,
            success=True,
            purpose=purpose,
        ))

        totals = self._usage
        totals.total_input_tokens += usage.input_tokens
        totals.total_output_tokens += usage.output_tokens
        totals.total_cost += usage.estimated_cost
        totals.call_count += 1
        stats = totals.by_model.setdefault(model_id, ModelUsage())
        stats.add(usage)
        stats.call_count += 1

        logger.info(
            f"{model_id}: {usage.input_tokens}in/{usage.output_tokens}out tokens, "
            f"${usage.estimated_cost:.6f}, {result.duration_ms}ms"
            + (f" ({purpose})" if purpose else "")
        )

    def _record_failure(
        self,
        model_id: str,
        error: Exception,
        start: float,
        purpose: str | None,
    ) -> None:
        self._call_log.append(ModelCallLog(
            timestamp=datetime.now(),
            model_id=model_id,
            input_tokens=0,
            output_tokens=0,
            estimated_cost=0.0,
            duration_ms=int((time.monotonic() - start) * 1000),
            success=False,
            error=str(error),
            purpose=purpose,
        ))
        self._usage.call_count += 1
        self._usage.failed_calls += 1
        stats = self._usage.by_model.setdefault(model_id, ModelUsage())
        stats.call_count += 1
        stats.failed_calls += 1

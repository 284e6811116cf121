"""
Base generation client abstraction.

Defines the interface every provider backend implements, the usage
records they report, and the error types the router reacts to.
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field


# -----------------------------------------------------------------------------
# Errors
# -----------------------------------------------------------------------------

class ProviderError(RuntimeError):
    """A provider call failed. status_code is set when the failure was HTTP."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        model_id: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.model_id = model_id


class RateLimitError(ProviderError):
    """Provider asked us to slow down. Retried with backoff."""


class NoProviderAvailableError(ProviderError):
    """Every provider in the fallback chain failed or none is configured."""


class StructuredOutputError(ValueError):
    """A structured call returned something that is not the expected JSON."""

    def __init__(self, message: str, raw: str = ""):
        super().__init__(message)
        self.raw = raw


# -----------------------------------------------------------------------------
# Request / Response
# -----------------------------------------------------------------------------

@dataclass
class GenerationOptions:
    """Per-call sampling options."""
    temperature: float | None = None
    max_tokens: int = 2048
    system_prompt: str | None = None
    stop_sequences: list[str] = field(default_factory=list)


@dataclass
class GenerationContext:
    """Extra context used when writing in a character's voice."""
    thread_subject: str | None = None
    previous_messages: list[str] = field(default_factory=list)
    relationships: str | None = None
    emotional_state: str | None = None
    character_knowledge: list[str] = field(default_factory=list)


@dataclass
class UsageStats:
    """Token counts and cost for one call (or an aggregate of calls)."""
    input_tokens: int = 0
    output_tokens: int = 0
    estimated_cost: float = 0.0

    def add(self, other: "UsageStats") -> None:
        self.input_tokens += other.input_tokens
        self.output_tokens += other.output_tokens
        self.estimated_cost += other.estimated_cost


@dataclass
class GenerationResult:
    """Response from a provider."""
    text: str
    usage: UsageStats = field(default_factory=UsageStats)
    duration_ms: int = 0


def estimate_tokens(text: str) -> int:
    """Rough estimate: ~4 characters per token."""
    return math.ceil(len(text) / 4)


class LLMClient(ABC):
    """
    Abstract base class for generation backends.

    All backends must implement:
    - model_name: The provider-side model identifier
    - generate(): One prompt/response round trip

    Clients report token usage only; cost is priced by the router.
    """

    @property
    @abstractmethod
    def model_name(self) -> str:
        """The model identifier."""
        pass

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        options: GenerationOptions,
    ) -> GenerationResult:
        """
        Send a single prompt.

        Args:
            prompt: User prompt text
            options: Sampling options

        Returns:
            GenerationResult with text and token usage

        Raises:
            RateLimitError: Provider is throttling
            ProviderError: Any other provider failure
        """
        pass

"""Run-scoped collaborators shared by every tick of a simulation."""

import random
from dataclasses import dataclass, field
from typing import Any, Protocol

from pydantic import BaseModel

from ..llm.base import GenerationContext, GenerationOptions
from ..state.schema import VoiceProfile
from .analysis import ThreadAnalysisCache


DEFAULT_ANALYSIS_MODEL = "claude-haiku"


class GenerationRouter(Protocol):
    """What the engine needs from a router. ModelRouter satisfies it."""

    async def generate_as_character(
        self,
        character_id: str,
        prompt: str,
        context: GenerationContext | None = None,
    ) -> str:
        ...

    async def generate_structured(
        self,
        model_id: str,
        prompt: str,
        options: GenerationOptions | None = None,
        schema: type[BaseModel] | None = None,
        purpose: str | None = None,
    ) -> Any:
        ...

    def bind_character(self, character_id: str, model_id: str, voice_profile: VoiceProfile) -> None:
        ...

    def reset_usage_stats(self) -> None:
        ...


@dataclass
class SimulationContext:
    """
    State that lives for one run, not one tick.

    The rng is the only source of randomness; the analysis cache is
    cleared when a run starts.
    """
    router: GenerationRouter
    rng: random.Random = field(default_factory=random.Random)
    analysis_cache: ThreadAnalysisCache = field(default_factory=ThreadAnalysisCache)
    analysis_model: str = DEFAULT_ANALYSIS_MODEL

"""Tick-driven narrative email simulation."""

from .analysis import ThreadAnalysis, ThreadAnalysisCache
from .archetypes import ArchetypeStrategy, strategy_for
from .composer import generate_email
from .context import GenerationRouter, SimulationContext
from .planner import PlannedEvent, plan_tick_events
from .tensions import initialize_tensions
from .threads import ThreadResolution, get_event_recipients, rebuild_threads, resolve_thread
from .tick import SimulationOptions, SimulationResult, run_simulation, run_tick
from .transcript import MailboxTranscript

__all__ = [
    "ArchetypeStrategy",
    "GenerationRouter",
    "MailboxTranscript",
    "PlannedEvent",
    "SimulationContext",
    "SimulationOptions",
    "SimulationResult",
    "ThreadAnalysis",
    "ThreadAnalysisCache",
    "ThreadResolution",
    "generate_email",
    "get_event_recipients",
    "initialize_tensions",
    "plan_tick_events",
    "rebuild_threads",
    "resolve_thread",
    "run_simulation",
    "run_tick",
    "strategy_for",
]

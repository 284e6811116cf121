"""
Tick loop.

A run repeats ticks until the world holds the target number of emails
or the wall-clock timeout passes. Each tick:

1. plans events
2. resolves a thread and writes an email for each event, in order
3. applies tension, goal and knowledge updates
4. emits a TickResult

A tick works on a private deep copy of the world; the copy replaces the
previous world only when the tick completes.
"""

import asyncio
import logging
import random
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable

from ..state.schema import TickMetrics, TickResult, WorldState
from .composer import generate_email, references_concept
from .context import DEFAULT_ANALYSIS_MODEL, SimulationContext
from .documents import merged_document_context
from .planner import DEFAULT_EVENTS_PER_TICK, PlannedEvent, plan_tick_events
from .threads import ensure_threads, get_event_recipients, resolve_thread
from .world import RealizedEvent, apply_tick_updates

logger = logging.getLogger(__name__)


DEFAULT_TICK_HOURS = 4
DEFAULT_INTER_TICK_DELAY = 0.1


@dataclass
class SimulationOptions:
    target_emails: int
    timeout_ms: int
    tick_duration_hours: float = DEFAULT_TICK_HOURS
    on_tick: Callable[[TickResult], None] | None = None
    events_per_tick: int = DEFAULT_EVENTS_PER_TICK
    seed: int | None = None
    inter_tick_delay: float = DEFAULT_INTER_TICK_DELAY
    analysis_model: str = DEFAULT_ANALYSIS_MODEL
    reset_usage: bool = True
    clock: Callable[[], float] = time.monotonic


@dataclass
class SimulationResult:
    world: WorldState
    results: list[TickResult] = field(default_factory=list)


async def realize_event(
    event: PlannedEvent,
    world: WorldState,
    ctx: SimulationContext,
    send_time: datetime,
) -> RealizedEvent | None:
    """
    Resolve a thread for one event and write its email.

    The email and any new thread are added to world immediately so the
    next event in the same tick sees them. Returns None when the event
    has no usable sender or recipients.
    """
    sender = world.character(event.sender_id) if event.sender_id else None
    if sender is None:
        logger.warning(f"Dropping event {event.id}: unknown sender {event.sender_id}")
        return None

    recipients = get_event_recipients(event, world, sender)
    if not recipients:
        logger.info(f"Dropping event {event.id} ({event.description}): no recipients for {sender.name}")
        return None

    resolution = resolve_thread(event, world, sender, recipients, ctx.rng, send_time)
    thread_emails = world.thread_emails(resolution.thread.id)
    if thread_emails and thread_emails[-1].sent_at > send_time:
        send_time = thread_emails[-1].sent_at

    email = await generate_email(
        ctx,
        sender,
        recipients,
        resolution.thread,
        event,
        world,
        send_time,
        resolution.in_reply_to,
    )
    world.emails.append(email)
    resolution.thread.add_email(email)
    return RealizedEvent(event=event, email=email)


async def run_tick(
    world: WorldState,
    ctx: SimulationContext,
    events_per_tick: int = DEFAULT_EVENTS_PER_TICK,
    tick_duration: timedelta = timedelta(hours=DEFAULT_TICK_HOURS),
) -> tuple[WorldState, TickResult]:
    """Run one tick. The input world is never mutated."""
    started = time.monotonic()
    working = world.model_copy(deep=True)
    tick_number = working.tick_count
    window_start = working.simulated_time_current
    threads_before = len(working.threads)

    planned = plan_tick_events(working, ctx.rng, events_per_tick)

    # One uniform offset per event, assigned in processing order
    window = tick_duration.total_seconds()
    offsets = sorted(ctx.rng.uniform(0, window) for _ in planned)

    realized: list[RealizedEvent] = []
    for event, offset in zip(planned, offsets):
        outcome = await realize_event(event, working, ctx, window_start + timedelta(seconds=offset))
        if outcome is not None:
            realized.append(outcome)

    update = apply_tick_updates(working, realized, tick_duration)
    new_emails = [r.email for r in realized]
    _log_tick_summary(tick_number, working, new_emails, len(working.threads) - threads_before)

    result = TickResult(
        tick_number=tick_number,
        simulated_time_start=window_start,
        simulated_time_end=working.simulated_time_current,
        events=update.events,
        new_emails=new_emails,
        world_state_changes=update.changes,
        metrics=TickMetrics(
            events_generated=len(planned),
            emails_generated=len(new_emails),
            tensions_resolved=update.tensions_resolved,
            tensions_created=0,
            duration_ms=int((time.monotonic() - started) * 1000),
        ),
    )
    return working, result


def _log_tick_summary(tick_number, world, emails, new_threads) -> None:
    fallbacks = sum(1 for e in emails if e.generated_by and e.generated_by.template_fallback)
    doc = merged_document_context(world.documents)
    concepts = doc.core_concepts if doc else []
    used = sum(1 for c in concepts if any(references_concept(e.body, [c]) for e in emails))
    senders = len({e.sender_id for e in emails})
    logger.info(
        f"[Tick {tick_number}] {len(emails)} emails | {fallbacks} fallbacks | "
        f"{used}/{len(concepts)} concepts | {senders} unique senders | {new_threads} new threads"
    )


async def run_simulation(
    initial_world: WorldState,
    router,
    options: SimulationOptions,
    context: SimulationContext | None = None,
) -> SimulationResult:
    """
    Run ticks until the target email count or the timeout.

    Args:
        initial_world: Starting world (not mutated)
        router: A GenerationRouter (usually ModelRouter)
        options: Stop conditions, tick size, seed and callbacks
        context: Optional pre-built run context; its cache is cleared

    Returns:
        SimulationResult with the final world and every TickResult
    """
    ctx = context or SimulationContext(
        router=router,
        rng=random.Random(options.seed),
        analysis_model=options.analysis_model,
    )
    ctx.analysis_cache.clear()
    if options.reset_usage and hasattr(router, "reset_usage_stats"):
        router.reset_usage_stats()

    world = initial_world.model_copy(deep=True)
    ensure_threads(world)

    if hasattr(router, "bind_character"):
        for character in world.characters:
            router.bind_character(
                character.id,
                character.voice_binding.model_id,
                character.voice_binding.voice_profile,
            )

    tick_duration = timedelta(hours=options.tick_duration_hours)
    results: list[TickResult] = []
    start = options.clock()

    def elapsed_ms() -> float:
        return (options.clock() - start) * 1000

    while len(world.emails) < options.target_emails and elapsed_ms() < options.timeout_ms:
        world, result = await run_tick(world, ctx, options.events_per_tick, tick_duration)
        results.append(result)
        if options.on_tick:
            options.on_tick(result)
        if options.inter_tick_delay > 0:
            await asyncio.sleep(options.inter_tick_delay)

    if len(world.emails) >= options.target_emails:
        logger.info(f"Simulation reached {len(world.emails)} emails after {len(results)} ticks")
    else:
        logger.info(
            f"Simulation timed out after {len(results)} ticks with {len(world.emails)} emails"
        )

    return SimulationResult(world=world, results=results)

"""
Event planner.

Each tick decides *what happens* before any text is written: which
tension moves, which characters act on their goals, whether a newsletter
goes out, whether spam fires. Events come out in that fixed priority
order.

All randomness comes from the rng passed in.
"""

import logging
import random
from dataclasses import dataclass, field

from ..state.schema import (
    Archetype,
    EmailFrequency,
    EmailType,
    EventType,
    WorldState,
    generate_id,
)
from .conversation import is_waiting_for_response
from .goals import describe_goal_event, is_stalled
from .tensions import map_tensions_to_threads

logger = logging.getLogger(__name__)


DEFAULT_EVENTS_PER_TICK = 3
# Probability a character still waiting on a reply sits this tick out
SKIP_IF_WAITING_PROBABILITY = 0.7
# Probability a moderate-frequency character is active in a given tick
MODERATE_ACTIVITY_PROBABILITY = 0.5
NO_NEWSLETTER_YET = 999


@dataclass
class PlannedEvent:
    """Something that should happen this tick. Never persisted."""
    type: EventType
    description: str
    participants: list[str]
    affected_tensions: list[str] = field(default_factory=list)
    existing_thread_id: str | None = None
    goal_id: str | None = None
    id: str = field(default_factory=generate_id)

    @property
    def sender_id(self) -> str | None:
        return self.participants[0] if self.participants else None


def plan_tick_events(
    world: WorldState,
    rng: random.Random,
    target_events: int = DEFAULT_EVENTS_PER_TICK,
) -> list[PlannedEvent]:
    """
    Plan the events for one tick.

    Priority order:
    1. Tension-driven: one new conversation, one reply to an existing one
    2. Goal-driven: characters with immediate goals, within the budget
    3. Newsletter: curator, at most every newsletter_interval_ticks ticks
    4. Spam: spammer, with probability config.spam_ratio

    Only goal-driven events are limited by target_events; tension and
    archetype events are always added when they apply.
    """
    events: list[PlannedEvent] = []
    events.extend(_tension_events(world))
    events.extend(_goal_events(world, rng, max(0, target_events - len(events))))

    newsletter = _newsletter_event(world)
    if newsletter:
        events.append(newsletter)

    spam = _spam_event(world, rng)
    if spam:
        events.append(spam)

    return events


# ─── Tension-driven ──────────────────────────────────────────────────────────

def _tension_events(world: WorldState) -> list[PlannedEvent]:
    events: list[PlannedEvent] = []
    live = [t for t in world.tensions if t.is_live]
    if not live:
        return events

    conversations = map_tensions_to_threads(live, world.threads, world.emails)

    # A tension with no thread yet starts one
    for tension in (t for t in live if t.id not in conversations):
        participants = [pid for pid in tension.participants if world.character(pid)]
        if participants:
            events.append(PlannedEvent(
                type=EventType.COMMUNICATION,
                description=f"Discussion about: {tension.description}",
                participants=participants,
                affected_tensions=[tension.id],
            ))
        break

    # A tension with a thread gets a reply from someone who owes one
    for tension in (t for t in live if t.id in conversations):
        thread_id = conversations[tension.id]
        thread_emails = world.thread_emails(thread_id)
        if thread_emails:
            last = thread_emails[-1]
            responder = _pending_responder(last, thread_emails, world)
            if responder:
                events.append(PlannedEvent(
                    type=EventType.COMMUNICATION,
                    description=f"Responding to thread about: {tension.description}",
                    participants=[responder, last.sender_id],
                    affected_tensions=[tension.id],
                    existing_thread_id=thread_id,
                ))
        break

    return events


def _pending_responder(last, thread_emails, world: WorldState) -> str | None:
    """First recipient of the last email who has not written since it."""
    for recipient_id in last.recipient_ids:
        theirs = [e for e in thread_emails if e.sender_id == recipient_id]
        if theirs and theirs[-1].sent_at >= last.sent_at:
            continue
        if world.character(recipient_id) is None:
            logger.warning(f"Thread {last.thread_id} references unknown character {recipient_id}")
            continue
        return recipient_id
    return None


# ─── Goal-driven ─────────────────────────────────────────────────────────────

def _goal_events(world: WorldState, rng: random.Random, budget: int) -> list[PlannedEvent]:
    candidates = []
    for character in world.characters:
        if character.is_spammer:
            continue
        frequency = character.email_behavior.frequency
        if frequency == EmailFrequency.PROLIFIC:
            candidates.append(character)
        elif frequency == EmailFrequency.MODERATE and rng.random() < MODERATE_ACTIVITY_PROBABILITY:
            candidates.append(character)

    events: list[PlannedEvent] = []
    for character in candidates[:budget]:
        if is_waiting_for_response(character.id, world.emails):
            if rng.random() < SKIP_IF_WAITING_PROBABILITY:
                continue

        goal = character.immediate_goal()
        if goal is None or is_stalled(goal):
            continue

        events.append(PlannedEvent(
            type=EventType.COMMUNICATION,
            description=describe_goal_event(goal),
            participants=[character.id],
            affected_tensions=list(goal.related_tensions),
            goal_id=goal.id,
        ))

    return events


# ─── Archetype-driven ────────────────────────────────────────────────────────

def _newsletter_event(world: WorldState) -> PlannedEvent | None:
    curator = world.first_with_archetype(Archetype.NEWSLETTER_CURATOR)
    if curator is None:
        return None

    newsletters = [e for e in world.emails if e.type == EmailType.NEWSLETTER]
    if newsletters:
        latest = max(newsletters, key=lambda e: e.sent_at)
        sent_tick = latest.generated_by.tick if latest.generated_by else 0
        ticks_since = world.tick_count - sent_tick
    else:
        ticks_since = NO_NEWSLETTER_YET

    if ticks_since < world.config.newsletter_interval_ticks:
        return None

    return PlannedEvent(
        type=EventType.EXTERNAL,
        description="Newsletter publication",
        participants=[curator.id],
    )


def _spam_event(world: WorldState, rng: random.Random) -> PlannedEvent | None:
    spammer = world.first_with_archetype(Archetype.SPAMMER)
    if spammer is None or rng.random() >= world.config.spam_ratio:
        return None

    return PlannedEvent(
        type=EventType.EXTERNAL,
        description="Spam campaign",
        participants=[spammer.id],
    )

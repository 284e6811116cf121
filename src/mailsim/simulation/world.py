"""
End-of-tick world update.

Applied to the tick's private working copy after every event has been
realized: tension movement, goal progression, knowledge propagation,
event records, and the clock.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from ..state.schema import (
    Email,
    SimulatedEvent,
    TensionStatus,
    WorldState,
    WorldStateChange,
)
from .goals import progress_goal
from .planner import PlannedEvent
from .tensions import apply_tension_updates

logger = logging.getLogger(__name__)


@dataclass
class RealizedEvent:
    """A planned event and the email it produced."""
    event: PlannedEvent
    email: Email


@dataclass
class WorldUpdate:
    changes: list[WorldStateChange] = field(default_factory=list)
    events: list[SimulatedEvent] = field(default_factory=list)
    tensions_resolved: int = 0


def thread_knowledge(subject: str) -> str:
    return f"Thread: {subject}"


def apply_tick_updates(
    world: WorldState,
    realized: list[RealizedEvent],
    tick_duration: timedelta,
) -> WorldUpdate:
    """
    Fold one tick's outcome into the working world. Mutates world.

    Emails and threads are already on the world (they were appended as
    each event was realized, so later events could see them).

    Returns:
        The state changes, the SimulatedEvent records, and how many
        tensions started resolving this tick
    """
    update = WorldUpdate()
    tick = world.tick_count
    new_time = world.simulated_time_current + tick_duration

    # Tensions: one step per realized event that names them
    before = {t.id: t.status for t in world.tensions}
    affected = [tid for r in realized for tid in r.event.affected_tensions]
    update.changes.extend(apply_tension_updates(world.tensions, affected, tick))
    update.tensions_resolved = sum(
        1 for t in world.tensions
        if t.status == TensionStatus.RESOLVING and before.get(t.id) != TensionStatus.RESOLVING
    )

    # Knowledge: recipients learn the thread exists
    for r in realized:
        knowledge = thread_knowledge(r.email.subject)
        for recipient_id in r.email.recipient_ids:
            character = world.character(recipient_id)
            if character is None:
                logger.warning(f"Email {r.email.id} addressed to unknown character {recipient_id}")
                continue
            if knowledge not in character.knows:
                character.knows.append(knowledge)

    # Goals: linked by id, not by matching description text
    for r in realized:
        if r.event.goal_id is None:
            continue
        sender = world.character(r.email.sender_id)
        goal = next((g for g in sender.goals if g.id == r.event.goal_id), None) if sender else None
        if goal is None:
            logger.warning(f"Event {r.event.id} references unknown goal {r.event.goal_id}")
            continue
        update.changes.extend(progress_goal(sender, goal, r.email))

    for r in realized:
        record = SimulatedEvent(
            id=r.event.id,
            tick=tick,
            simulated_time=r.email.sent_at,
            type=r.event.type,
            description=r.event.description,
            participants=list(r.event.participants),
            affected_tensions=list(r.event.affected_tensions),
            generated_emails=[r.email.id],
        )
        update.events.append(record)
        world.events.append(record)

    world.tick_count = tick + 1
    world.simulated_time_current = new_time
    world.last_tick_at = datetime.now()
    return update

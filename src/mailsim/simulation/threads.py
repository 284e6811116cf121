"""
Thread continuity.

Decides whether an event's email joins an existing thread or starts a
new one. Joining is restricted so that threads stay short, broadcast
threads stay closed, and nobody talks to themselves.
"""

import logging
import random
from dataclasses import dataclass
from datetime import datetime

from ..state.schema import (
    CLOSED_ORIGINS,
    Character,
    Email,
    EmailType,
    EventType,
    OriginType,
    Thread,
    WorldState,
)
from .archetypes import strategy_for
from .conversation import has_unbalanced_participation
from .planner import PlannedEvent

logger = logging.getLogger(__name__)


MAX_THREAD_MESSAGES = 7
# Probability an eligible thread is joined rather than passed over
JOIN_PROBABILITY = 0.6
MIN_PARTICIPANT_OVERLAP = 2
BROADCAST_RECIPIENTS = 5
RELATIONSHIP_RECIPIENTS = 3


@dataclass
class ThreadResolution:
    thread: Thread
    created: bool
    in_reply_to: str | None = None


# ─── Recipients ──────────────────────────────────────────────────────────────

def get_event_recipients(
    event: PlannedEvent,
    world: WorldState,
    sender: Character,
) -> list[Character]:
    """
    Who receives the email for an event.

    Tension participants first, then broadcast lists for curators and
    spammers, then relationship partners. If nothing matches, the first
    non-spammer character other than the sender. Spammers never receive
    anything from a spammer.
    """
    recipients = _candidate_recipients(event, world, sender)
    if sender.is_spammer:
        recipients = [r for r in recipients if not r.is_spammer]

    if not recipients:
        fallback = next(
            (c for c in world.characters if c.id != sender.id and not c.is_spammer),
            None,
        )
        if fallback:
            recipients = [fallback]
    return recipients


def _candidate_recipients(event, world, sender) -> list[Character]:
    for tension_id in event.affected_tensions[:1]:
        tension = world.tension(tension_id)
        if tension is None:
            logger.warning(f"Event references unknown tension {tension_id}")
            continue
        return [
            c for c in world.characters
            if c.id in tension.participants and c.id != sender.id
        ]

    if strategy_for(sender).broadcasts:
        return [
            c for c in world.characters
            if c.id != sender.id and not c.is_spammer
        ][:BROADCAST_RECIPIENTS]

    partners = []
    for relationship in world.relationships:
        partner_id = relationship.partner_of(sender.id)
        if partner_id is None:
            continue
        partner = world.character(partner_id)
        if partner is None:
            logger.warning(f"Relationship {relationship.id} references unknown character {partner_id}")
            continue
        partners.append(partner)
    return partners[:RELATIONSHIP_RECIPIENTS]


# ─── Resolution ──────────────────────────────────────────────────────────────

def resolve_thread(
    event: PlannedEvent,
    world: WorldState,
    sender: Character,
    recipients: list[Character],
    rng: random.Random,
    current_time: datetime | None = None,
) -> ThreadResolution:
    """
    Pick the thread an event's email belongs to.

    1. An explicit thread id on the event is reused, unless the sender
       would be monologuing in it or a communication event points at a
       spam or newsletter thread.
    2. Communication events may join a related thread (find_related_thread).
    3. Otherwise a new thread is created and appended to world.threads.
    """
    thread = None
    if event.existing_thread_id:
        thread = _explicit_thread(event, world, sender)

    if thread is None:
        thread = find_related_thread(event, world, sender, recipients, rng)

    if thread is not None:
        thread_emails = world.thread_emails(thread.id)
        in_reply_to = thread_emails[-1].id if thread_emails else None
        return ThreadResolution(thread=thread, created=False, in_reply_to=in_reply_to)

    started = current_time or world.simulated_time_current
    strategy = strategy_for(sender)
    thread = Thread(
        subject=strategy.new_subject(event.affected_tensions, world, rng),
        participants=[sender.id, *(r.id for r in recipients if r.id != sender.id)],
        started_at=started,
        last_activity_at=started,
        related_tensions=list(event.affected_tensions),
        origin_type=strategy.thread_origin(event.type),
    )
    world.threads.append(thread)
    return ThreadResolution(thread=thread, created=True)


def _explicit_thread(event: PlannedEvent, world: WorldState, sender: Character) -> Thread | None:
    thread_id = event.existing_thread_id
    thread = world.thread(thread_id)
    if thread is None:
        emails = world.thread_emails(thread_id)
        if not emails:
            logger.warning(f"Event references unknown thread {thread_id}")
            return None
        thread = _thread_from_emails(thread_id, emails, world)
        world.threads.append(thread)

    if event.type == EventType.COMMUNICATION and thread.origin_type in CLOSED_ORIGINS:
        logger.warning(
            f"Event references {thread.origin_type.value} thread {thread.id}; resolving normally"
        )
        return None
    if has_unbalanced_participation(sender.id, world.thread_emails(thread.id)):
        logger.info(f"{sender.name} is waiting for replies in thread {thread.id}; not joining")
        return None
    return thread


def is_join_candidate(
    thread: Thread,
    thread_emails: list[Email],
    sender_id: str,
    participant_ids: set[str],
) -> bool:
    """Every rule a thread must pass before it may be joined."""
    if not thread_emails or len(thread_emails) >= MAX_THREAD_MESSAGES:
        return False
    if thread.origin_type in CLOSED_ORIGINS:
        return False
    if has_unbalanced_participation(sender_id, thread_emails):
        return False
    overlap = participant_ids & set(thread.participants)
    return len(overlap) >= MIN_PARTICIPANT_OVERLAP


def find_related_thread(
    event: PlannedEvent,
    world: WorldState,
    sender: Character,
    recipients: list[Character],
    rng: random.Random,
) -> Thread | None:
    """
    A thread these characters already share, for communication events.

    Threads are scanned in creation order; each eligible one is joined
    with probability JOIN_PROBABILITY and the first success wins.
    """
    if event.type != EventType.COMMUNICATION:
        return None

    participant_ids = {sender.id, *(r.id for r in recipients)}
    for thread in world.threads:
        thread_emails = world.thread_emails(thread.id)
        if not is_join_candidate(thread, thread_emails, sender.id, participant_ids):
            continue
        if rng.random() < JOIN_PROBABILITY:
            return thread
    return None


# ─── Rebuilding ──────────────────────────────────────────────────────────────

def thread_origin_for_emails(
    thread_emails: list[Email],
    world: WorldState | None = None,
) -> OriginType:
    """Infer a thread's origin from its first email (and sender archetype)."""
    if not thread_emails:
        return OriginType.COMMUNICATION

    first = thread_emails[0]
    if world is not None:
        sender = world.character(first.sender_id)
        if sender is not None:
            origin = strategy_for(sender).thread_origin(EventType.COMMUNICATION)
            if origin in CLOSED_ORIGINS:
                return origin

    if first.type == EmailType.SPAM:
        return OriginType.SPAM
    if first.type == EmailType.NEWSLETTER:
        return OriginType.NEWSLETTER
    if first.type == EmailType.AUTOMATED:
        return OriginType.EXTERNAL
    return OriginType.COMMUNICATION


def _thread_from_emails(
    thread_id: str,
    thread_emails: list[Email],
    world: WorldState | None = None,
) -> Thread:
    first = thread_emails[0]
    thread = Thread(
        id=thread_id,
        subject=first.subject,
        started_at=first.sent_at,
        last_activity_at=first.sent_at,
        origin_type=thread_origin_for_emails(thread_emails, world),
    )
    for email in thread_emails:
        thread.add_email(email)
    return thread


def rebuild_threads(
    emails: list[Email],
    world: WorldState | None = None,
) -> list[Thread]:
    """Thread rows rebuilt from email thread_id groupings, in first-seen order."""
    groups: dict[str, list[Email]] = {}
    for email in emails:
        groups.setdefault(email.thread_id, []).append(email)

    return [
        _thread_from_emails(thread_id, sorted(group, key=lambda e: e.sent_at), world)
        for thread_id, group in groups.items()
    ]


def ensure_threads(world: WorldState) -> int:
    """Add rows for any thread ids that only exist on emails. Returns how many."""
    known = {t.id for t in world.threads}
    missing = [e for e in world.emails if e.thread_id not in known]
    rebuilt = rebuild_threads(missing, world)
    world.threads.extend(rebuilt)
    if rebuilt:
        logger.info(f"Rebuilt {len(rebuilt)} thread(s) from email history")
    return len(rebuilt)

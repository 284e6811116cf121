"""
Tension bookkeeping.

Tensions are the narrative pressure of a world. Each tick an affected
tension gains intensity; unaffected ones decay. Status follows intensity:

    building -> active      when intensity rises above 0.5
    active   -> climax      when intensity reaches 1.0
    climax   -> resolving   on the first tick nothing touches it
    active   -> resolving   when intensity decays to 0.1 or below
    resolving -> resolved   when intensity reaches 0

Resolved tensions are never changed again.
"""

from ..state.schema import (
    CLOSED_ORIGINS,
    Archetype,
    Character,
    ChangeType,
    Email,
    EmailType,
    Tension,
    TensionStatus,
    TensionType,
    Theme,
    Thread,
    WorldStateChange,
)


INTENSITY_STEP = 0.1
DECAY_STEP = 0.05
ACTIVE_THRESHOLD = 0.5
RESOLVING_THRESHOLD = 0.1
KEYWORD_MIN_LENGTH = 5
KEYWORD_MATCH_THRESHOLD = 2

BROADCAST_EMAIL_TYPES = (EmailType.SPAM, EmailType.NEWSLETTER)


# ─── Tension <-> thread linking ──────────────────────────────────────────────

def tension_keywords(description: str) -> list[str]:
    """Lowercased words longer than four characters, in order, deduplicated."""
    keywords: list[str] = []
    for word in description.lower().split(" "):
        if len(word) >= KEYWORD_MIN_LENGTH and word not in keywords:
            keywords.append(word)
    return keywords


def subject_matches_tension(subject: str, tension: Tension) -> bool:
    """Two or more tension keywords appear in the subject."""
    subject = subject.lower()
    hits = sum(1 for k in tension_keywords(tension.description) if k in subject)
    return hits >= KEYWORD_MATCH_THRESHOLD


def map_tensions_to_threads(
    tensions: list[Tension],
    threads: list[Thread],
    emails: list[Email],
) -> dict[str, str]:
    """
    tension id -> id of the thread already carrying that tension.

    An explicit Thread.related_tensions link wins. Otherwise the first
    email (in world order) whose subject matches the tension's keywords
    claims it; each email is attributed to at most one tension. Spam and
    newsletter threads never carry a tension.
    """
    closed = {t.id for t in threads if t.origin_type in CLOSED_ORIGINS}
    mapping: dict[str, str] = {}
    for thread in threads:
        if thread.id in closed:
            continue
        for tension_id in thread.related_tensions:
            mapping.setdefault(tension_id, thread.id)

    for email in emails:
        if email.thread_id in closed or email.type in BROADCAST_EMAIL_TYPES:
            continue
        for tension in tensions:
            if subject_matches_tension(email.subject, tension):
                mapping.setdefault(tension.id, email.thread_id)
                break

    return mapping


# ─── Intensity updates ───────────────────────────────────────────────────────

def _change(tension: Tension, description: str) -> WorldStateChange:
    return WorldStateChange(
        type=ChangeType.TENSION_UPDATE,
        entity_id=tension.id,
        description=description,
    )


def advance_tension(tension: Tension, tick: int) -> list[WorldStateChange]:
    """An event touched this tension. Mutates in place."""
    if tension.status == TensionStatus.RESOLVED:
        return []

    changes = []
    tension.intensity = round(tension.intensity + INTENSITY_STEP, 6)

    if tension.status == TensionStatus.BUILDING and tension.intensity > ACTIVE_THRESHOLD:
        tension.status = TensionStatus.ACTIVE
        changes.append(_change(tension, f'Tension "{tension.description}" became active'))
    elif tension.status == TensionStatus.ACTIVE and tension.intensity >= 1.0:
        tension.status = TensionStatus.CLIMAX
        changes.append(_change(tension, f'Tension "{tension.description}" reached climax'))
    elif tension.status == TensionStatus.RESOLVING:
        # Renewed attention pulls it back into play
        tension.status = TensionStatus.ACTIVE
        changes.append(_change(tension, f'Tension "{tension.description}" flared up again'))

    return changes


def decay_tension(tension: Tension, tick: int) -> list[WorldStateChange]:
    """Nothing touched this tension this tick. Mutates in place."""
    if tension.status == TensionStatus.RESOLVED:
        return []

    changes = []
    tension.intensity = round(tension.intensity - DECAY_STEP, 6)

    if tension.status == TensionStatus.CLIMAX:
        tension.status = TensionStatus.RESOLVING
        changes.append(_change(tension, f'Tension "{tension.description}" is resolving'))
    elif tension.status == TensionStatus.ACTIVE and tension.intensity <= RESOLVING_THRESHOLD:
        tension.status = TensionStatus.RESOLVING
        changes.append(_change(tension, f'Tension "{tension.description}" is resolving'))
    elif tension.status == TensionStatus.RESOLVING and tension.intensity <= 0.0:
        tension.status = TensionStatus.RESOLVED
        tension.resolved_at_tick = tick
        changes.append(_change(tension, f'Tension "{tension.description}" resolved'))

    return changes


def apply_tension_updates(
    tensions: list[Tension],
    affected_ids: list[str],
    tick: int,
) -> list[WorldStateChange]:
    """
    One tick of tension movement.

    Every occurrence of an id in affected_ids is one +0.1 step; tensions
    not in the list decay once.
    """
    changes: list[WorldStateChange] = []
    by_id = {t.id: t for t in tensions}

    for tension_id in affected_ids:
        tension = by_id.get(tension_id)
        if tension is not None:
            changes.extend(advance_tension(tension, tick))

    touched = set(affected_ids)
    for tension in tensions:
        if tension.id not in touched:
            changes.extend(decay_tension(tension, tick))

    return changes


# ─── Initialization ──────────────────────────────────────────────────────────

def initialize_tensions(themes: list[Theme], characters: list[Character]) -> list[Tension]:
    """
    Seed tensions from document themes.

    A conflict per top-three theme between the first protagonist and the
    first antagonist (or skeptic); a secret if an insider exists.
    """
    tensions: list[Tension] = []

    def first(archetype: Archetype) -> Character | None:
        return next((c for c in characters if c.archetype == archetype), None)

    protagonist = first(Archetype.PROTAGONIST)
    opponent = first(Archetype.ANTAGONIST) or first(Archetype.SKEPTIC)

    if protagonist and opponent:
        for theme in themes[:3]:
            tensions.append(Tension(
                type=TensionType.CONFLICT,
                participants=[protagonist.id, opponent.id],
                description=f"Disagreement about {theme.name}",
                intensity=0.3,
                status=TensionStatus.BUILDING,
                related_themes=[theme.id],
                created_at_tick=0,
            ))

    insider = first(Archetype.INSIDER)
    if insider:
        tensions.append(Tension(
            type=TensionType.SECRET,
            participants=[insider.id],
            description="Hidden information that could change everything",
            intensity=0.4,
            status=TensionStatus.BUILDING,
            related_themes=[t.id for t in themes[:1]],
            created_at_tick=0,
        ))

    return tensions

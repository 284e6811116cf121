"""
Pydantic models for mailsim world state.

The world is one aggregate (WorldState) holding every character, tension,
thread and email. It serializes to JSON and is structured like database
tables so callers can persist each collection as rows.
"""

from datetime import datetime
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator
from uuid import uuid4


# -----------------------------------------------------------------------------
# Enums
# -----------------------------------------------------------------------------

class Archetype(str, Enum):
    PROTAGONIST = "protagonist"
    ANTAGONIST = "antagonist"
    SKEPTIC = "skeptic"
    ENTHUSIAST = "enthusiast"
    EXPERT = "expert"
    NEWCOMER = "newcomer"
    SPAMMER = "spammer"
    NEWSLETTER_CURATOR = "newsletter_curator"
    INSIDER = "insider"
    OUTSIDER = "outsider"


class TensionType(str, Enum):
    CONFLICT = "conflict"
    SECRET = "secret"
    DESIRE = "desire"
    MYSTERY = "mystery"
    ALLIANCE = "alliance"
    COMPETITION = "competition"
    REVELATION = "revelation"
    BETRAYAL = "betrayal"
    OPPORTUNITY = "opportunity"


class TensionStatus(str, Enum):
    BUILDING = "building"
    ACTIVE = "active"
    CLIMAX = "climax"
    RESOLVING = "resolving"
    RESOLVED = "resolved"


class GoalPriority(str, Enum):
    IMMEDIATE = "immediate"
    SHORT_TERM = "short-term"
    LONG_TERM = "long-term"


class GoalStage(str, Enum):
    INITIAL = "initial"
    IN_PROGRESS = "in_progress"
    ADVANCED = "advanced"


class EmailFrequency(str, Enum):
    PROLIFIC = "prolific"
    MODERATE = "moderate"
    SPARSE = "sparse"


class EventType(str, Enum):
    COMMUNICATION = "communication"
    DISCOVERY = "discovery"
    DECISION = "decision"
    CONFLICT = "conflict"
    RESOLUTION = "resolution"
    EXTERNAL = "external"


class OriginType(str, Enum):
    """How a thread started. Fixed at creation."""
    COMMUNICATION = "communication"
    SPAM = "spam"
    NEWSLETTER = "newsletter"
    EXTERNAL = "external"


# Threads no communication event may join
CLOSED_ORIGINS = (OriginType.SPAM, OriginType.NEWSLETTER)


class EmailType(str, Enum):
    THREAD_MESSAGE = "thread_message"
    STANDALONE = "standalone"
    NEWSLETTER = "newsletter"
    SPAM = "spam"
    AUTOMATED = "automated"
    FORWARD = "forward"


class Folder(str, Enum):
    INBOX = "inbox"
    SENT = "sent"
    SPAM = "spam"
    NEWSLETTERS = "newsletters"
    FLAGGED = "flagged"
    TRASH = "trash"


class ChangeType(str, Enum):
    CHARACTER_UPDATE = "character_update"
    TENSION_UPDATE = "tension_update"
    RELATIONSHIP_UPDATE = "relationship_update"
    NEW_FACT = "new_fact"


# -----------------------------------------------------------------------------
# Core Models
# -----------------------------------------------------------------------------

def generate_id() -> str:
    return str(uuid4())[:8]


class VoiceProfile(BaseModel):
    """How a character writes. Scales run 0.0-1.0."""
    formality: float = 0.5
    verbosity: float = 0.5
    emoji_usage: float = 0.0
    punctuation_style: str = "standard"  # standard, minimal, expressive
    vocabulary: list[str] = Field(default_factory=list)
    greeting_patterns: list[str] = Field(default_factory=list)
    signoff_patterns: list[str] = Field(default_factory=list)
    quirks: list[str] = Field(default_factory=list)
    sample_outputs: list[str] = Field(default_factory=list)


class VoiceBinding(BaseModel):
    """A character's provider plus persona."""
    model_config = ConfigDict(protected_namespaces=())

    model_id: str = "claude-haiku"
    voice_profile: VoiceProfile = Field(default_factory=VoiceProfile)


class Goal(BaseModel):
    """
    Something a character is pursuing.

    Stage is derived from how many emails have progressed the goal;
    approaches_taken records the angle of each one so later emails
    can avoid repeating it.
    """
    id: str = Field(default_factory=generate_id)
    description: str
    priority: GoalPriority = GoalPriority.SHORT_TERM
    related_tensions: list[str] = Field(default_factory=list)
    emails_sent: list[str] = Field(default_factory=list)
    stage: GoalStage = GoalStage.INITIAL
    approaches_taken: list[str] = Field(default_factory=list)


class MoodSnapshot(BaseModel):
    valence: float = 0.0   # -1 negative to +1 positive
    arousal: float = 0.5
    dominant_emotion: str = "neutral"


class EmotionalState(BaseModel):
    baseline: str = "neutral"  # optimistic, neutral, pessimistic, anxious, confident
    current: MoodSnapshot = Field(default_factory=MoodSnapshot)


class EmailBehavior(BaseModel):
    frequency: EmailFrequency = EmailFrequency.MODERATE
    response_latency: str = "thoughtful"      # immediate, thoughtful, delayed
    typical_length: str = "moderate"          # brief, moderate, lengthy
    thread_participation: str = "mixed"       # initiator, responder, lurker, mixed


class Character(BaseModel):
    """
    A member of the simulated social network.

    Created before the simulation starts. The tick loop only ever
    touches goals and knows.
    """
    id: str = Field(default_factory=generate_id)
    name: str
    email: str
    role: str = ""
    archetype: Archetype | None = None
    voice_binding: VoiceBinding = Field(default_factory=VoiceBinding)
    goals: list[Goal] = Field(default_factory=list)
    emotional_state: EmotionalState = Field(default_factory=EmotionalState)
    email_behavior: EmailBehavior = Field(default_factory=EmailBehavior)
    knows: list[str] = Field(default_factory=list)
    suspects: list[str] = Field(default_factory=list)

    @property
    def is_spammer(self) -> bool:
        return self.archetype == Archetype.SPAMMER

    def immediate_goal(self) -> Goal | None:
        for goal in self.goals:
            if goal.priority == GoalPriority.IMMEDIATE:
                return goal
        return None


class Relationship(BaseModel):
    id: str = Field(default_factory=generate_id)
    participants: tuple[str, str]
    type: str = "colleagues"  # colleagues, friends, rivals, mentor-mentee, ...
    strength: float = 0.5
    sentiment: float = 0.0

    def partner_of(self, character_id: str) -> str | None:
        first, second = self.participants
        if first == character_id:
            return second
        if second == character_id:
            return first
        return None


class Tension(BaseModel):
    """A tracked narrative conflict. Intensity is always clamped to [0, 1]."""
    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=generate_id)
    type: TensionType = TensionType.CONFLICT
    participants: list[str] = Field(default_factory=list)
    description: str
    intensity: float = 0.3
    status: TensionStatus = TensionStatus.BUILDING
    related_themes: list[str] = Field(default_factory=list)
    created_at_tick: int = 0
    resolved_at_tick: int | None = None

    @field_validator("intensity")
    @classmethod
    def clamp_intensity(cls, value: float) -> float:
        return max(0.0, min(1.0, value))

    @property
    def is_live(self) -> bool:
        """Building or active tensions drive events."""
        return self.status in (TensionStatus.BUILDING, TensionStatus.ACTIVE)


class Fact(BaseModel):
    id: str = Field(default_factory=generate_id)
    statement: str
    source: str = "document"  # document, inferred, simulated
    confidence: float = 1.0
    related_entities: list[str] = Field(default_factory=list)


# -----------------------------------------------------------------------------
# Documents (produced by ingestion, read-only here)
# -----------------------------------------------------------------------------

class Claim(BaseModel):
    statement: str
    evidence: list[str] = Field(default_factory=list)
    confidence: float = 0.5


class ArgumentPoint(BaseModel):
    point: str
    supporting: list[str] = Field(default_factory=list)
    order: int = 0


class ConceptRelationship(BaseModel):
    target_concept: str
    relationship_type: str  # is-a, part-of, uses, enables, contrasts-with, ...
    description: str = ""


class ExtractedConcept(BaseModel):
    id: str = Field(default_factory=generate_id)
    name: str
    definition: str = ""
    role_in_document: str = ""
    relationships: list[ConceptRelationship] = Field(default_factory=list)
    details: list[str] = Field(default_factory=list)
    importance: float = 0.5


class Theme(BaseModel):
    id: str = Field(default_factory=generate_id)
    name: str
    description: str = ""
    weight: float = 0.5


class DocumentContext(BaseModel):
    document_type: str = "unknown"
    thesis: str = ""
    summary: str = ""
    argument_structure: list[ArgumentPoint] = Field(default_factory=list)
    core_concepts: list[str] = Field(default_factory=list)
    claims: list[Claim] = Field(default_factory=list)
    significance: str = ""


class ProcessedDocument(BaseModel):
    id: str = Field(default_factory=generate_id)
    title: str = ""
    context: DocumentContext | None = None
    concepts: list[ExtractedConcept] = Field(default_factory=list)
    themes: list[Theme] = Field(default_factory=list)


# -----------------------------------------------------------------------------
# Mail
# -----------------------------------------------------------------------------

class EmailAddress(BaseModel):
    character_id: str
    display_name: str
    address: str

    @classmethod
    def for_character(cls, character: Character) -> "EmailAddress":
        return cls(
            character_id=character.id,
            display_name=character.name,
            address=character.email,
        )


class GenerationProvenance(BaseModel):
    """Who wrote an email, through which provider, for which event."""
    model_config = ConfigDict(protected_namespaces=())

    character_id: str
    model_id: str
    event_id: str
    tick: int
    template_fallback: bool = False


class Email(BaseModel):
    """A single message. Immutable once created."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(default_factory=generate_id)
    thread_id: str
    sender: EmailAddress = Field(alias="from")
    to: list[EmailAddress] = Field(default_factory=list)
    cc: list[EmailAddress] = Field(default_factory=list)
    subject: str
    sent_at: datetime
    generated_at: datetime = Field(default_factory=datetime.now)
    body: str
    body_format: str = "plain"
    type: EmailType = EmailType.STANDALONE
    is_read: bool = False
    is_starred: bool = False
    folder: Folder = Folder.INBOX
    in_reply_to: str | None = None
    references: list[str] = Field(default_factory=list)
    generated_by: GenerationProvenance | None = None

    @property
    def sender_id(self) -> str:
        return self.sender.character_id

    @property
    def recipient_ids(self) -> list[str]:
        return [r.character_id for r in self.to]


class PendingQuestion(BaseModel):
    asked_by: str
    question: str
    asked_in_email: str
    addressed_by: str | None = None


class ConversationState(BaseModel):
    """Derived understanding of where a thread stands."""
    pending_questions: list[PendingQuestion] = Field(default_factory=list)
    points_by_participant: dict[str, list[str]] = Field(default_factory=dict)
    discussed_topics: list[str] = Field(default_factory=list)
    current_focus: str | None = None


class Thread(BaseModel):
    """
    An ordered conversation.

    Created when an event has no matching thread, appended to otherwise.
    Never merged or split. origin_type is fixed at creation.
    """
    id: str = Field(default_factory=generate_id)
    subject: str
    participants: list[str] = Field(default_factory=list)
    emails: list[str] = Field(default_factory=list)
    started_at: datetime
    last_activity_at: datetime
    message_count: int = 0
    related_tensions: list[str] = Field(default_factory=list)
    origin_type: OriginType = OriginType.COMMUNICATION
    conversation_state: ConversationState = Field(default_factory=ConversationState)

    def add_email(self, email: Email) -> None:
        """Append an email and fold its sender/recipients into participants."""
        if email.id in self.emails:
            return
        self.emails.append(email.id)
        self.message_count = len(self.emails)
        if email.sent_at > self.last_activity_at:
            self.last_activity_at = email.sent_at
        for character_id in [email.sender_id, *email.recipient_ids]:
            if character_id not in self.participants:
                self.participants.append(character_id)


# -----------------------------------------------------------------------------
# Simulation
# -----------------------------------------------------------------------------

class SimulatedEvent(BaseModel):
    id: str = Field(default_factory=generate_id)
    tick: int
    simulated_time: datetime
    type: EventType
    description: str
    participants: list[str] = Field(default_factory=list)
    affected_tensions: list[str] = Field(default_factory=list)
    generated_emails: list[str] = Field(default_factory=list)


class WorldStateChange(BaseModel):
    type: ChangeType
    entity_id: str
    description: str


class TickMetrics(BaseModel):
    events_generated: int = 0
    emails_generated: int = 0
    tensions_resolved: int = 0
    tensions_created: int = 0
    duration_ms: int = 0


class TickResult(BaseModel):
    tick_number: int
    simulated_time_start: datetime
    simulated_time_end: datetime
    events: list[SimulatedEvent] = Field(default_factory=list)
    new_emails: list[Email] = Field(default_factory=list)
    world_state_changes: list[WorldStateChange] = Field(default_factory=list)
    metrics: TickMetrics = Field(default_factory=TickMetrics)


class WorldConfig(BaseModel):
    target_email_count: int = 50
    spam_ratio: float = 0.1
    newsletter_interval_ticks: int = 5
    tension_density: float = 0.5
    extrinsic_archetypes: list[Archetype] = Field(default_factory=list)


class WorldState(BaseModel):
    """
    The simulation's single aggregate.

    Owned by the tick loop and replaced wholesale at the end of each
    tick. Lookup helpers return None for unknown ids so callers can skip
    inconsistent references instead of raising.
    """
    id: str = Field(default_factory=generate_id)
    created_at: datetime = Field(default_factory=datetime.now)
    last_tick_at: datetime = Field(default_factory=datetime.now)
    tick_count: int = 0
    simulated_time_start: datetime = Field(default_factory=datetime.now)
    simulated_time_current: datetime | None = None

    characters: list[Character] = Field(default_factory=list)
    relationships: list[Relationship] = Field(default_factory=list)
    tensions: list[Tension] = Field(default_factory=list)
    facts: list[Fact] = Field(default_factory=list)
    events: list[SimulatedEvent] = Field(default_factory=list)
    emails: list[Email] = Field(default_factory=list)
    threads: list[Thread] = Field(default_factory=list)
    documents: list[ProcessedDocument] = Field(default_factory=list)
    config: WorldConfig = Field(default_factory=WorldConfig)

    def model_post_init(self, __context) -> None:
        if self.simulated_time_current is None:
            self.simulated_time_current = self.simulated_time_start

    def character(self, character_id: str) -> Character | None:
        for character in self.characters:
            if character.id == character_id:
                return character
        return None

    def tension(self, tension_id: str) -> Tension | None:
        for tension in self.tensions:
            if tension.id == tension_id:
                return tension
        return None

    def thread(self, thread_id: str) -> Thread | None:
        for thread in self.threads:
            if thread.id == thread_id:
                return thread
        return None

    def first_with_archetype(self, archetype: Archetype) -> Character | None:
        for character in self.characters:
            if character.archetype == archetype:
                return character
        return None

    def thread_emails(self, thread_id: str) -> list[Email]:
        """Emails in a thread, oldest first."""
        emails = [e for e in self.emails if e.thread_id == thread_id]
        return sorted(emails, key=lambda e: e.sent_at)

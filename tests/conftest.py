"""
Pytest fixtures for mailsim tests.

Provides a small world, mock provider clients and an email factory.
"""

import random
from datetime import datetime, timedelta

import pytest

from mailsim.llm import MockLLMClient, ModelRouter
from mailsim.simulation.context import SimulationContext
from mailsim.state.schema import (
    Archetype,
    Character,
    Claim,
    DocumentContext,
    Email,
    EmailAddress,
    EmailBehavior,
    EmailFrequency,
    EmailType,
    Goal,
    GoalPriority,
    ProcessedDocument,
    Relationship,
    Tension,
    TensionStatus,
    Theme,
    Thread,
    VoiceBinding,
    VoiceProfile,
    WorldConfig,
    WorldState,
)


START = datetime(2025, 1, 6, 9, 0)


async def no_sleep(seconds: float) -> None:
    """Stand-in for asyncio.sleep so backoff tests run instantly."""
    return None


class FixedRandom(random.Random):
    """Random whose random() always returns the same value."""

    def __init__(self, value: float):
        super().__init__(0)
        self.value = value

    def random(self) -> float:
        return self.value


def make_character(
    char_id: str,
    name: str,
    archetype: Archetype,
    frequency: EmailFrequency = EmailFrequency.SPARSE,
    goals: list[Goal] | None = None,
) -> Character:
    return Character(
        id=char_id,
        name=name,
        email=f"{char_id}@example.com",
        archetype=archetype,
        voice_binding=VoiceBinding(
            model_id="claude-haiku",
            voice_profile=VoiceProfile(
                greeting_patterns=["Hi"],
                signoff_patterns=["Best"],
                vocabulary=["honestly"],
            ),
        ),
        email_behavior=EmailBehavior(frequency=frequency),
        goals=goals or [],
    )


@pytest.fixture
def alice():
    return make_character(
        "alice", "Alice Chen", Archetype.PROTAGONIST, EmailFrequency.PROLIFIC,
        goals=[Goal(
            id="goal-adopt",
            description="Convince the team to adopt event sourcing",
            priority=GoalPriority.IMMEDIATE,
        )],
    )


@pytest.fixture
def bob():
    return make_character("bob", "Bob Reyes", Archetype.ANTAGONIST)


@pytest.fixture
def carol():
    return make_character("carol", "Carol Singh", Archetype.SKEPTIC)


@pytest.fixture
def nina():
    return make_character("nina", "Nina Park", Archetype.NEWSLETTER_CURATOR)


@pytest.fixture
def sam():
    return make_character("sam", "Sam Spam", Archetype.SPAMMER)


@pytest.fixture
def document():
    return ProcessedDocument(
        id="doc1",
        title="Event Sourcing in Practice",
        context=DocumentContext(
            document_type="article",
            thesis="Event sourcing makes state changes auditable",
            summary="An article about storing every state change as an event.",
            core_concepts=["event sourcing", "CQRS"],
            claims=[Claim(statement="Replaying events rebuilds any past state", evidence=["case study"])],
            significance="Auditability matters for regulated teams",
        ),
        themes=[Theme(id="theme1", name="Architecture", description="System design")],
    )


@pytest.fixture
def world(alice, bob, carol, nina, sam, document):
    """Five characters, one building tension, no emails yet."""
    return WorldState(
        id="world1",
        simulated_time_start=START,
        characters=[alice, bob, carol, nina, sam],
        relationships=[
            Relationship(id="r1", participants=("alice", "bob")),
            Relationship(id="r2", participants=("alice", "carol")),
            Relationship(id="r3", participants=("bob", "carol")),
        ],
        tensions=[Tension(
            id="t1",
            participants=["alice", "bob"],
            description="Disagreement about event sourcing adoption",
            intensity=0.3,
            status=TensionStatus.BUILDING,
        )],
        documents=[document],
        config=WorldConfig(spam_ratio=0.0),
    )


@pytest.fixture
def email_factory():
    """Build emails with sensible defaults; sent_at defaults to START + n minutes."""
    counter = {"n": 0}

    def make(
        thread_id: str,
        sender: str,
        to: list[str],
        body: str = "A perfectly ordinary message with enough words in it.",
        subject: str = "Subject",
        sent_at: datetime | None = None,
        email_type: EmailType = EmailType.STANDALONE,
        email_id: str | None = None,
    ) -> Email:
        counter["n"] += 1
        kwargs = {"id": email_id} if email_id else {}
        return Email(
            thread_id=thread_id,
            sender=EmailAddress(character_id=sender, display_name=sender.title(), address=f"{sender}@example.com"),
            to=[EmailAddress(character_id=r, display_name=r.title(), address=f"{r}@example.com") for r in to],
            subject=subject,
            sent_at=sent_at or START + timedelta(minutes=counter["n"]),
            body=body,
            type=email_type,
            **kwargs,
        )

    return make


def add_thread(world: WorldState, emails: list[Email], **thread_kwargs) -> Thread:
    """Append emails and a matching thread row to a world."""
    first = emails[0]
    thread = Thread(
        id=first.thread_id,
        subject=first.subject,
        started_at=first.sent_at,
        last_activity_at=first.sent_at,
        **thread_kwargs,
    )
    for email in emails:
        world.emails.append(email)
        thread.add_email(email)
    world.threads.append(thread)
    return thread


@pytest.fixture
def mock_client():
    return MockLLMClient(responses=["Hi Bob,\n\nEvent sourcing keeps the audit trail honest.\n\nBest,\nAlice"])


@pytest.fixture
def router(mock_client):
    """Router with a single mock provider in the claude-haiku slot."""
    return ModelRouter(clients={"claude-haiku": mock_client}, sleep=no_sleep)


@pytest.fixture
def offline_router():
    return ModelRouter(clients={}, sleep=no_sleep)


@pytest.fixture
def ctx(router):
    return SimulationContext(router=router, rng=random.Random(7))

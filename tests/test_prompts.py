"""Tests for prompt assembly, archetype strategies and document merging."""

import random

from mailsim.simulation.analysis import ThreadAnalysis
from mailsim.simulation.archetypes import (
    GENERIC_SUBJECTS,
    SPAM_SUBJECTS,
    ArchetypeStrategy,
    NewsletterStrategy,
    SpamStrategy,
    strategy_for,
)
from mailsim.simulation.documents import merged_document_context
from mailsim.simulation.prompts import (
    EmailPromptInputs,
    anti_repetition_section,
    build_email_prompt,
    build_newsletter_prompt,
)
from mailsim.state.schema import (
    Archetype,
    DocumentContext,
    EmailType,
    EventType,
    Folder,
    OriginType,
    ProcessedDocument,
)

from conftest import make_character


def inputs_for(world, sender, recipients, **kwargs) -> EmailPromptInputs:
    defaults = {
        "subject": "Event sourcing",
        "event_description": "Discussion about adoption",
        "affected_tensions": ["t1"],
        "world": world,
    }
    defaults.update(kwargs)
    return EmailPromptInputs(sender=sender, recipients=recipients, **defaults)


class TestEmailPrompt:
    """Grounded conversational prompt."""

    def test_new_conversation(self, world, alice, bob):
        prompt = build_email_prompt(inputs_for(world, alice, [bob]), random.Random(1))

        assert prompt.startswith("You are Alice Chen. Write an email to Bob Reyes.")
        assert "Current situation: Disagreement about event sourcing adoption" in prompt
        assert "You're introducing: Convince the team to adopt event sourcing" in prompt
        assert 'THESIS: "Event sourcing makes state changes auditable"' in prompt
        assert "CLAIM TO DISCUSS: Replaying events rebuilds any past state" in prompt
        assert "This is a NEW conversation" in prompt
        assert 'use actual terms like "event sourcing"' in prompt

    def test_reply_quotes_last_message(self, world, alice, bob):
        inputs = inputs_for(
            world, alice, [bob],
            previous_messages=["From: Bob Reyes\nHow will we migrate the legacy reporting database?"],
            unanswered_points=["How will we migrate the legacy reporting database?"],
            points_already_made=["Replaying events rebuilds state"],
            analysis=ThreadAnalysis(topics_covered=["migration"], suggested_direction="Talk costs"),
        )

        prompt = build_email_prompt(inputs, random.Random(1))

        assert "SPECIFIC POINT FROM Bob Reyes" in prompt
        assert '"How will we migrate the legacy reporting database"' in prompt
        assert "CONVERSATION SO FAR" in prompt
        assert "• migration" in prompt
        assert "DO NOT REPEAT" in prompt
        assert "-> How will we migrate" in prompt

    def test_anti_repetition_keeps_last_five(self):
        section = anti_repetition_section([f"point {i}" for i in range(7)])
        assert "point 0" not in section
        assert '5. "point 6..."' in section

    def test_no_documents_no_document_section(self, world, alice, bob):
        world.documents = []
        prompt = build_email_prompt(inputs_for(world, alice, [bob]), random.Random(1))

        assert "MUST REFERENCE THIS DOCUMENT" not in prompt
        assert "the key concept" in prompt

    def test_newsletter_prompt(self, world):
        prompt = build_newsletter_prompt(world)

        assert "Event sourcing makes state changes auditable" in prompt
        assert "- Architecture: System design" in prompt
        assert "CLAIM: Replaying events rebuilds any past state" in prompt


class TestStrategies:
    """Per-archetype decisions."""

    def test_lookup(self, alice, nina, sam):
        assert isinstance(strategy_for(nina), NewsletterStrategy)
        assert isinstance(strategy_for(sam), SpamStrategy)
        assert type(strategy_for(make_character("x", "X", Archetype.EXPERT))) is ArchetypeStrategy
        assert strategy_for(alice).folder == Folder.INBOX

    def test_types_and_origins(self):
        default = ArchetypeStrategy()
        assert default.email_type(EventType.EXTERNAL) == EmailType.AUTOMATED
        assert default.email_type(EventType.COMMUNICATION) == EmailType.STANDALONE
        assert default.thread_origin(EventType.EXTERNAL) == OriginType.EXTERNAL
        assert SpamStrategy().thread_origin(EventType.COMMUNICATION) == OriginType.SPAM
        assert NewsletterStrategy().email_type(EventType.COMMUNICATION) == EmailType.NEWSLETTER

    def test_subjects(self, world):
        rng = random.Random(1)
        assert ArchetypeStrategy().new_subject([], world, rng) in GENERIC_SUBJECTS
        assert SpamStrategy().new_subject([], world, rng) in SPAM_SUBJECTS
        world.tick_count = 4
        assert NewsletterStrategy().new_subject([], world, rng) == "Weekly Architecture Digest #5"

    def test_fallback_email_shape(self, alice):
        body = strategy_for(alice).fallback_email(alice, "Working on: Adoption", None, random.Random(1))

        assert body.startswith("Hi,\n\n")
        assert body.endswith("\n\nBest,\nAlice Chen")
        assert "working on: adoption" in body

    def test_newsletter_fallback_uses_document(self, nina, document):
        body = NewsletterStrategy().fallback_email(nina, "Newsletter", document.context, random.Random(1))

        assert "This week's focus: Event sourcing makes state changes auditable." in body
        assert "• CQRS" in body
        assert "Why this matters: Auditability matters for regulated teams" in body


class TestDocuments:
    """Merging several documents."""

    def test_single_document_returned_as_is(self, document):
        assert merged_document_context([document]) is document.context

    def test_none_without_context(self):
        assert merged_document_context([ProcessedDocument(title="raw")]) is None

    def test_merges_concepts_and_theses(self, document):
        other = ProcessedDocument(context=DocumentContext(
            thesis="Snapshots bound replay time",
            core_concepts=["CQRS", "snapshots"],
        ))

        merged = merged_document_context([document, other])

        assert merged.core_concepts == ["event sourcing", "CQRS", "snapshots"]
        assert merged.thesis == "Event sourcing makes state changes auditable Additionally, Snapshots bound replay time"
        assert len(merged.claims) == 1

"""
Archetype strategies.

Each archetype supplies its own prompt shape, fallback template, folder,
email type, thread origin and new-thread subject. Conversational
archetypes differ only in their fallback templates; newsletter curators
and spammers change every decision.
"""

import random

from ..state.schema import (
    Archetype,
    Character,
    DocumentContext,
    EmailType,
    EventType,
    Folder,
    OriginType,
    VoiceProfile,
    WorldState,
)
from .documents import all_themes
from .prompts import SPAM_PROMPT, EmailPromptInputs, build_email_prompt, build_newsletter_prompt


GENERIC_SUBJECTS = (
    "Quick question",
    "Following up",
    "Thoughts on this?",
    "Need your input",
    "Update",
    "FYI",
)

SPAM_SUBJECTS = (
    "URGENT: You've been selected!",
    "Limited Time Offer - Act Now!",
    "Congratulations! You Won!",
    "Exclusive Deal Just For You",
    "Don't Miss This Opportunity!",
    "Special Invitation Inside",
    "Your Free Gift Awaits",
)

QUIRK_PROBABILITY = 0.5
TENSION_SUBJECT_CHARS = 50


class ArchetypeStrategy:
    """
    Default behaviour: a professional, neutral correspondent.

    Subclasses override the class attributes or the template list; the
    two broadcast archetypes override most methods.
    """

    folder = Folder.INBOX
    uses_thread_analysis = True
    broadcasts = False
    templates: tuple[str, ...] = (
        "I wanted to touch base about {topic}. Let me know your thoughts when you have a chance.{quirk}",
        "Following up on {topic}. Would be good to sync up on this soon.",
        "Quick note regarding {topic}. I have some updates to share and would appreciate your input.",
        "Reaching out about {topic}. There are a few things we should discuss.",
        "Wanted to check in on {topic}. Let me know if you have time to connect.",
        "I've been working on {topic} and wanted to loop you in. Happy to discuss further.",
    )

    def build_prompt(self, inputs: EmailPromptInputs, rng: random.Random) -> str:
        return build_email_prompt(inputs, rng)

    def email_type(self, event_type: EventType) -> EmailType:
        if event_type == EventType.EXTERNAL:
            return EmailType.AUTOMATED
        return EmailType.STANDALONE

    def thread_origin(self, event_type: EventType) -> OriginType:
        if event_type == EventType.EXTERNAL:
            return OriginType.EXTERNAL
        return OriginType.COMMUNICATION

    def new_subject(
        self,
        affected_tensions: list[str],
        world: WorldState,
        rng: random.Random,
    ) -> str:
        for tension_id in affected_tensions[:1]:
            tension = world.tension(tension_id)
            if tension:
                return f"Re: {tension.description[:TENSION_SUBJECT_CHARS]}"
        return rng.choice(GENERIC_SUBJECTS)

    # ----- Fallback text -----

    def fallback_body(
        self,
        topic: str,
        voice: VoiceProfile,
        doc: DocumentContext | None,
        rng: random.Random,
    ) -> str:
        vocab = f"{rng.choice(voice.vocabulary)}! " if voice.vocabulary else ""
        quirk = ""
        if voice.quirks and rng.random() > QUIRK_PROBABILITY:
            quirk = f" {rng.choice(voice.quirks)}"
        template = rng.choice(self.templates)
        return template.format(topic=topic, quirk=quirk, vocab=vocab)

    def fallback_email(
        self,
        sender: Character,
        event_description: str,
        doc: DocumentContext | None,
        rng: random.Random,
    ) -> str:
        """Deterministic templated email used when generation fails."""
        voice = sender.voice_binding.voice_profile
        greeting = rng.choice(voice.greeting_patterns) if voice.greeting_patterns else "Hi"
        signoff = rng.choice(voice.signoff_patterns) if voice.signoff_patterns else "Best"
        body = self.fallback_body(event_description.lower(), voice, doc, rng)
        return f"{greeting},\n\n{body}\n\n{signoff},\n{sender.name}"


class ProtagonistStrategy(ArchetypeStrategy):
    templates = (
        "I've been thinking about {topic} and I believe we need to take action. Let me outline my thoughts and get your perspective on how we move forward.",
        "Regarding {topic} - I've put together some ideas. I think we have a real opportunity here if we approach this right.{quirk}",
        "I wanted to connect about {topic}. There's some important ground to cover and I'd value your input on the direction we should take.",
        "Quick note on {topic}. I've been working on this and have some concrete proposals to share. Would love to discuss when you have a moment.",
    )


class AntagonistStrategy(ArchetypeStrategy):
    templates = (
        "I have concerns about {topic}. Before we proceed, I think we need to reconsider some assumptions. I'm not convinced we're on the right track.",
        "Regarding {topic} - I've reviewed this carefully and I see some significant issues we haven't addressed. We should talk.{quirk}",
        "I need to raise some objections about {topic}. I know this might not be what you want to hear, but someone has to say it.",
        "I'm pushing back on {topic}. The current approach has problems and I think we need a different perspective here.",
    )


class SkepticStrategy(ArchetypeStrategy):
    templates = (
        "I've been looking into {topic} and I have some questions. Have we fully considered all the implications? I'd like to see more data.",
        "On {topic} - I'm not entirely sold yet. What's the evidence supporting this direction? I want to make sure we're not missing something.{quirk}",
        "Before we commit to {topic}, can we review the assumptions? I've found a few things that warrant closer examination.",
        "I'm taking a careful look at {topic}. There are some aspects that don't quite add up for me. Can we discuss?",
    )


class EnthusiastStrategy(ArchetypeStrategy):
    templates = (
        "I'm really excited about {topic}! This could be exactly what we need. I have so many ideas and can't wait to get started!",
        "Great news about {topic}! I've been thinking about this and I see so much potential here. Let's make this happen!{quirk}",
        "Love the direction with {topic}! This is going to be amazing. I'm all in and ready to contribute however I can!",
        "{vocab}The {topic} stuff is fantastic! I'm genuinely pumped about where this could go.",
    )


class NewsletterStrategy(ArchetypeStrategy):
    folder = Folder.NEWSLETTERS
    uses_thread_analysis = False
    broadcasts = True
    openers = (
        "This week has been eventful! Here's what's happening with {topic}.",
        "We've got some updates to share regarding {topic}.",
        "Time for your regular briefing on {topic}.",
    )

    def build_prompt(self, inputs: EmailPromptInputs, rng: random.Random) -> str:
        return build_newsletter_prompt(inputs.world)

    def email_type(self, event_type: EventType) -> EmailType:
        return EmailType.NEWSLETTER

    def thread_origin(self, event_type: EventType) -> OriginType:
        return OriginType.NEWSLETTER

    def new_subject(self, affected_tensions, world, rng) -> str:
        themes = all_themes(world.documents)
        top_theme = themes[0].name if themes else "Updates"
        return f"Weekly {top_theme} Digest #{world.tick_count + 1}"

    def fallback_body(self, topic, voice, doc, rng) -> str:
        quirk = ""
        if voice.quirks and rng.random() > QUIRK_PROBABILITY:
            quirk = f" {rng.choice(voice.quirks)}"

        thesis = doc.thesis if doc else ""
        concepts = doc.core_concepts[:4] if doc else []
        if not thesis and not concepts:
            opener = rng.choice(self.openers).format(topic=topic)
            return (
                f"{opener}\n\nWe're tracking several developments that could reshape how we "
                f"think about this space. Stay tuned for deeper analysis.{quirk}"
            )

        sections = [f"This week's focus: {thesis[:200] or 'recent developments'}."]
        if concepts:
            sections.append("Key concepts explored:\n" + "\n".join(f"• {c}" for c in concepts))
        if doc.claims:
            sections.append("Notable findings:\n" + "\n".join(
                f"• {c.statement[:150]}" for c in doc.claims[:2]
            ))
        if doc.significance:
            sections.append(f"Why this matters: {doc.significance[:200]}")
        sections.append(f"More analysis in upcoming editions.{quirk}")
        return "\n\n".join(sections)


class SpamStrategy(ArchetypeStrategy):
    folder = Folder.SPAM
    uses_thread_analysis = False
    broadcasts = True
    openers = (
        "Don't miss out on this LIMITED TIME opportunity!",
        "URGENT: This offer expires SOON!",
        "You've been specially selected for an exclusive deal!",
        "Act NOW before it's too late!",
    )
    bodies = (
        "Our team has identified you as someone who deserves the BEST. Click now to claim your special reward!",
        "Thousands are already benefiting from this amazing offer. Why aren't you?",
        "This is your FINAL NOTICE. The opportunity of a lifetime awaits!",
        "We're practically GIVING this away. But only for the next 24 hours!",
    )
    calls_to_action = (
        "Reply NOW to secure your spot!",
        "Don't let this slip away - respond TODAY!",
        "Time is running out. Act immediately!",
    )

    def build_prompt(self, inputs: EmailPromptInputs, rng: random.Random) -> str:
        return SPAM_PROMPT

    def email_type(self, event_type: EventType) -> EmailType:
        return EmailType.SPAM

    def thread_origin(self, event_type: EventType) -> OriginType:
        return OriginType.SPAM

    def new_subject(self, affected_tensions, world, rng) -> str:
        return rng.choice(SPAM_SUBJECTS)

    def fallback_body(self, topic, voice, doc, rng) -> str:
        return "\n\n".join([
            rng.choice(self.openers),
            rng.choice(self.bodies),
            rng.choice(self.calls_to_action),
        ])


_DEFAULT = ArchetypeStrategy()
STRATEGIES: dict[Archetype, ArchetypeStrategy] = {
    Archetype.PROTAGONIST: ProtagonistStrategy(),
    Archetype.ANTAGONIST: AntagonistStrategy(),
    Archetype.SKEPTIC: SkepticStrategy(),
    Archetype.ENTHUSIAST: EnthusiastStrategy(),
    Archetype.NEWSLETTER_CURATOR: NewsletterStrategy(),
    Archetype.SPAMMER: SpamStrategy(),
}


def strategy_for(character: Character) -> ArchetypeStrategy:
    """Strategy for a character's archetype; the default for the rest."""
    if character.archetype is None:
        return _DEFAULT
    return STRATEGIES.get(character.archetype, _DEFAULT)

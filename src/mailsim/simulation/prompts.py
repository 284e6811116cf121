"""
Prompt assembly for email generation.

Conversational emails get a grounded prompt: document context merged
across every document, the recent thread, what the sender has already
said, what others are waiting on, and the cached thread analysis.
Newsletter and spam prompts are simpler shapes.
"""

import random
from dataclasses import dataclass, field

from ..state.schema import (
    Character,
    DocumentContext,
    ExtractedConcept,
    GoalStage,
    WorldState,
)
from .analysis import ThreadAnalysis
from .conversation import pick_quote_to_address
from .documents import all_concepts, all_themes, merged_document_context


RULE = "=" * 79


def _banner(title: str) -> str:
    return f"{RULE}\n{title}\n{RULE}"


@dataclass
class EmailPromptInputs:
    """Everything a prompt may draw on for one email."""
    sender: Character
    recipients: list[Character]
    subject: str
    event_description: str
    affected_tensions: list[str]
    world: WorldState
    previous_messages: list[str] = field(default_factory=list)
    points_already_made: list[str] = field(default_factory=list)
    unanswered_points: list[str] = field(default_factory=list)
    analysis: ThreadAnalysis | None = None

    @property
    def recipient_names(self) -> str:
        return ", ".join(r.name for r in self.recipients)

    @property
    def document_context(self) -> DocumentContext | None:
        return merged_document_context(self.world.documents)


# ─── Shared sections ─────────────────────────────────────────────────────────

def _concept_lines(concepts: list[ExtractedConcept], definition_chars: int) -> str:
    lines = []
    for concept in concepts:
        role = concept.role_in_document or concept.definition[:definition_chars] or "Key concept"
        lines.append(f"• {concept.name}: {role}")
        for rel in concept.relationships[:2]:
            lines.append(f"    -> {rel.relationship_type}: {rel.target_concept}")
    return "\n".join(lines)


def context_info(inputs: EmailPromptInputs) -> str:
    """Tension situation and goal progression for the sender."""
    lines = []
    for tension_id in inputs.affected_tensions[:1]:
        tension = inputs.world.tension(tension_id)
        if tension:
            lines.append(f"Current situation: {tension.description}")

    goal = inputs.sender.immediate_goal()
    if goal:
        if goal.stage == GoalStage.INITIAL:
            lines.append(f"You're introducing: {goal.description}")
        elif goal.approaches_taken:
            lines.append(f"You're advancing: {goal.description}")
            lines.append(f"You've already discussed: {', '.join(goal.approaches_taken[-2:])}")
            lines.append("Now take a NEW angle or build on the conversation.")
    return "\n".join(lines)


def document_section(inputs: EmailPromptInputs, rng: random.Random) -> str:
    doc = inputs.document_context
    if doc is None or not doc.thesis:
        return ""

    concepts = all_concepts(inputs.world.documents)[:5]
    if concepts:
        concept_section = "KEY CONCEPTS AND CONNECTIONS:\n" + _concept_lines(concepts, 80)
    else:
        concept_section = f"KEY CONCEPTS: {', '.join(doc.core_concepts[:4])}"

    claim_section = ""
    if doc.claims:
        claim = doc.claims[rng.randrange(min(3, len(doc.claims)))]
        evidence = "; ".join(claim.evidence[:2]) or "See document"
        claim_section = f"CLAIM TO DISCUSS: {claim.statement}\nEVIDENCE: {evidence}"

    argument = ""
    if doc.argument_structure:
        steps = "\n".join(f"{i + 1}. {a.point}" for i, a in enumerate(doc.argument_structure[:3]))
        argument = f"\n\nARGUMENT FLOW (discussion should follow this logic):\n{steps}"

    significance = doc.significance[:200] or "Important findings"

    return f"""
{_banner("CRITICAL: YOUR EMAIL MUST REFERENCE THIS DOCUMENT")}

THESIS: "{doc.thesis}"

{concept_section}

{claim_section}

WHY THIS MATTERS: {significance}

{RULE}
DOCUMENT SUMMARY (for context):
{doc.summary[:800]}{argument}
{RULE}

YOUR EMAIL MUST:
1. Reference at least one concept from above (use its relationships for context)
2. React to or engage with the thesis
3. Follow the document's argument flow in your reasoning
4. NOT use generic phrases like "Q4 launch" or "Series B" unless in document
"""


def analysis_section(analysis: ThreadAnalysis | None) -> str:
    if analysis is None:
        return ""

    topics = "\n".join(f"• {t}" for t in analysis.topics_covered) or "(None yet - this starts a new discussion)"
    positions = "\n".join(
        f"• {p.name}: {p.position}" for p in analysis.participant_positions
    ) or "(No positions established yet)"
    questions = "\n".join(f"• {q}" for q in analysis.open_questions) or "(No open questions)"

    return f"""
{_banner("CONVERSATION ANALYSIS (what's been discussed so far)")}

TOPICS ALREADY COVERED (don't rehash):
{topics}

POSITIONS BY PARTICIPANT:
{positions}

OPEN QUESTIONS NEEDING RESPONSE:
{questions}

SUGGESTED NEXT DIRECTION:
{analysis.suggested_direction}
"""


def anti_repetition_section(points: list[str]) -> str:
    if not points:
        return ""

    numbered = "\n".join(f'{i + 1}. "{p[:80]}..."' for i, p in enumerate(points[-5:]))
    return f"""
{_banner("FORBIDDEN - YOU ALREADY MADE THESE POINTS (DO NOT REPEAT ANY OF THEM)")}
{numbered}

IF YOU REPEAT ANY POINT ABOVE, YOUR EMAIL IS INVALID.

Instead, you MUST do one of these:
• ANSWER a question someone asked you (see previous messages)
• ASK a NEW question you haven't asked before
• PROPOSE a concrete next step (meeting, decision, action)
• SHARE a specific example or data point not yet mentioned
• CHANGE YOUR POSITION based on what you've learned from others
{RULE}
"""


def response_section(unanswered: list[str]) -> str:
    if not unanswered:
        return ""

    items = "\n".join(f"-> {p[:150]}" for p in unanswered)
    return f"""
{_banner("RESPOND TO THESE (from other participants - they're waiting for your input)")}
{items}

Address at least one of these BEFORE making new arguments.
"""


def thread_context(inputs: EmailPromptInputs, rng: random.Random) -> str:
    """The conversation so far (with a quote to engage), or new-thread guidance."""
    if not inputs.previous_messages:
        return f"""
This is a NEW conversation. Start by:
1. Stating your main point or question clearly
2. Grounding it in specific document content
3. Inviting a specific response from {inputs.recipient_names}
"""

    last = inputs.previous_messages[-1]
    header, _, body = last.partition("\n")
    last_sender = header.removeprefix("From:").strip() if header.startswith("From:") else "the previous sender"
    quote = pick_quote_to_address(body.replace("\n", " "), rng)

    quote_section = ""
    if quote:
        quote_section = f"""
{_banner(f"YOU MUST RESPOND TO THIS SPECIFIC POINT FROM {last_sender}:")}

"{quote[:200]}"

YOUR RESPONSE MUST:
1. START by directly addressing this quote (agree, disagree, or answer the question)
2. Use phrases like "You asked about...", "Regarding your point on...", "To answer your question..."
3. THEN add your own perspective or follow-up
{RULE}
"""

    conversation = "\n---\n".join(inputs.previous_messages)
    return f"""{quote_section}
{_banner("CONVERSATION SO FAR")}
{conversation}
"""


# ─── Prompt shapes ───────────────────────────────────────────────────────────

def build_email_prompt(inputs: EmailPromptInputs, rng: random.Random) -> str:
    """Full grounded prompt for a conversational email."""
    sender = inputs.sender
    doc = inputs.document_context
    first_concept = doc.core_concepts[0] if doc and doc.core_concepts else "the key concept"
    knowledge = "- " + "\n- ".join(sender.knows) if sender.knows else "General understanding of the topic"

    return f"""You are {sender.name}. Write an email to {inputs.recipient_names}.
Subject: {inputs.subject}
{context_info(inputs)}
{document_section(inputs, rng)}
YOUR KNOWLEDGE AND PERSPECTIVE:
{knowledge}
{thread_context(inputs, rng)}{analysis_section(inputs.analysis)}{anti_repetition_section(inputs.points_already_made)}{response_section(inputs.unanswered_points)}
{_banner("WRITING REQUIREMENTS")}

1. Reference SPECIFIC concepts from the document (use actual terms like "{first_concept}")
2. If replying, start by engaging with what the last person ACTUALLY said
3. Each email must have ONE clear purpose - don't ramble
4. Write as {sender.name} - match their personality and perspective
5. Be concrete: use specific examples, numbers, or quotes from the document
6. Ask a genuine question or make a genuine point - don't just fill space

Trigger for this email: {inputs.event_description}
Length: 75-150 words. Quality over quantity."""


def build_newsletter_prompt(world: WorldState) -> str:
    doc = merged_document_context(world.documents) or DocumentContext()
    themes = "\n".join(f"- {t.name}: {t.description}" for t in all_themes(world.documents)[:4])
    concepts = _concept_lines(all_concepts(world.documents)[:8], 150)
    claims = "\n".join(
        f"• CLAIM: {c.statement}\n   EVIDENCE: {'; '.join(c.evidence[:2]) or 'From document analysis'}"
        for c in doc.claims[:3]
    )

    return f"""Write a newsletter email about this document. Be substantive and specific.

{_banner("DOCUMENT CONTENT (understand this thoroughly before writing)")}

MAIN THESIS:
{doc.thesis}

FULL SUMMARY:
{doc.summary[:1200]}

KEY TOPICS:
{themes}

KEY CONCEPTS AND THEIR CONNECTIONS (pick 2-3 to focus on deeply):
{concepts}

KEY CLAIMS WITH EVIDENCE (cite these for credibility):
{claims}

WHY THIS MATTERS:
{doc.significance}

{_banner("WRITING REQUIREMENTS")}

Write an informative newsletter that:
1. Opens with a hook that captures the document's significance
2. Explains the main thesis in accessible but technically accurate terms
3. Dives DEEP into 2-3 key concepts - use actual terminology and specific details
4. Includes at least one specific claim or finding from the document
5. Connects the ideas to practical implications
6. Avoids vague corporate buzzwords - be concrete and specific

Length: 200-300 words. Substance over fluff."""


SPAM_PROMPT = """Write a spam/promotional email. Be slightly over-the-top and promotional.
Include vague urgency and a call to action. Length: 50-100 words."""

"""
Semantic thread analysis.

One cheap structured call per thread per new message tells the next
writer what has been covered, who stands where, and what is still open.
Results are cached per thread and invalidated whenever the thread grows.
"""

import logging

from pydantic import BaseModel, ConfigDict, Field

from ..llm.base import GenerationOptions
from ..state.schema import Character, Email, PendingQuestion, Thread, WorldState
from .documents import merged_document_context

logger = logging.getLogger(__name__)


ANALYSIS_TEMPERATURE = 0.3


class ParticipantPosition(BaseModel):
    name: str
    position: str


class ThreadAnalysis(BaseModel):
    """Where a conversation stands. Accepts camelCase keys from providers."""
    model_config = ConfigDict(populate_by_name=True)

    topics_covered: list[str] = Field(default_factory=list, alias="topicsCovered")
    participant_positions: list[ParticipantPosition] = Field(
        default_factory=list, alias="participantPositions"
    )
    open_questions: list[str] = Field(default_factory=list, alias="openQuestions")
    suggested_direction: str = Field(default="", alias="suggestedDirection")
    emotional_tone: str = Field(default="neutral", alias="emotionalTone")


class ThreadAnalysisCache:
    """
    thread id -> (analysis, email count when analyzed).

    An entry is only served while the thread still has the same number
    of emails. Cleared at the start of every run.
    """

    def __init__(self):
        self._entries: dict[str, tuple[ThreadAnalysis, int]] = {}

    def get(self, thread_id: str, email_count: int) -> ThreadAnalysis | None:
        entry = self._entries.get(thread_id)
        if entry is None or entry[1] != email_count:
            return None
        return entry[0]

    def put(self, thread_id: str, analysis: ThreadAnalysis, email_count: int) -> None:
        self._entries[thread_id] = (analysis, email_count)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, thread_id: str) -> bool:
        return thread_id in self._entries


def build_analysis_prompt(
    thread_emails: list[Email],
    sender: Character,
    world: WorldState,
) -> str:
    transcript = "\n\n".join(
        f"[{_display_name(e, world)}]: {e.body}" for e in thread_emails
    )
    doc_context = merged_document_context(world.documents)
    thesis = doc_context.thesis if doc_context else ""
    concepts = ", ".join(doc_context.core_concepts) if doc_context else ""
    archetype = sender.archetype.value if sender.archetype else "unknown"

    return f"""Analyze this email thread to help a participant write a meaningful response.

DOCUMENT BEING DISCUSSED:
Thesis: {thesis}
Key concepts: {concepts}

EMAIL THREAD:
{transcript}

NEXT SENDER: {sender.name} ({archetype})

Analyze and provide:
1. What specific topics/points have been covered (not vague summaries)
2. Each participant's position/stance on the document
3. Open questions that need responses
4. What direction would advance this conversation productively

Respond with JSON:
{{
  "topicsCovered": ["specific topic 1", "specific topic 2"],
  "participantPositions": [
    {{"name": "Person Name", "position": "Their specific stance"}}
  ],
  "openQuestions": ["Actual question from thread?"],
  "suggestedDirection": "What {sender.name} should focus on to advance the discussion",
  "emotionalTone": "collaborative|contentious|neutral|enthusiastic"
}}"""


def _display_name(email: Email, world: WorldState) -> str:
    character = world.character(email.sender_id)
    return character.name if character else email.sender.display_name


async def analyze_thread(
    router,
    model_id: str,
    thread_emails: list[Email],
    sender: Character,
    world: WorldState,
) -> ThreadAnalysis | None:
    """
    Run one structured analysis call.

    Any failure (provider, bad JSON, schema mismatch) degrades to None;
    email generation proceeds without analysis.
    """
    if not thread_emails:
        return None

    prompt = build_analysis_prompt(thread_emails, sender, world)
    try:
        return await router.generate_structured(
            model_id,
            prompt,
            GenerationOptions(temperature=ANALYSIS_TEMPERATURE),
            schema=ThreadAnalysis,
            purpose="thread_analysis",
        )
    except Exception as e:
        logger.warning(f"Thread analysis failed, proceeding without: {e}")
        return None


async def cached_thread_analysis(
    cache: ThreadAnalysisCache,
    router,
    model_id: str,
    thread_id: str,
    thread_emails: list[Email],
    sender: Character,
    world: WorldState,
) -> ThreadAnalysis | None:
    """Serve from cache while the thread has not grown; otherwise re-analyze."""
    cached = cache.get(thread_id, len(thread_emails))
    if cached is not None:
        return cached

    analysis = await analyze_thread(router, model_id, thread_emails, sender, world)
    if analysis is not None:
        cache.put(thread_id, analysis, len(thread_emails))
    return analysis


def apply_analysis(
    thread: Thread,
    analysis: ThreadAnalysis,
    thread_emails: list[Email],
    world: WorldState,
) -> None:
    """Fold an analysis into the thread's conversation state. Mutates thread."""
    state = thread.conversation_state
    state.discussed_topics = list(analysis.topics_covered)
    state.current_focus = analysis.suggested_direction or None

    # The asker is unknown; attribute open questions to the latest message
    last = thread_emails[-1] if thread_emails else None
    if last is not None:
        state.pending_questions = [
            PendingQuestion(asked_by=last.sender_id, question=q, asked_in_email=last.id)
            for q in analysis.open_questions
        ]

    by_name = {c.name: c.id for c in world.characters}
    for position in analysis.participant_positions:
        character_id = by_name.get(position.name)
        if character_id:
            state.points_by_participant[character_id] = [position.position]

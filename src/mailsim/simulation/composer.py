"""
Email generator.

Turns one planned event into one Email. Generation goes through the
sender's voice binding on the router; any failure there falls back to
archetype templates, so an email is always produced.
"""

import logging
from datetime import datetime

from ..llm.base import GenerationContext, NoProviderAvailableError, RateLimitError
from ..state.schema import (
    Character,
    Email,
    EmailAddress,
    EmailType,
    GenerationProvenance,
    Thread,
    WorldState,
)
from .analysis import apply_analysis, cached_thread_analysis
from .archetypes import strategy_for
from .context import SimulationContext
from .conversation import find_unanswered_points, sender_points
from .documents import merged_document_context
from .planner import PlannedEvent
from .prompts import EmailPromptInputs

logger = logging.getLogger(__name__)


PREVIOUS_MESSAGE_COUNT = 5
# Prefix length used when checking whether a body mentions a concept
CONCEPT_MATCH_CHARS = 12


def categorize_generation_error(error: BaseException) -> str:
    """Coarse bucket for logging: api_unavailable, rate_limit, invalid_request or unknown."""
    if isinstance(error, NoProviderAvailableError):
        return "api_unavailable"
    if isinstance(error, RateLimitError):
        return "rate_limit"
    message = str(error).lower()
    if "401" in message or "403" in message or "unavailable" in message:
        return "api_unavailable"
    if "429" in message or "rate" in message:
        return "rate_limit"
    if "400" in message or "invalid" in message:
        return "invalid_request"
    return "unknown"


def references_concept(body: str, concepts: list[str]) -> bool:
    lower = body.lower()
    return any(c.lower()[:CONCEPT_MATCH_CHARS] in lower for c in concepts)


def format_previous_messages(thread_emails: list[Email], world: WorldState) -> list[str]:
    messages = []
    for email in thread_emails[-PREVIOUS_MESSAGE_COUNT:]:
        character = world.character(email.sender_id)
        name = character.name if character else email.sender.display_name
        messages.append(f"From: {name}\n{email.body}")
    return messages


async def generate_email(
    ctx: SimulationContext,
    sender: Character,
    recipients: list[Character],
    thread: Thread,
    event: PlannedEvent,
    world: WorldState,
    current_time: datetime,
    in_reply_to: str | None = None,
) -> Email:
    """
    Write one email for an event.

    Args:
        ctx: Run context (router, rng, analysis cache)
        sender: Character writing the email
        recipients: Characters in the To line
        thread: Thread the email belongs to (may be brand new)
        event: The planned event being realized
        world: The tick's working world state
        current_time: Simulated send time
        in_reply_to: Id of the email being replied to, if joining a thread

    Returns:
        The new Email. Never raises for generation failures.
    """
    strategy = strategy_for(sender)
    thread_emails = world.thread_emails(thread.id)
    previous_messages = format_previous_messages(thread_emails, world) if in_reply_to else []

    analysis = None
    if thread_emails and strategy.uses_thread_analysis:
        analysis = await cached_thread_analysis(
            ctx.analysis_cache,
            ctx.router,
            ctx.analysis_model,
            thread.id,
            thread_emails,
            sender,
            world,
        )
        if analysis is not None:
            apply_analysis(thread, analysis, thread_emails, world)

    inputs = EmailPromptInputs(
        sender=sender,
        recipients=recipients,
        subject=thread.subject,
        event_description=event.description,
        affected_tensions=event.affected_tensions,
        world=world,
        previous_messages=previous_messages,
        points_already_made=sender_points(sender.id, thread_emails),
        unanswered_points=find_unanswered_points(sender.id, thread_emails),
        analysis=analysis,
    )
    prompt = strategy.build_prompt(inputs, ctx.rng)
    doc_context = merged_document_context(world.documents)

    template_fallback = False
    try:
        body = await ctx.router.generate_as_character(
            sender.id,
            prompt,
            GenerationContext(
                thread_subject=thread.subject,
                previous_messages=previous_messages,
                emotional_state=sender.emotional_state.current.dominant_emotion,
                character_knowledge=list(sender.knows),
            ),
        )
    except Exception as e:
        logger.error(
            f"Email generation failed for {sender.name} "
            f"({sender.archetype.value if sender.archetype else 'none'}) "
            f"on {sender.voice_binding.model_id} [{categorize_generation_error(e)}]: {e}; "
            f"event={event.description!r} thread={thread.subject!r}"
        )
        body = strategy.fallback_email(sender, event.description, doc_context, ctx.rng)
        template_fallback = True

    if (
        not template_fallback
        and strategy.uses_thread_analysis
        and doc_context is not None
        and doc_context.core_concepts
        and not references_concept(body, doc_context.core_concepts)
    ):
        logger.warning(f"{sender.name}'s email doesn't reference any document concepts")

    return Email(
        thread_id=thread.id,
        sender=EmailAddress.for_character(sender),
        to=[EmailAddress.for_character(r) for r in recipients],
        subject=thread.subject,
        sent_at=current_time,
        body=body,
        type=EmailType.THREAD_MESSAGE if in_reply_to else strategy.email_type(event.type),
        folder=strategy.folder,
        in_reply_to=in_reply_to,
        references=[in_reply_to] if in_reply_to else [],
        generated_by=GenerationProvenance(
            character_id=sender.id,
            model_id=sender.voice_binding.model_id,
            event_id=event.id,
            tick=world.tick_count,
            template_fallback=template_fallback,
        ),
    )

"""
Conversation bookkeeping over thread emails.

Pure text heuristics used for anti-repetition (what has the sender
already said), responsiveness (what are others waiting on), and the
anti-monologue rule (is a sender dominating a thread).

Inputs are length-bounded before any scanning.
"""

import random
import re

from ..state.schema import Email


GREETINGS = ("hi ", "hello ", "hey ", "dear ")
LEAD_INS = ("i think ", "i believe ", "we should ", "let me ", "i wanted to ", "just wanted to ")
TOPIC_INDICATORS = ("about ", "regarding ", "on ", "consider ", "discuss ")
REQUEST_PATTERNS = ("what do you think", "your thoughts", "your perspective", "can you", "could you")

MAX_UNANSWERED = 4
SENTENCE_SPLIT = re.compile(r"[.!?]+")


def _strip_greeting(sentence: str) -> str:
    if sentence.lower().startswith(GREETINGS):
        comma = sentence.find(",")
        if comma != -1 and comma < 50:
            return sentence[comma + 1:].strip()
    return sentence


def _strip_lead_in(sentence: str, lead_ins: tuple[str, ...] = LEAD_INS) -> str:
    lower = sentence.lower()
    for lead_in in lead_ins:
        if lower.startswith(lead_in):
            return sentence[len(lead_in):].strip()
    return sentence


def extract_key_points(body: str) -> list[str]:
    """Main ideas of an email, at most five, each under 100 chars."""
    points = []
    sentences = [s for s in SENTENCE_SPLIT.split(body[:2000]) if len(s.strip()) > 20]

    for sentence in sentences[:5]:
        cleaned = _strip_greeting(sentence.strip()[:150])
        # "just wanted to" is only stripped for approaches
        cleaned = _strip_lead_in(cleaned, LEAD_INS[:-1])[:100]
        if len(cleaned) > 15:
            points.append(cleaned)

    return points


def extract_approach(body: str) -> str | None:
    """
    The angle an email took, as a short phrase.

    Used to record Goal.approaches_taken. Prefers the noun phrase after
    "about"/"regarding"/... in the first substantive sentence.
    """
    sentences = [s for s in SENTENCE_SPLIT.split(body[:1000]) if len(s.strip()) > 30]
    if not sentences:
        return None

    first = _strip_lead_in(_strip_greeting(sentences[0].strip()[:200]))

    lower = first.lower()
    for indicator in TOPIC_INDICATORS:
        idx = lower.find(indicator)
        if idx != -1:
            start = idx + len(indicator)
            end = len(first)
            for boundary in (",", "."):
                pos = first.find(boundary, start)
                if pos != -1:
                    end = min(end, pos)
            return first[start:end].strip()[:60]

    return first[:60]


def sender_points(sender_id: str, thread_emails: list[Email]) -> list[str]:
    """Every key point the sender has already made in this thread."""
    return [
        point
        for email in thread_emails
        if email.sender_id == sender_id
        for point in extract_key_points(email.body)
    ]


def find_unanswered_points(sender_id: str, thread_emails: list[Email]) -> list[str]:
    """
    Questions and direct requests from others the sender should address.

    Looks at the last three emails from other participants; returns at
    most four items.
    """
    unanswered: list[str] = []
    others = [e for e in thread_emails if e.sender_id != sender_id]

    for email in others[-3:]:
        body = email.body[:2000]

        for sentence in re.split(r"(?<=[.!?])\s+", body):
            if "?" in sentence and 10 < len(sentence) < 200:
                unanswered.append(sentence.strip())
                if len(unanswered) >= MAX_UNANSWERED:
                    break

        lower = body.lower()
        for pattern in REQUEST_PATTERNS:
            start = lower.find(pattern)
            if start == -1:
                continue
            end = start + 100
            boundaries = [p for p in (body.find(c, start) for c in ".?!") if p > start]
            if boundaries:
                end = min(boundaries) + 1
            unanswered.append(body[start:min(end, start + 150)].strip())
            break  # one request per email

    return unanswered[:MAX_UNANSWERED]


def pick_quote_to_address(message_body: str, rng: random.Random) -> str:
    """
    A sentence from the last message the reply must engage with.

    Questions (or how/what/why statements) win; otherwise one of the
    first three substantive sentences.
    """
    sentences = [
        s.strip()
        for s in SENTENCE_SPLIT.split(message_body)
        if len(s.strip()) > 30 and not s.strip().lower().startswith(("hi ", "dear "))
    ]
    if not sentences:
        return ""

    questions = [
        s for s in sentences
        if "?" in s or any(w in s.lower() for w in ("how", "what", "why"))
    ]
    if questions:
        return questions[0]
    return sentences[rng.randrange(min(3, len(sentences)))]


def has_unbalanced_participation(sender_id: str, thread_emails: list[Email]) -> bool:
    """
    Anti-monologue rule.

    A thread is unbalanced for a sender when the last two messages are
    both theirs, or they have sent two or more messages beyond everyone
    else's replies. Threads with fewer than two messages never are.
    """
    if len(thread_emails) < 2:
        return False

    last_two = thread_emails[-2:]
    if all(e.sender_id == sender_id for e in last_two):
        return True

    sender_count = sum(1 for e in thread_emails if e.sender_id == sender_id)
    other_count = len(thread_emails) - sender_count
    return sender_count >= other_count + 2


def is_waiting_for_response(character_id: str, emails: list[Email]) -> bool:
    """True if the character sent the latest message in any thread they posted to."""
    latest_by_thread: dict[str, Email] = {}
    posted_in: set[str] = set()
    for email in emails:
        if email.sender_id == character_id:
            posted_in.add(email.thread_id)
        current = latest_by_thread.get(email.thread_id)
        if current is None or email.sent_at >= current.sent_at:
            latest_by_thread[email.thread_id] = email

    return any(
        latest_by_thread[thread_id].sender_id == character_id
        for thread_id in posted_in
    )

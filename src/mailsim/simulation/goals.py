"""
Goal bookkeeping.

A goal's stage is derived from how many emails have progressed it, and
each email's angle is recorded so later emails can take a new one.
"""

from ..state.schema import ChangeType, Character, Email, Goal, GoalStage, WorldStateChange
from .conversation import extract_approach


IN_PROGRESS_AFTER = 1
ADVANCED_AFTER = 3
# An advanced goal with this many emails waits for someone else to respond
STALL_AFTER = 4

STAGE_PHRASES = {
    GoalStage.IN_PROGRESS: (
        "Following up on",
        "Advancing discussion on",
        "Building on previous points about",
    ),
    GoalStage.ADVANCED: (
        "Wrapping up thoughts on",
        "Responding to feedback about",
        "Addressing questions about",
    ),
}
INITIAL_PHRASE = "Working on"


def stage_for(emails_sent: int) -> GoalStage:
    if emails_sent >= ADVANCED_AFTER:
        return GoalStage.ADVANCED
    if emails_sent >= IN_PROGRESS_AFTER:
        return GoalStage.IN_PROGRESS
    return GoalStage.INITIAL


def is_stalled(goal: Goal) -> bool:
    return goal.stage == GoalStage.ADVANCED and len(goal.emails_sent) >= STALL_AFTER


def describe_goal_event(goal: Goal) -> str:
    """
    Event description for the next email on this goal.

    Phrasing rotates with the email count so consecutive emails on the
    same goal do not open the same way.
    """
    sent = len(goal.emails_sent)
    if goal.stage == GoalStage.INITIAL or sent == 0:
        return f"{INITIAL_PHRASE}: {goal.description}"
    phrases = STAGE_PHRASES[goal.stage]
    return f"{phrases[sent % len(phrases)]}: {goal.description}"


def progress_goal(character: Character, goal: Goal, email: Email) -> list[WorldStateChange]:
    """Record an email against a goal. Mutates goal in place."""
    if email.id in goal.emails_sent:
        return []

    previous = goal.stage
    goal.emails_sent.append(email.id)
    goal.stage = stage_for(len(goal.emails_sent))

    approach = extract_approach(email.body)
    if approach and approach not in goal.approaches_taken:
        goal.approaches_taken.append(approach)

    changes = []
    if goal.stage != previous:
        changes.append(WorldStateChange(
            type=ChangeType.CHARACTER_UPDATE,
            entity_id=character.id,
            description=(
                f'{character.name}\'s goal "{goal.description}" '
                f"progressed to {goal.stage.value}"
            ),
        ))
    return changes

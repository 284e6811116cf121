"""Tests for tension intensity, lifecycle and thread linking."""

import pytest

from mailsim.simulation.tensions import (
    advance_tension,
    apply_tension_updates,
    decay_tension,
    initialize_tensions,
    map_tensions_to_threads,
    subject_matches_tension,
    tension_keywords,
)
from mailsim.state.schema import (
    Archetype,
    ChangeType,
    EmailType,
    OriginType,
    Tension,
    TensionStatus,
    TensionType,
    Theme,
)

from conftest import add_thread, make_character


def tension(intensity: float, status: TensionStatus = TensionStatus.BUILDING, **kwargs) -> Tension:
    return Tension(
        id=kwargs.pop("id", "t"),
        description=kwargs.pop("description", "Disagreement about event sourcing adoption"),
        intensity=intensity,
        status=status,
        **kwargs,
    )


class TestIntensity:
    """Per-tick movement."""

    def test_affected_gains_step(self):
        """0.3 building becomes 0.4 and stays building."""
        t = tension(0.3)
        changes = advance_tension(t, tick=1)

        assert t.intensity == pytest.approx(0.4)
        assert t.status == TensionStatus.BUILDING
        assert changes == []

    def test_building_becomes_active_above_half(self):
        t = tension(0.5)
        changes = advance_tension(t, tick=1)

        assert t.status == TensionStatus.ACTIVE
        assert changes[0].type == ChangeType.TENSION_UPDATE
        assert changes[0].entity_id == "t"

    def test_active_reaches_climax(self):
        t = tension(0.95, TensionStatus.ACTIVE)
        advance_tension(t, tick=1)

        assert t.intensity == 1.0
        assert t.status == TensionStatus.CLIMAX

    def test_intensity_clamped(self):
        """Climax at 1.0 stays at 1.0; decay never goes below 0."""
        high = tension(1.0, TensionStatus.CLIMAX)
        advance_tension(high, tick=1)
        assert high.intensity == 1.0

        low = tension(0.02, TensionStatus.BUILDING)
        decay_tension(low, tick=1)
        assert low.intensity == 0.0

    def test_assignment_is_clamped(self):
        t = tension(0.5)
        t.intensity = 4.0
        assert t.intensity == 1.0


class TestLifecycle:
    """Status transitions on decay."""

    def test_climax_resolves_when_untouched(self):
        t = tension(1.0, TensionStatus.CLIMAX)
        decay_tension(t, tick=3)

        assert t.status == TensionStatus.RESOLVING
        assert t.intensity == pytest.approx(0.95)

    def test_active_decays_into_resolving(self):
        t = tension(0.15, TensionStatus.ACTIVE)
        decay_tension(t, tick=3)
        assert t.status == TensionStatus.RESOLVING

    def test_resolving_reaches_resolved(self):
        """Zero intensity resolves and records the tick."""
        t = tension(0.05, TensionStatus.RESOLVING)
        decay_tension(t, tick=9)

        assert t.status == TensionStatus.RESOLVED
        assert t.resolved_at_tick == 9

    def test_resolved_never_changes(self):
        t = tension(0.0, TensionStatus.RESOLVED)
        assert advance_tension(t, tick=1) == []
        assert decay_tension(t, tick=1) == []
        assert t.status == TensionStatus.RESOLVED
        assert t.intensity == 0.0

    def test_resolving_flares_up_again(self):
        t = tension(0.3, TensionStatus.RESOLVING)
        advance_tension(t, tick=1)
        assert t.status == TensionStatus.ACTIVE

    def test_apply_counts_each_occurrence(self):
        """An id listed twice gains two steps; the rest decay once."""
        hot = tension(0.3, id="hot")
        cold = tension(0.3, id="cold")

        apply_tension_updates([hot, cold], ["hot", "hot", "missing"], tick=1)

        assert hot.intensity == pytest.approx(0.5)
        assert cold.intensity == pytest.approx(0.25)


class TestThreadLinking:
    """Keyword and explicit tension-to-thread mapping."""

    def test_keywords_skip_short_words(self):
        assert tension_keywords("Disagreement about the event plan") == ["disagreement", "about", "event"]

    def test_two_keywords_needed(self):
        t = tension(0.3)
        assert subject_matches_tension("Re: Event sourcing proposal", t)
        assert not subject_matches_tension("Event planning", t)

    def test_explicit_link_wins(self, world, email_factory):
        """related_tensions beats a keyword match elsewhere."""
        add_thread(world, [email_factory("keyword", "bob", ["alice"], subject="Event sourcing adoption?")])
        add_thread(world, [email_factory("linked", "alice", ["bob"], subject="Lunch")], related_tensions=["t1"])

        mapping = map_tensions_to_threads(world.tensions, world.threads, world.emails)

        assert mapping == {"t1": "linked"}

    def test_keyword_match_maps_thread(self, world, email_factory):
        add_thread(world, [email_factory("keyword", "bob", ["alice"], subject="Event sourcing adoption?")])

        mapping = map_tensions_to_threads(world.tensions, world.threads, world.emails)

        assert mapping == {"t1": "keyword"}

    def test_email_claims_one_tension(self, email_factory):
        """A subject matching two tensions is attributed to the first only."""
        first = tension(0.3, id="a", description="Event sourcing adoption")
        second = tension(0.3, id="b", description="Event sourcing costs")
        emails = [email_factory("th", "alice", ["bob"], subject="Event sourcing adoption costs")]

        assert map_tensions_to_threads([first, second], [], emails) == {"a": "th"}

    def test_newsletter_thread_never_carries_tension(self, world, email_factory):
        """A digest whose subject matches a tension is not a conversation about it."""
        add_thread(
            world,
            [email_factory(
                "nl1", "nina", ["alice", "bob"],
                subject="Weekly Event Sourcing Adoption Digest #1",
                email_type=EmailType.NEWSLETTER,
            )],
            origin_type=OriginType.NEWSLETTER,
            related_tensions=["t1"],
        )

        assert map_tensions_to_threads(world.tensions, world.threads, world.emails) == {}

    def test_spam_email_without_thread_row_ignored(self, world, email_factory):
        world.emails.append(email_factory(
            "sp1", "sam", ["alice"],
            subject="Event sourcing adoption secrets revealed",
            email_type=EmailType.SPAM,
        ))

        assert map_tensions_to_threads(world.tensions, world.threads, world.emails) == {}


class TestInitialize:
    """Seeding tensions from themes."""

    def test_conflict_per_theme_and_secret(self):
        characters = [
            make_character("p", "Pat", Archetype.PROTAGONIST),
            make_character("s", "Sky", Archetype.SKEPTIC),
            make_character("i", "Ivy", Archetype.INSIDER),
        ]
        themes = [Theme(id=f"th{i}", name=f"Theme {i}") for i in range(4)]

        tensions = initialize_tensions(themes, characters)

        conflicts = [t for t in tensions if t.type == TensionType.CONFLICT]
        secrets = [t for t in tensions if t.type == TensionType.SECRET]
        assert len(conflicts) == 3
        assert conflicts[0].participants == ["p", "s"]
        assert conflicts[0].intensity == pytest.approx(0.3)
        assert secrets[0].participants == ["i"]
        assert secrets[0].related_themes == ["th0"]

    def test_no_opponent_no_conflicts(self):
        characters = [make_character("p", "Pat", Archetype.PROTAGONIST)]
        assert initialize_tensions([Theme(name="X")], characters) == []


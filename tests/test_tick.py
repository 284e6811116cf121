"""Tests for the tick loop and full simulation runs."""

import asyncio
import itertools
import random

from mailsim.simulation.context import SimulationContext
from mailsim.simulation.tick import SimulationOptions, run_simulation, run_tick
from mailsim.state.schema import CLOSED_ORIGINS, EmailType, OriginType

from conftest import START, add_thread


def options(**kwargs) -> SimulationOptions:
    defaults = {
        "target_emails": 8,
        "timeout_ms": 60_000,
        "seed": 4,
        "inter_tick_delay": 0,
    }
    defaults.update(kwargs)
    return SimulationOptions(**defaults)


def fake_clock(step: float):
    """Clock that advances by step seconds on every read."""
    counter = itertools.count()
    return lambda: next(counter) * step


class TestRunTick:
    """A single tick."""

    def test_input_world_not_mutated(self, world, offline_router):
        ctx = SimulationContext(router=offline_router, rng=random.Random(1))
        before = world.model_dump()

        working, result = asyncio.run(run_tick(world, ctx))

        assert world.model_dump() == before
        assert working.tick_count == 1
        assert len(working.emails) == result.metrics.emails_generated
        assert result.metrics.events_generated == 3

    def test_result_window_and_emails(self, world, offline_router):
        ctx = SimulationContext(router=offline_router, rng=random.Random(1))

        working, result = asyncio.run(run_tick(world, ctx))

        assert result.tick_number == 0
        assert result.simulated_time_start == START
        assert (result.simulated_time_end - START).total_seconds() == 4 * 3600
        for email in result.new_emails:
            assert START <= email.sent_at <= result.simulated_time_end
            assert email.generated_by.template_fallback
        assert [e.id for e in result.new_emails] == [e.generated_emails[0] for e in result.events]

    def test_same_tick_emails_visible(self, world, offline_router):
        """Every new email sits in a thread row on the returned world."""
        ctx = SimulationContext(router=offline_router, rng=random.Random(2))

        working, result = asyncio.run(run_tick(world, ctx))

        thread_ids = {t.id for t in working.threads}
        for email in result.new_emails:
            assert email.thread_id in thread_ids
            assert email.id in working.thread(email.thread_id).emails


class TestRunSimulation:
    """Whole runs in offline mode."""

    def test_reaches_target(self, world, offline_router):
        result = asyncio.run(run_simulation(world, offline_router, options(target_emails=8)))

        assert len(result.world.emails) >= 8
        assert result.world.tick_count == len(result.results)
        assert world.emails == []
        assert world.tick_count == 0

    def test_timeout_stops_run(self, world, offline_router):
        """A clock past the timeout on the first check runs no ticks."""
        result = asyncio.run(run_simulation(
            world, offline_router,
            options(target_emails=1000, timeout_ms=500, clock=fake_clock(1.0)),
        ))

        assert result.results == []
        assert result.world.emails == []

    def test_timeout_after_some_ticks(self, world, offline_router):
        result = asyncio.run(run_simulation(
            world, offline_router,
            options(target_emails=1000, timeout_ms=2500, clock=fake_clock(1.0)),
        ))

        assert len(result.results) == 2

    def test_on_tick_called_per_tick(self, world, offline_router):
        seen = []
        result = asyncio.run(run_simulation(world, offline_router, options(on_tick=seen.append)))

        assert [r.tick_number for r in seen] == list(range(len(result.results)))

    def test_thread_integrity(self, world, offline_router):
        """Every email's thread exists and threads never hold three in a row from one sender."""
        result = asyncio.run(run_simulation(world, offline_router, options(target_emails=20)))
        final = result.world

        thread_ids = {t.id for t in final.threads}
        assert all(e.thread_id in thread_ids for e in final.emails)

        for thread in final.threads:
            senders = [e.sender_id for e in final.thread_emails(thread.id)]
            for i in range(len(senders) - 2):
                assert not (senders[i] == senders[i + 1] == senders[i + 2])

    def test_spammers_receive_no_spam(self, world, offline_router):
        world.config.spam_ratio = 1.0
        result = asyncio.run(run_simulation(world, offline_router, options(target_emails=12)))

        spam = [e for e in result.world.emails if e.type == EmailType.SPAM]
        assert spam
        assert all("sam" not in e.recipient_ids for e in spam)

    def test_communication_stays_out_of_newsletter_threads(self, world, offline_router, email_factory):
        """A digest matching the tension never collects conversation emails."""
        add_thread(
            world,
            [email_factory(
                "nl1", "nina", ["alice", "bob"],
                subject="Weekly Event Sourcing Adoption Digest #1",
                email_type=EmailType.NEWSLETTER,
            )],
            origin_type=OriginType.NEWSLETTER,
        )

        result = asyncio.run(run_simulation(world, offline_router, options(target_emails=20)))
        final = result.world

        closed = [t for t in final.threads if t.origin_type in CLOSED_ORIGINS]
        assert closed
        for thread in closed:
            assert all(
                e.type in (EmailType.NEWSLETTER, EmailType.SPAM)
                for e in final.thread_emails(thread.id)
            )

    def test_seeded_runs_repeat(self, world, offline_router):
        def summary():
            result = asyncio.run(run_simulation(world, offline_router, options(seed=9)))
            return [(e.sender_id, e.subject, e.body, e.sent_at) for e in result.world.emails]

        assert summary() == summary()


class TestWithProviders:
    """Runs against a mock provider."""

    def test_voices_bound_and_usage_reset(self, world, router, mock_client):
        asyncio.run(router.generate("claude-haiku", "warm up"))

        result = asyncio.run(run_simulation(world, router, options(target_emails=3)))

        assert router.get_character_binding("alice") is not None
        generated = [e for e in result.world.emails if not e.generated_by.template_fallback]
        assert generated
        assert all(e.body == mock_client._responses[0] for e in generated)
        assert all(log.purpose for log in router.get_call_log())
        assert router.get_cumulative_usage().call_count == len(router.get_call_log())

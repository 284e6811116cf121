"""Tests for world files."""

import json

import pytest

from mailsim.state.store import load_world_file, save_world_file

from conftest import add_thread


class TestWorldFiles:
    """Scenario files on disk."""

    def test_json_roundtrip_keeps_emails(self, world, email_factory, tmp_path):
        add_thread(world, [email_factory("th1", "alice", ["bob"], email_id="e1")])

        path = save_world_file(world, tmp_path / "out" / "world.json")
        loaded = load_world_file(path)

        assert '"from"' in path.read_text()
        assert loaded.emails[0].id == "e1"
        assert loaded.emails[0].sender_id == "alice"
        assert loaded.thread("th1").emails == ["e1"]

    def test_yaml_world(self, tmp_path):
        path = tmp_path / "world.yaml"
        path.write_text(
            "id: demo\n"
            "simulated_time_start: 2025-01-06T09:00:00\n"
            "characters:\n"
            "  - id: alice\n"
            "    name: Alice\n"
            "    email: alice@example.com\n"
            "    archetype: protagonist\n"
            "tensions:\n"
            "  - id: t1\n"
            "    participants: [alice]\n"
            "    description: Something brewing\n"
            "    intensity: 3.0\n"
        )

        world = load_world_file(path)

        assert world.id == "demo"
        assert world.character("alice").archetype == "protagonist"
        assert world.tension("t1").intensity == 1.0
        assert world.simulated_time_current == world.simulated_time_start

    def test_invalid_world_is_value_error(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"characters": [{"id": "x"}]}))

        with pytest.raises(ValueError):
            load_world_file(path)

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")

        with pytest.raises(ValueError, match="mapping"):
            load_world_file(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_world_file(tmp_path / "nope.json")

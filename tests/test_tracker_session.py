"""
Tests for pipeline/tracker_session.py — displayed vs committed lifecycle.
"""

import json

import pytest

from models.tracker_config import TrackerConfig
from pipeline.tracker_session import TrackerSession


@pytest.fixture
def session(config):
    return TrackerSession(config)


class TestLifecycle:

    def test_starts_from_config_defaults(self, session):
        assert session.committed.stats["Health"] == 100
        assert session.displayed.to_dict() == session.committed.to_dict()
        assert session.displayed is not session.committed

    def test_parsed_turn_updates_displayed_only(self, session, markdown_response):
        result = session.process_response(markdown_response)
        assert result.updated
        assert session.displayed.stats["Health"] == 72
        assert session.committed.stats["Health"] == 100
        assert session.last_result is result

    def test_new_turn_commits(self, session, markdown_response):
        session.process_response(markdown_response)
        session.begin_turn()
        assert session.committed.stats["Health"] == 72

    def test_swipe_reparses_against_same_committed(self, session, markdown_response):
        session.process_response(markdown_response)
        session.begin_turn(is_swipe=True)
        session.process_response("```json\n{\"level\": 4}\n```")
        assert session.committed.stats["Health"] == 100
        # stats come from committed, not from the rejected attempt
        assert session.displayed.stats["Health"] == 100
        assert session.displayed.level == 4

    def test_response_without_tracker(self, session, markdown_response):
        session.process_response(markdown_response)
        result = session.process_response("No tracker here.")
        assert not result.updated
        assert session.displayed.stats["Health"] == 72

    def test_reset(self, session, markdown_response):
        session.process_response(markdown_response)
        session.begin_turn()
        session.reset()
        assert session.committed.stats["Health"] == 100
        assert session.last_result is None

    def test_config_required(self):
        with pytest.raises(ValueError):
            TrackerSession(None)


class TestUserEdits:

    def test_edit_merges_into_displayed(self, session):
        session.apply_user_edit({"stats": {"Health": 33}})
        assert session.displayed.stats["Health"] == 33
        assert session.displayed.stats["Energy"] == 100
        assert session.committed.stats["Health"] == 100

    def test_edit_ignores_ai_attribute_freeze(self):
        config = TrackerConfig.model_validate({"userStats": {"allowAIUpdateAttributes": False}})
        session = TrackerSession(config)
        session.apply_user_edit({"attributes": {"STR": 18}})
        assert session.displayed.attributes["STR"] == 18

    def test_edit_drops_dangling_links(self, session):
        session.apply_user_edit({"inventory": {"onPerson": [{"name": "Wand", "grantsSkill": "Spark"}]}})
        assert session.displayed.inventory.on_person[0].grants_skill is None

    def test_remove_item_with_linked_skill(self, linked_config, committed_state):
        session = TrackerSession(linked_config, committed_state)
        assert session.remove_item("Iron Sword") == ["Slash"]
        assert [s.name for s in session.displayed.skills["Combat"]] == ["Dodge"]
        assert [s.name for s in session.committed.skills["Combat"]] == ["Slash", "Dodge"]

    def test_remove_item_without_linked_deletion(self, config, committed_state):
        session = TrackerSession(config, committed_state)
        assert session.remove_item("Iron Sword") == []
        assert session.displayed.skills["Combat"][0].granted_by is None


class TestPromptText:

    def test_previous_state_as_json(self, session):
        data = json.loads(session.previous_state_text())
        assert data["stats"]["Health"] == 100
        assert data["status"]["mood"] == "😐"

    def test_previous_state_as_markdown(self, session):
        assert session.previous_state_text(use_markdown=True).startswith("# Stats\nHealth: 100\n")

    def test_format_instructions(self, session):
        block = session.format_instructions()
        assert block.startswith("```json\n")
        assert block.endswith("\n```")

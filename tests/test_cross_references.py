"""
Tests for tools/cross_references.py — dangling link removal and linked
deletion.
"""

from models.tracker_data import TrackerData
from tools.cross_references import (
    DanglingReference,
    find_items_granting_skill,
    find_skills_granted_by_item,
    item_names,
    remove_item_and_linked_skills,
    remove_skills_granted_by,
    removed_item_names,
    skill_names,
    validate_cross_references,
)


def _state(**sections):
    return TrackerData.model_validate(sections)


class TestValidate:

    def test_intact_pair_is_kept(self, committed_state):
        assert validate_cross_references(committed_state) == []
        assert committed_state.inventory.on_person[0].grants_skill == "Slash"
        assert committed_state.skills["Combat"][0].granted_by == "Iron Sword"

    def test_dangling_links_dropped(self):
        state = _state(
            inventory={"onPerson": [{"name": "Sword", "grantsSkill": "Flight"}]},
            skills={"Magic": [{"name": "Spark", "grantedBy": "Wand"}]},
        )
        dropped = validate_cross_references(state)
        assert dropped == [
            DanglingReference("grantsSkill", "Sword", "Flight"),
            DanglingReference("grantedBy", "Spark", "Wand"),
        ]
        assert state.inventory.on_person[0].grants_skill is None
        assert state.skills["Magic"][0].granted_by is None

    def test_one_sided_link_is_not_completed(self):
        state = _state(
            inventory={"onPerson": [{"name": "Sword", "grantsSkill": "Swordsmanship"}]},
            skills={"Combat": [{"name": "Swordsmanship"}]},
        )
        assert validate_cross_references(state) == []
        assert state.skills["Combat"][0].granted_by is None

    def test_matching_is_case_insensitive_across_locations(self):
        state = _state(
            inventory={"stored": {"Home": [{"name": "Old Wand"}]}},
            skills={"Magic": [{"name": "Spark", "grantedBy": "old wand"}]},
        )
        assert validate_cross_references(state) == []

    def test_no_inventory_drops_every_granted_by(self):
        state = _state(skills={"Combat": [{"name": "Slash", "grantedBy": "Sword"}]})
        assert len(validate_cross_references(state)) == 1


class TestLookups:

    def test_names(self, committed_state):
        assert item_names(committed_state) == {"iron sword", "torch", "gold coins"}
        assert skill_names(committed_state) == {"slash", "dodge"}
        assert item_names(None) == set()

    def test_find_links(self, committed_state):
        assert [i.name for i in find_items_granting_skill(committed_state, "slash")] == ["Iron Sword"]
        assert [s.name for s in find_skills_granted_by_item(committed_state, "IRON SWORD")] == ["Slash"]

    def test_removed_item_names(self, committed_state):
        after = committed_state.model_copy(deep=True)
        after.inventory.on_person = after.inventory.on_person[1:]
        assert removed_item_names(committed_state, after) == {"iron sword"}


class TestLinkedDeletion:

    def test_remove_skills_granted_by(self, committed_state):
        assert remove_skills_granted_by(committed_state, {"Iron Sword"}) == ["Slash"]
        assert [s.name for s in committed_state.skills["Combat"]] == ["Dodge"]

    def test_empty_category_dropped(self):
        state = _state(skills={"Combat": [{"name": "Slash", "grantedBy": "Sword"}], "Magic": ["Spark"]})
        remove_skills_granted_by(state, {"sword"})
        assert list(state.skills) == ["Magic"]

    def test_last_skill_clears_skills(self):
        state = _state(skills={"Combat": [{"name": "Slash", "grantedBy": "Sword"}]})
        remove_skills_granted_by(state, {"Sword"})
        assert state.skills is None

    def test_remove_item_and_linked_skills(self, committed_state):
        deleted = remove_item_and_linked_skills(committed_state, "iron sword")
        assert deleted == ["Slash"]
        assert [i.name for i in committed_state.inventory.on_person] == ["Torch"]

    def test_remove_item_keeps_skills_when_disabled(self, committed_state):
        assert remove_item_and_linked_skills(committed_state, "Iron Sword", remove_linked=False) == []
        assert "slash" in skill_names(committed_state)

    def test_remove_from_one_location_only(self):
        state = _state(inventory={
            "onPerson": [{"name": "Sword", "grantsSkill": "Slash"}],
            "stored": {"Home": ["Sword"]},
        }, skills={"Combat": [{"name": "Slash", "grantedBy": "Sword"}]})
        assert remove_item_and_linked_skills(state, "Sword", location="onPerson") == []
        assert state.inventory.on_person == []
        assert [i.name for i in state.inventory.stored["Home"]] == ["Sword"]
        assert state.skills["Combat"][0].name == "Slash"

    def test_stored_location_removal(self, committed_state):
        remove_item_and_linked_skills(committed_state, "Gold Coins", location="home")
        assert committed_state.inventory.stored == {}

    def test_last_item_clears_inventory(self):
        state = _state(inventory={"simplified": ["Rope"]})
        remove_item_and_linked_skills(state, "Rope", location="simplified")
        assert state.inventory is None

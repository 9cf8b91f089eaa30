"""
Tests for tools/legacy_extractor.py — freeform section extraction.
"""

import pytest

from models.tracker_config import TrackerConfig
from tools.block_extractor import SectionKind
from tools.legacy_extractor import (
    LegacySkill,
    extract_attributes,
    extract_characters,
    extract_info_box,
    extract_inline_skills,
    extract_inventory,
    extract_legacy_sections,
    extract_quests,
    extract_skills,
    extract_stats,
    extract_status,
)

STATS_TEXT = """Stats
---
Health: 65%
Satiety: 50%
Energy: 30%
Hygiene: 90%
Arousal: 0%
Status: 😟, Soaked
STR: 12 DEX: 14 CON: 11 INT: 10 WIS: 13 CHA: 8 LVL: 3
On Person: Dagger, Lantern
Stored - Home: Gold Coins
Main Quest: Reach the tower
Optional Quests: Find shelter, Feed the horse"""

CHARACTERS_TEXT = """Present Characters
---
- Elara
Details: 🧝 | Silver hair | Calm
Relationship: Friend
Stats: Health: 80% | Arousal: 10%
Thoughts: I trust them.
- Bram
Relationship: Enemy"""


class TestStatsSection:

    def test_stats(self, config):
        assert extract_stats(STATS_TEXT, config) == {
            "Health": 65, "Satiety": 50, "Energy": 30, "Hygiene": 90, "Arousal": 0,
        }

    def test_stats_follow_config(self):
        config = TrackerConfig.model_validate({"userStats": {"customStats": [{"name": "Stamina"}]}})
        assert extract_stats("Stamina: 40%\nHealth: 90%", config) == {"Stamina": 40}

    def test_status_line_splits_mood_and_first_field(self, config):
        assert extract_status(STATS_TEXT, config) == {"mood": "😟", "fields": {"Conditions": "Soaked"}}

    def test_mood_and_field_lines(self, config):
        status = extract_status("Mood: 😊\nConditions: Well fed", config)
        assert status == {"mood": "😊", "fields": {"Conditions": "Well fed"}}

    def test_attributes_and_level(self, config):
        attributes, level = extract_attributes(STATS_TEXT, config)
        assert attributes == {"STR": 12, "DEX": 14, "CON": 11, "INT": 10, "WIS": 13, "CHA": 8}
        assert level == 3

    def test_level_spelled_out(self, config):
        assert extract_attributes("Level: 7", config) == ({}, 7)

    def test_inventory(self, config):
        inventory = extract_inventory(STATS_TEXT, config)
        assert [i["name"] for i in inventory["onPerson"]] == ["Dagger", "Lantern"]
        assert inventory["stored"] == {"Home": [{"name": "Gold Coins", "description": None}]}
        assert inventory["assets"] == []

    def test_inventory_bullets_and_brackets(self, config):
        text = "On Person:\n- Rope\n- Torch: Half burnt\nAssets: Cart (two wheels, old), House"
        inventory = extract_inventory(text, config)
        assert inventory["onPerson"] == [
            {"name": "Rope", "description": None},
            {"name": "Torch", "description": "Half burnt"},
        ]
        assert [i["name"] for i in inventory["assets"]] == ["Cart (two wheels, old)", "House"]

    def test_quests(self):
        assert extract_quests(STATS_TEXT) == {
            "main": {"name": "Reach the tower"},
            "optional": [{"name": "Find shelter"}, {"name": "Feed the horse"}],
        }

    def test_inline_skills(self):
        skills = extract_inline_skills("Skills: Stealth, Archery (Lv 2)")
        assert skills.uncategorized == [LegacySkill("Stealth"), LegacySkill("Archery", 2)]

    def test_config_required(self):
        with pytest.raises(ValueError):
            extract_stats(STATS_TEXT, None)


class TestInfoBox:

    def test_text_labels(self, config):
        text = "Info Box\n---\nDate: Tuesday, March 16, 1242\nWeather: 🌧️ Heavy rain\nTemperature: 12°C\nTime: 18:00 → 19:00"
        assert extract_info_box(text, config) == {
            "date": "Tuesday, March 16, 1242",
            "weather": "🌧️ Heavy rain",
            "temperature": "12°C",
            "time": "18:00 → 19:00",
        }

    def test_emoji_labels_with_and_without_variation_selector(self, config):
        text = "\U0001f5d3\ufe0f: Monday\n\U0001f5fa: Old Mill"
        assert extract_info_box(text, config) == {"date": "Monday", "location": "Old Mill"}

    def test_recent_events(self, config):
        assert extract_info_box("Recent Events: Storm; Bridge out", config) == {"recentEvents": ["Storm", "Bridge out"]}

    def test_disabled_widget_skipped(self):
        config = TrackerConfig.model_validate({
            "infoBox": {"widgets": {"date": {"enabled": True}, "location": {"enabled": False}}},
        })
        assert extract_info_box("Date: Monday\nLocation: Town", config) == {"date": "Monday"}


class TestCharacters:

    def test_block_form(self, config):
        characters = extract_characters(CHARACTERS_TEXT, config)
        assert characters == [
            {
                "name": "Elara",
                "emoji": "🧝",
                "fields": {"Appearance": "Silver hair", "Demeanor": "Calm"},
                "stats": {"Health": 80, "Arousal": 10},
                "relationship": "Friend",
                "thoughts": "I trust them.",
            },
            {"name": "Bram", "fields": {}, "stats": {}, "relationship": "Enemy"},
        ]

    def test_field_name_lines(self, config):
        characters = extract_characters("- Elara\nAppearance: Tall\nDemeanor: Wary", config)
        assert characters[0]["fields"] == {"Appearance": "Tall", "Demeanor": "Wary"}

    def test_pipe_form(self, config):
        characters = extract_characters("🧝: Elara, tall elf | Friend | I trust them.", config)
        assert characters == [{
            "name": "Elara",
            "emoji": "🧝",
            "fields": {"Appearance": "tall elf"},
            "relationship": "Friend",
            "thoughts": "I trust them.",
        }]

    def test_pipe_form_with_demeanor(self, config):
        characters = extract_characters("🐺: Grey | Wary | Neutral | Hungry.", config)
        assert characters[0]["fields"] == {"Demeanor": "Wary"}
        assert characters[0]["relationship"] == "Neutral"

    def test_unavailable_skipped(self, config):
        assert extract_characters("🚫: Unavailable | - | -", config) == []


class TestSkills:

    def test_categories_and_proficiency(self):
        text = "Skills\n---\nCombat:\n- Swordsmanship (Lv 5)\nUncategorized:\n- Lockpicking (Proficient)"
        skills = extract_skills(text)
        assert skills.categories == {"Combat": [LegacySkill("Swordsmanship", 5)]}
        assert skills.uncategorized == [LegacySkill("Lockpicking", 5)]

    def test_skills_before_any_header_are_uncategorized(self):
        skills = extract_skills("- Swimming\nMagic:\n- Spark")
        assert skills.uncategorized == [LegacySkill("Swimming")]
        assert list(skills.categories) == ["Magic"]

    def test_inline_category_line(self):
        skills = extract_skills("Magic: Fireball, Ice Shard (Novice)")
        assert skills.categories == {"Magic": [LegacySkill("Fireball"), LegacySkill("Ice Shard", 1)]}

    def test_parenthesis_that_is_not_a_level(self):
        skills = extract_skills("- Fireball (Magic)\n- Stealth (3): Move unseen")
        assert skills.uncategorized == [
            LegacySkill("Fireball (Magic)"),
            LegacySkill("Stealth", 3, "Move unseen"),
        ]

    def test_to_dict(self):
        skills = extract_skills("Combat:\n- Slash (Lv 2)\nUncategorized:\n- Swimming")
        assert skills.to_dict() == {
            "Combat": [{"name": "Slash", "level": 2}],
            "Uncategorized": [{"name": "Swimming"}],
        }


class TestLegacySections:

    def test_builds_raw_tracker(self, config):
        raw = extract_legacy_sections({
            SectionKind.STATS: STATS_TEXT,
            SectionKind.CHARACTERS: CHARACTERS_TEXT,
            SectionKind.SKILLS: "Combat:\n- Slash",
        }, config)
        assert raw["stats"]["Health"] == 65
        assert raw["status"]["mood"] == "😟"
        assert raw["level"] == 3
        assert raw["inventory"]["stored"] == {"Home": [{"name": "Gold Coins", "description": None}]}
        assert raw["quests"]["main"] == {"name": "Reach the tower"}
        assert [c["name"] for c in raw["characters"]] == ["Elara", "Bram"]
        assert raw["skills"] == {"Combat": [{"name": "Slash"}]}
        assert "infoBox" not in raw

    def test_empty_sections(self, config):
        assert extract_legacy_sections({}, config) == {}

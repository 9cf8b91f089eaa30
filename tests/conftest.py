"""
Shared pytest fixtures for the tracker codec test suite.

The unittest-based model tests keep their own inline data; pytest-style
tests should use these fixtures.
"""

import pytest

from models.tracker_config import TrackerConfig
from models.tracker_data import TrackerData


# ---------------------------------------------------------------------------
# Sample responses
# ---------------------------------------------------------------------------

DECOY_RESPONSE = """<think>
Let me draft the tracker first:
```json
{"stats": {"Health": 1}}
```
</think>
The blade rings as you draw it.

```json
{"stats": {"Health": 80}, "inventory": {"onPerson": [{"name": "Sword", "grantsSkill": "Swordsmanship"}]}, "skills": {"Combat": [{"name": "Swordsmanship"}]}}
```
"""

MARKDOWN_RESPONSE = """You step into the clearing.

```markdown
# Stats
Health: 72
Energy: 40
# Status
Mood: 😊
Conditions: Tired
# InfoBox
Date: Monday, March 15, 1242
Location: Forest Clearing
RecentEvents: Wolves howled; The fire went out
# Characters
## Elara
Relationship: Friend
Appearance: Silver hair
Thoughts: I hope they know the way.
# Inventory
## On Person
- Iron Sword: A trusty blade [grants: Slash]
- Rope
# Skills
## Combat
- Slash (Lv 2): A basic sword attack [from: Iron Sword]
# Quests
## Main
Find the artifact: It lies beyond the river
## Optional
- Help the blacksmith
```
"""

LEGACY_RESPONSE = """The rain keeps falling.

```
Stats
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
Optional Quests: Find shelter, Feed the horse
```

```
Info Box
---
Date: Tuesday, March 16, 1242
Weather: 🌧️ Heavy rain
Temperature: 12°C
Time: 18:00 → 19:00
Location: [Location]
```
"""


@pytest.fixture
def config():
    """Default tracker configuration."""
    return TrackerConfig()


@pytest.fixture
def linked_config():
    """Configuration with skills, item ↔ skill links and linked deletion on."""
    return TrackerConfig.model_validate({
        "showSkills": True,
        "enableItemSkillLinks": True,
        "deleteSkillWithItem": True,
        "userStats": {
            "skillsSection": {
                "enabled": True,
                "customFields": ["Combat", {"name": "Magic", "enabled": True}, {"name": "Crafting", "enabled": False}],
            },
        },
    })


@pytest.fixture
def committed_state():
    """A committed state with something in every section."""
    return TrackerData.model_validate({
        "stats": {"Health": 90, "Energy": 70},
        "status": {"mood": "😐", "fields": {"Conditions": "Rested"}},
        "attributes": {"STR": 12, "DEX": 11},
        "level": 2,
        "infoBox": {"location": "Village Square", "date": "Sunday, March 14, 1242"},
        "characters": [{"name": "Bram", "relationship": "Ally"}],
        "inventory": {
            "onPerson": [{"name": "Iron Sword", "grantsSkill": "Slash"}, {"name": "Torch"}],
            "stored": {"Home": [{"name": "Gold Coins"}]},
        },
        "skills": {"Combat": [{"name": "Slash", "grantedBy": "Iron Sword"}, {"name": "Dodge"}]},
        "quests": {"main": {"name": "Find the artifact"}},
    })


@pytest.fixture
def decoy_response():
    return DECOY_RESPONSE


@pytest.fixture
def markdown_response():
    return MARKDOWN_RESPONSE


@pytest.fixture
def legacy_response():
    return LEGACY_RESPONSE

"""
Legacy Text Extractor — per-field regex extraction from the freeform
sections older prompts produced:

    Stats
    ---
    Health: 80%
    Energy: 65%
    Status: 😊, Tired
    STR: 12  DEX: 14  LVL: 3
    On Person: Iron Sword, Rope
    Stored - Home: Gold Coins
    Main Quest: Find the lost artifact

Only used when neither JSON nor markdown decoded. Every label pattern is
built from the configuration passed in, so a configured "Stamina" stat is
matched exactly like the default "Health".
"""

import re
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from models.tracker_config import TrackerConfig
from models.tracker_data import clean_text, to_number
from tools.block_extractor import SectionKind

logger = logging.getLogger('LegacyExtractor')

PROFICIENCY_LEVELS = {
    "novice": 1,
    "basic": 2,
    "intermediate": 4,
    "proficient": 5,
    "competent": 6,
    "advanced": 7,
    "expert": 8,
    "master": 9,
    "legendary": 10,
}
UNCATEGORIZED = "Uncategorized"

# Canonical info box key → accepted labels (text first, then emoji).
INFO_BOX_LABELS = {
    "date": ("Date", "🗓️", "📅"),
    "time": ("Time", "🕒"),
    "weather": ("Weather",),
    "temperature": ("Temperature", "Temp", "🌡️"),
    "location": ("Location", "🗺️"),
    "recentEvents": ("Recent Events", "Recent Event", "Events"),
}

_DIVIDER_RE = re.compile(r"^-{3,}$")
_LEVEL_RE = re.compile(r"(?<![A-Za-z])(?:LVL|Level)\s*:?\s*(\d+)", re.IGNORECASE)
_SKILL_LEVEL_RE = re.compile(r"^(?:Lv|Lvl|Level)\.?\s*(\d+)$", re.IGNORECASE)
_SKILL_ENTRY_RE = re.compile(r"^(?P<name>.+?)(?:\s*\((?P<paren>[^)]*)\))?\s*(?::\s*(?P<desc>.*))?$")
_INVENTORY_LABEL_RE = re.compile(
    r"^(?P<label>On Person|Inventory|Assets|Stored(?:\s*[-–@]\s*(?P<location>[^:]+?))?)\s*:\s*(?P<rest>.*)$",
    re.IGNORECASE,
)
_QUEST_LABEL_RE = re.compile(r"^(?P<label>Main|Optional)\s+Quests?\s*:\s*(?P<rest>.*)$", re.IGNORECASE)
_INLINE_SKILLS_RE = re.compile(r"^(?P<label>Skills|Abilities)\s*:\s*(?P<rest>.*)$", re.IGNORECASE)
_CHARACTER_START_RE = re.compile(r"^-\s+(.+)$")
_CHARACTER_STAT_RE = re.compile(r"([A-Za-z][\w ]*?)\s*:\s*(\d+(?:\.\d+)?)\s*%?")
_PIPE_HEAD_RE = re.compile(r"^(.+?):\s*(.+)$")
_CHARACTER_HEADERS = ("present characters", "characters", "character thoughts")


@dataclass
class LegacySkill:
    name: str
    level: Optional[int] = None
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        entry: Dict[str, Any] = {"name": self.name}
        if self.level is not None:
            entry["level"] = self.level
        if self.description:
            entry["description"] = self.description
        return entry


@dataclass
class LegacySkills:
    """Skills grouped the way the legacy section wrote them."""

    categories: Dict[str, List[LegacySkill]] = field(default_factory=dict)
    uncategorized: List[LegacySkill] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.uncategorized and not any(self.categories.values())

    def to_dict(self) -> Dict[str, List[Dict[str, Any]]]:
        """Raw skills section; uncategorized skills get their own category."""
        result = {name: [s.to_dict() for s in skills] for name, skills in self.categories.items() if skills}
        if self.uncategorized:
            result.setdefault(UNCATEGORIZED, []).extend(s.to_dict() for s in self.uncategorized)
        return result


def _require(config: Optional[TrackerConfig], caller: str) -> TrackerConfig:
    if config is None:
        raise ValueError(f"{caller} requires a TrackerConfig")
    return config


def _label_pattern(label: str) -> str:
    # Emoji labels may arrive with or without the variation selector.
    base = label.replace("\ufe0f", "")
    return re.escape(base) + "\ufe0f?"


def _split_list(text: str) -> List[str]:
    """Split a comma list, ignoring commas inside (), [] and {}."""
    entries, depth, current = [], 0, []
    for char in text or "":
        if char in "([{":
            depth += 1
        elif char in ")]}" and depth:
            depth -= 1
        if char == "," and depth == 0:
            entries.append("".join(current))
            current = []
        else:
            current.append(char)
    entries.append("".join(current))
    return [entry for entry in (clean_text(e) for e in entries) if entry]


def _collect_labelled(text: str, label_re) -> List[Tuple[Any, List[str]]]:
    """Find `Label: a, b` lines plus the `- c` bullets directly under them."""
    results: List[Tuple[Any, List[str]]] = []
    current = None
    for line in (text or "").split("\n"):
        stripped = line.strip()
        match = label_re.match(stripped)
        if match:
            current = (match, _split_list(match.group("rest")))
            results.append(current)
        elif current is not None and stripped.startswith("-"):
            entry = clean_text(stripped[1:])
            if entry:
                current[1].append(entry)
        elif stripped:
            current = None
    return results


def _item(text: str) -> Dict[str, Any]:
    name, _, description = text.partition(":")
    return {"name": name.strip(), "description": clean_text(description)}


# ---------------------------------------------------------------------------
# Stats section
# ---------------------------------------------------------------------------

def extract_stats(text: str, config: TrackerConfig) -> Dict[str, float]:
    """Configured stats written as `Name: 80%`."""
    config = _require(config, "extract_stats")
    stats = {}
    for name in config.enabled_stat_names():
        pattern = re.compile(rf"(?<![A-Za-z]){re.escape(name)}\s*:\s*(\d+(?:\.\d+)?)\s*%?", re.IGNORECASE)
        match = pattern.search(text or "")
        if match:
            stats[name] = to_number(match.group(1))
    return stats


def extract_status(text: str, config: TrackerConfig) -> Dict[str, Any]:
    """`Mood: 😊` or `Status: 😊, Tired`, plus configured status field lines."""
    config = _require(config, "extract_status")
    status: Dict[str, Any] = {"mood": None, "fields": {}}
    field_names = config.status_field_names()

    match = re.search(r"^[ \t]*Mood[ \t]*:[ \t]*(.+)$", text or "", re.MULTILINE | re.IGNORECASE)
    if match:
        status["mood"] = clean_text(match.group(1))
    else:
        match = re.search(r"^[ \t]*Status[ \t]*:[ \t]*(.+)$", text or "", re.MULTILINE | re.IGNORECASE)
        if match:
            mood, _, rest = match.group(1).partition(",")
            status["mood"] = clean_text(mood)
            if clean_text(rest) and field_names:
                status["fields"][field_names[0]] = clean_text(rest)

    for name in field_names:
        match = re.search(rf"^[ \t]*{re.escape(name)}[ \t]*:[ \t]*(.+)$", text or "", re.MULTILINE | re.IGNORECASE)
        value = clean_text(match.group(1)) if match else None
        if value:
            status["fields"][name] = value
    return status


def extract_attributes(text: str, config: TrackerConfig) -> Tuple[Dict[str, int], Optional[int]]:
    """`STR: 12` style attributes and `LVL 3` / `Level: 3`."""
    config = _require(config, "extract_attributes")
    attributes = {}
    for name in config.enabled_attribute_names():
        pattern = re.compile(rf"(?<![A-Za-z]){re.escape(name)}(?![A-Za-z])\s*:?\s*(\d+)", re.IGNORECASE)
        match = pattern.search(text or "")
        if match:
            attributes[name] = int(match.group(1))
    level_match = _LEVEL_RE.search(text or "")
    level = int(level_match.group(1)) if level_match else None
    return attributes, level


def extract_inventory(text: str, config: TrackerConfig) -> Dict[str, Any]:
    """`On Person:`, `Stored - Location:`, `Assets:` and `Inventory:` lists."""
    config = _require(config, "extract_inventory")
    inventory: Dict[str, Any] = {"onPerson": [], "stored": {}, "assets": [], "items": []}
    for match, entries in _collect_labelled(text, _INVENTORY_LABEL_RE):
        label = match.group("label").lower()
        items = [_item(e) for e in entries]
        if label == "on person":
            inventory["onPerson"].extend(items)
        elif label == "assets":
            inventory["assets"].extend(items)
        elif label == "inventory":
            inventory["items"].extend(items)
        else:
            location = clean_text(match.group("location")) or "Stored"
            inventory["stored"].setdefault(location, []).extend(items)
    return inventory


def extract_quests(text: str) -> Dict[str, Any]:
    """`Main Quest: ...` and `Optional Quests: a, b` (or bullets)."""
    quests: Dict[str, Any] = {"main": None, "optional": []}
    for match, entries in _collect_labelled(text, _QUEST_LABEL_RE):
        if match.group("label").lower() == "main":
            rest = clean_text(match.group("rest"))
            name = rest or (entries[0] if entries else None)
            if name and quests["main"] is None:
                quests["main"] = {"name": name}
        else:
            quests["optional"].extend({"name": e} for e in entries)
    return quests


def extract_inline_skills(text: str) -> LegacySkills:
    """A `Skills: a, b` line inside the stats section."""
    skills = LegacySkills()
    for _, entries in _collect_labelled(text, _INLINE_SKILLS_RE):
        skills.uncategorized.extend(s for s in (_skill_entry(e) for e in entries) if s)
    return skills


# ---------------------------------------------------------------------------
# Info box
# ---------------------------------------------------------------------------

def extract_info_box(text: str, config: TrackerConfig) -> Dict[str, Any]:
    """Enabled widgets, by text or emoji label. The first match wins."""
    config = _require(config, "extract_info_box")
    info: Dict[str, Any] = {}
    for key in config.enabled_widgets():
        labels = INFO_BOX_LABELS.get(key)
        if not labels:
            continue
        pattern = re.compile(
            r"^[ \t]*(?:" + "|".join(_label_pattern(label) for label in labels) + r")[ \t]*:[ \t]*(.+)$",
            re.MULTILINE | re.IGNORECASE,
        )
        if key == "recentEvents":
            events = []
            for match in pattern.finditer(text or ""):
                events.extend(e for e in (clean_text(p) for p in match.group(1).split(";")) if e)
            if events:
                info[key] = events
            continue
        match = pattern.search(text or "")
        value = clean_text(match.group(1)) if match else None
        if value:
            info[key] = value
    return info


# ---------------------------------------------------------------------------
# Characters
# ---------------------------------------------------------------------------

def _character_labels(config: TrackerConfig) -> Dict[str, str]:
    labels = {
        "details": "details",
        "relationship": "relationship",
        "stats": "stats",
        "thoughts": "thoughts",
        config.present_characters.thoughts.name.lower(): "thoughts",
    }
    for name in config.character_field_names():
        labels.setdefault(name.lower(), name)
    return labels


def _parse_pipe_line(line: str, field_names: List[str]) -> Optional[Dict[str, Any]]:
    """`🧝: Elara, tall elf | Friend | I trust them.` (optionally with a
    demeanor part before the relationship)."""
    parts = [p.strip() for p in line.split("|")]
    if len(parts) < 3:
        return None
    head = _PIPE_HEAD_RE.match(parts[0])
    if not head:
        return None
    info = [p.strip() for p in head.group(2).split(",")]
    name = clean_text(info[0])
    if not name or name.lower() == "unavailable":
        return None
    character: Dict[str, Any] = {"name": name, "emoji": clean_text(head.group(1)), "fields": {}}
    if len(parts) == 3:
        demeanor, relationship, thoughts = None, parts[1], parts[2]
    else:
        demeanor, relationship, thoughts = parts[1], parts[2], parts[3]
    traits = clean_text(", ".join(info[1:]))
    if traits and field_names:
        character["fields"][field_names[0]] = traits
    if clean_text(demeanor) and len(field_names) > 1:
        character["fields"][field_names[1]] = clean_text(demeanor)
    character["relationship"] = clean_text(relationship)
    character["thoughts"] = clean_text(thoughts)
    return character


def extract_characters(text: str, config: TrackerConfig) -> List[Dict[str, Any]]:
    """Block form:

        - Elara
        Details: 🧝 | Silver hair | Calm
        Relationship: Friend
        Stats: Health: 80% | Arousal: 10%
        Thoughts: I trust them.

    and the older one-line pipe form handled by `_parse_pipe_line`.
    """
    config = _require(config, "extract_characters")
    field_names = config.character_field_names()
    labels = _character_labels(config)
    characters: List[Dict[str, Any]] = []
    current: Optional[Dict[str, Any]] = None

    for line in (text or "").split("\n"):
        stripped = line.strip()
        if not stripped or _DIVIDER_RE.match(stripped) or stripped.startswith("```"):
            continue
        if stripped.lower().rstrip(":") in _CHARACTER_HEADERS:
            continue

        start = _CHARACTER_START_RE.match(stripped)
        if start:
            name = clean_text(start.group(1).rstrip(":"))
            current = {"name": name, "fields": {}, "stats": {}} if name else None
            if current:
                characters.append(current)
            continue

        label, _, value = stripped.partition(":")
        role = labels.get(label.strip().lower())
        if current is not None and role:
            _apply_character_line(current, role, value, field_names)
            continue

        pipe = _parse_pipe_line(stripped, field_names)
        if pipe:
            characters.append(pipe)
            current = None
    return characters


def _apply_character_line(character: Dict[str, Any], role: str, value: str, field_names: List[str]):
    value = value.strip()
    if role == "details":
        parts = [clean_text(p) for p in value.split("|")]
        if parts and parts[0]:
            character["emoji"] = parts[0]
        for name, part in zip(field_names, parts[1:]):
            if part:
                character["fields"][name] = part
    elif role == "relationship":
        character["relationship"] = clean_text(value)
    elif role == "stats":
        for name, number in _CHARACTER_STAT_RE.findall(value):
            character["stats"][name.strip()] = to_number(number)
    elif role == "thoughts":
        character["thoughts"] = clean_text(value)
    elif clean_text(value):
        character["fields"][role] = clean_text(value)


# ---------------------------------------------------------------------------
# Skills
# ---------------------------------------------------------------------------

def _skill_level(paren: Optional[str]) -> Optional[int]:
    if not paren:
        return None
    paren = paren.strip()
    match = _SKILL_LEVEL_RE.match(paren)
    if match:
        return int(match.group(1))
    if paren.isdigit():
        return int(paren)
    return PROFICIENCY_LEVELS.get(paren.lower())


def _skill_entry(text: str) -> Optional[LegacySkill]:
    match = _SKILL_ENTRY_RE.match(text.strip())
    if not match:
        return None
    name = match.group("name").strip()
    paren = match.group("paren")
    level = _skill_level(paren)
    if paren is not None and level is None:
        # Not a level: the parenthesis is part of the name.
        name = f"{name} ({paren.strip()})"
    name = clean_text(name)
    if not name:
        return None
    return LegacySkill(name=name, level=level, description=clean_text(match.group("desc")))


def extract_skills(text: str) -> LegacySkills:
    """Parse a legacy Skills section.

    `Header:` opens a category. Skills before any header, or under
    `Uncategorized:`, go to the uncategorized bucket. `- Name (Lv N)` and
    `- Name (Proficient)` both carry a level.
    """
    skills = LegacySkills()
    category: Optional[str] = None

    for line in (text or "").split("\n"):
        stripped = line.strip()
        if not stripped or _DIVIDER_RE.match(stripped) or stripped.lower() == "skills":
            continue

        if stripped.startswith("-"):
            skill = _skill_entry(stripped[1:])
            if skill is None:
                continue
            if category is None:
                skills.uncategorized.append(skill)
            else:
                skills.categories.setdefault(category, []).append(skill)
            continue

        header, sep, rest = stripped.partition(":")
        if not sep:
            continue
        header = header.strip()
        category = None if header.lower() == UNCATEGORIZED.lower() else header
        for entry in _split_list(rest):
            skill = _skill_entry(entry)
            if skill is None:
                continue
            if category is None:
                skills.uncategorized.append(skill)
            else:
                skills.categories.setdefault(category, []).append(skill)
    return skills


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def extract_legacy_sections(sections: Dict[Any, str], config: TrackerConfig) -> Dict[str, Any]:
    """Build a raw tracker dict from legacy sections keyed by SectionKind.

    The result has the same keys as the JSON dialect and goes through the
    same normalizer.
    """
    config = _require(config, "extract_legacy_sections")
    raw: Dict[str, Any] = {}

    stats_text = sections.get(SectionKind.STATS)
    if stats_text:
        stats = extract_stats(stats_text, config)
        if stats:
            raw["stats"] = stats
        status = extract_status(stats_text, config)
        if status["mood"] or status["fields"]:
            raw["status"] = status
        attributes, level = extract_attributes(stats_text, config)
        if attributes:
            raw["attributes"] = attributes
        if level is not None:
            raw["level"] = level
        inventory = extract_inventory(stats_text, config)
        if any(inventory.values()):
            raw["inventory"] = inventory
        quests = extract_quests(stats_text)
        if quests["main"] or quests["optional"]:
            raw["quests"] = quests
        inline_skills = extract_inline_skills(stats_text)
        if not inline_skills.is_empty():
            raw["skills"] = inline_skills.to_dict()

    info_text = sections.get(SectionKind.INFO_BOX)
    if info_text:
        info = extract_info_box(info_text, config)
        if info:
            raw["infoBox"] = info

    characters_text = sections.get(SectionKind.CHARACTERS)
    if characters_text:
        characters = extract_characters(characters_text, config)
        if characters:
            raw["characters"] = characters

    skills_text = sections.get(SectionKind.SKILLS)
    if skills_text:
        skills = extract_skills(skills_text)
        if not skills.is_empty():
            raw["skills"] = skills.to_dict()

    logger.debug(f"Legacy extraction produced sections: {list(raw.keys()) or 'none'}")
    return raw

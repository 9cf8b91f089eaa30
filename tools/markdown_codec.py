"""
Markdown Tracker Format — a line-oriented dialect that models follow more
reliably than nested JSON.

    # Stats
    Health: 80
    # Status
    Mood: 😊
    # InfoBox
    Location: Forest Clearing
    # Characters
    ## Elara
    Relationship: Friend
    Health: 90%
    Thoughts: I wonder where they came from.
    # Inventory
    ## On Person
    - Iron Sword: A trusty blade [grants: Slash]
    # Skills
    ## Combat
    - Slash (Lv 2): A basic sword attack [from: Iron Sword]
    # Quests
    ## Main
    Find the lost artifact
    ## Optional
    - Help the blacksmith

`encode_markdown`, `markdown_to_dict` and `generate_markdown_schema` all read
the same order and label tables below, so the prompt schema cannot drift
from what the decoder accepts.

A literal `:` inside a key or a name is written as `\\:`. Values are split at
the first unescaped colon only.
"""

import re
import logging
from typing import Any, Dict, List, Optional, Tuple

from models.tracker_config import TrackerConfig, SchemaOptions
from models.tracker_data import (
    TrackerData, TrackerItem, TrackerSkill, TrackerQuest,
    clean_text, is_absent, to_number, tidy_number,
)
from tools.block_extractor import Dialect, classify_block, extract_code_blocks, find_raw_markdown, strip_reasoning
from tools.cross_references import validate_cross_references
from tools.normalizer import normalize_tracker_data
from tools.sanitizer import is_placeholder, remove_placeholders

logger = logging.getLogger('MarkdownCodec')

# ---------------------------------------------------------------------------
# Shared tables
# ---------------------------------------------------------------------------

SECTION_ORDER = (
    "Stats", "Status", "Attributes", "Level", "InfoBox",
    "Characters", "Inventory", "Skills", "Quests",
)
_SECTION_KEYS = {name.lower(): name for name in SECTION_ORDER}
_SECTION_KEYS["info box"] = "InfoBox"

# (canonical key, label) in encoding order.
INFO_BOX_LABELS = (
    ("date", "Date"),
    ("time", "Time"),
    ("weather", "Weather"),
    ("temperature", "Temperature"),
    ("location", "Location"),
    ("recentEvents", "RecentEvents"),
)
_INFO_BOX_LOOKUP = {label.lower(): key for key, label in INFO_BOX_LABELS}
_INFO_BOX_LOOKUP["recent events"] = "recentEvents"
_INFO_BOX_LOOKUP["recent_events"] = "recentEvents"
EVENT_SEPARATOR = "; "

ON_PERSON = "On Person"
STORED_PREFIX = "Stored @ "
ASSETS = "Assets"
ITEMS = "Items"
MAIN_QUEST = "Main"
OPTIONAL_QUESTS = "Optional"

EMOJI_LABEL = "Emoji"
RELATIONSHIP_LABEL = "Relationship"
THOUGHTS_LABEL = "Thoughts"
MOOD_LABEL = "Mood"

GRANTS_TAG = "grants"
FROM_TAG = "from"

_UNESCAPED_COLON_RE = re.compile(r"(?<!\\):")
_STORED_RE = re.compile(r"^stored\s*[@:\-]\s*(.+)$", re.IGNORECASE)
_LEVEL_SUFFIX_RE = re.compile(r"\s*\((?:Lv|Lvl|Level)\.?\s*(\d+)\)\s*$", re.IGNORECASE)
# Character stats are written `Name: N%`; a bare number is a free-text field.
_PERCENT_RE = re.compile(r"^-?\d+(?:\.\d+)?\s*%$")
_FENCE_LINE_RE = re.compile(r"^```")
# What is left of `[number]°C` or `[event]; [event]` once placeholders go.
_TEMPLATE_LEFTOVER_RE = re.compile(r"^[\s°CF;,|]*$")


def _tag_re(tag: str):
    return re.compile(r"\[\s*" + tag + r"\s*:\s*([^\]]*)\]\s*$", re.IGNORECASE)


_GRANTS_RE = _tag_re(GRANTS_TAG)
_FROM_RE = _tag_re(FROM_TAG)


# ---------------------------------------------------------------------------
# Escaping
# ---------------------------------------------------------------------------

def escape_key(text: str) -> str:
    return str(text).replace(":", "\\:")


def unescape_key(text: str) -> str:
    return text.replace("\\:", ":")


def _one_line(text: Any) -> str:
    return " ".join(str(text).split())


def split_scalar(line: str) -> Optional[Tuple[str, str]]:
    """Split `Key: value` at the first unescaped colon."""
    match = _UNESCAPED_COLON_RE.search(line)
    if not match:
        return None
    key = unescape_key(line[:match.start()].strip())
    value = line[match.end():].strip()
    if not key:
        return None
    return key, value


def _is_template(text: Optional[str]) -> bool:
    """A schema placeholder echoed back verbatim, e.g. `[Character Name]`
    or `[number]°C`."""
    if not text:
        return False
    text = text.strip()
    if text.startswith("[") and text.endswith("]") and is_placeholder(text[1:-1]):
        return True
    leftover = remove_placeholders(text)
    return leftover != text and bool(_TEMPLATE_LEFTOVER_RE.match(leftover))


def _value(text: Optional[str]) -> Optional[str]:
    if _is_template(text):
        return None
    return clean_text(text)


def _format_number(value) -> str:
    return str(tidy_number(value))


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------

def _item_line(item: TrackerItem, links: bool = True) -> str:
    line = f"- {escape_key(_one_line(item.name))}"
    if item.description:
        line += f": {_one_line(item.description)}"
    if links and item.grants_skill:
        line += f" [{GRANTS_TAG}: {_one_line(item.grants_skill)}]"
    return line


def _skill_line(skill: TrackerSkill, links: bool = True) -> str:
    line = f"- {escape_key(_one_line(skill.name))}"
    if skill.level is not None:
        line += f" (Lv {skill.level})"
    if skill.description:
        line += f": {_one_line(skill.description)}"
    if links and skill.granted_by:
        line += f" [{FROM_TAG}: {_one_line(skill.granted_by)}]"
    return line


def _quest_line(quest: TrackerQuest) -> str:
    line = escape_key(_one_line(quest.name))
    if quest.description:
        line += f": {_one_line(quest.description)}"
    return line


def _scalar(key: str, value: Any) -> str:
    return f"{escape_key(_one_line(key))}: {_one_line(value)}"


def encode_markdown(state: TrackerData) -> str:
    """Render canonical state in the markdown dialect.

    Decoding the result with `decode_markdown` and encoding again produces
    the same text.
    """
    sections: Dict[str, List[str]] = {}

    if state.stats:
        sections["Stats"] = [_scalar(name, _format_number(v)) for name, v in state.stats.items()]

    if state.status:
        lines = []
        if state.status.mood:
            lines.append(_scalar(MOOD_LABEL, state.status.mood))
        lines.extend(_scalar(k, v) for k, v in state.status.fields.items())
        sections["Status"] = lines

    if state.attributes:
        sections["Attributes"] = [_scalar(name, v) for name, v in state.attributes.items()]

    if state.level is not None:
        sections["Level"] = [str(state.level)]

    if state.info_box:
        box = state.info_box
        lines = []
        for key, label in INFO_BOX_LABELS:
            if key == "recentEvents":
                if box.recent_events:
                    lines.append(_scalar(label, EVENT_SEPARATOR.join(_one_line(e) for e in box.recent_events)))
                continue
            value = getattr(box, key)
            if value:
                lines.append(_scalar(label, value))
        for key, value in (box.model_extra or {}).items():
            lines.append(_scalar(key, value))
        sections["InfoBox"] = lines

    if state.characters:
        lines = []
        for character in state.characters:
            lines.append(f"## {_one_line(character.name)}")
            if character.emoji:
                lines.append(_scalar(EMOJI_LABEL, character.emoji))
            if character.relationship:
                lines.append(_scalar(RELATIONSHIP_LABEL, character.relationship))
            lines.extend(_scalar(k, v) for k, v in character.fields.items())
            lines.extend(_scalar(k, f"{_format_number(v)}%") for k, v in character.stats.items())
            if character.thoughts:
                lines.append(_scalar(THOUGHTS_LABEL, character.thoughts))
        sections["Characters"] = lines

    if state.inventory:
        inventory = state.inventory
        lines = []
        if inventory.simplified:
            lines.append(f"## {ITEMS}")
            lines.extend(_item_line(i) for i in inventory.simplified)
        if inventory.on_person:
            lines.append(f"## {ON_PERSON}")
            lines.extend(_item_line(i) for i in inventory.on_person)
        for location, items in inventory.stored.items():
            lines.append(f"## {STORED_PREFIX}{_one_line(location)}")
            lines.extend(_item_line(i) for i in items)
        if inventory.assets:
            lines.append(f"## {ASSETS}")
            lines.extend(_item_line(i) for i in inventory.assets)
        sections["Inventory"] = lines

    if state.skills:
        lines = []
        for category, abilities in state.skills.items():
            lines.append(f"## {_one_line(category)}")
            lines.extend(_skill_line(s) for s in abilities)
        sections["Skills"] = lines

    if state.quests:
        lines = []
        if state.quests.main:
            lines.append(f"## {MAIN_QUEST}")
            lines.append(_quest_line(state.quests.main))
        if state.quests.optional:
            lines.append(f"## {OPTIONAL_QUESTS}")
            lines.extend(f"- {_quest_line(q)}" for q in state.quests.optional)
        sections["Quests"] = lines

    output = []
    for name in SECTION_ORDER:
        if sections.get(name):
            output.append(f"# {name}")
            output.extend(sections[name])
    return "\n".join(output)


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

def _split_tag(text: str, pattern) -> Tuple[str, Optional[str]]:
    match = pattern.search(text) if pattern else None
    if not match:
        return text, None
    return text[:match.start()].rstrip(), _value(match.group(1))


def _parse_entry(text: str, tag_pattern=None) -> Optional[Dict[str, Any]]:
    """`Name: description [tag: Ref]` → {name, description, ref}."""
    body, ref = _split_tag(text, tag_pattern)
    pair = split_scalar(body)
    if pair:
        name, description = pair
    else:
        name, description = unescape_key(body.strip()), None
    name = _value(name)
    if not name:
        return None
    return {"name": name, "description": _value(description), "ref": ref}


def _parse_item(text: str) -> Optional[Dict[str, Any]]:
    entry = _parse_entry(text, _GRANTS_RE)
    if entry is None:
        return None
    return {"name": entry["name"], "description": entry["description"], "grantsSkill": entry["ref"]}


def _parse_skill(text: str) -> Optional[Dict[str, Any]]:
    body, ref = _split_tag(text, _FROM_RE)
    pair = split_scalar(body)
    name, description = pair if pair else (unescape_key(body.strip()), None)
    level = None
    level_match = _LEVEL_SUFFIX_RE.search(name)
    if level_match:
        level = int(level_match.group(1))
        name = name[:level_match.start()]
    name = _value(name)
    if not name:
        return None
    return {"name": name, "description": _value(description), "grantedBy": ref, "level": level}


def _parse_quest(text: str) -> Optional[Dict[str, Any]]:
    entry = _parse_entry(text)
    if entry is None:
        return None
    return {"name": entry["name"], "description": entry["description"]}


def _matches(name: str, candidates: List[str]) -> Optional[str]:
    lowered = name.lower()
    for candidate in candidates:
        if candidate.lower() == lowered:
            return candidate
    return None


class _MarkdownReader:
    """Single pass over the lines. `section`, `subsection` and `character`
    are the only state; every line is interpreted in their scope."""

    def __init__(self, config: Optional[TrackerConfig] = None):
        self.config = config
        self.data: Dict[str, Any] = {}
        self.section: Optional[str] = None
        self.subsection: Optional[str] = None
        self.character: Optional[Dict[str, Any]] = None
        self.character_fields = config.character_field_names() if config else []
        self.character_stats = config.character_stat_names() if config else []

    # -- headings ---------------------------------------------------------

    def open_section(self, title: str):
        self.section = _SECTION_KEYS.get(title.strip().lower())
        self.subsection = None
        self.character = None
        if self.section is None:
            logger.debug(f"Ignoring unknown section: {title}")
            return
        defaults = {
            "Stats": dict,
            "Status": lambda: {"mood": None, "fields": {}},
            "Attributes": dict,
            "InfoBox": dict,
            "Characters": list,
            "Inventory": lambda: {"onPerson": [], "stored": {}, "assets": [], "simplified": []},
            "Skills": dict,
            "Quests": lambda: {"main": None, "optional": []},
        }
        key = {"InfoBox": "infoBox"}.get(self.section, self.section.lower())
        if self.section in defaults:
            self.data.setdefault(key, defaults[self.section]())

    def open_subsection(self, title: str):
        title = title.strip()
        self.subsection = title
        if self.section == "Characters":
            name = _value(unescape_key(title))
            if not name:
                self.character = None
                return
            self.character = {"name": name, "fields": {}, "stats": {}}
            self.data["characters"].append(self.character)

    # -- lines ------------------------------------------------------------

    def entry(self, text: str):
        """A `- ...` line."""
        if is_absent(text):
            return
        section = self.section
        if section == "Inventory":
            item = _parse_item(text)
            if item:
                self._inventory_target().append(item)
        elif section == "Skills":
            skill = _parse_skill(text)
            if skill:
                category = _value(self.subsection) or "Skills"
                self.data["skills"].setdefault(category, []).append(skill)
        elif section == "Quests":
            quest = _parse_quest(text)
            if quest:
                if self.subsection and self.subsection.lower() == MAIN_QUEST.lower():
                    self.data["quests"]["main"] = quest
                else:
                    self.data["quests"]["optional"].append(quest)
        elif section == "InfoBox":
            event = _value(text)
            if event:
                self.data["infoBox"].setdefault("recentEvents", []).append(event)
        else:
            pair = split_scalar(text)
            if pair:
                self.scalar(*pair)

    def scalar(self, key: str, raw: str):
        """A `Key: value` line."""
        value = _value(raw)
        section = self.section
        if section == "Stats":
            number = to_number(value)
            if number is not None:
                self.data["stats"][key] = number
        elif section == "Attributes":
            number = to_number(value)
            if number is not None:
                self.data["attributes"][key] = number
        elif section == "Level":
            number = to_number(value)
            if number is not None:
                self.data["level"] = number
        elif section == "Status":
            if value is None:
                return
            if key.lower() == MOOD_LABEL.lower():
                self.data["status"]["mood"] = value
            else:
                self.data["status"]["fields"][key] = value
        elif section == "InfoBox":
            if value is None:
                return
            canonical = _INFO_BOX_LOOKUP.get(key.lower())
            if canonical == "recentEvents":
                events = [e for e in (_value(p) for p in value.split(";")) if e]
                self.data["infoBox"].setdefault("recentEvents", []).extend(events)
            else:
                self.data["infoBox"][canonical or key] = value
        elif section == "Characters":
            self._character_scalar(key, value)
        elif section == "Quests":
            quest = {"name": _value(key), "description": value}
            if not quest["name"]:
                return
            if self.subsection and self.subsection.lower() == OPTIONAL_QUESTS.lower():
                self.data["quests"]["optional"].append(quest)
            else:
                self.data["quests"]["main"] = quest
        elif section in ("Inventory", "Skills"):
            self.entry(f"{escape_key(key)}: {raw}")

    def bare(self, line: str):
        """A line with no leading dash and no unescaped colon."""
        if self.section == "Level":
            number = to_number(line)
            if number is not None:
                self.data["level"] = number
        elif self.section == "Quests":
            quest = _parse_quest(line)
            if not quest:
                return
            if self.subsection and self.subsection.lower() == OPTIONAL_QUESTS.lower():
                self.data["quests"]["optional"].append(quest)
            else:
                self.data["quests"]["main"] = quest
        elif self.section in ("Inventory", "Skills"):
            self.entry(line)

    def _character_scalar(self, key: str, value: Optional[str]):
        character = self.character
        if character is None or value is None:
            return
        lowered = key.lower()
        if lowered == EMOJI_LABEL.lower():
            character["emoji"] = value
        elif lowered == RELATIONSHIP_LABEL.lower():
            character["relationship"] = value
        elif lowered == THOUGHTS_LABEL.lower():
            character["thoughts"] = value
        elif _matches(key, self.character_stats):
            number = to_number(value)
            if number is not None:
                character["stats"][_matches(key, self.character_stats)] = number
        elif _matches(key, self.character_fields) is None and _PERCENT_RE.match(value):
            character["stats"][key] = to_number(value)
        else:
            character["fields"][key] = value

    def _inventory_target(self) -> List[Dict[str, Any]]:
        inventory = self.data["inventory"]
        subsection = (self.subsection or "").strip()
        lowered = subsection.lower()
        if lowered == ON_PERSON.lower():
            return inventory["onPerson"]
        if lowered == ASSETS.lower():
            return inventory["assets"]
        stored = _STORED_RE.match(subsection)
        if stored:
            location = stored.group(1).strip()
            return inventory["stored"].setdefault(location, [])
        return inventory["simplified"]

    # -- driver -----------------------------------------------------------

    def read(self, text: str) -> Dict[str, Any]:
        for raw_line in (text or "").split("\n"):
            line = raw_line.strip()
            if not line or _FENCE_LINE_RE.match(line):
                continue
            if line.startswith("## "):
                if self.section:
                    self.open_subsection(line[3:])
                continue
            if line.startswith("# "):
                self.open_section(line[2:])
                continue
            if self.section is None:
                continue
            if line.startswith("-"):
                self.entry(line[1:].strip())
                continue
            pair = split_scalar(line)
            if pair:
                self.scalar(*pair)
            else:
                self.bare(line)
        return self.data


def markdown_to_dict(text: str, config: Optional[TrackerConfig] = None) -> Dict[str, Any]:
    """Decode the markdown dialect into a raw, un-normalized dict.

    Keys match the JSON dialect (camelCase), so the result feeds the same
    normalizer as a decoded JSON block.
    """
    return _MarkdownReader(config).read(text)


def decode_markdown(text: str, config: Optional[TrackerConfig] = None) -> TrackerData:
    """Decode markdown into canonical state, with dangling links dropped."""
    state = normalize_tracker_data(markdown_to_dict(text, config), config)
    validate_cross_references(state)
    return state


def extract_markdown_block(text: str) -> Optional[str]:
    """The first markdown tracker in a response: fenced, or unfenced."""
    cleaned = strip_reasoning(text)
    for block in extract_code_blocks(cleaned):
        if classify_block(block.content, block.language, allow_json=False).dialect is Dialect.MARKDOWN:
            return block.content
    return find_raw_markdown(cleaned)


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_INFO_BOX_HINTS = {
    "date": "[Weekday, Month Day, Year]",
    "time": "[Start Time → End Time]",
    "weather": "[Weather Emoji] [Forecast]",
    "location": "[Location]",
    "recentEvents": "[event]; [event]",
}


def generate_markdown_schema(config: TrackerConfig, options: Optional[SchemaOptions] = None, **overrides) -> str:
    """The example the model is prompted with, in the encoder's layout.

    Sections appear in SECTION_ORDER with the same headings, labels and
    entry syntax the decoder reads.
    """
    if config is None:
        raise ValueError("generate_markdown_schema requires a TrackerConfig")
    options = options or SchemaOptions.from_config(config, **overrides)
    output: List[str] = []

    if options.include_stats:
        stats = config.enabled_stat_names()
        if stats:
            output.append("# Stats")
            output.extend(f"{escape_key(name)}: [0-100]" for name in stats)
        status = config.user_stats.status_section
        if status.enabled:
            output.append("# Status")
            if status.show_mood_emoji:
                output.append(f"{MOOD_LABEL}: [Mood Emoji]")
            output.extend(f"{escape_key(field)}: [{field}]" for field in config.status_field_names())

    if options.include_attributes:
        attributes = config.enabled_attribute_names()
        if attributes:
            output.append("# Attributes")
            output.extend(f"{escape_key(name)}: [number]" for name in attributes)
            output.append("# Level")
            output.append("[number]")

    if options.include_info_box:
        widgets = set(config.enabled_widgets())
        lines = []
        for key, label in INFO_BOX_LABELS:
            if key not in widgets:
                continue
            if key == "temperature":
                hint = f"[number]{config.temperature_unit()}"
            else:
                hint = _INFO_BOX_HINTS[key]
            lines.append(f"{label}: {hint}")
        if lines:
            output.append("# InfoBox")
            output.extend(lines)

    if options.include_characters:
        present = config.present_characters
        output.append("# Characters")
        output.append("## [Character Name]")
        if present.show_emoji:
            output.append(f"{EMOJI_LABEL}: [Character Emoji]")
        if present.relationship_fields:
            output.append(f"{RELATIONSHIP_LABEL}: [{' | '.join(present.relationship_fields)}]")
        for field in present.custom_fields:
            if field.enabled and field.name:
                output.append(f"{escape_key(field.name)}: [{field.description or field.name}]")
        for stat in config.character_stat_names():
            output.append(f"{escape_key(stat)}: [0-100]%")
        if present.thoughts.enabled:
            output.append(f"{THOUGHTS_LABEL}: [{present.thoughts.description}]")

    if options.include_inventory:
        grants = f" [{GRANTS_TAG}: skill name]" if options.enable_item_skill_links else ""
        item = f"- [Item Name]: [Item Description]{grants}"
        output.append("# Inventory")
        if options.use_simplified_inventory:
            output.extend([f"## {ITEMS}", item])
        else:
            output.extend([
                f"## {ON_PERSON}", item,
                f"## {STORED_PREFIX}[Location Name]", item,
                f"## {ASSETS}", "- [Asset Name]: [Vehicle, Property or Major Possession]",
            ])

    if options.include_skills:
        categories = config.skill_categories() or [config.user_stats.skills_section.label]
        source = f" [{FROM_TAG}: item name]" if options.enable_item_skill_links else ""
        output.append("# Skills")
        for category in categories:
            output.append(f"## {category}")
            output.append(f"- [Skill Name]: [What The Skill Does]{source}")

    if options.include_quests:
        output.extend([
            "# Quests",
            f"## {MAIN_QUEST}",
            "[Quest Title]: [Primary Objective]",
            f"## {OPTIONAL_QUESTS}",
            "- [Quest Title]: [Optional Objective]",
        ])

    return "\n".join(output)

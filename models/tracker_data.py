"""
TrackerData — the canonical game state for one turn.

Model output is unreliable, so every model here coerces shape variance
instead of rejecting it: bare strings become one-element lists, empty
objects become empty lists, "null"/"none" become absent, numbers clamp to
their domain. Anything that still fails validation is rejected per section
by the normalizer, never for the whole turn.
"""

import re
import json
from typing import List, Optional, Dict, Any, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from models.tracker_config import TrackerConfig

TRACKER_DATA_VERSION = 3

INFO_BOX_KEYS = ("date", "time", "weather", "temperature", "location", "recentEvents")

_ABSENT_VALUES = {"", "null", "none", "undefined", "n/a"}
_NUMBER_RE = re.compile(r"\s*(-?\d+(?:\.\d+)?)")

Number = Union[int, float]


# ---------------------------------------------------------------------------
# Coercion helpers (shared with the codecs)
# ---------------------------------------------------------------------------

def is_absent(value: Any) -> bool:
    """True for None and the textual spellings of "nothing"."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip().lower() in _ABSENT_VALUES
    return False


def clean_text(value: Any) -> Optional[str]:
    """Return a stripped string, or None when the value is absent."""
    if is_absent(value):
        return None
    if isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def to_number(value: Any) -> Optional[Number]:
    """Read a number out of an int, float or string like '80%'."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        match = _NUMBER_RE.match(value)
        if match:
            text = match.group(1)
            return float(text) if "." in text else int(text)
    return None


def tidy_number(value: Number) -> Number:
    """Collapse integral floats so 80.0 encodes as 80."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def clamp(value: Number, low: Number, high: Optional[Number] = None) -> Number:
    value = max(low, value)
    if high is not None:
        value = min(high, value)
    return tidy_number(value)


def coerce_entity_list(value: Any) -> List[Any]:
    """Normalize a collection of named entities to a list.

    Accepts a list, a bare string (one entity), a single entity dict, a
    name→description mapping, or an empty object. Entries without a usable
    name are skipped rather than inserted as phantoms.
    """
    if value is None:
        return []
    if isinstance(value, str):
        return [] if is_absent(value) else [value.strip()]
    if isinstance(value, dict):
        if not value:
            return []
        if "name" in value or "title" in value:
            value = [value]
        else:
            value = [
                {"name": k, "description": v} if isinstance(v, str) else {"name": k}
                for k, v in value.items()
            ]
    if not isinstance(value, list):
        return []

    entries = []
    for entry in value:
        if isinstance(entry, BaseModel):
            entries.append(entry)
        elif isinstance(entry, str):
            if not is_absent(entry):
                entries.append(entry.strip())
        elif isinstance(entry, dict):
            if "name" not in entry and "title" in entry:
                entry = {**entry, "name": entry["title"]}
            if clean_text(entry.get("name")):
                entries.append(entry)
    return entries


def _number_map(value: Any, low: Number, high: Optional[Number]) -> Dict[str, Number]:
    if not isinstance(value, dict):
        return {}
    result = {}
    for key, raw in value.items():
        name = clean_text(key)
        number = to_number(raw)
        if name and number is not None:
            result[name] = clamp(number, low, high)
    return result


def _text_map(value: Any) -> Dict[str, str]:
    if not isinstance(value, dict):
        return {}
    result = {}
    for key, raw in value.items():
        name = clean_text(key)
        text = clean_text(raw)
        if name and text:
            result[name] = text
    return result


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------

class TrackerItem(BaseModel):
    """An inventory item. `grantsSkill` names the skill it unlocks."""

    name: str
    description: Optional[str] = None
    grants_skill: Optional[str] = Field(default=None, alias="grantsSkill")

    model_config = {"populate_by_name": True}

    @model_validator(mode="before")
    @classmethod
    def from_bare_name(cls, v):
        if isinstance(v, str):
            return {"name": v}
        return v

    @field_validator("name", mode="before")
    @classmethod
    def require_name(cls, v):
        name = clean_text(v)
        if not name:
            raise ValueError("item name is required")
        return name

    @field_validator("description", "grants_skill", mode="before")
    @classmethod
    def drop_absent(cls, v):
        return clean_text(v)


class TrackerSkill(BaseModel):
    """A skill or ability. `grantedBy` names the item that provides it."""

    name: str
    description: Optional[str] = None
    granted_by: Optional[str] = Field(default=None, alias="grantedBy")
    level: Optional[int] = None

    model_config = {"populate_by_name": True}

    @model_validator(mode="before")
    @classmethod
    def from_bare_name(cls, v):
        if isinstance(v, str):
            return {"name": v}
        return v

    @field_validator("name", mode="before")
    @classmethod
    def require_name(cls, v):
        name = clean_text(v)
        if not name:
            raise ValueError("skill name is required")
        return name

    @field_validator("description", "granted_by", mode="before")
    @classmethod
    def drop_absent(cls, v):
        return clean_text(v)

    @field_validator("level", mode="before")
    @classmethod
    def level_at_least_one(cls, v):
        number = to_number(v)
        if number is None:
            return None
        return int(max(1, number))


class TrackerQuest(BaseModel):
    name: str
    description: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def from_bare_name(cls, v):
        if isinstance(v, str):
            return {"name": v}
        if isinstance(v, dict) and "name" not in v and "title" in v:
            v = {**v, "name": v["title"]}
        return v

    @field_validator("name", mode="before")
    @classmethod
    def require_name(cls, v):
        name = clean_text(v)
        if not name:
            raise ValueError("quest name is required")
        return name

    @field_validator("description", mode="before")
    @classmethod
    def drop_absent(cls, v):
        return clean_text(v)


class TrackerQuests(BaseModel):
    main: Optional[TrackerQuest] = None
    optional: List[TrackerQuest] = []

    @field_validator("main", mode="before")
    @classmethod
    def main_or_none(cls, v):
        if isinstance(v, list):
            v = v[0] if v else None
        if isinstance(v, dict) and not clean_text(v.get("name") or v.get("title")):
            return None
        if is_absent(v):
            return None
        return v

    @field_validator("optional", mode="before")
    @classmethod
    def optional_list(cls, v):
        return coerce_entity_list(v)

    def is_empty(self) -> bool:
        return self.main is None and not self.optional


class TrackerStatus(BaseModel):
    mood: Optional[str] = None
    fields: Dict[str, str] = {}

    @model_validator(mode="before")
    @classmethod
    def from_bare_mood(cls, v):
        if isinstance(v, str):
            return {"mood": v}
        if isinstance(v, dict) and "fields" not in v:
            # Flat {mood, Conditions: ...} objects: everything but mood is a field.
            flat = {k: val for k, val in v.items() if k != "mood"}
            return {"mood": v.get("mood"), "fields": flat}
        return v

    @field_validator("mood", mode="before")
    @classmethod
    def drop_absent(cls, v):
        return clean_text(v)

    @field_validator("fields", mode="before")
    @classmethod
    def text_fields(cls, v):
        return _text_map(v)

    def is_empty(self) -> bool:
        return self.mood is None and not self.fields


class TrackerInfoBox(BaseModel):
    """Scene information. Unknown keys are preserved as extra string fields."""

    date: Optional[str] = None
    time: Optional[str] = None
    weather: Optional[str] = None
    temperature: Optional[str] = None
    location: Optional[str] = None
    recent_events: List[str] = Field(default=[], alias="recentEvents")

    model_config = {"populate_by_name": True, "extra": "allow"}

    @model_validator(mode="before")
    @classmethod
    def canonical_keys(cls, v):
        if isinstance(v, cls):
            return v
        if not isinstance(v, dict):
            return {}
        known = {key.lower(): key for key in INFO_BOX_KEYS}
        known["recent_events"] = "recentEvents"
        known["recent events"] = "recentEvents"
        result: Dict[str, Any] = {}
        for key, value in v.items():
            canonical = known.get(str(key).strip().lower())
            if canonical == "recentEvents":
                result["recentEvents"] = value
                continue
            if isinstance(value, list):
                value = "; ".join(str(e) for e in value if not is_absent(e))
            text = clean_text(value)
            if text is None:
                continue
            result[canonical or str(key).strip()] = text
        return result

    @field_validator("recent_events", mode="before")
    @classmethod
    def events_list(cls, v):
        if isinstance(v, str):
            v = [v]
        if not isinstance(v, list):
            return []
        return [text for text in (clean_text(e) for e in v) if text]

    def is_empty(self) -> bool:
        if self.model_extra:
            return False
        return not self.recent_events and all(
            getattr(self, key) is None for key in ("date", "time", "weather", "temperature", "location")
        )


class TrackerCharacter(BaseModel):
    """A character present in the scene. Identified by name only."""

    name: str
    emoji: Optional[str] = None
    relationship: Optional[str] = None
    fields: Dict[str, str] = {}
    stats: Dict[str, Number] = {}
    thoughts: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def gather_flat_fields(cls, v):
        if isinstance(v, str):
            return {"name": v}
        if not isinstance(v, dict):
            return v
        reserved = {"name", "emoji", "relationship", "fields", "stats", "thoughts"}
        fields = dict(v.get("fields") or {}) if isinstance(v.get("fields"), dict) else {}
        for key, value in v.items():
            if key not in reserved and isinstance(value, (str, int, float)) and not isinstance(value, bool):
                fields.setdefault(key, str(value))
        return {**{k: v[k] for k in reserved if k in v}, "fields": fields}

    @field_validator("name", mode="before")
    @classmethod
    def require_name(cls, v):
        name = clean_text(v)
        if not name:
            raise ValueError("character name is required")
        return name

    @field_validator("emoji", "relationship", "thoughts", mode="before")
    @classmethod
    def drop_absent(cls, v):
        return clean_text(v)

    @field_validator("fields", mode="before")
    @classmethod
    def text_fields(cls, v):
        return _text_map(v)

    @field_validator("stats", mode="before")
    @classmethod
    def percent_stats(cls, v):
        return _number_map(v, 0, 100)


class TrackerInventory(BaseModel):
    """Categorized inventory, or a flat `simplified` list."""

    on_person: List[TrackerItem] = Field(default=[], alias="onPerson")
    stored: Dict[str, List[TrackerItem]] = {}
    assets: List[TrackerItem] = []
    simplified: List[TrackerItem] = []

    model_config = {"populate_by_name": True}

    @model_validator(mode="before")
    @classmethod
    def fold_items_alias(cls, v):
        if isinstance(v, (list, str)):
            return {"simplified": v}
        if isinstance(v, cls):
            return v
        if not isinstance(v, dict):
            return {}
        if "items" in v:
            v = dict(v)
            items = coerce_entity_list(v.pop("items"))
            v["simplified"] = coerce_entity_list(v.get("simplified")) + items
        return v

    @field_validator("on_person", "assets", "simplified", mode="before")
    @classmethod
    def item_list(cls, v):
        return coerce_entity_list(v)

    @field_validator("stored", mode="before")
    @classmethod
    def stored_locations(cls, v):
        if not isinstance(v, dict):
            return {}
        result = {}
        for location, items in v.items():
            name = clean_text(location)
            entries = coerce_entity_list(items)
            if name and entries:
                result[name] = entries
        return result

    def all_items(self) -> List[TrackerItem]:
        items = list(self.on_person) + list(self.assets) + list(self.simplified)
        for location_items in self.stored.values():
            items.extend(location_items)
        return items

    def is_empty(self) -> bool:
        return not (self.on_person or self.stored or self.assets or self.simplified)


# ---------------------------------------------------------------------------
# The aggregate
# ---------------------------------------------------------------------------

class TrackerData(BaseModel):
    """Canonical state. Every sub-tree is optional; empty sub-trees are None."""

    version: int = TRACKER_DATA_VERSION
    stats: Optional[Dict[str, Number]] = None
    status: Optional[TrackerStatus] = None
    attributes: Optional[Dict[str, int]] = None
    level: Optional[int] = None
    info_box: Optional[TrackerInfoBox] = Field(default=None, alias="infoBox")
    characters: List[TrackerCharacter] = []
    inventory: Optional[TrackerInventory] = None
    skills: Optional[Dict[str, List[TrackerSkill]]] = None
    quests: Optional[TrackerQuests] = None

    model_config = {"populate_by_name": True}

    @field_validator("stats", mode="before")
    @classmethod
    def percent_stats(cls, v):
        return _number_map(v, 0, 100) or None

    @field_validator("attributes", mode="before")
    @classmethod
    def positive_attributes(cls, v):
        values = _number_map(v, 1, None)
        return {k: int(n) for k, n in values.items()} or None

    @field_validator("level", mode="before")
    @classmethod
    def level_at_least_one(cls, v):
        number = to_number(v)
        if number is None:
            return None
        return int(max(1, number))

    @field_validator("characters", mode="before")
    @classmethod
    def unique_characters(cls, v):
        seen = set()
        result = []
        for entry in coerce_entity_list(v):
            if isinstance(entry, str):
                name = entry
            elif isinstance(entry, BaseModel):
                name = entry.name
            else:
                name = clean_text(entry.get("name"))
            key = name.lower()
            if key not in seen:
                seen.add(key)
                result.append(entry)
        return result

    @field_validator("skills", mode="before")
    @classmethod
    def skill_categories(cls, v):
        if isinstance(v, list):
            v = {"Skills": v}
        if not isinstance(v, dict):
            return None
        result = {}
        for category, abilities in v.items():
            name = clean_text(category)
            if isinstance(abilities, str):
                abilities = [a.strip() for a in abilities.split(",")]
            entries = coerce_entity_list(abilities)
            if name and entries:
                result[name] = entries
        return result or None

    @field_validator("status", "info_box", "inventory", "quests")
    @classmethod
    def collapse_empty(cls, v):
        if v is not None and v.is_empty():
            return None
        return v

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Plain dict with the camelCase keys the model is prompted with."""
        return self.model_dump(by_alias=True, exclude_none=True)

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    def all_skills(self) -> List[TrackerSkill]:
        if not self.skills:
            return []
        return [skill for abilities in self.skills.values() for skill in abilities]


def encode_json(state: TrackerData) -> str:
    """Serialize canonical state as the JSON shown to the model."""
    return state.to_json()


def create_empty_tracker_data(config: TrackerConfig) -> TrackerData:
    """A fresh state seeded from the configured defaults."""
    if config is None:
        raise ValueError("create_empty_tracker_data requires a TrackerConfig")

    stats = {s.name: s.default for s in config.user_stats.custom_stats if s.enabled and s.name}
    attributes = {name: 10 for name in config.enabled_attribute_names()}
    return TrackerData(
        stats=stats,
        attributes=attributes,
        level=1,
        status=TrackerStatus(mood="😐"),
    )


def merge_tracker_data(existing: Optional[TrackerData], new: TrackerData) -> TrackerData:
    """Overlay `new` onto `existing` section by section.

    Keyed sections (stats, status fields, attributes, infoBox) merge key by
    key; list-shaped sections (characters, inventory, skills, quests) are
    replaced whole.
    """
    if existing is None:
        return new.model_copy(deep=True)

    merged = existing.model_copy(deep=True)
    if new.stats:
        merged.stats = {**(merged.stats or {}), **new.stats}
    if new.status:
        old = merged.status or TrackerStatus()
        merged.status = TrackerStatus(
            mood=new.status.mood or old.mood,
            fields={**old.fields, **new.status.fields},
        )
    if new.attributes:
        merged.attributes = {**(merged.attributes or {}), **new.attributes}
    if new.level is not None:
        merged.level = new.level
    if new.info_box:
        old_box = merged.info_box.model_dump(by_alias=True, exclude_none=True) if merged.info_box else {}
        new_box = new.info_box.model_dump(by_alias=True, exclude_none=True)
        if not new_box.get("recentEvents"):
            new_box.pop("recentEvents", None)
        merged.info_box = TrackerInfoBox.model_validate({**old_box, **new_box})
    if new.characters:
        merged.characters = [c.model_copy(deep=True) for c in new.characters]
    if new.inventory:
        merged.inventory = new.inventory.model_copy(deep=True)
    if new.skills:
        merged.skills = {k: [s.model_copy() for s in v] for k, v in new.skills.items()}
    if new.quests:
        merged.quests = new.quests.model_copy(deep=True)
    return merged

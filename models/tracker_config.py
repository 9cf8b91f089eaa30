"""
Tracker configuration — which sections, stats, attributes, skill categories
and character fields are enabled, and what they are called.

The shape mirrors the host's settings object (camelCase keys), so a settings
export in JSON or YAML loads directly. The configuration is always passed
explicitly into extractors and codecs; nothing reads it from a global.
"""

import os
import logging
from dataclasses import dataclass
from typing import List, Optional, Dict, Any

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

logger = logging.getLogger('TrackerConfig')

_CONFIG = {"alias_generator": to_camel, "populate_by_name": True, "extra": "allow"}


class StatConfig(BaseModel):
    """A percentage stat shown in the user stats panel."""

    name: str
    description: str = ""
    enabled: bool = True
    default: int = Field(default=100, ge=0, le=100)

    model_config = _CONFIG


class AttributeConfig(BaseModel):
    """An RPG attribute (STR, DEX, ...)."""

    name: str
    description: str = ""
    enabled: bool = True

    model_config = _CONFIG


class StatusSectionConfig(BaseModel):
    enabled: bool = True
    show_mood_emoji: bool = True
    custom_fields: List[str] = ["Conditions"]

    model_config = _CONFIG


class SkillsSectionConfig(BaseModel):
    enabled: bool = False
    label: str = "Skills"
    custom_fields: List[str] = []

    model_config = _CONFIG

    @field_validator("custom_fields", mode="before")
    @classmethod
    def flatten_categories(cls, v):
        # Categories arrive as plain names or as {name, enabled} objects.
        if not v:
            return []
        names = []
        for entry in v:
            if isinstance(entry, str):
                names.append(entry)
            elif isinstance(entry, dict) and entry.get("name") and entry.get("enabled", True) is not False:
                names.append(entry["name"])
        return names


class UserStatsConfig(BaseModel):
    custom_stats: List[StatConfig] = Field(default_factory=lambda: [
        StatConfig(name="Health"),
        StatConfig(name="Satiety"),
        StatConfig(name="Energy"),
        StatConfig(name="Hygiene"),
        StatConfig(name="Arousal", default=0),
    ])
    show_rpg_attributes: bool = Field(default=True, alias="showRPGAttributes")
    always_send_attributes: bool = False
    allow_ai_update_attributes: bool = Field(default=True, alias="allowAIUpdateAttributes")
    rpg_attributes: List[AttributeConfig] = Field(
        default_factory=lambda: [AttributeConfig(name=n) for n in ("STR", "DEX", "CON", "INT", "WIS", "CHA")],
        alias="rpgAttributes",
    )
    status_section: StatusSectionConfig = Field(default_factory=StatusSectionConfig)
    skills_section: SkillsSectionConfig = Field(default_factory=SkillsSectionConfig)

    model_config = _CONFIG


class WidgetConfig(BaseModel):
    """One info box widget. Extra keys (unit, format) are kept."""

    enabled: bool = True

    model_config = _CONFIG


def _default_widgets() -> Dict[str, WidgetConfig]:
    return {
        "date": WidgetConfig(enabled=True, format="Weekday, Month, Year"),
        "weather": WidgetConfig(enabled=True),
        "temperature": WidgetConfig(enabled=True, unit="C"),
        "time": WidgetConfig(enabled=True),
        "location": WidgetConfig(enabled=True),
        "recentEvents": WidgetConfig(enabled=True),
    }


class InfoBoxConfig(BaseModel):
    widgets: Dict[str, WidgetConfig] = Field(default_factory=_default_widgets)

    model_config = _CONFIG


class CustomFieldConfig(BaseModel):
    """A free-text field tracked per present character (Appearance, Demeanor...)."""

    name: str
    enabled: bool = True
    description: str = ""

    model_config = _CONFIG


class ThoughtsConfig(BaseModel):
    enabled: bool = True
    name: str = "Thoughts"
    description: str = "Internal monologue (in first person POV, up to three sentences long)"

    model_config = _CONFIG


class CharacterStatsConfig(BaseModel):
    enabled: bool = False
    custom_stats: List[StatConfig] = Field(default_factory=lambda: [
        StatConfig(name="Health"),
        StatConfig(name="Arousal", default=0),
    ])

    model_config = _CONFIG


class PresentCharactersConfig(BaseModel):
    show_emoji: bool = True
    show_name: bool = True
    relationship_fields: List[str] = ["Lover", "Friend", "Ally", "Enemy", "Neutral"]
    relationship_emojis: Dict[str, str] = {
        "Lover": "❤️",
        "Friend": "⭐",
        "Ally": "🤝",
        "Enemy": "⚔️",
        "Neutral": "⚖️",
    }
    custom_fields: List[CustomFieldConfig] = Field(default_factory=lambda: [
        CustomFieldConfig(
            name="Appearance",
            description="Visible physical appearance (clothing, hair, notable features)",
        ),
        CustomFieldConfig(name="Demeanor", description="Observable demeanor or emotional state"),
    ])
    thoughts: ThoughtsConfig = Field(default_factory=ThoughtsConfig)
    character_stats: CharacterStatsConfig = Field(default_factory=CharacterStatsConfig)

    model_config = _CONFIG


class TrackerConfig(BaseModel):
    """Everything the parser and the schema generators need to know about
    what is being tracked. Changes only between turns."""

    user_stats: UserStatsConfig = Field(default_factory=UserStatsConfig)
    info_box: InfoBoxConfig = Field(default_factory=InfoBoxConfig)
    present_characters: PresentCharactersConfig = Field(default_factory=PresentCharactersConfig)

    use_markdown_format: bool = False
    use_simplified_inventory: bool = False
    show_user_stats: bool = True
    show_info_box: bool = True
    show_character_thoughts: bool = True
    show_inventory: bool = True
    show_skills: bool = False
    show_quests: bool = True
    enable_item_skill_links: bool = False
    delete_skill_with_item: bool = False

    model_config = _CONFIG

    # ------------------------------------------------------------------
    # Lookups used to build matchers and schema examples
    # ------------------------------------------------------------------

    def enabled_stat_names(self) -> List[str]:
        return [s.name for s in self.user_stats.custom_stats if s.enabled and s.name]

    def enabled_attribute_names(self) -> List[str]:
        return [a.name for a in self.user_stats.rpg_attributes if a.enabled and a.name]

    def skill_categories(self) -> List[str]:
        return list(self.user_stats.skills_section.custom_fields)

    def status_field_names(self) -> List[str]:
        if not self.user_stats.status_section.enabled:
            return []
        return list(self.user_stats.status_section.custom_fields)

    def character_field_names(self) -> List[str]:
        return [f.name for f in self.present_characters.custom_fields if f.enabled and f.name]

    def character_stat_names(self) -> List[str]:
        stats_cfg = self.present_characters.character_stats
        if not stats_cfg.enabled:
            return []
        return [s.name for s in stats_cfg.custom_stats if s.enabled and s.name]

    def enabled_widgets(self) -> List[str]:
        return [key for key, widget in self.info_box.widgets.items() if widget.enabled]

    def temperature_unit(self) -> str:
        widget = self.info_box.widgets.get("temperature")
        unit = getattr(widget, "unit", "C") if widget else "C"
        return "°F" if unit == "F" else "°C"

    def canonical_relationship(self, value: Optional[str]) -> Optional[str]:
        """Map a relationship to its configured spelling, or None if unknown."""
        if not value:
            return None
        lowered = value.strip().lower()
        for option in self.present_characters.relationship_fields:
            if option.lower() == lowered:
                return option
        return None


@dataclass
class SchemaOptions:
    """Which sections a generated schema example includes."""

    include_stats: bool = True
    include_attributes: bool = False
    include_info_box: bool = True
    include_characters: bool = True
    include_inventory: bool = True
    include_skills: bool = True
    include_quests: bool = True
    enable_item_skill_links: bool = False
    use_simplified_inventory: bool = False

    @classmethod
    def from_config(cls, config: TrackerConfig, **overrides) -> "SchemaOptions":
        """Defaults mirror the configuration; keyword overrides win."""
        user_stats = config.user_stats
        options = cls(
            include_stats=config.show_user_stats,
            include_attributes=user_stats.show_rpg_attributes and user_stats.allow_ai_update_attributes,
            include_info_box=config.show_info_box,
            include_characters=config.show_character_thoughts,
            include_inventory=config.show_inventory,
            include_skills=config.show_skills,
            include_quests=config.show_quests,
            enable_item_skill_links=config.enable_item_skill_links,
            use_simplified_inventory=config.use_simplified_inventory,
        )
        for key, value in overrides.items():
            if value is None:
                continue
            if not hasattr(options, key):
                raise TypeError(f"Unknown schema option: {key}")
            setattr(options, key, value)
        return options


def load_tracker_config(path: Optional[str]) -> TrackerConfig:
    """Load a TrackerConfig from a YAML (or JSON) file.

    A missing or unreadable file falls back to the defaults so a bad settings
    export never blocks parsing.
    """
    if not path:
        return TrackerConfig()
    if not os.path.isfile(path):
        logger.warning(f"Tracker config not found at {path}, using defaults")
        return TrackerConfig()

    try:
        with open(path, 'r', encoding='utf-8') as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        logger.error(f"YAML parse error in {path}: {e}")
        return TrackerConfig()

    # Accept either the bare trackerConfig or a full settings export wrapping it.
    if isinstance(raw, dict) and isinstance(raw.get("trackerConfig"), dict):
        merged: Dict[str, Any] = dict(raw["trackerConfig"])
        for key, value in raw.items():
            if key != "trackerConfig":
                merged.setdefault(key, value)
        raw = merged

    config = TrackerConfig.model_validate(raw)
    logger.info(f"Loaded tracker config from {path}: {len(config.enabled_stat_names())} stats, "
                f"{len(config.skill_categories())} skill categories")
    return config

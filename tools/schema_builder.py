"""
JSON Schema Builder — the example object shown to the model.

The example holds concrete values rather than placeholders, so it decodes
through the same JSON path as a real response. Tests rely on that to check
the example and the decoder agree.
"""

import json
import logging
from typing import Any, Dict, Optional

from models.tracker_config import TrackerConfig, SchemaOptions
from tools.markdown_codec import generate_markdown_schema

logger = logging.getLogger('SchemaBuilder')

EXAMPLE_STAT_VALUE = 75
EXAMPLE_ATTRIBUTE_VALUE = 10


def generate_schema_example(
    config: TrackerConfig,
    options: Optional[SchemaOptions] = None,
    **overrides,
) -> Dict[str, Any]:
    """Build an example tracker object mirroring the configuration.

    Args:
        config: Which stats, fields and sections exist.
        options: Section toggles. Defaults come from `config`; keyword
            overrides (include_skills=True, ...) win over both.
    """
    if config is None:
        raise ValueError("generate_schema_example requires a TrackerConfig")
    options = options or SchemaOptions.from_config(config, **overrides)
    example: Dict[str, Any] = {}

    if options.include_stats:
        stats = config.enabled_stat_names()
        if stats:
            example["stats"] = {name: EXAMPLE_STAT_VALUE for name in stats}
        status_section = config.user_stats.status_section
        if status_section.enabled:
            status: Dict[str, Any] = {}
            if status_section.show_mood_emoji:
                status["mood"] = "😊"
            fields = config.status_field_names()
            if fields:
                status["fields"] = {name: f"[{name} value]" for name in fields}
            if status:
                example["status"] = status

    if options.include_attributes:
        attributes = config.enabled_attribute_names()
        if attributes:
            example["attributes"] = {name: EXAMPLE_ATTRIBUTE_VALUE for name in attributes}
            example["level"] = 1

    if options.include_info_box:
        widgets = set(config.enabled_widgets())
        info_box: Dict[str, Any] = {}
        if "date" in widgets:
            info_box["date"] = "Monday, March 15, 1242"
        if "time" in widgets:
            info_box["time"] = "14:00 → 15:30"
        if "weather" in widgets:
            info_box["weather"] = "☀️ Sunny"
        if "temperature" in widgets:
            info_box["temperature"] = f"22{config.temperature_unit()}"
        if "location" in widgets:
            info_box["location"] = "Forest Clearing"
        if "recentEvents" in widgets:
            info_box["recentEvents"] = ["The party arrived at dawn"]
        if info_box:
            example["infoBox"] = info_box

    if options.include_characters:
        present = config.present_characters
        character: Dict[str, Any] = {"name": "Elena"}
        if present.show_emoji:
            character["emoji"] = "🧝"
        if present.relationship_fields:
            character["relationship"] = present.relationship_fields[0]
        fields = {f.name: f"[{f.description or f.name}]" for f in present.custom_fields if f.enabled and f.name}
        if fields:
            character["fields"] = fields
        stats = config.character_stat_names()
        if stats:
            character["stats"] = {name: EXAMPLE_STAT_VALUE for name in stats}
        if present.thoughts.enabled:
            character["thoughts"] = "I wonder what adventures await..."
        example["characters"] = [character]

    if options.include_inventory:
        sword: Dict[str, Any] = {"name": "Iron Sword", "description": "A sturdy blade"}
        if options.enable_item_skill_links:
            sword["grantsSkill"] = "Sword Fighting"
        if options.use_simplified_inventory:
            example["inventory"] = {"simplified": [sword]}
        else:
            example["inventory"] = {
                "onPerson": [sword],
                "stored": {"Home": [{"name": "Gold Coins", "description": "50 gold pieces"}]},
                "assets": [{"name": "Small House", "description": "A modest dwelling"}],
            }

    if options.include_skills:
        categories = config.skill_categories() or [config.user_stats.skills_section.label]
        skills = {}
        for index, category in enumerate(categories):
            skill: Dict[str, Any] = {"name": "Example Ability", "description": "What this ability does"}
            if index == 0 and options.enable_item_skill_links and options.include_inventory:
                skill = {"name": "Sword Fighting", "description": "Trained with a blade", "grantedBy": "Iron Sword"}
            skills[category] = [skill]
        example["skills"] = skills

    if options.include_quests:
        example["quests"] = {
            "main": {"name": "Main Quest", "description": "The primary objective"},
            "optional": [{"name": "Side Quest", "description": "An optional objective"}],
        }

    return example


def render_json_schema(config: TrackerConfig, options: Optional[SchemaOptions] = None, **overrides) -> str:
    return json.dumps(generate_schema_example(config, options, **overrides), indent=2, ensure_ascii=False)


def format_instruction_block(config: TrackerConfig, use_markdown: Optional[bool] = None, **overrides) -> str:
    """The fenced example block inserted into the outbound instruction."""
    if config is None:
        raise ValueError("format_instruction_block requires a TrackerConfig")
    if use_markdown is None:
        use_markdown = config.use_markdown_format
    if use_markdown:
        body, language = generate_markdown_schema(config, **overrides), "markdown"
    else:
        body, language = render_json_schema(config, **overrides), "json"
    logger.debug(f"Built {language} instruction block ({len(body)} chars)")
    return f"```{language}\n{body}\n```"

"""
Normalizer — turns a raw decoded tracker (from any dialect) into canonical
TrackerData.

Rules:
  * Each section is validated on its own. A section that fails validation
    is logged and treated as absent; it never takes the rest of the turn
    down with it.
  * Absent sections keep the committed value, so a half-parsed turn never
    erases earlier progress.
  * Keyed sections (stats, status, attributes, level, infoBox) that come
    back empty also keep the committed value. List sections (characters,
    inventory, skills, quests) replace it, even when empty.
  * With a configuration: status fields are limited to the configured
    ones, relationships are mapped to their configured spelling (unknown
    ones dropped), attributes and level are frozen when the AI may not
    update them, and the inventory is folded into simplified or
    categorized form.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from models.tracker_config import TrackerConfig
from models.tracker_data import TRACKER_DATA_VERSION, TrackerData, TrackerInventory, TrackerStatus

logger = logging.getLogger('Normalizer')

# (TrackerData field, accepted raw keys)
_SECTIONS = (
    ("stats", ("stats",)),
    ("status", ("status",)),
    ("attributes", ("attributes",)),
    ("level", ("level",)),
    ("info_box", ("infoBox", "info_box", "infobox")),
    ("characters", ("characters", "presentCharacters")),
    ("inventory", ("inventory",)),
    ("skills", ("skills",)),
    ("quests", ("quests",)),
)
_KEYED_SECTIONS = {"stats", "status", "attributes", "level", "info_box"}


def _raw_section(raw: Dict[str, Any], keys: Tuple[str, ...]) -> Tuple[bool, Any]:
    for key in keys:
        if key in raw and raw[key] is not None:
            return True, raw[key]
    return False, None


def validate_section(field: str, value: Any) -> Tuple[Any, bool]:
    """Validate one section through the TrackerData field validators.

    Returns:
        (section value, True) on success, (None, False) if it was rejected.
    """
    alias = TrackerData.model_fields[field].alias or field
    try:
        return getattr(TrackerData.model_validate({alias: value}), field), True
    except ValidationError as e:
        logger.warning(f"Discarding malformed {alias} section ({e.error_count()} errors)")
        logger.debug(f"Rejected {alias} value: {value!r}")
        return None, False


def _canonical_names(values: Optional[Dict[str, Any]], names: List[str]) -> Optional[Dict[str, Any]]:
    """Rename keys that match a configured name case-insensitively."""
    if not values or not names:
        return values
    lookup = {name.lower(): name for name in names}
    result = {}
    for key, value in values.items():
        result.setdefault(lookup.get(key.lower(), key), value)
    return result


def _filter_status_fields(status: Optional[TrackerStatus], config: TrackerConfig) -> Optional[TrackerStatus]:
    if status is None:
        return None
    allowed = {name.lower(): name for name in config.status_field_names()}
    fields = {}
    for key, value in status.fields.items():
        canonical = allowed.get(key.lower())
        if canonical:
            fields[canonical] = value
        else:
            logger.debug(f"Dropping unconfigured status field: {key}")
    status = TrackerStatus(mood=status.mood, fields=fields)
    return None if status.is_empty() else status


def _canonical_relationship(value: Optional[str], config: TrackerConfig) -> Optional[str]:
    if not value:
        return None
    canonical = config.canonical_relationship(value)
    if canonical:
        return canonical
    for name, emoji in config.present_characters.relationship_emojis.items():
        if value.strip() == emoji and name in config.present_characters.relationship_fields:
            return name
    logger.debug(f"Dropping unknown relationship: {value}")
    return None


def _fold_inventory(inventory: Optional[TrackerInventory], simplified: bool) -> Optional[TrackerInventory]:
    """Pick the inventory shape the configuration asks for.

    `simplified` holds loose items (including an `items` key). In simplified
    mode they win over `onPerson`; in categorized mode `onPerson` wins and
    loose items fill it only when it is empty. Stored and assets are kept.
    """
    if inventory is None:
        return None
    loose = list(inventory.simplified)
    on_person = list(inventory.on_person)
    if simplified:
        folded = TrackerInventory(
            simplified=loose or on_person,
            stored=inventory.stored,
            assets=inventory.assets,
        )
    else:
        folded = TrackerInventory(
            on_person=on_person or loose,
            stored=inventory.stored,
            assets=inventory.assets,
        )
    return None if folded.is_empty() else folded


def apply_config_rules(state: TrackerData, config: TrackerConfig, committed: Optional[TrackerData] = None):
    """Apply the configuration-dependent rules to `state` in place."""
    state.stats = _canonical_names(state.stats, config.enabled_stat_names())
    state.attributes = _canonical_names(state.attributes, config.enabled_attribute_names())
    state.status = _filter_status_fields(state.status, config)

    if not config.user_stats.allow_ai_update_attributes:
        state.attributes = dict(committed.attributes) if committed and committed.attributes else None
        state.level = committed.level if committed else None

    character_stats = config.character_stat_names()
    for character in state.characters:
        character.relationship = _canonical_relationship(character.relationship, config)
        character.stats = _canonical_names(character.stats, character_stats) or {}

    state.inventory = _fold_inventory(state.inventory, config.use_simplified_inventory)


def normalize_tracker_data(
    raw: Any,
    config: Optional[TrackerConfig] = None,
    committed: Optional[TrackerData] = None,
) -> TrackerData:
    """Build canonical state from a raw decoded tracker.

    Args:
        raw: Dict produced by the JSON, markdown or legacy decoder.
        config: Enables the configuration-dependent rules when given.
        committed: Last committed state; supplies absent sections.

    Returns:
        A new TrackerData. `committed` is never mutated.
    """
    state = committed.model_copy(deep=True) if committed is not None else TrackerData()
    state.version = TRACKER_DATA_VERSION
    if not isinstance(raw, dict):
        logger.warning(f"Expected a tracker object, got {type(raw).__name__}; keeping committed state")
        return state

    if "status" not in raw and "mood" in raw:
        raw = {**raw, "status": {"mood": raw["mood"]}}

    updated = []
    for field, keys in _SECTIONS:
        present, value = _raw_section(raw, keys)
        if not present:
            continue
        section, ok = validate_section(field, value)
        if not ok:
            continue
        if field in _KEYED_SECTIONS and not section:
            continue
        setattr(state, field, section)
        updated.append(field)

    if config is not None:
        apply_config_rules(state, config, committed)

    logger.debug(f"Normalized sections: {updated or 'none'}")
    return state

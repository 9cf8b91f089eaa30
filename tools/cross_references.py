"""
Item ↔ skill links.

An item may name the skill it grants (`grantsSkill`) and a skill may name
the item that provides it (`grantedBy`). Both are plain name references,
matched case-insensitively, and both may dangle when the model invents one
side of the pair. Dangling references are dropped, never repaired.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Set

from models.tracker_data import TrackerData, TrackerItem, TrackerSkill

logger = logging.getLogger('CrossReferences')


@dataclass
class DanglingReference:
    """A link that pointed at nothing and was removed."""

    kind: str        # "grantsSkill" or "grantedBy"
    owner: str       # the item or skill that carried the link
    target: str      # the name it pointed at


def _key(name: Optional[str]) -> str:
    return (name or "").strip().lower()


def item_names(state: Optional[TrackerData]) -> Set[str]:
    """Lower-cased names of every item in every inventory location."""
    if state is None or state.inventory is None:
        return set()
    return {_key(item.name) for item in state.inventory.all_items()}


def skill_names(state: Optional[TrackerData]) -> Set[str]:
    if state is None:
        return set()
    return {_key(skill.name) for skill in state.all_skills()}


def validate_cross_references(state: TrackerData) -> List[DanglingReference]:
    """Remove `grantsSkill`/`grantedBy` links whose target does not exist.

    Mutates `state` in place and returns what was dropped.
    """
    dropped: List[DanglingReference] = []
    items = item_names(state)
    skills = skill_names(state)

    if state.inventory is not None:
        for item in state.inventory.all_items():
            if item.grants_skill and _key(item.grants_skill) not in skills:
                dropped.append(DanglingReference("grantsSkill", item.name, item.grants_skill))
                logger.info(f"Dropping dangling link: item '{item.name}' grants unknown skill "
                            f"'{item.grants_skill}'")
                item.grants_skill = None

    for skill in state.all_skills():
        if skill.granted_by and _key(skill.granted_by) not in items:
            dropped.append(DanglingReference("grantedBy", skill.name, skill.granted_by))
            logger.info(f"Dropping dangling link: skill '{skill.name}' granted by unknown item "
                        f"'{skill.granted_by}'")
            skill.granted_by = None

    return dropped


def find_items_granting_skill(state: TrackerData, skill_name: str) -> List[TrackerItem]:
    if state.inventory is None:
        return []
    target = _key(skill_name)
    return [item for item in state.inventory.all_items() if _key(item.grants_skill) == target]


def find_skills_granted_by_item(state: TrackerData, item_name: str) -> List[TrackerSkill]:
    target = _key(item_name)
    return [skill for skill in state.all_skills() if _key(skill.granted_by) == target]


def removed_item_names(before: Optional[TrackerData], after: TrackerData) -> Set[str]:
    """Lower-cased names of items present in `before` but not in `after`."""
    return item_names(before) - item_names(after)


def remove_skills_granted_by(state: TrackerData, removed_items: Set[str]) -> List[str]:
    """Delete every skill whose `grantedBy` names one of `removed_items`.

    Empty skill categories are dropped with their last skill. Returns the
    names of the deleted skills.
    """
    if not state.skills or not removed_items:
        return []
    wanted = {_key(name) for name in removed_items}
    deleted = []
    categories = {}
    for category, abilities in state.skills.items():
        kept = []
        for skill in abilities:
            if skill.granted_by and _key(skill.granted_by) in wanted:
                deleted.append(skill.name)
                logger.info(f"Removing skill '{skill.name}' with its item '{skill.granted_by}'")
            else:
                kept.append(skill)
        if kept:
            categories[category] = kept
    state.skills = categories or None
    return deleted


def remove_item_and_linked_skills(
    state: TrackerData,
    item_name: str,
    location: Optional[str] = None,
    remove_linked: bool = True,
) -> List[str]:
    """Remove an item after a direct user edit.

    Args:
        state: Mutated in place.
        item_name: Matched case-insensitively.
        location: "onPerson", "assets", "simplified" or a stored location
            name. None removes the item everywhere.
        remove_linked: Also delete skills whose `grantedBy` is the item.

    Returns:
        Names of the skills deleted along with the item.
    """
    inventory = state.inventory
    if inventory is None:
        return []
    target = _key(item_name)

    def keep(items):
        return [item for item in items if _key(item.name) != target]

    if location in (None, "onPerson"):
        inventory.on_person = keep(inventory.on_person)
    if location in (None, "assets"):
        inventory.assets = keep(inventory.assets)
    if location in (None, "simplified"):
        inventory.simplified = keep(inventory.simplified)
    stored = {}
    for name, items in inventory.stored.items():
        remaining = keep(items) if location is None or _key(location) == _key(name) else items
        if remaining:
            stored[name] = remaining
    inventory.stored = stored
    if inventory.is_empty():
        state.inventory = None

    if not remove_linked or target in item_names(state):
        return []
    return remove_skills_granted_by(state, {item_name})

"""
Turn Parser — one model response in, one canonical state out.

    response text
      → strip reasoning spans, extract fenced blocks
      → JSON  |  markdown  |  legacy sections     (first dialect that decodes)
      → normalize against the committed state
      → drop skills granted by removed items      (deleteSkillWithItem)
      → validate item ↔ skill references

Never raises for bad model output. A response with no recognizable tracker
yields `updated=False` and a copy of the committed state. The same text and
the same committed state always produce the same result.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from models.tracker_config import TrackerConfig
from models.tracker_data import TrackerData
from tools.block_extractor import Dialect, extract_blocks
from tools.cross_references import (
    DanglingReference,
    removed_item_names,
    remove_skills_granted_by,
    validate_cross_references,
)
from tools.legacy_extractor import extract_legacy_sections
from tools.markdown_codec import markdown_to_dict
from tools.normalizer import normalize_tracker_data

logger = logging.getLogger('TurnParser')


@dataclass
class ParseResult:
    """Outcome of parsing one response."""

    state: TrackerData
    dialect: Dialect = Dialect.UNKNOWN
    updated: bool = False
    dangling_references: List[DanglingReference] = field(default_factory=list)
    sections: List[str] = field(default_factory=list)
    removed_skills: List[str] = field(default_factory=list)


def parse_response(
    text: str,
    config: TrackerConfig,
    committed: Optional[TrackerData] = None,
) -> ParseResult:
    """Parse a raw model response into canonical state.

    Args:
        text: The full response, reasoning spans and prose included.
        config: Tracker configuration for this turn.
        committed: Last committed state. Sections the response does not
            carry keep their committed value.

    Returns:
        ParseResult with the new state and what was found.
    """
    if config is None:
        raise ValueError("parse_response requires a TrackerConfig")

    blocks = extract_blocks(text, config)
    raw = None
    dialect = Dialect.UNKNOWN

    if blocks.json_data is not None:
        raw, dialect = blocks.json_data, Dialect.JSON
    elif blocks.markdown is not None:
        raw, dialect = markdown_to_dict(blocks.markdown, config), Dialect.MARKDOWN
    elif blocks.legacy:
        raw = extract_legacy_sections(blocks.legacy, config)
        dialect = Dialect.COMBINED if len(blocks.legacy) > 1 else Dialect.LEGACY

    if raw is None:
        logger.info("No tracker found in response; keeping committed state")
        state = committed.model_copy(deep=True) if committed is not None else TrackerData()
        return ParseResult(state=state)

    state = normalize_tracker_data(raw, config, committed)

    removed_skills: List[str] = []
    if config.delete_skill_with_item and committed is not None:
        removed = removed_item_names(committed, state)
        if removed:
            logger.info(f"Items removed this turn: {sorted(removed)}")
            removed_skills = remove_skills_granted_by(state, removed)

    dangling = validate_cross_references(state)
    logger.info(f"Parsed {dialect.value} tracker: sections={blocks.found()}, "
                f"dangling={len(dangling)}, removed_skills={len(removed_skills)}")
    return ParseResult(
        state=state,
        dialect=dialect,
        updated=True,
        dangling_references=dangling,
        sections=blocks.found(),
        removed_skills=removed_skills,
    )

"""
Code-Block Extractor — finds the tracker update inside a model response.

Steps:
  1. Reasoning spans (<think>, <thinking>, <reasoning>) are removed first.
     They can contain draft code blocks that must never be parsed.
  2. Fenced blocks are enumerated in source order.
  3. Each block is classified by `classify_block`, a pure function that
     returns an explicit variant: JSON, MARKDOWN, LEGACY(section), COMBINED
     or UNKNOWN.
  4. The first block of each type wins; later duplicates are ignored.

Nothing in here raises on bad model output. No match means an empty
ExtractedBlocks, which the turn parser reports as "no update this turn".
"""

import re
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any

from models.tracker_config import TrackerConfig
from tools.json_repair import decode_json
from tools.sanitizer import strip_brackets, strip_wrapping

logger = logging.getLogger('BlockExtractor')


class Dialect(Enum):
    JSON = "json"
    MARKDOWN = "markdown"
    LEGACY = "legacy"
    COMBINED = "combined"
    UNKNOWN = "unknown"


class SectionKind(Enum):
    STATS = "stats"
    SKILLS = "skills"
    INFO_BOX = "info_box"
    CHARACTERS = "characters"


@dataclass(frozen=True)
class BlockClassification:
    """Tagged result of classifying one block. `section` is set for LEGACY."""

    dialect: Dialect
    section: Optional[SectionKind] = None


@dataclass
class CodeBlock:
    language: str
    content: str


@dataclass
class ExtractedBlocks:
    """First-match-wins view of everything found in one response."""

    json_data: Optional[Dict[str, Any]] = None
    markdown: Optional[str] = None
    legacy: Dict[SectionKind, str] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return self.json_data is None and self.markdown is None and not self.legacy

    def found(self) -> List[str]:
        names = []
        if self.json_data is not None:
            names.append("json")
        if self.markdown is not None:
            names.append("markdown")
        names.extend(kind.value for kind in self.legacy)
        return names


# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

_REASONING_RE = re.compile(
    r"<(think|thinking|reasoning)\b[^>]*>.*?</\1\s*>",
    re.DOTALL | re.IGNORECASE,
)
_FENCE_RE = re.compile(r"```(.*?)```", re.DOTALL)
_LANGUAGE_RE = re.compile(r"^(json|markdown|md|plaintext|text|txt)\b[ \t]*", re.IGNORECASE)

MARKDOWN_SECTIONS = (
    "Stats", "Status", "Attributes", "Level", "InfoBox",
    "Characters", "Inventory", "Skills", "Quests",
)
_MARKDOWN_HEADING_RE = re.compile(
    r"^#[ \t]+(?:" + "|".join(MARKDOWN_SECTIONS) + r")[ \t]*$",
    re.MULTILINE | re.IGNORECASE,
)

# Header + divider for each legacy section, e.g. "Info Box\n---".
SECTION_HEADERS = {
    SectionKind.STATS: re.compile(r"^[ \t]*(?:User |Player )?Stats[ \t]*\n\s*---", re.MULTILINE | re.IGNORECASE),
    SectionKind.SKILLS: re.compile(r"^[ \t]*Skills[ \t]*\n\s*---", re.MULTILINE | re.IGNORECASE),
    SectionKind.INFO_BOX: re.compile(
        r"^[ \t]*(?:Info Box|Scene Info|Information)[ \t]*\n\s*---", re.MULTILINE | re.IGNORECASE),
    SectionKind.CHARACTERS: re.compile(
        r"^[ \t]*(?:Present Characters|Characters|Character Thoughts)[ \t]*\n\s*---",
        re.MULTILINE | re.IGNORECASE),
}

BASELINE_STAT_KEYWORDS = ("Health", "Energy")

_INVENTORY_OR_QUESTS_RE = re.compile(
    r"^(?:On Person:|Inventory:|Main Quests?:|Optional Quests?:)", re.MULTILINE | re.IGNORECASE)
_CHARACTER_BULLET_RE = re.compile(r"^-\s+\w+", re.MULTILINE)


# ---------------------------------------------------------------------------
# Enumeration
# ---------------------------------------------------------------------------

def strip_reasoning(text: str) -> str:
    """Remove reasoning-tag spans (non-greedy, multiline)."""
    if not text:
        return ""
    return _REASONING_RE.sub("", text)


def extract_code_blocks(text: str) -> List[CodeBlock]:
    """All fenced blocks in source order, with the fence language split off."""
    blocks = []
    for match in _FENCE_RE.finditer(text or ""):
        inner = match.group(1)
        language = ""
        lang_match = _LANGUAGE_RE.match(inner)
        if lang_match:
            language = lang_match.group(1).lower()
            inner = inner[lang_match.end():]
        content = inner.strip()
        if content:
            blocks.append(CodeBlock(language=language, content=content))
    return blocks


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

def _headers_present(content: str) -> List[SectionKind]:
    return [kind for kind, pattern in SECTION_HEADERS.items() if pattern.search(content)]


def _has_percent_stat(content: str, name: str) -> bool:
    return bool(re.search(rf"(?<![A-Za-z]){re.escape(name)}\s*:\s*\d+(?:\.\d+)?\s*%", content, re.IGNORECASE))


def _has_stat_keywords(content: str, config: Optional[TrackerConfig]) -> bool:
    """Health + Energy percentages, or two configured stats as `Name: N%`.

    A configuration with a single stat needs only that one.
    """
    if all(_has_percent_stat(content, name) for name in BASELINE_STAT_KEYWORDS):
        return True
    names = config.enabled_stat_names() if config else []
    if not names:
        return False
    hits = sum(1 for name in names if _has_percent_stat(content, name))
    return hits >= min(2, len(names))


def _has_info_box_keywords(content: str) -> bool:
    return bool(re.search(r"Date:", content, re.IGNORECASE) and re.search(r"Location:", content, re.IGNORECASE))


def classify_block(
    content: str,
    language: Optional[str] = None,
    allow_json: bool = True,
    config: Optional[TrackerConfig] = None,
) -> BlockClassification:
    """Classify one block's content.

    Precedence, highest first: JSON, MARKDOWN, COMBINED, LEGACY headers
    (Stats, Skills, Info Box, Characters), LEGACY keyword fallbacks, UNKNOWN.

    Args:
        content: Block text without fences.
        language: Fence language tag, if any.
        allow_json: False when re-classifying a block whose JSON decode failed.
        config: Its enabled stat names extend the Health + Energy
            stat-keyword fallback.
    """
    stripped = (content or "").strip()
    if not stripped:
        return BlockClassification(Dialect.UNKNOWN)

    if allow_json and stripped[0] in "{[":
        return BlockClassification(Dialect.JSON)

    if language in ("markdown", "md") or _MARKDOWN_HEADING_RE.search(stripped):
        return BlockClassification(Dialect.MARKDOWN)

    body = strip_wrapping(stripped)
    headers = _headers_present(body)
    if len(headers) >= 2:
        return BlockClassification(Dialect.COMBINED)
    if len(headers) == 1:
        return BlockClassification(Dialect.LEGACY, headers[0])

    if _has_stat_keywords(body, config):
        return BlockClassification(Dialect.LEGACY, SectionKind.STATS)
    if _has_info_box_keywords(body):
        return BlockClassification(Dialect.LEGACY, SectionKind.INFO_BOX)
    if _CHARACTER_BULLET_RE.search(body) and re.search(r"Details:", body, re.IGNORECASE):
        return BlockClassification(Dialect.LEGACY, SectionKind.CHARACTERS)
    if _INVENTORY_OR_QUESTS_RE.search(body):
        return BlockClassification(Dialect.LEGACY, SectionKind.STATS)

    return BlockClassification(Dialect.UNKNOWN)


def split_combined_block(content: str) -> Dict[SectionKind, str]:
    """Split a block holding several legacy sections.

    Each section runs from its header+divider to the next header or the end
    of the block. The first occurrence of each section kind wins.
    """
    starts = []
    for kind, pattern in SECTION_HEADERS.items():
        for match in pattern.finditer(content):
            starts.append((match.start(), kind))
    starts.sort(key=lambda pair: pair[0])

    sections: Dict[SectionKind, str] = {}
    for index, (start, kind) in enumerate(starts):
        end = starts[index + 1][0] if index + 1 < len(starts) else len(content)
        if kind not in sections:
            sections[kind] = content[start:end].strip()
    return sections


# ---------------------------------------------------------------------------
# Raw (unfenced) markdown
# ---------------------------------------------------------------------------

_MARKDOWN_LINE_RE = re.compile(r"^(?:#|-|\d+\s*$|[^\s:#-][^:\n]{0,40}:(?:\s|$))")


def find_raw_markdown(text: str) -> Optional[str]:
    """Find an unfenced markdown tracker starting at a known `# Section`.

    Lines are collected while they look like the markdown dialect; the first
    line of prose ends the block.
    """
    if not text:
        return None
    outside = _FENCE_RE.sub("", text)
    heading = _MARKDOWN_HEADING_RE.search(outside)
    if not heading:
        return None

    collected = []
    for line in outside[heading.start():].split('\n'):
        stripped = line.strip()
        if not stripped or _MARKDOWN_LINE_RE.match(stripped):
            collected.append(stripped)
        else:
            break
    block = '\n'.join(collected).strip()
    return block or None


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def extract_blocks(text: str, config: Optional[TrackerConfig] = None) -> ExtractedBlocks:
    """Extract the tracker payload(s) from a raw model response."""
    result = ExtractedBlocks()
    cleaned = strip_reasoning(text)
    blocks = extract_code_blocks(cleaned)
    logger.debug(f"Found {len(blocks)} code blocks ({len(text or '')} chars, "
                 f"{len(cleaned)} after removing reasoning)")

    for index, block in enumerate(blocks):
        classification = classify_block(block.content, block.language, config=config)

        if classification.dialect is Dialect.JSON:
            if result.json_data is not None:
                logger.debug(f"Block {index + 1}: ignoring duplicate JSON block")
                continue
            data = decode_json(block.content)
            if isinstance(data, dict):
                result.json_data = data
                logger.debug(f"Block {index + 1}: JSON tracker with keys {list(data.keys())}")
                continue
            classification = classify_block(block.content, block.language, allow_json=False, config=config)

        if classification.dialect is Dialect.MARKDOWN:
            if result.markdown is None:
                result.markdown = block.content
                logger.debug(f"Block {index + 1}: markdown tracker")
        elif classification.dialect is Dialect.COMBINED:
            for kind, section in split_combined_block(strip_wrapping(block.content)).items():
                if kind not in result.legacy:
                    result.legacy[kind] = strip_brackets(section)
                    logger.debug(f"Block {index + 1}: {kind.value} from combined block")
        elif classification.dialect is Dialect.LEGACY:
            if classification.section not in result.legacy:
                result.legacy[classification.section] = strip_brackets(block.content)
                logger.debug(f"Block {index + 1}: legacy {classification.section.value} section")
        else:
            logger.debug(f"Block {index + 1}: no match, first chars: {block.content[:80]!r}")

    if result.json_data is None and result.markdown is None:
        raw = find_raw_markdown(cleaned)
        if raw:
            result.markdown = raw
            logger.debug("Found unfenced markdown tracker")

    return result

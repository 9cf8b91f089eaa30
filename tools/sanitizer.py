"""
Sanitizer — strips template leftovers from freeform tracker sections.

Models often echo the prompt template back: a whole section wrapped in
brackets, `[Location]` instead of a location, `Mood: [Mood Emoji]`.
This pass removes those without flattening the section's line structure,
which the legacy extractor depends on.

The placeholder heuristic is the keyword/length rule the prompt templates
were written against. It is known to misfire both ways:
a genuine short answer such as `[Old Mill]` is stripped, and a long
placeholder such as `[the name of the nearest settlement]` survives.
"""

import re
import logging
from typing import List

logger = logging.getLogger('Sanitizer')

_WRAPPERS = {"[": "]", "{": "}", "(": ")"}

_PLACEHOLDER_RE = re.compile(r"\[([A-Za-z /]+)\]")
_ALPHA_PHRASE_RE = re.compile(r"^[A-Za-z /]+$")

PLACEHOLDER_KEYWORDS = (
    'location', 'mood', 'emoji', 'name', 'description', 'placeholder',
    'time', 'date', 'weather', 'temperature', 'action', 'appearance',
    'skill', 'quest', 'item', 'character', 'field', 'value', 'details',
    'relationship', 'thoughts', 'stat', 'status', 'lover', 'friend',
    'enemy', 'neutral', 'weekday', 'month', 'year', 'forecast',
)

# Section headers that group the lines after them. They stay even when the
# header line itself looks empty, as long as real content follows.
STRUCTURAL_HEADERS = {
    'skills', 'status', 'inventory', 'on person', 'stored', 'assets',
    'main quest', 'main quests', 'optional quest', 'optional quests',
}

# How many lines past a structural header to look for its content.
HEADER_LOOKAHEAD = 4

_BARE_LABEL_RE = re.compile(r"^\s*([A-Za-z][A-Za-z ]*):\s*$")


def _is_fully_wrapped(text: str) -> bool:
    """True if the first character's bracket closes at the very last character."""
    if len(text) < 2:
        return False
    opener = text[0]
    closer = _WRAPPERS.get(opener)
    if closer is None or text[-1] != closer:
        return False
    depth = 0
    for index, char in enumerate(text):
        if char == opener:
            depth += 1
        elif char == closer:
            depth -= 1
            if depth == 0 and index != len(text) - 1:
                return False
    return depth == 0


def strip_wrapping(text: str) -> str:
    """Remove every bracket layer that wraps the whole text."""
    text = text.strip()
    while _is_fully_wrapped(text):
        text = text[1:-1].strip()
    return text


def is_placeholder(content: str) -> bool:
    """Decide whether bracketed text is a template placeholder."""
    lowered = content.lower().strip()
    if not lowered:
        return True
    if any(keyword in lowered for keyword in PLACEHOLDER_KEYWORDS):
        return True
    words = content.split()
    return len(words) <= 3 and bool(_ALPHA_PHRASE_RE.match(content))


def remove_placeholders(text: str) -> str:
    def _replace(match):
        if is_placeholder(match.group(1)):
            return ''
        return match.group(0)

    return _PLACEHOLDER_RE.sub(_replace, text)


def _bare_label(line: str):
    match = _BARE_LABEL_RE.match(line)
    return match.group(1).strip() if match else None


def _has_content_ahead(lines: List[str], index: int) -> bool:
    """Look past blank lines and other bare labels for real content."""
    for line in lines[index + 1:index + 1 + HEADER_LOOKAHEAD]:
        if not line.strip() or _bare_label(line) is not None:
            continue
        return True
    return False


def _next_is_bullet(lines: List[str], index: int) -> bool:
    for line in lines[index + 1:]:
        if line.strip():
            return line.lstrip().startswith('-')
    return False


def remove_empty_labels(text: str) -> str:
    """Drop `Label:` lines that were emptied by placeholder removal.

    A label is kept when bullets follow it directly (it heads a list) or
    when it is a structural header with content within the next few lines.
    """
    lines = text.split('\n')
    kept = []
    for index, line in enumerate(lines):
        label = _bare_label(line)
        if label is None:
            kept.append(line)
            continue
        if _next_is_bullet(lines, index):
            kept.append(line)
        elif label.lower() in STRUCTURAL_HEADERS and _has_content_ahead(lines, index):
            kept.append(line)
        else:
            logger.debug(f"Removed empty label: {label}")
    return '\n'.join(kept)


def strip_brackets(text: str) -> str:
    """Strip wrapping brackets and template placeholders from a section.

    Line structure is preserved: only runs of spaces/tabs collapse, and only
    blank lines are dropped.
    """
    if not text:
        return text

    text = strip_wrapping(text)
    text = remove_placeholders(text)
    text = remove_empty_labels(text)

    text = re.sub(r"^([A-Za-z ]+):\s*,", r"\1:", text, flags=re.MULTILINE)
    text = re.sub(r":[ \t]*\|", ":", text)
    text = re.sub(r"\|[ \t]*\|", "|", text)
    text = re.sub(r"[ \t]*\|[ \t]*$", "", text, flags=re.MULTILINE)
    text = re.sub(r"[ \t]{2,}", " ", text)

    lines = [line.rstrip() for line in text.split('\n')]
    return '\n'.join(line for line in lines if line.strip()).strip()

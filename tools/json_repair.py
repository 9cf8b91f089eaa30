"""
JSON Decoder with Repair — strict decode, then exactly one repaired retry.

Only two repairs are applied: trailing commas before `}`/`]` are removed and
bare identifier keys are quoted. Anything else that is malformed is reported
as a decode failure so the caller can fall through to the markdown or legacy
dialects instead of accepting silently-wrong data.
"""

import re
import json
import logging
from typing import Any, Optional

logger = logging.getLogger('JsonRepair')

_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")
_BARE_KEY_RE = re.compile(r"([{,]\s*)([A-Za-z_][A-Za-z0-9_]*)(\s*:)")


def remove_trailing_commas(text: str) -> str:
    """`{"a": 1,}` → `{"a": 1}`"""
    return _TRAILING_COMMA_RE.sub(r"\1", text)


def quote_bare_keys(text: str) -> str:
    """`{stats: {}}` → `{"stats": {}}`"""
    return _BARE_KEY_RE.sub(r'\1"\2"\3', text)


def decode_json(text: str) -> Optional[Any]:
    """Decode JSON, retrying once with both repairs applied.

    Returns:
        The decoded value, or None if the strict and the repaired decode
        both fail.
    """
    if not text or not text.strip():
        return None

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        logger.debug(f"Strict JSON decode failed: {e}")

    repaired = quote_bare_keys(remove_trailing_commas(text))
    try:
        value = json.loads(repaired)
        logger.info("Decoded JSON after repairing trailing commas / bare keys")
        return value
    except json.JSONDecodeError as e:
        logger.warning(f"JSON decode failed after repair: {e}")
        logger.debug(f"Unparseable JSON: {text[:500]}")
        return None

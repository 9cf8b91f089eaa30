"""
Pydantic v2 data models — the tracker configuration and the canonical
tracker state.

Everything decoded from a model response passes through these models
before it is displayed or committed.
"""

from models.tracker_config import TrackerConfig, SchemaOptions, load_tracker_config
from models.tracker_data import (
    TrackerData,
    TrackerStatus,
    TrackerInfoBox,
    TrackerCharacter,
    TrackerInventory,
    TrackerItem,
    TrackerSkill,
    TrackerQuest,
    TrackerQuests,
    create_empty_tracker_data,
    merge_tracker_data,
    encode_json,
)

__all__ = [
    "TrackerConfig",
    "SchemaOptions",
    "load_tracker_config",
    "TrackerData",
    "TrackerStatus",
    "TrackerInfoBox",
    "TrackerCharacter",
    "TrackerInventory",
    "TrackerItem",
    "TrackerSkill",
    "TrackerQuest",
    "TrackerQuests",
    "create_empty_tracker_data",
    "merge_tracker_data",
    "encode_json",
]

"""
Encoders — Categorical → Numeric Mappings for Feature Extraction
==================================================================
Fixed, case-insensitive lookup tables. Unknown categories encode to
UNKNOWN (-1) instead of raising, so a descriptor from a newer content pack
never breaks feature extraction.
"""

from typing import Any, Dict

from .models import category_key

UNKNOWN = -1

SCHOOL_ENCODING: Dict[str, int] = {
    "evocation": 0,
    "abjuration": 1,
    "illusion": 2,
    "necromancy": 3,
    "conjuration": 4,
    "transmutation": 5,
    "divination": 6,
    "enchantment": 7,
}

CLASS_ENCODING: Dict[str, int] = {
    "wizard": 0,
    "sorcerer": 1,
    "warlock": 2,
    "druid": 3,
    "cleric": 4,
    "paladin": 5,
    "ranger": 6,
    "bard": 7,
    "fighter": 8,
    "rogue": 9,
}

TERRAIN_ENCODING: Dict[str, int] = {
    "urban": 0,
    "wilderness": 1,
    "dungeon": 2,
    "open-field": 3,
}

DIFFICULTY_ENCODING: Dict[str, int] = {
    "easy": 0,
    "moderate": 1,
    "challenging": 2,
    "extreme": 3,
}


def _encode(table: Dict[str, int], value: Any) -> int:
    return table.get(category_key(value), UNKNOWN)


def encode_school(school: Any) -> int:
    return _encode(SCHOOL_ENCODING, school)


def encode_class(actor_class: Any) -> int:
    return _encode(CLASS_ENCODING, actor_class)


def encode_terrain(terrain: Any) -> int:
    return _encode(TERRAIN_ENCODING, terrain)


def encode_difficulty(difficulty: Any) -> int:
    return _encode(DIFFICULTY_ENCODING, difficulty)

"""
Interaction Models — Value Types Shared Across the Pipeline
=============================================================
Descriptors supplied by the character/encounter layer and the analysis
values produced by the engine.

  SpellDescriptor      — name, school, level, tags, optional resource cost
  ActorDescriptor      — id, class, level, ability scores, specialization, traits
  EnvironmentalContext — terrain, combat difficulty, party composition
  InteractionAnalysis  — score, type, contextual effectiveness, outcomes, risks

All of them are frozen: the engine never mutates its inputs, and analyses are
replaced (not edited) when plugins or the ensemble adjust them.
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════
# CATEGORIES
# ═══════════════════════════════════════════════════════════════

class School(str, Enum):
    EVOCATION = "Evocation"
    ABJURATION = "Abjuration"
    ILLUSION = "Illusion"
    NECROMANCY = "Necromancy"
    CONJURATION = "Conjuration"
    TRANSMUTATION = "Transmutation"
    DIVINATION = "Divination"
    ENCHANTMENT = "Enchantment"


class ActorClass(str, Enum):
    WIZARD = "Wizard"
    SORCERER = "Sorcerer"
    WARLOCK = "Warlock"
    DRUID = "Druid"
    CLERIC = "Cleric"
    PALADIN = "Paladin"
    RANGER = "Ranger"
    BARD = "Bard"
    FIGHTER = "Fighter"
    ROGUE = "Rogue"


class Terrain(str, Enum):
    URBAN = "urban"
    WILDERNESS = "wilderness"
    DUNGEON = "dungeon"
    OPEN_FIELD = "open-field"


class Difficulty(str, Enum):
    EASY = "easy"
    MODERATE = "moderate"
    CHALLENGING = "challenging"
    EXTREME = "extreme"


class InteractionType(str, Enum):
    SYNERGY = "synergy"
    NEUTRAL = "neutral"
    CONFLICT = "conflict"


class Outcome(str, Enum):
    SUCCESS = "success"
    NEUTRAL = "neutral"
    FAILURE = "failure"


SCORE_MIN = 0.0
SCORE_MAX = 10.0
SYNERGY_THRESHOLD = 8.0
CONFLICT_THRESHOLD = 3.0


def category_key(value: Any) -> str:
    """Normalize an enum member or free-form string for table lookups."""
    if isinstance(value, Enum):
        value = value.value
    return str(value or "").strip().lower()


def category_value(value: Any) -> str:
    """Enum members serialize as their value; strings pass through."""
    return value.value if isinstance(value, Enum) else value


def clamp_score(score: float) -> float:
    return min(max(float(score), SCORE_MIN), SCORE_MAX)


def classify_interaction(score: float) -> InteractionType:
    """Single source of truth for score → interaction type."""
    if score >= SYNERGY_THRESHOLD:
        return InteractionType.SYNERGY
    if score <= CONFLICT_THRESHOLD:
        return InteractionType.CONFLICT
    return InteractionType.NEUTRAL


# ═══════════════════════════════════════════════════════════════
# DESCRIPTORS (inputs)
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SpellDescriptor:
    name: str
    school: str
    level: int = 0
    tags: frozenset = field(default_factory=frozenset)
    resource_cost: Optional[float] = None

    def __post_init__(self):
        # Accept any iterable of tags from callers
        if not isinstance(self.tags, frozenset):
            object.__setattr__(self, "tags", frozenset(self.tags or ()))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "school": category_value(self.school),
            "level": self.level,
            "tags": sorted(self.tags),
            "resource_cost": self.resource_cost,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SpellDescriptor":
        return cls(
            name=d["name"],
            school=d.get("school", ""),
            level=int(d.get("level", 0)),
            tags=frozenset(d.get("tags") or ()),
            resource_cost=d.get("resource_cost"),
        )


@dataclass(frozen=True)
class ActorDescriptor:
    actor_id: str
    actor_class: str
    level: int = 1
    ability_scores: Dict[str, int] = field(default_factory=dict, hash=False, compare=True)
    specialization: Optional[str] = None
    resource_capacity: Optional[float] = None
    traits: Tuple[str, ...] = ()

    def __post_init__(self):
        if not isinstance(self.traits, tuple):
            object.__setattr__(self, "traits", tuple(self.traits or ()))

    def ability(self, name: str) -> Optional[int]:
        return self.ability_scores.get(name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "actor_id": self.actor_id,
            "actor_class": category_value(self.actor_class),
            "level": self.level,
            "ability_scores": dict(self.ability_scores),
            "specialization": self.specialization,
            "resource_capacity": self.resource_capacity,
            "traits": list(self.traits),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ActorDescriptor":
        return cls(
            actor_id=d["actor_id"],
            actor_class=d.get("actor_class", ""),
            level=int(d.get("level", 1)),
            ability_scores=dict(d.get("ability_scores") or {}),
            specialization=d.get("specialization"),
            resource_capacity=d.get("resource_capacity"),
            traits=tuple(d.get("traits") or ()),
        )


@dataclass(frozen=True)
class EnvironmentalContext:
    terrain: str
    combat_difficulty: str
    party_composition: Tuple[str, ...] = ()

    def __post_init__(self):
        if not isinstance(self.party_composition, tuple):
            object.__setattr__(self, "party_composition", tuple(self.party_composition or ()))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "terrain": category_value(self.terrain),
            "combat_difficulty": category_value(self.combat_difficulty),
            "party_composition": list(self.party_composition),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "EnvironmentalContext":
        return cls(
            terrain=d.get("terrain", ""),
            combat_difficulty=d.get("combat_difficulty", ""),
            party_composition=tuple(d.get("party_composition") or ()),
        )


# ═══════════════════════════════════════════════════════════════
# ANALYSIS (output)
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ContextualEffectiveness:
    terrain: float
    combat_difficulty: float

    def to_dict(self) -> Dict[str, float]:
        return {"terrain": self.terrain, "combat_difficulty": self.combat_difficulty}


@dataclass(frozen=True)
class InteractionAnalysis:
    compatibility_score: float
    interaction_type: InteractionType
    contextual_effectiveness: ContextualEffectiveness
    potential_outcomes: Tuple[str, ...]
    risk_factors: Tuple[str, ...]

    def with_score(self, score: float) -> "InteractionAnalysis":
        """Copy with a new (clamped) score and a re-derived interaction type."""
        score = clamp_score(score)
        return replace(self, compatibility_score=score, interaction_type=classify_interaction(score))

    def with_additions(
        self,
        outcomes: Iterable[str] = (),
        risks: Iterable[str] = (),
    ) -> "InteractionAnalysis":
        return replace(
            self,
            potential_outcomes=self.potential_outcomes + tuple(outcomes),
            risk_factors=self.risk_factors + tuple(risks),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "compatibility_score": self.compatibility_score,
            "interaction_type": self.interaction_type.value,
            "contextual_effectiveness": self.contextual_effectiveness.to_dict(),
            "potential_outcomes": list(self.potential_outcomes),
            "risk_factors": list(self.risk_factors),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "InteractionAnalysis":
        ce = d.get("contextual_effectiveness") or {}
        score = clamp_score(d.get("compatibility_score", 0.0))
        return cls(
            compatibility_score=score,
            interaction_type=classify_interaction(score),
            contextual_effectiveness=ContextualEffectiveness(
                terrain=float(ce.get("terrain", 0.5)),
                combat_difficulty=float(ce.get("combat_difficulty", 0.5)),
            ),
            potential_outcomes=tuple(d.get("potential_outcomes") or ()),
            risk_factors=tuple(d.get("risk_factors") or ()),
        )

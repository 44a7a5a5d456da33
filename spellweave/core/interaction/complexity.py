"""
Complexity Analyzer — How Hard a Spell Pairing Is to Pull Off
===============================================================
Complementary to the compatibility score: a pair can be highly compatible and
still demanding to cast together. Result is a single value in [0, 1].

Contributions (summed, capped at 1):
  level difference   — 0.1 per level of difference
  school pairing     — directed table (evocation→conjuration .3, …), else 0
  terrain            — wilderness .2 | open-field .3 | dungeon .4, else 0.1
  caster proficiency — sum over actor traits (high-intelligence .3,
                       magical-affinity .4, arcane-scholar .5)

The factor registry documents the dimensions and their nominal weights for
display layers; add_factor() extends it and refuses duplicate names.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List

from .models import ActorDescriptor, EnvironmentalContext, SpellDescriptor, category_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComplexityFactor:
    name: str
    weight: float
    description: str

    def to_dict(self) -> Dict[str, object]:
        return {"name": self.name, "weight": self.weight, "description": self.description}


DEFAULT_FACTORS = (
    ComplexityFactor("spell-level-difference", 0.3, "Difference in spell levels affects interaction complexity"),
    ComplexityFactor("school-compatibility", 0.4, "Magical school compatibility influences interaction complexity"),
    ComplexityFactor("environmental-context", 0.2, "Environmental conditions impact spell interaction complexity"),
    ComplexityFactor("character-proficiency", 0.5, "Caster's magical proficiency affects interaction complexity"),
)

LEVEL_STEP = 0.1

SCHOOL_PAIR_COMPLEXITY: Dict[str, Dict[str, float]] = {
    "evocation": {"conjuration": 0.3, "transmutation": 0.2},
    "necromancy": {"illusion": 0.4, "enchantment": 0.3},
}

TERRAIN_COMPLEXITY: Dict[str, float] = {
    "wilderness": 0.2,
    "open-field": 0.3,
    "dungeon": 0.4,
}
DEFAULT_TERRAIN_COMPLEXITY = 0.1

TRAIT_COMPLEXITY: Dict[str, float] = {
    "high-intelligence": 0.3,
    "magical-affinity": 0.4,
    "arcane-scholar": 0.5,
}


class ComplexityAnalyzer:

    def __init__(self):
        self._factors: List[ComplexityFactor] = list(DEFAULT_FACTORS)

    def factors(self) -> List[ComplexityFactor]:
        return list(self._factors)

    def add_factor(self, factor: ComplexityFactor) -> bool:
        """Register a factor; returns False if the name is already taken."""
        if any(f.name == factor.name for f in self._factors):
            logger.warning(f"Complexity factor '{factor.name}' already registered")
            return False
        self._factors.append(factor)
        return True

    def analyze(
        self,
        primary: SpellDescriptor,
        secondary: SpellDescriptor,
        actor: ActorDescriptor,
        context: EnvironmentalContext,
    ) -> float:
        components = self.breakdown(primary, secondary, actor, context)
        return min(sum(components.values()), 1.0)

    def breakdown(
        self,
        primary: SpellDescriptor,
        secondary: SpellDescriptor,
        actor: ActorDescriptor,
        context: EnvironmentalContext,
    ) -> Dict[str, float]:
        return {
            "spell-level-difference": abs(primary.level - secondary.level) * LEVEL_STEP,
            "school-compatibility": SCHOOL_PAIR_COMPLEXITY.get(category_key(primary.school), {}).get(
                category_key(secondary.school), 0.0
            ),
            "environmental-context": TERRAIN_COMPLEXITY.get(
                category_key(context.terrain), DEFAULT_TERRAIN_COMPLEXITY
            ),
            "character-proficiency": sum(
                TRAIT_COMPLEXITY.get(category_key(t), 0.0) for t in actor.traits
            ),
        }

"""
Synthetic Corpus — Seeded Bootstrap Data for a Cold Ensemble
==============================================================
Samples spell pairs from a small built-in library, pairs them with random
casters and environments, and labels each sample with the rule-based
analyzer (TrainingDataPoint.from_analysis). Same seed → same corpus.

Usage:
  points = SyntheticCorpusGenerator(seed=7).generate(500)
  corpus.record_many(points)
"""

import logging
import random
import time
from typing import List, Optional, Sequence

from .base_analyzer import BaseAnalyzer
from .corpus import TrainingDataPoint
from .models import (
    ActorClass,
    ActorDescriptor,
    Difficulty,
    EnvironmentalContext,
    School,
    SpellDescriptor,
    Terrain,
)

logger = logging.getLogger(__name__)


def _spell(name: str, school: School, level: int, *tags: str, cost: Optional[float] = None) -> SpellDescriptor:
    return SpellDescriptor(name=name, school=school, level=level, tags=frozenset(tags), resource_cost=cost)


SPELL_LIBRARY = (
    _spell("Magic Missile", School.EVOCATION, 1, "damage", "offensive", "verbal", "somatic", cost=1),
    _spell("Fireball", School.EVOCATION, 3, "damage", "offensive", "area", "verbal", "somatic", cost=3),
    _spell("Lightning Bolt", School.EVOCATION, 3, "damage", "offensive", "verbal", "somatic", cost=3),
    _spell("Healing Word", School.EVOCATION, 1, "healing", "support", "verbal", "somatic", cost=1),
    _spell("Shield", School.ABJURATION, 1, "defense", "protection", "verbal", "somatic", cost=1),
    _spell("Mage Armor", School.ABJURATION, 1, "defense", "protection", "verbal", "somatic", cost=1),
    _spell("Counterspell", School.ABJURATION, 3, "defense", "utility", "verbal", "somatic", cost=3),
    _spell("Invisibility", School.ILLUSION, 2, "utility", "stealth", "verbal", "somatic", cost=2),
    _spell("Detect Magic", School.DIVINATION, 1, "utility", "information", "verbal", "somatic", cost=1),
    _spell("Misty Step", School.CONJURATION, 2, "movement", "teleportation", "verbal", "somatic", cost=2),
    _spell("Dimension Door", School.CONJURATION, 4, "movement", "teleportation", "verbal", "somatic", cost=4),
    _spell("Hold Person", School.ENCHANTMENT, 2, "control", "verbal", "somatic", cost=2),
    _spell("Animate Dead", School.NECROMANCY, 3, "summoning", "verbal", "somatic", cost=3),
    _spell("Polymorph", School.TRANSMUTATION, 4, "control", "utility", "verbal", "somatic", cost=4),
)

CASTER_CLASSES = (
    ActorClass.WIZARD,
    ActorClass.CLERIC,
    ActorClass.DRUID,
    ActorClass.SORCERER,
    ActorClass.WARLOCK,
)

BASE_ABILITY_SCORES = {
    "strength": 10,
    "dexterity": 12,
    "constitution": 14,
    "intelligence": 16,
    "wisdom": 13,
    "charisma": 11,
}

TRAIT_POOL = ("high-intelligence", "magical-affinity", "arcane-scholar")


class SyntheticCorpusGenerator:

    def __init__(
        self,
        seed: int = 42,
        analyzer: Optional[BaseAnalyzer] = None,
        library: Sequence[SpellDescriptor] = SPELL_LIBRARY,
    ):
        if len(library) < 2:
            raise ValueError("spell library needs at least two spells")
        self._rng = random.Random(seed)
        self._analyzer = analyzer or BaseAnalyzer()
        self._library = list(library)

    def random_actor(self, actor_id: str) -> ActorDescriptor:
        rng = self._rng
        scores = {k: max(3, min(20, v + rng.randint(-4, 4))) for k, v in BASE_ABILITY_SCORES.items()}
        return ActorDescriptor(
            actor_id=actor_id,
            actor_class=rng.choice(CASTER_CLASSES),
            level=rng.randint(1, 20),
            ability_scores=scores,
            specialization=rng.choice([None] + [s.value for s in School]),
            resource_capacity=float(rng.randint(4, 12)),
            traits=tuple(t for t in TRAIT_POOL if rng.random() < 0.2),
        )

    def random_context(self) -> EnvironmentalContext:
        return EnvironmentalContext(
            terrain=self._rng.choice(list(Terrain)),
            combat_difficulty=self._rng.choice(list(Difficulty)),
        )

    def generate(self, count: int, start_time: Optional[float] = None) -> List[TrainingDataPoint]:
        """count labelled points with strictly increasing timestamps."""
        if count < 0:
            raise ValueError(f"count must be non-negative, got {count}")
        base = time.time() if start_time is None else start_time

        points: List[TrainingDataPoint] = []
        for i in range(count):
            primary, secondary = self._rng.sample(self._library, 2)
            actor = self.random_actor(f"synthetic-{i:05d}")
            context = self.random_context()
            analysis = self._analyzer.analyze(primary, secondary, actor, context)
            points.append(
                TrainingDataPoint.from_analysis(
                    primary, secondary, actor, context, analysis, timestamp=base + i
                )
            )

        logger.info(f"Generated {len(points)} synthetic training points")
        return points

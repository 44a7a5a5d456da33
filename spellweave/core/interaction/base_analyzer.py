"""
Base Analyzer — Rule-Based Spell Compatibility Scoring
========================================================
Deterministic scorer for a (primary, secondary) spell pair cast by one actor
in one environment. Pure function of its inputs: fixed lookup tables and
simple arithmetic, no shared state, no exceptions.

Score composition (clamped to 0–10):
  1. School term       — directed table SCHOOL_COMPATIBILITY[primary][secondary]
  2. Shared-tag term   — 0.5 per tag present on both spells
  3. Level term        — max(1 − 0.2 × |Δlevel|, 0)

Contextual effectiveness:
  terrain    — 0.5 + per-school terrain bonus for each spell, capped at 1
  difficulty — fixed map easy .4 | moderate .6 | challenging .8 | extreme 1.0

Outcome rules are directional tag pairs (primary tag, secondary tag) checked
in order; risk rules never leave the list empty.

Usage:
  analysis = BaseAnalyzer().analyze(fireball, shield, wizard, dungeon_ctx)
  analysis.interaction_type   # InteractionType.CONFLICT
"""

import logging
from typing import Dict, List, Tuple

from .models import (
    ActorDescriptor,
    ContextualEffectiveness,
    EnvironmentalContext,
    InteractionAnalysis,
    SpellDescriptor,
    category_key,
    clamp_score,
    classify_interaction,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════
# LOOKUP TABLES
# ═══════════════════════════════════════════════════════════════

SCHOOL_COMPATIBILITY: Dict[str, Dict[str, float]] = {
    "evocation": {"abjuration": 0.7, "conjuration": 0.6},
    "illusion": {"enchantment": 0.8, "divination": 0.5},
    "necromancy": {"transmutation": 0.6, "conjuration": 0.4},
}

TERRAIN_SCHOOL_BONUS: Dict[str, Dict[str, float]] = {
    "urban": {"illusion": 0.8, "enchantment": 0.7},
    "wilderness": {"conjuration": 0.9, "transmutation": 0.8},
    "dungeon": {"evocation": 0.7, "abjuration": 0.6},
    "open-field": {"divination": 0.6, "necromancy": 0.5},
}

DIFFICULTY_EFFECTIVENESS: Dict[str, float] = {
    "easy": 0.4,
    "moderate": 0.6,
    "challenging": 0.8,
    "extreme": 1.0,
}

NEUTRAL_TERRAIN_SCORE = 0.5
NEUTRAL_DIFFICULTY_SCORE = 0.5

# (primary tag, secondary tag) → outcome, evaluated in order
OUTCOME_RULES: List[Tuple[str, str, str]] = [
    ("defense", "protection", "Enhanced defensive barrier"),
    ("damage", "offensive", "Amplified magical damage"),
    ("utility", "information", "Advanced tactical intelligence"),
    ("movement", "teleportation", "Superior battlefield repositioning"),
]
FALLBACK_OUTCOME = "Potential magical synergy"

CONFLICTING_SCHOOLS = {
    frozenset({"necromancy", "abjuration"}),
    frozenset({"illusion", "evocation"}),
}

SPELLCASTING_ABILITY: Dict[str, str] = {
    "wizard": "intelligence",
    "sorcerer": "charisma",
    "warlock": "charisma",
    "druid": "wisdom",
    "cleric": "wisdom",
    "bard": "charisma",
    "paladin": "charisma",
    "ranger": "wisdom",
}

RISK_LEVEL_DISPARITY = "High spell level disparity"
RISK_SCHOOL_INTERFERENCE = "Potential magical interference"
RISK_ABILITY_LIMITATION = "Potential casting ability limitations"
RISK_RESOURCE_CONSUMPTION = "High resource consumption"
LOW_INHERENT_RISK = "Low inherent risk"

MAX_LEVEL_DISPARITY = 2
MIN_CASTING_ABILITY = 12
ABILITY_CHECK_COMBINED_LEVEL = 4
HIGH_RESOURCE_COMBINED_LEVEL = 6


def school_compatibility(primary_school, secondary_school) -> float:
    """Directed school term; absent pairs contribute 0."""
    return SCHOOL_COMPATIBILITY.get(category_key(primary_school), {}).get(
        category_key(secondary_school), 0.0
    )


# ═══════════════════════════════════════════════════════════════
# BASE ANALYZER
# ═══════════════════════════════════════════════════════════════

class BaseAnalyzer:
    """Rule-based compatibility scorer. Stateless; safe to share."""

    def analyze(
        self,
        primary: SpellDescriptor,
        secondary: SpellDescriptor,
        actor: ActorDescriptor,
        context: EnvironmentalContext,
    ) -> InteractionAnalysis:
        score = self.compatibility_score(primary, secondary)
        return InteractionAnalysis(
            compatibility_score=score,
            interaction_type=classify_interaction(score),
            contextual_effectiveness=self.contextual_effectiveness(primary, secondary, context),
            potential_outcomes=tuple(self.potential_outcomes(primary, secondary)),
            risk_factors=tuple(self.risk_factors(primary, secondary, actor)),
        )

    # ──────────────────────────────────────────────────────────
    # SCORE
    # ──────────────────────────────────────────────────────────

    def compatibility_score(self, primary: SpellDescriptor, secondary: SpellDescriptor) -> float:
        score = school_compatibility(primary.school, secondary.school)

        shared_tags = primary.tags & secondary.tags
        score += 0.5 * len(shared_tags)

        level_difference = abs(primary.level - secondary.level)
        score += max(1 - 0.2 * level_difference, 0)

        return clamp_score(score)

    # ──────────────────────────────────────────────────────────
    # CONTEXT
    # ──────────────────────────────────────────────────────────

    def contextual_effectiveness(
        self,
        primary: SpellDescriptor,
        secondary: SpellDescriptor,
        context: EnvironmentalContext,
    ) -> ContextualEffectiveness:
        terrain_score = NEUTRAL_TERRAIN_SCORE
        bonuses = TERRAIN_SCHOOL_BONUS.get(category_key(context.terrain), {})
        for spell in (primary, secondary):
            terrain_score += bonuses.get(category_key(spell.school), 0.0)

        difficulty_score = DIFFICULTY_EFFECTIVENESS.get(
            category_key(context.combat_difficulty), NEUTRAL_DIFFICULTY_SCORE
        )

        return ContextualEffectiveness(
            terrain=min(terrain_score, 1.0),
            combat_difficulty=difficulty_score,
        )

    # ──────────────────────────────────────────────────────────
    # OUTCOMES
    # ──────────────────────────────────────────────────────────

    def potential_outcomes(self, primary: SpellDescriptor, secondary: SpellDescriptor) -> List[str]:
        outcomes = [
            outcome
            for primary_tag, secondary_tag, outcome in OUTCOME_RULES
            if primary_tag in primary.tags and secondary_tag in secondary.tags
        ]
        return outcomes or [FALLBACK_OUTCOME]

    # ──────────────────────────────────────────────────────────
    # RISKS
    # ──────────────────────────────────────────────────────────

    def risk_factors(
        self,
        primary: SpellDescriptor,
        secondary: SpellDescriptor,
        actor: ActorDescriptor,
    ) -> List[str]:
        risks: List[str] = []
        combined_level = primary.level + secondary.level

        # RF-001: Level disparity
        if abs(primary.level - secondary.level) > MAX_LEVEL_DISPARITY:
            risks.append(RISK_LEVEL_DISPARITY)

        # RF-002: Opposed schools
        if frozenset({category_key(primary.school), category_key(secondary.school)}) in CONFLICTING_SCHOOLS:
            risks.append(RISK_SCHOOL_INTERFERENCE)

        # RF-003: Caster cannot sustain the combined level
        ability_name = SPELLCASTING_ABILITY.get(category_key(actor.actor_class))
        ability_score = actor.ability(ability_name) if ability_name else None
        if (
            ability_score is not None
            and ability_score < MIN_CASTING_ABILITY
            and combined_level > ABILITY_CHECK_COMBINED_LEVEL
        ):
            risks.append(RISK_ABILITY_LIMITATION)

        # RF-004: Resource drain
        if combined_level > HIGH_RESOURCE_COMBINED_LEVEL:
            risks.append(RISK_RESOURCE_CONSUMPTION)

        return risks or [LOW_INHERENT_RISK]

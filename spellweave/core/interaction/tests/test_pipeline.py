"""
Spell Interaction Engine — Scoring Pipeline Tests
===================================================
Covers value types, encoders, the rule-based analyzer, the plugin registry
and built-in plugins, and the memoizing interaction cache.

Run: pytest spellweave/core/interaction/tests/ -v
"""

import random
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from unittest.mock import MagicMock

from spellweave.core.interaction.base_analyzer import (
    BaseAnalyzer,
    FALLBACK_OUTCOME,
    LOW_INHERENT_RISK,
    RISK_ABILITY_LIMITATION,
    RISK_LEVEL_DISPARITY,
    RISK_RESOURCE_CONSUMPTION,
    RISK_SCHOOL_INTERFERENCE,
)
from spellweave.core.interaction.cache import InteractionCache, make_key
from spellweave.core.interaction.models import (
    ActorDescriptor,
    EnvironmentalContext,
    InteractionType,
    School,
    SpellDescriptor,
    classify_interaction,
)
from spellweave.core.interaction.plugins import (
    ComboRecommendationPlugin,
    InteractionPlugin,
    PluginRegistry,
    PluginResult,
    TacticalContextPlugin,
    UNMODIFIED,
    build_default_registry,
)


# ═══════════════════════════════════════════════════════════════
# TEST FIXTURES
# ═══════════════════════════════════════════════════════════════

def make_spell(name="Fireball", school="Evocation", level=3, tags=("damage", "offensive"), cost=None):
    return SpellDescriptor(name=name, school=school, level=level, tags=frozenset(tags), resource_cost=cost)


def make_actor(actor_id="actor-1", actor_class="Wizard", level=10, intelligence=18, **kw):
    scores = kw.pop("ability_scores", {"intelligence": intelligence})
    return ActorDescriptor(actor_id=actor_id, actor_class=actor_class, level=level, ability_scores=scores, **kw)


def make_context(terrain="dungeon", difficulty="moderate"):
    return EnvironmentalContext(terrain=terrain, combat_difficulty=difficulty)


def make_scenario():
    """Evocation L3 damage/offensive + Abjuration L1 defense/protection, wizard, dungeon."""
    return (
        make_spell("Fireball", "Evocation", 3, ("damage", "offensive")),
        make_spell("Shield", "Abjuration", 1, ("defense", "protection")),
        make_actor(),
        make_context(),
    )


class StaticPlugin(InteractionPlugin):
    """Test plugin that returns a fixed result and counts calls."""

    def __init__(self, name, priority, insight=None, adjustment=0.0, modified=True):
        self.name = name
        self.priority = priority
        self.insight = insight or f"insight from {name}"
        self.adjustment = adjustment
        self.modified = modified
        self.calls = 0

    def process(self, primary, secondary, actor, context):
        self.calls += 1
        if not self.modified:
            return UNMODIFIED
        return PluginResult(modified=True, score_adjustment=self.adjustment, insights=(self.insight,))


class ExplodingPlugin(InteractionPlugin):
    name = "exploding"
    priority = 100

    def process(self, primary, secondary, actor, context):
        raise RuntimeError("boom")


# ═══════════════════════════════════════════════════════════════
# 1. CLASSIFICATION & ENCODERS
# ═══════════════════════════════════════════════════════════════

class TestClassification:
    """Tests for the score → interaction type thresholds."""

    @pytest.mark.parametrize("score,expected", [
        (8.0, InteractionType.SYNERGY),
        (7.999, InteractionType.NEUTRAL),
        (3.0, InteractionType.CONFLICT),
        (3.001, InteractionType.NEUTRAL),
        (0.0, InteractionType.CONFLICT),
        (10.0, InteractionType.SYNERGY),
    ])
    def test_threshold_boundaries(self, score, expected):
        assert classify_interaction(score) == expected

    def test_with_score_clamps_and_reclassifies(self):
        analysis = BaseAnalyzer().analyze(*make_scenario())
        boosted = analysis.with_score(42)
        assert boosted.compatibility_score == 10.0
        assert boosted.interaction_type == InteractionType.SYNERGY
        lowered = analysis.with_score(-5)
        assert lowered.compatibility_score == 0.0
        assert lowered.interaction_type == InteractionType.CONFLICT
        # Source analysis is untouched
        assert analysis.interaction_type == InteractionType.CONFLICT


class TestEncoders:
    """Tests for encoders.py"""

    def test_known_values(self):
        from spellweave.core.interaction.encoders import (
            encode_class, encode_difficulty, encode_school, encode_terrain,
        )
        assert encode_school("Evocation") == 0
        assert encode_school(School.ENCHANTMENT) == 7
        assert encode_class("Rogue") == 9
        assert encode_terrain("open-field") == 3
        assert encode_difficulty("extreme") == 3

    def test_case_insensitive(self):
        from spellweave.core.interaction.encoders import encode_school
        assert encode_school("NECROMANCY") == encode_school("necromancy") == 3

    def test_unknown_values_degrade_to_sentinel(self):
        from spellweave.core.interaction.encoders import (
            UNKNOWN, encode_class, encode_difficulty, encode_school, encode_terrain,
        )
        assert encode_school("Chronomancy") == UNKNOWN
        assert encode_class("") == UNKNOWN
        assert encode_terrain(None) == UNKNOWN
        assert encode_difficulty("nightmare") == UNKNOWN


# ═══════════════════════════════════════════════════════════════
# 2. BASE ANALYZER
# ═══════════════════════════════════════════════════════════════

class TestBaseAnalyzer:
    """Tests for base_analyzer.py"""

    def test_end_to_end_scenario(self):
        analysis = BaseAnalyzer().analyze(*make_scenario())
        # school 0.7 + shared tags 0 + level term max(1 - 0.2 * 2, 0) = 0.6
        assert analysis.compatibility_score == pytest.approx(1.3)
        assert analysis.interaction_type == InteractionType.CONFLICT
        assert analysis.risk_factors == (LOW_INHERENT_RISK,)

    def test_school_table_is_directional(self):
        analyzer = BaseAnalyzer()
        forward = analyzer.compatibility_score(
            make_spell(school="Evocation", level=1, tags=()),
            make_spell(school="Abjuration", level=1, tags=()),
        )
        backward = analyzer.compatibility_score(
            make_spell(school="Abjuration", level=1, tags=()),
            make_spell(school="Evocation", level=1, tags=()),
        )
        assert forward == pytest.approx(1.7)
        assert backward == pytest.approx(1.0)

    def test_shared_tags_add_half_point_each(self):
        score = BaseAnalyzer().compatibility_score(
            make_spell(school="Divination", level=2, tags=("a", "b", "c")),
            make_spell(school="Divination", level=2, tags=("a", "b", "z")),
        )
        assert score == pytest.approx(2.0)

    def test_large_level_gap_contributes_nothing(self):
        score = BaseAnalyzer().compatibility_score(
            make_spell(school="Divination", level=0, tags=()),
            make_spell(school="Divination", level=9, tags=()),
        )
        assert score == 0.0

    def test_contextual_effectiveness(self):
        analysis = BaseAnalyzer().analyze(*make_scenario())
        # 0.5 + dungeon evocation 0.7 + dungeon abjuration 0.6, capped
        assert analysis.contextual_effectiveness.terrain == 1.0
        assert analysis.contextual_effectiveness.combat_difficulty == 0.6

    def test_unknown_difficulty_is_neutral(self):
        primary, secondary, actor, _ = make_scenario()
        analysis = BaseAnalyzer().analyze(primary, secondary, actor, make_context("swamp", "legendary"))
        assert analysis.contextual_effectiveness.terrain == 0.5
        assert analysis.contextual_effectiveness.combat_difficulty == 0.5

    def test_outcome_rules_are_directional(self):
        analyzer = BaseAnalyzer()
        forward = analyzer.potential_outcomes(
            make_spell(tags=("damage",)), make_spell(tags=("offensive",))
        )
        backward = analyzer.potential_outcomes(
            make_spell(tags=("offensive",)), make_spell(tags=("damage",))
        )
        assert forward == ["Amplified magical damage"]
        assert backward == [FALLBACK_OUTCOME]

    def test_conflicting_schools_either_order(self):
        analyzer = BaseAnalyzer()
        actor = make_actor()
        a = make_spell(school="Necromancy", level=1)
        b = make_spell(school="Abjuration", level=1)
        assert RISK_SCHOOL_INTERFERENCE in analyzer.risk_factors(a, b, actor)
        assert RISK_SCHOOL_INTERFERENCE in analyzer.risk_factors(b, a, actor)

    def test_level_disparity_strictly_greater_than_two(self):
        analyzer = BaseAnalyzer()
        actor = make_actor()
        assert RISK_LEVEL_DISPARITY not in analyzer.risk_factors(
            make_spell(level=3), make_spell(level=1), actor
        )
        assert RISK_LEVEL_DISPARITY in analyzer.risk_factors(
            make_spell(level=4), make_spell(level=1), actor
        )

    def test_weak_caster_flags_ability_limitation(self):
        risks = BaseAnalyzer().risk_factors(
            make_spell(level=3), make_spell(level=2), make_actor(intelligence=10)
        )
        assert RISK_ABILITY_LIMITATION in risks

    def test_non_caster_class_skips_ability_check(self):
        risks = BaseAnalyzer().risk_factors(
            make_spell(level=3), make_spell(level=2),
            make_actor(actor_class="Fighter", ability_scores={"intelligence": 3}),
        )
        assert RISK_ABILITY_LIMITATION not in risks

    def test_high_combined_level_flags_resources(self):
        risks = BaseAnalyzer().risk_factors(
            make_spell(level=4), make_spell(level=3), make_actor()
        )
        assert RISK_RESOURCE_CONSUMPTION in risks
        assert LOW_INHERENT_RISK not in risks


class TestScoreRange:
    """Fuzz: scores stay in [0, 10] for arbitrary descriptors."""

    SCHOOLS = [s.value for s in School] + ["Chronomancy", ""]
    TAGS = ["damage", "offensive", "defense", "protection", "utility", "information",
            "movement", "teleportation"] + [f"tag{i}" for i in range(30)]

    def _random_inputs(self, rng):
        def spell(name):
            return make_spell(
                name=name,
                school=rng.choice(self.SCHOOLS),
                level=rng.randint(0, 9),
                tags=rng.sample(self.TAGS, rng.randint(0, len(self.TAGS))),
                cost=rng.choice([None, rng.uniform(0, 10)]),
            )
        actor = make_actor(
            actor_id=f"a{rng.randint(0, 5)}",
            actor_class=rng.choice(["Wizard", "Sorcerer", "Fighter", "Nobody"]),
            level=rng.randint(1, 20),
            intelligence=rng.randint(1, 20),
            specialization=rng.choice([None, "Evocation", "Illusion"]),
            resource_capacity=rng.choice([None, rng.uniform(1, 20)]),
        )
        context = make_context(
            rng.choice(["urban", "wilderness", "dungeon", "open-field", "void"]),
            rng.choice(["easy", "moderate", "challenging", "extreme", "?"]),
        )
        return spell("p"), spell("s"), actor, context

    @pytest.mark.parametrize("seed", range(5))
    def test_base_and_cached_scores_in_range(self, seed):
        rng = random.Random(seed)
        analyzer = BaseAnalyzer()
        cache = InteractionCache(analyzer, build_default_registry())
        for _ in range(200):
            inputs = self._random_inputs(rng)
            base = analyzer.analyze(*inputs)
            cached = cache.get_or_compute(*inputs)
            assert 0.0 <= base.compatibility_score <= 10.0
            assert 0.0 <= cached.compatibility_score <= 10.0
            assert cached.interaction_type == classify_interaction(cached.compatibility_score)
            assert cached.risk_factors


# ═══════════════════════════════════════════════════════════════
# 3. PLUGIN REGISTRY
# ═══════════════════════════════════════════════════════════════

class TestPluginRegistry:
    """Tests for plugins.py"""

    def test_priority_order(self):
        registry = PluginRegistry()
        registry.register(StaticPlugin("low", 5))
        registry.register(StaticPlugin("high", 10))
        results = registry.process(*make_scenario())
        assert [r.plugin_name for r in results] == ["high", "low"]

    def test_equal_priority_keeps_registration_order(self):
        registry = PluginRegistry()
        for name in ("first", "second", "third"):
            registry.register(StaticPlugin(name, 1))
        assert [p["name"] for p in registry.list_plugins()] == ["first", "second", "third"]

    def test_same_name_replaces(self):
        registry = PluginRegistry()
        registry.register(StaticPlugin("dup", 1, insight="old"))
        registry.register(StaticPlugin("dup", 1, insight="new"))
        assert len(registry) == 1
        assert registry.process(*make_scenario())[0].insights == ("new",)

    def test_unmodified_results_dropped(self):
        registry = PluginRegistry()
        registry.register(StaticPlugin("quiet", 1, modified=False))
        assert registry.process(*make_scenario()) == []

    def test_failing_plugin_is_isolated(self, caplog):
        registry = PluginRegistry()
        registry.register(ExplodingPlugin())
        survivor = StaticPlugin("survivor", 1)
        registry.register(survivor)
        with caplog.at_level("WARNING"):
            results = registry.process(*make_scenario())
        assert [r.plugin_name for r in results] == ["survivor"]
        assert survivor.calls == 1
        assert "exploding" in caplog.text

    def test_unregister(self):
        registry = build_default_registry()
        assert len(registry) == 2
        assert registry.unregister(TacticalContextPlugin.name) is True
        assert registry.unregister("missing") is False
        assert len(registry) == 1

    def test_default_registry_without_builtins_is_empty(self):
        assert len(build_default_registry(include_builtins=False)) == 0


class TestBuiltinPlugins:
    """Tests for ComboRecommendationPlugin and TacticalContextPlugin."""

    def test_combo_recommended_for_strong_pair(self):
        primary = make_spell("Fireball", "Evocation", 3)
        secondary = make_spell("Misty Step", "Conjuration", 2, ("movement",))
        result = ComboRecommendationPlugin().process(primary, secondary, make_actor(), make_context())
        assert result.modified
        # 0.5 + 0.8 + 0.2, capped at 1
        assert result.score_adjustment == 1.0
        assert result.insights == ("Excellent spell combination potential detected",)
        suggestion = result.combo_suggestions[0]
        assert suggestion.primary is primary
        assert suggestion.secondary is secondary

    def test_combo_threshold_is_exclusive(self):
        # 0.5 + 0 + 0.2 = 0.7, not above threshold
        primary, secondary, actor, context = make_scenario()
        assert not ComboRecommendationPlugin().process(primary, secondary, actor, context).modified

    def test_combo_score_capped_at_one(self):
        plugin = ComboRecommendationPlugin()
        score = plugin.recommendation_score(
            make_spell(school="Evocation"), make_spell(school="Illusion"), make_actor(actor_class="Sorcerer")
        )
        assert score == 1.0

    def test_combo_no_affinity_for_fighter(self):
        plugin = ComboRecommendationPlugin()
        score = plugin.recommendation_score(
            make_spell(school="Evocation"), make_spell(school="Abjuration"), make_actor(actor_class="Fighter")
        )
        assert score == pytest.approx(0.5)

    def test_tactical_notes(self):
        primary = make_spell("Fireball", "Evocation", 3, cost=3)
        secondary = make_spell("Lightning Bolt", "Evocation", 3, cost=3)
        actor = make_actor(specialization="Evocation", resource_capacity=8)
        result = TacticalContextPlugin().process(primary, secondary, actor, make_context(difficulty="challenging"))
        assert result.modified
        assert result.score_adjustment == 0.0
        assert len(result.insights) == 2
        assert "Combined spell resource cost exceeds recommended threshold" in result.warnings
        assert "Casting spells from the same school may lead to diminishing returns" in result.warnings

    def test_tactical_silent_for_plain_pair(self):
        result = TacticalContextPlugin().process(*make_scenario())
        assert result is UNMODIFIED


# ═══════════════════════════════════════════════════════════════
# 4. INTERACTION CACHE
# ═══════════════════════════════════════════════════════════════

class TestInteractionCache:
    """Tests for cache.py"""

    def test_memoization_calls_analyzer_and_plugins_once(self):
        analyzer = MagicMock(wraps=BaseAnalyzer())
        plugin = StaticPlugin("counter", 1)
        registry = PluginRegistry()
        registry.register(plugin)
        cache = InteractionCache(analyzer, registry)

        first = cache.get_or_compute(*make_scenario())
        second = cache.get_or_compute(*make_scenario())

        assert first == second
        assert analyzer.analyze.call_count == 1
        assert plugin.calls == 1

    def test_plugin_insights_follow_priority(self):
        registry = PluginRegistry()
        registry.register(StaticPlugin("five", 5, insight="from priority 5"))
        registry.register(StaticPlugin("ten", 10, insight="from priority 10"))
        analysis = InteractionCache(registry=registry).get_or_compute(*make_scenario())
        assert analysis.potential_outcomes[-2:] == ("from priority 10", "from priority 5")

    def test_plugin_adjustments_summed_and_reclassified(self):
        registry = PluginRegistry()
        registry.register(StaticPlugin("a", 2, adjustment=4.0))
        registry.register(StaticPlugin("b", 1, adjustment=3.0))
        analysis = InteractionCache(registry=registry).get_or_compute(*make_scenario())
        assert analysis.compatibility_score == pytest.approx(8.3)
        assert analysis.interaction_type == InteractionType.SYNERGY

    def test_builtin_combo_merged(self):
        primary = make_spell("Fireball", "Evocation", 3)
        secondary = make_spell("Misty Step", "Conjuration", 2, ("movement",))
        cache = InteractionCache(registry=build_default_registry())
        entry = cache.get_or_compute_entry(primary, secondary, make_actor(), make_context())
        # school 0.6 + level 0.8 + combo 1.0
        assert entry.analysis.compatibility_score == pytest.approx(2.4)
        assert "Excellent spell combination potential detected" in entry.analysis.potential_outcomes
        assert entry.plugins_applied == (ComboRecommendationPlugin.name,)
        assert entry.combo_suggestions[0].primary.name == "Fireball"

    def test_key_includes_context(self):
        cache = InteractionCache()
        primary, secondary, actor, _ = make_scenario()
        cache.get_or_compute(primary, secondary, actor, make_context("dungeon"))
        cache.get_or_compute(primary, secondary, actor, make_context("urban"))
        assert len(cache) == 2

    def test_key_is_explicit_fields(self):
        primary, secondary, actor, context = make_scenario()
        key = make_key(primary, secondary, actor, context)
        assert tuple(key) == ("Fireball", "Shield", "actor-1", "dungeon", "moderate")

    def test_stats_and_clear(self):
        cache = InteractionCache()
        cache.get_or_compute(*make_scenario())
        cache.get_or_compute(*make_scenario())
        stats = cache.stats()
        assert stats["total_entries"] == 1
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["memory_size_estimate"] > 0

        cache.clear()
        assert len(cache) == 0
        assert cache.stats()["total_entries"] == 0

    def test_remove_for(self):
        cache = InteractionCache()
        cache.get_or_compute(*make_scenario())
        assert cache.remove_for(*make_scenario()) is True
        assert cache.remove_for(*make_scenario()) is False

    def test_peek_and_entry_never_compute(self):
        analyzer = MagicMock(wraps=BaseAnalyzer())
        cache = InteractionCache(analyzer, PluginRegistry())
        key = make_key(*make_scenario())
        assert cache.peek(key) is None
        assert cache.entry(key) is None
        assert analyzer.analyze.call_count == 0

        analysis = cache.get_or_compute(*make_scenario())
        assert cache.peek(key) is analysis
        assert cache.entry(key).analysis is analysis
        assert cache.remove(key) is True

    def test_registry_clear(self):
        registry = build_default_registry()
        registry.clear()
        assert len(registry) == 0
        assert registry.list_plugins() == []

    def test_concurrent_callers_compute_once(self):
        analyzer = MagicMock(wraps=BaseAnalyzer())
        cache = InteractionCache(analyzer, PluginRegistry())
        barrier = threading.Barrier(8)

        def call():
            barrier.wait()
            return cache.get_or_compute(*make_scenario())

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = [f.result() for f in [pool.submit(call) for _ in range(8)]]

        assert analyzer.analyze.call_count == 1
        assert all(r is results[0] for r in results)

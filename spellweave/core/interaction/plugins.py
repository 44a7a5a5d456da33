"""
Plugin Registry — Prioritized Interaction Extensions
======================================================
Third parties extend scoring by registering plugins on an explicit
PluginRegistry instance. There is no process-wide registry: whoever builds
the pipeline decides which plugins exist (see build_default_registry).

Contract:
  - name is unique; registering the same name again replaces the plugin
  - plugins run in descending priority (stable for equal priorities)
  - every plugin sees the same inputs, never another plugin's output
  - only results with modified=True are returned
  - a plugin that raises is logged and skipped; the batch continues

Built-ins:
  ComboRecommendationPlugin (priority 8) — school/class combo scoring
  TacticalContextPlugin     (priority 5) — specialization, difficulty,
                                           resource and same-school notes

Usage:
  registry = PluginRegistry()
  registry.register(MyPlugin())
  results = registry.process(primary, secondary, actor, context)
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Tuple

from .models import (
    ActorDescriptor,
    EnvironmentalContext,
    SpellDescriptor,
    category_key,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════
# RESULT TYPES
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ComboSuggestion:
    """A recommended pairing. Always references real spells supplied by the caller."""
    primary: SpellDescriptor
    secondary: SpellDescriptor
    score: float
    rationale: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primary": self.primary.name,
            "secondary": self.secondary.name,
            "score": round(self.score, 3),
            "rationale": self.rationale,
        }


@dataclass(frozen=True)
class PluginResult:
    modified: bool
    score_adjustment: float = 0.0
    insights: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()
    combo_suggestions: Tuple[ComboSuggestion, ...] = ()
    plugin_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "plugin": self.plugin_name,
            "modified": self.modified,
            "score_adjustment": self.score_adjustment,
            "insights": list(self.insights),
            "warnings": list(self.warnings),
            "combo_suggestions": [c.to_dict() for c in self.combo_suggestions],
        }


UNMODIFIED = PluginResult(modified=False)


# ═══════════════════════════════════════════════════════════════
# PLUGIN INTERFACE
# ═══════════════════════════════════════════════════════════════

class InteractionPlugin(ABC):
    """Base class for interaction plugins. Implementations must be pure."""

    name: str = ""
    version: str = "1.0.0"
    priority: int = 0

    @abstractmethod
    def process(
        self,
        primary: SpellDescriptor,
        secondary: SpellDescriptor,
        actor: ActorDescriptor,
        context: EnvironmentalContext,
    ) -> PluginResult:
        ...

    def describe(self) -> Dict[str, Any]:
        return {"name": self.name, "version": self.version, "priority": self.priority}


# ═══════════════════════════════════════════════════════════════
# REGISTRY
# ═══════════════════════════════════════════════════════════════

class PluginRegistry:
    """Ordered, name-unique collection of interaction plugins."""

    def __init__(self):
        self._plugins: List[InteractionPlugin] = []
        self._lock = threading.RLock()

    def register(self, plugin: InteractionPlugin) -> None:
        with self._lock:
            for i, existing in enumerate(self._plugins):
                if existing.name == plugin.name:
                    self._plugins[i] = plugin
                    logger.info(f"Replaced plugin '{plugin.name}' with v{plugin.version}")
                    break
            else:
                self._plugins.append(plugin)
                logger.info(f"Registered plugin '{plugin.name}' v{plugin.version} (priority {plugin.priority})")
            self._plugins.sort(key=lambda p: -p.priority)

    def unregister(self, name: str) -> bool:
        with self._lock:
            before = len(self._plugins)
            self._plugins = [p for p in self._plugins if p.name != name]
            return len(self._plugins) < before

    def clear(self) -> None:
        with self._lock:
            self._plugins = []

    def list_plugins(self) -> List[Dict[str, Any]]:
        return [p.describe() for p in self._snapshot()]

    def __len__(self) -> int:
        return len(self._plugins)

    def _snapshot(self) -> List[InteractionPlugin]:
        with self._lock:
            return list(self._plugins)

    def process(
        self,
        primary: SpellDescriptor,
        secondary: SpellDescriptor,
        actor: ActorDescriptor,
        context: EnvironmentalContext,
    ) -> List[PluginResult]:
        """Run every plugin in priority order; keep modified results only."""
        results: List[PluginResult] = []
        for plugin in self._snapshot():
            try:
                result = plugin.process(primary, secondary, actor, context)
            except Exception as e:
                logger.warning(f"Plugin '{plugin.name}' failed, skipping: {e}")
                continue
            if result is None or not result.modified:
                continue
            if result.plugin_name is None:
                result = replace(result, plugin_name=plugin.name)
            results.append(result)
        return results


# ═══════════════════════════════════════════════════════════════
# BUILT-IN PLUGINS
# ═══════════════════════════════════════════════════════════════

class ComboRecommendationPlugin(InteractionPlugin):
    """Scores how well the pair works as a combo for this caster."""

    name = "Spell Combo Recommendation Plugin"
    version = "1.0.0"
    priority = 8

    SCHOOL_SYNERGY: Dict[str, Dict[str, float]] = {
        "evocation": {"conjuration": 0.8, "illusion": 0.6},
        "conjuration": {"evocation": 0.7, "transmutation": 0.9},
    }
    CLASS_AFFINITY: Dict[str, float] = {
        "wizard": 0.2,
        "sorcerer": 0.15,
    }
    BASE_SCORE = 0.5
    RECOMMEND_THRESHOLD = 0.7

    def process(self, primary, secondary, actor, context) -> PluginResult:
        score = self.recommendation_score(primary, secondary, actor)
        if score <= self.RECOMMEND_THRESHOLD:
            return UNMODIFIED
        return PluginResult(
            modified=True,
            score_adjustment=score,
            insights=("Excellent spell combination potential detected",),
            combo_suggestions=(
                ComboSuggestion(
                    primary=primary,
                    secondary=secondary,
                    score=score,
                    rationale=f"High potential spell combination (Score: {score:.2f})",
                ),
            ),
        )

    def recommendation_score(
        self,
        primary: SpellDescriptor,
        secondary: SpellDescriptor,
        actor: ActorDescriptor,
    ) -> float:
        score = self.BASE_SCORE
        score += self.SCHOOL_SYNERGY.get(category_key(primary.school), {}).get(
            category_key(secondary.school), 0.0
        )
        score += self.CLASS_AFFINITY.get(category_key(actor.actor_class), 0.0)
        return min(score, 1.0)


class TacticalContextPlugin(InteractionPlugin):
    """Adds situational notes; never changes the score."""

    name = "Tactical Context Plugin"
    version = "1.0.0"
    priority = 5

    RESOURCE_THRESHOLD = 0.7

    def process(self, primary, secondary, actor, context) -> PluginResult:
        insights: List[str] = []
        warnings: List[str] = []

        specialization = category_key(actor.specialization)
        if specialization and specialization in (
            category_key(primary.school), category_key(secondary.school)
        ):
            insights.append("Spell aligns with caster specialization, potentially enhancing interaction")

        if category_key(context.combat_difficulty) == "challenging":
            insights.append("High environmental complexity may introduce unexpected spell interactions")

        if (
            actor.resource_capacity
            and primary.resource_cost is not None
            and secondary.resource_cost is not None
            and primary.resource_cost + secondary.resource_cost > actor.resource_capacity * self.RESOURCE_THRESHOLD
        ):
            warnings.append("Combined spell resource cost exceeds recommended threshold")

        if category_key(primary.school) and category_key(primary.school) == category_key(secondary.school):
            warnings.append("Casting spells from the same school may lead to diminishing returns")

        if not insights and not warnings:
            return UNMODIFIED
        return PluginResult(modified=True, insights=tuple(insights), warnings=tuple(warnings))


BUILTIN_PLUGINS = (ComboRecommendationPlugin, TacticalContextPlugin)


def build_default_registry(include_builtins: bool = True) -> PluginRegistry:
    """Create a registry and register the built-in plugins explicitly."""
    registry = PluginRegistry()
    if include_builtins:
        for plugin_cls in BUILTIN_PLUGINS:
            registry.register(plugin_cls())
    return registry

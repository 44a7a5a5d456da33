"""
Interaction Cache — Memoized Plugin-Enhanced Analysis
=======================================================
Keyed by an explicit composite key built field by field:

  (primary spell name, secondary spell name, actor id, terrain, difficulty)

On a miss the base analyzer runs once, every registered plugin runs once, and
the merged analysis is stored. Entries never expire; only clear()/remove()
change the map. The map is guarded by one lock so that a key is computed
exactly once even under concurrent callers.

Merge rules:
  score      = clamp(base + Σ plugin score_adjustment, 0, 10), type re-derived
  outcomes  += plugin insights (priority order)
  risks     += plugin warnings (priority order)
"""

import json
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

from .base_analyzer import BaseAnalyzer
from .models import (
    ActorDescriptor,
    EnvironmentalContext,
    InteractionAnalysis,
    SpellDescriptor,
    category_value,
)
from .plugins import ComboSuggestion, PluginRegistry, PluginResult

logger = logging.getLogger(__name__)


class CacheKey(NamedTuple):
    primary_spell: str
    secondary_spell: str
    actor_id: str
    terrain: str
    combat_difficulty: str

    def to_dict(self) -> Dict[str, str]:
        return self._asdict()


@dataclass(frozen=True)
class CacheEntry:
    analysis: InteractionAnalysis
    combo_suggestions: Tuple[ComboSuggestion, ...] = ()
    plugins_applied: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "analysis": self.analysis.to_dict(),
            "combo_suggestions": [c.to_dict() for c in self.combo_suggestions],
            "plugins_applied": list(self.plugins_applied),
        }


def make_key(
    primary: SpellDescriptor,
    secondary: SpellDescriptor,
    actor: ActorDescriptor,
    context: EnvironmentalContext,
) -> CacheKey:
    return CacheKey(
        primary_spell=primary.name,
        secondary_spell=secondary.name,
        actor_id=actor.actor_id,
        terrain=str(category_value(context.terrain)),
        combat_difficulty=str(category_value(context.combat_difficulty)),
    )


def merge_plugin_results(base: InteractionAnalysis, results: List[PluginResult]) -> InteractionAnalysis:
    adjustment = sum(r.score_adjustment or 0.0 for r in results)
    merged = base.with_score(base.compatibility_score + adjustment) if results else base
    insights = [i for r in results for i in (r.insights or ())]
    warnings = [w for r in results for w in (r.warnings or ())]
    if insights or warnings:
        merged = merged.with_additions(outcomes=insights, risks=warnings)
    return merged


class InteractionCache:
    """Memoizes BaseAnalyzer + PluginRegistry output per composite key."""

    def __init__(self, analyzer: Optional[BaseAnalyzer] = None, registry: Optional[PluginRegistry] = None):
        self._analyzer = analyzer or BaseAnalyzer()
        self._registry = registry if registry is not None else PluginRegistry()
        self._entries: Dict[CacheKey, CacheEntry] = {}
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0

    @property
    def registry(self) -> PluginRegistry:
        return self._registry

    make_key = staticmethod(make_key)

    def get_or_compute(
        self,
        primary: SpellDescriptor,
        secondary: SpellDescriptor,
        actor: ActorDescriptor,
        context: EnvironmentalContext,
    ) -> InteractionAnalysis:
        return self.get_or_compute_entry(primary, secondary, actor, context).analysis

    def get_or_compute_entry(
        self,
        primary: SpellDescriptor,
        secondary: SpellDescriptor,
        actor: ActorDescriptor,
        context: EnvironmentalContext,
    ) -> CacheEntry:
        key = make_key(primary, secondary, actor, context)
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                self._hits += 1
                logger.debug(f"Cache hit: {key}")
                return entry

            self._misses += 1
            base = self._analyzer.analyze(primary, secondary, actor, context)
            results = self._registry.process(primary, secondary, actor, context)
            entry = CacheEntry(
                analysis=merge_plugin_results(base, results),
                combo_suggestions=tuple(c for r in results for c in (r.combo_suggestions or ())),
                plugins_applied=tuple(r.plugin_name for r in results if r.plugin_name),
            )
            self._entries[key] = entry
            return entry

    def peek(self, key: CacheKey) -> Optional[InteractionAnalysis]:
        entry = self.entry(key)
        return entry.analysis if entry else None

    def entry(self, key: CacheKey) -> Optional[CacheEntry]:
        with self._lock:
            return self._entries.get(key)

    def remove(self, key: CacheKey) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def remove_for(
        self,
        primary: SpellDescriptor,
        secondary: SpellDescriptor,
        actor: ActorDescriptor,
        context: EnvironmentalContext,
    ) -> bool:
        return self.remove(make_key(primary, secondary, actor, context))

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            logger.info("Interaction cache cleared")

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            items = list(self._entries.items())
            hits, misses = self._hits, self._misses
        size = sum(
            len(json.dumps(key.to_dict())) + len(json.dumps(entry.analysis.to_dict()))
            for key, entry in items
        )
        return {
            "total_entries": len(items),
            "memory_size_estimate": size,
            "hits": hits,
            "misses": misses,
        }

"""
Spell Interaction Engine — Core Module
========================================
Predicts how two spells cast together by one actor in one environment will
interact: rule-based scoring, plugin extensions, memoization, and a learned
ensemble that sharpens scores once enough outcomes have been recorded.

Components:
  ┌──────────────────────────────────────────────────────────┐
  │ InteractionOrchestrator — Single entry point, wiring     │
  │ BaseAnalyzer            — Deterministic rule scoring     │
  │ PluginRegistry          — Prioritized extensions         │
  │ InteractionCache        — Memoized analyzer + plugins    │
  │ TrainingCorpus          — Bounded, deduped outcomes      │
  │ FeatureExtractor        — Numeric vectors + labels       │
  │ PredictionEnsemble      — Confidence-gated adjustment    │
  │ PredictionCache         — 24 h memo of learned results   │
  │ DatasetOptimizer        — Dedup, balance, engineer       │
  │ ComplexityAnalyzer      — Casting difficulty in [0, 1]   │
  │ SyntheticCorpusGenerator— Seeded bootstrap data          │
  └──────────────────────────────────────────────────────────┘

Usage:
  # Full pipeline (recommended):
  from spellweave.core.interaction import InteractionOrchestrator
  engine = InteractionOrchestrator()
  bundle = engine.predict(fireball, shield, wizard, context)

  # Individual components:
  from spellweave.core.interaction import BaseAnalyzer, InteractionCache
"""

# Value types
from .models import (
    ActorClass,
    ActorDescriptor,
    ContextualEffectiveness,
    Difficulty,
    EnvironmentalContext,
    InteractionAnalysis,
    InteractionType,
    Outcome,
    School,
    SpellDescriptor,
    Terrain,
    classify_interaction,
)
from .encoders import encode_class, encode_difficulty, encode_school, encode_terrain

# Scoring pipeline
from .base_analyzer import BaseAnalyzer
from .plugins import (
    ComboRecommendationPlugin,
    ComboSuggestion,
    InteractionPlugin,
    PluginRegistry,
    PluginResult,
    TacticalContextPlugin,
    build_default_registry,
)
from .cache import CacheEntry, CacheKey, InteractionCache

# Learning
from .corpus import PerformanceMetrics, TrainingCorpus, TrainingDataPoint
from .features import FeatureExtractor
from .regressors import LinearRegressor, NeuralRegressor, Regressor, TrainingCancelled
from .prediction_cache import PredictionCache
from .ensemble import EnsembleEstimate, ModelConfidence, PredictionEnsemble
from .optimizer import DatasetOptimizer, PreparedSample
from .complexity import ComplexityAnalyzer, ComplexityFactor
from .synthetic import SyntheticCorpusGenerator

# Orchestrator (imports all above internally)
from .orchestrator import InteractionOrchestrator

__all__ = [
    # ── Values ──
    "School", "ActorClass", "Terrain", "Difficulty", "InteractionType", "Outcome",
    "SpellDescriptor", "ActorDescriptor", "EnvironmentalContext",
    "InteractionAnalysis", "ContextualEffectiveness",
    "classify_interaction",
    "encode_school", "encode_class", "encode_terrain", "encode_difficulty",
    # ── Scoring ──
    "BaseAnalyzer",
    "InteractionPlugin", "PluginRegistry", "PluginResult", "ComboSuggestion",
    "ComboRecommendationPlugin", "TacticalContextPlugin", "build_default_registry",
    "InteractionCache", "CacheKey", "CacheEntry",
    # ── Learning ──
    "TrainingCorpus", "TrainingDataPoint", "PerformanceMetrics",
    "FeatureExtractor",
    "Regressor", "LinearRegressor", "NeuralRegressor", "TrainingCancelled",
    "PredictionEnsemble", "ModelConfidence", "EnsembleEstimate", "PredictionCache",
    "DatasetOptimizer", "PreparedSample",
    "ComplexityAnalyzer", "ComplexityFactor",
    "SyntheticCorpusGenerator",
    # ── Orchestrator ──
    "InteractionOrchestrator",
]

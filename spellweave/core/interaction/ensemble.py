"""
Prediction Ensemble — Confidence-Gated Adjustment of Cached Analyses
======================================================================
Wraps the InteractionCache with learned models and per-category confidence.

Model state is a sum type:
  Untrained              → predict() returns the cached analysis unchanged
  Trained(ModelSnapshot) → regressors + confidence, published by one reference swap

Prediction flow:
  1. cached = cache.get_or_compute(...)          (base rules + plugins, applied once)
  2. school_conf  = confidence.by_school[primary.school]  (0.5 if absent)
     terrain_conf = confidence.by_terrain[context.terrain] (0.5 if absent)
  3. school_conf > 0.6 and terrain_conf > 0.5
       → score = min(cached × (1 + school_conf × terrain_conf), 10)
         + one confidence insight, one prediction-uncertainty risk
  4. otherwise → cached analysis, unchanged

Confidence (recomputed on every train_from, over confidence_points when given,
so the gate reflects the whole corpus rather than the balanced training subset):
  overall    = min(n / 5000, 0.9)
  by_school  = min(occurrences / 500, 0.8)   (both spell slots counted)
  by_terrain = min(occurrences / 300, 0.7)

Training never mutates the live snapshot: fresh regressors are fitted from the
factories and swapped in only when every backend finishes. A cancelled run
leaves the previous snapshot in place.

Adjusted predictions and raw estimates are memoized in a PredictionCache keyed
by the snapshot version; publishing or dropping a snapshot invalidates it.
"""

import logging
import threading
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from .cache import InteractionCache, make_key
from .corpus import TrainingDataPoint
from .features import FeatureExtractor, LABEL_MAX, LABEL_MIN
from .models import (
    ActorDescriptor,
    EnvironmentalContext,
    InteractionAnalysis,
    Outcome,
    SCORE_MAX,
    SpellDescriptor,
    category_key,
    category_value,
)
from .prediction_cache import PredictionCache
from .regressors import Regressor, RegressorFactory, TrainingCancelled

logger = logging.getLogger(__name__)

OVERALL_SATURATION = 5000
OVERALL_CAP = 0.9
SCHOOL_SATURATION = 500
SCHOOL_CAP = 0.8
TERRAIN_SATURATION = 300
TERRAIN_CAP = 0.7

DEFAULT_CONFIDENCE = 0.5
SCHOOL_GATE = 0.6
TERRAIN_GATE = 0.5


# ═══════════════════════════════════════════════════════════════
# CONFIDENCE
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ModelConfidence:
    overall: float = 0.0
    by_school: Dict[str, float] = field(default_factory=dict)
    by_terrain: Dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_points(cls, points: Sequence[TrainingDataPoint]) -> "ModelConfidence":
        schools: Counter = Counter()
        terrains: Counter = Counter()
        for p in points:
            schools[category_key(p.primary.school)] += 1
            schools[category_key(p.secondary.school)] += 1
            terrains[category_key(p.context.terrain)] += 1
        return cls(
            overall=min(len(points) / OVERALL_SATURATION, OVERALL_CAP),
            by_school={s: min(n / SCHOOL_SATURATION, SCHOOL_CAP) for s, n in schools.items() if s},
            by_terrain={t: min(n / TERRAIN_SATURATION, TERRAIN_CAP) for t, n in terrains.items() if t},
        )

    def school(self, school) -> float:
        return self.by_school.get(category_key(school), DEFAULT_CONFIDENCE)

    def terrain(self, terrain) -> float:
        return self.by_terrain.get(category_key(terrain), DEFAULT_CONFIDENCE)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall": round(self.overall, 4),
            "by_school": {k: round(v, 4) for k, v in sorted(self.by_school.items())},
            "by_terrain": {k: round(v, 4) for k, v in sorted(self.by_terrain.items())},
        }


# ═══════════════════════════════════════════════════════════════
# MODEL STATE
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Untrained:
    def to_dict(self) -> Dict[str, Any]:
        return {"status": "untrained"}


@dataclass(frozen=True)
class ModelSnapshot:
    regressors: Tuple[Regressor, ...]
    confidence: ModelConfidence
    sample_count: int
    trained_at: float
    version: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": "trained",
            "version": self.version,
            "regressors": [r.describe() for r in self.regressors],
            "confidence": self.confidence.to_dict(),
            "sample_count": self.sample_count,
            "trained_at": self.trained_at,
        }


ModelState = Union[Untrained, ModelSnapshot]
UNTRAINED = Untrained()


@dataclass(frozen=True)
class EnsembleEstimate:
    """Raw learned estimate; empty when no model has been trained."""
    trained: bool
    label: Optional[float] = None
    outcome: Optional[Outcome] = None
    per_regressor: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trained": self.trained,
            "label": None if self.label is None else round(self.label, 4),
            "outcome": self.outcome.value if self.outcome else None,
            "per_regressor": {k: round(v, 4) for k, v in self.per_regressor.items()},
        }


# ═══════════════════════════════════════════════════════════════
# ENSEMBLE
# ═══════════════════════════════════════════════════════════════

class PredictionEnsemble:
    """
    Confidence-gated predictor over an InteractionCache.

    Usage:
        ensemble = PredictionEnsemble(cache, build_regressor_factories(["linear"]))
        ensemble.train_from(corpus.points())
        analysis = ensemble.predict(primary, secondary, actor, context)
    """

    def __init__(
        self,
        cache: InteractionCache,
        factories: Sequence[RegressorFactory] = (),
        extractor: Optional[FeatureExtractor] = None,
        predictions: Optional[PredictionCache] = None,
    ):
        self._cache = cache
        self._factories = list(factories)
        self._extractor = extractor or FeatureExtractor()
        self.predictions = predictions if predictions is not None else PredictionCache()
        self._state: ModelState = UNTRAINED
        self._train_lock = threading.Lock()
        self._version = 0

    @property
    def state(self) -> ModelState:
        return self._state

    @property
    def is_trained(self) -> bool:
        state = self._state
        return isinstance(state, ModelSnapshot) and bool(state.regressors)

    def confidence(self) -> ModelConfidence:
        state = self._state
        return state.confidence if isinstance(state, ModelSnapshot) else ModelConfidence()

    # ──────────────────────────────────────────────────────────
    # TRAINING
    # ──────────────────────────────────────────────────────────

    def train_from(
        self,
        points: Sequence[TrainingDataPoint],
        cancel: Optional[threading.Event] = None,
        confidence_points: Optional[Sequence[TrainingDataPoint]] = None,
    ) -> ModelState:
        """
        Fit fresh regressors on the points and publish a new snapshot.

        confidence_points (default: points) feeds ModelConfidence; callers that
        train on a deduplicated or balanced subset pass the full corpus here.
        Returns the state in effect afterwards. Empty input or a cancelled
        run keeps the current state.
        """
        points = list(points)
        if not points:
            logger.warning("train_from called with no data points; keeping current model")
            return self._state

        with self._train_lock:
            features = [self._extractor.extract_point(p) for p in points]
            labels = [self._extractor.extract_label(p) for p in points]

            regressors: List[Regressor] = []
            start = time.time()
            try:
                for factory in self._factories:
                    regressor = factory()
                    regressor.train(features, labels, cancel=cancel)
                    regressors.append(regressor)
            except TrainingCancelled as e:
                logger.warning(f"Training cancelled ({e}); previous model kept")
                return self._state

            self._version += 1
            snapshot = ModelSnapshot(
                regressors=tuple(regressors),
                confidence=ModelConfidence.from_points(
                    points if confidence_points is None else list(confidence_points)
                ),
                sample_count=len(points),
                trained_at=time.time(),
                version=self._version,
            )
            self._state = snapshot
            self.predictions.invalidate()

        logger.info(
            f"Ensemble trained on {len(points)} points with {len(regressors)} regressor(s) "
            f"in {time.time() - start:.2f}s (overall confidence {snapshot.confidence.overall:.2f})"
        )
        return snapshot

    def reset(self) -> None:
        self._state = UNTRAINED
        self.predictions.invalidate()

    # ──────────────────────────────────────────────────────────
    # PREDICTION
    # ──────────────────────────────────────────────────────────

    def predict(
        self,
        primary: SpellDescriptor,
        secondary: SpellDescriptor,
        actor: ActorDescriptor,
        context: EnvironmentalContext,
    ) -> InteractionAnalysis:
        cached = self._cache.get_or_compute(primary, secondary, actor, context)

        state = self._state
        # No fitted regressor: rule-based result only
        if not isinstance(state, ModelSnapshot) or not state.regressors:
            return cached

        school_conf = state.confidence.school(primary.school)
        terrain_conf = state.confidence.terrain(context.terrain)
        if not (school_conf > SCHOOL_GATE and terrain_conf > TERRAIN_GATE):
            return cached

        key = make_key(primary, secondary, actor, context)
        memo = self.predictions.get("predict", key, state.version)
        if memo is not None:
            return memo

        multiplier = 1 + school_conf * terrain_conf
        adjusted = cached.with_score(min(cached.compatibility_score * multiplier, SCORE_MAX))
        adjusted = adjusted.with_additions(
            outcomes=[
                f"Model confidence {school_conf * terrain_conf * 100:.1f}% "
                f"for {category_value(primary.school)} in {category_value(context.terrain)} terrain"
            ],
            risks=[f"Prediction uncertainty: {(1 - school_conf) * 100:.1f}%"],
        )
        self.predictions.put("predict", key, state.version, adjusted)
        return adjusted

    def estimate(
        self,
        primary: SpellDescriptor,
        secondary: SpellDescriptor,
        actor: ActorDescriptor,
        context: EnvironmentalContext,
    ) -> EnsembleEstimate:
        """Average of every trained regressor's label estimate, clipped to the label range."""
        state = self._state
        if not isinstance(state, ModelSnapshot) or not state.regressors:
            return EnsembleEstimate(trained=isinstance(state, ModelSnapshot))

        key = make_key(primary, secondary, actor, context)
        memo = self.predictions.get("estimate", key, state.version)
        if memo is not None:
            return memo

        features = self._extractor.extract(primary, secondary, actor, context)
        per_regressor: Dict[str, float] = {}
        for i, regressor in enumerate(state.regressors):
            name = regressor.name if regressor.name not in per_regressor else f"{regressor.name}_{i}"
            per_regressor[name] = min(max(regressor.predict(features), LABEL_MIN), LABEL_MAX)
        label = sum(per_regressor.values()) / len(per_regressor)
        estimate = EnsembleEstimate(
            trained=True,
            label=label,
            outcome=FeatureExtractor.label_to_outcome(label),
            per_regressor=per_regressor,
        )
        self.predictions.put("estimate", key, state.version, estimate)
        return estimate

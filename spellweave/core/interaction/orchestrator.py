"""
Interaction Orchestrator — Single Entry Point for the Engine
==============================================================
Wires every component into one object. The API layer talks only to this.

  ANALYZE:   InteractionCache (BaseAnalyzer + PluginRegistry, memoized)
  PREDICT:   ANALYZE → PredictionEnsemble (confidence gate, PredictionCache memo)
             → TrainingCorpus.record of the pre-ensemble analysis
               (when outcome recording is enabled)
  ESTIMATE:  FeatureExtractor → trained regressors
  TRAIN:     TrainingCorpus → DatasetOptimizer.optimize → PredictionEnsemble.train_from
             (fits on the optimized set; confidence comes from the whole corpus)
             (batch job; cancellable between epochs)

Built-in plugins are registered here, explicitly, when
ENABLE_BUILTIN_PLUGINS is on. There is no import-time registration.
"""

import logging
import threading
import time
from typing import Any, Dict, List, Optional, Sequence

from spellweave.config import Settings, settings as default_settings

from .base_analyzer import BaseAnalyzer
from .cache import CacheEntry, InteractionCache
from .complexity import ComplexityAnalyzer
from .corpus import TrainingCorpus, TrainingDataPoint
from .ensemble import EnsembleEstimate, PredictionEnsemble
from .features import FeatureExtractor
from .models import ActorDescriptor, EnvironmentalContext, InteractionAnalysis, SpellDescriptor
from .optimizer import DatasetOptimizer
from .plugins import PluginRegistry, build_default_registry
from .prediction_cache import PredictionCache
from .regressors import build_regressor_factories
from .synthetic import SyntheticCorpusGenerator

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════
# RESPONSE TYPES
# ═══════════════════════════════════════════════════════════════

class PredictionBundle:
    """Prediction response: final analysis plus what produced it."""
    def __init__(self):
        self.analysis: Optional[InteractionAnalysis] = None
        self.combo_suggestions: List[Dict] = []
        self.plugins_applied: List[str] = []
        self.source: str = "rules_only"
        self.recorded: bool = False
        self.timing: Dict = {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "analysis": self.analysis.to_dict() if self.analysis else None,
            "combo_suggestions": self.combo_suggestions,
            "plugins_applied": self.plugins_applied,
            "source": self.source,
            "recorded": self.recorded,
            "timing": self.timing,
        }


class TrainingReport:
    """Outcome of one optimize + train batch job."""
    def __init__(self):
        self.status: str = "pending"
        self.corpus_size: int = 0
        self.prepared_size: int = 0
        self.quality_before: Dict = {}
        self.quality_after: Dict = {}
        self.model: Dict = {}
        self.error: Optional[str] = None
        self.started_at: float = time.time()
        self.duration: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "corpus_size": self.corpus_size,
            "prepared_size": self.prepared_size,
            "quality_before": self.quality_before,
            "quality_after": self.quality_after,
            "model": self.model,
            "error": self.error,
            "started_at": self.started_at,
            "duration": round(self.duration, 3),
        }


# ═══════════════════════════════════════════════════════════════
# ORCHESTRATOR
# ═══════════════════════════════════════════════════════════════

class InteractionOrchestrator:

    def __init__(
        self,
        config: Optional[Settings] = None,
        registry: Optional[PluginRegistry] = None,
        analyzer: Optional[BaseAnalyzer] = None,
    ):
        self.config = config or default_settings

        self.analyzer = analyzer or BaseAnalyzer()
        self.registry = registry if registry is not None else build_default_registry(
            include_builtins=self.config.ENABLE_BUILTIN_PLUGINS
        )
        self.cache = InteractionCache(self.analyzer, self.registry)
        self.corpus = TrainingCorpus(
            max_size=self.config.CORPUS_MAX_SIZE,
            eviction_fraction=self.config.CORPUS_EVICTION_FRACTION,
        )
        self.extractor = FeatureExtractor()
        self.predictions = PredictionCache(
            ttl_seconds=self.config.PREDICTION_CACHE_TTL_SECONDS,
            max_entries=self.config.PREDICTION_CACHE_MAX_ENTRIES,
        )
        self.ensemble = PredictionEnsemble(
            self.cache, self._regressor_factories(), self.extractor, predictions=self.predictions
        )
        self.optimizer = DatasetOptimizer(
            ignore_empty_buckets=self.config.BALANCE_IGNORE_EMPTY_BUCKETS
        )
        self.complexity_analyzer = ComplexityAnalyzer()

        self._training_lock = threading.Lock()
        self._cancel_event: Optional[threading.Event] = None
        self.last_training: Optional[TrainingReport] = None

        logger.info(
            f"Interaction engine ready: {len(self.registry)} plugin(s), "
            f"backends={self.config.ensemble_backends}, corpus max={self.config.CORPUS_MAX_SIZE}"
        )

    def _regressor_factories(self):
        cfg = self.config
        return build_regressor_factories(
            cfg.ensemble_backends,
            linear_alpha=cfg.LINEAR_RIDGE_ALPHA,
            neural_hidden_units=cfg.NEURAL_HIDDEN_UNITS,
            neural_epochs=cfg.NEURAL_EPOCHS,
            neural_learning_rate=cfg.NEURAL_LEARNING_RATE,
            neural_batch_size=cfg.NEURAL_BATCH_SIZE,
            neural_seed=cfg.RANDOM_SEED,
        )

    # ──────────────────────────────────────────────────────────
    # 1. ANALYZE / PREDICT
    # ──────────────────────────────────────────────────────────

    def analyze(
        self,
        primary: SpellDescriptor,
        secondary: SpellDescriptor,
        actor: ActorDescriptor,
        context: EnvironmentalContext,
    ) -> CacheEntry:
        return self.cache.get_or_compute_entry(primary, secondary, actor, context)

    def predict(
        self,
        primary: SpellDescriptor,
        secondary: SpellDescriptor,
        actor: ActorDescriptor,
        context: EnvironmentalContext,
    ) -> PredictionBundle:
        bundle = PredictionBundle()
        t0 = time.time()

        entry = self.cache.get_or_compute_entry(primary, secondary, actor, context)
        analysis = self.ensemble.predict(primary, secondary, actor, context)

        bundle.analysis = analysis
        bundle.combo_suggestions = [c.to_dict() for c in entry.combo_suggestions]
        bundle.plugins_applied = list(entry.plugins_applied)
        bundle.source = "rules_only" if analysis is entry.analysis else "ensemble"
        bundle.timing["predict"] = round(time.time() - t0, 4)

        if self.config.ENABLE_OUTCOME_RECORDING:
            # Pre-ensemble analysis (rules + plugins), never the boosted score
            try:
                self.corpus.record(
                    TrainingDataPoint.from_analysis(primary, secondary, actor, context, entry.analysis)
                )
                bundle.recorded = True
            except Exception as e:
                logger.warning(f"Outcome recording failed (non-fatal): {e}")

        return bundle

    def estimate(
        self,
        primary: SpellDescriptor,
        secondary: SpellDescriptor,
        actor: ActorDescriptor,
        context: EnvironmentalContext,
    ) -> EnsembleEstimate:
        return self.ensemble.estimate(primary, secondary, actor, context)

    def complexity(
        self,
        primary: SpellDescriptor,
        secondary: SpellDescriptor,
        actor: ActorDescriptor,
        context: EnvironmentalContext,
    ) -> Dict[str, Any]:
        return {
            "complexity": self.complexity_analyzer.analyze(primary, secondary, actor, context),
            "breakdown": self.complexity_analyzer.breakdown(primary, secondary, actor, context),
            "factors": [f.to_dict() for f in self.complexity_analyzer.factors()],
        }

    # ──────────────────────────────────────────────────────────
    # 2. CORPUS
    # ──────────────────────────────────────────────────────────

    def record(self, points: Sequence[TrainingDataPoint]) -> int:
        return self.corpus.record_many(points)

    def seed_synthetic(self, count: int, seed: Optional[int] = None) -> int:
        generator = SyntheticCorpusGenerator(
            seed=self.config.RANDOM_SEED if seed is None else seed,
            analyzer=self.analyzer,
        )
        return self.corpus.record_many(generator.generate(count))

    def quality_report(self) -> Dict[str, Any]:
        return self.optimizer.quality_report(self.corpus.points())

    def clear_caches(self) -> Dict[str, int]:
        """Drop memoized analyses and learned-path predictions."""
        analyses = len(self.cache)
        self.cache.clear()
        predictions = self.predictions.invalidate()
        return {"analyses": analyses, "predictions": predictions}

    # ──────────────────────────────────────────────────────────
    # 3. TRAINING (batch job)
    # ──────────────────────────────────────────────────────────

    @property
    def is_training(self) -> bool:
        return self._training_lock.locked()

    def train(self, cancel: Optional[threading.Event] = None) -> TrainingReport:
        """
        Optimize the current corpus and train the ensemble on it.
        Meant for a background worker; never call on the request path.
        """
        report = TrainingReport()
        if not self._training_lock.acquire(blocking=False):
            report.status = "skipped"
            report.error = "training already in progress"
            logger.warning("Training requested while another run is active; skipped")
            return report

        self._cancel_event = cancel or threading.Event()
        try:
            points = self.corpus.points()
            report.corpus_size = len(points)
            report.quality_before = self.optimizer.quality_report(points)

            prepared = [s.point for s in self.optimizer.optimize(points)]
            report.prepared_size = len(prepared)
            report.quality_after = self.optimizer.quality_report(prepared)

            if not prepared:
                report.status = "skipped"
                report.error = "no training data after optimization"
                return report

            previous = self.ensemble.state
            state = self.ensemble.train_from(
                prepared, cancel=self._cancel_event, confidence_points=points
            )
            if state is previous:
                report.status = "cancelled" if self._cancel_event.is_set() else "unchanged"
            else:
                report.status = "completed"
            report.model = state.to_dict()
        except Exception as e:
            report.status = "failed"
            report.error = str(e)
            logger.error(f"Training failed: {e}", exc_info=True)
        finally:
            report.duration = time.time() - report.started_at
            self.last_training = report
            self._cancel_event = None
            self._training_lock.release()

        return report

    def cancel_training(self) -> bool:
        event = self._cancel_event
        if event is None:
            return False
        event.set()
        logger.info("Training cancellation requested")
        return True

    # ──────────────────────────────────────────────────────────
    # 4. HEALTH
    # ──────────────────────────────────────────────────────────

    def health(self) -> Dict[str, Any]:
        state = self.ensemble.state
        return {
            "status": "healthy",
            "plugins": len(self.registry),
            "cache": self.cache.stats(),
            "prediction_cache": self.predictions.stats(),
            "corpus_size": self.corpus.size(),
            "model": state.to_dict(),
            "model_trained": self.ensemble.is_trained,
            "training_in_progress": self.is_training,
            "last_training": self.last_training.to_dict() if self.last_training else None,
        }

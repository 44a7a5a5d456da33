"""
Training Corpus — Bounded, Deduplicated Outcome Store
=======================================================
Holds labelled interaction outcomes for the prediction ensemble.

Capabilities:
  1. Latest-wins dedup     — identity = (primary name, secondary name, actor id)
  2. Size bound            — timestamp-ordered trim once max_size is exceeded
  3. Statistics            — outcome distribution, school counts, metric ranges
  4. Export                — nested JSON or flat CSV (header + one row per point)
  5. Filtering & summary   — by outcome / class / school / terrain; date range

Eviction:
  eviction_fraction == 0  → keep exactly the max_size most recent points
  eviction_fraction  > 0  → batch trim: drop the oldest fraction of the overflowed
                             corpus (never leaving more than max_size)

Empty-corpus statistics return zero counts and None metric summaries, never NaN.
"""

import csv
import io
import json
import logging
import math
import threading
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .models import (
    ActorDescriptor,
    EnvironmentalContext,
    InteractionAnalysis,
    InteractionType,
    Outcome,
    SpellDescriptor,
    category_key,
    category_value,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_SIZE = 10_000

SUCCESS_SCORE = 7.0
NEUTRAL_SCORE = 4.0

OUTCOME_LABELS: Dict[Outcome, int] = {
    Outcome.FAILURE: 0,
    Outcome.NEUTRAL: 1,
    Outcome.SUCCESS: 2,
}

OUTCOME_TO_INTERACTION: Dict[Outcome, InteractionType] = {
    Outcome.SUCCESS: InteractionType.SYNERGY,
    Outcome.NEUTRAL: InteractionType.NEUTRAL,
    Outcome.FAILURE: InteractionType.CONFLICT,
}

METRIC_NAMES = ("damage_dealt", "resource_efficiency", "tactical_advantage")

CSV_HEADER = [
    "primary_spell_level", "secondary_spell_level",
    "primary_spell_school", "secondary_spell_school",
    "actor_level", "actor_class",
    "terrain", "combat_difficulty",
    "damage_dealt", "resource_efficiency", "tactical_advantage",
    "outcome",
]


def outcome_for_score(score: float) -> Outcome:
    if score >= SUCCESS_SCORE:
        return Outcome.SUCCESS
    if score >= NEUTRAL_SCORE:
        return Outcome.NEUTRAL
    return Outcome.FAILURE


# ═══════════════════════════════════════════════════════════════
# DATA POINT
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PerformanceMetrics:
    damage_dealt: float = 0.0
    resource_efficiency: float = 0.0
    tactical_advantage: float = 0.0

    def as_list(self) -> List[float]:
        return [self.damage_dealt, self.resource_efficiency, self.tactical_advantage]

    def to_dict(self) -> Dict[str, float]:
        return dict(zip(METRIC_NAMES, self.as_list()))


@dataclass(frozen=True)
class TrainingDataPoint:
    primary: SpellDescriptor
    secondary: SpellDescriptor
    actor: ActorDescriptor
    context: EnvironmentalContext
    outcome: Outcome
    metrics: PerformanceMetrics = field(default_factory=PerformanceMetrics)
    timestamp: float = field(default_factory=time.time)
    analysis: Optional[InteractionAnalysis] = None

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.primary.name, self.secondary.name, self.actor.actor_id)

    @property
    def interaction_type(self) -> InteractionType:
        if self.analysis is not None:
            return self.analysis.interaction_type
        return OUTCOME_TO_INTERACTION[Outcome(self.outcome)]

    @property
    def compatibility_score(self) -> Optional[float]:
        return self.analysis.compatibility_score if self.analysis else None

    @classmethod
    def from_analysis(
        cls,
        primary: SpellDescriptor,
        secondary: SpellDescriptor,
        actor: ActorDescriptor,
        context: EnvironmentalContext,
        analysis: InteractionAnalysis,
        timestamp: Optional[float] = None,
    ) -> "TrainingDataPoint":
        """
        Label a finalized analysis: score drives outcome and derived metrics.

        Outcome bands (>= 7 success, >= 4 neutral, else failure) are deliberately
        not the 8/3 interaction-type thresholds. Interaction type describes the
        pair; outcome describes how the cast went, so a strong non-synergy pair
        still counts as a success and the neutral band is narrowed to 4-7,
        which gives the learned models three usable classes instead of a
        dominant neutral one.
        """
        score = analysis.compatibility_score
        return cls(
            primary=primary,
            secondary=secondary,
            actor=actor,
            context=context,
            outcome=outcome_for_score(score),
            metrics=PerformanceMetrics(
                damage_dealt=score * 10,
                resource_efficiency=(10 - len(analysis.risk_factors)) / 10,
                tactical_advantage=score / 2,
            ),
            timestamp=time.time() if timestamp is None else timestamp,
            analysis=analysis,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primary_spell": self.primary.to_dict(),
            "secondary_spell": self.secondary.to_dict(),
            "actor": self.actor.to_dict(),
            "context": self.context.to_dict(),
            "outcome": Outcome(self.outcome).value,
            "performance_metrics": self.metrics.to_dict(),
            "timestamp": self.timestamp,
            "analysis": self.analysis.to_dict() if self.analysis else None,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "TrainingDataPoint":
        metrics = d.get("performance_metrics") or {}
        return cls(
            primary=SpellDescriptor.from_dict(d["primary_spell"]),
            secondary=SpellDescriptor.from_dict(d["secondary_spell"]),
            actor=ActorDescriptor.from_dict(d["actor"]),
            context=EnvironmentalContext.from_dict(d["context"]),
            outcome=Outcome(d["outcome"]),
            metrics=PerformanceMetrics(**{k: float(metrics.get(k, 0.0)) for k in METRIC_NAMES}),
            timestamp=float(d.get("timestamp") or time.time()),
            analysis=InteractionAnalysis.from_dict(d["analysis"]) if d.get("analysis") else None,
        )


# ═══════════════════════════════════════════════════════════════
# CORPUS
# ═══════════════════════════════════════════════════════════════

class TrainingCorpus:
    """In-memory bounded corpus. Durable storage is the caller's concern."""

    def __init__(self, max_size: int = DEFAULT_MAX_SIZE, eviction_fraction: float = 0.0):
        if max_size <= 0:
            raise ValueError(f"max_size must be positive, got {max_size}")
        if not 0.0 <= eviction_fraction < 1.0:
            raise ValueError(f"eviction_fraction must be in [0, 1), got {eviction_fraction}")
        self.max_size = max_size
        self.eviction_fraction = eviction_fraction
        self._points: List[TrainingDataPoint] = []
        self._index: Dict[Tuple[str, str, str], int] = {}
        self._lock = threading.RLock()

    # ──────────────────────────────────────────────────────────
    # RECORD / EVICT
    # ──────────────────────────────────────────────────────────

    def record(self, point: TrainingDataPoint) -> None:
        with self._lock:
            existing = self._index.get(point.key)
            if existing is not None:
                self._points[existing] = point
            else:
                self._index[point.key] = len(self._points)
                self._points.append(point)

            if len(self._points) > self.max_size:
                self._evict()

    def record_many(self, points) -> int:
        count = 0
        for point in points:
            self.record(point)
            count += 1
        return count

    def _evict(self) -> None:
        before = len(self._points)
        ordered = sorted(self._points, key=lambda p: p.timestamp)
        if self.eviction_fraction > 0:
            keep = min(self.max_size, before - max(1, math.ceil(before * self.eviction_fraction)))
        else:
            keep = self.max_size
        self._points = ordered[before - keep:]
        self._index = {p.key: i for i, p in enumerate(self._points)}
        logger.info(f"Corpus trimmed {before} → {len(self._points)} points (max {self.max_size})")

    # ──────────────────────────────────────────────────────────
    # ACCESS
    # ──────────────────────────────────────────────────────────

    def points(self) -> List[TrainingDataPoint]:
        with self._lock:
            return list(self._points)

    def size(self) -> int:
        return len(self._points)

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[TrainingDataPoint]:
        return iter(self.points())

    def clear(self) -> None:
        with self._lock:
            self._points = []
            self._index = {}

    def filter(
        self,
        outcome: Optional[str] = None,
        actor_class: Optional[str] = None,
        school: Optional[str] = None,
        terrain: Optional[str] = None,
    ) -> List[TrainingDataPoint]:
        def matches(p: TrainingDataPoint) -> bool:
            if outcome and category_key(p.outcome) != category_key(outcome):
                return False
            if actor_class and category_key(p.actor.actor_class) != category_key(actor_class):
                return False
            if school and category_key(school) not in (
                category_key(p.primary.school), category_key(p.secondary.school)
            ):
                return False
            if terrain and category_key(p.context.terrain) != category_key(terrain):
                return False
            return True

        return [p for p in self.points() if matches(p)]

    # ──────────────────────────────────────────────────────────
    # STATISTICS
    # ──────────────────────────────────────────────────────────

    def statistics(self) -> Dict[str, Any]:
        points = self.points()

        distribution = {o.value: 0 for o in Outcome}
        school_counts: Counter = Counter()
        terrain_counts: Counter = Counter()
        for p in points:
            distribution[Outcome(p.outcome).value] += 1
            school_counts[category_value(p.primary.school)] += 1
            school_counts[category_value(p.secondary.school)] += 1
            terrain_counts[category_value(p.context.terrain)] += 1

        return {
            "total": len(points),
            "outcome_distribution": distribution,
            "school_counts": dict(school_counts),
            "terrain_counts": dict(terrain_counts),
            "metrics": {
                name: self._metric_summary([p.metrics.to_dict()[name] for p in points])
                for name in METRIC_NAMES
            },
        }

    @staticmethod
    def _metric_summary(values: List[float]) -> Optional[Dict[str, float]]:
        if not values:
            return None
        return {
            "min": min(values),
            "max": max(values),
            "average": sum(values) / len(values),
        }

    def summary(self) -> Dict[str, Any]:
        points = self.points()
        spells = sorted({name for p in points for name in (p.primary.name, p.secondary.name)})
        classes = sorted({str(category_value(p.actor.actor_class)) for p in points})
        date_range = None
        if points:
            stamps = [p.timestamp for p in points]
            date_range = {"start": min(stamps), "end": max(stamps)}
        return {
            "dataset_size": len(points),
            "unique_spells": spells,
            "unique_actor_classes": classes,
            "date_range": date_range,
        }

    # ──────────────────────────────────────────────────────────
    # EXPORT
    # ──────────────────────────────────────────────────────────

    def export(self, fmt: str = "json") -> str:
        fmt = (fmt or "").lower()
        points = self.points()
        if fmt == "json":
            return json.dumps({"size": len(points), "points": [p.to_dict() for p in points]}, indent=2)
        if fmt == "csv":
            buffer = io.StringIO()
            writer = csv.writer(buffer, lineterminator="\n")
            writer.writerow(CSV_HEADER)
            for p in points:
                writer.writerow(flat_row(p))
            return buffer.getvalue().rstrip("\n")
        raise ValueError(f"Unsupported export format '{fmt}' (expected json or csv)")


def flat_row(point: TrainingDataPoint) -> List[Any]:
    """CSV row in CSV_HEADER order; categories encoded, outcome as ordinal label."""
    # Late import to avoid circular dependency
    from .features import FeatureExtractor

    extractor = FeatureExtractor()
    row: List[Any] = extractor.extract_training_row(point)
    # Levels and codes are integral; keep them unpadded in the CSV
    row[:8] = [int(v) for v in row[:8]]
    return row + [int(extractor.extract_label(point))]

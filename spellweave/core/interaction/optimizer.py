"""
Dataset Optimizer — Offline Corpus Preparation Before Training
================================================================
Pipeline (optimize):
  1. remove_duplicates  — stricter than the corpus's own dedup: identity is
                          (primary name, secondary name, actor class, full context)
  2. balance_dataset    — undersample each interaction-type bucket to the
                          smallest bucket; one empty type empties the set
                          (ignore_empty_buckets=True uses the smallest
                          non-empty bucket instead)
  3. engineer_features  — level difference, actor level factor (level / 20),
                          symmetric school-compatibility sub-score (default 0.5)
  4. normalize          — compatibility score rescaled to [0, 1]

quality_report() summarizes any dataset without modifying it.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .corpus import TrainingDataPoint
from .models import InteractionType, SCORE_MAX, category_key, category_value

logger = logging.getLogger(__name__)

ACTOR_LEVEL_SCALE = 20.0
DEFAULT_SCHOOL_COMPATIBILITY = 0.5

# Looked up in both directions
SCHOOL_PAIR_COMPATIBILITY: Dict[str, Dict[str, float]] = {
    "evocation": {"abjuration": 0.7, "conjuration": 0.6},
    "illusion": {"enchantment": 0.8, "divination": 0.5},
}

BUCKET_ORDER = (InteractionType.SYNERGY, InteractionType.NEUTRAL, InteractionType.CONFLICT)


def pair_compatibility(school_a, school_b) -> float:
    a, b = category_key(school_a), category_key(school_b)
    forward = SCHOOL_PAIR_COMPATIBILITY.get(a, {}).get(b)
    if forward is not None:
        return forward
    backward = SCHOOL_PAIR_COMPATIBILITY.get(b, {}).get(a)
    return DEFAULT_SCHOOL_COMPATIBILITY if backward is None else backward


@dataclass(frozen=True)
class PreparedSample:
    point: TrainingDataPoint
    engineered: Dict[str, float] = field(default_factory=dict)
    normalized_score: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "point": self.point.to_dict(),
            "engineered_features": dict(self.engineered),
            "normalized_score": self.normalized_score,
        }


def _identity(point: TrainingDataPoint) -> Tuple:
    ctx = point.context
    return (
        point.primary.name,
        point.secondary.name,
        category_key(point.actor.actor_class),
        category_key(ctx.terrain),
        category_key(ctx.combat_difficulty),
        tuple(ctx.party_composition),
    )


class DatasetOptimizer:

    def __init__(self, ignore_empty_buckets: bool = False):
        self.ignore_empty_buckets = ignore_empty_buckets

    def remove_duplicates(self, dataset: Sequence[TrainingDataPoint]) -> List[TrainingDataPoint]:
        """First occurrence wins."""
        seen = set()
        unique: List[TrainingDataPoint] = []
        for point in dataset:
            key = _identity(point)
            if key in seen:
                continue
            seen.add(key)
            unique.append(point)
        return unique

    def balance_dataset(self, dataset: Sequence[TrainingDataPoint]) -> List[TrainingDataPoint]:
        buckets: Dict[InteractionType, List[TrainingDataPoint]] = {t: [] for t in BUCKET_ORDER}
        for point in dataset:
            buckets[InteractionType(point.interaction_type)].append(point)

        sizes = {t.value: len(b) for t, b in buckets.items()}
        candidates = [n for n in sizes.values() if n or not self.ignore_empty_buckets]
        keep = min(candidates) if candidates else 0
        if keep == 0:
            logger.warning(f"Balancing produced no data: bucket sizes {sizes}")
            return []

        balanced: List[TrainingDataPoint] = []
        for interaction_type in BUCKET_ORDER:
            balanced.extend(buckets[interaction_type][:keep])
        return balanced

    def engineer_features(self, dataset: Sequence[TrainingDataPoint]) -> List[PreparedSample]:
        return [
            PreparedSample(
                point=point,
                engineered={
                    "spell_level_difference": float(abs(point.primary.level - point.secondary.level)),
                    "actor_level_factor": point.actor.level / ACTOR_LEVEL_SCALE,
                    "school_compatibility_score": pair_compatibility(
                        point.primary.school, point.secondary.school
                    ),
                },
            )
            for point in dataset
        ]

    def normalize(self, samples: Sequence[PreparedSample]) -> List[PreparedSample]:
        normalized: List[PreparedSample] = []
        for sample in samples:
            score = sample.point.compatibility_score
            normalized.append(
                replace(sample, normalized_score=None if score is None else score / SCORE_MAX)
            )
        return normalized

    def optimize(self, dataset: Sequence[TrainingDataPoint]) -> List[PreparedSample]:
        unique = self.remove_duplicates(dataset)
        balanced = self.balance_dataset(unique)
        prepared = self.normalize(self.engineer_features(balanced))
        logger.info(
            f"Dataset optimized: {len(dataset)} → {len(unique)} unique → {len(prepared)} balanced"
        )
        return prepared

    # ──────────────────────────────────────────────────────────
    # REPORT
    # ──────────────────────────────────────────────────────────

    def quality_report(self, dataset: Sequence[TrainingDataPoint]) -> Dict[str, Any]:
        distribution = {t.value: 0 for t in BUCKET_ORDER}
        for point in dataset:
            distribution[InteractionType(point.interaction_type).value] += 1
        return {
            "total_data_points": len(dataset),
            "interaction_type_distribution": distribution,
            "unique_spell_combinations": len({(p.primary.name, p.secondary.name) for p in dataset}),
            "unique_actor_classes": len({category_value(p.actor.actor_class) for p in dataset}),
        }

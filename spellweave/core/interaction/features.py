"""
Feature Extractor — Numeric Vectors for the Prediction Ensemble
=================================================================
Base vector (used for both training and inference):

  [primary level, secondary level, primary school, secondary school,
   actor level, actor class, terrain, combat difficulty]

The training-row variant appends the three performance metrics; it is what the
CSV export writes. Regressors are fitted on the base vector only, because the
metrics are not known at prediction time.

Label convention: ordinal outcome — failure 0, neutral 1, success 2.
"""

from typing import List

from .corpus import OUTCOME_LABELS, TrainingDataPoint
from .encoders import encode_class, encode_difficulty, encode_school, encode_terrain
from .models import ActorDescriptor, EnvironmentalContext, Outcome, SpellDescriptor

FEATURE_NAMES = [
    "primary_spell_level", "secondary_spell_level",
    "primary_spell_school", "secondary_spell_school",
    "actor_level", "actor_class",
    "terrain", "combat_difficulty",
]
TRAINING_FEATURE_NAMES = FEATURE_NAMES + ["damage_dealt", "resource_efficiency", "tactical_advantage"]

LABEL_MIN = float(min(OUTCOME_LABELS.values()))
LABEL_MAX = float(max(OUTCOME_LABELS.values()))


class FeatureExtractor:

    def extract(
        self,
        primary: SpellDescriptor,
        secondary: SpellDescriptor,
        actor: ActorDescriptor,
        context: EnvironmentalContext,
    ) -> List[float]:
        return [
            float(primary.level),
            float(secondary.level),
            float(encode_school(primary.school)),
            float(encode_school(secondary.school)),
            float(actor.level),
            float(encode_class(actor.actor_class)),
            float(encode_terrain(context.terrain)),
            float(encode_difficulty(context.combat_difficulty)),
        ]

    def extract_point(self, point: TrainingDataPoint) -> List[float]:
        return self.extract(point.primary, point.secondary, point.actor, point.context)

    def extract_training_row(self, point: TrainingDataPoint) -> List[float]:
        return self.extract_point(point) + [float(v) for v in point.metrics.as_list()]

    def extract_label(self, point: TrainingDataPoint) -> float:
        return float(OUTCOME_LABELS[Outcome(point.outcome)])

    @staticmethod
    def label_to_outcome(value: float) -> Outcome:
        """Nearest ordinal label for a continuous regressor output."""
        label = int(round(min(max(value, LABEL_MIN), LABEL_MAX)))
        for outcome, code in OUTCOME_LABELS.items():
            if code == label:
                return outcome
        return Outcome.NEUTRAL

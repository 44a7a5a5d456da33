"""
Spell Interaction Engine — API Endpoints
==========================================
FastAPI router exposing the InteractionOrchestrator.

Analysis:
  POST   /analyze             — Rule + plugin analysis (memoized)
  POST   /predict             — Final, confidence-gated prediction
  POST   /estimate            — Raw learned outcome estimate
  POST   /complexity          — Casting complexity in [0, 1]
  GET    /plugins             — Registered plugins in execution order

Cache:
  GET    /cache/stats         — Entry count, size estimate, hits/misses, prediction memo
  DELETE /cache               — Drop every memoized analysis and prediction

Corpus:
  POST   /corpus/records      — Record labelled outcomes
  POST   /corpus/synthetic    — Seed with synthetic labelled data
  GET    /corpus/statistics   — Distribution, counts, metric ranges
  GET    /corpus/summary      — Size, unique spells/classes, date range
  GET    /corpus/export       — ?format=json|csv
  POST   /corpus/quality      — Dataset quality report

Training:
  POST   /train               — Schedule optimize + train (background)
  POST   /train/cancel        — Stop the running job between epochs
  GET    /train/status        — Last training report

Health:
  GET    /health              — Component status

Handlers are plain def (run in the threadpool): scoring and training are CPU-bound.

Integration (in main.py):
  from spellweave.api.router import api_router
  app.include_router(api_router, prefix="/api/v1")
"""

import logging
import time
from typing import Any, Dict, List, Optional, Tuple

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from fastapi.responses import PlainTextResponse, Response
from pydantic import BaseModel, Field

from spellweave.core.interaction.corpus import PerformanceMetrics, TrainingDataPoint
from spellweave.core.interaction.models import (
    ActorDescriptor,
    EnvironmentalContext,
    Outcome,
    SpellDescriptor,
)

logger = logging.getLogger(__name__)
router = APIRouter()


# ═══════════════════════════════════════════════════════════════
# ORCHESTRATOR FACTORY (lazy singleton)
# ═══════════════════════════════════════════════════════════════

_components: Dict[str, Any] = {}


def get_orchestrator():
    """
    Create or retrieve the process-wide InteractionOrchestrator.
    Cache and corpus live in memory, so every request must share one instance.
    """
    if "orchestrator" not in _components:
        from spellweave.core.interaction.orchestrator import InteractionOrchestrator
        _components["orchestrator"] = InteractionOrchestrator()
    return _components["orchestrator"]


# ═══════════════════════════════════════════════════════════════
# REQUEST / RESPONSE SCHEMAS
# ═══════════════════════════════════════════════════════════════

class SpellModel(BaseModel):
    name: str = Field(..., min_length=1)
    school: str = Field(..., description="Evocation|Abjuration|Illusion|Necromancy|Conjuration|Transmutation|Divination|Enchantment")
    level: int = Field(default=0, ge=0, le=9)
    tags: List[str] = []
    resource_cost: Optional[float] = Field(default=None, ge=0)

    def to_descriptor(self) -> SpellDescriptor:
        return SpellDescriptor(
            name=self.name,
            school=self.school,
            level=self.level,
            tags=frozenset(self.tags),
            resource_cost=self.resource_cost,
        )


class ActorModel(BaseModel):
    actor_id: str = Field(..., min_length=1)
    actor_class: str
    level: int = Field(default=1, ge=1, le=20)
    ability_scores: Dict[str, int] = {}
    specialization: Optional[str] = None
    resource_capacity: Optional[float] = Field(default=None, ge=0)
    traits: List[str] = []

    def to_descriptor(self) -> ActorDescriptor:
        return ActorDescriptor(
            actor_id=self.actor_id,
            actor_class=self.actor_class,
            level=self.level,
            ability_scores=dict(self.ability_scores),
            specialization=self.specialization,
            resource_capacity=self.resource_capacity,
            traits=tuple(self.traits),
        )


class ContextModel(BaseModel):
    terrain: str = Field(..., description="urban|wilderness|dungeon|open-field")
    combat_difficulty: str = Field(..., description="easy|moderate|challenging|extreme")
    party_composition: List[str] = []

    def to_descriptor(self) -> EnvironmentalContext:
        return EnvironmentalContext(
            terrain=self.terrain,
            combat_difficulty=self.combat_difficulty,
            party_composition=tuple(self.party_composition),
        )


class InteractionRequest(BaseModel):
    primary_spell: SpellModel
    secondary_spell: SpellModel
    actor: ActorModel
    context: ContextModel

    def descriptors(self) -> Tuple[SpellDescriptor, SpellDescriptor, ActorDescriptor, EnvironmentalContext]:
        return (
            self.primary_spell.to_descriptor(),
            self.secondary_spell.to_descriptor(),
            self.actor.to_descriptor(),
            self.context.to_descriptor(),
        )


class MetricsModel(BaseModel):
    damage_dealt: float = 0.0
    resource_efficiency: float = 0.0
    tactical_advantage: float = 0.0


class TrainingPointModel(InteractionRequest):
    outcome: Outcome
    performance_metrics: MetricsModel = MetricsModel()
    timestamp: Optional[float] = None

    def to_point(self) -> TrainingDataPoint:
        primary, secondary, actor, context = self.descriptors()
        return TrainingDataPoint(
            primary=primary,
            secondary=secondary,
            actor=actor,
            context=context,
            outcome=self.outcome,
            metrics=PerformanceMetrics(**self.performance_metrics.model_dump()),
            timestamp=self.timestamp if self.timestamp is not None else time.time(),
        )


class RecordRequest(BaseModel):
    points: List[TrainingPointModel] = Field(..., min_length=1)


class SyntheticRequest(BaseModel):
    count: int = Field(default=200, ge=1, le=10000)
    seed: Optional[int] = None


class AnalysisResponse(BaseModel):
    compatibility_score: float
    interaction_type: str
    contextual_effectiveness: Dict[str, float]
    potential_outcomes: List[str]
    risk_factors: List[str]


class AnalyzeResponse(BaseModel):
    analysis: AnalysisResponse
    combo_suggestions: List[Dict[str, Any]] = []
    plugins_applied: List[str] = []


class PredictResponse(AnalyzeResponse):
    source: str = "rules_only"
    recorded: bool = False
    timing: Dict[str, float] = {}


class HealthResponse(BaseModel):
    status: str
    components: Dict[str, Any]
    version: str
    uptime_seconds: Optional[float] = None


# ═══════════════════════════════════════════════════════════════
# ENDPOINTS — ANALYSIS
# ═══════════════════════════════════════════════════════════════

_start_time = time.time()


@router.post("/analyze", response_model=AnalyzeResponse)
def analyze_interaction(request: InteractionRequest, engine=Depends(get_orchestrator)):
    """Base rules + plugins for one spell pair. Memoized per (spells, actor, terrain, difficulty)."""
    entry = engine.analyze(*request.descriptors())
    return AnalyzeResponse(**entry.to_dict())


@router.post("/predict", response_model=PredictResponse)
def predict_interaction(request: InteractionRequest, engine=Depends(get_orchestrator)):
    """
    Final prediction: cached analysis, sharpened by the trained ensemble when
    its confidence for the school and terrain is high enough.
    """
    bundle = engine.predict(*request.descriptors())
    return PredictResponse(**bundle.to_dict())


@router.post("/estimate")
def estimate_outcome(request: InteractionRequest, engine=Depends(get_orchestrator)):
    return engine.estimate(*request.descriptors()).to_dict()


@router.post("/complexity")
def interaction_complexity(request: InteractionRequest, engine=Depends(get_orchestrator)):
    return engine.complexity(*request.descriptors())


@router.get("/plugins")
def list_plugins(engine=Depends(get_orchestrator)):
    plugins = engine.registry.list_plugins()
    return {"plugins": plugins, "count": len(plugins)}


# ═══════════════════════════════════════════════════════════════
# ENDPOINTS — CACHE
# ═══════════════════════════════════════════════════════════════

@router.get("/cache/stats")
def cache_stats(engine=Depends(get_orchestrator)):
    return {**engine.cache.stats(), "predictions": engine.predictions.stats()}


@router.delete("/cache")
def clear_cache(engine=Depends(get_orchestrator)):
    cleared = engine.clear_caches()
    return {"cleared": cleared["analyses"], "predictions_cleared": cleared["predictions"]}


# ═══════════════════════════════════════════════════════════════
# ENDPOINTS — CORPUS
# ═══════════════════════════════════════════════════════════════

@router.post("/corpus/records")
def record_outcomes(request: RecordRequest, engine=Depends(get_orchestrator)):
    recorded = engine.record([p.to_point() for p in request.points])
    return {"recorded": recorded, "corpus_size": engine.corpus.size()}


@router.post("/corpus/synthetic")
def seed_synthetic(request: SyntheticRequest, engine=Depends(get_orchestrator)):
    recorded = engine.seed_synthetic(request.count, seed=request.seed)
    return {"recorded": recorded, "corpus_size": engine.corpus.size()}


@router.get("/corpus/statistics")
def corpus_statistics(engine=Depends(get_orchestrator)):
    return engine.corpus.statistics()


@router.get("/corpus/summary")
def corpus_summary(engine=Depends(get_orchestrator)):
    return engine.corpus.summary()


@router.get("/corpus/export")
def export_corpus(
    format: str = Query("json", description="Export format: json|csv"),
    engine=Depends(get_orchestrator),
):
    try:
        payload = engine.corpus.export(format)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if format.lower() == "csv":
        return PlainTextResponse(payload, media_type="text/csv")
    return Response(content=payload, media_type="application/json")


@router.post("/corpus/quality")
def corpus_quality(engine=Depends(get_orchestrator)):
    return engine.quality_report()


# ═══════════════════════════════════════════════════════════════
# ENDPOINTS — TRAINING
# ═══════════════════════════════════════════════════════════════

@router.post("/train", status_code=202)
def schedule_training(background_tasks: BackgroundTasks, engine=Depends(get_orchestrator)):
    """Queue optimize + train. Training never runs on the request path."""
    if engine.is_training:
        raise HTTPException(status_code=409, detail="Training already in progress")
    size = engine.corpus.size()
    if size == 0:
        raise HTTPException(status_code=400, detail="Training corpus is empty")

    background_tasks.add_task(engine.train)
    logger.info(f"Training scheduled on {size} corpus points")
    return {"status": "scheduled", "corpus_size": size}


@router.post("/train/cancel")
def cancel_training(engine=Depends(get_orchestrator)):
    return {"cancelled": engine.cancel_training()}


@router.get("/train/status")
def training_status(engine=Depends(get_orchestrator)):
    report = engine.last_training
    return {
        "in_progress": engine.is_training,
        "model_trained": engine.ensemble.is_trained,
        "last_training": report.to_dict() if report else None,
    }


# ═══════════════════════════════════════════════════════════════
# ENDPOINTS — HEALTH
# ═══════════════════════════════════════════════════════════════

@router.get("/health", response_model=HealthResponse)
def interaction_health(engine=Depends(get_orchestrator)):
    """Engine health check — reports status of all components."""
    return HealthResponse(
        status="healthy",
        components=engine.health(),
        version="1.0.0",
        uptime_seconds=round(time.time() - _start_time, 1),
    )

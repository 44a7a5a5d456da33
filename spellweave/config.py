"""
Application Settings — All via environment variables with sensible defaults.
"""
import os
from typing import List


class Settings:
    # ── Server ──
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8002"))
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # ── CORS ──
    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "http://localhost:3000,*")

    # ── Training Corpus ──
    CORPUS_MAX_SIZE: int = int(os.getenv("CORPUS_MAX_SIZE", "10000"))
    # 0 = trim exactly to the bound; >0 = drop that fraction of the oldest points at once
    CORPUS_EVICTION_FRACTION: float = float(os.getenv("CORPUS_EVICTION_FRACTION", "0.0"))

    # ── Prediction Ensemble ──
    ENSEMBLE_BACKENDS: str = os.getenv("ENSEMBLE_BACKENDS", "linear,neural")
    NEURAL_EPOCHS: int = int(os.getenv("NEURAL_EPOCHS", "50"))
    NEURAL_LEARNING_RATE: float = float(os.getenv("NEURAL_LEARNING_RATE", "0.01"))
    NEURAL_HIDDEN_UNITS: int = int(os.getenv("NEURAL_HIDDEN_UNITS", "16"))
    NEURAL_BATCH_SIZE: int = int(os.getenv("NEURAL_BATCH_SIZE", "32"))
    LINEAR_RIDGE_ALPHA: float = float(os.getenv("LINEAR_RIDGE_ALPHA", "1.0"))
    RANDOM_SEED: int = int(os.getenv("RANDOM_SEED", "42"))

    # ── Feature Flags ──
    ENABLE_BUILTIN_PLUGINS: bool = os.getenv("ENABLE_BUILTIN_PLUGINS", "true").lower() == "true"
    ENABLE_OUTCOME_RECORDING: bool = os.getenv("ENABLE_OUTCOME_RECORDING", "true").lower() == "true"

    # ── Dataset Optimizer ──
    # false = balance to the smallest bucket (one empty interaction type empties the set)
    BALANCE_IGNORE_EMPTY_BUCKETS: bool = os.getenv("BALANCE_IGNORE_EMPTY_BUCKETS", "false").lower() == "true"

    # ── Prediction Cache ──
    PREDICTION_CACHE_TTL_SECONDS: float = float(os.getenv("PREDICTION_CACHE_TTL_SECONDS", "86400"))
    PREDICTION_CACHE_MAX_ENTRIES: int = int(os.getenv("PREDICTION_CACHE_MAX_ENTRIES", "10000"))

    @property
    def ensemble_backends(self) -> List[str]:
        return [b.strip() for b in self.ENSEMBLE_BACKENDS.split(",") if b.strip()]


settings = Settings()

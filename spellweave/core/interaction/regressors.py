"""
Regressors — Pluggable Learned-Model Backends
===============================================
Every backend implements the same two-method Regressor interface, so the
ensemble never knows which library or algorithm sits behind a prediction.

Backends (scikit-learn estimators behind a StandardScaler):
  linear  — sklearn.linear_model.Ridge
  neural  — sklearn.neural_network.MLPRegressor (one tanh hidden layer),
            driven one epoch at a time through partial_fit

Training is the only long-running operation in the engine. The neural backend
checks the optional cancel event between epochs and raises TrainingCancelled;
callers keep their previous model when that happens.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Sequence

import numpy as np
from sklearn.exceptions import NotFittedError
from sklearn.linear_model import Ridge
from sklearn.neural_network import MLPRegressor
from sklearn.pipeline import Pipeline, make_pipeline
from sklearn.preprocessing import StandardScaler

logger = logging.getLogger(__name__)

__all__ = [
    "LinearRegressor",
    "NeuralRegressor",
    "NotFittedError",
    "REGRESSOR_BACKENDS",
    "Regressor",
    "RegressorFactory",
    "TrainingCancelled",
    "build_regressor_factories",
]


class TrainingCancelled(Exception):
    """Raised between epochs when a training job is cancelled."""


def _as_training_arrays(features: Sequence[Sequence[float]], labels: Sequence[float]):
    X = np.asarray(features, dtype=float)
    y = np.asarray(labels, dtype=float)
    if X.ndim != 2 or X.shape[0] == 0:
        raise ValueError("features must be a non-empty 2-D array")
    if y.shape != (X.shape[0],):
        raise ValueError(f"labels length {y.shape} does not match {X.shape[0]} feature rows")
    return X, y


def _as_row(features: Sequence[float]) -> np.ndarray:
    return np.asarray(features, dtype=float).reshape(1, -1)


# ═══════════════════════════════════════════════════════════════
# INTERFACE
# ═══════════════════════════════════════════════════════════════

class Regressor(ABC):
    name: str = "regressor"

    @abstractmethod
    def train(
        self,
        features: Sequence[Sequence[float]],
        labels: Sequence[float],
        cancel: Optional[threading.Event] = None,
    ) -> None:
        ...

    @abstractmethod
    def predict(self, features: Sequence[float]) -> float:
        ...

    def describe(self) -> Dict[str, object]:
        return {"name": self.name}


# ═══════════════════════════════════════════════════════════════
# LINEAR (RIDGE)
# ═══════════════════════════════════════════════════════════════

class LinearRegressor(Regressor):
    name = "linear"

    def __init__(self, alpha: float = 1.0):
        self.alpha = alpha
        self._model: Optional[Pipeline] = None

    def train(self, features, labels, cancel=None) -> None:
        X, y = _as_training_arrays(features, labels)
        model = make_pipeline(StandardScaler(), Ridge(alpha=self.alpha))
        model.fit(X, y)
        self._model = model

    def predict(self, features) -> float:
        if self._model is None:
            raise NotFittedError("LinearRegressor has not been trained")
        return float(self._model.predict(_as_row(features))[0])

    def describe(self):
        return {"name": self.name, "alpha": self.alpha, "fitted": self._model is not None}


# ═══════════════════════════════════════════════════════════════
# NEURAL (MLP)
# ═══════════════════════════════════════════════════════════════

class NeuralRegressor(Regressor):
    name = "neural"

    def __init__(
        self,
        hidden_units: int = 16,
        epochs: int = 50,
        learning_rate: float = 0.01,
        batch_size: int = 32,
        seed: int = 42,
    ):
        self.hidden_units = hidden_units
        self.epochs = epochs
        self.learning_rate = learning_rate
        self.batch_size = batch_size
        self.seed = seed
        self.loss_history: List[float] = []
        self._scaler: Optional[StandardScaler] = None
        self._model: Optional[MLPRegressor] = None

    def train(self, features, labels, cancel=None) -> None:
        X, y = _as_training_arrays(features, labels)
        scaler = StandardScaler().fit(X)
        Xs = scaler.transform(X)
        model = MLPRegressor(
            hidden_layer_sizes=(self.hidden_units,),
            activation="tanh",
            solver="adam",
            learning_rate_init=self.learning_rate,
            batch_size=min(self.batch_size, len(y)),
            random_state=self.seed,
        )

        for epoch in range(self.epochs):
            if cancel is not None and cancel.is_set():
                raise TrainingCancelled(f"cancelled before epoch {epoch}")
            model.partial_fit(Xs, y)
            logger.debug(f"Epoch {epoch}: loss = {model.loss_:.5f}")

        # Published only after every epoch has run
        self._scaler = scaler
        self._model = model
        self.loss_history = list(model.loss_curve_)

    def predict(self, features) -> float:
        if self._model is None:
            raise NotFittedError("NeuralRegressor has not been trained")
        x = self._scaler.transform(_as_row(features))
        return float(self._model.predict(x)[0])

    def describe(self):
        return {
            "name": self.name,
            "layers": [None if self._scaler is None else int(self._scaler.n_features_in_), self.hidden_units, 1],
            "epochs": self.epochs,
            "final_loss": self.loss_history[-1] if self.loss_history else None,
            "fitted": self._model is not None,
        }


# ═══════════════════════════════════════════════════════════════
# BACKEND REGISTRY
# ═══════════════════════════════════════════════════════════════

RegressorFactory = Callable[[], Regressor]

REGRESSOR_BACKENDS: Dict[str, Callable[..., Regressor]] = {
    "linear": LinearRegressor,
    "neural": NeuralRegressor,
}


def build_regressor_factories(names: Sequence[str], **params) -> List[RegressorFactory]:
    """
    Resolve backend names to zero-arg factories. Unknown names are skipped with
    a warning. params are routed by prefix: linear_alpha → LinearRegressor(alpha=...).
    """
    factories: List[RegressorFactory] = []
    for raw in names:
        name = raw.strip().lower()
        if not name:
            continue
        backend = REGRESSOR_BACKENDS.get(name)
        if backend is None:
            logger.warning(f"Unknown regressor backend '{raw}', skipping")
            continue
        prefix = f"{name}_"
        kwargs = {k[len(prefix):]: v for k, v in params.items() if k.startswith(prefix)}
        factories.append(lambda backend=backend, kwargs=kwargs: backend(**kwargs))
    return factories

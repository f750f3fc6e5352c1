from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict

import numpy as np

from swimratio.errors import ModelFitFailed


# Predictor columns, in design-matrix order. zAgeF = zAge * Female.
PREDICTORS = ("zAge", "zAgeF")
TARGET = "zRatio"


class BaseAgeModel(ABC):
    """Regresses zRatio on (zAge, zAgeF).

    Implementations should:
    - build a fresh sklearn estimator in `_fit` (models are refit per fold)
    - raise ModelFitFailed rather than return NaN predictions
    """

    name: str
    version: str

    def __init__(self, *, seed: int = 0):
        self.seed = int(seed)
        self._est: Any = None

    @abstractmethod
    def _fit(self, X: np.ndarray, y: np.ndarray) -> Any:
        """Returns the fitted estimator."""
        raise NotImplementedError

    @abstractmethod
    def clone(self) -> "BaseAgeModel":
        """Unfitted copy with the same hyperparameters."""
        raise NotImplementedError

    def fit(self, X: np.ndarray, y: np.ndarray) -> "BaseAgeModel":
        X = np.asarray(X, dtype=float)
        y = np.asarray(y, dtype=float)
        try:
            self._est = self._fit(X, y)
        except (ValueError, np.linalg.LinAlgError, FloatingPointError) as e:
            raise ModelFitFailed(self.name, repr(e)) from e
        return self

    def predict(self, X: np.ndarray) -> np.ndarray:
        if self._est is None:
            raise RuntimeError("Model not fit")
        pred = np.asarray(self._est.predict(np.asarray(X, dtype=float)), dtype=float).ravel()
        if not np.all(np.isfinite(pred)):
            raise ModelFitFailed(self.name, "non-finite predictions")
        return pred

    def diagnostics(self) -> Dict[str, Any]:
        return {"model": self.name, "version": self.version, "seed": self.seed}

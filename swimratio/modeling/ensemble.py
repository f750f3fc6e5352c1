from __future__ import annotations

import logging
from typing import Dict, List, Sequence, Tuple

import numpy as np

from swimratio.errors import ModelFitFailed
from swimratio.modeling.base import BaseAgeModel
from swimratio.modeling.metrics import rmse


logger = logging.getLogger(__name__)


def simplex_project(v: np.ndarray) -> np.ndarray:
    """Project onto the probability simplex: w>=0, sum w = 1.

    Deterministic O(d log d) algorithm.
    """
    v = np.asarray(v, dtype=float)
    if v.ndim != 1:
        raise ValueError("v must be 1D")

    n = v.shape[0]
    if n == 0:
        raise ValueError("empty vector")

    u = np.sort(v)[::-1]
    cssv = np.cumsum(u)
    rho = np.nonzero(u * np.arange(1, n + 1) > (cssv - 1))[0]
    if len(rho) == 0:
        # fallback: uniform
        return np.ones(n) / n
    rho = rho[-1]
    theta = (cssv[rho] - 1.0) / float(rho + 1)
    w = np.maximum(v - theta, 0.0)

    s = w.sum()
    if s <= 0:
        return np.ones(n) / n
    return w / s


def fit_ensemble_weights(
    base_mu: np.ndarray,
    y: np.ndarray,
    *,
    lr: float = 0.2,
    steps: int = 1000,
    zero_tol: float = 1e-9,
) -> np.ndarray:
    """Fit non-negative weights that sum to 1.

    base_mu: shape (n_samples, n_models), out-of-fold predictions
    y: shape (n_samples,)

    Uses projected gradient descent on MSE. A weight of exactly 0 means the
    member adds nothing the others don't already explain.
    """
    X = np.asarray(base_mu, dtype=float)
    y = np.asarray(y, dtype=float)
    if X.ndim != 2:
        raise ValueError("base_mu must be 2D")
    if y.ndim != 1:
        raise ValueError("y must be 1D")
    if X.shape[0] != y.shape[0]:
        raise ValueError("mismatched rows")

    m = X.shape[1]
    w = np.ones(m) / m

    for _ in range(int(steps)):
        pred = X @ w
        grad = (2.0 / X.shape[0]) * (X.T @ (pred - y))
        w = simplex_project(w - float(lr) * grad)

    # Round-off residue from the projection is not a real contribution.
    w = np.where(w < zero_tol, 0.0, w)
    return w / w.sum()


def out_of_fold_predictions(
    model: BaseAgeModel,
    X: np.ndarray,
    y: np.ndarray,
    folds: Sequence[Tuple[np.ndarray, np.ndarray]],
) -> np.ndarray:
    oof = np.full(len(y), np.nan)
    for fold_i, (tr, te) in enumerate(folds, start=1):
        try:
            # Fit fresh each fold
            oof[te] = model.clone().fit(X[tr], y[tr]).predict(X[te])
        except ModelFitFailed as e:
            raise ModelFitFailed(model.name, f"fold {fold_i}: {e.reason}") from e
    if not np.all(np.isfinite(oof)):
        raise ModelFitFailed(model.name, "folds did not cover every training row")
    return oof


class StackedEnsemble:
    """Non-negative linear blend of base models.

    Weights are fit on out-of-fold predictions; members are then refit on the
    whole training set and blended with those weights.
    """

    def __init__(self, members: Sequence[BaseAgeModel]):
        if not members:
            raise ValueError("need at least one member")
        names = [m.name for m in members]
        if len(set(names)) != len(names):
            raise ValueError(f"duplicate member names: {names}")
        self.members: List[BaseAgeModel] = list(members)
        self.weights: Dict[str, float] = {}
        self.cv_rmse: Dict[str, float] = {}
        self._fitted: List[BaseAgeModel] = []

    @property
    def names(self) -> List[str]:
        return [m.name for m in self.members]

    def fit(self, X: np.ndarray, y: np.ndarray, folds: Sequence[Tuple[np.ndarray, np.ndarray]]) -> "StackedEnsemble":
        X = np.asarray(X, dtype=float)
        y = np.asarray(y, dtype=float)

        oof = np.column_stack([out_of_fold_predictions(m, X, y, folds) for m in self.members])
        self.cv_rmse = {name: rmse(y, oof[:, j]) for j, name in enumerate(self.names)}

        w = fit_ensemble_weights(oof, y)
        self.weights = {name: float(w[j]) for j, name in enumerate(self.names)}
        logger.debug(f"Stack weights: {self.weights} (cv rmse {self.cv_rmse})")

        self._fitted = [m.clone().fit(X, y) for m in self.members]
        return self

    def member_predictions(self, X: np.ndarray) -> Dict[str, np.ndarray]:
        if not self._fitted:
            raise RuntimeError("Ensemble not fit")
        return {m.name: m.predict(X) for m in self._fitted}

    def blend(self, member_preds: Dict[str, np.ndarray]) -> np.ndarray:
        return np.sum([self.weights[name] * np.asarray(member_preds[name]) for name in self.names], axis=0)

    def predict(self, X: np.ndarray) -> np.ndarray:
        return self.blend(self.member_predictions(X))

from __future__ import annotations

import warnings
from typing import Any, Dict

import numpy as np
from scipy.interpolate import CubicSpline
from sklearn.base import BaseEstimator, TransformerMixin
from sklearn.compose import ColumnTransformer
from sklearn.exceptions import ConvergenceWarning
from sklearn.linear_model import Ridge
from sklearn.neural_network import MLPRegressor
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import PolynomialFeatures

from swimratio.errors import ModelFitFailed
from swimratio.modeling.base import PREDICTORS, BaseAgeModel
from swimratio.modeling.types import ModelSpec, NeuralNetSpec, PolynomialSpec, SplineSpec


class NaturalCubicSpline(TransformerMixin, BaseEstimator):
    """Natural cubic spline basis for one column.

    df + 1 knots at quantiles of the distinct values (df - 1 interior); the
    curve is cubic between the boundary knots with zero second derivative at
    both, and linear beyond them. Emits df columns: the basis sums to one, so
    the first column is dropped and the downstream intercept stands in for it.
    """

    def __init__(self, df: int = 4):
        self.df = df

    def fit(self, X, y=None):
        x = np.asarray(X, dtype=float).reshape(-1)
        values = np.unique(x)
        n_knots = int(self.df) + 1
        if values.shape[0] < n_knots:
            raise ValueError(f"need {n_knots} distinct values for {n_knots} knots, got {values.shape[0]}")
        self.knots_ = np.quantile(values, np.linspace(0.0, 1.0, n_knots))
        # Column j is the natural spline through (knot_j = 1, other knots = 0).
        self.spline_ = CubicSpline(self.knots_, np.eye(n_knots), bc_type="natural")
        return self

    def transform(self, X):
        x = np.asarray(X, dtype=float).reshape(-1)
        lo, hi = self.knots_[0], self.knots_[-1]
        basis = self.spline_(np.clip(x, lo, hi))
        below, above = x < lo, x > hi
        if below.any():
            basis[below] = self.spline_(lo) + np.outer(x[below] - lo, self.spline_(lo, 1))
        if above.any():
            basis[above] = self.spline_(hi) + np.outer(x[above] - hi, self.spline_(hi, 1))
        return basis[:, 1:]


def _per_predictor(make_basis) -> ColumnTransformer:
    # Separate basis expansion for zAge and for zAgeF.
    return ColumnTransformer([(name, make_basis(), [i]) for i, name in enumerate(PREDICTORS)])


def _check_rank(design: np.ndarray, name: str) -> None:
    full = np.column_stack([np.ones(design.shape[0]), design])
    rank = int(np.linalg.matrix_rank(full))
    if rank < full.shape[1]:
        raise ModelFitFailed(name, f"singular design matrix (rank {rank} < {full.shape[1]} columns)")


class _BasisOLSModel(BaseAgeModel):
    """Fixed basis expansion followed by an unpenalized linear fit."""

    penalty: float = 0.0

    def _basis(self) -> ColumnTransformer:
        raise NotImplementedError

    def _fit(self, X: np.ndarray, y: np.ndarray) -> Any:
        _check_rank(self._basis().fit_transform(X), self.name)
        return Pipeline([
            ("basis", self._basis()),
            ("model", Ridge(alpha=self.penalty)),
        ]).fit(X, y)


class PolynomialAgeModel(_BasisOLSModel):
    name = "poly"
    version = "1"

    def __init__(self, *, degree: int = 3, seed: int = 0):
        super().__init__(seed=seed)
        self.degree = int(degree)

    def _basis(self) -> ColumnTransformer:
        return _per_predictor(lambda: PolynomialFeatures(degree=self.degree, include_bias=False))

    def clone(self) -> "PolynomialAgeModel":
        return PolynomialAgeModel(degree=self.degree, seed=self.seed)

    def diagnostics(self) -> Dict[str, Any]:
        return {**super().diagnostics(), "degree": self.degree}


class SplineAgeModel(_BasisOLSModel):
    """Natural cubic regression spline per predictor.

    `degrees_of_freedom` is the number of basis columns per predictor
    (intercept excluded): df + 1 quantile knots, df - 1 of them interior.
    """

    name = "spline"
    version = "1"

    def __init__(self, *, degrees_of_freedom: int = 4, seed: int = 0):
        super().__init__(seed=seed)
        self.degrees_of_freedom = int(degrees_of_freedom)

    def _basis(self) -> ColumnTransformer:
        return _per_predictor(lambda: NaturalCubicSpline(df=self.degrees_of_freedom))

    def clone(self) -> "SplineAgeModel":
        return SplineAgeModel(degrees_of_freedom=self.degrees_of_freedom, seed=self.seed)

    def diagnostics(self) -> Dict[str, Any]:
        return {**super().diagnostics(), "degrees_of_freedom": self.degrees_of_freedom}


class NeuralNetAgeModel(BaseAgeModel):
    """Single hidden layer, logistic units, linear output (nnet-style)."""

    name = "nnet"
    version = "1"

    def __init__(self, *, hidden_units: int = 10, epochs: int = 500, seed: int = 0):
        super().__init__(seed=seed)
        self.hidden_units = int(hidden_units)
        self.epochs = int(epochs)

    def _fit(self, X: np.ndarray, y: np.ndarray) -> Any:
        est = MLPRegressor(
            hidden_layer_sizes=(self.hidden_units,),
            activation="logistic",
            solver="lbfgs",
            alpha=0.0,  # no weight decay
            max_iter=self.epochs,
            random_state=self.seed,
        )
        # Hitting the epoch cap is expected; it is the configured budget.
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", category=ConvergenceWarning)
            est.fit(X, y)
        return est

    def clone(self) -> "NeuralNetAgeModel":
        return NeuralNetAgeModel(hidden_units=self.hidden_units, epochs=self.epochs, seed=self.seed)

    def diagnostics(self) -> Dict[str, Any]:
        return {**super().diagnostics(), "hidden_units": self.hidden_units, "epochs": self.epochs}


def build_model(spec: ModelSpec, *, seed: int = 0) -> BaseAgeModel:
    if isinstance(spec, NeuralNetSpec):
        return NeuralNetAgeModel(hidden_units=spec.hidden_units, epochs=spec.epochs, seed=seed)
    if isinstance(spec, PolynomialSpec):
        return PolynomialAgeModel(degree=spec.degree, seed=seed)
    if isinstance(spec, SplineSpec):
        return SplineAgeModel(degrees_of_freedom=spec.degrees_of_freedom, seed=seed)
    raise TypeError(f"Unknown model spec: {spec!r}")

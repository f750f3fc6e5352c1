from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Union

import pandas as pd


# Model variant names, in reporting order.
NNET = "nnet"
POLY = "poly"
SPLINE = "spline"
STACK = "stack"
AVERAGE = "average"

BASE_MODELS = (NNET, POLY, SPLINE)
MODEL_VARIANTS = (NNET, POLY, SPLINE, STACK, AVERAGE)


@dataclass(frozen=True)
class NeuralNetSpec:
    hidden_units: int = 10
    epochs: int = 500

    def __post_init__(self) -> None:
        if int(self.hidden_units) < 1:
            raise ValueError("hidden_units must be >= 1")
        if int(self.epochs) < 1:
            raise ValueError("epochs must be >= 1")


@dataclass(frozen=True)
class PolynomialSpec:
    degree: int = 3

    def __post_init__(self) -> None:
        if int(self.degree) < 1:
            raise ValueError("degree must be >= 1")


@dataclass(frozen=True)
class SplineSpec:
    # Cubic basis columns per predictor; needs at least 3 (two boundary knots).
    degrees_of_freedom: int = 4

    def __post_init__(self) -> None:
        if int(self.degrees_of_freedom) < 3:
            raise ValueError("degrees_of_freedom must be >= 3")


ModelSpec = Union[NeuralNetSpec, PolynomialSpec, SplineSpec]


@dataclass(frozen=True)
class ScaleParams:
    age_mean: float
    age_sd: float
    ratio_mean: float
    ratio_sd: float


@dataclass(frozen=True, eq=False)
class ReplicateResult:
    replicate: int
    seed: int

    rmse: Dict[str, float]  # test RMSE on the z scale, per MODEL_VARIANTS
    cv_rmse: Dict[str, float]  # out-of-fold RMSE per BASE_MODELS
    weights: Dict[str, float]  # blend weight per BASE_MODELS
    scale: ScaleParams

    # Age, Sex, Female + one column per MODEL_VARIANTS on the Ratio scale
    plot_data: pd.DataFrame = field(repr=False)


@dataclass(frozen=True)
class ReplicateOutcome:
    replicate: int
    seed: int
    result: Optional[ReplicateResult] = None
    skip_reason: Optional[str] = None

    @property
    def skipped(self) -> bool:
        return self.result is None


@dataclass(frozen=True)
class SummaryStat:
    mean: float
    lo: float
    hi: float

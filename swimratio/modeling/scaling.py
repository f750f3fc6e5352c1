from __future__ import annotations

import math

import numpy as np
import pandas as pd

from swimratio.errors import ModelFitFailed
from swimratio.modeling.types import ScaleParams


def _mean_sd(values: pd.Series, name: str) -> tuple[float, float]:
    x = np.asarray(values, dtype=float)
    if x.size < 2:
        raise ModelFitFailed("standardize", f"need >= 2 rows to scale {name}, got {x.size}")
    mean = float(np.mean(x))
    sd = float(np.std(x, ddof=1))
    if not math.isfinite(sd) or sd <= 0:
        raise ModelFitFailed("standardize", f"{name} has zero spread")
    return mean, sd


def fit_scale(df: pd.DataFrame) -> ScaleParams:
    """Mean / sample sd of Age and Ratio, computed once per replicate."""

    age_mean, age_sd = _mean_sd(df["Age"], "Age")
    ratio_mean, ratio_sd = _mean_sd(df["Ratio"], "Ratio")
    return ScaleParams(age_mean=age_mean, age_sd=age_sd, ratio_mean=ratio_mean, ratio_sd=ratio_sd)


def standardize(df: pd.DataFrame, scale: ScaleParams) -> pd.DataFrame:
    """Add zAge, zAgeF and (when Ratio is present) zRatio.

    The same `scale` must be reused for train, test and the prediction grid.
    """

    out = df.copy()
    out["zAge"] = (out["Age"].astype(float) - scale.age_mean) / scale.age_sd
    out["zAgeF"] = out["zAge"] * out["Female"].astype(float)
    if "Ratio" in out.columns:
        out["zRatio"] = (out["Ratio"] - scale.ratio_mean) / scale.ratio_sd
    return out


def to_ratio(z: np.ndarray, scale: ScaleParams) -> np.ndarray:
    return np.asarray(z, dtype=float) * scale.ratio_sd + scale.ratio_mean

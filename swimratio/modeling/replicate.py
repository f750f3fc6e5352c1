"""One bootstrap replicate: standardize, split, stack, predict.

Everything random in here is drawn from a single `numpy.random.Generator`
owned by the replicate; nothing touches global random state, so a replicate
is a pure function of (data, seed, config).
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Sequence

import numpy as np
import pandas as pd
from sklearn.model_selection import train_test_split

from swimratio.config import ReplicateConfig
from swimratio.errors import ModelFitFailed
from swimratio.modeling.base import PREDICTORS, TARGET
from swimratio.modeling.ensemble import StackedEnsemble
from swimratio.modeling.metrics import kfold_indices, rmse
from swimratio.modeling.scaling import fit_scale, standardize, to_ratio
from swimratio.modeling.sklearn_models import build_model
from swimratio.modeling.types import AVERAGE, STACK, ReplicateResult


logger = logging.getLogger(__name__)

_SEED_MAX = 2**31 - 1


def prediction_grid(ages: Sequence[int]) -> pd.DataFrame:
    """Age x Sex grid, males first."""

    rows = [{"Age": int(a), "Sex": sex, "Female": female} for female, sex in ((0, "M"), (1, "F")) for a in ages]
    return pd.DataFrame(rows, columns=["Age", "Sex", "Female"])


def _variant_predictions(ens: StackedEnsemble, X: np.ndarray) -> Dict[str, np.ndarray]:
    preds = ens.member_predictions(X)
    stack = ens.blend(preds)
    average = np.mean([preds[name] for name in ens.names], axis=0)
    preds[STACK] = stack
    preds[AVERAGE] = average
    return preds


def fit_replicate(
    df: pd.DataFrame,
    *,
    seed: int,
    config: ReplicateConfig | None = None,
    replicate: int = 0,
    rng: Optional[np.random.Generator] = None,
) -> ReplicateResult:
    """Fit the three candidates plus the stack on one (resampled) dataset.

    `df` needs Age, Female and Ratio (see `swimratio.data.prep.prepare`).
    Raises ModelFitFailed if any candidate cannot be fit.
    """

    config = config or ReplicateConfig()
    rng = rng if rng is not None else np.random.default_rng(seed)
    split_seed, fold_seed, model_seed = (int(s) for s in rng.integers(0, _SEED_MAX, size=3))

    # 1. scale once, on the replicate's own data
    scale = fit_scale(df)
    data = standardize(df, scale)

    # 2. train/test split
    try:
        train, test = train_test_split(data, test_size=float(config.test_fraction), random_state=split_seed)
    except ValueError as e:
        raise ModelFitFailed("split", repr(e), replicate=replicate) from e

    X_tr = train[list(PREDICTORS)].to_numpy(dtype=float)
    y_tr = train[TARGET].to_numpy(dtype=float)
    X_te = test[list(PREDICTORS)].to_numpy(dtype=float)
    y_te = test[TARGET].to_numpy(dtype=float)

    # 3-6. CV folds, candidates, stack
    folds = kfold_indices(len(train), n_folds=config.cv_folds, seed=fold_seed)
    members = [build_model(spec, seed=model_seed) for spec in (config.nnet, config.poly, config.spline)]
    ens = StackedEnsemble(members).fit(X_tr, y_tr, folds)

    # 7. held-out error per variant
    test_preds = _variant_predictions(ens, X_te)
    test_rmse = {name: rmse(y_te, p) for name, p in test_preds.items()}

    # 8. grid predictions on the Ratio scale
    grid = standardize(prediction_grid(config.grid_ages), scale)
    grid_preds = _variant_predictions(ens, grid[list(PREDICTORS)].to_numpy(dtype=float))
    plot_data = grid[["Age", "Sex", "Female"]].copy()
    for name, p in grid_preds.items():
        plot_data[name] = to_ratio(p, scale)

    logger.debug(f"Replicate {replicate} (seed {seed}): test rmse {test_rmse}, weights {ens.weights}")

    return ReplicateResult(
        replicate=int(replicate),
        seed=int(seed),
        rmse=test_rmse,
        cv_rmse=dict(ens.cv_rmse),
        weights=dict(ens.weights),
        scale=scale,
        plot_data=plot_data.reset_index(drop=True),
    )

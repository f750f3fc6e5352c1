from __future__ import annotations

from typing import List, Tuple

import numpy as np
from sklearn.model_selection import KFold

from swimratio.errors import ModelFitFailed


# -----------------
# metrics
# -----------------

def rmse(y: np.ndarray, yhat: np.ndarray) -> float:
    y = np.asarray(y, dtype=float)
    yhat = np.asarray(yhat, dtype=float)
    return float(np.sqrt(np.mean((y - yhat) ** 2)))


# -----------------
# folds
# -----------------

def kfold_indices(n: int, *, n_folds: int, seed: int) -> List[Tuple[np.ndarray, np.ndarray]]:
    """Shuffled K-fold (train_idx, test_idx) pairs, materialized up front.

    Raises ModelFitFailed when the data cannot fill every fold.
    """

    n = int(n)
    n_folds = int(n_folds)
    if n < n_folds:
        raise ModelFitFailed("cv", f"{n} training rows cannot fill {n_folds} folds")

    folds = list(KFold(n_splits=n_folds, shuffle=True, random_state=int(seed)).split(np.arange(n)))
    for tr, te in folds:
        if len(tr) == 0 or len(te) == 0:
            raise ModelFitFailed("cv", "empty fold")
    return folds

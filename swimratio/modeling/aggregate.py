from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Mapping, Sequence, Tuple

import numpy as np
import pandas as pd

from swimratio.errors import AggregationError
from swimratio.modeling.types import MODEL_VARIANTS, SummaryStat


KEY_COLUMNS = ("Age", "Sex")
_NON_MODEL_COLUMNS = {"Age", "Sex", "Female"}
_SEX_ORDER = {"M": 0, "F": 1}

SummaryKey = Tuple[int, str, str]  # (Age, Sex, model)


def _model_columns(grid: pd.DataFrame) -> List[str]:
    cols = [c for c in grid.columns if c not in _NON_MODEL_COLUMNS]
    order = {m: i for i, m in enumerate(MODEL_VARIANTS)}
    return sorted(cols, key=lambda c: (order.get(c, len(order)), c))


def _sorted_keys(grid: pd.DataFrame) -> pd.DataFrame:
    g = grid.copy()
    g["_sex_order"] = g["Sex"].map(_SEX_ORDER).fillna(len(_SEX_ORDER))
    return g.sort_values(["_sex_order", "Sex", "Age"], kind="mergesort").drop(columns="_sex_order").reset_index(drop=True)


def stack_grids(grids: Sequence[pd.DataFrame]) -> Tuple[List[Tuple[int, str]], List[str], np.ndarray]:
    """Align replicate grids into a (n_replicates, n_keys, n_models) array.

    Every grid must carry the same (Age, Sex) keys and the same model columns.
    """

    if len(grids) == 0:
        raise AggregationError("no replicate grids to aggregate")

    first = _sorted_keys(grids[0])
    models = _model_columns(first)
    keys = [(int(a), str(s)) for a, s in zip(first["Age"], first["Sex"])]
    if len(set(keys)) != len(keys):
        raise AggregationError("duplicate (Age, Sex) keys in replicate grid")

    values = np.empty((len(grids), len(keys), len(models)), dtype=float)
    for i, grid in enumerate(grids):
        g = _sorted_keys(grid)
        if _model_columns(g) != models:
            raise AggregationError(f"replicate grid {i} has models {_model_columns(g)}, expected {models}")
        g_keys = [(int(a), str(s)) for a, s in zip(g["Age"], g["Sex"])]
        if g_keys != keys:
            raise AggregationError(f"replicate grid {i} has {len(g_keys)} (Age, Sex) keys that do not match the first grid")
        values[i] = g[models].to_numpy(dtype=float)

    return keys, models, values


def _reduce(values: np.ndarray, interval: Tuple[float, float]) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    # Sort along replicates so the reduction order never depends on input order.
    v = np.sort(values, axis=0)
    mean = np.mean(v, axis=0)
    lo, hi = np.percentile(v, [float(interval[0]), float(interval[1])], axis=0)
    return mean, lo, hi


def summarize_grids(
    grids: Sequence[pd.DataFrame],
    *,
    interval: Tuple[float, float] = (2.5, 97.5),
) -> Dict[SummaryKey, SummaryStat]:
    """Mean and percentile interval per (Age, Sex, model) across replicates."""

    keys, models, values = stack_grids(grids)
    mean, lo, hi = _reduce(values, interval)

    out: Dict[SummaryKey, SummaryStat] = {}
    for k, (age, sex) in enumerate(keys):
        for j, model in enumerate(models):
            out[(age, sex, model)] = SummaryStat(mean=float(mean[k, j]), lo=float(lo[k, j]), hi=float(hi[k, j]))
    return out


def iter_summary_rows(summary: Mapping[SummaryKey, SummaryStat]) -> Iterator[Dict[str, object]]:
    """Rows ordered by model, then sex (M first), then age."""

    order = {m: i for i, m in enumerate(MODEL_VARIANTS)}

    def sort_key(k: SummaryKey):
        age, sex, model = k
        return (order.get(model, len(order)), model, _SEX_ORDER.get(sex, len(_SEX_ORDER)), sex, age)

    for key in sorted(summary, key=sort_key):
        age, sex, model = key
        stat = summary[key]
        yield {"Age": age, "Sex": sex, "model": model, "mean": stat.mean, "lo": stat.lo, "hi": stat.hi}


def summary_frame(summary: Mapping[SummaryKey, SummaryStat]) -> pd.DataFrame:
    return pd.DataFrame(list(iter_summary_rows(summary)), columns=["Age", "Sex", "model", "mean", "lo", "hi"])


def summary_long_frame(summary: Mapping[SummaryKey, SummaryStat]) -> pd.DataFrame:
    """One row per (Age, Sex, model, statistic)."""

    wide = summary_frame(summary)
    return wide.melt(
        id_vars=["Age", "Sex", "model"],
        value_vars=["mean", "lo", "hi"],
        var_name="statistic",
        value_name="value",
    )


def summarize_metric(
    records: Iterable[Mapping[str, float]],
    *,
    interval: Tuple[float, float] = (2.5, 97.5),
) -> pd.DataFrame:
    """Mean / percentile interval per name for per-replicate scalars (RMSE, weights)."""

    rows = [dict(r) for r in records]
    if not rows:
        raise AggregationError("no replicate records to aggregate")
    names = list(rows[0])
    if any(set(r) != set(names) for r in rows):
        raise AggregationError("replicate records have mismatched names")

    values = np.array([[r[n] for n in names] for r in rows], dtype=float)
    mean, lo, hi = _reduce(values, interval)
    return pd.DataFrame({"name": names, "mean": mean, "lo": lo, "hi": hi})

from __future__ import annotations

import logging
from typing import Dict

import pandas as pd

from swimratio.errors import DataIntegrityError


logger = logging.getLogger(__name__)

ANCHOR_AGE = 35
MIN_AGE = 29  # exclusive
MAX_AGE = 81  # exclusive
AGE_STEP = 5


def filter_ages(df: pd.DataFrame) -> pd.DataFrame:
    keep = (df["Age"] % AGE_STEP == 0) & (df["Age"] > MIN_AGE) & (df["Age"] < MAX_AGE)
    return df.loc[keep].reset_index(drop=True)


def anchor_times(df: pd.DataFrame) -> Dict[str, float]:
    """Mean TimeSec at exactly ANCHOR_AGE, per sex.

    Every sex present in `df` needs at least one anchor-age record, otherwise
    its Ratio is undefined.
    """

    at_anchor = df.loc[df["Age"] == ANCHOR_AGE]
    means = at_anchor.groupby("Sex")["TimeSec"].mean()

    missing = sorted(set(df["Sex"].unique()) - set(means.index))
    if missing:
        raise DataIntegrityError(f"No records at age {ANCHOR_AGE} for sex {missing}; cannot normalize")

    return {str(sex): float(t) for sex, t in means.items()}


def prepare(df: pd.DataFrame) -> pd.DataFrame:
    """Filter to the modeled age range and add Female, age35 and Ratio."""

    out = filter_ages(df)
    if out.empty:
        raise DataIntegrityError(f"No records with Age in ({MIN_AGE}, {MAX_AGE}) on a {AGE_STEP}-year step")

    anchors = anchor_times(out)
    logger.info(f"Anchor mean times at age {ANCHOR_AGE}: {anchors}")

    out["Female"] = (out["Sex"] == "F").astype(int)
    out["age35"] = out["Sex"].map(anchors).astype(float)
    out["Ratio"] = out["TimeSec"] / out["age35"]
    return out

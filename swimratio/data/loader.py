from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import numpy as np
import pandas as pd

from swimratio.errors import DataIntegrityError


DEFAULT_DATA_CSV = Path("data/swim_times.csv")

REQUIRED_COLUMNS = ("Age", "Sex", "TimeSec")
SEX_CODES = ("M", "F")


@dataclass(frozen=True)
class SwimDataSpec:
    path: Path
    min_rows: int = 1


def _bad_rows(mask: pd.Series, df: pd.DataFrame, what: str) -> DataIntegrityError:
    bad = df.loc[mask, list(REQUIRED_COLUMNS)]
    preview = bad.head(5).to_dict(orient="records")
    return DataIntegrityError(f"{len(bad)} row(s) with {what}; first rows: {preview}")


def validate_observations(df: pd.DataFrame) -> pd.DataFrame:
    """Coerce Age/Sex/TimeSec and reject malformed rows.

    Returns a copy with Age as int, Sex as an upper-case M/F code and TimeSec
    as float. Any row that cannot be coerced is a DataIntegrityError; nothing
    is dropped silently.
    """

    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise DataIntegrityError(f"Missing required column(s): {missing}")

    out = df.copy()

    time_sec = pd.to_numeric(out["TimeSec"], errors="coerce")
    bad_time = ~np.isfinite(time_sec.to_numpy(dtype=float)) | (time_sec <= 0).to_numpy()
    if bad_time.any():
        raise _bad_rows(pd.Series(bad_time, index=out.index), out, "non-numeric or non-positive TimeSec")

    age = pd.to_numeric(out["Age"], errors="coerce")
    age_vals = age.to_numpy(dtype=float)
    bad_age = ~np.isfinite(age_vals) | (np.floor(np.nan_to_num(age_vals)) != np.nan_to_num(age_vals))
    if bad_age.any():
        raise _bad_rows(pd.Series(bad_age, index=out.index), out, "non-integer Age")

    sex = out["Sex"].astype(str).str.strip().str.upper()
    bad_sex = ~sex.isin(SEX_CODES)
    if bad_sex.any():
        raise _bad_rows(bad_sex, out, f"unrecognized Sex code (expected one of {SEX_CODES})")

    out["Age"] = age.astype(int)
    out["Sex"] = sex
    out["TimeSec"] = time_sec.astype(float)
    return out


def load_swim_df(spec: SwimDataSpec) -> pd.DataFrame:
    """Load the observations CSV once and validate every row."""

    path = Path(spec.path)
    if not path.exists():
        raise FileNotFoundError(
            f"Swim data not found: {path}. "
            f"Expected default at {DEFAULT_DATA_CSV}."
        )

    try:
        df = pd.read_csv(path)
    except pd.errors.EmptyDataError as e:
        raise DataIntegrityError(f"Swim data is empty: {path} has no header or rows.") from e

    if len(df) < int(spec.min_rows):
        raise DataIntegrityError(
            f"Swim data too small: {path} has {len(df)} rows, expected >= {spec.min_rows}."
        )

    return validate_observations(df)

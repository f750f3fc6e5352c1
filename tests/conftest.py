"""Shared fixtures: small synthetic swim datasets and a fast model config."""
import numpy as np
import pandas as pd
import pytest

from swimratio.config import BootstrapConfig, ReplicateConfig
from swimratio.data.prep import prepare
from swimratio.modeling.types import NeuralNetSpec, PolynomialSpec, SplineSpec


def make_swim_df(*, per_cell: int = 8, seed: int = 0) -> pd.DataFrame:
    """Times that slow quadratically with age; women ~10% slower."""
    rng = np.random.default_rng(seed)
    rows = []
    for sex, base in (("M", 1000.0), ("F", 1100.0)):
        for age in range(30, 85, 5):
            for _ in range(per_cell):
                slowdown = 1.0 + 0.0004 * (age - 35) ** 2 / 10.0 + 0.002 * (age - 35)
                t = base * slowdown * (1.0 + rng.normal(0.0, 0.02))
                rows.append({"Age": age, "Sex": sex, "TimeSec": t})
    return pd.DataFrame(rows)


@pytest.fixture
def raw_swim_df() -> pd.DataFrame:
    return make_swim_df()


@pytest.fixture
def swim_df(raw_swim_df) -> pd.DataFrame:
    return prepare(raw_swim_df)


@pytest.fixture
def fast_replicate_config() -> ReplicateConfig:
    return ReplicateConfig(
        nnet=NeuralNetSpec(hidden_units=3, epochs=200),
        poly=PolynomialSpec(degree=2),
        spline=SplineSpec(degrees_of_freedom=4),
    )


@pytest.fixture
def fast_bootstrap_config(fast_replicate_config) -> BootstrapConfig:
    return BootstrapConfig(n_replicates=2, base_seed=1, n_jobs=1, progress=False, replicate=fast_replicate_config)

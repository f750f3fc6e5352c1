from __future__ import annotations

import json
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from swimratio.modeling.types import NeuralNetSpec, PolynomialSpec, SplineSpec


DEFAULT_GRID_AGES: Tuple[int, ...] = tuple(range(35, 85))

FAILURE_POLICIES = ("skip", "raise")


@dataclass(frozen=True)
class ReplicateConfig:
    nnet: NeuralNetSpec = field(default_factory=NeuralNetSpec)
    poly: PolynomialSpec = field(default_factory=PolynomialSpec)
    spline: SplineSpec = field(default_factory=SplineSpec)

    test_fraction: float = 0.2
    cv_folds: int = 5
    grid_ages: Tuple[int, ...] = DEFAULT_GRID_AGES

    def __post_init__(self) -> None:
        if not 0.0 < float(self.test_fraction) < 1.0:
            raise ValueError("test_fraction must be in (0, 1)")
        if int(self.cv_folds) < 2:
            raise ValueError("cv_folds must be >= 2")
        if len(self.grid_ages) == 0:
            raise ValueError("grid_ages must not be empty")


@dataclass(frozen=True)
class BootstrapConfig:
    n_replicates: int = 10
    base_seed: int = 1
    n_jobs: int = 1
    timeout_s: Optional[float] = None
    on_failure: str = "skip"
    interval: Tuple[float, float] = (2.5, 97.5)
    progress: bool = True
    replicate: ReplicateConfig = field(default_factory=ReplicateConfig)

    def __post_init__(self) -> None:
        if int(self.n_replicates) < 1:
            raise ValueError("n_replicates must be >= 1")
        if self.on_failure not in FAILURE_POLICIES:
            raise ValueError(f"on_failure must be one of: {', '.join(FAILURE_POLICIES)}")
        lo, hi = self.interval
        if not 0.0 <= float(lo) < float(hi) <= 100.0:
            raise ValueError("interval must satisfy 0 <= lo < hi <= 100")
        if self.timeout_s is not None and float(self.timeout_s) <= 0:
            raise ValueError("timeout_s must be positive")
        if self.timeout_s is not None and int(self.n_jobs) == 1:
            # An in-process replicate cannot be interrupted.
            raise ValueError("timeout_s needs a worker pool (n_jobs != 1)")


_SPEC_KEYS = {"nnet": NeuralNetSpec, "poly": PolynomialSpec, "spline": SplineSpec}


def _replicate_from_dict(raw: Dict[str, Any], base: ReplicateConfig) -> ReplicateConfig:
    allowed = {f.name for f in fields(ReplicateConfig)}
    unknown = set(raw) - allowed
    if unknown:
        raise ValueError(f"Unknown replicate config keys: {sorted(unknown)}")

    kw: Dict[str, Any] = {}
    for key, value in raw.items():
        if key in _SPEC_KEYS:
            kw[key] = _SPEC_KEYS[key](**value)
        elif key == "grid_ages":
            kw[key] = tuple(int(a) for a in value)
        else:
            kw[key] = value
    return replace(base, **kw)


def config_from_dict(raw: Dict[str, Any], *, base: BootstrapConfig | None = None) -> BootstrapConfig:
    """Overlay a plain dict (e.g. parsed JSON) onto `base`."""

    base = base or BootstrapConfig()
    allowed = {f.name for f in fields(BootstrapConfig)}
    unknown = set(raw) - allowed
    if unknown:
        raise ValueError(f"Unknown config keys: {sorted(unknown)}")

    kw: Dict[str, Any] = {}
    for key, value in raw.items():
        if key == "replicate":
            kw[key] = _replicate_from_dict(value, base.replicate)
        elif key == "interval":
            kw[key] = (float(value[0]), float(value[1]))
        else:
            kw[key] = value
    return replace(base, **kw)


def load_config(path: Path) -> BootstrapConfig:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    return config_from_dict(json.loads(path.read_text()))

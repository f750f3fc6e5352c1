from __future__ import annotations

import logging
from concurrent.futures import TimeoutError as FuturesTimeout
from dataclasses import dataclass
from typing import Callable, Dict, List, Tuple

import numpy as np
import pandas as pd
from joblib import Parallel, delayed, effective_n_jobs
from joblib.externals.loky import get_reusable_executor
from tqdm import tqdm

from swimratio.config import BootstrapConfig, ReplicateConfig
from swimratio.errors import AggregationError, ModelFitFailed, ReplicateTimeout
from swimratio.modeling.aggregate import SummaryKey, summarize_grids, summarize_metric
from swimratio.modeling.replicate import fit_replicate
from swimratio.modeling.types import ReplicateOutcome, ReplicateResult, SummaryStat


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BootstrapReport:
    outcomes: List[ReplicateOutcome]
    summary: Dict[SummaryKey, SummaryStat]
    rmse_summary: pd.DataFrame
    weight_summary: pd.DataFrame

    @property
    def results(self) -> List[ReplicateResult]:
        return [o.result for o in self.outcomes if o.result is not None]

    @property
    def skipped(self) -> List[ReplicateOutcome]:
        return [o for o in self.outcomes if o.skipped]

    @property
    def n_skipped(self) -> int:
        return len(self.skipped)


def resample(df: pd.DataFrame, rng: np.random.Generator) -> pd.DataFrame:
    """Draw len(df) rows with replacement."""

    idx = rng.integers(0, len(df), size=len(df))
    return df.iloc[idx].reset_index(drop=True)


def replicate_seeds(n_replicates: int, base_seed: int) -> List[Tuple[int, int]]:
    """(replicate, seed) pairs; replicate i (1-based) uses base_seed + i - 1."""

    return [(i, int(base_seed) + i - 1) for i in range(1, int(n_replicates) + 1)]


def run_replicate(
    df: pd.DataFrame,
    *,
    replicate: int,
    seed: int,
    config: ReplicateConfig,
    on_failure: str = "skip",
) -> ReplicateOutcome:
    rng = np.random.default_rng(seed)
    boot = resample(df, rng)
    try:
        result = fit_replicate(boot, seed=seed, config=config, replicate=replicate, rng=rng)
    except ModelFitFailed as e:
        if on_failure == "raise":
            raise ModelFitFailed(e.model, e.reason, replicate=replicate) from e
        return ReplicateOutcome(replicate=replicate, seed=seed, skip_reason=f"{e.model}: {e.reason}")
    return ReplicateOutcome(replicate=replicate, seed=seed, result=result)


def _collect_with_deadline(
    df: pd.DataFrame,
    config: BootstrapConfig,
    seeds: List[Tuple[int, int]],
    replicate_fn: Callable[..., ReplicateOutcome],
    progress: tqdm,
) -> List[ReplicateOutcome]:
    """Submit every replicate to a loky pool; wait at most timeout_s for each outcome, in order.

    A replicate that times out is recorded as skipped (or raises
    ReplicateTimeout under on_failure="raise"). Workers still busy with a
    timed-out replicate are killed once collection ends.
    """

    executor = get_reusable_executor(max_workers=effective_n_jobs(int(config.n_jobs)))
    futures = [
        executor.submit(replicate_fn, df, replicate=i, seed=s, config=config.replicate, on_failure=config.on_failure)
        for i, s in seeds
    ]

    outcomes: List[ReplicateOutcome] = []
    timed_out = False
    try:
        for (i, s), future in zip(seeds, futures):
            try:
                outcomes.append(future.result(timeout=config.timeout_s))
            except FuturesTimeout as e:
                timed_out = True
                future.cancel()
                if config.on_failure == "raise":
                    raise ReplicateTimeout(f"replicate {i} (seed {s}) exceeded {config.timeout_s}s") from e
                outcomes.append(
                    ReplicateOutcome(replicate=i, seed=s, skip_reason=f"timed out after {config.timeout_s}s")
                )
            progress.update(1)
    finally:
        if timed_out:
            executor.shutdown(wait=False, kill_workers=True)

    return outcomes


def run_replicates(
    df: pd.DataFrame,
    config: BootstrapConfig,
    *,
    replicate_fn: Callable[..., ReplicateOutcome] = run_replicate,
) -> List[ReplicateOutcome]:
    """Run every replicate on a joblib pool and return them in replicate order.

    `replicate_fn` has the signature of `run_replicate` and must be picklable
    when n_jobs != 1.
    """

    seeds = replicate_seeds(config.n_replicates, config.base_seed)

    with tqdm(total=len(seeds), desc="Bootstrap replicates", disable=not config.progress) as progress:
        if config.timeout_s is not None:
            outcomes = _collect_with_deadline(df, config, seeds, replicate_fn, progress)
        else:
            tasks = (
                delayed(replicate_fn)(df, replicate=i, seed=s, config=config.replicate, on_failure=config.on_failure)
                for i, s in seeds
            )
            outcomes = []
            # Outcomes arrive as replicates finish, so the bar tracks completed work.
            for outcome in Parallel(n_jobs=int(config.n_jobs), return_as="generator")(tasks):
                outcomes.append(outcome)
                progress.update(1)

    return sorted(outcomes, key=lambda o: o.replicate)


def run_bootstrap(df: pd.DataFrame, config: BootstrapConfig | None = None) -> BootstrapReport:
    """Resample-and-refit `df` n_replicates times and aggregate the grids.

    `df` is the prepared dataset (see `swimratio.data.prep.prepare`).
    """

    config = config or BootstrapConfig()

    logger.info("=" * 70)
    logger.info(f"BOOTSTRAP: {config.n_replicates} replicates, n_jobs={config.n_jobs}, base seed {config.base_seed}")
    logger.info("=" * 70)

    outcomes = run_replicates(df, config)

    for o in outcomes:
        if o.skipped:
            logger.warning(f"Replicate {o.replicate} (seed {o.seed}) skipped: {o.skip_reason}")

    results = [o.result for o in outcomes if o.result is not None]
    if not results:
        raise AggregationError(f"all {len(outcomes)} replicates were skipped")

    logger.info(f"Completed {len(results)} replicates ({len(outcomes) - len(results)} skipped)")

    summary = summarize_grids([r.plot_data for r in results], interval=config.interval)
    rmse_summary = summarize_metric([r.rmse for r in results], interval=config.interval)
    weight_summary = summarize_metric([r.weights for r in results], interval=config.interval)

    return BootstrapReport(
        outcomes=outcomes,
        summary=summary,
        rmse_summary=rmse_summary,
        weight_summary=weight_summary,
    )

from __future__ import annotations

import argparse
import logging
from dataclasses import replace
from pathlib import Path

import pandas as pd

from swimratio.config import BootstrapConfig, load_config
from swimratio.data.loader import DEFAULT_DATA_CSV, SwimDataSpec, load_swim_df
from swimratio.data.prep import prepare
from swimratio.modeling.aggregate import summary_frame, summary_long_frame
from swimratio.modeling.bootstrap import BootstrapReport, run_bootstrap
from swimratio.modeling.plots import save_model_comparison_plot, save_stack_ribbon_plot
from swimratio.modeling.types import NeuralNetSpec, PolynomialSpec, SplineSpec


logger = logging.getLogger(__name__)


def write_report(report: BootstrapReport, out_dir: Path, *, plots: bool = True) -> None:
    out_dir.mkdir(parents=True, exist_ok=True)

    summary = summary_frame(report.summary)
    summary.to_csv(out_dir / "summary.csv", index=False)
    summary_long_frame(report.summary).to_csv(out_dir / "summary_long.csv", index=False)

    rmse_rows = [{"replicate": r.replicate, "seed": r.seed, **r.rmse} for r in report.results]
    pd.DataFrame(rmse_rows).to_csv(out_dir / "replicate_rmse.csv", index=False)
    weight_rows = [{"replicate": r.replicate, "seed": r.seed, **r.weights} for r in report.results]
    pd.DataFrame(weight_rows).to_csv(out_dir / "replicate_weights.csv", index=False)

    if report.skipped:
        pd.DataFrame(
            [{"replicate": o.replicate, "seed": o.seed, "reason": o.skip_reason} for o in report.skipped]
        ).to_csv(out_dir / "skipped.csv", index=False)

    if plots:
        save_model_comparison_plot(summary=summary, out_path=out_dir / "ratio_by_model.png")
        save_stack_ribbon_plot(summary=summary, out_path=out_dir / "stack_interval.png")


def _config_from_args(args: argparse.Namespace) -> BootstrapConfig:
    config = load_config(args.config) if args.config else BootstrapConfig()

    rep = config.replicate
    rep = replace(
        rep,
        nnet=NeuralNetSpec(
            hidden_units=args.hidden_units if args.hidden_units is not None else rep.nnet.hidden_units,
            epochs=args.epochs if args.epochs is not None else rep.nnet.epochs,
        ),
        poly=PolynomialSpec(degree=args.degree if args.degree is not None else rep.poly.degree),
        spline=SplineSpec(degrees_of_freedom=args.spline_df if args.spline_df is not None else rep.spline.degrees_of_freedom),
    )

    overrides = {
        "n_replicates": args.replicates,
        "base_seed": args.seed,
        "n_jobs": args.n_jobs,
        "timeout_s": args.timeout,
        "on_failure": args.on_failure,
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}
    if args.no_progress:
        overrides["progress"] = False
    return replace(config, replicate=rep, **overrides)


def main() -> None:
    ap = argparse.ArgumentParser(description="Bootstrap a stacked age-ratio model of swim times.")
    ap.add_argument(
        "--data",
        type=Path,
        default=DEFAULT_DATA_CSV,
        help=f"Path to observations CSV with Age, Sex, TimeSec (default: {DEFAULT_DATA_CSV})",
    )
    ap.add_argument("--out-dir", type=Path, default=Path("reports/bootstrap"))
    ap.add_argument("--config", type=Path, default=None, help="JSON file overriding BootstrapConfig defaults")
    ap.add_argument("--replicates", type=int, default=None, help="Number of bootstrap replicates")
    ap.add_argument("--seed", type=int, default=None, help="Base seed; replicate i uses seed + i - 1")
    ap.add_argument("--n-jobs", type=int, default=None, help="Worker processes (-1 = all cores)")
    ap.add_argument("--timeout", type=float, default=None, help="Per-replicate timeout in seconds; needs --n-jobs != 1, timed-out replicates follow --on-failure")
    ap.add_argument("--on-failure", choices=["skip", "raise"], default=None)
    ap.add_argument("--hidden-units", type=int, default=None)
    ap.add_argument("--epochs", type=int, default=None)
    ap.add_argument("--degree", type=int, default=None, help="Polynomial degree")
    ap.add_argument("--spline-df", type=int, default=None, help="Spline degrees of freedom")
    ap.add_argument("--no-plots", action="store_true")
    ap.add_argument("--no-progress", action="store_true")
    args = ap.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")

    config = _config_from_args(args)

    raw = load_swim_df(SwimDataSpec(path=args.data))
    df = prepare(raw)
    logger.info(f"Loaded {len(raw)} records, {len(df)} in the modeled age range")

    report = run_bootstrap(df, config)
    write_report(report, args.out_dir, plots=not args.no_plots)

    print(f"Saved summary: {args.out_dir / 'summary.csv'}")
    print(f"Replicates used: {len(report.results)}, skipped: {report.n_skipped}")
    print(report.rmse_summary.to_string(index=False))


if __name__ == "__main__":
    main()

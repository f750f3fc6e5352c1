"""Comparison plots for the bootstrap summary.

matplotlib is imported lazily so the modeling code never needs a display.
"""

from __future__ import annotations

from pathlib import Path

import pandas as pd

from swimratio.modeling.types import STACK


_SEX_LABELS = {"M": "Men", "F": "Women"}


def _pyplot():
    import matplotlib

    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    return plt


def save_model_comparison_plot(*, summary: pd.DataFrame, out_path: Path, title: str = "Predicted ratio by age") -> None:
    """Mean predicted Ratio by age, one line per model, one panel per sex."""

    plt = _pyplot()
    out_path.parent.mkdir(parents=True, exist_ok=True)

    sexes = [s for s in ("M", "F") if s in set(summary["Sex"])]
    fig, axes = plt.subplots(1, len(sexes), figsize=(6 * len(sexes), 5), sharey=True, squeeze=False)

    for ax, sex in zip(axes[0], sexes):
        df = summary.loc[summary["Sex"] == sex]
        for model, g in df.groupby("model", sort=False):
            g = g.sort_values("Age")
            ax.plot(g["Age"], g["mean"], linewidth=2 if model == STACK else 1, label=str(model))
        ax.set_title(_SEX_LABELS.get(sex, sex))
        ax.set_xlabel("Age")
        ax.grid(True, alpha=0.25)

    axes[0][0].set_ylabel("Ratio to age-35 mean time")
    axes[0][-1].legend(loc="upper left")
    fig.suptitle(title)

    fig.tight_layout()
    fig.savefig(out_path, dpi=150)
    plt.close(fig)


def save_stack_ribbon_plot(*, summary: pd.DataFrame, out_path: Path, title: str = "Stacked ensemble with bootstrap interval") -> None:
    """Stack mean with its percentile band, one colour per sex."""

    plt = _pyplot()
    out_path.parent.mkdir(parents=True, exist_ok=True)

    df = summary.loc[summary["model"] == STACK]
    if df.empty:
        raise ValueError(f"summary has no '{STACK}' rows")

    fig, ax = plt.subplots(figsize=(7, 5))

    for sex, g in df.groupby("Sex", sort=False):
        g = g.sort_values("Age")
        label = _SEX_LABELS.get(str(sex), str(sex))
        ax.fill_between(g["Age"], g["lo"], g["hi"], alpha=0.25)
        ax.plot(g["Age"], g["mean"], linewidth=2, label=label)

    ax.set_xlabel("Age")
    ax.set_ylabel("Ratio to age-35 mean time")
    ax.set_title(title)
    ax.grid(True, alpha=0.25)
    ax.legend(loc="upper left")

    fig.tight_layout()
    fig.savefig(out_path, dpi=150)
    plt.close(fig)

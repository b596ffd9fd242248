"""Text summaries and figures for tuning results and held-out predictions."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

from boston_workshop.models.base import ResampleResultSet, TrainResult
from boston_workshop.pipelines.resampling import HIGHER_IS_BETTER, METRICS

SUMMARY_STATS = ["Min.", "1st Qu.", "Median", "Mean", "3rd Qu.", "Max."]


def _ensure_parent(out_path: str):
    Path(out_path).parent.mkdir(parents=True, exist_ok=True)


def format_train_result(result: TrainResult) -> str:
    """Plain-text summary of a tuning run, in the layout of caret's ``print(train)``."""
    metric = result.resampling.metric
    direction = "largest" if metric in HIGHER_IS_BETTER else "smallest"
    table = result.results_table()

    lines = [
        result.model.family,
        "",
        f"{result.n_samples} samples",
        f"{result.n_features} predictors",
        "",
        f"Resampling: {result.resampling.describe()}",
    ]
    if result.fixed_params:
        fixed = ", ".join(f"{k} = {v}" for k, v in result.fixed_params.items())
        lines.append(f"Held constant: {fixed}")
    lines += [
        "Resampling results across tuning parameters:" if len(table) > 1 else "Resampling results:",
        "",
        table.to_string(index=False, float_format=lambda v: f"{v:.4f}"),
        "",
        f"{metric} was used to select the optimal model using the {direction} value.",
    ]
    if result.best_params:
        chosen = ", ".join(f"{k} = {v}" for k, v in result.best_params.items())
        lines.append(f"The final values used for the model were {chosen}.")
    return "\n".join(lines)


def summarize_resamples(result_set: ResampleResultSet, metrics: Optional[List[str]] = None) -> pd.DataFrame:
    """
    Distribution of every metric for every label: Min, quartiles, Mean, Max.
    Rows are indexed by (metric, label) in sweep order.
    """
    rows = {}
    for metric in metrics or list(METRICS):
        frame = result_set.metric_frame(metric)
        for label in result_set.labels:
            values = frame[label]
            rows[(metric, label)] = [
                values.min(),
                values.quantile(0.25),
                values.median(),
                values.mean(),
                values.quantile(0.75),
                values.max(),
            ]
    summary = pd.DataFrame.from_dict(rows, orient="index", columns=SUMMARY_STATS)
    summary.index = pd.MultiIndex.from_tuples(summary.index, names=["metric", result_set.param])
    return summary


def plot_pred_vs_actual(pairs: pd.DataFrame, out_path: str, title: str = "Predicted vs actual") -> str:
    _ensure_parent(out_path)
    lo = float(min(pairs["actual"].min(), pairs["predicted"].min()))
    hi = float(max(pairs["actual"].max(), pairs["predicted"].max()))
    fig, ax = plt.subplots()
    ax.scatter(pairs["predicted"], pairs["actual"], s=10)
    ax.plot([lo, hi], [lo, hi], linestyle="--", color="black")
    ax.set_xlabel("Predicted")
    ax.set_ylabel("Actual")
    ax.set_title(title)
    fig.savefig(out_path, dpi=150, bbox_inches="tight")
    plt.close(fig)
    return out_path


def plot_importance(table: pd.DataFrame, out_path: str, title: str = "Variable importance") -> str:
    _ensure_parent(out_path)
    fig, ax = plt.subplots(figsize=(6, max(3, 0.3 * len(table))))
    sns.barplot(data=table, x="importance", y="feature", color="steelblue", ax=ax)
    ax.set_xlabel("Importance (scaled 0-100)")
    ax.set_ylabel("")
    ax.set_title(title)
    fig.savefig(out_path, dpi=150, bbox_inches="tight")
    plt.close(fig)
    return out_path


def plot_resamples(result_set: ResampleResultSet, out_path: str, metric: str = "rmse") -> str:
    _ensure_parent(out_path)
    long = result_set.metric_frame(metric).melt(var_name=result_set.param, value_name=metric)
    fig, ax = plt.subplots()
    sns.boxplot(data=long, x=result_set.param, y=metric, order=result_set.labels, ax=ax)
    ax.set_title(f"Resampled {metric} by {result_set.param}")
    fig.savefig(out_path, dpi=150, bbox_inches="tight")
    plt.close(fig)
    return out_path


def plot_loss_curve(losses, out_path: str, title: str = "Training loss") -> str:
    _ensure_parent(out_path)
    fig, ax = plt.subplots()
    ax.plot(np.arange(1, len(losses) + 1), losses)
    ax.set_xlabel("Iteration")
    ax.set_ylabel("Loss")
    ax.set_title(title)
    fig.savefig(out_path, dpi=150, bbox_inches="tight")
    plt.close(fig)
    return out_path

"""Data checks run before any modelling: missing values and the target distribution."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns

from boston_workshop.errors import DataShapeError


@dataclass
class InspectionReport:
    missing_counts: pd.Series
    target_summary: pd.Series
    histogram_path: Optional[str] = None

    @property
    def has_missing(self) -> bool:
        return bool(self.missing_counts.any())


class DataInspector:
    """Reports missing values per column and summarises the target."""

    def __init__(self, target: str = "medv", bins: int = 30):
        self.target = target
        self.bins = bins

    def missing_counts(self, df: pd.DataFrame) -> pd.Series:
        self._validate(df)
        return df.isna().sum()

    def target_summary(self, df: pd.DataFrame) -> pd.Series:
        """Five-number summary plus the mean, in R's ``summary()`` order."""
        self._validate(df)
        y = df[self.target]
        return pd.Series(
            {
                "min": y.min(),
                "q1": y.quantile(0.25),
                "median": y.median(),
                "mean": y.mean(),
                "q3": y.quantile(0.75),
                "max": y.max(),
            }
        )

    def plot_histogram(self, df: pd.DataFrame, out_path: str) -> str:
        self._validate(df)
        Path(out_path).parent.mkdir(parents=True, exist_ok=True)
        fig, ax = plt.subplots()
        sns.histplot(df[self.target].dropna(), bins=self.bins, ax=ax)
        ax.set_xlabel(self.target)
        ax.set_title(f"Distribution of {self.target}")
        fig.savefig(out_path, dpi=150, bbox_inches="tight")
        plt.close(fig)
        return out_path

    def inspect(self, df: pd.DataFrame, figures_dir: Optional[str] = None) -> InspectionReport:
        print("[INFO] Inspecting dataset...")
        missing = self.missing_counts(df)
        summary = self.target_summary(df)
        histogram_path = None
        if figures_dir is not None:
            histogram_path = self.plot_histogram(df, str(Path(figures_dir) / "target_histogram.png"))
        return InspectionReport(missing, summary, histogram_path)

    def _validate(self, df: pd.DataFrame):
        if self.target not in df.columns:
            raise DataShapeError(self.target, "Target column not found")
        for column in df.columns:
            if not pd.api.types.is_numeric_dtype(df[column]):
                raise DataShapeError(column, f"Expected a numeric column, got dtype '{df[column].dtype}'")

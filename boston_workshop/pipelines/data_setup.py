"""Run configuration and the stratified train/evaluation split."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np
import pandas as pd
import yaml
from sklearn.model_selection import train_test_split

from boston_workshop.data.data_loader import DEFAULT_DATA_PATH
from boston_workshop.errors import ConfigIncompatibleError, DataShapeError
from boston_workshop.pipelines.resampling import ResamplingSpec
from boston_workshop.utils.seeds import DEFAULT_SEED, resolve_seed

DEFAULT_PARAMS_PATH = Path("params.yaml")

REPEATED_CV_10x3 = {"method": "repeatedcv", "n_splits": 10, "n_repeats": 3}

DEFAULT_PARAMS: Dict = {
    "data": {
        "path": DEFAULT_DATA_PATH,
        "target": "medv",
        "categorical_features": ["rad"],
        "missing_policy": "raise",
        "allow_download": True,
    },
    "split": {"train_fraction": 0.7, "n_bins": 5, "seed": DEFAULT_SEED},
    "parallel": {"n_jobs": None},
    "reports": {"dir": "reports"},
    "tracking": {"enabled": False, "experiment_name": "boston-workshop"},
    "experiments": [
        {"name": "bagging", "family": "bagged_trees", "resampling": REPEATED_CV_10x3},
        {
            "name": "random_forest",
            "family": "random_forest",
            "grid": {"max_features": ["sqrt"]},
            "resampling": REPEATED_CV_10x3,
        },
        {
            "name": "random_forest_random_search",
            "family": "random_forest",
            "fixed_params": {"n_estimators": 25},
            "resampling": {"method": "oob", "search": "random", "n_iter": 10},
        },
        {
            "name": "random_forest_ntree_sweep",
            "family": "random_forest",
            "grid": {"max_features": ["sqrt"]},
            "sweep": {"param": "n_estimators", "values": [1000, 1500, 2000, 2500]},
            "resampling": REPEATED_CV_10x3,
        },
        {"name": "xgboost_default", "family": "gradient_boosted_trees", "resampling": REPEATED_CV_10x3},
        {
            "name": "xgboost_fixed",
            "family": "gradient_boosted_trees",
            "grid": {
                "n_estimators": [500],
                "max_depth": [4],
                "learning_rate": [0.3],
                "gamma": [0.0],
                "colsample_bytree": [1.0],
                "min_child_weight": [1],
                "subsample": [1.0],
            },
            "resampling": {"method": "repeatedcv", "n_splits": 10, "n_repeats": 2},
        },
        {"name": "neural_net", "family": "neural_net", "resampling": REPEATED_CV_10x3},
        {
            "name": "neural_net_5_3",
            "family": "neural_net",
            "grid": {"hidden_layer_sizes": [[5, 3]]},
            "resampling": REPEATED_CV_10x3,
        },
    ],
}


@dataclass(frozen=True)
class SweepSpec:
    param: str
    values: list


@dataclass(frozen=True)
class ExperimentSpec:
    """One independent comparison experiment of the workshop."""

    name: str
    family: str
    grid: Optional[dict] = None
    fixed_params: dict = field(default_factory=dict)
    model_params: dict = field(default_factory=dict)
    resampling: ResamplingSpec = field(default_factory=ResamplingSpec)
    sweep: Optional[SweepSpec] = None

    @classmethod
    def from_dict(cls, values: dict) -> "ExperimentSpec":
        values = dict(values)
        unknown = sorted(set(values) - set(cls.__dataclass_fields__))
        if unknown:
            raise ConfigIncompatibleError(unknown[0], "Unknown experiment option")
        for key in ("name", "family"):
            if key not in values:
                raise ConfigIncompatibleError(key, "Every experiment needs a name and a family")
        sweep = values.pop("sweep", None)
        if sweep is not None:
            if "param" not in sweep or not sweep.get("values"):
                raise ConfigIncompatibleError("sweep", "A sweep needs a 'param' and a non-empty 'values' list")
            sweep = SweepSpec(param=sweep["param"], values=list(sweep["values"]))
        return cls(
            name=values["name"],
            family=values["family"],
            grid=values.get("grid"),
            fixed_params=dict(values.get("fixed_params") or {}),
            model_params=dict(values.get("model_params") or {}),
            resampling=ResamplingSpec.from_dict(values.get("resampling")),
            sweep=sweep,
        )


@dataclass(frozen=True)
class WorkshopConfig:
    data_path: str = DEFAULT_DATA_PATH
    target: str = "medv"
    categorical_features: List[str] = field(default_factory=lambda: ["rad"])
    missing_policy: str = "raise"
    allow_download: bool = True
    train_fraction: float = 0.7
    n_bins: int = 5
    seed: int = DEFAULT_SEED
    n_jobs: Optional[int] = None
    reports_dir: str = "reports"
    tracking_enabled: bool = False
    experiment_name: str = "boston-workshop"
    experiments: List[ExperimentSpec] = field(default_factory=list)

    @property
    def figures_dir(self) -> Path:
        return Path(self.reports_dir) / "figures"

    @classmethod
    def from_dict(cls, params: dict) -> "WorkshopConfig":
        merged = _merge(DEFAULT_PARAMS, params or {})
        data, split = merged["data"], merged["split"]
        return cls(
            data_path=data["path"],
            target=data["target"],
            categorical_features=list(data.get("categorical_features") or []),
            missing_policy=data["missing_policy"],
            allow_download=bool(data["allow_download"]),
            train_fraction=float(split["train_fraction"]),
            n_bins=int(split["n_bins"]),
            seed=int(split["seed"]),
            n_jobs=merged["parallel"].get("n_jobs"),
            reports_dir=merged["reports"]["dir"],
            tracking_enabled=bool(merged["tracking"]["enabled"]),
            experiment_name=merged["tracking"]["experiment_name"],
            experiments=[ExperimentSpec.from_dict(e) for e in merged["experiments"]],
        )


def _merge(defaults: dict, overrides: dict) -> dict:
    """Section-wise merge; an ``experiments`` list replaces the default list."""
    merged = copy.deepcopy(defaults)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


def load_params(path: Optional[Path] = None, env: Optional[dict] = None) -> WorkshopConfig:
    """
    Read ``params.yaml`` (built-in defaults when it does not exist) and apply
    environment overrides (``SEED``, ``N_JOBS``, ``REPORTS_DIR``,
    ``EXPERIMENT_NAME``, ``MLFLOW_TRACKING_URI``).
    """
    path = Path(path or DEFAULT_PARAMS_PATH)
    params: dict = {}
    if path.exists():
        with open(path, "r") as f:
            params = yaml.safe_load(f) or {}
        print(f"[INFO] Loaded parameters from {path}")
    else:
        print(f"[INFO] {path} not found, using built-in defaults.")

    env = env or {}
    overrides = {}
    if env.get("SEED"):
        overrides.setdefault("split", {})["seed"] = resolve_seed(env["SEED"])
    if env.get("N_JOBS"):
        overrides.setdefault("parallel", {})["n_jobs"] = int(env["N_JOBS"])
    if env.get("REPORTS_DIR"):
        overrides.setdefault("reports", {})["dir"] = env["REPORTS_DIR"]
    if env.get("EXPERIMENT_NAME"):
        overrides.setdefault("tracking", {})["experiment_name"] = env["EXPERIMENT_NAME"]
    if env.get("MLFLOW_TRACKING_URI"):
        overrides.setdefault("tracking", {})["enabled"] = True

    return WorkshopConfig.from_dict(_merge(params, overrides))


@dataclass(frozen=True, eq=False)
class SplitAssignment:
    """Positional row indices of the training and evaluation subsets."""

    train_index: np.ndarray
    test_index: np.ndarray

    def train(self, df: pd.DataFrame) -> pd.DataFrame:
        return df.iloc[self.train_index]

    def test(self, df: pd.DataFrame) -> pd.DataFrame:
        return df.iloc[self.test_index]


def quantile_bins(y: pd.Series, n_bins: int) -> Optional[np.ndarray]:
    """
    Quantile bin label per row. Falls back to fewer bins until every bin
    holds at least two rows; ``None`` when no stratification is possible.
    """
    for q in range(min(n_bins, y.nunique()), 1, -1):
        bins = pd.qcut(y, q=q, labels=False, duplicates="drop")
        if bins.value_counts().min() >= 2:
            return bins.to_numpy()
    return None


def stratified_split(
    df: pd.DataFrame,
    target: str,
    *,
    train_fraction: float = 0.7,
    seed: int = DEFAULT_SEED,
    n_bins: int = 5,
) -> SplitAssignment:
    """
    Split rows into training/evaluation subsets, stratified on quantile bins
    of the target. Identical inputs and seed give the identical split.
    """
    if not 0.0 < float(train_fraction) < 1.0:
        raise ConfigIncompatibleError("train_fraction", f"Must be in (0, 1), got {train_fraction}")
    if int(n_bins) < 1:
        raise ConfigIncompatibleError("n_bins", f"Need at least one bin, got {n_bins}")
    if target not in df.columns:
        raise DataShapeError(target, "Target column not found")
    if df[target].isna().any():
        raise DataShapeError(target, "Target has missing values; cannot stratify")

    print("[INFO] Splitting data into train/test sets...")
    positions = np.arange(len(df))
    train_idx, test_idx = train_test_split(
        positions,
        train_size=train_fraction,
        stratify=quantile_bins(df[target], int(n_bins)),
        random_state=seed,
    )
    split = SplitAssignment(np.sort(train_idx), np.sort(test_idx))
    print(f"[INFO] train: {len(split.train_index)} rows, test: {len(split.test_index)} rows")
    return split

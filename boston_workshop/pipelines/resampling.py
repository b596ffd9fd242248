"""Resampling settings, fold generation, cross-validated search and the shared worker pool."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd
from joblib import Parallel, cpu_count, delayed, parallel_config
from sklearn.metrics import mean_absolute_error, mean_squared_error, r2_score
from sklearn.model_selection import GridSearchCV, RandomizedSearchCV, RepeatedKFold

from boston_workshop.errors import ConfigIncompatibleError

METRICS = ("rmse", "mae", "r2")
HIGHER_IS_BETTER = {"r2"}

DEFAULT_SCORING = {
    "rmse": "neg_root_mean_squared_error",
    "mae": "neg_mean_absolute_error",
    "r2": "r2",
}

RESAMPLING_METHODS = ("repeatedcv", "cv", "oob")
SEARCH_STRATEGIES = ("grid", "random")


@dataclass(frozen=True)
class ResamplingSpec:
    """How candidates are evaluated and chosen.

    ``method`` is ``repeatedcv`` (k folds x repeats), ``cv`` (k folds once)
    or ``oob`` (out-of-bag predictions of a bootstrap ensemble). ``n_iter``
    is the number of candidates drawn when ``search`` is ``random``.
    """

    method: str = "repeatedcv"
    n_splits: int = 10
    n_repeats: int = 3
    search: str = "grid"
    n_iter: int = 10
    metric: str = "rmse"

    def __post_init__(self):
        if self.method not in RESAMPLING_METHODS:
            raise ConfigIncompatibleError("method", f"Unknown resampling method '{self.method}'")
        if self.search not in SEARCH_STRATEGIES:
            raise ConfigIncompatibleError("search", f"Unknown search strategy '{self.search}'")
        if self.metric not in METRICS:
            raise ConfigIncompatibleError("metric", f"Unknown metric '{self.metric}', use one of {METRICS}")
        if self.method != "oob" and int(self.n_splits) < 2:
            raise ConfigIncompatibleError("n_splits", "k-fold resampling needs at least 2 folds")
        if int(self.n_repeats) < 1:
            raise ConfigIncompatibleError("n_repeats", "Need at least one repeat")
        if int(self.n_iter) < 1:
            raise ConfigIncompatibleError("n_iter", "Random search needs at least one candidate")

    @classmethod
    def from_dict(cls, values: Optional[dict]) -> "ResamplingSpec":
        values = dict(values or {})
        unknown = sorted(set(values) - set(cls.__dataclass_fields__))
        if unknown:
            raise ConfigIncompatibleError(unknown[0], "Unknown resampling option")
        return cls(**values)

    def to_dict(self) -> dict:
        return asdict(self)

    @property
    def repeats(self) -> int:
        return 1 if self.method == "cv" else int(self.n_repeats)

    def describe(self) -> str:
        if self.method == "oob":
            return "Out of Bag Resampling"
        if self.method == "cv":
            return f"Cross-Validated ({self.n_splits} fold)"
        return f"Cross-Validated ({self.n_splits} fold, repeated {self.n_repeats} times)"

    def make_splits(self, n_rows: int, seed: int) -> List[Tuple[np.ndarray, np.ndarray, str]]:
        """Fold indices shared by every candidate, labelled ``FoldNN.RepM``."""
        if self.method == "oob":
            return []
        if n_rows < self.n_splits:
            raise ConfigIncompatibleError(
                "n_splits", f"Cannot make {self.n_splits} folds from {n_rows} rows"
            )
        splitter = RepeatedKFold(n_splits=self.n_splits, n_repeats=self.repeats, random_state=seed)
        splits = []
        for i, (train_idx, val_idx) in enumerate(splitter.split(np.arange(n_rows))):
            label = f"Fold{i % self.n_splits + 1:02d}.Rep{i // self.n_splits + 1}"
            splits.append((train_idx, val_idx, label))
        return splits


def is_better(metric: str, candidate: float, incumbent: float) -> bool:
    if metric in HIGHER_IS_BETTER:
        return candidate > incumbent
    return candidate < incumbent


def score_predictions(y_true, y_pred) -> Dict[str, float]:
    return {
        "rmse": float(np.sqrt(mean_squared_error(y_true, y_pred))),
        "mae": float(mean_absolute_error(y_true, y_pred)),
        "r2": float(r2_score(y_true, y_pred)),
    }



def default_n_jobs() -> int:
    return max(1, cpu_count() - 1)


class WorkerPool:
    """
    Worker pool shared by every training call of a workflow run.

    While open, a ``joblib.parallel_config`` scope selects the backend and
    worker count for every joblib call made by scikit-learn (the
    cross-validated searches) and by ``map``. Results come back in task order.
    """

    def __init__(self, n_jobs: Optional[int] = None, backend: str = "loky"):
        self.n_jobs = int(n_jobs) if n_jobs is not None else default_n_jobs()
        if self.n_jobs < 1:
            raise ConfigIncompatibleError("n_jobs", "Worker pool needs at least one worker")
        self.backend = backend
        self._config = None

    @property
    def is_open(self) -> bool:
        return self._config is not None

    def open(self) -> "WorkerPool":
        if self._config is None:
            self._config = parallel_config(backend=self.backend, n_jobs=self.n_jobs)
            self._config.__enter__()
            print(f"[INFO] Worker pool started ({self.n_jobs} workers, {self.backend}).")
        return self

    def close(self):
        if self._config is not None:
            self._config.__exit__(None, None, None)
            self._config = None
            print("[INFO] Worker pool released.")

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def active_n_jobs(self) -> int:
        if self._config is None:
            raise RuntimeError("WorkerPool is not open; use it as a context manager.")
        return self.n_jobs

    def map(self, func: Callable, tasks: Iterable[tuple]) -> list:
        return Parallel(n_jobs=self.active_n_jobs())(delayed(func)(*task) for task in tasks)


def run_tasks(func: Callable, tasks: Iterable[tuple], pool: Optional[WorkerPool] = None) -> list:
    """Run tasks on the pool when one is given, otherwise in-process."""
    if pool is None:
        return [func(*task) for task in tasks]
    return pool.map(func, tasks)


def search_cv(
    estimator,
    space: dict,
    resampling: ResamplingSpec,
    splits: List[Tuple[np.ndarray, np.ndarray, str]],
    X: pd.DataFrame,
    y: pd.Series,
    seed: int,
    pool: Optional[WorkerPool] = None,
):
    """
    Evaluate every candidate of ``space`` on the shared folds with
    ``GridSearchCV`` (or ``RandomizedSearchCV`` for a random search over a
    non-empty space). Nothing is refit; the caller refits the winner.
    """
    common = dict(
        scoring=DEFAULT_SCORING,
        cv=[(train_idx, val_idx) for train_idx, val_idx, _ in splits],
        refit=False,
        n_jobs=pool.active_n_jobs() if pool is not None else None,
        error_score="raise",
    )
    if resampling.search == "random" and space:
        search = RandomizedSearchCV(
            estimator,
            param_distributions=space,
            n_iter=resampling.n_iter,
            random_state=seed,
            **common,
        )
    else:
        search = GridSearchCV(estimator, param_grid=space, **common)
    search.fit(X, y)
    return search


def fold_scores(cv_results: dict, splits: List[Tuple[np.ndarray, np.ndarray, str]]) -> List[pd.DataFrame]:
    """Per-candidate frames of fold metrics read from ``cv_results_`` (scores un-negated)."""
    labels = [label for _, _, label in splits]
    frames = []
    for c in range(len(cv_results["params"])):
        rows = []
        for i, label in enumerate(labels):
            row = {"resample": label}
            for metric in METRICS:
                value = float(cv_results[f"split{i}_test_{metric}"][c])
                row[metric] = value if metric in HIGHER_IS_BETTER else -value
            rows.append(row)
        frames.append(pd.DataFrame(rows, columns=["resample", *METRICS]))
    return frames

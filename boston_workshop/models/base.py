"""Uniform training/tuning interface shared by every model family."""

from __future__ import annotations

import re
import warnings
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

import numpy as np
import pandas as pd
from sklearn.model_selection import ParameterGrid, ParameterSampler

from boston_workshop.errors import ConfigIncompatibleError, DataShapeError, SchemaMismatchError, WorkshopError
from boston_workshop.pipelines.resampling import (
    METRICS,
    ResamplingSpec,
    WorkerPool,
    fold_scores,
    is_better,
    run_tasks,
    score_predictions,
    search_cv,
)
from boston_workshop.utils.seeds import DEFAULT_SEED


@dataclass
class CandidateResult:
    """One hyperparameter combination and its per-resample metrics."""

    params: dict
    resamples: pd.DataFrame

    def mean(self, metric: str) -> float:
        return float(self.resamples[metric].mean())

    def summary(self) -> Dict[str, float]:
        out = {metric: self.mean(metric) for metric in METRICS}
        for metric in METRICS:
            out[f"{metric}_sd"] = float(self.resamples[metric].std()) if len(self.resamples) > 1 else 0.0
        return out


class FittedModel:
    """
    Fitted estimator for exactly one configuration.

    Holds the training column order so predictions can only be made on data
    with the same feature columns.
    """

    def __init__(self, family: "ModelFamily", params: dict, estimator, feature_names: List[str],
                 target: str, fit_warnings: Iterable[str] = ()):
        self._family = family
        self._params = dict(params)
        self._estimator = estimator
        self._feature_names = list(feature_names)
        self._target = target
        self._fit_warnings = tuple(fit_warnings)

    @property
    def family(self) -> str:
        return self._family.name

    @property
    def params(self) -> dict:
        return dict(self._params)

    @property
    def estimator(self):
        return self._estimator

    @property
    def feature_names(self) -> List[str]:
        return list(self._feature_names)

    @property
    def target(self) -> str:
        return self._target

    @property
    def fit_warnings(self) -> tuple:
        return self._fit_warnings

    def align(self, data: pd.DataFrame) -> pd.DataFrame:
        """Feature columns of ``data`` in training order; the target column is ignored."""
        columns = [c for c in data.columns if c != self._target]
        missing = [c for c in self._feature_names if c not in columns]
        extra = [c for c in columns if c not in self._feature_names]
        if missing:
            raise SchemaMismatchError(missing[0], f"Columns missing from evaluation data: {missing}")
        if extra:
            raise SchemaMismatchError(extra[0], f"Columns not seen during training: {extra}")
        return data[self._feature_names]

    def predict(self, data: pd.DataFrame) -> np.ndarray:
        return np.asarray(self._estimator.predict(self.align(data)), dtype=float).ravel()

    def feature_importance(self) -> Optional[pd.Series]:
        """Importance scaled to 0-100, highest first; ``None`` when the family has none."""
        raw = self._family.importances(self._estimator)
        if raw is None:
            return None
        imp = pd.Series(np.asarray(raw, dtype=float), index=self._feature_names, name="importance")
        span = imp.max() - imp.min()
        scaled = (imp - imp.min()) / span * 100 if span > 0 else imp * 0.0
        return scaled.sort_values(ascending=False)

    def loss_curve(self) -> Optional[list]:
        """Training loss per iteration for iterative learners, else ``None``."""
        return self._family.loss_curve(self._estimator)


@dataclass
class TrainResult:
    family: str
    best_params: dict
    model: FittedModel
    candidates: List[CandidateResult]
    resampling: ResamplingSpec
    n_samples: int
    n_features: int
    fixed_params: dict = field(default_factory=dict)

    @property
    def best_candidate(self) -> CandidateResult:
        for candidate in self.candidates:
            if candidate.params == self.best_params:
                return candidate
        raise LookupError("Best parameters not found among candidates")

    @property
    def resamples(self) -> pd.DataFrame:
        return self.best_candidate.resamples

    def results_table(self) -> pd.DataFrame:
        rows = []
        for candidate in self.candidates:
            rows.append({**{k: _display(v) for k, v in candidate.params.items()}, **candidate.summary()})
        return pd.DataFrame(rows)


def _display(value):
    if isinstance(value, tuple):
        return str(value)
    return value


class ResampleResultSet:
    """Labelled fits from a manual sweep, kept in sweep order."""

    def __init__(self, param: str, results: "OrderedDict[str, TrainResult]"):
        self.param = param
        self._results = OrderedDict(results)

    @property
    def labels(self) -> List[str]:
        return list(self._results.keys())

    def __getitem__(self, label: str) -> TrainResult:
        return self._results[label]

    def __iter__(self):
        return iter(self._results)

    def __len__(self):
        return len(self._results)

    def items(self):
        return self._results.items()

    def metric_frame(self, metric: str = "rmse") -> pd.DataFrame:
        """One column per label, one row per resample."""
        if metric not in METRICS:
            raise ConfigIncompatibleError("metric", f"Unknown metric '{metric}'")
        return pd.DataFrame(
            {label: result.resamples[metric].to_numpy() for label, result in self._results.items()}
        )


def _as_candidates(values) -> list:
    if isinstance(values, (list, tuple)) and not isinstance(values, str):
        return list(values)
    return [values]


def _offending_key(message: str, keys: Iterable[str]) -> Optional[str]:
    """The hyperparameter an estimator error message names, e.g. ``The 'max_depth' parameter``."""
    match = re.search(r"The '(\w+)' parameter", message)
    if match and match.group(1) in keys:
        return match.group(1)
    for key in keys:
        if f"'{key}'" in message:
            return key
    return None


class ModelFamily:
    """
    Base class for a model family.

    Subclasses provide the estimator, the default grid and random-search
    space, and any value checks beyond what the estimator validates itself.
    """

    name: str = ""
    label: str = ""
    supports_oob: bool = False
    training_config: dict = {}

    def __init__(self, model_params: Optional[dict] = None):
        self.model_params = dict(model_params or {})

    # -- hooks -----------------------------------------------------------
    def make_estimator(self, params: dict, seed: int, oob: bool = False):
        raise NotImplementedError

    def default_grid(self, n_features: int) -> dict:
        return {}

    def random_space(self, n_features: int) -> dict:
        return {}

    def allowed_params(self) -> set:
        raise NotImplementedError

    def check_values(self, params: dict, n_features: int):
        """Family-specific value checks; raise ``ConfigIncompatibleError``."""

    def param_owner(self, estimator):
        """The object whose own parameter validation covers the tunable names."""
        return estimator

    def search_param_name(self, name: str) -> str:
        """Name of a tunable parameter as seen by ``estimator.set_params``."""
        return name

    def importances(self, estimator) -> Optional[np.ndarray]:
        return None

    def oob_predictions(self, estimator) -> np.ndarray:
        raise ConfigIncompatibleError("method", f"{self.name} has no out-of-bag estimate")

    def loss_curve(self, estimator) -> Optional[list]:
        return None

    # -- shared machinery ------------------------------------------------
    def validate_params(self, params: dict, n_features: int, seed: int = DEFAULT_SEED):
        allowed = self.allowed_params()
        for key in params:
            if key not in allowed:
                raise ConfigIncompatibleError(key, f"Not a hyperparameter of {self.name}")
        self.check_values(params, n_features)
        self._check_with_estimator(params, seed)

    def _check_with_estimator(self, params: dict, seed: int):
        """Run the estimator's own parameter validation before any fold is fitted."""
        if not params:
            return
        owner = self.param_owner(self.build_estimator(params, seed))
        # only scikit-learn estimators declare their parameter constraints
        if not hasattr(owner, "_parameter_constraints"):
            return
        try:
            owner._validate_params()
        except ValueError as e:
            key = _offending_key(str(e), params) or next(iter(params))
            raise ConfigIncompatibleError(key, str(e)) from e

    def build_estimator(self, params: dict, seed: int, oob: bool = False):
        return self.make_estimator({**self.model_params, **params}, seed, oob=oob)

    def split_xy(self, data: pd.DataFrame, target: str):
        if target not in data.columns:
            raise DataShapeError(target, "Target column not found")
        X = data.drop(columns=[target])
        if X.shape[1] == 0:
            raise DataShapeError(target, "No feature columns besides the target")
        for column in X.columns:
            if not pd.api.types.is_numeric_dtype(X[column]):
                raise ConfigIncompatibleError(
                    column, f"{self.name} needs numeric inputs; encode this column first"
                )
        if not pd.api.types.is_numeric_dtype(data[target]):
            raise DataShapeError(target, "Target must be numeric")
        return X, data[target]

    def search_space(self, hyperparameters: Optional[dict], resampling: ResamplingSpec,
                     n_features: int) -> dict:
        """Grid (lists) or random-search space (lists and distributions) to tune over."""
        if resampling.search == "random":
            space = hyperparameters if hyperparameters is not None else self.random_space(n_features)
            return {k: v if hasattr(v, "rvs") else _as_candidates(v) for k, v in space.items()}
        grid = hyperparameters if hyperparameters is not None else self.default_grid(n_features)
        return {k: _as_candidates(v) for k, v in grid.items()}

    def candidates(self, hyperparameters: Optional[dict], resampling: ResamplingSpec,
                   n_features: int, seed: int) -> List[dict]:
        """Candidates in the order the cross-validated search evaluates them."""
        space = self.search_space(hyperparameters, resampling, n_features)
        if resampling.search == "random" and space:
            return list(ParameterSampler(space, n_iter=resampling.n_iter, random_state=seed))
        return list(ParameterGrid(space))

    def _resample_oob(self, params: dict, X: pd.DataFrame, y: pd.Series, seed: int) -> pd.DataFrame:
        estimator = self.build_estimator(params, seed, oob=True)
        estimator.fit(X, y)
        pred = np.ravel(self.oob_predictions(estimator))
        mask = ~np.isnan(pred)
        scores = score_predictions(y.to_numpy()[mask], pred[mask])
        return pd.DataFrame([{"resample": "OOB", **scores}])

    def _resample_cv(self, fixed: dict, space: dict, resampling: ResamplingSpec, X: pd.DataFrame,
                     y: pd.Series, seed: int, pool: Optional[WorkerPool]):
        """Candidates as evaluated by the search, with their fold metrics."""
        splits = resampling.make_splits(len(X), seed)
        try:
            search = search_cv(
                self.build_estimator(fixed, seed),
                {self.search_param_name(k): v for k, v in space.items()},
                resampling,
                splits,
                X,
                y,
                seed,
                pool,
            )
        except WorkshopError:
            raise
        except ValueError as e:
            key = _offending_key(str(e), [*fixed, *space]) or self.name
            raise ConfigIncompatibleError(key, f"Fitting failed during resampling: {e}") from e
        names = {self.search_param_name(k): k for k in space}
        evaluated = [{names[k]: v for k, v in p.items()} for p in search.cv_results_["params"]]
        return evaluated, fold_scores(search.cv_results_, splits)

    def fit(
        self,
        training_data: pd.DataFrame,
        target: str,
        hyperparameters: Optional[dict] = None,
        resampling: Optional[ResamplingSpec] = None,
        *,
        fixed_params: Optional[dict] = None,
        seed: int = DEFAULT_SEED,
        pool: Optional[WorkerPool] = None,
    ) -> TrainResult:
        """
        Evaluate every candidate by resampling, pick the best by
        ``resampling.metric`` and refit it on all of ``training_data``.
        """
        resampling = resampling or ResamplingSpec.from_dict(self.training_config)
        X, y = self.split_xy(training_data, target)
        n_features = X.shape[1]

        if resampling.method == "oob" and not self.supports_oob:
            raise ConfigIncompatibleError("method", f"{self.name} has no out-of-bag estimate")

        fixed = dict(fixed_params or {})
        space = self.search_space(hyperparameters, resampling, n_features)
        overlap = sorted(set(fixed) & set(space))
        if overlap:
            raise ConfigIncompatibleError(overlap[0], "Set both as a fixed value and in the tuning grid")

        self.validate_params(self.model_params, n_features, seed)
        self.validate_params(fixed, n_features, seed)
        candidates = self.candidates(hyperparameters, resampling, n_features, seed)
        for params in candidates:
            self.validate_params({**fixed, **params}, n_features, seed)

        print(f"[INFO] Training {self.label}: {len(candidates)} candidate(s), {resampling.describe()}")
        if resampling.method == "oob":
            tasks = [({**fixed, **params}, X, y, seed) for params in candidates]
            frames = run_tasks(self._resample_oob, tasks, pool)
        else:
            candidates, frames = self._resample_cv(fixed, space, resampling, X, y, seed, pool)
        results = [CandidateResult(params, frame) for params, frame in zip(candidates, frames)]

        best = results[0]
        for candidate in results[1:]:
            if is_better(resampling.metric, candidate.mean(resampling.metric), best.mean(resampling.metric)):
                best = candidate
        print(f"[INFO] Best {self.label} candidate: {best.params or 'defaults'} "
              f"({resampling.metric}={best.mean(resampling.metric):.4f})")

        estimator = self.build_estimator({**fixed, **best.params}, seed)
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            estimator.fit(X, y)
        fit_warnings = [f"{w.category.__name__}: {w.message}" for w in caught]
        for message in fit_warnings:
            print(f"[WARN] {self.label}: {message}")

        model = FittedModel(self, {**fixed, **best.params}, estimator, list(X.columns), target, fit_warnings)
        return TrainResult(
            family=self.name,
            best_params=best.params,
            model=model,
            candidates=results,
            resampling=resampling,
            n_samples=len(X),
            n_features=n_features,
            fixed_params=fixed,
        )

    def sweep(
        self,
        training_data: pd.DataFrame,
        target: str,
        param: str,
        values: Iterable,
        hyperparameters: Optional[dict] = None,
        resampling: Optional[ResamplingSpec] = None,
        *,
        fixed_params: Optional[dict] = None,
        seed: int = DEFAULT_SEED,
        pool: Optional[WorkerPool] = None,
    ) -> ResampleResultSet:
        """Refit once per value of ``param`` with the same seed and folds."""
        if hyperparameters and param in hyperparameters:
            raise ConfigIncompatibleError(param, "Swept parameter cannot also be in the tuning grid")
        results = OrderedDict()
        for value in values:
            label = str(value)
            print(f"[INFO] Sweep {param}={label}")
            results[label] = self.fit(
                training_data,
                target,
                hyperparameters,
                resampling,
                fixed_params={**(fixed_params or {}), param: value},
                seed=seed,
                pool=pool,
            )
        return ResampleResultSet(param, results)

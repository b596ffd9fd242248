"""The workshop workflow: load, inspect, encode, split, then one experiment per family."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import pandas as pd

from boston_workshop.data.data_loader import DataLoader
from boston_workshop.data.feature_engineer import CategoricalEncoder
from boston_workshop.data.inspector import DataInspector, InspectionReport
from boston_workshop.errors import WorkshopError
from boston_workshop.evaluation.evaluator import EvaluationResult, evaluate_model
from boston_workshop.evaluation.reporting import (
    format_train_result,
    plot_importance,
    plot_loss_curve,
    plot_pred_vs_actual,
    plot_resamples,
    summarize_resamples,
)
from boston_workshop.models import get_family
from boston_workshop.models.base import ResampleResultSet, TrainResult
from boston_workshop.pipelines.data_setup import (
    ExperimentSpec,
    SplitAssignment,
    WorkshopConfig,
    stratified_split,
)
from boston_workshop.pipelines.resampling import WorkerPool
from boston_workshop.utils.tracking import ExperimentTracker


@dataclass
class PreparedData:
    data: pd.DataFrame
    encoder: CategoricalEncoder
    split: SplitAssignment
    inspection: InspectionReport

    @property
    def train(self) -> pd.DataFrame:
        return self.split.train(self.data)

    @property
    def test(self) -> pd.DataFrame:
        return self.split.test(self.data)


@dataclass
class ExperimentOutcome:
    name: str
    family: str
    status: str = "ok"
    result: Optional[object] = None
    evaluation: Optional[EvaluationResult] = None
    error: Optional[str] = None
    artifacts: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == "ok"


def _banner(text: str):
    print("=" * 70)
    print(f"[INFO] {text}")
    print("=" * 70)


def prepare_data(config: WorkshopConfig, data: Optional[pd.DataFrame] = None) -> PreparedData:
    """Load (unless ``data`` is given), inspect, handle nulls, encode and split."""
    loader = DataLoader(config.data_path, allow_download=config.allow_download,
                        missing_policy=config.missing_policy)

    _banner("STEP 1: Loading data")
    df = loader.load_data() if data is None else data.copy()

    _banner("STEP 2: Data checks")
    inspector = DataInspector(target=config.target)
    inspection = inspector.inspect(df, figures_dir=str(config.figures_dir))
    print("[INFO] Missing values per column:")
    print(inspection.missing_counts.to_string())
    print(f"[INFO] Summary of {config.target}:")
    print(inspection.target_summary.to_string())
    df = loader.handle_missing(df)

    _banner("STEP 3: Encoding categorical columns")
    encoder = CategoricalEncoder(config.categorical_features).fit(df)
    for column, counts in encoder.level_counts(df).items():
        print(f"[INFO] Levels of {column}:")
        print(counts.to_string())
    encoded = encoder.transform(df)
    print(f"[INFO] Encoded dataset shape: {encoded.shape}")

    _banner("STEP 4: Train/test split")
    split = stratified_split(
        encoded,
        config.target,
        train_fraction=config.train_fraction,
        seed=config.seed,
        n_bins=config.n_bins,
    )
    return PreparedData(encoded, encoder, split, inspection)


def _write_metrics(path: str, payload: dict) -> str:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w") as f:
        json.dump(payload, f, indent=2, default=str)
    return path


def _report_single(spec: ExperimentSpec, result: TrainResult, test: pd.DataFrame,
                   config: WorkshopConfig, tracker: ExperimentTracker) -> Tuple[EvaluationResult, List[str]]:
    print(format_train_result(result))
    evaluation = evaluate_model(result.model, test)

    figures = config.figures_dir
    artifacts = [
        plot_pred_vs_actual(evaluation.pred_vs_actual, str(figures / f"{spec.name}_pred_vs_actual.png"),
                            title=f"{spec.name}: predicted vs actual")
    ]
    if evaluation.importance is not None:
        print("[INFO] Variable importance:")
        print(evaluation.importance.to_string(index=False, float_format=lambda v: f"{v:.2f}"))
        artifacts.append(plot_importance(evaluation.importance, str(figures / f"{spec.name}_importance.png"),
                                         title=f"{spec.name}: variable importance"))
    losses = result.model.loss_curve()
    if losses:
        artifacts.append(plot_loss_curve(losses, str(figures / f"{spec.name}_loss_curve.png"),
                                         title=f"{spec.name}: training loss"))

    cv_metrics = result.best_candidate.summary()
    artifacts.append(_write_metrics(
        os.path.join(config.reports_dir, f"metrics_{spec.name}.json"),
        {
            "family": spec.family,
            "best_params": result.best_params,
            "fixed_params": result.fixed_params,
            "resampling": result.resampling.to_dict(),
            "cv": cv_metrics,
            "test": evaluation.metrics,
            "fit_warnings": list(result.model.fit_warnings),
        },
    ))

    tracker.log_params({**result.fixed_params, **result.best_params}, prefix="model__")
    tracker.log_params(result.resampling.to_dict(), prefix="train__")
    tracker.log_metrics(cv_metrics, prefix="cv_")
    tracker.log_metrics(evaluation.metrics, prefix="test_")
    return evaluation, artifacts


def _report_sweep(spec: ExperimentSpec, result_set: ResampleResultSet, config: WorkshopConfig,
                  tracker: ExperimentTracker) -> List[str]:
    summary = summarize_resamples(result_set)
    print(f"[INFO] Resample summary across {result_set.param}:")
    print(summary.to_string(float_format=lambda v: f"{v:.4f}"))

    metric = spec.resampling.metric
    artifacts = [plot_resamples(result_set, str(config.figures_dir / f"{spec.name}_resamples.png"), metric=metric)]
    per_label = {label: result.best_candidate.summary() for label, result in result_set.items()}
    artifacts.append(_write_metrics(
        os.path.join(config.reports_dir, f"metrics_{spec.name}.json"),
        {
            "family": spec.family,
            "param": result_set.param,
            "cv": per_label,
            "fit_warnings": {label: list(result.model.fit_warnings) for label, result in result_set.items()},
        },
    ))
    for label, metrics in per_label.items():
        tracker.log_metrics(metrics, prefix=f"cv_{result_set.param}_{label}_")
    return artifacts


def run_experiment(spec: ExperimentSpec, prepared: PreparedData, config: WorkshopConfig, *,
                   pool: Optional[WorkerPool] = None,
                   tracker: Optional[ExperimentTracker] = None) -> ExperimentOutcome:
    """
    Train and report one experiment. Configuration and data errors abort
    this experiment only; the outcome records the failure.
    """
    tracker = tracker or ExperimentTracker(enabled=False)
    outcome = ExperimentOutcome(name=spec.name, family=spec.family)
    _banner(f"Experiment: {spec.name} ({spec.family})")
    try:
        family = get_family(spec.family, model_params=spec.model_params)
        with tracker.start_run(run_name=spec.name):
            if spec.sweep is not None:
                result = family.sweep(
                    prepared.train,
                    config.target,
                    spec.sweep.param,
                    spec.sweep.values,
                    spec.grid,
                    spec.resampling,
                    fixed_params=spec.fixed_params,
                    seed=config.seed,
                    pool=pool,
                )
                outcome.artifacts = _report_sweep(spec, result, config, tracker)
            else:
                result = family.fit(
                    prepared.train,
                    config.target,
                    spec.grid,
                    spec.resampling,
                    fixed_params=spec.fixed_params,
                    seed=config.seed,
                    pool=pool,
                )
                outcome.evaluation, outcome.artifacts = _report_single(
                    spec, result, prepared.test, config, tracker
                )
            if prepared.inspection.histogram_path:
                outcome.artifacts.append(prepared.inspection.histogram_path)
            for path in outcome.artifacts:
                tracker.log_artifact(path)
        outcome.result = result
    except WorkshopError as e:
        outcome.status = "failed"
        outcome.error = str(e)
        print(f"[ERROR] Experiment '{spec.name}' aborted: {e}")
    return outcome


def run_workshop(config: WorkshopConfig, *, data: Optional[pd.DataFrame] = None,
                 experiments: Optional[List[str]] = None,
                 pool_backend: str = "loky",
                 tracker: Optional[ExperimentTracker] = None) -> Dict[str, ExperimentOutcome]:
    """
    Run the whole workshop. The worker pool is opened once, shared by every
    experiment and released when the run ends.
    """
    tracker = tracker or ExperimentTracker(enabled=config.tracking_enabled,
                                           experiment_name=config.experiment_name)
    prepared = prepare_data(config, data)

    selected = config.experiments
    if experiments:
        known = {spec.name for spec in config.experiments}
        unknown = [name for name in experiments if name not in known]
        if unknown:
            raise ValueError(f"Unknown experiments: {unknown}. Use one of: {sorted(known)}")
        selected = [spec for spec in config.experiments if spec.name in experiments]

    outcomes: Dict[str, ExperimentOutcome] = {}
    with WorkerPool(n_jobs=config.n_jobs, backend=pool_backend) as pool:
        for spec in selected:
            outcomes[spec.name] = run_experiment(spec, prepared, config, pool=pool, tracker=tracker)

    _banner("Summary")
    for name, outcome in outcomes.items():
        if outcome.succeeded and outcome.evaluation is not None:
            m = outcome.evaluation.metrics
            print(f"   {name:<32} test rmse={m['rmse']:.4f}  r2={m['r2']:.4f}")
        elif outcome.succeeded:
            print(f"   {name:<32} sweep over {len(outcome.result)} values")
        else:
            print(f"   {name:<32} FAILED: {outcome.error}")
    return outcomes

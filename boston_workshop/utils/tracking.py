# boston_workshop/utils/tracking.py
"""Optional MLflow experiment tracking for workshop runs."""

from __future__ import annotations

import os
from contextlib import contextmanager

import mlflow


def _to_float(v):
    try:
        return float(v)
    except (TypeError, ValueError):
        return v


class ExperimentTracker:
    """
    Thin wrapper over MLflow. When disabled every call is a no-op, so the
    workflow can log unconditionally.
    """

    def __init__(self, enabled: bool = False,
                 experiment_name: str | None = None,
                 tracking_uri: str | None = None,
                 tags: dict | None = None):
        self.enabled = bool(enabled)
        self.experiment_name = (
            experiment_name
            or os.getenv("EXPERIMENT_NAME", "boston-workshop")
        )
        self.tracking_uri = tracking_uri or os.getenv("MLFLOW_TRACKING_URI")
        self.tags = tags or {"project": "boston-workshop"}

        if self.enabled and self.tracking_uri:
            mlflow.set_tracking_uri(self.tracking_uri)

    @contextmanager
    def start_run(self, run_name: str | None = None):
        if not self.enabled:
            yield None
            return
        mlflow.set_experiment(self.experiment_name)
        with mlflow.start_run(run_name=run_name) as run:
            mlflow.set_tags({**self.tags, "stage": os.getenv("RUN_STAGE", "dev")})
            yield run

    def log_params(self, params: dict, prefix: str = ""):
        if not self.enabled:
            return
        mlflow.log_params({f"{prefix}{k}": v for k, v in params.items()})

    def log_metrics(self, metrics: dict, prefix: str = ""):
        if not self.enabled:
            return
        mlflow.log_metrics({f"{prefix}{k}": _to_float(v) for k, v in metrics.items()})

    def log_artifact(self, path: str):
        if not self.enabled or path is None:
            return
        mlflow.log_artifact(path)

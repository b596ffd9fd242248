from types import SimpleNamespace

import pytest

from boston_workshop.errors import ConfigIncompatibleError, DataShapeError, SchemaMismatchError, WorkshopError
from boston_workshop.utils import env as env_mod
from boston_workshop.utils import seeds
from boston_workshop.utils import tracking

ENV_KEYS = ["SEED", "N_JOBS", "REPORTS_DIR", "EXPERIMENT_NAME", "MLFLOW_TRACKING_URI"]


def test_load_env_reads_env_file_then_falls_back(monkeypatch, tmp_path):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)

    monkeypatch.chdir(tmp_path)
    (tmp_path / ".env").write_text("SEED=7\nN_JOBS=2\nREPORTS_DIR=out\nEXPERIMENT_NAME=my-exp\n")
    values = env_mod.load_env()
    assert values["SEED"] == "7"
    assert values["N_JOBS"] == "2"
    assert values["REPORTS_DIR"] == "out"
    assert values["EXPERIMENT_NAME"] == "my-exp"
    assert values["MLFLOW_TRACKING_URI"] is None

    # without .env only the process environment is used
    (tmp_path / ".env").unlink()
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("EXPERIMENT_NAME", "fallback-exp")
    values = env_mod.load_env()
    assert values["EXPERIMENT_NAME"] == "fallback-exp"
    assert values["SEED"] is None
    assert values["REPORTS_DIR"] is None


def test_resolve_seed_precedence(monkeypatch):
    monkeypatch.delenv("SEED", raising=False)
    assert seeds.resolve_seed() == seeds.DEFAULT_SEED
    monkeypatch.setenv("SEED", "13")
    assert seeds.resolve_seed() == 13
    assert seeds.resolve_seed(3) == 3


def test_error_hierarchy_carries_field():
    for cls in (DataShapeError, ConfigIncompatibleError, SchemaMismatchError):
        err = cls("rad", "problem")
        assert isinstance(err, WorkshopError)
        assert isinstance(err, ValueError)
        assert err.field == "rad"
        assert "rad" in str(err)


def test_disabled_tracker_never_touches_mlflow(monkeypatch):
    class ExplodingMLflow:
        def __getattr__(self, name):
            raise AssertionError(f"mlflow.{name} called while tracking is disabled")

    monkeypatch.setattr(tracking, "mlflow", ExplodingMLflow())
    tracker = tracking.ExperimentTracker(enabled=False)

    with tracker.start_run(run_name="rf") as run:
        assert run is None
        tracker.log_params({"max_features": 3})
        tracker.log_metrics({"rmse": 3.2})
        tracker.log_artifact("reports/metrics_rf.json")


def test_enabled_tracker_logs_with_stubbed_mlflow(monkeypatch, tmp_path):
    state = {"params": {}, "metrics": {}, "artifacts": []}

    class DummyRun:
        def __init__(self, run_name):
            self.info = SimpleNamespace(run_id="run-123", run_name=run_name)

        def __enter__(self):
            return self

        def __exit__(self, exc_type, exc, tb):
            return False

    class DummyMLflow:
        def set_tracking_uri(self, uri):
            state["uri"] = uri

        def set_experiment(self, name):
            state["experiment"] = name

        def start_run(self, run_name=None):
            return DummyRun(run_name)

        def set_tags(self, tags):
            state["tags"] = tags

        def log_params(self, params):
            state["params"].update(params)

        def log_metrics(self, metrics):
            state["metrics"].update(metrics)

        def log_artifact(self, path):
            state["artifacts"].append(path)

    monkeypatch.setattr(tracking, "mlflow", DummyMLflow())
    tracker = tracking.ExperimentTracker(enabled=True, experiment_name="stub-exp", tracking_uri="file://mlruns")

    with tracker.start_run(run_name="xgboost_default") as run:
        assert run.info.run_name == "xgboost_default"
        tracker.log_params({"max_depth": 3}, prefix="model__")
        tracker.log_metrics({"rmse": "3.5", "r2": 0.8}, prefix="test_")
        tracker.log_artifact(str(tmp_path / "metrics.json"))

    assert state["uri"] == "file://mlruns"
    assert state["experiment"] == "stub-exp"
    assert state["tags"]["project"] == "boston-workshop"
    assert state["params"] == {"model__max_depth": 3}
    assert state["metrics"] == {"test_rmse": 3.5, "test_r2": 0.8}
    assert state["artifacts"] == [str(tmp_path / "metrics.json")]


@pytest.mark.parametrize("value, expected", [("1.5", 1.5), (2, 2.0), ("n/a", "n/a")])
def test_metric_values_are_coerced_when_possible(value, expected):
    assert tracking._to_float(value) == expected

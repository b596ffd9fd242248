from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

import numpy as np
import pandas as pd

from boston_workshop.errors import DataShapeError
from boston_workshop.models.base import FittedModel
from boston_workshop.pipelines.resampling import score_predictions


@dataclass
class EvaluationResult:
    predictions: np.ndarray
    pred_vs_actual: pd.DataFrame
    metrics: Dict[str, float]
    importance: Optional[pd.DataFrame] = None


def importance_table(model: FittedModel) -> Optional[pd.DataFrame]:
    """Ranked importance (rank 1 = most important), or ``None``."""
    scores = model.feature_importance()
    if scores is None:
        return None
    table = scores.rename("importance").rename_axis("feature").reset_index()
    table.insert(0, "rank", np.arange(1, len(table) + 1))
    return table


def evaluate_model(model: FittedModel, evaluation_data: pd.DataFrame) -> EvaluationResult:
    """
    Predict every evaluation row and compare against the actual target.
    The model is only read from.
    """
    print(f"[INFO] Evaluating {model.family} on {len(evaluation_data)} held-out rows...")
    if model.target not in evaluation_data.columns:
        raise DataShapeError(model.target, "Target column not found in evaluation data")

    predictions = model.predict(evaluation_data)
    actual = evaluation_data[model.target].to_numpy(dtype=float)
    pairs = pd.DataFrame({"actual": actual, "predicted": predictions}, index=evaluation_data.index)
    metrics = score_predictions(actual, predictions)

    print("[INFO] Test set evaluation:")
    for k, v in metrics.items():
        print(f"   {k}: {v:.4f}")

    return EvaluationResult(
        predictions=predictions,
        pred_vs_actual=pairs,
        metrics=metrics,
        importance=importance_table(model),
    )

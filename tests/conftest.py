import sys
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

# Ensure the project root is on sys.path for `boston_workshop.*` imports
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


@pytest.fixture
def boston_df():
    """Synthetic table with the Boston Housing shape: 506 rows, 13 predictors, medv."""
    rng = np.random.default_rng(0)
    n = 506
    df = pd.DataFrame(
        {
            "crim": rng.exponential(3.6, n),
            "zn": rng.choice([0.0, 12.5, 25.0, 80.0], n),
            "indus": rng.uniform(0.5, 27.7, n),
            "chas": rng.choice([0, 1], n, p=[0.93, 0.07]),
            "nox": rng.uniform(0.38, 0.87, n),
            "rm": rng.normal(6.28, 0.7, n),
            "age": rng.uniform(3.0, 100.0, n),
            "dis": rng.uniform(1.1, 12.1, n),
            "rad": rng.choice([1, 2, 3, 4, 5, 6, 7, 8, 24], n),
            "tax": rng.uniform(187.0, 711.0, n),
            "ptratio": rng.uniform(12.6, 22.0, n),
            "black": rng.uniform(0.3, 396.9, n),
            "lstat": rng.uniform(1.7, 38.0, n),
        }
    )
    df["medv"] = (
        22.0
        + 6.0 * (df["rm"] - 6.28)
        - 0.5 * (df["lstat"] - 12.6)
        - 0.3 * df["crim"]
        + rng.normal(0.0, 2.0, n)
    ).clip(5.0, 50.0)
    return df


@pytest.fixture
def regression_df():
    """Small numeric frame for quick model fits: y = 3*x1 - 2*x2 + noise."""
    rng = np.random.default_rng(1)
    n = 90
    df = pd.DataFrame(
        {
            "x1": rng.uniform(0, 10, n),
            "x2": rng.uniform(0, 5, n),
            "x3": rng.normal(0, 1, n),
            "x4": rng.integers(0, 3, n).astype(float),
        }
    )
    df["y"] = 3 * df["x1"] - 2 * df["x2"] + rng.normal(0, 0.5, n)
    return df

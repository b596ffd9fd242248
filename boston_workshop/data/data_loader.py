import os
import pandas as pd
from sklearn.datasets import fetch_openml

from boston_workshop.errors import ConfigIncompatibleError, DataShapeError

EXPECTED_COLUMNS = [
    "crim",
    "zn",
    "indus",
    "chas",
    "nox",
    "rm",
    "age",
    "dis",
    "rad",
    "tax",
    "ptratio",
    "black",
    "lstat",
    "medv",
]

DEFAULT_DATA_PATH = os.path.join("data", "raw", "boston.csv")

MISSING_POLICIES = ("raise", "drop", "impute")


class DataLoader:
    """
    Loads and validates the Boston Housing table.

    The table is read from a CSV; when the CSV does not exist yet it is
    fetched once from OpenML and cached at ``input_path``.
    """

    def __init__(self, input_path: str = DEFAULT_DATA_PATH, allow_download: bool = True,
                 missing_policy: str = "raise"):
        if missing_policy not in MISSING_POLICIES:
            raise ConfigIncompatibleError(
                "missing_policy", f"Must be one of {MISSING_POLICIES}, got '{missing_policy}'"
            )
        self.input_path = input_path
        self.allow_download = allow_download
        self.missing_policy = missing_policy

    def fetch(self) -> pd.DataFrame:
        """
        Download the dataset from OpenML, normalize column names and types,
        and cache it as CSV.
        """
        print("[INFO] Fetching Boston Housing from OpenML...")
        bunch = fetch_openml(name="boston", version=1, as_frame=True)
        df = bunch.frame.copy()
        df.columns = [c.lower() for c in df.columns]
        df = df.rename(columns={"b": "black"})
        df = df.astype(str).apply(pd.to_numeric, errors="coerce")

        os.makedirs(os.path.dirname(self.input_path) or ".", exist_ok=True)
        df.to_csv(self.input_path, index=False)
        print(f"[INFO] Cached dataset to: {self.input_path}")
        return df

    def load_data(self) -> pd.DataFrame:
        """
        Load dataset from CSV and perform basic validation.
        """
        if os.path.exists(self.input_path):
            df = pd.read_csv(self.input_path)
        elif self.allow_download:
            df = self.fetch()
        else:
            raise FileNotFoundError(f"File not found: {self.input_path}")

        print(f"[INFO] Loaded dataset. Rows: {df.shape[0]}, Columns: {df.shape[1]}")

        missing_cols = [c for c in EXPECTED_COLUMNS if c not in df.columns]
        if missing_cols:
            raise DataShapeError(missing_cols[0], f"Missing expected columns: {missing_cols}")

        for column in EXPECTED_COLUMNS:
            if not pd.api.types.is_numeric_dtype(df[column]):
                raise DataShapeError(column, f"Expected a numeric column, got dtype '{df[column].dtype}'")

        print("[INFO] Column validation passed.")
        return df[EXPECTED_COLUMNS]

    def handle_missing(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Apply the missing-value policy: fail, drop incomplete rows or fill
        with column means.
        """
        null_counts = df.isna().sum()
        if not null_counts.any():
            return df

        if self.missing_policy == "raise":
            field = null_counts[null_counts > 0].index[0]
            raise DataShapeError(field, f"{int(null_counts[field])} missing values")

        if self.missing_policy == "drop":
            initial_rows = df.shape[0]
            df = df.dropna().reset_index(drop=True)
            print(f"[INFO] Dropped {initial_rows - df.shape[0]} rows with missing values.")
            return df

        df = df.fillna(df.mean(numeric_only=True))
        print(f"[INFO] Imputed missing values in: {list(null_counts[null_counts > 0].index)}")
        return df

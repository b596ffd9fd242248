from inspect import signature
from typing import Iterable, Optional

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator, TransformerMixin
from sklearn.preprocessing import OneHotEncoder
from sklearn.utils.validation import check_is_fitted

from boston_workshop.errors import DataShapeError


def _format_level(level) -> str:
    if isinstance(level, (float, np.floating)) and float(level).is_integer():
        return str(int(level))
    return str(level)


class CategoricalEncoder(BaseEstimator, TransformerMixin):
    """
    One-hot encodes integer-coded columns into one indicator per observed
    level (N columns, no reference level dropped).

    The level-to-column mapping is fixed at ``fit`` time. Rows with a level
    never seen during fit get all-zero indicators, and ``transform`` never
    adds a column that ``fit`` did not produce.
    """

    def __init__(self, columns: Optional[Iterable[str]] = None):
        self.columns = tuple(columns) if columns is not None else None

    def fit(self, X: pd.DataFrame, y=None):
        self._validate_columns(X)
        self.columns_ = list(self.columns or [])
        self.input_columns_ = list(X.columns)

        encoder_kwargs = {"handle_unknown": "ignore"}
        if "sparse_output" in signature(OneHotEncoder).parameters:
            encoder_kwargs["sparse_output"] = False
        else:
            encoder_kwargs["sparse"] = False

        self.encoder_ = None
        self.indicator_names_ = {}
        if self.columns_:
            self.encoder_ = OneHotEncoder(**encoder_kwargs).fit(X[self.columns_])
            for column, levels in zip(self.columns_, self.encoder_.categories_):
                self.indicator_names_[column] = [f"{column}_{_format_level(level)}" for level in levels]
        return self

    def transform(self, X: pd.DataFrame):
        check_is_fitted(self, "input_columns_")
        self._validate_columns(X)
        if not self.columns_:
            return X.copy()

        encoded = pd.DataFrame(
            self.encoder_.transform(X[self.columns_]),
            columns=[name for column in self.columns_ for name in self.indicator_names_[column]],
            index=X.index,
        )

        pieces = []
        for column in X.columns:
            if column in self.indicator_names_:
                pieces.append(encoded[self.indicator_names_[column]])
            else:
                pieces.append(X[[column]])
        return pd.concat(pieces, axis=1)

    def get_feature_names_out(self, input_features=None):
        check_is_fitted(self, "input_columns_")
        names = []
        for column in input_features if input_features is not None else self.input_columns_:
            names.extend(self.indicator_names_.get(column, [column]))
        return np.asarray(names)

    def level_counts(self, X: pd.DataFrame) -> dict:
        """Rows per level of every encoded column, like R's ``table()``."""
        self._validate_columns(X)
        return {column: X[column].value_counts().sort_index() for column in self.columns or []}

    def _validate_columns(self, X: pd.DataFrame):
        for column in self.columns or []:
            if column not in X.columns:
                raise DataShapeError(column, "Categorical column not found in the data")

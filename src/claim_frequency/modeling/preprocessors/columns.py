from __future__ import annotations

from typing import Sequence

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator, TransformerMixin

from claim_frequency.errors import SchemaMismatch, TransformError


class RequiredColumns(BaseEstimator, TransformerMixin):
    """Select the predictor columns in a fixed order and coerce the numeric ones."""

    def __init__(self, categorical: Sequence[str], numeric: Sequence[str]):
        self.categorical = categorical
        self.numeric = numeric

    @property
    def columns(self) -> list[str]:
        return [*self.categorical, *self.numeric]

    def fit(self, X: pd.DataFrame, y=None):
        self.transform(X)
        self.feature_names_in_ = np.asarray(self.columns, dtype=object)
        self.n_features_in_ = len(self.columns)
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        if not isinstance(X, pd.DataFrame):
            raise TypeError("RequiredColumns expects a pandas DataFrame as input.")

        missing = [c for c in self.columns if c not in X.columns]
        if missing:
            raise SchemaMismatch(missing)

        out = X[self.columns].copy()
        for name in self.numeric:
            values = pd.to_numeric(out[name], errors="coerce").astype(float)
            bad = ~np.isfinite(values.to_numpy())
            if bad.any():
                rows = out.index[bad].tolist()[:10]
                raise TransformError(f"Column {name!r} has missing or non-numeric values at rows {rows}")
            out[name] = values

        return out

    def get_feature_names_out(self, input_features=None):
        return np.asarray(self.columns, dtype=object)

from __future__ import annotations

from typing import Sequence

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator, TransformerMixin
from sklearn.utils.validation import check_is_fitted

from claim_frequency.errors import SchemaMismatch, TransformError
from claim_frequency.modeling.config import OTHER_LABEL, OTHER_THRESHOLD


def _as_str(s: pd.Series) -> pd.Series:
    nested = s.map(lambda v: isinstance(v, (list, tuple, dict, set))).to_numpy(dtype=bool)
    if nested.any():
        rows = s.index[nested].tolist()[:10]
        raise TransformError(f"Column {s.name!r} has non-scalar values at rows {rows}")
    return s.astype("string").str.strip()


class RareCategoryCollapser(BaseEstimator, TransformerMixin):
    """
    Collapse categorical levels seen in less than `threshold` of the fit rows
    into a single `other_label` level.

    Only columns that collapsed at least one level (or had missing values) at
    fit time get an "other" bucket. At transform time, values that were never
    seen go to that bucket when it exists and raise TransformError otherwise.
    """

    def __init__(
        self,
        columns: Sequence[str],
        threshold: float = OTHER_THRESHOLD,
        other_label: str = OTHER_LABEL,
    ):
        self.columns = columns
        self.threshold = threshold
        self.other_label = other_label

    def fit(self, X: pd.DataFrame, y=None):
        if not (0.0 <= self.threshold < 1.0):
            raise ValueError("threshold must be in [0, 1).")

        missing = [c for c in self.columns if c not in X.columns]
        if missing:
            raise SchemaMismatch(missing)

        levels: dict[str, list[str]] = {}
        has_other: dict[str, bool] = {}
        for col in self.columns:
            s = _as_str(X[col])
            freq = s.value_counts(normalize=True, dropna=False)
            keep = sorted(str(v) for v in freq.index[freq >= self.threshold] if not pd.isna(v))
            levels[col] = keep
            has_other[col] = bool(s.isna().any() or len(keep) < s.nunique(dropna=True))

        self.levels_ = levels
        self.has_other_ = has_other
        self.feature_names_in_ = np.asarray(list(X.columns), dtype=object)
        self.n_features_in_ = len(X.columns)
        return self

    def categories(self, col: str) -> list[str]:
        check_is_fitted(self, "levels_")
        return self.levels_[col] + ([self.other_label] if self.has_other_[col] else [])

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        check_is_fitted(self, "levels_")

        missing = [c for c in self.columns if c not in X.columns]
        if missing:
            raise SchemaMismatch(missing)

        out = X.copy()
        for col in self.columns:
            s = _as_str(out[col])
            known = s.isin(self.levels_[col]).fillna(False).astype(bool)
            if not known.all():
                if not self.has_other_[col]:
                    unseen = sorted(s[~known].fillna("<NA>").unique().tolist())
                    raise TransformError(
                        f"Column {col!r} has values not seen during fit and no "
                        f"{self.other_label!r} bucket: {unseen}"
                    )
                s = s.where(known, self.other_label)
            out[col] = s.astype(object)

        return out

    def get_feature_names_out(self, input_features=None):
        check_is_fitted(self, "feature_names_in_")
        if input_features is None:
            return self.feature_names_in_
        return np.asarray(input_features, dtype=object)

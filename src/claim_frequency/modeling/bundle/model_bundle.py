"""
A fitted preprocessing pipeline and a fitted Poisson GLM, stored and served as one unit.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Sequence

import numpy as np
import pandas as pd
from sklearn.exceptions import NotFittedError
from sklearn.pipeline import Pipeline
from sklearn.utils.validation import check_is_fitted

from claim_frequency.errors import ArtifactCorrupt, BundleError, SchemaMismatch, TransformError
from claim_frequency.modeling.bundle.read_bundle import read_bundle_parts
from claim_frequency.modeling.bundle.write_bundle import write_bundle
from claim_frequency.modeling.config import EXPOSURE_COL, MAX_EXPOSURE

INTERCEPT = "(Intercept)"


def exposure_values(values: pd.Series, *, max_exposure: float = MAX_EXPOSURE) -> np.ndarray:
    """Exposure as a float array capped at `max_exposure`; must be finite and > 0."""
    arr = pd.to_numeric(values, errors="coerce").to_numpy(dtype=float, na_value=np.nan)
    bad = ~np.isfinite(arr) | (arr <= 0)
    if bad.any():
        rows = values.index[bad].tolist()[:10]
        raise TransformError(f"Exposure must be a finite number > 0; invalid at rows {rows}")
    return np.minimum(arr, max_exposure)


def _as_frame(rows, required: Sequence[str]) -> pd.DataFrame:
    if isinstance(rows, pd.DataFrame):
        missing = [c for c in required if c not in rows.columns]
        if missing:
            raise SchemaMismatch(missing)
        return rows.reset_index(drop=True)

    if isinstance(rows, Mapping) or isinstance(rows, (str, bytes)):
        raise TypeError("predict expects a sequence of row mappings or a DataFrame.")

    records = list(rows)
    missing: list[str] = []
    for i, row in enumerate(records):
        if not isinstance(row, Mapping):
            raise TypeError(f"Row {i} is {type(row).__name__}, expected a mapping.")
        for c in required:
            if c not in row and c not in missing:
                missing.append(c)
    if missing:
        raise SchemaMismatch(missing)

    return pd.DataFrame.from_records(records, columns=list(required))


def _check_fitted(pipeline: Pipeline, model: Any) -> None:
    try:
        for _, step in pipeline.steps:
            if step is None or step == "passthrough":
                continue
            check_is_fitted(step)
        check_is_fitted(model)
    except NotFittedError as e:
        raise BundleError(f"Bundle parts must be fitted: {e}") from e


@dataclass(frozen=True)
class ModelBundle:
    pipeline: Pipeline = field(repr=False)
    model: Any = field(repr=False)
    predictors: tuple[str, ...]
    feature_names: tuple[str, ...]
    exposure_col: str = EXPOSURE_COL
    max_exposure: float = MAX_EXPOSURE
    created_at: str = ""
    metadata: Mapping[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def build(
        cls,
        *,
        pipeline: Pipeline,
        model: Any,
        predictors: Sequence[str],
        exposure_col: str = EXPOSURE_COL,
        max_exposure: float = MAX_EXPOSURE,
        created_at: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> "ModelBundle":
        """Validate and freeze a fitted pipeline/model pair.

        Both parts are deep-copied so the bundle is their only owner. Raises
        BundleError when the pipeline's output columns are not exactly the
        model's input columns.
        """
        _check_fitted(pipeline, model)

        try:
            produced = [str(n) for n in pipeline.get_feature_names_out()]
        except (AttributeError, ValueError) as e:
            raise BundleError(f"Pipeline cannot report its output columns: {e}") from e

        expected = [str(n) for n in getattr(model, "feature_names_in_", [])]
        if produced != expected:
            raise BundleError(
                f"Pipeline output does not match model input: pipeline={produced} model={expected}"
            )

        if not (max_exposure > 0):
            raise BundleError("max_exposure must be > 0.")

        return cls(
            pipeline=copy.deepcopy(pipeline),
            model=copy.deepcopy(model),
            predictors=tuple(predictors),
            feature_names=tuple(produced),
            exposure_col=exposure_col,
            max_exposure=float(max_exposure),
            created_at=created_at or datetime.now(timezone.utc).isoformat(),
            metadata=MappingProxyType(copy.deepcopy(dict(metadata or {}))),
        )

    @property
    def required_columns(self) -> tuple[str, ...]:
        return (*self.predictors, self.exposure_col)

    def predict(self, rows) -> list[float]:
        """Expected claim count for each row's exposure, in input order."""
        df = _as_frame(rows, self.required_columns)
        if df.empty:
            return []

        exposure = exposure_values(df[self.exposure_col], max_exposure=self.max_exposure)
        X = self.pipeline.transform(df)
        with np.errstate(over="ignore"):
            rate = np.asarray(self.model.predict(X), dtype=float)
        preds = rate * exposure

        bad = ~np.isfinite(preds) | (preds < 0)
        if bad.any():
            rows = df.index[bad].tolist()[:10]
            raise TransformError(f"Prediction is not a finite non-negative count at rows {rows}; check predictor ranges")
        return [float(v) for v in preds]

    def coefficients(self) -> dict[str, float]:
        out = {INTERCEPT: float(self.model.intercept_)}
        out.update({name: float(c) for name, c in zip(self.feature_names, self.model.coef_)})
        return out

    def save(self, bundle_dir: Path, *, metrics: Mapping[str, Any] | None = None) -> Path:
        return write_bundle(bundle_dir=Path(bundle_dir), bundle=self, metrics=metrics)

    @classmethod
    def load(cls, bundle_dir: Path) -> "ModelBundle":
        """Read a bundle written by `save`, verifying format version and checksum."""
        parts, meta = read_bundle_parts(Path(bundle_dir))
        try:
            bundle = cls.build(
                pipeline=parts["pipeline"],
                model=parts["model"],
                predictors=meta["predictors"],
                exposure_col=meta["exposure_col"],
                max_exposure=meta["max_exposure"],
                created_at=meta.get("created_at_utc"),
                metadata=meta.get("cfg") or {},
            )
        except BundleError as e:
            raise ArtifactCorrupt(f"Bundle in {bundle_dir} is inconsistent: {e}") from e
        if list(bundle.feature_names) != list(meta["features"]["names"]):
            raise ArtifactCorrupt(f"Feature names in {bundle_dir} do not match its metadata")
        return bundle

from __future__ import annotations

import logging
import warnings
from time import perf_counter
from typing import Any, Mapping

import numpy as np
import pandas as pd
from sklearn.exceptions import ConvergenceWarning

from claim_frequency.errors import FoldFitError, SchemaMismatch
from claim_frequency.modeling.bundle.model_bundle import ModelBundle, exposure_values
from claim_frequency.modeling.config import MAX_EXPOSURE
from claim_frequency.modeling.trainers.poisson_trainer import PoissonTrainer

log = logging.getLogger(__name__)


def fit_bundle(
    df: pd.DataFrame,
    *,
    trainer: PoissonTrainer,
    max_exposure: float = MAX_EXPOSURE,
    metadata: Mapping[str, Any] | None = None,
) -> ModelBundle:
    """Fit preprocessing and the Poisson GLM on `df` and return them as one bundle.

    The GLM is fit on claim rate (count / exposure) weighted by exposure,
    which is the same likelihood as a count model with a log(exposure) offset.
    """
    t0 = perf_counter()

    missing = [c for c in (trainer.target_col, trainer.exposure_col) if c not in df.columns]
    if missing:
        raise SchemaMismatch(missing)

    exposure = exposure_values(df[trainer.exposure_col], max_exposure=max_exposure)
    y = pd.to_numeric(df[trainer.target_col], errors="coerce").to_numpy(dtype=float)
    if not np.isfinite(y).all() or (y < 0).any():
        raise ValueError(f"{trainer.target_col!r} must be finite and >= 0.")

    pre = trainer.build_preprocessor()
    X = pre.fit_transform(df)
    model = trainer.build_model()

    try:
        with warnings.catch_warnings():
            warnings.simplefilter("error", ConvergenceWarning)
            model.fit(X, y / exposure, sample_weight=exposure)
    except ConvergenceWarning as e:
        raise FoldFitError(f"Poisson GLM did not converge: {e}") from e
    except (ValueError, FloatingPointError, np.linalg.LinAlgError) as e:
        raise FoldFitError(f"Poisson GLM fit failed: {e}") from e

    meta = {"trainer": trainer.config(), "n_train": int(len(df))}
    meta.update(metadata or {})

    bundle = ModelBundle.build(
        pipeline=pre,
        model=model,
        predictors=trainer.predictors,
        exposure_col=trainer.exposure_col,
        max_exposure=max_exposure,
        metadata=meta,
    )
    log.info("fit.bundle %dms rows=%d features=%d", int((perf_counter() - t0) * 1000), len(df), len(bundle.feature_names))
    return bundle

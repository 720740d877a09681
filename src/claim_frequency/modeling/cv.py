"""
k-fold cross-validation over bundle-producing fit functions.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from time import perf_counter
from typing import Any, Callable, Mapping

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from sklearn.model_selection import KFold

from claim_frequency.errors import FoldFitError, TransformError
from claim_frequency.modeling.bundle.model_bundle import ModelBundle
from claim_frequency.modeling.config import N_FOLDS, PRIMARY_METRIC, SEED, TARGET_COL
from claim_frequency.modeling.metrics.registry import METRICS

log = logging.getLogger(__name__)

FitFn = Callable[[pd.DataFrame], ModelBundle]


@dataclass(frozen=True)
class Fold:
    index: int
    analysis: np.ndarray = field(repr=False)
    assessment: np.ndarray = field(repr=False)


@dataclass(frozen=True)
class FitResult:
    fold: int
    coefficients: dict[str, float]
    deviance: float
    n_analysis: int
    n_assessment: int
    metrics: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class FoldFailure:
    fold: int
    kind: str
    error: str


def _finite_or_none(x: float) -> float | None:
    return float(x) if math.isfinite(x) else None


@dataclass(frozen=True)
class CVResult:
    k: int
    seed: int
    results: tuple[FitResult, ...]
    failures: tuple[FoldFailure, ...] = ()

    def coefficient_table(self) -> pd.DataFrame:
        """Long view of every fold's estimates: one row per (term, fold)."""
        rows = [
            {"term": term, "fold": r.fold, "estimate": est}
            for r in self.results
            for term, est in r.coefficients.items()
        ]
        return pd.DataFrame(rows, columns=["term", "fold", "estimate"])

    def coefficient_summary(self) -> pd.DataFrame:
        """Term x fold estimates with mean and std across folds, for stability checks."""
        table = self.coefficient_table()
        if table.empty:
            return pd.DataFrame()
        wide = table.pivot_table(index="term", columns="fold", values="estimate", aggfunc="first")
        folds = list(wide.columns)
        wide["mean"] = wide[folds].mean(axis=1)
        wide["std"] = wide[folds].std(axis=1, ddof=1)
        return wide

    def deviance_summary(self) -> dict[str, Any]:
        dev = np.asarray([r.deviance for r in self.results], dtype=float)
        out: dict[str, Any] = {"n_ok": int(dev.size), "n_failed": len(self.failures)}
        if dev.size == 0:
            out.update({"mean": None, "std": None, "min": None, "max": None})
            return out
        out.update({
            "mean": float(dev.mean()),
            "std": float(dev.std(ddof=1)) if dev.size > 1 else 0.0,
            "min": float(dev.min()),
            "max": float(dev.max()),
        })
        return out

    def to_metrics(self) -> dict[str, Any]:
        return {
            "k": self.k,
            "seed": self.seed,
            "deviance": self.deviance_summary(),
            "folds": [
                {
                    "fold": r.fold,
                    "deviance": r.deviance,
                    "n_analysis": r.n_analysis,
                    "n_assessment": r.n_assessment,
                    "metrics": {k: _finite_or_none(v) for k, v in r.metrics.items()},
                }
                for r in self.results
            ],
            "failures": [{"fold": f.fold, "kind": f.kind, "error": f.error} for f in self.failures],
        }


def make_folds(n: int, k: int, *, seed: int = SEED) -> list[Fold]:
    if k < 2:
        raise ValueError("k must be >= 2.")
    if n < k:
        raise ValueError(f"Cannot split {n} rows into {k} folds.")

    kf = KFold(n_splits=k, shuffle=True, random_state=seed)
    return [
        Fold(index=i, analysis=analysis, assessment=assessment)
        for i, (analysis, assessment) in enumerate(kf.split(np.arange(n)))
    ]


def _run_fold(
    fold: Fold,
    df: pd.DataFrame,
    fit_fn: FitFn,
    target_col: str,
    metrics: Mapping[str, Callable],
) -> FitResult | FoldFailure:
    t0 = perf_counter()
    analysis = df.iloc[fold.analysis]
    assessment = df.iloc[fold.assessment]

    try:
        bundle = fit_fn(analysis)
        y_pred = np.asarray(bundle.predict(assessment), dtype=float)
    except (FoldFitError, TransformError) as e:
        log.warning("cv.fold fold=%d failed kind=%s error=%s", fold.index, e.kind, e)
        return FoldFailure(fold=fold.index, kind=e.kind, error=str(e))

    y_true = assessment[target_col].to_numpy(dtype=float)
    scores = {name: float(fn(y_true, y_pred)) for name, fn in metrics.items()}

    log.info(
        "cv.fold fold=%d %dms n_analysis=%d n_assessment=%d deviance=%.6f",
        fold.index, int((perf_counter() - t0) * 1000), len(analysis), len(assessment), scores[PRIMARY_METRIC],
    )
    return FitResult(
        fold=fold.index,
        coefficients=bundle.coefficients(),
        deviance=scores[PRIMARY_METRIC],
        n_analysis=len(analysis),
        n_assessment=len(assessment),
        metrics=scores,
    )


def cross_validate(
    df: pd.DataFrame,
    *,
    fit_fn: FitFn,
    k: int = N_FOLDS,
    seed: int = SEED,
    target_col: str = TARGET_COL,
    n_jobs: int = 1,
) -> CVResult:
    """
    Fit on each fold's analysis rows and score mean Poisson deviance on its
    assessment rows. A fold whose fit fails is recorded in `failures` and left
    out of the aggregates; the remaining folds still run.
    """
    if target_col not in df.columns:
        raise KeyError(f"target_col {target_col!r} not in df columns.")

    t0 = perf_counter()
    folds = make_folds(len(df), k, seed=seed)
    log.info("cv start rows=%d k=%d seed=%d n_jobs=%d", len(df), k, seed, n_jobs)

    if n_jobs == 1:
        outcomes = [_run_fold(f, df, fit_fn, target_col, METRICS) for f in folds]
    else:
        outcomes = Parallel(n_jobs=n_jobs)(
            delayed(_run_fold)(f, df, fit_fn, target_col, METRICS) for f in folds
        )

    result = CVResult(
        k=k,
        seed=seed,
        results=tuple(o for o in outcomes if isinstance(o, FitResult)),
        failures=tuple(o for o in outcomes if isinstance(o, FoldFailure)),
    )

    summary = result.deviance_summary()
    log.info(
        "cv done %.2fs ok=%d failed=%d deviance_mean=%s",
        perf_counter() - t0, summary["n_ok"], summary["n_failed"], summary["mean"],
    )
    return result

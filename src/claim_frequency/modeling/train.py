from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from time import perf_counter

import pandas as pd

from claim_frequency.modeling.bundle.model_bundle import ModelBundle
from claim_frequency.modeling.config import N_FOLDS, SEED
from claim_frequency.modeling.cv import CVResult, cross_validate
from claim_frequency.modeling.fit import fit_bundle
from claim_frequency.modeling.trainers.poisson_trainer import PoissonTrainer
from claim_frequency.registry.infra import ArtifactVersion
from claim_frequency.registry.store import ArtifactStore

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrainOutcome:
    bundle: ModelBundle
    cv: CVResult
    artifact: ArtifactVersion | None = None
    bundle_dir: Path | None = None


def train_and_publish(
    df: pd.DataFrame,
    *,
    trainer: PoissonTrainer | None = None,
    k: int = N_FOLDS,
    seed: int = SEED,
    n_jobs: int = 1,
    store: ArtifactStore | None = None,
    name: str | None = None,
    bundle_dir: Path | None = None,
) -> TrainOutcome:
    """Cross-validate, refit on all rows, and optionally save and publish the bundle.

    Cross-validation only reports; the configuration in `trainer` is the one
    that gets published.
    """
    t0 = perf_counter()
    trainer = trainer or PoissonTrainer()

    cv = cross_validate(df, fit_fn=partial(fit_bundle, trainer=trainer), k=k, seed=seed, target_col=trainer.target_col, n_jobs=n_jobs)
    if not cv.results:
        raise RuntimeError(f"All {k} cross-validation folds failed: {[f.error for f in cv.failures]}")

    log.info("final fit rows=%d", len(df))
    bundle = fit_bundle(df, trainer=trainer, metadata={"cv_k": k, "seed": seed})
    metrics = cv.to_metrics()

    saved_dir = None
    if bundle_dir is not None:
        saved_dir = bundle.save(Path(bundle_dir), metrics=metrics)
        log.info("bundle written: %s", saved_dir)

    artifact = None
    if store is not None:
        artifact = store.publish(bundle, name=name, metrics=metrics)

    log.info(
        "train done %.2fs deviance_mean=%s published=%s",
        perf_counter() - t0, cv.deviance_summary()["mean"], artifact.version if artifact else None,
    )
    return TrainOutcome(bundle=bundle, cv=cv, artifact=artifact, bundle_dir=saved_dir)

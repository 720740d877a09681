"""Cross-validate the claim-frequency GLM, refit on all data, and publish the bundle."""

import argparse
import logging
from pathlib import Path
from time import perf_counter

from claim_frequency.config import DATA_REPO_ID, REVISION, TRAIN_DATA, StoreConfig
from claim_frequency.data.prepare import prepare_observations
from claim_frequency.io.hf import load_dataset
from claim_frequency.logging_utils import setup_logging
from claim_frequency.modeling.config import N_FOLDS, OTHER_THRESHOLD, SEED
from claim_frequency.modeling.train import train_and_publish
from claim_frequency.modeling.trainers.poisson_trainer import PoissonTrainer
from claim_frequency.registry.store import ArtifactStore

log = logging.getLogger(__name__)

REPO_ROOT = Path(__file__).resolve().parents[1]
ARTIFACT_RUNS_DIR = REPO_ROOT / "artifacts" / "runs"


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser()
    p.add_argument("--dataset", default=TRAIN_DATA, help="Path of the raw table inside the dataset repo")
    p.add_argument("--folds", type=int, default=N_FOLDS)
    p.add_argument("--seed", type=int, default=SEED)
    p.add_argument("--threshold", type=float, default=OTHER_THRESHOLD, help="Rare-category collapse threshold")
    p.add_argument("--n-jobs", dest="n_jobs", type=int, default=1)
    p.add_argument("--name", default=None, help="Artifact name (defaults to the configured name)")
    p.add_argument("--publish", action="store_true")
    p.add_argument("--log-level", default="INFO")
    return p.parse_args()


def main(
    *,
    dataset: str,
    folds: int,
    seed: int,
    threshold: float,
    n_jobs: int,
    name: str | None,
    publish: bool,
) -> None:
    t0 = perf_counter()

    # resolve the credential before spending time on training
    store = None
    if publish:
        cfg = StoreConfig.from_env(name=name)
        store = ArtifactStore(cfg)
        store.ensure_repo()
        log.info("publishing to repo=%s name=%s", cfg.repo_id, cfg.name)

    log.info("loading dataset repo=%s revision=%s file=%s", DATA_REPO_ID, REVISION, dataset)
    raw = load_dataset(dataset, repo_id=DATA_REPO_ID, revision=REVISION)
    df = prepare_observations(raw)

    trainer = PoissonTrainer(threshold=threshold)
    bundle_dir = ARTIFACT_RUNS_DIR / f"seed{seed}-k{folds}"

    outcome = train_and_publish(
        df,
        trainer=trainer,
        k=folds,
        seed=seed,
        n_jobs=n_jobs,
        store=store,
        name=name,
        bundle_dir=bundle_dir,
    )

    summary = outcome.cv.coefficient_summary()
    if not summary.empty:
        log.info("coefficient stability (mean, std):\n%s", summary[["mean", "std"]].to_string())
    if outcome.artifact is not None:
        log.info("published name=%s version=%d", outcome.artifact.name, outcome.artifact.version)

    log.info("train job done in %.2fs", perf_counter() - t0)


if __name__ == "__main__":
    args = parse_args()
    setup_logging(args.log_level)
    try:
        main(
            dataset=args.dataset,
            folds=args.folds,
            seed=args.seed,
            threshold=args.threshold,
            n_jobs=args.n_jobs,
            name=args.name,
            publish=args.publish,
        )
    except Exception:
        log.exception("train failed")
        raise

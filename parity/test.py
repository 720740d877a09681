"""
Train/serve parity: predictions from the published bundle loaded locally must
match the running prediction service row for row.

    HF_TOKEN=... python parity/test.py --url http://127.0.0.1:8000 --rows 500
"""

import argparse
import math

import httpx
import pandas as pd

from claim_frequency.config import DATA_REPO_ID, REVISION, TRAIN_DATA, StoreConfig
from claim_frequency.data.prepare import prepare_observations
from claim_frequency.io.hf import load_dataset
from claim_frequency.registry.store import ArtifactStore


def _close(a: float, b: float, tol: float = 1e-9) -> bool:
    return math.isclose(a, b, rel_tol=tol, abs_tol=tol)


def main(url: str, num_rows: int = 500, seed: int = 0, version: int | None = None):
    cfg = StoreConfig.from_env()
    bundle, artifact = ArtifactStore(cfg).fetch(cfg.name, version)

    df = prepare_observations(load_dataset(TRAIN_DATA, repo_id=DATA_REPO_ID, revision=REVISION))
    sample = df.sample(n=min(num_rows, len(df)), random_state=seed)
    rows = sample[list(bundle.required_columns)].to_dict(orient="records")

    local = bundle.predict(rows)

    r = httpx.post(f"{url.rstrip('/')}/predict", json=rows, timeout=cfg.timeout)
    r.raise_for_status()
    remote = r.json()

    if len(remote) != len(local):
        raise RuntimeError(f"Service returned {len(remote)} predictions for {len(rows)} rows")

    mismatches = [
        {"row": i, "local": a, "remote": b}
        for i, (a, b) in enumerate(zip(local, remote))
        if not _close(a, b)
    ]

    if mismatches:
        out = pd.DataFrame(mismatches)
        print(f"❌ Parity mismatches for {artifact.name} v{artifact.version} (first 50):")
        print(out.head(50).to_string(index=False))
        print(f"\nTotal mismatches: {len(out)} / {len(rows)}")
    else:
        print(f"✅ Parity passed for {artifact.name} v{artifact.version} across {len(rows)} rows")


if __name__ == "__main__":
    p = argparse.ArgumentParser()
    p.add_argument("--url", default="http://127.0.0.1:8000")
    p.add_argument("--rows", type=int, default=500)
    p.add_argument("--seed", type=int, default=0)
    p.add_argument("--version", type=int, default=None)
    args = p.parse_args()
    main(args.url, num_rows=args.rows, seed=args.seed, version=args.version)

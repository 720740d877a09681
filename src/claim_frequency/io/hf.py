from __future__ import annotations

from pathlib import Path

import pandas as pd
from huggingface_hub import hf_hub_download


def download_dataset_hf(
    repo_id: str,
    filename: str,
    revision: str = "main",
    token: str | None = None,
) -> str:
    """Download a single file from a Hugging Face dataset repo using the normal HF cache."""
    return hf_hub_download(
        repo_id=repo_id,
        filename=filename,
        repo_type="dataset",
        revision=revision,
        token=token,
    )


def read_table(path: str | Path) -> pd.DataFrame:
    p = Path(path)
    if p.suffix == ".parquet":
        return pd.read_parquet(p)
    if p.suffix == ".csv":
        return pd.read_csv(p)
    raise ValueError(f"Unsupported table format {p.suffix!r} for {p}")


def load_dataset(
    dataset_id: str,
    *,
    repo_id: str,
    revision: str = "main",
    token: str | None = None,
) -> pd.DataFrame:
    """Return the raw table stored at `dataset_id` inside a dataset repo.

    A fixed revision makes this deterministic for a given identifier.
    """
    local_path = download_dataset_hf(repo_id=repo_id, filename=dataset_id, revision=revision, token=token)
    return read_table(local_path)

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import TYPE_CHECKING, Any, Mapping, Optional

import joblib

from claim_frequency.io.atomic import atomic_path
from claim_frequency.modeling.bundle.write_metadata import (
    assemble_metadata_payload,
    write_metadata_json,
)
from claim_frequency.modeling.bundle.write_metrics import (
    assemble_metrics_payload,
    write_metrics_json,
)

if TYPE_CHECKING:
    from claim_frequency.modeling.bundle.model_bundle import ModelBundle

MODEL_FILE = "model.joblib"
METADATA_FILE = "metadata.json"
METRICS_FILE = "metrics.json"


def file_sha256(path: Path) -> str:
    h = hashlib.sha256()
    with Path(path).open("rb") as f:
        for chunk in iter(lambda: f.read(1 << 20), b""):
            h.update(chunk)
    return h.hexdigest()


def write_model_joblib(bundle_dir: Path, bundle: ModelBundle) -> Path:
    path = bundle_dir / MODEL_FILE
    with atomic_path(path) as tmp:
        joblib.dump({"pipeline": bundle.pipeline, "model": bundle.model}, tmp)
    return path


def write_bundle(
    *,
    bundle_dir: Path,
    bundle: ModelBundle,
    metrics: Optional[Mapping[str, Any]] = None,
) -> Path:
    bundle_dir.mkdir(parents=True, exist_ok=True)

    model_path = write_model_joblib(bundle_dir, bundle)

    if metrics is not None:
        write_metrics_json(bundle_dir, assemble_metrics_payload(cv=metrics))
    else:
        # drop a stale summary left in a reused directory
        (bundle_dir / METRICS_FILE).unlink(missing_ok=True)

    # metadata.json is the manifest: written last, it carries the model checksum
    meta_payload = assemble_metadata_payload(
        bundle=bundle,
        model_file=MODEL_FILE,
        model_sha256=file_sha256(model_path),
    )
    write_metadata_json(bundle_dir, meta_payload)

    return bundle_dir

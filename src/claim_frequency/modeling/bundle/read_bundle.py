from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import joblib

from claim_frequency.config import BUNDLE_FORMAT_VERSION
from claim_frequency.errors import ArtifactCorrupt
from claim_frequency.modeling.bundle.write_bundle import METADATA_FILE, file_sha256

_REQUIRED_META = ("bundle_format", "model_file", "model_sha256", "predictors", "exposure_col", "max_exposure", "features")


def read_metadata(bundle_dir: Path) -> dict[str, Any]:
    path = bundle_dir / METADATA_FILE
    if not path.is_file():
        raise ArtifactCorrupt(f"Bundle manifest not found: {path}")
    try:
        meta = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ArtifactCorrupt(f"Bundle manifest is not valid JSON: {path}") from e

    missing = [k for k in _REQUIRED_META if k not in meta]
    if missing:
        raise ArtifactCorrupt(f"Bundle manifest {path} missing keys: {missing}")
    if meta["bundle_format"] != BUNDLE_FORMAT_VERSION:
        raise ArtifactCorrupt(
            f"Unsupported bundle format {meta['bundle_format']!r}; expected {BUNDLE_FORMAT_VERSION}"
        )
    return meta


def read_bundle_parts(bundle_dir: Path) -> tuple[dict[str, Any], dict[str, Any]]:
    meta = read_metadata(bundle_dir)

    model_path = bundle_dir / meta["model_file"]
    if not model_path.is_file():
        raise ArtifactCorrupt(f"Bundle model file not found: {model_path}")

    digest = file_sha256(model_path)
    if digest != meta["model_sha256"]:
        raise ArtifactCorrupt(
            f"Checksum mismatch for {model_path}: expected {meta['model_sha256']} got {digest}"
        )

    parts = joblib.load(model_path)
    if not isinstance(parts, dict) or not {"pipeline", "model"} <= parts.keys():
        raise ArtifactCorrupt(f"{model_path} does not hold a pipeline/model pair")

    return parts, meta

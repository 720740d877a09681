from __future__ import annotations

import platform
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Mapping

import joblib
import sklearn

from claim_frequency.config import BUNDLE_FORMAT_VERSION
from claim_frequency.io.atomic import atomic_write_json

if TYPE_CHECKING:
    from claim_frequency.modeling.bundle.model_bundle import ModelBundle


def _safe_cfg_dict(cfg: Mapping[str, Any] | None) -> Dict[str, Any]:
    if cfg is None:
        return {}
    return {str(k): (v if isinstance(v, (str, int, float, bool, type(None), list, dict)) else repr(v)) for k, v in cfg.items()}


def assemble_metadata_payload(
    *,
    bundle: ModelBundle,
    model_file: str,
    model_sha256: str,
) -> Dict[str, Any]:
    return {
        "bundle_format": BUNDLE_FORMAT_VERSION,
        "created_at_utc": bundle.created_at,
        "model_type": type(bundle.model).__name__,
        "model_file": model_file,
        "model_sha256": model_sha256,
        "predictors": list(bundle.predictors),
        "exposure_col": bundle.exposure_col,
        "max_exposure": bundle.max_exposure,
        "features": {
            "count": len(bundle.feature_names),
            "names": list(bundle.feature_names),
        },
        "cfg": _safe_cfg_dict(bundle.metadata),
        "python": platform.python_version(),
        "platform": platform.platform(),
        "sklearn_version": sklearn.__version__,
        "joblib_version": joblib.__version__,
    }


def write_metadata_json(bundle_dir: Path, payload: Dict[str, Any]) -> Path:
    path = bundle_dir / "metadata.json"
    atomic_write_json(path, payload)
    return path

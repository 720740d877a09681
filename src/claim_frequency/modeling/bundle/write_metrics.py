from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Mapping

from claim_frequency.io.atomic import atomic_write_json
from claim_frequency.modeling.config import METRIC_DIRECTION, PRIMARY_METRIC


def assemble_metrics_payload(
    *,
    cv: Mapping[str, Any],
    primary_metric: str = PRIMARY_METRIC,
    direction: str = METRIC_DIRECTION,
) -> Dict[str, Any]:
    primary_value = (cv.get("deviance") or {}).get("mean")

    return {
        "primary_metric": primary_metric,
        "direction": direction,
        "primary_value": None if primary_value is None else float(primary_value),
        "cv": dict(cv),
    }


def write_metrics_json(bundle_dir: Path, payload: Dict[str, Any]) -> Path:
    path = bundle_dir / "metrics.json"
    atomic_write_json(path, payload)
    return path

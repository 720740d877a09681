"""Raw policy table -> observations ready for fitting."""

from __future__ import annotations

import logging
from typing import Mapping

import numpy as np
import pandas as pd

from claim_frequency.modeling.config import (
    CATEGORICAL_FEATURES,
    EXPOSURE_COL,
    MAX_CLAIM_COUNT,
    MAX_EXPOSURE,
    RAW_COLUMN_MAP,
    TARGET_COL,
)

log = logging.getLogger(__name__)


def prepare_observations(
    df: pd.DataFrame,
    *,
    column_map: Mapping[str, str] = RAW_COLUMN_MAP,
    max_exposure: float = MAX_EXPOSURE,
    max_claim_count: int = MAX_CLAIM_COUNT,
) -> pd.DataFrame:
    out = df.rename(columns=dict(column_map)).copy()

    missing = [c for c in (TARGET_COL, EXPOSURE_COL) if c not in out.columns]
    if missing:
        raise KeyError(f"Missing required columns: {missing}")

    exposure = pd.to_numeric(out[EXPOSURE_COL], errors="coerce").astype(float)
    claims = pd.to_numeric(out[TARGET_COL], errors="coerce").astype(float)

    keep = np.isfinite(exposure) & (exposure > 0) & np.isfinite(claims) & (claims >= 0)
    dropped = int((~keep).sum())
    if dropped:
        log.info("prepare dropped rows=%d (non-positive exposure or invalid claim count)", dropped)

    out = out.loc[keep].copy()
    out[EXPOSURE_COL] = exposure[keep].clip(upper=max_exposure)
    out[TARGET_COL] = claims[keep].clip(upper=max_claim_count).astype(int)

    # some exports quote factor levels, e.g. "'A'"
    for col in CATEGORICAL_FEATURES:
        if col in out.columns:
            out[col] = out[col].astype("string").str.strip().str.strip("'\"").astype(object)

    log.info(
        "prepare rows=%d claims=%d exposure_sum=%.1f",
        len(out), int(out[TARGET_COL].sum()), float(out[EXPOSURE_COL].sum()),
    )
    return out.reset_index(drop=True)

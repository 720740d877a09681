"""Pydantic models for the prediction service responses."""

from __future__ import annotations

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Body of every non-200 response."""

    error: str
    detail: str


class HealthResponse(BaseModel):
    status: str = "ok"
    name: str | None = None
    version: int | None = None
    commit: str | None = None
    created_at: str
    predictors: list[str]
    exposure_col: str

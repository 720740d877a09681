"""FastAPI application serving one resident model bundle."""

from __future__ import annotations

import logging
from time import perf_counter
from typing import Any

from fastapi import Body, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from claim_frequency.errors import PredictionError
from claim_frequency.modeling.bundle.model_bundle import ModelBundle
from claim_frequency.registry.infra import ArtifactVersion
from claim_frequency.serving.models import ErrorResponse, HealthResponse

log = logging.getLogger(__name__)


def _error(status_code: int, kind: str, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=kind, detail=detail).model_dump())


def create_app(bundle: ModelBundle, *, artifact: ArtifactVersion | None = None) -> FastAPI:
    """
    Create the prediction service around an already-loaded bundle.

    The bundle is never re-fetched; `predict` is pure, so concurrent
    requests share it without locking.
    """
    app = FastAPI(
        title="claim-frequency prediction service",
        description="Expected claim counts from a published Poisson GLM bundle",
        version=str(artifact.version) if artifact else "local",
    )
    app.state.bundle = bundle
    app.state.artifact = artifact

    @app.exception_handler(PredictionError)
    async def prediction_error(request: Request, exc: PredictionError) -> JSONResponse:
        log.info("predict rejected kind=%s detail=%s", exc.kind, exc)
        return _error(422, exc.kind, str(exc))

    @app.exception_handler(RequestValidationError)
    async def malformed_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error(400, "MalformedRequest", "Body must be a JSON array of row objects")

    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(
            name=artifact.name if artifact else None,
            version=artifact.version if artifact else None,
            commit=artifact.commit if artifact else None,
            created_at=bundle.created_at,
            predictors=list(bundle.predictors),
            exposure_col=bundle.exposure_col,
        )

    @app.post("/predict", response_model=list[float])
    def predict(rows: list[dict[str, Any]] = Body(...)) -> list[float]:
        """Return one expected claim count per row, in request order."""
        t0 = perf_counter()
        preds = bundle.predict(rows)
        log.info("predict rows=%d %dms", len(rows), int((perf_counter() - t0) * 1000))
        return preds

    return app

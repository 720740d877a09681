from __future__ import annotations

import logging
from time import perf_counter

from fastapi import FastAPI

from claim_frequency.config import StoreConfig
from claim_frequency.modeling.bundle.model_bundle import ModelBundle
from claim_frequency.registry.infra import ArtifactVersion
from claim_frequency.registry.store import ArtifactStore
from claim_frequency.serving.app import create_app

log = logging.getLogger(__name__)


def load_bundle(
    config: StoreConfig,
    *,
    store: ArtifactStore | None = None,
    version: int | None = None,
) -> tuple[ModelBundle, ArtifactVersion]:
    """Fetch the bundle the service will hold for its whole lifetime.

    Any store error propagates: the service must not start without a model.
    """
    store = store or ArtifactStore(config)
    t0 = perf_counter()
    bundle, artifact = store.fetch(config.name, version)
    log.info(
        "startup.load_bundle %dms name=%s version=%d commit=%s",
        int((perf_counter() - t0) * 1000), artifact.name, artifact.version, artifact.commit,
    )
    return bundle, artifact


def build_service(
    config: StoreConfig,
    *,
    store: ArtifactStore | None = None,
    version: int | None = None,
) -> FastAPI:
    bundle, artifact = load_bundle(config, store=store, version=version)
    return create_app(bundle, artifact=artifact)

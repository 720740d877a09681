from __future__ import annotations

import os
from dataclasses import dataclass, field

from claim_frequency.errors import AuthError

REPO_ID = "claim-frequency/registry"
REPO_TYPE = "model"
REVISION = "main"
HF_ENDPOINT = "https://huggingface.co"

DATA_REPO_ID = "claim-frequency/fremtpl2"
TRAIN_DATA = "data/raw/freMTPL2freq.csv"

ARTIFACT_NAME = "claim_frequency_glm"

CREDENTIAL_ENV = "HF_TOKEN"
ENDPOINT_ENV = "CLAIM_FREQ_ENDPOINT"
REPO_ENV = "CLAIM_FREQ_REPO_ID"
NAME_ENV = "CLAIM_FREQ_ARTIFACT_NAME"
REVISION_ENV = "CLAIM_FREQ_REVISION"

REQUEST_TIMEOUT_SECONDS = 30.0
MAX_PUBLISH_ATTEMPTS = 3

BUNDLE_FORMAT_VERSION = 1


@dataclass(frozen=True)
class StoreConfig:
    endpoint: str
    credential: str = field(repr=False)
    name: str
    repo_id: str = REPO_ID
    repo_type: str = REPO_TYPE
    revision: str = REVISION
    timeout: float = REQUEST_TIMEOUT_SECONDS
    max_publish_attempts: int = MAX_PUBLISH_ATTEMPTS

    def __post_init__(self) -> None:
        if not self.credential:
            raise AuthError("Artifact store credential is empty")
        if self.max_publish_attempts < 1:
            raise ValueError("max_publish_attempts must be >= 1.")

    @classmethod
    def from_env(cls, *, name: str | None = None, environ=None) -> "StoreConfig":
        """Build a store config, taking the bearer credential from the environment."""
        env = os.environ if environ is None else environ
        credential = env.get(CREDENTIAL_ENV, "")
        if not credential:
            raise AuthError(f"Environment variable {CREDENTIAL_ENV} is not set")

        return cls(
            endpoint=env.get(ENDPOINT_ENV, HF_ENDPOINT),
            credential=credential,
            name=name or env.get(NAME_ENV, ARTIFACT_NAME),
            repo_id=env.get(REPO_ENV, REPO_ID),
            revision=env.get(REVISION_ENV, REVISION),
        )

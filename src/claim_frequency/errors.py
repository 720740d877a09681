"""
Error taxonomy shared by the bundle, the artifact store and the service.
"""

from __future__ import annotations


class ClaimFrequencyError(Exception):
    kind = "ClaimFrequencyError"


class BundleError(ClaimFrequencyError):
    """A bundle could not be constructed from the given pipeline and model."""

    kind = "BundleError"


class PredictionError(ClaimFrequencyError):
    kind = "PredictionError"


class SchemaMismatch(PredictionError):
    kind = "SchemaMismatch"

    def __init__(self, missing: list[str] | tuple[str, ...], message: str | None = None):
        self.missing = list(missing)
        super().__init__(message or f"Missing required columns: {self.missing}")


class TransformError(PredictionError):
    kind = "TransformError"


class FoldFitError(ClaimFrequencyError):
    kind = "FoldFitError"


class StoreError(ClaimFrequencyError):
    kind = "StoreError"


class NotFound(StoreError):
    kind = "NotFound"


class AuthError(StoreError):
    kind = "AuthError"


class Unavailable(StoreError):
    kind = "Unavailable"


class ArtifactCorrupt(StoreError):
    kind = "ArtifactCorrupt"

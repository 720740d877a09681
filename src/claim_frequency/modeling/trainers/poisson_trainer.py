from __future__ import annotations

from dataclasses import asdict, dataclass, field

from sklearn.linear_model import PoissonRegressor
from sklearn.pipeline import Pipeline

from claim_frequency.modeling.config import (
    CATEGORICAL_FEATURES,
    EXPOSURE_COL,
    GLM_ALPHA,
    GLM_MAX_ITER,
    NUMERIC_FEATURES,
    OTHER_LABEL,
    OTHER_THRESHOLD,
    TARGET_COL,
)
from claim_frequency.modeling.preprocessors.glm import preprocessor


@dataclass(slots=True)
class PoissonTrainer:
    """Poisson GLM trainer for claim frequency with a log-exposure offset."""
    categorical: list[str] = field(default_factory=lambda: list(CATEGORICAL_FEATURES))
    numeric: list[str] = field(default_factory=lambda: list(NUMERIC_FEATURES))
    threshold: float = OTHER_THRESHOLD
    other_label: str = OTHER_LABEL
    alpha: float = GLM_ALPHA
    max_iter: int = GLM_MAX_ITER
    solver: str = "newton-cholesky"
    exposure_col: str = EXPOSURE_COL
    target_col: str = TARGET_COL

    @property
    def predictors(self) -> list[str]:
        return [*self.categorical, *self.numeric]

    def build_preprocessor(self) -> Pipeline:
        return preprocessor(
            self.categorical,
            self.numeric,
            threshold=self.threshold,
            other_label=self.other_label,
        )

    def build_model(self) -> PoissonRegressor:
        return PoissonRegressor(
            alpha=self.alpha,
            max_iter=self.max_iter,
            solver=self.solver,
        )

    def config(self) -> dict:
        return asdict(self)

import numpy as np
from sklearn.metrics import mean_absolute_error, mean_poisson_deviance


def poisson_deviance(y_true, y_pred) -> float:
    """Mean Poisson deviance between actual claim counts and predicted counts."""
    return float(mean_poisson_deviance(np.asarray(y_true, dtype=float), np.asarray(y_pred, dtype=float)))


def mae(y_true, y_pred) -> float:
    return float(mean_absolute_error(y_true, y_pred))


def frequency_ratio(y_true, y_pred) -> float:
    """Total predicted claims over total observed claims (1.0 = balanced)."""
    observed = float(np.sum(y_true))
    return float(np.sum(y_pred) / observed) if observed > 0 else float("nan")


METRICS = {
    "mean_poisson_deviance": poisson_deviance,
    "mean_absolute_error": mae,
    "frequency_ratio": frequency_ratio,
}

import time
from collections.abc import Mapping
from typing import Any, Protocol

import numpy as np
from sklearn.metrics import mean_squared_error

from fdsim.config import ModelHyperparameters
from fdsim.exceptions import ConfigurationError, ShapeError
from fdsim.train_test_split import TrainTestSplit
from fdsim.utils.utils_logging import logger


### Layout hand-off ###
def to_model_layout(X: np.ndarray) -> np.ndarray:
    """Transpose X from sampler layout (individual, feature, time) to model
    layout (time, individual, feature)."""
    X = np.asarray(X)
    if X.ndim != 3:
        raise ShapeError(f"Expected a 3-axis tensor, got shape {X.shape}.")
    return np.transpose(X, (2, 0, 1))


def from_model_layout(X: np.ndarray) -> np.ndarray:
    """Inverse of to_model_layout: (time, individual, feature) -> (individual, feature, time)."""
    X = np.asarray(X)
    if X.ndim != 3:
        raise ShapeError(f"Expected a 3-axis tensor, got shape {X.shape}.")
    return np.transpose(X, (1, 2, 0))


### External model ###
class FittedModel(Protocol):
    def predict(self, X_new: np.ndarray, X_reference: np.ndarray) -> np.ndarray: ...


class RegressionModel(Protocol):
    """Forest regression model for functional inputs.

    `fit` takes X in model layout (time, individual, feature), one scalar
    response per individual, and the hyperparameters of ModelHyperparameters
    as keyword arguments.
    """

    def fit(self, X: np.ndarray, Y: np.ndarray, **hyperparameters: Any) -> FittedModel: ...


### Evaluation metrics ###
def mse(y_true: np.ndarray, y_pred: np.ndarray, per_curve: bool = False) -> float:
    """Mean squared error between true and predicted values.

    With per_curve=True and 2D inputs (n, nt), the error is averaged within
    each curve first and then across curves.
    """
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float)
    if y_true.shape != y_pred.shape:
        raise ShapeError(
            f"y_true and y_pred differ in shape: {y_true.shape} vs {y_pred.shape}."
        )
    if per_curve and y_true.ndim == 2:
        per_row = np.mean((y_true - y_pred) ** 2, axis=1)
        return float(np.mean(per_row))
    return float(mean_squared_error(y_true.ravel(), y_pred.ravel()))


def evaluate_model(
    model: RegressionModel,
    data_split: TrainTestSplit,
    hyperparameters: ModelHyperparameters | Mapping[str, Any],
) -> dict[str, Any]:
    """Fit `model` on the train partition and score it on the test partition.

    Test individuals are predicted with the train partition as reference set.

    Returns:
        dict with y_pred, mse, train_time and infer_time.
    """
    if isinstance(hyperparameters, ModelHyperparameters):
        params = hyperparameters.as_dict()
    else:
        try:
            params = ModelHyperparameters(**hyperparameters).as_dict()
        except TypeError as exc:
            raise ConfigurationError(f"Invalid model hyperparameters: {exc}") from exc
    logger.debug("Model params: %s", params)

    # Training time
    t0 = time.time()
    fitted = model.fit(data_split.X_train, data_split.Y_train, **params)
    t1 = time.time()

    # Inference time
    t2 = time.time()
    y_pred = np.asarray(fitted.predict(data_split.X_test, data_split.X_train))
    t3 = time.time()

    score = mse(data_split.Y_test, y_pred.ravel())
    logger.info(
        "Evaluated model on %d test individuals: MSE=%.6f.",
        data_split.Y_test.shape[0],
        score,
    )
    return {
        "y_pred": y_pred,
        "mse": score,
        "train_time": t1 - t0,
        "infer_time": t3 - t2,
    }

from collections.abc import Callable

import numpy as np
from scipy.special import expit

from fdsim.constants import CLASSES, N_FEATURES
from fdsim.exceptions import ConfigurationError

MeanFunction = Callable[[np.ndarray], np.ndarray]


### INPUT FAMILY ###
# f1 (features 1 and 3)
def f1_class1(t: np.ndarray) -> np.ndarray:
    """Compute the mean curve of f1 for latent class 1."""
    return 0.5 * t + 0.1 * np.sin(6.0 * t)


def f1_class2(t: np.ndarray) -> np.ndarray:
    """Compute the mean curve of f1 for latent class 2."""
    return 0.3 - 0.7 * (t - 0.45) ** 2


# f2 (feature 2)
def f2_class1(t: np.ndarray) -> np.ndarray:
    """Compute the mean curve of f2 for latent class 1."""
    return 0.5 * np.sin(2.0 * np.pi * t) + t


def f2_class2(t: np.ndarray) -> np.ndarray:
    """Compute the mean curve of f2 for latent class 2."""
    return 0.5 * np.cos(2.0 * np.pi * t) + 0.5 * t


# f4 (feature 4)
def f4_class1(t: np.ndarray) -> np.ndarray:
    """Compute the mean curve of f4 for latent class 1."""
    return expit(10.0 * (t - 0.5))


def f4_class2(t: np.ndarray) -> np.ndarray:
    """Compute the mean curve of f4 for latent class 2."""
    return 1.0 - expit(10.0 * (t - 0.3))


# f5 (feature 5)
def f5_class1(t: np.ndarray) -> np.ndarray:
    """Compute the mean curve of f5 for latent class 1."""
    return 0.8 * np.exp(-2.0 * t)


def f5_class2(t: np.ndarray) -> np.ndarray:
    """Compute the mean curve of f5 for latent class 2."""
    return 0.2 + 0.6 * t**3


# f6 (feature 6)
def f6_class1(t: np.ndarray) -> np.ndarray:
    """Compute the mean curve of f6 for latent class 1."""
    return 4.0 * t * (1.0 - t)


def f6_class2(t: np.ndarray) -> np.ndarray:
    """Compute the mean curve of f6 for latent class 2."""
    return 0.5 + 0.2 * np.cos(4.0 * np.pi * t)


### OUTPUT FAMILY ###
def g_11(t: np.ndarray) -> np.ndarray:
    """Output mean curve when features 1 and 2 are both in class 1."""
    return np.sin(np.pi * t)


def g_12(t: np.ndarray) -> np.ndarray:
    """Output mean curve for class 1 on feature 1 and class 2 on feature 2."""
    return 0.5 * t + 0.2


def g_21(t: np.ndarray) -> np.ndarray:
    """Output mean curve for class 2 on feature 1 and class 1 on feature 2."""
    return 0.5 - 0.5 * np.sin(np.pi * t)


def g_22(t: np.ndarray) -> np.ndarray:
    """Output mean curve when features 1 and 2 are both in class 2."""
    return t**2


# (feature, class) -> mean function. Feature 3 shares f1 with feature 1.
INPUT_MEAN_FUNCTIONS: dict[tuple[int, int], MeanFunction] = {
    (1, 1): f1_class1,
    (1, 2): f1_class2,
    (2, 1): f2_class1,
    (2, 2): f2_class2,
    (3, 1): f1_class1,
    (3, 2): f1_class2,
    (4, 1): f4_class1,
    (4, 2): f4_class2,
    (5, 1): f5_class1,
    (5, 2): f5_class2,
    (6, 1): f6_class1,
    (6, 2): f6_class2,
}

# (class of feature 1, class of feature 2) -> mean function
OUTPUT_MEAN_FUNCTIONS: dict[tuple[int, int], MeanFunction] = {
    (1, 1): g_11,
    (1, 2): g_12,
    (2, 1): g_21,
    (2, 2): g_22,
}


def lookup_input_mean(j: int, k: int) -> MeanFunction:
    """Return the mean function of feature `j` (1..6) for latent class `k` (1 or 2).

    Raises:
        ConfigurationError: If (j, k) is not in the input table.
    """
    try:
        return INPUT_MEAN_FUNCTIONS[(int(j), int(k))]
    except KeyError:
        raise ConfigurationError(
            f"No input mean function for feature {j}, class {k}."
        ) from None


def lookup_output_mean(c1: int, c2: int) -> MeanFunction:
    """Return the output mean function keyed by the classes of features 1 and 2.

    Raises:
        ConfigurationError: If (c1, c2) is not in the output table.
    """
    try:
        return OUTPUT_MEAN_FUNCTIONS[(int(c1), int(c2))]
    except KeyError:
        raise ConfigurationError(
            f"No output mean function for classes ({c1}, {c2})."
        ) from None


def evaluate_input_means(time_grid: np.ndarray) -> np.ndarray:
    """Evaluate every input mean function on the grid.

    Returns:
        Array of shape (N_FEATURES, len(CLASSES), nt) where entry [j-1, k-1]
        holds f_{j,k} evaluated on `time_grid` in grid order.
    """
    t = np.asarray(time_grid, dtype=np.float64)
    table = np.empty((N_FEATURES, len(CLASSES), t.size), dtype=np.float64)
    for j in range(1, N_FEATURES + 1):
        for k_idx, k in enumerate(CLASSES):
            table[j - 1, k_idx] = _evaluate(lookup_input_mean(j, k), t)
    return table


def evaluate_output_means(time_grid: np.ndarray) -> np.ndarray:
    """Evaluate every output mean function on the grid.

    Returns:
        Array of shape (len(CLASSES), len(CLASSES), nt) where entry [c1-1, c2-1]
        holds g_{c1,c2} evaluated on `time_grid`.
    """
    t = np.asarray(time_grid, dtype=np.float64)
    n_classes = len(CLASSES)
    table = np.empty((n_classes, n_classes, t.size), dtype=np.float64)
    for i1, c1 in enumerate(CLASSES):
        for i2, c2 in enumerate(CLASSES):
            table[i1, i2] = _evaluate(lookup_output_mean(c1, c2), t)
    return table


def _evaluate(fn: MeanFunction, t: np.ndarray) -> np.ndarray:
    # Constant expressions would otherwise return a scalar
    return np.broadcast_to(fn(t), t.shape)

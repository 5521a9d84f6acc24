from collections.abc import Iterator
from dataclasses import dataclass

import numpy as np

from fdsim.config import check_seed, n_train_for
from fdsim.exceptions import ShapeError
from fdsim.utils.utils_logging import logger


@dataclass(frozen=True, eq=False)
class TrainTestSplit:
    """Result of `split`.

    X_train/X_test keep the model layout (time x individual x feature).
    train_ids/test_ids are sorted 1-based individual ids, matching the
    `individual` column of the long-format tables.

    Unpacks as (X_train, X_test, Y_train, Y_test).
    """

    X_train: np.ndarray
    X_test: np.ndarray
    Y_train: np.ndarray
    Y_test: np.ndarray
    train_ids: np.ndarray
    test_ids: np.ndarray

    def __iter__(self) -> Iterator[np.ndarray]:
        return iter((self.X_train, self.X_test, self.Y_train, self.Y_test))


def mean_over_time(Y: np.ndarray) -> np.ndarray:
    """Reduce output curves (n, nt) to one scalar response per individual."""
    Y = np.asarray(Y, dtype=np.float64)
    if Y.ndim != 2:
        raise ShapeError(f"Expected output curves of shape (n, nt), got {Y.shape}.")
    return Y.mean(axis=1)


def draw_train_ids(
    n: int, split_ratio: float, seed: int
) -> tuple[np.ndarray, np.ndarray]:
    """Draw a reproducible train/test partition of the ids 1..n.

    Returns:
        Tuple (train_ids, test_ids), both sorted and 1-based.
    """
    n_train = n_train_for(n, split_ratio)
    rng = np.random.default_rng(seed=check_seed(seed, "split_seed"))
    train_idx = rng.choice(n, size=n_train, replace=False)

    is_train = np.zeros(n, dtype=bool)
    is_train[train_idx] = True
    ids = np.arange(1, n + 1)
    return ids[is_train], ids[~is_train]


def split(
    X: np.ndarray,
    Y: np.ndarray,
    split_ratio: float,
    seed: int,
) -> TrainTestSplit:
    """Split individuals into train and test partitions.

    Args:
        X: Input tensor in model layout (time x individual x feature); individuals
            on the second axis.
        Y: Scalar response per individual, shape (n,), or output curves of shape
            (n, nt), which are first averaged over time.
        split_ratio: Fraction of individuals assigned to the train partition.
        seed: RNG seed of the partition.

    Returns:
        TrainTestSplit.

    Raises:
        ConfigurationError: On an invalid split ratio or an empty partition.
        ShapeError: If X is not 3D or X and Y disagree on the number of individuals.
    """
    X = np.asarray(X)
    Y = np.asarray(Y)
    if X.ndim != 3:
        raise ShapeError(
            f"Expected X in model layout (time, individual, feature), got {X.shape}."
        )
    if Y.ndim == 2:
        Y = mean_over_time(Y)
    elif Y.ndim != 1:
        raise ShapeError(f"Expected Y of shape (n,) or (n, nt), got {Y.shape}.")

    n = X.shape[1]
    if Y.shape[0] != n:
        raise ShapeError(f"X holds {n} individuals but Y holds {Y.shape[0]}.")

    train_ids, test_ids = draw_train_ids(n, split_ratio, seed)
    logger.debug(
        "Split n=%d (ratio=%s, seed=%d): %d train, %d test.",
        n,
        split_ratio,
        seed,
        train_ids.size,
        test_ids.size,
    )

    return TrainTestSplit(
        X_train=X[:, train_ids - 1, :],
        X_test=X[:, test_ids - 1, :],
        Y_train=Y[train_ids - 1],
        Y_test=Y[test_ids - 1],
        train_ids=train_ids,
        test_ids=test_ids,
    )

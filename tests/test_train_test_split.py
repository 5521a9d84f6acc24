"""Tests for the train/test partitioner."""

import numpy as np
import pytest

from fdsim.config import make_time_grid, n_train_for
from fdsim.data_sampler import generate
from fdsim.evaluation import to_model_layout
from fdsim.exceptions import ConfigurationError, ShapeError
from fdsim.train_test_split import draw_train_ids, mean_over_time, split

GRID = make_time_grid(0.0, 1.0, 0.05)


@pytest.fixture(scope="module")
def model_inputs():
    sample = generate(100, GRID, seed=123)
    return to_model_layout(sample.X), sample.Y


def test_concrete_scenario(model_inputs):
    X, Y = model_inputs
    data_split = split(X, mean_over_time(Y), 0.8, 1234)

    train, test = set(data_split.train_ids), set(data_split.test_ids)
    assert len(train) == 80
    assert len(test) == 20
    assert train.isdisjoint(test)
    assert train | test == set(range(1, 101))

    assert data_split.X_train.shape == (21, 80, 6)
    assert data_split.X_test.shape == (21, 20, 6)
    assert data_split.Y_train.shape == (80,)
    assert data_split.Y_test.shape == (20,)


@pytest.mark.parametrize("n", [2, 3, 7, 10, 100, 101])
@pytest.mark.parametrize("split_ratio", [0.1, 0.3, 0.5, 0.8, 0.99])
def test_partition_law(n, split_ratio):
    n_train = round(split_ratio * n)
    if n_train in (0, n):
        with pytest.raises(ConfigurationError):
            draw_train_ids(n, split_ratio, seed=0)
        return

    train_ids, test_ids = draw_train_ids(n, split_ratio, seed=0)
    assert train_ids.size == n_train
    assert np.intersect1d(train_ids, test_ids).size == 0
    np.testing.assert_array_equal(
        np.sort(np.concatenate([train_ids, test_ids])), np.arange(1, n + 1)
    )


def test_split_is_reproducible(model_inputs):
    X, Y = model_inputs
    a = split(X, Y, 0.8, 1234)
    b = split(X, Y, 0.8, 1234)
    np.testing.assert_array_equal(a.train_ids, b.train_ids)
    np.testing.assert_array_equal(a.X_train, b.X_train)


def test_different_seeds_give_different_partitions():
    a, _ = draw_train_ids(100, 0.8, seed=1)
    b, _ = draw_train_ids(100, 0.8, seed=2)
    assert not np.array_equal(a, b)


def test_slices_follow_ids(model_inputs):
    X, Y = model_inputs
    y = mean_over_time(Y)
    data_split = split(X, y, 0.8, 1234)
    for k, i in enumerate(data_split.train_ids):
        np.testing.assert_array_equal(data_split.X_train[:, k, :], X[:, i - 1, :])
        assert data_split.Y_train[k] == y[i - 1]
    for k, i in enumerate(data_split.test_ids):
        np.testing.assert_array_equal(data_split.X_test[:, k, :], X[:, i - 1, :])


def test_curves_are_averaged_over_time(model_inputs):
    X, Y = model_inputs
    from_curves = split(X, Y, 0.8, 1234)
    from_scalars = split(X, mean_over_time(Y), 0.8, 1234)
    np.testing.assert_array_equal(from_curves.Y_train, from_scalars.Y_train)
    np.testing.assert_array_equal(from_curves.Y_test, from_scalars.Y_test)


def test_split_unpacks_in_order(model_inputs):
    X, Y = model_inputs
    data_split = split(X, Y, 0.5, 1)
    X_train, X_test, Y_train, Y_test = data_split
    assert X_train is data_split.X_train
    assert Y_test is data_split.Y_test


def test_mean_over_time():
    Y = np.array([[1.0, 2.0, 3.0], [0.0, 0.0, 3.0]])
    np.testing.assert_allclose(mean_over_time(Y), [2.0, 1.0])


def test_mean_over_time_requires_curves():
    with pytest.raises(ShapeError):
        mean_over_time(np.ones(4))


@pytest.mark.parametrize("split_ratio", [0.0, 1.0, 1.2, -0.1])
def test_invalid_split_ratio(split_ratio):
    with pytest.raises(ConfigurationError):
        n_train_for(10, split_ratio)


def test_degenerate_train_size():
    # round(0.5 * 1) == 0
    with pytest.raises(ConfigurationError):
        n_train_for(1, 0.5)


@pytest.mark.parametrize("seed", [-1, 2.0])
def test_invalid_split_seed(seed):
    with pytest.raises(ConfigurationError):
        draw_train_ids(10, 0.8, seed=seed)


def test_individual_count_mismatch(model_inputs):
    X, Y = model_inputs
    with pytest.raises(ShapeError):
        split(X, Y[:50], 0.8, 1234)


def test_x_in_wrong_rank():
    with pytest.raises(ShapeError):
        split(np.zeros((10, 4)), np.zeros(10), 0.8, 1)

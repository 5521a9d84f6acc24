"""Tests for the tensor <-> long-format table transform and its CSV files."""

import numpy as np
import pandas as pd
import pytest

from fdsim.config import make_time_grid
from fdsim.constants import X_AXES, Y_AXES
from fdsim.data_sampler import generate
from fdsim.exceptions import ShapeError
from fdsim.utils.utils_data import (
    from_long_format,
    load_sample_tensors,
    sample_set_to_frames,
    save_sample_set,
    to_long_format,
)

GRID = make_time_grid(0.0, 1.0, 0.05)


@pytest.mark.parametrize(
    "shape",
    [(1, 1), (50, 21), (7, 3), (1, 6, 1), (3, 6, 21), (50, 6, 21), (13, 2, 5)],
)
def test_round_trip(shape):
    rng = np.random.default_rng(len(shape) * 1000 + sum(shape))
    tensor = rng.normal(size=shape)
    names = X_AXES if len(shape) == 3 else Y_AXES

    records = to_long_format(tensor, names)
    assert len(records) == tensor.size
    np.testing.assert_array_equal(from_long_format(records, names), tensor)


def test_round_trip_random_shapes():
    rng = np.random.default_rng(0)
    for _ in range(20):
        shape = (
            int(rng.integers(1, 51)),
            int(rng.integers(1, 7)),
            int(rng.integers(1, 22)),
        )
        tensor = rng.normal(size=shape)
        records = to_long_format(tensor, X_AXES)
        np.testing.assert_array_equal(
            from_long_format(records, X_AXES, shape=shape), tensor
        )


def test_first_axis_varies_fastest():
    tensor = np.arange(6.0).reshape(2, 3)
    records = to_long_format(tensor, Y_AXES)
    assert records["individual"].tolist() == [1, 2, 1, 2, 1, 2]
    assert records["time_idx"].tolist() == [1, 1, 2, 2, 3, 3]
    assert records["value"].tolist() == [0.0, 3.0, 1.0, 4.0, 2.0, 5.0]


def test_index_columns_are_one_based():
    tensor = np.zeros((4, 6, 5))
    records = to_long_format(tensor, X_AXES)
    assert records["individual"].min() == 1
    assert records["individual"].max() == 4
    assert records["variable"].max() == 6
    assert records["time_idx"].max() == 5


def test_every_cell_appears_once():
    tensor = np.zeros((3, 6, 4))
    records = to_long_format(tensor, X_AXES)
    assert not records.duplicated(subset=list(X_AXES)).any()


def test_time_column_holds_grid_values():
    tensor = np.ones((2, GRID.size))
    records = to_long_format(tensor, Y_AXES, time_grid=GRID)
    np.testing.assert_array_equal(
        records["time"].to_numpy(), GRID[records["time_idx"].to_numpy() - 1]
    )


def test_shuffled_rows_rebuild_the_tensor():
    rng = np.random.default_rng(3)
    tensor = rng.normal(size=(5, 6, 4))
    records = to_long_format(tensor, X_AXES).sample(frac=1.0, random_state=1)
    np.testing.assert_array_equal(from_long_format(records, X_AXES), tensor)


def test_axis_name_count_mismatch():
    with pytest.raises(ShapeError):
        to_long_format(np.zeros((2, 3)), X_AXES)


def test_duplicate_axis_names():
    with pytest.raises(ShapeError):
        to_long_format(np.zeros((2, 3)), ["individual", "individual"])


def test_time_grid_length_mismatch():
    with pytest.raises(ShapeError):
        to_long_format(np.zeros((2, 3)), Y_AXES, time_grid=GRID)


def test_missing_row():
    records = to_long_format(np.zeros((3, 4)), Y_AXES).iloc[1:]
    with pytest.raises(ShapeError):
        from_long_format(records, Y_AXES, shape=(3, 4))


def test_duplicated_row():
    records = to_long_format(np.zeros((3, 4)), Y_AXES)
    records = pd.concat([records.iloc[1:], records.iloc[[2]]], ignore_index=True)
    with pytest.raises(ShapeError):
        from_long_format(records, Y_AXES)


def test_missing_column():
    records = to_long_format(np.zeros((3, 4)), Y_AXES).drop(columns="value")
    with pytest.raises(ShapeError):
        from_long_format(records, Y_AXES)


def test_index_outside_declared_shape():
    records = to_long_format(np.zeros((3, 4)), Y_AXES)
    with pytest.raises(ShapeError):
        from_long_format(records, Y_AXES, shape=(2, 4))


def test_declared_shape_with_wrong_rank():
    records = to_long_format(np.zeros((3, 4)), Y_AXES)
    with pytest.raises(ShapeError):
        from_long_format(records, Y_AXES, shape=(3, 4, 1))


def test_sample_set_frames():
    sample = generate(8, GRID, seed=1)
    df_x, df_y = sample_set_to_frames(sample)
    assert list(df_x.columns) == ["individual", "variable", "time_idx", "time", "value"]
    assert list(df_y.columns) == ["individual", "time_idx", "time", "value"]
    assert len(df_x) == 8 * 6 * GRID.size
    assert len(df_y) == 8 * GRID.size


def test_csv_round_trip(tmp_path):
    sample = generate(12, GRID, seed=4)
    x_path, y_path = save_sample_set(sample, tmp_path)
    assert x_path.name == "X_n12.csv"
    assert y_path.name == "Y_n12.csv"

    X, Y, time_grid = load_sample_tensors(tmp_path, 12)
    np.testing.assert_array_equal(X, sample.X)
    np.testing.assert_array_equal(Y, sample.Y)
    np.testing.assert_array_equal(time_grid, GRID)

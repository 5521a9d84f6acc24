from collections.abc import Sequence
from pathlib import Path

import numpy as np
import pandas as pd

from fdsim.constants import TIME_COLUMN, VALUE_COLUMN, X_AXES, Y_AXES
from fdsim.data_sampler import SampleSet
from fdsim.exceptions import ShapeError
from fdsim.utils.utils_logging import logger


def to_long_format(
    tensor: np.ndarray,
    axis_names: Sequence[str],
    time_grid: np.ndarray | None = None,
    time_axis: str = "time_idx",
) -> pd.DataFrame:
    """Flatten a tensor into one row per cell.

    Rows are enumerated with the first axis varying fastest (Fortran order),
    so for X the individual index cycles within each (variable, time_idx)
    block. Index columns are 1-based.

    Args:
        tensor: Array with len(axis_names) axes.
        axis_names: Column name per axis, e.g. ("individual", "variable", "time_idx").
        time_grid: Optional grid. When given, a `time` column holds
            time_grid[time_idx - 1] for the axis named `time_axis`.
        time_axis: Name of the axis that indexes the time grid.

    Returns:
        pd.DataFrame with columns [*axis_names, ("time"), "value"].

    Raises:
        ShapeError: If the number of axis names does not match tensor.ndim, the
            names are not unique, or the time grid does not fit the time axis.
    """
    tensor = np.asarray(tensor)
    axis_names = list(axis_names)
    if len(axis_names) != tensor.ndim:
        raise ShapeError(
            f"Got {len(axis_names)} axis names {axis_names} for a tensor with "
            f"{tensor.ndim} axes."
        )
    if len(set(axis_names)) != len(axis_names):
        raise ShapeError(f"Axis names must be unique, got {axis_names}.")

    index_grids = np.indices(tensor.shape)
    df = pd.DataFrame(
        {
            name: index_grids[axis].ravel(order="F") + 1
            for axis, name in enumerate(axis_names)
        }
    )

    if time_grid is not None:
        if time_axis not in axis_names:
            raise ShapeError(f"Time axis '{time_axis}' not in {axis_names}.")
        grid = np.asarray(time_grid, dtype=np.float64)
        axis = axis_names.index(time_axis)
        if grid.shape != (tensor.shape[axis],):
            raise ShapeError(
                f"Time grid of length {grid.size} does not match axis '{time_axis}' "
                f"with {tensor.shape[axis]} points."
            )
        df[TIME_COLUMN] = grid[df[time_axis].to_numpy() - 1]

    df[VALUE_COLUMN] = tensor.ravel(order="F")
    return df


def from_long_format(
    records: pd.DataFrame,
    axis_names: Sequence[str],
    shape: Sequence[int] | None = None,
) -> np.ndarray:
    """Rebuild a tensor from its long-format table (inverse of to_long_format).

    Row order does not matter; every cell must appear exactly once.

    Args:
        records: Table with one 1-based integer column per axis and a `value` column.
        axis_names: Axis columns in tensor axis order.
        shape: Expected tensor shape. Inferred from the largest index per axis
            when omitted.

    Returns:
        np.ndarray with the dtype of the value column.

    Raises:
        ShapeError: On missing columns, indices outside the shape, or duplicated
            or missing cells.
    """
    axis_names = list(axis_names)
    missing = [c for c in [*axis_names, VALUE_COLUMN] if c not in records.columns]
    if missing:
        raise ShapeError(f"Long-format table is missing columns {missing}.")

    idx = records[axis_names].to_numpy(dtype=np.int64) - 1
    if idx.ndim != 2 or idx.shape[0] == 0:
        raise ShapeError("Long-format table is empty.")

    if shape is None:
        shape = tuple(int(v) + 1 for v in idx.max(axis=0))
    else:
        shape = tuple(int(v) for v in shape)
    if len(shape) != len(axis_names):
        raise ShapeError(
            f"Shape {shape} does not match {len(axis_names)} axis names {axis_names}."
        )
    if np.any(idx < 0) or np.any(idx >= np.asarray(shape)):
        raise ShapeError(f"Long-format indices fall outside shape {shape}.")

    n_cells = int(np.prod(shape))
    if len(records) != n_cells:
        raise ShapeError(
            f"Long-format table has {len(records)} rows but shape {shape} needs {n_cells}."
        )

    flat = np.ravel_multi_index(tuple(idx.T), shape, order="F")
    if np.unique(flat).size != n_cells:
        raise ShapeError("Long-format table contains duplicated cells.")

    values = records[VALUE_COLUMN].to_numpy()
    tensor = np.empty(n_cells, dtype=values.dtype)
    tensor[flat] = values
    return tensor.reshape(shape, order="F")


def sample_set_to_frames(sample_set: SampleSet) -> tuple[pd.DataFrame, pd.DataFrame]:
    """Long-format tables (df_x, df_y) of a sample set, including the `time` column."""
    df_x = to_long_format(sample_set.X, X_AXES, time_grid=sample_set.time_grid)
    df_y = to_long_format(sample_set.Y, Y_AXES, time_grid=sample_set.time_grid)
    return df_x, df_y


def long_format_paths(data_dir: str | Path, n: int) -> tuple[Path, Path]:
    data_dir = Path(data_dir)
    return data_dir / f"X_n{n}.csv", data_dir / f"Y_n{n}.csv"


def save_sample_set(sample_set: SampleSet, data_dir: str | Path) -> tuple[Path, Path]:
    """Write X and Y of one sample size as long-format CSV files.

    Returns:
        Paths of the X and Y files.
    """
    data_dir = Path(data_dir)
    data_dir.mkdir(parents=True, exist_ok=True)
    x_path, y_path = long_format_paths(data_dir, sample_set.n)

    df_x, df_y = sample_set_to_frames(sample_set)
    df_x.to_csv(x_path, index=False)
    df_y.to_csv(y_path, index=False)

    logger.info("Saved long-format tables for n=%d to: %s", sample_set.n, data_dir)
    return x_path, y_path


def load_sample_tensors(
    data_dir: str | Path, n: int
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Read the CSV files written by save_sample_set back into arrays.

    Returns:
        Tuple (X, Y, time_grid) with X of shape (n, 6, nt) and Y of shape (n, nt).
    """
    x_path, y_path = long_format_paths(data_dir, n)
    df_x = pd.read_csv(x_path, float_precision="round_trip")
    df_y = pd.read_csv(y_path, float_precision="round_trip")

    X = from_long_format(df_x, X_AXES)
    Y = from_long_format(df_y, Y_AXES)
    if X.shape[0] != n or Y.shape[0] != n:
        raise ShapeError(
            f"Files for n={n} hold {X.shape[0]} (X) and {Y.shape[0]} (Y) individuals."
        )

    time_grid = (
        df_y[["time_idx", TIME_COLUMN]]
        .drop_duplicates()
        .sort_values("time_idx")[TIME_COLUMN]
        .to_numpy()
    )
    logger.debug("Loaded n=%d from %s: X %s, Y %s.", n, data_dir, X.shape, Y.shape)
    return X, Y, time_grid

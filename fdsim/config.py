import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import numpy as np
import yaml

from fdsim.constants import (
    COEF_MEAN,
    COEF_VARIANCE,
    GRID_END,
    GRID_START,
    GRID_STEP,
    SAMPLE_SIZES,
    SIGMA_X,
    SIGMA_Y,
    SIMULATION_SEED,
    SPLIT_RATIO,
    SPLIT_SEED,
)
from fdsim.exceptions import ConfigurationError

# Absorbs float error in (end - start) / step, e.g. 1.0 / 0.05 = 19.999...
_GRID_TOL = 1e-9

def make_time_grid(
    start: float = GRID_START, end: float = GRID_END, step: float = GRID_STEP
) -> np.ndarray:
    """Build the shared, read-only time grid on [start, end] with a fixed step.

    The grid always starts at `start` and includes `end` whenever `end - start`
    is a multiple of `step` (up to float tolerance).

    Args:
        start: Left bound, in [0, 1].
        end: Right bound, in [0, 1].
        step: Positive spacing between consecutive time points.

    Returns:
        1D float array of length nt >= 2, strictly increasing, not writeable.

    Raises:
        ConfigurationError: If the bounds leave [0, 1], step is not positive or
            the interval yields fewer than two points.
    """
    start, end, step = float(start), float(end), float(step)
    if not (0.0 <= start <= 1.0 and 0.0 <= end <= 1.0):
        raise ConfigurationError(f"Grid bounds must lie in [0, 1], got [{start}, {end}].")
    if step <= 0.0 or not math.isfinite(step):
        raise ConfigurationError(f"Grid step must be positive, got {step}.")
    if end <= start:
        raise ConfigurationError(
            f"Grid interval [{start}, {end}] has zero or negative length."
        )

    n_points = int(math.floor((end - start) / step + _GRID_TOL)) + 1
    if n_points < 2:
        raise ConfigurationError(
            f"Step {step} is larger than the grid interval [{start}, {end}]."
        )

    grid = start + step * np.arange(n_points, dtype=np.float64)
    # Snap the last point onto `end` to avoid 1.0000000000000002
    if abs(grid[-1] - end) < _GRID_TOL:
        grid[-1] = end
    grid.setflags(write=False)
    return grid


def validate_time_grid(time_grid: Any) -> np.ndarray:
    """Check that an externally supplied grid is a strictly increasing 1D array in [0, 1]."""
    grid = np.asarray(time_grid, dtype=np.float64)
    if grid.ndim != 1 or grid.size < 2:
        raise ConfigurationError(
            f"Time grid must be 1D with at least two points, got shape {grid.shape}."
        )
    if not np.all(np.isfinite(grid)):
        raise ConfigurationError("Time grid contains non-finite values.")
    if grid[0] < 0.0 or grid[-1] > 1.0:
        raise ConfigurationError("Time grid must lie in [0, 1].")
    steps = np.diff(grid)
    if np.any(steps <= 0.0):
        raise ConfigurationError("Time grid must be strictly increasing.")
    if not np.allclose(steps, steps[0]):
        raise ConfigurationError("Time grid must have a fixed step.")
    return grid


def check_sample_size(n: Any) -> int:
    if isinstance(n, bool) or not isinstance(n, (int, np.integer)):
        raise ConfigurationError(f"Sample size must be an integer, got {n!r}.")
    if n <= 0:
        raise ConfigurationError(f"Sample size must be positive, got {n}.")
    return int(n)


def check_seed(seed: Any, name: str = "seed") -> int:
    if isinstance(seed, bool) or not isinstance(seed, (int, np.integer)):
        raise ConfigurationError(f"'{name}' must be an integer, got {seed!r}.")
    if seed < 0:
        raise ConfigurationError(f"'{name}' must be non-negative, got {seed}.")
    return int(seed)


def n_train_for(n: int, split_ratio: float) -> int:
    """Train partition size round(split_ratio * n).

    Raises:
        ConfigurationError: If split_ratio is outside (0, 1) or the train or
            test partition would be empty.
    """
    n = check_sample_size(n)
    if not 0.0 < split_ratio < 1.0:
        raise ConfigurationError(f"Split ratio must lie in (0, 1), got {split_ratio}.")
    n_train = round(split_ratio * n)
    if n_train in (0, n):
        raise ConfigurationError(
            f"Split ratio {split_ratio} with n={n} leaves an empty partition "
            f"(n_train={n_train})."
        )
    return n_train


@dataclass(frozen=True)
class ModelHyperparameters:
    """Hyperparameters handed to the external forest regression model.

    Attributes:
        n_splits: Number of candidate splits evaluated per node.
        ntree: Ensemble size (number of trees).
        mtry: Number of features tried per node.
        bootstrap: Whether trees are grown on bootstrap samples.
        minsplit: Minimum number of individuals in a leaf.
        distance: Name of the distance between curves.
    """

    n_splits: int = 10
    ntree: int = 100
    mtry: int = 2
    bootstrap: bool = True
    minsplit: int = 5
    distance: str = "euclidean"

    def __post_init__(self) -> None:
        for name in ("n_splits", "ntree", "mtry", "minsplit"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ConfigurationError(
                    f"Hyperparameter '{name}' must be a positive integer, got {value!r}."
                )
        if not isinstance(self.bootstrap, bool):
            raise ConfigurationError(
                f"Hyperparameter 'bootstrap' must be a bool, got {self.bootstrap!r}."
            )
        # The metric itself is resolved by the model
        if not isinstance(self.distance, str) or not self.distance.strip():
            raise ConfigurationError(
                f"Hyperparameter 'distance' must be a non-empty name, got {self.distance!r}."
            )

    def as_dict(self) -> dict[str, Any]:
        return {
            "n_splits": self.n_splits,
            "ntree": self.ntree,
            "mtry": self.mtry,
            "bootstrap": self.bootstrap,
            "minsplit": self.minsplit,
            "distance": self.distance,
        }


@dataclass(frozen=True)
class SimulationConfig:
    """Read-only settings shared by every sample size of one experiment.

    Validation runs on construction, so an invalid config never reaches the
    sampler.
    """

    name: str = "simulation"
    seed: int = SIMULATION_SEED
    grid_start: float = GRID_START
    grid_end: float = GRID_END
    grid_step: float = GRID_STEP
    sample_sizes: tuple[int, ...] = SAMPLE_SIZES
    sigma_x: float = SIGMA_X
    sigma_y: float = SIGMA_Y
    coef_mean: float = COEF_MEAN
    coef_variance: float = COEF_VARIANCE
    split_ratio: float = SPLIT_RATIO
    split_seed: int = SPLIT_SEED
    n_jobs: int = 1
    model: ModelHyperparameters = field(default_factory=ModelHyperparameters)

    def __post_init__(self) -> None:
        sizes = tuple(check_sample_size(n) for n in self.sample_sizes)
        if not sizes:
            raise ConfigurationError("At least one sample size is required.")
        if len(set(sizes)) != len(sizes):
            raise ConfigurationError(f"Sample sizes must be unique, got {sizes}.")
        object.__setattr__(self, "sample_sizes", sizes)

        grid = make_time_grid(self.grid_start, self.grid_end, self.grid_step)
        object.__setattr__(self, "_time_grid", grid)

        if self.sigma_x < 0 or self.sigma_y < 0:
            raise ConfigurationError(
                f"Noise standard deviations must be non-negative, "
                f"got sigma_x={self.sigma_x}, sigma_y={self.sigma_y}."
            )
        if self.coef_variance <= 0:
            raise ConfigurationError(
                f"Coefficient variance must be positive, got {self.coef_variance}."
            )
        if not 0.0 < self.split_ratio < 1.0:
            raise ConfigurationError(
                f"Split ratio must lie in (0, 1), got {self.split_ratio}."
            )
        for n in sizes:
            n_train_for(n, self.split_ratio)
        object.__setattr__(self, "seed", check_seed(self.seed, "seed"))
        object.__setattr__(self, "split_seed", check_seed(self.split_seed, "split_seed"))
        if isinstance(self.n_jobs, bool) or not isinstance(self.n_jobs, int) or self.n_jobs == 0:
            raise ConfigurationError(f"n_jobs must be a non-zero integer, got {self.n_jobs!r}.")

    @property
    def time_grid(self) -> np.ndarray:
        return self._time_grid

    @property
    def n_time_points(self) -> int:
        return int(self._time_grid.size)

    @classmethod
    def from_dict(cls, cfg: Mapping[str, Any]) -> "SimulationConfig":
        """Build a config from the `experiment` mapping of a YAML file.

        Missing sections fall back to the defaults in constants.py. Unknown keys
        are rejected so that typos do not silently fall back to a default.
        """
        known = {
            "name",
            "seed",
            "grid",
            "sample_sizes",
            "noise",
            "coefficients",
            "split",
            "n_jobs",
            "model",
        }
        unknown = set(cfg) - known
        if unknown:
            raise ConfigurationError(f"Unknown experiment keys: {sorted(unknown)}.")

        grid_cfg = cfg.get("grid", {}) or {}
        noise_cfg = cfg.get("noise", {}) or {}
        coef_cfg = cfg.get("coefficients", {}) or {}
        split_cfg = cfg.get("split", {}) or {}
        model_cfg = cfg.get("model", {}) or {}

        try:
            model = ModelHyperparameters(**model_cfg)
        except TypeError as exc:
            raise ConfigurationError(f"Invalid model section: {exc}") from exc

        sample_sizes = cfg.get("sample_sizes", SAMPLE_SIZES)
        if isinstance(sample_sizes, (str, bytes)) or not isinstance(sample_sizes, Iterable):
            raise ConfigurationError(
                f"'sample_sizes' must be a list of integers, got {sample_sizes!r}."
            )

        # Integer fields are passed through unchanged and checked in __post_init__
        try:
            return cls(
                name=str(cfg.get("name", "simulation")),
                seed=cfg.get("seed", SIMULATION_SEED),
                grid_start=float(grid_cfg.get("start", GRID_START)),
                grid_end=float(grid_cfg.get("end", GRID_END)),
                grid_step=float(grid_cfg.get("step", GRID_STEP)),
                sample_sizes=tuple(sample_sizes),
                sigma_x=float(noise_cfg.get("sigma_x", SIGMA_X)),
                sigma_y=float(noise_cfg.get("sigma_y", SIGMA_Y)),
                coef_mean=float(coef_cfg.get("mean", COEF_MEAN)),
                coef_variance=float(coef_cfg.get("variance", COEF_VARIANCE)),
                split_ratio=float(split_cfg.get("ratio", SPLIT_RATIO)),
                split_seed=split_cfg.get("seed", SPLIT_SEED),
                n_jobs=cfg.get("n_jobs", 1),
                model=model,
            )
        except ConfigurationError:
            raise
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid experiment section: {exc}") from exc

    @classmethod
    def from_yaml(cls, path: str | Path) -> "SimulationConfig":
        return load_simulation_config(path)


def load_simulation_config(path: str | Path) -> SimulationConfig:
    """Load a YAML experiment file with an `experiment:` root."""
    path = Path(path)
    with path.open("r") as f:
        raw = yaml.safe_load(f)
    if not isinstance(raw, Mapping) or "experiment" not in raw:
        raise ConfigurationError(f"{path} has no 'experiment' section.")
    return SimulationConfig.from_dict(raw["experiment"])


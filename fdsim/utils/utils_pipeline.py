import json
import os
from collections.abc import Mapping
from datetime import datetime
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from fdsim.config import SimulationConfig
from fdsim.constants import RESULTS_DIR, SUMMARY_COLUMNS, SUMMARY_PATH
from fdsim.data_sampler import SampleSet, freeze_sample_set, run_simulation
from fdsim.train_test_split import TrainTestSplit
from fdsim.utils.utils_logging import logger


def simulate_sample_sizes(
    config: SimulationConfig, n_jobs: int | None = None
) -> dict[int, SampleSet]:
    """Simulate every sample size of `config`.

    Each size draws from its own seed derived from (config.seed, n), so the
    result does not depend on n_jobs or on the order sizes are processed in.

    Args:
        config: Experiment configuration.
        n_jobs: joblib worker count; defaults to config.n_jobs. 1 runs inline.

    Returns:
        Mapping sample size -> SampleSet, in config.sample_sizes order.
    """
    n_jobs = config.n_jobs if n_jobs is None else n_jobs
    sizes = config.sample_sizes

    if n_jobs == 1:
        sample_sets = [run_simulation(n, config) for n in sizes]
    else:
        sample_sets = Parallel(n_jobs=n_jobs)(
            delayed(run_simulation)(n, config) for n in sizes
        )
        # Unpickled worker results come back writeable
        sample_sets = [freeze_sample_set(s) for s in sample_sets]

    logger.info(
        "Simulated %d sample sizes %s for experiment %s.",
        len(sizes),
        list(sizes),
        config.name,
    )
    return dict(zip(sizes, sample_sets))


def generate_result_path(
    base_dir: str | Path, config: SimulationConfig, n: int
) -> Path:
    """
    Build a readable, short path. Example:
      <base>/<experiment>/seed-123_n-100_nt-21_split-0.8-1234/250920_1342
    """
    parts = [
        f"seed-{config.seed}",
        f"n-{n}",
        f"nt-{config.n_time_points}",
        f"split-{config.split_ratio}-{config.split_seed}",
    ]
    setting = "_".join(parts)
    timestamp = datetime.now().strftime("%y%m%d_%H%M")
    return Path(base_dir) / config.name / setting / timestamp


def save_split(
    data_split: TrainTestSplit,
    config: SimulationConfig,
    results_dir: Path,
    metrics: Mapping[str, Any] | None = None,
) -> None:
    """Save split arrays, ids, optional metrics and the config to results_dir."""
    os.makedirs(results_dir, exist_ok=True)

    # Save train and test data
    np.save(results_dir / "X_train.npy", data_split.X_train)
    np.save(results_dir / "X_test.npy", data_split.X_test)
    np.save(results_dir / "y_train.npy", data_split.Y_train)
    np.save(results_dir / "y_test.npy", data_split.Y_test)

    # Save partition ids
    np.save(results_dir / "train_ids.npy", data_split.train_ids)
    np.save(results_dir / "test_ids.npy", data_split.test_ids)

    if metrics is not None:
        np.save(results_dir / "y_pred.npy", np.asarray(metrics["y_pred"]))
        with (results_dir / "metrics.json").open("w") as f:
            json.dump(
                {k: float(v) for k, v in metrics.items() if k != "y_pred"}, f, indent=2
            )

    # Save config
    with (results_dir / "config.json").open("w") as f:
        json.dump(config_to_dict(config), f, indent=2)

    logger.info("Saved split to: %s", results_dir)


def config_to_dict(config: SimulationConfig) -> dict[str, Any]:
    """Serializable view of a config, mirroring the YAML `experiment` layout."""
    return {
        "name": config.name,
        "seed": config.seed,
        "grid": {
            "start": config.grid_start,
            "end": config.grid_end,
            "step": config.grid_step,
        },
        "sample_sizes": list(config.sample_sizes),
        "noise": {"sigma_x": config.sigma_x, "sigma_y": config.sigma_y},
        "coefficients": {"mean": config.coef_mean, "variance": config.coef_variance},
        "split": {"ratio": config.split_ratio, "seed": config.split_seed},
        "n_jobs": config.n_jobs,
        "model": config.model.as_dict(),
    }


def append_summary(
    config: SimulationConfig,
    n: int,
    data_split: TrainTestSplit,
    result_dir: Path,
    summary_path: Path = SUMMARY_PATH,
    results_root: Path = RESULTS_DIR,
) -> None:
    """
    Append a single row to the simulation summary CSV.

    Notes:
        - The header is only written when the file does not exist yet.
        - result_folder is stored relative to the results/ root.
        - A completion timestamp is added.
    """
    row: dict[str, Any] = {
        "experiment_name": config.name,
        "seed": config.seed,
        "n": n,
        "n_time_points": config.n_time_points,
        "split_ratio": config.split_ratio,
        "split_seed": config.split_seed,
        "n_train": int(data_split.train_ids.size),
        "n_test": int(data_split.test_ids.size),
        "result_folder": Path(result_dir).relative_to(results_root),
        "timestamp": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
    }

    summary_path = Path(summary_path)
    summary_path.parent.mkdir(parents=True, exist_ok=True)
    write_header = not summary_path.exists() or summary_path.stat().st_size == 0

    df_row = pd.DataFrame([row], columns=SUMMARY_COLUMNS)
    df_row.to_csv(summary_path, mode="a", header=write_header, index=False)

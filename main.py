import argparse
from collections.abc import Callable
from pathlib import Path

from tqdm import tqdm

from fdsim.config import SimulationConfig, load_simulation_config
from fdsim.constants import DATA_DIR, RESULTS_DIR, SIMULATION_CONFIG_PATH, SUMMARY_PATH
from fdsim.evaluation import RegressionModel, evaluate_model, to_model_layout
from fdsim.train_test_split import split
from fdsim.utils.utils_data import save_sample_set
from fdsim.utils.utils_logging import logger
from fdsim.utils.utils_pipeline import (
    append_summary,
    generate_result_path,
    save_split,
    simulate_sample_sizes,
)


def main(
    config: SimulationConfig,
    model_factory: Callable[[], RegressionModel] | None = None,
    data_dir: Path = DATA_DIR,
    results_dir: Path = RESULTS_DIR,
) -> None:
    """Simulate all sample sizes of `config`, persist them and split them.

    When `model_factory` is given, a fresh model is fitted and scored on every
    split.
    """
    data_dir, results_dir = Path(data_dir), Path(results_dir)
    logger.info("Simulation started: %s", config.name)
    sample_sets = simulate_sample_sizes(config)

    with tqdm(total=len(sample_sets), desc="Preparing sample sizes", ncols=100) as pbar:
        for n, sample_set in sample_sets.items():
            tqdm.write(f"Now preparing: n={n}")
            save_sample_set(sample_set, data_dir / config.name)

            data_split = split(
                to_model_layout(sample_set.X),
                sample_set.Y,
                config.split_ratio,
                config.split_seed,
            )

            metrics = None
            if model_factory is not None:
                metrics = evaluate_model(model_factory(), data_split, config.model)

            result_dir = generate_result_path(results_dir, config, n)
            save_split(data_split, config, result_dir, metrics=metrics)
            append_summary(
                config,
                n,
                data_split,
                result_dir,
                summary_path=results_dir / SUMMARY_PATH.name,
                results_root=results_dir,
            )

            pbar.update(1)

    logger.info("Simulation finished: %s", config.name)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Functional data simulation")
    parser.add_argument(
        "--config", default=str(SIMULATION_CONFIG_PATH), help="Experiment YAML file"
    )
    args = parser.parse_args()

    main(load_simulation_config(args.config))

import logging
import os
from datetime import datetime
from pathlib import Path

# Base project directory
BASE_DIR = Path(__file__).resolve().parent.parent

# Subdirectories
CONFIG_DIR = BASE_DIR / "config"
DATA_DIR = BASE_DIR / "data"
RESULTS_DIR = BASE_DIR / "results"

# Timestamped log directory. Worker processes inherit it through the
# environment, so one run writes one log folder.
RUN_TIMESTAMP = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
LOG_DIR = Path(
    os.environ.setdefault("FDSIM_LOG_DIR", str(BASE_DIR / "logs" / RUN_TIMESTAMP))
)
LOG_PATH = LOG_DIR / "main.log"

# Experiment configuration paths
SIMULATION_CONFIG_PATH = CONFIG_DIR / "simulation.yaml"

# Summary path
SUMMARY_PATH = RESULTS_DIR / "simulation_summary.csv"

# Simulation summary
SUMMARY_COLUMNS = [
    "experiment_name",
    "seed",
    "n",
    "n_time_points",
    "split_ratio",
    "split_seed",
    "n_train",
    "n_test",
    "result_folder",
    "timestamp",
]

### Simulation defaults ###
GRID_START = 0.0
GRID_END = 1.0
GRID_STEP = 0.05
SAMPLE_SIZES = (100, 200, 500, 1000)
SIMULATION_SEED = 123

N_FEATURES = 6
CLASSES = (1, 2)
# Features scaled by beta, all others by beta_prime
BETA_FEATURES = (1, 2)

COEF_MEAN = 1.0
COEF_VARIANCE = 0.3
SIGMA_X = 0.02
SIGMA_Y = 0.05

SPLIT_RATIO = 0.8
SPLIT_SEED = 1234

### Long-format tables ###
X_AXES = ("individual", "variable", "time_idx")
Y_AXES = ("individual", "time_idx")
TIME_COLUMN = "time"
VALUE_COLUMN = "value"

### Logging ###
LOGGING_FORMAT = "%(asctime)s - %(processName)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
PROJECT_LOGGER_NAME = "fdsim"
LOGGING_LEVEL = logging.INFO
QUIET_LIBRARIES = ("joblib",)

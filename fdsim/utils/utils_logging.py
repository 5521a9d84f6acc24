import logging
from pathlib import Path

from fdsim.constants import (
    DATE_FORMAT,
    LOG_PATH,
    LOGGING_FORMAT,
    LOGGING_LEVEL,
    PROJECT_LOGGER_NAME,
    QUIET_LIBRARIES,
)


def setup_logging(
    log_path: str | Path = LOG_PATH,
    console_level: int = LOGGING_LEVEL,
) -> logging.Logger:
    """
    Configure the `fdsim` logger:
    - Append every record (DEBUG+) to `log_path`. Parallel workers share the
      run's log folder and append to the same file.
    - Echo records at `console_level` and above to stderr.
    - Calling it again replaces the handlers instead of stacking them.
    """
    log_path = Path(log_path)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    project_logger = logging.getLogger(PROJECT_LOGGER_NAME)
    project_logger.setLevel(logging.DEBUG)
    project_logger.propagate = False
    for handler in list(project_logger.handlers):
        project_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOGGING_FORMAT, datefmt=DATE_FORMAT)

    file_handler = logging.FileHandler(log_path, mode="a")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(console_level)
    stream_handler.setFormatter(formatter)

    project_logger.addHandler(file_handler)
    project_logger.addHandler(stream_handler)

    for name in QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)

    return project_logger


logger = setup_logging()

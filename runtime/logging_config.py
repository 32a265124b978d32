import logging
import sys
from typing import Optional

LOGGER_NAME = "mesh_fairing"
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def _reset_handlers(logger: logging.Logger) -> None:
    # Closing releases the previous log file before a new run reopens it.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def setup_logging(
    log_file: Optional[str],
    *,
    quiet: bool = False,
    debug: bool = False,
) -> logging.Logger:
    """Configure and return the shared `mesh_fairing` logger.

    Nothing is written to disk unless `log_file` is given; the file is
    truncated on every call. Stage timings, state transitions and solve
    residuals are DEBUG records, so they only appear with ``debug=True``.
    A log file that cannot be opened is reported on stderr and the run
    continues with console logging only.
    """
    logger = logging.getLogger(LOGGER_NAME)
    # pytest's caplog listens on the root logger.
    logger.propagate = True

    level = logging.DEBUG if debug else logging.INFO
    logger.setLevel(level)
    _reset_handlers(logger)

    formatter = logging.Formatter(LOG_FORMAT)
    handlers = []
    if log_file:
        try:
            handlers.append(logging.FileHandler(log_file, mode="w"))
        except OSError as exc:
            print(f"[logging] Could not open log file '{log_file}': {exc}", file=sys.stderr)
    if not quiet:
        handlers.append(logging.StreamHandler())

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger

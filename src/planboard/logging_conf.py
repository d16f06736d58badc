import logging
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that flood INFO with per-request lines.
NOISY_LOGGERS = ("uvicorn.access", "watchfiles", "nicegui")


def configure_logging(level: str = "INFO") -> None:
    """Send every planboard log record to stdout with one shared format."""
    numeric_level = getattr(logging, str(level).upper(), None)
    if not isinstance(numeric_level, int):
        print(f"Invalid log level: {level}, defaulting to INFO")
        numeric_level = logging.INFO

    # e.g. "2026-10-19 10:00:00 [INFO] planboard.data.repository: Committed 3 allocations"
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT))

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # NiceGUI reloads re-run main(); avoid stacking handlers.
    if root_logger.hasHandlers():
        root_logger.handlers.clear()
    root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

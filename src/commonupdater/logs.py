"""Console and log file setup."""

import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from commonupdater.config import UpdaterConfig

FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    config: UpdaterConfig,
    verbose: bool = False,
    console: Console | None = None,
) -> Path | None:
    """Log to the console with rich and to a flat file reset on every run.

    Args:
        config: Supplies the log file path.
        verbose: Enable debug output.
        console: Console used by the rich handler.

    Returns:
        Path of the log file, or None if it could not be opened.
    """
    level = logging.DEBUG if verbose else logging.INFO
    handlers: list[logging.Handler] = [
        RichHandler(rich_tracebacks=True, console=console, show_path=False),
    ]

    log_path = config.log_path
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, mode="w", encoding="utf-8")
    except OSError:
        # Console logging still works; report once it is configured
        file_handler = None
    if file_handler is not None:
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=FILE_DATE_FORMAT))
        handlers.append(file_handler)

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=handlers,
        force=True,
    )

    if file_handler is None:
        logging.getLogger(__name__).warning("Could not open log file %s", log_path)
        return None
    return log_path

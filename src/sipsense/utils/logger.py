"""SipSense logging setup.

Console output goes through rich at the configured level. The file log
keeps every ``sipsense.*`` record down to DEBUG, so a failed push or rule
run can be traced afterwards even when the console only shows INFO.
"""

import logging
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

console = Console()

DEFAULT_LOG_DIR = Path.home() / ".sipsense" / "logs"
LOG_FILE_NAME = "sipsense.log"

_FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
_FILE_DATE_FMT = "%Y-%m-%d %H:%M:%S"

# Chatty at INFO; only shown with --verbose
_LIBRARY_LOGGERS = ("httpx", "httpcore", "asyncio")


def resolve_level(verbose: bool, log_level: str) -> int:
    """Console level for a run. ``verbose`` always means DEBUG.

    Raises:
        ValueError: If ``log_level`` is not a logging level name.
    """
    if verbose:
        return logging.DEBUG

    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(
            f"Unknown log level {log_level!r}. "
            "Set SIPSENSE_LOG_LEVEL to DEBUG, INFO, WARNING or ERROR"
        )
    return level


def setup_logging(
    verbose: bool = False,
    log_level: str = "INFO",
    log_dir: Path | None = DEFAULT_LOG_DIR,
) -> Path | None:
    """Install the console handler and, if ``log_dir`` is set, the file log.

    Args:
        verbose: Debug console output with source paths, library loggers unmuted.
        log_level: Console level name when not verbose.
        log_dir: Directory for the daily-rotated file log, or None for console only.

    Returns:
        Path of the active log file, or None.
    """
    level = resolve_level(verbose, log_level)

    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()

    rich_handler = RichHandler(
        console=console,
        rich_tracebacks=True,
        show_path=verbose,
    )
    rich_handler.setLevel(level)
    root.addHandler(rich_handler)

    log_file = None
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / LOG_FILE_NAME
        file_handler = TimedRotatingFileHandler(
            filename=str(log_file),
            when="midnight",
            backupCount=7,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.addFilter(logging.Filter("sipsense"))
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_FILE_DATE_FMT))
        root.addHandler(file_handler)

    # Root must pass DEBUG through for the file log even when the console is quieter
    root.setLevel(logging.DEBUG if log_file is not None else level)

    library_level = logging.NOTSET if verbose else logging.WARNING
    for name in _LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    logging.getLogger(__name__).debug(
        "Logging configured: console=%s, file=%s",
        logging.getLevelName(level), log_file,
    )
    return log_file

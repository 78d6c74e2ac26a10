"""
Logging setup for the Integrity Monitor service and scripts

Console output always uses the same line format; file output, when enabled,
writes a daily session log plus an errors-only log, both size-rotated.
"""
import logging
import logging.handlers
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

MB = 1024 * 1024


def _rotating_handler(path: Path, level: int, max_mb: int, backups: int) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=max_mb * MB,
        backupCount=backups,
        encoding="utf-8"
    )
    handler.setLevel(level)
    return handler


def setup_logging(
    service_name: str = "integrity-monitor",
    level: str = "INFO",
    log_to_file: bool = True,
    log_to_console: bool = True,
    log_dir: Optional[str] = None
) -> logging.Logger:
    """
    Configure the root logger.

    Replaces any handlers already on the root logger, so calling it twice
    (app import, then a script) does not duplicate output.

    Args:
        service_name: Prefix for log file names and the returned logger
        level: Root level name (DEBUG, INFO, WARNING, ERROR)
        log_to_file: Write <service>_<date>.log and <service>_errors.log
        log_to_console: Write to stdout
        log_dir: Directory for log files (default ./logs)

    Returns:
        Logger named after the service
    """
    handlers = []

    if log_to_console:
        console = logging.StreamHandler(sys.stdout)
        console.setLevel(logging.DEBUG)
        handlers.append(console)

    log_file = None
    if log_to_file:
        directory = Path(log_dir or "logs")
        directory.mkdir(parents=True, exist_ok=True)

        log_file = directory / f"{service_name}_{datetime.now():%Y-%m-%d}.log"
        handlers.append(_rotating_handler(log_file, logging.DEBUG, max_mb=10, backups=5))
        handlers.append(_rotating_handler(directory / f"{service_name}_errors.log", logging.ERROR, max_mb=5, backups=3))

    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers = []
    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    logger = logging.getLogger(service_name)
    logger.info(f"{service_name} logging at {level.upper()}" + (f", file {log_file}" if log_file else ""))
    return logger

"""
Logging Utilities

This module sets up logging for the project with one consistent format for
console and (optionally) file output.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional, Union


def setup_logger(name: str,
                 level: int = logging.INFO,
                 log_file: Optional[str] = None) -> logging.Logger:
    """
    Set up a logger with consistent formatting.

    Args:
        name: Logger name (usually __name__)
        level: Logging level (default: logging.INFO)
        log_file: Optional log file path. If provided, logs will be written to this file

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Avoid adding multiple handlers
    if logger.handlers:
        return logger

    logger.setLevel(level)

    console_formatter = logging.Formatter(
        '%(asctime)s | %(levelname)s | %(name)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    file_formatter = logging.Formatter(
        '%(asctime)s | %(levelname)s | %(processName)s[%(process)d] | %(name)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(console_formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(file_formatter)
        logger.addHandler(file_handler)

    return logger


def set_package_log_level(level: Union[int, str]) -> None:
    """
    Apply a log level to every logger already created under the package.

    Module loggers are created at import time with the default INFO level;
    this lets an application lower or raise them afterwards, e.g. from
    ``AppConfig.logging.level``.

    Args:
        level: Level as int or name ("DEBUG", "INFO", ...)
    """
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level: {level}")
        level = resolved

    for obj in _package_loggers():
        obj.setLevel(level)
        for handler in obj.handlers:
            handler.setLevel(level)


def _package_loggers():
    root_name = __name__.split(".")[0]
    for name, obj in list(logging.Logger.manager.loggerDict.items()):
        if not isinstance(obj, logging.Logger):
            continue
        if name == root_name or name.startswith(root_name + "."):
            yield obj


def add_package_log_file(log_file: str) -> None:
    """
    Also write every package logger's output to ``log_file``.

    Loggers that already write to the same file are left alone, so applying
    one configuration repeatedly does not duplicate lines.

    Args:
        log_file: Log file path; parent directories are created.
    """
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    target = os.path.abspath(log_path)

    file_formatter = logging.Formatter(
        '%(asctime)s | %(levelname)s | %(processName)s[%(process)d] | %(name)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    for obj in _package_loggers():
        if any(
            isinstance(h, logging.FileHandler) and h.baseFilename == target
            for h in obj.handlers
        ):
            continue
        file_handler = logging.FileHandler(target)
        file_handler.setLevel(obj.level or logging.INFO)
        file_handler.setFormatter(file_formatter)
        obj.addHandler(file_handler)

"""
Logging setup and configuration utilities.

This module configures the root logger for processes embedding the
engine, either from explicit arguments or from the ``logging`` section
of a managed configuration tree.
"""

import logging
import logging.handlers
import re
import sys
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from .formatters import CustomFormatter, JSONFormatter

_LEVEL_ALIASES = {
    "warn": "WARNING",
    "fatal": "CRITICAL",
}

_SIZE_UNITS = {
    "KB": 1024,
    "MB": 1024 ** 2,
    "GB": 1024 ** 3,
}

_SIZE_RE = re.compile(r"^(\d+(?:\.\d+)?)\s*(KB|MB|GB)?$", re.IGNORECASE)


def resolve_level(level: Union[str, int]) -> int:
    """Map a level name (including ``warn``) or number to a logging level."""
    if isinstance(level, int):
        return level
    name = _LEVEL_ALIASES.get(level.lower(), level.upper())
    resolved = logging.getLevelName(name)
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level}")
    return resolved


def parse_size(size: Union[str, int]) -> int:
    """Convert sizes such as ``10MB`` to bytes."""
    if isinstance(size, int):
        return size
    match = _SIZE_RE.match(size.strip())
    if not match:
        raise ValueError(f"Invalid size: {size}")
    number, unit = match.groups()
    return int(float(number) * _SIZE_UNITS.get((unit or "").upper(), 1))


def setup_logging(
    log_level: Union[str, int] = "INFO",
    log_dir: Optional[Path] = None,
    log_format: str = "standard",
    enable_json_logs: bool = False,
    enable_file_logging: bool = False,
    enable_console_logging: bool = True,
    max_file_size: Union[str, int] = "10MB",
    backup_count: int = 5,
    log_file: str = "live_config.log"
) -> None:
    """
    Set up the root logger.

    Args:
        log_level: Root logging level
        log_dir: Directory for log files
        log_format: Text format style ('standard', 'detailed', 'minimal')
        enable_json_logs: Emit one JSON object per record
        enable_file_logging: Write to a rotating log file
        enable_console_logging: Write to stderr
        max_file_size: Rotation threshold (bytes or e.g. ``10MB``)
        backup_count: Rotated files to keep
        log_file: Log file name inside log_dir
    """
    level = resolve_level(log_level)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    formatter = JSONFormatter() if enable_json_logs else CustomFormatter(format_style=log_format)

    if enable_console_logging:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    if enable_file_logging:
        log_dir = Path(log_dir or "logs")
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_dir / log_file,
            maxBytes=parse_size(max_file_size),
            backupCount=backup_count,
            encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    _configure_component_loggers()

    logging.getLogger(__name__).debug("Logging system initialized")


def setup_logging_from_config(section: Mapping[str, Any]) -> None:
    """
    Configure logging from a tree's ``logging`` section.

    Recognized keys: ``level``, ``directory``, ``maxFileSize``,
    ``maxFiles``, ``format`` (``text`` or ``json``), ``enableConsole``
    and ``enableFile``.
    """
    setup_logging(
        log_level=section.get("level", "info"),
        log_dir=Path(section.get("directory", "./logs")),
        enable_json_logs=section.get("format") == "json",
        enable_file_logging=bool(section.get("enableFile", False)),
        enable_console_logging=bool(section.get("enableConsole", True)),
        max_file_size=section.get("maxFileSize", "10MB"),
        backup_count=int(section.get("maxFiles", 5))
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a specific component.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def _configure_component_loggers() -> None:
    """Quiet third-party loggers."""
    component_levels = {
        'watchdog': 'WARNING',
        'asyncio': 'WARNING',
    }

    for component, level in component_levels.items():
        logging.getLogger(component).setLevel(level)


def get_logging_config() -> Dict[str, Any]:
    """Describe the root logger's current level and handlers."""
    root_logger = logging.getLogger()
    return {
        'level': logging.getLevelName(root_logger.level),
        'handlers': [
            {
                'type': handler.__class__.__name__,
                'level': logging.getLevelName(handler.level),
                'formatter': handler.formatter.__class__.__name__ if handler.formatter else None,
            }
            for handler in root_logger.handlers
        ]
    }

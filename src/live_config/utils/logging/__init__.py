"""
Logging utilities.

Root logger setup for processes embedding the engine, driven either by
arguments or by the ``logging`` section of a configuration tree.
"""

from .formatters import CustomFormatter, JSONFormatter
from .setup import (
    get_logger,
    get_logging_config,
    parse_size,
    resolve_level,
    setup_logging,
    setup_logging_from_config,
)

__all__ = [
    'CustomFormatter',
    'JSONFormatter',
    'get_logger',
    'get_logging_config',
    'parse_size',
    'resolve_level',
    'setup_logging',
    'setup_logging_from_config',
]

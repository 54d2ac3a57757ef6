"""
Utilities package.

Hook execution with timeouts and logging setup.
"""

from .hooks import HookRunner, run_awaitable
from .logging import get_logger, setup_logging, setup_logging_from_config

__all__ = [
    'HookRunner',
    'run_awaitable',
    'get_logger',
    'setup_logging',
    'setup_logging_from_config',
]

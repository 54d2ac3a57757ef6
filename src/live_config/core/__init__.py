"""
Core infrastructure for the live configuration engine.

Contains the exception hierarchy and the event system shared by every
engine component.
"""

from .exceptions import *
from .events import *

from .exceptions import __all__ as _exception_names
from .events import __all__ as _event_names

__all__ = list(_exception_names) + list(_event_names)

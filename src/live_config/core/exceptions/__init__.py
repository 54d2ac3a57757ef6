"""
Exception hierarchy for the live configuration engine.

Every error raised by the engine derives from ConfigEngineError and
carries a message, optional context and an optional cause for logging.
"""

from typing import Dict, Any, Optional, List
import traceback
import time


class ConfigEngineError(Exception):
    """Root exception for all configuration engine errors."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None,
                 cause: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.cause = cause
        self.timestamp = time.time()
        self.traceback_str = traceback.format_exc() if cause else None

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp,
            "traceback": self.traceback_str,
            "cause": str(self.cause) if self.cause else None
        }

    def __str__(self) -> str:
        base = f"{self.__class__.__name__}: {self.message}"
        if self.context:
            base += f" (Context: {self.context})"
        if self.cause:
            base += f" (Caused by: {self.cause})"
        return base


# Configuration-related errors
class ConfigurationError(ConfigEngineError):
    """Configuration-related issues."""
    pass


class ParseError(ConfigurationError):
    """The backing file could not be parsed into a configuration tree."""

    def __init__(self, message: str, path: Optional[str] = None,
                 line: Optional[int] = None, column: Optional[int] = None,
                 cause: Optional[Exception] = None):
        context = {}
        if path is not None:
            context["path"] = path
        if line is not None:
            context["line"] = line
            context["column"] = column
        super().__init__(message, context, cause)
        self.path = path
        self.line = line
        self.column = column


class ConfigValidationError(ConfigurationError):
    """A configuration tree violated its schema."""

    def __init__(self, message: str, errors: List[Any],
                 context: Optional[Dict[str, Any]] = None, cause: Optional[Exception] = None):
        super().__init__(message, context, cause)
        self.errors = list(errors)

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["errors"] = [str(error) for error in self.errors]
        return result


class TreeCycleError(ConfigurationError):
    """A configuration tree refers back to one of its own containers."""
    pass


class NotFoundError(ConfigurationError):
    """A backup, preset or other named resource does not exist."""
    pass


# Runtime errors
class BusyError(ConfigEngineError):
    """A mutation was attempted while another one was in flight."""
    pass


class PersistenceError(ConfigEngineError):
    """Writing the configuration to durable storage failed."""
    pass


class WatcherError(ConfigEngineError):
    """Non-fatal failure inside the file watcher."""
    pass


class HookTimeoutError(ConfigEngineError):
    """A listener or asynchronous predicate exceeded its time budget."""
    pass


__all__ = [
    "ConfigEngineError",
    "ConfigurationError",
    "ParseError",
    "ConfigValidationError",
    "TreeCycleError",
    "NotFoundError",
    "BusyError",
    "PersistenceError",
    "WatcherError",
    "HookTimeoutError",
]

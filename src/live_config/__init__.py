"""
live_config: live configuration engine.

Loads, schema-validates, caches, atomically mutates, hot-reloads and
rolls back a running process's configuration tree.
"""

from ._version import __version__


# Core imports - Public API (lazy loading)
def __getattr__(name: str):
    """Lazy import for public API components."""
    if name == "ConfigManager":
        from .config import ConfigManager
        return ConfigManager
    elif name == "EngineOptions":
        from .config import EngineOptions
        return EngineOptions
    elif name == "SchemaNode":
        from .config import SchemaNode
        return SchemaNode
    elif name == "ValidationError":
        from .config import ValidationError
        return ValidationError
    elif name == "UpdateResult":
        from .config import UpdateResult
        return UpdateResult
    elif name in ("EventType", "Event"):
        from .core import events
        return getattr(events, name)

    from .core import exceptions
    if name in exceptions.__all__:
        return getattr(exceptions, name)

    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


# Public API
__all__ = [
    "ConfigManager",
    "EngineOptions",
    "SchemaNode",
    "ValidationError",
    "UpdateResult",
    "EventType",
    "Event",

    # Exceptions
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

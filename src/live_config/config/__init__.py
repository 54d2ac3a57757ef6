"""
Configuration management engine.

Provides schema validation, a copy-on-write committed store, atomic file
persistence with environment overrides, a path cache, backup history, a
serialized update pipeline and a debounced file watcher.
"""

from .tree import (
    ConfigTree, ValueKind, ChangeEvent,
    kind_of, lookup, set_path, deep_merge, diff_trees, iter_leaves
)
from .schema import SchemaNode, object_schema
from .validation import SchemaValidator, ValidationError, validate, apply_defaults
from .defaults import DEFAULT_SCHEMA, DEFAULT_PRESETS, build_default_schema
from .store import ConfigStore, CommittedState
from .cache import PathCache, CacheEntry
from .backups import Backup, BackupHistory
from .persistence import ConfigPersistence, ConfigFormat
from .pipeline import UpdatePipeline, UpdateResult, PipelineState
from .watcher import ConfigFileWatcher
from .options import EngineOptions
from .manager import ConfigManager

__all__ = [
    # Engine
    "ConfigManager",
    "EngineOptions",

    # Tree model
    "ConfigTree",
    "ValueKind",
    "ChangeEvent",
    "kind_of",
    "lookup",
    "set_path",
    "deep_merge",
    "diff_trees",
    "iter_leaves",

    # Schema and validation
    "SchemaNode",
    "object_schema",
    "SchemaValidator",
    "ValidationError",
    "validate",
    "apply_defaults",
    "DEFAULT_SCHEMA",
    "DEFAULT_PRESETS",
    "build_default_schema",

    # Components
    "ConfigStore",
    "CommittedState",
    "PathCache",
    "CacheEntry",
    "Backup",
    "BackupHistory",
    "ConfigPersistence",
    "ConfigFormat",
    "UpdatePipeline",
    "UpdateResult",
    "PipelineState",
    "ConfigFileWatcher",
]

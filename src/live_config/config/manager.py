"""
Configuration manager with hot-reload, validation and rollback.

This module provides the public face of the engine: it wires the store,
persistence, cache, backup history, update pipeline and file watcher
together and exposes reads, mutations, subscriptions and inspection.
"""

import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from ..core.events import Event, EventBus, EventType
from ..core.exceptions import ConfigurationError, ConfigValidationError, NotFoundError
from ..utils.hooks import HookRunner
from .backups import Backup, BackupHistory
from .cache import PathCache
from .defaults import DEFAULT_PRESETS, build_default_schema
from .options import EngineOptions
from .persistence import ConfigPersistence
from .pipeline import UpdatePipeline, UpdateResult, Updates
from .schema import SchemaNode, object_schema
from .store import ConfigStore
from .tree import ChangeEvent, assert_acyclic, deep_merge, iter_leaves, normalize
from .validation import SchemaValidator, ValidationError
from .watcher import ConfigFileWatcher

logger = logging.getLogger(__name__)


class ConfigManager:
    """
    Live configuration engine.

    Loads the backing file (creating a defaulted one when allowed),
    overlays environment variables, validates against the schema and
    keeps the committed tree in sync with the file while the process
    runs. Construction performs the initial load; use ``close()`` or a
    ``with`` block to stop the watcher and release worker threads.
    """

    def __init__(self,
                 config_path: Union[str, Path],
                 schema: Optional[Union[SchemaNode, Mapping[str, Any]]] = None,
                 options: Optional[Union[EngineOptions, Mapping[str, Any]]] = None,
                 event_bus: Optional[EventBus] = None,
                 environ: Optional[Mapping[str, str]] = None):
        """
        Initialize configuration manager.

        Args:
            config_path: Path of the JSON backing file
            schema: Root SchemaNode, or a mapping of section descriptors
                (defaults to the server-manager schema)
            options: Engine options or a mapping of them
            event_bus: Event bus for configuration notifications
            environ: Environment used for overrides (defaults to os.environ)

        Raises:
            ParseError: If the backing file is malformed
            ConfigValidationError: If the initial tree fails strict validation
        """
        if isinstance(options, EngineOptions):
            self.options = options
        else:
            self.options = EngineOptions.from_dict(options or {})

        self.config_path = Path(config_path)
        if schema is None:
            self.schema = build_default_schema()
            self.presets = {**DEFAULT_PRESETS, **self.options.presets}
        else:
            self.schema = schema if isinstance(schema, SchemaNode) else object_schema(schema)
            self.presets = dict(self.options.presets)

        self.hook_runner = HookRunner(timeout=self.options.hook_timeout)
        self.event_bus = event_bus or EventBus(hook_runner=self.hook_runner)
        self._owns_bus = event_bus is None
        self.validator = SchemaValidator(hook_runner=self.hook_runner, hook_timeout=self.options.hook_timeout)

        self.store = ConfigStore()
        self.cache = PathCache(self.store, ttl=self.options.cache_ttl, enabled=self.options.enable_cache)
        self.backups = BackupHistory(max_backups=self.options.max_backups)
        self.persistence = ConfigPersistence(
            self.config_path,
            self.schema,
            validator=self.validator,
            env_prefix=self.options.env_prefix,
            create_if_missing=self.options.create_if_missing,
            environ=environ
        )
        self.pipeline = UpdatePipeline(
            self.store,
            self.schema,
            self.validator,
            self.persistence,
            self.backups,
            self.cache,
            self.event_bus,
            strict=self.options.strict_validation,
            persist=self.options.persist_updates,
            history_size=self.options.history_size
        )
        self.watcher: Optional[ConfigFileWatcher] = None

        self._closed = False
        self._load_time = 0.0
        self._last_reload: Optional[datetime] = None

        try:
            self._initialize()
        except Exception:
            self.close()
            raise

    def _initialize(self):
        started = time.perf_counter()
        tree = self.persistence.load()
        result = self.pipeline.initialize(tree)
        self._load_time = time.perf_counter() - started

        if not result.committed:
            raise ConfigValidationError(
                f"Configuration validation failed with {len(result.errors)} error(s)",
                errors=result.errors,
                context={"path": str(self.config_path)}
            )
        for error in result.errors:
            logger.warning(f"Configuration issue: {error}")

        if self.options.configure_logging:
            from ..utils.logging import setup_logging_from_config
            setup_logging_from_config(self.get("logging", {}))

        self.event_bus.emit(EventType.INITIALIZED, "manager",
                            path=str(self.config_path),
                            version=self.store.version,
                            valid=not result.errors)

        if self.options.watch_file:
            self.watcher = ConfigFileWatcher(
                self.persistence,
                self._reload_from_file,
                event_bus=self.event_bus,
                debounce_interval=self.options.debounce_interval,
                use_polling=self.options.use_polling,
                poll_interval=self.options.poll_interval
            )
            self.watcher.start()

        logger.info(f"ConfigManager initialized with {self.config_path} ({self._load_time * 1000:.1f}ms)")

    # Reads

    def get(self, path: str, fallback: Any = None) -> Any:
        """
        Get configuration value by dot path.

        Args:
            path: Dot-separated path (e.g. ``minecraft.port``)
            fallback: Value returned when any segment is missing

        Returns:
            The value (containers are copies) or fallback
        """
        return self.cache.get(path, fallback)

    def has(self, path: str) -> bool:
        """Check whether a path exists, even if its value is falsy."""
        return self.store.has(path)

    def get_all(self) -> Mapping[str, Any]:
        """Read-only snapshot of the whole committed tree."""
        return self.store.get_all()

    # Mutations

    def update_config(self, path: str, value: Any, persist: Optional[bool] = None,
                      strict: Optional[bool] = None) -> UpdateResult:
        """
        Set one configuration value.

        Args:
            path: Dot-separated path to set
            value: New value
            persist: Write to the backing file (defaults to options)
            strict: Reject on validation errors (defaults to options)

        Returns:
            UpdateResult with validation errors, changes and persistence status

        Raises:
            BusyError: If another mutation is in flight
        """
        return self.pipeline.update(path, value, persist=persist, strict=strict)

    def update_multiple(self, updates: Updates, persist: Optional[bool] = None,
                        strict: Optional[bool] = None) -> UpdateResult:
        """Apply several updates atomically; all commit or none do."""
        return self.pipeline.update_many(updates, persist=persist, strict=strict)

    def restore(self, index: int = 0, persist: Optional[bool] = None) -> UpdateResult:
        """
        Roll back to a backup.

        The backup tree gets the current schema defaults and must pass
        strict validation. The tree being replaced is itself backed up.

        Raises:
            NotFoundError: If no backup exists at index
        """
        result = self.pipeline.mutate(lambda current: self.backups.get(index).tree,
                                      persist=persist, strict=True, source="restore")
        if result.committed:
            logger.info(f"Configuration restored from backup {index}")
            self.event_bus.emit(EventType.RESTORED, "restore", index=index, version=result.version)
        return result

    def apply_preset(self, name: str, persist: Optional[bool] = None,
                     strict: Optional[bool] = None) -> UpdateResult:
        """
        Deep-merge a named preset into the configuration.

        Raises:
            NotFoundError: If the preset does not exist
        """
        if name not in self.presets:
            raise NotFoundError(f"Unknown preset: {name}",
                                context={"available": sorted(self.presets)})
        preset = self.presets[name]
        assert_acyclic(preset)
        overlay = normalize(preset)

        result = self.pipeline.mutate(lambda current: deep_merge(current, overlay),
                                      persist=persist, strict=strict, source="preset")
        if result.committed:
            logger.info(f"Applied configuration preset: {name}")
            self.event_bus.emit(EventType.PRESET_APPLIED, "preset", name=name, version=result.version)
        return result

    def reload(self) -> UpdateResult:
        """
        Re-read the backing file and commit it if it differs.

        A missing file is an error here; the live configuration is never
        reset to defaults by a reload.

        Raises:
            BusyError: If another mutation is in flight
            ParseError: If the file is malformed
            ConfigurationError: If the file is missing
        """
        return self._reload("reload")

    def _reload(self, source: str) -> UpdateResult:
        try:
            result = self.pipeline.mutate(lambda current: self.persistence.load(create_if_missing=False),
                                          persist=False, source=source, skip_if_unchanged=True)
        except ConfigurationError as e:
            logger.error(f"Configuration reload failed: {e.message}")
            self.event_bus.emit(EventType.RELOAD_FAILED, source, error=e.message, errors=[])
            raise

        if result.committed:
            self._last_reload = datetime.now(timezone.utc)
            self.event_bus.emit(EventType.RELOADED, source,
                                version=result.version, count=len(result.changes))
        elif not result.unchanged:
            logger.error(f"Reloaded configuration rejected; keeping version {self.store.version}")
            self.event_bus.emit(EventType.RELOAD_FAILED, source,
                                error="validation failed",
                                errors=[error.to_dict() for error in result.errors])
        return result

    def _reload_from_file(self):
        try:
            self._reload("watcher")
        except ConfigurationError as e:
            # Already logged and published as config.reload_failed
            logger.debug(f"Watcher reload abandoned: {e.message}")

    # Subscriptions

    def subscribe(self, event: Union[str, EventType], callback: Callable[[Event], Any]) -> None:
        """Register a callback for an event name such as ``config.changed``."""
        self.event_bus.subscribe(event, callback)

    def unsubscribe(self, event: Union[str, EventType], callback: Callable[[Event], Any]) -> None:
        self.event_bus.unsubscribe(event, callback)

    # Inspection

    def get_validation_errors(self) -> List[ValidationError]:
        """Violations present in the committed tree (permissive commits only)."""
        return list(self.pipeline.last_errors)

    def is_valid(self) -> bool:
        return not self.pipeline.last_errors

    def get_backups(self) -> List[Backup]:
        """Backups, most recent first."""
        return self.backups.entries()

    def get_change_history(self, limit: Optional[int] = None) -> List[ChangeEvent]:
        return self.pipeline.get_change_history(limit)

    @property
    def version(self) -> int:
        return self.store.version

    @property
    def watching(self) -> bool:
        return self.watcher is not None and self.watcher.running

    def get_metrics(self) -> Dict[str, Any]:
        """Get engine metrics."""
        metrics = self.pipeline.metrics
        return {
            "load_time": self._load_time,
            "validation_time": metrics["validation_time"],
            "update_count": metrics["update_count"],
            "error_count": metrics["error_count"],
            "busy_rejections": metrics["busy_rejections"],
            "last_update_duration": metrics["last_duration"],
            "version": self.store.version,
            "backup_count": len(self.backups),
            "cache": self.cache.get_stats(),
            "events": self.event_bus.get_stats(),
            "watching": self.watching,
            "watcher": dict(self.watcher.stats) if self.watcher else None,
            "last_reload": self._last_reload.isoformat() if self._last_reload else None,
        }

    # Export

    def export_config(self, format: str = "json") -> str:
        """
        Export the committed configuration.

        Args:
            format: ``json``, ``env``, ``text``, ``yaml`` or ``summary``

        Returns:
            Rendered configuration text
        """
        if str(format).lower() == "summary":
            return json.dumps(self._summary(), indent=2, default=str) + "\n"
        return self.persistence.export(self.store.current_tree(), format)

    def _summary(self) -> Dict[str, Any]:
        tree = self.store.current_tree()
        sections = {}
        for key, value in tree.items():
            if isinstance(value, dict):
                sections[key] = {"fields": sum(1 for _ in iter_leaves(value))}
            else:
                sections[key] = {"fields": 1}

        return {
            "path": str(self.config_path),
            "version": self.store.version,
            "valid": self.is_valid(),
            "validation_errors": [str(error) for error in self.pipeline.last_errors],
            "sections": sections,
            "backups": [
                {"timestamp": backup.timestamp.isoformat(), "reason": backup.reason}
                for backup in self.backups.entries()
            ],
            "presets": sorted(self.presets),
            "watching": self.watching,
            "environment_overrides": sorted(
                path for path, _ in iter_leaves(self.persistence.last_overlay)
            ),
        }

    # Lifecycle

    def close(self):
        """Stop watching and release worker threads; safe to call twice."""
        if self._closed:
            return
        self._closed = True
        if self.watcher is not None:
            self.watcher.stop()
        self.cache.clear()
        if self._owns_bus:
            self.event_bus.close()
        self.hook_runner.shutdown()
        logger.info(f"ConfigManager closed for {self.config_path}")

    def __enter__(self) -> "ConfigManager":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

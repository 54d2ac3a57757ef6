"""
Update pipeline for configuration mutations.

Every mutation (single update, batch update, reload, restore, preset)
runs the same sequence under one mutual-exclusion lock:

    IDLE -> VALIDATING -> BACKING_UP -> APPLYING -> PERSISTING -> NOTIFYING -> IDLE

A run that fails validation in strict mode ends in FAILED and returns to
IDLE without touching the committed tree, the cache or the backups. A
second mutation attempted while one is in flight is rejected with
BusyError instead of being queued.
"""

import logging
import threading
import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

from ..core.events import EventBus, EventType
from ..core.exceptions import BusyError, PersistenceError
from .backups import BackupHistory
from .cache import PathCache
from .persistence import ConfigPersistence
from .schema import SchemaNode
from .store import ConfigStore
from .tree import ChangeEvent, ConfigTree, assert_acyclic, diff_trees, normalize, set_path
from .validation import SchemaValidator, ValidationError

logger = logging.getLogger(__name__)

Updates = Union[Mapping[str, Any], Iterable[Tuple[str, Any]]]


class PipelineState(Enum):
    """Stages of a pipeline run."""
    IDLE = "idle"
    VALIDATING = "validating"
    BACKING_UP = "backing_up"
    APPLYING = "applying"
    PERSISTING = "persisting"
    NOTIFYING = "notifying"
    FAILED = "failed"


@dataclass
class UpdateResult:
    """
    Outcome of a pipeline run.

    ``committed`` and ``persisted`` are independent facts: a commit that
    could not be written to disk stays committed in memory and carries
    the write failure in ``persist_error``.
    """
    committed: bool
    errors: List[ValidationError] = field(default_factory=list)
    changes: List[ChangeEvent] = field(default_factory=list)
    persist_requested: bool = False
    persisted: bool = False
    persist_error: Optional[PersistenceError] = None
    unchanged: bool = False
    source: str = "update"
    version: Optional[int] = None
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        """Committed, and durable if a write was requested."""
        return self.committed and (self.persisted or not self.persist_requested)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "committed": self.committed,
            "persisted": self.persisted,
            "persist_requested": self.persist_requested,
            "persist_error": str(self.persist_error) if self.persist_error else None,
            "errors": [error.to_dict() for error in self.errors],
            "changes": [change.to_dict() for change in self.changes],
            "unchanged": self.unchanged,
            "source": self.source,
            "version": self.version,
            "duration": self.duration,
        }


class UpdatePipeline:
    """Serializes and executes configuration mutations."""

    def __init__(self,
                 store: ConfigStore,
                 schema: SchemaNode,
                 validator: SchemaValidator,
                 persistence: ConfigPersistence,
                 backups: BackupHistory,
                 cache: PathCache,
                 event_bus: EventBus,
                 strict: bool = True,
                 persist: bool = True,
                 history_size: int = 200):
        self.store = store
        self.schema = schema
        self.validator = validator
        self.persistence = persistence
        self.backups = backups
        self.cache = cache
        self.event_bus = event_bus
        self.strict = strict
        self.persist = persist

        self.state = PipelineState.IDLE
        self.last_errors: List[ValidationError] = []
        self._lock = threading.Lock()
        self._history: deque = deque(maxlen=history_size)
        self.metrics = {
            "update_count": 0,
            "error_count": 0,
            "busy_rejections": 0,
            "validation_time": 0.0,
            "last_duration": 0.0,
        }

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @contextmanager
    def exclusive(self, operation: str) -> Iterator[None]:
        """
        Hold the mutation lock or fail fast.

        Raises:
            BusyError: If another mutation is in flight
        """
        if not self._lock.acquire(blocking=False):
            self.metrics["busy_rejections"] += 1
            logger.info(f"Configuration {operation} rejected: update already in progress")
            raise BusyError(
                "Configuration update already in progress",
                context={"operation": operation, "state": self.state.value}
            )
        try:
            yield
        finally:
            self.state = PipelineState.IDLE
            self._lock.release()

    def initialize(self, tree: ConfigTree, strict: Optional[bool] = None) -> UpdateResult:
        """
        Validate and commit the initial tree.

        No backup is taken and nothing is persisted or announced as a
        change; this is the creation of the tree, not a mutation of it.
        """
        with self.exclusive("initialize"):
            candidate, errors = self._validate(tree)
            strict = self.strict if strict is None else strict
            if errors and strict:
                self.state = PipelineState.FAILED
                self.metrics["error_count"] += 1
                return UpdateResult(committed=False, errors=errors, source="initialize")

            self.state = PipelineState.APPLYING
            state = self.store.commit(candidate)
            self.last_errors = errors
            self.cache.clear()
            return UpdateResult(committed=True, errors=errors, source="initialize",
                                version=state.version)

    def update(self, path: str, value: Any, persist: Optional[bool] = None,
               strict: Optional[bool] = None, source: str = "update") -> UpdateResult:
        """
        Set one path to a value.

        Args:
            path: Dot-separated path to set
            value: New value (copied; the caller keeps ownership)
            persist: Write the result to disk (defaults to pipeline setting)
            strict: Reject on violations (defaults to pipeline setting)
            source: Label carried by events and the backup

        Returns:
            UpdateResult describing the run
        """
        prepared = self._prepare_value(value)
        return self.mutate(lambda current: set_path(current, path, prepared),
                           persist=persist, strict=strict, source=source)

    def update_many(self, updates: Updates, persist: Optional[bool] = None,
                    strict: Optional[bool] = None, source: str = "batch") -> UpdateResult:
        """Apply several path updates as one all-or-nothing commit."""
        items = list(updates.items()) if isinstance(updates, Mapping) else list(updates)
        prepared = [(path, self._prepare_value(value)) for path, value in items]

        def build(current: ConfigTree) -> ConfigTree:
            candidate = current
            for path, value in prepared:
                candidate = set_path(candidate, path, value)
            return candidate

        return self.mutate(build, persist=persist, strict=strict, source=source)

    def mutate(self, build: Callable[[ConfigTree], ConfigTree], persist: Optional[bool] = None,
               strict: Optional[bool] = None, source: str = "update",
               skip_if_unchanged: bool = False) -> UpdateResult:
        """
        Run the pipeline for a candidate built from the committed tree.

        ``build`` is called with the lock held and must return a new tree
        without modifying the one it is given. Exceptions from ``build``
        propagate and leave the committed state untouched.
        """
        with self.exclusive(source):
            try:
                candidate = build(self.store.current_tree())
                return self._run(candidate, persist, strict, source, skip_if_unchanged)
            except Exception:
                self.state = PipelineState.FAILED
                self.metrics["error_count"] += 1
                raise

    def get_change_history(self, limit: Optional[int] = None) -> List[ChangeEvent]:
        history = list(self._history)
        if limit:
            history = history[-limit:]
        return [change.detached() for change in history]

    def _prepare_value(self, value: Any) -> Any:
        assert_acyclic(value)
        return normalize(value)

    def _validate(self, candidate: ConfigTree) -> Tuple[ConfigTree, List[ValidationError]]:
        self.state = PipelineState.VALIDATING
        started = time.perf_counter()
        candidate = self.validator.apply_defaults(candidate, self.schema)
        errors = self.validator.validate(candidate, self.schema)
        self.metrics["validation_time"] = time.perf_counter() - started
        return candidate, errors

    def _run(self, candidate: ConfigTree, persist: Optional[bool], strict: Optional[bool],
             source: str, skip_if_unchanged: bool) -> UpdateResult:
        started = time.perf_counter()
        strict = self.strict if strict is None else strict
        persist = self.persist if persist is None else persist
        old_tree = self.store.current_tree()

        candidate, errors = self._validate(candidate)
        if errors:
            if strict:
                self.state = PipelineState.FAILED
                self.metrics["error_count"] += 1
                logger.warning(f"Configuration {source} rejected with {len(errors)} validation error(s): "
                               f"{'; '.join(str(error) for error in errors)}")
                self.event_bus.emit(EventType.VALIDATION_FAILED, source,
                                    errors=[error.to_dict() for error in errors])
                return UpdateResult(committed=False, errors=errors, source=source,
                                    duration=time.perf_counter() - started)
            logger.warning(f"Committing {source} with {len(errors)} validation issue(s) (permissive mode)")

        changes = [change.detached() for change in diff_trees(old_tree, candidate)]
        if skip_if_unchanged and not changes:
            logger.debug(f"Configuration {source} produced no changes; nothing to commit")
            return UpdateResult(committed=False, errors=errors, unchanged=True, source=source,
                                duration=time.perf_counter() - started)

        self.state = PipelineState.BACKING_UP
        backup = self.backups.push(old_tree, reason=source)

        self.state = PipelineState.APPLYING
        state = self.store.commit(candidate)
        self.last_errors = errors

        persist_error: Optional[PersistenceError] = None
        persisted = False
        if persist:
            self.state = PipelineState.PERSISTING
            try:
                self.persistence.save(candidate)
                persisted = True
            except PersistenceError as e:
                persist_error = e
                self.metrics["error_count"] += 1
                logger.error(f"Configuration committed in memory but not saved: {e.message}")

        self.state = PipelineState.NOTIFYING
        self.cache.clear()
        self._history.extend(changes)
        self.metrics["update_count"] += 1

        self.event_bus.emit(EventType.BACKED_UP, source,
                            timestamp=backup.timestamp.isoformat(), count=len(self.backups))
        for change in changes:
            self.event_bus.emit(EventType.CONFIG_CHANGED, source, version=state.version, **change.to_dict())
        self.event_bus.emit(EventType.CONFIG_UPDATED, source,
                            version=state.version,
                            count=len(changes),
                            paths=[change.path for change in changes],
                            changes=[change.to_dict() for change in changes],
                            persisted=persisted)
        if persist_error is not None:
            self.event_bus.emit(EventType.PERSIST_FAILED, source,
                                version=state.version, error=persist_error.message)

        duration = time.perf_counter() - started
        self.metrics["last_duration"] = duration
        logger.info(f"Configuration {source} committed (version {state.version}, "
                    f"{len(changes)} change(s), {duration * 1000:.1f}ms)")

        return UpdateResult(
            committed=True,
            errors=errors,
            changes=changes,
            persist_requested=persist,
            persisted=persisted,
            persist_error=persist_error,
            source=source,
            version=state.version,
            duration=duration
        )

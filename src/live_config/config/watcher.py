"""
Backing file watcher.

Observes the directory holding the backing file with watchdog, collapses
bursts of filesystem events into one reload after a quiet period, and
skips reloads when the file content hash matches the last content the
engine read or wrote itself.
"""

import logging
import os
import threading
from pathlib import Path
from typing import Any, Callable, Optional

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEventHandler,
)
from watchdog.observers import Observer
from watchdog.observers.polling import PollingObserver

from ..core.events import EventBus, EventType
from ..core.exceptions import BusyError, WatcherError
from .persistence import ConfigPersistence

logger = logging.getLogger(__name__)

_RELEVANT_EVENTS = (EVENT_TYPE_CREATED, EVENT_TYPE_MODIFIED, EVENT_TYPE_MOVED)


def _same_file(candidate: Any, target: str) -> bool:
    if not candidate:
        return False
    if isinstance(candidate, bytes):
        candidate = os.fsdecode(candidate)
    return os.path.normcase(os.path.abspath(candidate)) == target


class _BackingFileHandler(FileSystemEventHandler):
    """Forwards events that touch the backing file to the watcher."""

    def __init__(self, watcher: "ConfigFileWatcher"):
        super().__init__()
        self.watcher = watcher

    def on_any_event(self, event):
        if event.is_directory or event.event_type not in _RELEVANT_EVENTS:
            return
        target = self.watcher.target
        # Editors that save via rename report the backing file as the destination
        if _same_file(event.src_path, target) or _same_file(getattr(event, "dest_path", None), target):
            self.watcher.notify()


class ConfigFileWatcher:
    """Debounced reload trigger for the backing file."""

    def __init__(self,
                 persistence: ConfigPersistence,
                 reload_callback: Callable[[], Any],
                 event_bus: Optional[EventBus] = None,
                 debounce_interval: float = 0.25,
                 use_polling: bool = False,
                 poll_interval: float = 1.0):
        """
        Initialize the watcher.

        Args:
            persistence: Persistence layer owning the backing file
            reload_callback: Called once per settled burst of changes
            event_bus: Bus receiving watcher lifecycle and error events
            debounce_interval: Quiet period in seconds before reloading
            use_polling: Use stat polling instead of native notifications
            poll_interval: Seconds between polls when polling
        """
        self.persistence = persistence
        self.reload_callback = reload_callback
        self.event_bus = event_bus
        self.debounce_interval = debounce_interval
        self.use_polling = use_polling
        self.poll_interval = poll_interval

        path = Path(persistence.config_path).resolve()
        self.target = os.path.normcase(str(path))
        self.directory = path.parent

        self._observer = None
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        self._running = False
        self.stats = {
            "events": 0,
            "reloads": 0,
            "skipped": 0,
            "retries": 0,
            "errors": 0,
        }

    @property
    def running(self) -> bool:
        return self._running

    def start(self):
        """Start observing the backing file's directory."""
        with self._lock:
            if self._running:
                return
            observer = PollingObserver(timeout=self.poll_interval) if self.use_polling else Observer()
            observer.schedule(_BackingFileHandler(self), str(self.directory), recursive=False)
            observer.start()
            self._observer = observer
            self._running = True

        mode = "polling" if self.use_polling else "native"
        logger.info(f"Watching configuration file {self.target} ({mode})")
        self._emit(EventType.WATCHER_STARTED, path=self.target, polling=self.use_polling)

    def stop(self, timeout: float = 5.0):
        """Stop observing; safe to call more than once."""
        with self._lock:
            if not self._running:
                return
            self._running = False
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            observer, self._observer = self._observer, None

        observer.stop()
        if observer is not threading.current_thread():
            observer.join(timeout)
        logger.info(f"Stopped watching configuration file {self.target}")
        self._emit(EventType.WATCHER_STOPPED, path=self.target)

    def notify(self):
        """Record a change and (re)start the debounce timer."""
        with self._lock:
            if not self._running:
                return
            self.stats["events"] += 1
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.debounce_interval, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def _fire(self):
        with self._lock:
            self._timer = None
            if not self._running:
                return

        try:
            digest = self.persistence.file_digest()
            if digest is None:
                logger.debug(f"Configuration file {self.target} missing; waiting for it to reappear")
                return
            if digest == self.persistence.last_digest:
                self.stats["skipped"] += 1
                logger.debug("Configuration file content unchanged; reload skipped")
                return

            self.stats["reloads"] += 1
            logger.info(f"Configuration file changed: {self.target}")
            self.reload_callback()
        except BusyError:
            self.stats["retries"] += 1
            logger.debug("Update in progress; reload rescheduled")
            self.notify()
        except Exception as e:
            self.stats["errors"] += 1
            error = WatcherError(f"Reload after file change failed: {e}",
                                 context={"path": self.target}, cause=e)
            logger.error(str(error))
            self._emit(EventType.WATCHER_ERROR, path=self.target, error=str(e))

    def _emit(self, event_type: EventType, **data: Any):
        if self.event_bus is not None:
            self.event_bus.emit(event_type, "watcher", **data)

"""
Global pytest configuration and fixtures.

Shared fixtures for engine tests: temporary directories, a fully
defaulted configuration tree and a backing file holding it.
"""

import json
import logging
import shutil
import sys
import tempfile
import threading
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from live_config.config.defaults import build_default_schema
from live_config.config.validation import apply_defaults


# Configure logging for tests
logging.getLogger().setLevel(logging.CRITICAL)


class EventRecorder:
    """Callable subscriber that keeps every event it receives."""

    def __init__(self):
        self.events = []
        self._lock = threading.Lock()

    def __call__(self, event):
        with self._lock:
            self.events.append(event)

    @property
    def names(self):
        with self._lock:
            return [event.name for event in self.events]

    def of(self, name):
        with self._lock:
            return [event for event in self.events if event.name == name]


@pytest.fixture
def temp_dir():
    """Create temporary directory for test data."""
    directory = tempfile.mkdtemp(prefix="live_config_test_")
    yield Path(directory)
    shutil.rmtree(directory, ignore_errors=True)


@pytest.fixture
def default_tree():
    """Fully defaulted tree for the default schema."""
    return apply_defaults({}, build_default_schema())


@pytest.fixture
def config_file(temp_dir, default_tree):
    """Backing file holding the default tree."""
    path = temp_dir / "config.json"
    path.write_text(json.dumps(default_tree, indent=2), encoding="utf-8")
    return path


@pytest.fixture
def recorder():
    return EventRecorder()

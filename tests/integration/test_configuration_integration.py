"""
Configuration integration tests.

Exercises the engine end to end against a real backing file: hot reload
through the file watcher, rejection of invalid external edits, the
watcher ignoring the engine's own writes, and rollback.
"""

import json
import shutil
import tempfile
import time

import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from live_config.config.manager import ConfigManager
from live_config.config.tree import ChangeEvent
from live_config.config.validation import ValidationError
from live_config.core.events import EventBus, EventType
from live_config.core.exceptions import NotFoundError

pytestmark = pytest.mark.integration


def wait_for(predicate, timeout=5.0, interval=0.05):
    """Poll until predicate() is truthy or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return bool(predicate())


class TestHotReload:
    """Test file watching with a polling observer."""

    def setup_method(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.path = self.temp_dir / "config.json"
        self.event_bus = EventBus(hook_timeout=1.0)
        self.events = []
        for event_type in EventType:
            self.event_bus.subscribe(event_type, self.events.append)
        self.manager = self._create()

    def teardown_method(self):
        self.manager.close()
        self.event_bus.close()
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _create(self, debounce_interval=0.05):
        return ConfigManager(
            self.path,
            options={
                "watch_file": True,
                "use_polling": True,
                "poll_interval": 0.1,
                "debounce_interval": debounce_interval,
            },
            event_bus=self.event_bus,
            environ={}
        )

    def _names(self):
        return [event.name for event in list(self.events)]

    def _edit(self, section, key, value):
        tree = json.loads(self.path.read_text(encoding="utf-8"))
        tree[section][key] = value
        self.path.write_text(json.dumps(tree, indent=2), encoding="utf-8")

    def test_watcher_started(self):
        assert self.manager.watching
        assert "watcher.started" in self._names()

    def test_external_edit_is_reloaded(self):
        # Let the polling observer take its first snapshot
        time.sleep(0.3)
        self._edit("logging", "level", "debug")

        assert wait_for(lambda: self.manager.get("logging.level") == "debug")
        assert "config.reloaded" in self._names()
        changed = [event for event in list(self.events) if event.name == "config.changed"]
        assert changed[-1].data["path"] == "logging.level"
        assert changed[-1].data["old_value"] == "info"

    def test_own_writes_do_not_reload(self):
        time.sleep(0.3)
        result = self.manager.update_config("cloudflare.ttl", 120)
        assert result.persisted

        time.sleep(0.6)
        assert self.manager.watcher.stats["reloads"] == 0
        assert "config.reloaded" not in self._names()
        assert self.manager.get("cloudflare.ttl") == 120

    def test_invalid_edit_is_rejected(self):
        time.sleep(0.3)
        self._edit("minecraft", "port", 70000)

        assert wait_for(lambda: "config.reload_failed" in self._names())
        assert self.manager.get("minecraft.port") == 25565
        failed = [event for event in list(self.events) if event.name == "config.validation_failed"]
        assert failed[-1].data["errors"] == [{"path": "minecraft.port", "message": "above maximum (65535)"}]

        self._edit("minecraft", "port", 25570)
        assert wait_for(lambda: self.manager.get("minecraft.port") == 25570)
        assert self.manager.watching

    def test_malformed_edit_keeps_previous_tree(self):
        time.sleep(0.3)
        self.path.write_text("{ broken", encoding="utf-8")

        assert wait_for(lambda: "config.reload_failed" in self._names())
        assert self.manager.get("logging.level") == "info"
        assert self.manager.watching

    def test_burst_is_debounced(self):
        self.manager.close()
        self.manager = self._create(debounce_interval=0.4)
        time.sleep(0.3)

        for level in ["error", "warn", "debug"]:
            self._edit("logging", "level", level)
            time.sleep(0.03)

        assert wait_for(lambda: self.manager.get("logging.level") == "debug")
        time.sleep(0.6)
        assert self.manager.watcher.stats["reloads"] == 1

    def test_busy_pipeline_reschedules_reload(self):
        time.sleep(0.3)
        with self.manager.pipeline.exclusive("test"):
            self._edit("logging", "level", "warn")
            assert wait_for(lambda: self.manager.watcher.stats["retries"] > 0)
            assert self.manager.get("logging.level") == "info"

        assert wait_for(lambda: self.manager.get("logging.level") == "warn")

    def test_close_stops_watching(self):
        self.manager.close()

        assert not self.manager.watching
        assert "watcher.stopped" in self._names()
        self.manager.close()
        assert self._names().count("watcher.stopped") == 1

        self._edit("logging", "level", "debug")
        time.sleep(0.4)
        assert self.manager.get("logging.level") == "info"


class TestEndToEnd:
    """Scenarios across the whole engine without the watcher."""

    def setup_method(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.path = self.temp_dir / "config.json"
        self.manager = ConfigManager(self.path, options={"watch_file": False}, environ={})

    def teardown_method(self):
        self.manager.close()
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_invalid_port_is_rejected(self):
        events = []
        self.manager.subscribe("config.changed", events.append)

        result = self.manager.update_config("minecraft.port", 70000)

        assert result.errors == [ValidationError("minecraft.port", "above maximum (65535)")]
        assert self.manager.get("minecraft.port") == 25565
        assert events == []

    def test_ttl_change_event(self):
        events = []
        self.manager.subscribe("config.changed", events.append)

        self.manager.update_config("cloudflare.ttl", 120)

        assert len(events) == 1
        data = events[0].data
        assert ChangeEvent(data["path"], data["change_type"], data["old_value"], data["new_value"]) == \
            ChangeEvent("cloudflare.ttl", "modified", 60, 120)

    def test_rollback_and_restart(self):
        self.manager.update_config("cloudflare.ttl", 120)

        with pytest.raises(NotFoundError):
            self.manager.restore(1)

        self.manager.restore(0)
        self.manager.close()

        self.manager = ConfigManager(self.path, options={"watch_file": False}, environ={})
        assert self.manager.get("cloudflare.ttl") == 60
        assert len(self.manager.get_backups()) == 0

    def test_persisted_tree_survives_restart(self):
        self.manager.update_multiple({"logging.level": "warn", "minecraft.port": 25600})
        self.manager.close()

        self.manager = ConfigManager(self.path, options={"watch_file": False}, environ={})
        assert self.manager.get("logging.level") == "warn"
        assert self.manager.get("minecraft.port") == 25600

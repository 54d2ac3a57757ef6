"""
Unit tests for backup history.
"""

import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent.parent.parent / "src"))

from live_config.config.backups import BackupHistory
from live_config.core.exceptions import NotFoundError


class TestBackupHistory:
    """Test BackupHistory."""

    def setup_method(self):
        self.history = BackupHistory(max_backups=3)

    def test_most_recent_first(self):
        self.history.push({"v": 1})
        self.history.push({"v": 2})

        assert self.history.get(0).tree == {"v": 2}
        assert self.history.get(1).tree == {"v": 1}

    def test_bounded(self):
        for version in range(5):
            self.history.push({"v": version})

        assert len(self.history) == 3
        assert [backup.tree["v"] for backup in self.history.entries()] == [4, 3, 2]

    def test_out_of_range(self):
        self.history.push({"v": 1})
        with pytest.raises(NotFoundError):
            self.history.get(1)
        with pytest.raises(NotFoundError):
            self.history.get(-1)

    def test_reason_and_serialization(self):
        backup = self.history.push({"v": [1]}, reason="restore")
        data = backup.to_dict()

        assert data["reason"] == "restore"
        assert data["tree"] == {"v": [1]}
        assert "timestamp" in data

    def test_keeps_its_own_copy(self):
        tree = {"section": {"items": [1, 2]}}
        self.history.push(tree)
        tree["section"]["items"].append(3)

        assert self.history.get(0).tree == {"section": {"items": [1, 2]}}

    def test_returned_backups_are_copies(self):
        self.history.push({"section": {"items": [1, 2]}})

        self.history.get(0).tree["section"]["items"].append(3)
        self.history.entries()[0].tree["section"]["extra"] = True

        assert self.history.get(0).tree == {"section": {"items": [1, 2]}}

    def test_zero_capacity(self):
        history = BackupHistory(max_backups=0)
        history.push({"v": 1})
        assert len(history) == 0

    def test_negative_capacity_rejected(self):
        with pytest.raises(ValueError):
            BackupHistory(max_backups=-1)

    def test_clear(self):
        self.history.push({"v": 1})
        self.history.clear()
        assert self.history.entries() == []

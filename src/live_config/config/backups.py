"""
Bounded in-memory backup history.

A snapshot of the committed tree is pushed immediately before every
commit. The list is ordered most-recent-first and never grows past
``max_backups``.
"""

import threading
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, List

from ..core.exceptions import NotFoundError
from .tree import ConfigTree, detach

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Backup:
    """
    Snapshot of a committed tree taken before it was replaced.

    The history owns its own copy of the tree and hands out copies, so a
    caller editing a backup never reaches the committed configuration.
    """
    tree: ConfigTree
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    reason: str = "update"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "reason": self.reason,
            "tree": detach(self.tree),
        }


def _copy_of(backup: Backup) -> Backup:
    return replace(backup, tree=detach(backup.tree))


class BackupHistory:
    """Most-recent-first list of pre-commit snapshots."""

    def __init__(self, max_backups: int = 5):
        if max_backups < 0:
            raise ValueError("max_backups must be >= 0")
        self.max_backups = max_backups
        self._backups: List[Backup] = []
        self._lock = threading.Lock()

    def push(self, tree: ConfigTree, reason: str = "update") -> Backup:
        """Prepend a snapshot and evict the oldest beyond capacity."""
        backup = Backup(tree=detach(tree), reason=reason)
        with self._lock:
            self._backups.insert(0, backup)
            del self._backups[self.max_backups:]
            count = len(self._backups)
        logger.debug(f"Configuration backed up ({count}/{self.max_backups})")
        return _copy_of(backup)

    def get(self, index: int = 0) -> Backup:
        """
        Get a backup by position (0 is the most recent).

        Raises:
            NotFoundError: If index is out of range
        """
        with self._lock:
            if index < 0 or index >= len(self._backups):
                raise NotFoundError(
                    f"Backup index {index} not found",
                    context={"index": index, "available": len(self._backups)}
                )
            backup = self._backups[index]
        return _copy_of(backup)

    def entries(self) -> List[Backup]:
        with self._lock:
            backups = list(self._backups)
        return [_copy_of(backup) for backup in backups]

    def clear(self):
        with self._lock:
            self._backups.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._backups)

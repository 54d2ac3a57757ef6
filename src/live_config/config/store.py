"""
Committed configuration state.

The store publishes one immutable state object at a time. Readers grab
the current reference and work on it without locking; the update
pipeline is the only writer and replaces the reference in a single
assignment after a candidate tree has been fully built and validated.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from .tree import ConfigTree, detach, freeze, lookup

logger = logging.getLogger(__name__)

_ABSENT = object()


@dataclass(frozen=True)
class CommittedState:
    """A committed tree together with its read-only view."""
    tree: ConfigTree
    snapshot: Mapping[str, Any]
    version: int
    committed_at: float = field(default_factory=time.time)


class ConfigStore:
    """Holds the current committed configuration tree."""

    def __init__(self, tree: Optional[ConfigTree] = None):
        initial = tree or {}
        self._state = CommittedState(tree=initial, snapshot=freeze(initial), version=0)

    @property
    def version(self) -> int:
        return self._state.version

    @property
    def state(self) -> CommittedState:
        return self._state

    def current_tree(self) -> ConfigTree:
        """Return the committed tree itself; callers must not mutate it."""
        return self._state.tree

    def get(self, path: str, fallback: Any = None) -> Any:
        """
        Get configuration value by key.

        Args:
            path: Dot-separated configuration path
            fallback: Value returned when any segment is missing

        Returns:
            Configuration value (containers are returned as copies)
        """
        value = lookup(self._state.tree, path, _ABSENT)
        if value is _ABSENT:
            return fallback
        return detach(value)

    def has(self, path: str) -> bool:
        """Check if configuration path exists, whatever its value."""
        return lookup(self._state.tree, path, _ABSENT) is not _ABSENT

    def get_all(self) -> Mapping[str, Any]:
        """Get an immutable snapshot of the whole tree."""
        return self._state.snapshot

    def commit(self, tree: ConfigTree) -> CommittedState:
        """
        Publish a new committed tree.

        Only the update pipeline calls this, while holding its lock.
        """
        state = CommittedState(
            tree=tree,
            snapshot=freeze(tree),
            version=self._state.version + 1
        )
        self._state = state
        logger.debug(f"Committed configuration version {state.version}")
        return state


__all__ = ["ConfigStore", "CommittedState"]

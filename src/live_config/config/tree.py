"""
Configuration tree primitives.

A configuration tree is a nested dict of JSON-compatible values addressed
with dot-separated paths. Committed trees are never mutated in place:
every helper here that "changes" a tree returns a new one and shares the
untouched branches with the original.
"""

import copy
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Tuple

from ..core.exceptions import ConfigurationError, TreeCycleError

ConfigTree = Dict[str, Any]

_MISSING = object()


class ValueKind(Enum):
    """Tag for every value a configuration tree can hold."""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"
    NULL = "null"


def kind_of(value: Any) -> ValueKind:
    """
    Classify a tree value.

    Raises:
        ConfigurationError: If the value is not JSON-representable
    """
    if value is None:
        return ValueKind.NULL
    # bool is an int subclass, so it must be checked first
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, (int, float)):
        return ValueKind.NUMBER
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, (list, tuple)):
        return ValueKind.ARRAY
    if isinstance(value, Mapping):
        return ValueKind.OBJECT
    raise ConfigurationError(f"Unsupported configuration value type: {type(value).__name__}")


def is_object(value: Any) -> bool:
    return isinstance(value, Mapping)


def split_path(path: str) -> List[str]:
    """Split a dot path, rejecting empty segments."""
    if not isinstance(path, str) or not path:
        raise ConfigurationError(f"Invalid configuration path: {path!r}")
    keys = path.split('.')
    if any(not key for key in keys):
        raise ConfigurationError(f"Invalid configuration path: {path!r}")
    return keys


def join_path(prefix: str, key: str) -> str:
    return f"{prefix}.{key}" if prefix else key


def lookup(tree: Mapping[str, Any], path: str, default: Any = None) -> Any:
    """Walk a dot path; return default on any missing segment."""
    current: Any = tree
    for key in split_path(path):
        if not is_object(current) or key not in current:
            return default
        current = current[key]
    return current


def set_path(tree: Mapping[str, Any], path: str, value: Any) -> ConfigTree:
    """
    Return a copy of tree with path set to value.

    Only the dicts along the path are copied; intermediate segments that
    are missing or not objects are replaced with new dicts.
    """
    keys = split_path(path)
    root = dict(tree)
    current = root
    for key in keys[:-1]:
        child = current.get(key)
        child = dict(child) if is_object(child) else {}
        current[key] = child
        current = child
    current[keys[-1]] = value
    return root


def deep_merge(base: Mapping[str, Any], overlay: Mapping[str, Any]) -> ConfigTree:
    """Deep merge two trees; overlay wins on conflicts."""
    result = dict(base)

    for key, value in overlay.items():
        if key in result and is_object(result[key]) and is_object(value):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def assert_acyclic(value: Any, path: str = "") -> None:
    """
    Check that no container is reachable from itself.

    Raises:
        TreeCycleError: If a back-reference is found
    """
    _check_acyclic(value, path, set())


def _check_acyclic(value: Any, path: str, ancestors: set) -> None:
    if not isinstance(value, (Mapping, list, tuple)):
        return
    marker = id(value)
    if marker in ancestors:
        raise TreeCycleError(f"Configuration tree contains a cycle at '{path or '<root>'}'")
    ancestors.add(marker)
    if isinstance(value, Mapping):
        for key, child in value.items():
            _check_acyclic(child, join_path(path, str(key)), ancestors)
    else:
        for index, child in enumerate(value):
            _check_acyclic(child, f"{path}[{index}]", ancestors)
    ancestors.discard(marker)


def normalize(value: Any) -> Any:
    """Deep copy a value into plain dict/list containers."""
    if isinstance(value, Mapping):
        return {str(key): normalize(child) for key, child in value.items()}
    if isinstance(value, (list, tuple)):
        return [normalize(child) for child in value]
    kind_of(value)
    return value


def freeze(value: Any) -> Any:
    """Build a read-only view: mappings become proxies, lists tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({key: freeze(child) for key, child in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(child) for child in value)
    return value


def detach(value: Any) -> Any:
    """Copy containers so callers cannot reach committed state."""
    if isinstance(value, (dict, list)):
        return copy.deepcopy(value)
    return value


def iter_leaves(tree: Mapping[str, Any], prefix: str = "") -> Iterator[Tuple[str, Any]]:
    """Yield (path, value) for every leaf; empty objects count as leaves."""
    for key, value in tree.items():
        path = join_path(prefix, key)
        if is_object(value) and value:
            yield from iter_leaves(value, path)
        else:
            yield path, value


@dataclass(frozen=True)
class ChangeEvent:
    """A single leaf-level difference between two trees."""
    path: str
    change_type: str
    old_value: Any = None
    new_value: Any = None

    def detached(self) -> "ChangeEvent":
        """Copy with container values detached from any tree."""
        return ChangeEvent(self.path, self.change_type, detach(self.old_value), detach(self.new_value))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "change_type": self.change_type,
            "old_value": detach(self.old_value),
            "new_value": detach(self.new_value),
        }


def diff_trees(old: Mapping[str, Any], new: Mapping[str, Any], prefix: str = "") -> List[ChangeEvent]:
    """Find all leaf changes between two trees."""
    changes: List[ChangeEvent] = []

    for key in list(old.keys()) + [k for k in new.keys() if k not in old]:
        path = join_path(prefix, key)
        old_value = old.get(key, _MISSING)
        new_value = new.get(key, _MISSING)

        if old_value is _MISSING:
            changes.extend(_expand(path, new_value, "added"))
        elif new_value is _MISSING:
            changes.extend(_expand(path, old_value, "removed"))
        elif is_object(old_value) and is_object(new_value):
            changes.extend(diff_trees(old_value, new_value, path))
        elif old_value != new_value or type(old_value) is not type(new_value):
            changes.append(ChangeEvent(path, "modified", old_value, new_value))

    return changes


def _expand(path: str, value: Any, change_type: str) -> List[ChangeEvent]:
    if is_object(value) and value:
        leaves = iter_leaves(value, path)
    else:
        leaves = iter([(path, value)])

    if change_type == "added":
        return [ChangeEvent(leaf, "added", None, leaf_value) for leaf, leaf_value in leaves]
    return [ChangeEvent(leaf, "removed", leaf_value, None) for leaf, leaf_value in leaves]

"""
Unit tests for configuration tree primitives.
"""

import pytest
from types import MappingProxyType

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent.parent.parent / "src"))

from live_config.config.tree import (
    ChangeEvent,
    ValueKind,
    assert_acyclic,
    deep_merge,
    detach,
    diff_trees,
    freeze,
    iter_leaves,
    kind_of,
    lookup,
    normalize,
    set_path,
    split_path,
)
from live_config.core.exceptions import ConfigurationError, TreeCycleError


class TestValueKinds:
    """Test value classification."""

    def test_scalar_kinds(self):
        assert kind_of("x") is ValueKind.STRING
        assert kind_of(3) is ValueKind.NUMBER
        assert kind_of(2.5) is ValueKind.NUMBER
        assert kind_of(None) is ValueKind.NULL

    def test_bool_is_not_number(self):
        assert kind_of(True) is ValueKind.BOOLEAN
        assert kind_of(False) is ValueKind.BOOLEAN

    def test_containers(self):
        assert kind_of([1, 2]) is ValueKind.ARRAY
        assert kind_of({"a": 1}) is ValueKind.OBJECT

    def test_unsupported_type(self):
        with pytest.raises(ConfigurationError):
            kind_of(object())


class TestPaths:
    """Test dot-path helpers."""

    def setup_method(self):
        self.tree = {"a": {"b": {"c": 1}, "flag": False}, "list": [1, 2]}

    def test_split_path(self):
        assert split_path("a.b.c") == ["a", "b", "c"]

    @pytest.mark.parametrize("path", ["", "a..b", ".a", "a."])
    def test_split_path_rejects_empty_segments(self, path):
        with pytest.raises(ConfigurationError):
            split_path(path)

    def test_lookup(self):
        assert lookup(self.tree, "a.b.c") == 1
        assert lookup(self.tree, "a.flag") is False

    def test_lookup_missing_returns_default(self):
        assert lookup(self.tree, "a.missing") is None
        assert lookup(self.tree, "a.b.c.d", "fallback") == "fallback"
        assert lookup(self.tree, "list.0", "fallback") == "fallback"

    def test_set_path_copies_along_path(self):
        updated = set_path(self.tree, "a.b.c", 2)

        assert updated["a"]["b"]["c"] == 2
        assert self.tree["a"]["b"]["c"] == 1
        assert updated["list"] is self.tree["list"]

    def test_set_path_creates_intermediates(self):
        updated = set_path({}, "x.y.z", "v")
        assert updated == {"x": {"y": {"z": "v"}}}

    def test_set_path_replaces_scalar_intermediate(self):
        updated = set_path({"x": 5}, "x.y", 1)
        assert updated == {"x": {"y": 1}}


class TestMergeAndCopies:
    """Test merge, normalization and read-only views."""

    def test_deep_merge_overlay_wins(self):
        base = {"a": {"b": 1, "c": 2}, "d": 1}
        merged = deep_merge(base, {"a": {"b": 10}, "e": 5})

        assert merged == {"a": {"b": 10, "c": 2}, "d": 1, "e": 5}
        assert base["a"]["b"] == 1

    def test_normalize_converts_tuples(self):
        assert normalize({"a": (1, 2), "b": {"c": (3,)}}) == {"a": [1, 2], "b": {"c": [3]}}

    def test_normalize_rejects_unsupported_values(self):
        with pytest.raises(ConfigurationError):
            normalize({"a": {1, 2}})

    def test_freeze(self):
        frozen = freeze({"a": {"b": [1, 2]}})

        assert isinstance(frozen, MappingProxyType)
        assert frozen["a"]["b"] == (1, 2)
        with pytest.raises(TypeError):
            frozen["a"]["x"] = 1

    def test_detach_copies_containers(self):
        original = {"a": [1]}
        copy = detach(original)
        copy["a"].append(2)

        assert original == {"a": [1]}
        assert detach(5) == 5


class TestAcyclic:
    """Test cycle detection."""

    def test_acyclic_tree_passes(self):
        shared = [1, 2]
        assert_acyclic({"a": shared, "b": shared})

    def test_dict_cycle(self):
        tree = {"a": {}}
        tree["a"]["self"] = tree
        with pytest.raises(TreeCycleError):
            assert_acyclic(tree)

    def test_list_cycle(self):
        items = []
        items.append(items)
        with pytest.raises(TreeCycleError):
            assert_acyclic({"items": items})


class TestDiff:
    """Test tree diffing."""

    def test_modified_leaf(self):
        changes = diff_trees({"cloudflare": {"ttl": 60}}, {"cloudflare": {"ttl": 120}})
        assert changes == [ChangeEvent("cloudflare.ttl", "modified", 60, 120)]

    def test_added_subtree_expands_to_leaves(self):
        changes = diff_trees({}, {"a": {"b": 1, "c": 2}})
        assert changes == [
            ChangeEvent("a.b", "added", None, 1),
            ChangeEvent("a.c", "added", None, 2),
        ]

    def test_removed_leaf(self):
        changes = diff_trees({"a": 1, "b": 2}, {"a": 1})
        assert changes == [ChangeEvent("b", "removed", 2, None)]

    def test_type_change_is_modification(self):
        changes = diff_trees({"a": 1}, {"a": True})
        assert changes == [ChangeEvent("a", "modified", 1, True)]

    def test_no_changes(self):
        tree = {"a": {"b": [1, 2]}}
        assert diff_trees(tree, {"a": {"b": [1, 2]}}) == []

    def test_empty_object_is_a_leaf(self):
        assert list(iter_leaves({"a": {}, "b": {"c": 1}})) == [("a", {}), ("b.c", 1)]

    def test_change_event_to_dict(self):
        event = ChangeEvent("a", "modified", [1], [2])
        data = event.to_dict()

        assert data == {"path": "a", "change_type": "modified", "old_value": [1], "new_value": [2]}
        data["new_value"].append(3)
        assert event.new_value == [2]

"""
Schema validation for configuration trees.

Validation always walks the whole tree and returns every violation it
finds. A type mismatch stops the checks below that node only; siblings
are still validated. Default application is a separate, purely additive
pass.
"""

import copy
import inspect
import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from ..core.exceptions import ConfigurationError, HookTimeoutError
from ..utils.hooks import HookRunner, run_awaitable
from .schema import SchemaNode
from .tree import ConfigTree, ValueKind, is_object, join_path, kind_of

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationError:
    """A single schema violation."""
    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.path or '<root>'}: {self.message}"

    def to_dict(self) -> Dict[str, str]:
        return {"path": self.path, "message": self.message}


def _describe(value: Any) -> str:
    try:
        return kind_of(value).value
    except ConfigurationError:
        return type(value).__name__


class SchemaValidator:
    """
    Validates configuration trees against a SchemaNode tree.

    Custom predicates receive the field value and return True/None on
    success, False for a generic failure, or a string reason. Anything a
    predicate raises becomes a violation for that field. Predicates that
    return an awaitable are resolved with a bounded timeout.
    """

    def __init__(self, hook_runner: Optional[HookRunner] = None, hook_timeout: float = 5.0):
        self.hook_runner = hook_runner
        self.hook_timeout = hook_timeout

    def validate(self, tree: Any, schema: SchemaNode) -> List[ValidationError]:
        """
        Validate a tree against a schema.

        Args:
            tree: Candidate configuration tree
            schema: Root schema node

        Returns:
            Every violation found; empty when the tree is valid
        """
        errors: List[ValidationError] = []
        self._validate_value(tree, schema, "", errors)
        self._check_finite(tree, "", errors)
        return errors

    def _check_finite(self, value: Any, path: str, errors: List[ValidationError]) -> None:
        # The backing file has no representation for NaN or infinity
        if isinstance(value, float) and not math.isfinite(value):
            errors.append(ValidationError(path, "must be a finite number"))
        elif isinstance(value, Mapping):
            for key, child in value.items():
                self._check_finite(child, join_path(path, str(key)), errors)
        elif isinstance(value, (list, tuple)):
            for index, item in enumerate(value):
                self._check_finite(item, f"{path}[{index}]", errors)

    def _validate_value(self, value: Any, node: SchemaNode, path: str,
                        errors: List[ValidationError]) -> None:
        try:
            actual = kind_of(value)
        except ConfigurationError:
            errors.append(ValidationError(path, f"unsupported value type {type(value).__name__}"))
            return

        expected = node.kind
        if expected is None and node.properties:
            expected = ValueKind.OBJECT
        if expected is not None and actual is not expected:
            errors.append(ValidationError(path, f"expected {expected.value}, got {actual.value}"))
            return

        if node.enum is not None and value not in node.enum:
            allowed = ", ".join(str(choice) for choice in node.enum)
            errors.append(ValidationError(path, f"must be one of [{allowed}]"))

        if actual is ValueKind.NUMBER:
            if node.minimum is not None and value < node.minimum:
                errors.append(ValidationError(path, f"below minimum ({node.minimum})"))
            if node.maximum is not None and value > node.maximum:
                errors.append(ValidationError(path, f"above maximum ({node.maximum})"))

        if actual in (ValueKind.STRING, ValueKind.ARRAY):
            if node.min_length is not None and len(value) < node.min_length:
                errors.append(ValidationError(path, f"shorter than minimum length ({node.min_length})"))
            if node.max_length is not None and len(value) > node.max_length:
                errors.append(ValidationError(path, f"longer than maximum length ({node.max_length})"))

        if actual is ValueKind.STRING and node.pattern is not None:
            if not re.search(node.pattern, value):
                errors.append(ValidationError(path, f"does not match pattern {node.pattern}"))

        if actual is ValueKind.ARRAY and node.items is not None:
            for index, item in enumerate(value):
                self._validate_value(item, node.items, f"{path}[{index}]", errors)

        if actual is ValueKind.OBJECT:
            self._validate_object(value, node, path, errors)

        if node.validate is not None:
            self._run_predicate(value, node, path, errors)

    def _validate_object(self, obj: Mapping[str, Any], node: SchemaNode, path: str,
                         errors: List[ValidationError]) -> None:
        for key, child in node.properties.items():
            child_path = join_path(path, key)
            value = obj.get(key)

            if value is None:
                if child.required:
                    errors.append(ValidationError(child_path, "required field missing"))
                continue

            self._validate_value(value, child, child_path, errors)

        if not node.additional_properties:
            for key in obj:
                if key not in node.properties:
                    errors.append(ValidationError(join_path(path, key), "unexpected field"))

    def _run_predicate(self, value: Any, node: SchemaNode, path: str,
                       errors: List[ValidationError]) -> None:
        try:
            result = node.validate(value)
            if inspect.isawaitable(result):
                if self.hook_runner is not None:
                    result = self.hook_runner.resolve(result, timeout=self.hook_timeout)
                else:
                    result = run_awaitable(result, timeout=self.hook_timeout)
        except HookTimeoutError as e:
            errors.append(ValidationError(path, f"custom validation error: {e.message}"))
            return
        except Exception as e:
            logger.debug(f"Custom validator raised at {path}: {e}")
            errors.append(ValidationError(path, f"custom validation error: {e}"))
            return

        if result is True or result is None:
            return
        if result is False:
            errors.append(ValidationError(path, "custom validation failed"))
        elif isinstance(result, str):
            errors.append(ValidationError(path, f"custom validation failed: {result}"))
        elif isinstance(result, (list, tuple)):
            for reason in result:
                errors.append(ValidationError(path, f"custom validation failed: {reason}"))
        else:
            errors.append(ValidationError(path, "custom validation returned invalid result"))

    def apply_defaults(self, tree: Mapping[str, Any], schema: SchemaNode) -> ConfigTree:
        """
        Fill schema defaults wherever a key is absent.

        Returns a new tree; the input is not modified. Values that are
        present (including None) are never replaced. Absent nested objects
        are only created when they would receive at least one default.
        """
        return self._apply_object_defaults(tree, schema)

    def _apply_object_defaults(self, obj: Mapping[str, Any], node: SchemaNode) -> ConfigTree:
        result = dict(obj)

        for key, child in node.properties.items():
            if key not in result:
                if child.has_default:
                    result[key] = copy.deepcopy(child.default)
                elif child.is_object:
                    filled = self._apply_object_defaults({}, child)
                    if filled:
                        result[key] = filled
                    continue
                else:
                    continue

            if child.is_object and is_object(result[key]):
                result[key] = self._apply_object_defaults(result[key], child)

        return result


def validate(tree: Any, schema: SchemaNode) -> List[ValidationError]:
    """Validate with a throwaway validator."""
    return SchemaValidator().validate(tree, schema)


def apply_defaults(tree: Mapping[str, Any], schema: SchemaNode) -> ConfigTree:
    """Apply schema defaults with a throwaway validator."""
    return SchemaValidator().apply_defaults(tree, schema)

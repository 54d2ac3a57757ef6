"""
Declarative configuration schemas.

A schema is a tree of SchemaNode descriptors. The root node describes the
whole configuration tree and is normally an object node whose properties
describe the top-level sections.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from ..core.exceptions import ConfigurationError
from .tree import ValueKind

_KIND_NAMES = {kind.value for kind in ValueKind if kind is not ValueKind.NULL}

# Aliases accepted by SchemaNode.from_dict for the camelCase dialect.
_ALIASES = {
    "min": "minimum",
    "max": "maximum",
    "minLength": "min_length",
    "maxLength": "max_length",
    "minItems": "min_length",
    "maxItems": "max_length",
    "additionalProperties": "additional_properties",
}


@dataclass
class SchemaNode:
    """Per-field descriptor of a configuration tree."""

    type: Optional[str] = None
    required: bool = False
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    enum: Optional[List[Any]] = None
    pattern: Optional[str] = None
    items: Optional["SchemaNode"] = None
    properties: Dict[str, "SchemaNode"] = field(default_factory=dict)
    default: Any = None
    has_default: bool = False
    validate: Optional[Callable[[Any], Any]] = None
    additional_properties: bool = True
    description: str = ""

    def __post_init__(self):
        if self.type is not None and self.type not in _KIND_NAMES:
            raise ConfigurationError(f"Unknown schema type: {self.type}")
        if self.default is not None:
            self.has_default = True

    @property
    def kind(self) -> Optional[ValueKind]:
        return ValueKind(self.type) if self.type else None

    @property
    def is_object(self) -> bool:
        return self.type == ValueKind.OBJECT.value or bool(self.properties)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SchemaNode":
        """
        Build a schema node from its declarative dict form.

        Nested ``properties`` and ``items`` are converted recursively;
        camelCase bound names (``min``, ``maxLength`` ...) are accepted.
        An explicit ``default`` key marks the node as defaulted even when
        the default is None.
        """
        if isinstance(data, SchemaNode):
            return data

        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            name = _ALIASES.get(key, key)
            if name == "properties":
                value = {prop: cls.from_dict(spec) for prop, spec in value.items()}
            elif name == "items" and value is not None:
                value = cls.from_dict(value)
            elif name == "enum" and value is not None:
                value = list(value)
            kwargs[name] = value

        known_fields = {f for f in cls.__dataclass_fields__}
        unknown = set(kwargs) - known_fields
        if unknown:
            raise ConfigurationError(f"Unknown schema keys: {', '.join(sorted(unknown))}")

        if "default" in data:
            kwargs["has_default"] = True
        return cls(**kwargs)


def object_schema(properties: Mapping[str, Any], **kwargs: Any) -> SchemaNode:
    """Build a root object schema from a mapping of section descriptors."""
    return SchemaNode(
        type=ValueKind.OBJECT.value,
        properties={key: SchemaNode.from_dict(spec) for key, spec in properties.items()},
        **kwargs
    )

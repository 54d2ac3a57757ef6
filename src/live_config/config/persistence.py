"""
Backing file persistence and export formats.

Loads the configuration tree from a JSON file, overlays prefixed
environment variables, writes trees back atomically and renders trees in
the textual formats consumed by deployment tooling.
"""

import hashlib
import json
import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml

from ..core.exceptions import ConfigurationError, ParseError, PersistenceError
from .schema import SchemaNode
from .tree import ConfigTree, assert_acyclic, deep_merge, is_object, normalize, set_path
from .validation import SchemaValidator

logger = logging.getLogger(__name__)


class ConfigFormat(Enum):
    """Supported export formats."""
    JSON = "json"
    ENV = "env"
    TEXT = "text"
    YAML = "yaml"


def _reject_constant(name: str):
    raise ValueError(f"{name} is not valid JSON")


def _digest(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


class ConfigPersistence:
    """
    Reads and writes the backing configuration file.

    The file holds a UTF-8 JSON object. Environment variables starting
    with ``env_prefix`` override file values: the prefix is stripped, the
    rest is lower-cased and split on underscores into a dot path, and the
    value is parsed as a JSON literal when possible.
    """

    def __init__(self,
                 config_path: Union[str, Path],
                 schema: SchemaNode,
                 validator: Optional[SchemaValidator] = None,
                 env_prefix: str = "APP_",
                 create_if_missing: bool = True,
                 environ: Optional[Mapping[str, str]] = None):
        """
        Initialize persistence for one backing file.

        Args:
            config_path: Path of the JSON backing file
            schema: Schema used to build a default file when missing
            validator: Validator providing default application
            env_prefix: Prefix of overriding environment variables
            create_if_missing: Write a defaulted file when none exists
            environ: Environment mapping (defaults to os.environ)
        """
        self.config_path = Path(config_path)
        self.schema = schema
        self.validator = validator or SchemaValidator()
        self.env_prefix = env_prefix
        self.create_if_missing = create_if_missing
        self.environ = environ if environ is not None else os.environ
        self.last_digest: Optional[str] = None
        self.last_overlay: Dict[str, Any] = {}

    def load(self, create_if_missing: Optional[bool] = None) -> ConfigTree:
        """
        Load the file and merge the environment overlay.

        Args:
            create_if_missing: Override for the constructor setting

        Returns:
            The file tree with environment overrides applied

        Raises:
            ParseError: If the file is not a valid JSON object
            ConfigurationError: If the file is missing and may not be created
        """
        self._ensure_directory()

        if create_if_missing is None:
            create_if_missing = self.create_if_missing

        if not self.config_path.exists():
            if not create_if_missing:
                raise ConfigurationError(f"Configuration file not found: {self.config_path}")
            defaults = self.validator.apply_defaults({}, self.schema)
            logger.info(f"Creating default configuration: {self.config_path}")
            self.save(defaults)

        try:
            raw = self.config_path.read_bytes()
        except OSError as e:
            raise ConfigurationError(f"Failed to read {self.config_path}: {e}", cause=e)

        file_tree = self.parse(raw, source=str(self.config_path))
        overlay = self.environment_overlay(file_tree)
        self.last_digest = _digest(raw)
        self.last_overlay = overlay

        if overlay:
            logger.info(f"Applying environment variable overrides ({len(overlay)} sections)")
            return deep_merge(file_tree, overlay)
        return file_tree

    def parse(self, raw: bytes, source: str = "<content>") -> ConfigTree:
        """Parse raw file contents into a tree."""
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ParseError(f"Configuration file is not valid UTF-8: {e}", path=source, cause=e)

        try:
            data = json.loads(text, parse_constant=_reject_constant)
        except json.JSONDecodeError as e:
            raise ParseError(f"Malformed configuration file: {e.msg}", path=source,
                             line=e.lineno, column=e.colno, cause=e)
        except ValueError as e:
            raise ParseError(f"Malformed configuration file: {e}", path=source, cause=e)

        if not isinstance(data, dict):
            raise ParseError(f"Configuration root must be an object, got {type(data).__name__}",
                             path=source)

        assert_acyclic(data)
        return data

    def environment_overlay(self, base: Optional[Mapping[str, Any]] = None) -> ConfigTree:
        """
        Build the override tree from prefixed environment variables.

        Path segments are matched case-insensitively against keys already
        present in ``base`` so that camelCase keys can be overridden.
        """
        overlay: ConfigTree = {}
        prefix = self.env_prefix

        for name in sorted(self.environ):
            if not name.startswith(prefix) or len(name) == len(prefix):
                continue

            segments = name[len(prefix):].lower().split('_')
            if any(not segment for segment in segments):
                logger.warning(f"Ignoring environment variable with empty path segment: {name}")
                continue

            path = '.'.join(self._resolve_segments(segments, base or {}))
            value = self.parse_env_value(self.environ[name])
            overlay = set_path(overlay, path, value)
            logger.debug(f"Environment override: {path} = {value!r}")

        return overlay

    @staticmethod
    def _resolve_segments(segments: List[str], base: Mapping[str, Any]) -> List[str]:
        resolved = []
        current: Any = base
        for segment in segments:
            match = segment
            if is_object(current):
                candidates = [key for key in current if key.lower() == segment]
                if len(candidates) == 1:
                    match = candidates[0]
            resolved.append(match)
            current = current.get(match) if is_object(current) else None
        return resolved

    @staticmethod
    def parse_env_value(value: str) -> Any:
        """Parse an environment value as a JSON literal, else keep the string."""
        try:
            return json.loads(value, parse_constant=_reject_constant)
        except ValueError:
            return value

    def save(self, tree: Mapping[str, Any]):
        """
        Write a tree to the backing file atomically.

        The content goes to a temporary file in the same directory, is
        flushed to disk and then renamed over the target.

        Raises:
            PersistenceError: If serialization or any write step fails
        """
        temp_file = self.config_path.with_name(f".{self.config_path.name}.tmp")
        try:
            self._ensure_directory()
            content = self.serialize(tree).encode("utf-8")
            with open(temp_file, 'wb') as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_file, self.config_path)
        except (OSError, TypeError, ValueError) as e:
            try:
                temp_file.unlink()
            except OSError:
                pass
            raise PersistenceError(
                f"Failed to save configuration to {self.config_path}: {e}",
                context={"path": str(self.config_path)},
                cause=e
            )

        self.last_digest = _digest(content)
        logger.debug(f"Configuration saved to {self.config_path}")

    @staticmethod
    def serialize(tree: Mapping[str, Any]) -> str:
        return json.dumps(tree, indent=2, ensure_ascii=False, allow_nan=False) + "\n"

    def file_digest(self) -> Optional[str]:
        """Hash of the backing file as it is on disk now, None if missing."""
        try:
            return _digest(self.config_path.read_bytes())
        except FileNotFoundError:
            return None

    def _ensure_directory(self):
        directory = self.config_path.parent
        if not directory.exists():
            directory.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created configuration directory: {directory}")

    # Export formats

    def export(self, tree: Mapping[str, Any], format: Union[str, ConfigFormat] = ConfigFormat.JSON) -> str:
        """
        Render a tree in one of the export formats.

        Args:
            tree: Tree to render (not modified)
            format: ``json``, ``env``, ``text`` or ``yaml``

        Returns:
            The rendered text

        Raises:
            ConfigurationError: For an unsupported format
        """
        try:
            fmt = format if isinstance(format, ConfigFormat) else ConfigFormat(str(format).lower())
        except ValueError:
            raise ConfigurationError(f"Unsupported export format: {format}")

        plain = normalize(tree)
        if fmt is ConfigFormat.JSON:
            return self.serialize(plain)
        if fmt is ConfigFormat.ENV:
            return self.to_env_format(plain)
        if fmt is ConfigFormat.TEXT:
            return self.to_text_format(plain)
        return yaml.safe_dump(plain, default_flow_style=False, sort_keys=False,
                              allow_unicode=True, indent=2)

    def to_env_format(self, tree: Mapping[str, Any]) -> str:
        """Flatten to PREFIX_SECTION_KEY=value lines."""
        lines: List[str] = []

        def flatten(obj: Mapping[str, Any], current: str):
            for key, value in obj.items():
                env_key = f"{current}_{key.upper()}" if current else f"{self.env_prefix}{key.upper()}"
                if is_object(value) and value:
                    flatten(value, env_key)
                else:
                    lines.append(f"{env_key}={_env_value(value)}")

        flatten(tree, "")
        return "".join(f"{line}\n" for line in lines)

    def to_text_format(self, tree: Mapping[str, Any]) -> str:
        """Indented key-per-line rendering."""
        lines: List[str] = []

        def render(obj: Mapping[str, Any], depth: int):
            spaces = '  ' * depth
            for key, value in obj.items():
                if is_object(value) and value:
                    lines.append(f"{spaces}{key}:")
                    render(value, depth + 1)
                elif isinstance(value, list) and value:
                    lines.append(f"{spaces}{key}:")
                    for item in value:
                        lines.append(f"{spaces}  - {_text_scalar(item)}")
                else:
                    lines.append(f"{spaces}{key}: {_text_scalar(value)}")

        render(tree, 0)
        return "".join(f"{line}\n" for line in lines)


def _ambiguous(value: str) -> bool:
    """True for strings that would read back as another type, or not at all."""
    return (not value or value != value.strip() or '\n' in value
            or ConfigPersistence.parse_env_value(value) != value)


def _text_scalar(value: Any) -> str:
    if isinstance(value, str) and not _ambiguous(value):
        return value
    return json.dumps(value, ensure_ascii=False)


def _env_value(value: Any) -> str:
    if isinstance(value, str) and not _ambiguous(value):
        return value
    return json.dumps(value, ensure_ascii=False)

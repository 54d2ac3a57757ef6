"""
Default schema and presets for the server manager configuration tree.

The tree has five sections: the game server process (``minecraft``), the
tunnel process (``ownserver``), DNS publication (``cloudflare``), health
checking and logging. Every required field carries a default so that a
freshly created backing file is valid on its own.
"""

import posixpath
import re
from typing import Any, Dict

from .schema import SchemaNode, object_schema

_DOMAIN_RE = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9-]{0,61}[a-zA-Z0-9](?:\.[a-zA-Z0-9-]+)*\.[a-zA-Z]{2,}$")
_SIZE_RE = re.compile(r"^\d+(\.\d+)?(KB|MB|GB)$", re.IGNORECASE)

LOG_LEVELS = ["error", "warn", "info", "debug"]


def validate_absolute_path(value: str):
    if not posixpath.isabs(value):
        return "must be an absolute path"
    return True


def validate_domain(value: str):
    return bool(_DOMAIN_RE.match(value)) or "invalid domain format"


def validate_file_size(value: str):
    return bool(_SIZE_RE.match(value)) or "invalid file size format (e.g. 10MB)"


def build_default_schema() -> SchemaNode:
    """Build a fresh copy of the default server manager schema."""
    return object_schema({
        "minecraft": {
            "type": "object",
            "required": True,
            "properties": {
                "serverDirectory": {
                    "type": "string",
                    "required": True,
                    "minLength": 1,
                    "default": "/app/minecraft-servers/survival",
                },
                "port": {
                    "type": "number",
                    "required": True,
                    "min": 1024,
                    "max": 65535,
                    "default": 25565,
                },
                "javaArgs": {
                    "type": "array",
                    "items": {"type": "string"},
                    "default": ["-Xmx2G", "-Xms1G"],
                },
                "autoRestart": {"type": "boolean", "default": True},
                "restartDelay": {"type": "number", "min": 1000, "max": 60000, "default": 5000},
            },
        },
        "ownserver": {
            "type": "object",
            "required": True,
            "properties": {
                "binaryPath": {
                    "type": "string",
                    "required": True,
                    "validate": validate_absolute_path,
                    "default": "/app/bin/ownserver",
                },
                "autoRestart": {"type": "boolean", "default": True},
                "restartDelay": {"type": "number", "min": 1000, "max": 30000, "default": 3000},
            },
        },
        "cloudflare": {
            "type": "object",
            "required": True,
            "properties": {
                "domain": {
                    "type": "string",
                    "required": True,
                    "validate": validate_domain,
                    "default": "play.example.com",
                },
                "ttl": {"type": "number", "min": 60, "max": 86400, "default": 60},
            },
        },
        "healthcheck": {
            "type": "object",
            "properties": {
                "enabled": {"type": "boolean", "default": True},
                "interval": {"type": "number", "min": 5000, "max": 300000, "default": 30000},
                "timeout": {"type": "number", "min": 1000, "max": 30000, "default": 5000},
                "retries": {"type": "number", "min": 1, "max": 10, "default": 3},
                "actions": {
                    "type": "array",
                    "items": {"type": "string", "enum": ["restart_ownserver", "restart_minecraft"]},
                    "default": ["restart_ownserver", "restart_minecraft"],
                },
            },
        },
        "logging": {
            "type": "object",
            "properties": {
                "level": {"type": "string", "enum": LOG_LEVELS, "default": "info"},
                "directory": {"type": "string", "default": "./logs"},
                "maxFileSize": {"type": "string", "validate": validate_file_size, "default": "10MB"},
                "maxFiles": {"type": "number", "min": 1, "max": 100, "default": 5},
                "format": {"type": "string", "enum": ["text", "json"], "default": "text"},
                "enableConsole": {"type": "boolean", "default": True},
                "enableFile": {"type": "boolean", "default": False},
            },
        },
    })


DEFAULT_SCHEMA = build_default_schema()

DEFAULT_PRESETS: Dict[str, Dict[str, Any]] = {
    "development": {
        "logging": {"level": "debug", "enableConsole": True},
        "healthcheck": {"interval": 10000},
    },
    "production": {
        "logging": {"level": "info", "format": "json", "enableFile": True},
        "healthcheck": {"interval": 30000, "retries": 5},
    },
    "quiet": {
        "logging": {"level": "error"},
    },
}

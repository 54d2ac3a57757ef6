"""Engine options."""

from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, Mapping, Optional

from ..core.exceptions import ConfigurationError


@dataclass
class EngineOptions:
    """Settings of the engine itself (not of the managed tree)."""

    env_prefix: str = "APP_"
    create_if_missing: bool = True
    strict_validation: bool = True
    watch_file: bool = True
    use_polling: bool = False
    poll_interval: float = 1.0
    debounce_interval: float = 0.25
    max_backups: int = 5
    enable_cache: bool = True
    cache_ttl: Optional[float] = 60.0
    hook_timeout: float = 5.0
    persist_updates: bool = True
    history_size: int = 200
    configure_logging: bool = False
    presets: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def __post_init__(self):
        if self.max_backups < 0:
            raise ConfigurationError("max_backups must be >= 0", context={"max_backups": self.max_backups})
        if self.debounce_interval < 0 or self.poll_interval <= 0:
            raise ConfigurationError(
                "Watcher intervals must be positive",
                context={"debounce_interval": self.debounce_interval, "poll_interval": self.poll_interval}
            )
        if self.hook_timeout <= 0:
            raise ConfigurationError("hook_timeout must be positive", context={"hook_timeout": self.hook_timeout})

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EngineOptions":
        """Build options from a mapping; unknown keys are ignored."""
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

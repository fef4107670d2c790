"""
Process configuration.

Settings is immutable once built. Values come from CLIPFLOW_* environment
variables (from_env), a plain dictionary (from_dict), or the defaults.
"""

import os
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Mapping, Optional


class ConfigError(ValueError):
    """Raised when a configuration value is invalid."""
    pass


SUPPORTED_INPUT_FORMATS = ("mp4", "avi", "mov", "mkv", "webm", "flv", "m4v", "3gp", "wmv")
SUPPORTED_OUTPUT_FORMATS = ("mp4", "avi", "mov", "mkv", "webm")

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}

# field name -> environment variable
ENV_VARIABLES = {
    "max_concurrent_tasks": "CLIPFLOW_MAX_CONCURRENT_TASKS",
    "segment_pause_seconds": "CLIPFLOW_SEGMENT_PAUSE_SECONDS",
    "ffmpeg_binary": "CLIPFLOW_FFMPEG",
    "ffprobe_binary": "CLIPFLOW_FFPROBE",
    "abort_grace_seconds": "CLIPFLOW_ABORT_GRACE_SECONDS",
    "temp_dir": "CLIPFLOW_TEMP_DIR",
    "preserve_metadata": "CLIPFLOW_PRESERVE_METADATA",
    "log_level": "CLIPFLOW_LOG_LEVEL",
}


def _parse_int(name: str, value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer, got {value!r}")


def _parse_float(name: str, value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be a number, got {value!r}")


def _parse_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ConfigError(f"{name} must be a boolean, got {value!r}")


@dataclass(frozen=True)
class Settings:
    """
    Immutable runtime settings.

    max_concurrent_tasks: Tasks allowed in PROCESSING at once
    segment_pause_seconds: Pause between partition segments
    ffmpeg_binary / ffprobe_binary: Binary names or absolute paths
    abort_grace_seconds: SIGTERM -> SIGKILL escalation delay
    temp_dir: Where concat list files go (None = next to the output)
    preserve_metadata: Copy source container metadata to outputs
    log_level: Root logging level for the CLI
    """

    max_concurrent_tasks: int = 3
    segment_pause_seconds: float = 0.1
    ffmpeg_binary: str = "ffmpeg"
    ffprobe_binary: str = "ffprobe"
    abort_grace_seconds: float = 5.0
    temp_dir: Optional[str] = None
    preserve_metadata: bool = True
    log_level: str = "INFO"

    def __post_init__(self):
        if self.max_concurrent_tasks < 1:
            raise ConfigError(
                f"max_concurrent_tasks must be at least 1, got {self.max_concurrent_tasks}"
            )
        if self.segment_pause_seconds < 0:
            raise ConfigError("segment_pause_seconds must not be negative")
        if self.abort_grace_seconds < 0:
            raise ConfigError("abort_grace_seconds must not be negative")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "Settings":
        """
        Build settings from a mapping. Missing keys keep their defaults.

        Raises:
            ConfigError: If a key is unknown or a value is invalid
        """
        if not data:
            return cls()

        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"Unknown settings: {', '.join(sorted(unknown))}")

        values: Dict[str, Any] = {}
        for name, raw in data.items():
            if name == "max_concurrent_tasks":
                values[name] = _parse_int(name, raw)
            elif name in ("segment_pause_seconds", "abort_grace_seconds"):
                values[name] = _parse_float(name, raw)
            elif name == "preserve_metadata":
                values[name] = _parse_bool(name, raw)
            elif name == "log_level":
                values[name] = str(raw).upper()
            elif name == "temp_dir":
                values[name] = str(raw) if raw else None
            else:
                values[name] = str(raw)
        return cls(**values)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from CLIPFLOW_* environment variables.

        Raises:
            ConfigError: If a variable holds an invalid value
        """
        environ = os.environ if environ is None else environ
        data = {}
        for name, variable in ENV_VARIABLES.items():
            value = environ.get(variable)
            if value is not None and value != "":
                data[name] = value
        return cls.from_dict(data)


DEFAULT_SETTINGS = Settings()

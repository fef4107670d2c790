"""
Backend binary discovery.

Looks up ffmpeg/ffprobe in PATH first, then in common install locations.
Results are cached per name.
"""

import os
import shutil
from typing import Dict, Optional

from .errors import BackendNotAvailableError


_COMMON_DIRS = (
    "/usr/local/bin",
    "/usr/bin",
    "/opt/homebrew/bin",
)

_cache: Dict[str, str] = {}


def find_binary(name: str) -> Optional[str]:
    """
    Find an executable by name or explicit path.

    Args:
        name: Binary name ("ffmpeg") or an absolute path to it

    Returns:
        Resolved path, or None if not found
    """
    if name in _cache:
        return _cache[name]

    resolved = shutil.which(name)
    if not resolved and not os.path.isabs(name):
        for directory in _COMMON_DIRS:
            candidate = os.path.join(directory, name)
            if os.path.isfile(candidate) and os.access(candidate, os.X_OK):
                resolved = candidate
                break

    if resolved:
        _cache[name] = resolved
    return resolved


def require_binary(name: str) -> str:
    """
    Find an executable or raise.

    Raises:
        BackendNotAvailableError: If the binary cannot be found
    """
    resolved = find_binary(name)
    if resolved is None:
        raise BackendNotAvailableError(name)
    return resolved


def clear_cache() -> None:
    """Forget cached lookups. Useful for testing."""
    _cache.clear()

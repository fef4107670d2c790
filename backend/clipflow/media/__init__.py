"""
Media backend: probing and transforms.

The scheduling core treats the backend as an opaque capability.
FFmpegBackend is the production implementation.
"""

from .errors import (
    BackendError,
    BackendNotAvailableError,
    ProbeError,
    TransformAbortedError,
    TransformError,
)
from .models import (
    AudioCodec,
    EncodingOptions,
    MediaMetadata,
    QualityPreset,
    TransformInput,
    TransformOutcome,
    TransformSpec,
    TransformStatus,
    VideoCodec,
)
from .base import CancellationToken, MediaBackend
from .ffmpeg import FFmpegBackend

__all__ = [
    # Errors
    "BackendError",
    "BackendNotAvailableError",
    "ProbeError",
    "TransformError",
    "TransformAbortedError",
    # Models
    "AudioCodec",
    "EncodingOptions",
    "MediaMetadata",
    "QualityPreset",
    "TransformInput",
    "TransformOutcome",
    "TransformSpec",
    "TransformStatus",
    "VideoCodec",
    # Backends
    "CancellationToken",
    "MediaBackend",
    "FFmpegBackend",
]

"""
Media backend data models.

MediaMetadata is produced by probing and never mutated.
TransformSpec describes one backend invocation; TransformOutcome reports
how it ended. EncodingOptions carries the codec/quality knobs that
operations pass through to the backend.

All models use Pydantic for validation.
"""

from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class VideoCodec(str, Enum):
    """Video encoders accepted by the ffmpeg backend."""

    H264 = "libx264"
    H265 = "libx265"
    VP9 = "libvpx-vp9"
    AV1 = "libaom-av1"


class AudioCodec(str, Enum):
    """Audio encoders accepted by the ffmpeg backend."""

    AAC = "aac"
    MP3 = "libmp3lame"
    OPUS = "libopus"
    VORBIS = "libvorbis"


class QualityPreset(str, Enum):
    """Encoder speed/quality presets (passed as -preset)."""

    ULTRAFAST = "ultrafast"
    SUPERFAST = "superfast"
    VERYFAST = "veryfast"
    FASTER = "faster"
    FAST = "fast"
    MEDIUM = "medium"
    SLOW = "slow"
    SLOWER = "slower"
    VERYSLOW = "veryslow"


class MediaMetadata(BaseModel):
    """
    Probed metadata for a single media file.

    Read-only. Duration is in seconds, size in bytes, bit rate in bits/s.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    duration: float
    width: int
    height: int
    frame_rate: float
    bit_rate: int
    container_format: str
    codec: str
    size: int
    has_audio: bool = False

    @property
    def duration_ms(self) -> float:
        """Duration in milliseconds."""
        return self.duration * 1000


class EncodingOptions(BaseModel):
    """
    Encoder settings for operations that produce new media.

    Any of video_codec, audio_codec or quality counts as a re-encoding
    request. preserve_metadata only controls metadata mapping.
    """

    model_config = ConfigDict(extra="forbid")

    video_codec: Optional[VideoCodec] = None
    audio_codec: Optional[AudioCodec] = None
    quality: Optional[QualityPreset] = None
    preserve_metadata: Optional[bool] = None

    @property
    def requests_reencode(self) -> bool:
        """True if any encoder parameter was specified."""
        return any(
            value is not None
            for value in (self.video_codec, self.audio_codec, self.quality)
        )


class TransformInput(BaseModel):
    """
    One backend input.

    start_ms/duration_ms describe the time window to read.
    options are raw demuxer options placed before the input (e.g. -f concat).
    """

    model_config = ConfigDict(extra="forbid")

    path: str
    start_ms: Optional[int] = None
    duration_ms: Optional[int] = None
    options: List[str] = Field(default_factory=list)

    @field_validator("start_ms", "duration_ms")
    @classmethod
    def validate_non_negative(cls, v: Optional[int]) -> Optional[int]:
        """Time window values cannot be negative."""
        if v is not None and v < 0:
            raise ValueError("Time window values must be non-negative")
        return v


class TransformSpec(BaseModel):
    """
    A complete transform request for the media backend.

    stream_copy=True copies streams without re-encoding; encoding is then
    ignored. filter_graph/maps describe a -filter_complex pipeline.
    """

    model_config = ConfigDict(extra="forbid")

    inputs: List[TransformInput]
    output_path: str
    encoding: EncodingOptions = Field(default_factory=EncodingOptions)
    stream_copy: bool = False
    filter_graph: Optional[str] = None
    maps: List[str] = Field(default_factory=list)

    @field_validator("inputs")
    @classmethod
    def validate_inputs(cls, v: List[TransformInput]) -> List[TransformInput]:
        """At least one input is required."""
        if not v:
            raise ValueError("Transform requires at least one input")
        return v


class TransformStatus(str, Enum):
    """How a transform ended."""

    COMPLETED = "completed"
    FAILED = "failed"
    ABORTED = "aborted"


class TransformOutcome(BaseModel):
    """Result reported by the backend for one transform."""

    model_config = ConfigDict(extra="forbid")

    status: TransformStatus
    reason: Optional[str] = None
    exit_code: Optional[int] = None

    @property
    def completed(self) -> bool:
        return self.status == TransformStatus.COMPLETED

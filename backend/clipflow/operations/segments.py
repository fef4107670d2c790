"""
Segment math for extract and partition.

All times are integer milliseconds. Window boundaries are rounded half-up
so the same media always produces the same segments.

Split modes:
- duration: fixed windows of params.duration seconds from 0
- segments: params.segment_count equal windows
- size: windows estimated from params.max_size (MB) and the probed bit rate

In every mode the final window is clamped to the total duration.
"""

import math
import re
from pathlib import Path
from typing import List, Optional

from ..media.models import MediaMetadata
from .errors import MissingParameterError, SegmentOutOfBoundsError, ValidationError
from .models import PartitionParams, SplitBy, TimeSegment

BYTES_PER_MEGABYTE = 1024 * 1024


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def total_duration_ms(metadata: MediaMetadata) -> int:
    """
    Usable media length in whole milliseconds.

    Rounded down so a clamped final window never ends past the media.
    """
    return int(math.floor(metadata.duration_ms))


def validate_segment(segment: TimeSegment, duration_ms: float) -> None:
    """
    Check a segment against the media it will be cut from.

    Raises:
        ValidationError: If start < 0 or end <= start
        SegmentOutOfBoundsError: If end is past the media duration
    """
    if segment.start < 0 or segment.end <= segment.start:
        raise ValidationError(
            f"Invalid time segment: [{segment.start}, {segment.end})"
        )
    if segment.end > duration_ms:
        raise SegmentOutOfBoundsError(segment.start, segment.end, duration_ms)


def tile_windows(total_ms: int, window_ms: int) -> List[TimeSegment]:
    """Cover [0, total_ms) with consecutive windows of window_ms."""
    if window_ms < 1:
        raise ValidationError(f"Split window must be at least 1 ms, got {window_ms}")

    segments: List[TimeSegment] = []
    start = 0
    while start < total_ms:
        end = min(start + window_ms, total_ms)
        segments.append(TimeSegment(start=start, end=end))
        start += window_ms
    return segments


def equal_windows(total_ms: int, count: int) -> List[TimeSegment]:
    """
    Divide [0, total_ms) into count equal windows.

    Boundaries come from total * i / count; windows that round to zero
    length are dropped.
    """
    if count < 1:
        raise ValidationError(f"Segment count must be at least 1, got {count}")

    boundaries = [_round_half_up(total_ms * i / count) for i in range(count)]
    boundaries.append(total_ms)

    segments: List[TimeSegment] = []
    for start, end in zip(boundaries, boundaries[1:]):
        end = min(end, total_ms)
        if end > start:
            segments.append(TimeSegment(start=start, end=end))
    return segments


def size_window_ms(max_size_mb: float, bit_rate: int) -> int:
    """
    Estimate how many milliseconds of media fit in max_size_mb.

    window_ms = max_size_bytes * 8 / bit_rate * 1000
    """
    if bit_rate <= 0:
        raise ValidationError("Cannot split by size: media bit rate is unknown")
    max_size_bytes = max_size_mb * BYTES_PER_MEGABYTE
    return _round_half_up(max_size_bytes * 8 / bit_rate * 1000)


def compute_segments(
    total_ms: int,
    split_by: SplitBy,
    params: PartitionParams,
    bit_rate: int = 0,
) -> List[TimeSegment]:
    """
    Compute the ordered partition segments.

    Raises:
        MissingParameterError: If the split mode's parameter is absent
        ValidationError: If the parameters cannot produce valid windows
    """
    if split_by == SplitBy.DURATION:
        if params.duration is None:
            raise MissingParameterError(split_by.value, "duration")
        return tile_windows(total_ms, _round_half_up(params.duration * 1000))

    if split_by == SplitBy.SEGMENTS:
        if params.segment_count is None:
            raise MissingParameterError(split_by.value, "segment_count")
        return equal_windows(total_ms, params.segment_count)

    if split_by == SplitBy.SIZE:
        if params.max_size is None:
            raise MissingParameterError(split_by.value, "max_size")
        return tile_windows(total_ms, size_window_ms(params.max_size, bit_rate))

    raise ValidationError(f"Unknown split mode: {split_by!r}")


def _sanitize_filename(name: str) -> str:
    """Replace characters that are invalid on most filesystems."""
    sanitized = re.sub(r'[<>:"/\\|?*\x00-\x1f]', "_", name)
    sanitized = sanitized.strip(". ")
    return sanitized or "segment"


def split_file_name(input_path: str, index: int, pattern: Optional[str] = None) -> str:
    """
    Build the file name for partition segment `index` (0-based).

    Pattern variables:
    - {name}: input basename without extension
    - {index}: 1-based index, zero-padded to 3 digits
    - {ext}: input extension without the dot

    Without a pattern: segment_NNN.<ext>

    Example:
        >>> split_file_name("/media/clip.mp4", 0, "{name}_{index}.{ext}")
        'clip_001.mp4'
    """
    source = Path(input_path)
    ext = source.suffix[1:] if source.suffix.startswith(".") else source.suffix
    number = f"{index + 1:03d}"

    if pattern:
        name = (
            pattern
            .replace("{name}", source.stem)
            .replace("{index}", number)
            .replace("{ext}", ext)
        )
        return _sanitize_filename(name)

    return f"segment_{number}{source.suffix}"

"""
Metadata probing using ffprobe.

Probing is read-only and non-destructive. ffprobe runs as an asyncio
subprocess so the scheduler loop is never blocked.

Failures raise ProbeError with the path and an actionable reason.
"""

import asyncio
import json
import logging
from typing import Any, Dict

from .binaries import require_binary
from .errors import ProbeError
from .models import MediaMetadata

logger = logging.getLogger(__name__)


def parse_frame_rate(value: str) -> float:
    """
    Parse an ffprobe rational frame rate ("30000/1001") into fps.

    Returns 0.0 for missing or degenerate values.
    """
    if not value:
        return 0.0
    try:
        if "/" in value:
            num, den = value.split("/", 1)
            den_f = float(den)
            return float(num) / den_f if den_f else 0.0
        return float(value)
    except ValueError:
        return 0.0


def _as_int(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def parse_probe_output(path: str, probe_data: Dict[str, Any]) -> MediaMetadata:
    """
    Build MediaMetadata from parsed ffprobe JSON.

    Args:
        path: Probed file (for error messages)
        probe_data: Output of ffprobe -show_format -show_streams

    Raises:
        ProbeError: If no video stream is present
    """
    streams = probe_data.get("streams", [])
    fmt = probe_data.get("format", {})

    video_stream = next(
        (s for s in streams if s.get("codec_type") == "video"), None
    )
    if video_stream is None:
        raise ProbeError(path, "No video stream found")

    has_audio = any(s.get("codec_type") == "audio" for s in streams)

    try:
        duration = float(fmt.get("duration") or 0)
    except (TypeError, ValueError):
        duration = 0.0

    return MediaMetadata(
        duration=duration,
        width=_as_int(video_stream.get("width")),
        height=_as_int(video_stream.get("height")),
        frame_rate=parse_frame_rate(video_stream.get("r_frame_rate", "0/1")),
        bit_rate=_as_int(fmt.get("bit_rate")),
        container_format=fmt.get("format_name", ""),
        codec=video_stream.get("codec_name", ""),
        size=_as_int(fmt.get("size")),
        has_audio=has_audio,
    )


async def run_ffprobe(ffprobe_binary: str, path: str) -> Dict[str, Any]:
    """
    Run ffprobe and return its parsed JSON output.

    Raises:
        BackendNotAvailableError: If ffprobe cannot be found
        ProbeError: If ffprobe fails or prints invalid JSON
    """
    executable = require_binary(ffprobe_binary)
    cmd = [
        executable,
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        path,
    ]
    logger.debug(f"[FFprobe] Executing: {' '.join(cmd)}")

    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise ProbeError(path, f"Failed to start ffprobe: {e}")
    stdout, _ = await process.communicate()

    if process.returncode != 0:
        raise ProbeError(path, f"ffprobe failed with exit code {process.returncode}")

    try:
        return json.loads(stdout.decode("utf-8", errors="replace"))
    except json.JSONDecodeError as e:
        raise ProbeError(path, f"Failed to parse ffprobe output: {e}")


async def probe_media(ffprobe_binary: str, path: str) -> MediaMetadata:
    """Probe a file and return its metadata."""
    probe_data = await run_ffprobe(ffprobe_binary, path)
    return parse_probe_output(path, probe_data)

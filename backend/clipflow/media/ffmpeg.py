"""
FFmpeg media backend.

Real probing and transforming via asyncio subprocesses.

Design rules:
- One subprocess per transform
- Capture stderr for failure reasons
- Log full command string for audit
- Non-zero exit code = FAILED
- SIGTERM -> SIGKILL escalation for abort
- No progress parsing (state-only: running -> completed/failed/aborted)
"""

import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Set

from ..timecode import to_ffmpeg_time
from .base import CancellationToken, MediaBackend
from .binaries import require_binary
from .errors import BackendNotAvailableError
from .models import (
    EncodingOptions,
    MediaMetadata,
    TransformOutcome,
    TransformSpec,
    TransformStatus,
)
from .probe import probe_media

logger = logging.getLogger(__name__)

# Keep failure reasons readable; ffmpeg prints its real error last
STDERR_TAIL_CHARS = 2000

# Applied to every re-encode for player compatibility
COMPATIBILITY_ARGS = ["-movflags", "+faststart", "-pix_fmt", "yuv420p"]


def encoding_arguments(encoding: EncodingOptions) -> List[str]:
    """Translate EncodingOptions into ffmpeg output arguments."""
    args: List[str] = []
    if encoding.video_codec is not None:
        args.extend(["-c:v", encoding.video_codec.value])
    if encoding.audio_codec is not None:
        args.extend(["-c:a", encoding.audio_codec.value])
    if encoding.quality is not None:
        args.extend(["-preset", encoding.quality.value])
    args.extend(COMPATIBILITY_ARGS)
    return args


def _stderr_tail(stderr: Optional[bytes]) -> str:
    if not stderr:
        return ""
    text = stderr.decode("utf-8", errors="replace").strip()
    return text[-STDERR_TAIL_CHARS:]


class FFmpegBackend(MediaBackend):
    """
    ffmpeg/ffprobe backed MediaBackend.

    Tracks nothing globally: the running process for a transform is
    attached to the caller's CancellationToken.
    """

    def __init__(
        self,
        ffmpeg_binary: str = "ffmpeg",
        ffprobe_binary: str = "ffprobe",
        abort_grace_seconds: float = 5.0,
        preserve_metadata: bool = True,
    ):
        self.ffmpeg_binary = ffmpeg_binary
        self.ffprobe_binary = ffprobe_binary
        self.abort_grace_seconds = abort_grace_seconds
        self.preserve_metadata = preserve_metadata
        self._escalations: Set[asyncio.Task] = set()

    @property
    def name(self) -> str:
        return "FFmpeg"

    async def probe(self, path: str) -> MediaMetadata:
        return await probe_media(self.ffprobe_binary, path)

    def build_command(self, spec: TransformSpec) -> List[str]:
        """
        Build the ffmpeg argument list for a transform.

        Raises:
            BackendNotAvailableError: If ffmpeg cannot be found
        """
        cmd = [require_binary(self.ffmpeg_binary), "-y", "-hide_banner"]

        for item in spec.inputs:
            cmd.extend(item.options)
            if item.start_ms is not None:
                cmd.extend(["-ss", to_ffmpeg_time(item.start_ms)])
            if item.duration_ms is not None:
                cmd.extend(["-t", to_ffmpeg_time(item.duration_ms)])
            cmd.extend(["-i", item.path])

        if spec.filter_graph:
            cmd.extend(["-filter_complex", spec.filter_graph])
        for label in spec.maps:
            cmd.extend(["-map", label])

        preserve = spec.encoding.preserve_metadata
        if preserve is None:
            preserve = self.preserve_metadata
        if preserve:
            cmd.extend(["-map_metadata", "0"])

        if spec.stream_copy:
            cmd.extend(["-c", "copy"])
        else:
            cmd.extend(encoding_arguments(spec.encoding))

        cmd.append(spec.output_path)
        return cmd

    async def transform(
        self,
        spec: TransformSpec,
        token: Optional[CancellationToken] = None,
    ) -> TransformOutcome:
        if token is not None and token.cancelled:
            return TransformOutcome(
                status=TransformStatus.ABORTED,
                reason="Cancelled before start",
            )

        try:
            cmd = self.build_command(spec)
        except BackendNotAvailableError as e:
            return TransformOutcome(status=TransformStatus.FAILED, reason=str(e))

        logger.info(f"[FFmpeg] Executing: {' '.join(cmd)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            return TransformOutcome(
                status=TransformStatus.FAILED,
                reason=f"Failed to start ffmpeg: {e}",
            )

        if token is not None:
            token.attach(process)
        logger.info(f"[FFmpeg] Started PID {process.pid}")

        try:
            _, stderr = await process.communicate()
        except asyncio.CancelledError:
            # Caller went away; do not leave an orphaned encoder behind
            if process.returncode is None:
                process.kill()
            raise
        finally:
            if token is not None:
                token.detach()

        exit_code = process.returncode
        logger.info(f"[FFmpeg] PID {process.pid} exited with code {exit_code}")

        if token is not None and token.cancelled:
            return TransformOutcome(
                status=TransformStatus.ABORTED,
                reason="Cancelled by user",
                exit_code=exit_code,
            )

        if exit_code != 0:
            reason = _stderr_tail(stderr) or f"ffmpeg exited with code {exit_code}"
            logger.error(f"[FFmpeg] Failed: {reason}")
            return TransformOutcome(
                status=TransformStatus.FAILED,
                reason=reason,
                exit_code=exit_code,
            )

        if not Path(spec.output_path).is_file():
            return TransformOutcome(
                status=TransformStatus.FAILED,
                reason="Output file was not created",
                exit_code=exit_code,
            )

        logger.info(f"[FFmpeg] Completed: {spec.output_path}")
        return TransformOutcome(status=TransformStatus.COMPLETED, exit_code=exit_code)

    def abort(self, token: CancellationToken) -> bool:
        """
        Stop the process attached to token.

        Sends SIGTERM and schedules SIGKILL if the process is still alive
        after abort_grace_seconds.
        """
        process = token.handle
        if process is None or process.returncode is not None:
            logger.info(f"[FFmpeg] No running process for {token!r}, abort not confirmed")
            return False

        logger.info(f"[FFmpeg] Sending SIGTERM to PID {process.pid}")
        try:
            process.terminate()
        except ProcessLookupError:
            return False
        token.cancel()

        escalation = asyncio.get_running_loop().create_task(self._escalate(process))
        self._escalations.add(escalation)
        escalation.add_done_callback(self._escalations.discard)
        return True

    async def _escalate(self, process: asyncio.subprocess.Process) -> None:
        try:
            await asyncio.wait_for(process.wait(), timeout=self.abort_grace_seconds)
        except asyncio.TimeoutError:
            logger.warning(f"[FFmpeg] PID {process.pid} did not terminate, sending SIGKILL")
            try:
                process.kill()
            except ProcessLookupError:
                return
            await process.wait()

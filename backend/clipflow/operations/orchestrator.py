"""
Operation orchestrator.

Turns one operation request into one or more MediaBackend invocations:
- extract: one seek + duration-limited transform
- concatenate: stream copy via a concat list file, or a filter-graph
  normalization pipeline when re-encoding is requested
- partition: serial extracts over computed segments with partial-failure
  aggregation

Every operation runs the same pre-flight: inputs must exist and the
output directory is created if absent.

Failure handling:
- ValidationError and BackendError become a failed OperationResult
- Anything else propagates to the caller (the scheduler treats it as a
  fault of that task only)

The orchestrator never sees task identity, only option models and an
optional CancellationToken.
"""

import asyncio
import logging
import time
import uuid
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from ..media.base import CancellationToken, MediaBackend
from ..media.errors import BackendError, TransformAbortedError, TransformError
from ..media.models import (
    AudioCodec,
    MediaMetadata,
    TransformInput,
    TransformSpec,
    TransformStatus,
    VideoCodec,
)
from .errors import InputNotFoundError, UnknownOperationError, ValidationError
from .models import (
    ConcatenateOptions,
    ExtractOptions,
    OperationKind,
    OperationRequest,
    OperationResult,
    PartitionOptions,
)
from .segments import (
    compute_segments,
    split_file_name,
    total_duration_ms,
    validate_segment,
)

logger = logging.getLogger(__name__)

CONCAT_DEMUXER_OPTIONS = ["-f", "concat", "-safe", "0"]


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def _concat_list_line(path: str) -> str:
    """One concat demuxer entry, with single quotes escaped."""
    escaped = str(Path(path).resolve()).replace("'", "'\\''")
    return f"file '{escaped}'"


def build_normalization_graph(
    input_count: int,
    width: int,
    height: int,
    fps: Optional[float] = None,
    include_audio: bool = True,
) -> Tuple[str, List[str]]:
    """
    Build a filter graph that scales/pads every input to width x height
    and concatenates them.

    Returns:
        Tuple of (filter_graph, output_map_labels)
    """
    chains: List[str] = []
    concat_inputs = ""

    for i in range(input_count):
        video = (
            f"[{i}:v:0]scale={width}:{height}:force_original_aspect_ratio=decrease,"
            f"pad={width}:{height}:(ow-iw)/2:(oh-ih)/2,setsar=1"
        )
        if fps is not None:
            video += f",fps={fps:g}"
        chains.append(f"{video}[v{i}]")
        concat_inputs += f"[v{i}]"

        if include_audio:
            chains.append(
                f"[{i}:a:0]aformat=sample_fmts=fltp:sample_rates=48000:"
                f"channel_layouts=stereo[a{i}]"
            )
            concat_inputs += f"[a{i}]"

    audio_flag = 1 if include_audio else 0
    outputs = "[outv][outa]" if include_audio else "[outv]"
    chains.append(f"{concat_inputs}concat=n={input_count}:v=1:a={audio_flag}{outputs}")

    maps = ["[outv]", "[outa]"] if include_audio else ["[outv]"]
    return ";".join(chains), maps


class OperationOrchestrator:
    """
    Executes extract / concatenate / partition against a MediaBackend.

    Stateless between calls: everything an operation needs arrives in its
    options model.
    """

    def __init__(
        self,
        backend: MediaBackend,
        segment_pause_seconds: float = 0.1,
        temp_dir: Optional[str] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            backend: Media backend that performs probes and transforms
            segment_pause_seconds: Pause between partition segments
            temp_dir: Where concat list files are written (None = next to
                the output)
        """
        self.backend = backend
        self.segment_pause_seconds = segment_pause_seconds
        self.temp_dir = temp_dir

    # =========================================================================
    # Dispatch
    # =========================================================================

    async def run(
        self,
        request: OperationRequest,
        token: Optional[CancellationToken] = None,
    ) -> OperationResult:
        """Execute a request, dispatching on its kind."""
        kind = getattr(request, "kind", None)
        if kind == OperationKind.EXTRACT:
            return await self.extract(request, token)
        if kind == OperationKind.CONCATENATE:
            return await self.concatenate(request, token)
        if kind == OperationKind.PARTITION:
            return await self.partition(request, token)
        return OperationResult.failed(str(UnknownOperationError(kind)))

    async def probe(self, path: str) -> MediaMetadata:
        """
        Probe an existing file.

        Raises:
            InputNotFoundError: If the file does not exist
            BackendError: If the backend cannot read it
        """
        self._check_inputs([path])
        return await self.backend.probe(path)

    # =========================================================================
    # Shared helpers
    # =========================================================================

    def _check_inputs(self, paths: Iterable[str]) -> None:
        for path in paths:
            if not Path(path).exists():
                raise InputNotFoundError(path)

    def _preflight(self, input_paths: Iterable[str], output_dir: Path) -> None:
        self._check_inputs(input_paths)
        output_dir.mkdir(parents=True, exist_ok=True)

    async def _transform(
        self,
        spec: TransformSpec,
        token: Optional[CancellationToken],
    ) -> None:
        outcome = await self.backend.transform(spec, token)
        if outcome.status == TransformStatus.ABORTED:
            raise TransformAbortedError(outcome.reason or "Operation aborted")
        if outcome.status != TransformStatus.COMPLETED:
            raise TransformError(
                outcome.reason or "Transform failed", exit_code=outcome.exit_code
            )

    # =========================================================================
    # Extract
    # =========================================================================

    async def extract(
        self,
        options: ExtractOptions,
        token: Optional[CancellationToken] = None,
    ) -> OperationResult:
        """Cut options.segment out of options.input_path."""
        started = time.monotonic()
        segment = options.segment

        try:
            self._preflight([options.input_path], Path(options.output_path).parent)
            metadata = await self.backend.probe(options.input_path)
            validate_segment(segment, metadata.duration_ms)

            spec = TransformSpec(
                inputs=[
                    TransformInput(
                        path=options.input_path,
                        start_ms=segment.start,
                        duration_ms=segment.length_ms,
                    )
                ],
                output_path=options.output_path,
                encoding=options.encoding,
            )
            await self._transform(spec, token)
        except (ValidationError, BackendError) as e:
            logger.warning(f"[Orchestrator] Extract failed for {options.input_path}: {e}")
            return OperationResult.failed(str(e), _elapsed_ms(started))

        return OperationResult(
            success=True,
            output_paths=[options.output_path],
            elapsed_ms=_elapsed_ms(started),
        )

    # =========================================================================
    # Concatenate
    # =========================================================================

    async def concatenate(
        self,
        options: ConcatenateOptions,
        token: Optional[CancellationToken] = None,
    ) -> OperationResult:
        """
        Join options.input_paths into options.output_path.

        Fast path (no re-encode requested): concat demuxer + stream copy.
        Inputs must share codecs and container parameters.

        Normalization path: decode, scale/pad to a common resolution and
        re-encode through a filter graph. Tolerates mixed sources.
        """
        started = time.monotonic()
        list_path: Optional[Path] = None

        try:
            self._preflight(options.input_paths, Path(options.output_path).parent)

            if options.requires_normalization:
                logger.info(
                    f"[Orchestrator] Concatenating {len(options.input_paths)} inputs "
                    f"with normalization"
                )
                spec = await self._normalization_spec(options)
            else:
                logger.info(
                    f"[Orchestrator] Concatenating {len(options.input_paths)} inputs "
                    f"by stream copy"
                )
                list_path = self._write_concat_list(options)
                spec = TransformSpec(
                    inputs=[
                        TransformInput(path=str(list_path), options=CONCAT_DEMUXER_OPTIONS)
                    ],
                    output_path=options.output_path,
                    encoding=options.encoding,
                    stream_copy=True,
                )

            await self._transform(spec, token)
        except (ValidationError, BackendError) as e:
            logger.warning(f"[Orchestrator] Concatenate failed for {options.output_path}: {e}")
            return OperationResult.failed(str(e), _elapsed_ms(started))
        finally:
            if list_path is not None:
                self._remove_temp_file(list_path)

        return OperationResult(
            success=True,
            output_paths=[options.output_path],
            elapsed_ms=_elapsed_ms(started),
        )

    def _write_concat_list(self, options: ConcatenateOptions) -> Path:
        directory = Path(self.temp_dir) if self.temp_dir else Path(options.output_path).parent
        directory.mkdir(parents=True, exist_ok=True)
        list_path = directory / f"concat_list_{uuid.uuid4().hex}.txt"
        lines = [_concat_list_line(p) for p in options.input_paths]
        list_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        logger.debug(f"[Orchestrator] Wrote concat list {list_path}")
        return list_path

    def _remove_temp_file(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"[Orchestrator] Failed to remove temporary file {path}: {e}")

    async def _normalization_spec(self, options: ConcatenateOptions) -> TransformSpec:
        metadatas = [await self.backend.probe(p) for p in options.input_paths]

        if options.target_resolution is not None:
            width = options.target_resolution.width
            height = options.target_resolution.height
        else:
            width, height = metadatas[0].width, metadatas[0].height

        # yuv420p output needs even dimensions
        width -= width % 2
        height -= height % 2
        if width <= 0 or height <= 0:
            raise ValidationError("Cannot determine a target resolution for concatenation")

        include_audio = all(m.has_audio for m in metadatas)
        if not include_audio:
            logger.info("[Orchestrator] Not every input has audio; concatenating video only")

        graph, maps = build_normalization_graph(
            input_count=len(options.input_paths),
            width=width,
            height=height,
            fps=options.fps,
            include_audio=include_audio,
        )

        encoding = options.encoding.model_copy(
            update={
                "video_codec": options.encoding.video_codec or VideoCodec.H264,
                "audio_codec": options.encoding.audio_codec or AudioCodec.AAC,
            }
        )

        return TransformSpec(
            inputs=[TransformInput(path=p) for p in options.input_paths],
            output_path=options.output_path,
            encoding=encoding,
            filter_graph=graph,
            maps=maps,
        )

    # =========================================================================
    # Partition
    # =========================================================================

    async def partition(
        self,
        options: PartitionOptions,
        token: Optional[CancellationToken] = None,
    ) -> OperationResult:
        """
        Split options.input_path into segments under options.output_dir.

        Segments run one at a time with a short pause between them.
        A failing segment never stops the others: the result succeeds if
        any segment produced output and lists every failed segment in its
        error text.
        """
        started = time.monotonic()
        output_dir = Path(options.output_dir)

        try:
            self._preflight([options.input_path], output_dir)
            metadata = await self.backend.probe(options.input_path)
            segments = compute_segments(
                total_duration_ms(metadata),
                options.split_by,
                options.params,
                metadata.bit_rate,
            )
        except (ValidationError, BackendError) as e:
            logger.warning(f"[Orchestrator] Partition failed for {options.input_path}: {e}")
            return OperationResult.failed(str(e), _elapsed_ms(started))

        if not segments:
            return OperationResult.failed(
                f"No segments to produce: {options.input_path} has zero duration",
                _elapsed_ms(started),
            )

        logger.info(
            f"[Orchestrator] Partitioning {options.input_path} into {len(segments)} "
            f"segments by {options.split_by.value}"
        )

        output_paths: List[str] = []
        errors: List[str] = []

        for index, segment in enumerate(segments):
            number = index + 1

            if token is not None and token.cancelled:
                errors.append(f"segments {number}-{len(segments)} skipped: cancelled")
                break

            output_path = str(output_dir / split_file_name(
                options.input_path, index, options.name_pattern
            ))
            try:
                result = await self.extract(
                    ExtractOptions(
                        input_path=options.input_path,
                        output_path=output_path,
                        segment=segment,
                        encoding=options.encoding,
                    ),
                    token,
                )
            except Exception as e:
                logger.exception(f"[Orchestrator] Segment {number} of {options.input_path} raised")
                errors.append(f"segment {number} raised: {e}")
            else:
                if result.success:
                    output_paths.append(output_path)
                    try:
                        size = Path(output_path).stat().st_size
                    except OSError as e:
                        errors.append(f"segment {number} could not be verified: {e}")
                    else:
                        if size == 0:
                            errors.append(f"segment {number} produced an empty file")
                else:
                    errors.append(f"segment {number} failed: {result.error}")

            if index < len(segments) - 1:
                await asyncio.sleep(self.segment_pause_seconds)

        success = bool(output_paths)
        error: Optional[str] = None
        if errors:
            prefix = "Partial failure" if success else "All segments failed"
            error = f"{prefix}: " + "; ".join(errors)
            logger.warning(f"[Orchestrator] {error}")

        return OperationResult(
            success=success,
            output_paths=output_paths,
            elapsed_ms=_elapsed_ms(started),
            error=error,
        )

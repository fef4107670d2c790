"""
Shared fixtures for clipflow tests.

FakeBackend is a scripted in-memory MediaBackend: probes return canned
metadata, transforms write a small output file (or fail, or block until
released) so the orchestrator and scheduler run without ffmpeg.
"""

import asyncio
import sys
from pathlib import Path
from typing import Dict, List, Optional, Set

import pytest

# Add backend to path for imports
backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from clipflow.media.base import CancellationToken, MediaBackend
from clipflow.media.errors import ProbeError
from clipflow.media.models import (
    MediaMetadata,
    TransformOutcome,
    TransformSpec,
    TransformStatus,
)
from clipflow.operations.orchestrator import OperationOrchestrator
from clipflow.tasks.events import TaskEventBus
from clipflow.tasks.scheduler import TaskScheduler


def make_metadata(
    duration: float = 10.0,
    width: int = 1920,
    height: int = 1080,
    bit_rate: int = 8_000_000,
    has_audio: bool = True,
) -> MediaMetadata:
    return MediaMetadata(
        duration=duration,
        width=width,
        height=height,
        frame_rate=25.0,
        bit_rate=bit_rate,
        container_format="mov,mp4,m4a,3gp,3g2,mj2",
        codec="h264",
        size=int(duration * bit_rate / 8),
        has_audio=has_audio,
    )


class FakeBackend(MediaBackend):
    """Scripted backend for tests."""

    def __init__(self, metadata: Optional[MediaMetadata] = None):
        self.default_metadata = metadata or make_metadata()
        self.metadata: Dict[str, MediaMetadata] = {}
        self.probe_failures: Set[str] = set()
        self.fail_outputs: Set[str] = set()
        self.empty_outputs: Set[str] = set()
        self.raise_outputs: Set[str] = set()

        # When blocking, transforms (and probes) wait until release() or cancellation
        self.blocking = False
        self.blocking_probes = False
        self._released = False

        self.abort_confirms = True

        self.probes: List[str] = []
        self.specs: List[TransformSpec] = []
        self.concat_lists: List[str] = []
        self.started_outputs: List[str] = []
        self.running = 0
        self.max_running = 0
        self.aborted: List[str] = []

    @property
    def name(self) -> str:
        return "Fake"

    def release(self) -> None:
        self._released = True

    async def probe(self, path: str) -> MediaMetadata:
        self.probes.append(path)
        while self.blocking_probes and not self._released:
            await asyncio.sleep(0.001)
        if path in self.probe_failures:
            raise ProbeError(path, "No video stream found")
        return self.metadata.get(path, self.default_metadata)

    async def transform(
        self,
        spec: TransformSpec,
        token: Optional[CancellationToken] = None,
    ) -> TransformOutcome:
        self.specs.append(spec)
        self.started_outputs.append(spec.output_path)

        first = spec.inputs[0]
        if "concat" in first.options:
            self.concat_lists.append(Path(first.path).read_text(encoding="utf-8"))

        self.running += 1
        self.max_running = max(self.max_running, self.running)
        if token is not None:
            token.attach(self)
        try:
            while self.blocking and not self._released:
                if token is not None and token.cancelled:
                    break
                await asyncio.sleep(0.001)

            if token is not None and token.cancelled:
                return TransformOutcome(status=TransformStatus.ABORTED, reason="Cancelled by user")

            if spec.output_path in self.raise_outputs:
                raise RuntimeError("encoder crashed")

            if spec.output_path in self.fail_outputs:
                return TransformOutcome(
                    status=TransformStatus.FAILED,
                    reason="Conversion failed!",
                    exit_code=1,
                )

            content = b"" if spec.output_path in self.empty_outputs else b"media"
            Path(spec.output_path).write_bytes(content)
            return TransformOutcome(status=TransformStatus.COMPLETED, exit_code=0)
        finally:
            self.running -= 1
            if token is not None:
                token.detach()

    def abort(self, token: CancellationToken) -> bool:
        self.aborted.append(token.label)
        if not self.abort_confirms or token.handle is None:
            return False
        token.cancel()
        return True


async def wait_until(predicate, timeout: float = 2.0) -> None:
    """Poll the event loop until predicate() is true."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not reached before timeout")
        await asyncio.sleep(0.001)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def orchestrator(backend):
    return OperationOrchestrator(backend, segment_pause_seconds=0)


@pytest.fixture
def events():
    return TaskEventBus()


@pytest.fixture
def scheduler(orchestrator, backend, events):
    return TaskScheduler(orchestrator, backend, max_concurrent=2, events=events)


@pytest.fixture
def source_file(tmp_path):
    path = tmp_path / "clip.mp4"
    path.write_bytes(b"source")
    return path


@pytest.fixture
def source_files(tmp_path):
    paths = []
    for name in ("a.mp4", "b.mp4", "c.mp4"):
        path = tmp_path / name
        path.write_bytes(b"source")
        paths.append(path)
    return paths

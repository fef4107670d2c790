"""
Application context.

The process entry point builds one AppContext and owns its lifetime.
Nothing here is a module-level singleton.
"""

from dataclasses import dataclass
from typing import Optional

from .config import Settings
from .media.base import MediaBackend
from .media.ffmpeg import FFmpegBackend
from .operations.orchestrator import OperationOrchestrator
from .tasks.events import TaskEventBus
from .tasks.scheduler import TaskScheduler


@dataclass
class AppContext:
    """Wired-together components for one process."""

    settings: Settings
    backend: MediaBackend
    orchestrator: OperationOrchestrator
    scheduler: TaskScheduler
    events: TaskEventBus


def build_context(
    settings: Optional[Settings] = None,
    backend: Optional[MediaBackend] = None,
) -> AppContext:
    """
    Construct backend, orchestrator and scheduler from settings.

    Args:
        settings: Settings to use (environment settings if None)
        backend: Media backend override (FFmpegBackend if None)
    """
    settings = settings or Settings.from_env()

    if backend is None:
        backend = FFmpegBackend(
            ffmpeg_binary=settings.ffmpeg_binary,
            ffprobe_binary=settings.ffprobe_binary,
            abort_grace_seconds=settings.abort_grace_seconds,
            preserve_metadata=settings.preserve_metadata,
        )

    orchestrator = OperationOrchestrator(
        backend,
        segment_pause_seconds=settings.segment_pause_seconds,
        temp_dir=settings.temp_dir,
    )
    events = TaskEventBus()
    scheduler = TaskScheduler(
        orchestrator,
        backend,
        max_concurrent=settings.max_concurrent_tasks,
        events=events,
    )

    return AppContext(
        settings=settings,
        backend=backend,
        orchestrator=orchestrator,
        scheduler=scheduler,
        events=events,
    )

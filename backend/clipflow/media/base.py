"""
Media backend abstraction layer.

The orchestrator only talks to MediaBackend. The backend probes files and
performs transforms; it is opaque to the scheduling core.

Design rules:
- Backends are stateless apart from in-flight process tracking
- Cancellation is advisory: abort() may be unable to confirm it took effect
- A CancellationToken is passed into every transform so in-flight work can
  be found and stopped
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from .models import MediaMetadata, TransformOutcome, TransformSpec


class CancellationToken:
    """
    Cooperative cancellation handle for one operation invocation.

    The scheduler creates one token per task. The backend attaches the
    handle of whatever it is currently running so abort() can reach it.
    Once cancelled, a token stays cancelled.
    """

    def __init__(self, label: str = ""):
        self.label = label
        self._cancelled = False
        self._handle: Optional[Any] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def handle(self) -> Optional[Any]:
        """The backend handle currently attached, if any."""
        return self._handle

    def cancel(self) -> None:
        self._cancelled = True

    def attach(self, handle: Any) -> None:
        self._handle = handle

    def detach(self) -> None:
        self._handle = None

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "active"
        return f"CancellationToken({self.label!r}, {state})"


class MediaBackend(ABC):
    """
    Abstract base class for media backends.

    All backends must implement:
    - probe: Read metadata from a media file
    - transform: Run one transform to completion, failure or abort
    - abort: Best-effort cancellation of an in-flight transform
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable backend name for logs."""
        pass

    @abstractmethod
    async def probe(self, path: str) -> MediaMetadata:
        """
        Probe a media file.

        Raises:
            ProbeError: If the path is not readable as media or has no
                video stream
        """
        pass

    @abstractmethod
    async def transform(
        self,
        spec: TransformSpec,
        token: Optional[CancellationToken] = None,
    ) -> TransformOutcome:
        """
        Perform a transform and report how it ended.

        Backend failures are reported as a FAILED outcome rather than
        raised. A transform whose token is already cancelled must not
        start and reports ABORTED.
        """
        pass

    @abstractmethod
    def abort(self, token: CancellationToken) -> bool:
        """
        Request abort of the transform attached to token.

        Marks the token cancelled only when the abort is confirmed; an
        unconfirmed abort leaves the transform running untouched.

        Returns:
            True if an in-flight transform was stopped, False if the
            backend could not confirm the abort
        """
        pass

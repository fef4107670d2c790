"""
Media backend error types.

All errors inherit from BackendError for easy catching.
Backend errors are never fatal to the scheduler; the orchestrator
converts them into failed operation results.
"""

from typing import Optional


class BackendError(Exception):
    """Base exception for all media backend failures."""
    pass


class BackendNotAvailableError(BackendError):
    """Raised when a required backend binary cannot be found."""
    
    def __init__(self, binary: str):
        self.binary = binary
        super().__init__(
            f"{binary} not found. Install ffmpeg and ensure it is available in PATH."
        )


class ProbeError(BackendError):
    """Raised when a file cannot be probed as media."""
    
    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to probe {path}: {reason}")


class TransformError(BackendError):
    """Raised when the backend reports a failed transform."""
    
    def __init__(self, reason: str, exit_code: Optional[int] = None):
        self.reason = reason
        self.exit_code = exit_code
        message = reason
        if exit_code is not None:
            message += f" (exit code: {exit_code})"
        super().__init__(message)


class TransformAbortedError(TransformError):
    """Raised when a transform was stopped by a cancellation request."""
    
    def __init__(self, reason: str = "Operation aborted"):
        super().__init__(reason)

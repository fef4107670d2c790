"""
Operation-specific error types.

All errors inherit from OperationError for easy catching.
ValidationError and its subclasses are always resolved by the
orchestrator into a failed OperationResult; they never reach the
scheduler as faults.
"""


class OperationError(Exception):
    """Base exception for all operation failures."""
    pass


class ValidationError(OperationError):
    """Raised when an operation request is invalid."""
    
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InputNotFoundError(ValidationError):
    """Raised when an input file does not exist."""
    
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Input file not found: {path}")


class SegmentOutOfBoundsError(ValidationError):
    """Raised when a time segment ends after the media does."""
    
    def __init__(self, start_ms: int, end_ms: int, duration_ms: float):
        self.start_ms = start_ms
        self.end_ms = end_ms
        self.duration_ms = duration_ms
        super().__init__(
            f"Segment out of bounds: [{start_ms}, {end_ms}) ms exceeds "
            f"media duration of {duration_ms:.0f} ms"
        )


class MissingParameterError(ValidationError):
    """Raised when a split mode is missing its required parameter."""
    
    def __init__(self, split_by: str, parameter: str):
        self.split_by = split_by
        self.parameter = parameter
        super().__init__(
            f"Split by '{split_by}' requires the '{parameter}' parameter"
        )


class UnknownOperationError(ValidationError):
    """Raised when a descriptor names an operation kind that does not exist."""
    
    def __init__(self, kind: object):
        self.kind = kind
        super().__init__(f"Unknown operation kind: {kind!r}")

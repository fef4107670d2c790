"""
Operation orchestration: extract, concatenate, partition.

Option models form a tagged union keyed by kind. The orchestrator
computes segment boundaries, chooses a concat strategy and aggregates
partial results; the media backend does the actual work.
"""

from .errors import (
    OperationError,
    ValidationError,
    InputNotFoundError,
    SegmentOutOfBoundsError,
    MissingParameterError,
    UnknownOperationError,
)
from .models import (
    OperationKind,
    SplitBy,
    TimeSegment,
    Resolution,
    ExtractOptions,
    ConcatenateOptions,
    PartitionParams,
    PartitionOptions,
    OperationRequest,
    OperationResult,
    parse_request,
)
from .segments import compute_segments, split_file_name
from .orchestrator import OperationOrchestrator

__all__ = [
    # Errors
    "OperationError",
    "ValidationError",
    "InputNotFoundError",
    "SegmentOutOfBoundsError",
    "MissingParameterError",
    "UnknownOperationError",
    # Models
    "OperationKind",
    "SplitBy",
    "TimeSegment",
    "Resolution",
    "ExtractOptions",
    "ConcatenateOptions",
    "PartitionParams",
    "PartitionOptions",
    "OperationRequest",
    "OperationResult",
    "parse_request",
    # Segment math
    "compute_segments",
    "split_file_name",
    # Orchestrator
    "OperationOrchestrator",
]

"""
Operation data models.

Each operation kind carries its own strongly-typed options model. The
three are combined into OperationRequest, a tagged union discriminated
by the `kind` field, so dispatch can match on kind exhaustively.

Times are integer milliseconds throughout.
"""

from enum import Enum
from typing import Annotated, Any, List, Literal, Mapping, Optional, Union
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError as PydanticValidationError,
    model_validator,
)

from ..media.models import EncodingOptions
from .errors import UnknownOperationError, ValidationError


class OperationKind(str, Enum):
    """Supported operation kinds."""

    EXTRACT = "extract"  # Single time-window cut
    CONCATENATE = "concatenate"  # Join multiple inputs
    PARTITION = "partition"  # Split one input into many


class SplitBy(str, Enum):
    """How a partition computes its segments."""

    DURATION = "duration"  # Fixed-length windows
    SEGMENTS = "segments"  # N equal windows
    SIZE = "size"  # Windows estimated from a size cap and bit rate


class TimeSegment(BaseModel):
    """
    Half-open time window [start, end) in milliseconds.

    Invariant: 0 <= start < end.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    start: int
    end: int

    @model_validator(mode="after")
    def validate_order(self) -> "TimeSegment":
        if self.start < 0:
            raise ValueError("Segment start must be non-negative")
        if self.end <= self.start:
            raise ValueError("Segment end must be greater than start")
        return self

    @property
    def length_ms(self) -> int:
        return self.end - self.start


class Resolution(BaseModel):
    """Target frame size."""

    model_config = ConfigDict(extra="forbid")

    width: int = Field(gt=0)
    height: int = Field(gt=0)


class ExtractOptions(BaseModel):
    """Cut one time segment out of an input."""

    model_config = ConfigDict(extra="forbid")

    kind: Literal["extract"] = "extract"
    input_path: str
    output_path: str
    segment: TimeSegment
    encoding: EncodingOptions = Field(default_factory=EncodingOptions)


class ConcatenateOptions(BaseModel):
    """
    Join inputs end to end.

    With no encoding options, target resolution or fps, inputs are joined
    by stream copy. Anything else selects the normalization path.
    """

    model_config = ConfigDict(extra="forbid")

    kind: Literal["concatenate"] = "concatenate"
    input_paths: List[str] = Field(min_length=1)
    output_path: str
    encoding: EncodingOptions = Field(default_factory=EncodingOptions)
    target_resolution: Optional[Resolution] = None
    fps: Optional[float] = Field(default=None, gt=0)

    @property
    def requires_normalization(self) -> bool:
        return (
            self.encoding.requests_reencode
            or self.target_resolution is not None
            or self.fps is not None
        )


class PartitionParams(BaseModel):
    """
    Split parameters. Which one is required depends on SplitBy.

    duration is in seconds, max_size in megabytes.
    """

    model_config = ConfigDict(extra="forbid")

    duration: Optional[float] = Field(default=None, gt=0)
    segment_count: Optional[int] = Field(default=None, gt=0)
    max_size: Optional[float] = Field(default=None, gt=0)


class PartitionOptions(BaseModel):
    """Split one input into consecutive segments."""

    model_config = ConfigDict(extra="forbid")

    kind: Literal["partition"] = "partition"
    input_path: str
    output_dir: str
    split_by: SplitBy
    params: PartitionParams = Field(default_factory=PartitionParams)
    name_pattern: Optional[str] = None
    encoding: EncodingOptions = Field(default_factory=EncodingOptions)


OperationRequest = Annotated[
    Union[ExtractOptions, ConcatenateOptions, PartitionOptions],
    Field(discriminator="kind"),
]

_REQUEST_ADAPTER: TypeAdapter = TypeAdapter(OperationRequest)

_OPTION_TYPES = (ExtractOptions, ConcatenateOptions, PartitionOptions)


class OperationResult(BaseModel):
    """
    Outcome of one operation.

    success=True requires at least one output path. A result may carry
    both outputs and an error (partial success).
    """

    model_config = ConfigDict(extra="forbid")

    success: bool
    output_paths: List[str] = Field(default_factory=list)
    elapsed_ms: int = 0
    error: Optional[str] = None

    @model_validator(mode="after")
    def validate_outputs(self) -> "OperationResult":
        if self.success and not self.output_paths:
            raise ValueError("A successful result must have at least one output path")
        return self

    @classmethod
    def failed(cls, error: str, elapsed_ms: int = 0) -> "OperationResult":
        return cls(success=False, output_paths=[], elapsed_ms=elapsed_ms, error=error)


def parse_request(descriptor: Any) -> OperationRequest:
    """
    Turn a task descriptor into a typed OperationRequest.

    Accepts an options model directly, a {"kind", "options"} mapping, or
    a flat mapping that includes "kind".

    Raises:
        UnknownOperationError: If the kind is not recognised
        ValidationError: If the options do not validate
    """
    if isinstance(descriptor, _OPTION_TYPES):
        return descriptor

    if not isinstance(descriptor, Mapping):
        raise ValidationError(
            f"Descriptor must be a mapping or options model, got {type(descriptor).__name__}"
        )

    kind = descriptor.get("kind")
    if isinstance(kind, OperationKind):
        kind = kind.value
    if not isinstance(kind, str) or kind not in {k.value for k in OperationKind}:
        raise UnknownOperationError(kind)

    if "options" in descriptor:
        options = descriptor["options"]
        if isinstance(options, _OPTION_TYPES):
            if options.kind != kind:
                raise ValidationError(
                    f"Descriptor kind '{kind}' does not match options kind '{options.kind}'"
                )
            return options
        if not isinstance(options, Mapping):
            raise ValidationError(f"Options for '{kind}' must be a mapping")
        data = {**options, "kind": kind}
    else:
        data = dict(descriptor)

    try:
        return _REQUEST_ADAPTER.validate_python(data)
    except PydanticValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'][1:]) or kind}: {err['msg']}"
            for err in e.errors()
        )
        raise ValidationError(f"Invalid {kind} options: {details}")

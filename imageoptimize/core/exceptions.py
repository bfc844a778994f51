from typing import Dict, List, Optional, TypedDict, Union


class DecodeDetails(TypedDict, total=False):
    """Type-safe details for decode errors."""

    format: str
    reason: str
    input_size: int
    dimensions: tuple[int, int]


class EncodeDetails(TypedDict, total=False):
    """Type-safe details for encode errors."""

    codec: str
    reason: str
    quality: Union[int, float]
    dimensions: tuple[int, int]


class ProcessingDetails(TypedDict, total=False):
    """Type-safe details for processing timeout errors."""

    codec: str
    timeout_seconds: float
    elapsed_seconds: float
    codecs: List[str]


class SourceDetails(TypedDict, total=False):
    """Type-safe details for source loading errors."""

    source_kind: str
    timeout_seconds: float
    status_code: int
    reason: str


# Union type for all possible error details
ErrorDetails = Union[
    DecodeDetails,
    EncodeDetails,
    ProcessingDetails,
    SourceDetails,
    Dict[str, Union[str, int, float, bool, List[str]]],  # Fallback for edge cases
]


class ImageOptimizeError(Exception):
    """Base exception for all image optimizer errors."""

    def __init__(
        self,
        message: str,
        error_code: str,
        details: Optional[ErrorDetails] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}


class UnsupportedFormatError(ImageOptimizeError):
    """Raised when no known decoder recognizes the input signature."""

    def __init__(self, message: str, details: Optional[DecodeDetails] = None):
        super().__init__(message=message, error_code="OPT101", details=details)


class DecodeError(ImageOptimizeError):
    """Raised when the signature matched but the payload cannot be decoded."""

    def __init__(self, format: str, reason: str, details: Optional[DecodeDetails] = None):
        merged: DecodeDetails = {"format": format, "reason": reason}
        if details:
            merged.update(details)
        super().__init__(
            message=f"Failed to decode {format} image: {reason}",
            error_code="OPT102",
            details=merged,
        )
        self.format = format
        self.reason = reason


class EncodeError(ImageOptimizeError):
    """Raised when a codec fails to encode a buffer."""

    def __init__(self, codec: str, reason: str, details: Optional[EncodeDetails] = None):
        merged: EncodeDetails = {"codec": codec, "reason": reason}
        if details:
            merged.update(details)
        super().__init__(
            message=f"Failed to encode {codec} image: {reason}",
            error_code="OPT201",
            details=merged,
        )
        self.codec = codec
        self.reason = reason


class DimensionMismatchError(ImageOptimizeError):
    """Raised when two pixel buffers of different sizes are compared."""

    def __init__(self, expected: tuple[int, int], actual: tuple[int, int]):
        super().__init__(
            message=(
                f"Cannot compare {expected[0]}x{expected[1]} "
                f"with {actual[0]}x{actual[1]}"
            ),
            error_code="OPT202",
            details={"expected": f"{expected[0]}x{expected[1]}",
                     "actual": f"{actual[0]}x{actual[1]}"},
        )
        self.expected = expected
        self.actual = actual


class NoCodecsEnabledError(ImageOptimizeError):
    """Raised when an optimization is requested with no codecs allowed."""

    def __init__(self, message: str = "No codecs are enabled for optimization"):
        super().__init__(
            message=message,
            error_code="OPT301",
            details={"config_key": "allowed_codecs"},
        )


class CodecTimeoutError(ImageOptimizeError):
    """Raised when a single codec search exceeds its timeout."""

    def __init__(self, codec: str, timeout_seconds: float):
        super().__init__(
            message=f"{codec} search exceeded {timeout_seconds:g}s",
            error_code="OPT401",
            details={"codec": codec, "timeout_seconds": timeout_seconds},
        )
        self.codec = codec


class OptimizationTimedOutError(ImageOptimizeError):
    """Raised when every codec search timed out."""

    def __init__(self, codecs: List[str]):
        super().__init__(
            message=f"All codec searches timed out: {', '.join(codecs)}",
            error_code="OPT402",
            details={"codecs": codecs},
        )


class NoCandidatesError(ImageOptimizeError):
    """Raised when no codec produced a candidate at all."""

    def __init__(self, failures: Dict[str, str]):
        summary = "; ".join(f"{codec}: {reason}" for codec, reason in failures.items())
        super().__init__(
            message=f"No codec produced a candidate ({summary})",
            error_code="OPT403",
            details={"codecs": list(failures)},
        )
        self.failures = failures


class SourceFetchError(ImageOptimizeError):
    """Raised when source bytes cannot be obtained."""

    def __init__(self, message: str, details: Optional[SourceDetails] = None):
        super().__init__(message=message, error_code="OPT501", details=details)

"""Find the smallest encoding of an image that still meets a perceptual quality bar."""

from imageoptimize.core.exceptions import (
    DecodeError,
    DimensionMismatchError,
    EncodeError,
    ImageOptimizeError,
    NoCandidatesError,
    NoCodecsEnabledError,
    OptimizationTimedOutError,
    SourceFetchError,
    UnsupportedFormatError,
)
from imageoptimize.core.optimization import ImageOptimizer, optimize_image
from imageoptimize.models import (
    CodecTarget,
    OptimizationConfig,
    OptimizationResult,
    OptimizationStatus,
    QualityRange,
)

__version__ = "0.1.0"

__all__ = [
    "CodecTarget",
    "DecodeError",
    "DimensionMismatchError",
    "EncodeError",
    "ImageOptimizeError",
    "ImageOptimizer",
    "NoCandidatesError",
    "NoCodecsEnabledError",
    "OptimizationConfig",
    "OptimizationResult",
    "OptimizationStatus",
    "OptimizationTimedOutError",
    "QualityRange",
    "SourceFetchError",
    "UnsupportedFormatError",
    "optimize_image",
]

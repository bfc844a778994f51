"""Data models for the image optimizer."""

from imageoptimize.models.optimization import (
    CandidateSummary,
    CodecTarget,
    OptimizationConfig,
    OptimizationResult,
    OptimizationStatus,
    QualityDomain,
    QualityRange,
)

__all__ = [
    "CandidateSummary",
    "CodecTarget",
    "OptimizationConfig",
    "OptimizationResult",
    "OptimizationStatus",
    "QualityDomain",
    "QualityRange",
]

"""Data models for the optimization configuration and results."""

import os
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from imageoptimize.core.constants import (
    AVIF_SPEED,
    CODEC_QUALITY_DOMAINS,
    DEFAULT_CODEC_PRIORITY,
    DEFAULT_CODEC_TIMEOUT,
    DEFAULT_MAX_SEARCH_ITERATIONS,
    DEFAULT_QUALITY_RANGES,
    DEFAULT_QUALITY_THRESHOLD,
    DEFAULT_REAL_EPSILON,
    WEBP_METHOD,
)


@dataclass(frozen=True)
class QualityDomain:
    """Closed range of a codec's quality parameter.

    ``ascending`` is True when a larger parameter yields higher fidelity
    (and, in expectation, larger output). Searches start from the high
    fidelity end and move toward the other one.
    """

    minimum: float
    maximum: float
    integer: bool = True
    ascending: bool = True
    epsilon: float = DEFAULT_REAL_EPSILON

    def __post_init__(self) -> None:
        if self.minimum > self.maximum:
            raise ValueError("domain minimum must be <= maximum")

    def contains(self, value: Union[int, float]) -> bool:
        if self.integer and int(value) != value:
            return False
        return self.minimum <= value <= self.maximum

    def narrowed(self, low: Union[int, float], high: Union[int, float]) -> "QualityDomain":
        """Return the same domain limited to ``[low, high]``."""
        return QualityDomain(
            minimum=low,
            maximum=high,
            integer=self.integer,
            ascending=self.ascending,
            epsilon=self.epsilon,
        )

    @property
    def best(self) -> Union[int, float]:
        """Highest-fidelity end of the domain."""
        return self.maximum if self.ascending else self.minimum


class CodecTarget(str, Enum):
    """Target codecs the optimizer can produce."""

    JPEG = "jpeg"
    PNG = "png"
    WEBP = "webp"
    AVIF = "avif"

    @property
    def domain(self) -> QualityDomain:
        minimum, maximum = CODEC_QUALITY_DOMAINS[self.value]
        return QualityDomain(minimum=minimum, maximum=maximum)

    @property
    def supports_lossless(self) -> bool:
        # Palette PNG is lossless once the colors fit the palette
        return self is CodecTarget.PNG


class QualityRange(BaseModel):
    """Search bounds for one codec."""

    model_config = ConfigDict(frozen=True)

    min_quality: int = Field(..., ge=0, description="Lowest quality parameter tried")
    max_quality: int = Field(..., ge=0, description="Highest quality parameter tried")

    @model_validator(mode="after")
    def validate_quality_range(self) -> "QualityRange":
        """Ensure max_quality >= min_quality."""
        if self.max_quality < self.min_quality:
            raise ValueError("max_quality must be >= min_quality")
        return self


def _default_priority(codec: CodecTarget) -> int:
    return DEFAULT_CODEC_PRIORITY.index(codec.value)


class OptimizationConfig(BaseModel):
    """Immutable configuration threaded through one optimization call."""

    model_config = ConfigDict(frozen=True)

    allowed_codecs: Tuple[CodecTarget, ...] = Field(
        default=tuple(CodecTarget(name) for name in DEFAULT_CODEC_PRIORITY),
        description="Codecs to try; order is the tie-break priority",
    )
    quality_threshold: float = Field(
        default=DEFAULT_QUALITY_THRESHOLD,
        ge=0.0,
        description="Maximum acceptable dissimilarity score",
    )
    quality_ranges: Dict[CodecTarget, QualityRange] = Field(
        default_factory=dict, description="Per-codec search bound overrides"
    )
    max_search_iterations: int = Field(
        default=DEFAULT_MAX_SEARCH_ITERATIONS,
        ge=1,
        le=64,
        description="Maximum encode/score evaluations per codec",
    )
    codec_timeout: Optional[float] = Field(
        default=DEFAULT_CODEC_TIMEOUT,
        gt=0,
        description="Per-codec search timeout in seconds (None disables)",
    )
    codec_timeouts: Dict[CodecTarget, float] = Field(
        default_factory=dict, description="Per-codec timeout overrides"
    )
    prefer_smallest: bool = Field(
        default=True,
        description="Break equal-size ties by codec priority (False: by score first)",
    )
    max_workers: Optional[int] = Field(
        default=None, ge=1, description="Worker pool size (defaults to CPU count)"
    )

    # Encoder knobs
    jpeg_progressive: bool = Field(default=True, description="Progressive JPEG")
    webp_method: int = Field(default=WEBP_METHOD, ge=0, le=6, description="WebP effort")
    avif_speed: int = Field(default=AVIF_SPEED, ge=0, le=10, description="AVIF speed")
    png_dithering: bool = Field(
        default=False, description="Dither when quantizing to a palette"
    )

    @field_validator("allowed_codecs", mode="before")
    @classmethod
    def normalize_codecs(cls, v: Any) -> Any:
        """Accept strings, sets and lists; drop duplicates keeping order."""
        if isinstance(v, str):
            v = [item.strip() for item in v.split(",") if item.strip()]
        if isinstance(v, (set, frozenset)):
            v = sorted((CodecTarget(item) for item in v), key=_default_priority)
        ordered: List[CodecTarget] = []
        for item in v:
            codec = CodecTarget(item)
            if codec not in ordered:
                ordered.append(codec)
        return tuple(ordered)

    @field_validator("quality_ranges")
    @classmethod
    def validate_ranges_in_domain(
        cls, v: Dict[CodecTarget, QualityRange]
    ) -> Dict[CodecTarget, QualityRange]:
        for codec, quality_range in v.items():
            domain = codec.domain
            if not (
                domain.contains(quality_range.min_quality)
                and domain.contains(quality_range.max_quality)
            ):
                raise ValueError(
                    f"{codec.value} quality range must lie within "
                    f"{domain.minimum:g}-{domain.maximum:g}"
                )
        return v

    @field_validator("codec_timeouts")
    @classmethod
    def validate_timeouts(cls, v: Dict[CodecTarget, float]) -> Dict[CodecTarget, float]:
        for codec, timeout in v.items():
            if timeout <= 0:
                raise ValueError(f"{codec.value} timeout must be positive")
        return v

    def range_for(self, codec: CodecTarget) -> QualityDomain:
        """Search domain for a codec: its hard domain narrowed to the configured bounds."""
        quality_range = self.quality_ranges.get(codec)
        if quality_range is None:
            low, high = DEFAULT_QUALITY_RANGES[codec.value]
        else:
            low, high = quality_range.min_quality, quality_range.max_quality
        return codec.domain.narrowed(low, high)

    def timeout_for(self, codec: CodecTarget) -> Optional[float]:
        return self.codec_timeouts.get(codec, self.codec_timeout)

    def priority_of(self, codec: CodecTarget) -> int:
        """Position of the codec in the declared order (lower wins ties)."""
        if codec in self.allowed_codecs:
            return self.allowed_codecs.index(codec)
        return len(self.allowed_codecs) + _default_priority(codec)

    @property
    def worker_count(self) -> int:
        return self.max_workers or os.cpu_count() or 1


class OptimizationStatus(str, Enum):
    """Outcome of a successful optimization call."""

    THRESHOLD_MET = "threshold_met"
    BEST_EFFORT = "best_effort"


class CandidateSummary(BaseModel):
    """Per-codec search outcome without the encoded bytes."""

    codec: CodecTarget
    quality: Union[int, float] = Field(..., description="Chosen quality parameter")
    size: int = Field(..., ge=0, description="Encoded size in bytes")
    score: float = Field(..., ge=0.0, description="Dissimilarity against the source")
    threshold_met: bool
    evaluations: int = Field(..., ge=1, description="Encode/score cycles run")


class OptimizationResult(BaseModel):
    """Winning candidate of one optimization call."""

    codec: CodecTarget
    quality: Union[int, float] = Field(..., description="Winning quality parameter")
    data: bytes = Field(..., repr=False, description="Encoded output")
    size: int = Field(..., ge=0, description="Output size in bytes")
    score: float = Field(..., ge=0.0, description="Dissimilarity against the source")
    original_size: int = Field(..., ge=0, description="Input size in bytes")
    source_format: str = Field(..., description="Detected input format")
    status: OptimizationStatus
    threshold_met: bool
    size_improved: bool = Field(
        ..., description="False when the output is not smaller than the input"
    )
    candidates: List[CandidateSummary] = Field(default_factory=list)
    timed_out_codecs: List[CodecTarget] = Field(default_factory=list)
    failed_codecs: Dict[CodecTarget, str] = Field(default_factory=dict)
    processing_time: float = Field(default=0.0, ge=0.0, description="Seconds")

    @property
    def compression_ratio(self) -> float:
        """Output size relative to the input (1.0 means unchanged)."""
        if self.original_size == 0:
            return 1.0
        return self.size / self.original_size

    @property
    def size_reduction_percent(self) -> float:
        """File size reduction percentage (0-100)."""
        if self.original_size == 0:
            return 0.0
        reduction = (self.original_size - self.size) / self.original_size * 100
        return max(0.0, min(100.0, reduction))

    def summary(self) -> Dict[str, Any]:
        """JSON-friendly view of the result without the encoded bytes."""
        return self.model_dump(mode="json", exclude={"data"})

"""Bounded binary search for the smallest passing quality parameter of one codec."""

import time
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union

from imageoptimize.core.conversion.formats.base import BaseCodecAdapter
from imageoptimize.core.conversion.pixel_buffer import SourceImage
from imageoptimize.core.exceptions import CodecTimeoutError
from imageoptimize.core.optimization.quality_analyzer import PerceptualScorer
from imageoptimize.models.optimization import (
    CodecTarget,
    OptimizationConfig,
    QualityDomain,
)
from imageoptimize.utils.logging import get_logger

logger = get_logger(__name__)

Quality = Union[int, float]


@dataclass(frozen=True)
class SearchStep:
    """Represents a single encode/decode/score evaluation."""

    step: int
    quality: Quality
    size: int
    score: float
    passed: bool
    seconds: float = 0.0


@dataclass(frozen=True)
class EncodeCandidate:
    """One codec's chosen encoding of the source."""

    codec: CodecTarget
    quality: Quality
    data: bytes = field(repr=False)
    size: int
    score: float
    threshold_met: bool
    steps: Tuple[SearchStep, ...] = ()

    @property
    def evaluations(self) -> int:
        return len(self.steps)


class QualitySearch:
    """Binary search over a codec's quality domain.

    The highest-fidelity end of the configured range is evaluated first. If
    it already misses the threshold the codec cannot meet the bar and that
    evaluation is returned as a non-passing candidate. Otherwise the search
    narrows the bracket between the last passing and the last failing
    parameter, assuming the score is (approximately) monotonic in the
    parameter, and returns the smallest passing encoding it saw.
    """

    def __init__(self, scorer: Optional[PerceptualScorer] = None):
        self.scorer = scorer or PerceptualScorer()

    def run(
        self,
        adapter: BaseCodecAdapter,
        source: SourceImage,
        config: OptimizationConfig,
        deadline: Optional[float] = None,
        domain: Optional[QualityDomain] = None,
    ) -> EncodeCandidate:
        """Search one codec.

        Args:
            adapter: Codec adapter to encode with
            source: Decoded source image
            config: Optimization configuration
            deadline: ``time.monotonic()`` value after which no further
                evaluation is started
            domain: Search domain (defaults to the configured range of the codec)

        Returns:
            Best candidate for the codec

        Raises:
            CodecTimeoutError: Deadline passed between two evaluations
            EncodeError: The codec failed to encode
            DecodeError: The codec's own output could not be decoded
            DimensionMismatchError: The decoded output changed size
        """
        codec = adapter.target
        domain = domain or config.range_for(codec)
        threshold = config.quality_threshold
        steps: List[SearchStep] = []
        passing: List[Tuple[Quality, bytes, float]] = []

        def evaluate(quality: Quality) -> Tuple[bytes, float, bool]:
            if deadline is not None and time.monotonic() >= deadline:
                raise CodecTimeoutError(codec.value, config.timeout_for(codec) or 0.0)

            started = time.perf_counter()
            data, decoded = adapter.encode_and_decode(source.buffer, quality)
            score = self.scorer.score(source.buffer, decoded)
            passed = score <= threshold

            step = SearchStep(
                step=len(steps) + 1,
                quality=quality,
                size=len(data),
                score=score,
                passed=passed,
                seconds=time.perf_counter() - started,
            )
            steps.append(step)
            logger.debug(
                "Search step",
                codec=codec.value,
                step=step.step,
                quality=quality,
                size=step.size,
                score=round(score, 4),
                passed=passed,
            )
            if passed:
                passing.append((quality, data, score))
            return data, score, passed

        best_quality = domain.best
        data, score, passed = evaluate(best_quality)
        if not passed:
            logger.debug(
                "Threshold not reachable",
                codec=codec.value,
                quality=best_quality,
                score=round(score, 4),
                threshold=threshold,
            )
            return EncodeCandidate(
                codec=codec,
                quality=best_quality,
                data=data,
                size=len(data),
                score=score,
                threshold_met=False,
                steps=tuple(steps),
            )

        pass_quality = best_quality
        fail_quality = self._outside_worst(domain)
        evaluated = {best_quality}

        while len(steps) < config.max_search_iterations:
            if not self._bracket_open(domain, pass_quality, fail_quality):
                break
            quality = self._midpoint(domain, pass_quality, fail_quality)
            if quality in evaluated:
                break
            evaluated.add(quality)

            _, _, passed = evaluate(quality)
            if passed:
                pass_quality = quality
            else:
                fail_quality = quality

        quality, data, score = min(passing, key=lambda item: self._rank(domain, item))
        return EncodeCandidate(
            codec=codec,
            quality=quality,
            data=data,
            size=len(data),
            score=score,
            threshold_met=True,
            steps=tuple(steps),
        )

    @staticmethod
    def _outside_worst(domain: QualityDomain) -> Quality:
        """Virtual failing parameter just beyond the low-fidelity end."""
        offset = 1 if domain.integer else domain.epsilon
        if domain.ascending:
            return domain.minimum - offset
        return domain.maximum + offset

    @staticmethod
    def _bracket_open(domain: QualityDomain, pass_quality: Quality, fail_quality: Quality) -> bool:
        width = abs(pass_quality - fail_quality)
        if domain.integer:
            return width > 1
        return width > domain.epsilon

    @staticmethod
    def _midpoint(domain: QualityDomain, pass_quality: Quality, fail_quality: Quality) -> Quality:
        if domain.integer:
            midpoint = (int(pass_quality) + int(fail_quality)) // 2
        else:
            midpoint = (pass_quality + fail_quality) / 2.0
        return min(domain.maximum, max(domain.minimum, midpoint))

    @staticmethod
    def _rank(domain: QualityDomain, item: Tuple[Quality, bytes, float]) -> Tuple[int, Quality]:
        # Smallest output first, then the lower-fidelity parameter
        quality, data, _ = item
        return len(data), quality if domain.ascending else -quality

"""Optimizer: decode once, search every enabled codec in parallel, select a winner."""

import asyncio
import contextvars
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Optional, Union

from imageoptimize.core.conversion.decoder import decode_source
from imageoptimize.core.conversion.formats import get_codec_adapter
from imageoptimize.core.conversion.formats.base import BaseCodecAdapter
from imageoptimize.core.conversion.pixel_buffer import SourceImage
from imageoptimize.core.exceptions import (
    CodecTimeoutError,
    DecodeError,
    DimensionMismatchError,
    EncodeError,
    NoCandidatesError,
    NoCodecsEnabledError,
    OptimizationTimedOutError,
)
from imageoptimize.core.optimization.quality_analyzer import PerceptualScorer
from imageoptimize.core.optimization.quality_search import (
    EncodeCandidate,
    QualitySearch,
)
from imageoptimize.core.optimization.selection import select_candidate
from imageoptimize.models.optimization import (
    CandidateSummary,
    CodecTarget,
    OptimizationConfig,
    OptimizationResult,
    OptimizationStatus,
)
from imageoptimize.utils.logging import LoggingContext, get_logger

logger = get_logger(__name__)

AdapterFactory = Callable[[CodecTarget, OptimizationConfig], BaseCodecAdapter]
Outcome = Union[EncodeCandidate, BaseException]


class ImageOptimizer:
    """Finds the smallest encoding of an image that still meets a quality bar.

    Codec searches run on a bounded thread pool owned by the optimizer; the
    event loop only coordinates them. An instance holds no per-call state
    besides the pool, so it can serve concurrent calls.
    """

    def __init__(
        self,
        scorer: Optional[PerceptualScorer] = None,
        adapter_factory: AdapterFactory = get_codec_adapter,
        max_workers: Optional[int] = None,
    ):
        """Initialize the optimizer.

        Args:
            scorer: Perceptual scorer shared by every search
            adapter_factory: Builds the codec adapter for a target
            max_workers: Worker pool size (defaults to the CPU count)
        """
        self.scorer = scorer or PerceptualScorer()
        self.search = QualitySearch(self.scorer)
        self.adapter_factory = adapter_factory
        self.max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None

    @property
    def executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.max_workers, thread_name_prefix="imageoptimize"
            )
        return self._executor

    def close(self) -> None:
        """Shut the worker pool down."""
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self) -> "ImageOptimizer":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    async def optimize(
        self, data: bytes, config: Optional[OptimizationConfig] = None
    ) -> OptimizationResult:
        """Optimize one image.

        Args:
            data: Raw input image bytes
            config: Optimization configuration (defaults apply when omitted)

        Returns:
            OptimizationResult for the winning codec

        Raises:
            NoCodecsEnabledError: ``allowed_codecs`` is empty
            UnsupportedFormatError: Input signature not recognized
            DecodeError: Input recognized but not decodable
            OptimizationTimedOutError: Every codec search timed out
            NoCandidatesError: No codec produced a candidate
        """
        config = config or OptimizationConfig()
        if not config.allowed_codecs:
            raise NoCodecsEnabledError()

        start_time = time.perf_counter()
        loop = asyncio.get_running_loop()

        with LoggingContext(optimization_id=str(uuid.uuid4())):
            source = await loop.run_in_executor(
                self.executor, contextvars.copy_context().run, decode_source, data
            )

            codecs = list(config.allowed_codecs)
            limiter = asyncio.Semaphore(config.worker_count)
            outcomes = await asyncio.gather(
                *(self._search_codec(codec, source, config, limiter) for codec in codecs),
                return_exceptions=True,
            )

            candidates: List[EncodeCandidate] = []
            timed_out: List[CodecTarget] = []
            failed: Dict[CodecTarget, str] = {}
            for codec, outcome in zip(codecs, outcomes):
                self._classify(codec, outcome, config, candidates, timed_out, failed)

            if not candidates:
                if timed_out and len(timed_out) == len(codecs):
                    raise OptimizationTimedOutError([codec.value for codec in timed_out])
                failures = {codec.value: reason for codec, reason in failed.items()}
                failures.update({codec.value: "timed out" for codec in timed_out})
                raise NoCandidatesError(failures)

            winner = select_candidate(candidates, config)
            result = self._build_result(
                winner,
                source,
                candidates,
                timed_out,
                failed,
                processing_time=time.perf_counter() - start_time,
            )

            logger.info(
                "Winner selected",
                codec=result.codec.value,
                quality=result.quality,
                size=result.size,
                original_size=result.original_size,
                score=round(result.score, 4),
                status=result.status.value,
                size_improved=result.size_improved,
                processing_time=round(result.processing_time, 3),
            )
            return result

    async def _search_codec(
        self,
        codec: CodecTarget,
        source: SourceImage,
        config: OptimizationConfig,
        limiter: asyncio.Semaphore,
    ) -> EncodeCandidate:
        adapter = self.adapter_factory(codec, config)
        timeout = config.timeout_for(codec)
        loop = asyncio.get_running_loop()

        started = asyncio.Event()

        def run() -> EncodeCandidate:
            loop.call_soon_threadsafe(started.set)
            deadline = time.monotonic() + timeout if timeout is not None else None
            return self.search.run(adapter, source, config, deadline=deadline)

        async with limiter:
            # Worker threads log with the caller's bound context
            future = loop.run_in_executor(self.executor, contextvars.copy_context().run, run)
            if timeout is None:
                return await future

            # The timeout runs from the moment a worker picks the search up,
            # not while it waits in the pool queue
            waiter = asyncio.ensure_future(started.wait())
            try:
                await asyncio.wait({future, waiter}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                waiter.cancel()
            try:
                return await asyncio.wait_for(future, timeout=timeout)
            except asyncio.TimeoutError:
                # The worker finishes its current evaluation, then stops at the deadline
                raise CodecTimeoutError(codec.value, timeout)

    def _classify(
        self,
        codec: CodecTarget,
        outcome: Outcome,
        config: OptimizationConfig,
        candidates: List[EncodeCandidate],
        timed_out: List[CodecTarget],
        failed: Dict[CodecTarget, str],
    ) -> None:
        """Sort one codec's outcome into candidates, timeouts or failures."""
        if isinstance(outcome, EncodeCandidate):
            candidates.append(outcome)
        elif isinstance(outcome, (CodecTimeoutError, asyncio.TimeoutError)):
            logger.warning(
                "Codec timed out", codec=codec.value, timeout=config.timeout_for(codec)
            )
            timed_out.append(codec)
        elif isinstance(outcome, DimensionMismatchError):
            logger.error(
                "Internal consistency fault, candidate dropped",
                codec=codec.value,
                error=outcome.message,
            )
            failed[codec] = outcome.message
        elif isinstance(outcome, (EncodeError, DecodeError)):
            logger.warning(
                "Codec dropped",
                codec=codec.value,
                error_code=outcome.error_code,
                error=outcome.message,
            )
            failed[codec] = outcome.message
        else:
            raise outcome

    def _build_result(
        self,
        winner: EncodeCandidate,
        source: SourceImage,
        candidates: List[EncodeCandidate],
        timed_out: List[CodecTarget],
        failed: Dict[CodecTarget, str],
        processing_time: float,
    ) -> OptimizationResult:
        threshold_met = winner.threshold_met
        return OptimizationResult(
            codec=winner.codec,
            quality=winner.quality,
            data=winner.data,
            size=winner.size,
            score=winner.score,
            original_size=source.original_size,
            source_format=source.format,
            status=(
                OptimizationStatus.THRESHOLD_MET
                if threshold_met
                else OptimizationStatus.BEST_EFFORT
            ),
            threshold_met=threshold_met,
            size_improved=winner.size < source.original_size,
            candidates=[
                CandidateSummary(
                    codec=candidate.codec,
                    quality=candidate.quality,
                    size=candidate.size,
                    score=candidate.score,
                    threshold_met=candidate.threshold_met,
                    evaluations=candidate.evaluations,
                )
                for candidate in candidates
            ],
            timed_out_codecs=timed_out,
            failed_codecs=failed,
            processing_time=processing_time,
        )


def optimize_image(
    data: bytes, config: Optional[OptimizationConfig] = None
) -> OptimizationResult:
    """Blocking convenience wrapper around ``ImageOptimizer.optimize``."""
    config = config or OptimizationConfig()
    with ImageOptimizer(max_workers=config.max_workers) as optimizer:
        return asyncio.run(optimizer.optimize(data, config))

"""Selection policy: reduce the per-codec candidates to one winner."""

from typing import Sequence, Tuple

from imageoptimize.core.optimization.quality_search import EncodeCandidate
from imageoptimize.models.optimization import OptimizationConfig


def _passing_key(
    candidate: EncodeCandidate, config: OptimizationConfig
) -> Tuple[float, ...]:
    priority = config.priority_of(candidate.codec)
    if config.prefer_smallest:
        return (candidate.size, priority)
    return (candidate.size, candidate.score, priority)


def _best_effort_key(
    candidate: EncodeCandidate, config: OptimizationConfig
) -> Tuple[float, ...]:
    return (candidate.score, candidate.size, config.priority_of(candidate.codec))


def select_candidate(
    candidates: Sequence[EncodeCandidate], config: OptimizationConfig
) -> EncodeCandidate:
    """Pick the winning candidate.

    Candidates within the threshold always beat those outside it. Among
    passing candidates the smallest output wins; a size tie goes to the
    codec declared first in ``allowed_codecs`` (or, when ``prefer_smallest``
    is False, to the lower score before falling back to declaration order).
    Without any passing candidate the lowest score wins.

    Args:
        candidates: One candidate per codec that produced output
        config: Optimization configuration

    Returns:
        The winning candidate

    Raises:
        ValueError: If ``candidates`` is empty
    """
    if not candidates:
        raise ValueError("select_candidate() requires at least one candidate")

    passing = [c for c in candidates if c.score <= config.quality_threshold]
    if passing:
        return min(passing, key=lambda c: _passing_key(c, config))
    return min(candidates, key=lambda c: _best_effort_key(c, config))

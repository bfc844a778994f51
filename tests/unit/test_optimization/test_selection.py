"""Unit tests for the selection policy."""

import pytest

from imageoptimize.core.optimization import EncodeCandidate, select_candidate
from imageoptimize.models.optimization import CodecTarget, OptimizationConfig


def candidate(codec: str, size: int, score: float, threshold: float = 10.0) -> EncodeCandidate:
    return EncodeCandidate(
        codec=CodecTarget(codec),
        quality=80,
        data=b"\x00" * size,
        size=size,
        score=score,
        threshold_met=score <= threshold,
    )


class TestSelectCandidate:
    """Test cases for select_candidate."""

    def test_smaller_passing_candidate_wins_over_priority(self):
        config = OptimizationConfig(allowed_codecs=("jpeg", "webp"))
        winner = select_candidate(
            [candidate("jpeg", 900, 2.0), candidate("webp", 600, 8.0)], config
        )
        assert winner.codec == CodecTarget.WEBP

    def test_passing_beats_smaller_failing(self):
        config = OptimizationConfig(allowed_codecs=("jpeg", "webp"))
        winner = select_candidate(
            [candidate("jpeg", 900, 2.0), candidate("webp", 100, 40.0)], config
        )
        assert winner.codec == CodecTarget.JPEG

    def test_size_tie_goes_to_declared_priority(self):
        candidates = [candidate("jpeg", 500, 5.0), candidate("webp", 500, 1.0)]

        first = select_candidate(candidates, OptimizationConfig(allowed_codecs=("webp", "jpeg")))
        second = select_candidate(candidates, OptimizationConfig(allowed_codecs=("jpeg", "webp")))

        assert first.codec == CodecTarget.WEBP
        assert second.codec == CodecTarget.JPEG

    def test_quality_first_breaks_size_ties_by_score(self):
        config = OptimizationConfig(allowed_codecs=("jpeg", "webp"), prefer_smallest=False)
        winner = select_candidate(
            [candidate("jpeg", 500, 5.0), candidate("webp", 500, 1.0)], config
        )
        assert winner.codec == CodecTarget.WEBP

    def test_quality_first_still_prefers_smaller(self):
        config = OptimizationConfig(allowed_codecs=("jpeg", "webp"), prefer_smallest=False)
        winner = select_candidate(
            [candidate("jpeg", 400, 9.0), candidate("webp", 500, 1.0)], config
        )
        assert winner.codec == CodecTarget.JPEG

    def test_best_effort_picks_lowest_score(self):
        config = OptimizationConfig(allowed_codecs=("jpeg", "png", "webp"), quality_threshold=0.0)
        winner = select_candidate(
            [
                candidate("jpeg", 300, 12.0, threshold=0.0),
                candidate("png", 900, 3.0, threshold=0.0),
                candidate("webp", 200, 7.0, threshold=0.0),
            ],
            config,
        )
        assert winner.codec == CodecTarget.PNG
        assert not winner.threshold_met

    def test_set_order_follows_default_priority(self):
        config = OptimizationConfig(allowed_codecs={"avif", "webp", "jpeg"})
        assert config.allowed_codecs == (CodecTarget.JPEG, CodecTarget.WEBP, CodecTarget.AVIF)
        winner = select_candidate(
            [candidate("avif", 500, 1.0), candidate("jpeg", 500, 1.0)], config
        )
        assert winner.codec == CodecTarget.JPEG

    def test_empty_candidates(self):
        with pytest.raises(ValueError):
            select_candidate([], OptimizationConfig())

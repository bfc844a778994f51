"""Unit tests for the PerceptualScorer."""

import numpy as np
import pytest

from imageoptimize.core.constants import DEFAULT_QUALITY_THRESHOLD
from imageoptimize.core.conversion.pixel_buffer import CanonicalPixelBuffer
from imageoptimize.core.exceptions import DimensionMismatchError
from imageoptimize.core.optimization import PerceptualScorer


class TestPerceptualScorer:
    """Test cases for PerceptualScorer."""

    @pytest.fixture
    def scorer(self):
        return PerceptualScorer()

    @pytest.fixture
    def noisy(self, photo_buffer, make_buffer):
        """Return a function adding seeded noise of a given strength to the photo."""

        def build(sigma: float):
            rng = np.random.default_rng(7)
            pixels = photo_buffer.pixels.astype(np.float64)
            pixels[..., :3] += rng.normal(0, sigma, size=pixels[..., :3].shape)
            return make_buffer(np.clip(pixels, 0, 255).astype(np.uint8))

        return build

    def test_identical_buffers_score_zero(self, scorer, photo_buffer, make_buffer):
        copy = make_buffer(photo_buffer.pixels.copy())
        assert scorer.score(photo_buffer, copy) == 0.0
        assert scorer.score(photo_buffer, photo_buffer) == 0.0

    def test_dimension_mismatch(self, scorer, photo_buffer, make_buffer):
        other = make_buffer(np.zeros((10, 10, 4), dtype=np.uint8))
        with pytest.raises(DimensionMismatchError) as exc_info:
            scorer.score(photo_buffer, other)
        assert exc_info.value.error_code == "OPT202"

    def test_score_is_positive_for_any_difference(self, scorer, photo_buffer, make_buffer):
        pixels = photo_buffer.pixels.copy()
        pixels[0, 0, 0] ^= 0x40
        assert scorer.score(photo_buffer, make_buffer(pixels)) > 0.0

    def test_score_grows_with_distortion(self, scorer, photo_buffer, noisy):
        light = scorer.score(photo_buffer, noisy(2))
        heavy = scorer.score(photo_buffer, noisy(25))
        assert 0.0 < light < heavy

    def test_default_threshold_separates_light_and_heavy_noise(
        self, scorer, photo_buffer, noisy
    ):
        assert scorer.score(photo_buffer, noisy(0.5)) <= DEFAULT_QUALITY_THRESHOLD
        assert scorer.score(photo_buffer, noisy(40)) > DEFAULT_QUALITY_THRESHOLD

    def test_alpha_changes_are_scored(self, scorer, photo_buffer, make_buffer):
        pixels = photo_buffer.pixels.copy()
        pixels[:, :32, 3] = 0
        assert scorer.score(photo_buffer, make_buffer(pixels)) > 0.0

    def test_color_under_transparent_pixels_is_ignored(self, scorer, logo_image):
        original = CanonicalPixelBuffer.from_image(logo_image)
        pixels = original.pixels.copy()
        hidden = pixels[..., 3] == 0
        pixels[hidden, :3] = (0, 90, 200)
        rewritten = CanonicalPixelBuffer(
            width=original.width, height=original.height, pixels=pixels
        )

        assert not original.same_pixels(rewritten)
        assert scorer.score(original, rewritten) == pytest.approx(0.0, abs=1e-6)

    def test_color_under_translucent_pixels_is_scored(self, scorer, make_buffer):
        pixels = np.zeros((16, 16, 4), dtype=np.uint8)
        pixels[..., :3] = 200
        pixels[..., 3] = 128
        changed = pixels.copy()
        changed[:8, :, :3] = 20

        assert scorer.score(make_buffer(pixels), make_buffer(changed)) > DEFAULT_QUALITY_THRESHOLD

    def test_images_smaller_than_the_window(self, scorer, make_buffer):
        first = make_buffer(np.full((3, 2, 4), 200, dtype=np.uint8))
        pixels = first.pixels.copy()
        pixels[1, 1, :3] = 10
        score = scorer.score(first, make_buffer(pixels))
        assert score > 0.0
        assert np.isfinite(score)

    def test_score_is_symmetric_enough(self, scorer, photo_buffer, noisy):
        candidate = noisy(10)
        assert scorer.score(photo_buffer, candidate) == pytest.approx(
            scorer.score(candidate, photo_buffer), rel=1e-9
        )

    def test_window_size_must_be_odd(self):
        with pytest.raises(ValueError):
            PerceptualScorer(window_size=8)

    @pytest.mark.parametrize(
        "score,rating", [(0.0, "high"), (10.0, "high"), (30.0, "medium"), (120.0, "low")]
    )
    def test_visual_quality_rating(self, scorer, score, rating):
        assert scorer.visual_quality_rating(score) == rating

"""Perceptual scorer: SSIM-based dissimilarity between two pixel buffers."""

import numpy as np
from skimage.metrics import structural_similarity

from imageoptimize.core.constants import (
    DSSIM_SCALE,
    HIGH_QUALITY_MAX_SCORE,
    MEDIUM_QUALITY_MAX_SCORE,
    SSIM_FLOOR,
    SSIM_WINDOW_SIZE,
)
from imageoptimize.core.exceptions import DimensionMismatchError
from imageoptimize.core.conversion.pixel_buffer import CanonicalPixelBuffer


class PerceptualScorer:
    """Scores how different a candidate looks from the source.

    The score is DSSIM-style, ``(1 / ssim - 1) * DSSIM_SCALE``: 0.0 for
    pixel-identical buffers and growing without bound as structure is lost.
    A score of 10 corresponds to an SSIM of about 0.990. Color is compared
    premultiplied by alpha, so only what is visible counts.
    """

    def __init__(self, window_size: int = SSIM_WINDOW_SIZE, scale: float = DSSIM_SCALE):
        """Initialize the scorer.

        Args:
            window_size: Odd SSIM window edge length in pixels
            scale: Multiplier applied to the raw DSSIM value
        """
        if window_size < 3 or window_size % 2 == 0:
            raise ValueError("window_size must be an odd number >= 3")
        self.window_size = window_size
        self.scale = scale

    def score(
        self, original: CanonicalPixelBuffer, candidate: CanonicalPixelBuffer
    ) -> float:
        """Calculate the dissimilarity of ``candidate`` against ``original``.

        Args:
            original: Source buffer
            candidate: Buffer decoded from an encoded candidate

        Returns:
            Non-negative dissimilarity, 0.0 when the pixels are identical

        Raises:
            DimensionMismatchError: If the buffers differ in size
        """
        if original.size != candidate.size:
            raise DimensionMismatchError(original.size, candidate.size)

        if original.same_pixels(candidate):
            return 0.0

        ssim = self.ssim(original, candidate)
        ssim = min(1.0, max(SSIM_FLOOR, ssim))
        return float((1.0 / ssim - 1.0) * self.scale)

    def ssim(self, original: CanonicalPixelBuffer, candidate: CanonicalPixelBuffer) -> float:
        """Mean SSIM over the visible color (and alpha when either side uses it)."""
        with_alpha = original.has_alpha or candidate.has_alpha
        first = self._prepare(self.visible_pixels(original, with_alpha))
        second = self._prepare(self.visible_pixels(candidate, with_alpha))

        return float(
            structural_similarity(
                first,
                second,
                win_size=self.window_size,
                data_range=255,
                channel_axis=2,
            )
        )

    @staticmethod
    def visible_pixels(buffer: CanonicalPixelBuffer, with_alpha: bool) -> np.ndarray:
        """RGB premultiplied by alpha, followed by the alpha plane when requested.

        Color stored under fully transparent pixels scales to zero.
        """
        pixels = buffer.pixels.astype(np.float64)
        if not with_alpha:
            return pixels[:, :, :3]
        alpha = pixels[:, :, 3:4]
        premultiplied = pixels[:, :, :3] * (alpha / 255.0)
        return np.concatenate([premultiplied, alpha], axis=2)

    def _prepare(self, pixels: np.ndarray) -> np.ndarray:
        """Edge-pad images smaller than the SSIM window."""
        height, width = pixels.shape[:2]
        pad_h = max(0, self.window_size - height)
        pad_w = max(0, self.window_size - width)
        if pad_h or pad_w:
            pixels = np.pad(pixels, ((0, pad_h), (0, pad_w), (0, 0)), mode="edge")
        return pixels.astype(np.float64)

    def visual_quality_rating(self, score: float) -> str:
        """Get visual quality rating based on the dissimilarity score.

        Args:
            score: Dissimilarity score

        Returns:
            Quality rating: 'high', 'medium', or 'low'
        """
        if score <= HIGH_QUALITY_MAX_SCORE:
            return "high"
        elif score <= MEDIUM_QUALITY_MAX_SCORE:
            return "medium"
        else:
            return "low"

"""WebP codec adapter."""

from typing import Any, Dict

from PIL import Image

from imageoptimize.core.conversion.formats.base import BaseCodecAdapter
from imageoptimize.core.conversion.pixel_buffer import CanonicalPixelBuffer
from imageoptimize.models.optimization import CodecTarget


class WebPAdapter(BaseCodecAdapter):
    """Adapter for lossy WebP output."""

    target = CodecTarget.WEBP

    def prepare_image(self, buffer: CanonicalPixelBuffer, quality: int) -> Image.Image:
        image = buffer.to_image()
        # WebP supports RGB and RGBA; drop an unused alpha plane
        if not buffer.has_alpha:
            return image.convert("RGB")
        return image

    def get_save_params(self, quality: int) -> Dict[str, Any]:
        """Get WebP-specific encoder parameters."""
        return {
            "quality": quality,
            "lossless": False,
            "method": self.config.webp_method,
        }

"""JPEG codec adapter."""

from typing import Any, Dict

from PIL import Image

from imageoptimize.core.constants import JPEG_FULL_CHROMA_MIN_QUALITY
from imageoptimize.core.conversion.formats.base import BaseCodecAdapter
from imageoptimize.core.conversion.pixel_buffer import CanonicalPixelBuffer
from imageoptimize.models.optimization import CodecTarget


class JPEGAdapter(BaseCodecAdapter):
    """Adapter for JPEG output."""

    target = CodecTarget.JPEG

    def prepare_image(self, buffer: CanonicalPixelBuffer, quality: int) -> Image.Image:
        """JPEG has no alpha channel, so translucent pixels are flattened onto white."""
        image = buffer.to_image()
        if buffer.has_alpha:
            return self.flatten_alpha(image)
        return image.convert("RGB")

    def get_save_params(self, quality: int) -> Dict[str, Any]:
        """Get JPEG-specific encoder parameters."""
        return {
            "quality": quality,
            # 4:4:4 for high quality, 4:2:0 otherwise
            "subsampling": 0 if quality >= JPEG_FULL_CHROMA_MIN_QUALITY else 2,
            "optimize": True,
            "progressive": self.config.jpeg_progressive,
        }

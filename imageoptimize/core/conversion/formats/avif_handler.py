"""AVIF codec adapter."""

from typing import Any, Dict

from PIL import Image

from imageoptimize.core.constants import AVIF_FULL_CHROMA_MIN_QUALITY
from imageoptimize.core.conversion.formats.base import BaseCodecAdapter
from imageoptimize.core.conversion.pixel_buffer import CanonicalPixelBuffer
from imageoptimize.models.optimization import CodecTarget
from imageoptimize.utils.logging import get_logger

logger = get_logger(__name__)

try:
    import pillow_avif  # noqa: F401
except ImportError:
    # Pillow 11.3+ ships its own AVIF plugin; is_available() checks the build
    pass


class AVIFAdapter(BaseCodecAdapter):
    """Adapter for AVIF output."""

    target = CodecTarget.AVIF

    def is_available(self) -> bool:
        available = super().is_available()
        if not available:
            logger.warning("AVIF encoder not available in this Pillow build")
        return available

    def prepare_image(self, buffer: CanonicalPixelBuffer, quality: int) -> Image.Image:
        image = buffer.to_image()
        if not buffer.has_alpha:
            return image.convert("RGB")
        return image

    def get_save_params(self, quality: int) -> Dict[str, Any]:
        """Get AVIF-specific encoder parameters."""
        return {
            "quality": quality,
            "speed": self.config.avif_speed,
            "subsampling": (
                "4:4:4" if quality >= AVIF_FULL_CHROMA_MIN_QUALITY else "4:2:0"
            ),
        }

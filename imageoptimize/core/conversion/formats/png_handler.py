"""PNG codec adapter: palette quantization followed by lossless indexed PNG."""

from typing import Any, Dict, Tuple

import numpy as np
from PIL import Image

from imageoptimize.core.constants import PNG_COMPRESS_LEVEL
from imageoptimize.core.conversion.formats.base import BaseCodecAdapter
from imageoptimize.core.conversion.pixel_buffer import CanonicalPixelBuffer
from imageoptimize.models.optimization import CodecTarget
from imageoptimize.utils.logging import get_logger

logger = get_logger(__name__)


def index_colors(pixels: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Build an exact palette for an RGBA array.

    Returns:
        Tuple of (palette with shape (n, 4), indices with shape (h, w))
    """
    height, width = pixels.shape[:2]
    packed = np.ascontiguousarray(pixels, dtype=np.uint8).view(np.uint32).reshape(-1)
    values, inverse = np.unique(packed, return_inverse=True)
    palette = values.view(np.uint8).reshape(-1, 4)
    return palette, inverse.reshape(height, width)


class PNGAdapter(BaseCodecAdapter):
    """Adapter for palette PNG output; the quality parameter is the palette size."""

    target = CodecTarget.PNG

    def prepare_image(self, buffer: CanonicalPixelBuffer, quality: int) -> Image.Image:
        palette, indices = index_colors(buffer.pixels)
        if len(palette) > quality:
            palette, indices = index_colors(self.quantize(buffer, quality))
        return self.build_indexed_image(buffer, palette, indices)

    def quantize(self, buffer: CanonicalPixelBuffer, colors: int) -> np.ndarray:
        """Reduce the buffer to at most ``colors`` RGBA values.

        Returns:
            Quantized RGBA pixel array
        """
        image = buffer.to_image()
        if buffer.has_alpha:
            quantized = image.quantize(colors=colors, method=Image.Quantize.FASTOCTREE)
            return np.asarray(quantized.convert("RGBA"))

        rgb = image.convert("RGB")
        quantized = rgb.quantize(colors=colors, method=Image.Quantize.MEDIANCUT)
        result = np.asarray(quantized.convert("RGBA"))

        if self.config.png_dithering:
            dithered = np.asarray(
                rgb.quantize(palette=quantized, dither=Image.Dither.FLOYDSTEINBERG).convert(
                    "RGBA"
                )
            )
            # Remapping may pick padding entries of the palette
            if len(index_colors(dithered)[0]) <= colors:
                result = dithered
            else:
                logger.debug("Dithered palette overflowed, keeping plain quantization")

        return result

    def build_indexed_image(
        self, buffer: CanonicalPixelBuffer, palette: np.ndarray, indices: np.ndarray
    ) -> Image.Image:
        """Create a mode P image whose palette holds exactly ``palette``."""
        image = Image.frombytes("P", buffer.size, indices.astype(np.uint8).tobytes())
        image.putpalette(palette[:, :3].reshape(-1).tolist())
        alpha = palette[:, 3]
        if (alpha < 255).any():
            image.info["transparency"] = alpha.tobytes()
        return image

    def get_save_params(self, quality: int) -> Dict[str, Any]:
        """Get PNG-specific encoder parameters."""
        return {"optimize": True, "compress_level": PNG_COMPRESS_LEVEL}

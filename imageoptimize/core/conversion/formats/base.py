"""Base codec adapter interface."""

from abc import ABC, abstractmethod
from io import BytesIO
from typing import Any, Dict, Tuple, Union

from PIL import Image

from imageoptimize.core.constants import CODEC_MAX_DIMENSIONS
from imageoptimize.core.conversion.decoder import decode_image
from imageoptimize.core.exceptions import DecodeError, EncodeError
from imageoptimize.core.conversion.pixel_buffer import CanonicalPixelBuffer
from imageoptimize.models.optimization import (
    CodecTarget,
    OptimizationConfig,
    QualityDomain,
)


class BaseCodecAdapter(ABC):
    """Abstract base class for codec encoder adapters."""

    target: CodecTarget

    def __init__(self, config: OptimizationConfig) -> None:
        """Initialize the adapter with the call's immutable configuration."""
        self.config = config

    @property
    def codec(self) -> str:
        return self.target.value

    @property
    def domain(self) -> QualityDomain:
        """Hard quality domain of the codec."""
        return self.target.domain

    @property
    def pil_format(self) -> str:
        return self.codec.upper()

    @abstractmethod
    def prepare_image(self, buffer: CanonicalPixelBuffer, quality: int) -> Image.Image:
        """Turn the canonical buffer into the Pillow image handed to the encoder."""

    @abstractmethod
    def get_save_params(self, quality: int) -> Dict[str, Any]:
        """Get codec-specific encoder parameters for a quality value."""

    def is_available(self) -> bool:
        """Whether the encoder exists in this Pillow build."""
        Image.init()
        return self.pil_format in Image.SAVE

    def encode(self, buffer: CanonicalPixelBuffer, quality: Union[int, float]) -> bytes:
        """Encode the buffer at the given quality parameter.

        Raises:
            EncodeError: Invalid quality, oversized input or codec failure
        """
        self.validate_quality(quality)
        self.validate_dimensions(buffer)
        if not self.is_available():
            raise EncodeError(self.codec, f"{self.pil_format} encoder is not available")

        quality = int(quality)
        try:
            image = self.prepare_image(buffer, quality)
            output_buffer = BytesIO()
            image.save(output_buffer, format=self.pil_format, **self.get_save_params(quality))
            return output_buffer.getvalue()
        except EncodeError:
            raise
        except Exception as e:
            raise EncodeError(
                self.codec,
                str(e) or type(e).__name__,
                details={"quality": quality, "dimensions": buffer.size},
            )

    def decode(self, data: bytes) -> CanonicalPixelBuffer:
        """Decode this adapter's own output back into a pixel buffer."""
        format_name, buffer = decode_image(data)
        if format_name != self.codec:
            raise DecodeError(format_name, f"expected {self.codec} output")
        return buffer

    def encode_and_decode(
        self, buffer: CanonicalPixelBuffer, quality: Union[int, float]
    ) -> Tuple[bytes, CanonicalPixelBuffer]:
        """Encode, then decode the result for scoring."""
        data = self.encode(buffer, quality)
        return data, self.decode(data)

    def validate_quality(self, quality: Union[int, float]) -> None:
        if not self.domain.contains(quality):
            raise EncodeError(
                self.codec,
                f"quality {quality} outside {self.domain.minimum:g}-{self.domain.maximum:g}",
                details={"quality": quality},
            )

    def validate_dimensions(self, buffer: CanonicalPixelBuffer) -> None:
        limit = CODEC_MAX_DIMENSIONS[self.codec]
        if buffer.width > limit or buffer.height > limit:
            raise EncodeError(
                self.codec,
                f"dimensions exceed the {limit}px limit",
                details={"dimensions": buffer.size},
            )

    @staticmethod
    def flatten_alpha(image: Image.Image) -> Image.Image:
        """Composite an RGBA image over white."""
        background = Image.new("RGB", image.size, (255, 255, 255))
        background.paste(image, mask=image.split()[3])
        return background

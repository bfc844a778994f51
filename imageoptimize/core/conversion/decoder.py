"""
Decoder adapter - detect the source format from content and decode it
into a canonical RGBA8 pixel buffer.
"""

import struct
import time
import warnings
from io import BytesIO
from typing import Optional, Tuple

import numpy as np
from PIL import Image

from imageoptimize.core.constants import (
    AVIF_BRANDS,
    IMAGE_MAGIC_BYTES,
    MIN_SIGNATURE_LENGTH,
)
from imageoptimize.core.exceptions import DecodeError, UnsupportedFormatError
from imageoptimize.core.conversion.pixel_buffer import (
    CanonicalPixelBuffer,
    SourceImage,
)
from imageoptimize.utils.logging import get_logger

try:
    import pillow_avif  # noqa: F401
except ImportError:
    # Recent Pillow releases decode AVIF natively
    pass

logger = get_logger(__name__)

# Pillow format names accepted for each detected format
_PIL_FORMATS = {
    "jpeg": {"JPEG", "MPO"},
    "png": {"PNG"},
    "webp": {"WEBP"},
    "gif": {"GIF"},
    "tiff": {"TIFF"},
    "bmp": {"BMP", "DIB"},
    "avif": {"AVIF"},
}

# Integer and float greyscale modes Pillow cannot convert straight to RGBA
_WIDE_MODES = {"I", "I;16", "I;16L", "I;16B", "I;16N", "F"}


def detect_format(data: bytes) -> str:
    """
    Detect image format from file content.

    Args:
        data: Raw image data

    Returns:
        Normalized format name (e.g. 'jpeg', 'png')

    Raises:
        UnsupportedFormatError: When no known signature matches
    """
    if len(data) < MIN_SIGNATURE_LENGTH:
        raise UnsupportedFormatError(
            "Input is too short to carry an image signature",
            details={"input_size": len(data)},
        )

    for signature, format_name in IMAGE_MAGIC_BYTES.items():
        if not data.startswith(signature):
            continue
        if format_name == "WebP/RIFF":
            # Could be other RIFF formats (WAV, AVI)
            if data[8:12] == b"WEBP":
                return "webp"
            break
        return format_name.lower()

    # ISO-BMFF container: box size, then 'ftyp' and the major brand
    if data[4:8] == b"ftyp" and data[8:12] in AVIF_BRANDS:
        return "avif"

    raise UnsupportedFormatError(
        "Unable to detect the image format from its content",
        details={"input_size": len(data)},
    )


def read_header_dimensions(format_name: str, data: bytes) -> Optional[Tuple[int, int]]:
    """Read width/height straight from the header for formats with fixed layouts."""
    if format_name == "png" and len(data) >= 24 and data[12:16] == b"IHDR":
        return struct.unpack(">II", data[16:24])
    if format_name == "gif" and len(data) >= 10:
        return struct.unpack("<HH", data[6:10])
    return None


def _to_rgba(image: Image.Image) -> Image.Image:
    """Normalize any Pillow mode to straight RGBA8."""
    if image.mode == "RGBA":
        return image
    if image.mode in _WIDE_MODES:
        values = np.asarray(image, dtype=np.float64)
        if image.mode == "F":
            peak = 1.0 if values.size and values.max() <= 1.0 else 255.0
        else:
            peak = 65535.0 if values.size and values.max() > 255 else 255.0
        grey = np.clip(np.rint(values * (255.0 / peak)), 0, 255).astype(np.uint8)
        image = Image.fromarray(grey)
    # Palette transparency (tRNS) is applied by the conversion
    return image.convert("RGBA")


def decode_image(data: bytes) -> Tuple[str, CanonicalPixelBuffer]:
    """
    Decode arbitrary image bytes into a canonical pixel buffer.

    Args:
        data: Raw image data in any supported format

    Returns:
        Tuple of (detected_format, buffer)

    Raises:
        UnsupportedFormatError: Signature not recognized
        DecodeError: Signature recognized but payload invalid
    """
    format_name = detect_format(data)

    header_size = read_header_dimensions(format_name, data)
    if header_size is not None and (header_size[0] == 0 or header_size[1] == 0):
        raise DecodeError(format_name, "zero width or height", details={"input_size": len(data)})

    try:
        with warnings.catch_warnings():
            warnings.simplefilter("error", Image.DecompressionBombWarning)
            with Image.open(BytesIO(data)) as img:
                if img.format not in _PIL_FORMATS[format_name]:
                    raise DecodeError(
                        format_name, f"content decoded as {img.format or 'unknown'}"
                    )
                if img.width <= 0 or img.height <= 0:
                    raise DecodeError(format_name, "zero width or height")
                # Animated inputs are represented by their first frame
                img.seek(0)
                img.load()
                rgba = _to_rgba(img)
                buffer = CanonicalPixelBuffer.from_image(rgba)
    except DecodeError:
        raise
    except (Image.DecompressionBombError, Image.DecompressionBombWarning) as e:
        raise DecodeError(format_name, f"image exceeds pixel limit: {e}")
    except Exception as e:
        raise DecodeError(format_name, str(e) or type(e).__name__)

    return format_name, buffer


def decode_source(data: bytes) -> SourceImage:
    """Decode the optimization input once and wrap it as a SourceImage."""
    start = time.perf_counter()
    format_name, buffer = decode_image(data)
    logger.debug(
        "Source decoded",
        format=format_name,
        width=buffer.width,
        height=buffer.height,
        input_size=len(data),
        decode_ms=round((time.perf_counter() - start) * 1000, 2),
    )
    return SourceImage(data=data, buffer=buffer, format=format_name)

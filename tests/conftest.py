"""Pytest fixtures for image optimizer tests."""

import io
import struct
import zlib

import numpy as np
import pytest
from PIL import Image

from imageoptimize.core.conversion.pixel_buffer import CanonicalPixelBuffer

# 16 distinct opaque colors laid out as a 4x4 grid of 8px cells
PALETTE_16 = [
    (255, 0, 0), (0, 255, 0), (0, 0, 255), (255, 255, 0),
    (0, 255, 255), (255, 0, 255), (128, 0, 0), (0, 128, 0),
    (0, 0, 128), (128, 128, 0), (0, 128, 128), (128, 0, 128),
    (255, 255, 255), (0, 0, 0), (192, 192, 192), (255, 128, 0),
]


def encode(image: Image.Image, format: str, **params) -> bytes:
    """Save a Pillow image to bytes."""
    buffer = io.BytesIO()
    image.save(buffer, format=format, **params)
    return buffer.getvalue()


def buffer_from_array(pixels: np.ndarray) -> CanonicalPixelBuffer:
    """Canonical buffer from an (h, w, 4) uint8 array."""
    height, width = pixels.shape[:2]
    return CanonicalPixelBuffer(width=width, height=height, pixels=pixels)


def png_chunk(kind: bytes, payload: bytes) -> bytes:
    return (
        struct.pack(">I", len(payload))
        + kind
        + payload
        + struct.pack(">I", zlib.crc32(kind + payload) & 0xFFFFFFFF)
    )


@pytest.fixture
def encode_image():
    """Helper saving a Pillow image to bytes."""
    return encode


@pytest.fixture
def make_buffer():
    """Helper building a canonical buffer from an RGBA array."""
    return buffer_from_array


@pytest.fixture
def photo_image() -> Image.Image:
    """Photo-like RGB image: smooth gradients, a soft disc and seeded noise."""
    rng = np.random.default_rng(1234)
    height, width = 48, 64
    y, x = np.mgrid[0:height, 0:width].astype(np.float64)
    red = 255 * x / (width - 1)
    green = 255 * y / (height - 1)
    distance = np.hypot(x - width * 0.6, y - height * 0.4)
    blue = 255 * np.clip(1.2 - distance / 20.0, 0, 1)
    rgb = np.stack([red, green, blue], axis=-1)
    rgb += rng.normal(0, 6, size=rgb.shape)
    return Image.fromarray(np.clip(rgb, 0, 255).astype(np.uint8), "RGB")


@pytest.fixture
def photo_buffer(photo_image) -> CanonicalPixelBuffer:
    return CanonicalPixelBuffer.from_image(photo_image.convert("RGBA"))


@pytest.fixture
def photo_jpeg_bytes(photo_image) -> bytes:
    return encode(photo_image, "JPEG", quality=95)


@pytest.fixture
def photo_png_bytes(photo_image) -> bytes:
    return encode(photo_image, "PNG")


@pytest.fixture
def palette_image() -> Image.Image:
    """32x32 RGB image with exactly 16 unique colors."""
    pixels = np.zeros((32, 32, 3), dtype=np.uint8)
    for index, color in enumerate(PALETTE_16):
        row, col = divmod(index, 4)
        pixels[row * 8:(row + 1) * 8, col * 8:(col + 1) * 8] = color
    return Image.fromarray(pixels, "RGB")


@pytest.fixture
def palette_png_bytes(palette_image) -> bytes:
    return encode(palette_image, "PNG")


@pytest.fixture
def rgba_image() -> Image.Image:
    """Gradient with a horizontal alpha ramp and a fully transparent column."""
    height, width = 24, 32
    y, x = np.mgrid[0:height, 0:width]
    pixels = np.zeros((height, width, 4), dtype=np.uint8)
    pixels[..., 0] = (x * 8).astype(np.uint8)
    pixels[..., 1] = (y * 10).astype(np.uint8)
    pixels[..., 2] = 90
    pixels[..., 3] = (x * 255 // (width - 1)).astype(np.uint8)
    return Image.fromarray(pixels, "RGBA")


@pytest.fixture
def rgba_png_bytes(rgba_image) -> bytes:
    return encode(rgba_image, "PNG")


@pytest.fixture
def logo_image() -> Image.Image:
    """64x64 red disc on a fully transparent white background."""
    size = 64
    y, x = np.mgrid[0:size, 0:size]
    inside = np.hypot(x - 31.5, y - 31.5) < 20
    pixels = np.full((size, size, 4), 255, dtype=np.uint8)
    pixels[..., 3] = 0
    pixels[inside] = (220, 30, 30, 255)
    return Image.fromarray(pixels, "RGBA")


@pytest.fixture
def logo_png_bytes(logo_image) -> bytes:
    return encode(logo_image, "PNG")


@pytest.fixture
def zero_width_png_bytes() -> bytes:
    """Structurally valid PNG whose IHDR declares a width of zero."""
    ihdr = struct.pack(">IIBBBBB", 0, 16, 8, 2, 0, 0, 0)
    idat = zlib.compress(b"")
    return (
        b"\x89PNG\r\n\x1a\n"
        + png_chunk(b"IHDR", ihdr)
        + png_chunk(b"IDAT", idat)
        + png_chunk(b"IEND", b"")
    )

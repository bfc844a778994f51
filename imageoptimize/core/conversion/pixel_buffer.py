"""Canonical in-memory raster shared by every optimization stage."""

from dataclasses import dataclass, field

import numpy as np
from PIL import Image


@dataclass(frozen=True, eq=False)
class CanonicalPixelBuffer:
    """Straight (non-premultiplied) RGBA8 raster, row-major.

    ``pixels`` has shape ``(height, width, 4)`` and is read-only once the
    buffer exists.
    """

    width: int
    height: int
    pixels: np.ndarray = field(repr=False)

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(
                f"Pixel buffer dimensions must be positive, got {self.width}x{self.height}"
            )
        pixels = np.ascontiguousarray(self.pixels, dtype=np.uint8)
        if pixels.shape != (self.height, self.width, 4):
            raise ValueError(
                f"Expected pixel array of shape {(self.height, self.width, 4)}, "
                f"got {pixels.shape}"
            )
        pixels.flags.writeable = False
        object.__setattr__(self, "pixels", pixels)

    @classmethod
    def from_image(cls, image: Image.Image) -> "CanonicalPixelBuffer":
        """Build a buffer from a Pillow image already in RGBA mode."""
        if image.mode != "RGBA":
            raise ValueError(f"Expected an RGBA image, got {image.mode}")
        return cls(width=image.width, height=image.height, pixels=np.asarray(image))

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @property
    def has_alpha(self) -> bool:
        """True when any pixel is not fully opaque."""
        return bool((self.pixels[:, :, 3] < 255).any())

    def unique_colors(self) -> np.ndarray:
        """Distinct RGBA quadruples, shape ``(n, 4)``."""
        packed = self.pixels.view(np.uint32).reshape(-1)
        return np.unique(packed).view(np.uint8).reshape(-1, 4)

    def unique_color_count(self) -> int:
        return len(self.unique_colors())

    def to_image(self) -> Image.Image:
        """Pillow RGBA image backed by a copy of the pixels."""
        return Image.frombytes("RGBA", self.size, self.pixels.tobytes())

    def same_pixels(self, other: "CanonicalPixelBuffer") -> bool:
        return self.size == other.size and np.array_equal(self.pixels, other.pixels)


@dataclass(frozen=True)
class SourceImage:
    """Input bytes plus the buffer decoded from them."""

    data: bytes = field(repr=False)
    buffer: CanonicalPixelBuffer
    format: str

    @property
    def original_size(self) -> int:
        return len(self.data)

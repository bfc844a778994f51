"""Constants and configuration values for the image optimizer."""

from typing import Dict, Tuple

# Magic bytes for format detection
IMAGE_MAGIC_BYTES = {
    b"\xff\xd8\xff": "JPEG",
    b"\x89PNG\r\n\x1a\n": "PNG",
    b"RIFF": "WebP/RIFF",  # WebP starts with RIFF (needs further check)
    b"GIF87a": "GIF",
    b"GIF89a": "GIF",
    b"II*\x00": "TIFF",
    b"MM\x00*": "TIFF",
    b"BM": "BMP",
}

# ISO-BMFF major brands that identify AVIF (ftyp box at offset 4)
AVIF_BRANDS = {
    b"avif",
    b"avis",
}

# Shortest input that can carry any supported signature plus a header
MIN_SIGNATURE_LENGTH = 12

# Codec quality domains: (minimum, maximum) the codec itself accepts
CODEC_QUALITY_DOMAINS: Dict[str, Tuple[int, int]] = {
    "jpeg": (1, 100),
    "png": (2, 256),  # palette size
    "webp": (0, 100),
    "avif": (0, 100),
}

# Default search ranges inside the codec domains
DEFAULT_QUALITY_RANGES: Dict[str, Tuple[int, int]] = {
    "jpeg": (40, 95),
    "png": (2, 256),
    "webp": (40, 95),
    "avif": (30, 90),
}

# Largest width/height each encoder can write
CODEC_MAX_DIMENSIONS: Dict[str, int] = {
    "jpeg": 65535,
    "png": 2**31 - 1,
    "webp": 16383,
    "avif": 65536,
}

# Declaration order doubles as the default tie-break priority
DEFAULT_CODEC_PRIORITY = ("jpeg", "png", "webp", "avif")

# File extensions written for each codec
CODEC_EXTENSIONS = {
    "jpeg": "jpg",
    "png": "png",
    "webp": "webp",
    "avif": "avif",
}

# Perceptual scoring
DSSIM_SCALE = 1000.0  # dissimilarity = (1 / ssim - 1) * DSSIM_SCALE
SSIM_WINDOW_SIZE = 7
SSIM_FLOOR = 1e-6
DEFAULT_QUALITY_THRESHOLD = 10.0  # roughly SSIM 0.990

# Visual rating bands on the dissimilarity scale
HIGH_QUALITY_MAX_SCORE = 10.0
MEDIUM_QUALITY_MAX_SCORE = 50.0

# Search and orchestration
DEFAULT_MAX_SEARCH_ITERATIONS = 10
DEFAULT_REAL_EPSILON = 0.5
DEFAULT_CODEC_TIMEOUT = 30.0  # seconds

# Encoder defaults
JPEG_FULL_CHROMA_MIN_QUALITY = 91  # 4:4:4 subsampling from this quality up
AVIF_FULL_CHROMA_MIN_QUALITY = 90
WEBP_METHOD = 4  # Good compression/speed tradeoff
AVIF_SPEED = 6  # Balanced speed/compression (0 slowest, 10 fastest)
PNG_COMPRESS_LEVEL = 9

# Source loading
DEFAULT_FETCH_TIMEOUT = 300.0  # seconds
SOURCE_EXTENSIONS = ("jpeg", "jpg", "png")

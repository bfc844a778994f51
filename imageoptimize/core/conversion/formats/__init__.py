"""Codec encoder adapters, one per CodecTarget."""

from typing import Dict, Type

from imageoptimize.core.conversion.formats.avif_handler import AVIFAdapter
from imageoptimize.core.conversion.formats.base import BaseCodecAdapter
from imageoptimize.core.conversion.formats.jpeg_handler import JPEGAdapter
from imageoptimize.core.conversion.formats.png_handler import PNGAdapter
from imageoptimize.core.conversion.formats.webp_handler import WebPAdapter
from imageoptimize.models.optimization import CodecTarget, OptimizationConfig

# Closed set: every CodecTarget has exactly one adapter
CODEC_ADAPTERS: Dict[CodecTarget, Type[BaseCodecAdapter]] = {
    CodecTarget.JPEG: JPEGAdapter,
    CodecTarget.PNG: PNGAdapter,
    CodecTarget.WEBP: WebPAdapter,
    CodecTarget.AVIF: AVIFAdapter,
}


def get_codec_adapter(target: CodecTarget, config: OptimizationConfig) -> BaseCodecAdapter:
    """Build the adapter for a codec target."""
    return CODEC_ADAPTERS[CodecTarget(target)](config)


__all__ = [
    "AVIFAdapter",
    "BaseCodecAdapter",
    "CODEC_ADAPTERS",
    "JPEGAdapter",
    "PNGAdapter",
    "WebPAdapter",
    "get_codec_adapter",
]

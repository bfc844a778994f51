"""Unit tests for the codec encoder adapters."""

import io
from unittest.mock import patch

import numpy as np
import pytest
from PIL import Image

from imageoptimize.core.conversion.decoder import decode_image
from imageoptimize.core.conversion.formats import (
    CODEC_ADAPTERS,
    AVIFAdapter,
    JPEGAdapter,
    PNGAdapter,
    WebPAdapter,
    get_codec_adapter,
)
from imageoptimize.core.conversion.pixel_buffer import CanonicalPixelBuffer
from imageoptimize.core.exceptions import DecodeError, EncodeError
from imageoptimize.core.optimization import PerceptualScorer
from imageoptimize.models.optimization import CodecTarget, OptimizationConfig

AVIF_AVAILABLE = AVIFAdapter(OptimizationConfig()).is_available()

requires_avif = pytest.mark.skipif(not AVIF_AVAILABLE, reason="Pillow built without AVIF")

ALL_CODECS = [
    CodecTarget.JPEG,
    CodecTarget.PNG,
    CodecTarget.WEBP,
    pytest.param(CodecTarget.AVIF, marks=requires_avif),
]

LOSSY_CODECS = [
    CodecTarget.JPEG,
    CodecTarget.WEBP,
    pytest.param(CodecTarget.AVIF, marks=requires_avif),
]


@pytest.fixture
def config():
    return OptimizationConfig()


class TestCodecDispatch:
    """The closed codec table."""

    def test_every_target_has_an_adapter(self, config):
        assert set(CODEC_ADAPTERS) == set(CodecTarget)
        for target in CodecTarget:
            adapter = get_codec_adapter(target, config)
            assert adapter.target == target
            assert adapter.domain == target.domain

    def test_dispatch_accepts_plain_names(self, config):
        assert isinstance(get_codec_adapter("webp", config), WebPAdapter)

    def test_only_png_is_lossless(self):
        assert [t for t in CodecTarget if t.supports_lossless] == [CodecTarget.PNG]


class TestRoundTrip:
    """Encode, re-decode with the adapter and score against the source."""

    @pytest.mark.parametrize("target", ALL_CODECS)
    def test_dimensions_survive_round_trip(self, target, config, photo_buffer):
        adapter = get_codec_adapter(target, config)
        quality = int(config.range_for(target).maximum)

        data, decoded = adapter.encode_and_decode(photo_buffer, quality)

        assert decoded.size == photo_buffer.size
        assert PerceptualScorer().score(photo_buffer, decoded) >= 0.0
        assert decode_image(data)[0] == target.value

    @pytest.mark.parametrize("target", ALL_CODECS)
    def test_round_trip_with_alpha(self, target, config, rgba_image):
        buffer = CanonicalPixelBuffer.from_image(rgba_image)
        adapter = get_codec_adapter(target, config)
        _, decoded = adapter.encode_and_decode(buffer, int(config.range_for(target).maximum))
        assert decoded.size == buffer.size

    def test_decode_rejects_foreign_output(self, config, photo_png_bytes):
        with pytest.raises(DecodeError):
            JPEGAdapter(config).decode(photo_png_bytes)


class TestLossyMonotonicity:
    """Higher quality never yields a smaller file."""

    @pytest.mark.parametrize("target", LOSSY_CODECS)
    def test_size_non_decreasing_in_quality(self, target, config, photo_buffer):
        adapter = get_codec_adapter(target, config)
        sizes = [len(adapter.encode(photo_buffer, q)) for q in (10, 30, 50, 70, 90)]
        assert sizes == sorted(sizes)

    def test_webp_top_quality_stays_lossy(self, config, photo_buffer):
        data = WebPAdapter(config).encode(photo_buffer, 100)
        assert data[12:16] == b"VP8 "


class TestQualityValidation:
    """Parameters outside the codec domain are encode errors."""

    @pytest.mark.parametrize(
        "target,quality",
        [
            (CodecTarget.JPEG, 0),
            (CodecTarget.JPEG, 101),
            (CodecTarget.JPEG, 50.5),
            (CodecTarget.PNG, 1),
            (CodecTarget.PNG, 257),
            (CodecTarget.WEBP, -1),
            (CodecTarget.AVIF, 101),
        ],
    )
    def test_out_of_domain(self, target, quality, config, photo_buffer):
        with pytest.raises(EncodeError) as exc_info:
            get_codec_adapter(target, config).encode(photo_buffer, quality)
        assert exc_info.value.codec == target.value
        assert exc_info.value.error_code == "OPT201"

    def test_dimension_limit(self, config):
        wide = CanonicalPixelBuffer(
            width=16384, height=1, pixels=np.zeros((1, 16384, 4), np.uint8)
        )
        with pytest.raises(EncodeError) as exc_info:
            WebPAdapter(config).encode(wide, 80)
        assert "16383" in exc_info.value.reason

    def test_missing_encoder(self, config, photo_buffer):
        with patch.object(JPEGAdapter, "is_available", return_value=False):
            with pytest.raises(EncodeError) as exc_info:
                JPEGAdapter(config).encode(photo_buffer, 80)
        assert "not available" in exc_info.value.reason

    def test_codec_failure_becomes_encode_error(self, config, photo_buffer):
        with patch.object(JPEGAdapter, "get_save_params", side_effect=OSError("disk on fire")):
            with pytest.raises(EncodeError) as exc_info:
                JPEGAdapter(config).encode(photo_buffer, 80)
        assert "disk on fire" in exc_info.value.reason


class TestJPEGAdapter:
    def test_transparent_pixels_flatten_to_white(self, config, make_buffer):
        pixels = np.zeros((16, 16, 4), dtype=np.uint8)
        _, decoded = JPEGAdapter(config).encode_and_decode(make_buffer(pixels), 95)
        assert (decoded.pixels[..., :3] > 245).all()
        assert (decoded.pixels[..., 3] == 255).all()

    def test_chroma_subsampling_follows_quality(self, config):
        adapter = JPEGAdapter(config)
        assert adapter.get_save_params(95)["subsampling"] == 0
        assert adapter.get_save_params(80)["subsampling"] == 2
        assert adapter.get_save_params(80)["progressive"] is True


class TestPNGAdapter:
    """Palette quantization followed by lossless indexed encoding."""

    def test_natural_palette_is_lossless(self, config, palette_image):
        buffer = CanonicalPixelBuffer.from_image(palette_image.convert("RGBA"))
        _, decoded = PNGAdapter(config).encode_and_decode(buffer, 256)
        assert decoded.same_pixels(buffer)

    def test_fewer_colors_than_requested_is_not_an_error(self, config, make_buffer):
        pixels = np.zeros((8, 8, 4), dtype=np.uint8)
        pixels[..., 3] = 255
        pixels[:4, :, 0] = 200
        pixels[:, :4, 2] = 90
        buffer = make_buffer(pixels)

        data, decoded = PNGAdapter(config).encode_and_decode(buffer, 2)

        assert decoded.unique_color_count() <= 2
        assert data.startswith(b"\x89PNG")

    def test_palette_size_bounds_output_colors(self, config, photo_buffer):
        adapter = PNGAdapter(config)
        for colors in (4, 16, 64):
            _, decoded = adapter.encode_and_decode(photo_buffer, colors)
            assert decoded.unique_color_count() <= colors

    def test_output_is_indexed(self, config, photo_buffer):
        data = PNGAdapter(config).encode(photo_buffer, 32)
        with Image.open(io.BytesIO(data)) as image:
            assert image.mode == "P"

    def test_translucent_palette_entries_are_kept(self, config, rgba_image):
        buffer = CanonicalPixelBuffer.from_image(rgba_image)
        adapter = PNGAdapter(config)

        _, decoded = adapter.encode_and_decode(buffer, 256)

        assert decoded.has_alpha
        assert decoded.pixels[:, 0, 3].max() < 64
        assert decoded.pixels[:, -1, 3].min() > 192

    def test_dithering_respects_palette_size(self, photo_buffer):
        config = OptimizationConfig(png_dithering=True)
        _, decoded = PNGAdapter(config).encode_and_decode(photo_buffer, 8)
        assert decoded.unique_color_count() <= 8

    def test_encoding_is_deterministic(self, config, photo_buffer):
        adapter = PNGAdapter(config)
        assert adapter.encode(photo_buffer, 24) == adapter.encode(photo_buffer, 24)


@requires_avif
class TestAVIFAdapter:
    def test_speed_comes_from_config(self):
        adapter = AVIFAdapter(OptimizationConfig(avif_speed=8))
        assert adapter.get_save_params(50)["speed"] == 8
        assert adapter.get_save_params(95)["subsampling"] == "4:4:4"

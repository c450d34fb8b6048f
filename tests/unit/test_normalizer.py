"""Image normalizer tests."""

from __future__ import annotations

import io

import pytest
from PIL import Image

from psyd.images import normalizer
from psyd.images.normalizer import (
    ImageDecodeError,
    format_bytes,
    normalize_image,
    output_filename,
    target_size,
)


def _png(width: int, height: int, mode: str = "RGB") -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, (width, height)).save(buffer, format="PNG")
    return buffer.getvalue()


class TestTargetSize:
    def test_within_bounds_unchanged(self):
        assert target_size(1200, 800) == (1200, 800)

    def test_landscape_scaled_by_width(self):
        assert target_size(4000, 3000) == (2000, 1500)

    def test_portrait_scaled_by_height(self):
        assert target_size(3000, 6000) == (1000, 2000)

    def test_exact_bound_unchanged(self):
        assert target_size(2000, 2000) == (2000, 2000)


class TestOutputFilename:
    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("house.jpg", "house.webp"),
            ("IMG_0001.JPEG", "IMG_0001.webp"),
            ("front.view.png", "front.view.webp"),
            ("noext", "noext.webp"),
            ("", "image.webp"),
        ],
    )
    def test_extension_replaced(self, name, expected):
        assert output_filename(name) == expected


class TestNormalizeImage:
    def test_large_photo_bounded_and_under_budget(self):
        result = normalize_image(_png(4000, 3000), "big.png")
        assert (result.width, result.height) == (2000, 1500)
        assert result.compressed_size <= normalizer.TARGET_BYTES
        assert result.filename == "big.webp"
        assert result.content_type == "image/webp"

        decoded = Image.open(io.BytesIO(result.data))
        assert decoded.format == "WEBP"
        assert decoded.size == (2000, 1500)

    def test_reports_original_size(self):
        data = _png(300, 200)
        result = normalize_image(data, "small.png")
        assert result.original_size == len(data)
        assert result.quality == normalizer.INITIAL_QUALITY

    def test_quality_steps_down_to_floor_when_budget_unreachable(self, monkeypatch):
        attempts: list[int] = []

        def fake_encode(_img, quality):
            attempts.append(quality)
            return b"x" * (normalizer.TARGET_BYTES + 1)

        monkeypatch.setattr(normalizer, "_encode", fake_encode)
        result = normalize_image(_png(100, 100), "photo.png")

        assert attempts == [85, 75, 70, 65, 60]
        assert result.quality == 60
        assert result.compressed_size > normalizer.TARGET_BYTES

    def test_quality_search_stops_once_under_budget(self, monkeypatch):
        attempts: list[int] = []

        def fake_encode(_img, quality):
            attempts.append(quality)
            size = normalizer.TARGET_BYTES if quality <= 70 else normalizer.TARGET_BYTES * 2
            return b"x" * size

        monkeypatch.setattr(normalizer, "_encode", fake_encode)
        result = normalize_image(_png(100, 100), "photo.png")

        assert attempts == [85, 75, 70]
        assert result.quality == 70

    def test_palette_with_transparency_keeps_alpha(self):
        img = Image.new("P", (50, 50))
        img.info["transparency"] = 0
        buffer = io.BytesIO()
        img.save(buffer, format="PNG", transparency=0)

        result = normalize_image(buffer.getvalue(), "icon.png")
        assert Image.open(io.BytesIO(result.data)).mode == "RGBA"

    def test_undecodable_input_raises(self):
        with pytest.raises(ImageDecodeError):
            normalize_image(b"definitely not an image", "notes.txt")


class TestFormatBytes:
    @pytest.mark.parametrize(
        ("size", "expected"),
        [(512, "512 B"), (500_000, "488 KB"), (1_468_006, "1.4 MB")],
    )
    def test_human_readable(self, size, expected):
        assert format_bytes(size) == expected

"""
Image normalization before upload.

Photos are bounded to MAX_WIDTH x MAX_HEIGHT (aspect preserved) and re-encoded as
WebP. If the first encode is over TARGET_BYTES, quality is stepped down from 75 in
steps of 5 until the result fits or the floor of 60 has been tried; the last
attempt is returned either way, so the byte budget is a target, not a cap.
"""

from __future__ import annotations

import io
import re
from dataclasses import dataclass

from PIL import Image, ImageOps, UnidentifiedImageError

MAX_WIDTH = 2000
MAX_HEIGHT = 2000
TARGET_BYTES = 500_000  # 500 KB

# Quality is expressed in Pillow's integer percent scale
INITIAL_QUALITY = 85
RETRY_QUALITY = 75
QUALITY_STEP = 5
QUALITY_FLOOR = 60

OUTPUT_FORMAT = "WEBP"
OUTPUT_EXTENSION = ".webp"
OUTPUT_CONTENT_TYPE = "image/webp"

_EXTENSION_RE = re.compile(r"\.[^./\\]+$")


class ImageDecodeError(ValueError):
    """Raised when the upload cannot be decoded as an image."""


@dataclass(frozen=True)
class NormalizedImage:
    """Encoded output plus the sizes shown to the uploader."""

    data: bytes
    filename: str
    width: int
    height: int
    quality: int
    original_size: int
    content_type: str = OUTPUT_CONTENT_TYPE

    @property
    def compressed_size(self) -> int:
        return len(self.data)


def target_size(width: int, height: int) -> tuple[int, int]:
    """Scale (width, height) by min(MAX_WIDTH/w, MAX_HEIGHT/h) when either side is over the bound."""
    if width <= MAX_WIDTH and height <= MAX_HEIGHT:
        return width, height
    ratio = min(MAX_WIDTH / width, MAX_HEIGHT / height)
    return max(1, round(width * ratio)), max(1, round(height * ratio))


def output_filename(filename: str) -> str:
    """Replace the file extension with the output encoding's, adding one if missing."""
    name = filename or "image"
    if _EXTENSION_RE.search(name):
        return _EXTENSION_RE.sub(OUTPUT_EXTENSION, name)
    return name + OUTPUT_EXTENSION


def _encode(img: Image.Image, quality: int) -> bytes:
    buffer = io.BytesIO()
    img.save(buffer, format=OUTPUT_FORMAT, quality=quality, method=4)
    return buffer.getvalue()


def normalize_image(data: bytes, filename: str) -> NormalizedImage:
    """
    Resize and re-encode an uploaded image.

    Raises:
        ImageDecodeError: If ``data`` is not a decodable image.
    """
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        msg = f"Could not read image {filename!r}"
        raise ImageDecodeError(msg) from e

    img = ImageOps.exif_transpose(img)
    if img.mode not in ("RGB", "RGBA"):
        has_alpha = img.mode in ("LA", "PA") or (img.mode == "P" and "transparency" in img.info)
        img = img.convert("RGBA" if has_alpha else "RGB")

    width, height = target_size(*img.size)
    if (width, height) != img.size:
        img = img.resize((width, height), Image.Resampling.LANCZOS)

    quality = INITIAL_QUALITY
    encoded = _encode(img, quality)

    if len(encoded) > TARGET_BYTES:
        quality = RETRY_QUALITY
        while quality >= QUALITY_FLOOR:
            encoded = _encode(img, quality)
            if len(encoded) <= TARGET_BYTES:
                break
            quality -= QUALITY_STEP
        else:
            quality = QUALITY_FLOOR

    return NormalizedImage(
        data=encoded,
        filename=output_filename(filename),
        width=width,
        height=height,
        quality=quality,
        original_size=len(data),
    )


def format_bytes(size: int) -> str:
    """Human-readable byte count: '512 B', '488 KB', '1.4 MB'."""
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.0f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


"""Thumbnail decoration: draws a play button over the centre of an image.

The overlay is rendered procedurally: a filled disc with a ring border and a
right-pointing triangle, alpha-composited onto the decoded source and
re-encoded as JPEG. All geometry uses floor/truncation so the output is
reproducible for a given input.
"""

from __future__ import annotations

import logging
import math

import cv2
import numpy as np

from core.config import get_settings
from core.errors import DecodeError

logger = logging.getLogger(__name__)

# RGBA
DISC_COLOR = (255, 0, 0, 0xE6)
BORDER_COLOR = (255, 255, 255, 0xEE)
TRIANGLE_COLOR = (255, 255, 255, 0xFF)

TRIANGLE_SCALE = 0.4
TRIANGLE_LEFT_OFFSET = 0.2
TRIANGLE_WIDTH_SCALE = 0.7


def overlay_geometry(width: int, height: int, fraction: float) -> tuple[int, int, int]:
    """Return ``(size, left, top)`` of the overlay for a ``width`` x ``height`` image."""
    if width <= 0 or height <= 0:
        raise DecodeError(f"Image has invalid dimensions {width}x{height}")
    size = math.floor(fraction * min(width, height))
    left = (width - size) // 2
    top = (height - size) // 2
    return size, left, top


def build_overlay(size: int, inner_ratio: float) -> np.ndarray:
    """Render the ``size`` x ``size`` RGBA play-button canvas."""
    overlay = np.zeros((size, size, 4), dtype=np.uint8)
    if size == 0:
        return overlay

    radius = size / 2
    center = size // 2
    ys, xs = np.mgrid[0:size, 0:size]
    distance = np.sqrt((xs - center) ** 2 + (ys - center) ** 2)

    overlay[distance <= radius] = BORDER_COLOR
    overlay[distance <= radius * inner_ratio] = DISC_COLOR
    _fill_triangle(overlay, center)
    return overlay


def _fill_triangle(overlay: np.ndarray, center: int) -> None:
    size = overlay.shape[0]
    triangle_size = size * TRIANGLE_SCALE
    half = triangle_size / 2
    if half <= 0:
        return

    left = center - triangle_size * TRIANGLE_LEFT_OFFSET
    top = center - half
    start_x = max(math.floor(left), 0)

    for y in range(math.ceil(triangle_size)):
        # Zero width at the top and bottom rows, widest across the middle.
        width = (half - abs(y - half)) / half * triangle_size * TRIANGLE_WIDTH_SCALE
        end_x = min(math.floor(left + width), size - 1)
        row = math.floor(top + y)
        if 0 <= row < size and end_x >= start_x:
            overlay[row, start_x:end_x + 1] = TRIANGLE_COLOR


def composite(base: np.ndarray, overlay: np.ndarray, left: int, top: int) -> np.ndarray:
    """Blend an RGBA ``overlay`` over a BGR ``base`` (source-over), in place."""
    height, width = base.shape[:2]
    right = min(left + overlay.shape[1], width)
    bottom = min(top + overlay.shape[0], height)
    if right <= left or bottom <= top:
        return base

    patch = overlay[: bottom - top, : right - left].astype(np.uint32)
    alpha = patch[..., 3:4]
    color = patch[..., 2::-1]  # RGB -> BGR
    region = base[top:bottom, left:right].astype(np.uint32)

    blended = (color * alpha + region * (255 - alpha)) // 255
    base[top:bottom, left:right] = blended.astype(np.uint8)
    return base


def decode_image(image_bytes: bytes) -> np.ndarray:
    buffer = np.frombuffer(image_bytes, dtype=np.uint8)
    if buffer.size == 0:
        raise DecodeError("Image payload is empty")
    try:
        image = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
    except cv2.error as error:
        raise DecodeError(f"Unreadable image: {error}") from error
    if image is None:
        raise DecodeError("Unreadable image: unsupported or corrupt payload")
    return image


class ThumbnailDecorator:
    """Composites the play-button overlay and re-encodes the result as JPEG."""

    content_type = "image/jpeg"

    def __init__(
        self,
        overlay_fraction: float = 0.30,
        inner_ratio: float = 0.9,
        jpeg_quality: int = 90,
    ) -> None:
        if not 0 < overlay_fraction <= 1:
            raise ValueError(f"overlay_fraction must be in (0, 1], got {overlay_fraction}")
        if not 0 < inner_ratio <= 1:
            raise ValueError(f"inner_ratio must be in (0, 1], got {inner_ratio}")
        self.overlay_fraction = overlay_fraction
        self.inner_ratio = inner_ratio
        self.jpeg_quality = jpeg_quality

    @classmethod
    def from_settings(cls) -> "ThumbnailDecorator":
        settings = get_settings()
        return cls(
            overlay_fraction=settings.thumbnail_overlay_fraction,
            inner_ratio=settings.thumbnail_overlay_inner_ratio,
            jpeg_quality=settings.thumbnail_jpeg_quality,
        )

    def decorate(self, image_bytes: bytes) -> bytes:
        image = decode_image(image_bytes)
        height, width = image.shape[:2]
        size, left, top = overlay_geometry(width, height, self.overlay_fraction)

        overlay = build_overlay(size, self.inner_ratio)
        composite(image, overlay, left, top)

        ok, encoded = cv2.imencode(
            ".jpg", image, [int(cv2.IMWRITE_JPEG_QUALITY), self.jpeg_quality]
        )
        if not ok:
            raise DecodeError("JPEG encoding failed")

        logger.debug("Decorated %dx%d thumbnail with %dpx overlay", width, height, size)
        return encoded.tobytes()

"""Image decode/encode wrappers around ``cv2.imdecode`` / ``cv2.imencode``.

Design notes
------------
- Decoded images are always 8-bit with 3 (BGR) or 4 (BGRA) channels.
  Grayscale is promoted to BGR and 16-bit input is scaled to 8-bit, so
  the compositor only ever sees one pixel layout.
- Encoding happens once, at the very end of a job; everything before
  that works on uncompressed arrays.
"""

from __future__ import annotations

import logging

import cv2
import numpy as np

from mockup_compositor.errors import AssetResolutionError, UnsupportedFormatError

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS: tuple[str, ...] = ("jpg", "png")
_FORMAT_ALIASES: dict[str, str] = {"jpeg": "jpg"}

DEFAULT_JPEG_QUALITY = 92


def normalize_format(output_format: str) -> str:
    """Return the canonical format name or raise :class:`UnsupportedFormatError`."""
    name = str(output_format).lower().lstrip(".")
    name = _FORMAT_ALIASES.get(name, name)
    if name not in SUPPORTED_FORMATS:
        available = ", ".join(SUPPORTED_FORMATS)
        raise UnsupportedFormatError(
            f"Unsupported output format '{output_format}'. Available: {available}"
        )
    return name


def to_color_8bit(image: np.ndarray) -> np.ndarray:
    """Bring an array to ``uint8`` BGR or BGRA."""
    if image.dtype == np.uint16:
        image = (image / 257.0).round().astype(np.uint8)
    elif image.dtype != np.uint8:
        image = np.clip(image, 0, 255).astype(np.uint8)

    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    if image.ndim == 3 and image.shape[2] == 1:
        return cv2.cvtColor(image[:, :, 0], cv2.COLOR_GRAY2BGR)
    if image.ndim == 3 and image.shape[2] in (3, 4):
        return image
    raise ValueError(f"Unsupported image shape {image.shape}")


def decode_image(data: bytes, label: str = "image") -> np.ndarray:
    """Decode encoded image bytes (PNG, JPEG, WebP, ...).

    Raises
    ------
    AssetResolutionError
        If the bytes are empty or cannot be decoded.
    """
    if not data:
        raise AssetResolutionError(f"Empty image data for {label}")
    buffer = np.frombuffer(data, dtype=np.uint8)
    image = cv2.imdecode(buffer, cv2.IMREAD_UNCHANGED)
    if image is None:
        raise AssetResolutionError(f"Could not decode {label} ({len(data)} bytes)")
    try:
        return to_color_8bit(image)
    except ValueError as exc:
        raise AssetResolutionError(f"Could not decode {label}: {exc}") from exc


def encode_image(
    image: np.ndarray,
    output_format: str,
    jpeg_quality: int = DEFAULT_JPEG_QUALITY,
) -> bytes:
    """Encode a BGR/BGRA array as ``png`` (lossless) or ``jpg``.

    JPEG has no alpha channel, so a BGRA image is flattened to BGR first.
    """
    fmt = normalize_format(output_format)
    if fmt == "jpg":
        if image.ndim == 3 and image.shape[2] == 4:
            image = cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
        ok, buffer = cv2.imencode(".jpg", image, [cv2.IMWRITE_JPEG_QUALITY, int(jpeg_quality)])
    else:
        ok, buffer = cv2.imencode(".png", image)
    if not ok:
        raise OSError(f"cv2.imencode failed for format '{fmt}'")
    return buffer.tobytes()

"""Abstract interface for asset resolvers.

Every resolver must implement :meth:`fetch_bytes`, which returns the
encoded bytes behind an image reference (URL, path, storage key).
:meth:`fetch_image` decodes those bytes into a :class:`DecodedImage`.

Design notes
------------
- Mirrors the ABC + TypedDict result pattern used elsewhere in the
  pipeline.
- Resolvers are shared by concurrent batch workers, so implementations
  must be safe for concurrent reads and hold no per-request state.
- Every failure surfaces as :class:`AssetResolutionError`; the core
  never retries.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TypedDict

import numpy as np

from mockup_compositor.io.image_codec import decode_image


class DecodedImage(TypedDict):
    """Typed dictionary returned by :meth:`AssetResolver.fetch_image`.

    Attributes
    ----------
    pixels : np.ndarray
        ``(H, W, 3)`` BGR or ``(H, W, 4)`` BGRA uint8 array.
    width : int
        Pixel width.
    height : int
        Pixel height.
    """

    pixels: np.ndarray
    width: int
    height: int


class AssetResolver(ABC):
    """Abstract base class for image fetchers.

    Subclasses must implement :meth:`fetch_bytes`.
    """

    @abstractmethod
    def fetch_bytes(self, ref: str) -> bytes:
        """Return the encoded bytes behind *ref*.

        Raises
        ------
        AssetResolutionError
            If the asset cannot be fetched.
        """
        ...

    def fetch_image(self, ref: str) -> DecodedImage:
        """Fetch and decode *ref*."""
        pixels = decode_image(self.fetch_bytes(ref), label=ref)
        return DecodedImage(pixels=pixels, width=pixels.shape[1], height=pixels.shape[0])

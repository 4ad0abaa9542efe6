"""In-memory resolver -- assets held in a dict.

Useful for:
- tests and embedding callers that already hold the bytes,
- a read-through layer in front of a slower store.
"""

from __future__ import annotations

from collections.abc import Mapping

import numpy as np

from mockup_compositor.errors import AssetResolutionError
from mockup_compositor.io.image_codec import encode_image, to_color_8bit
from mockup_compositor.pipeline.assets.base import AssetResolver, DecodedImage


class InMemoryAssetResolver(AssetResolver):
    """Resolve refs from a mapping of encoded bytes or decoded arrays.

    Arrays are returned as copies, so callers may mutate what they get.
    The mapping itself is never modified after construction.
    """

    def __init__(self, assets: Mapping[str, bytes | np.ndarray] | None = None) -> None:
        self._assets: dict[str, bytes | np.ndarray] = dict(assets or {})

    def fetch_bytes(self, ref: str) -> bytes:
        asset = self._lookup(ref)
        if isinstance(asset, np.ndarray):
            return encode_image(asset, "png")
        return bytes(asset)

    def fetch_image(self, ref: str) -> DecodedImage:
        asset = self._lookup(ref)
        if isinstance(asset, np.ndarray):
            pixels = to_color_8bit(asset).copy()
            return DecodedImage(pixels=pixels, width=pixels.shape[1], height=pixels.shape[0])
        return super().fetch_image(ref)

    def _lookup(self, ref: str) -> bytes | np.ndarray:
        try:
            return self._assets[ref]
        except KeyError:
            raise AssetResolutionError(f"Asset not found: {ref}") from None

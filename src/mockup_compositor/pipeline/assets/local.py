"""Filesystem resolver rooted at an assets directory."""

from __future__ import annotations

import logging
from pathlib import Path

from mockup_compositor.errors import AssetResolutionError
from mockup_compositor.pipeline.assets.base import AssetResolver

logger = logging.getLogger(__name__)


class LocalAssetResolver(AssetResolver):
    """Read image files below *root*.

    Refs are relative paths; a leading ``/`` is ignored so web-style
    paths such as ``/ooh/frames/a.jpg`` resolve under *root*.  Refs that
    escape *root* are rejected.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).resolve()

    def resolve_path(self, ref: str) -> Path:
        """Map *ref* to an absolute path inside :attr:`root`."""
        if not ref:
            raise AssetResolutionError("Empty asset reference")
        candidate = (self.root / ref.lstrip("/\\")).resolve()
        if candidate != self.root and self.root not in candidate.parents:
            raise AssetResolutionError(f"Asset path escapes the assets root: {ref}")
        return candidate

    def fetch_bytes(self, ref: str) -> bytes:
        path = self.resolve_path(ref)
        try:
            return path.read_bytes()
        except OSError as exc:
            raise AssetResolutionError(f"Cannot read asset {ref}: {exc.strerror or exc}") from exc

"""HTTP(S) resolver backed by ``requests``, plus URL-or-path routing."""

from __future__ import annotations

import logging

import requests

from mockup_compositor.errors import AssetResolutionError
from mockup_compositor.pipeline.assets.base import AssetResolver
from mockup_compositor.pipeline.assets.local import LocalAssetResolver

logger = logging.getLogger(__name__)

DEFAULT_HTTP_TIMEOUT_S = 30.0


def is_http_ref(ref: str) -> bool:
    return ref.startswith(("http://", "https://"))


class HttpAssetResolver(AssetResolver):
    """Fetch assets with ``requests.get``.

    No retries: a failed fetch raises :class:`AssetResolutionError` and
    the caller decides whether to try again.
    """

    def __init__(self, timeout_s: float = DEFAULT_HTTP_TIMEOUT_S) -> None:
        self.timeout_s = timeout_s

    def fetch_bytes(self, ref: str) -> bytes:
        if not is_http_ref(ref):
            raise AssetResolutionError(f"Not an http(s) URL: {ref}")
        try:
            response = requests.get(ref, timeout=self.timeout_s)
        except requests.RequestException as exc:
            raise AssetResolutionError(f"Failed to fetch image {ref}: {exc}") from exc
        if not response.ok:
            raise AssetResolutionError(f"Failed to fetch image ({response.status_code}): {ref}")
        logger.debug("Fetched %s (%d bytes)", ref, len(response.content))
        return response.content


class RoutingAssetResolver(AssetResolver):
    """Send ``http(s)://`` refs to *remote* and everything else to *local*."""

    def __init__(self, local: AssetResolver, remote: AssetResolver | None = None) -> None:
        self.local = local
        self.remote = remote if remote is not None else HttpAssetResolver()

    def fetch_bytes(self, ref: str) -> bytes:
        if is_http_ref(ref):
            return self.remote.fetch_bytes(ref)
        return self.local.fetch_bytes(ref)


def create_resolver(assets_root: str, http_timeout_s: float = DEFAULT_HTTP_TIMEOUT_S) -> RoutingAssetResolver:
    """URL-or-path resolver: HTTP for URLs, files below *assets_root* otherwise."""
    return RoutingAssetResolver(
        local=LocalAssetResolver(assets_root),
        remote=HttpAssetResolver(timeout_s=http_timeout_s),
    )

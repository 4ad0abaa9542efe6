"""Asset resolvers -- fetch and decode frame and creative images."""

from mockup_compositor.pipeline.assets.base import AssetResolver, DecodedImage
from mockup_compositor.pipeline.assets.http import (
    HttpAssetResolver,
    RoutingAssetResolver,
    create_resolver,
)
from mockup_compositor.pipeline.assets.local import LocalAssetResolver
from mockup_compositor.pipeline.assets.memory import InMemoryAssetResolver

__all__ = [
    "AssetResolver",
    "DecodedImage",
    "HttpAssetResolver",
    "InMemoryAssetResolver",
    "LocalAssetResolver",
    "RoutingAssetResolver",
    "create_resolver",
]

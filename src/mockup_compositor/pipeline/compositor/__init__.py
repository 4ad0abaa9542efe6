"""Compositing operator -- warp one creative into one quad and blend."""

from mockup_compositor.pipeline.compositor.perspective_blend import (
    bilinear_sample,
    composite,
    composite_into,
)

__all__ = ["bilinear_sample", "composite", "composite_into"]

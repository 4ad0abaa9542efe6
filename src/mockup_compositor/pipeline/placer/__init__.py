"""Placement handling -- record normalisation and multi-placement composing."""

from mockup_compositor.pipeline.placer.multi_placer import MultiPlacementComposer
from mockup_compositor.pipeline.placer.placement import (
    creative_from_record,
    fill_assignments,
    frame_from_record,
)

__all__ = [
    "MultiPlacementComposer",
    "creative_from_record",
    "fill_assignments",
    "frame_from_record",
]

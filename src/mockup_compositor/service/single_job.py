"""Single-mockup service: validate a request, compose it, encode it.

This is the unit the batch runner invokes once per frame.  Every failure
is raised as a typed :class:`~mockup_compositor.errors.MockupError`
subclass; nothing is retried here.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping

from mockup_compositor.errors import AssetResolutionError, RequestValidationError
from mockup_compositor.io.config import EngineConfig
from mockup_compositor.io.image_codec import normalize_format
from mockup_compositor.models import CompositeRequest, CompositeResult, Creative
from mockup_compositor.pipeline.assets.base import AssetResolver
from mockup_compositor.pipeline.placer.multi_placer import MultiPlacementComposer

logger = logging.getLogger(__name__)


class SingleJobService:
    """Run one :class:`CompositeRequest` to a :class:`CompositeResult`.

    Parameters
    ----------
    resolver : AssetResolver
        Fetches frame and creative images.
    creatives : Mapping[str, Creative]
        Known creative records by id.
    config : EngineConfig | None
        Engine settings; defaults when ``None``.
    """

    def __init__(
        self,
        resolver: AssetResolver,
        creatives: Mapping[str, Creative],
        config: EngineConfig | None = None,
    ) -> None:
        self.config = config if config is not None else EngineConfig()
        self._composer = MultiPlacementComposer(
            resolver,
            creatives,
            min_quad_area=self.config.min_quad_area,
            jpeg_quality=self.config.jpeg_quality,
        )

    @property
    def creatives(self) -> Mapping[str, Creative]:
        return self._composer.creatives

    def validate(self, request: CompositeRequest) -> None:
        """Check *request* without doing any I/O.

        Raises
        ------
        UnsupportedFormatError
            Unknown output format.
        RequestValidationError
            Opacity out of range, frame without placements, or no
            assignments.
        AssetResolutionError
            No assignment names a known creative.
        """
        normalize_format(request.output_format)
        if not 0 <= request.opacity <= 100:
            raise RequestValidationError(f"opacity must be in [0, 100], got {request.opacity}")
        if not request.frame.placements:
            raise RequestValidationError(f"Frame '{request.frame.id}' has no placements")
        if not request.assignments:
            raise RequestValidationError(f"No placement assignments for frame '{request.frame.id}'")
        if not any(assignment.creative_id in self.creatives for assignment in request.assignments):
            missing = ", ".join(sorted({assignment.creative_id for assignment in request.assignments}))
            raise AssetResolutionError(f"Creative not found: {missing}")

    def run(self, request: CompositeRequest) -> CompositeResult:
        """Validate and compose *request*."""
        self.validate(request)
        start = time.perf_counter()
        result = self._composer.compose_all(
            request.frame,
            request.assignments,
            opacity=request.opacity,
            output_format=request.output_format,
        )
        logger.info(
            "Composed frame '%s'  |  %d placement(s)  |  %dx%d %s  |  %.2f s%s",
            request.frame.id,
            len(request.assignments),
            result.width,
            result.height,
            result.format,
            time.perf_counter() - start,
            f"  |  {len(result.warnings)} skipped" if result.warnings else "",
        )
        return result

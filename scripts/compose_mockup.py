#!/usr/bin/env python3
"""CLI entrypoint -- compose one mockup from a manifest and write it to disk.

Usage
-----
    # Shared creative in every placement of the frame:
    python scripts/compose_mockup.py manifest.yaml f-001 c-001 out/mockup.jpg

    # Different creative for placement 1, PNG output, 80 % opacity:
    python scripts/compose_mockup.py manifest.yaml f-001 c-001 out/mockup.png \\
        --assign 1=c-002 --format png --opacity 80

    # Also write a placement-outline preview next to the output:
    python scripts/compose_mockup.py manifest.yaml f-001 c-001 out/mockup.jpg \\
        --draw_outlines

Config defaults are loaded from ``configs/default.yaml``; any CLI flag
overrides the corresponding config value.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

# ---------------------------------------------------------------------------
# Make the ``src/`` tree importable when running the script directly.
# ---------------------------------------------------------------------------
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(_PROJECT_ROOT / "src"))

from mockup_compositor.errors import MockupError  # noqa: E402
from mockup_compositor.io.config import DEFAULTS_CONFIG_PATH, EngineConfig, load_config  # noqa: E402
from mockup_compositor.io.image_codec import SUPPORTED_FORMATS, encode_image  # noqa: E402
from mockup_compositor.io.manifest import load_manifest  # noqa: E402
from mockup_compositor.models import CompositeRequest, Frame, PlacementRef  # noqa: E402
from mockup_compositor.pipeline.assets import AssetResolver, create_resolver  # noqa: E402
from mockup_compositor.pipeline.placer.placement import fill_assignments  # noqa: E402
from mockup_compositor.service.single_job import SingleJobService  # noqa: E402
from mockup_compositor.utils.draw import draw_placement_outlines  # noqa: E402

logger = logging.getLogger("compose_mockup")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def parse_assignment(value: str) -> tuple[PlacementRef, str]:
    """Parse ``'PLACEMENT=CREATIVE_ID'``; numeric placements become indices."""
    placement, separator, creative_id = value.partition("=")
    if not separator or not placement or not creative_id:
        raise argparse.ArgumentTypeError(
            f"Invalid assignment '{value}'. Expected 'PLACEMENT=CREATIVE_ID', e.g. '1=c-002'."
        )
    return (int(placement) if placement.isdigit() else placement), creative_id


def write_outline_preview(
    resolver: AssetResolver,
    frame: Frame,
    output_path: Path,
) -> Path:
    """Write the frame photo with every placement outlined, as PNG."""
    base = resolver.fetch_image(frame.image_ref)
    preview = base["pixels"].copy()
    scale_x = base["width"] / frame.width
    scale_y = base["height"] / frame.height
    quads = [placement.scaled(scale_x, scale_y).quad for placement in frame.placements]
    draw_placement_outlines(preview, quads, [placement.label for placement in frame.placements])
    preview_path = output_path.with_name(f"{output_path.stem}.outlines.png")
    preview_path.write_bytes(encode_image(preview, "png"))
    return preview_path


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def build_argument_parser() -> argparse.ArgumentParser:
    """Build and return the CLI argument parser."""
    parser = argparse.ArgumentParser(
        description="Mockup Compositor -- place a creative onto one frame's placements.",
    )
    parser.add_argument("manifest", help="Path to the manifest YAML with frames and creatives")
    parser.add_argument("frame_id", help="Frame id from the manifest")
    parser.add_argument("creative_id", help="Creative placed in every placement by default")
    parser.add_argument("output", help="Path of the output image (e.g. mockup.jpg)")

    parser.add_argument(
        "--assign",
        type=parse_assignment,
        action="append",
        default=[],
        metavar="PLACEMENT=CREATIVE_ID",
        help="Use a different creative for one placement (index or id). Repeatable.",
    )
    parser.add_argument(
        "--opacity",
        type=float,
        default=None,
        help="Creative opacity in percent, 0-100 (default: 100)",
    )
    parser.add_argument(
        "--format",
        type=str,
        default=None,
        choices=list(SUPPORTED_FORMATS),
        help="Output encoding (default: from config, 'jpg')",
    )
    parser.add_argument(
        "--assets_root",
        type=str,
        default=None,
        help="Directory that local image references are relative to (default: '.')",
    )
    parser.add_argument(
        "--draw_outlines",
        action="store_true",
        default=False,
        help="Also write <output>.outlines.png showing every placement quad on the frame.",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to YAML config file (default: configs/default.yaml)",
    )
    return parser


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------


def main() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    parser = build_argument_parser()
    args = parser.parse_args()

    # --- Merge config defaults with CLI overrides -------------------------
    config_path = Path(args.config) if args.config else DEFAULTS_CONFIG_PATH
    config = EngineConfig.from_mapping(load_config(config_path)).with_overrides(
        opacity=args.opacity,
        output_format=args.format,
        assets_root=args.assets_root,
    )
    logger.info("Loaded config from %s", config_path)

    manifest = load_manifest(Path(args.manifest))
    frame = manifest.frames.get(args.frame_id)
    if frame is None:
        logger.error("Frame '%s' not found in %s", args.frame_id, args.manifest)
        return 1

    resolver = create_resolver(config.assets_root, config.http_timeout_s)
    service = SingleJobService(resolver, manifest.creatives, config)

    try:
        request = CompositeRequest(
            frame=frame,
            assignments=fill_assignments(frame, args.creative_id, dict(args.assign)),
            opacity=config.opacity,
            output_format=config.output_format,
        )
        result = service.run(request)
    except MockupError as exc:
        logger.error("Mockup failed: %s", exc)
        return 1

    output_path = Path(args.output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(result.image_bytes)
    logger.info(
        "Wrote %s  |  %dx%d %s  |  %d bytes",
        output_path,
        result.width,
        result.height,
        result.format,
        len(result.image_bytes),
    )
    for warning in result.warnings:
        logger.warning("Partial mockup: %s", warning)

    if args.draw_outlines:
        preview_path = write_outline_preview(resolver, frame, output_path)
        logger.info("Wrote outline preview %s", preview_path)
    return 0


if __name__ == "__main__":
    sys.exit(main())

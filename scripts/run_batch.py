#!/usr/bin/env python3
"""CLI entrypoint -- generate mockups for many frames with one creative.

Usage
-----
    # Every frame in the manifest, default concurrency:
    python scripts/run_batch.py manifest.yaml c-001 out/

    # Selected frames, PNG output, 8 workers, 30 s per frame:
    python scripts/run_batch.py manifest.yaml c-001 out/ \\
        --frames f-001 f-002 f-007 --format png \\
        --concurrency 8 --item_timeout 30

Each resolved frame is logged as it completes; failed frames are listed
in the final summary and do not stop the batch.  Exit code is ``0`` only
when every frame succeeded.

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

from mockup_compositor.io.config import DEFAULTS_CONFIG_PATH, EngineConfig, load_config  # noqa: E402
from mockup_compositor.io.image_codec import SUPPORTED_FORMATS  # noqa: E402
from mockup_compositor.io.manifest import load_manifest, unique_mockup_filename  # noqa: E402
from mockup_compositor.models import BatchCompleted, BatchItem, ProgressEvent  # noqa: E402
from mockup_compositor.pipeline.assets import create_resolver  # noqa: E402
from mockup_compositor.service.batch_runner import BatchRunner  # noqa: E402
from mockup_compositor.service.single_job import SingleJobService  # noqa: E402

logger = logging.getLogger("run_batch")


def build_argument_parser() -> argparse.ArgumentParser:
    """Build and return the CLI argument parser."""
    parser = argparse.ArgumentParser(
        description="Mockup Compositor -- place one creative on many frames concurrently.",
    )
    parser.add_argument("manifest", help="Path to the manifest YAML with frames and creatives")
    parser.add_argument("creative_id", help="Creative placed on every frame")
    parser.add_argument("output_dir", help="Directory the mockups are written to")

    parser.add_argument(
        "--frames",
        nargs="+",
        default=None,
        metavar="FRAME_ID",
        help="Frame ids to process (default: every frame in the manifest)",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Number of frames composed in parallel (default: 4)",
    )
    parser.add_argument(
        "--item_timeout",
        type=float,
        default=None,
        help="Seconds allowed per frame, fetch + compose (default: 60)",
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
        "--config",
        type=str,
        default=None,
        help="Path to YAML config file (default: configs/default.yaml)",
    )
    return parser


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
        concurrency_limit=args.concurrency,
        item_timeout_s=args.item_timeout,
        opacity=args.opacity,
        output_format=args.format,
        assets_root=args.assets_root,
    )
    logger.info("Loaded config from %s", config_path)

    manifest = load_manifest(Path(args.manifest))
    creative = manifest.creatives.get(args.creative_id)
    if creative is None:
        logger.error("Creative '%s' not found in %s", args.creative_id, args.manifest)
        return 1

    frame_ids = args.frames if args.frames else list(manifest.frames)
    items = [BatchItem(frame_id=frame_id) for frame_id in frame_ids]

    resolver = create_resolver(config.assets_root, config.http_timeout_s)
    service = SingleJobService(resolver, manifest.creatives, config)
    runner = BatchRunner(service, manifest.frames)

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    completed: BatchCompleted | None = None
    for event in runner.run(items, creative_id=creative.id, report_starts=True):
        if isinstance(event, ProgressEvent):
            logger.info(
                "[%3d%%] %d/%d  %s  %s%s",
                event.percent,
                event.processed_count,
                event.total_count,
                event.current_item_label,
                event.item_status,
                f"  ({event.error})" if event.error else "",
            )
        else:
            completed = event

    if completed is None:
        raise RuntimeError("Batch ended without a BatchCompleted event")
    used_names: set[str] = set()
    for result in completed.results:
        if not result.success or result.image_bytes is None:
            logger.error("Failed: %s -- %s", result.frame_id, result.error)
            continue
        filename = unique_mockup_filename(
            result.frame_name or result.frame_id,
            result.frame_id,
            creative.display_name,
            config.output_format,
            used_names,
        )
        (output_dir / filename).write_bytes(result.image_bytes)
        for warning in result.warnings:
            logger.warning("Partial mockup %s: %s", filename, warning)

    logger.info("Batch summary -- %s", completed.summary.to_log_string())
    return 0 if completed.summary.failed == 0 else 1


if __name__ == "__main__":
    sys.exit(main())

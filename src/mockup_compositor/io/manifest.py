"""Manifest files: frame and creative records in one YAML document.

Layout::

    frames:
      - {id: f-001, name: ..., frameImageUrl: ..., frameWidth: ..., ...}
    creatives:
      - {id: c-001, companyName: ..., thumbnailUrl: ...}

Records are normalised with :func:`frame_from_record` /
:func:`creative_from_record` as they are loaded.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from mockup_compositor.errors import RecordError
from mockup_compositor.models import Creative, Frame
from mockup_compositor.pipeline.placer.placement import creative_from_record, frame_from_record

logger = logging.getLogger(__name__)


@dataclass
class Manifest:
    frames: dict[str, Frame] = field(default_factory=dict)
    creatives: dict[str, Creative] = field(default_factory=dict)


def load_manifest(manifest_path: Path) -> Manifest:
    """Load and normalise a manifest file.

    Raises
    ------
    FileNotFoundError
        If *manifest_path* does not exist.
    RecordError
        If the document or any record is malformed.
    """
    with open(manifest_path) as manifest_file:
        try:
            document = yaml.safe_load(manifest_file) or {}
        except yaml.YAMLError as exc:
            raise RecordError(f"Invalid YAML in {manifest_path}: {exc}") from exc
    if not isinstance(document, dict):
        raise RecordError(f"Manifest root must be a mapping: {manifest_path}")

    manifest = Manifest()
    for record in document.get("frames") or []:
        frame = frame_from_record(record)
        if frame.id in manifest.frames:
            raise RecordError(f"Duplicate frame id '{frame.id}' in {manifest_path}")
        manifest.frames[frame.id] = frame
    for record in document.get("creatives") or []:
        creative = creative_from_record(record)
        if creative.id in manifest.creatives:
            raise RecordError(f"Duplicate creative id '{creative.id}' in {manifest_path}")
        manifest.creatives[creative.id] = creative

    logger.info(
        "Loaded manifest %s  |  %d frame(s)  |  %d creative(s)",
        manifest_path,
        len(manifest.frames),
        len(manifest.creatives),
    )
    return manifest


def mockup_filename(frame_name: str, creative_name: str, output_format: str) -> str:
    """``Mockup-<frame>-<creative>.<ext>`` with whitespace runs as dashes."""
    frame_part = re.sub(r"\s+", "-", frame_name.strip())
    creative_part = re.sub(r"\s+", "-", creative_name.strip())
    # Keep the name a single path component.
    frame_part = frame_part.replace("/", "-").replace("\\", "-")
    creative_part = creative_part.replace("/", "-").replace("\\", "-")
    return f"Mockup-{frame_part}-{creative_part}.{output_format}"


def unique_mockup_filename(
    frame_name: str,
    frame_id: str,
    creative_name: str,
    output_format: str,
    used_names: set[str],
) -> str:
    """:func:`mockup_filename`, suffixed with *frame_id* if already in *used_names*.

    The chosen name is added to *used_names*.
    """
    filename = mockup_filename(frame_name, creative_name, output_format)
    if filename in used_names:
        filename = mockup_filename(f"{frame_name}-{frame_id}", creative_name, output_format)
    suffix = 2
    while filename in used_names:
        filename = mockup_filename(f"{frame_name}-{frame_id}-{suffix}", creative_name, output_format)
        suffix += 1
    used_names.add(filename)
    return filename

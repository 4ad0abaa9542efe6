"""Shared fixtures: synthetic images, frames and creatives."""

import sys
from pathlib import Path

import numpy as np
import pytest

# Ensure src/ is importable when running tests directly or via pytest
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = str(_PROJECT_ROOT / "src")
if _SRC_DIR not in sys.path:
    sys.path.insert(0, _SRC_DIR)

from mockup_compositor.models import Creative, Frame, Placement  # noqa: E402

RED_BGR = (0, 0, 255)
BLUE_BGR = (255, 0, 0)
GREEN_BGR = (0, 255, 0)

RECT_QUAD = ((80, 60), (720, 60), (720, 540), (80, 540))
SKEWED_QUAD = ((80, 60), (720, 100), (680, 540), (120, 500))


def solid_image(width: int, height: int, color: tuple[int, ...]) -> np.ndarray:
    image = np.zeros((height, width, len(color)), dtype=np.uint8)
    image[:, :] = color
    return image


def gradient_image(width: int, height: int, seed: int = 0) -> np.ndarray:
    """Deterministic non-uniform BGR image."""
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)


@pytest.fixture
def base_frame_pixels() -> np.ndarray:
    return gradient_image(800, 600, seed=1)


@pytest.fixture
def red_creative() -> np.ndarray:
    return solid_image(400, 300, RED_BGR)


def make_frame(frame_id: str, quads, width: int = 800, height: int = 600, name=None) -> Frame:
    return Frame(
        id=frame_id,
        name=name,
        width=width,
        height=height,
        image_ref=f"frames/{frame_id}.png",
        placements=tuple(
            Placement(quad=quad, label=f"P{index}", id=f"{frame_id}-p{index}")
            for index, quad in enumerate(quads)
        ),
    )


def make_creative(creative_id: str) -> Creative:
    return Creative(id=creative_id, image_ref=f"creatives/{creative_id}.png", name=creative_id.upper())

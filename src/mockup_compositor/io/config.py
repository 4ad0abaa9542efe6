"""YAML configuration loading.

Defaults live in ``configs/default.yaml``; CLI flags override individual
keys.  :class:`EngineConfig` is the validated, immutable view that the
services consume.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

from mockup_compositor.errors import ConfigError, UnsupportedFormatError
from mockup_compositor.geometry.quad import DEFAULT_MIN_QUAD_AREA
from mockup_compositor.io.image_codec import DEFAULT_JPEG_QUALITY, normalize_format

logger = logging.getLogger(__name__)

_PROJECT_ROOT = Path(__file__).resolve().parents[3]
DEFAULTS_CONFIG_PATH = _PROJECT_ROOT / "configs" / "default.yaml"


def load_config(config_path: Path) -> dict[str, Any]:
    """Load a YAML config file and return its contents as a dict."""
    if config_path.exists():
        with open(config_path) as config_file:
            try:
                data = yaml.safe_load(config_file) or {}
            except yaml.YAMLError as exc:
                raise ConfigError(f"Invalid YAML in {config_path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"Config root must be a mapping: {config_path}")
        return data
    logger.warning("Config file not found: %s -- using built-in defaults.", config_path)
    return {}


@dataclass(frozen=True)
class EngineConfig:
    """Validated engine settings."""

    output_format: str = "jpg"
    jpeg_quality: int = DEFAULT_JPEG_QUALITY
    opacity: float = 100.0
    concurrency_limit: int = 4
    item_timeout_s: float | None = 60.0
    min_quad_area: float = DEFAULT_MIN_QUAD_AREA
    http_timeout_s: float = 30.0
    assets_root: str = "."

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "output_format", normalize_format(self.output_format))
        except UnsupportedFormatError as exc:
            raise ConfigError(str(exc)) from exc
        if not 1 <= self.jpeg_quality <= 100:
            raise ConfigError(f"jpeg_quality must be in [1, 100], got {self.jpeg_quality}")
        if not 0 <= self.opacity <= 100:
            raise ConfigError(f"opacity must be in [0, 100], got {self.opacity}")
        if self.concurrency_limit < 1:
            raise ConfigError(f"concurrency_limit must be >= 1, got {self.concurrency_limit}")
        if self.item_timeout_s is not None and self.item_timeout_s <= 0:
            raise ConfigError(f"item_timeout_s must be > 0 or null, got {self.item_timeout_s}")
        if self.min_quad_area < 0:
            raise ConfigError(f"min_quad_area must be >= 0, got {self.min_quad_area}")
        if self.http_timeout_s <= 0:
            raise ConfigError(f"http_timeout_s must be > 0, got {self.http_timeout_s}")

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> EngineConfig:
        """Build from a config dict, ignoring unknown keys."""
        known = {field_info.name for field_info in fields(cls)}
        unknown = sorted(set(config) - known)
        if unknown:
            logger.warning("Ignoring unknown config keys: %s", ", ".join(unknown))
        return cls(**{key: value for key, value in config.items() if key in known})

    def with_overrides(self, **overrides: Any) -> EngineConfig:
        """Copy with every non-``None`` override applied."""
        return replace(self, **{key: value for key, value in overrides.items() if value is not None})

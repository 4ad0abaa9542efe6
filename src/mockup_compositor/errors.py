"""Error taxonomy for mockup generation.

Design notes
------------
- Every error derives from :class:`MockupError` so callers can catch
  the whole family at one boundary (the batch runner does exactly that).
- Each class also derives from the closest built-in exception
  (``ValueError``, ``OSError``, ``TimeoutError``) so generic handlers
  keep working.
- Geometry and format errors are deterministic input failures and are
  never retried.  Asset errors may be transient; retrying is the
  caller's decision.
"""

from __future__ import annotations


class MockupError(Exception):
    """Root of all errors raised by the compositor."""


class GeometryError(MockupError, ValueError):
    """Degenerate or invalid placement quad."""


class AssetResolutionError(MockupError, OSError):
    """Frame or creative bytes could not be fetched or decoded."""


class UnsupportedFormatError(MockupError, ValueError):
    """Requested output encoding is not supported."""


class RequestValidationError(MockupError, ValueError):
    """A composite request is malformed (opacity, assignments, ...)."""


class ConfigError(MockupError, ValueError):
    """Invalid configuration value."""


class RecordError(MockupError, ValueError):
    """A stored frame/creative record cannot be normalized."""


class ItemTimeoutError(MockupError, TimeoutError):
    """A batch item exceeded its per-item deadline."""


class BatchItemError(MockupError):
    """Wraps the failure of a single batch item.

    The original exception is available as ``__cause__``.
    """

    def __init__(self, frame_id: str, cause: BaseException) -> None:
        super().__init__(f"{frame_id}: {cause}")
        self.frame_id = frame_id
        self.__cause__ = cause

    @property
    def reason(self) -> str:
        """Human-readable reason taken from the wrapped exception."""
        cause = self.__cause__
        if cause is None:
            return str(self)
        message = str(cause) or type(cause).__name__
        return f"{type(cause).__name__}: {message}"


class PartialCompositeWarning(UserWarning):
    """Note recorded when a placement was skipped in a multi-placement frame."""

    def __init__(self, placement_index: int, placement_label: str | None, reason: str) -> None:
        label = f" ({placement_label})" if placement_label else ""
        super().__init__(f"placement {placement_index}{label} skipped: {reason}")
        self.placement_index = placement_index
        self.placement_label = placement_label
        self.reason = reason

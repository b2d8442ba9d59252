"""Exceptions raised while validating, fetching and splitting images."""

from typing import Optional


class StencilError(Exception):
    """Base class for every failure surfaced to the caller."""


class ValidationError(StencilError, ValueError):
    """Upload rejected before any pixel processing."""

    def __init__(self, reason: str, message: Optional[str] = None) -> None:
        self.reason = reason
        super().__init__(message or reason)


class DecodeError(StencilError, ValueError):
    """Bytes are not a raster image Pillow can decode."""


class FetchError(StencilError, IOError):
    """Remote image could not be retrieved."""


class DimensionError(StencilError, ValueError):
    """Geometry that would make the planner divide by zero or produce no pixels."""

from __future__ import annotations


class GeotagError(Exception):
    """Base exception for the package."""


class MetadataReadError(GeotagError, OSError):
    """Raised when an image cannot be opened or stat'ed at all."""


class InvalidCoordinatesError(GeotagError, ValueError):
    """Raised when a caller asks to write coordinates outside the valid range."""


__all__ = ["GeotagError", "InvalidCoordinatesError", "MetadataReadError"]

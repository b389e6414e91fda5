"""Exceptions raised by the image generators."""


class ImageGenError(Exception):
    """Base class for image generation failures."""


class DegenerateGeometryError(ImageGenError, ValueError):
    """Geometry that leaves a quantity undefined (empty segment, zero spread)."""


class SeedFileError(ImageGenError, ValueError):
    """Missing or malformed Voronoi seed file."""


class MaskLevelFileError(ImageGenError, ValueError):
    """Malformed segment mask-level table."""


class BufferNotFoundError(ImageGenError, KeyError):
    """Lookup of a buffer name that the store does not hold."""

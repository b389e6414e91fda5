"""
Disk rasterization with sub-pixel anti-aliasing.

The bounding box of a disk is split into three disjoint kinds of pixels:

1. An inner square (side radius*sqrt(2), inset by a 2 pixel margin) that is
   fully covered and is set to 1 without any distance test.
2. Four skirt bands around the inner square, where each pixel gets the exact
   test dx^2 + dy^2 < r^2.
3. Boundary pixels inside the skirts (within 1.5 px of the edge), whose value
   is the fraction of a 55x55 sub-sample grid falling inside the disk.

Pixel (ii, jj) sits at coordinate (ii, jj). The same zone machinery serves the
perturbed disk through a local-radius callback.
"""

from dataclasses import dataclass
from typing import Callable, List, Tuple, Union

import numpy as np
import structlog

from .buffer_store import BufferStore, Image

logger = structlog.get_logger()

SUBGRID_SIZE = 55
BOUNDARY_WIDTH = 1.5
EDGE_MARGIN = 2
INNER_SQUARE_FACTOR = 0.707106781

# Boundary pixels evaluated per vectorized batch
_COVERAGE_CHUNK = 256

RadiusFunction = Callable[[np.ndarray, np.ndarray], Union[float, np.ndarray]]


def subpixel_offsets(n: int = SUBGRID_SIZE) -> np.ndarray:
    """
    Evenly spaced sub-sample offsets spanning one pixel.

    The offsets are centred on the pixel and exactly antisymmetric, so a
    disk centred on a pixel corner samples identically in every quadrant.
    """
    return (2.0 * np.arange(n) - (n - 1)) / (2.0 * n)


def _clamp(value: int, upper: int) -> int:
    return min(max(value, 0), upper)


@dataclass(frozen=True)
class DiskZones:
    """Half-open pixel bounds of the outer box and the inner square."""

    x1: int
    x2: int
    y1: int
    y2: int
    x1i: int
    x2i: int
    y1i: int
    y2i: int

    @classmethod
    def around(
        cls,
        shape: Tuple[int, int],
        x_center: float,
        y_center: float,
        outer_radius: float,
        inner_radius: float,
    ) -> "DiskZones":
        """
        Compute clamped zone bounds for a disk.

        Args:
            shape: (ysize, xsize) of the target array
            x_center: Disk centre x in pixels
            y_center: Disk centre y in pixels
            outer_radius: Radius bounding every pixel that may be covered
            inner_radius: Radius below which every pixel is fully covered

        Returns:
            DiskZones with every bound inside [0, size]
        """
        ysize, xsize = shape
        inner = INNER_SQUARE_FACTOR * inner_radius
        # int() truncates toward zero before clamping
        return cls(
            x1=_clamp(int(x_center - outer_radius - EDGE_MARGIN), xsize),
            x2=_clamp(int(x_center + outer_radius + EDGE_MARGIN), xsize),
            y1=_clamp(int(y_center - outer_radius - EDGE_MARGIN), ysize),
            y2=_clamp(int(y_center + outer_radius + EDGE_MARGIN), ysize),
            x1i=_clamp(int(x_center - inner + EDGE_MARGIN), xsize),
            x2i=_clamp(int(x_center + inner - EDGE_MARGIN), xsize),
            y1i=_clamp(int(y_center - inner + EDGE_MARGIN), ysize),
            y2i=_clamp(int(y_center + inner - EDGE_MARGIN), ysize),
        )

    @property
    def interior(self) -> Tuple[slice, slice]:
        return slice(self.y1i, self.y2i), slice(self.x1i, self.x2i)

    def skirts(self) -> List[Tuple[slice, slice]]:
        """(rows, cols) slices of the left, right, top and bottom bands."""
        return [
            (slice(self.y1, self.y2), slice(self.x1, self.x1i)),
            (slice(self.y1, self.y2), slice(self.x2i, self.x2)),
            (slice(self.y1, self.y1i), slice(self.x1i, self.x2i)),
            (slice(self.y2i, self.y2), slice(self.x1i, self.x2i)),
        ]


def coverage_fraction(
    dx: np.ndarray,
    dy: np.ndarray,
    local_radius: RadiusFunction,
    offsets: np.ndarray,
) -> np.ndarray:
    """
    Fraction of each pixel's sub-samples lying inside the shape.

    Args:
        dx: Pixel x offsets from the centre (1D)
        dy: Pixel y offsets from the centre (1D)
        local_radius: Boundary radius as a function of sample offsets
        offsets: Sub-sample offsets along one axis

    Returns:
        Coverage in [0, 1] for each pixel
    """
    n_samples = offsets.size * offsets.size
    coverage = np.empty(dx.size, dtype=np.float64)

    for start in range(0, dx.size, _COVERAGE_CHUNK):
        stop = start + _COVERAGE_CHUNK
        # (pixels, 1, n) against (pixels, n, 1) spans the full sub-grid
        sx = (dx[start:stop, None] + offsets)[:, None, :]
        sy = (dy[start:stop, None] + offsets)[:, :, None]
        radius = local_radius(sx, sy)
        inside = sx * sx + sy * sy < radius * radius
        coverage[start:stop] = np.count_nonzero(inside, axis=(1, 2)) / n_samples

    return coverage


def rasterize_zones(
    out: np.ndarray,
    x_center: float,
    y_center: float,
    zones: DiskZones,
    local_radius: RadiusFunction,
    antialias: bool,
) -> int:
    """
    Fill the interior and skirt zones of a radial shape.

    Pixels outside the zones are left untouched, so out is expected to be
    zeroed beforehand.

    Returns:
        Number of boundary pixels that received a coverage estimate
    """
    out[zones.interior] = 1.0
    offsets = subpixel_offsets() if antialias else None
    boundary_pixels = 0

    for rows, cols in zones.skirts():
        band = out[rows, cols]
        if band.size == 0:
            continue

        dy = (np.arange(rows.start, rows.stop, dtype=np.float64) - y_center)[:, None]
        dx = (np.arange(cols.start, cols.stop, dtype=np.float64) - x_center)[None, :]
        dx, dy = np.broadcast_arrays(dx, dy)
        dist2 = dx * dx + dy * dy
        radius = local_radius(dx, dy)

        band[dist2 < radius * radius] = 1.0

        if antialias:
            edge = np.abs(np.sqrt(dist2) - radius) < BOUNDARY_WIDTH
            count = int(np.count_nonzero(edge))
            if count:
                band[edge] = coverage_fraction(dx[edge], dy[edge], local_radius, offsets)
                boundary_pixels += count

    return boundary_pixels


def _check_2d(out: np.ndarray) -> None:
    if out.ndim != 2:
        raise ValueError(f"Expected a 2D array, got {out.ndim} dimensions")


def render_disk(
    out: np.ndarray, x_center: float, y_center: float, radius: float
) -> np.ndarray:
    """
    Render an anti-aliased disk into a zeroed 2D array.

    Args:
        out: Target array of shape (ysize, xsize), modified in place
        x_center: Centre x in pixels
        y_center: Centre y in pixels
        radius: Disk radius in pixels

    Returns:
        The filled array, untouched when radius <= 0
    """
    _check_2d(out)
    if radius <= 0:
        logger.debug("Empty disk", radius=radius)
        return out
    zones = DiskZones.around(out.shape, x_center, y_center, radius, radius)
    boundary = rasterize_zones(
        out, x_center, y_center, zones, lambda dx, dy: radius, antialias=True
    )
    logger.debug("Disk rendered", radius=radius, boundary_pixels=boundary)
    return out


def render_disk_hard(
    out: np.ndarray, x_center: float, y_center: float, radius: float
) -> np.ndarray:
    """Render a disk with a hard 0/1 edge (no anti-aliasing)."""
    _check_2d(out)
    if radius <= 0:
        return out
    zones = DiskZones.around(out.shape, x_center, y_center, radius, radius)
    rasterize_zones(out, x_center, y_center, zones, lambda dx, dy: radius, antialias=False)
    return out


def make_disk(
    store: BufferStore,
    name: str,
    xsize: int,
    ysize: int,
    x_center: float,
    y_center: float,
    radius: float,
) -> Image:
    """Create a buffer holding a hard-edged disk."""
    with store.building(name, (xsize, ysize)) as image:
        render_disk_hard(image.data, x_center, y_center, radius)
    return image


def make_subpixel_disk(
    store: BufferStore,
    name: str,
    xsize: int,
    ysize: int,
    x_center: float,
    y_center: float,
    radius: float,
) -> Image:
    """Create a buffer holding an anti-aliased disk."""
    with store.building(name, (xsize, ysize)) as image:
        render_disk(image.data, x_center, y_center, radius)
    logger.info("Sub-pixel disk created", name=name, radius=radius)
    return image

"""
Voronoi zone maps from a list of seed points.

Every pixel is labelled with the index of its nearest seed when that seed is
closer than a maximum radius. A gap is then carved between zones: a pixel
survives only if its opposite neighbours at distance g agree pairwise along
the horizontal, vertical and both diagonal directions.

Seed coordinates are normalized to [0, 1] on each axis, pixel (ii, jj) sits
at (ii / xsize, jj / ysize).
"""

from pathlib import Path
from typing import Iterable, List, NamedTuple, Optional, Sequence, Union

import numpy as np
import structlog

from .buffer_store import BufferStore, Image
from .errors import SeedFileError

logger = structlog.get_logger()

NO_ZONE = -1


class SeedPoint(NamedTuple):
    """A Voronoi seed in normalized coordinates."""

    index: int
    x: float
    y: float


class NearestSeeds(NamedTuple):
    """Per-pixel nearest and next-nearest seeds, arrays of shape (ysize, xsize)."""

    nearest_index: np.ndarray
    nearest_distance: np.ndarray
    next_index: np.ndarray
    next_distance: np.ndarray


def nearest_seeds(points: Sequence[SeedPoint], xsize: int, ysize: int) -> NearestSeeds:
    """
    Find the two closest seeds of every pixel.

    Seeds are visited in order; a seed displaces the current nearest only when
    strictly closer, so equidistant pixels keep the earlier seed.

    Returns:
        NearestSeeds holding seed positions in the input sequence (-1 and
        +inf where fewer seeds exist)
    """
    y = (np.arange(ysize, dtype=np.float64) / ysize)[:, None]
    x = (np.arange(xsize, dtype=np.float64) / xsize)[None, :]

    nearest_index = np.full((ysize, xsize), NO_ZONE, dtype=np.int64)
    next_index = np.full((ysize, xsize), NO_ZONE, dtype=np.int64)
    nearest_distance = np.full((ysize, xsize), np.inf)
    next_distance = np.full((ysize, xsize), np.inf)

    for position, point in enumerate(points):
        dist = np.hypot(x - point.x, y - point.y)

        closer = dist < nearest_distance
        second = ~closer & (dist < next_distance)

        next_index = np.where(closer, nearest_index, np.where(second, position, next_index))
        next_distance = np.where(closer, nearest_distance, np.where(second, dist, next_distance))
        nearest_index = np.where(closer, position, nearest_index)
        nearest_distance = np.where(closer, dist, nearest_distance)

    return NearestSeeds(nearest_index, nearest_distance, next_index, next_distance)


def carve_gaps(labels: np.ndarray, gap_pixels: int) -> np.ndarray:
    """
    Reset pixels near zone boundaries to -1.

    The test reads a snapshot of the labels, so carving one pixel never
    influences another. Pixels closer than gap_pixels to the image border are
    always reset.
    """
    ysize, xsize = labels.shape
    g = gap_pixels
    if g == 0:
        return labels.copy()

    carved = np.full_like(labels, NO_ZONE)
    if xsize - 2 * g <= 0 or ysize - 2 * g <= 0:
        return carved

    def shifted(dx: int, dy: int) -> np.ndarray:
        return labels[g + dy:ysize - g + dy, g + dx:xsize - g + dx]

    retain = (
        (shifted(g, 0) == shifted(-g, 0))
        & (shifted(0, g) == shifted(0, -g))
        & (shifted(g, g) == shifted(-g, -g))
        & (shifted(-g, g) == shifted(g, -g))
    )
    center = carved[g:ysize - g, g:xsize - g]
    center[retain] = labels[g:ysize - g, g:xsize - g][retain]
    return carved


def voronoi_partition(
    points: Sequence[SeedPoint],
    xsize: int,
    ysize: int,
    radius: float,
    gap: float,
) -> np.ndarray:
    """
    Label each pixel with the index of its nearest seed.

    Args:
        points: Seed points in normalized coordinates
        xsize: Map width in pixels
        ysize: Map height in pixels
        radius: Maximum normalized distance from a seed to its zone pixels
        gap: Gap between zones as a fraction of xsize

    Returns:
        int32 array of shape (ysize, xsize), -1 outside every zone
    """
    if xsize <= 0 or ysize <= 0:
        raise ValueError(f"Map size must be positive, got {xsize}x{ysize}")
    if radius < 0:
        raise ValueError(f"radius must be >= 0, got {radius}")
    if gap < 0:
        raise ValueError(f"gap must be >= 0, got {gap}")

    points = list(points)
    if not points:
        logger.warning("No seed points, map is empty")
        return np.full((ysize, xsize), NO_ZONE, dtype=np.int32)

    seeds = nearest_seeds(points, xsize, ysize)
    declared = np.array([p.index for p in points], dtype=np.int64)

    labels = np.where(
        seeds.nearest_distance < radius, declared[seeds.nearest_index], NO_ZONE
    ).astype(np.int32)

    gap_pixels = int(gap * xsize)
    carved = carve_gaps(labels, gap_pixels)

    logger.debug(
        "Voronoi partition",
        seeds=len(points),
        gap_pixels=gap_pixels,
        labelled=int(np.count_nonzero(carved != NO_ZONE)),
    )
    return carved


def load_seed_points(path: Union[str, Path]) -> List[SeedPoint]:
    """
    Read a seed file.

    The first line holds the number of points, each following line an
    'index x y' triple.
    """
    path = Path(path)
    try:
        with open(path) as fh:
            lines = [line for line in fh if line.strip()]
    except FileNotFoundError:
        raise SeedFileError(f"Seed file {path} not found") from None

    if not lines:
        raise SeedFileError(f"Seed file {path} is empty")
    try:
        count = int(lines[0].split()[0])
    except ValueError:
        raise SeedFileError(f"Seed file {path}: bad point count {lines[0].strip()!r}") from None
    if count < 0:
        raise SeedFileError(f"Seed file {path}: negative point count {count}")
    if len(lines) - 1 < count:
        raise SeedFileError(f"Seed file {path}: expected {count} points, found {len(lines) - 1}")

    points = []
    for lineno, line in enumerate(lines[1:count + 1], start=2):
        parts = line.split()
        try:
            if len(parts) != 3:
                raise ValueError
            points.append(SeedPoint(int(parts[0]), float(parts[1]), float(parts[2])))
        except ValueError:
            raise SeedFileError(
                f"Seed file {path}:{lineno}: expected 'index x y', got {line.strip()!r}"
            ) from None

    logger.info("Seed points loaded", path=str(path), count=len(points))
    return points


def write_seed_points(path: Union[str, Path], points: Sequence[SeedPoint]) -> None:
    """Write seeds in the format read by load_seed_points."""
    with open(path, "w") as fh:
        fh.write(f"{len(points)}\n")
        for point in points:
            fh.write("%5d %6.4f %6.4f\n" % (point.index, point.x, point.y))


def ring_seed_points(
    radii: Sequence[float],
    counts: Sequence[int],
    offsets: Optional[Iterable[float]] = None,
) -> List[SeedPoint]:
    """
    Seeds on concentric rings around the map centre.

    Args:
        radii: Ring radii relative to the half map size
        counts: Number of seeds on each ring
        offsets: Angular offset of each ring in radians, zero by default

    Returns:
        Seeds numbered consecutively ring by ring
    """
    offsets = list(offsets) if offsets is not None else [0.0] * len(radii)
    if not len(radii) == len(counts) == len(offsets):
        raise ValueError("radii, counts and offsets must have the same length")

    points = []
    for radius, count, offset in zip(radii, counts, offsets):
        for elem in range(count):
            phase = 2.0 * np.pi * elem / count + offset
            points.append(
                SeedPoint(
                    len(points),
                    0.5 + 0.5 * radius * float(np.cos(phase)),
                    0.5 + 0.5 * radius * float(np.sin(phase)),
                )
            )
    return points


def make_voronoi_map(
    store: BufferStore,
    seed_file: Union[str, Path],
    name: str,
    xsize: int,
    ysize: int,
    radius: float,
    gap: float,
) -> Image:
    """Create an int32 Voronoi zone map from a seed file."""
    points = load_seed_points(seed_file)
    labels = voronoi_partition(points, xsize, ysize, radius, gap)
    with store.building(name, (xsize, ysize), dtype=np.int32) as image:
        image.data[...] = labels
    logger.info("Voronoi map created", name=name, seeds=len(points))
    return image

"""
Geometric and coordinate generators.

Each generator allocates a 2D buffer (unless stated otherwise) through the
store and fills it by a closed-form pixel rule evaluated on the whole grid.
Pixel (ii, jj) sits at coordinate (ii, jj).
"""

import math
from typing import Optional, Tuple

import numpy as np
import structlog

from .buffer_store import BufferStore, Image

logger = structlog.get_logger()


def pixel_coordinates(xsize: int, ysize: int) -> Tuple[np.ndarray, np.ndarray]:
    """Broadcastable float (ii, jj) grids of shape (1, xsize) and (ysize, 1)."""
    ii = np.arange(xsize, dtype=np.float64)[None, :]
    jj = np.arange(ysize, dtype=np.float64)[:, None]
    return ii, jj


def make_double_star(
    store: BufferStore,
    name: str,
    xsize: int,
    ysize: int,
    intensity_1: float,
    intensity_2: float,
    separation: float,
    position_angle: float,
) -> Image:
    """
    Two point sources: one at the centre pixel, one at the given separation.

    The position angle is measured from the y axis towards the x axis. The
    companion pixel is clamped to the image.
    """
    with store.building(name, (xsize, ysize)) as image:
        image.data[ysize // 2, xsize // 2] = intensity_1

        row = int(ysize // 2 + separation * np.cos(position_angle))
        col = int(xsize // 2 + separation * np.sin(position_angle))
        row = min(max(row, 0), ysize - 1)
        col = min(max(col, 0), xsize - 1)
        image.data[row, col] = intensity_2
    return image


def make_square(
    store: BufferStore,
    name: str,
    xsize: int,
    ysize: int,
    x_center: float,
    y_center: float,
    radius: float,
) -> Image:
    """Square of half-side radius."""
    return make_rectangle(store, name, xsize, ysize, x_center, y_center, radius, radius)


def make_rectangle(
    store: BufferStore,
    name: str,
    xsize: int,
    ysize: int,
    x_center: float,
    y_center: float,
    radius_x: float,
    radius_y: float,
) -> Image:
    """Rectangle of half-sides radius_x and radius_y."""
    ii, jj = pixel_coordinates(xsize, ysize)
    with store.building(name, (xsize, ysize)) as image:
        image.data[...] = (
            ((ii - x_center) ** 2 < radius_x * radius_x)
            & ((jj - y_center) ** 2 < radius_y * radius_y)
        )
    return image


def make_line(
    store: BufferStore,
    name: str,
    xsize: int,
    ysize: int,
    x1: float,
    y1: float,
    x2: float,
    y2: float,
    thickness: float,
) -> Image:
    """Segment from (x1, y1) to (x2, y2) with the given thickness."""
    length = np.hypot(x2 - x1, y2 - y1)
    if length == 0:
        raise ValueError("Line end points must differ")
    angle = np.arctan2(y2 - y1, x2 - x1)

    ii, jj = pixel_coordinates(xsize, ysize)
    x = ii - x1
    y = jj - y1
    along = (x * np.cos(angle) + y * np.sin(angle)) / length
    across = (-x * np.sin(angle) + y * np.cos(angle)) / length
    half = 0.5 * thickness / length

    with store.building(name, (xsize, ysize)) as image:
        image.data[...] = (along > 0) & (along < 1.0) & (across < half) & (across > -half)
    return image


def make_lincoordinate(
    store: BufferStore,
    name: str,
    xsize: int,
    ysize: int,
    x_center: float,
    y_center: float,
    angle: float,
) -> Image:
    """Signed coordinate along the direction angle, zero at the centre."""
    ii, jj = pixel_coordinates(xsize, ysize)
    with store.building(name, (xsize, ysize)) as image:
        image.data[...] = (ii - x_center) * np.cos(angle) + (jj - y_center) * np.sin(angle)
    return image


def make_jacquinot_pupil(
    store: BufferStore,
    name: str,
    xsize: int,
    ysize: int,
    x_center: float,
    y_center: float,
    width: float,
    height: float,
) -> Image:
    """Gaussian-profiled pupil: 1 where |y|/height < exp(-x^2/width^2)."""
    ii, jj = pixel_coordinates(xsize, ysize)
    with store.building(name, (xsize, ysize)) as image:
        image.data[...] = np.abs(jj - y_center) / height < np.exp(
            -((ii - x_center) ** 2) / (width * width)
        )
    return image


def make_sectors(
    store: BufferStore,
    name: str,
    xsize: int,
    ysize: int,
    x_center: float,
    y_center: float,
    step: float,
    nb_sectors: int,
) -> Image:
    """Angular sectors numbered clockwise from the +y axis, value step * sector."""
    ii, jj = pixel_coordinates(xsize, ysize)
    theta = np.arctan2(ii - x_center, jj - y_center)
    theta = np.where(theta < 0.0, theta + 2.0 * np.pi, theta)
    with store.building(name, (xsize, ysize)) as image:
        image.data[...] = step * np.trunc(theta / (2.0 * np.pi) * nb_sectors)
    return image


def make_slopexy(
    store: BufferStore, name: str, xsize: int, ysize: int, slope_x: float, slope_y: float
) -> Image:
    """Plane of slopes (slope_x, slope_y), zero at (xsize//2, ysize//2)."""
    ii, jj = pixel_coordinates(xsize, ysize)
    offset = slope_x * (xsize // 2) + slope_y * (ysize // 2)
    with store.building(name, (xsize, ysize)) as image:
        image.data[...] = slope_x * ii + slope_y * jj - offset
    return image


def make_dist(
    store: BufferStore, name: str, xsize: int, ysize: int, x0: float, y0: float
) -> Image:
    """Distance of each pixel to (x0, y0)."""
    ii, jj = pixel_coordinates(xsize, ysize)
    with store.building(name, (xsize, ysize)) as image:
        image.data[...] = np.hypot(x0 - ii, y0 - jj)
    return image


def make_pos_angle(
    store: BufferStore, name: str, xsize: int, ysize: int, x0: float, y0: float
) -> Image:
    """Position angle atan2(y - y0, x - x0) of each pixel."""
    ii, jj = pixel_coordinates(xsize, ysize)
    with store.building(name, (xsize, ysize)) as image:
        image.data[...] = np.arctan2(jj - y0, ii - x0)
    return image


def _first_grid_point(offset: float, pitch: float) -> float:
    """First point of offset + k * pitch (k >= 0) that is not negative."""
    if offset >= 0:
        return offset
    point = offset + math.ceil(-offset / pitch) * pitch
    return point if point >= 0 else point + pitch


def make_2d_gridpix(
    store: BufferStore,
    name: str,
    xsize: int,
    ysize: int,
    pitch_x: float,
    pitch_y: float,
    offset_x: float,
    offset_y: float,
) -> Image:
    """
    Regular grid of points, each split bilinearly over its four neighbours.

    Points run from the offset in steps of the pitch while the 2x2 splat
    stays inside the image. Grid points left of or above the image are
    skipped. Later points overwrite earlier ones.
    """
    if pitch_x <= 0 or pitch_y <= 0:
        raise ValueError(f"Grid pitch must be positive, got ({pitch_x}, {pitch_y})")

    start_x = _first_grid_point(offset_x, pitch_x)
    start_y = _first_grid_point(offset_y, pitch_y)

    with store.building(name, (xsize, ysize)) as image:
        data = image.data
        x = start_x
        while x < xsize - 1:
            y = start_y
            while y < ysize - 1:
                i, j = int(x), int(y)
                u, t = x - i, y - j
                data[j, i] = (1.0 - u) * (1.0 - t)
                data[j + 1, i] = (1.0 - u) * t
                data[j, i + 1] = u * (1.0 - t)
                data[j + 1, i + 1] = u * t
                y += pitch_y
            x += pitch_x
    return image


def make_tile(store: BufferStore, source_name: str, size: int, name: str) -> Image:
    """Periodic tiling of a 2D buffer over a size x size image."""
    source = store.get_buffer(source_name).data
    if source.ndim != 2:
        raise ValueError(f"Tile source {source_name!r} must be 2D")

    rows = np.arange(size) % source.shape[0]
    cols = np.arange(size) % source.shape[1]
    with store.building(name, (size, size)) as image:
        image.data[...] = source[np.ix_(rows, cols)]
    return image


def im2coord(
    store: BufferStore, source_name: str, axis: Optional[int], name: str
) -> Image:
    """
    Coordinate image with the shape of a source buffer.

    Args:
        store: Buffer store
        source_name: Buffer providing the shape
        axis: 0, 1 or 2 for the x, y or z coordinate, None for the linear
            pixel index
        name: Output buffer name

    Returns:
        The coordinate image
    """
    source = store.get_buffer(source_name)
    naxis = source.naxis
    if naxis > 3:
        raise ValueError(f"Image must have at most 3 axes, {source_name!r} has {naxis}")
    if axis is not None and not 0 <= axis <= naxis - 1:
        raise ValueError(f"Image {source_name!r} has {naxis} axes, cannot use axis {axis}")

    with store.building(name, source.dims) as image:
        shape = image.data.shape
        if axis is None:
            image.data[...] = np.arange(image.data.size, dtype=np.float64).reshape(shape)
        else:
            # numpy axis order is reversed with respect to (x, y, z)
            np_axis = naxis - 1 - axis
            coords = np.arange(shape[np_axis], dtype=np.float64)
            view = [1] * naxis
            view[np_axis] = shape[np_axis]
            image.data[...] = coords.reshape(view)
    logger.debug("Coordinate image created", name=name, axis=axis, dims=source.dims)
    return image

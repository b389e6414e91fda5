"""
Radial and astronomical intensity profiles.

Covers gaussian spots, galaxy models, the exozodiacal disk, tabulated PSF
profiles, apodized pupil edges and the fiber coupling overlap map. All
profiles are evaluated over the full pixel grid in one pass.
"""

from typing import Optional, Sequence

import numpy as np
import structlog
from pydantic import BaseModel, Field

from .buffer_store import BufferStore, Image
from .primitives import pixel_coordinates

logger = structlog.get_logger()

# de Vaucouleurs r^1/4 law constant
DE_VAUCOULEURS_B = 3.3307
# Flux of a unit de Vaucouleurs profile in units of L0 * re^2
DE_VAUCOULEURS_FLUX = 23.02

# Fiber coupling geometry
FIBER_PUPIL_FRACTION = 0.1
FIBER_ANNULUS_CENTER = (1.32, 0.0)
FIBER_ANNULUS_RADII = (0.3, 1.0)
FIBER_TIPTILT_COEFF = 0.2


def _centered(xsize: int, ysize: int):
    """Pixel offsets from (xsize//2, ysize//2)."""
    ii, jj = pixel_coordinates(xsize, ysize)
    return ii - xsize // 2, jj - ysize // 2


def make_gauss(
    store: BufferStore, name: str, xsize: int, ysize: int, width: float, amplitude: float
) -> Image:
    """Circular gaussian A * exp(-d^2 / a^2) centred on (xsize//2, ysize//2)."""
    x, y = _centered(xsize, ysize)
    with store.building(name, (xsize, ysize)) as image:
        image.data[...] = amplitude * np.exp(-(x * x + y * y) / (width * width))
    return image


def make_2axis_gauss(
    store: BufferStore,
    name: str,
    xsize: int,
    ysize: int,
    width: float,
    amplitude: float,
    ellipticity: float,
    position_angle: float,
) -> Image:
    """Elliptical gaussian, the minor axis squared is stretched by 1 + ellipticity."""
    x, y = _centered(xsize, ysize)
    cos_pa, sin_pa = np.cos(position_angle), np.sin(position_angle)
    u = x * cos_pa + y * sin_pa
    v = y * cos_pa - x * sin_pa
    distsq = u * u + v * v / (1.0 + ellipticity)
    with store.building(name, (xsize, ysize)) as image:
        image.data[...] = amplitude * np.exp(-distsq / (width * width))
    return image


def _elliptical_radius(x, y, ellipticity: float, position_angle: float):
    # ellipticity = 1 - b/a
    a_over_b = 1.0 / (1.0 - ellipticity)
    b_over_a = 1.0 - ellipticity
    u = np.cos(position_angle) * x + np.sin(position_angle) * y
    v = -np.sin(position_angle) * x + np.cos(position_angle) * y
    return np.sqrt(a_over_b * u * u + b_over_a * v * v)


def make_galaxy(
    store: BufferStore,
    name: str,
    xsize: int,
    ysize: int,
    disk_radius: float,
    disk_l0: float,
    disk_ellipticity: float,
    disk_pa: float,
    bulge_radius: float,
    bulge_l0: float,
    bulge_ellipticity: float,
    bulge_pa: float,
) -> Image:
    """
    Spiral galaxy: exponential disk plus de Vaucouleurs bulge.

    Args:
        store: Buffer store
        name: Output buffer name
        xsize: Image width
        ysize: Image height
        disk_radius: Disk scale length in pixels
        disk_l0: Disk central surface brightness
        disk_ellipticity: Disk 1 - b/a
        disk_pa: Disk position angle in radians
        bulge_radius: Bulge effective radius in pixels
        bulge_l0: Bulge surface brightness at the effective radius
        bulge_ellipticity: Bulge 1 - b/a
        bulge_pa: Bulge position angle in radians

    Returns:
        The galaxy image
    """
    if disk_radius <= 0 or bulge_radius <= 0:
        raise ValueError("Galaxy radii must be positive")
    if not (disk_ellipticity < 1.0 and bulge_ellipticity < 1.0):
        raise ValueError("Ellipticity must be below 1")

    x, y = _centered(xsize, ysize)
    r_disk = _elliptical_radius(x, y, disk_ellipticity, disk_pa)
    r_bulge = _elliptical_radius(x, y, bulge_ellipticity, bulge_pa)

    with store.building(name, (xsize, ysize)) as image:
        image.data[...] = disk_l0 * np.exp(-r_disk / disk_radius) + bulge_l0 * np.power(
            10.0, -DE_VAUCOULEURS_B * (np.power(r_bulge / bulge_radius, 0.25) - 1.0)
        )

    expected = (
        2.0 * np.pi * disk_l0 * disk_radius * disk_radius
        + DE_VAUCOULEURS_FLUX * bulge_l0 * bulge_radius * bulge_radius
    )
    logger.info(
        "Galaxy created",
        name=name,
        total=float(np.sum(image.data, dtype=np.float64)),
        analytic_total=float(expected),
    )
    return image


class EGalaxyOptions(BaseModel):
    """Elliptical gaussian galaxy parameters."""

    concentration: float = Field(default=1.0, gt=0, description="Gaussian concentration")
    size: float = Field(default=0.1, gt=0, description="Size relative to the field of view")
    position_angle: float = Field(default=0.0, description="Position angle in radians")
    eccentricity: float = Field(default=0.3, ge=0, lt=1, description="sqrt(a^2 - b^2) / a")
    peak: float = Field(default=1.0, description="Maximum value")
    central_half: bool = Field(default=False, description="Only fill the central half of the image")


def make_egalaxy(
    store: BufferStore,
    name: str,
    xsize: int,
    ysize: int,
    options: Optional[EGalaxyOptions] = None,
) -> Image:
    """Elliptical gaussian galaxy."""
    options = options or EGalaxyOptions()
    x, y = _centered(xsize, ysize)

    cos_pa, sin_pa = np.cos(options.position_angle), np.sin(options.position_angle)
    u = cos_pa * x + sin_pa * y
    v = (-sin_pa * x + cos_pa * y) / np.sqrt(1.0 - options.eccentricity ** 2)
    distsq = (u * u + v * v) / (xsize * xsize + ysize * ysize) / options.size ** 2
    values = options.peak * np.exp(-options.concentration * distsq)

    with store.building(name, (xsize, ysize)) as image:
        if options.central_half:
            rows = slice(ysize // 4, 3 * ysize // 4)
            cols = slice(xsize // 4, 3 * xsize // 4)
            image.data[rows, cols] = values[rows, cols]
        else:
            image.data[...] = values
    return image


def make_ez_disk(
    store: BufferStore,
    name: str,
    size: int,
    inner_edge: float,
    index: float,
    inclination: float,
) -> Image:
    """
    Exozodiacal dust disk seen at an inclination.

    Surface brightness follows r^-index outside the inner edge, divided by
    cos(inclination), on top of a uniform background 6^-index.
    """
    ii, jj = pixel_coordinates(size, size)
    x = ii + 0.5 - size // 2
    y = (jj + 0.5 - size // 2) / np.cos(inclination)
    r = np.sqrt(x * x + y * y)

    values = np.where(r < inner_edge, 0.0, np.power(r, -index)) / np.cos(inclination)
    with store.building(name, (size, size)) as image:
        image.data[...] = values + np.power(6.0, -index)
    return image


def make_psf_from_profile(
    store: BufferStore,
    name: str,
    xsize: int,
    ysize: int,
    distances: Sequence[float],
    values: Sequence[float],
) -> Image:
    """
    Circular PSF from a tabulated radial profile.

    The profile is interpolated linearly between samples. Beyond the last
    sample the last segment is extrapolated, and inside the first sample the
    first value is used.

    Args:
        store: Buffer store
        name: Output buffer name
        xsize: Image width
        ysize: Image height
        distances: Strictly increasing sample radii in pixels
        values: Profile value at each radius

    Returns:
        The PSF image
    """
    distances = np.asarray(distances, dtype=np.float64)
    values = np.asarray(values, dtype=np.float64)
    if distances.ndim != 1 or distances.shape != values.shape or distances.size == 0:
        raise ValueError("distances and values must be non-empty 1D sequences of equal length")
    if np.any(np.diff(distances) <= 0):
        raise ValueError("Profile distances must be strictly increasing")

    x, y = _centered(xsize, ysize)
    dist = np.sqrt(x * x + y * y)

    index = np.minimum(np.searchsorted(distances, dist, side="left"), distances.size - 1)
    lower = np.maximum(index - 1, 0)
    span = distances[index] - distances[lower]
    slope = np.divide(
        values[index] - values[lower], span, out=np.zeros_like(dist), where=span > 0
    )
    interpolated = values[lower] + slope * (dist - distances[lower])

    with store.building(name, (xsize, ysize)) as image:
        image.data[...] = np.where(index == 0, values[0], interpolated)
    logger.debug("PSF from profile", name=name, samples=distances.size)
    return image


def make_offset_hypergaussian(
    store: BufferStore, name: str, size: int, a: float, b: float, n: int
) -> Image:
    """Zero inside radius a, then rising as 1 - exp(-((d - a) / b)^n)."""
    x, y = _centered(size, size)
    dist = np.sqrt(x * x + y * y)
    outside = np.maximum(dist - a, 0.0)
    with store.building(name, (size, size)) as image:
        image.data[...] = np.where(dist < a, 0.0, 1.0 - np.exp(-np.power(outside / b, n)))
    return image


def make_cosapo_edge_pupil(store: BufferStore, name: str, size: int, a: float, b: float) -> Image:
    """Pupil of radius a with a raised-cosine edge falling to zero at radius b."""
    if b <= a:
        raise ValueError(f"Outer radius {b} must exceed inner radius {a}")

    x, y = _centered(size, size)
    dist = np.sqrt(x * x + y * y)
    edge = 0.5 * (np.cos(np.pi * (np.clip(dist, a, b) - a) / (b - a)) + 1.0)
    with store.building(name, (size, size)) as image:
        image.data[...] = np.where(dist < a, 1.0, np.where(dist > b, 0.0, edge))
    return image


def make_fiber_coupling_overlap(store: BufferStore, name: str, size: int = 128) -> Image:
    """
    Coupling of an annular pupil into a single-mode fiber versus tip/tilt.

    Each output pixel holds the squared overlap between the normalized
    TEM00 mode and the annular pupil carrying the tip/tilt phase of that
    pixel, divided by sqrt of the pupil pixel count.
    """
    pupil_radius = FIBER_PUPIL_FRACTION * size
    coords = (np.arange(size, dtype=np.float64) - 0.5 * size) / pupil_radius
    u = coords[None, :]
    v = coords[:, None]

    tem00 = np.exp(-(u * u + v * v))
    tem00 /= np.sqrt(np.sum(tem00 * tem00))

    r = np.hypot(u - FIBER_ANNULUS_CENTER[0], v - FIBER_ANNULUS_CENTER[1])
    annulus = (r > FIBER_ANNULUS_RADII[0]) & (r < FIBER_ANNULUS_RADII[1])
    count = int(np.count_nonzero(annulus))
    if count == 0:
        raise ValueError(f"Fiber pupil annulus is empty for size {size}")

    # phase = u * TTx + v * TTy is separable, so the overlap is Ey^T M Ex
    tilt = (np.arange(size, dtype=np.float64) - 0.5 * size) * FIBER_TIPTILT_COEFF
    # both axes share the same sampling, phase[k, p] = exp(i * coords[k] * tilt[p])
    phase = np.exp(1j * np.outer(coords, tilt))
    overlap = phase.T @ (tem00 * annulus) @ phase

    with store.building(name, (size, size)) as image:
        image.data[...] = np.abs(overlap) ** 2 / np.sqrt(count)
    logger.info("Fiber coupling map created", name=name, size=size, pupil_pixels=count)
    return image

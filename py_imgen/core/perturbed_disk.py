"""
Disks with a Fourier-perturbed boundary.

The boundary radius varies with polar angle:

    r(theta) = r0 * (1 + sum_k a_k * cos(k_k * theta + p_k))

with theta = atan2(y - yc, x - xc). Only the thin annulus between the
conservative inner and outer radii r0 * (1 -+ sum |a_k|) needs angle
evaluation, and each anti-aliasing sub-sample recomputes its own angle.
"""

from typing import Iterable, List, NamedTuple, Sequence, Tuple

import numpy as np
import structlog

from .buffer_store import BufferStore, Image
from .disk_rasterizer import DiskZones, RadiusFunction, rasterize_zones

logger = structlog.get_logger()


class Harmonic(NamedTuple):
    """One term of the boundary perturbation."""

    amplitude: float  # relative to the base radius
    wavenumber: float
    phase: float


def _as_harmonics(harmonics: Iterable[Sequence[float]]) -> List[Harmonic]:
    return [Harmonic(*h) for h in harmonics]


def safe_zone_radii(base_radius: float, harmonics: Sequence[Harmonic]) -> Tuple[float, float]:
    """Conservative (outer, inner) radii bounding the perturbed boundary."""
    spread = sum(abs(h.amplitude) for h in harmonics)
    outer = base_radius * (1.0 + spread)
    inner = max(base_radius * (1.0 - spread), 0.0)
    return outer, inner


def perturbed_radius(base_radius: float, harmonics: Sequence[Harmonic]) -> RadiusFunction:
    """Build the local-radius function r(theta) for the given harmonics."""

    def local_radius(dx, dy):
        if not harmonics:
            return max(base_radius, 0.0)
        theta = np.arctan2(dy, dx)
        total = np.zeros(theta.shape, dtype=np.float64)
        for h in harmonics:
            total += h.amplitude * np.cos(h.wavenumber * theta + h.phase)
        return np.maximum(base_radius * (1.0 + total), 0.0)

    return local_radius


def render_disk_perturbed(
    out: np.ndarray,
    x_center: float,
    y_center: float,
    base_radius: float,
    harmonics: Iterable[Sequence[float]] = (),
) -> np.ndarray:
    """
    Render an anti-aliased perturbed disk into a zeroed 2D array.

    Args:
        out: Target array of shape (ysize, xsize), modified in place
        x_center: Centre x in pixels
        y_center: Centre y in pixels
        base_radius: Unperturbed radius in pixels
        harmonics: (relative amplitude, wavenumber, phase) triples

    Returns:
        The filled array, untouched when base_radius <= 0
    """
    if out.ndim != 2:
        raise ValueError(f"Expected a 2D array, got {out.ndim} dimensions")
    if base_radius <= 0:
        logger.debug("Empty perturbed disk", base_radius=base_radius)
        return out

    harmonics = _as_harmonics(harmonics)
    outer, inner = safe_zone_radii(base_radius, harmonics)
    zones = DiskZones.around(out.shape, x_center, y_center, outer, inner)

    boundary = rasterize_zones(
        out,
        x_center,
        y_center,
        zones,
        perturbed_radius(base_radius, harmonics),
        antialias=True,
    )
    logger.debug(
        "Perturbed disk rendered",
        base_radius=base_radius,
        harmonics=len(harmonics),
        outer_radius=outer,
        inner_radius=inner,
        boundary_pixels=boundary,
    )
    return out


def make_subpixel_disk_perturbed(
    store: BufferStore,
    name: str,
    xsize: int,
    ysize: int,
    x_center: float,
    y_center: float,
    base_radius: float,
    harmonics: Iterable[Sequence[float]] = (),
) -> Image:
    """Create a buffer holding an anti-aliased perturbed disk."""
    with store.building(name, (xsize, ysize)) as image:
        render_disk_perturbed(image.data, x_center, y_center, base_radius, harmonics)
    logger.info("Perturbed disk created", name=name, base_radius=base_radius)
    return image

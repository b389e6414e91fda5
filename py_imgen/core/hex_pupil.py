"""
Hexagonal segmented pupil builder.

Segments are flat-topped hexagons on a two-point triangular lattice. A
candidate segment is kept when its centre lies inside the pupil radius and
its footprint does not spill outside the circular aperture. Accepted segments
are numbered 1..N in lattice order and written into the pupil image, which
then doubles as a segment index map.

Optional outputs:
- an influence-function cube with piston, x-tilt and y-tilt planes per segment
- a piston-error phase image
- a polygon export of selected segments (see hex_vector_export)
"""

from contextlib import ExitStack
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np
import structlog
from pydantic import BaseModel, Field, model_validator
from scipy import ndimage

from .buffer_store import BufferStore, Image
from .disk_rasterizer import render_disk_hard
from .errors import DegenerateGeometryError
from .hex_vector_export import HexVectorExportOptions, export_segment_vectors
from .rng import NumpyRandom, RandomSource

logger = structlog.get_logger()

COS30 = np.cos(np.pi / 6)
SIN30 = np.sin(np.pi / 6)

# Maximum pixel count a segment may put outside the aperture
OVERLAP_TOLERANCE = 0.1
# Pupil values within this distance of an id belong to that segment
ID_TOLERANCE = 0.01


def hexagon_footprint(
    shape: Tuple[int, int], x_center: float, y_center: float, inradius: float
) -> Tuple[slice, slice, np.ndarray]:
    """
    Pixels covered by a flat-topped hexagon.

    Args:
        shape: (ysize, xsize) of the target array
        x_center: Hexagon centre x in pixels
        y_center: Hexagon centre y in pixels
        inradius: Centre to flat-edge distance

    Returns:
        (rows, cols, inside): bounding-box slices and the boolean footprint
        over that box
    """
    ysize, xsize = shape
    half_width = inradius * 2.0 / np.sqrt(3.0) + 1.0

    x1 = min(max(int(x_center - half_width), 0), xsize - 1)
    x2 = min(max(int(x_center + half_width), 0), xsize - 1)
    y1 = min(max(int(y_center - half_width), 0), ysize - 1)
    y2 = min(max(int(y_center + half_width), 0), ysize - 1)
    rows, cols = slice(y1, y2), slice(x1, x2)

    if inradius <= 0:
        return rows, cols, np.zeros((max(y2 - y1, 0), max(x2 - x1, 0)), dtype=bool)

    y = (np.arange(y1, y2, dtype=np.float64) - y_center)[:, None]
    x = (np.arange(x1, x2, dtype=np.float64) - x_center)[None, :]

    inside = (x * x + y * y <= inradius * inradius) | (
        (np.abs(y) <= inradius)
        & (np.abs(x * COS30 + y * SIN30) <= inradius)
        & (np.abs(x * COS30 - y * SIN30) <= inradius)
    )
    return rows, cols, inside


def render_hexagon(
    out: np.ndarray, x_center: float, y_center: float, inradius: float
) -> np.ndarray:
    """Write a 0/1 hexagon into the bounding box of a 2D array."""
    if out.ndim != 2:
        raise ValueError(f"Expected a 2D array, got {out.ndim} dimensions")
    rows, cols, inside = hexagon_footprint(out.shape, x_center, y_center, inradius)
    out[rows, cols] = inside
    return out


def make_hexagon(
    store: BufferStore,
    name: str,
    xsize: int,
    ysize: int,
    x_center: float,
    y_center: float,
    inradius: float,
) -> Image:
    """Create a buffer holding a single hexagon."""
    with store.building(name, (xsize, ysize)) as image:
        render_hexagon(image.data, x_center, y_center, inradius)
    return image


def hex_lattice(size: int, radius: float, step: float) -> np.ndarray:
    """
    Candidate segment centre offsets in traversal order.

    Each lattice pair (x1, y1) yields the point (3*step*x1, sqrt(3)*step*y1)
    followed by the same point shifted by (1.5*step, sqrt(3)/2*step). Only
    offsets strictly inside radius are returned.

    Returns:
        Array of shape (N, 2) holding (dx, dy) offsets from the image centre
    """
    n = int(2 * size / step)
    index = np.arange(-n, n, dtype=np.float64)
    x1, y1 = np.meshgrid(index, index, indexing="ij")

    primary = np.stack([step * x1 * 3.0, step * np.sqrt(3.0) * y1], axis=-1)
    shifted = primary + np.array([step * 1.5, step * np.sqrt(3.0) / 2.0])
    centers = np.stack([primary, shifted], axis=2).reshape(-1, 2)

    return centers[np.hypot(centers[:, 0], centers[:, 1]) < radius]


@dataclass
class SegmentRecord:
    """One accepted pupil segment."""

    index: int
    center_x: float
    center_y: float
    pixel_count: int = 0
    centroid_x: Optional[float] = None
    centroid_y: Optional[float] = None
    rms_x: Optional[float] = None
    rms_y: Optional[float] = None


@dataclass
class HexPupilResult:
    """Buffers and segment records produced by build_hex_pupil."""

    pupil: Image
    segments: List[SegmentRecord] = field(default_factory=list)
    influence: Optional[Image] = None
    phase: Optional[Image] = None
    exported_polygons: Optional[int] = None

    @property
    def segment_count(self) -> int:
        return len(self.segments)


class HexPupilOptions(BaseModel):
    """Optional outputs of the hexagonal pupil builder."""

    influence_functions: bool = Field(default=True, description="Build the 3N-plane influence cube")
    influence_name: str = Field(default="hexpupif", description="Influence cube buffer name")
    piston_amplitude: Optional[float] = Field(
        default=None, ge=0, description="Piston error amplitude, None disables the phase image"
    )
    piston_segment: Optional[int] = Field(
        default=None, ge=1, description="Only this segment id gets the piston, others get 0"
    )
    phase_name: str = Field(default="hexpupPha", description="Phase buffer name")
    vector_export: Optional[HexVectorExportOptions] = None

    @model_validator(mode="after")
    def _piston_segment_needs_amplitude(self):
        if self.piston_segment is not None and self.piston_amplitude is None:
            raise ValueError("piston_segment requires piston_amplitude")
        return self


def _fill_influence_functions(
    pupil: np.ndarray, segments: List[SegmentRecord], cube: np.ndarray
) -> None:
    """Fill piston, x-tilt and y-tilt planes for every segment."""
    labels = np.rint(pupil).astype(np.int64)
    labels[np.abs(pupil - labels) >= ID_TOLERANCE] = 0
    boxes = ndimage.find_objects(labels, max_label=len(segments))

    for segment, box in zip(segments, boxes):
        if box is None:
            raise DegenerateGeometryError(f"Segment {segment.index} covers no pixels")

        mask = labels[box] == segment.index
        ys, xs = np.nonzero(mask)
        xs = xs + box[1].start
        ys = ys + box[0].start

        count = xs.size
        vx = xs - xs.mean()
        vy = ys - ys.mean()
        spread_x = float(np.sum(vx * vx))
        spread_y = float(np.sum(vy * vy))
        if spread_x == 0.0 or spread_y == 0.0:
            raise DegenerateGeometryError(
                f"Segment {segment.index} has no extent along "
                f"{'x' if spread_x == 0.0 else 'y'} ({count} pixels)"
            )

        segment.pixel_count = count
        segment.centroid_x = float(xs.mean())
        segment.centroid_y = float(ys.mean())
        segment.rms_x = float(np.sqrt(spread_x / count))
        segment.rms_y = float(np.sqrt(spread_y / count))

        plane = 3 * (segment.index - 1)
        cube[plane][box][mask] = 1.0
        cube[plane + 1][box][mask] = vx * np.sqrt(count / spread_x)
        cube[plane + 2][box][mask] = vy * np.sqrt(count / spread_y)

        logger.debug(
            "Influence functions",
            segment=segment.index,
            pixels=count,
            centroid=(segment.centroid_x, segment.centroid_y),
        )


def build_hex_pupil(
    store: BufferStore,
    name: str,
    size: int,
    radius: float,
    gap: float,
    step: float,
    options: Optional[HexPupilOptions] = None,
    rng: Optional[RandomSource] = None,
) -> HexPupilResult:
    """
    Build a hexagonal segmented pupil.

    Args:
        store: Buffer store receiving the outputs
        name: Pupil buffer name
        size: Image side in pixels
        radius: Pupil radius in pixels
        gap: Gap between adjacent segments in pixels
        step: Lattice step in pixels
        options: Optional outputs, defaults to HexPupilOptions()
        rng: Random source for random piston errors

    Returns:
        HexPupilResult with the pupil, segment records and optional buffers
    """
    if size <= 0:
        raise ValueError(f"size must be positive, got {size}")
    if step <= 0:
        raise ValueError(f"step must be positive, got {step}")

    options = options or HexPupilOptions()
    piston_enabled = options.piston_amplitude is not None
    if piston_enabled and options.piston_segment is None and rng is None:
        rng = NumpyRandom()

    inradius = (step - gap) * np.sqrt(3.0) / 2.0
    shape = (size, size)

    exclusion = 1.0 - render_disk_hard(np.zeros(shape, dtype=np.float32), size // 2, size // 2, radius)
    centers = hex_lattice(size, radius, step)

    logger.info(
        "Building hex pupil",
        size=size,
        radius=radius,
        gap=gap,
        step=step,
        candidates=len(centers),
    )

    with ExitStack() as stack:
        pupil = stack.enter_context(store.building(name, (size, size)))
        phase = None
        if piston_enabled:
            phase = stack.enter_context(store.building(options.phase_name, (size, size)))

        segments: List[SegmentRecord] = []
        rejected = 0

        for offset_x, offset_y in centers:
            piston = 0.0
            if piston_enabled:
                if options.piston_segment is None:
                    piston = options.piston_amplitude * (1.0 - 2.0 * rng.uniform())
                elif options.piston_segment == len(segments) + 1:
                    piston = options.piston_amplitude

            x_center = 0.5 * size + offset_x
            y_center = 0.5 * size + offset_y
            rows, cols, inside = hexagon_footprint(shape, x_center, y_center, inradius)

            if float(np.sum(exclusion[rows, cols][inside])) >= OVERLAP_TOLERANCE:
                rejected += 1
                continue

            segment = SegmentRecord(index=len(segments) + 1, center_x=x_center, center_y=y_center)
            region = pupil.data[rows, cols]
            claimed = inside & (region == 0)
            region[claimed] = segment.index
            segment.pixel_count = int(np.count_nonzero(claimed))
            segments.append(segment)

            if phase is not None and piston != 0.0:
                phase_region = phase.data[rows, cols]
                phase_region[claimed] += piston

        logger.info("Hex pupil segments placed", segments=len(segments), rejected=rejected)

        influence = None
        if options.influence_functions:
            if segments:
                influence = stack.enter_context(
                    store.building(options.influence_name, (size, size, 3 * len(segments)))
                )
                _fill_influence_functions(pupil.data, segments, influence.data)
            else:
                logger.warning("No segments accepted, influence functions skipped")

        exported = None
        if options.vector_export is not None:
            exported = export_segment_vectors(
                store, segments, size, radius, gap, step, options.vector_export
            )

        # Every output is complete, keep them in the store
        stack.pop_all()

    return HexPupilResult(
        pupil=pupil,
        segments=segments,
        influence=influence,
        phase=phase,
        exported_polygons=exported,
    )


def segments_to_wavefront_modes(
    store: BufferStore,
    prefix: str,
    ndigit: int,
    out_name: str,
    mask_name: str = "_pupmask",
) -> Optional[Image]:
    """
    Build piston/tip/tilt modes from a numbered series of segment images.

    Segment buffers are looked up as prefix + zero-padded index starting at 0,
    stopping at the first missing one.

    Args:
        store: Buffer store holding the segments
        prefix: Segment buffer name prefix
        ndigit: Width of the zero-padded index, 1 to 6
        out_name: Name of the 3N-plane mode cube
        mask_name: Name of the composite segment mask

    Returns:
        The mode cube, or None when no segment buffer exists
    """
    if not 1 <= ndigit <= 6:
        raise ValueError(f"ndigit must be between 1 and 6, got {ndigit}")

    segments = []
    while True:
        seg_name = f"{prefix}{len(segments):0{ndigit}d}"
        if seg_name not in store:
            break
        segments.append(store.get_buffer(seg_name).data)

    if not segments:
        logger.warning("No segment buffers found", prefix=prefix, ndigit=ndigit)
        return None

    shape = segments[0].shape
    if len(shape) != 2 or any(seg.shape != shape for seg in segments):
        raise ValueError(f"Segment buffers must share one 2D shape, first is {shape}")
    ysize, xsize = shape
    yy, xx = np.mgrid[0:ysize, 0:xsize]

    with ExitStack() as stack:
        mask = stack.enter_context(store.building(mask_name, (xsize, ysize)))
        modes = stack.enter_context(store.building(out_name, (xsize, ysize, 3 * len(segments))))

        for k, seg in enumerate(segments):
            total = float(np.sum(seg, dtype=np.float64))
            if total == 0.0:
                raise DegenerateGeometryError(f"Segment {prefix}{k:0{ndigit}d} has zero flux")
            xc = float(np.sum(xx * seg, dtype=np.float64)) / total
            yc = float(np.sum(yy * seg, dtype=np.float64)) / total

            mask.data += (k + 1) * seg
            modes.data[3 * k] = seg
            modes.data[3 * k + 1] = seg * (xx - xc)
            modes.data[3 * k + 2] = seg * (yy - yc)
            logger.debug("Segment modes", segment=k, centroid=(xc, yc))

        stack.pop_all()

    logger.info("Wavefront modes built", segments=len(segments), name=out_name)
    return modes

"""
Vector export of hexagonal pupil segments.

Segments selected by a mask-level table are written as polygons in a small
CIF-style layout file (hexcoord.txt) plus a flat vertex list
(hexcoord_pt.txt). The export needs two external inputs: the mask-level file
and an index-map buffer. When either is missing the step is skipped.
"""

import math
from pathlib import Path
from typing import Dict, Optional, Sequence

import structlog
from pydantic import BaseModel, Field

from ..config import settings
from .buffer_store import BufferStore
from .errors import MaskLevelFileError

logger = structlog.get_logger()


class HexVectorExportOptions(BaseModel):
    """Options for the segment polygon export."""

    output_dir: str = Field(
        default_factory=lambda: settings.vector_export_dir or ".",
        description="Directory receiving the export files",
    )
    mask_level_file: str = Field(
        default_factory=lambda: settings.mask_level_file,
        description="Table of '<segment index> <level>' lines",
    )
    index_map_name: str = Field(
        default_factory=lambda: settings.index_map_name,
        description="Buffer mapping pupil positions to segment indices",
    )
    pixscale: float = Field(default=1.0, gt=0, description="Output units per pixel")
    map_scale_factor: float = Field(default=1.037, gt=0, description="Index map magnification")
    bit_index: int = Field(default=4, ge=0, le=4, description="Selecting digit of level/16, 0 = MSB")
    level_offset: int = Field(default=15, description="Added to every level read from the table")


def load_mask_levels(path: Path, level_offset: int = 15) -> Dict[int, int]:
    """
    Read the segment mask-level table.

    Args:
        path: Text file with one '<segment index> <level>' pair per line
        level_offset: Constant added to every level

    Returns:
        Mapping of segment index to offset level
    """
    levels = {}
    with open(path) as fh:
        for lineno, line in enumerate(fh, start=1):
            if not line.strip():
                continue
            parts = line.split()
            if len(parts) != 2:
                raise MaskLevelFileError(
                    f"{path}:{lineno}: expected '<segment index> <level>', got {line.strip()!r}"
                )
            try:
                segment, level = int(parts[0]), int(parts[1])
            except ValueError:
                raise MaskLevelFileError(
                    f"{path}:{lineno}: expected two integers, got {line.strip()!r}"
                ) from None
            levels[segment] = level + level_offset
    return levels


def level_digit(level: int, bit_index: int) -> int:
    """Binary digit bit_index of level/16 (digit 0 is the integer part)."""
    if bit_index == 0:
        return level // 16
    return (level >> (4 - bit_index)) & 1


def _clamp(value: int, upper: int) -> int:
    return min(max(value, 0), upper)


def export_segment_vectors(
    store: BufferStore,
    segments: Sequence,
    size: int,
    radius: float,
    gap: float,
    step: float,
    options: HexVectorExportOptions,
) -> Optional[int]:
    """
    Write polygons for the segments selected by the mask-level table.

    Args:
        store: Buffer store holding the index map
        segments: Accepted SegmentRecords
        size: Pupil image size in pixels
        radius: Pupil radius in pixels
        gap: Inter-segment gap in pixels
        step: Lattice step in pixels
        options: Export options

    Returns:
        Number of exported polygons, or None when the export was skipped
    """
    level_path = Path(options.mask_level_file)
    if not level_path.exists():
        logger.debug("Mask-level file absent, vector export skipped", path=str(level_path))
        return None
    if options.index_map_name not in store:
        logger.debug("Index map absent, vector export skipped", name=options.index_map_name)
        return None
    if not segments:
        return 0

    levels = load_mask_levels(level_path, options.level_offset)
    index_map = store.get_buffer(options.index_map_name).data
    if index_map.ndim != 2:
        raise ValueError(f"Index map must be 2D, got {index_map.ndim} dimensions")
    map_ysize, map_xsize = index_map.shape

    out_dir = Path(options.output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    vertex_radius = step - gap
    exported = 0

    with open(out_dir / "hexcoord.txt", "w") as fp, open(out_dir / "hexcoord_pt.txt", "w") as fp_pt:
        fp.write("DS 1 1 1;\n")

        for segment in segments:
            offset_x = segment.center_x - 0.5 * size
            offset_y = segment.center_y - 0.5 * size

            ii = _clamp(
                int(0.5 * map_xsize + offset_x * (0.5 * map_xsize / radius) * options.map_scale_factor),
                map_xsize - 1,
            )
            jj = _clamp(
                int(0.5 * map_ysize + offset_y * (0.5 * map_ysize / radius) * options.map_scale_factor),
                map_ysize - 1,
            )
            index = int(index_map[jj, ii])
            level = levels.get(index)
            if level is None or level_digit(level, options.bit_index) != 1:
                continue

            fp.write(f"L {level};\n")
            fp.write("P")
            for pt in range(6):
                angle = 2.0 * math.pi * pt / 6
                x = options.pixscale * (offset_x + math.cos(angle) * vertex_radius)
                y = options.pixscale * (offset_y + math.sin(angle) * vertex_radius)
                fp.write(f" {int(100.0 * x)},{int(100.0 * y)}")
                fp_pt.write(f"{int(100.0 * x)} {int(100.0 * y)}\n")
            fp.write(";\n")
            exported += 1

        fp.write("DF;\n")
        fp.write("E\n")

    logger.info("Segment vectors exported", polygons=exported, output_dir=str(out_dir))
    return exported

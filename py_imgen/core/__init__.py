"""
Core image generation functionality.
"""

from .buffer_store import BufferStore, Image
from .errors import (
    ImageGenError,
    DegenerateGeometryError,
    SeedFileError,
    MaskLevelFileError,
    BufferNotFoundError,
)
from .rng import RandomSource, NumpyRandom
from .alea_prng import AleaPRNG
from .disk_rasterizer import render_disk, render_disk_hard, make_disk, make_subpixel_disk
from .perturbed_disk import Harmonic, render_disk_perturbed, make_subpixel_disk_perturbed
from .hex_pupil import (
    HexPupilOptions,
    HexPupilResult,
    SegmentRecord,
    build_hex_pupil,
    make_hexagon,
    render_hexagon,
    segments_to_wavefront_modes,
)
from .hex_vector_export import HexVectorExportOptions
from .voronoi_map import (
    SeedPoint,
    voronoi_partition,
    make_voronoi_map,
    load_seed_points,
    write_seed_points,
    ring_seed_points,
)
from .primitives import (
    make_double_star,
    make_square,
    make_rectangle,
    make_line,
    make_lincoordinate,
    make_jacquinot_pupil,
    make_sectors,
    make_slopexy,
    make_dist,
    make_pos_angle,
    make_2d_gridpix,
    make_tile,
    im2coord,
)
from .profiles import (
    EGalaxyOptions,
    make_gauss,
    make_2axis_gauss,
    make_galaxy,
    make_egalaxy,
    make_ez_disk,
    make_psf_from_profile,
    make_offset_hypergaussian,
    make_cosapo_edge_pupil,
    make_fiber_coupling_overlap,
)
from .random_images import RandomImageOptions, ClusterOptions, make_random_image, make_cluster

__all__ = ['BufferStore', 'Image',
           'ImageGenError', 'DegenerateGeometryError', 'SeedFileError', 'MaskLevelFileError',
           'BufferNotFoundError',
           'RandomSource', 'NumpyRandom', 'AleaPRNG',
           'render_disk', 'render_disk_hard', 'make_disk', 'make_subpixel_disk',
           'Harmonic', 'render_disk_perturbed', 'make_subpixel_disk_perturbed',
           'HexPupilOptions', 'HexPupilResult', 'SegmentRecord', 'build_hex_pupil',
           'make_hexagon', 'render_hexagon', 'segments_to_wavefront_modes',
           'HexVectorExportOptions',
           'SeedPoint', 'voronoi_partition', 'make_voronoi_map', 'load_seed_points',
           'write_seed_points', 'ring_seed_points',
           'make_double_star', 'make_square', 'make_rectangle', 'make_line',
           'make_lincoordinate', 'make_jacquinot_pupil', 'make_sectors', 'make_slopexy',
           'make_dist', 'make_pos_angle', 'make_2d_gridpix', 'make_tile', 'im2coord',
           'EGalaxyOptions', 'make_gauss', 'make_2axis_gauss', 'make_galaxy', 'make_egalaxy',
           'make_ez_disk', 'make_psf_from_profile', 'make_offset_hypergaussian',
           'make_cosapo_edge_pupil', 'make_fiber_coupling_overlap',
           'RandomImageOptions', 'ClusterOptions', 'make_random_image', 'make_cluster']

"""
Stochastic image generators.

Both generators draw from an explicit RandomSource. When none is given a
fresh NumpyRandom is created, so repeated calls never share a stream.
"""

from typing import Literal, Optional

import numpy as np
import structlog
from pydantic import BaseModel, Field

from .buffer_store import BufferStore, Image
from .errors import DegenerateGeometryError
from .rng import NumpyRandom, RandomSource

logger = structlog.get_logger()


class RandomImageOptions(BaseModel):
    """Distribution and sample type of a random image."""

    distribution: Literal["uniform", "gauss", "trgauss"] = Field(
        default="uniform", description="uniform [0, 1), standard normal or truncated normal"
    )
    dtype: Literal["float32", "float64"] = Field(default="float32", description="Sample type")


def make_random_image(
    store: BufferStore,
    name: str,
    xsize: int,
    ysize: int,
    options: Optional[RandomImageOptions] = None,
    rng: Optional[RandomSource] = None,
) -> Image:
    """
    Fill an image with independent random samples.

    Args:
        store: Buffer store
        name: Output buffer name
        xsize: Image width
        ysize: Image height
        options: Distribution and dtype, uniform float32 by default
        rng: Random source, a fresh NumpyRandom when None

    Returns:
        The random image
    """
    options = options or RandomImageOptions()
    rng = rng or NumpyRandom()
    shape = (ysize, xsize)

    if options.distribution == "gauss":
        samples = rng.gaussian_array(shape)
    elif options.distribution == "trgauss":
        samples = rng.truncated_gaussian_array(shape)
    else:
        samples = rng.uniform_array(shape)

    with store.building(name, (xsize, ysize), dtype=np.dtype(options.dtype)) as image:
        image.data[...] = samples
    logger.debug(
        "Random image created",
        name=name,
        distribution=options.distribution,
        dtype=options.dtype,
    )
    return image


class ClusterOptions(BaseModel):
    """Star cluster parameters."""

    nb_stars: int = Field(default=3000, ge=0, description="Number of stars")
    concentration: float = Field(default=1.0, gt=0, description="Radial concentration exponent")
    size: float = Field(default=0.1, gt=0, description="Cluster size relative to the field of view")
    central_half: bool = Field(default=False, description="Keep every star in the central half")
    max_attempts: Optional[int] = Field(
        default=None, gt=0, description="Draw limit, 1000 per star when None"
    )


def make_cluster(
    store: BufferStore,
    name: str,
    xsize: int,
    ysize: int,
    options: Optional[ClusterOptions] = None,
    rng: Optional[RandomSource] = None,
) -> Image:
    """
    Star cluster of squared-gaussian point sources.

    Star radii are |g|^(concentration / 2) for a standard normal g, scaled by
    the cluster size, with uniform position angles. Stars falling outside the
    allowed window are redrawn.
    """
    options = options or ClusterOptions()
    rng = rng or NumpyRandom()

    if options.central_half:
        lii, ljj, hii, hjj = xsize // 4, ysize // 4, 3 * xsize // 4, 3 * ysize // 4
    else:
        lii, ljj, hii, hjj = 0, 0, xsize, ysize

    max_attempts = options.max_attempts or 1000 * max(options.nb_stars, 1)
    scale_x = options.size * xsize / 2
    scale_y = options.size * ysize / 2

    with store.building(name, (xsize, ysize)) as image:
        placed = 0
        attempts = 0
        while placed < options.nb_stars:
            if attempts >= max_attempts:
                raise DegenerateGeometryError(
                    f"Placed {placed} of {options.nb_stars} stars in {attempts} draws, "
                    f"the acceptance window is too small"
                )
            attempts += 1

            dist = np.sqrt(abs(rng.gaussian())) ** options.concentration
            angle = 2.0 * np.pi * rng.uniform()
            ii = int(xsize // 2 + scale_x * dist * np.cos(angle))
            jj = int(ysize // 2 + scale_y * dist * np.sin(angle))

            if lii < ii < hii and ljj < jj < hjj:
                image.data[jj, ii] += rng.gaussian() ** 2
                placed += 1

    logger.info("Cluster created", name=name, stars=placed, draws=attempts)
    return image

"""
Named image buffers.

Generators receive a BufferStore explicitly, allocate their output through it
and hand back the resulting Image. Arrays are stored C-ordered with shape
(zsize, ysize, xsize), so the linear index of pixel (x, y, z) is
z * xsize * ysize + y * xsize + x.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, List, Sequence, Tuple

import numpy as np
import structlog

from .errors import BufferNotFoundError

logger = structlog.get_logger()


@dataclass
class Image:
    """A named, owned image buffer."""

    name: str
    data: np.ndarray

    @property
    def naxis(self) -> int:
        return self.data.ndim

    @property
    def dims(self) -> Tuple[int, ...]:
        """Dimensions in (xsize, ysize, zsize) order."""
        return tuple(reversed(self.data.shape))

    @property
    def xsize(self) -> int:
        return self.data.shape[-1]

    @property
    def ysize(self) -> int:
        return self.data.shape[-2] if self.data.ndim > 1 else 1

    @property
    def zsize(self) -> int:
        return self.data.shape[-3] if self.data.ndim > 2 else 1


class BufferStore:
    """In-memory registry of named image buffers."""

    def __init__(self):
        self._images: Dict[str, Image] = {}

    def create_buffer(
        self, name: str, dims: Sequence[int], dtype=np.float32
    ) -> Image:
        """
        Allocate a zero-filled buffer.

        Args:
            name: Buffer name, replaces any existing buffer of that name
            dims: Sizes in (xsize[, ysize[, zsize]]) order
            dtype: NumPy dtype of the samples

        Returns:
            The new Image
        """
        dims = tuple(int(d) for d in dims)
        if not 1 <= len(dims) <= 3:
            raise ValueError(f"Buffer {name!r} must have 1 to 3 axes, got {len(dims)}")
        if any(d <= 0 for d in dims):
            raise ValueError(f"Buffer {name!r} dimensions must be positive: {dims}")

        if name in self._images:
            logger.debug("Replacing buffer", name=name)

        image = Image(name=name, data=np.zeros(tuple(reversed(dims)), dtype=dtype))
        self._images[name] = image
        logger.debug("Buffer created", name=name, dims=dims, dtype=np.dtype(dtype).name)
        return image

    def get_buffer(self, name: str) -> Image:
        try:
            return self._images[name]
        except KeyError:
            raise BufferNotFoundError(name) from None

    def delete_buffer(self, name: str) -> None:
        if name not in self._images:
            raise BufferNotFoundError(name)
        del self._images[name]
        logger.debug("Buffer deleted", name=name)

    def names(self) -> List[str]:
        return list(self._images)

    def __contains__(self, name: str) -> bool:
        return name in self._images

    def __len__(self) -> int:
        return len(self._images)

    @contextmanager
    def building(
        self, name: str, dims: Sequence[int], dtype=np.float32
    ) -> Iterator[Image]:
        """
        Create a buffer for a generator to fill.

        If the body raises, the half-built buffer is removed before the
        exception propagates, so the store never publishes a partial result.
        """
        image = self.create_buffer(name, dims, dtype)
        try:
            yield image
        except BaseException:
            if self._images.get(name) is image:
                del self._images[name]
                logger.debug("Discarded partial buffer", name=name)
            raise

"""
Random number sources used by the stochastic generators.

Generators only talk to the RandomSource interface: uniform draws in [0, 1),
standard normal draws and truncated standard normal draws. Array variants
exist so that vectorized engines can fill whole images at once.
"""

from abc import ABC, abstractmethod
from typing import Optional, Sequence, Union

import numpy as np

Shape = Union[int, Sequence[int]]


class RandomSource(ABC):
    """Abstract random number source."""

    #: |x| limit of the truncated gaussian
    truncation: float = 1.0

    @abstractmethod
    def uniform(self) -> float:
        """Uniform draw in [0, 1)."""

    @abstractmethod
    def gaussian(self) -> float:
        """Standard normal draw."""

    def truncated_gaussian(self) -> float:
        """Standard normal draw, redrawn until it lies within +-truncation."""
        value = self.gaussian()
        while abs(value) > self.truncation:
            value = self.gaussian()
        return value

    def uniform_array(self, shape: Shape) -> np.ndarray:
        return self._fill(shape, self.uniform)

    def gaussian_array(self, shape: Shape) -> np.ndarray:
        return self._fill(shape, self.gaussian)

    def truncated_gaussian_array(self, shape: Shape) -> np.ndarray:
        return self._fill(shape, self.truncated_gaussian)

    @staticmethod
    def _fill(shape: Shape, draw) -> np.ndarray:
        shape = (shape,) if isinstance(shape, int) else tuple(shape)
        count = int(np.prod(shape))
        values = np.fromiter((draw() for _ in range(count)), dtype=np.float64, count=count)
        return values.reshape(shape)


class NumpyRandom(RandomSource):
    """RandomSource backed by numpy.random.Generator."""

    def __init__(self, seed: Optional[int] = None, truncation: float = 1.0):
        """
        Args:
            seed: Seed for reproducible streams, fresh OS entropy when None
            truncation: |x| limit of the truncated gaussian
        """
        if truncation <= 0:
            raise ValueError(f"truncation must be positive, got {truncation}")
        self._generator = np.random.default_rng(seed)
        self.truncation = truncation

    def uniform(self) -> float:
        return float(self._generator.random())

    def gaussian(self) -> float:
        return float(self._generator.standard_normal())

    def uniform_array(self, shape: Shape) -> np.ndarray:
        return self._generator.random(shape)

    def gaussian_array(self, shape: Shape) -> np.ndarray:
        return self._generator.standard_normal(shape)

    def truncated_gaussian_array(self, shape: Shape) -> np.ndarray:
        values = self._generator.standard_normal(shape)
        outside = np.abs(values) > self.truncation
        while np.any(outside):
            values[outside] = self._generator.standard_normal(int(np.count_nonzero(outside)))
            outside = np.abs(values) > self.truncation
        return values

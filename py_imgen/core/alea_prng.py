"""
Alea pseudo-random number generator.

Based on Johannes Baagøe's Alea algorithm. A string or numeric seed always
produces the same stream, which makes random images reproducible across
platforms without depending on NumPy's bit generators.
"""

import math

from .rng import RandomSource


def _uint32(n):
    """Convert to unsigned 32-bit integer."""
    return int(n) & 0xFFFFFFFF


class AleaPRNG(RandomSource):
    """
    Alea PRNG exposed through the RandomSource interface.

    Gaussian draws use the Marsaglia polar method and cache the second
    variate of each pair.
    """

    def __init__(self, seed="default", truncation: float = 1.0):
        """Initialize with seed string or number."""
        if truncation <= 0:
            raise ValueError(f"truncation must be positive, got {truncation}")
        self.truncation = truncation
        self.call_count = 0
        self._spare = None

        if hasattr(seed, "__iter__") and not isinstance(seed, str):
            args = list(seed)
        else:
            args = [seed]

        mash_n = 0xEFC8249D

        def mash(data):
            nonlocal mash_n
            data = str(data)
            for char in data:
                mash_n = mash_n + ord(char)
                h = 0.02519603282416938 * mash_n
                mash_n = _uint32(h)
                h -= mash_n
                h *= mash_n
                mash_n = _uint32(h)
                h -= mash_n
                mash_n += h * 0x100000000  # 2^32
            return _uint32(mash_n) * 2.3283064365386963e-10  # 2^-32

        self.s0 = mash(" ")
        self.s1 = mash(" ")
        self.s2 = mash(" ")
        self.c = 1

        for arg in args:
            self.s0 -= mash(arg)
            if self.s0 < 0:
                self.s0 += 1
            self.s1 -= mash(arg)
            if self.s1 < 0:
                self.s1 += 1
            self.s2 -= mash(arg)
            if self.s2 < 0:
                self.s2 += 1

    def uniform(self) -> float:
        """Generate next random number in [0, 1)."""
        self.call_count += 1
        t = 2091639 * self.s0 + self.c * 2.3283064365386963e-10  # 2^-32
        self.s0 = self.s1
        self.s1 = self.s2
        self.c = int(t)
        self.s2 = t - self.c
        return self.s2

    def gaussian(self) -> float:
        if self._spare is not None:
            value, self._spare = self._spare, None
            return value

        while True:
            u = 2.0 * self.uniform() - 1.0
            v = 2.0 * self.uniform() - 1.0
            s = u * u + v * v
            if 0.0 < s < 1.0:
                break

        factor = math.sqrt(-2.0 * math.log(s) / s)
        self._spare = v * factor
        return u * factor

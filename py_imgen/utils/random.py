"""
Random number generation utilities.

Stochastic generators take an explicit RandomSource. This module builds one
from a seed. There is no shared global generator, so two calls never reuse a
stream by accident.
"""

from typing import Optional, Union

from ..core.alea_prng import AleaPRNG
from ..core.rng import NumpyRandom, RandomSource


def make_rng(
    seed: Optional[Union[int, str]] = None,
    engine: str = "numpy",
    truncation: float = 1.0,
) -> RandomSource:
    """
    Create a random number source.

    Args:
        seed: Seed for a reproducible stream, None for fresh entropy
        engine: "numpy" for the vectorized NumPy generator, "alea" for the
            portable Alea generator
        truncation: |x| limit of truncated gaussian draws

    Returns:
        RandomSource instance
    """
    if engine == "numpy":
        if isinstance(seed, str):
            raise ValueError("The numpy engine needs an integer seed")
        return NumpyRandom(seed, truncation=truncation)
    if engine == "alea":
        if seed is None:
            # Alea always needs a seed; draw one from the OS
            seed = NumpyRandom().uniform_array(1)[0]
        return AleaPRNG(seed, truncation=truncation)
    raise ValueError(f"Unknown random engine: {engine}")

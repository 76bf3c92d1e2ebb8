"""
Stochastic Lattice Noise Source

Produces the perturbation vectors added to node state each pass.

Two modes:
    SIMPLE      d independent draws from the base distribution
    CORRELATED  final step of a synthetic Hurst path, one path per dimension

All randomness flows through ONE numpy Generator. A lattice owns one source,
so seeding the lattice seeds every draw it makes.
"""

import logging
from typing import Optional

import numpy as np

from .lattice_constants import (
    DEFAULT_HURST, DEFAULT_PATH_LENGTH, MIN_PATH_LENGTH,
    NOISE_NORMAL, NOISE_UNIFORM, NOISE_DISTRIBUTIONS,
)

logger = logging.getLogger(__name__)


class NoiseSource:
    """
    Seedable noise capability shared by every node of a lattice.

    Args:
        rng: Generator to draw from (default: fresh default_rng(seed))
        seed: Seed used when no generator is given
        correlated: Use the Hurst path instead of single draws
        hurst: Hurst exponent H in (0, 1)
        path_length: Synthetic path length n, must be >= 2
        distribution: 'normal' or 'uniform'
    """

    def __init__(
        self,
        rng: Optional[np.random.Generator] = None,
        seed: Optional[int] = None,
        correlated: bool = False,
        hurst: float = DEFAULT_HURST,
        path_length: int = DEFAULT_PATH_LENGTH,
        distribution: str = NOISE_NORMAL,
    ):
        if not 0.0 < hurst < 1.0:
            raise ValueError(f"Hurst exponent must lie in (0, 1), got: {hurst}")
        if path_length < MIN_PATH_LENGTH:
            raise ValueError(
                f"Noise path length must be >= {MIN_PATH_LENGTH}, got: {path_length}"
            )
        if distribution not in NOISE_DISTRIBUTIONS:
            raise ValueError(f"Unknown noise distribution: {distribution}")

        self.rng = rng if rng is not None else np.random.default_rng(seed)
        self.correlated = correlated
        self.hurst = hurst
        self.path_length = path_length
        self.distribution = distribution
        self.draw_count = 0

    def __repr__(self) -> str:
        mode = f"correlated H={self.hurst} n={self.path_length}" if self.correlated else "simple"
        return f"NoiseSource({self.distribution}, {mode})"

    # ═══════════════════════════════════════════════════════════════════════════
    # DRAWS
    # ═══════════════════════════════════════════════════════════════════════════

    def _draw(self, size) -> np.ndarray:
        """Base draws: standard normal, or uniform on [-1, 1)."""
        if self.distribution == NOISE_UNIFORM:
            return self.rng.uniform(-1.0, 1.0, size=size)
        return self.rng.standard_normal(size=size)

    def increment_scales(self) -> np.ndarray:
        """j^(H - 1/2) for j = 1 .. n-1."""
        steps = np.arange(1, self.path_length, dtype=np.float64)
        return steps ** (self.hurst - 0.5)

    def path(self, dim: int) -> np.ndarray:
        """
        Full synthetic path, shape (path_length, dim).

        Row 0 is the origin. Each later row adds one scaled draw per
        dimension, so row j is the cumulative sum of the first j increments.
        """
        if dim <= 0:
            raise ValueError(f"Noise dimension must be positive, got: {dim}")
        increments = self._draw((self.path_length - 1, dim))
        increments *= self.increment_scales()[:, np.newaxis]
        walk = np.zeros((self.path_length, dim), dtype=np.float64)
        np.cumsum(increments, axis=0, out=walk[1:])
        return walk

    def sample(self, dim: int) -> np.ndarray:
        """
        One noise vector of length dim.

        Simple mode returns the draws directly. Correlated mode returns the
        last row of a fresh path, which has non-zero variance because the
        path always takes at least one step.
        """
        if dim <= 0:
            raise ValueError(f"Noise dimension must be positive, got: {dim}")
        self.draw_count += 1
        if not self.correlated:
            return self._draw(dim)
        return self.path(dim)[-1]

    def reseed(self, seed: Optional[int]) -> None:
        """
        Reseed the generator in place.

        The Generator object is kept, so anything sharing it (the owning
        lattice) draws from the reseeded stream too.
        """
        bit_generator = self.rng.bit_generator
        bit_generator.state = type(bit_generator)(seed).state
        self.draw_count = 0
        logger.debug(f"Noise source reseeded (seed={seed})")

    def to_dict(self) -> dict:
        return {
            "correlated": self.correlated,
            "hurst": self.hurst,
            "path_length": self.path_length,
            "distribution": self.distribution,
            "draw_count": self.draw_count,
        }

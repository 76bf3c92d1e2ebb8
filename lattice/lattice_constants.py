"""
Stochastic Lattice - Constants

════════════════════════════════════════════════════════════════════════════════
THE UPDATE RECURRENCE
════════════════════════════════════════════════════════════════════════════════

Every node carries a state vector s, a flow vector f, two traits
(adaptability a, randomness factor ρ) and a memory trace m.

One pass over a node:

    1. ADJUST      s ← s + a·(⟨f, x̂⟩·x − s)          (pull toward input x)
    2. NOISE       s ← s + ρ·ξ                        (ξ from the noise source)
    3. MEMORY      m ← 0.9·m + 0.1·s                  (fixed EMA)
    4. ENVIRONMENT s ← s + a·(⟨f, ê⟩·ê − s)           (ê = unit neighbor mean)
    5. ACTIVATE    s ← max(s, 0)                      (rectification)

Step 4 only runs on spatial topologies. Step 5 is applied by the lattice,
not by the node.

════════════════════════════════════════════════════════════════════════════════
NOISE
════════════════════════════════════════════════════════════════════════════════

Correlated noise walks a synthetic path of length n per dimension:

    W[0] = 0
    W[j] = W[j-1] + j^(H - 1/2) · draw()      j = 1 .. n-1

H = 1/2 gives unscaled Brownian increments. A path of length 1 never takes a
step, so n ≥ 2 is enforced everywhere.

════════════════════════════════════════════════════════════════════════════════
"""

import math
from dataclasses import dataclass, asdict
from typing import Optional, Tuple

# ═══════════════════════════════════════════════════════════════════════════════
# MEMORY TRACE
# ═══════════════════════════════════════════════════════════════════════════════

MEMORY_DECAY = 0.9                   # weight kept from the previous trace
MEMORY_GAIN = 0.1                    # weight given to the current state

# ═══════════════════════════════════════════════════════════════════════════════
# NODE TRAITS
# ═══════════════════════════════════════════════════════════════════════════════

TRAIT_LOW = -1.0                     # adaptability / randomness lower bound
TRAIT_HIGH = 1.0                     # adaptability / randomness upper bound

STATE_INIT_LOW = -1.0                # initial state components drawn from here
STATE_INIT_HIGH = 1.0

ACTIVATION_FLOOR = 0.0               # rectification threshold

# Learning: pseudo-input is -adaptability * error
LEARN_ERROR_SCALE = -1.0

# ═══════════════════════════════════════════════════════════════════════════════
# NUMERICS
# ═══════════════════════════════════════════════════════════════════════════════

NORM_EPSILON = 1e-12                 # below this a vector counts as zero

# Flow vectors are unit at construction only. Drift past this is logged.
FLOW_DRIFT_TOLERANCE = 1e-9

# ═══════════════════════════════════════════════════════════════════════════════
# NOISE SOURCE
# ═══════════════════════════════════════════════════════════════════════════════

NOISE_NORMAL = "normal"
NOISE_UNIFORM = "uniform"
NOISE_DISTRIBUTIONS = (NOISE_NORMAL, NOISE_UNIFORM)

DEFAULT_HURST = 0.5                  # uncorrelated increments
MIN_PATH_LENGTH = 2                  # length 1 degenerates to zero noise
DEFAULT_PATH_LENGTH = 16

# ═══════════════════════════════════════════════════════════════════════════════
# TOPOLOGY
# ═══════════════════════════════════════════════════════════════════════════════

TOPOLOGY_LAYERED = "layered"
TOPOLOGY_GRID = "grid"
TOPOLOGY_TORUS = "torus"
TOPOLOGY_KINDS = (TOPOLOGY_LAYERED, TOPOLOGY_GRID, TOPOLOGY_TORUS)

DEFAULT_RADIUS = 1                   # per-axis torus radius when none is given
GRID_OFFSETS = (-1, 1)               # von Neumann steps, no diagonals

# ═══════════════════════════════════════════════════════════════════════════════
# SNAPSHOTS
# ═══════════════════════════════════════════════════════════════════════════════

SNAPSHOT_VERSION = 1


def neighborhood_size(radius: Tuple[int, ...]) -> int:
    """
    Neighbor count of a toroidal radius neighborhood.

    Π(2·r_i + 1) − 1: every offset tuple in the box except the self tuple.
    """
    total = 1
    for r in radius:
        total *= 2 * r + 1
    return total - 1


# ═══════════════════════════════════════════════════════════════════════════════
# LATTICE CONFIG
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class LatticeConfig:
    """
    Per-lattice tunables.

    correlated:   draw noise from the Hurst path instead of single draws
    hurst:        Hurst exponent H in (0, 1)
    path_length:  synthetic path length n (≥ 2)
    distribution: 'normal' or 'uniform' base draws
    seed:         generator seed (None = fresh entropy)
    radius:       default torus radius, one value for every axis
    """
    correlated: bool = False
    hurst: float = DEFAULT_HURST
    path_length: int = DEFAULT_PATH_LENGTH
    distribution: str = NOISE_NORMAL
    seed: Optional[int] = None
    radius: int = DEFAULT_RADIUS

    def __post_init__(self):
        if not 0.0 < self.hurst < 1.0:
            raise ValueError(f"Hurst exponent must lie in (0, 1), got: {self.hurst}")
        if self.path_length < MIN_PATH_LENGTH:
            raise ValueError(
                f"Noise path length must be >= {MIN_PATH_LENGTH}, got: {self.path_length}"
            )
        if self.distribution not in NOISE_DISTRIBUTIONS:
            raise ValueError(f"Unknown noise distribution: {self.distribution}")
        if self.radius < 0:
            raise ValueError(f"Radius must be non-negative, got: {self.radius}")

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> 'LatticeConfig':
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


# ═══════════════════════════════════════════════════════════════════════════════
# VALIDATION
# ═══════════════════════════════════════════════════════════════════════════════

def validate_constants() -> bool:
    """Check the fixed coefficients are self-consistent."""
    # EMA weights must sum to one
    assert math.isclose(MEMORY_DECAY + MEMORY_GAIN, 1.0), \
        f"Memory weights must sum to 1 (got {MEMORY_DECAY + MEMORY_GAIN})"

    assert TRAIT_LOW < TRAIT_HIGH, "Trait range is empty"
    assert STATE_INIT_LOW < STATE_INIT_HIGH, "State init range is empty"
    assert 0.0 < DEFAULT_HURST < 1.0, "Default Hurst exponent out of range"
    assert DEFAULT_PATH_LENGTH >= MIN_PATH_LENGTH, "Default path length is degenerate"
    assert MIN_PATH_LENGTH >= 2, "Path length 1 yields all-zero noise"
    assert DEFAULT_RADIUS >= 0, "Default radius must be non-negative"

    # Moore box in 2D, radius 1
    assert neighborhood_size((1, 1)) == 8, "Radius neighborhood formula broken"
    return True


# Run validation on module load (will raise if a constant is wrong)
validate_constants()

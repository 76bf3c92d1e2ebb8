"""
Stochastic Lattice Nodes

A node is one agent of the lattice:

    state             vector, dimension d, fixed for life
    flow_vector       vector, dimension k, unit length at construction
    adaptability      [-1, 1]  blend coefficient toward a target
    randomness_factor [-1, 1]  noise amplitude
    memory            vector, dimension d, EMA of state (starts at zero)

process() runs the fixed pipeline ADJUST → NOISE → MEMORY → ENVIRONMENT.
activate() rectifies and is called by the lattice after process().

The flow vector is unit at construction ONLY. Nothing here re-normalizes it;
flow_drift reports how far it has wandered.
"""

import logging
from typing import Iterable, Optional

import numpy as np

from .lattice_constants import (
    MEMORY_DECAY, MEMORY_GAIN,
    TRAIT_LOW, TRAIT_HIGH, STATE_INIT_LOW, STATE_INIT_HIGH,
    ACTIVATION_FLOOR, LEARN_ERROR_SCALE, NORM_EPSILON,
)
from .noise import NoiseSource

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# VECTOR HELPERS
# ═══════════════════════════════════════════════════════════════════════════════

def as_vector(values, dim: int, name: str = "input") -> np.ndarray:
    """Coerce to a float vector of length dim, or raise ValueError."""
    vec = np.asarray(values, dtype=np.float64)
    if vec.ndim != 1 or vec.shape[0] != dim:
        raise ValueError(f"{name} must be a vector of length {dim}, got shape {vec.shape}")
    if not np.all(np.isfinite(vec)):
        raise ValueError(f"{name} contains non-finite values")
    return vec


def is_zero(vec: np.ndarray) -> bool:
    return float(np.linalg.norm(vec)) < NORM_EPSILON


def unit_vector(vec: np.ndarray) -> np.ndarray:
    """Normalize. A zero vector has no direction and is rejected."""
    norm = float(np.linalg.norm(vec))
    if norm < NORM_EPSILON:
        raise ValueError("Cannot normalize a zero vector")
    return vec / norm


def alignment(flow: np.ndarray, direction: np.ndarray) -> float:
    """
    Dot product of the flow vector with a unit direction.

    Flow and state dimensions may differ; only the leading min(k, d)
    components take part.
    """
    m = min(flow.shape[0], direction.shape[0])
    return float(np.dot(flow[:m], direction[:m]))


def rectify(vec: np.ndarray) -> np.ndarray:
    return np.maximum(vec, ACTIVATION_FLOOR)


def environment_signal(neighbor_states: Iterable[np.ndarray], dim: int) -> np.ndarray:
    """
    Mean of neighbor states, accumulated as a stream.

    An empty neighborhood returns the zero vector rather than dividing by zero.
    """
    total = np.zeros(dim, dtype=np.float64)
    count = 0
    for neighbor in neighbor_states:
        total += as_vector(neighbor, dim, "neighbor state")
        count += 1
    if count == 0:
        return total
    return total / count


# ═══════════════════════════════════════════════════════════════════════════════
# NODE
# ═══════════════════════════════════════════════════════════════════════════════

class Node:
    """
    One stochastic agent.

    Construct with explicit values for fixtures, or with random_node() for
    a lattice-drawn node.
    """

    def __init__(
        self,
        state,
        flow_vector,
        adaptability: float,
        randomness_factor: float,
        memory=None,
    ):
        state = np.array(state, dtype=np.float64)
        if state.ndim != 1 or state.shape[0] == 0:
            raise ValueError(f"State must be a non-empty vector, got shape {state.shape}")
        flow = np.array(flow_vector, dtype=np.float64)
        if flow.ndim != 1 or flow.shape[0] == 0:
            raise ValueError(f"Flow vector must be a non-empty vector, got shape {flow.shape}")
        if not TRAIT_LOW <= adaptability <= TRAIT_HIGH:
            raise ValueError(f"Adaptability must lie in [{TRAIT_LOW}, {TRAIT_HIGH}], got: {adaptability}")
        if not TRAIT_LOW <= randomness_factor <= TRAIT_HIGH:
            raise ValueError(
                f"Randomness factor must lie in [{TRAIT_LOW}, {TRAIT_HIGH}], got: {randomness_factor}"
            )

        self.state = state
        self.flow_vector = unit_vector(flow)
        self.adaptability = float(adaptability)
        self.randomness_factor = float(randomness_factor)
        if memory is None:
            self.memory = np.zeros_like(state)
        else:
            self.memory = as_vector(memory, state.shape[0], "memory").copy()

    def __repr__(self) -> str:
        return (f"Node(d={self.dim}, k={self.flow_dim}, "
                f"a={self.adaptability:.3f}, rho={self.randomness_factor:.3f})")

    @property
    def dim(self) -> int:
        return self.state.shape[0]

    @property
    def flow_dim(self) -> int:
        return self.flow_vector.shape[0]

    @property
    def flow_drift(self) -> float:
        """|‖flow‖ − 1|. Zero right after construction."""
        return abs(float(np.linalg.norm(self.flow_vector)) - 1.0)

    def renormalize_flow(self) -> None:
        """Explicitly restore the unit-length flow vector."""
        self.flow_vector = unit_vector(self.flow_vector)

    # ═══════════════════════════════════════════════════════════════════════════
    # PIPELINE
    # ═══════════════════════════════════════════════════════════════════════════

    def _blend_toward(self, target: np.ndarray, direction: np.ndarray) -> None:
        align = alignment(self.flow_vector, direction)
        self.state += self.adaptability * (align * target - self.state)

    def adjust_state(self, signal) -> None:
        """
        Directional adjustment toward an input.

            align = ⟨flow, x̂⟩
            state ← state + a·(align·x − state)

        Raises ValueError on a dimension mismatch or a zero input.
        """
        x = as_vector(signal, self.dim, "input signal")
        self._blend_toward(x, unit_vector(x))

    def introduce_randomness(self, noise: NoiseSource) -> None:
        """state ← state + ρ·ξ"""
        self.state += self.randomness_factor * noise.sample(self.dim)

    def update_memory(self) -> None:
        """memory ← 0.9·memory + 0.1·state"""
        self.memory = MEMORY_DECAY * self.memory + MEMORY_GAIN * self.state

    def adapt_to_environment(self, neighbor_states: Iterable[np.ndarray]) -> bool:
        """
        Drift toward the flow-aligned direction of the neighbor mean.

        The step-1 blend with x = normalize(mean(neighbors)). An empty
        neighborhood or a zero mean gives no pull.

        Returns:
            True if the state moved
        """
        env = environment_signal(neighbor_states, self.dim)
        if is_zero(env):
            logger.debug(f"Zero environmental signal, no pull for {self}")
            return False
        direction = unit_vector(env)
        self._blend_toward(direction, direction)
        return True

    def process(
        self,
        signal,
        noise: NoiseSource,
        neighbor_states: Optional[Iterable[np.ndarray]] = None,
    ) -> bool:
        """
        One pass: ADJUST → NOISE → MEMORY → ENVIRONMENT.

        Args:
            signal: External input of length d, or None for no directional
                    pull this pass (silent layer input)
            noise: Source for the randomness term
            neighbor_states: Neighbor states; None skips step 4 entirely

        Returns:
            True if the environment step moved the state
        """
        if signal is not None:
            self.adjust_state(signal)
        self.introduce_randomness(noise)
        self.update_memory()
        if neighbor_states is None:
            return False
        return self.adapt_to_environment(neighbor_states)

    def activate(self) -> np.ndarray:
        """Rectify in place. Applying it twice changes nothing."""
        self.state = rectify(self.state)
        return self.state

    def learn(self, error) -> bool:
        """
        Apply an error correction.

        The negated, adaptability-scaled error is treated as a pseudo-input
        and pushed through the adjust_state() blend. A zero pseudo-input
        (zero error or zero adaptability) asks for no correction.

        Returns:
            True if a correction was applied
        """
        e = as_vector(error, self.dim, "error")
        pseudo_input = LEARN_ERROR_SCALE * self.adaptability * e
        # Zero error means no correction, unlike a zero input to propagate(), which is refused
        if is_zero(pseudo_input):
            return False
        self._blend_toward(pseudo_input, unit_vector(pseudo_input))
        return True

    # ═══════════════════════════════════════════════════════════════════════════
    # SERIALIZATION
    # ═══════════════════════════════════════════════════════════════════════════

    def to_dict(self) -> dict:
        return {
            "state": self.state.tolist(),
            "flow_vector": self.flow_vector.tolist(),
            "adaptability": self.adaptability,
            "randomness_factor": self.randomness_factor,
            "memory": self.memory.tolist(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Node':
        node = cls(
            state=data["state"],
            flow_vector=data["flow_vector"],
            adaptability=data["adaptability"],
            randomness_factor=data["randomness_factor"],
            memory=data.get("memory"),
        )
        # Keep the stored flow exactly, drift included
        node.flow_vector = np.array(data["flow_vector"], dtype=np.float64)
        return node


def random_node(rng: np.random.Generator, state_dim: int, flow_dim: int) -> Node:
    """
    Fully randomized node (memory starts at zero).

    Draw order is fixed: state, flow, adaptability, randomness. Lattices
    built from the same seed therefore hold identical nodes.
    """
    if state_dim <= 0 or flow_dim <= 0:
        raise ValueError(f"Dimensions must be positive, got state={state_dim}, flow={flow_dim}")
    state = rng.uniform(STATE_INIT_LOW, STATE_INIT_HIGH, size=state_dim)
    flow = rng.standard_normal(size=flow_dim)
    while float(np.linalg.norm(flow)) < NORM_EPSILON:
        flow = rng.standard_normal(size=flow_dim)
    adaptability = float(rng.uniform(TRAIT_LOW, TRAIT_HIGH))
    randomness = float(rng.uniform(TRAIT_LOW, TRAIT_HIGH))
    return Node(state, flow, adaptability, randomness)

"""
Stochastic Lattice Engine - The Lattice Container

════════════════════════════════════════════════════════════════════════════════
ONE PASS
════════════════════════════════════════════════════════════════════════════════

    propagate(x):
        for index in 0 .. node_count-1:          (ascending, always)
            neighbors ← topology.neighbors_of(index)
            node.process(x, noise, neighbor states)
            node.activate()

Updates land IN PLACE. A node visited later in the sweep sees the states its
earlier neighbors already settled into this pass (Gauss-Seidel, not Jacobi).
Reordering the sweep changes the result, so the order is part of the contract.

════════════════════════════════════════════════════════════════════════════════
SUMMARY VECTOR
════════════════════════════════════════════════════════════════════════════════

    GRID / TORUS   last visited node's post-activation state
    LAYERED        mean post-activation state of a layer, fed forward as the
                   next layer's input; the last layer's mean is returned

════════════════════════════════════════════════════════════════════════════════
OWNERSHIP
════════════════════════════════════════════════════════════════════════════════

The lattice owns the node array, the topology, and ONE seeded generator
(shared by node construction and the noise source). Neighbors are looked up
by flat index on every call; nothing holds a node reference across
add_layer().

════════════════════════════════════════════════════════════════════════════════
"""

from dataclasses import dataclass, asdict, replace
from datetime import datetime
from typing import List, Optional, Sequence, Union
import json
import os
import logging

import numpy as np

from .nodes import Node, random_node, as_vector, unit_vector, is_zero
from .noise import NoiseSource
from .topology import Topology, Layered, create_topology
from .lattice_constants import (
    TOPOLOGY_TORUS, FLOW_DRIFT_TOLERANCE, SNAPSHOT_VERSION,
    LatticeConfig,
)

logger = logging.getLogger(__name__)


def plain_state(value):
    """Bit generator state with arrays and numpy scalars turned into JSON types."""
    if isinstance(value, dict):
        return {key: plain_state(item) for key, item in value.items()}
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, np.generic):
        return value.item()
    return value


def bit_generator_for(name: str) -> np.random.BitGenerator:
    """Fresh numpy bit generator by class name ('PCG64', 'MT19937', ...)."""
    cls = getattr(np.random, name, None)
    if not (isinstance(cls, type) and issubclass(cls, np.random.BitGenerator)):
        raise ValueError(f"Unknown bit generator in snapshot: {name}")
    return cls()


@dataclass
class PassStats:
    """Counters for monitoring lattice activity."""
    passes: int = 0
    learn_calls: int = 0
    layers_added: int = 0
    nodes_visited: int = 0
    zero_environment: int = 0          # environment steps that fell back to no pull
    silent_layers: int = 0             # layered passes where a layer got a zero signal
    last_summary_norm: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


class Lattice:
    """
    The lattice - a flat node array addressed through a topology.

    Args:
        shape: Per-axis extents, or layer sizes for the layered topology
        state_dim: Node state dimension d
        flow_dim: Node flow-vector dimension k
        topology: 'layered', 'grid', 'torus', or a Topology instance
        radius: Default per-axis torus radius (torus only)
        seed: Generator seed, overrides config.seed
        config: Noise and default tunables
        rng: Generator to use instead of seeding a new one
    """

    def __init__(
        self,
        shape: Sequence[int],
        state_dim: int,
        flow_dim: int,
        topology: Union[str, Topology] = TOPOLOGY_TORUS,
        radius: Optional[Sequence[int]] = None,
        seed: Optional[int] = None,
        config: Optional[LatticeConfig] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        if state_dim <= 0 or flow_dim <= 0:
            raise ValueError(f"Dimensions must be positive, got state={state_dim}, flow={flow_dim}")

        self.config = config if config is not None else LatticeConfig()
        if seed is not None:
            self.config = replace(self.config, seed=seed)

        if isinstance(topology, Topology):
            if radius is not None:
                raise ValueError("Pass the radius to the topology, not alongside a Topology instance")
            self.topology = topology
        else:
            if topology == TOPOLOGY_TORUS and radius is None:
                radius = (self.config.radius,) * len(shape)
            self.topology = create_topology(topology, shape, radius)

        self.state_dim = int(state_dim)
        self.flow_dim = int(flow_dim)
        self.rng = rng if rng is not None else np.random.default_rng(self.config.seed)
        self.noise = NoiseSource(
            rng=self.rng,
            correlated=self.config.correlated,
            hurst=self.config.hurst,
            path_length=self.config.path_length,
            distribution=self.config.distribution,
        )
        self.nodes: List[Node] = [
            random_node(self.rng, self.state_dim, self.flow_dim)
            for _ in range(self.topology.node_count)
        ]
        self.stats = PassStats()
        self.created_at = datetime.now().isoformat()

        logger.info(f"Lattice created: {self.topology!r}, {len(self.nodes)} nodes, "
                    f"d={self.state_dim}, k={self.flow_dim}, noise={self.noise!r}")

    def __repr__(self) -> str:
        return f"Lattice({self.topology!r}, nodes={len(self.nodes)}, d={self.state_dim}, k={self.flow_dim})"

    def __len__(self) -> int:
        return len(self.nodes)

    # ═══════════════════════════════════════════════════════════════════════════
    # NODE ACCESS
    # ═══════════════════════════════════════════════════════════════════════════

    @property
    def shape(self):
        return self.topology.shape

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    def node_at(self, coord: Sequence[int]) -> Node:
        """Node at a coordinate. Raises IndexError when out of range."""
        return self.nodes[self.topology.flatten(coord)]

    def neighbors_of(self, coord: Sequence[int], radius: Optional[Sequence[int]] = None) -> list:
        """Neighbor coordinates of coord, in enumeration order."""
        return list(self.topology.neighbors_of(coord, self._resolve_radius(radius)))

    def states(self) -> np.ndarray:
        """Copy of every state, shape (node_count, d), flat order."""
        return np.array([node.state for node in self.nodes], dtype=np.float64)

    def memories(self) -> np.ndarray:
        return np.array([node.memory for node in self.nodes], dtype=np.float64)

    def layer_states(self, layer: int) -> np.ndarray:
        """States of one layer (layered topology only)."""
        if not isinstance(self.topology, Layered):
            raise ValueError(f"layer_states() needs the layered topology, not {self.topology.kind}")
        return np.array([self.nodes[i].state for i in self.topology.layer_range(layer)])

    def max_flow_drift(self) -> float:
        """Largest |‖flow‖ − 1| over all nodes."""
        return max((node.flow_drift for node in self.nodes), default=0.0)

    def _warn_flow_drift(self) -> None:
        drift = self.max_flow_drift()
        if drift > FLOW_DRIFT_TOLERANCE:
            logger.warning(f"Flow vectors drifted from unit length (max drift={drift:.3e})")

    def reseed(self, seed: Optional[int]) -> None:
        """Reseed the shared generator; later node draws and noise both follow it."""
        self.noise.reseed(seed)
        self.config = replace(self.config, seed=seed)
        logger.info(f"Lattice reseeded (seed={seed})")

    def _check_arena(self) -> None:
        if len(self.nodes) != self.topology.node_count:
            raise RuntimeError(
                f"Node array holds {len(self.nodes)} nodes, topology expects {self.topology.node_count}"
            )

    def _resolve_radius(self, radius: Optional[Sequence[int]]):
        if radius is None:
            return None
        if self.topology.kind != TOPOLOGY_TORUS:
            raise ValueError(f"Radius is only meaningful for the torus topology, not {self.topology.kind}")
        return self.topology.resolve_radius(radius)

    # ═══════════════════════════════════════════════════════════════════════════
    # PROPAGATION
    # ═══════════════════════════════════════════════════════════════════════════

    def propagate(self, signal, radius: Optional[Sequence[int]] = None) -> np.ndarray:
        """
        One relaxation sweep with the same input for every node.

        Args:
            signal: Input vector of length d (must be non-zero)
            radius: Per-axis radius for this pass (torus only)

        Returns:
            Summary vector of length d (see module docstring)
        """
        x = as_vector(signal, self.state_dim, "input signal")
        unit_vector(x)
        radius = self._resolve_radius(radius)
        self._check_arena()
        self._warn_flow_drift()

        if self.topology.is_spatial:
            summary = self._propagate_spatial(x, radius)
        else:
            summary = self._propagate_layered(x)

        self.stats.passes += 1
        self.stats.last_summary_norm = float(np.linalg.norm(summary))
        logger.debug(f"Pass {self.stats.passes}: |summary|={self.stats.last_summary_norm:.4f}")
        return summary.copy()

    def _propagate_spatial(self, x: np.ndarray, radius) -> np.ndarray:
        nodes = self.nodes
        for index, node in enumerate(nodes):
            # Lazy: states are read after this node's own steps 1-3
            neighbor_states = (nodes[i].state for i in self.topology.neighbor_indices(index, radius))
            if not node.process(x, self.noise, neighbor_states):
                self.stats.zero_environment += 1
            node.activate()
            self.stats.nodes_visited += 1
        return nodes[-1].state

    def _propagate_layered(self, x: np.ndarray) -> np.ndarray:
        layer_signal = x
        for layer in range(self.topology.layer_count):
            silent = is_zero(layer_signal)
            if silent:
                self.stats.silent_layers += 1
                logger.debug(f"Layer {layer} received a zero signal, no directional pull")
            indices = self.topology.layer_range(layer)
            for index in indices:
                node = self.nodes[index]
                node.process(None if silent else layer_signal, self.noise)
                node.activate()
                self.stats.nodes_visited += 1
            layer_signal = np.mean([self.nodes[i].state for i in indices], axis=0)
        return layer_signal

    # ═══════════════════════════════════════════════════════════════════════════
    # LEARNING & GROWTH
    # ═══════════════════════════════════════════════════════════════════════════

    def learn(self, error) -> None:
        """Apply the error correction to every node."""
        e = as_vector(error, self.state_dim, "error")
        corrected = sum(1 for node in self.nodes if node.learn(e))
        self.stats.learn_calls += 1
        logger.debug(f"Learn: corrected {corrected}/{len(self.nodes)} nodes")

    def add_layer(self, extent: int = 1) -> None:
        """
        Append freshly drawn nodes.

        Layered: one new layer of `extent` nodes.
        Grid / torus: `extent` new slabs along the last axis.

        New slots go at the end of the flat order; existing coordinates
        and indices are unchanged.
        """
        added = self.topology.grow(extent)
        self.nodes.extend(
            random_node(self.rng, self.state_dim, self.flow_dim)
            for _ in range(added)
        )
        self.stats.layers_added += 1
        self._check_arena()
        logger.info(f"Layer added: +{added} nodes, shape={self.topology.shape}, total={len(self.nodes)}")

    # ═══════════════════════════════════════════════════════════════════════════
    # SNAPSHOTS
    # ═══════════════════════════════════════════════════════════════════════════

    def to_dict(self) -> dict:
        radius = getattr(self.topology, "radius", None)
        return {
            "version": SNAPSHOT_VERSION,
            "created_at": self.created_at,
            "topology": self.topology.kind,
            "shape": list(self.topology.shape),
            "radius": list(radius) if radius is not None else None,
            "state_dim": self.state_dim,
            "flow_dim": self.flow_dim,
            "config": self.config.to_dict(),
            "rng_state": plain_state(self.rng.bit_generator.state),
            "stats": self.stats.to_dict(),
            "nodes": [node.to_dict() for node in self.nodes],
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Lattice':
        """Rebuild a lattice, generator position included."""
        try:
            version = data["version"]
            if version != SNAPSHOT_VERSION:
                raise ValueError(f"Unsupported snapshot version: {version}")
            topology = create_topology(data["topology"], data["shape"], data.get("radius"))
            rng_state = data["rng_state"]
            lattice = cls(
                shape=data["shape"],
                state_dim=data["state_dim"],
                flow_dim=data["flow_dim"],
                topology=topology,
                config=LatticeConfig.from_dict(data["config"]),
                rng=np.random.Generator(bit_generator_for(rng_state["bit_generator"])),
            )
            lattice.nodes = [Node.from_dict(nd) for nd in data["nodes"]]
            lattice.rng.bit_generator.state = rng_state
            lattice.stats = PassStats(**data.get("stats", {}))
            lattice.created_at = data.get("created_at", lattice.created_at)
        except (KeyError, TypeError) as e:
            raise ValueError(f"Malformed lattice snapshot: {e}") from e
        lattice._check_arena()
        for node in lattice.nodes:
            if node.dim != lattice.state_dim or node.flow_dim != lattice.flow_dim:
                raise ValueError(f"Snapshot node {node!r} does not match lattice dimensions")
        return lattice

    def save_state(self, path: str) -> None:
        """Write the snapshot as JSON. Nothing is written if encoding fails."""
        text = json.dumps(self.to_dict(), indent=2)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(path, 'w') as f:
            f.write(text)
        logger.info(f"Saved lattice snapshot: {path} ({len(self.nodes)} nodes, pass #{self.stats.passes})")

    @classmethod
    def load_state(cls, path: str) -> 'Lattice':
        if not os.path.exists(path):
            raise FileNotFoundError(f"No lattice snapshot found at {path}")
        with open(path, 'r') as f:
            data = json.load(f)
        lattice = cls.from_dict(data)
        logger.info(f"Loaded lattice snapshot: {path} ({len(lattice.nodes)} nodes)")
        return lattice


def create_lattice(
    kind: str,
    shape: Sequence[int],
    state_dim: int,
    flow_dim: int,
    **kwargs,
) -> Lattice:
    """Build a lattice by topology name ('layered', 'grid', 'torus')."""
    return Lattice(shape, state_dim, flow_dim, topology=kind, **kwargs)

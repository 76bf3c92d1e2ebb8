"""
Stochastic Lattice - Propagation Engine

A lattice of stochastic nodes, each nudged every pass by an input signal,
injected noise, and its neighbors' states.

Usage:
    from lattice import Lattice

    lattice = Lattice([5, 5], state_dim=3, flow_dim=3, topology="torus", seed=7)
    summary = lattice.propagate([1.0, 0.0, 0.0])
    lattice.learn(summary - target)
    lattice.add_layer()
"""

from .lattice_constants import LatticeConfig
from .noise import NoiseSource
from .nodes import Node, random_node
from .topology import (
    Topology, Layered, BoundedGrid, ToroidalRadius,
    flatten, unflatten, create_topology,
)
from .engine import Lattice, PassStats, create_lattice

__all__ = [
    # Configuration
    'LatticeConfig',

    # Noise
    'NoiseSource',

    # Nodes
    'Node', 'random_node',

    # Topology
    'Topology', 'Layered', 'BoundedGrid', 'ToroidalRadius',
    'flatten', 'unflatten', 'create_topology',

    # Engine
    'Lattice', 'PassStats', 'create_lattice',
]

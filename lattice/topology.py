"""
Stochastic Lattice Topology — Indexing and Neighborhoods

Where nodes live and who their neighbors are.

Nodes sit in ONE flat array. A topology maps between coordinates and flat
slots and enumerates neighbors. Neighbors are never stored: they are
recomputed on every call from the shape and the policy.

Mixed-radix indexing (least-significant axis first):

    flat = Σ coord[i] · m_i        m_0 = 1,  m_i = m_{i-1} · shape[i-1]

Three policies:

    LAYERED   (layer, position) slots, no spatial neighbors.
              Layers couple only through their averaged output.
    GRID      von Neumann: ±1 per axis, no wrap. Edges and corners
              have fewer than 2·axes neighbors.
    TORUS     every offset in [-r_i, r_i] per axis, wrapped modulo the
              extent, minus the self tuple. Π(2·r_i + 1) − 1 neighbors.

Growing (add_layer) always appends slots at the END of the flat array,
so every existing coordinate keeps its flat index.
"""

import itertools
import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from .lattice_constants import (
    TOPOLOGY_LAYERED, TOPOLOGY_GRID, TOPOLOGY_TORUS, TOPOLOGY_KINDS,
    DEFAULT_RADIUS, GRID_OFFSETS, neighborhood_size,
)

logger = logging.getLogger(__name__)

Coord = Tuple[int, ...]


# ═══════════════════════════════════════════════════════════════════════════════
# MIXED-RADIX INDEXING
# ═══════════════════════════════════════════════════════════════════════════════

def validate_shape(shape: Sequence[int]) -> Tuple[int, ...]:
    """Shape must be a non-empty sequence of positive integers."""
    shape = tuple(int(extent) for extent in shape)
    if not shape:
        raise ValueError("Shape must have at least one axis")
    for extent in shape:
        if extent <= 0:
            raise ValueError(f"Axis extents must be positive, got shape {shape}")
    return shape


def node_count(shape: Sequence[int]) -> int:
    total = 1
    for extent in shape:
        total *= extent
    return total


def multipliers(shape: Sequence[int]) -> List[int]:
    """Place values: m_0 = 1, m_i = m_{i-1} · shape[i-1]."""
    result = [1]
    for extent in shape[:-1]:
        result.append(result[-1] * extent)
    return result


def check_coord(coord: Sequence[int], shape: Sequence[int]) -> Coord:
    """Raise IndexError unless coord addresses a slot of shape."""
    coord = tuple(int(c) for c in coord)
    if len(coord) != len(shape):
        raise IndexError(f"Coordinate {coord} has {len(coord)} axes, shape {tuple(shape)} has {len(shape)}")
    for axis, (c, extent) in enumerate(zip(coord, shape)):
        if not 0 <= c < extent:
            raise IndexError(f"Coordinate {coord} out of range on axis {axis} [0, {extent})")
    return coord


def flatten(coord: Sequence[int], shape: Sequence[int]) -> int:
    """Coordinate → flat index."""
    coord = check_coord(coord, shape)
    return sum(c * m for c, m in zip(coord, multipliers(shape)))


def unflatten(index: int, shape: Sequence[int]) -> Coord:
    """
    Flat index → coordinate.

    Peels axes from the last (most significant) down to the first, so this
    is the exact inverse of flatten().
    """
    total = node_count(shape)
    if not 0 <= index < total:
        raise IndexError(f"Flat index {index} out of range [0, {total})")
    mults = multipliers(shape)
    coord = [0] * len(shape)
    remainder = int(index)
    for axis in range(len(shape) - 1, -1, -1):
        coord[axis], remainder = divmod(remainder, mults[axis])
    return tuple(coord)


# ═══════════════════════════════════════════════════════════════════════════════
# TOPOLOGY BASE
# ═══════════════════════════════════════════════════════════════════════════════

class Topology(ABC):
    """Coordinate space plus a neighbor policy."""

    kind: str = ""

    @property
    @abstractmethod
    def shape(self) -> Tuple[int, ...]:
        ...

    @property
    @abstractmethod
    def node_count(self) -> int:
        ...

    @abstractmethod
    def flatten(self, coord: Sequence[int]) -> int:
        ...

    @abstractmethod
    def unflatten(self, index: int) -> Coord:
        ...

    @abstractmethod
    def neighbors_of(self, coord: Sequence[int], radius: Optional[Sequence[int]] = None) -> Iterator[Coord]:
        """Lazily yield neighbor coordinates in deterministic order."""
        ...

    @abstractmethod
    def grow(self, extent: int) -> int:
        """
        Append slots at the end of the flat order.

        Returns:
            Number of slots added
        """
        ...

    @property
    def is_spatial(self) -> bool:
        return True

    def coordinates(self) -> Iterator[Coord]:
        """Every coordinate, ascending flat index."""
        for index in range(self.node_count):
            yield self.unflatten(index)

    def neighbor_indices(self, index: int, radius: Optional[Sequence[int]] = None) -> Iterator[int]:
        for coord in self.neighbors_of(self.unflatten(index), radius):
            yield self.flatten(coord)

    def neighbor_count(self, coord: Sequence[int], radius: Optional[Sequence[int]] = None) -> int:
        return sum(1 for _ in self.neighbors_of(coord, radius))

    def shape_info(self) -> Dict:
        return {
            "kind": self.kind,
            "shape": list(self.shape),
            "node_count": self.node_count,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(shape={self.shape})"


# ═══════════════════════════════════════════════════════════════════════════════
# SPATIAL (MIXED-RADIX) TOPOLOGIES
# ═══════════════════════════════════════════════════════════════════════════════

class _MixedRadixTopology(Topology):
    """Shared indexing for grid and torus."""

    def __init__(self, shape: Sequence[int]):
        self._shape = validate_shape(shape)

    @property
    def shape(self) -> Tuple[int, ...]:
        return self._shape

    @property
    def ndim(self) -> int:
        return len(self._shape)

    @property
    def node_count(self) -> int:
        return node_count(self._shape)

    def flatten(self, coord: Sequence[int]) -> int:
        return flatten(coord, self._shape)

    def unflatten(self, index: int) -> Coord:
        return unflatten(index, self._shape)

    def grow(self, extent: int) -> int:
        """Add `extent` slabs along the last axis."""
        if extent <= 0:
            raise ValueError(f"Growth extent must be positive, got: {extent}")
        before = self.node_count
        self._shape = self._shape[:-1] + (self._shape[-1] + extent,)
        logger.debug(f"{self.kind} grew to shape {self._shape}")
        return self.node_count - before


class BoundedGrid(_MixedRadixTopology):
    """
    Von Neumann neighborhood without wrap-around.

    Per axis, -1 then +1. Candidates outside [0, shape[i]) are dropped,
    so an axis of extent 1 contributes nothing.
    """

    kind = TOPOLOGY_GRID

    def neighbors_of(self, coord: Sequence[int], radius: Optional[Sequence[int]] = None) -> Iterator[Coord]:
        if radius is not None:
            raise ValueError("Bounded grid has no radius parameter")
        return self._walk(check_coord(coord, self._shape))

    def _walk(self, coord: Coord) -> Iterator[Coord]:
        for axis, extent in enumerate(self._shape):
            for offset in GRID_OFFSETS:
                c = coord[axis] + offset
                if 0 <= c < extent:
                    yield coord[:axis] + (c,) + coord[axis + 1:]


class ToroidalRadius(_MixedRadixTopology):
    """
    Radius neighborhood on an N-dimensional torus.

    The neighbor set is the Cartesian product of per-axis offsets
    [-r_i, r_i] in lexicographic order, minus the all-zero tuple. Offsets
    wrap modulo the extent, so on small axes distinct offsets can land on
    the same coordinate (or on the node itself); those repeats are kept.
    """

    kind = TOPOLOGY_TORUS

    def __init__(self, shape: Sequence[int], radius: Optional[Sequence[int]] = None):
        super().__init__(shape)
        if radius is None:
            radius = (DEFAULT_RADIUS,) * self.ndim
        self.radius = self.resolve_radius(radius)

    def resolve_radius(self, radius: Optional[Sequence[int]]) -> Tuple[int, ...]:
        """Validate a per-axis radius; None means the topology default."""
        if radius is None:
            return self.radius
        radius = tuple(int(r) for r in radius)
        if len(radius) != self.ndim:
            raise ValueError(f"Radius {radius} has {len(radius)} axes, shape {self._shape} has {self.ndim}")
        for r in radius:
            if r < 0:
                raise ValueError(f"Radius must be non-negative, got: {radius}")
        return radius

    def offsets(self, radius: Optional[Sequence[int]] = None) -> Iterator[Tuple[int, ...]]:
        """Offset tuples in lexicographic order, self tuple excluded."""
        ranges = [range(-r, r + 1) for r in self.resolve_radius(radius)]
        return (offset for offset in itertools.product(*ranges) if any(offset))

    def neighbors_of(self, coord: Sequence[int], radius: Optional[Sequence[int]] = None) -> Iterator[Coord]:
        coord = check_coord(coord, self._shape)
        return self._walk(coord, self.offsets(radius))

    def _walk(self, coord: Coord, offsets: Iterator[Tuple[int, ...]]) -> Iterator[Coord]:
        for offset in offsets:
            yield tuple(
                (c + o) % extent
                for c, o, extent in zip(coord, offset, self._shape)
            )

    def neighbor_count(self, coord: Sequence[int], radius: Optional[Sequence[int]] = None) -> int:
        check_coord(coord, self._shape)
        return neighborhood_size(self.resolve_radius(radius))

    def shape_info(self) -> Dict:
        info = super().shape_info()
        info["radius"] = list(self.radius)
        return info


# ═══════════════════════════════════════════════════════════════════════════════
# LAYERED TOPOLOGY
# ═══════════════════════════════════════════════════════════════════════════════

class Layered(Topology):
    """
    Stack of fully-mixed layers.

    Coordinates are (layer, position). Layers may differ in size, so
    indexing uses cumulative offsets instead of mixed radix. There is no
    coordinate-neighbor relation.
    """

    kind = TOPOLOGY_LAYERED

    def __init__(self, layer_sizes: Sequence[int]):
        self.layer_sizes = list(validate_shape(layer_sizes))

    @property
    def shape(self) -> Tuple[int, ...]:
        return tuple(self.layer_sizes)

    @property
    def node_count(self) -> int:
        return sum(self.layer_sizes)

    @property
    def layer_count(self) -> int:
        return len(self.layer_sizes)

    @property
    def is_spatial(self) -> bool:
        return False

    def layer_offset(self, layer: int) -> int:
        if not 0 <= layer < self.layer_count:
            raise IndexError(f"Layer {layer} out of range [0, {self.layer_count})")
        return sum(self.layer_sizes[:layer])

    def layer_range(self, layer: int) -> range:
        start = self.layer_offset(layer)
        return range(start, start + self.layer_sizes[layer])

    def flatten(self, coord: Sequence[int]) -> int:
        if len(coord) != 2:
            raise IndexError(f"Layered coordinate must be (layer, position), got {tuple(coord)}")
        layer, position = int(coord[0]), int(coord[1])
        start = self.layer_offset(layer)
        if not 0 <= position < self.layer_sizes[layer]:
            raise IndexError(
                f"Position {position} out of range [0, {self.layer_sizes[layer]}) in layer {layer}"
            )
        return start + position

    def unflatten(self, index: int) -> Coord:
        if not 0 <= index < self.node_count:
            raise IndexError(f"Flat index {index} out of range [0, {self.node_count})")
        remainder = int(index)
        for layer, size in enumerate(self.layer_sizes):
            if remainder < size:
                return (layer, remainder)
            remainder -= size
        raise IndexError(f"Flat index {index} out of range [0, {self.node_count})")

    def neighbors_of(self, coord: Sequence[int], radius: Optional[Sequence[int]] = None) -> Iterator[Coord]:
        if radius is not None:
            raise ValueError("Layered topology has no radius parameter")
        self.flatten(coord)
        return iter(())

    def grow(self, extent: int) -> int:
        """Append one layer of `extent` nodes."""
        if extent <= 0:
            raise ValueError(f"Layer size must be positive, got: {extent}")
        self.layer_sizes.append(int(extent))
        return int(extent)

    def shape_info(self) -> Dict:
        info = super().shape_info()
        info["layer_count"] = self.layer_count
        return info


# ═══════════════════════════════════════════════════════════════════════════════
# FACTORY
# ═══════════════════════════════════════════════════════════════════════════════

TOPOLOGIES = {
    TOPOLOGY_LAYERED: Layered,
    TOPOLOGY_GRID: BoundedGrid,
    TOPOLOGY_TORUS: ToroidalRadius,
}


def create_topology(kind: str, shape: Sequence[int], radius: Optional[Sequence[int]] = None) -> Topology:
    """
    Build a topology by name.

    Args:
        kind: 'layered', 'grid' or 'torus'
        shape: Layer sizes (layered) or per-axis extents
        radius: Default per-axis radius (torus only)
    """
    if kind not in TOPOLOGY_KINDS:
        raise ValueError(f"Unknown topology: {kind}")
    if kind == TOPOLOGY_TORUS:
        return ToroidalRadius(shape, radius)
    if radius is not None:
        raise ValueError(f"Radius is only meaningful for the torus topology, not {kind}")
    return TOPOLOGIES[kind](shape)

"""
Tests for Topology — Indexing and Neighborhoods

Validates:
    1. Mixed-radix flatten / unflatten (exact round trip)
    2. Out-of-range coordinates and indices
    3. Toroidal radius neighborhoods (count, order, wrap, duplicates)
    4. Bounded grid (von Neumann) neighborhoods at corners, edges, interior
    5. Layered topology (no spatial neighbors)
    6. Growth keeps existing flat indices stable
    7. Factory and radius validation
"""

import itertools
import sys
import os
import unittest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from lattice.topology import (
    flatten, unflatten, multipliers, node_count, validate_shape,
    Layered, BoundedGrid, ToroidalRadius, create_topology,
)
from lattice.lattice_constants import neighborhood_size, validate_constants


class TestMixedRadix(unittest.TestCase):
    """Coordinate ↔ flat index bijection."""

    SHAPES = [(5,), (3, 4), (2, 3, 4), (1, 5, 2), (4, 1, 1, 3)]

    def test_multipliers(self):
        """m_0 = 1, m_i = m_{i-1} · shape[i-1]."""
        self.assertEqual(multipliers((3, 4, 5)), [1, 3, 12])
        self.assertEqual(multipliers((7,)), [1])

    def test_least_significant_axis_first(self):
        """Axis 0 varies fastest."""
        self.assertEqual(flatten((1, 0), (3, 3)), 1)
        self.assertEqual(flatten((0, 1), (3, 3)), 3)
        self.assertEqual(flatten((1, 2, 3), (3, 4, 5)), 1 + 2 * 3 + 3 * 12)

    def test_unflatten_known_value(self):
        self.assertEqual(unflatten(43, (3, 4, 5)), (1, 2, 3))

    def test_flat_round_trip(self):
        """flatten(unflatten(f)) == f for every valid f."""
        for shape in self.SHAPES:
            for f in range(node_count(shape)):
                self.assertEqual(flatten(unflatten(f, shape), shape), f,
                    msg=f"round trip failed for {f} in {shape}")

    def test_coord_round_trip(self):
        """unflatten(flatten(c)) == c for every valid c."""
        for shape in self.SHAPES:
            for coord in itertools.product(*(range(e) for e in shape)):
                self.assertEqual(unflatten(flatten(coord, shape), shape), coord)

    def test_bijection_covers_all_slots(self):
        shape = (2, 3, 4)
        flats = {flatten(c, shape) for c in itertools.product(range(2), range(3), range(4))}
        self.assertEqual(flats, set(range(24)))


class TestOutOfRange(unittest.TestCase):
    """Out-of-range addressing fails with IndexError."""

    def test_coordinate_past_extent(self):
        with self.assertRaises(IndexError):
            flatten((3, 0), (3, 3))

    def test_negative_coordinate(self):
        with self.assertRaises(IndexError):
            flatten((-1, 0), (3, 3))

    def test_wrong_arity(self):
        with self.assertRaises(IndexError):
            flatten((0, 0, 0), (3, 3))

    def test_flat_index_past_end(self):
        with self.assertRaises(IndexError):
            unflatten(9, (3, 3))
        with self.assertRaises(IndexError):
            unflatten(-1, (3, 3))

    def test_neighbors_of_invalid_coord_raises_eagerly(self):
        """The check fires on the call, before any iteration."""
        with self.assertRaises(IndexError):
            ToroidalRadius((3, 3)).neighbors_of((5, 0))
        with self.assertRaises(IndexError):
            BoundedGrid((3, 3)).neighbors_of((0, 3))

    def test_invalid_shapes(self):
        with self.assertRaises(ValueError):
            validate_shape([])
        with self.assertRaises(ValueError):
            validate_shape([3, 0])
        with self.assertRaises(ValueError):
            ToroidalRadius((2, -1))


class TestToroidalRadius(unittest.TestCase):
    """Wrap-around radius neighborhoods."""

    def test_every_coordinate_has_eight_neighbors(self):
        """5×5, r=[1,1]: wrap-around makes every coordinate interior."""
        topo = ToroidalRadius((5, 5), (1, 1))
        for coord in topo.coordinates():
            neighbors = list(topo.neighbors_of(coord))
            self.assertEqual(len(neighbors), 8, msg=f"at {coord}")
            self.assertEqual(len(set(neighbors)), 8)
            self.assertNotIn(coord, neighbors)

    def test_lexicographic_offset_order(self):
        """Offsets enumerate lexicographically, wrapped into range."""
        topo = ToroidalRadius((5, 5), (1, 1))
        self.assertEqual(list(topo.neighbors_of((0, 0))), [
            (4, 4), (4, 0), (4, 1),
            (0, 4),         (0, 1),
            (1, 4), (1, 0), (1, 1),
        ])

    def test_enumeration_is_deterministic(self):
        topo = ToroidalRadius((4, 3, 2), (1, 1, 1))
        self.assertEqual(list(topo.neighbors_of((1, 2, 0))), list(topo.neighbors_of((1, 2, 0))))

    def test_count_formula(self):
        """Π(2·r_i + 1) − 1 neighbors."""
        topo = ToroidalRadius((4, 6, 3), (1, 2, 0))
        expected = 3 * 5 * 1 - 1
        self.assertEqual(neighborhood_size((1, 2, 0)), expected)
        for coord in [(0, 0, 0), (3, 5, 2), (2, 1, 1)]:
            self.assertEqual(len(list(topo.neighbors_of(coord))), expected)
            self.assertEqual(topo.neighbor_count(coord), expected)

    def test_radius_override(self):
        topo = ToroidalRadius((7, 7), (1, 1))
        self.assertEqual(len(list(topo.neighbors_of((3, 3), radius=(2, 2)))), 24)
        self.assertEqual(len(list(topo.neighbors_of((3, 3)))), 8)

    def test_single_cell_zero_radius_has_no_neighbors(self):
        """1×1 with r=[0,0]: only the self tuple exists, and it is excluded."""
        topo = ToroidalRadius((1, 1), (0, 0))
        self.assertEqual(list(topo.neighbors_of((0, 0))), [])

    def test_small_axis_wraps_to_duplicates(self):
        """1×1 with r=[1,1]: every offset wraps back onto the only cell."""
        topo = ToroidalRadius((1, 1), (1, 1))
        neighbors = list(topo.neighbors_of((0, 0)))
        self.assertEqual(len(neighbors), 8)
        self.assertEqual(set(neighbors), {(0, 0)})

    def test_neighbor_indices_match_coordinates(self):
        topo = ToroidalRadius((3, 4), (1, 1))
        index = topo.flatten((2, 1))
        self.assertEqual(
            list(topo.neighbor_indices(index)),
            [topo.flatten(c) for c in topo.neighbors_of((2, 1))],
        )

    def test_default_radius_is_one(self):
        self.assertEqual(ToroidalRadius((3, 3, 3)).radius, (1, 1, 1))

    def test_radius_validation(self):
        topo = ToroidalRadius((3, 3))
        with self.assertRaises(ValueError):
            topo.resolve_radius((1,))
        with self.assertRaises(ValueError):
            topo.resolve_radius((1, -1))


class TestBoundedGrid(unittest.TestCase):
    """Von Neumann neighborhoods, no wrap."""

    def setUp(self):
        self.grid = BoundedGrid((3, 3))

    def test_corner_has_two(self):
        self.assertEqual(len(list(self.grid.neighbors_of((0, 0)))), 2)
        self.assertEqual(len(list(self.grid.neighbors_of((2, 2)))), 2)

    def test_edge_has_three(self):
        self.assertEqual(len(list(self.grid.neighbors_of((0, 1)))), 3)

    def test_interior_has_four(self):
        self.assertEqual(len(list(self.grid.neighbors_of((1, 1)))), 4)

    def test_order_axis_major_minus_first(self):
        self.assertEqual(list(self.grid.neighbors_of((1, 1))), [(0, 1), (2, 1), (1, 0), (1, 2)])

    def test_no_diagonals_no_wrap(self):
        neighbors = set(self.grid.neighbors_of((0, 0)))
        self.assertEqual(neighbors, {(1, 0), (0, 1)})

    def test_unit_axis_contributes_nothing(self):
        """An axis of extent 1 has no in-range ±1 step."""
        grid = BoundedGrid((1, 4))
        self.assertEqual(list(grid.neighbors_of((0, 0))), [(0, 1)])
        self.assertEqual(list(BoundedGrid((1,)).neighbors_of((0,))), [])

    def test_three_dimensions(self):
        grid = BoundedGrid((3, 3, 3))
        self.assertEqual(len(list(grid.neighbors_of((1, 1, 1)))), 6)
        self.assertEqual(len(list(grid.neighbors_of((0, 0, 0)))), 3)

    def test_rejects_radius(self):
        with self.assertRaises(ValueError):
            self.grid.neighbors_of((0, 0), radius=(1, 1))


class TestLayered(unittest.TestCase):
    """Layers couple through their averaged output only."""

    def setUp(self):
        self.topo = Layered([3, 2])

    def test_counts(self):
        self.assertEqual(self.topo.node_count, 5)
        self.assertEqual(self.topo.layer_count, 2)
        self.assertFalse(self.topo.is_spatial)

    def test_indexing(self):
        self.assertEqual(self.topo.flatten((0, 2)), 2)
        self.assertEqual(self.topo.flatten((1, 1)), 4)
        self.assertEqual(self.topo.unflatten(3), (1, 0))
        for f in range(self.topo.node_count):
            self.assertEqual(self.topo.flatten(self.topo.unflatten(f)), f)

    def test_layer_range(self):
        self.assertEqual(list(self.topo.layer_range(1)), [3, 4])

    def test_no_neighbors(self):
        for coord in self.topo.coordinates():
            self.assertEqual(list(self.topo.neighbors_of(coord)), [])

    def test_out_of_range(self):
        with self.assertRaises(IndexError):
            self.topo.flatten((2, 0))
        with self.assertRaises(IndexError):
            self.topo.flatten((1, 2))
        with self.assertRaises(IndexError):
            self.topo.unflatten(5)

    def test_grow_appends_layer(self):
        added = self.topo.grow(4)
        self.assertEqual(added, 4)
        self.assertEqual(self.topo.shape, (3, 2, 4))
        self.assertEqual(list(self.topo.layer_range(2)), [5, 6, 7, 8])


class TestGrowth(unittest.TestCase):
    """Appending slabs keeps every existing flat index."""

    def test_spatial_growth_keeps_indices(self):
        topo = ToroidalRadius((3, 3))
        before = {coord: topo.flatten(coord) for coord in topo.coordinates()}
        added = topo.grow(2)
        self.assertEqual(added, 6)
        self.assertEqual(topo.shape, (3, 5))
        for coord, index in before.items():
            self.assertEqual(topo.flatten(coord), index)

    def test_grow_rejects_non_positive(self):
        with self.assertRaises(ValueError):
            BoundedGrid((2, 2)).grow(0)


class TestFactory(unittest.TestCase):

    def test_create_each_kind(self):
        self.assertIsInstance(create_topology("layered", [2, 2]), Layered)
        self.assertIsInstance(create_topology("grid", [2, 2]), BoundedGrid)
        self.assertIsInstance(create_topology("torus", [2, 2], [0, 1]), ToroidalRadius)

    def test_unknown_kind(self):
        with self.assertRaises(ValueError):
            create_topology("hexagonal", [2, 2])

    def test_radius_only_for_torus(self):
        with self.assertRaises(ValueError):
            create_topology("grid", [2, 2], [1, 1])

    def test_shape_info(self):
        info = create_topology("torus", [2, 3], [1, 0]).shape_info()
        self.assertEqual(info["kind"], "torus")
        self.assertEqual(info["shape"], [2, 3])
        self.assertEqual(info["node_count"], 6)
        self.assertEqual(info["radius"], [1, 0])

    def test_constants_validate(self):
        self.assertTrue(validate_constants())


if __name__ == '__main__':
    unittest.main()

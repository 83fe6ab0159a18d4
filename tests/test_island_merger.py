"""
Unit tests for the island_merger module.

Tests island detection, vertex island merging and the face-level passes.
"""

import unittest
import sys
from pathlib import Path

# Add parent directory to path to import the package
sys.path.insert(0, str(Path(__file__).parent.parent))

from mesh_color_clamper.adjacency import build_vertex_adjacency, build_face_adjacency
from mesh_color_clamper.color import Color
from mesh_color_clamper.island_merger import (
    Island,
    find_color_islands,
    merge_small_islands,
    get_face_dominant_color,
    merge_isolated_faces
)
from mesh_color_clamper.mesh_io import Vertex
from tests.helpers import make_cube, make_strip, make_grid, grid_index, RED, BLUE, GREEN


def vertex_graph(mesh):
    return build_vertex_adjacency(len(mesh.vertices), mesh.faces)


def color_names(mesh):
    return [v.color.name if v.color is not None else None for v in mesh.vertices]


class TestIsland(unittest.TestCase):

    def test_len_and_repr(self):
        island = Island([3, 4, 5], 'red')
        self.assertEqual(len(island), 3)
        self.assertIn("red", repr(island))
        self.assertIn("size=3", repr(island))


class TestFindColorIslands(unittest.TestCase):
    """Test find_color_islands."""

    def test_two_islands_on_strip(self):
        mesh = make_strip([RED, RED, RED, BLUE, BLUE, BLUE])
        islands = find_color_islands(mesh.vertices, vertex_graph(mesh))

        self.assertEqual(len(islands), 2)
        self.assertEqual(islands[0].members, [0, 1, 2])
        self.assertEqual(islands[0].color_name, 'red')
        self.assertEqual(islands[1].members, [3, 4, 5])
        self.assertEqual(islands[1].color, BLUE)

    def test_same_color_disconnected_is_two_islands(self):
        mesh = make_strip([RED, BLUE, BLUE, BLUE, RED])
        islands = find_color_islands(mesh.vertices, vertex_graph(mesh))
        red_islands = [i for i in islands if i.color_name == 'red']
        self.assertEqual(len(red_islands), 2)

    def test_colorless_vertices_excluded(self):
        mesh = make_strip([RED, None, RED])
        islands = find_color_islands(mesh.vertices, vertex_graph(mesh))
        members = sorted(m for island in islands for m in island.members)
        self.assertEqual(members, [0, 2])

    def test_islands_partition_colored_vertices(self):
        mesh = make_strip([RED, GREEN, RED, BLUE, BLUE, GREEN, RED])
        islands = find_color_islands(mesh.vertices, vertex_graph(mesh))
        members = sorted(m for island in islands for m in island.members)
        self.assertEqual(members, list(range(7)))


class TestMergeSmallIslands(unittest.TestCase):
    """Test merge_small_islands."""

    def test_cube_single_blue_vertex(self):
        """7 red + 1 blue vertex on a cube, min size 2 -> 8 red."""
        mesh = make_cube([RED] * 6 + [BLUE] + [RED])

        merged = merge_small_islands(mesh.vertices, vertex_graph(mesh), 2, [RED, BLUE])

        self.assertEqual(merged, 1)
        self.assertEqual(color_names(mesh), ['red'] * 8)

    def test_large_islands_untouched(self):
        mesh = make_strip([RED, RED, RED, BLUE, BLUE, BLUE])
        merged = merge_small_islands(mesh.vertices, vertex_graph(mesh), 3, [RED, BLUE])
        self.assertEqual(merged, 0)
        self.assertEqual(color_names(mesh), ['red'] * 3 + ['dark_blue'] * 3)

    def test_tie_goes_to_first_neighbor(self):
        """Blue vertex 2 touches two reds (0, 1) and two greens (3, 4)."""
        mesh = make_strip([RED, RED, BLUE, GREEN, GREEN])
        merged = merge_small_islands(mesh.vertices, vertex_graph(mesh), 2, [RED, BLUE, GREEN])
        self.assertEqual(merged, 1)
        self.assertEqual(color_names(mesh), ['red', 'red', 'red', 'green', 'green'])

    def test_neighbor_color_outside_palette_not_applied(self):
        ink = Color(0.0, 0.0, 0.0, 'ink')
        mesh = make_strip([ink, ink, RED, ink, ink])
        merged = merge_small_islands(mesh.vertices, vertex_graph(mesh), 2, [RED])
        self.assertEqual(merged, 0)
        self.assertEqual(mesh.vertices[2].color, RED)

    def test_colorless_vertices_stay_colorless(self):
        mesh = make_strip([RED, None, BLUE, RED, RED])
        merge_small_islands(mesh.vertices, vertex_graph(mesh), 3, [RED, BLUE])
        self.assertIsNone(mesh.vertices[1].color)

    def test_applies_palette_color_object(self):
        mesh = make_cube([RED] * 7 + [BLUE])
        merge_small_islands(mesh.vertices, vertex_graph(mesh), 2, [RED, BLUE])
        self.assertEqual(mesh.vertices[7].color, RED)

    def test_adversarial_strip_terminates(self):
        """Alternating colors can't all be satisfied - the loop must still stop."""
        colors = [RED if i % 2 == 0 else GREEN for i in range(30)]
        mesh = make_strip(colors)
        before = set(color_names(mesh))

        merge_small_islands(mesh.vertices, vertex_graph(mesh), 5, [RED, GREEN], max_iterations=10)

        after = set(color_names(mesh))
        self.assertTrue(after <= before)
        self.assertTrue(all(v.color is not None for v in mesh.vertices))

    def test_never_introduces_new_names(self):
        mesh = make_strip([RED, GREEN, BLUE, RED, GREEN, BLUE, RED, RED, RED])
        before = set(color_names(mesh))
        merge_small_islands(mesh.vertices, vertex_graph(mesh), 4, [RED, GREEN, BLUE])
        self.assertTrue(set(color_names(mesh)) <= before)


class TestFaceDominantColor(unittest.TestCase):
    """Test get_face_dominant_color."""

    def setUp(self):
        self.vertices = [
            Vertex(0, 0, 0, RED),
            Vertex(1, 0, 0, GREEN),
            Vertex(0, 1, 0, GREEN),
            Vertex(1, 1, 0, BLUE),
            Vertex(2, 2, 0, None),
        ]

    def test_majority_wins(self):
        self.assertEqual(get_face_dominant_color((0, 1, 2), self.vertices), 'green')

    def test_tie_goes_to_first_in_face_order(self):
        self.assertEqual(get_face_dominant_color((3, 0, 1), self.vertices), 'dark_blue')

    def test_colorless_face(self):
        self.assertIsNone(get_face_dominant_color((4, 4, 4), self.vertices))

    def test_colorless_vertices_ignored(self):
        self.assertEqual(get_face_dominant_color((4, 4, 0), self.vertices), 'red')


class TestMergeIsolatedFaces(unittest.TestCase):
    """Test merge_isolated_faces."""

    def test_isolated_face_takes_neighbor_color(self):
        """
        4x3 grid, all red except bottom vertices 1 and 2.

        Only face (1, 2, 6) is blue-dominated; its bottom edge is on the
        boundary and both other neighbors are red.
        """
        mesh = make_grid(4, 3, RED)
        mesh.vertices[1].color = BLUE
        mesh.vertices[2].color = BLUE
        face_graph = build_face_adjacency(mesh.faces)

        merged = merge_isolated_faces(mesh.vertices, mesh.faces, face_graph, 2, [RED, BLUE])

        self.assertEqual(merged, 2)
        self.assertEqual(set(color_names(mesh)), {'red'})

    def test_uniform_mesh_unchanged(self):
        mesh = make_grid(4, 4, GREEN)
        face_graph = build_face_adjacency(mesh.faces)
        merged = merge_isolated_faces(mesh.vertices, mesh.faces, face_graph, 4, [GREEN, RED])
        self.assertEqual(merged, 0)

    def test_faces_without_neighbors_skipped(self):
        mesh = make_strip([RED, BLUE, BLUE])
        face_graph = build_face_adjacency(mesh.faces)
        merged = merge_isolated_faces(mesh.vertices, mesh.faces, face_graph, 2, [RED, BLUE])
        self.assertEqual(merged, 0)
        self.assertEqual(color_names(mesh), ['red', 'dark_blue', 'dark_blue'])

    def _grid_with_blue_block(self):
        """
        6x6 red grid with a 2x2 block of blue vertices at (2,2)-(3,3).

        Six faces end up blue-dominated and form one island in which every
        face has a blue neighbor, so the isolated-face pass leaves it alone.
        """
        mesh = make_grid(6, 6, RED)
        for x, y in ((2, 2), (3, 2), (2, 3), (3, 3)):
            mesh.vertices[grid_index(6, x, y)].color = BLUE
        return mesh

    def test_small_face_island_takes_border_color(self):
        mesh = self._grid_with_blue_block()
        face_graph = build_face_adjacency(mesh.faces)

        merged = merge_isolated_faces(mesh.vertices, mesh.faces, face_graph, 7, [RED, BLUE])

        self.assertEqual(merged, 4)
        self.assertEqual(set(color_names(mesh)), {'red'})

    def test_face_island_at_threshold_kept(self):
        mesh = self._grid_with_blue_block()
        face_graph = build_face_adjacency(mesh.faces)

        merged = merge_isolated_faces(mesh.vertices, mesh.faces, face_graph, 6, [RED, BLUE])

        self.assertEqual(merged, 0)
        self.assertEqual(color_names(mesh).count('dark_blue'), 4)

    def test_adversarial_strip_terminates(self):
        colors = [RED, RED, GREEN, GREEN] * 8
        mesh = make_strip(colors)
        before = set(color_names(mesh))
        face_graph = build_face_adjacency(mesh.faces)

        merge_isolated_faces(mesh.vertices, mesh.faces, face_graph, 5, [RED, GREEN], max_iterations=10)

        self.assertTrue(set(color_names(mesh)) <= before)


if __name__ == '__main__':
    unittest.main()

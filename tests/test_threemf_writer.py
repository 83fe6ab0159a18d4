"""
Unit tests for the threemf_writer module.

Tests color splitting, placement, and the files inside the 3MF archive.
"""

import unittest
import sys
import zipfile
import xml.etree.ElementTree as ET
from pathlib import Path

# Add parent directory to path to import the package
sys.path.insert(0, str(Path(__file__).parent.parent))

from mesh_color_clamper.mesh_io import Vertex
from mesh_color_clamper.threemf_writer import (
    NS_3MF,
    UNCOLORED_PART_NAME,
    ColorPart,
    format_float,
    triangulate,
    split_mesh_by_color,
    calculate_bounds,
    placement_offset,
    write_3mf
)
from tests.helpers import RED, BLUE, GREEN, make_cube, write_temp_file, cleanup_test_file

NS = {"m": NS_3MF}


class TestFormatting(unittest.TestCase):
    """Test the small formatting helpers."""

    def test_format_float(self):
        self.assertEqual(format_float(1.5), "1.5")
        self.assertEqual(format_float(2.0), "2")
        self.assertEqual(format_float(0.0), "0")
        self.assertEqual(format_float(-0.0000001), "0")
        self.assertEqual(format_float(-3.25), "-3.25")

    def test_triangulate(self):
        self.assertEqual(triangulate((0, 1, 2)), [(0, 1, 2)])
        self.assertEqual(triangulate((0, 1, 2, 3)), [(0, 1, 2), (0, 2, 3)])


class TestSplitMeshByColor(unittest.TestCase):
    """Test split_mesh_by_color."""

    def test_single_color(self):
        mesh = make_cube([RED] * 8)
        parts = split_mesh_by_color(mesh.vertices, mesh.faces, [RED, BLUE])
        self.assertEqual(len(parts), 1)
        self.assertEqual(parts[0].name, 'red')
        self.assertEqual(parts[0].extruder_slot, 1)
        self.assertEqual(len(parts[0].vertices), 8)
        self.assertEqual(len(parts[0].triangles), 12)

    def test_parts_follow_palette_order(self):
        # Bottom four vertices blue, top four green
        mesh = make_cube([BLUE] * 4 + [GREEN] * 4)
        parts = split_mesh_by_color(mesh.vertices, mesh.faces, [GREEN, RED, BLUE])
        self.assertEqual([p.name for p in parts], ['green', 'dark_blue'])
        self.assertEqual([p.extruder_slot for p in parts], [1, 2])
        self.assertEqual(sum(len(p.triangles) for p in parts), 12)

    def test_part_indices_are_local(self):
        mesh = make_cube([BLUE] * 4 + [GREEN] * 4)
        for part in split_mesh_by_color(mesh.vertices, mesh.faces, [GREEN, BLUE]):
            for triangle in part.triangles:
                for idx in triangle:
                    self.assertLess(idx, len(part.vertices))

    def test_uncolored_faces_last(self):
        mesh = make_cube([RED] * 4 + [None] * 4)
        parts = split_mesh_by_color(mesh.vertices, mesh.faces, [RED])
        self.assertEqual([p.name for p in parts], ['red', UNCOLORED_PART_NAME])
        self.assertIsNone(parts[1].color)

    def test_slots_capped(self):
        mesh = make_cube([BLUE] * 4 + [GREEN] * 4)
        parts = split_mesh_by_color(mesh.vertices, mesh.faces, [BLUE, GREEN], slot_count=1)
        self.assertEqual([p.extruder_slot for p in parts], [1, 1])


class TestPlacement(unittest.TestCase):
    """Test bounds and build plate placement."""

    def test_empty_bounds(self):
        self.assertEqual(calculate_bounds([]), (0.0, 0.0, 0.0, 0.0, 0.0, 0.0))

    def test_centered_and_grounded(self):
        part = ColorPart('red', RED, 1, vertices=[(0, 0, 5), (10, 20, 8)])
        self.assertEqual(placement_offset([part], (100.0, 100.0)), (95.0, 90.0, -5))


class TestWrite3MF(unittest.TestCase):
    """Test the 3MF archive."""

    def setUp(self):
        self.output_path = write_temp_file(b"", '.3mf')

    def tearDown(self):
        cleanup_test_file(self.output_path)

    def test_no_faces_raises(self):
        with self.assertRaises(ValueError):
            write_3mf(self.output_path, [Vertex(0, 0, 0, RED)], [], [RED])

    def test_archive_contents(self):
        mesh = make_cube([BLUE] * 4 + [GREEN] * 4)
        stats = write_3mf(self.output_path, mesh.vertices, mesh.faces, [BLUE, GREEN])

        self.assertEqual(stats['num_objects'], 2)
        self.assertEqual(stats['num_triangles'], 12)

        with zipfile.ZipFile(self.output_path) as zf:
            names = set(zf.namelist())
            self.assertEqual(names, {
                "[Content_Types].xml",
                "_rels/.rels",
                "3D/3dmodel.model",
                "Metadata/model_settings.config",
            })
            model = ET.fromstring(zf.read("3D/3dmodel.model"))
            settings = ET.fromstring(zf.read("Metadata/model_settings.config"))

        bases = model.findall("m:resources/m:basematerials/m:base", NS)
        self.assertEqual([b.get("name") for b in bases], ['dark_blue', 'green'])
        self.assertEqual(bases[0].get("displaycolor"), BLUE.to_hex_argb())

        objects = model.findall("m:resources/m:object", NS)
        self.assertEqual([o.get("id") for o in objects], ["2", "3"])
        self.assertEqual([o.get("pindex") for o in objects], ["0", "1"])
        self.assertEqual(len(model.findall("m:build/m:item", NS)), 2)

        extruders = [
            m.get("value")
            for m in settings.iter("metadata")
            if m.get("key") == "extruder"
        ]
        self.assertEqual(extruders, ["2"])

    def test_progress_callback(self):
        calls = []
        mesh = make_cube([RED] * 8)
        write_3mf(self.output_path, mesh.vertices, mesh.faces, [RED],
                  progress_callback=lambda stage, msg: calls.append(stage))
        self.assertTrue(calls)
        self.assertTrue(all(stage == "export" for stage in calls))


if __name__ == '__main__':
    unittest.main()

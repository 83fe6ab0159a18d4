"""
Test helper utilities for creating test fixtures and sample data.

This module provides small meshes (cube, strip, grid), colors, and
temporary OBJ/STL/PNG files used across multiple test files.
"""

import os
import tempfile
from typing import List, Optional, Sequence, Tuple

import numpy as np
from PIL import Image

from mesh_color_clamper.color import Color
from mesh_color_clamper.mesh_io import Mesh, Vertex

# Raw (unnamed) input colors, close to the pool's red/blue/green/white
RAW_RED = Color(0.9, 0.1, 0.1)
RAW_BLUE = Color(0.1, 0.2, 0.5)
RAW_GREEN = Color(0.2, 0.7, 0.2)
RAW_WHITE = Color(1.0, 1.0, 1.0)

# Named palette colors
RED = Color(0.9, 0.1, 0.1, 'red')
BLUE = Color(0.1, 0.2, 0.5, 'dark_blue')
GREEN = Color(0.2, 0.7, 0.2, 'green')
WHITE = Color(1.0, 1.0, 1.0, 'white')


CUBE_POSITIONS = [
    (0, 0, 0), (1, 0, 0), (1, 1, 0), (0, 1, 0),
    (0, 0, 1), (1, 0, 1), (1, 1, 1), (0, 1, 1),
]

CUBE_FACES = [
    (0, 2, 1), (0, 3, 2),  # bottom
    (4, 5, 6), (4, 6, 7),  # top
    (0, 1, 5), (0, 5, 4),  # front
    (1, 2, 6), (1, 6, 5),  # right
    (2, 3, 7), (2, 7, 6),  # back
    (3, 0, 4), (3, 4, 7),  # left
]


def make_cube(colors: Optional[Sequence[Optional[Color]]] = None) -> Mesh:
    """
    Create a unit cube: 8 vertices, 12 triangles.

    Args:
        colors: One color (or None) per vertex; defaults to all RAW_RED
    """
    if colors is None:
        colors = [RAW_RED] * 8
    vertices = [Vertex(x, y, z, c) for (x, y, z), c in zip(CUBE_POSITIONS, colors)]
    return Mesh(vertices, list(CUBE_FACES))


def make_strip(colors: Sequence[Optional[Color]]) -> Mesh:
    """
    Create a triangle strip with one vertex per color.

    Vertices zig-zag along x; face i is (i, i+1, i+2), so consecutive
    faces share an edge.
    """
    vertices = [
        Vertex(i * 0.5, float(i % 2), 0.0, color)
        for i, color in enumerate(colors)
    ]
    faces = [(i, i + 1, i + 2) for i in range(len(colors) - 2)]
    return Mesh(vertices, faces)


def make_grid(width: int, height: int, color: Optional[Color] = RAW_RED) -> Mesh:
    """
    Create a flat grid of width x height vertices, every cell split into
    two triangles. All vertices get `color`.
    """
    vertices = [
        Vertex(float(x), float(y), 0.0, color)
        for y in range(height)
        for x in range(width)
    ]
    faces: List[Tuple[int, ...]] = []
    for y in range(height - 1):
        for x in range(width - 1):
            a = y * width + x
            b = a + 1
            c = a + width
            d = c + 1
            faces.append((a, b, d))
            faces.append((a, d, c))
    return Mesh(vertices, faces)


def grid_index(width: int, x: int, y: int) -> int:
    return y * width + x


def write_temp_file(content, suffix: str) -> str:
    """
    Write text or bytes to a temp file and return its path.

    Args:
        content: str (written as UTF-8) or bytes
        suffix: File extension including the dot
    """
    fd, filepath = tempfile.mkstemp(suffix=suffix)
    mode = 'wb' if isinstance(content, bytes) else 'w'
    with os.fdopen(fd, mode) as f:
        f.write(content)
    return filepath


def cube_obj_text(colors: Sequence[Optional[Tuple[float, float, float]]]) -> str:
    """OBJ text for the unit cube with the given per-vertex colors."""
    lines = ["# test cube", "o cube"]
    for (x, y, z), color in zip(CUBE_POSITIONS, colors):
        line = f"v {x} {y} {z}"
        if color is not None:
            line += " " + " ".join(str(c) for c in color)
        lines.append(line)
    for face in CUBE_FACES:
        lines.append("f " + " ".join(str(i + 1) for i in face))
    return '\n'.join(lines) + '\n'


def build_binary_stl(
    triangles: Sequence[Sequence[Tuple[float, float, float]]],
    attributes: Optional[Sequence[int]] = None
) -> bytes:
    """
    Build a binary STL file.

    Args:
        triangles: Three (x, y, z) points per triangle
        attributes: Optional 16-bit attribute word per triangle (RGB555 colors)
    """
    dtype = np.dtype([
        ('normal', '<f4', (3,)),
        ('vertices', '<f4', (3, 3)),
        ('attribute', '<u2'),
    ])
    records = np.zeros(len(triangles), dtype=dtype)
    for i, tri in enumerate(triangles):
        records['vertices'][i] = np.array(tri, dtype=np.float32)
        if attributes is not None:
            records['attribute'][i] = attributes[i]

    header = b'binary stl for tests'.ljust(80, b' ')
    count = np.array([len(triangles)], dtype='<u4').tobytes()
    return header + count + records.tobytes()


def rgb555(r: int, g: int, b: int, valid: bool = True) -> int:
    """Pack 5-bit channels (0-31) into an STL attribute word."""
    value = (r << 10) | (g << 5) | b
    if valid:
        value |= 0x8000
    return value


def create_test_image(rgba: np.ndarray, suffix: str = '.png') -> str:
    """Save an (h, w, 4) uint8 array as an image file and return its path."""
    fd, filepath = tempfile.mkstemp(suffix=suffix)
    os.close(fd)
    Image.fromarray(rgba.astype(np.uint8)).save(filepath)
    return filepath


def cleanup_test_file(filepath: str) -> None:
    """
    Remove a test file if it exists.

    Args:
        filepath: Path to file to remove
    """
    if filepath and os.path.exists(filepath):
        os.remove(filepath)

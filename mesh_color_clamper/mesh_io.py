"""
Mesh loading and saving.

This module handles:
- The in-memory mesh representation (vertices with optional colors + faces)
- Reading OBJ files with per-vertex colors ("v x y z r g b")
- Reading binary STL files with RGB555 face colors
- Writing OBJ files, either by patching the original text or from scratch

The clamping pipeline never adds, removes or reorders vertices or faces -
it only changes vertex colors - so an OBJ can be written back by rewriting
just its "v" lines and leaving everything else untouched.
"""

from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .color import Color
from .constants import COORDINATE_PRECISION, SUPPORTED_MESH_EXTENSIONS
from .errors import MeshFormatError, MeshValidationError

Face = Tuple[int, ...]


class Vertex:
    """
    A mesh vertex: a position plus an optional color.

    The color is the only thing the pipeline ever changes.
    """

    def __init__(self, x: float, y: float, z: float, color: Optional[Color] = None):
        self.x = x
        self.y = y
        self.z = z
        self.color = color

    def __repr__(self) -> str:
        return f"Vertex(({self.x}, {self.y}, {self.z}), color={self.color!r})"


class ObjDocument:
    """
    The original OBJ text, kept so we can write it back with new colors.

    Attributes:
        lines: Every line of the source file (without line endings)
        vertex_line_indices: For vertex i, the index of its "v" line
    """

    def __init__(self, lines: List[str], vertex_line_indices: List[int]):
        self.lines = lines
        self.vertex_line_indices = vertex_line_indices


class Mesh:
    """
    Vertices and faces of one colored mesh.

    Attributes:
        vertices: List of Vertex objects
        faces: List of vertex index tuples (3 or more indices each)
        document: Source OBJ text when loaded from an OBJ file
    """

    def __init__(
        self,
        vertices: List[Vertex],
        faces: List[Face],
        document: Optional[ObjDocument] = None
    ):
        self.vertices = vertices
        self.faces = faces
        self.document = document

    def colors(self) -> List[Color]:
        """Colors of all colored vertices, in vertex order."""
        return [v.color for v in self.vertices if v.color is not None]

    def color_count(self) -> int:
        return sum(1 for v in self.vertices if v.color is not None)

    def validate(self) -> None:
        """
        Check that every face is usable.

        Raises:
            MeshValidationError: If a face has fewer than 3 indices or
                                 references a vertex that doesn't exist
        """
        vertex_count = len(self.vertices)
        for face_idx, face in enumerate(self.faces):
            if len(face) < 3:
                raise MeshValidationError(f"needs at least 3 vertices, has {len(face)}", face_idx)
            for vertex_idx in face:
                if not 0 <= vertex_idx < vertex_count:
                    raise MeshValidationError(
                        f"vertex index {vertex_idx} out of range (mesh has {vertex_count} vertices)",
                        face_idx
                    )

    def __repr__(self) -> str:
        return (
            f"Mesh({len(self.vertices)} vertices, {len(self.faces)} faces, "
            f"{self.color_count()} colored)"
        )


# ============================================================================
# OBJ
# ============================================================================

def _parse_obj_color(parts: List[str]) -> Optional[Color]:
    r, g, b = (float(p) for p in parts[4:7])

    # Some exporters write 0-255 instead of 0-1
    if r > 1 or g > 1 or b > 1:
        r, g, b = r / 255, g / 255, b / 255

    return Color(
        max(0.0, min(1.0, r)),
        max(0.0, min(1.0, g)),
        max(0.0, min(1.0, b))
    )


def parse_obj(content: str) -> Mesh:
    """
    Parse OBJ text with optional per-vertex colors.

    Vertex lines may carry a color after the position ("v x y z r g b").
    Face tokens can be "i", "i/t", "i/t/n" or "i//n"; only the vertex index
    is used, and negative indices count back from the latest vertex.

    Args:
        content: The full OBJ file text

    Returns:
        Mesh with its source document attached

    Raises:
        MeshFormatError: If a vertex or face line has unparseable numbers
    """
    lines = content.split('\n')
    vertices: List[Vertex] = []
    vertex_line_indices: List[int] = []
    faces: List[Face] = []

    for index, line in enumerate(lines):
        trimmed = line.strip()

        try:
            if trimmed.startswith('v '):
                parts = trimmed.split()
                x, y, z = float(parts[1]), float(parts[2]), float(parts[3])
                color = _parse_obj_color(parts) if len(parts) >= 7 else None
                vertices.append(Vertex(x, y, z, color))
                vertex_line_indices.append(index)

            elif trimmed.startswith('f '):
                face = []
                for token in trimmed.split()[1:]:
                    idx = int(token.split('/')[0])
                    face.append(idx - 1 if idx > 0 else len(vertices) + idx)
                faces.append(tuple(face))
        except (ValueError, IndexError) as e:
            raise MeshFormatError(f"Invalid OBJ line {index + 1}: {trimmed!r} ({e})") from e

    return Mesh(vertices, faces, ObjDocument(lines, vertex_line_indices))


def _format_number(value: float, precision: int = COORDINATE_PRECISION) -> str:
    return f"{value:.{precision}f}".rstrip('0').rstrip('.') or "0"


def _vertex_line(vertex: Vertex, position: Optional[Sequence[str]] = None) -> str:
    if position is None:
        position = [_format_number(vertex.x), _format_number(vertex.y), _format_number(vertex.z)]
    line = "v " + " ".join(position)
    if vertex.color is not None:
        line += f" {vertex.color.r:.{COORDINATE_PRECISION}f}" \
                f" {vertex.color.g:.{COORDINATE_PRECISION}f}" \
                f" {vertex.color.b:.{COORDINATE_PRECISION}f}"
    return line


def export_obj_content(document: ObjDocument, vertices: Sequence[Vertex]) -> str:
    """
    Write the original OBJ text back with updated vertex colors.

    Only "v" lines change, and only their color part - the position tokens
    are copied verbatim so no precision is lost.
    """
    lines = list(document.lines)
    for vertex, line_idx in zip(vertices, document.vertex_line_indices):
        parts = lines[line_idx].strip().split()
        lines[line_idx] = _vertex_line(vertex, parts[1:4])
    return '\n'.join(lines)


def generate_obj(vertices: Sequence[Vertex], faces: Sequence[Face]) -> str:
    """Build a fresh OBJ file (1-based face indices) from vertices and faces."""
    lines = [
        "# Color-clamped mesh",
        f"# {len(vertices)} vertices, {len(faces)} faces",
    ]
    lines.extend(_vertex_line(v) for v in vertices)
    lines.extend("f " + " ".join(str(i + 1) for i in face) for face in faces)
    return '\n'.join(lines) + '\n'


# ============================================================================
# STL
# ============================================================================

# 12 bytes normal, 3 x 12 bytes vertices, 2 bytes attribute
_STL_TRIANGLE = np.dtype([
    ('normal', '<f4', (3,)),
    ('vertices', '<f4', (3, 3)),
    ('attribute', '<u2'),
])


def _stl_face_color(attribute: int) -> Optional[Color]:
    """
    Decode an RGB555 attribute word.

    Bit 15 set means "valid color" (VisCAM/SolidView). Without it, any
    non-zero, non-black value is still treated as a color.
    """
    r = ((attribute >> 10) & 0x1F) / 31
    g = ((attribute >> 5) & 0x1F) / 31
    b = (attribute & 0x1F) / 31

    if attribute & 0x8000:
        return Color(r, g, b)
    if attribute != 0 and (r > 0 or g > 0 or b > 0):
        return Color(r, g, b)
    return None


def parse_stl(data: bytes) -> Mesh:
    """
    Parse a binary STL file with optional RGB555 face colors.

    Vertices are deduplicated by position (rounded to 6 decimals). A vertex
    shared by several colored faces gets the average of their colors.

    Raises:
        MeshFormatError: If the data isn't a well-formed binary STL
    """
    if len(data) < 84:
        raise MeshFormatError("Invalid or ASCII STL file. Only binary STL with colors is supported.")

    triangle_count = int(np.frombuffer(data, dtype='<u4', count=1, offset=80)[0])
    if len(data) != 84 + triangle_count * _STL_TRIANGLE.itemsize:
        raise MeshFormatError("Invalid or ASCII STL file. Only binary STL with colors is supported.")

    triangles = np.frombuffer(data, dtype=_STL_TRIANGLE, count=triangle_count, offset=84)

    vertices: List[Vertex] = []
    faces: List[Face] = []
    vertex_map: Dict[Tuple[str, str, str], int] = {}
    # Per vertex: [sum_r, sum_g, sum_b, count]
    color_sums: List[List[float]] = []

    for triangle in triangles:
        face = []
        for x, y, z in triangle['vertices']:
            x, y, z = float(x), float(y), float(z)
            key = (f"{x:.6f}", f"{y:.6f}", f"{z:.6f}")
            vertex_idx = vertex_map.get(key)
            if vertex_idx is None:
                vertex_idx = len(vertices)
                vertex_map[key] = vertex_idx
                vertices.append(Vertex(x, y, z))
                color_sums.append([0.0, 0.0, 0.0, 0])
            face.append(vertex_idx)

        face_color = _stl_face_color(int(triangle['attribute']))
        if face_color is not None:
            for vertex_idx in face:
                sums = color_sums[vertex_idx]
                sums[0] += face_color.r
                sums[1] += face_color.g
                sums[2] += face_color.b
                sums[3] += 1

        faces.append(tuple(face))

    for vertex, (r, g, b, count) in zip(vertices, color_sums):
        if count:
            vertex.color = Color(r / count, g / count, b / count)

    return Mesh(vertices, faces)


# ============================================================================
# Files
# ============================================================================

def load_mesh(path: str) -> Mesh:
    """
    Load a mesh from an OBJ or binary STL file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        MeshFormatError: If the format is unsupported or the file is malformed
    """
    mesh_path = Path(path)
    if not mesh_path.exists():
        raise FileNotFoundError(f"Input mesh not found: {path}")

    suffix = mesh_path.suffix.lower()
    if suffix not in SUPPORTED_MESH_EXTENSIONS:
        raise MeshFormatError(
            f"Unsupported mesh format '{suffix}'. "
            f"Supported: {', '.join(sorted(SUPPORTED_MESH_EXTENSIONS))}"
        )

    if suffix == '.obj':
        return parse_obj(mesh_path.read_text(encoding='utf-8'))
    return parse_stl(mesh_path.read_bytes())


def save_obj(mesh: Mesh, path: str) -> str:
    """
    Write a mesh as OBJ, patching the source text when there is one.

    Returns:
        The path written
    """
    if mesh.document is not None:
        content = export_obj_content(mesh.document, mesh.vertices)
    else:
        content = generate_obj(mesh.vertices, mesh.faces)
    Path(path).write_text(content, encoding='utf-8')
    return str(path)

"""
3MF export for clamped meshes.

A slicer doesn't know what to do with per-vertex colors, but it knows
exactly what to do with one object per filament. So the clamped mesh is
split by face color into parts - one part per palette color - and each
part is assigned its own extruder slot.

The 3MF format is a ZIP archive containing XML files:
- [Content_Types].xml and _rels/.rels: packaging boilerplate
- 3D/3dmodel.model: the geometry, with a base material per palette color
- Metadata/model_settings.config: part names and extruder slots (Bambu/Orca)
"""

import logging
import zipfile
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, TYPE_CHECKING
from xml.dom import minidom

from .color import Color
from .constants import BUILD_PLATE_CENTER, COORDINATE_PRECISION, SLOT_COUNT
from .island_merger import get_face_dominant_color

if TYPE_CHECKING:
    from .mesh_io import Vertex

logger = logging.getLogger(__name__)

NS_3MF = "http://schemas.microsoft.com/3dmanufacturing/core/2015/02"

# Name used for faces whose vertices carry no color at all
UNCOLORED_PART_NAME = "uncolored"


@dataclass
class ColorPart:
    """
    The faces of one color, re-indexed into a standalone mesh.

    Attributes:
        name: Palette color name (shown as the object name in the slicer)
        color: The palette color, or None for the uncolored part
        extruder_slot: 1-based filament slot
        vertices: (x, y, z) positions used by this part
        triangles: Vertex index triples into `vertices`
    """
    name: str
    color: Optional[Color]
    extruder_slot: int
    vertices: List[Tuple[float, float, float]] = field(default_factory=list)
    triangles: List[Tuple[int, int, int]] = field(default_factory=list)


def prettify_xml(elem: ET.Element) -> str:
    """
    Convert an XML element tree to a pretty-printed string.

    ElementTree's tostring() creates one long line, which is miserable to
    read when you unzip a 3MF to see why a slicer rejected it.
    """
    rough_string = ET.tostring(elem, encoding='unicode')
    reparsed = minidom.parseString(rough_string)
    return reparsed.toprettyxml(indent="  ")


def format_float(value: float, precision: int = COORDINATE_PRECISION) -> str:
    """
    Format a float for XML, stripping trailing zeros.

    Example: 1.50000 -> "1.5", 2.0 -> "2"
    """
    text = f"{value:.{precision}f}".rstrip('0').rstrip('.')
    return "0" if text in ("", "-0") else text


def triangulate(face: Sequence[int]) -> List[Tuple[int, int, int]]:
    """Fan-triangulate a polygon: (a, b, c, d) -> (a, b, c), (a, c, d)."""
    return [(face[0], face[i], face[i + 1]) for i in range(1, len(face) - 1)]


def split_mesh_by_color(
    vertices: Sequence['Vertex'],
    faces: Sequence[Sequence[int]],
    palette: Sequence[Color],
    slot_count: int = SLOT_COUNT
) -> List[ColorPart]:
    """
    Group faces into one part per dominant face color.

    Parts come out in palette order, skipping colors no face uses. Faces
    with no colored vertices (or a color outside the palette) go to an
    "uncolored" part at the end. Slots are assigned 1, 2, 3... in part
    order, capped at slot_count.

    Args:
        vertices: Mesh vertices
        faces: Faces as vertex index sequences
        palette: Final palette
        slot_count: Number of filament slots available

    Returns:
        Non-empty parts only
    """
    palette_names = [c.name for c in palette]
    faces_by_name: Dict[str, List[Sequence[int]]] = {}

    for face in faces:
        name = get_face_dominant_color(face, vertices)
        if name not in palette_names:
            name = UNCOLORED_PART_NAME
        faces_by_name.setdefault(name, []).append(face)

    ordered: List[Tuple[str, Optional[Color]]] = [
        (color.name, color) for color in palette if color.name in faces_by_name
    ]
    if UNCOLORED_PART_NAME in faces_by_name and UNCOLORED_PART_NAME not in palette_names:
        ordered.append((UNCOLORED_PART_NAME, None))

    parts: List[ColorPart] = []
    for slot, (name, color) in enumerate(ordered, start=1):
        part = ColorPart(name=name, color=color, extruder_slot=min(slot, slot_count))
        index_map: Dict[int, int] = {}

        for face in faces_by_name.pop(name):
            local = []
            for vertex_idx in face:
                if vertex_idx not in index_map:
                    index_map[vertex_idx] = len(part.vertices)
                    v = vertices[vertex_idx]
                    part.vertices.append((v.x, v.y, v.z))
                local.append(index_map[vertex_idx])
            part.triangles.extend(triangulate(local))

        parts.append(part)

    return parts


def calculate_bounds(parts: Sequence[ColorPart]) -> Tuple[float, float, float, float, float, float]:
    """
    Bounding box of all parts as (min_x, max_x, min_y, max_y, min_z, max_z).

    Returns all zeros when there are no vertices.
    """
    points = [v for part in parts for v in part.vertices]
    if not points:
        return (0.0, 0.0, 0.0, 0.0, 0.0, 0.0)

    xs, ys, zs = zip(*points)
    return (min(xs), max(xs), min(ys), max(ys), min(zs), max(zs))


def placement_offset(
    parts: Sequence[ColorPart],
    build_plate_center: Tuple[float, float] = BUILD_PLATE_CENTER
) -> Tuple[float, float, float]:
    """
    Translation that centers the model on the plate and rests it at z=0.

    Every part gets the same offset so they stay assembled.
    """
    min_x, max_x, min_y, max_y, min_z, _ = calculate_bounds(parts)
    return (
        build_plate_center[0] - (min_x + max_x) / 2.0,
        build_plate_center[1] - (min_y + max_y) / 2.0,
        -min_z
    )


def _generate_model_xml(
    parts: Sequence[ColorPart],
    offset: Tuple[float, float, float],
    title: str
) -> str:
    """
    Generate 3D/3dmodel.model: one base material per part plus one object per part.

    Object ids start after the basematerials resource (id 1).
    """
    root = ET.Element(
        "model",
        attrib={"unit": "millimeter", "xml:lang": "en-US", "xmlns": NS_3MF}
    )
    ET.SubElement(root, "metadata", name="Application").text = "MeshColorClamper"
    ET.SubElement(root, "metadata", name="Title").text = title

    resources = ET.SubElement(root, "resources")
    materials = ET.SubElement(resources, "basematerials", id="1")
    for part in parts:
        display = part.color.to_hex_argb() if part.color is not None else "#808080FF"
        ET.SubElement(materials, "base", name=part.name, displaycolor=display)

    build = ET.SubElement(root, "build")
    tx, ty, tz = offset
    transform = f"1 0 0 0 1 0 0 0 1 {format_float(tx)} {format_float(ty)} {format_float(tz)}"

    for material_idx, part in enumerate(parts):
        object_id = material_idx + 2
        obj = ET.SubElement(
            resources,
            "object",
            attrib={
                "id": str(object_id),
                "name": part.name,
                "type": "model",
                "pid": "1",
                "pindex": str(material_idx)
            }
        )
        mesh_elem = ET.SubElement(obj, "mesh")

        vertices_elem = ET.SubElement(mesh_elem, "vertices")
        for x, y, z in part.vertices:
            ET.SubElement(
                vertices_elem,
                "vertex",
                attrib={"x": format_float(x), "y": format_float(y), "z": format_float(z)}
            )

        triangles_elem = ET.SubElement(mesh_elem, "triangles")
        for v1, v2, v3 in part.triangles:
            ET.SubElement(
                triangles_elem,
                "triangle",
                attrib={"v1": str(v1), "v2": str(v2), "v3": str(v3)}
            )

        ET.SubElement(
            build,
            "item",
            attrib={"objectid": str(object_id), "transform": transform, "printable": "1"}
        )

    return prettify_xml(root)


def _generate_model_settings_xml(parts: Sequence[ColorPart]) -> str:
    """
    Generate Metadata/model_settings.config with part names and extruder slots.

    Slot 1 is the slicer default, so it isn't written out.
    """
    root = ET.Element("config")
    for material_idx, part in enumerate(parts):
        obj = ET.SubElement(root, "object", id=str(material_idx + 2))
        ET.SubElement(obj, "metadata", key="name", value=part.name)
        if part.extruder_slot != 1:
            ET.SubElement(obj, "metadata", key="extruder", value=str(part.extruder_slot))
    return prettify_xml(root)


def _generate_content_types_xml() -> str:
    root = ET.Element(
        "Types",
        xmlns="http://schemas.openxmlformats.org/package/2006/content-types"
    )
    ET.SubElement(
        root,
        "Default",
        attrib={
            "Extension": "rels",
            "ContentType": "application/vnd.openxmlformats-package.relationships+xml"
        }
    )
    ET.SubElement(
        root,
        "Default",
        attrib={
            "Extension": "model",
            "ContentType": "application/vnd.ms-package.3dmanufacturing-3dmodel+xml"
        }
    )
    return prettify_xml(root)


def _generate_rels_xml() -> str:
    root = ET.Element(
        "Relationships",
        xmlns="http://schemas.openxmlformats.org/package/2006/relationships"
    )
    ET.SubElement(
        root,
        "Relationship",
        attrib={
            "Target": "/3D/3dmodel.model",
            "Id": "rel-1",
            "Type": "http://schemas.microsoft.com/3dmanufacturing/2013/01/3dmodel"
        }
    )
    return prettify_xml(root)


def write_3mf(
    output_path: str,
    vertices: Sequence['Vertex'],
    faces: Sequence[Sequence[int]],
    palette: Sequence[Color],
    slot_count: int = SLOT_COUNT,
    title: Optional[str] = None,
    build_plate_center: Tuple[float, float] = BUILD_PLATE_CENTER,
    progress_callback: Optional[Callable[[str, str], None]] = None
) -> Dict[str, Any]:
    """
    Write a clamped mesh as a multi-object 3MF file.

    Args:
        output_path: Where to save the .3mf file
        vertices: Mesh vertices (with palette colors)
        faces: Faces as vertex index sequences
        palette: Final palette, decides part order and slots
        slot_count: Number of filament slots available
        title: Model title metadata (defaults to "Clamped Mesh")
        build_plate_center: (x, y) the model gets centered on
        progress_callback: Optional callback(stage, message)

    Returns:
        Dictionary with 'num_objects', 'num_vertices', 'num_triangles'
        and 'parts' (the ColorPart list)

    Raises:
        ValueError: If there are no faces to export
    """
    def _progress(message: str):
        if progress_callback:
            progress_callback("export", message)

    if not faces:
        raise ValueError("Cannot write 3MF file: mesh has no faces")

    parts = split_mesh_by_color(vertices, faces, palette, slot_count)
    _progress(f"Split mesh into {len(parts)} color parts")

    offset = placement_offset(parts, build_plate_center)
    model_xml = _generate_model_xml(parts, offset, title or "Clamped Mesh")
    settings_xml = _generate_model_settings_xml(parts)

    with zipfile.ZipFile(output_path, 'w', zipfile.ZIP_DEFLATED) as zf:
        zf.writestr("[Content_Types].xml", _generate_content_types_xml())
        zf.writestr("_rels/.rels", _generate_rels_xml())
        zf.writestr("3D/3dmodel.model", model_xml)
        zf.writestr("Metadata/model_settings.config", settings_xml)

    num_vertices = sum(len(p.vertices) for p in parts)
    num_triangles = sum(len(p.triangles) for p in parts)
    logger.info("Wrote %d parts (%d vertices, %d triangles) to %s",
                len(parts), num_vertices, num_triangles, output_path)
    _progress(f"3MF file written to: {output_path}")

    return {
        'num_objects': len(parts),
        'num_vertices': num_vertices,
        'num_triangles': num_triangles,
        'parts': parts
    }

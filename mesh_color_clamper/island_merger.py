"""
Island detection and merging.

After remapping, a mesh usually has lots of tiny specks of color - a single
red vertex in a sea of white, a lone blue triangle on a green leaf. A
multi-material printer can't reproduce those cleanly (every speck means a
filament swap), so we find them and paint them over with whatever color
surrounds them.

An "island" is a connected group of same-colored entities. We look for
islands twice:

1. Vertex islands - connected through the vertex adjacency graph
2. Face islands - connected through shared edges, using each face's
   dominant (most common) vertex color

Recoloring one island can shrink or grow its neighbors, so both passes
loop until nothing changes, with a hard cap on iterations in case two
colors keep stealing each other's islands back and forth.

Each iteration reads colors from a snapshot taken at its start and applies
all recoloring at the end, so the result never depends on which island
happened to be processed first.
"""

import logging
from collections import deque
from typing import Dict, List, Optional, Sequence, Set, TYPE_CHECKING

from .adjacency import Graph
from .color import Color
from .constants import MAX_MERGE_ITERATIONS

if TYPE_CHECKING:
    from .mesh_io import Vertex

logger = logging.getLogger(__name__)


class Island:
    """
    A connected group of same-colored vertices or faces.

    Attributes:
        members: Vertex (or face) indices in breadth-first order
        color_name: The color name shared by every member
        color: The members' color, when known (vertex islands only)
    """

    def __init__(self, members: List[int], color_name: str, color: Optional[Color] = None):
        self.members = members
        self.color_name = color_name
        self.color = color

    def __len__(self) -> int:
        return len(self.members)

    def __repr__(self) -> str:
        return f"Island(color={self.color_name}, size={len(self.members)})"


def _connected_components(labels: Sequence[Optional[str]], graph: Graph) -> List[Island]:
    """
    Breadth-first flood fill over `graph`, grouping entities by label.

    Entities labelled None never start or join an island. Neighbors are
    visited in ascending index order so island member order is stable.
    """
    visited: Set[int] = set()
    islands: List[Island] = []

    for start in range(len(labels)):
        if start in visited or labels[start] is None:
            continue

        color_name = labels[start]
        members: List[int] = []
        # deque gives O(1) popleft() for the breadth-first queue
        queue = deque([start])
        visited.add(start)

        while queue:
            idx = queue.popleft()
            members.append(idx)

            for neighbor in sorted(graph[idx]):
                if neighbor in visited or labels[neighbor] != color_name:
                    continue
                visited.add(neighbor)
                queue.append(neighbor)

        islands.append(Island(members, color_name))

    return islands


def _vertex_labels(vertices: Sequence['Vertex']) -> List[Optional[str]]:
    return [v.color.name if v.color is not None else None for v in vertices]


def _best_neighbor_color(
    island: Island,
    graph: Graph,
    labels: Sequence[Optional[str]]
) -> Optional[str]:
    """
    Most common label among the island's outside neighbors.

    Neighbors sharing the island's own color (or with no color) are ignored.
    Ties go to the label encountered first while walking the island members
    in order and their neighbors in ascending index order.
    """
    counts: Dict[str, int] = {}
    for idx in island.members:
        for neighbor in sorted(graph[idx]):
            label = labels[neighbor]
            if label is not None and label != island.color_name:
                counts[label] = counts.get(label, 0) + 1

    best_name = None
    best_count = 0
    for name, count in counts.items():
        if count > best_count:
            best_count = count
            best_name = name
    return best_name


def _palette_lookup(palette: Sequence[Color]) -> Dict[str, Color]:
    # First palette entry wins if two share a name
    lookup: Dict[str, Color] = {}
    for color in palette:
        if color.name is not None and color.name not in lookup:
            lookup[color.name] = color
    return lookup


def find_color_islands(vertices: Sequence['Vertex'], adjacency: Graph) -> List[Island]:
    """
    Find all vertex islands (connected groups of same-named vertex colors).

    Colorless vertices are never part of an island.

    Args:
        vertices: Mesh vertices
        adjacency: Vertex adjacency graph

    Returns:
        Islands in order of their lowest-index member
    """
    islands = _connected_components(_vertex_labels(vertices), adjacency)
    for island in islands:
        island.color = vertices[island.members[0]].color
    return islands


def merge_small_islands(
    vertices: Sequence['Vertex'],
    adjacency: Graph,
    min_size: int,
    palette: Sequence[Color],
    max_iterations: int = MAX_MERGE_ITERATIONS
) -> int:
    """
    Recolor vertex islands smaller than `min_size` to their dominant neighbor color.

    The algorithm, repeated until a pass merges nothing (or max_iterations):
    1. Find all vertex islands and sort them smallest first
    2. For each island below min_size, count the colors of the vertices
       bordering it from outside
    3. If the most common border color is in the palette, the whole island
       takes that color

    Args:
        vertices: Mesh vertices (colors mutated in place)
        adjacency: Vertex adjacency graph
        min_size: Islands with fewer vertices than this get merged
        palette: Allowed colors; border colors outside it are never applied
        max_iterations: Safety cap on passes

    Returns:
        Total number of vertex recolorings across all passes
    """
    lookup = _palette_lookup(palette)
    total_merged = 0

    for iteration in range(max_iterations):
        labels = _vertex_labels(vertices)
        islands = _connected_components(labels, adjacency)
        islands.sort(key=len)

        staged: Dict[int, Color] = {}
        merged = 0

        for island in islands:
            if len(island) >= min_size:
                # Sorted ascending, so every remaining island is big enough
                break

            best_name = _best_neighbor_color(island, adjacency, labels)
            if best_name is None or best_name not in lookup:
                continue

            new_color = lookup[best_name]
            for idx in island.members:
                staged[idx] = new_color.copy()
            merged += len(island)

        for idx, color in staged.items():
            vertices[idx].color = color

        logger.debug("Vertex merge pass %d: %d islands, %d vertices recolored",
                     iteration + 1, len(islands), merged)

        total_merged += merged
        if merged == 0:
            break

    logger.info("Merged %d vertices (vertex islands)", total_merged)
    return total_merged


def get_face_dominant_color(face: Sequence[int], vertices: Sequence['Vertex']) -> Optional[str]:
    """
    Most common color name among a face's vertices.

    Ties go to the name seen first in face order. Returns None if none of
    the face's vertices has a color.
    """
    counts: Dict[str, int] = {}
    for vertex_idx in face:
        if not 0 <= vertex_idx < len(vertices):
            continue
        color = vertices[vertex_idx].color
        if color is not None and color.name:
            counts[color.name] = counts.get(color.name, 0) + 1

    dominant = None
    max_count = 0
    for name, count in counts.items():
        if count > max_count:
            max_count = count
            dominant = name
    return dominant


def _face_colors(faces: Sequence[Sequence[int]], vertices: Sequence['Vertex']) -> List[Optional[str]]:
    return [get_face_dominant_color(face, vertices) for face in faces]


def _merge_isolated_faces_pass(
    vertices: Sequence['Vertex'],
    faces: Sequence[Sequence[int]],
    face_adjacency: Graph,
    lookup: Dict[str, Color]
) -> int:
    """
    Recolor single faces that share their color with none of their neighbors.

    Only the face's vertices that currently show the face's color change.
    Returns the number of distinct vertices recolored.
    """
    face_colors = _face_colors(faces, vertices)
    labels = _vertex_labels(vertices)
    staged: Dict[int, Color] = {}

    for face_idx, my_color in enumerate(face_colors):
        if my_color is None or not face_adjacency[face_idx]:
            continue

        neighbor_counts: Dict[str, int] = {}
        has_same_color = False
        for neighbor_face in sorted(face_adjacency[face_idx]):
            neighbor_color = face_colors[neighbor_face]
            if neighbor_color is None:
                continue
            if neighbor_color == my_color:
                has_same_color = True
                break
            neighbor_counts[neighbor_color] = neighbor_counts.get(neighbor_color, 0) + 1

        if has_same_color or not neighbor_counts:
            continue

        best_name = max(neighbor_counts, key=neighbor_counts.get)
        new_color = lookup.get(best_name)
        if new_color is None:
            continue

        for vertex_idx in faces[face_idx]:
            if labels[vertex_idx] == my_color:
                staged[vertex_idx] = new_color.copy()

    for idx, color in staged.items():
        vertices[idx].color = color
    return len(staged)


def _merge_face_islands_pass(
    vertices: Sequence['Vertex'],
    faces: Sequence[Sequence[int]],
    face_adjacency: Graph,
    min_size: int,
    lookup: Dict[str, Color]
) -> int:
    """
    Recolor face islands smaller than min_size to their dominant border color.

    Returns the number of distinct vertices recolored.
    """
    face_colors = _face_colors(faces, vertices)
    labels = _vertex_labels(vertices)
    islands = _connected_components(face_colors, face_adjacency)
    islands.sort(key=len)

    staged: Dict[int, Color] = {}

    for island in islands:
        if len(island) >= min_size:
            break

        best_name = _best_neighbor_color(island, face_adjacency, face_colors)
        if best_name is None or best_name not in lookup:
            continue

        new_color = lookup[best_name]
        for face_idx in island.members:
            for vertex_idx in faces[face_idx]:
                if labels[vertex_idx] == island.color_name:
                    staged[vertex_idx] = new_color.copy()

    for idx, color in staged.items():
        vertices[idx].color = color
    return len(staged)


def merge_isolated_faces(
    vertices: Sequence['Vertex'],
    faces: Sequence[Sequence[int]],
    face_adjacency: Graph,
    min_size: int,
    palette: Sequence[Color],
    max_iterations: int = MAX_MERGE_ITERATIONS
) -> int:
    """
    Face-level cleanup: isolated faces first, then small face islands.

    Each outer iteration runs two passes:
    a. Any face whose dominant color appears on none of its edge neighbors
       takes the most common neighbor color
    b. Faces are grouped into islands by dominant color; islands smaller
       than min_size take the most common color bordering them

    Stops after an iteration that recolors nothing, or after max_iterations.

    Args:
        vertices: Mesh vertices (colors mutated in place)
        faces: Faces as vertex index sequences
        face_adjacency: Face adjacency graph
        min_size: Face islands with fewer faces than this get merged
        palette: Allowed colors
        max_iterations: Safety cap on outer iterations

    Returns:
        Total number of vertex recolorings across all iterations
    """
    lookup = _palette_lookup(palette)
    total_merged = 0

    for iteration in range(max_iterations):
        isolated = _merge_isolated_faces_pass(vertices, faces, face_adjacency, lookup)
        islands = _merge_face_islands_pass(vertices, faces, face_adjacency, min_size, lookup)
        merged = isolated + islands

        logger.debug("Face merge pass %d: %d isolated-face and %d face-island vertices recolored",
                     iteration + 1, isolated, islands)

        total_merged += merged
        if merged == 0:
            break

    logger.info("Merged %d vertices (face islands)", total_merged)
    return total_merged

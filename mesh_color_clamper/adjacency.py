"""
Adjacency graph construction for vertices and faces.

Island merging needs to know who touches whom. We derive that once per run
from the face list and never change it afterwards - colors move around,
the topology doesn't.

Graphs are plain lists of sets, indexed by vertex (or face) number:
graph[i] is the set of neighbors of entity i.
"""

from collections import defaultdict
from typing import Dict, List, Sequence, Set, Tuple

Graph = List[Set[int]]


def build_vertex_adjacency(vertex_count: int, faces: Sequence[Sequence[int]]) -> Graph:
    """
    Connect every pair of vertices that appear together in a face.

    For a triangle that's its three edges. For a polygon it's every pair,
    including the diagonals, since they all share one colored surface.

    Out-of-range indices and self pairs are skipped, so a malformed face
    just contributes fewer edges.

    Args:
        vertex_count: Number of vertices in the mesh
        faces: Faces as sequences of vertex indices

    Returns:
        Graph with vertex_count entries
    """
    adjacency: Graph = [set() for _ in range(vertex_count)]

    for face in faces:
        for i in range(len(face)):
            v1 = face[i]
            if not 0 <= v1 < vertex_count:
                continue
            for j in range(i + 1, len(face)):
                v2 = face[j]
                if v1 == v2 or not 0 <= v2 < vertex_count:
                    continue
                adjacency[v1].add(v2)
                adjacency[v2].add(v1)

    return adjacency


def face_edges(face: Sequence[int]) -> List[Tuple[int, int]]:
    """Undirected edge keys of a face, wrapping last vertex back to first."""
    edges = []
    for i in range(len(face)):
        v1 = face[i]
        v2 = face[(i + 1) % len(face)]
        edges.append((v1, v2) if v1 < v2 else (v2, v1))
    return edges


def build_edge_map(faces: Sequence[Sequence[int]]) -> Dict[Tuple[int, int], List[int]]:
    """Map each undirected edge to the faces that use it, in face order."""
    edge_to_faces: Dict[Tuple[int, int], List[int]] = defaultdict(list)
    for face_idx, face in enumerate(faces):
        for edge in face_edges(face):
            edge_to_faces[edge].append(face_idx)
    return edge_to_faces


def build_face_adjacency(faces: Sequence[Sequence[int]]) -> Graph:
    """
    Connect faces that share an edge.

    Only manifold edges count: an edge used by exactly two faces links them.
    Boundary edges (one face) and non-manifold edges (three or more faces)
    contribute nothing.

    Args:
        faces: Faces as sequences of vertex indices

    Returns:
        Graph with one entry per face
    """
    adjacency: Graph = [set() for _ in range(len(faces))]

    for indices in build_edge_map(faces).values():
        if len(indices) == 2:
            f1, f2 = indices
            if f1 != f2:
                adjacency[f1].add(f2)
                adjacency[f2].add(f1)

    return adjacency

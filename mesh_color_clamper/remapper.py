"""
Snap every vertex color to its nearest palette color.
"""

from typing import Dict, List, Optional, Sequence, Tuple, TYPE_CHECKING

from .color import Color, find_nearest_index
from .errors import EmptyPaletteError

if TYPE_CHECKING:
    from .mesh_io import Vertex


def find_nearest_color(color: Color, palette: Sequence[Color]) -> Tuple[int, Color]:
    """
    Nearest palette entry to `color` as (index, color).

    Ties go to the first palette entry.

    Raises:
        EmptyPaletteError: If the palette is empty
    """
    idx = find_nearest_index(color, palette)
    if idx < 0:
        raise EmptyPaletteError()
    return idx, palette[idx]


def remap_colors(vertices: Sequence['Vertex'], palette: Sequence[Color]) -> int:
    """
    Replace each vertex color with the nearest palette color, in place.

    Vertices without a color are left alone - we never invent a color.
    Colors are immutable, so vertices can share palette entries safely.

    Args:
        vertices: Mesh vertices (mutated)
        palette: Target palette, at least one color

    Returns:
        Number of vertices that were remapped

    Raises:
        EmptyPaletteError: If the palette is empty
    """
    if not palette:
        raise EmptyPaletteError()

    remapped = 0
    for vertex in vertices:
        if vertex.color is None:
            continue
        _, closest = find_nearest_color(vertex.color, palette)
        vertex.color = closest.copy()
        remapped += 1
    return remapped


def color_distribution(
    vertices: Sequence['Vertex'],
    palette: Optional[Sequence[Color]] = None
) -> Dict[str, int]:
    """
    Count vertices per color name.

    Every palette name appears (even with zero vertices), in palette order.
    Names found on vertices but missing from the palette are appended after.
    """
    stats: Dict[str, int] = {}
    for color in palette or []:
        stats[color.name] = 0

    for vertex in vertices:
        if vertex.color is not None:
            stats[vertex.color.name] = stats.get(vertex.color.name, 0) + 1

    return stats


def used_palette(palette: Sequence[Color], stats: Dict[str, int]) -> List[Color]:
    """Palette entries that ended up on at least one vertex, in palette order."""
    return [color for color in palette if stats.get(color.name)]

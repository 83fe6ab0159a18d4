"""
Core color clamping logic.

This module contains the business logic for reducing a colored mesh to a
handful of printable colors. It's completely separate from the CLI layer,
making it easy to use programmatically or test.

The process:
1. Validate faces and build the vertex adjacency graph
2. Pick a palette from the raw vertex colors
3. Snap every vertex color to its nearest palette color
4. Merge small vertex islands, then isolated faces and small face islands
5. Count how many vertices ended up with each palette color

No print statements, no argparse, just the pipeline! 🎯
"""

import logging
import math
import os
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Sequence

from .adjacency import build_face_adjacency, build_vertex_adjacency
from .color import Color
from .config import ClampConfig
from .constants import COLOR_POOL, MAX_VERTEX_SAMPLES, SUPPORTED_OUTPUT_EXTENSIONS
from .errors import MeshFormatError, NoColorsFoundError
from .island_merger import merge_isolated_faces, merge_small_islands
from .mesh_io import Mesh, load_mesh, save_obj
from .palette_selector import select_palette
from .remapper import color_distribution, remap_colors, used_palette
from .summary_writer import write_summary_file, write_summary_json
from .texture_quantizer import Texture, preprocess_texture
from .threemf_writer import write_3mf

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, str], None]


def format_filesize(size_bytes: int) -> str:
    """
    Convert a file size in bytes to a human-readable format.

    Examples:
        >>> format_filesize(0)
        '0B'
        >>> format_filesize(1536)
        '1.5 KB'
    """
    if size_bytes == 0:
        return "0B"
    size_units = ("B", "KB", "MB", "GB", "TB")
    i = min(int(math.floor(math.log(size_bytes, 1024))), len(size_units) - 1)
    s = round(size_bytes / math.pow(1024, i), 2)
    return f"{s:g} {size_units[i]}"


def clamp_mesh_colors(
    mesh: Mesh,
    config: Optional[ClampConfig] = None,
    progress_callback: Optional[ProgressCallback] = None,
    pool: Sequence[Color] = COLOR_POOL
) -> Dict[str, Any]:
    """
    Reduce a mesh's vertex colors to a small palette, in place.

    Only vertex colors change. Vertices and faces are never added, removed
    or reordered, and colorless vertices stay colorless.

    Args:
        mesh: Mesh to clamp (vertex colors are mutated)
        config: ClampConfig (uses defaults if None)
        progress_callback: Optional function called with (stage, message)
        pool: Filament colors the pool-based strategies choose from

    Returns:
        Dictionary with run statistics:
        {
            'palette': List[Color],         # final palette
            'distribution': Dict[str, int], # vertices per palette name
            'num_vertices': int,
            'num_faces': int,
            'num_colored': int,
            'num_input_colors': int,        # distinct colors before clamping
            'vertices_remapped': int,
            'vertex_island_merges': int,
            'face_island_merges': int
        }

    Raises:
        MeshValidationError: If a face is malformed
        NoColorsFoundError: If no vertex has a color
    """
    def _progress(stage: str, message: str):
        if progress_callback:
            progress_callback(stage, message)

    if config is None:
        config = ClampConfig()

    # Step 1: Graphs
    _progress("adjacency", "Building vertex adjacency...")
    mesh.validate()
    adjacency = build_vertex_adjacency(len(mesh.vertices), mesh.faces)

    vertex_colors = mesh.colors()
    if not vertex_colors:
        raise NoColorsFoundError(len(mesh.vertices))
    num_input_colors = len({c.rgb() for c in vertex_colors})
    _progress("adjacency", f"{len(vertex_colors)} colored vertices, {num_input_colors} distinct colors")

    # Step 2: Palette
    _progress("palette", f"Selecting {config.num_colors} colors ({config.algorithm})...")
    palette = select_palette(vertex_colors, config, pool, max_samples=MAX_VERTEX_SAMPLES)
    _progress("palette", f"Palette: {', '.join(c.name for c in palette)}")

    # Step 3: Remap
    _progress("remap", "Remapping vertex colors...")
    remapped = remap_colors(mesh.vertices, palette)

    # Step 4: Cleanup
    vertex_merges = 0
    face_merges = 0
    if config.merge_islands:
        _progress("merge", f"Merging vertex islands smaller than {config.island_threshold}...")
        vertex_merges = merge_small_islands(
            mesh.vertices, adjacency, config.island_threshold, palette
        )

        _progress("merge", "Building face adjacency...")
        face_adjacency = build_face_adjacency(mesh.faces)

        _progress("merge", f"Merging face islands smaller than {config.face_island_threshold}...")
        face_merges = merge_isolated_faces(
            mesh.vertices, mesh.faces, face_adjacency, config.face_island_threshold, palette
        )
        _progress("merge", f"Merged {vertex_merges} + {face_merges} vertices")

    # Step 5: Final stats
    distribution = color_distribution(mesh.vertices, palette)
    for name, count in distribution.items():
        logger.info("  %s: %d vertices", name, count)

    return {
        'palette': palette,
        'distribution': distribution,
        'num_vertices': len(mesh.vertices),
        'num_faces': len(mesh.faces),
        'num_colored': len(vertex_colors),
        'num_input_colors': num_input_colors,
        'vertices_remapped': remapped,
        'vertex_island_merges': vertex_merges,
        'face_island_merges': face_merges,
    }


def save_clamped_mesh(
    mesh: Mesh,
    output_path: str,
    palette: Sequence[Color],
    distribution: Dict[str, int],
    config: ClampConfig,
    progress_callback: Optional[ProgressCallback] = None
) -> str:
    """
    Write a clamped mesh as OBJ or 3MF, based on the output suffix.

    Raises:
        MeshFormatError: If the suffix isn't a supported output format
    """
    suffix = Path(output_path).suffix.lower()
    if suffix == '.obj':
        return save_obj(mesh, output_path)
    if suffix == '.3mf':
        write_3mf(
            output_path,
            mesh.vertices,
            mesh.faces,
            used_palette(palette, distribution),
            slot_count=config.slot_count,
            title=Path(output_path).stem,
            progress_callback=progress_callback
        )
        return str(output_path)
    raise MeshFormatError(
        f"Unsupported output format '{suffix}'. "
        f"Supported: {', '.join(sorted(SUPPORTED_OUTPUT_EXTENSIONS))}"
    )


def process_file(
    input_path: str,
    output_path: str,
    config: Optional[ClampConfig] = None,
    progress_callback: Optional[ProgressCallback] = None
) -> Dict[str, Any]:
    """
    Load a mesh file, clamp its colors and write the result.

    Args:
        input_path: OBJ or binary STL file
        output_path: Where to write the clamped mesh (.obj or .3mf)
        config: ClampConfig (uses defaults if None)
        progress_callback: Optional function called with (stage, message)

    Returns:
        The clamp_mesh_colors() statistics plus 'input_path', 'output_path',
        'file_size' and, when requested, 'summary_path' and 'summary_json_path'

    Raises:
        FileNotFoundError: If the input doesn't exist
        MeshFormatError: If the input or output format is unsupported
        ValueError: For any other bad input (see clamp_mesh_colors)
    """
    def _progress(stage: str, message: str):
        if progress_callback:
            progress_callback(stage, message)

    if config is None:
        config = ClampConfig()

    # Fail before doing any work if we can't write the result
    if Path(output_path).suffix.lower() not in SUPPORTED_OUTPUT_EXTENSIONS:
        raise MeshFormatError(
            f"Unsupported output format '{Path(output_path).suffix}'. "
            f"Supported: {', '.join(sorted(SUPPORTED_OUTPUT_EXTENSIONS))}"
        )

    _progress("load", f"Loading {Path(input_path).name}...")
    mesh = load_mesh(input_path)
    _progress("load", f"{len(mesh.vertices)} vertices, {len(mesh.faces)} faces")

    stats = clamp_mesh_colors(mesh, config, progress_callback)

    _progress("export", f"Writing {Path(output_path).name}...")
    save_clamped_mesh(
        mesh, output_path, stats['palette'], stats['distribution'], config, progress_callback
    )

    if config.generate_summary:
        stats['summary_path'] = write_summary_file(
            output_path, stats['palette'], stats['distribution'], config
        )
        stats['summary_json_path'] = write_summary_json(
            output_path, stats['palette'], stats['distribution'], config
        )

    stats['input_path'] = str(input_path)
    stats['output_path'] = str(output_path)
    stats['file_size'] = format_filesize(os.path.getsize(output_path))
    return stats


def process_texture_file(
    input_path: str,
    output_path: str,
    config: Optional[ClampConfig] = None,
    progress_callback: Optional[ProgressCallback] = None
) -> Dict[str, Any]:
    """
    Quantize an image file to the configured number of colors.

    Uses the config's picked colors, pool setting, seed and seeding mode.

    Returns:
        Dictionary with 'palette', 'width', 'height', 'input_path',
        'output_path' and 'file_size'
    """
    def _progress(stage: str, message: str):
        if progress_callback:
            progress_callback(stage, message)

    if config is None:
        config = ClampConfig()

    _progress("load", f"Loading {Path(input_path).name}...")
    texture = Texture.load(input_path)

    _progress("palette", f"Quantizing {texture.width}x{texture.height} texture...")
    quantized, palette = preprocess_texture(
        texture,
        config.num_colors,
        use_color_pool=config.use_color_pool,
        picked_colors=config.picked_colors,
        seed=config.seed,
        deterministic=config.deterministic
    )

    _progress("export", f"Writing {Path(output_path).name}...")
    quantized.save(output_path)

    return {
        'palette': palette,
        'width': texture.width,
        'height': texture.height,
        'input_path': str(input_path),
        'output_path': str(output_path),
        'file_size': format_filesize(os.path.getsize(output_path)),
    }

"""
Mesh Color Clamper Package

Reduce the colors of a vertex-colored 3D mesh to a small palette for
multi-material printing, and clean up the stray specks of color that
filament swaps can't reproduce.
"""

from .constants import __version__

# Make the CLI main function easily accessible
from .cli import main

# Core pipeline functions and configuration
from .color import Color
from .color_clamper import clamp_mesh_colors, process_file, process_texture_file
from .config import ClampConfig
from .errors import (
    ColorClampError,
    NoColorsFoundError,
    EmptyPaletteError,
    MeshValidationError,
    MeshFormatError
)
from .mesh_io import Mesh, Vertex, load_mesh

__all__ = [
    "main",
    "Color",
    "ClampConfig",
    "Mesh",
    "Vertex",
    "load_mesh",
    "clamp_mesh_colors",
    "process_file",
    "process_texture_file",
    "ColorClampError",
    "NoColorsFoundError",
    "EmptyPaletteError",
    "MeshValidationError",
    "MeshFormatError"
]

"""
Exceptions raised by the color clamping pipeline.

Everything derives from ValueError, so callers that already catch bad-input
errors (the CLI does) keep working without knowing about the subclasses.
"""

from typing import Optional


class ColorClampError(ValueError):
    """Base class for all color clamping errors."""


class NoColorsFoundError(ColorClampError):
    """Raised when a mesh has no vertex colors to build a palette from."""

    def __init__(self, vertex_count: Optional[int] = None):
        self.vertex_count = vertex_count
        detail = f" ({vertex_count} vertices, none colored)" if vertex_count is not None else ""
        super().__init__(
            f"No vertex colors found{detail}. "
            f"The input mesh needs per-vertex or per-face colors."
        )


class EmptyPaletteError(ColorClampError):
    """Raised when remapping or quantizing against an empty palette."""

    def __init__(self):
        super().__init__("Palette is empty: at least one color is required")


class MeshValidationError(ColorClampError):
    """Raised when faces reference vertices that don't exist."""

    def __init__(self, message: str, face_index: int):
        self.face_index = face_index
        super().__init__(f"Face {face_index}: {message}")


class MeshFormatError(ColorClampError):
    """Raised when an input file can't be parsed."""

"""
Color value type used throughout the pipeline.

Colors are stored as floats in [0, 1] with an optional symbolic name
(a filament name like "red", or a hex code for clustered colors).

The dataclass is frozen, so a Color IS what it IS - once a palette color
is handed to a vertex, nothing can change it behind the vertex's back. 🎨
"""

import math
from dataclasses import dataclass, replace
from typing import Optional, Sequence, Tuple


@dataclass(frozen=True)
class Color:
    """
    Immutable RGB color with an optional name.

    Attributes:
        r, g, b: Channel values in [0, 1]
        name: Symbolic name, or None for raw input colors
    """
    r: float
    g: float
    b: float
    name: Optional[str] = None

    def distance_to(self, other: 'Color') -> float:
        """
        Weighted Euclidean distance to another color.

        Green differences count the most, then blue, then red:
        sqrt(2*dr^2 + 4*dg^2 + 3*db^2). Names are ignored.
        """
        dr = self.r - other.r
        dg = self.g - other.g
        db = self.b - other.b
        return math.sqrt(2 * dr * dr + 4 * dg * dg + 3 * db * db)

    def copy(self, name: Optional[str] = None) -> 'Color':
        """Return an equal color, optionally under a new name."""
        if name is None:
            return replace(self)
        return replace(self, name=name)

    def rgb(self) -> Tuple[float, float, float]:
        return (self.r, self.g, self.b)

    def to_rgb255(self) -> Tuple[int, int, int]:
        """Channel values as 0-255 integers."""
        return (
            _channel_to_byte(self.r),
            _channel_to_byte(self.g),
            _channel_to_byte(self.b),
        )

    def to_hex(self) -> str:
        """Lowercase hex code, e.g. '#ff8000'."""
        r, g, b = self.to_rgb255()
        return f"#{r:02x}{g:02x}{b:02x}"

    def to_hex_argb(self) -> str:
        """Uppercase hex code with a trailing opaque alpha, e.g. '#FF8000FF'."""
        r, g, b = self.to_rgb255()
        return f"#{r:02X}{g:02X}{b:02X}FF"

    @classmethod
    def from_rgb255(cls, r: int, g: int, b: int, name: Optional[str] = None) -> 'Color':
        return cls(r / 255, g / 255, b / 255, name)

    @classmethod
    def from_hex(cls, hex_code: str, name: Optional[str] = None) -> 'Color':
        """
        Parse '#rrggbb' or 'rrggbb' (case-insensitive).

        Raises:
            ValueError: If the string isn't a 6-digit hex code
        """
        value = hex_code.strip().lstrip('#')
        if len(value) != 6:
            raise ValueError(f"Expected a 6-digit hex color, got {hex_code!r}")
        try:
            r, g, b = (int(value[i:i + 2], 16) for i in (0, 2, 4))
        except ValueError:
            raise ValueError(f"Invalid hex color: {hex_code!r}") from None
        return cls.from_rgb255(r, g, b, name)

    def __repr__(self) -> str:
        label = f" {self.name}" if self.name else ""
        return f"Color({self.to_hex()}{label})"


def find_nearest_index(color: Color, candidates: Sequence[Color]) -> int:
    """
    Index of the candidate closest to color, or -1 if there are none.

    Ties go to the earliest candidate (only a strictly smaller distance
    replaces the current best).
    """
    best_idx = -1
    best_dist = math.inf
    for i, candidate in enumerate(candidates):
        dist = color.distance_to(candidate)
        if dist < best_dist:
            best_dist = dist
            best_idx = i
    return best_idx


def _channel_to_byte(value: float) -> int:
    # Python rounds half to even, the hex codes expect half away from zero
    byte = int(math.floor(value * 255 + 0.5))
    return max(0, min(255, byte))

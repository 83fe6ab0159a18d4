"""
Configuration dataclass for mesh color clamping.

This module defines the ClampConfig dataclass that holds all the
parameters for a processing run. This keeps function signatures
clean and makes it easy to add new parameters in the future without
breaking the API.
"""

import math
from dataclasses import dataclass
from typing import List, Optional

from .color import Color
from .constants import (
    NUM_COLORS,
    ISLAND_THRESHOLD,
    PALETTE_ALGORITHM,
    PALETTE_ALGORITHMS,
    KMEANS_MAX_ITERATIONS,
    KMEANS_NAMING,
    DEFAULT_SEED,
    MIN_FACE_ISLAND_SIZE,
    SLOT_COUNT,
)


def face_min_size(vertex_min_size: int) -> int:
    """
    Face-island threshold derived from the vertex-island threshold.

    A face touches three vertices, so a third of the vertex threshold is
    roughly the same surface area. Never less than 2.
    """
    return max(MIN_FACE_ISLAND_SIZE, math.ceil(vertex_min_size / 3))


@dataclass
class ClampConfig:
    """
    Configuration for a mesh color clamping run.

    Attributes:
        num_colors: Target palette size
        island_threshold: Vertex islands smaller than this get merged away
        algorithm: Palette strategy - "frequency", "greedy", "kmeans" or "frequency_no_pool"
        use_color_pool: Match k-means output to the filament pool (kmeans only)
        picked_colors: User-chosen palette; overrides the algorithm when set
        max_iterations: Maximum k-means iterations
        seed: PRNG seed for randomized k-means++ seeding (None = fresh entropy)
        deterministic: Use max-min-distance seeding instead of weighted sampling
        kmeans_naming: Name clusters by "hex" code or by "population" rank
        merge_islands: If False, stop after remapping
        generate_summary: Write .summary.txt/.summary.json next to the output
        slot_count: Printer filament slots available for slot numbering
    """

    num_colors: int = NUM_COLORS
    island_threshold: int = ISLAND_THRESHOLD
    algorithm: str = PALETTE_ALGORITHM
    use_color_pool: bool = True
    picked_colors: Optional[List[Color]] = None

    # Clustering options
    max_iterations: int = KMEANS_MAX_ITERATIONS
    seed: Optional[int] = DEFAULT_SEED
    deterministic: bool = True
    kmeans_naming: str = "hex"

    # Cleanup and output options
    merge_islands: bool = True
    generate_summary: bool = False
    slot_count: int = SLOT_COUNT

    def __post_init__(self):
        """Validate configuration parameters."""
        if self.num_colors <= 0:
            raise ValueError(f"num_colors must be positive, got {self.num_colors}")
        if self.island_threshold < 0:
            raise ValueError(f"island_threshold must be non-negative, got {self.island_threshold}")
        if self.algorithm not in PALETTE_ALGORITHMS:
            raise ValueError(f"algorithm must be one of {PALETTE_ALGORITHMS}, got {self.algorithm}")
        if self.max_iterations <= 0:
            raise ValueError(f"max_iterations must be positive, got {self.max_iterations}")
        if self.kmeans_naming not in KMEANS_NAMING:
            raise ValueError(f"kmeans_naming must be one of {KMEANS_NAMING}, got {self.kmeans_naming}")
        if self.slot_count <= 0:
            raise ValueError(f"slot_count must be positive, got {self.slot_count}")
        if self.picked_colors is not None:
            if not all(isinstance(c, Color) for c in self.picked_colors):
                raise ValueError("picked_colors must be a list of Color objects")

    @property
    def face_island_threshold(self) -> int:
        return face_min_size(self.island_threshold)

"""
Texture quantization.

Textured meshes carry their color in an image rather than on the vertices,
so the image itself has to be reduced to the palette. This module samples
an RGBA pixel buffer, clusters the samples into dominant colors, and snaps
every pixel to its nearest palette color.

Pixel buffers are flat numpy uint8 arrays laid out as RGBA, row-major -
exactly what Pillow gives us for an RGBA image.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np
from PIL import Image

from .color import Color
from .constants import (
    ALPHA_CUTOFF,
    COLOR_POOL,
    DEFAULT_COLOR,
    DEFAULT_SEED,
    KMEANS_MAX_ITERATIONS,
    MAX_TEXTURE_SAMPLES,
)
from .errors import EmptyPaletteError
from .palette_selector import (
    build_picked_palette,
    match_to_color_pool,
    select_best_colors_kmeans,
    weighted_distances,
)

logger = logging.getLogger(__name__)

# Pixels per nearest-color batch; keeps the (pixels x palette) distance
# matrix small for big textures
QUANTIZE_CHUNK_SIZE = 65536


@dataclass
class Texture:
    """
    An RGBA pixel buffer.

    Attributes:
        data: Flat uint8 array of length width * height * 4 (RGBA)
        width: Width in pixels
        height: Height in pixels
    """
    data: np.ndarray
    width: int
    height: int

    def __post_init__(self):
        self.data = np.ascontiguousarray(self.data, dtype=np.uint8).reshape(-1)
        expected = self.width * self.height * 4
        if self.data.size != expected:
            raise ValueError(
                f"Texture data has {self.data.size} bytes, expected {expected} "
                f"for {self.width}x{self.height} RGBA"
            )

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    def pixels(self) -> np.ndarray:
        """View of the buffer as a (pixel_count, 4) array."""
        return self.data.reshape(-1, 4)

    @classmethod
    def from_image(cls, image: Image.Image) -> 'Texture':
        """Build a texture from any Pillow image (converted to RGBA)."""
        rgba = image.convert('RGBA')
        data = np.array(rgba, dtype=np.uint8).reshape(-1)
        return cls(data, rgba.width, rgba.height)

    def to_image(self) -> Image.Image:
        return Image.fromarray(self.data.reshape(self.height, self.width, 4))

    @classmethod
    def load(cls, path: str) -> 'Texture':
        """
        Load an image file as a texture.

        Raises:
            FileNotFoundError: If the file doesn't exist
            IOError: If Pillow can't read it
        """
        with Image.open(path) as img:
            return cls.from_image(img)

    def save(self, path: str) -> str:
        self.to_image().save(path)
        return str(path)


def sample_texture_colors(texture: Texture, max_samples: int = MAX_TEXTURE_SAMPLES) -> List[Color]:
    """
    Evenly sample opaque-enough pixels from a texture.

    Every step-th pixel is considered, where step = max(1, total // max_samples).
    Pixels with alpha below ALPHA_CUTOFF are skipped.
    """
    step = max(1, texture.pixel_count // max_samples)
    sampled = texture.pixels()[::step]
    opaque = sampled[sampled[:, 3] / 255.0 >= ALPHA_CUTOFF]

    rgb = opaque[:, :3] / 255.0
    return [Color(float(r), float(g), float(b)) for r, g, b in rgb]


def extract_texture_colors(
    texture: Texture,
    count: int,
    seed: Optional[int] = DEFAULT_SEED,
    deterministic: bool = True,
    max_iterations: int = KMEANS_MAX_ITERATIONS,
    naming: str = "hex"
) -> List[Color]:
    """
    Find the `count` dominant colors of a texture with k-means.

    A fully transparent texture yields [white].
    """
    samples = sample_texture_colors(texture)
    logger.info("Sampled %d texture pixels", len(samples))

    if not samples:
        return [DEFAULT_COLOR]

    return select_best_colors_kmeans(
        samples,
        count,
        max_iterations=max_iterations,
        seed=seed,
        deterministic=deterministic,
        naming=naming
    )


def quantize_texture(texture: Texture, palette: Sequence[Color]) -> Texture:
    """
    Snap every opaque-enough pixel to its nearest palette color.

    Pixels that sampling skips (alpha below ALPHA_CUTOFF) keep their RGB.
    Alpha is passed through unchanged. Ties go to the earlier palette entry.

    Raises:
        EmptyPaletteError: If the palette is empty
    """
    if not palette:
        raise EmptyPaletteError()

    centers = np.array([c.rgb() for c in palette], dtype=np.float64)
    palette_bytes = np.array([c.to_rgb255() for c in palette], dtype=np.uint8)

    pixels = texture.pixels()
    out = pixels.copy()

    for start in range(0, len(pixels), QUANTIZE_CHUNK_SIZE):
        chunk = pixels[start:start + QUANTIZE_CHUNK_SIZE]
        opaque = chunk[:, 3] / 255.0 >= ALPHA_CUTOFF
        if not opaque.any():
            continue
        rgb = chunk[opaque, :3] / 255.0
        nearest = np.argmin(weighted_distances(rgb, centers), axis=1)
        out[start:start + QUANTIZE_CHUNK_SIZE, :3][opaque] = palette_bytes[nearest]

    return Texture(out.reshape(-1), texture.width, texture.height)


def preprocess_texture(
    texture: Texture,
    count: int,
    use_color_pool: bool = True,
    picked_colors: Optional[Sequence[Color]] = None,
    pool: Sequence[Color] = COLOR_POOL,
    seed: Optional[int] = DEFAULT_SEED,
    deterministic: bool = True
) -> Tuple[Texture, List[Color]]:
    """
    Pick a palette for a texture and quantize it.

    Palette priority:
    1. User-picked colors (if any survive deduplication)
    2. Dominant texture colors matched to the filament pool
    3. Dominant texture colors as-is

    Returns:
        (quantized texture, palette)
    """
    palette: List[Color] = []
    if picked_colors:
        palette = build_picked_palette(picked_colors, count)
        logger.info("Using %d picked colors for texture", len(palette))

    if not palette:
        palette = extract_texture_colors(texture, count, seed=seed, deterministic=deterministic)
        if use_color_pool:
            palette = match_to_color_pool(palette, pool)

    logger.info("Texture palette: %s", ", ".join(c.name or c.to_hex() for c in palette))
    return quantize_texture(texture, palette), palette

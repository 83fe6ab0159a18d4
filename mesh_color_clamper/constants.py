"""
Configuration constants for mesh color clamping.

All the magic numbers live here! Want to change your defaults?
Just edit these values and every run will use the new settings.
"""

from .color import Color

__version__ = "1.0.0"

# ============================================================================
# Filament Color Pool
# ============================================================================

# The fixed catalog of named filament colors that pool-based palette
# strategies pick from. Order matters: ties always go to the earlier entry.
COLOR_POOL = (
    Color(1.0, 1.0, 1.0, 'white'),
    Color(0.0, 0.0, 0.0, 'black'),
    Color(0.9, 0.1, 0.1, 'red'),
    Color(1.0, 0.5, 0.0, 'orange'),
    Color(1.0, 0.9, 0.0, 'yellow'),
    Color(0.2, 0.7, 0.2, 'green'),
    Color(0.35, 0.2, 0.1, 'dark_brown'),
    Color(0.65, 0.45, 0.25, 'light_brown'),
    Color(0.96, 0.92, 0.82, 'cream'),
    Color(0.1, 0.2, 0.5, 'dark_blue'),
    Color(0.4, 0.7, 0.9, 'light_blue'),
    Color(0.5, 0.5, 0.5, 'gray'),
    Color(1.0, 0.6, 0.7, 'pink'),
)

# Fallback palette entry when there is nothing to cluster
DEFAULT_COLOR = Color(1.0, 1.0, 1.0, '#ffffff')

# ============================================================================
# Palette Selection
# ============================================================================

# Number of colors to reduce the mesh to
# Most multi-material units have 4 slots, so that's a sensible start
NUM_COLORS = 4

# Palette strategy - "frequency", "greedy", "kmeans" or "frequency_no_pool"
PALETTE_ALGORITHM = "frequency"
PALETTE_ALGORITHMS = ("frequency", "greedy", "kmeans", "frequency_no_pool")

# Maximum Lloyd iterations for k-means clustering
KMEANS_MAX_ITERATIONS = 20

# A centroid that moves less than this (in color distance) counts as settled
KMEANS_CONVERGENCE_DISTANCE = 0.001

# Fixed seed so seeded clustering is reproducible run to run
DEFAULT_SEED = 42

# How k-means output colors get their names - "hex" or "population"
KMEANS_NAMING = ("hex", "population")

# Colors closer than this are merged into one cluster by the pool-free
# frequency strategy
SIMILARITY_THRESHOLD = 1.0

# Picked colors closer than this to an existing pick are treated as duplicates
COLOR_TOLERANCE = 0.05

# ============================================================================
# Island Merging
# ============================================================================

# Vertex islands smaller than this get absorbed by their neighbors
ISLAND_THRESHOLD = 10

# Safety valve for the merge fixpoint loops
MAX_MERGE_ITERATIONS = 10

# Face islands are always at least this small before merging kicks in
MIN_FACE_ISLAND_SIZE = 2

# ============================================================================
# Texture Quantization
# ============================================================================

# Cap on the number of pixels fed into clustering
MAX_TEXTURE_SAMPLES = 10000

# Cap on the number of vertex colors fed into k-means; larger meshes are
# subsampled with a uniform stride
MAX_VERTEX_SAMPLES = 10000

# Pixels with alpha below this fraction of 255 are skipped when sampling
ALPHA_CUTOFF = 0.1

# ============================================================================
# Output
# ============================================================================

# If no output file is specified, we'll use: {input_name}_clamped.obj
DEFAULT_OUTPUT_SUFFIX = "_clamped"

# Supported mesh file extensions
SUPPORTED_MESH_EXTENSIONS = {'.obj', '.stl'}

# Formats the clamped mesh can be written as
SUPPORTED_OUTPUT_EXTENSIONS = {'.obj', '.3mf'}

# Where 3MF exports get placed (center of a 256x256mm bed)
BUILD_PLATE_CENTER = (128.0, 128.0)

# Number of printer filament slots available for the summary slot assignment
SLOT_COUNT = 16

# Decimal places for coordinates and colors written to OBJ files
COORDINATE_PRECISION = 6

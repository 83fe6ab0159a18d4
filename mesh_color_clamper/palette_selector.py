"""
Palette selection: pick N representative colors for a colored mesh.

There are several interchangeable strategies here, all with the same shape -
observed vertex colors in, a palette of at most N colors out:

- Frequency: snap every color to the filament pool and keep the N pool
  colors that got the most hits
- Greedy coverage: repeatedly pick the pool color covering the most
  remaining demand, then hand its vertices to the next best candidates
- K-means / k-means++: cluster the colors themselves, no pool needed
- Frequency without a pool: merge near-identical colors and keep the
  N most common groups

select_palette() dispatches between them based on a ClampConfig.
"""

import logging
from collections import Counter
from typing import Dict, List, Optional, Sequence, Tuple, TYPE_CHECKING

import numpy as np

from .color import Color, find_nearest_index
from .constants import (
    COLOR_POOL,
    DEFAULT_COLOR,
    DEFAULT_SEED,
    KMEANS_MAX_ITERATIONS,
    KMEANS_CONVERGENCE_DISTANCE,
    SIMILARITY_THRESHOLD,
    COLOR_TOLERANCE,
)
from .errors import NoColorsFoundError

# Import for type checking only (avoids circular imports)
if TYPE_CHECKING:
    from .config import ClampConfig

logger = logging.getLogger(__name__)

# Channel weights matching Color.distance_to()
_CHANNEL_WEIGHTS = np.array([2.0, 4.0, 3.0])


# ============================================================================
# Pool-based strategies
# ============================================================================

def select_best_colors_frequency(
    vertex_colors: Sequence[Color],
    pool: Sequence[Color],
    count: int
) -> List[Color]:
    """
    Keep the pool colors that the most vertex colors snap to.

    Every observed color votes for its nearest pool color. Pool colors are
    then ranked by votes (ties keep pool order) and the top `count` with at
    least one vote are returned.

    Example:
        vertex colors [red, red, red, blue], pool [red, blue, green], N=2
        → votes red=3, blue=1, green=0 → [red, blue]

    Args:
        vertex_colors: Observed colors (one per colored vertex)
        pool: Candidate palette colors
        count: Maximum palette size

    Returns:
        Up to `count` colors drawn from the pool
    """
    match_counts = [0] * len(pool)

    for vertex_color in vertex_colors:
        closest_idx = find_nearest_index(vertex_color, pool)
        if closest_idx >= 0:
            match_counts[closest_idx] += 1

    # sorted() is stable, so equal counts stay in pool order
    ranked = sorted(range(len(pool)), key=lambda i: match_counts[i], reverse=True)

    logger.info("Color distribution:")
    for i in ranked:
        if match_counts[i] > 0:
            logger.info("  %s: %d vertices", pool[i].name, match_counts[i])

    return [pool[i] for i in ranked if match_counts[i] > 0][:count]


def _nearest_among(color: Color, pool: Sequence[Color], indices: Sequence[int]) -> int:
    """Nearest pool index restricted to `indices` (ascending), -1 if none."""
    best_idx = -1
    best_dist = float('inf')
    for i in indices:
        dist = color.distance_to(pool[i])
        if dist < best_dist:
            best_dist = dist
            best_idx = i
    return best_idx


def select_best_colors_greedy(
    vertex_colors: Sequence[Color],
    pool: Sequence[Color],
    count: int
) -> List[Color]:
    """
    Greedy coverage selection from the pool.

    The algorithm:
    1. Assign every vertex color to its nearest pool color
    2. Pick the unselected pool color covering the most vertices
       (ties → lowest pool index; if nothing is covered any more, just take
       the lowest-index unselected color)
    3. Hand the vertices of the picked color over to their nearest
       still-unselected pool color, so the next round sees the demand that
       is left
    4. Repeat until `count` colors are chosen or the pool runs out

    This is a heuristic, not an optimal set cover - but it always returns
    exactly min(count, len(pool)) distinct colors.
    """
    unselected = list(range(len(pool)))
    assignment = [_nearest_among(c, pool, unselected) for c in vertex_colors]
    coverage = Counter(assignment)

    selected: List[int] = []
    for _ in range(min(count, len(pool))):
        best_idx = -1
        best_coverage = 0
        for i in unselected:
            if coverage[i] > best_coverage:
                best_coverage = coverage[i]
                best_idx = i

        if best_idx < 0:
            # Nothing left to cover - fill up with the lowest remaining index
            best_idx = unselected[0]

        selected.append(best_idx)
        unselected.remove(best_idx)
        logger.debug("Greedy pick %s covering %d vertices", pool[best_idx].name, best_coverage)

        if not unselected:
            break

        for v, assigned in enumerate(assignment):
            if assigned == best_idx:
                new_idx = _nearest_among(vertex_colors[v], pool, unselected)
                assignment[v] = new_idx
                coverage[new_idx] += 1
        coverage[best_idx] = 0

    return [pool[i] for i in selected]


def match_to_color_pool(extracted: Sequence[Color], pool: Sequence[Color]) -> List[Color]:
    """
    Map each extracted color to its nearest pool color that isn't taken yet.

    The result has no duplicates, and is shorter than `extracted` only when
    the pool runs out.
    """
    matched: List[Color] = []
    used = set()

    for color in extracted:
        available = [i for i in range(len(pool)) if i not in used]
        best_idx = _nearest_among(color, pool, available)
        if best_idx >= 0:
            matched.append(pool[best_idx])
            used.add(best_idx)

    return matched


# ============================================================================
# Pool-free strategies
# ============================================================================

def select_best_colors_frequency_no_pool(
    vertex_colors: Sequence[Color],
    count: int,
    similarity_threshold: float = SIMILARITY_THRESHOLD
) -> List[Color]:
    """
    Group near-identical colors and keep the `count` most common groups.

    Each color joins the first existing group whose running-average
    representative is closer than `similarity_threshold`, otherwise it
    starts a new group. Groups are named color_1, color_2, ... by rank.
    """
    # [r, g, b, count] per cluster, updated as a running mean
    clusters: List[List[float]] = []

    for vertex_color in vertex_colors:
        for cluster in clusters:
            representative = Color(cluster[0], cluster[1], cluster[2])
            if vertex_color.distance_to(representative) < similarity_threshold:
                cluster[3] += 1
                n = cluster[3]
                cluster[0] = (cluster[0] * (n - 1) + vertex_color.r) / n
                cluster[1] = (cluster[1] * (n - 1) + vertex_color.g) / n
                cluster[2] = (cluster[2] * (n - 1) + vertex_color.b) / n
                break
        else:
            clusters.append([vertex_color.r, vertex_color.g, vertex_color.b, 1])

    clusters.sort(key=lambda c: c[3], reverse=True)

    logger.info("Color clusters found:")
    for i, cluster in enumerate(clusters[:count + 3], start=1):
        color = Color(cluster[0], cluster[1], cluster[2])
        logger.info("  Cluster %d: %d vertices (%s)", i, int(cluster[3]), color.to_hex())

    return [
        Color(cluster[0], cluster[1], cluster[2], f"color_{idx}")
        for idx, cluster in enumerate(clusters[:count], start=1)
    ]


def weighted_distances(samples: np.ndarray, centers: np.ndarray) -> np.ndarray:
    """
    Pairwise color distances between (n, 3) samples and (k, 3) centers.

    Returns an (n, k) array using the same weighting as Color.distance_to().
    """
    diff = samples[:, None, :] - centers[None, :, :]
    return np.sqrt(np.sum(_CHANNEL_WEIGHTS * diff * diff, axis=2))


def _initialize_centroids(
    samples: np.ndarray,
    k: int,
    deterministic: bool,
    rng: Optional[np.random.Generator]
) -> np.ndarray:
    """
    k-means++ seeding - pick initial centroids that are well spread out.

    Deterministic mode starts from the sample closest to the mean color and
    then keeps adding the sample farthest from every chosen centroid.
    Randomized mode starts from a uniformly random sample and then samples
    proportionally to squared distance.

    Fewer than k centroids come back when every sample already coincides
    with a chosen centroid.
    """
    n = len(samples)

    if deterministic:
        mean = samples.mean(axis=0)
        first = int(np.argmin(weighted_distances(samples, mean[None, :])[:, 0]))
    else:
        first = int(rng.integers(n))

    chosen = [first]
    min_dist = weighted_distances(samples, samples[first][None, :])[:, 0]

    for _ in range(1, k):
        if deterministic:
            # argmax returns the first maximum, matching a strict > scan
            best = int(np.argmax(min_dist))
            if min_dist[best] <= 0:
                break
        else:
            weights = min_dist * min_dist
            total = weights.sum()
            if total <= 0:
                break
            best = int(rng.choice(n, p=weights / total))

        chosen.append(best)
        min_dist = np.minimum(min_dist, weighted_distances(samples, samples[best][None, :])[:, 0])

    return samples[chosen].copy()


def kmeans(
    samples: np.ndarray,
    k: int,
    max_iterations: int = KMEANS_MAX_ITERATIONS,
    seed: Optional[int] = DEFAULT_SEED,
    deterministic: bool = True
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Cluster (n, 3) color samples into at most k groups.

    Each iteration assigns every sample to its nearest centroid, then moves
    each centroid to the mean of its samples (empty clusters stay put).
    Stops when assignments stop changing, when no centroid moves more than
    KMEANS_CONVERGENCE_DISTANCE, or after max_iterations.

    Args:
        samples: Float array of shape (n, 3), channels in [0, 1]
        k: Number of clusters requested
        max_iterations: Iteration cap
        seed: Seed for randomized seeding (ignored when deterministic)
        deterministic: Use max-min-distance seeding instead of weighted sampling

    Returns:
        Tuple of (centroids with shape (m, 3), labels with shape (n,)), m <= k
    """
    rng = None if deterministic else np.random.default_rng(seed)
    centroids = _initialize_centroids(samples, k, deterministic, rng)

    labels: Optional[np.ndarray] = None
    for iteration in range(max_iterations):
        # argmin returns the first minimum, so ties go to the earlier centroid
        new_labels = np.argmin(weighted_distances(samples, centroids), axis=1)
        if labels is not None and np.array_equal(new_labels, labels):
            logger.debug("k-means: assignments stable after %d iterations", iteration)
            break
        labels = new_labels

        updated = centroids.copy()
        for i in range(len(centroids)):
            members = samples[labels == i]
            if len(members):
                updated[i] = members.mean(axis=0)

        diff = updated - centroids
        moved = np.sqrt(np.sum(_CHANNEL_WEIGHTS * diff * diff, axis=1))
        centroids = updated

        if moved.max() <= KMEANS_CONVERGENCE_DISTANCE:
            logger.debug("k-means: converged after %d iterations", iteration + 1)
            break

    return centroids, labels


def _name_clusters(
    rgbs: Sequence[Tuple[float, float, float]],
    populations: Sequence[int],
    naming: str
) -> List[Color]:
    if naming == "population":
        order = sorted(range(len(rgbs)), key=lambda i: populations[i], reverse=True)
        return [Color(*rgbs[i], name=f"color_{rank}") for rank, i in enumerate(order, start=1)]

    colors: List[Color] = []
    seen: Dict[str, int] = {}
    for rgb in rgbs:
        color = Color(*rgb)
        name = color.to_hex()
        # Coinciding centroids would share a hex code, names must stay unique
        if name in seen:
            seen[name] += 1
            name = f"{name}_{seen[name]}"
        else:
            seen[name] = 1
        colors.append(color.copy(name=name))
    return colors


def select_best_colors_kmeans(
    vertex_colors: Sequence[Color],
    count: int,
    max_iterations: int = KMEANS_MAX_ITERATIONS,
    seed: Optional[int] = DEFAULT_SEED,
    deterministic: bool = True,
    naming: str = "hex",
    max_samples: Optional[int] = None
) -> List[Color]:
    """
    Cluster the observed colors themselves - no pool involved.

    If there are fewer distinct colors than `count`, every distinct color
    becomes its own cluster and clustering is skipped.

    Args:
        vertex_colors: Observed colors
        count: Number of clusters requested
        max_iterations: k-means iteration cap
        seed: Seed for randomized seeding
        deterministic: Use deterministic max-min seeding (default)
        naming: "hex" names colors by hex code, "population" names them
                color_1..color_N in descending cluster size
        max_samples: If set, subsample evenly down to roughly this many colors

    Returns:
        List of at most `count` named colors. Centroids may coincide.
    """
    if not vertex_colors:
        return [DEFAULT_COLOR]

    populations = Counter(c.rgb() for c in vertex_colors)
    distinct = list(populations)

    if len(distinct) < count:
        logger.info("Only %d distinct colors, skipping clustering", len(distinct))
        return _name_clusters(distinct, [populations[rgb] for rgb in distinct], naming)

    samples_list = list(vertex_colors)
    if max_samples is not None and len(samples_list) > max_samples:
        stride = len(samples_list) // max_samples
        samples_list = samples_list[::stride]

    samples = np.array([c.rgb() for c in samples_list], dtype=np.float64)
    centroids, labels = kmeans(samples, count, max_iterations, seed, deterministic)
    counts = np.bincount(labels, minlength=len(centroids))

    rgbs = [tuple(float(v) for v in centroid) for centroid in centroids]
    palette = _name_clusters(rgbs, [int(c) for c in counts], naming)

    logger.info("Extracted %d dominant colors:", len(palette))
    for color in palette:
        logger.info("  %s", color.to_hex())

    return palette


# ============================================================================
# Picked palettes
# ============================================================================

def is_color_unique(
    color: Color,
    palette: Sequence[Color],
    tolerance: float = COLOR_TOLERANCE
) -> bool:
    """True if no palette color is within `tolerance` of `color`."""
    return all(color.distance_to(existing) >= tolerance for existing in palette)


def build_picked_palette(
    picked: Sequence[Color],
    count: int,
    tolerance: float = COLOR_TOLERANCE
) -> List[Color]:
    """
    Turn user-picked colors into a palette.

    Near-duplicates are dropped, unnamed colors are named by their hex code,
    and only the first `count` survive.
    """
    palette: List[Color] = []
    for color in picked:
        if not is_color_unique(color, palette, tolerance):
            logger.debug("Skipping picked color %s (too similar)", color.to_hex())
            continue
        palette.append(color if color.name else color.copy(name=color.to_hex()))
    return palette[:count]


# ============================================================================
# Dispatch
# ============================================================================

def select_palette(
    vertex_colors: Sequence[Color],
    config: 'ClampConfig',
    pool: Sequence[Color] = COLOR_POOL,
    max_samples: Optional[int] = None
) -> List[Color]:
    """
    Choose the palette for a run according to the configuration.

    Picked colors always win. Otherwise config.algorithm decides; k-means
    output is snapped to the pool when config.use_color_pool is set.
    max_samples caps how many colors k-means clusters (uniform stride).

    Raises:
        NoColorsFoundError: If there are no vertex colors at all
    """
    if not vertex_colors:
        raise NoColorsFoundError()

    count = config.num_colors

    if config.picked_colors:
        palette = build_picked_palette(config.picked_colors, count)
        if palette:
            logger.info("Using %d user-picked colors", len(palette))
            return palette

    if config.algorithm == "frequency":
        return select_best_colors_frequency(vertex_colors, pool, count)
    if config.algorithm == "greedy":
        return select_best_colors_greedy(vertex_colors, pool, count)
    if config.algorithm == "frequency_no_pool":
        return select_best_colors_frequency_no_pool(vertex_colors, count)

    palette = select_best_colors_kmeans(
        vertex_colors,
        count,
        max_iterations=config.max_iterations,
        seed=config.seed,
        deterministic=config.deterministic,
        naming=config.kmeans_naming,
        max_samples=max_samples
    )
    if config.use_color_pool:
        logger.info("Matching to available filament colors...")
        palette = match_to_color_pool(palette, pool)
    return palette

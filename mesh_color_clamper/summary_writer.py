"""
Summary file writer module.

After a run, it's handy to have a record of which filaments the clamped
mesh needs and which printer slot each one should go in. The summary is
written next to the output mesh as {filetitle}.summary.txt, with an
optional machine-readable twin at {filetitle}.summary.json.
"""

from pathlib import Path
from typing import Dict, List, Sequence, TYPE_CHECKING

from .color import Color
from .json_utils import dumps_compact_arrays
from .remapper import used_palette

# Import for type checking only (avoids circular imports)
if TYPE_CHECKING:
    from .config import ClampConfig


def assign_slots(
    palette: Sequence[Color],
    distribution: Dict[str, int],
    slot_count: int
) -> Dict[str, int]:
    """
    Default filament slot for every palette color that ended up in use.

    Used colors get slots 1, 2, 3... in palette order. Colors past the
    last slot all share the last slot - the user will have to swap
    filament by hand for those.

    Returns:
        Mapping of color name -> 1-based slot number
    """
    return {
        color.name: min(slot, slot_count)
        for slot, color in enumerate(used_palette(palette, distribution), start=1)
    }


def _percent(count: int, total: int) -> float:
    return 100.0 * count / total if total else 0.0


def write_summary_file(
    output_path: str,
    palette: Sequence[Color],
    distribution: Dict[str, int],
    config: 'ClampConfig'
) -> str:
    """
    Write a plain-text summary of the final palette.

    The summary file is written to the same location as the output mesh
    with the name pattern: {filetitle}.summary.txt

    Args:
        output_path: Path to the output mesh file
        palette: Final palette
        distribution: Vertex count per color name
        config: ClampConfig used for the run

    Returns:
        Path to the generated summary file
    """
    output_file = Path(output_path)
    summary_path = output_file.with_suffix('.summary.txt')

    slots = assign_slots(palette, distribution, config.slot_count)
    total = sum(distribution.values())

    lines = []
    lines.append("=" * 70)
    lines.append("Mesh Color Clamping Summary")
    lines.append("=" * 70)
    lines.append("")
    lines.append(f"Output File: {output_file.name}")
    lines.append(f"Palette Algorithm: {config.algorithm}")
    lines.append(f"Colors Used: {len(slots)} of {config.num_colors} requested")
    lines.append(f"Colored Vertices: {total}")
    if config.merge_islands:
        lines.append(
            f"Island Threshold: {config.island_threshold} vertices "
            f"({config.face_island_threshold} faces)"
        )
    else:
        lines.append("Island Merging: disabled")
    lines.append("")

    lines.append("Colors Used:")
    lines.append("-" * 70)
    lines.append("")

    unused: List[Color] = []
    for i, color in enumerate(palette, start=1):
        count = distribution.get(color.name, 0)
        if color.name not in slots:
            unused.append(color)
            continue

        lines.append(f"{i}. {color.name}")
        lines.append(f"   Hex: {color.to_hex()}")
        lines.append(f"   RGB: {color.to_rgb255()}")
        lines.append(f"   Vertices: {count} ({_percent(count, total):.1f}%)")
        lines.append(f"   Slot: {slots[color.name]}")
        lines.append("")

    if unused:
        lines.append("Unused After Cleanup:")
        lines.append("-" * 70)
        for color in unused:
            lines.append(f"   {color.name} ({color.to_hex()})")
        lines.append("")

    lines.append("=" * 70)

    summary_path.write_text('\n'.join(lines), encoding='utf-8')

    return str(summary_path)


def write_summary_json(
    output_path: str,
    palette: Sequence[Color],
    distribution: Dict[str, int],
    config: 'ClampConfig'
) -> str:
    """
    Write the same information as write_summary_file() as JSON.

    Returns:
        Path to the generated {filetitle}.summary.json
    """
    output_file = Path(output_path)
    summary_path = output_file.with_suffix('.summary.json')

    slots = assign_slots(palette, distribution, config.slot_count)

    data = {
        "output_file": output_file.name,
        "algorithm": config.algorithm,
        "requested_colors": config.num_colors,
        "island_threshold": config.island_threshold if config.merge_islands else None,
        "colors": [
            {
                "name": color.name,
                "hex": color.to_hex(),
                "rgb": list(color.to_rgb255()),
                "vertices": distribution.get(color.name, 0),
                "slot": slots.get(color.name)
            }
            for color in palette
        ]
    }

    summary_path.write_text(dumps_compact_arrays(data, array_fields=["rgb"]), encoding='utf-8')

    return str(summary_path)

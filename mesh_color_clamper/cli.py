#!/usr/bin/env python3
"""
Command-line interface for the Mesh Color Clamper.

This module handles all the CLI-specific stuff: argument parsing, pretty
printing, error display, etc. The actual clamping logic lives in
color_clamper.py and can be imported/used programmatically.

Separation of concerns FTW! 🎯
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from .color import Color
from .color_clamper import process_file, process_texture_file
from .config import ClampConfig
from .constants import (
    DEFAULT_OUTPUT_SUFFIX,
    DEFAULT_SEED,
    ISLAND_THRESHOLD,
    KMEANS_MAX_ITERATIONS,
    NUM_COLORS,
    PALETTE_ALGORITHM,
    PALETTE_ALGORITHMS,
    SLOT_COUNT,
    SUPPORTED_MESH_EXTENSIONS,
    __version__
)

# Create Rich consoles for output and errors
console = Console()
error_console = Console(stderr=True)

# Progress label for each pipeline stage
STAGE_LABELS = {
    "load": "[cyan]📁 Loading",
    "adjacency": "[cyan]🕸️  Building adjacency",
    "palette": "[magenta]🎨 Selecting palette",
    "remap": "[blue]🎯 Remapping colors",
    "merge": "[yellow]🧩 Merging islands",
    "export": "[green]📦 Writing output",
}


def is_mesh_file(filepath: Path) -> bool:
    """Check if a file is a supported mesh format."""
    return filepath.suffix.lower() in SUPPORTED_MESH_EXTENSIONS


def parse_seed(value: str) -> Optional[int]:
    """
    Parse the --seed argument: an integer, or "random" for a fresh seed.

    Raises:
        argparse.ArgumentTypeError: If the value is neither
    """
    if value.strip().lower() == "random":
        return None
    try:
        return int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"seed must be an integer or 'random', got '{value}'"
        ) from None


def parse_color_list(value: str) -> List[Color]:
    """
    Parse a comma-separated list of hex colors, e.g. "#ff0000,00ff00".

    Raises:
        ValueError: If any entry isn't a valid 6-digit hex color
    """
    colors = []
    for part in value.split(','):
        part = part.strip()
        if part:
            colors.append(Color.from_hex(part, name=f"#{part.lstrip('#').lower()}"))
    if not colors:
        raise ValueError("no colors given")
    return colors


def default_output_path(input_path: Path, suffix: str = '.obj') -> str:
    """{input_name}_clamped.obj next to the input file."""
    return str(input_path.with_suffix('')) + DEFAULT_OUTPUT_SUFFIX + suffix


def configure_logging(verbose: bool) -> None:
    """Send the package's log output to stderr when --verbose is given."""
    if not verbose:
        return

    package_logger = logging.getLogger('mesh_color_clamper')
    package_logger.setLevel(logging.DEBUG)

    # Add handler only if one doesn't exist
    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter('   [%(name)s] %(message)s'))
        package_logger.addHandler(handler)


def build_parser() -> argparse.ArgumentParser:
    """Set up the command-line argument parser."""
    parser = argparse.ArgumentParser(
        description="Reduce the colors of a vertex-colored mesh for multi-material printing",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s model.obj
  %(prog)s model.stl --output model_4color.3mf -n 4
  %(prog)s scan.obj --algorithm kmeans --no-pool --seed random
  %(prog)s model.obj --colors "#ffffff,#202020,#e61a1a" --summary
  %(prog)s --quantize-texture texture.png -n 6

The program will:
  1. Load your colored mesh (OBJ with vertex colors, or binary STL)
  2. Pick a palette of N colors
  3. Snap every vertex to its nearest palette color
  4. Clean up small islands of stray color
  5. Write the result as OBJ (vertex colors) or 3MF (one object per color)
        """
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
        help="Show program's version number and exit"
    )

    parser.add_argument(
        "mesh_file",
        type=str,
        nargs='?',
        help="Input mesh file (.obj or .stl) - not used with --quantize-texture"
    )

    parser.add_argument(
        "-o", "--output",
        type=str,
        default=None,
        help=f"Output file path, .obj or .3mf (default: {{input_name}}{DEFAULT_OUTPUT_SUFFIX}.obj)"
    )

    parser.add_argument(
        "-n", "--num-colors",
        type=int,
        default=NUM_COLORS,
        help=f"Number of colors in the final palette (default: {NUM_COLORS})"
    )

    parser.add_argument(
        "--threshold",
        type=int,
        default=ISLAND_THRESHOLD,
        help=f"Merge vertex islands smaller than this many vertices (default: {ISLAND_THRESHOLD})"
    )

    parser.add_argument(
        "--algorithm",
        type=str,
        choices=PALETTE_ALGORITHMS,
        default=PALETTE_ALGORITHM,
        help=f"Palette selection strategy (default: {PALETTE_ALGORITHM})"
    )

    parser.add_argument(
        "--no-pool",
        action="store_true",
        help="With --algorithm kmeans, keep the clustered colors instead of "
             "snapping them to the filament color pool"
    )

    parser.add_argument(
        "--colors",
        type=str,
        default=None,
        help="Use these colors as the palette (comma-separated hex codes). "
             "Overrides --algorithm."
    )

    parser.add_argument(
        "--seed",
        type=parse_seed,
        default=DEFAULT_SEED,
        help=f"Seed for randomized k-means++ seeding, or 'random' (default: {DEFAULT_SEED}). "
             "Only used with --random-init."
    )

    parser.add_argument(
        "--random-init",
        action="store_true",
        help="Use randomized k-means++ seeding instead of deterministic max-min seeding"
    )

    parser.add_argument(
        "--naming",
        type=str,
        choices=["hex", "population"],
        default="hex",
        help="How k-means colors are named: hex codes, or color_1..N by size (default: hex)"
    )

    parser.add_argument(
        "--max-iterations",
        type=int,
        default=KMEANS_MAX_ITERATIONS,
        help=f"Maximum k-means iterations (default: {KMEANS_MAX_ITERATIONS})"
    )

    parser.add_argument(
        "--no-merge",
        action="store_true",
        help="Skip island merging (just remap colors)"
    )

    parser.add_argument(
        "--slots",
        type=int,
        default=SLOT_COUNT,
        help=f"Number of printer filament slots, used for slot numbering (default: {SLOT_COUNT})"
    )

    parser.add_argument(
        "--summary",
        action="store_true",
        help="Write {output_name}.summary.txt and .summary.json next to the output file"
    )

    parser.add_argument(
        "--quantize-texture",
        type=str,
        default=None,
        metavar="IMAGE",
        help=f"Quantize an image file instead of a mesh; writes {{image_name}}{DEFAULT_OUTPUT_SUFFIX}.png"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Print detailed algorithm logging"
    )

    return parser


def print_config_table(input_path: str, output_path: str, config: ClampConfig) -> None:
    """Display the run configuration."""
    config_table = Table(title="Configuration", box=box.ROUNDED, show_header=True, header_style="bold cyan")
    config_table.add_column("Parameter", style="bold yellow")
    config_table.add_column("Value", style="white")

    config_table.add_row("Input File", input_path)
    config_table.add_row("Output File", output_path)
    config_table.add_row("Colors", str(config.num_colors))

    if config.picked_colors:
        config_table.add_row("Palette", ", ".join(c.to_hex() for c in config.picked_colors))
    else:
        algorithm = config.algorithm
        if algorithm == "kmeans":
            algorithm += " + color pool" if config.use_color_pool else " (no pool)"
            seeding = "deterministic" if config.deterministic else f"random (seed {config.seed})"
            config_table.add_row("K-means Seeding", seeding)
        config_table.add_row("Algorithm", algorithm)

    if config.merge_islands:
        config_table.add_row(
            "Island Threshold",
            f"{config.island_threshold} vertices / {config.face_island_threshold} faces"
        )
    else:
        config_table.add_row("Island Merging", "Disabled")

    console.print(config_table)
    console.print()


def print_palette_table(stats: Dict[str, Any]) -> None:
    """Display the final palette with vertex counts."""
    distribution = stats.get('distribution', {})
    total = sum(distribution.values())

    table = Table(title="Final Palette", box=box.SIMPLE, header_style="bold cyan")
    table.add_column("#", justify="right")
    table.add_column("Name", style="bold")
    table.add_column("Color")
    table.add_column("Hex")
    table.add_column("Vertices", justify="right")

    for i, color in enumerate(stats['palette'], start=1):
        hex_code = color.to_hex()
        count = distribution.get(color.name)
        if count is None:
            count_text = "-"
        else:
            share = 100.0 * count / total if total else 0.0
            count_text = f"{count} ({share:.1f}%)"
        table.add_row(str(i), color.name or hex_code, f"[on {hex_code}]      [/]", hex_code, count_text)

    console.print(table)


def run_with_progress(func, *args) -> Dict[str, Any]:
    """
    Run a processing function with a staged Rich progress display.

    The function must accept a progress_callback keyword argument.
    """
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=False
    ) as progress:
        current = {"stage": None, "task": None}

        def progress_callback(stage: str, message: str):
            label = STAGE_LABELS.get(stage, f"[white]{stage}")
            if stage != current["stage"]:
                if current["task"] is not None:
                    progress.update(current["task"], total=1, completed=1)
                current["stage"] = stage
                current["task"] = progress.add_task(f"{label}... {message}", total=None)
            else:
                progress.update(current["task"], description=f"{label}... {message}")

        stats = func(*args, progress_callback=progress_callback)

        if current["task"] is not None:
            progress.update(current["task"], total=1, completed=1)

    return stats


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.verbose)

    picked_colors = None
    if args.colors:
        try:
            picked_colors = parse_color_list(args.colors)
        except ValueError as e:
            error_console.print(f"[red]❌ Error: Invalid --colors '{args.colors}': {e}[/red]")
            error_console.print("[red]   Format: comma-separated hex codes (e.g., '#ffffff,#000000')[/red]")
            sys.exit(1)

    # Build config object from CLI arguments
    try:
        config = ClampConfig(
            num_colors=args.num_colors,
            island_threshold=args.threshold,
            algorithm=args.algorithm,
            use_color_pool=not args.no_pool,
            picked_colors=picked_colors,
            max_iterations=args.max_iterations,
            seed=args.seed,
            deterministic=not args.random_init,
            kmeans_naming=args.naming,
            merge_islands=not args.no_merge,
            generate_summary=args.summary,
            slot_count=args.slots
        )
    except ValueError as e:
        error_console.print(f"[red]❌ Error: Invalid configuration: {e}[/red]")
        sys.exit(1)

    # =========================================================================
    # TEXTURE MODE
    # =========================================================================
    if args.quantize_texture:
        if args.mesh_file:
            error_console.print("[red]❌ Error: Don't specify a mesh file when using --quantize-texture[/red]")
            sys.exit(1)

        input_path = Path(args.quantize_texture)
        if not input_path.exists():
            error_console.print(f"[red]❌ Error: Input file not found: {input_path}[/red]")
            sys.exit(1)

        output_path = args.output or default_output_path(input_path, '.png')

        console.print(Panel.fit(
            "[bold cyan]🎨 Mesh Color Clamper - TEXTURE MODE[/bold cyan]",
            border_style="cyan"
        ))
        console.print()
        print_config_table(str(input_path), output_path, config)

        try:
            stats = run_with_progress(process_texture_file, str(input_path), output_path, config)
        except FileNotFoundError as e:
            error_console.print(f"\n[red]❌ Error: {e}[/red]")
            sys.exit(1)
        except (ValueError, OSError) as e:
            error_console.print(f"\n[red]❌ Error: {e}[/red]")
            sys.exit(1)

        console.print()
        console.print(Panel.fit(
            "[bold green]✅ Texture quantized![/bold green]",
            border_style="green"
        ))
        print_palette_table(stats)
        console.print(f"[cyan]Output:[/cyan] {stats['output_path']} ({stats['file_size']})")
        console.print()
        return

    # =========================================================================
    # MESH MODE
    # =========================================================================
    if not args.mesh_file:
        error_console.print("[red]❌ Error: Mesh file is required (or use --quantize-texture)[/red]")
        parser.print_help()
        sys.exit(1)

    input_path = Path(args.mesh_file)
    if not input_path.exists():
        error_console.print(f"[red]❌ Error: Input file not found: {args.mesh_file}[/red]")
        sys.exit(1)

    if not is_mesh_file(input_path):
        error_console.print(
            f"[red]❌ Error: Unsupported mesh format '{input_path.suffix}' "
            f"(supported: {', '.join(sorted(SUPPORTED_MESH_EXTENSIONS))})[/red]"
        )
        sys.exit(1)

    output_path = args.output or default_output_path(input_path)

    console.print(Panel.fit(
        "[bold cyan]🎨 Mesh Color Clamper[/bold cyan]",
        border_style="cyan"
    ))
    console.print()
    print_config_table(str(input_path), output_path, config)

    try:
        stats = run_with_progress(process_file, str(input_path), output_path, config)
    except FileNotFoundError as e:
        error_console.print(f"\n[red]❌ Error: {e}[/red]")
        sys.exit(1)
    except ValueError as e:
        error_console.print(f"\n[red]❌ Invalid input: {e}[/red]")
        sys.exit(1)
    except Exception as e:
        error_console.print(f"\n[red]❌ Unexpected error: {e}[/red]")
        import traceback
        traceback.print_exc()
        sys.exit(1)

    # Print summary
    console.print()
    console.print(Panel.fit(
        "[bold green]✅ Colors clamped![/bold green]",
        border_style="green"
    ))

    stats_table = Table(show_header=False, box=box.SIMPLE, padding=(0, 1))
    stats_table.add_column("Label", style="bold cyan")
    stats_table.add_column("Value", style="white")

    stats_table.add_row("Mesh:", f"{stats['num_vertices']} vertices, {stats['num_faces']} faces")
    stats_table.add_row("Input colors:", f"{stats['num_input_colors']} distinct on {stats['num_colored']} vertices")
    stats_table.add_row(
        "Islands merged:",
        f"{stats['vertex_island_merges']} vertex + {stats['face_island_merges']} face recolorings"
    )
    stats_table.add_row("Output:", f"{stats['output_path']} ({stats['file_size']})")
    if 'summary_path' in stats:
        stats_table.add_row("Summary:", stats['summary_path'])

    console.print(stats_table)
    print_palette_table(stats)
    console.print()
    console.print("[bold yellow]🎯 Next steps:[/bold yellow]")
    console.print("  [cyan]1.[/cyan] Open the output in your slicer (Bambu Studio, PrusaSlicer, etc.)")
    console.print("  [cyan]2.[/cyan] Load one filament per palette color")
    console.print("  [cyan]3.[/cyan] Slice and print!")
    console.print()


if __name__ == "__main__":
    main()

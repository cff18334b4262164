"""
MeshEngine - triangle mesh refinement, statistics and containment queries

Main entry point
"""

import json
import logging
import sys
import time
from pathlib import Path
from typing import Optional

# Ensure repository root is on sys.path so "src" is importable.
ROOT_DIR = Path(__file__).resolve().parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from src.core.runtime_defaults import DEFAULTS
from src.core.output_paths import statistics_output_path, subdivided_output_path

_LOGGER = logging.getLogger(__name__)
_LOG_PATH: Optional[Path] = None
SPINNER = "|/-\\"


def run_cli(argv=None) -> int:
    """Command line interface; returns the process exit status."""
    from src.core.logging_utils import setup_logging

    global _LOG_PATH
    _LOG_PATH = setup_logging()

    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        print_help()
        return 0

    cmd = args[0]

    if cmd in ('--help', '-h'):
        print_help()
        return 0

    if cmd == '--info' and len(args) > 1:
        return show_file_info(args[1])

    if cmd == '--stats' and len(args) > 1:
        return show_statistics(args[1])

    if cmd == '--subdivide' and len(args) > 1:
        levels = args[2] if len(args) > 2 else "1"
        return subdivide_mesh(args[1], levels, args[3] if len(args) > 3 else None)

    if cmd == '--inside' and len(args) > 4:
        return check_point(args[1], args[2:5])

    # Default: full report
    if Path(cmd).exists():
        return process_mesh(cmd)

    print(f"Error: Unknown command or file not found: {cmd}")
    print("Use --help for usage information")
    return 2


def print_help():
    from src.core.mesh_loader import MeshLoader

    print("=" * 60)
    print("MeshEngine - triangle mesh processing")
    print("=" * 60)
    print()
    print("Usage:")
    print("  python main.py <mesh_file>                          # Full report")
    print("  python main.py --info <mesh_file>                   # Show file info")
    print("  python main.py --stats <mesh_file>                  # Triangle area statistics")
    print("  python main.py --subdivide <mesh_file> [levels] [output]")
    print("  python main.py --inside <mesh_file> <x> <y> <z>     # Point containment")
    print()
    print(f"Supported formats: {list(MeshLoader.get_supported_formats())}")
    print()
    print("Examples:")
    print("  python main.py teapot.json")
    print("  python main.py --subdivide teapot.json 2 teapot_fine.json")
    print("  python main.py --inside cube.json 0.5 0.25 0.5")


def _fail(message: str, exc: BaseException) -> int:
    from src.core.logging_utils import format_exception_message

    _LOGGER.exception("%s", message)
    print(format_exception_message("Error", str(exc), log_path=_LOG_PATH))
    return 1


def _await_statistics(job):
    """Wait for a statistics job, drawing a spinner on interactive terminals."""
    deadline = time.monotonic() + DEFAULTS.stats_timeout
    interactive = sys.stdout.isatty()
    tick = 0
    while not job.done() and time.monotonic() < deadline:
        if interactive:
            print(f"\r  Calculating {SPINNER[tick & 3]}", end="", flush=True)
            tick += 1
        time.sleep(0.05)
    if interactive:
        print("\r" + " " * 20 + "\r", end="", flush=True)
    return job.result(timeout=max(0.0, deadline - time.monotonic()))


def show_file_info(filepath: str) -> int:
    from src.core.mesh_loader import MeshLoader

    print(f"\nFile Info: {filepath}")
    print("-" * 40)

    try:
        info = MeshLoader().get_file_info(filepath)
    except OSError as e:
        return _fail(f"File info failed for {filepath}", e)

    for key, value in info.items():
        print(f"  {key}: {value}")
    return 1 if 'error' in info else 0


def show_statistics(filepath: str) -> int:
    from src.core.mesh_loader import MeshLoader
    from src.core.triangle_statistics import TriangleStatisticsCalculator

    try:
        mesh = MeshLoader().load(filepath)
        job = TriangleStatisticsCalculator().calculate_async(mesh)
        print(f"  Workers: {job.n_workers}")
        stats = _await_statistics(job)
    except Exception as e:
        return _fail(f"Statistics failed for {filepath}", e)

    print(stats.format_report())
    return 0


def subdivide_mesh(filepath: str, levels: str = "1", output_path: str | None = None) -> int:
    from src.core.mesh_loader import MeshLoader, MeshWriter
    from src.core.subdivision import subdivide

    try:
        n_levels = int(levels)
    except ValueError:
        print(f"Error: levels must be an integer, got {levels!r}")
        return 2
    if n_levels < 1 or n_levels > DEFAULTS.max_subdivision_levels:
        print(f"Error: levels must be within 1..{DEFAULTS.max_subdivision_levels}")
        return 2

    print(f"\nSubdividing: {filepath} ({n_levels} level(s))")
    print("-" * 40)

    try:
        mesh = MeshLoader().load(filepath)
        print(f"  Loaded: {mesh.n_vertices:,} vertices, {mesh.n_triangles:,} triangles")

        refined = subdivide(mesh, n_levels)
        print(f"  Refined: {refined.n_vertices:,} vertices, {refined.n_triangles:,} triangles")

        save_path = subdivided_output_path(filepath, output_path, levels=n_levels)
        MeshWriter().save(refined, save_path)
    except Exception as e:
        return _fail(f"Subdivision failed for {filepath}", e)

    print(f"  Saved: {save_path}")
    return 0


def check_point(filepath: str, coords) -> int:
    from src.core.containment import is_point_inside
    from src.core.mesh_loader import MeshLoader

    try:
        point = [float(c) for c in coords]
    except ValueError:
        print(f"Error: point coordinates must be numbers, got {list(coords)}")
        return 2

    try:
        mesh = MeshLoader().load(filepath)
        inside = is_point_inside(mesh, point)
    except Exception as e:
        return _fail(f"Containment query failed for {filepath}", e)

    print(f"Point {tuple(point)} is {'inside' if inside else 'outside'} the mesh")
    return 0


def process_mesh(filepath: str) -> int:
    """Load a mesh, report its geometry and triangle statistics."""
    from src.core.mesh_loader import MeshLoader
    from src.core.triangle_statistics import TriangleStatisticsCalculator

    print(f"\n{'=' * 60}")
    print(f"Processing: {filepath}")
    print(f"{'=' * 60}")

    try:
        print("\n[1/3] Loading mesh...")
        mesh = MeshLoader().load(filepath)
        print(f"      Vertices: {mesh.n_vertices:,}")
        print(f"      Triangles: {mesh.n_triangles:,}")
        ext = mesh.extents
        print(f"      Size: {ext[0]:.3f} x {ext[1]:.3f} x {ext[2]:.3f}")

        print("\n[2/3] Calculating triangle statistics...")
        stats = _await_statistics(TriangleStatisticsCalculator().calculate_async(mesh))
        for line in stats.format_report().splitlines():
            print(f"      {line}")

        print("\n[3/3] Saving statistics...")
        out_path = statistics_output_path(filepath)
        doc = {
            "source": str(filepath),
            "n_vertices": mesh.n_vertices,
            "n_triangles": mesh.n_triangles,
            "statistics": stats.as_dict(),
        }
        out_path.write_text(json.dumps(doc, indent=2), encoding="utf-8")
        print(f"      Saved: {out_path}")
    except Exception as e:
        return _fail(f"Processing failed for {filepath}", e)

    print(f"\n{'=' * 60}")
    print("Done!")
    print(f"{'=' * 60}")
    return 0


if __name__ == '__main__':
    sys.exit(run_cli())

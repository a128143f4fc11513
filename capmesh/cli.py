#!/usr/bin/env python3
"""
capmesh CLI

Command-line interface for capacity mesh generation.

Usage:
    capmesh build <board.json> [-o nodes.json] [--svg mesh.svg] [options]
    capmesh info <board.json>
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _load(board_arg: str):
    from .board.abstraction import BoardFormatError, load_board

    path = Path(board_arg)
    if not path.exists():
        print(f"Error: Board file not found: {path}")
        return None
    try:
        board = load_board(path)
    except BoardFormatError as e:
        print(f"Error: {e}")
        return None
    print(f"Loaded board: {path}")
    return board


def _solve_with_snapshots(pipeline, snapshot_dir: Path, max_steps: Optional[int]):
    """Step the pipeline, writing an SVG before seeding and after each phase."""
    from .mesh.pipeline import Phase
    from .mesh.visualizer import export_svg

    export_svg(pipeline.initial_visualize(), snapshot_dir / "00_input.svg")
    steps = 0
    while not pipeline.solved:
        if max_steps is not None and steps >= max_steps:
            logger.warning(
                f"Pipeline stopped after {steps} steps in {pipeline.phase.value}"
            )
            break
        phase = pipeline.phase
        pipeline.step()
        steps += 1
        if pipeline.phase is not phase and phase is Phase.SEEDING:
            export_svg(pipeline.seeding_solver.visualize(), snapshot_dir / "01_seeding.svg")
    if pipeline.solved:
        export_svg(pipeline.final_visualize(), snapshot_dir / "02_expansion.svg")
    print(f"Snapshots saved to: {snapshot_dir}")
    return pipeline.get_output()


def cmd_build(args):
    """Build the capacity mesh for a board."""
    from .mesh.config import MeshConfig, load_mesh_config
    from .mesh.layers import LayerConfigurationError
    from .mesh.pipeline import CapacityMeshPipeline
    from .mesh.visualizer import export_svg

    board = _load(args.board)
    if board is None:
        return 1

    config = MeshConfig()
    if args.config:
        try:
            config = load_mesh_config(args.config)
        except (OSError, ValueError) as e:
            print(f"Error: Cannot read options from {args.config}: {e}")
            return 1
    if args.clearance is not None:
        config.clearance = args.clearance
    if args.max_candidates is not None:
        config.seeding.max_candidates = args.max_candidates

    try:
        pipeline = CapacityMeshPipeline.from_config(board, config)
    except LayerConfigurationError as e:
        print(f"Error: {e}")
        return 1

    print(f"  Obstacles: {len(board.obstacles)}")
    print(f"  Layers: {', '.join(pipeline.obstacle_map.layer_names)}")

    if args.snapshots:
        nodes = _solve_with_snapshots(pipeline, Path(args.snapshots), args.max_steps)
    else:
        nodes = pipeline.solve(max_steps=args.max_steps)
    print(f"\nGenerated {len(nodes)} mesh nodes in {pipeline.iterations} steps")
    if not pipeline.solved:
        print(f"  Stopped early in {pipeline.phase.value} phase, output is partial")

    payload = {"meshNodes": [node.to_dict() for node in nodes]}
    if args.output:
        output_path = Path(args.output)
        output_path.write_text(json.dumps(payload, indent=2))
        print(f"Mesh nodes saved to: {output_path}")
    else:
        print(json.dumps(payload, indent=2))

    if args.svg:
        svg_path = export_svg(pipeline.final_visualize(), args.svg)
        print(f"Visualization saved to: {svg_path}")

    return 0


def cmd_info(args):
    """Show layers and obstacle index statistics for a board."""
    from .mesh.layers import LayerConfigurationError
    from .mesh.obstacle_map import build_obstacle_map

    board = _load(args.board)
    if board is None:
        return 1

    try:
        obstacle_map = build_obstacle_map(board, args.clearance)
    except LayerConfigurationError as e:
        print(f"Error: {e}")
        return 1

    bounds = board.bounds
    print(f"  Bounds: ({bounds.min_x}, {bounds.min_y}) - ({bounds.max_x}, {bounds.max_y})")
    print(f"  Outline: {'yes' if board.has_outline else 'no'}"
          f" ({len(obstacle_map.board_void_rects)} void rects)")
    stats = obstacle_map.get_stats()
    print(f"  Spatial index cell size: {stats['cell_size']:.3f}mm")
    for z, name in enumerate(obstacle_map.layer_names):
        layer_stats = stats["layers"][name]
        print(f"  z{z} {name}: {layer_stats['obstacles']} obstacles")
    return 0


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="capmesh - Capacity mesh generation for PCB autorouting",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  capmesh build board.json -o nodes.json
  capmesh build board.json --svg mesh.svg --clearance 0.1
  capmesh build board.json --config tuning.yaml --snapshots debug/
  capmesh info board.json
        """,
    )

    parser.add_argument('--version', action='version', version='capmesh 0.1.0')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # Build command
    build_parser = subparsers.add_parser('build', help='Generate capacity mesh nodes')
    build_parser.add_argument('board', help='Path to simple route JSON board description')
    build_parser.add_argument('-o', '--output', help='Write mesh nodes JSON to this file')
    build_parser.add_argument('--svg', help='Write final mesh visualization to this SVG file')
    build_parser.add_argument('--snapshots',
                              help='Directory for input, seeding and final snapshot SVGs')
    build_parser.add_argument('--config', help='YAML file with seeding/expansion options')
    build_parser.add_argument('--clearance', type=float, help='Obstacle clearance (mm)')
    build_parser.add_argument('--max-candidates', type=int,
                              help='Seeding candidate budget (default: 20000)')
    build_parser.add_argument('--max-steps', type=int,
                              help='Stop after this many pipeline steps')
    build_parser.add_argument('-v', '--verbose', action='store_true', help='Verbose output')

    # Info command
    info_parser = subparsers.add_parser('info', help='Show board layers and obstacles')
    info_parser.add_argument('board', help='Path to simple route JSON board description')
    info_parser.add_argument('--clearance', type=float, help='Obstacle clearance (mm)')
    info_parser.add_argument('-v', '--verbose', action='store_true', help='Verbose output')

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    _configure_logging(args.verbose)

    # Dispatch command
    commands = {
        'build': cmd_build,
        'info': cmd_info,
    }

    return commands[args.command](args)


if __name__ == '__main__':
    sys.exit(main())

"""
WFC toolkit - solver input preparation.

Main entry point: loads a scene, prepares the solver input and writes it
as JSON.
"""

from __future__ import annotations
import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from wfc.config import WFCConfig, default_config
from wfc.preparation import PreparationError, SlotContradiction, SolverInput, prepare_solver_input
from wfc.storage import JSONStorage, load_scene, save_solver_input


logger = logging.getLogger(__name__)


def run_preparation(
    scene_path: Path,
    config: WFCConfig,
    output: Optional[Path] = None,
) -> Tuple[SolverInput, Path]:
    """
    Prepare solver input for a scene file.

    Args:
        scene_path: Scene JSON (optionally gzipped)
        config: Preparation and storage configuration
        output: Output file, defaults to the storage directory

    Returns:
        (solver input, path of the written file)
    """
    logger.info(f"Loading scene: {scene_path}")
    scene = load_scene(scene_path)
    logger.info(f"Scene has {len(scene.modules)} modules, {len(scene.rules)} rules "
                f"and {len(scene.slots)} slots")

    solver_input = prepare_solver_input(scene.slots, scene.modules, scene.rules,
                                        config.preparation)

    compress = config.storage.compress
    if output is None:
        storage = JSONStorage(config.storage.base_path)
        stem = scene_path.name.split('.')[0]
        path = storage.save(solver_input.to_dict(), f"{stem}_solver", compress=compress)
    else:
        path = save_solver_input(solver_input, output, compress=compress)

    logger.info(f"Rules: {len(solver_input.rules)}, parts: {len(solver_input.part_names)}, "
                f"world: {solver_input.world_size}")
    if solver_input.warnings:
        logger.info(f"{len(solver_input.warnings)} warnings, see above")
    logger.info(f"Solver input saved to: {path}")
    return solver_input, path


def main(argv: Optional[List[str]] = None) -> int:
    """Command-line interface for preparing solver input."""
    parser = argparse.ArgumentParser(description="Prepare WFC solver input from a scene")

    parser.add_argument('scene', type=str,
                        help='Scene JSON file (.json or .json.gz)')
    parser.add_argument('--output', type=str, default=None,
                        help='Output file (default: <storage dir>/<scene>_solver.json)')
    parser.add_argument('--config', type=str, default=None,
                        help='Configuration JSON file')
    parser.add_argument('--padding', type=int, default=None,
                        help='Out layers around the slots (default: 1)')
    parser.add_argument('--max-parts', type=int, default=None,
                        help='Maximum number of submodules (default: 248)')
    parser.add_argument('--keep-incomplete', action='store_true',
                        help='Keep modules with connectors not described by any rule')
    parser.add_argument('--compress', action='store_true',
                        help='Gzip the output')
    parser.add_argument('--verbose', action='store_true',
                        help='Debug logging')

    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    config = WFCConfig.load(args.config) if args.config else default_config()
    if args.padding is not None:
        config.preparation.padding = args.padding
    if args.max_parts is not None:
        config.preparation.max_parts = args.max_parts
    if args.keep_incomplete:
        config.preparation.drop_incomplete_modules = False
    if args.compress:
        config.storage.compress = True

    for issue in config.validate():
        logger.warning(f"Config: {issue}")

    try:
        run_preparation(Path(args.scene), config,
                        Path(args.output) if args.output else None)
    except SlotContradiction as e:
        logger.error(str(e))
        for slot in e.slots:
            logger.error(f"  {slot}")
        return 1
    except PreparationError as e:
        logger.error(str(e))
        return 1

    logger.info("Done!")
    return 0


if __name__ == "__main__":
    sys.exit(main())

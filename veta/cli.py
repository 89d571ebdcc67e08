"""
Command-line interface for scene validation.

Usage:
    veta-validate config.yaml [--output OUTPUT] [--parts views,intrinsics] [-v]
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import io
from .config import Config, parse_parts
from .scene import Veta, ValidationResult, valid_ids


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


def print_summary(veta: Veta, result: ValidationResult) -> None:
    print("\n" + "=" * 60)
    print("SCENE SUMMARY")
    print("=" * 60)
    print(f"Views:                  {len(veta.views)}")
    print(f"Poses:                  {len(veta.poses)}")
    print(f"Intrinsics:             {len(veta.intrinsics)}")
    print(f"Landmarks:              {len(veta.structure)}")
    print(f"Control points:         {len(veta.control_points)}")
    print(f"\nOrphan intrinsics:      {result.orphan_intrinsics}")
    print(f"Orphan poses:           {result.orphan_poses}")
    print(f"\nResult:                 {'PASSED' if result else 'FAILED'}")
    print("=" * 60)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(
        description='Check the consistency of an SfM scene and its camera models',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
    # Validate the scene named in the configuration
    veta-validate config.yaml

    # Only check views and intrinsics, then save as binary
    veta-validate config.yaml --parts views,intrinsics --output scene.bin

    # Verbose output
    veta-validate config.yaml -v
'''
    )

    parser.add_argument(
        'config',
        type=str,
        help='Path to YAML configuration file'
    )

    parser.add_argument(
        '--output', '-o',
        type=str,
        default=None,
        help='Save the scene to this file (json, yaml or bin)'
    )

    parser.add_argument(
        '--parts', '-p',
        type=str,
        default=None,
        help='Comma separated scene parts (default: from configuration)'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose output'
    )

    args = parser.parse_args(argv)

    # Setup logging
    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    try:
        # Load configuration
        config = Config.from_yaml(args.config)
        parts = parse_parts(args.parts.split(',')) if args.parts else config.parts_flag()

        veta = Veta()
        if config.scene:
            if not Path(config.scene).exists():
                raise FileNotFoundError(f"Scene file not found: {config.scene}")
            if not io.load(veta, config.scene, parts, check_ids=False):
                logger.error(f"Could not read scene {config.scene}")
                return 1

        # Add configured cameras missing from the scene
        for cam_id, camera in config.cameras.items():
            if cam_id not in veta.intrinsics:
                veta.intrinsics[cam_id] = camera.build()
                logger.debug(f"Added camera {cam_id}: {veta.intrinsics[cam_id]!r}")

        if config.check_orphans:
            result = valid_ids(veta, parts)
        else:
            result = ValidationResult(True, 'Orphan check disabled')

        print_summary(veta, result)

        output = args.output or config.output
        if output and not io.save(veta, output, parts):
            return 1

        if result:
            logger.info("Validation PASSED")
            return 0
        logger.error(f"Validation FAILED: {result.message}")
        return 1

    except FileNotFoundError as e:
        logger.error(f"File not found: {e}")
        return 1
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())

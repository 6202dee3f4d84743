#!/usr/bin/env python3
"""
Dive log import CLI.

Usage:
    python run_import.py macdive MacDive.sqlite      # Import a MacDive store
    python run_import.py uddf export.uddf            # Import a UDDF file
    python run_import.py load logbook.uddf.gz        # Pick the importer by extension
    python run_import.py demo                        # Show the demo dives
"""

import argparse
import logging
import os
import sys
from typing import List

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from dive_logbook import DiveImportError, demo_dives, load_effective_config
from dive_logbook.models import Dive
from dive_logbook.synthetic import SyntheticProfileGenerator
from importers import MacDiveImporter, UDDFImporter, load_dives


def setup_logging(level: str = "INFO", verbose: bool = False):
    """Set up logging configuration."""
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    console_level = logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=console_level,
        format=log_format,
        handlers=[logging.StreamHandler()]
    )


def print_dives(dives: List[Dive], title: str):
    """Print a per-dive summary followed by aggregate statistics."""
    print("\n" + "=" * 60)
    print(title)
    print("=" * 60)

    if not dives:
        print("\nNo dives found.")
        return

    for dive in dives:
        when = dive.start_time.strftime("%Y-%m-%d %H:%M") if dive.start_time else "unknown date"
        site = dive.site.name if dive.site and dive.site.name else "-"
        print(
            f"#{dive.number:<4d} {when}  {dive.duration_minutes:5.1f} min  "
            f"max {dive.max_depth_m:5.1f} m  avg {dive.avg_depth_m:5.1f} m  "
            f"{len(dive.samples):4d} samples  {site}"
        )
        if dive.buddies:
            print(f"      buddies: {', '.join(b.name for b in dive.buddies)}")
        if dive.tags:
            print(f"      tags: {', '.join(dive.tags)}")
        if dive.notes:
            print(f"      notes: {dive.notes}")

    depths = [d.max_depth_m for d in dives]
    times = [d.duration_minutes for d in dives]

    print(f"\nTotal dives: {len(dives)}")
    print("\n--- Max Depth Statistics (m) ---")
    print(f"  Min: {min(depths):.1f}")
    print(f"  Max: {max(depths):.1f}")
    print(f"  Mean: {sum(depths)/len(depths):.1f}")

    print("\n--- Duration Statistics (min) ---")
    print(f"  Min: {min(times):.1f}")
    print(f"  Max: {max(times):.1f}")
    print(f"  Mean: {sum(times)/len(times):.1f}")
    print(f"  Total: {sum(times)/60:.1f} h")

    print("\n--- Depth Distribution ---")
    depth_bins = [(0, 10), (10, 20), (20, 30), (30, 40), (40, 200)]
    for low, high in depth_bins:
        count = sum(1 for d in depths if low <= d < high)
        print(f"  {low:3d}-{high:3d}m: {count:5d} dives")

    print("\n" + "=" * 60)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Import dive logs into the canonical dive model",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run_import.py macdive ~/Library/Application\\ Support/MacDive/MacDive.sqlite
  python run_import.py uddf export.uddf
  python run_import.py load export.uddf.gz
  python run_import.py --verbose demo
        """
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to a YAML config file (default: config.yaml in the project root)"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging"
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    macdive_parser = subparsers.add_parser("macdive", help="Import a MacDive SQLite store")
    macdive_parser.add_argument("path", help="Path to MacDive.sqlite")

    uddf_parser = subparsers.add_parser("uddf", help="Import a UDDF XML file")
    uddf_parser.add_argument("path", help="Path to the .uddf/.xml file")

    load_parser = subparsers.add_parser("load", help="Import a file, choosing the importer by extension")
    load_parser.add_argument("path", help="Path to the dive log")

    subparsers.add_parser("demo", help="Show the built-in demo dives")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        config = load_effective_config(args.config)
    except ValueError as e:
        print(f"ERROR: {e}")
        return 2

    setup_logging(config["logging"]["level"], args.verbose)
    generator = SyntheticProfileGenerator.from_config(config)

    try:
        if args.command == "macdive":
            dives = MacDiveImporter(args.path, generator=generator).import_all()
        elif args.command == "uddf":
            dives = UDDFImporter(config=config, generator=generator).import_file(args.path)
        elif args.command == "load":
            dives = load_dives(args.path, config=config)
        else:
            dives = demo_dives(generator=generator)
    except (DiveImportError, ValueError, OSError) as e:
        print(f"ERROR: {e}")
        return 1

    print_dives(dives, f"{args.command.upper()} IMPORT")
    return 0


if __name__ == "__main__":
    sys.exit(main())

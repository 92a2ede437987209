#!/usr/bin/env python

"""
Route Planner - Delivery Route Statistics

Reads planned visit schedules exported as semicolon-delimited CSV, geocodes the
delivery addresses with a persistent address cache, and reports per-day route
distance, time and stop counts. Two exports can be compared to see how much
distance an optimized planning saves.

Usage:
    main.py [command] [files...] [options]

    Default command is 'process-route' if none specified.

Commands:
    process-route: Geocode a route export and write per-day statistics (default)
    compare-routes: Compare an original route export against an optimized one
    export-cache: Print or write the current address cache as JSON
    cache-stats: Display address cache statistics
    cache-clear: Remove the persisted address cache, keeping the bundled defaults

Options:
    --date: Restrict summaries to one calendar date (YYYY-MM-DD)
    --dry-run: Show what would be done without writing output files
    --verbose: Enable verbose logging output
    --output-dir: Path to output directory (default: results)
    --output: File to write the exported cache to (export-cache only)
"""

import argparse
import asyncio
import json
import logging
import sys
from config import INPUT_DIR, OUTPUT_DIR, ROUTE_OUTPUT_SUFFIX
from core.models import RouteDataset
from core.route_parser import RouteParseError, export_address_cache, load_route_file
from core.statistics import compare_routes, filter_dataset, summarize
from datetime import UTC, datetime
from pathlib import Path
from utils.address_cache import AddressCache
from utils.geocoding import Geocoder

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def resolve_input(file_arg: str) -> Path | None:
    """Find a route file as given, or inside the input directory"""
    path = Path(file_arg)
    if path.exists():
        return path

    candidate = INPUT_DIR / file_arg
    if candidate.exists():
        return candidate

    logger.error(f"Route file not found: {file_arg}")
    return None


def write_route_output(dataset: RouteDataset, source_file: Path, output_dir: Path) -> Path:
    """Write a processed route with metadata to the output directory"""
    output_dir.mkdir(parents=True, exist_ok=True)
    output_file = output_dir / f"{source_file.stem}{ROUTE_OUTPUT_SUFFIX}"

    output = {
        'metadata': {
            'processed_date': datetime.now(UTC).isoformat(),
            'source_file': str(source_file),
            'total_locations': len(dataset.records),
            'total_dates': len(dataset.unique_dates),
        },
        **dataset.to_dict(),
    }

    with open(output_file, 'w', encoding='utf-8') as f:
        json.dump(output, f, indent=2, ensure_ascii=False)

    return output_file


def print_route_summary(dataset: RouteDataset, date: str | None = None):
    summary = summarize(dataset, date)
    view = filter_dataset(dataset, date)

    print("\n=== Route Statistics ===")
    print(f"Date: {date or 'all'}")
    print(f"Locations: {len(view.records)}")
    print(f"Total distance: {summary.distance:.2f} km")
    print(f"Total time: {summary.total_time:.2f} hours")
    print(f"Locations on routed days: {summary.location_count}")

    if view.daily_stats:
        print("\nDate        Distance (km)  Time (h)  Locations")
        for stats in view.daily_stats:
            print(f"{stats.date}  {stats.distance:>13.2f}  {stats.total_time:>8.2f}  {stats.location_count:>9}")

    if dataset.failed_addresses:
        print(f"\nFailed to geocode {len(dataset.failed_addresses)} addresses")


async def run_process_route(files: list[str], output_dir: Path, date: str | None, dry_run: bool) -> bool:
    if len(files) != 1:
        logger.error("process-route expects exactly one route file")
        return False

    source_file = resolve_input(files[0])
    if source_file is None:
        return False

    geocoder = Geocoder(AddressCache())
    dataset = await load_route_file(source_file, geocoder)

    if dry_run:
        logger.info(f"DRY RUN: Would write {output_dir / (source_file.stem + ROUTE_OUTPUT_SUFFIX)}")
    else:
        output_file = write_route_output(dataset, source_file, output_dir)
        logger.info(f"Output written to {output_file}")

    print_route_summary(dataset, date)
    return True


async def run_compare_routes(files: list[str], date: str | None) -> bool:
    if len(files) != 2:
        logger.error("compare-routes expects an original and an optimized route file")
        return False

    original_file, optimized_file = (resolve_input(f) for f in files)
    if original_file is None or optimized_file is None:
        return False

    # One cache for both parses
    geocoder = Geocoder(AddressCache())
    original = await load_route_file(original_file, geocoder)
    optimized = await load_route_file(optimized_file, geocoder)
    comparison = compare_routes(original, optimized, date)

    print("\n=== Route Comparison ===")
    print(f"Date: {date or 'all'}")
    print(f"Original distance: {comparison.original_distance:.2f} km")
    print(f"Optimized distance: {comparison.optimized_distance:.2f} km")
    print(f"Distance saved: {comparison.saved_distance:.2f} km")
    print(f"Improvement: {comparison.saved_percentage:.2f}%")
    return True


def parse_arguments(argv: list[str] | None = None):
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        description="Route Planner - Delivery Route Statistics",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument('command', nargs='?', default='process-route', help='Command to execute (default: process-route)')
    parser.add_argument('files', nargs='*', help='Route CSV file(s) for process-route and compare-routes')
    parser.add_argument('--date', type=str, help='Restrict summaries to one calendar date (YYYY-MM-DD)')
    parser.add_argument('--dry-run', action='store_true', help='Show what would be done without making changes')
    parser.add_argument('--verbose', action='store_true', help='Enable verbose logging output')
    parser.add_argument('--output-dir', type=Path, default=OUTPUT_DIR, help='Path to output directory')
    parser.add_argument('--output', type=Path, help='File to write the exported cache to (export-cache only)')

    return parser.parse_args(argv)


def setup_logging(verbose: bool = False):
    """Configure logging based on verbosity level"""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format='%(asctime)s - %(levelname)s - %(message)s', force=True)


def main(argv: list[str] | None = None):
    args = parse_arguments(argv)

    # Setup logging
    setup_logging(args.verbose)

    command = args.command

    if command in ("process-route", "compare-routes"):
        try:
            if command == "process-route":
                success = asyncio.run(run_process_route(args.files, args.output_dir, args.date, args.dry_run))
            else:
                success = asyncio.run(run_compare_routes(args.files, args.date))
        except RouteParseError as e:
            logger.error(f"Error processing route file: {e}")
            success = False
        except OSError as e:
            logger.error(f"Error reading route file: {e}")
            success = False
        sys.exit(0 if success else 1)

    elif command == "export-cache":
        snapshot = export_address_cache(AddressCache())

        if args.output is None:
            print(snapshot)
            sys.exit(0)

        if args.dry_run:
            logger.info(f"DRY RUN: Would write address cache to {args.output}")
            sys.exit(0)

        try:
            args.output.parent.mkdir(parents=True, exist_ok=True)
            with open(args.output, 'w', encoding='utf-8') as f:
                f.write(snapshot)
            logger.info(f"Address cache written to {args.output}")
        except OSError as e:
            logger.error(f"Failed to write address cache: {e}")
            sys.exit(1)
        sys.exit(0)

    elif command == "cache-stats":
        cache = AddressCache()
        stats = cache.get_stats()

        print("\n=== Address Cache Statistics ===")
        print(f"Total entries: {stats['total_entries']}")
        print(f"Bundled entries: {stats['bundled_entries']}")
        print(f"Persisted entries: {stats['persisted_entries']}")
        print(f"Bundled file: {stats['bundled_file']}")
        print(f"Cache file: {stats['cache_file']}")
        sys.exit(0)

    elif command == "cache-clear":
        if args.dry_run:
            logger.info("DRY RUN: Would clear the persisted address cache")
            sys.exit(0)

        cache = AddressCache()
        success = cache.clear()
        if success:
            print("Cache cleared successfully")
        sys.exit(0 if success else 1)

    else:
        print(__doc__.strip())


if __name__ == "__main__":
    main()

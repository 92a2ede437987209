#!/usr/bin/env python

"""Merge geocoded addresses from an exported snapshot into the bundled address cache.

Run from the repository root: python -m scripts.promote_address_cache [snapshot]
"""

import argparse
import json
import sys
from decouple import config
from pathlib import Path
from utils.address_cache import coerce_coordinate

WORK_DIR = Path(__file__).resolve().parents[1]
BUNDLED_PATH = Path(config('BUNDLED_ADDRESS_CACHE', default=str(WORK_DIR / 'data' / 'address_cache.json')))
SNAPSHOT_PATH = Path(config('CACHE_DIR', default='data')) / config('ADDRESS_CACHE_FILE', default='address_cache_overlay.json')


def load_mapping(path):
    """Load an address -> [lat, lon] mapping, skipping malformed entries."""
    with open(path, encoding='utf-8') as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise ValueError(f"{path} does not contain a JSON object")

    mapping = {}
    for address, coords in data.items():
        coordinate = coerce_coordinate(coords)
        if coordinate is None:
            print(f"Skipping malformed entry for '{address}': {coords!r}")
            continue
        mapping[address] = list(coordinate)
    return mapping


def merge_mappings(bundled, snapshot, overwrite=False):
    """Return the merged mapping and the number of added and updated addresses."""
    merged = dict(bundled)
    added = updated = 0

    for address, coords in snapshot.items():
        if address not in merged:
            merged[address] = coords
            added += 1
        elif overwrite and merged[address] != coords:
            merged[address] = coords
            updated += 1

    return merged, added, updated


def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument('snapshot', nargs='?', type=Path, default=SNAPSHOT_PATH, help='Exported cache snapshot to promote')
    parser.add_argument('--bundled', type=Path, default=BUNDLED_PATH, help='Bundled address cache to update')
    parser.add_argument('--overwrite', action='store_true', help='Replace bundled coordinates for existing addresses')
    parser.add_argument('--dry-run', action='store_true', help='Report changes without writing')
    args = parser.parse_args(argv)

    if not args.snapshot.exists():
        print(f"Snapshot not found: {args.snapshot}")
        return 1

    try:
        snapshot = load_mapping(args.snapshot)
        bundled = load_mapping(args.bundled) if args.bundled.exists() else {}
    except (json.JSONDecodeError, ValueError) as e:
        print(f"Could not read address cache: {e}")
        return 1

    merged, added, updated = merge_mappings(bundled, snapshot, overwrite=args.overwrite)

    print("\nPromotion summary:")
    print(f"  - Snapshot entries: {len(snapshot)}")
    print(f"  - Added: {added}")
    print(f"  - Updated: {updated}")
    print(f"  - Bundled entries after merge: {len(merged)}")

    if args.dry_run:
        print("DRY RUN: bundled cache not modified")
        return 0

    with open(args.bundled, 'w', encoding='utf-8') as f:
        json.dump(dict(sorted(merged.items())), f, indent=2, ensure_ascii=False)
    print(f"  - Written to: {args.bundled}")
    return 0


if __name__ == "__main__":
    sys.exit(main())

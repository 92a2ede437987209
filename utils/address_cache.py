import json
import logging
from config import ADDRESS_CACHE_FILE, BUNDLED_ADDRESS_CACHE, CACHE_DIR
from core.models import Coordinate
from pathlib import Path

logger = logging.getLogger(__name__)


def coerce_coordinate(value) -> Coordinate | None:
    """Read a stored [lat, lon] pair, numeric strings included; None if malformed"""
    if not isinstance(value, (list, tuple)) or len(value) < 2:
        return None
    try:
        return float(value[0]), float(value[1])
    except (TypeError, ValueError):
        return None


class AddressCache:
    """Address to coordinate cache: bundled defaults with a persisted overlay on top"""

    def __init__(self, cache_file: Path = CACHE_DIR / ADDRESS_CACHE_FILE, bundled_file: Path = BUNDLED_ADDRESS_CACHE):
        self.cache_file = cache_file
        self.bundled_file = bundled_file
        self.session_hits = 0
        self.session_misses = 0
        self.bundled_count = 0
        self.overlay_count = 0
        self.entries = self.load()

    def load(self) -> dict[str, Coordinate]:
        """Load bundled defaults and merge the persisted overlay, overlay wins on collision"""
        bundled = self._read_mapping(self.bundled_file, 'bundled address cache', required=True)
        overlay = self._read_mapping(self.cache_file, 'persisted address cache')
        self.bundled_count = len(bundled)
        self.overlay_count = len(overlay)

        merged = {**bundled, **overlay}
        logger.debug(f"Loaded {len(bundled)} bundled and {len(overlay)} persisted addresses ({len(merged)} total)")
        return merged

    def _read_mapping(self, path: Path, label: str, required: bool = False) -> dict[str, Coordinate]:
        if not path.exists():
            if required:
                logger.warning(f"No {label} found at {path}, starting empty")
            else:
                logger.debug(f"No {label} at {path} yet")
            return {}

        try:
            with open(path, encoding='utf-8') as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
            logger.warning(f"Could not load {label} from {path}, ignoring it: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Ignoring {label} in {path}: expected a JSON object")
            return {}

        mapping = {}
        for address, coords in data.items():
            coordinate = coerce_coordinate(coords)
            if coordinate is None:
                logger.debug(f"Skipping malformed cache entry for '{address}': {coords!r}")
                continue
            mapping[address] = coordinate

        return mapping

    def get(self, address: str) -> Coordinate | None:
        """Get cached coordinates for a normalized address"""
        coordinate = self.entries.get(address)
        if coordinate is None:
            self.session_misses += 1
        else:
            self.session_hits += 1
        return coordinate

    def put(self, address: str, coordinate: Coordinate) -> bool:
        """Store coordinates and persist the whole mapping, returns False when persisting failed"""
        self.entries[address] = (float(coordinate[0]), float(coordinate[1]))
        return self._save_cache()

    def items(self):
        return self.entries.items()

    def __contains__(self, address: str) -> bool:
        return address in self.entries

    def __len__(self) -> int:
        return len(self.entries)

    def export_snapshot(self) -> str:
        """Serialize the current mapping as pretty-printed JSON"""
        return json.dumps(self._serializable(), indent=2, ensure_ascii=False)

    def _serializable(self) -> dict[str, list[float]]:
        return {address: [lat, lon] for address, (lat, lon) in self.entries.items()}

    def get_stats(self) -> dict:
        """Get cache statistics"""
        total_requests = self.session_hits + self.session_misses
        hit_ratio = (self.session_hits / total_requests * 100) if total_requests > 0 else 0

        return {
            'total_entries': len(self.entries),
            'bundled_entries': self.bundled_count,
            'persisted_entries': self.overlay_count,
            'session_hits': self.session_hits,
            'session_misses': self.session_misses,
            'hit_ratio_percent': round(hit_ratio, 1),
            'cache_file': str(self.cache_file),
            'bundled_file': str(self.bundled_file),
        }

    def clear(self) -> bool:
        """Drop the persisted overlay and fall back to the bundled defaults"""
        entry_count = len(self.entries)
        try:
            self.cache_file.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove persisted address cache {self.cache_file}: {e}")
            return False

        self.entries = self.load()
        self.session_hits = 0
        self.session_misses = 0
        logger.info(f"Cleared persisted address cache ({entry_count} entries before, {len(self.entries)} bundled remain)")
        return True

    def _save_cache(self) -> bool:
        """Save the full mapping to the overlay file"""
        try:
            self.cache_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.cache_file, 'w', encoding='utf-8') as f:
                json.dump(self._serializable(), f, indent=2, ensure_ascii=False)
        except (OSError, TypeError, ValueError) as e:
            logger.warning(f"Failed to persist address cache to {self.cache_file}: {e}")
            return False

        self.overlay_count = len(self.entries)
        return True

import asyncio
import logging
import random
import time
from collections import defaultdict
from config import (
    CITY_JITTER,
    DEFAULT_COUNTRY,
    FALLBACK_CENTER,
    FALLBACK_SPREAD,
    GEOCODING_TIMEOUT,
    MIN_API_INTERVAL,
    NOMINATIM_USER_AGENT,
)
from core.models import Coordinate
from geopy.exc import GeopyError
from geopy.geocoders import Nominatim
from utils.address_cache import AddressCache

logger = logging.getLogger(__name__)


def extract_address(address_field: str, country: str = DEFAULT_COUNTRY) -> str:
    """Reduce a "company, city, street" delivery address to a geocodable query"""
    parts = [part.strip() for part in address_field.split(',')]

    if len(parts) >= 3:
        return f"{parts[2]}, {parts[1]}, {country}"
    elif len(parts) == 2:
        return f"{parts[1]}, {country}"
    return address_field


def _first_segment(address: str) -> str:
    return address.split(',')[0].strip().lower()


class Geocoder:
    """Resolve normalized addresses to coordinates, falling back until something sticks

    Lookup order: exact cache hit, partial cache hit on the first address
    segment, Nominatim search for the full address, Nominatim search for the
    city with a small jitter, and finally a randomized point near the
    configured center. Every resolution that was not an exact hit is written
    back to the cache.
    """

    def __init__(
        self,
        cache: AddressCache,
        geocoder=None,
        rng: random.Random | None = None,
        country: str = DEFAULT_COUNTRY,
        min_api_interval: float = MIN_API_INTERVAL,
        timeout: int = GEOCODING_TIMEOUT,
    ):
        self.cache = cache
        self.geocoder = geocoder or Nominatim(user_agent=NOMINATIM_USER_AGENT)
        self.rng = rng or random.Random()
        self.country = country
        self.min_api_interval = min_api_interval
        self.timeout = timeout
        self.last_api_call: float | None = None
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._lock_users: defaultdict[str, int] = defaultdict(int)

    async def resolve(self, address: str) -> Coordinate:
        """Get coordinates for a normalized address, never raises"""
        lock = self._locks[address]
        self._lock_users[address] += 1
        try:
            async with lock:
                return await self._resolve(address)
        finally:
            # Locks only live while an address is in flight
            self._lock_users[address] -= 1
            if not self._lock_users[address]:
                del self._lock_users[address]
                del self._locks[address]

    async def _resolve(self, address: str) -> Coordinate:
        cached = self.cache.get(address)
        if cached is not None:
            return cached

        partial = self.find_partial_match(address)
        if partial is not None:
            cached_address, coords = partial
            logger.info(f"Using partial match from cache: '{address}' -> '{cached_address}'")
            self.cache.put(address, coords)
            return coords

        try:
            coords = await self.lookup(address)
            if coords is not None:
                self.cache.put(address, coords)
                return coords

            coords = await self.lookup_city(address)
            if coords is not None:
                self.cache.put(address, coords)
                logger.info(f"Using city fallback for '{address}': {coords}")
                return coords

            logger.warning(f"No geocoding results found for '{address}', using default location")

        except (GeopyError, ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Error geocoding address '{address}': {e}")

        coords = self.default_location()
        self.cache.put(address, coords)
        return coords

    def find_partial_match(self, address: str) -> tuple[str, Coordinate] | None:
        """Find a cached address whose first segment contains, or is contained in, the query's"""
        query = _first_segment(address)
        if not query:
            return None

        for cached_address, coords in self.cache.items():
            candidate = _first_segment(cached_address)
            if not candidate:
                continue
            if query in candidate or candidate in query:
                return cached_address, coords

        return None

    async def lookup(self, query: str) -> Coordinate | None:
        """Search Nominatim for the highest ranked match"""
        await self.enforce_rate_limit()
        location = await asyncio.to_thread(self.geocoder.geocode, query, exactly_one=True, timeout=self.timeout)
        if not location:
            return None
        return float(location.latitude), float(location.longitude)

    async def lookup_city(self, address: str) -> Coordinate | None:
        """Search for the city segment only and jitter the result"""
        parts = address.split(',')
        if len(parts) < 2 or not parts[1].strip():
            return None

        city_query = f"{parts[1].strip()}, {self.country}"
        logger.info(f"Trying fallback geocoding with city: '{city_query}'")

        coords = await self.lookup(city_query)
        if coords is None:
            return None

        return coords[0] + self._jitter(), coords[1] + self._jitter()

    def _jitter(self) -> float:
        return (self.rng.random() - 0.5) * CITY_JITTER

    def default_location(self) -> Coordinate:
        """Randomized point near the configured center"""
        center_lat, center_lon = FALLBACK_CENTER
        return center_lat + self.rng.random() * FALLBACK_SPREAD, center_lon + self.rng.random() * FALLBACK_SPREAD

    async def enforce_rate_limit(self):
        """Enforce rate limiting for API calls (1 request per second by default)"""
        if self.last_api_call is not None:
            time_since_last = time.monotonic() - self.last_api_call
            if time_since_last < self.min_api_interval:
                sleep_time = self.min_api_interval - time_since_last
                logger.debug(f"Rate limiting: sleeping {sleep_time:.2f} seconds")
                await asyncio.sleep(sleep_time)

        self.last_api_call = time.monotonic()

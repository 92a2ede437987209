from decouple import Csv, config
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent

# Directory paths
INPUT_DIR = Path(config('INPUT_DIR', default='routes'))
OUTPUT_DIR = Path(config('OUTPUT_DIR', default='results'))
CACHE_DIR = Path(config('CACHE_DIR', default='data'))

# File names
ADDRESS_CACHE_FILE = config('ADDRESS_CACHE_FILE', default='address_cache_overlay.json')
BUNDLED_ADDRESS_CACHE = Path(config('BUNDLED_ADDRESS_CACHE', default=str(BASE_DIR / 'data' / 'address_cache.json')))
ROUTE_OUTPUT_SUFFIX = '_route.json'

# Geocoding service
NOMINATIM_USER_AGENT = config('NOMINATIM_USER_AGENT', default='RoutePlannerApp/1.0')
GEOCODING_TIMEOUT = config('GEOCODING_TIMEOUT', default=10, cast=int)
MIN_API_INTERVAL = config('MIN_API_INTERVAL', default=1.0, cast=float)  # Nominatim allows 1 request per second
DEFAULT_COUNTRY = config('DEFAULT_COUNTRY', default='Netherlands')

# Fallback constants
FALLBACK_CENTER = tuple(config('FALLBACK_CENTER', default='52.1326,5.2913', cast=Csv(float)))
FALLBACK_SPREAD = config('FALLBACK_SPREAD', default=0.1, cast=float)  # degrees, added on top of FALLBACK_CENTER
CITY_JITTER = config('CITY_JITTER', default=0.01, cast=float)  # full width, centered on the city point

# Distance constants
EARTH_RADIUS_KM = 6371.0
STATS_PRECISION = 2

# CSV input
CSV_DELIMITER = config('CSV_DELIMITER', default=';')
CSV_ENCODING = 'utf-8-sig'
CSV_DAYFIRST = config('CSV_DAYFIRST', default=False, cast=bool)

# Column mapping for the subscription planning export
CSV_COLUMNS = {
    'name': 'Abonnement',
    'address': 'Abonnement/Afleveradres',
    'external_id': 'Externe ID',
    'begin_datetime': 'Begin datum-tijd',
    'start_date': 'Startdatum',
    'end_datetime': 'Eind datum-tijd',
    'required_hours': 'Benodigde tijd (uren)',
    'assigned_to': 'Toegewezen aan',
    'notes': 'Notities',
    'visit_type': 'Soort bezoek',
}
REQUIRED_CSV_FIELDS = ['name', 'address']

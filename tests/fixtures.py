"""Test data fixtures for route planner tests"""

import json
from pathlib import Path
from unittest.mock import Mock

HEADER = [
    'Externe ID',
    'Abonnement',
    'Abonnement/Afleveradres',
    'Begin datum-tijd',
    'Startdatum',
    'Eind datum-tijd',
    'Benodigde tijd (uren)',
    'Toegewezen aan',
]


class RouteTestData:
    """Centralized test data fixtures"""

    @staticmethod
    def get_bundled_cache():
        """Small bundled address cache"""
        return {
            "Amsterdam, Netherlands": [52.3727598, 4.8936041],
            "Utrecht, Netherlands": [52.0907006, 5.1215634],
            "Dam 1, Amsterdam, Netherlands": [52.3731339, 4.8924534],
        }

    @staticmethod
    def build_csv(rows, header=HEADER):
        """Build a semicolon-delimited export from row lists"""
        lines = [';'.join(header)]
        lines.extend(';'.join(row) for row in rows)
        return '\n'.join(lines) + '\n'

    @classmethod
    def get_three_row_csv(cls, second_date='2024-03-04 13:00:00'):
        """Three visits where the middle row has no delivery address"""
        return cls.build_csv(
            [
                ['EXT-1', 'Bakkerij Jansen', 'Jansen BV, Amsterdam, Dam 1', '2024-03-04 09:00:00', '', '2024-03-04 10:30:00', '1,5', 'Piet'],
                ['EXT-2', 'Slagerij Vos', '', '2024-03-04 11:00:00', '', '', '2', 'Piet'],
                ['', 'Kantoor Utrecht', 'Kantoor BV, Utrecht, Stationsplein 1', second_date, '', '', '2,5', 'Klaas'],
            ]
        )

    @staticmethod
    def make_location(latitude, longitude):
        """geopy-style Location stand-in"""
        return Mock(latitude=latitude, longitude=longitude)

    @classmethod
    def make_nominatim(cls, results=None):
        """Nominatim stand-in answering from a query -> (lat, lon) mapping"""
        results = results or {}
        geocoder = Mock()

        def geocode(query, exactly_one=True, timeout=None):
            coords = results.get(query)
            return cls.make_location(*coords) if coords else None

        geocoder.geocode.side_effect = geocode
        return geocoder

    @classmethod
    def create_bundled_cache_file(cls, test_dir: Path) -> Path:
        """Write the bundled cache fixture and return its path"""
        test_dir.mkdir(parents=True, exist_ok=True)
        path = test_dir / 'address_cache.json'
        with open(path, 'w') as f:
            json.dump(cls.get_bundled_cache(), f, indent=2)
        return path

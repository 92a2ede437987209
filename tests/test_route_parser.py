import asyncio
import json
import pytest
from core.route_parser import RouteParseError, RouteParser, export_address_cache, load_route_file, process_route
from tests.fixtures import RouteTestData
from unittest.mock import AsyncMock
from utils.address_cache import AddressCache
from utils.geocoding import Geocoder


class TestRouteParser:
    """Test suite for RouteParser"""

    @pytest.fixture
    def cache(self, tmp_path):
        """Create cache instance with temporary files"""
        bundled_file = RouteTestData.create_bundled_cache_file(tmp_path / "bundled")
        return AddressCache(cache_file=tmp_path / "overlay.json", bundled_file=bundled_file)

    @pytest.fixture
    def nominatim(self):
        """Nominatim stand-in that knows the Utrecht office"""
        return RouteTestData.make_nominatim({"Stationsplein 1, Utrecht, Netherlands": (52.0894444, 5.1100574)})

    @pytest.fixture
    def geocoder(self, cache, nominatim):
        return Geocoder(cache, geocoder=nominatim, min_api_interval=0)

    @pytest.fixture
    def parser(self, geocoder):
        return RouteParser(geocoder)

    def test_parse_required_hours(self, parser):
        """Test hours parsing with decimal commas"""
        assert parser.parse_required_hours("2,5") == 2.5
        assert parser.parse_required_hours("3.25") == 3.25
        assert parser.parse_required_hours(None) == 0
        assert parser.parse_required_hours("") == 0
        assert parser.parse_required_hours("twee") == 0
        assert parser.parse_required_hours("-1") == 0

    def test_parse_timestamp(self, parser):
        """Test timestamp parsing"""
        assert parser.parse_timestamp("2024-03-04 09:00:00") == "2024-03-04T09:00:00"
        assert parser.parse_timestamp("2024-03-04") == "2024-03-04T00:00:00"
        assert parser.parse_timestamp("2024-03-04T09:00:00+01:00") == "2024-03-04T09:00:00+01:00"

        # Invalid format
        assert parser.parse_timestamp("invalid-date") is None
        assert parser.parse_timestamp(None) is None

    def test_three_rows_different_dates(self, geocoder):
        """Test the row without an address is skipped and no date qualifies for stats"""
        csv_text = RouteTestData.get_three_row_csv(second_date="2024-03-05 13:00:00")
        dataset = asyncio.run(process_route(csv_text, geocoder))

        assert len(dataset.records) == 2
        assert dataset.unique_dates == ["2024-03-04", "2024-03-05"]
        assert dataset.daily_stats == []
        assert dataset.failed_addresses == []

    def test_three_rows_same_date(self, geocoder):
        """Test two geocoded records on one date produce one stats entry"""
        dataset = asyncio.run(process_route(RouteTestData.get_three_row_csv(), geocoder))

        assert len(dataset.records) == 2
        assert dataset.unique_dates == ["2024-03-04"]
        assert len(dataset.daily_stats) == 1

        stats = dataset.daily_stats[0]
        assert stats.date == "2024-03-04"
        assert stats.location_count == 2
        assert stats.total_time == 4.0
        assert stats.distance > 0

    def test_record_fields(self, geocoder):
        """Test record fields are mapped from the export columns"""
        dataset = asyncio.run(process_route(RouteTestData.get_three_row_csv(), geocoder))
        first, second = dataset.records

        assert first.id == "EXT-1"
        assert first.name == "Bakkerij Jansen"
        assert first.address == "Jansen BV, Amsterdam, Dam 1"
        assert first.coordinates == (52.3731339, 4.8924534)
        assert first.required_hours == 1.5
        assert first.date == "2024-03-04T09:00:00"
        assert first.start_time == "2024-03-04T09:00:00"
        assert first.end_time == "2024-03-04T10:30:00"
        assert first.assigned_to == "Piet"
        assert first.notes is None

        # Blank external ID falls back to the output index
        assert second.id == "loc_1"
        assert second.coordinates == (52.0894444, 5.1100574)
        assert second.required_hours == 2.5

    def test_start_date_fallback(self, geocoder):
        """Test the start date is used when there is no begin datetime"""
        csv_text = RouteTestData.build_csv(
            [['', 'Kantoor', 'Kantoor BV, Amsterdam, Dam 1', '', '2024-03-06', '', '1', '']]
        )
        dataset = asyncio.run(process_route(csv_text, geocoder))
        record = dataset.records[0]

        assert record.date == "2024-03-06T00:00:00"
        assert record.start_time is None
        assert record.end_time is None
        assert record.assigned_to is None

    def test_records_sorted_dateless_first(self, geocoder):
        """Test records are ordered by date with dateless ones first"""
        csv_text = RouteTestData.build_csv(
            [
                ['late', 'Late', 'A BV, Amsterdam, Dam 1', '2024-03-05 08:00:00', '', '', '', ''],
                ['none', 'Undated', 'B BV, Amsterdam, Dam 1', '', '', '', '', ''],
                ['early', 'Early', 'C BV, Amsterdam, Dam 1', '2024-03-04 08:00:00', '', '', '', ''],
                ['mid', 'Mid', 'D BV, Amsterdam, Dam 1', '2024-03-04 16:00:00', '', '', '', ''],
            ]
        )
        dataset = asyncio.run(process_route(csv_text, geocoder))

        assert [r.id for r in dataset.records] == ["none", "early", "mid", "late"]
        assert dataset.unique_dates == ["2024-03-04", "2024-03-05"]

    def test_identifiers_stay_strings(self, geocoder):
        """Test numeric-looking identifiers are not converted"""
        csv_text = RouteTestData.build_csv([['00123', '0042', 'A BV, Amsterdam, Dam 1', '', '', '', '', '']])
        dataset = asyncio.run(process_route(csv_text, geocoder))

        assert dataset.records[0].id == "00123"
        assert dataset.records[0].name == "0042"

    def test_byte_order_mark(self, geocoder):
        """Test a leading BOM does not break the header"""
        csv_text = "\ufeff" + RouteTestData.get_three_row_csv()
        dataset = asyncio.run(process_route(csv_text, geocoder))
        assert len(dataset.records) == 2

    def test_failed_geocode_is_reported(self, parser):
        """Test a geocoder returning nothing lands in the failure list"""
        parser.geocoder.resolve = AsyncMock(return_value=None)
        dataset = asyncio.run(parser.process_route(RouteTestData.get_three_row_csv()))

        assert dataset.records == []
        assert dataset.failed_addresses == ["Jansen BV, Amsterdam, Dam 1", "Kantoor BV, Utrecht, Stationsplein 1"]

    def test_missing_required_column(self, geocoder):
        """Test an export without the address column yields no records"""
        csv_text = RouteTestData.build_csv([['1', 'Visit']], header=['Externe ID', 'Abonnement'])
        dataset = asyncio.run(process_route(csv_text, geocoder))
        assert dataset.records == []

    def test_empty_input_raises(self, geocoder):
        with pytest.raises(RouteParseError):
            asyncio.run(process_route("", geocoder))

    def test_malformed_csv_raises(self, geocoder):
        """Test rows with more fields than the header are a parse error"""
        csv_text = "Abonnement;Abonnement/Afleveradres\nA;B BV, Amsterdam, Dam 1\nC;D BV, Amsterdam, Dam 1;extra;fields\n"
        with pytest.raises(RouteParseError):
            asyncio.run(process_route(csv_text, geocoder))

    def test_new_addresses_are_cached(self, geocoder, cache, nominatim):
        """Test a second parse reuses cached lookups"""
        asyncio.run(process_route(RouteTestData.get_three_row_csv(), geocoder))
        asyncio.run(process_route(RouteTestData.get_three_row_csv(), geocoder))

        assert nominatim.geocode.call_count == 1
        assert "Stationsplein 1, Utrecht, Netherlands" in cache

    def test_load_route_file(self, geocoder, tmp_path):
        route_file = tmp_path / "route.csv"
        route_file.write_text(RouteTestData.get_three_row_csv(), encoding='utf-8-sig')

        dataset = asyncio.run(load_route_file(route_file, geocoder))
        assert len(dataset.records) == 2

    def test_load_route_file_wrong_encoding(self, geocoder, tmp_path):
        """Test a latin-1 export is reported as a parse error"""
        route_file = tmp_path / "route.csv"
        route_file.write_bytes(RouteTestData.get_three_row_csv().replace("Jansen", "Jénsen").encode('latin-1'))

        with pytest.raises(RouteParseError, match="not valid"):
            asyncio.run(load_route_file(route_file, geocoder))

    def test_dataset_to_dict(self, geocoder):
        """Test the dataset serializes to JSON"""
        dataset = asyncio.run(process_route(RouteTestData.get_three_row_csv(), geocoder))
        data = json.loads(json.dumps(dataset.to_dict()))

        assert data['records'][0]['coordinates'] == [52.3731339, 4.8924534]
        assert data['daily_stats'][0]['location_count'] == 2
        assert data['unique_dates'] == ["2024-03-04"]
        assert data['failed_addresses'] == []

    def test_export_address_cache(self, geocoder, cache):
        """Test exported snapshot contains resolved addresses"""
        asyncio.run(process_route(RouteTestData.get_three_row_csv(), geocoder))
        snapshot = json.loads(export_address_cache(cache))

        assert snapshot["Stationsplein 1, Utrecht, Netherlands"] == [52.0894444, 5.1100574]
        assert len(snapshot) == len(cache)

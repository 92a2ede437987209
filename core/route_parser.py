import io
import logging
import math
import pandas as pd
from config import CSV_COLUMNS, CSV_DAYFIRST, CSV_DELIMITER, CSV_ENCODING, REQUIRED_CSV_FIELDS
from core.models import RouteDataset, VisitRecord
from core.statistics import daily_stats, unique_dates
from datetime import UTC, datetime
from dateutil.parser import ParserError as DateParserError
from dateutil.parser import parse as parse_date
from pathlib import Path
from utils.address_cache import AddressCache
from utils.geocoding import Geocoder, extract_address

logger = logging.getLogger(__name__)


class RouteParseError(Exception):
    """The route export could not be read as a delimited table"""


class RouteParser:
    """Turn a route planning CSV export into geocoded, date-ordered visit records"""

    def __init__(self, geocoder: Geocoder, columns: dict[str, str] = CSV_COLUMNS, dayfirst: bool = CSV_DAYFIRST):
        self.geocoder = geocoder
        self.columns = columns
        self.dayfirst = dayfirst

    def read_rows(self, file_contents: str) -> list[dict]:
        """Parse the CSV text into header-keyed rows, all cells kept as strings"""
        try:
            df = pd.read_csv(
                io.StringIO(file_contents.lstrip('\ufeff')),
                sep=CSV_DELIMITER,
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=True,
            )
        except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            raise RouteParseError(f"Could not parse route CSV: {e}") from e

        missing = [self.columns[key] for key in REQUIRED_CSV_FIELDS if self.columns[key] not in df.columns]
        if missing:
            logger.warning(f"Route CSV is missing required columns: {missing}")

        return df.to_dict('records')

    def _cell(self, row: dict, key: str) -> str | None:
        value = row.get(self.columns[key])
        if not isinstance(value, str):
            return None
        value = value.strip()
        return value or None

    def parse_timestamp(self, date_str: str | None) -> str | None:
        """Parse timestamp and convert to ISO format"""
        if not date_str:
            return None
        try:
            return parse_date(date_str, dayfirst=self.dayfirst).isoformat()
        except (DateParserError, ValueError, OverflowError) as e:
            logger.warning(f"Failed to parse timestamp '{date_str}': {e}")
            return None

    def parse_required_hours(self, value: str | None) -> float:
        """Parse an hours cell that may use a decimal comma, blank means 0"""
        if not value:
            return 0.0
        try:
            hours = float(value.replace(',', '.'))
        except ValueError:
            logger.warning(f"Invalid required hours '{value}', using 0")
            return 0.0

        if not math.isfinite(hours) or hours < 0:
            logger.warning(f"Invalid required hours '{value}', using 0")
            return 0.0
        return hours

    async def process_route(self, file_contents: str) -> RouteDataset:
        """Parse, geocode, order and summarize a route export"""
        rows = self.read_rows(file_contents)
        logger.info(f"Parsed {len(rows)} rows from CSV")

        records: list[VisitRecord] = []
        failed_addresses: list[str] = []

        for i, row in enumerate(rows):
            name = self._cell(row, 'name')
            full_address = self._cell(row, 'address')
            if not name or not full_address:
                logger.warning(f"Skipping row {i + 1} due to missing required fields")
                continue

            address = extract_address(full_address, self.geocoder.country)
            coordinates = await self.geocoder.resolve(address)
            if coordinates is None:
                failed_addresses.append(full_address)
                logger.error(f"Failed to geocode address: {full_address}")
                continue

            start_time = self.parse_timestamp(self._cell(row, 'begin_datetime'))
            if start_time:
                date = start_time
            else:
                date = self.parse_timestamp(self._cell(row, 'start_date'))

            record = VisitRecord(
                id=self._cell(row, 'external_id') or f"loc_{len(records)}",
                name=name,
                address=full_address,
                coordinates=coordinates,
                required_hours=self.parse_required_hours(self._cell(row, 'required_hours')),
                date=date,
                start_time=start_time,
                end_time=self.parse_timestamp(self._cell(row, 'end_datetime')),
                assigned_to=self._cell(row, 'assigned_to'),
                visit_type=self._cell(row, 'visit_type'),
                notes=self._cell(row, 'notes'),
            )
            logger.debug(f"Added location: {record.name} at {record.address}")
            records.append(record)

        if failed_addresses:
            logger.error(f"Failed to geocode {len(failed_addresses)} addresses: {failed_addresses}")

        records.sort(key=_sort_key)

        dataset = RouteDataset(
            records=records,
            daily_stats=daily_stats(records),
            unique_dates=unique_dates(records),
            failed_addresses=failed_addresses,
        )
        logger.info(f"Processed {len(records)} locations with {len(dataset.unique_dates)} unique dates")
        return dataset


def _sort_key(record: VisitRecord):
    # Dateless records first, then chronological; aware timestamps compared in UTC
    if not record.date:
        return (0, datetime.min)
    moment = parse_date(record.date)
    if moment.tzinfo is not None:
        moment = moment.astimezone(UTC).replace(tzinfo=None)
    return (1, moment)


async def process_route(file_contents: str, geocoder: Geocoder) -> RouteDataset:
    """Run the route pipeline over CSV text"""
    return await RouteParser(geocoder).process_route(file_contents)


async def load_route_file(path: Path, geocoder: Geocoder) -> RouteDataset:
    """Read a route export from disk and run the pipeline over it"""
    try:
        with open(path, encoding=CSV_ENCODING) as f:
            contents = f.read()
    except UnicodeDecodeError as e:
        raise RouteParseError(f"{path} is not valid {CSV_ENCODING} text: {e}") from e
    logger.info(f"Loaded route file {path}")
    return await process_route(contents, geocoder)


def export_address_cache(cache: AddressCache) -> str:
    """Pretty-printed JSON snapshot of the address cache"""
    return cache.export_snapshot()

import logging
from collections.abc import Sequence
from config import STATS_PRECISION
from core.models import DailyStats, RouteComparison, RouteDataset, RouteSummary, VisitRecord
from utils.distance import route_distance

logger = logging.getLogger(__name__)


def unique_dates(records: Sequence[VisitRecord]) -> list[str]:
    """Sorted distinct calendar dates, records without a date are left out"""
    return sorted({record.calendar_date for record in records if record.calendar_date})


def filter_by_date(records: Sequence[VisitRecord], date: str | None) -> list[VisitRecord]:
    """Records on the given calendar date, or all records when date is None"""
    if date is None:
        return list(records)
    return [record for record in records if record.calendar_date == date]


def daily_stats(records: Sequence[VisitRecord]) -> list[DailyStats]:
    """Per-date distance, time and stop count

    Distance follows the order of the records as given. Time and count cover
    every record on the date, including ones without coordinates. Dates with
    fewer than two geocoded records get no entry.
    """
    stats = []

    for date in unique_dates(records):
        day_records = filter_by_date(records, date)
        coords = [record.coordinates for record in day_records if record.coordinates is not None]

        if len(coords) < 2:
            logger.debug(f"Skipping stats for {date}: {len(coords)} geocoded location(s)")
            continue

        stats.append(
            DailyStats(
                date=date,
                distance=round(route_distance(coords), STATS_PRECISION),
                total_time=round(sum(record.required_hours for record in day_records), STATS_PRECISION),
                location_count=len(day_records),
            )
        )

    return stats


def filter_dataset(dataset: RouteDataset, date: str | None) -> RouteDataset:
    """Restrict a dataset to a single date, keeping the full list of dates"""
    if date is None:
        return dataset

    return RouteDataset(
        records=filter_by_date(dataset.records, date),
        daily_stats=[stats for stats in dataset.daily_stats if stats.date == date],
        unique_dates=list(dataset.unique_dates),
        failed_addresses=list(dataset.failed_addresses),
    )


def summarize(dataset: RouteDataset, date: str | None = None) -> RouteSummary:
    """Totals over all daily stats, or the stats of one date (zeros when it has none)"""
    if date is not None:
        day = next((stats for stats in dataset.daily_stats if stats.date == date), None)
        if day is None:
            return RouteSummary()
        return RouteSummary(distance=day.distance, total_time=day.total_time, location_count=day.location_count)

    return RouteSummary(
        distance=sum(stats.distance for stats in dataset.daily_stats),
        total_time=sum(stats.total_time for stats in dataset.daily_stats),
        location_count=sum(stats.location_count for stats in dataset.daily_stats),
    )


def compare_routes(original: RouteDataset, optimized: RouteDataset, date: str | None = None) -> RouteComparison:
    """Distance saved by the optimized route relative to the original"""
    original_distance = summarize(original, date).distance
    optimized_distance = summarize(optimized, date).distance
    saved_distance = original_distance - optimized_distance
    saved_percentage = (saved_distance / original_distance * 100) if original_distance > 0 else 0.0

    return RouteComparison(
        original_distance=original_distance,
        optimized_distance=optimized_distance,
        saved_distance=saved_distance,
        saved_percentage=saved_percentage,
    )

from dataclasses import asdict, dataclass, field

Coordinate = tuple[float, float]


@dataclass
class VisitRecord:
    """One scheduled stop from a route export"""

    id: str
    name: str
    address: str
    coordinates: Coordinate | None = None
    required_hours: float = 0.0
    date: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    assigned_to: str | None = None
    visit_type: str | None = None
    notes: str | None = None

    @property
    def calendar_date(self) -> str | None:
        """Date portion of the ISO timestamp, ignoring time of day"""
        if not self.date:
            return None
        return self.date.split('T')[0]

    def to_dict(self) -> dict:
        data = asdict(self)
        data['coordinates'] = list(self.coordinates) if self.coordinates else None
        return data


@dataclass
class DailyStats:
    date: str
    distance: float
    total_time: float
    location_count: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class RouteDataset:
    """Output of a single route parse"""

    records: list[VisitRecord] = field(default_factory=list)
    daily_stats: list[DailyStats] = field(default_factory=list)
    unique_dates: list[str] = field(default_factory=list)
    # Addresses the geocoder could not place. Stays empty while the
    # geocoder falls back to a default location.
    failed_addresses: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'records': [record.to_dict() for record in self.records],
            'daily_stats': [stats.to_dict() for stats in self.daily_stats],
            'unique_dates': list(self.unique_dates),
            'failed_addresses': list(self.failed_addresses),
        }


@dataclass
class RouteSummary:
    distance: float = 0.0
    total_time: float = 0.0
    location_count: int = 0


@dataclass
class RouteComparison:
    original_distance: float
    optimized_distance: float
    saved_distance: float
    saved_percentage: float

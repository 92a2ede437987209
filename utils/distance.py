import math
from collections.abc import Sequence
from config import EARTH_RADIUS_KM


def haversine_distance(coord1: tuple[float, float], coord2: tuple[float, float]) -> float:
    """Great-circle distance in kilometers between two (lat, lon) pairs given in degrees"""
    lat1, lon1 = coord1
    lat2, lon2 = coord2
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def route_distance(coords: Sequence[tuple[float, float]]) -> float:
    """Total distance in kilometers when visiting coords in the given order"""
    total = 0.0
    for i in range(len(coords) - 1):
        total += haversine_distance(coords[i], coords[i + 1])
    return total

"""
Great-circle geometry helpers shared by the grid engines.
All angles are in degrees unless the name says otherwise.
"""
import math

EARTH_RADIUS_M = 6371000.0

# Approximate meters per degree of latitude (and of longitude at the equator)
METERS_PER_DEGREE_LAT = 111320.0

METERS_PER_KM = 1000.0
METERS_PER_MILE = 1609.344


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two points.

    Args:
        lat1: Latitude of the first point
        lon1: Longitude of the first point
        lat2: Latitude of the second point
        lon2: Longitude of the second point

    Returns:
        Distance in meters
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = phi2 - phi1
    dlambda = math.radians(lon2 - lon1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def normalize_lon(lon: float) -> float:
    """Wrap a longitude into [-180, 180]."""
    while lon > 180.0:
        lon -= 360.0
    while lon < -180.0:
        lon += 360.0
    return lon


def meters_to_lat_degrees(meters: float) -> float:
    return meters / METERS_PER_DEGREE_LAT


def meters_to_lon_degrees(meters: float, lat: float) -> float:
    """
    Convert an east-west distance to degrees of longitude at a latitude.

    Returns 360 when the latitude is so close to a pole that every longitude
    is within reach.
    """
    meters_per_degree = METERS_PER_DEGREE_LAT * math.cos(math.radians(lat))
    if meters_per_degree <= 0:
        return 360.0
    return min(360.0, meters / meters_per_degree)

"""
Geographic Utility Functions

Helper functions for geographic calculations including distance measurements,
plausibility bounds and point-in-polygon tests.
"""
from math import radians, cos, sin, asin, sqrt
from typing import Optional, Sequence

# United States incl. Alaska, Hawaii and Puerto Rico
US_LAT_BOUNDS = (17.5, 71.5)
US_LON_BOUNDS = (-179.5, -64.5)


def haversine_distance(
    lat1: float,
    lon1: float,
    lat2: float,
    lon2: float
) -> float:
    """
    Calculate great-circle distance between two points using Haversine formula.

    Args:
        lat1: Latitude of first point (decimal degrees)
        lon1: Longitude of first point (decimal degrees)
        lat2: Latitude of second point (decimal degrees)
        lon2: Longitude of second point (decimal degrees)

    Returns:
        Distance in miles

    Formula:
        a = sin²(Δlat/2) + cos(lat1) × cos(lat2) × sin²(Δlon/2)
        c = 2 × atan2(√a, √(1−a))
        distance = R × c  (R = Earth radius = 3,956 miles)
    """
    lon1, lat1, lon2, lat2 = map(radians, [lon1, lat1, lon2, lat2])

    dlon = lon2 - lon1
    dlat = lat2 - lat1
    a = sin(dlat/2)**2 + cos(lat1) * cos(lat2) * sin(dlon/2)**2
    c = 2 * asin(sqrt(a))

    r = 3956

    return c * r


def within_us_bounds(latitude: Optional[float], longitude: Optional[float]) -> bool:
    """
    Check that a coordinate pair falls inside the plausible US envelope.

    Args:
        latitude: WGS84 latitude
        longitude: WGS84 longitude

    Returns:
        True if both values are present and inside the envelope
    """
    if latitude is None or longitude is None:
        return False
    return (
        US_LAT_BOUNDS[0] <= latitude <= US_LAT_BOUNDS[1]
        and US_LON_BOUNDS[0] <= longitude <= US_LON_BOUNDS[1]
    )


def point_in_polygon(latitude: float, longitude: float, polygon: Sequence[Sequence[float]]) -> bool:
    """
    Ray-casting point-in-polygon test.

    Args:
        latitude: Point latitude
        longitude: Point longitude
        polygon: Ring of [lng, lat] vertices (GeoJSON order); closing vertex optional

    Returns:
        True if the point lies inside the ring
    """
    inside = False
    count = len(polygon)
    if count < 3:
        return False

    j = count - 1
    for i in range(count):
        xi, yi = polygon[i][0], polygon[i][1]
        xj, yj = polygon[j][0], polygon[j][1]
        if (yi > latitude) != (yj > latitude):
            x_cross = (xj - xi) * (latitude - yi) / (yj - yi) + xi
            if longitude < x_cross:
                inside = not inside
        j = i

    return inside

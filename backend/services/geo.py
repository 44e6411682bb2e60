"""Point + radius filtering for records that carry lat/lon columns."""

import math

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in kilometres."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def within_radius(rows: list, lat: float, lon: float, radius_km: float) -> list:
    """Rows with coordinates inside the radius, nearest first."""
    hits = []
    for row in rows:
        if row.lat is None or row.lon is None:
            continue
        distance = haversine_km(lat, lon, row.lat, row.lon)
        if distance <= radius_km:
            hits.append((distance, row))
    hits.sort(key=lambda pair: pair[0])
    return [row for _, row in hits]

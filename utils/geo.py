"""
Service area checks.

Great-circle distance between the outlet and a delivery point, and whether
that point is inside the delivery radius.
"""

import math

# Mean Earth radius in kilometers.
EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1, lng1, lat2, lng2):
    """Distance in kilometers between two (lat, lng) points using the haversine formula."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lng2 - lng1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.asin(min(1.0, math.sqrt(a)))
    return EARTH_RADIUS_KM * c


def check_service_area(outlet_lat, outlet_lng, point_lat, point_lng, radius_km):
    """
    Returns:
        tuple: (within, distance_km). A point exactly on the radius is inside.
    """
    distance_km = haversine_km(outlet_lat, outlet_lng, point_lat, point_lng)
    return distance_km <= radius_km, distance_km


def is_within_service_area(outlet_lat, outlet_lng, point_lat, point_lng, radius_km):
    within, _ = check_service_area(outlet_lat, outlet_lng, point_lat, point_lng, radius_km)
    return within

"""
Geographic helpers.

Straight-line distances drive both the run-sheet ordering and the enroute
customer count on the tracking page.
"""

import math
from typing import Optional, Tuple


# Radius of Earth in kilometers
EARTH_RADIUS_KM = 6371.0


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate the great-circle distance between two points on Earth.
    
    d = 2R * asin(sqrt(sin^2(dlat/2) + cos(lat1) * cos(lat2) * sin^2(dlon/2)))
    
    Args:
        lat1, lon1: First point coordinates (degrees)
        lat2, lon2: Second point coordinates (degrees)
    
    Returns:
        Distance in kilometers
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = lat2_rad - lat1_rad
    dlon = math.radians(lon2 - lon1)
    
    a = math.sin(dlat / 2)**2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2)**2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def parse_coordinates(latitude: Optional[str], longitude: Optional[str]) -> Optional[Tuple[float, float]]:
    """Parse stored string coordinates; None when either is blank or malformed."""
    if not latitude or not longitude:
        return None
    try:
        return float(latitude), float(longitude)
    except (TypeError, ValueError):
        return None

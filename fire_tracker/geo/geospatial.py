"""
Geospatial utility functions.
Planar distance in raw degrees and nearest-point search over coordinate arrays.
"""

import numpy as np


def euclidean_distance(point1, point2):
    """
    Straight-line distance between two points in raw latitude/longitude degrees.

    No geodesic correction is applied; this is only used to rank candidates
    that are all close to each other.

    Args:
        point1: Tuple (latitude, longitude) in decimal degrees
        point2: Tuple (latitude, longitude) in decimal degrees

    Returns:
        float: Distance in degrees
    """
    lat1, lon1 = point1
    lat2, lon2 = point2
    return float(np.hypot(lat1 - lat2, lon1 - lon2))


def nearest_index(latitudes, longitudes, latitude, longitude):
    """
    Index of the reference point closest to (latitude, longitude).

    Args:
        latitudes: Array of reference latitudes
        longitudes: Array of reference longitudes
        latitude: Query latitude
        longitude: Query longitude

    Returns:
        int: Position of the nearest reference point; the first one wins on ties

    Raises:
        ValueError: If there are no reference points
    """
    latitudes = np.asarray(latitudes, dtype=float)
    longitudes = np.asarray(longitudes, dtype=float)

    if latitudes.size == 0:
        raise ValueError("No reference points to search")

    distances = np.hypot(latitudes - latitude, longitudes - longitude)
    return int(np.argmin(distances))

"""Static reference data: satellite sources, bounding region and the locality index."""

from .sources import (
    BoundingRegion,
    MARANHAO_BOUNDS,
    SATELLITE_SOURCES,
    SensorSourceInfo,
    get_source,
    get_valid_date_range,
    get_data_availability,
)
from .localities import Locality, LocalityIndex, load_locality_index, get_locality_index

__all__ = [
    'BoundingRegion',
    'MARANHAO_BOUNDS',
    'SATELLITE_SOURCES',
    'SensorSourceInfo',
    'get_source',
    'get_valid_date_range',
    'get_data_availability',
    'Locality',
    'LocalityIndex',
    'load_locality_index',
    'get_locality_index',
]

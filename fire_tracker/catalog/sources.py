"""
NASA FIRMS source catalog and the Maranhão region of interest.
"""

from dataclasses import dataclass
from datetime import date, timedelta


@dataclass(frozen=True)
class BoundingRegion:
    """Rectangular latitude/longitude box in decimal degrees (edges inclusive)."""
    north: float
    south: float
    west: float
    east: float

    def contains(self, latitude, longitude):
        return (self.south <= latitude <= self.north and
                self.west <= longitude <= self.east)

    def as_area_string(self):
        """Area in FIRMS syntax: "west,south,east,north"."""
        return f"{self.west},{self.south},{self.east},{self.north}"


@dataclass(frozen=True)
class SensorSourceInfo:
    id: str
    name: str
    description: str


# Maranhão state bounding box
MARANHAO_BOUNDS = BoundingRegion(
    north=-0.2813,
    south=-10.4675,
    west=-47.4748,
    east=-41.1000,
)

DEFAULT_STATE = 'MA'

SATELLITE_SOURCES = (
    SensorSourceInfo(
        'VIIRS_SNPP_NRT', 'VIIRS SNPP NRT',
        'Visible Infrared Imaging Radiometer Suite (VIIRS) from Suomi NPP satellite - Near Real-Time'
    ),
    SensorSourceInfo(
        'VIIRS_NOAA20_NRT', 'VIIRS NOAA-20 NRT',
        'VIIRS from NOAA-20 satellite - Near Real-Time'
    ),
    SensorSourceInfo(
        'MODIS_NRT', 'MODIS NRT',
        'Moderate Resolution Imaging Spectroradiometer (MODIS) - Near Real-Time'
    ),
    SensorSourceInfo(
        'VIIRS_SNPP_SP', 'VIIRS SNPP Standard',
        'VIIRS from Suomi NPP satellite - Standard Processing'
    ),
    SensorSourceInfo(
        'VIIRS_NOAA20_SP', 'VIIRS NOAA-20 Standard',
        'VIIRS from NOAA-20 satellite - Standard Processing'
    ),
    SensorSourceInfo(
        'MODIS_SP', 'MODIS Standard',
        'MODIS - Standard Processing'
    ),
)

# Maximum number of days the FIRMS area API accepts per request
MAX_LOOKBACK_DAYS = 10


def get_source(source_id):
    """
    Look up a source by its FIRMS identifier.

    Raises:
        KeyError: If the identifier is not in the catalog
    """
    for source in SATELLITE_SOURCES:
        if source.id == source_id:
            return source
    raise KeyError(f"Unknown FIRMS source: {source_id}")


def get_valid_date_range(today=None, max_days=MAX_LOOKBACK_DAYS):
    """
    Oldest and newest dates that can be requested from the near-real-time feed.

    Args:
        today: Reference date (default: date.today())
        max_days: Lookback window in days

    Returns:
        tuple: (min_date, max_date)
    """
    if today is None:
        today = date.today()
    return today - timedelta(days=max_days), today


def get_data_availability(today=None):
    """
    Report the requestable date window for every source.

    Returns:
        list[dict]: One {'data_id', 'min_date', 'max_date'} record per source
    """
    min_date, max_date = get_valid_date_range(today)
    return [
        {
            'data_id': source.id,
            'min_date': min_date.isoformat(),
            'max_date': max_date.isoformat(),
        }
        for source in SATELLITE_SOURCES
    ]

"""
Locality index: the known Maranhão municipalities used to label detections.
Loaded once per process and never mutated.
"""

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd

from fire_tracker import config
from fire_tracker.exceptions import ConfigurationError
from fire_tracker.geo.geospatial import nearest_index


logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ['name', 'state', 'latitude', 'longitude']


@dataclass(frozen=True)
class Locality:
    name: str
    state: str
    latitude: float
    longitude: float


class LocalityIndex:
    """Read-only collection of localities with name lookup and nearest-neighbour search."""

    def __init__(self, localities):
        self._localities = tuple(localities)
        self._by_name = {}
        for locality in self._localities:
            # First entry wins for duplicate names
            self._by_name.setdefault(locality.name.casefold(), locality)

        self._latitudes = np.array([loc.latitude for loc in self._localities], dtype=float)
        self._longitudes = np.array([loc.longitude for loc in self._localities], dtype=float)
        self._latitudes.flags.writeable = False
        self._longitudes.flags.writeable = False

    def __len__(self):
        return len(self._localities)

    def __iter__(self):
        return iter(self._localities)

    def names(self):
        return [loc.name for loc in self._localities]

    def find(self, name):
        """Case-insensitive exact name match, or None."""
        if not name:
            return None
        return self._by_name.get(name.strip().casefold())

    def nearest(self, latitude, longitude):
        """
        Locality with minimum Euclidean distance (raw degrees) to the point.

        Never fails on a non-empty index.

        Raises:
            ConfigurationError: If the index is empty
        """
        if not self._localities:
            raise ConfigurationError("Locality index is empty")
        position = nearest_index(self._latitudes, self._longitudes, latitude, longitude)
        return self._localities[position]


def load_locality_index(path=None):
    """
    Load the locality index from a CSV file.

    Args:
        path: CSV with columns name, state, latitude, longitude
              (default: config.LOCALITIES_PATH)

    Returns:
        LocalityIndex

    Raises:
        ConfigurationError: If the file is missing, malformed or empty
    """
    if path is None:
        path = config.LOCALITIES_PATH

    try:
        df = pd.read_csv(path, dtype={'name': str, 'state': str})
    except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise ConfigurationError(f"Cannot read locality index {path}: {e}") from e

    missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing:
        raise ConfigurationError(f"Locality index {path} is missing columns: {missing}")

    df['latitude'] = pd.to_numeric(df['latitude'], errors='coerce')
    df['longitude'] = pd.to_numeric(df['longitude'], errors='coerce')
    df = df.dropna(subset=REQUIRED_COLUMNS)

    if len(df) == 0:
        raise ConfigurationError(f"Locality index {path} contains no localities")

    localities = [
        Locality(
            name=row['name'].strip(),
            state=row['state'].strip(),
            latitude=float(row['latitude']),
            longitude=float(row['longitude']),
        )
        for row in df.to_dict('records')
    ]

    logger.info(f"Loaded {len(localities)} localities from {path}")
    return LocalityIndex(localities)


_locality_index = None


def get_locality_index():
    """Process-wide locality index, loaded on first use."""
    global _locality_index
    if _locality_index is None:
        _locality_index = load_locality_index()
    return _locality_index

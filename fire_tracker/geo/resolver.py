"""
Locality resolution for hotspot coordinates.

Primary: OpenStreetMap Nominatim reverse geocoding, accepted only when the
returned city/town/village names a locality in the index.
Fallback: nearest indexed locality by Euclidean distance in raw degrees.
"""

import logging
from dataclasses import dataclass

from geopy.extra.rate_limiter import RateLimiter
from geopy.geocoders import Nominatim

from fire_tracker import config
from fire_tracker.catalog.localities import get_locality_index
from fire_tracker.catalog.sources import MARANHAO_BOUNDS


logger = logging.getLogger(__name__)

# Address fields checked in order
ADDRESS_FIELDS = ('city', 'town', 'village', 'hamlet', 'municipality')

METHOD_GEOCODER = 'geocoder'
METHOD_NEAREST = 'nearest'


@dataclass(frozen=True)
class ResolvedLocality:
    municipality: str
    state: str
    method: str


def create_reverse_geocoder(user_agent=None, min_delay=None, retries=None):
    """
    Nominatim reverse lookup throttled to the public usage policy.

    Returns:
        callable: reverse((lat, lon), **kwargs) -> geopy Location or None
    """
    geolocator = Nominatim(user_agent=user_agent or config.GEOCODER_USER_AGENT)
    return RateLimiter(
        geolocator.reverse,
        min_delay_seconds=config.GEOCODER_MIN_DELAY if min_delay is None else min_delay,
        max_retries=config.GEOCODER_RETRIES if retries is None else retries,
        error_wait_seconds=2.0,
        swallow_exceptions=False,
    )


class LocalityResolver:
    """
    Map coordinates to a municipality of the locality index.

    Args:
        index: LocalityIndex (default: the process-wide index)
        region: BoundingRegion; points outside resolve to None
        reverse: Reverse geocoding callable; None disables the primary lookup
        timeout: Seconds allowed per reverse geocoding call
    """

    def __init__(self, index=None, region=None, reverse=None, timeout=None):
        self.index = index if index is not None else get_locality_index()
        self.region = region if region is not None else MARANHAO_BOUNDS
        self.reverse = reverse
        self.timeout = config.GEOCODER_TIMEOUT if timeout is None else timeout
        self._cache = {}

    @classmethod
    def from_config(cls, index=None, region=None):
        reverse = create_reverse_geocoder() if config.GEOCODER_ENABLED else None
        return cls(index=index, region=region, reverse=reverse)

    def resolve(self, latitude, longitude):
        """
        Resolve a coordinate pair.

        Returns:
            ResolvedLocality, or None when the point is outside the region
        """
        if not self.region.contains(latitude, longitude):
            return None

        key = (latitude, longitude)
        if key in self._cache:
            return self._cache[key]

        locality = self._lookup(latitude, longitude)
        if locality is not None:
            resolved = ResolvedLocality(locality.name, locality.state, METHOD_GEOCODER)
        else:
            nearest = self.index.nearest(latitude, longitude)
            resolved = ResolvedLocality(nearest.name, nearest.state, METHOD_NEAREST)

        self._cache[key] = resolved
        return resolved

    def _lookup(self, latitude, longitude):
        """Indexed locality named by the geocoder, or None on any failure or mismatch."""
        if self.reverse is None:
            return None

        try:
            location = self.reverse(
                (latitude, longitude),
                exactly_one=True,
                addressdetails=True,
                language='pt',
                timeout=self.timeout,
            )
        except Exception as e:
            logger.warning(f"Reverse geocoding failed for {latitude},{longitude}: {e}")
            return None

        address = _address_of(location)
        for field in ADDRESS_FIELDS:
            match = self.index.find(address.get(field))
            if match is not None:
                return match

        logger.debug(f"No indexed locality in geocoder address for {latitude},{longitude}")
        return None


def _address_of(location):
    if location is None:
        return {}
    raw = getattr(location, 'raw', None)
    if not isinstance(raw, dict):
        return {}
    address = raw.get('address')
    return address if isinstance(address, dict) else {}

"""
Test locality resolution: geocoder match, nearest-locality fallback and region check.
"""

import pytest
from unittest.mock import Mock

import numpy as np
from geopy.exc import GeocoderTimedOut, GeocoderUnavailable


def _location(**address):
    return Mock(raw={'address': address})


def _brute_force_nearest(index, lat, lon):
    best = None
    best_distance = None
    for loc in index:
        distance = ((loc.latitude - lat) ** 2 + (loc.longitude - lon) ** 2) ** 0.5
        if best_distance is None or distance < best_distance:
            best, best_distance = loc, distance
    return best


class TestPrimaryLookup:
    """Test reverse geocoding matches against the locality index."""

    def test_city_match_is_case_insensitive(self, locality_index):
        from fire_tracker.geo.resolver import LocalityResolver, METHOD_GEOCODER

        reverse = Mock(return_value=_location(city='BACABAL', state='Maranhão'))
        resolver = LocalityResolver(index=locality_index, reverse=reverse)

        result = resolver.resolve(-4.3, -44.8)

        assert result.municipality == 'Bacabal'
        assert result.state == 'MA'
        assert result.method == METHOD_GEOCODER

    def test_town_and_village_fields_used(self, locality_index):
        from fire_tracker.geo.resolver import LocalityResolver

        reverse = Mock(return_value=_location(village='Balsas'))
        resolver = LocalityResolver(index=locality_index, reverse=reverse)

        assert resolver.resolve(-7.0, -46.0).municipality == 'Balsas'

    def test_geocoder_called_with_timeout(self, locality_index):
        from fire_tracker.geo.resolver import LocalityResolver

        reverse = Mock(return_value=_location(city='Bacabal'))
        resolver = LocalityResolver(index=locality_index, reverse=reverse, timeout=3)

        resolver.resolve(-4.3, -44.8)

        args, kwargs = reverse.call_args
        assert args[0] == (-4.3, -44.8)
        assert kwargs['timeout'] == 3
        assert kwargs['addressdetails'] is True

    def test_unknown_city_falls_back_to_nearest(self, locality_index):
        from fire_tracker.geo.resolver import LocalityResolver, METHOD_NEAREST

        reverse = Mock(return_value=_location(city='Teresina'))
        resolver = LocalityResolver(index=locality_index, reverse=reverse)

        result = resolver.resolve(-4.3, -44.8)

        assert result.municipality == 'Bacabal'
        assert result.method == METHOD_NEAREST


class TestFallback:
    """Test the nearest-locality fallback."""

    @pytest.mark.parametrize('error', [
        GeocoderTimedOut('timed out'),
        GeocoderUnavailable('down'),
        ValueError('malformed response'),
    ])
    def test_geocoder_errors_are_not_propagated(self, locality_index, error):
        from fire_tracker.geo.resolver import LocalityResolver, METHOD_NEAREST

        reverse = Mock(side_effect=error)
        resolver = LocalityResolver(index=locality_index, reverse=reverse)

        result = resolver.resolve(-7.4, -46.1)

        assert result.municipality == 'Balsas'
        assert result.method == METHOD_NEAREST

    def test_no_result_falls_back(self, locality_index):
        from fire_tracker.geo.resolver import LocalityResolver

        resolver = LocalityResolver(index=locality_index, reverse=Mock(return_value=None))
        assert resolver.resolve(-2.6, -44.3).municipality == 'São Luís'

    def test_disabled_geocoder_uses_nearest(self, locality_index):
        from fire_tracker.geo.resolver import LocalityResolver

        resolver = LocalityResolver(index=locality_index, reverse=None)
        assert resolver.resolve(-5.4, -45.2).municipality == 'Barra do Corda'

    def test_scenario_minus5_minus45(self, locality_index):
        """(-5.0, -45.0) with no geocoder match resolves to the closest indexed locality."""
        from fire_tracker.geo.resolver import LocalityResolver

        resolver = LocalityResolver(index=locality_index, reverse=Mock(return_value=_location()))
        result = resolver.resolve(-5.0, -45.0)

        expected = _brute_force_nearest(locality_index, -5.0, -45.0)
        assert result.municipality == expected.name
        assert result.municipality == 'Barra do Corda'

    def test_fallback_completeness(self, locality_index):
        """Every point inside the region resolves even when the geocoder always fails."""
        from fire_tracker.geo.resolver import LocalityResolver
        from fire_tracker.catalog.sources import MARANHAO_BOUNDS as b

        resolver = LocalityResolver(index=locality_index, reverse=Mock(side_effect=RuntimeError('down')))

        for lat in np.linspace(b.south, b.north, 7):
            for lon in np.linspace(b.west, b.east, 7):
                result = resolver.resolve(float(lat), float(lon))
                assert result is not None
                assert result.municipality == _brute_force_nearest(locality_index, lat, lon).name

    def test_full_index_fallback(self):
        """Packaged index resolves every corner of the region."""
        from fire_tracker.catalog.localities import load_locality_index
        from fire_tracker.geo.resolver import LocalityResolver
        from fire_tracker.catalog.sources import MARANHAO_BOUNDS as b

        resolver = LocalityResolver(index=load_locality_index(), reverse=None)
        for lat, lon in [(b.south, b.west), (b.south, b.east), (b.north, b.west), (b.north, b.east)]:
            assert resolver.resolve(lat, lon) is not None


class TestRegionAndCache:
    """Test region pre-check and per-coordinate memo."""

    def test_outside_region_is_unresolvable(self, locality_index):
        from fire_tracker.geo.resolver import LocalityResolver

        reverse = Mock(return_value=_location(city='Bacabal'))
        resolver = LocalityResolver(index=locality_index, reverse=reverse)

        assert resolver.resolve(-23.55, -46.63) is None
        reverse.assert_not_called()

    def test_same_coordinate_geocoded_once(self, locality_index):
        from fire_tracker.geo.resolver import LocalityResolver

        reverse = Mock(return_value=_location(city='Bacabal'))
        resolver = LocalityResolver(index=locality_index, reverse=reverse)

        first = resolver.resolve(-4.3, -44.8)
        second = resolver.resolve(-4.3, -44.8)

        assert first == second
        assert reverse.call_count == 1


class TestReverseGeocoderFactory:
    """Test the throttled Nominatim wrapper."""

    def test_create_reverse_geocoder(self):
        from geopy.extra.rate_limiter import RateLimiter
        from fire_tracker.geo.resolver import create_reverse_geocoder

        reverse = create_reverse_geocoder(user_agent='test-agent', min_delay=0, retries=0)
        assert isinstance(reverse, RateLimiter)

    def test_from_config_respects_disabled_flag(self, locality_index, monkeypatch):
        from fire_tracker import config
        from fire_tracker.geo.resolver import LocalityResolver

        monkeypatch.setattr(config, 'GEOCODER_ENABLED', False)
        resolver = LocalityResolver.from_config(index=locality_index)
        assert resolver.reverse is None

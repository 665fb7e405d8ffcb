"""
Read queries over persisted fire data.
"""

from datetime import date, datetime, time, timedelta
from decimal import Decimal

from sqlalchemy import func

from fire_tracker.catalog.sources import MARANHAO_BOUNDS
from .connection import session_scope
from .models import FireIncident, FireLocation, SensorSource


def _range_bounds(start, end):
    """
    Convert a query range into [lower, upper) datetimes.

    A plain date as `end` includes that whole day.
    """
    if isinstance(start, datetime):
        lower = start
    else:
        lower = datetime.combine(start, time.min)

    if isinstance(end, datetime):
        upper = end + timedelta(microseconds=1)
    elif isinstance(end, date):
        upper = datetime.combine(end + timedelta(days=1), time.min)
    else:
        raise TypeError(f"Unsupported end bound: {end!r}")

    return lower, upper


def _plain(value):
    if isinstance(value, Decimal):
        return float(value)
    return value


def get_fires(start, end, municipality=None, session_factory=None):
    """
    Fire incidents with their location and sensor, newest first.

    Args:
        start: Lower bound (date or datetime)
        end: Upper bound, inclusive (a date includes the whole day)
        municipality: Optional case-insensitive municipality filter
        session_factory: Session factory (default: configured database)

    Returns:
        list[dict]: One record per incident
    """
    lower, upper = _range_bounds(start, end)

    with session_scope(session_factory) as session:
        query = (
            session.query(FireIncident, FireLocation, SensorSource)
            .join(FireLocation, FireIncident.location_id == FireLocation.id)
            .join(SensorSource, FireIncident.sensor_id == SensorSource.id)
            .filter(FireIncident.acquired_at >= lower)
            .filter(FireIncident.acquired_at < upper)
        )
        if municipality:
            query = query.filter(func.lower(FireLocation.municipality) == municipality.strip().lower())

        query = query.order_by(FireIncident.acquired_at.desc(), FireIncident.id.desc())

        return [
            {
                'id': incident.id,
                'location_id': location.id,
                'sensor_id': sensor.id,
                'latitude': _plain(location.latitude),
                'longitude': _plain(location.longitude),
                'state': location.state,
                'municipality': location.municipality,
                'acquisition_date': incident.acquired_at,
                'brightness': _plain(incident.brightness),
                'scan': _plain(incident.scan),
                'track': _plain(incident.track),
                'frp': _plain(incident.frp),
                'daynight': incident.daynight,
                'type': incident.type,
                'version': incident.version,
                'confidence': incident.confidence,
                'source': sensor.source,
                'satellite': sensor.satellite,
                'instrument': sensor.instrument,
                'created_at': incident.created_at,
                'updated_at': incident.updated_at,
            }
            for incident, location, sensor in query.all()
        ]


def get_municipalities(session_factory=None):
    """Distinct municipalities that have at least one stored fire location."""
    with session_scope(session_factory) as session:
        rows = (
            session.query(FireLocation.municipality, FireLocation.state)
            .filter(FireLocation.municipality.isnot(None))
            .distinct()
            .order_by(FireLocation.state, FireLocation.municipality)
            .all()
        )
        return [{'municipality': m, 'state': s} for m, s in rows]


def get_fire_stats(start, end, region=None, session_factory=None):
    """
    Aggregate statistics for fires inside the region.

    Returns:
        dict: total_fires, avg/max/min brightness, affected_municipalities
    """
    if region is None:
        region = MARANHAO_BOUNDS
    lower, upper = _range_bounds(start, end)

    with session_scope(session_factory) as session:
        row = (
            session.query(
                func.count(FireIncident.id),
                func.avg(FireIncident.brightness),
                func.max(FireIncident.brightness),
                func.min(FireIncident.brightness),
                func.count(func.distinct(FireLocation.municipality)),
            )
            .join(FireLocation, FireIncident.location_id == FireLocation.id)
            .filter(FireLocation.latitude.between(region.south, region.north))
            .filter(FireLocation.longitude.between(region.west, region.east))
            .filter(FireIncident.acquired_at >= lower)
            .filter(FireIncident.acquired_at < upper)
            .one()
        )

    total, avg_b, max_b, min_b, municipalities = row
    return {
        'total_fires': total,
        'avg_brightness': _plain(avg_b) if avg_b is not None else None,
        'max_brightness': _plain(max_b) if max_b is not None else None,
        'min_brightness': _plain(min_b) if min_b is not None else None,
        'affected_municipalities': municipalities,
    }

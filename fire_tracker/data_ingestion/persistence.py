"""
Deduplicating persistence of resolved fire detections.

Each detection is written as three short steps, each in its own transaction:
ensure the sensor row, ensure the location row, insert the incident unless
its (location, sensor, acquisition time) key already exists.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from fire_tracker.catalog.sources import MARANHAO_BOUNDS
from fire_tracker.database import FireIncident, FireLocation, SensorSource, session_scope


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedDetection:
    """A normalized detection labelled with its municipality."""
    detection: object  # firms.Detection
    municipality: str
    state: str


@dataclass
class PersistResult:
    attempted: int = 0
    inserted: int = 0
    duplicates: int = 0
    failed: int = 0
    out_of_region: int = 0


def _coordinate(value):
    return Decimal(f"{value:.6f}")


def _ensure_sensor(session_factory, source, satellite, instrument):
    """Id of the sensor row for (source, satellite, instrument), creating it on first use."""
    criteria = dict(source=source, satellite=satellite, instrument=instrument)

    with session_scope(session_factory) as session:
        sensor = session.query(SensorSource).filter_by(**criteria).one_or_none()
        if sensor is not None:
            return sensor.id

    try:
        with session_scope(session_factory) as session:
            sensor = SensorSource(**criteria)
            session.add(sensor)
            session.flush()
            sensor_id = sensor.id
        return sensor_id
    except IntegrityError:
        # Created concurrently by another run
        with session_scope(session_factory) as session:
            return session.query(SensorSource).filter_by(**criteria).one().id


def _ensure_location(session_factory, latitude, longitude, state, municipality):
    """Id of the location row for the exact coordinate; the first writer's municipality is kept."""
    lat = _coordinate(latitude)
    lon = _coordinate(longitude)

    with session_scope(session_factory) as session:
        location = session.query(FireLocation).filter_by(latitude=lat, longitude=lon).one_or_none()
        if location is not None:
            return location.id

    try:
        with session_scope(session_factory) as session:
            location = FireLocation(
                latitude=lat,
                longitude=lon,
                state=state,
                municipality=municipality,
            )
            session.add(location)
            session.flush()
            location_id = location.id
        return location_id
    except IntegrityError:
        with session_scope(session_factory) as session:
            return session.query(FireLocation).filter_by(latitude=lat, longitude=lon).one().id


def _insert_incident(session_factory, location_id, sensor_id, detection):
    """
    Insert the incident unless its dedup key exists.

    Returns:
        bool: True if a row was inserted, False if it was already stored
    """
    key = dict(location_id=location_id, sensor_id=sensor_id, acquired_at=detection.acquired_at)

    with session_scope(session_factory) as session:
        exists = session.query(FireIncident.id).filter_by(**key).first()
        if exists is not None:
            return False

    try:
        with session_scope(session_factory) as session:
            session.add(FireIncident(
                **key,
                brightness=detection.brightness,
                scan=detection.scan,
                track=detection.track,
                frp=detection.frp,
                daynight=detection.daynight,
                type=detection.type,
                version=detection.version,
                confidence=detection.confidence,
            ))
        return True
    except IntegrityError:
        # Inserted concurrently by another run
        return False


def persist_detections(resolved, source, session_factory=None, region=None):
    """
    Store resolved detections, skipping those already recorded.

    Per-detection failures are logged and do not stop the batch.

    Args:
        resolved: Iterable of ResolvedDetection
        source: Sensor source label (FIRMS source id)
        session_factory: Session factory (default: configured database)
        region: BoundingRegion every stored location must lie in (default: Maranhão)

    Returns:
        PersistResult: attempted, inserted, duplicate and failed counts
    """
    if region is None:
        region = MARANHAO_BOUNDS

    result = PersistResult()
    sensor_ids = {}

    for item in resolved:
        det = item.detection
        result.attempted += 1

        if not region.contains(det.latitude, det.longitude):
            logger.warning(f"Skipping detection outside region: {det.latitude},{det.longitude}")
            result.out_of_region += 1
            continue

        try:
            sensor_key = (source, det.satellite, det.instrument)
            if sensor_key not in sensor_ids:
                sensor_ids[sensor_key] = _ensure_sensor(session_factory, *sensor_key)

            location_id = _ensure_location(
                session_factory, det.latitude, det.longitude, item.state, item.municipality
            )

            if _insert_incident(session_factory, location_id, sensor_ids[sensor_key], det):
                result.inserted += 1
            else:
                result.duplicates += 1

        except SQLAlchemyError as e:
            logger.error(f"Error processing fire {det.latitude},{det.longitude}: {e}")
            result.failed += 1

    logger.info(
        f"Persisted {source}: {result.attempted} attempted, {result.inserted} inserted, "
        f"{result.duplicates} duplicates, {result.failed} failed"
    )
    return result


def save_fires_to_db(resolved, source, session_factory=None, region=None):
    """
    Save resolved fire detections to database.

    Returns:
        int: Number of detections attempted (duplicates are skipped silently,
             so this is not the number of new rows)
    """
    return persist_detections(resolved, source, session_factory, region).attempted

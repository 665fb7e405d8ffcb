"""
Shared fixtures: in-memory database, small locality index and FIRMS payload builders.
"""

from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


VIIRS_HEADER = (
    "latitude,longitude,bright_ti4,scan,track,acq_date,acq_time,satellite,"
    "instrument,confidence,version,bright_ti5,frp,daynight"
)
MODIS_HEADER = (
    "latitude,longitude,brightness,scan,track,acq_date,acq_time,satellite,"
    "instrument,confidence,version,bright_t31,frp,daynight"
)


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with all tables created."""
    from fire_tracker.database import init_db

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine)


@pytest.fixture
def locality_index():
    """Four Maranhão municipalities."""
    from fire_tracker.catalog.localities import Locality, LocalityIndex

    return LocalityIndex([
        Locality('São Luís', 'MA', -2.5307, -44.3068),
        Locality('Bacabal', 'MA', -4.2250, -44.7800),
        Locality('Barra do Corda', 'MA', -5.5058, -45.2433),
        Locality('Balsas', 'MA', -7.5325, -46.0356),
    ])


@pytest.fixture
def make_detection():
    """Build a Detection with sensible defaults."""
    from fire_tracker.data_ingestion.firms import Detection

    def _make(**overrides):
        values = dict(
            latitude=-5.0,
            longitude=-45.0,
            acquired_at=datetime(2025, 3, 10, 4, 12),
            brightness=330.5,
            scan=0.39,
            track=0.36,
            satellite='N',
            instrument='VIIRS',
            confidence=50,
            frp=5.2,
            daynight='N',
        )
        values.update(overrides)
        return Detection(**values)

    return _make


@pytest.fixture
def make_resolved(make_detection):
    """Build a ResolvedDetection; municipality defaults to Barra do Corda."""
    from fire_tracker.data_ingestion.persistence import ResolvedDetection

    def _make(municipality='Barra do Corda', state='MA', **overrides):
        return ResolvedDetection(make_detection(**overrides), municipality, state)

    return _make


def viirs_csv(*rows):
    """FIRMS VIIRS CSV payload from row strings."""
    return "\n".join((VIIRS_HEADER,) + rows) + "\n"


def modis_csv(*rows):
    """FIRMS MODIS CSV payload from row strings."""
    return "\n".join((MODIS_HEADER,) + rows) + "\n"


@pytest.fixture
def viirs_payload():
    return viirs_csv


@pytest.fixture
def modis_payload():
    return modis_csv

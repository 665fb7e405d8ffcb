"""
Database models for the Maranhão Fire Tracker.
Dimensional store: fire locations and sensor sources, with fire incidents as facts.
"""

from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, DateTime,
    DECIMAL, ForeignKey, Index, UniqueConstraint
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class SensorSource(Base):
    """One (source, satellite, instrument) combination; never updated after creation."""
    __tablename__ = 'sensor_sources'

    id = Column(Integer, primary_key=True)
    source = Column(String(50), nullable=False)      # FIRMS product, e.g. 'VIIRS_SNPP_NRT'
    satellite = Column(String(50), nullable=False)   # e.g. 'N', 'Terra', 'Aqua'
    instrument = Column(String(50), nullable=False)  # 'VIIRS' or 'MODIS'
    created_at = Column(DateTime, default=datetime.now)

    incidents = relationship("FireIncident", back_populates="sensor")

    __table_args__ = (
        UniqueConstraint('source', 'satellite', 'instrument', name='uq_sensor_source'),
    )


class FireLocation(Base):
    """Exact detection coordinate; first detection at a point sets its municipality."""
    __tablename__ = 'fire_locations'

    id = Column(Integer, primary_key=True)
    latitude = Column(DECIMAL(10, 6), nullable=False)
    longitude = Column(DECIMAL(10, 6), nullable=False)
    state = Column(String(100))
    municipality = Column(String(100))
    created_at = Column(DateTime, default=datetime.now)

    incidents = relationship("FireIncident", back_populates="location")

    __table_args__ = (
        UniqueConstraint('latitude', 'longitude', name='uq_fire_location_coords'),
        Index('idx_fire_location_municipality', 'municipality'),
    )


class FireIncident(Base):
    """A single detection at a location by a sensor; measurement fields are insert-only."""
    __tablename__ = 'fire_incidents'

    id = Column(Integer, primary_key=True)
    location_id = Column(Integer, ForeignKey('fire_locations.id'), nullable=False)
    sensor_id = Column(Integer, ForeignKey('sensor_sources.id'), nullable=False)
    acquired_at = Column(DateTime, nullable=False)  # UTC
    brightness = Column(DECIMAL(10, 2))  # Kelvin
    scan = Column(DECIMAL(10, 2))
    track = Column(DECIMAL(10, 2))
    frp = Column(DECIMAL(10, 2))  # Fire Radiative Power (MW)
    daynight = Column(String(1))
    type = Column(String(50))
    version = Column(String(50))
    confidence = Column(Integer)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    location = relationship("FireLocation", back_populates="incidents")
    sensor = relationship("SensorSource", back_populates="incidents")

    __table_args__ = (
        UniqueConstraint('location_id', 'sensor_id', 'acquired_at', name='uq_fire_incident_detection'),
        Index('idx_fire_incident_acquired', 'acquired_at'),
    )

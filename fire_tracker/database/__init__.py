"""Database module for the Maranhão Fire Tracker."""

from .models import Base, SensorSource, FireLocation, FireIncident
from .connection import (
    get_database_url,
    get_engine,
    get_session,
    get_session_factory,
    session_scope,
    init_db,
)

__all__ = [
    'Base',
    'SensorSource',
    'FireLocation',
    'FireIncident',
    'get_database_url',
    'get_engine',
    'get_session',
    'get_session_factory',
    'session_scope',
    'init_db',
]

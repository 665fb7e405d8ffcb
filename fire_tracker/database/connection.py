"""
Database connection utilities.
Provides engine and session management; PostgreSQL by default.
"""

from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from fire_tracker import config
from .models import Base


# One engine (and connection pool) per database URL
_engines = {}


def get_database_url():
    """Get database URL from environment or use default."""
    return config.DATABASE_URL


def get_engine(database_url=None):
    """Return the shared engine for a database URL."""
    url = database_url or get_database_url()
    if url not in _engines:
        _engines[url] = create_engine(url, echo=False, pool_pre_ping=True)
    return _engines[url]


def get_session_factory(engine=None):
    """Create a session factory bound to the engine."""
    return sessionmaker(bind=engine or get_engine())


def get_session():
    """Create and return database session."""
    Session = get_session_factory()
    return Session()


@contextmanager
def session_scope(session_factory=None):
    """
    Transactional scope around a series of operations.

    Commits on success, rolls back on any exception and always closes the session.
    """
    factory = session_factory or get_session_factory()
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(engine=None):
    """Initialize database by creating all tables."""
    engine = engine or get_engine()
    Base.metadata.create_all(engine)
    return engine

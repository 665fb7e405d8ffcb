"""
FastAPI application for the Maranhão Fire Tracker
Read endpoints over persisted fire data and a manual refresh trigger
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from datetime import date, datetime
from typing import Optional, List, Dict, Any
import logging

from sqlalchemy import text

from fire_tracker import __version__, config
from fire_tracker.catalog.localities import get_locality_index
from fire_tracker.catalog.sources import get_data_availability
from fire_tracker.database import get_engine
from fire_tracker.database.queries import get_fires, get_municipalities, get_fire_stats
from fire_tracker.exceptions import ConfigurationError
from fire_tracker.scheduler.tasks import (
    get_scheduler_status,
    run_ingestion,
    start_scheduler,
    stop_scheduler,
)


# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# Pydantic models for responses
class FireResponse(BaseModel):
    latitude: float
    longitude: float
    municipality: Optional[str] = None
    state: Optional[str] = None
    acquisition_date: datetime
    brightness: Optional[float] = None
    scan: Optional[float] = None
    track: Optional[float] = None
    frp: Optional[float] = None
    daynight: Optional[str] = None
    confidence: Optional[int] = None
    version: Optional[str] = None
    source: str
    satellite: str
    instrument: str


class RefreshRequest(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    sources: Optional[List[str]] = None


class HealthResponse(BaseModel):
    status: str
    scheduler: Dict[str, Any]
    database: str


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run the daily ingestion scheduler for the lifetime of the app"""
    if config.SCHEDULER_ENABLED:
        start_scheduler()
    yield
    stop_scheduler()


# Create FastAPI app
app = FastAPI(
    title="Maranhão Fire Tracker API",
    version=__version__,
    description="Satellite hotspot detections for Maranhão municipalities",
    lifespan=lifespan
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _check_range(start_date, end_date):
    if start_date > end_date:
        raise HTTPException(
            status_code=400,
            detail="start_date must not be after end_date"
        )


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with API information"""
    return {
        "message": "Maranhão Fire Tracker API",
        "version": __version__,
        "endpoints": {
            "fires": "/fires",
            "municipalities": "/municipalities",
            "municipality": "/municipalities/{name}",
            "stats": "/stats",
            "sources": "/sources",
            "refresh": "/refresh",
            "health": "/health"
        }
    }


@app.get("/fires", response_model=List[FireResponse])
def list_fires(
    start_date: date,
    end_date: date,
    municipality: Optional[str] = Query(default=None)
):
    """
    Fires detected between start_date and end_date (both inclusive)

    Args:
        start_date: First day (YYYY-MM-DD)
        end_date: Last day (YYYY-MM-DD)
        municipality: Optional municipality name, case-insensitive

    Returns:
        List of fires, newest first
    """
    _check_range(start_date, end_date)
    try:
        return get_fires(start_date, end_date, municipality=municipality)
    except Exception as e:
        logger.error(f"Failed to query fires: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail="Failed to query fires"
        )


@app.get("/municipalities")
def list_municipalities(with_fires: bool = False):
    """
    Known municipalities

    Args:
        with_fires: Only municipalities with at least one stored fire
    """
    if with_fires:
        return get_municipalities()

    return [
        {
            "municipality": loc.name,
            "state": loc.state,
            "latitude": loc.latitude,
            "longitude": loc.longitude
        }
        for loc in get_locality_index()
    ]


@app.get("/municipalities/{name}")
def get_municipality(name: str):
    """Reference coordinates of one municipality"""
    locality = get_locality_index().find(name)
    if locality is None:
        raise HTTPException(status_code=404, detail="Municipality not found")
    return {
        "municipality": locality.name,
        "state": locality.state,
        "latitude": locality.latitude,
        "longitude": locality.longitude
    }


@app.get("/stats")
def fire_stats(start_date: date, end_date: date):
    """Aggregate fire statistics for the date range"""
    _check_range(start_date, end_date)
    try:
        return get_fire_stats(start_date, end_date)
    except Exception as e:
        logger.error(f"Failed to compute fire statistics: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail="Failed to compute fire statistics"
        )


@app.get("/sources")
async def list_sources():
    """Requestable date window per satellite source"""
    return get_data_availability()


@app.post("/refresh")
def refresh(request: Optional[RefreshRequest] = None):
    """
    Run the ingestion pipeline now

    Returns:
        Run summary; 409 if a run is already in progress
    """
    request = request or RefreshRequest()
    try:
        report = run_ingestion(
            trigger='http',
            start_date=request.start_date,
            end_date=request.end_date,
            sources=request.sources
        )
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Manual refresh failed: {str(e)}")
        raise HTTPException(status_code=500, detail="Ingestion failed")

    if report is None:
        raise HTTPException(status_code=409, detail="Ingestion already running")

    return {
        "attempted": report.attempted,
        "inserted": report.inserted,
        "failed_sources": report.failed_sources
    }


@app.get("/health", response_model=HealthResponse)
def health_check():
    """
    System health check

    Returns:
        Scheduler state, last run and database connectivity
    """
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        database = "healthy"
    except Exception as e:
        logger.error(f"Database health check failed: {str(e)}")
        database = "unhealthy"

    return {
        "status": "healthy" if database == "healthy" else "degraded",
        "scheduler": get_scheduler_status(),
        "database": database
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
